from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple

from dnssync.errors import ConfigurationError

_NAME_PART = r"[A-Za-z0-9](?:[-A-Za-z0-9_.]*[A-Za-z0-9])?"
_DNS_SUBDOMAIN = r"[a-z0-9](?:[-a-z0-9]*[a-z0-9])?(?:\.[a-z0-9](?:[-a-z0-9]*[a-z0-9])?)*"
_KEY_RE = re.compile(rf"^(?:{_DNS_SUBDOMAIN}/)?{_NAME_PART}$")
_VALUE_RE = re.compile(rf"^(?:{_NAME_PART})?$")

_TOKEN = r"[^\s!=(),]+"
_SET_RE = re.compile(rf"^(?P<key>{_TOKEN})\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)$")
_COMPARE_RE = re.compile(rf"^(?P<key>{_TOKEN})\s*(?P<op>==|!=|=)\s*(?P<value>[^\s!=(),]*)$")
_NOT_EXISTS_RE = re.compile(rf"^!\s*(?P<key>{_TOKEN})$")
_EXISTS_RE = re.compile(rf"^(?P<key>{_TOKEN})$")

_MAX_NAME_LENGTH = 63


class Operator(str, Enum):
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: Operator
    values: Tuple[str, ...] = ()

    def matches(self, items: Mapping[str, str]) -> bool:
        present = self.key in items
        if self.operator is Operator.EXISTS:
            return present
        if self.operator is Operator.DOES_NOT_EXIST:
            return not present
        if self.operator is Operator.EQUALS:
            return present and items[self.key] == self.values[0]
        if self.operator is Operator.NOT_EQUALS:
            return not present or items[self.key] != self.values[0]
        if self.operator is Operator.IN:
            return present and items[self.key] in self.values
        return not present or items[self.key] not in self.values

    def __str__(self) -> str:
        if self.operator is Operator.EXISTS:
            return self.key
        if self.operator is Operator.DOES_NOT_EXIST:
            return f"!{self.key}"
        if self.operator in (Operator.IN, Operator.NOT_IN):
            return f"{self.key} {self.operator.value} ({','.join(sorted(self.values))})"
        return f"{self.key}{self.operator.value}{self.values[0]}"


def _check_key(key: str, expression: str) -> str:
    name = key.rsplit("/", 1)[-1]
    if not _KEY_RE.match(key) or len(name) > _MAX_NAME_LENGTH:
        raise ConfigurationError("selector.parse", f"invalid key {key!r} in {expression!r}")
    return key


def _check_value(value: str, expression: str) -> str:
    if not _VALUE_RE.match(value) or len(value) > _MAX_NAME_LENGTH:
        raise ConfigurationError("selector.parse", f"invalid value {value!r} in {expression!r}")
    return value


def _split_requirements(expression: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise ConfigurationError("selector.parse", f"unbalanced ')' in {expression!r}")
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise ConfigurationError("selector.parse", f"unbalanced '(' in {expression!r}")
    parts.append("".join(current))
    return parts


def _parse_requirement(raw: str, expression: str) -> Requirement:
    text = raw.strip()
    if not text:
        raise ConfigurationError("selector.parse", f"empty requirement in {expression!r}")

    match = _SET_RE.match(text)
    if match:
        key = _check_key(match.group("key"), expression)
        values = tuple(
            _check_value(item.strip(), expression) for item in match.group("values").split(",")
        )
        if not any(values):
            raise ConfigurationError(
                "selector.parse",
                f"values set for {key!r} must not be empty in {expression!r}",
            )
        operator = Operator.IN if match.group("op") == "in" else Operator.NOT_IN
        return Requirement(key, operator, values)

    match = _COMPARE_RE.match(text)
    if match:
        key = _check_key(match.group("key"), expression)
        value = _check_value(match.group("value"), expression)
        operator = Operator.NOT_EQUALS if match.group("op") == "!=" else Operator.EQUALS
        return Requirement(key, operator, (value,))

    match = _NOT_EXISTS_RE.match(text)
    if match:
        return Requirement(_check_key(match.group("key"), expression), Operator.DOES_NOT_EXIST)

    match = _EXISTS_RE.match(text)
    if match:
        return Requirement(_check_key(match.group("key"), expression), Operator.EXISTS)

    raise ConfigurationError("selector.parse", f"unable to parse requirement {text!r}")


class Selector:
    """Conjunction of requirements over a string map (labels or annotations).

    Expressions use the Kubernetes selector syntax: ``key=value``,
    ``key!=value``, ``key in (a,b)``, ``key notin (a,b)``, ``key`` and
    ``!key``, joined by commas. The empty selector matches everything.
    """

    def __init__(self, requirements: Tuple[Requirement, ...] = ()) -> None:
        self._requirements = tuple(sorted(requirements, key=lambda item: item.key))

    @classmethod
    def everything(cls) -> "Selector":
        return cls()

    @classmethod
    def parse(cls, expression: Optional[str]) -> "Selector":
        text = (expression or "").strip()
        if not text:
            return cls()
        return cls(tuple(_parse_requirement(part, text) for part in _split_requirements(text)))

    def matches(self, items: Optional[Mapping[str, str]]) -> bool:
        current = items or {}
        return all(requirement.matches(current) for requirement in self._requirements)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Selector):
            return NotImplemented
        return self._requirements == other._requirements

    def __hash__(self) -> int:
        return hash(self._requirements)

    def __str__(self) -> str:
        return ",".join(str(requirement) for requirement in self._requirements)

    def __repr__(self) -> str:
        return f"Selector({str(self)!r})"
