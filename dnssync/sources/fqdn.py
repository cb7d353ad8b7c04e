from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Optional, Tuple, Union

from dnssync.errors import ConfigurationError

_ACTION_RE = re.compile(r"^\s*\.(?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*$")


@dataclass(frozen=True)
class TemplateTarget:
    """Identity fields a hostname template may reference."""

    Name: str
    Namespace: str = ""


_TARGET_FIELDS = frozenset(item.name for item in fields(TemplateTarget))


@dataclass(frozen=True)
class _Field:
    name: str


class FqdnTemplate:
    """Hostname template using ``{{.Field}}`` actions, e.g. ``{{.Name}}.example.org``."""

    def __init__(self, source: str, parts: Tuple[Union[str, _Field], ...]) -> None:
        self.source = source
        self._parts = parts

    @classmethod
    def parse(cls, text: str) -> "FqdnTemplate":
        parts: list[Union[str, _Field]] = []
        position = 0
        while position < len(text):
            start = text.find("{{", position)
            if start < 0:
                parts.append(text[position:])
                break
            if start > position:
                parts.append(text[position:start])
            end = text.find("}}", start + 2)
            if end < 0:
                raise ConfigurationError(
                    "fqdn_template.parse",
                    f"unclosed action starting at offset {start} in {text!r}",
                )
            action = text[start + 2 : end]
            match = _ACTION_RE.match(action)
            if match is None:
                raise ConfigurationError(
                    "fqdn_template.parse",
                    f"unsupported action {{{{{action}}}}} in {text!r}",
                )
            name = match.group("field")
            if name not in _TARGET_FIELDS:
                raise ConfigurationError(
                    "fqdn_template.parse",
                    f"can't evaluate field {name} in {text!r}",
                )
            parts.append(_Field(name))
            position = end + 2
        return cls(text, tuple(parts))

    def render(self, target: TemplateTarget) -> str:
        rendered: list[str] = []
        for part in self._parts:
            if isinstance(part, _Field):
                rendered.append(str(getattr(target, part.name)))
            else:
                rendered.append(part)
        return "".join(rendered)

    def __repr__(self) -> str:
        return f"FqdnTemplate({self.source!r})"


def parse_template(text: str) -> Optional[FqdnTemplate]:
    """Return a compiled template, or None when no template is configured."""
    if not text.strip():
        return None
    return FqdnTemplate.parse(text)
