from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class RecordType(str, Enum):
    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    TXT = "TXT"
    SRV = "SRV"
    NS = "NS"
    PTR = "PTR"
    MX = "MX"


class RecordTTL(BaseModel):
    """TTL override; ``configured`` is False when no valid override was given."""

    model_config = ConfigDict(frozen=True)

    value: int = 0
    configured: bool = False

    @classmethod
    def of(cls, value: int) -> "RecordTTL":
        return cls(value=value, configured=True)


class Endpoint(BaseModel):
    """One candidate DNS record produced by a source."""

    dns_name: str
    record_type: RecordType
    targets: List[str] = Field(default_factory=list)
    record_ttl: RecordTTL = Field(default_factory=RecordTTL)
    labels: Dict[str, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        ttl = self.record_ttl.value if self.record_ttl.configured else "-"
        return f"{self.dns_name} {ttl} IN {self.record_type.value} {' '.join(self.targets)}"
