from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeAddressType(str, Enum):
    HOSTNAME = "Hostname"
    EXTERNAL_IP = "ExternalIP"
    INTERNAL_IP = "InternalIP"
    EXTERNAL_DNS = "ExternalDNS"
    INTERNAL_DNS = "InternalDNS"


class NodeAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: NodeAddressType
    address: str


class NodeSnapshot(BaseModel):
    """Read-only view of a node as served by the node cache."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    addresses: List[NodeAddress] = Field(default_factory=list)

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def coerce_maps(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("addresses", mode="before")
    @classmethod
    def coerce_addresses(cls, value: Any) -> Any:
        return [] if value is None else value


class NodeCreate(BaseModel):
    id: str
    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    addresses: List[NodeAddress] = Field(default_factory=list)


class NodeUpdate(BaseModel):
    name: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    addresses: Optional[List[NodeAddress]] = None


class NodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    labels: Dict[str, str]
    annotations: Dict[str, str]
    addresses: List[NodeAddress]
    created_at: datetime
    updated_at: datetime
