from __future__ import annotations

from typing import Dict, List

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from dnssync.models.base import Base, TimestampMixin


class Node(TimestampMixin, Base):
    __tablename__ = "nodes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(253), unique=True, index=True)
    labels: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict)
    annotations: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict)
    # Ordered list of {"type": ..., "address": ...}; order drives target order.
    addresses: Mapped[List[Dict[str, str]]] = mapped_column(JSON, default=list)
