from dnssync.models.base import Base
from dnssync.models.node import Node

__all__ = [
    "Base",
    "Node",
]
