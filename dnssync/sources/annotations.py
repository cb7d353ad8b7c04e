from __future__ import annotations

from typing import Mapping

from dnssync.logger import get_logger
from dnssync.schemas.endpoints import RecordTTL

_logger = get_logger("sources.annotations")

ANNOTATION_PREFIX = "external-dns.alpha.kubernetes.io/"
CONTROLLER_ANNOTATION_KEY = ANNOTATION_PREFIX + "controller"
TTL_ANNOTATION_KEY = ANNOTATION_PREFIX + "ttl"

_MAX_TTL = 2**31 - 1


def owned_by(annotations: Mapping[str, str], controller_identity: str) -> bool:
    """A resource without the controller annotation belongs to every controller."""
    owner = annotations.get(CONTROLLER_ANNOTATION_KEY)
    return owner is None or owner == controller_identity


def ttl_from_annotations(annotations: Mapping[str, str], *, resource: str = "") -> RecordTTL:
    raw = annotations.get(TTL_ANNOTATION_KEY)
    if raw is None:
        return RecordTTL()
    if not raw.isdigit() or not raw.isascii() or int(raw) > _MAX_TTL:
        _logger.debug(
            "ttl.invalid",
            "Ignoring invalid TTL annotation",
            resource=resource,
            value=raw,
        )
        return RecordTTL()
    return RecordTTL.of(int(raw))
