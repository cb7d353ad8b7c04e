from __future__ import annotations

import pytest

from dnssync.schemas.endpoints import RecordTTL
from dnssync.sources.annotations import (
    CONTROLLER_ANNOTATION_KEY,
    TTL_ANNOTATION_KEY,
    owned_by,
    ttl_from_annotations,
)


@pytest.mark.parametrize(
    "annotations,expected",
    [
        ({}, True),
        ({CONTROLLER_ANNOTATION_KEY: "dns-controller"}, True),
        ({CONTROLLER_ANNOTATION_KEY: "not-dns-controller"}, False),
        ({CONTROLLER_ANNOTATION_KEY: ""}, False),
    ],
)
def test_owned_by(annotations, expected):
    assert owned_by(annotations, "dns-controller") is expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, RecordTTL()),
        ("foo", RecordTTL()),
        ("-5", RecordTTL()),
        ("1.5", RecordTTL()),
        ("", RecordTTL()),
        ("99999999999", RecordTTL()),
        ("10", RecordTTL(value=10, configured=True)),
        (" 300 ", RecordTTL()),
        ("10 ", RecordTTL()),
        ("0", RecordTTL(value=0, configured=True)),
    ],
)
def test_ttl_from_annotations(value, expected):
    annotations = {} if value is None else {TTL_ANNOTATION_KEY: value}

    assert ttl_from_annotations(annotations) == expected
