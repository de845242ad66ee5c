"""
Unit tests for detector.transport.topic_rule.

The rule mirrors ``SELECT *, topic(2) as motorid FROM 'motors/+/status'``.
"""

from __future__ import annotations

import pytest

from detector.transport.topic_rule import TopicRule, flatten_payload, topic_level, topic_matches


@pytest.mark.parametrize(
    "topic_filter, topic, expected",
    [
        ("motors/+/status", "motors/A32/status", True),
        ("motors/+/status", "motors/A32/temperature", False),
        ("motors/+/status", "motors/A32/status/extra", False),
        ("motors/#", "motors/A32/status", True),
        ("motors/#", "motors", True),
        ("motors/+", "motors/A/B", False),
        ("motors/A32/status", "motors/A32/status", True),
    ],
)
def test_topic_matches(topic_filter: str, topic: str, expected: bool) -> None:
    assert topic_matches(topic_filter, topic) is expected


def test_topic_level_is_one_based() -> None:
    assert topic_level("motors/A32/status", 2) == "A32"
    assert topic_level("motors/A32/status", 0) is None
    assert topic_level("motors/A32/status", 4) is None


def test_flatten_payload_keeps_scalar_leaves() -> None:
    flat = flatten_payload({"motorid": "A32", "sensorData": {"pressure": 23, "tags": [1, 2], "note": None}, "ok": True})
    assert flat == {"motorid": "A32", "sensorData.pressure": 23, "ok": True}


def _rule() -> TopicRule:
    return TopicRule(
        key_attribute="motorid",
        topic_filter="motors/+/status",
        key_from_topic_level=2,
        input_name="PressureInput",
    )


def test_apply_takes_key_from_topic_level() -> None:
    reading = _rule().apply(
        {"motorid": "Fulton-A32", "sensorData": {"pressure": 23, "temperature": 47}},
        topic="motors/A32/status",
    )

    assert reading is not None
    assert reading.key == "A32"
    assert reading.input_name == "PressureInput"
    assert reading.topic == "motors/A32/status"
    assert reading.attributes == {"motorid": "A32", "sensorData.pressure": 23, "sensorData.temperature": 47}


def test_apply_skips_non_matching_topic() -> None:
    assert _rule().apply({"motorid": "A32"}, topic="pumps/P1/status") is None


def test_apply_without_topic_uses_payload_key() -> None:
    reading = _rule().apply({"motorid": "B17", "sensorData": {"pressure": 80}})
    assert reading is not None
    assert reading.key == "B17"


def test_apply_without_key_raises() -> None:
    with pytest.raises(ValueError):
        _rule().apply({"sensorData": {"pressure": 80}})
