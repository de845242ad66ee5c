"""
Topic rule: turns a raw transport message into a keyed :class:`Reading`.

A rule mirrors an IoT topic rule such as::

    SELECT *, topic(2) as motorid FROM 'motors/+/status'

- ``topic_filter`` selects messages (MQTT ``+`` / ``#`` wildcards),
- ``key_from_topic_level`` copies a 1-based topic level into
  ``key_attribute`` (overriding any payload value),
- the payload is flattened into dotted attribute paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from detector.domain.models import AttributeValue, Reading


def topic_matches(topic_filter: str, topic: str) -> bool:
    """
    Match an MQTT-style topic filter against a topic.

    ``+`` matches exactly one level, ``#`` (last level only) matches the rest.
    """
    f_levels = topic_filter.split("/")
    t_levels = topic.split("/")
    for i, f in enumerate(f_levels):
        if f == "#":
            return i == len(f_levels) - 1
        if i >= len(t_levels):
            return False
        if f != "+" and f != t_levels[i]:
            return False
    return len(f_levels) == len(t_levels)


def topic_level(topic: str, level: int) -> Optional[str]:
    """Return the 1-based ``level`` of ``topic`` (``topic(2)``), or None."""
    parts = topic.split("/")
    if 1 <= level <= len(parts):
        return parts[level - 1]
    return None


def flatten_payload(payload: Mapping[str, Any], prefix: str = "") -> Dict[str, AttributeValue]:
    """
    Flatten nested mappings into dotted paths.

    Only scalar leaves (numbers, strings, booleans) are kept; lists and nulls
    are dropped.

    Examples
    --------
    >>> flatten_payload({"motorid": "A32", "sensorData": {"pressure": 23}})
    {'motorid': 'A32', 'sensorData.pressure': 23}
    """
    out: Dict[str, AttributeValue] = {}
    for k, v in payload.items():
        path = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, Mapping):
            out.update(flatten_payload(v, path))
        elif isinstance(v, (bool, int, float, str)):
            out[path] = v
    return out


@dataclass(frozen=True)
class TopicRule:
    """
    Key extraction and flattening for incoming messages.

    Parameters
    ----------
    key_attribute
        Attribute path holding the detector key.
    topic_filter
        Optional MQTT-style filter; messages on other topics are skipped.
        Messages without a topic always pass.
    key_from_topic_level
        Optional 1-based topic level copied into ``key_attribute``.
    input_name
        Model input the produced readings belong to.
    """

    key_attribute: str
    topic_filter: Optional[str] = None
    key_from_topic_level: Optional[int] = None
    input_name: Optional[str] = None

    def matches(self, topic: Optional[str]) -> bool:
        if self.topic_filter is None or topic is None:
            return True
        return topic_matches(self.topic_filter, topic)

    def apply(self, payload: Mapping[str, Any], topic: Optional[str] = None) -> Optional[Reading]:
        """
        Build a reading from a payload.

        Returns
        -------
        Reading or None
            None if the topic does not match the filter.

        Raises
        ------
        ValueError
            If no key can be extracted.
        """
        if not self.matches(topic):
            return None

        attributes = flatten_payload(payload)
        if topic is not None and self.key_from_topic_level is not None:
            level = topic_level(topic, self.key_from_topic_level)
            if level is not None:
                attributes[self.key_attribute] = level

        key = attributes.get(self.key_attribute)
        if key is None or key == "":
            raise ValueError(f"Message has no key attribute {self.key_attribute!r}")

        return Reading(
            key=str(key),
            attributes=attributes,
            input_name=self.input_name,
            topic=topic,
        )
