from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional

from detector.domain.models import Reading
from detector.transport.topic_rule import TopicRule


def _decode_obj(obj: Dict[str, Any], rule: TopicRule) -> Optional[Reading]:
    """
    Decode a message dictionary into a reading.

    Supported message shapes
    ------------------------
    - envelope: ``{"topic": "motors/A32/status", "payload": {...}}``
    - bare payload: ``{"motorid": "A32", "sensorData": {...}}``

    Parameters
    ----------
    obj
        JSON-decoded dictionary.
    rule
        Topic rule used for filtering and key extraction.

    Returns
    -------
    Reading or None
        None if the rule's topic filter rejects the message.

    Raises
    ------
    ValueError
        If the envelope payload is not an object or no key can be extracted.
    """
    if "payload" in obj and "topic" in obj:
        payload = obj["payload"]
        if not isinstance(payload, dict):
            raise ValueError("Envelope payload must be a JSON object")
        return rule.apply(payload, topic=str(obj["topic"]))

    return rule.apply(obj)


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """
    Yield one or more JSON objects found in a string.

    This function is robust against inputs where multiple JSON objects are
    accidentally concatenated without delimiters, e.g.::

        '{"a": 1}{"b": 2}'

    Only dictionary objects are yielded (non-dict JSON like lists/strings are ignored).

    Parameters
    ----------
    text
        Input string potentially containing one or more JSON objects.

    Yields
    ------
    dict
        Parsed JSON objects (dictionaries) found in the input.
    """
    s = text.strip()
    if not s:
        return

    dec = json.JSONDecoder()
    i = 0
    n = len(s)

    while i < n:
        while i < n and s[i].isspace():
            i += 1
        if i >= n:
            break

        obj, end = dec.raw_decode(s, i)
        if isinstance(obj, dict):
            yield obj
        i = end


def decode_message(line: str, rule: TopicRule) -> Optional[Reading]:
    """
    Decode an NDJSON line into a reading.

    If the sender concatenates multiple JSON objects into one line, the first
    object is decoded.

    Parameters
    ----------
    line
        Input line containing one (or more concatenated) JSON objects.
    rule
        Topic rule used for filtering and key extraction.

    Returns
    -------
    Reading or None
        None if the message is filtered out by the topic rule.

    Raises
    ------
    ValueError
        If no JSON object is found or the message has no key.
    """
    for obj in iter_json_objects(line):
        return _decode_obj(obj, rule)

    raise ValueError("No JSON object found in line")
