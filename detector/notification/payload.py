from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from detector.domain.events import DetectorOutput, NotificationAction
from detector.notification.base import NotificationEvent


def _iso(ts: datetime) -> str:
    """ISO-8601 timestamp with second precision."""
    return ts.isoformat(timespec="seconds")


def build_action_payload(out: DetectorOutput, action: NotificationAction) -> Dict[str, Any]:
    """
    Build the outbound JSON for one notify action.

    The payload includes:
    - "detector": model name, key and the state after the reading
    - "action": which rule fired, in which state and phase
    - "payload": the resolved action payload from the engine
    - "transition": the state change of this reading, if any

    Parameters
    ----------
    out
        Detector output carrying the engine result.
    action
        Notify action taken from ``out.result.actions``.

    Returns
    -------
    dict
        Payload with keys "type", "eventTime", "detector", "action",
        "payload" and "transition".
    """
    res = out.result
    return {
        "type": "detector_action",
        "eventTime": _iso(out.timestamp),
        "detector": {
            "detectorModelName": out.model_name,
            "keyValue": res.key,
            "stateName": res.state_name,
            "variables": dict(res.variables),
        },
        "action": {
            "eventName": action.event_name,
            "actionType": action.action_type,
            "target": action.target,
            "phase": action.phase.value,
            "stateName": action.state_name,
        },
        "payload": action.payload,
        "transition": res.to_dict()["transition"],
    }


def build_state_change_payload(out: DetectorOutput) -> Dict[str, Any]:
    """Payload describing the state transition carried by ``out``."""
    res = out.result
    body = res.to_dict()
    return {
        "type": "state_change",
        "eventTime": _iso(out.timestamp),
        "detectorModelName": out.model_name,
        "keyValue": res.key,
        "transition": body["transition"],
        "variables": body["variables"],
    }


def to_notification_events(out: DetectorOutput, include_state_changes: bool = False) -> List[NotificationEvent]:
    """
    Convert a detector output into notification events, in action order.

    A state change event, when enabled, comes after the action events of the
    same reading.
    """
    ts = _iso(out.timestamp)
    events = [
        NotificationEvent(
            type="detector_action",
            payload=build_action_payload(out, a),
            key=out.result.key,
            target=a.target,
            ts=ts,
        )
        for a in out.result.notifications
    ]
    if include_state_changes and out.result.transition is not None:
        events.append(
            NotificationEvent(
                type="state_change",
                payload=build_state_change_payload(out),
                key=out.result.key,
                ts=ts,
            )
        )
    return events
