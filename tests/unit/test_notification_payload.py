"""
Unit tests for detector.notification.payload.

These tests validate the outbound JSON built from detector outputs:
- one "detector_action" event per notify action, in action order
- optional "state_change" event after the action events
- timestamps rendered as ISO-8601 with second precision
"""

from __future__ import annotations

from datetime import datetime

from detector.domain.events import (
    DetectorOutput,
    NotificationAction,
    ProcessResult,
    StateTransition,
    VariableSet,
)
from detector.domain.models import EventPhase
from detector.notification.payload import (
    build_action_payload,
    build_state_change_payload,
    to_notification_events,
)

TS = datetime(2026, 1, 1, 10, 0, 0, 123456)


def _note(name: str, phase: EventPhase, state: str) -> NotificationAction:
    return NotificationAction(
        event_name=name,
        state_name=state,
        phase=phase,
        action_type="sns",
        target="arn:topic",
        payload={"eventName": name},
    )


def _output(with_transition: bool = True) -> DetectorOutput:
    result = ProcessResult(
        key="A32",
        input_name="PressureInput",
        created=False,
        state_name="Normal",
        variables={"pressureThresholdBreached": 0.0},
        actions=(
            VariableSet("Pressure Okay", "Dangerous", EventPhase.INPUT, "pressureThresholdBreached", 0.0),
            _note("Normal Pressure Restored", EventPhase.EXIT, "Dangerous"),
            _note("Welcome back", EventPhase.ENTER, "Normal"),
        ),
        transition=StateTransition("BackToNormal", "Dangerous", "Normal") if with_transition else None,
    )
    return DetectorOutput(model_name="MotorDetectorModel", result=result, timestamp=TS)


def test_build_action_payload() -> None:
    out = _output()
    payload = build_action_payload(out, out.result.notifications[0])

    assert payload == {
        "type": "detector_action",
        "eventTime": "2026-01-01T10:00:00",
        "detector": {
            "detectorModelName": "MotorDetectorModel",
            "keyValue": "A32",
            "stateName": "Normal",
            "variables": {"pressureThresholdBreached": 0.0},
        },
        "action": {
            "eventName": "Normal Pressure Restored",
            "actionType": "sns",
            "target": "arn:topic",
            "phase": "EXIT",
            "stateName": "Dangerous",
        },
        "payload": {"eventName": "Normal Pressure Restored"},
        "transition": {"eventName": "BackToNormal", "from": "Dangerous", "to": "Normal"},
    }


def test_build_state_change_payload() -> None:
    payload = build_state_change_payload(_output())

    assert payload["type"] == "state_change"
    assert payload["keyValue"] == "A32"
    assert payload["transition"] == {"eventName": "BackToNormal", "from": "Dangerous", "to": "Normal"}


def test_to_notification_events_one_per_notify_action() -> None:
    events = to_notification_events(_output())

    assert [e.type for e in events] == ["detector_action", "detector_action"]
    assert [e.payload["action"]["eventName"] for e in events] == ["Normal Pressure Restored", "Welcome back"]
    assert all(e.key == "A32" and e.target == "arn:topic" and e.ts == "2026-01-01T10:00:00" for e in events)


def test_state_change_event_is_appended_when_enabled() -> None:
    events = to_notification_events(_output(), include_state_changes=True)
    assert [e.type for e in events] == ["detector_action", "detector_action", "state_change"]

    no_transition = to_notification_events(_output(with_transition=False), include_state_changes=True)
    assert [e.type for e in no_transition] == ["detector_action", "detector_action"]
