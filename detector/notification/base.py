from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class NotificationEvent:
    """
    Outbound message handed to notifiers.

    A 'NotificationEvent' is what the detector wants to communicate (a notify
    action fired, a detector changed state), independent of how it is
    delivered.

    Parameters
    ----------
    type
        Event type identifier (``"detector_action"``, ``"state_change"``).
    payload
        JSON-serializable body sent to the receiver.
    key
        Detector key the event belongs to.
    target
        Opaque target from the model action (topic ARN, channel).
    ts
        ISO-8601 timestamp of the reading that caused the event.

    Notes
    -----
    Frozen so a queued event cannot change between retries.
    """

    type: str
    payload: Dict[str, Any]
    key: Optional[str] = None
    target: Optional[str] = None
    ts: Optional[str] = None


class Notifier(Protocol):
    """
    Delivery channel for notification events.

    Implementations raise on delivery failure; retries are the caller's
    concern (see ``NotificationWorkerThread``).
    """

    def notify(self, event: NotificationEvent) -> None:
        ...
