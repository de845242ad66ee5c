from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import requests

from detector.notification.base import NotificationEvent


@dataclass(frozen=True)
class WebhookConfig:
    """
    Configuration for webhook-based notifications.

    Parameters
    ----------
    url
        Target webhook URL.
    timeout_s
        HTTP request timeout in seconds.
    verify_tls
        Whether to verify TLS certificates.
    auth_header
        Optional Authorization header value (e.g., Bearer token).
    """

    url: str
    timeout_s: float = 2.0
    verify_tls: bool = True
    auth_header: Optional[str] = None


class WebhookNotifier:
    """
    Delivers notification events as JSON via HTTP POST.

    The event type and detector key travel as headers so a receiver can route
    without parsing the body.

    Notes
    -----
    HTTP errors are surfaced via ``raise_for_status()``; the notification
    worker decides whether to retry.
    """

    def __init__(self, cfg: WebhookConfig):
        self._cfg = cfg

    def _headers(self, event: NotificationEvent) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Event-Type": event.type}
        if event.key is not None:
            headers["X-Detector-Key"] = event.key
        if self._cfg.auth_header:
            headers["Authorization"] = self._cfg.auth_header
        return headers

    def notify(self, event: NotificationEvent) -> None:
        """
        POST the event payload to the configured URL.

        Raises
        ------
        requests.HTTPError
            If the response status indicates an error.
        requests.RequestException
            For network-related errors.
        """
        r = requests.post(
            self._cfg.url,
            json=event.payload,
            headers=self._headers(event),
            timeout=self._cfg.timeout_s,
            verify=self._cfg.verify_tls,
        )
        r.raise_for_status()
