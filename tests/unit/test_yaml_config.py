"""
Unit tests for detector.core.config.yaml_config.load_app_config.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from detector.core.config.yaml_config import load_app_config
from detector.core.errors import ConfigError

FULL = """
model_path: models/m.yaml
transport:
  tcp_client:
    host: 10.1.2.3
    port: 9100
    timeout_s: 2
    reconnect_delay_s: 1.5
ingestion:
  topic_filter: motors/+/status
  key_attribute: motorid
  key_from_topic_level: "2"
  input_name: PressureInput
engine:
  workers: 8
notification:
  max_queue: 10
  retry_count: 1
  retry_backoff_s: 0.1
  log_notifications: false
  notify_state_changes: true
webhook:
  url: http://localhost:8000/notifications
  auth_header: tok
logging:
  level: debug
"""


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "config.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_full_config_is_parsed(tmp_path: Path) -> None:
    cfg = load_app_config(str(_write(tmp_path, FULL)))

    assert cfg.model_path == (tmp_path / "models" / "m.yaml").resolve()
    assert (cfg.transport.host, cfg.transport.port, cfg.transport.timeout_s) == ("10.1.2.3", 9100, 2.0)
    assert cfg.transport.reconnect_delay_s == 1.5
    assert cfg.ingestion.topic_filter == "motors/+/status"
    assert cfg.ingestion.key_from_topic_level == 2
    assert cfg.engine.workers == 8
    assert cfg.notification.log_notifications is False
    assert cfg.notification.notify_state_changes is True
    assert cfg.webhook is not None
    assert cfg.webhook.url == "http://localhost:8000/notifications"
    assert cfg.webhook.timeout_s == 3.0
    assert cfg.log_level == "DEBUG"


def test_minimal_config_uses_defaults(tmp_path: Path) -> None:
    cfg = load_app_config(str(_write(tmp_path, "model_path: /abs/model.yaml\n")))

    assert cfg.model_path == Path("/abs/model.yaml")
    assert cfg.transport.port == 9009
    assert cfg.ingestion.key_attribute is None
    assert cfg.engine.workers == 4
    assert cfg.webhook is None
    assert cfg.log_level == "INFO"


def test_env_var_selects_config(tmp_path: Path, monkeypatch) -> None:
    p = _write(tmp_path, "model_path: m.yaml\nengine:\n  workers: 2\n")
    monkeypatch.setenv("DETECTOR_CONFIG", str(p))

    assert load_app_config().engine.workers == 2


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_app_config(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize(
    "text",
    [
        "engine:\n  workers: 2\n",
        "model_path: m.yaml\ntransport:\n  tcp_client:\n    port: abc\n",
        "model_path: m.yaml\nengine:\n  workers: 0\n",
        "model_path: m.yaml\nwebhook:\n  auth_header: x\n",
        "model_path: m.yaml\ningestion: [1, 2]\n",
        "- just\n- a list\n",
        "model_path: [unclosed\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_app_config(str(_write(tmp_path, text)))
