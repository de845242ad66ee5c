from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from detector.core.errors import ConfigError


@dataclass(frozen=True)
class TcpClientConfig:
    """TCP client connection settings used by the readings receiver."""
    host: str = "127.0.0.1"
    port: int = 9009
    timeout_s: float = 5.0
    reconnect_delay_s: float = 0.5


@dataclass(frozen=True)
class IngestionConfig:
    """How raw messages become keyed readings (topic rule)."""
    key_attribute: Optional[str] = None
    topic_filter: Optional[str] = None
    key_from_topic_level: Optional[int] = None
    input_name: Optional[str] = None


@dataclass(frozen=True)
class EngineConfig:
    """Detector worker settings."""
    workers: int = 4


@dataclass(frozen=True)
class NotificationConfig:
    """Notification worker and log notifier settings."""
    max_queue: int = 2000
    retry_count: int = 3
    retry_backoff_s: float = 0.5
    log_notifications: bool = True
    notify_state_changes: bool = False


@dataclass(frozen=True)
class WebhookConfigData:
    """Webhook notifier configuration (URL + auth)."""
    url: str
    auth_header: Optional[str] = None
    timeout_s: float = 3.0
    verify_tls: bool = True


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    Single source of truth for runtime-tunable values. The detector model
    itself lives in its own document referenced by ``model_path``.
    """
    model_path: Path
    transport: TcpClientConfig = field(default_factory=TcpClientConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    webhook: Optional[WebhookConfigData] = None
    log_level: str = "INFO"


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config.yaml must contain a YAML mapping at the root")
    return data


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) DETECTOR_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    env = os.getenv("DETECTOR_CONFIG")
    if env:
        return Path(env).expanduser().resolve()

    # PyInstaller-friendly: executable directory
    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML into typed config objects.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Returns
    -------
    AppConfig
        Parsed configuration. ``model_path`` is resolved relative to the
        config file's directory.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ConfigError
        If required fields are missing or invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    raw = _read_yaml(cfg_path)

    try:
        # ---- model ----
        if not raw.get("model_path"):
            raise ConfigError("'model_path' is required")
        model_path = Path(str(raw["model_path"])).expanduser()
        if not model_path.is_absolute():
            model_path = (cfg_path.parent / model_path).resolve()

        # ---- transport ----
        t = _section(_section(raw, "transport"), "tcp_client")
        transport = TcpClientConfig(
            host=str(t.get("host", "127.0.0.1")),
            port=int(t.get("port", 9009)),
            timeout_s=float(t.get("timeout_s", 5.0)),
            reconnect_delay_s=float(t.get("reconnect_delay_s", 0.5)),
        )

        # ---- ingestion ----
        i = _section(raw, "ingestion")
        ingestion = IngestionConfig(
            key_attribute=i.get("key_attribute"),
            topic_filter=i.get("topic_filter"),
            key_from_topic_level=_optional_int(i.get("key_from_topic_level")),
            input_name=i.get("input_name"),
        )

        # ---- engine ----
        e = _section(raw, "engine")
        engine = EngineConfig(workers=int(e.get("workers", 4)))
        if engine.workers < 1:
            raise ConfigError("engine.workers must be >= 1")

        # ---- notification ----
        n = _section(raw, "notification")
        notification = NotificationConfig(
            max_queue=int(n.get("max_queue", 2000)),
            retry_count=int(n.get("retry_count", 3)),
            retry_backoff_s=float(n.get("retry_backoff_s", 0.5)),
            log_notifications=bool(n.get("log_notifications", True)),
            notify_state_changes=bool(n.get("notify_state_changes", False)),
        )

        # ---- webhook (optional) ----
        webhook = None
        w = _section(raw, "webhook")
        if w:
            if not w.get("url"):
                raise ConfigError("webhook.url is required when 'webhook' is set")
            webhook = WebhookConfigData(
                url=str(w["url"]),
                auth_header=w.get("auth_header"),
                timeout_s=float(w.get("timeout_s", 3.0)),
                verify_tls=bool(w.get("verify_tls", True)),
            )

        log_level = str(_section(raw, "logging").get("level", "INFO")).upper()

    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{cfg_path}: invalid value: {exc}") from exc

    return AppConfig(
        model_path=model_path,
        transport=transport,
        ingestion=ingestion,
        engine=engine,
        notification=notification,
        webhook=webhook,
        log_level=log_level,
    )
