from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from detector.core.config.yaml_config import AppConfig, load_app_config
from detector.core.engine.detector_engine import DetectorEngine
from detector.core.errors import ConfigError
from detector.core.model.definition import DetectorModel
from detector.core.model.loader import load_model_file
from detector.notification.base import Notifier
from detector.notification.logging_notifier import LoggingNotifier
from detector.notification.notification_thread import NotificationThreadConfig, NotificationWorkerThread
from detector.notification.webhook_notifier import WebhookConfig, WebhookNotifier
from detector.runtime.app_runtime import AppRuntime, AppRuntimeConfig
from detector.runtime.event_bus import EventBus
from detector.services.controller import DetectorController
from detector.transport.topic_rule import TopicRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppWiring:
    """Everything an entry point needs to run the system."""
    config: AppConfig
    engine: DetectorEngine
    notifier: NotificationWorkerThread
    runtime: AppRuntime


def build_topic_rule(cfg: AppConfig, model: DetectorModel) -> TopicRule:
    key_attribute = cfg.ingestion.key_attribute or model.key
    if not key_attribute:
        raise ConfigError("No key attribute: set ingestion.key_attribute or the model's 'key'")

    return TopicRule(
        key_attribute=key_attribute,
        topic_filter=cfg.ingestion.topic_filter,
        key_from_topic_level=cfg.ingestion.key_from_topic_level,
        input_name=cfg.ingestion.input_name or model.default_input_name,
    )


def build_notifier(cfg: AppConfig) -> NotificationWorkerThread:
    notifiers: List[Notifier] = []

    if cfg.notification.log_notifications:
        notifiers.append(LoggingNotifier())

    if cfg.webhook is not None:
        auth_header = cfg.webhook.auth_header
        if auth_header and not auth_header.startswith("Bearer "):
            auth_header = f"Bearer {auth_header}"

        notifiers.append(
            WebhookNotifier(
                WebhookConfig(
                    url=cfg.webhook.url,
                    auth_header=auth_header,
                    timeout_s=cfg.webhook.timeout_s,
                    verify_tls=cfg.webhook.verify_tls,
                )
            )
        )

    if not notifiers:
        logger.warning("No notifiers configured; notify actions will be discarded")

    return NotificationWorkerThread(
        notifiers=notifiers,
        cfg=NotificationThreadConfig(
            max_queue=cfg.notification.max_queue,
            retry_count=cfg.notification.retry_count,
            retry_backoff_s=cfg.notification.retry_backoff_s,
        ),
    )


def build_app_system(config_path: Optional[str] = None) -> AppWiring:
    cfg = load_app_config(config_path)

    # --- MODEL / ENGINE ---
    model = load_model_file(cfg.model_path)
    engine = DetectorEngine(model)

    # --- NOTIFICATIONS ---
    notifier = build_notifier(cfg)
    notifier.start()

    # --- EVENT BUS / CONTROLLER ---
    bus = EventBus()
    controller = DetectorController(engine=engine, bus=bus)

    # --- RUNTIME ---
    runtime = AppRuntime(
        cfg=AppRuntimeConfig(
            readings_host=cfg.transport.host,
            readings_port=cfg.transport.port,
            rule=build_topic_rule(cfg, model),
            workers=cfg.engine.workers,
            connect_timeout_s=cfg.transport.timeout_s,
            reconnect_delay_s=cfg.transport.reconnect_delay_s,
            notify_state_changes=cfg.notification.notify_state_changes,
        ),
        controller=controller,
        bus=bus,
        notifier=notifier,
    )

    return AppWiring(config=cfg, engine=engine, notifier=notifier, runtime=runtime)
