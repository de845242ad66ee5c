from __future__ import annotations

import logging
import sys
import time

from detector.bootstrap import build_app_system
from detector.core.config.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """
    Run the detector service headless until interrupted.

    Notes
    -----
    - Loads configuration from `config.yaml` by default.
    - Optional CLI usage:
        python -m detector.dev.run_app --config path/to/config.yaml
    """
    config_path = None
    if "--config" in sys.argv:
        i = sys.argv.index("--config")
        if i + 1 < len(sys.argv):
            config_path = sys.argv[i + 1]

    configure_logging("INFO")
    wiring = build_app_system(config_path=config_path)
    logging.getLogger().setLevel(wiring.config.log_level)

    wiring.runtime.start()
    logger.info("Detector service running (model=%s)", wiring.engine.model.name)

    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        wiring.runtime.stop()
        wiring.notifier.stop()
        for snap in wiring.engine.snapshots():
            logger.info("Final state %s: %s %s", snap.key, snap.state_name, dict(snap.variables))


if __name__ == "__main__":
    main()
