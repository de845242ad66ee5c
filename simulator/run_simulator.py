from __future__ import annotations

import argparse
import logging
import threading
import time
from datetime import datetime
from typing import List, Optional

from simulator.motors import MotorPressureModel, build_fleet
from simulator.transport.server_config import HOST, PORT
from simulator.transport.tcp_server import TCPPublishServer

logger = logging.getLogger(__name__)


def tcp_publish_loop(
    server: TCPPublishServer,
    fleet: List[MotorPressureModel],
    period_s: float,
    stop_flag: threading.Event,
) -> None:
    server.start()

    while not stop_flag.is_set():
        try:
            server.accept_one()
        except OSError:
            break

        logger.info("Streaming motor status for %d motors", len(fleet))

        while not stop_flag.is_set():
            now = datetime.now()
            for motor in fleet:
                server.send(motor.sample(now))

            if not server.has_client:
                break

            stop_flag.wait(period_s)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Motor status simulator (NDJSON over TCP)")
    p.add_argument("--host", default=HOST)
    p.add_argument("--port", type=int, default=PORT)
    p.add_argument("--motors", default="A32,B17,C05", help="comma separated motor ids")
    p.add_argument("--hz", type=float, default=1.0, help="samples per motor per second")
    p.add_argument("--seed", type=int, default=None)
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)

    motor_ids = [m.strip() for m in args.motors.split(",") if m.strip()]
    fleet = build_fleet(motor_ids, seed=args.seed)

    server = TCPPublishServer(host=args.host, port=args.port)
    stop_flag = threading.Event()
    t = threading.Thread(
        target=tcp_publish_loop,
        args=(server, fleet, 1.0 / max(args.hz, 0.01), stop_flag),
        daemon=True,
    )
    t.start()

    try:
        while t.is_alive():
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Stopping simulator")
    finally:
        stop_flag.set()
        server.close()
        t.join(timeout=2.0)


if __name__ == "__main__":
    main()
