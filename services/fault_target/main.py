from __future__ import annotations

import logging
import sys

from libs.python.http_core import run_server
from .app.handlers import build_handler
from .config import Config, load_config


def _announce(config: Config):
    def announce(host: str, port: int) -> None:
        print(f"Server running at http://{host}:{port}/", flush=True)
        print(f"Scenario: {config.scenario.value}", flush=True)

    return announce


def main() -> None:
    try:
        cfg = load_config()
    except ValueError as exc:
        print(f"[fault-target] invalid configuration: {exc}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    handler = build_handler(cfg)
    run_server(handler, cfg.port, host=cfg.host, announce=_announce(cfg))


if __name__ == "__main__":
    main()
