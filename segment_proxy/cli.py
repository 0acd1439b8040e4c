"""Command-line entry point: parse flags, build both apps, supervise them."""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from segment_proxy.core.config import load_settings
from segment_proxy.core.logging import setup_logging
from segment_proxy.main import create_health_app, create_proxy_app
from segment_proxy.services.supervisor import Listener, Supervisor


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="segment-proxy", description="Reverse proxy for Segment's CDN and tracking API.")
    parser.add_argument("--host", default=None, help="bind host for both listeners (default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="proxy bind port")
    parser.add_argument("--healthport", type=int, default=8081, help="health bind port")
    parser.add_argument("--debug", action="store_true", help="log every proxied request")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the proxy until a listener stops; returns the process exit status."""
    args = parse_args(argv)
    try:
        settings = load_settings(host=args.host, port=args.port, health_port=args.healthport, debug=args.debug)
    except RuntimeError as e:
        setup_logging().critical("%s", e)
        return 1

    log = setup_logging(settings.log_level, settings.version)
    try:
        proxy_app = create_proxy_app(settings, log)
    except ValueError as e:
        log.critical("Invalid destination: %s", e)
        return 1

    supervisor = Supervisor(
        [
            Listener("proxy", proxy_app, settings.host, settings.port, log),
            Listener("health", create_health_app(settings), settings.host, settings.health_port, log),
        ],
        log,
    )
    try:
        outcome = asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        log.info("Exiting after interrupt")
        return 1
    log.info("Exiting after %s listener ended", outcome.source)
    return 1


def run() -> None:
    sys.exit(main())
