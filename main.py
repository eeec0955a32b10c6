from __future__ import annotations

import argparse
import asyncio
import functools
import json
import sys
from typing import Optional, Sequence

import uvloop
from loguru import logger

from secretsanta.core.config import Settings, load_settings
from secretsanta.core.logging import setup_logging
from secretsanta.services.delivery import DeliveryEngine
from secretsanta.services.game_flow import generate, parse_request
from secretsanta.services.templates import render_assignment
from secretsanta.services.transport import build_transport


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate Secret Santa pairs and notify the givers.")
    parser.add_argument("request", help="Path to a JSON request file, or - for stdin")
    parser.add_argument("--mode", help="Delivery mode override: sync or async")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log notifications instead of sending them",
    )
    return parser.parse_args(argv)


def read_payload(path: str) -> dict:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


async def run(settings: Settings, args: argparse.Namespace) -> int:
    logger.info("secret santa starting...")

    request = parse_request(read_payload(args.request))
    transport = build_transport(settings, dry_run=args.dry_run)
    engine = DeliveryEngine(
        transport,
        renderer=functools.partial(render_assignment, subject=settings.message_subject),
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
    )

    try:
        response = await generate(
            request,
            engine,
            default_mode=args.mode or settings.delivery_mode,
            max_steps=settings.search_max_steps,
        )
        print(json.dumps(response.as_dict(), indent=2, ensure_ascii=False))
        await engine.wait_background()
    finally:
        await transport.close()

    logger.info("secret santa stopped")
    await logger.complete()
    return 0 if not response.has_errors else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path)
    args = parse_args(argv)
    return asyncio.run(run(settings, args))


if __name__ == "__main__":
    if not getattr(asyncio, "debug", False):
        uvloop.install()

    sys.exit(main())
