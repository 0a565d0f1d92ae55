"""Command line entrypoint listing the operations a service exposes."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence, TextIO

from yeep_client.client import TransportFactory, YeepClient
from yeep_client.config import ClientSettings, get_settings
from yeep_client.errors import YeepError
from yeep_client.network.transport.requests_transport import RequestsTransport

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="yeep-client",
        description="Print the operations discovered from a service schema.",
    )
    parser.add_argument("--base-url", help="Service base URL (defaults to YEEP_BASE_URL/config file).")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level.",
    )
    return parser.parse_args(argv)


async def list_operations(client: YeepClient, out: TextIO) -> None:
    try:
        api = await client.api()
    finally:
        await client.close()
    out.write(f"version {api.version}\n")
    for identifier in sorted(api):
        operation = api[identifier]
        out.write(f"{operation.method.upper()} {operation.path} {identifier}\n")


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    transport_factory: TransportFactory = RequestsTransport,
    out: TextIO = sys.stdout,
) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level or "INFO", logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        settings = ClientSettings(base_url=args.base_url) if args.base_url else get_settings()
    # pydantic's ValidationError is a ValueError; unreadable config files raise RuntimeError
    except (ValueError, RuntimeError) as exc:
        LOGGER.error("Invalid client configuration: %s", exc)
        return 1
    if args.log_level is None:
        logging.getLogger().setLevel(settings.log_level)
    client = YeepClient(settings=settings, transport_factory=transport_factory)
    try:
        asyncio.run(list_operations(client, out))
    except YeepError as exc:
        LOGGER.error("Failed to list operations: %s", exc)
        return 1
    return 0
