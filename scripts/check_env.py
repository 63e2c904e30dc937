"""Utility for verifying that the proxy's environment configuration is usable.

The tool performs two checks:

1. It instantiates ``AppSettings`` from the process environment and the given
   ``.env`` file, surfacing missing or malformed Spotify settings before the
   service starts failing.
2. With the ``ping`` command it also connects to the configured Redis
   credential store and issues a ``PING``.

Example usages::

    python -m scripts.check_env check --env-file /opt/proxy/.env
    python -m scripts.check_env ping --env-file /opt/proxy/.env
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError
from redis.exceptions import RedisError

from spotify_proxy.clients import RedisCredentialStore
from spotify_proxy.core.config import AppSettings

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    """Build settings with every nested group reading ``env_file``."""
    nested = {
        name: field.default_factory(_env_file=env_file)
        for name, field in AppSettings.model_fields.items()
        if field.default_factory is not None
    }
    return AppSettings(_env_file=env_file, **nested)  # type: ignore[call-arg]


async def _ping_store(settings: AppSettings) -> bool:
    store = RedisCredentialStore.from_url(settings.redis.url)
    try:
        return await store.ping()
    finally:
        await store.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate proxy settings and credential store connectivity."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("check", "Validate settings only."),
        ("ping", "Validate settings and ping the Redis credential store."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    if args.command == "check":
        print("Settings OK.")
        return EXIT_OK

    try:
        reachable = asyncio.run(_ping_store(settings))
    except RedisError as exc:
        print(f"Credential store unreachable: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR
    if not reachable:
        print("Credential store did not answer PING.", file=sys.stderr)
        return EXIT_STORE_ERROR

    print("Settings OK; credential store reachable.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
