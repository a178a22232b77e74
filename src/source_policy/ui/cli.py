from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from source_policy import __version__
from source_policy.adapters.http_client import default_client_factory
from source_policy.app import pin_dockerfiles
from source_policy.config import ConfigurationError, configure_logging
from source_policy.domain.errors import SourcePolicyError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from source_policy.adapters.http_client import ClientFactory

log = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("Must be at least 1")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="source-policy",
        description="Pin the sources of Dockerfiles into a build source policy",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output, including HTTP requests",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    pin = subparsers.add_parser("pin", help="Resolve references and print the policy")
    pin.add_argument(
        "dockerfiles",
        nargs="+",
        metavar="DOCKERFILE",
        help="Dockerfiles to scan, '-' reads standard input",
    )
    pin.add_argument(
        "--hardened",
        action="store_true",
        help="Prefer the hardened mirror for official images, falling back to the original",
    )
    pin.add_argument(
        "-o",
        "--output",
        type=str,
        help="Write the policy to this file instead of stdout",
    )
    pin.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="Maximum number of parallel resolutions (defaults to config)",
    )

    subparsers.add_parser("version", help="Print the version")

    return parser.parse_args(list(argv))


def _write_document(text: str, output: str | None) -> None:
    if output is None:
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    Path(output).write_text(text, encoding="utf-8")
    log.info("Wrote policy to %s", output)


def main(
    argv: Sequence[str] | None = None,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    if parsed_args.command == "version":
        sys.stdout.write(f"source-policy {__version__}\n")
        return

    try:
        result = pin_dockerfiles(
            parsed_args.dockerfiles,
            hardened=parsed_args.hardened,
            concurrency=parsed_args.concurrency,
            client_factory=client_factory,
        )
        for warning in result.warnings:
            log.warning("Volatile content: %s", warning)
        _write_document(result.document.to_json(), parsed_args.output)
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)  # noqa: TRY400
        sys.exit(EXIT_USAGE)
    except (KeyboardInterrupt, asyncio.CancelledError):
        log.info("Cancelled by user (Ctrl+C)")
        sys.exit(EXIT_CANCELLED)
    except (SourcePolicyError, OSError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        log.debug("Traceback", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
