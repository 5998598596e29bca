"""volimport worker CLI entry points.
This module exposes the import and clone worker commands.
It maps argparse commands onto SDK calls and exit codes.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Sequence

from core.config import ImporterConfig
from core.errors import VolImportError
from core.logging_config import configure_logging, get_logger
from sdk.client import VolImportClient

_LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="volimport", description="Volume import worker")
    _add_verbose_argument(parser, None)
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_import_command(subparsers)
    _add_clone_source_command(subparsers)
    _add_clone_target_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the volimport CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code: 0 on success, 1 on any pipeline failure.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args)
        if args.command == "import":
            return _run_import_command(client, args)
        if args.command == "clone-source":
            return _run_clone_source_command(client, args)
        if args.command == "clone-target":
            return _run_clone_target_command(client, args)
    except VolImportError as error:
        _LOGGER.error("command_failed", command=args.command, error_type=type(error).__name__)
        print(f"{type(error).__name__}: {error}", file=sys.stderr)
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(args: argparse.Namespace) -> VolImportClient:
    """Build SDK client with CLI overrides applied over environment settings.

    Args:
        args: Parsed CLI args.

    Returns:
        Configured SDK client.
    """
    config = ImporterConfig.from_env()
    verbosity = args.verbose if args.verbose is not None else config.verbosity
    configure_logging(verbosity)
    client = VolImportClient(config)
    if args.command != "import":
        return client
    return client.with_overrides(
        endpoint=args.endpoint,
        destination=args.destination,
        access_key=args.access_key,
        secret_key=args.secret_key,
    )


def _run_import_command(client: VolImportClient, args: argparse.Namespace) -> int:
    """Handle import command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    result = client.import_from_config(convert=not args.no_convert)
    print(result.destination)
    return 0


def _run_clone_source_command(client: VolImportClient, args: argparse.Namespace) -> int:
    """Handle clone-source command."""
    client.clone_source(args.clone_id)
    return 0


def _run_clone_target_command(client: VolImportClient, args: argparse.Namespace) -> int:
    """Handle clone-target command."""
    client.clone_target(args.clone_id)
    return 0


def _add_import_command(subparsers: Any) -> None:
    """Register import subcommand."""
    parser = subparsers.add_parser("import", help="Import an endpoint image into a volume")
    _add_verbose_argument(parser, argparse.SUPPRESS)
    parser.add_argument("--endpoint", help="Override IMPORTER_ENDPOINT")
    parser.add_argument("--destination", help="Override IMPORTER_DESTINATION")
    parser.add_argument("--access-key", help="Override IMPORTER_ACCESS_KEY_ID")
    parser.add_argument("--secret-key", help="Override IMPORTER_SECRET_KEY")
    parser.add_argument(
        "--no-convert",
        action="store_true",
        help="Copy decoded bytes verbatim even for qcow2 content",
    )


def _add_clone_source_command(subparsers: Any) -> None:
    """Register clone-source subcommand."""
    parser = subparsers.add_parser("clone-source", help="Stream a volume to a clone target")
    _add_verbose_argument(parser, argparse.SUPPRESS)
    parser.add_argument("clone_id", help="Identifier shared with the clone target")


def _add_clone_target_command(subparsers: Any) -> None:
    """Register clone-target subcommand."""
    parser = subparsers.add_parser("clone-target", help="Receive a volume from a clone source")
    _add_verbose_argument(parser, argparse.SUPPRESS)
    parser.add_argument("clone_id", help="Identifier shared with the clone source")


def _add_verbose_argument(parser: argparse.ArgumentParser, default: Any) -> None:
    """Register the verbosity flag; subcommands suppress their default."""
    parser.add_argument(
        "-v",
        "--verbose",
        type=int,
        default=default,
        help="Override IMPORTER_VERBOSE diagnostics level",
    )
