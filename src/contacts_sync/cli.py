"""Command line entry point: run one contacts sync pass and print the report."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import load_settings
from .config_loader import load_unified_config
from .config_schema import to_yaml_fallbacks
from .logger import setup_logging
from .sync.reporter import format_sync_report, report_to_json
from .sync.runner import DEFAULT_PROFILE, run_pass

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".contacts_sync"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contacts-sync",
        description="Mirror a CardDAV address book into a folder of Markdown contact notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync into ./Contacts with credentials from .env
  contacts-sync

  # Another vault and folder
  contacts-sync --vault ~/Notes --folder People

  # Rewrite every note, e.g. after editing a template by hand
  contacts-sync --rewrite-all

  # Machine-readable report
  contacts-sync --json
        """,
    )
    parser.add_argument(
        "--rewrite-all",
        action="store_true",
        help="Rewrite every contact note even if unchanged remotely",
    )
    parser.add_argument(
        "--vault", default=".", help="Vault root directory (default: current directory)"
    )
    parser.add_argument("--folder", help="Contacts folder inside the vault")
    parser.add_argument("--username", help="CardDAV username")
    parser.add_argument(
        "--password",
        help="CardDAV app specific password"
        " (visible in process list -- prefer CONTACTS_SYNC_PASSWORD env var)",
    )
    parser.add_argument("--server-url", help="CardDAV server URL")
    parser.add_argument(
        "--profile",
        default=DEFAULT_PROFILE,
        help=f"State profile name (default: {DEFAULT_PROFILE})",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"contacts-sync version {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one pass; return the process exit code.

    Exit codes: 0 on success, 1 when the pass failed or records had
    errors, 2 on configuration errors.
    """
    args = build_parser().parse_args(argv)
    setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
    load_dotenv()

    vault_root = Path(args.vault).expanduser().resolve()
    if not vault_root.is_dir():
        print(f"Error: vault directory not found: {vault_root}", file=sys.stderr)
        return 2

    try:
        unified = load_unified_config()
        settings = load_settings(
            username=args.username,
            password=args.password,
            server_url=args.server_url,
            folder=args.folder,
            yaml_fallbacks=to_yaml_fallbacks(unified),
        )
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: configuration error: {e}", file=sys.stderr)
        return 2

    report = asyncio.run(
        run_pass(
            settings,
            vault_root,
            vault_root / STATE_DIR_NAME,
            rewrite_all=args.rewrite_all,
            profile=args.profile,
        )
    )

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))

    if report.error or report.errors:
        return 1
    return 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
