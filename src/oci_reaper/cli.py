"""CLI for OCI Reaper."""

import argparse
import sys
from pathlib import Path
from typing import Any

import structlog

from .config import Config
from .exceptions import CatalogError, ConfigError
from .factory import Factory


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Remove artifacts older than a retention period from an OCI "
            "registry.  Settings not given on the command line come from "
            "the config file or, without one, from REGISTRY_URL, "
            "REGISTRY_USERNAME, REGISTRY_PASSWORD, ARTIFACT_FILTER, "
            "TAG_FILTER, RETENTION_DAYS, DRY_RUN, BATCH_SIZE and LOG_LEVEL."
        )
    )
    parser.add_argument(
        "-c",
        "--config-file",
        "--file",
        type=Path,
        help="reaper config file (YAML)",
        default=None,
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=False,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        help="Dry run only: do not delete any artifacts",
        default=None,
    )
    parser.add_argument(
        "-r", "--registry", help="registry URL or hostname", default=None
    )
    parser.add_argument(
        "-a",
        "--artifact-filter",
        help=(
            "repository name prefixes (comma-separated list) or regular "
            "expression"
        ),
        default=None,
    )
    parser.add_argument(
        "-t",
        "--tag-filter",
        help="regular expression tags must match",
        default=None,
    )
    parser.add_argument(
        "-n",
        "--retention-days",
        type=int,
        help="delete artifacts older than this many days",
        default=None,
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        help="number of artifacts to process in parallel",
        default=None,
    )
    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> Config:
    # Command-line settings override the file or environment
    overrides: dict[str, Any] = {
        "registry": args.registry,
        "artifact_filter": args.artifact_filter,
        "tag_filter": args.tag_filter,
        "retention_days": args.retention_days,
        "dry_run": args.dry_run,
        "batch_size": args.batch_size,
    }
    if args.debug:
        overrides["log_level"] = "DEBUG"
    if args.config_file:
        return Config.from_file(args.config_file, overrides)
    return Config.from_environment(overrides=overrides)


def main(argv: list[str] | None = None) -> int:
    """Run the reaper and return the process exit status.

    Per-artifact errors do not change the exit status; only failing to
    load configuration (2) or to list the catalog (1) does.
    """
    logger = structlog.get_logger(__name__)
    args = _parse_args(argv)
    try:
        cfg = _load_config(args)
    except ConfigError as exc:
        logger.error("Configuration validation failed", error=str(exc))
        return 2

    with Factory.standalone(cfg) as factory:
        logger.info("Configuration validated successfully")
        reaper = factory.create_reaper()
        try:
            reaper.cleanup()
        except CatalogError:
            logger.error("Cleanup completed with errors")
            return 1
    logger.info("Cleanup completed successfully")
    return 0


def reap() -> None:
    """Don't fear the Reaper."""
    sys.exit(main())
