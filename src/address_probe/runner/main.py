"""
CLI main entry point.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from ..checker import check_file
from ..config import (
    DEFAULT_CONFIG_PATH,
    Config,
    ConfigValidationError,
    create_default_config,
    load_config,
)
from ..errors import AddressProbeError
from ..store import open_store
from .report import Outcome, select_outcome, write_error, write_report

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging.

    Quiet by default: the report shares stderr with log output, and the
    tool usually runs unattended in a polling loop.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="address-probe",
        description=(
            "Check whether any address in a candidate list exists in a read-only "
            "SQLite reference database. Exit code: 0 = none found, 1 = found, 2 = error."
        ),
    )

    parser.add_argument(
        "db_path",
        nargs="?",
        type=Path,
        default=None,
        help="Path to the reference database (default: btc_addresses.db)",
    )
    parser.add_argument(
        "candidates_path",
        nargs="?",
        type=Path,
        default=None,
        help="Path to the candidate list, one address per line (default: addressonly.txt)",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH}, if present)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Keys per membership query (default: 1000)",
    )
    parser.add_argument(
        "--table",
        type=str,
        default=None,
        help="Table holding the reference set (default: addresses)",
    )
    parser.add_argument(
        "--column",
        type=str,
        default=None,
        help="Key column in the reference table (default: address)",
    )
    parser.add_argument(
        "--stop-on-first-match",
        action="store_true",
        default=None,
        help="Stop after the first batch that contains a match",
    )
    parser.add_argument(
        "--no-pragmas",
        dest="apply_pragmas",
        action="store_false",
        default=None,
        help="Open the database without performance pragmas",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file to the --config path and exit",
    )

    return parser


def build_config(parsed: argparse.Namespace) -> Config:
    """Resolve configuration: CLI arguments > environment > YAML > defaults.

    Raises:
        ConfigValidationError: If the configuration is invalid or an explicit
            config file does not exist
    """
    config_path = parsed.config
    if config_path is not None and not config_path.exists():
        raise ConfigValidationError([f"config file not found: {config_path}"])

    config = load_config(config_path or Path(DEFAULT_CONFIG_PATH)).with_overrides(
        db_path=parsed.db_path,
        candidates_path=parsed.candidates_path,
        table=parsed.table,
        column=parsed.column,
        batch_size=parsed.batch_size,
        stop_on_first_match=parsed.stop_on_first_match,
        apply_pragmas=parsed.apply_pragmas,
    )

    errors = config.validate()
    if errors:
        raise ConfigValidationError(errors)
    return config


def cmd_check(config: Config, stream: TextIO | None = None) -> int:
    """Check the candidate list against the reference database."""
    logger.info(f"Checking {config.candidates_path} against {config.store.path}")

    try:
        with open_store(config.store) as store:
            result = check_file(store, config.candidates_path, config.checker)
    except AddressProbeError as e:
        logger.debug(f"Run failed: {e!r}")
        write_error(e, stream)
        return Outcome.ERROR
    except Exception as e:
        logger.exception("Unexpected failure while checking addresses")
        write_error(e, stream)
        return Outcome.ERROR

    write_report(result.matches, stream)
    return select_outcome(result)


def cmd_init_config(config_path: Path, stream: TextIO | None = None) -> int:
    """Write a default config file."""
    if config_path.exists():
        write_error(FileExistsError(f"{config_path} already exists"), stream)
        return Outcome.ERROR
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}", file=stream or sys.stderr)
    return Outcome.CLEAN


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if parsed.init_config:
        return cmd_init_config(parsed.config or Path(DEFAULT_CONFIG_PATH))

    # Load config
    try:
        config = build_config(parsed)
    except ConfigValidationError as e:
        write_error(e)
        return Outcome.ERROR
    except Exception as e:
        logger.debug(f"Failed to load config: {e!r}")
        write_error(ConfigValidationError([f"{type(e).__name__}: {e}"]))
        return Outcome.ERROR

    return cmd_check(config)


if __name__ == "__main__":
    sys.exit(main())
