import argparse
import os
from functools import lru_cache
from pathlib import Path


@lru_cache
def get_cli_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="feedlease",
        description=(
            "Start a feedlease host.\n\n"
            "The host takes a share of the partitions of a change feed, keeps\n"
            "their leases alive and runs one processing loop per owned partition."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to a feedlease configuration file"
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity for the host.\n"
            "DEBUG    → lease renewals, updates and cancellations.\n"
            "INFO     → acquisitions, releases and splits (default).\n"
            "WARNING  → only failures absorbed by the host and errors.\n"
            "ERROR    → only errors.\n"
            "CRITICAL → only critical failures.\n\n"
            "Example:\n"
            "  --log-level DEBUG"
        ),
    )

    return parser.parse_args()


@lru_cache
def get_configfile() -> Path:
    args = get_cli_args()

    # Priority: CLI > ENV > default file in current working directory
    raw = args.config or os.getenv("FEEDLEASECONFIG")

    if raw is None:
        file = Path.cwd() / "feedlease.yaml"
    else:
        file = Path(raw)

    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Use --config <file.yaml>\n"
            "  - Or set the FEEDLEASECONFIG environment variable\n"
            "  - Or place a 'feedlease.yaml' file in the current working directory."
        )

    return file
