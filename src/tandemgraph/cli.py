from __future__ import annotations

import argparse
from typing import Sequence


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the CLI arguments for the facility structure listing."""

    parser = argparse.ArgumentParser(
        description="List the Level - Room - Asset structure of a Tandem facility."
    )
    parser.add_argument(
        "--facility",
        dest="facility_urn",
        default=None,
        help="Facility URN (urn:adsk.dtt:...). Falls back to the config file or TANDEM_FACILITY_URN.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a settings file (YAML or JSON) with credentials and resolution options.",
    )
    parser.add_argument(
        "--concurrency",
        dest="concurrency",
        type=int,
        default=None,
        help="Maximum number of models fetched in parallel (default: from settings).",
    )
    parser.add_argument(
        "--strict",
        dest="strict",
        action="store_true",
        help="Treat elements carrying both same-model and cross-model references as errors.",
    )
    parser.add_argument(
        "--show-unassigned",
        dest="show_unassigned",
        action="store_true",
        help="Also list resolved rooms that have no resolved level.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        dest="verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)
