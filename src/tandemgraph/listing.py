from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from .auth import create_token
from .cli import parse_args
from .client import TandemClient
from .columns import QC
from .config.settings import Settings, load_settings
from .errors import TandemApiError
from .hierarchy import HierarchyView
from .resolver import resolve_facility

LOG = logging.getLogger(__name__)

_INDENT = "  "


def _display_name(element: Mapping[str, Any], fallback: Any) -> str:
    name = element.get(QC.Name)
    return str(name) if name else f"<{fallback}>"


def format_structure(view: HierarchyView, *, show_unassigned: bool = False) -> List[str]:
    """Render the hierarchy as indented lines, two spaces per depth."""
    lines: List[str] = []
    for level_key, level in view.levels():
        lines.append(_display_name(level, level_key))
        for room_key, room in view.rooms_by_level(level_key):
            lines.append(f"{_INDENT}{_display_name(room, room_key)}")
            for asset_key, asset in view.assets_by_room(room_key):
                lines.append(f"{_INDENT * 2}{_display_name(asset, asset_key)}")
    if show_unassigned:
        unassigned = list(view.unassigned_rooms())
        if unassigned:
            lines.append("(no level)")
            for room_key, room in unassigned:
                lines.append(f"{_INDENT}{_display_name(room, room_key)}")
                for asset_key, asset in view.assets_by_room(room_key):
                    lines.append(f"{_INDENT * 2}{_display_name(asset, asset_key)}")
    return lines


def _summary_line(view: HierarchyView) -> str:
    counts = view.counts()
    return (
        f"levels={counts['levels']}, rooms={counts['rooms']}, assets={counts['assets']}, "
        f"dangling={counts['dangling']}, skipped={counts['skipped']}"
    )


def _effective_settings(args) -> Settings:
    config_path = Path(args.config_path).resolve() if args.config_path else None
    settings = load_settings(config_path)
    if args.facility_urn:
        settings = replace(settings, facility_urn=args.facility_urn)
    if args.concurrency is not None:
        settings = replace(settings, concurrency=args.concurrency)
    if args.strict:
        settings = replace(settings, strict_references=True)
    settings.validate()
    if not settings.facility_urn:
        raise ValueError("No facility given; use --facility, the settings file or TANDEM_FACILITY_URN.")
    return settings


def list_structure(settings: Settings) -> HierarchyView:
    token = create_token(
        settings.client_id or "",
        settings.client_secret or "",
        settings.scope,
        timeout=settings.timeout,
    )
    with TandemClient(lambda: token, base_url=settings.base_url, timeout=settings.timeout) as client:
        return resolve_facility(
            client,
            settings.facility_urn,
            concurrency=settings.concurrency,
            strict=settings.strict_references,
        )


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        settings = _effective_settings(args)
        view = list_structure(settings)
    except (ValueError, TandemApiError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    LOG.debug("Facility %s resolved", settings.facility_urn)
    for line in format_structure(view, show_unassigned=args.show_unassigned):
        print(line)
    print(f"\nSummary: {_summary_line(view)}")
