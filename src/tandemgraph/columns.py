"""Column families and qualified column names used by the Tandem scan API."""

from __future__ import annotations


class ColumnFamilies:
    Standard = "n"
    DtProperties = "z"
    Refs = "l"
    Xrefs = "x"


class QC:
    """Qualified columns (``family:column``) read from scanned elements."""

    Key = "k"
    Name = "n:n"
    ElementFlags = "n:a"
    Rooms = "l:r"
    XRooms = "x:r"
    Level = "l:l"
    XLevel = "x:l"


ASSET_FAMILIES = (
    ColumnFamilies.Standard,
    ColumnFamilies.DtProperties,
    ColumnFamilies.Refs,
    ColumnFamilies.Xrefs,
)
ROOM_FAMILIES = (ColumnFamilies.Standard, ColumnFamilies.Refs, ColumnFamilies.Xrefs)
LEVEL_FAMILIES = (ColumnFamilies.Standard,)


def is_tagged(element) -> bool:
    """True when the element carries at least one custom (``z:``) property."""
    prefix = f"{ColumnFamilies.DtProperties}:"
    return any(str(name).startswith(prefix) for name in element.keys())


__all__ = [
    "ColumnFamilies",
    "QC",
    "ASSET_FAMILIES",
    "ROOM_FAMILIES",
    "LEVEL_FAMILIES",
    "is_tagged",
]
