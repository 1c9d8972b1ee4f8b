from __future__ import annotations

from typing import Optional


class TandemGraphError(Exception):
    """Base class for errors raised by tandemgraph."""


class MalformedReference(TandemGraphError, ValueError):
    """Raised when a room or level reference cannot be decoded."""

    def __init__(self, message: str, *, column: Optional[str] = None) -> None:
        super().__init__(message)
        self.column = column


class MalformedXrefEncoding(MalformedReference):
    """Raised when a cross-model reference has unequal model/key arrays."""

    def __init__(self, model_count: int, key_count: int) -> None:
        super().__init__(
            f"Cross-model reference has {model_count} model id(s) but {key_count} key(s)"
        )
        self.model_count = model_count
        self.key_count = key_count


class AmbiguousReference(TandemGraphError, ValueError):
    """Raised in strict mode when both same-model and cross-model refs are set."""

    def __init__(self, column: str, xcolumn: str) -> None:
        super().__init__(f"Element carries both '{column}' and '{xcolumn}' references")
        self.column = column
        self.xcolumn = xcolumn


class MissingRoomBucket(TandemGraphError, KeyError):
    """Raised when traversal asks for a room that was never referenced."""

    def __init__(self, room_key) -> None:
        super().__init__(room_key)
        self.room_key = room_key

    def __str__(self) -> str:
        return f"Room {self.room_key} was never referenced by any asset"


class TandemApiError(TandemGraphError):
    """HTTP failure reported by the Tandem or authentication service."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


__all__ = [
    "TandemGraphError",
    "MalformedReference",
    "MalformedXrefEncoding",
    "AmbiguousReference",
    "MissingRoomBucket",
    "TandemApiError",
]
