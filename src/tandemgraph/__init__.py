"""Resolve Tandem facilities into a Level -> Room -> Asset hierarchy."""

from .client import TandemClient
from .encoding import (
    ElementFlags,
    FullKey,
    decode_local_array,
    decode_xref_array,
    default_model_id,
    is_default_model,
    to_full_key,
)
from .errors import (
    AmbiguousReference,
    MalformedReference,
    MalformedXrefEncoding,
    MissingRoomBucket,
    TandemApiError,
    TandemGraphError,
)
from .hierarchy import HierarchyGraph, HierarchyView
from .references import normalize_level_ref, normalize_room_refs
from .resolver import ElementSource, HierarchyResolver, resolve_facility

__all__ = [
    "TandemClient",
    "ElementFlags",
    "FullKey",
    "decode_local_array",
    "decode_xref_array",
    "default_model_id",
    "is_default_model",
    "to_full_key",
    "AmbiguousReference",
    "MalformedReference",
    "MalformedXrefEncoding",
    "MissingRoomBucket",
    "TandemApiError",
    "TandemGraphError",
    "HierarchyGraph",
    "HierarchyView",
    "normalize_level_ref",
    "normalize_room_refs",
    "ElementSource",
    "HierarchyResolver",
    "resolve_facility",
]
