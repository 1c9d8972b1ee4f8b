"""Normalize room and level references into :class:`FullKey` values.

An element refers to rooms and levels either inside its own model (``l:``
family, local array of short keys) or across models (``x:`` family, xref
array). Only one of the two columns is consulted per element; the same-model
column wins when both are populated unless ``strict`` auditing is requested.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from .columns import QC
from .encoding import FullKey, decode_local_array, decode_xref_array, to_full_key
from .errors import AmbiguousReference, MalformedReference

LOG = logging.getLogger(__name__)

Element = Mapping[str, Any]


def _pick_column(element: Element, column: str, xcolumn: str, *, strict: bool) -> Optional[str]:
    local_value = element.get(column)
    xref_value = element.get(xcolumn)
    if local_value and xref_value:
        if strict:
            raise AmbiguousReference(column, xcolumn)
        LOG.debug(
            "Element %s carries both %s and %s; using same-model reference",
            element.get(QC.Key),
            column,
            xcolumn,
        )
    if local_value:
        return column
    if xref_value:
        return xcolumn
    return None


def _normalize(element: Element, owning_model_id: str, column: str, xcolumn: str, *, strict: bool) -> List[FullKey]:
    picked = _pick_column(element, column, xcolumn, strict=strict)
    if picked is None:
        return []
    try:
        if picked == column:
            return [to_full_key(owning_model_id, key) for key in decode_local_array(element[column])]
        model_ids, keys = decode_xref_array(element[xcolumn])
        return [to_full_key(model_id, key) for model_id, key in zip(model_ids, keys)]
    except MalformedReference:
        raise
    except (TypeError, ValueError) as exc:
        # binascii.Error is a ValueError
        raise MalformedReference(
            f"Cannot decode '{picked}' of element {element.get(QC.Key)}: {exc}",
            column=picked,
        ) from exc


def normalize_room_refs(element: Element, owning_model_id: str, *, strict: bool = False) -> List[FullKey]:
    """Rooms referenced by ``element``; empty when it references none.

    Raises :class:`MalformedReference` for undecodable reference data and
    :class:`AmbiguousReference` in strict mode.
    """
    return _normalize(element, owning_model_id, QC.Rooms, QC.XRooms, strict=strict)


def normalize_level_ref(element: Element, owning_model_id: str, *, strict: bool = False) -> Optional[FullKey]:
    """The single level referenced by ``element``, or None."""
    refs = _normalize(element, owning_model_id, QC.Level, QC.XLevel, strict=strict)
    if not refs:
        return None
    if len(refs) > 1:
        LOG.warning(
            "Element %s references %d levels; keeping %s",
            element.get(QC.Key),
            len(refs),
            refs[0],
        )
    return refs[0]


def element_key(element: Element, model_id: str) -> FullKey:
    """Identity of a scanned element inside ``model_id``."""
    return to_full_key(model_id, element[QC.Key])


__all__ = ["Element", "element_key", "normalize_level_ref", "normalize_room_refs"]
