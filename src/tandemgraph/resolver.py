"""Two-pass resolution of a facility into a Level -> Room -> Asset graph.

Pass 1 scans every non-default model for tagged assets and records the rooms
they reference. Pass 2 groups the referenced rooms by owning model, fetches
each model's rooms in one batch, then does the same for the levels those
rooms reference. Fetches for different models run concurrently on a bounded
thread pool; the maps are only written from the calling thread once the
fetches of a step have returned.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, TypeVar

from .columns import ASSET_FAMILIES, LEVEL_FAMILIES, QC, ROOM_FAMILIES
from .encoding import FullKey, is_default_model, to_short_key
from .errors import AmbiguousReference, MalformedReference
from .hierarchy import HierarchyGraph, HierarchyView
from .references import Element, element_key, normalize_level_ref, normalize_room_refs

LOG = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4

R = TypeVar("R")

# model id -> requested keys, insertion ordered and de-duplicated
PendingKeys = Dict[str, Dict[FullKey, None]]


class ElementSource(Protocol):
    def fetch_tagged_elements(self, model_id: str, column_families: Sequence[str]) -> Iterable[Element]:
        ...

    def fetch_elements_by_key(
        self, model_id: str, keys: Sequence[str], column_families: Sequence[str]
    ) -> Iterable[Element]:
        ...


def facility_model_ids(facility: Mapping[str, Any]) -> List[str]:
    """Model ids linked from facility metadata, in link order."""
    model_ids: List[str] = []
    for link in facility.get("links", []) or []:
        model_id = link.get("modelId")
        if not model_id:
            LOG.warning("Facility link without modelId; skipping: %s", link)
            continue
        model_ids.append(model_id)
    return model_ids


class HierarchyResolver:
    """Resolve a facility's element graph against an :class:`ElementSource`."""

    def __init__(
        self,
        source: ElementSource,
        *,
        facility_id: str,
        concurrency: int = DEFAULT_CONCURRENCY,
        strict: bool = False,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.source = source
        self.facility_id = facility_id
        self.concurrency = concurrency
        self.strict = strict
        self._reset()

    def _reset(self) -> None:
        self._assets: Dict[FullKey, Element] = {}
        self._rooms: Dict[FullKey, Element] = {}
        self._levels: Dict[FullKey, Element] = {}
        self._room_assets: Dict[FullKey, Dict[FullKey, None]] = {}
        self._room_level: Dict[FullKey, FullKey] = {}
        self._dangling: Dict[FullKey, None] = {}
        self._skipped: List[FullKey] = []

    def resolve(self, model_ids: Sequence[str]) -> HierarchyGraph:
        self._reset()
        asset_models = [m for m in model_ids if not is_default_model(self.facility_id, m)]
        skipped_models = len(model_ids) - len(asset_models)
        if skipped_models:
            LOG.debug("Skipping %d default model link(s)", skipped_models)

        pending_rooms = self._discover_assets(asset_models)
        pending_levels = self._resolve_rooms(pending_rooms)
        self._resolve_levels(pending_levels)

        graph = HierarchyGraph.freeze(
            levels=self._levels,
            rooms=self._rooms,
            assets=self._assets,
            room_assets=self._room_assets,
            room_level=self._room_level,
            dangling=self._dangling,
            skipped=self._skipped,
        )
        LOG.info(
            "Resolved %d level(s), %d room(s), %d asset(s) from %d model(s)",
            len(graph.levels),
            len(graph.rooms),
            len(graph.assets),
            len(asset_models),
        )
        if graph.dangling:
            LOG.info("%d referenced room/level key(s) were not returned", len(graph.dangling))
        return graph

    # ------------- pass 1 -------------
    def _discover_assets(self, model_ids: Sequence[str]) -> PendingKeys:
        scans = self._fetch_all(
            lambda model_id: list(self.source.fetch_tagged_elements(model_id, ASSET_FAMILIES)),
            model_ids,
        )
        pending: PendingKeys = {}
        for model_id, elements in scans:
            LOG.debug("Model %s: %d tagged element(s)", model_id, len(elements))
            for element in elements:
                asset_key = element_key(element, model_id)
                self._assets[asset_key] = element
                try:
                    room_keys = normalize_room_refs(element, model_id, strict=self.strict)
                except (MalformedReference, AmbiguousReference) as exc:
                    self._skip(asset_key, exc)
                    continue
                for room_key in room_keys:
                    self._room_assets.setdefault(room_key, {})[asset_key] = None
                    pending.setdefault(room_key.model_id, {})[room_key] = None
        return pending

    # ------------- pass 2 -------------
    def _resolve_rooms(self, pending_rooms: PendingKeys) -> PendingKeys:
        pending_levels: PendingKeys = {}
        for model_id, room_keys, rooms in self._fetch_batches(pending_rooms, ROOM_FAMILIES):
            for room_key, room in self._match(model_id, room_keys, rooms):
                self._rooms[room_key] = room
                try:
                    level_key = normalize_level_ref(room, model_id, strict=self.strict)
                except (MalformedReference, AmbiguousReference) as exc:
                    self._skip(room_key, exc)
                    continue
                if level_key is None:
                    continue
                self._room_level[room_key] = level_key
                pending_levels.setdefault(level_key.model_id, {})[level_key] = None
        return pending_levels

    def _resolve_levels(self, pending_levels: PendingKeys) -> None:
        for model_id, level_keys, levels in self._fetch_batches(pending_levels, LEVEL_FAMILIES):
            for level_key, level in self._match(model_id, level_keys, levels):
                self._levels[level_key] = level
        for room_key, level_key in list(self._room_level.items()):
            if level_key not in self._levels:
                del self._room_level[room_key]

    # ------------- helpers -------------
    def _fetch_batches(
        self, pending: PendingKeys, column_families: Sequence[str]
    ) -> List[Tuple[str, List[FullKey], List[Element]]]:
        def fetch(model_id: str) -> List[Element]:
            keys = [key.key for key in pending[model_id]]
            return list(self.source.fetch_elements_by_key(model_id, keys, column_families))

        return [
            (model_id, list(pending[model_id]), elements)
            for model_id, elements in self._fetch_all(fetch, list(pending))
        ]

    def _match(
        self, model_id: str, requested: Sequence[FullKey], elements: Sequence[Element]
    ) -> List[Tuple[FullKey, Element]]:
        """Pair returned elements with the keys they were requested under.

        The backend may answer with short keys while references carry flagged
        keys, so elements are matched on the element id alone.
        """
        by_short: Dict[str, List[FullKey]] = {}
        for key in requested:
            by_short.setdefault(to_short_key(key.key), []).append(key)
        matched: List[Tuple[FullKey, Element]] = []
        seen: Dict[FullKey, None] = {}
        for element in elements:
            raw_key = element.get(QC.Key)
            if not raw_key:
                LOG.warning("Element without key returned from model %s; ignoring", model_id)
                continue
            full_keys = by_short.get(to_short_key(raw_key))
            if not full_keys:
                LOG.debug("Ignoring unrequested element %s from model %s", raw_key, model_id)
                continue
            for full_key in full_keys:
                seen[full_key] = None
                matched.append((full_key, element))
        for key in requested:
            if key not in seen:
                LOG.debug("Dangling reference %s", key)
                self._dangling[key] = None
        return matched

    def _skip(self, key: FullKey, exc: Exception) -> None:
        LOG.warning("Skipping references of %s: %s", key, exc)
        self._skipped.append(key)

    def _fetch_all(self, fetch: Callable[[str], R], model_ids: Sequence[str]) -> List[Tuple[str, R]]:
        if not model_ids:
            return []
        workers = min(self.concurrency, len(model_ids))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(fetch, model_ids))
        return list(zip(model_ids, results))


def resolve_facility(
    client,
    facility_id: str,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    strict: bool = False,
    facility: Optional[Mapping[str, Any]] = None,
) -> HierarchyView:
    """Fetch facility metadata, resolve its hierarchy and wrap it in a view."""
    if facility is None:
        facility = client.get_facility(facility_id)
    resolver = HierarchyResolver(client, facility_id=facility_id, concurrency=concurrency, strict=strict)
    return HierarchyView(resolver.resolve(facility_model_ids(facility)))


__all__ = [
    "DEFAULT_CONCURRENCY",
    "ElementSource",
    "HierarchyResolver",
    "facility_model_ids",
    "resolve_facility",
]
