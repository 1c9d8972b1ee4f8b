from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, NamedTuple, Tuple

from .encoding import FullKey
from .errors import MissingRoomBucket

Element = Mapping[str, Any]


def _empty_mapping() -> Mapping[Any, Any]:
    return MappingProxyType({})


class LevelEntry(NamedTuple):
    key: FullKey
    level: Element


class RoomEntry(NamedTuple):
    key: FullKey
    room: Element


class AssetEntry(NamedTuple):
    key: FullKey
    asset: Element


@dataclass(frozen=True)
class HierarchyGraph:
    """Resolved Level -> Room -> Asset graph keyed by :class:`FullKey`.

    ``room_assets`` buckets are ordered tuples in asset discovery order.
    ``dangling`` holds room/level keys that were referenced but not returned
    by the backend; ``skipped`` holds elements whose references could not be
    decoded.
    """

    levels: Mapping[FullKey, Element] = field(default_factory=_empty_mapping)
    rooms: Mapping[FullKey, Element] = field(default_factory=_empty_mapping)
    assets: Mapping[FullKey, Element] = field(default_factory=_empty_mapping)
    room_assets: Mapping[FullKey, Tuple[FullKey, ...]] = field(default_factory=_empty_mapping)
    room_level: Mapping[FullKey, FullKey] = field(default_factory=_empty_mapping)
    dangling: frozenset = frozenset()
    skipped: Tuple[FullKey, ...] = ()

    @classmethod
    def freeze(
        cls,
        *,
        levels: Dict[FullKey, Element],
        rooms: Dict[FullKey, Element],
        assets: Dict[FullKey, Element],
        room_assets: Dict[FullKey, Dict[FullKey, None]],
        room_level: Dict[FullKey, FullKey],
        dangling=(),
        skipped=(),
    ) -> "HierarchyGraph":
        return cls(
            levels=MappingProxyType(dict(levels)),
            rooms=MappingProxyType(dict(rooms)),
            assets=MappingProxyType(dict(assets)),
            room_assets=MappingProxyType({room: tuple(bucket) for room, bucket in room_assets.items()}),
            room_level=MappingProxyType(dict(room_level)),
            dangling=frozenset(dangling),
            skipped=tuple(skipped),
        )


class HierarchyView:
    """Read-only traversal over a :class:`HierarchyGraph`.

    Every method returns a fresh generator, so traversals can be restarted.
    """

    def __init__(self, graph: HierarchyGraph) -> None:
        self.graph = graph

    def levels(self) -> Iterator[LevelEntry]:
        for level_key, level in self.graph.levels.items():
            yield LevelEntry(level_key, level)

    def rooms_by_level(self, level_key: FullKey) -> Iterator[RoomEntry]:
        room_level = self.graph.room_level
        for room_key, room in self.graph.rooms.items():
            if room_level.get(room_key) != level_key:
                continue
            yield RoomEntry(room_key, room)

    def assets_by_room(self, room_key: FullKey) -> Iterator[AssetEntry]:
        # raise eagerly rather than on first next()
        try:
            asset_keys = self.graph.room_assets[room_key]
        except KeyError:
            raise MissingRoomBucket(room_key) from None
        return self._iter_assets(asset_keys)

    def _iter_assets(self, asset_keys: Tuple[FullKey, ...]) -> Iterator[AssetEntry]:
        assets = self.graph.assets
        for asset_key in asset_keys:
            yield AssetEntry(asset_key, assets[asset_key])

    def unassigned_rooms(self) -> Iterator[RoomEntry]:
        """Resolved rooms without a resolved level; unreachable from ``levels``."""
        levels = self.graph.levels
        for room_key, room in self.graph.rooms.items():
            if self.graph.room_level.get(room_key) in levels:
                continue
            yield RoomEntry(room_key, room)

    def counts(self) -> dict[str, int]:
        graph = self.graph
        return {
            "levels": len(graph.levels),
            "rooms": len(graph.rooms),
            "assets": len(graph.assets),
            "room_buckets": len(graph.room_assets),
            "dangling": len(graph.dangling),
            "skipped": len(graph.skipped),
        }


__all__ = ["AssetEntry", "HierarchyGraph", "HierarchyView", "LevelEntry", "RoomEntry"]
