"""
layout_scene.py

Defines the LayoutScene class, the state container of an editing session.
It holds registries for placed items, hard-deleted items, architectural objects, the floor
layout, floor-plate brand overrides and the current selection.

The scene is read freely but written only through apply_patch(), which the command engine
calls from Command.apply()/Command.revert(). Derived floor views exclude tombstoned items.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, TYPE_CHECKING

from .identity import StableId
from .layout_entities import PlacedItem, ArchElement, FloorLayout

# Type hint for the patch class without circular import
if TYPE_CHECKING:
    from .commands import Patch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneSnapshot:
    """Immutable copy of everything an export needs."""
    items: Tuple[PlacedItem, ...]
    deleted_items: Tuple[PlacedItem, ...]
    objects: Tuple[ArchElement, ...]
    floors: FloorLayout
    plate_brands: Mapping[str, str] = field(default_factory=dict)

    @property
    def all_ids(self) -> Set[StableId]:
        ids = {i.stable_id for i in self.items} | {i.stable_id for i in self.deleted_items}
        return ids | {o.stable_id for o in self.objects}  # type: ignore[return-value]


class LayoutScene:
    """
    Registry of everything being edited.
    Acts as the single source of truth; mutated exclusively via apply_patch().
    """
    def __init__(self, floors: Optional[FloorLayout] = None):
        # --- Entity Registries (insertion ordered) ---
        self._items: Dict[StableId, PlacedItem] = {}
        # Imported items removed by the user; kept so export can suppress their rows
        self._deleted: Dict[StableId, PlacedItem] = {}
        self._objects: Dict[StableId, ArchElement] = {}

        # --- Floor State ---
        self._floors: FloorLayout = floors if floors is not None else FloorLayout()
        self._plate_brands: Dict[str, str] = {}

        # --- Derived UI State ---
        self._selection: Tuple[StableId, ...] = ()

    # --- Public API: Getters ---

    @property
    def floors(self) -> FloorLayout:
        return self._floors

    @property
    def selection(self) -> Tuple[StableId, ...]:
        return self._selection

    @property
    def plate_brands(self) -> Dict[str, str]:
        return dict(self._plate_brands)

    def get_item(self, stable_id: StableId) -> Optional[PlacedItem]:
        return self._items.get(stable_id)

    def get_deleted_item(self, stable_id: StableId) -> Optional[PlacedItem]:
        return self._deleted.get(stable_id)

    def get_object(self, stable_id: StableId) -> Optional[ArchElement]:
        return self._objects.get(stable_id)

    def list_items(self, include_tombstoned: bool = True) -> List[PlacedItem]:
        """Returns the location list in order."""
        return [i for i in self._items.values() if include_tombstoned or not i.for_delete]

    def list_deleted_items(self) -> List[PlacedItem]:
        return list(self._deleted.values())

    def list_objects(self) -> List[ArchElement]:
        return list(self._objects.values())

    def item_order(self) -> Tuple[StableId, ...]:
        return tuple(self._items.keys())

    def object_order(self) -> Tuple[StableId, ...]:
        return tuple(self._objects.keys())

    def all_ids(self) -> Set[StableId]:
        return set(self._items) | set(self._deleted) | set(self._objects)

    def selected_items(self) -> List[PlacedItem]:
        return [self._items[i] for i in self._selection if i in self._items]

    # --- Public API: Floor Views (tombstones excluded) ---

    def items_on_floor(self, floor_index: int) -> List[PlacedItem]:
        if not self._floors.is_active(floor_index):
            return []
        return [i for i in self._items.values() if i.floor_index == floor_index and not i.for_delete]

    def objects_on_floor(self, floor_index: int) -> List[ArchElement]:
        if not self._floors.is_active(floor_index):
            return []
        return [o for o in self._objects.values() if o.floor_index == floor_index]

    def brands_on_floor(self, floor_index: int) -> List[str]:
        return sorted({i.brand for i in self.items_on_floor(floor_index)})

    def brand_list(self) -> List[str]:
        brands: Set[str] = set()
        for index in self._floors.display_order:
            brands.update(self.brands_on_floor(index))
        return sorted(brands)

    def max_hierarchy(self, floor_index: int) -> int:
        return max((i.hierarchy for i in self.items_on_floor(floor_index)), default=0)

    def floor_origin(self, floor_index: int) -> Tuple[float, float]:
        """Origin offset of a floor, taken from any live item on it."""
        on_floor = self.items_on_floor(floor_index)
        return on_floor[0].origin if on_floor else (0.0, 0.0)

    def space_tracker_summary(self, type_for_block: Optional[Mapping[str, str]] = None
                              ) -> Dict[Tuple[int, str, str], int]:
        """
        Fixture counts per (floor index, brand, fixture type), tombstones excluded.
        Block names without a known type are reported under the block name itself.
        """
        mapping = type_for_block or {}
        summary: Dict[Tuple[int, str, str], int] = defaultdict(int)
        for index in self._floors.display_order:
            for item in self.items_on_floor(index):
                fixture_type = mapping.get(item.block_name, item.block_name)
                summary[(index, item.brand, fixture_type)] += item.count
        return dict(summary)

    def snapshot(self) -> SceneSnapshot:
        return SceneSnapshot(
            items=tuple(self._items.values()),
            deleted_items=tuple(self._deleted.values()),
            objects=tuple(self._objects.values()),
            floors=self._floors,
            plate_brands=dict(self._plate_brands),
        )

    # --- Mutation (command engine only) ---

    def apply_patch(self, patch: "Patch") -> None:
        """Applies a value patch. Entries whose target no longer exists are skipped."""
        for stable_id in patch.drop_items:
            self._items.pop(stable_id, None)
        for item in patch.put_items:
            self._items[item.stable_id] = item  # type: ignore[index]
        for item in patch.update_items:
            if item.stable_id in self._items:
                self._items[item.stable_id] = item  # type: ignore[index]
            else:
                logger.debug(f"Skipping update of vanished item {item.stable_id}")
        if patch.item_order is not None:
            self._items = _reordered(self._items, patch.item_order)

        for stable_id in patch.drop_deleted:
            self._deleted.pop(stable_id, None)
        for item in patch.put_deleted:
            self._deleted[item.stable_id] = item  # type: ignore[index]

        for stable_id in patch.drop_objects:
            self._objects.pop(stable_id, None)
        for obj in patch.put_objects:
            self._objects[obj.stable_id] = obj  # type: ignore[index]
        for obj in patch.update_objects:
            if obj.stable_id in self._objects:
                self._objects[obj.stable_id] = obj  # type: ignore[index]
            else:
                logger.debug(f"Skipping update of vanished object {obj.stable_id}")
        if patch.object_order is not None:
            self._objects = _reordered(self._objects, patch.object_order)

        if patch.floors is not None:
            self._floors = patch.floors
        for key, brand in patch.plate_brands:
            if brand is None:
                self._plate_brands.pop(key, None)
            else:
                self._plate_brands[key] = brand

        if patch.selection is not None:
            self._selection = tuple(i for i in patch.selection if i in self._items or i in self._objects)
        else:
            # Selection may not point at something a patch just removed
            self._selection = tuple(i for i in self._selection if i in self._items or i in self._objects)


def _reordered(registry: Dict[StableId, Any], order: Tuple[StableId, ...]) -> Dict[StableId, Any]:
    """Rebuilds a registry in the given order; ids missing from order keep their relative position at the end."""
    result = {k: registry[k] for k in order if k in registry}
    for k, v in registry.items():
        if k not in result:
            result[k] = v
    return result
