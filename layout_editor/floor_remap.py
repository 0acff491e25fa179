"""
floor_remap.py

Floor index remapping. When floors are reordered or deleted, every floor-keyed structure
has to be renumbered consistently at export time. The functions here compute the
old-index -> new-index mapping and apply it to each kind of collection.

All apply_* functions are pure: they return new collections and never modify their inputs,
so the caller can keep the live (pre-remap) state while building export artifacts.
"""

import re
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from .editor_common import FLOOR_TOKEN_PATTERN
from .layout_entities import PlacedItem, ArchElement

logger = logging.getLogger(__name__)

FloorMapping = Dict[int, int]
V = TypeVar("V")

_FLOOR_TOKEN = re.compile(FLOOR_TOKEN_PATTERN, re.IGNORECASE)


def compute_mapping(display_order: Sequence[int], initial_count: int) -> Optional[FloorMapping]:
    """
    Computes the remap implied by the current floor display order.

    Args:
        display_order: Original indices of the surviving floors, in display order.
        initial_count: Number of floors at import.

    Returns:
        None if the order is untouched (identity order, nothing deleted), otherwise
        {old_index: new_index} with display_order[new_index] == old_index.
    """
    order = tuple(display_order)
    if order == tuple(range(initial_count)):
        return None
    if len(set(order)) != len(order):
        raise ValueError(f"Floor display order contains duplicates: {order}")
    mapping = {old: new for new, old in enumerate(order)}
    logger.debug(f"Floor remap: {mapping}")
    return mapping


def apply_to_items(mapping: Mapping[int, int], items: Iterable[PlacedItem]) -> List[PlacedItem]:
    """Relabels items onto their new floor; items on deleted floors are dropped."""
    result = []
    for item in items:
        new_index = mapping.get(item.floor_index)
        if new_index is None:
            continue
        result.append(item if new_index == item.floor_index else replace(item, floor_index=new_index))
    return result


def apply_to_objects(mapping: Mapping[int, int], objects: Iterable[ArchElement]) -> List[ArchElement]:
    result: List[ArchElement] = []
    for obj in objects:
        new_index = mapping.get(obj.floor_index)
        if new_index is None:
            continue
        result.append(obj if new_index == obj.floor_index else replace(obj, floor_index=new_index))
    return result


def apply_to_floor_map(mapping: Mapping[int, int], per_floor: Mapping[int, V]) -> Dict[int, V]:
    """Rekeys a floor-index keyed map (spawn points, floor names, per-floor lists)."""
    return {mapping[old]: value for old, value in per_floor.items() if old in mapping}


def remap_floor_name(name: str, mapping: Mapping[int, int]) -> Optional[str]:
    """
    Renumbers the floor token embedded in a floor-qualified file name.

    'store-floor-2.glb' with {2: 1} becomes 'store-floor-1.glb'; separators and the rest of the
    name are kept. Returns None if the floor was deleted, and the name unchanged if it has no
    floor token.
    """
    matches = list(_FLOOR_TOKEN.finditer(name))
    if not matches:
        return name
    last = matches[-1]
    old_index = int(last.group(2))
    if old_index not in mapping:
        return None
    return f"{name[:last.start(2)]}{mapping[old_index]}{name[last.end(2):]}"


def floor_index_from_name(name: str) -> Optional[int]:
    matches = list(_FLOOR_TOKEN.finditer(name))
    return int(matches[-1].group(2)) if matches else None


def apply_to_file_names(mapping: Mapping[int, int], names: Iterable[str]) -> List[str]:
    """Renumbers floor-qualified file names, dropping those of deleted floors."""
    result = []
    for name in names:
        renamed = remap_floor_name(name, mapping)
        if renamed is not None:
            result.append(renamed)
    return result
