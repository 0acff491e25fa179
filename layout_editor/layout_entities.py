"""
layout_entities.py

Defines the layout entity classes: placed items (fixtures), architectural objects and the
floor layout. Entities are frozen value objects: every edit produces a new instance via
dataclasses.replace, so an instance captured by a command can never change underneath it.

Each placed item and architectural object carries a once-initialised baseline (its
original-* snapshot). Routine edits copy the baseline through untouched; only
reset_to_original(), rebaselined() and rebased_onto() are allowed to rewrite it.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .editor_common import (
    Vector2, Vector3, LayoutFormatError,
    PLATE_COL_FLOOR_INDEX, PLATE_COL_SURFACE_ID, PLATE_COL_BRAND, PLATE_COL_MESH_NAME,
)
from .geometry import normalize_angle
from .identity import StableId

logger = logging.getLogger(__name__)


class ItemOrigin(str, Enum):
    """How a placed item came into existence."""
    IMPORTED = "imported"
    CREATED = "created"
    DUPLICATED = "duplicated"
    SPLIT = "split"
    MERGED = "merged"
    PASTED = "pasted"
    TYPE_CHANGED = "type_changed"


# --- Placed Items ---

@dataclass(frozen=True)
class ItemBaseline:
    """Frozen original-* values of a placed item."""
    block_name: str
    position: Vector3
    rotation: Vector3
    brand: str
    count: int
    hierarchy: int
    glb_url: Optional[str] = None


@dataclass(frozen=True)
class PlacedItem:
    """A fixture placed on a floor, in source-file coordinates."""
    stable_id: Optional[StableId] = None
    block_name: str = ""
    floor_index: int = 0
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: Vector3 = (0.0, 0.0, 0.0)
    origin: Vector2 = (0.0, 0.0)
    brand: str = ""
    count: int = 1
    hierarchy: int = 0
    glb_url: Optional[str] = None
    variant: Optional[str] = None
    external_id: Optional[str] = None
    provenance: ItemOrigin = ItemOrigin.IMPORTED
    original: Optional[ItemBaseline] = None

    was_moved: bool = False
    was_rotated: bool = False
    was_type_changed: bool = False
    was_brand_changed: bool = False
    was_count_changed: bool = False
    was_hierarchy_changed: bool = False
    was_duplicated: bool = False
    was_split: bool = False
    was_merged: bool = False
    for_delete: bool = False

    def __post_init__(self):
        # First write wins: the baseline is seeded once, from the values the item is born with
        if self.original is None:
            object.__setattr__(self, "original", self._capture_baseline())

    def _capture_baseline(self) -> ItemBaseline:
        return ItemBaseline(
            block_name=self.block_name, position=self.position, rotation=self.rotation,
            brand=self.brand, count=self.count, hierarchy=self.hierarchy, glb_url=self.glb_url,
        )

    @property
    def baseline(self) -> ItemBaseline:
        return self.original  # type: ignore[return-value]

    @property
    def is_new(self) -> bool:
        """True for items that have no row in the imported location file."""
        return self.provenance is not ItemOrigin.IMPORTED

    @property
    def has_changes(self) -> bool:
        return any((self.was_moved, self.was_rotated, self.was_type_changed, self.was_brand_changed,
                    self.was_count_changed, self.was_hierarchy_changed))

    # --- Edits (each returns a new item; the baseline is carried over untouched) ---

    def moved_to(self, position: Vector3) -> "PlacedItem":
        return replace(self, position=tuple(float(v) for v in position), was_moved=True)

    def rotated_by(self, degrees: float) -> "PlacedItem":
        rx, ry, rz = self.rotation
        return replace(self, rotation=(rx, ry, normalize_angle(rz + degrees)), was_rotated=True)

    def with_brand(self, brand: str) -> "PlacedItem":
        return replace(self, brand=brand, was_brand_changed=True)

    def with_count(self, count: int) -> "PlacedItem":
        return replace(self, count=int(count), was_count_changed=True)

    def with_hierarchy(self, hierarchy: int) -> "PlacedItem":
        return replace(self, hierarchy=int(hierarchy), was_hierarchy_changed=True)

    def tombstoned(self) -> "PlacedItem":
        return replace(self, for_delete=True)

    def reset_to_original(self) -> "PlacedItem":
        """Restores every mutable field from the baseline and clears the change flags."""
        b = self.baseline
        return replace(
            self, block_name=b.block_name, position=b.position, rotation=b.rotation,
            brand=b.brand, count=b.count, hierarchy=b.hierarchy, glb_url=b.glb_url,
            was_moved=False, was_rotated=False, was_type_changed=False, was_brand_changed=False,
            was_count_changed=False, was_hierarchy_changed=False,
        )

    def rebaselined(self) -> "PlacedItem":
        """Makes the current values the new baseline (the item now counts as imported)."""
        fresh = replace(
            self, provenance=ItemOrigin.IMPORTED, original=None,
            was_moved=False, was_rotated=False, was_type_changed=False, was_brand_changed=False,
            was_count_changed=False, was_hierarchy_changed=False,
            was_duplicated=False, was_split=False, was_merged=False,
        )
        return fresh

    def rebased_onto(self, baseline: ItemBaseline) -> "PlacedItem":
        """
        Keeps the current values over a new baseline, flagging each field that differs from it.
        The item counts as imported afterwards.
        """
        b = baseline
        return replace(
            self, provenance=ItemOrigin.IMPORTED, original=b,
            was_moved=self.position != b.position, was_rotated=self.rotation != b.rotation,
            was_type_changed=self.block_name != b.block_name, was_brand_changed=self.brand != b.brand,
            was_count_changed=self.count != b.count, was_hierarchy_changed=self.hierarchy != b.hierarchy,
            was_duplicated=False, was_split=False, was_merged=False,
        )

    def spawn(self, stable_id: StableId, provenance: ItemOrigin, **changes: Any) -> "PlacedItem":
        """
        Creates a brand-new item derived from this one.

        The new item gets its own identifier, a baseline seeded from its own values and no
        change flags other than the one matching its provenance.
        """
        fields = dict(
            stable_id=stable_id, provenance=provenance, original=None, external_id=None,
            was_moved=False, was_rotated=False, was_type_changed=False, was_brand_changed=False,
            was_count_changed=False, was_hierarchy_changed=False,
            was_duplicated=provenance in (ItemOrigin.DUPLICATED, ItemOrigin.PASTED),
            was_split=provenance is ItemOrigin.SPLIT,
            was_merged=provenance is ItemOrigin.MERGED,
            for_delete=False,
        )
        if provenance is ItemOrigin.TYPE_CHANGED:
            fields["was_type_changed"] = True
        fields.update(changes)
        return replace(self, **fields)


# --- Architectural Objects ---

class ArchObjectType(str, Enum):
    GLAZING = "glazing"
    PARTITION = "partition"
    ENTRANCE_DOOR = "entrance_door"
    EXIT_DOOR = "exit_door"
    DOOR = "door"
    WINDOW = "window"
    COLUMN = "column"
    WALL = "wall"
    STAIRCASE = "staircase"
    TOILET = "toilet"
    TRIAL_ROOM = "trial_room"
    BOH = "boh"
    CASH_TILL = "cash_till"
    WINDOW_DISPLAY = "window_display"


@dataclass(frozen=True)
class PointBaseline:
    position: Vector3
    rotation: Vector3
    width: float
    height: float
    depth: float


@dataclass(frozen=True)
class SpanBaseline:
    start_point: Vector3
    end_point: Vector3
    height: float
    rotation: float


_COMMON_KEYS = ("id", "type", "variant", "floorIndex", "customProperties",
                "wasMoved", "wasRotated", "wasResized", "wasHeightChanged")
_POINT_KEYS = ("posX", "posY", "posZ", "rotationX", "rotationY", "rotationZ", "width", "height", "depth",
               "originalPosX", "originalPosY", "originalPosZ", "originalRotationX", "originalRotationY",
               "originalRotationZ", "originalWidth", "originalHeight", "originalDepth")
_SPAN_KEYS = ("startPoint", "endPoint", "height", "rotation",
              "originalStartPoint", "originalEndPoint", "originalHeight", "originalRotation")


@dataclass(frozen=True)
class ArchitecturalObject:
    """
    Base for doors, walls, glazing and the like.
    Concrete objects are either a PointElement or a SpanElement, never both.
    """
    stable_id: Optional[StableId] = None
    object_type: ArchObjectType = ArchObjectType.WALL
    floor_index: int = 0
    variant: Optional[str] = None
    custom_properties: Mapping[str, Any] = field(default_factory=dict)
    was_moved: bool = False
    was_rotated: bool = False
    was_resized: bool = False
    was_height_changed: bool = False
    # Keys of the source record this class does not model, written back as read
    extra_fields: Mapping[str, Any] = field(default_factory=dict)

    def _common_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = dict(self.extra_fields)
        record.update({
            "id": self.stable_id,
            "type": self.object_type.value,
            "floorIndex": self.floor_index,
        })
        if self.variant is not None:
            record["variant"] = self.variant
        if self.custom_properties:
            record["customProperties"] = dict(self.custom_properties)
        record.update({
            "wasMoved": self.was_moved, "wasRotated": self.was_rotated,
            "wasResized": self.was_resized, "wasHeightChanged": self.was_height_changed,
        })
        return record

    def to_record(self) -> Dict[str, Any]:
        raise NotImplementedError

    def with_property(self, key: str, value: Any) -> "ArchitecturalObject":
        props = dict(self.custom_properties)
        props[key] = value
        return replace(self, custom_properties=props)

    @staticmethod
    def from_record(record: Mapping[str, Any]) -> "ArchElement":
        """
        Decodes one record of the architectural-elements artifact.

        Raises:
            LayoutFormatError: if the record is not an object, has an unknown type, or mixes
                single-point and two-point fields.
        """
        if not isinstance(record, Mapping):
            raise LayoutFormatError(f"Architectural record must be an object, got {type(record).__name__}.")
        is_span = "startPoint" in record or "endPoint" in record
        is_point = "posX" in record
        if is_span and is_point:
            raise LayoutFormatError(f"Architectural record '{record.get('id')}' has both point and span fields.")
        try:
            object_type = ArchObjectType(str(record.get("type", "")))
        except ValueError as e:
            raise LayoutFormatError(f"Unknown architectural object type '{record.get('type')}'.") from e

        known = set(_COMMON_KEYS) | set(_SPAN_KEYS if is_span else _POINT_KEYS)
        common = dict(
            stable_id=record.get("id"),
            object_type=object_type,
            floor_index=int(record.get("floorIndex", 0)),
            variant=record.get("variant"),
            custom_properties=dict(record.get("customProperties") or {}),
            was_moved=bool(record.get("wasMoved", False)),
            was_rotated=bool(record.get("wasRotated", False)),
            was_resized=bool(record.get("wasResized", False)),
            was_height_changed=bool(record.get("wasHeightChanged", False)),
            extra_fields={k: v for k, v in record.items() if k not in known},
        )
        try:
            if is_span:
                return SpanElement.from_fields(record, **common)
            return PointElement.from_fields(record, **common)
        except (TypeError, ValueError, IndexError, KeyError) as e:
            raise LayoutFormatError(f"Malformed architectural record '{record.get('id')}': {e}") from e


def _vec3(value: Any) -> Vector3:
    x, y, z = value
    return float(x), float(y), float(z)


@dataclass(frozen=True)
class PointElement(ArchitecturalObject):
    """Single-anchor element: doors, columns, stairs, tills."""
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: Vector3 = (0.0, 0.0, 0.0)
    width: float = 1.0
    height: float = 1.0
    depth: float = 1.0
    original: Optional[PointBaseline] = None

    def __post_init__(self):
        if self.original is None:
            object.__setattr__(self, "original", PointBaseline(
                self.position, self.rotation, self.width, self.height, self.depth))

    def moved_to(self, position: Vector3) -> "PointElement":
        return replace(self, position=_vec3(position), was_moved=True)

    def rotated_to(self, rotation: Vector3) -> "PointElement":
        return replace(self, rotation=_vec3(rotation), was_rotated=True)

    def resized(self, width: float, height: float, depth: float) -> "PointElement":
        return replace(self, width=float(width), height=float(height), depth=float(depth),
                       was_resized=True, was_height_changed=self.was_height_changed or height != self.height)

    def translated(self, dx: float, dy: float, dz: float) -> "PointElement":
        x, y, z = self.position
        return replace(self, position=(x + dx, y + dy, z + dz))

    def rebaselined(self) -> "PointElement":
        return replace(self, original=None, was_moved=False, was_rotated=False,
                       was_resized=False, was_height_changed=False)

    def rebased_onto(self, baseline: PointBaseline) -> "PointElement":
        b = baseline
        return replace(self, original=b, was_moved=self.position != b.position,
                       was_rotated=self.rotation != b.rotation,
                       was_resized=(self.width, self.height, self.depth) != (b.width, b.height, b.depth),
                       was_height_changed=self.height != b.height)

    def to_record(self) -> Dict[str, Any]:
        record = self._common_record()
        b = self.original  # seeded in __post_init__
        record.update({
            "posX": self.position[0], "posY": self.position[1], "posZ": self.position[2],
            "rotationX": self.rotation[0], "rotationY": self.rotation[1], "rotationZ": self.rotation[2],
            "width": self.width, "height": self.height, "depth": self.depth,
            "originalPosX": b.position[0], "originalPosY": b.position[1], "originalPosZ": b.position[2],
            "originalRotationX": b.rotation[0], "originalRotationY": b.rotation[1],
            "originalRotationZ": b.rotation[2],
            "originalWidth": b.width, "originalHeight": b.height, "originalDepth": b.depth,
        })
        return record

    @staticmethod
    def from_fields(record: Mapping[str, Any], **common: Any) -> "PointElement":
        position = (float(record.get("posX", 0.0)), float(record.get("posY", 0.0)), float(record.get("posZ", 0.0)))
        rotation = (float(record.get("rotationX", 0.0)), float(record.get("rotationY", 0.0)),
                    float(record.get("rotationZ", 0.0)))
        width = float(record.get("width", 1.0))
        height = float(record.get("height", 1.0))
        depth = float(record.get("depth", 1.0))
        original = None
        if "originalPosX" in record:
            original = PointBaseline(
                position=(float(record["originalPosX"]), float(record.get("originalPosY", position[1])),
                          float(record.get("originalPosZ", position[2]))),
                rotation=(float(record.get("originalRotationX", rotation[0])),
                          float(record.get("originalRotationY", rotation[1])),
                          float(record.get("originalRotationZ", rotation[2]))),
                width=float(record.get("originalWidth", width)),
                height=float(record.get("originalHeight", height)),
                depth=float(record.get("originalDepth", depth)),
            )
        return PointElement(position=position, rotation=rotation, width=width, height=height,
                            depth=depth, original=original, **common)


@dataclass(frozen=True)
class SpanElement(ArchitecturalObject):
    """Two-point element: glazing runs and partitions."""
    start_point: Vector3 = (0.0, 0.0, 0.0)
    end_point: Vector3 = (0.0, 0.0, 0.0)
    height: float = 1.0
    rotation: float = 0.0
    original: Optional[SpanBaseline] = None

    def __post_init__(self):
        if self.original is None:
            object.__setattr__(self, "original", SpanBaseline(
                self.start_point, self.end_point, self.height, self.rotation))

    def moved_to(self, start_point: Vector3, end_point: Vector3) -> "SpanElement":
        return replace(self, start_point=_vec3(start_point), end_point=_vec3(end_point), was_moved=True)

    def with_height(self, height: float) -> "SpanElement":
        return replace(self, height=float(height), was_height_changed=True)

    def translated(self, dx: float, dy: float, dz: float) -> "SpanElement":
        sx, sy, sz = self.start_point
        ex, ey, ez = self.end_point
        return replace(self, start_point=(sx + dx, sy + dy, sz + dz), end_point=(ex + dx, ey + dy, ez + dz))

    def rebaselined(self) -> "SpanElement":
        return replace(self, original=None, was_moved=False, was_rotated=False,
                       was_resized=False, was_height_changed=False)

    def rebased_onto(self, baseline: SpanBaseline) -> "SpanElement":
        b = baseline
        return replace(self, original=b,
                       was_moved=(self.start_point, self.end_point) != (b.start_point, b.end_point),
                       was_rotated=self.rotation != b.rotation, was_resized=False,
                       was_height_changed=self.height != b.height)

    def to_record(self) -> Dict[str, Any]:
        record = self._common_record()
        b = self.original  # seeded in __post_init__
        record.update({
            "startPoint": list(self.start_point), "endPoint": list(self.end_point),
            "height": self.height, "rotation": self.rotation,
            "originalStartPoint": list(b.start_point), "originalEndPoint": list(b.end_point),
            "originalHeight": b.height, "originalRotation": b.rotation,
        })
        return record

    @staticmethod
    def from_fields(record: Mapping[str, Any], **common: Any) -> "SpanElement":
        start = _vec3(record["startPoint"])
        end = _vec3(record["endPoint"])
        height = float(record.get("height", 1.0))
        rotation = float(record.get("rotation", 0.0))
        original = None
        if "originalStartPoint" in record:
            original = SpanBaseline(
                start_point=_vec3(record["originalStartPoint"]),
                end_point=_vec3(record.get("originalEndPoint", end)),
                height=float(record.get("originalHeight", height)),
                rotation=float(record.get("originalRotation", rotation)),
            )
        return SpanElement(start_point=start, end_point=end, height=height, rotation=rotation,
                           original=original, **common)


ArchElement = Union[PointElement, SpanElement]


# --- Floors ---

@dataclass(frozen=True)
class FloorInfo:
    """One floor as imported. index is the floor's original (file) index."""
    index: int
    file_name: str
    name: Optional[str] = None
    spawn_point: Optional[Vector3] = None

    @property
    def display_name(self) -> str:
        return self.name if self.name else f"Floor {self.index}"


@dataclass(frozen=True)
class FloorLayout:
    """
    The editable floor arrangement.

    floors holds every imported floor keyed by original index; display_order lists the original
    indices of the surviving floors in the order the user arranged them. Deleted floors keep
    their FloorInfo so that an undo can bring them back.
    """
    floors: Tuple[FloorInfo, ...] = ()
    display_order: Tuple[int, ...] = ()
    floor_height: Optional[float] = None

    @staticmethod
    def from_floors(floors: List[FloorInfo], floor_height: Optional[float] = None) -> "FloorLayout":
        ordered = tuple(sorted(floors, key=lambda f: f.index))
        return FloorLayout(floors=ordered, display_order=tuple(f.index for f in ordered), floor_height=floor_height)

    @property
    def initial_count(self) -> int:
        return len(self.floors)

    def floor(self, index: int) -> Optional[FloorInfo]:
        for f in self.floors:
            if f.index == index:
                return f
        return None

    def is_active(self, index: int) -> bool:
        return index in self.display_order

    def reordered(self, display_order: Tuple[int, ...]) -> "FloorLayout":
        return replace(self, display_order=tuple(display_order))

    def without_floor(self, index: int) -> "FloorLayout":
        return replace(self, display_order=tuple(i for i in self.display_order if i != index))

    def _with_floor(self, updated: FloorInfo) -> "FloorLayout":
        return replace(self, floors=tuple(updated if f.index == updated.index else f for f in self.floors))

    def renamed(self, index: int, name: str) -> "FloorLayout":
        floor = self.floor(index)
        return self if floor is None else self._with_floor(replace(floor, name=name))

    def with_spawn_point(self, index: int, point: Optional[Vector3]) -> "FloorLayout":
        floor = self.floor(index)
        return self if floor is None else self._with_floor(replace(floor, spawn_point=point))

    def spawn_points(self) -> Dict[int, Vector3]:
        return {f.index: f.spawn_point for f in self.floors if f.spawn_point is not None}

    def names(self) -> Dict[int, str]:
        return {f.index: f.name for f in self.floors if f.name}

    def file_names(self) -> Dict[int, str]:
        return {f.index: f.file_name for f in self.floors}


# --- Floor Plates ---

@dataclass(frozen=True)
class FloorPlate:
    """A brand-assigned floor surface, from the floor-plate file."""
    floor_index: int
    surface_id: str
    brand: str
    mesh_name: str = ""

    @property
    def key(self) -> str:
        return self.mesh_name if self.mesh_name else f"{self.surface_id}-{self.brand}"

    @staticmethod
    def from_row(row: List[str]) -> Optional["FloorPlate"]:
        try:
            return FloorPlate(
                floor_index=int(row[PLATE_COL_FLOOR_INDEX].strip()),
                surface_id=row[PLATE_COL_SURFACE_ID].strip(),
                brand=row[PLATE_COL_BRAND].strip(),
                mesh_name=row[PLATE_COL_MESH_NAME].strip() if len(row) > PLATE_COL_MESH_NAME else "",
            )
        except (ValueError, IndexError):
            logger.debug(f"Row is not a floor plate: {row}")
            return None
