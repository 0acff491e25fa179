"""
clipboard.py

Copy and paste of placed items and architectural objects.

copy() projects a selection into ClipboardData, a portable form without identifiers or change
flags that serializes to JSON. transform_for_paste() re-materializes clipboard content for a
target floor with brand-new identifiers. validate_paste() checks a target before pasting;
it reports, it does not transform.
"""

import json
import time
import logging
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .editor_common import Vector2, Vector3, LayoutFormatError
from .identity import IdentityManager, StableId
from .layout_entities import PlacedItem, ItemOrigin, ArchitecturalObject, ArchElement

logger = logging.getLogger(__name__)

CLIPBOARD_VERSION = "1.0"

# Record keys of an architectural object that do not travel through the clipboard
_ARCH_TRANSIENT_KEYS = ("id", "wasMoved", "wasRotated", "wasResized", "wasHeightChanged")


@dataclass(frozen=True)
class ClipboardFixture:
    block_name: str
    floor_index: int
    origin: Vector2
    position: Vector3
    rotation: Vector3
    brand: str
    count: int
    hierarchy: int
    glb_url: Optional[str] = None
    variant: Optional[str] = None

    @staticmethod
    def from_item(item: PlacedItem) -> "ClipboardFixture":
        return ClipboardFixture(
            block_name=item.block_name, floor_index=item.floor_index, origin=item.origin,
            position=item.position, rotation=item.rotation, brand=item.brand, count=item.count,
            hierarchy=item.hierarchy, glb_url=item.glb_url, variant=item.variant,
        )


@dataclass(frozen=True)
class ClipboardData:
    """Portable copy of a selection."""
    fixtures: Tuple[ClipboardFixture, ...] = ()
    # Architectural object records stripped of identifiers, flags and baselines
    architectural_objects: Tuple[Dict[str, Any], ...] = ()
    version: str = CLIPBOARD_VERSION
    timestamp: float = 0.0
    source_store_id: Optional[str] = None

    @property
    def total_items(self) -> int:
        return len(self.fixtures) + len(self.architectural_objects)

    @property
    def source_floors(self) -> List[int]:
        floors = {f.floor_index for f in self.fixtures}
        floors.update(int(o.get("floorIndex", 0)) for o in self.architectural_objects)
        return sorted(floors)

    @property
    def brands(self) -> List[str]:
        return sorted({f.brand for f in self.fixtures})

    @property
    def fixture_types(self) -> List[str]:
        return sorted({f.block_name for f in self.fixtures})

    def to_json(self) -> str:
        document = {
            "version": self.version,
            "timestamp": self.timestamp,
            "sourceStoreId": self.source_store_id,
            "fixtures": [asdict(f) for f in self.fixtures],
            "architecturalObjects": [dict(o) for o in self.architectural_objects],
            "metadata": {
                "totalItems": self.total_items,
                "sourceFloors": self.source_floors,
                "brands": self.brands,
                "fixtureTypes": self.fixture_types,
            },
        }
        return json.dumps(document)

    @staticmethod
    def from_json(text: str) -> "ClipboardData":
        """
        Raises:
            LayoutFormatError: if the text is not a clipboard document.
        """
        try:
            document = json.loads(text)
            fixtures = tuple(
                ClipboardFixture(
                    block_name=str(f["block_name"]), floor_index=int(f["floor_index"]),
                    origin=(float(f["origin"][0]), float(f["origin"][1])),
                    position=tuple(float(v) for v in f["position"]),  # type: ignore[arg-type]
                    rotation=tuple(float(v) for v in f["rotation"]),  # type: ignore[arg-type]
                    brand=str(f["brand"]), count=int(f["count"]), hierarchy=int(f["hierarchy"]),
                    glb_url=f.get("glb_url"), variant=f.get("variant"),
                )
                for f in document["fixtures"]
            )
            objects = tuple(dict(o) for o in document.get("architecturalObjects", []))
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise LayoutFormatError(f"Not a clipboard document: {e}") from e
        if document.get("version") != CLIPBOARD_VERSION:
            logger.warning(f"Clipboard version {document.get('version')} differs from {CLIPBOARD_VERSION}")
        return ClipboardData(fixtures=fixtures, architectural_objects=objects,
                             version=str(document.get("version", CLIPBOARD_VERSION)),
                             timestamp=float(document.get("timestamp", 0.0)),
                             source_store_id=document.get("sourceStoreId"))


def _portable_record(obj: ArchitecturalObject) -> Dict[str, Any]:
    record = obj.to_record()
    for key in list(record):
        if key in _ARCH_TRANSIENT_KEYS or key.startswith("original"):
            del record[key]
    return record


def copy(items: Iterable[PlacedItem], objects: Iterable[ArchitecturalObject] = (),
         source_store_id: Optional[str] = None) -> Optional[ClipboardData]:
    """Returns the portable form of a selection, or None if nothing is selected."""
    fixtures = tuple(ClipboardFixture.from_item(i) for i in items if not i.for_delete)
    records = tuple(_portable_record(o) for o in objects)
    if not fixtures and not records:
        logger.debug("Nothing selected to copy")
        return None
    data = ClipboardData(fixtures=fixtures, architectural_objects=records,
                         timestamp=time.time(), source_store_id=source_store_id)
    logger.info(f"Copied {len(fixtures)} fixtures and {len(records)} architectural objects")
    return data


# --- Paste ---

@dataclass(frozen=True)
class PasteOptions:
    target_floor_index: int
    # Source floor -> target floor; floors without an entry go to target_floor_index
    floor_mapping: Mapping[int, int] = field(default_factory=dict)
    offset_x: float = 0.0
    offset_y: float = 0.0
    offset_z: float = 0.0

    def floor_for(self, source_floor: int) -> int:
        return self.floor_mapping.get(source_floor, self.target_floor_index)


@dataclass(frozen=True)
class PasteResult:
    items: Tuple[PlacedItem, ...] = ()
    objects: Tuple[ArchElement, ...] = ()

    @property
    def ids(self) -> Tuple[StableId, ...]:
        return tuple(i.stable_id for i in self.items) + tuple(o.stable_id for o in self.objects)  # type: ignore[misc]


def transform_for_paste(clipboard: ClipboardData, options: PasteOptions, existing_items: Iterable[PlacedItem],
                        identity: IdentityManager, existing_ids: Collection[StableId] = ()) -> PasteResult:
    """
    Materializes clipboard content on the target floor.

    Fixtures are shifted by the difference between the target floor's origin and their source
    origin plus the offsets, and are numbered after the highest hierarchy on the target floor.
    Every result gets a fresh identifier that collides with nothing in existing_items or
    existing_ids; the baseline of each result is its pasted state.
    """
    existing = list(existing_items)
    avoid = set(existing_ids) | {i.stable_id for i in existing if i.stable_id is not None}
    on_target = [i for i in existing if i.floor_index == options.target_floor_index and not i.for_delete]
    max_hierarchy = max((i.hierarchy for i in on_target), default=0)
    target_origin = on_target[0].origin if on_target else (0.0, 0.0)

    items = []
    for fixture in clipboard.fixtures:
        max_hierarchy += 1
        dx = target_origin[0] - fixture.origin[0] + options.offset_x
        dy = target_origin[1] - fixture.origin[1] + options.offset_y
        x, y, z = fixture.position
        new_id = identity.assign(avoid)
        avoid.add(new_id)
        items.append(PlacedItem(
            stable_id=new_id,
            block_name=fixture.block_name,
            floor_index=options.floor_for(fixture.floor_index),
            position=(x + dx, y + dy, z + options.offset_z),
            rotation=fixture.rotation,
            origin=target_origin,
            brand=fixture.brand,
            count=fixture.count,
            hierarchy=max_hierarchy,
            glb_url=fixture.glb_url,
            variant=fixture.variant,
            provenance=ItemOrigin.PASTED,
            was_duplicated=True,
        ))

    objects: List[ArchElement] = []
    for record in clipboard.architectural_objects:
        source_floor = int(record.get("floorIndex", 0))
        new_id = identity.assign(avoid)
        avoid.add(new_id)
        decoded = ArchitecturalObject.from_record(dict(record, id=new_id))
        moved = decoded.translated(options.offset_x, options.offset_y, options.offset_z)
        # Pasted state is the new baseline
        objects.append(replace(moved, floor_index=options.floor_for(source_floor), original=None))

    logger.info(f"Prepared paste of {len(items)} fixtures and {len(objects)} architectural objects "
                f"onto floor {options.target_floor_index}")
    return PasteResult(items=tuple(items), objects=tuple(objects))


# --- Validation ---

@dataclass(frozen=True)
class PasteIssue:
    kind: str
    message: str
    affected_items: int = 0


@dataclass(frozen=True)
class PasteValidation:
    errors: Tuple[PasteIssue, ...] = ()
    warnings: Tuple[PasteIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_paste(clipboard: ClipboardData, target_floor_index: int, available_floors: Sequence[int],
                   known_brands: Optional[Collection[str]] = None,
                   known_fixture_types: Optional[Collection[str]] = None) -> PasteValidation:
    """
    Checks a paste target.

    A missing target floor is an error. Source floors that do not exist here, brands outside
    known_brands and block names outside known_fixture_types are warnings. Brand and type
    checks are skipped when the corresponding collection is None.
    """
    if target_floor_index not in available_floors:
        return PasteValidation(errors=(PasteIssue(
            "no_target_floor", f"Target floor {target_floor_index} does not exist in this store"),))

    warnings = []
    missing_floors = [f for f in clipboard.source_floors if f not in available_floors]
    if missing_floors:
        affected = sum(1 for f in clipboard.fixtures if f.floor_index in missing_floors)
        affected += sum(1 for o in clipboard.architectural_objects if int(o.get("floorIndex", 0)) in missing_floors)
        warnings.append(PasteIssue(
            "floor_mismatch",
            f"{affected} item(s) from floor(s) {', '.join(map(str, missing_floors))} "
            f"will be pasted to floor {target_floor_index}",
            affected,
        ))

    if known_brands is not None:
        missing_brands = [b for b in clipboard.brands if b not in known_brands]
        if missing_brands:
            affected = sum(1 for f in clipboard.fixtures if f.brand in missing_brands)
            warnings.append(PasteIssue(
                "brand_missing",
                f"{affected} fixture(s) use brand(s) not available in this store: {', '.join(missing_brands)}",
                affected,
            ))

    if known_fixture_types is not None:
        missing_types = [t for t in clipboard.fixture_types if t not in known_fixture_types]
        if missing_types:
            affected = sum(1 for f in clipboard.fixtures if f.block_name in missing_types)
            warnings.append(PasteIssue(
                "fixture_type_missing",
                f"{affected} fixture(s) use types not available: {', '.join(missing_types)}",
                affected,
            ))

    for warning in warnings:
        logger.warning(f"Paste check: {warning.message}")
    return PasteValidation(warnings=tuple(warnings))
