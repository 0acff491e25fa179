"""
scene_export.py

Builds every export artifact from an immutable scene snapshot:
  - the reconciled location file,
  - the floor-plate file with brand changes and floor renumbering applied,
  - the architectural-elements JSON,
  - the scene descriptor JSON, merged into the previously exported descriptor,
  - the renames of floor-qualified asset files.

Preconditions are checked before anything is built; a failure raises ExportPreconditionError and
nothing is produced. All artifacts are built in memory and returned together, so the caller
writes either all of them or none.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING

from .editor_common import EditorSettings, ExportPreconditionError, LookupFailedError, LOCATION_HEADER
from .floor_remap import FloorMapping, compute_mapping, apply_to_objects, remap_floor_name
from .layout_scene import SceneSnapshot
from .location_csv import Row, format_rows, is_location_header, pad_header, rewrite_floor_plates
from .reconciliation import Reconciler, ReconciliationReport

# Type hint for the lookup service without a hard import
if TYPE_CHECKING:
    from .lookup import AssetLookupService

logger = logging.getLogger(__name__)

LOCATION_FILE = "location-master.csv"
FLOOR_PLATE_FILE = "floor-plate-master.csv"
DESCRIPTOR_FILE = "store-config.json"
ARCHITECTURAL_FILE = "architectural-objects.json"


@dataclass
class ExportArtifacts:
    """Everything one export produces, held in memory."""
    location_csv: str
    architectural_objects: List[Dict[str, Any]]
    scene_descriptor: Dict[str, Any]
    floor_plate_csv: Optional[str] = None
    # Old floor asset file name -> new file name, or None for a deleted floor
    floor_file_renames: Dict[str, Optional[str]] = field(default_factory=dict)
    mapping: Optional[FloorMapping] = None
    report: ReconciliationReport = field(default_factory=ReconciliationReport)
    warnings: List[str] = field(default_factory=list)
    # State the artifacts were built from; rebaseline() starts from it
    snapshot: Optional[SceneSnapshot] = None

    def files(self) -> Dict[str, str]:
        """File name -> text content of each artifact."""
        files = {
            LOCATION_FILE: self.location_csv,
            ARCHITECTURAL_FILE: json.dumps(self.architectural_objects, indent=2),
            DESCRIPTOR_FILE: json.dumps(self.scene_descriptor, indent=2),
        }
        if self.floor_plate_csv is not None:
            files[FLOOR_PLATE_FILE] = self.floor_plate_csv
        return files


def check_preconditions(snapshot: SceneSnapshot) -> None:
    """
    Raises:
        ExportPreconditionError: if no floor survives, or a surviving floor has no spawn point.
    """
    layout = snapshot.floors
    if not layout.display_order:
        raise ExportPreconditionError("Cannot export a layout without floors.")
    missing = [i for i in layout.display_order
               if layout.floor(i) is None or layout.floor(i).spawn_point is None]  # type: ignore[union-attr]
    if missing:
        raise ExportPreconditionError(
            f"Floors without a spawn point: {', '.join(map(str, missing))}", floor_indices=missing)


def _existing_floor_entry(descriptor: Mapping[str, Any], index: int) -> Dict[str, Any]:
    for entry in descriptor.get("floors", []) or []:
        if isinstance(entry, dict) and entry.get("index") == index:
            return entry
    return {}


def build_descriptor(snapshot: SceneSnapshot, mapping: Optional[FloorMapping],
                     existing: Optional[Mapping[str, Any]] = None,
                     block_types: Optional[Mapping[str, str]] = None,
                     type_assets: Optional[Mapping[str, str]] = None,
                     direct_render_types: Sequence[str] = ()) -> Dict[str, Any]:
    """
    Produces the scene descriptor. Keys of the existing descriptor are kept; floor entries,
    mappings and the direct-render list are merged with the new values taking precedence.
    """
    previous: Mapping[str, Any] = existing or {}
    descriptor: Dict[str, Any] = {k: v for k, v in previous.items()}
    layout = snapshot.floors

    floors = []
    for new_index, old_index in enumerate(layout.display_order):
        info = layout.floor(old_index)
        if info is None:
            continue
        entry = dict(_existing_floor_entry(previous, old_index))
        file_name = remap_floor_name(info.file_name, mapping) if mapping is not None else info.file_name
        entry.update({
            "name": info.name or entry.get("name") or info.display_name,
            "file": file_name or info.file_name,
            "index": new_index if mapping is not None else old_index,
        })
        if info.spawn_point is not None:
            entry["spawnPoint"] = list(info.spawn_point)
        if layout.floor_height is not None:
            entry["floorHeight"] = layout.floor_height
        floors.append(entry)
    descriptor["floors"] = floors

    merged_blocks = dict(previous.get("blockTypeMapping") or {})
    merged_blocks.update(block_types or {})
    descriptor["blockTypeMapping"] = merged_blocks

    merged_assets = dict(previous.get("typeAssetMapping") or {})
    merged_assets.update(type_assets or {})
    descriptor["typeAssetMapping"] = merged_assets

    direct = list(previous.get("directRenderTypes") or [])
    for name in direct_render_types:
        if name not in direct:
            direct.append(name)
    descriptor["directRenderTypes"] = direct
    return descriptor


async def _resolve_mappings(snapshot: SceneSnapshot, lookup: Optional["AssetLookupService"],
                            warnings: List[str]) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Block->type and type->asset maps for the live items. Lookup failures leave gaps."""
    if lookup is None:
        return {}, {}
    blocks = sorted({i.block_name for i in snapshot.items if not i.for_delete})
    try:
        block_types = await lookup.block_type_mapping(blocks)
    except LookupFailedError as e:
        message = f"Block type mapping unavailable, exporting without it: {e}"
        logger.warning(message)
        warnings.append(message)
        return {}, {}

    type_assets: Dict[str, str] = {}
    for block in blocks:
        fixture_type = block_types.get(block, block)
        if fixture_type in type_assets:
            continue
        try:
            type_assets[fixture_type] = await lookup.asset_url_for_block(block)
        except LookupFailedError as e:
            message = f"No asset for fixture type '{fixture_type}': {e}"
            logger.warning(message)
            warnings.append(message)
    return block_types, type_assets


async def export_layout(snapshot: SceneSnapshot, original_rows: Sequence[Sequence[str]],
                        floor_plate_rows: Optional[Sequence[Sequence[str]]] = None,
                        descriptor: Optional[Mapping[str, Any]] = None,
                        lookup: Optional["AssetLookupService"] = None,
                        settings: Optional[EditorSettings] = None) -> ExportArtifacts:
    """
    Builds all export artifacts from a snapshot.

    Args:
        snapshot: Immutable copy of the scene; editing may continue while this runs.
        original_rows: Location rows as imported (header included if the file had one).
        floor_plate_rows: Floor-plate rows as imported, or None if there is no plate file.
        descriptor: Previously exported scene descriptor to merge into.
        lookup: Service for block type and asset mappings; failures degrade to partial mappings.
        settings: Migrated-out categories and direct-render types.

    Raises:
        ExportPreconditionError: before any artifact is built.
    """
    settings = settings or EditorSettings()
    check_preconditions(snapshot)
    layout = snapshot.floors
    mapping = compute_mapping(layout.display_order, layout.initial_count)
    warnings: List[str] = []

    reconciler = Reconciler(snapshot.items, snapshot.deleted_items, mapping, settings.is_migrated_category)
    rows: List[Row] = reconciler.run(original_rows)
    if not original_rows or not is_location_header(original_rows[0]):
        rows.insert(0, pad_header(LOCATION_HEADER))
    location_csv = format_rows(rows)

    plate_csv = None
    if floor_plate_rows is not None:
        plate_csv = format_rows(rewrite_floor_plates(floor_plate_rows, snapshot.plate_brands, mapping))

    objects = list(snapshot.objects)
    if mapping is not None:
        objects = apply_to_objects(mapping, objects)
    else:
        objects = [o for o in objects if layout.is_active(o.floor_index)]
    records = [o.to_record() for o in objects]

    block_types, type_assets = await _resolve_mappings(snapshot, lookup, warnings)
    scene_descriptor = build_descriptor(snapshot, mapping, descriptor, block_types, type_assets,
                                        settings.direct_render_types)

    renames: Dict[str, Optional[str]] = {}
    if mapping is not None:
        for info in layout.floors:
            renamed = remap_floor_name(info.file_name, mapping)
            if renamed != info.file_name:
                renames[info.file_name] = renamed

    logger.info(f"Export built: {len(rows) - 1} location rows, {len(records)} architectural objects, "
                f"{len(scene_descriptor['floors'])} floors")
    return ExportArtifacts(
        location_csv=location_csv,
        architectural_objects=records,
        scene_descriptor=scene_descriptor,
        floor_plate_csv=plate_csv,
        floor_file_renames=renames,
        mapping=mapping,
        report=reconciler.report,
        warnings=warnings,
        snapshot=snapshot,
    )
