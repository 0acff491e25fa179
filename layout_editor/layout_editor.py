"""
layout_editor.py

Defines the LayoutEditor class, the entry point of an editing session.

The editor owns the scene, the command history and the identity manager. Every user edit is
exposed as a method that builds a Command from the current scene values and executes it.
Builders check their preconditions up front: if a target is missing the command degrades to a
no-op that is not recorded. Asynchronous steps (type lookups) are awaited before a command is
built, so apply/revert stay synchronous.

Also covers import of the source artifacts, copy/paste, export and re-baselining after an
export has been committed.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .commands import Command, CommandHistory, Patch
from .clipboard import ClipboardData, PasteOptions, PasteValidation, copy as copy_selection, \
    transform_for_paste, validate_paste
from .editor_common import EditorSettings, LayoutEditorError, LookupFailedError, Vector3
from .floor_remap import apply_to_items, apply_to_objects, floor_index_from_name
from .geometry import split_positions, centroid
from .identity import IdentityManager, StableId
from .layout_entities import (
    PlacedItem, ItemOrigin, ArchitecturalObject, ArchElement, PointElement, SpanElement,
    FloorInfo, FloorLayout, FloorPlate,
)
from .layout_scene import LayoutScene
from .location_csv import Row, parse_rows, plates_from_rows, read_location_file
from .lookup import AssetLookupService
from .scene_export import ExportArtifacts, export_layout

logger = logging.getLogger(__name__)


class LayoutEditor:
    """
    One editing session over an imported store layout.
    All scene mutations go through the command history.
    """
    def __init__(self, settings: Optional[EditorSettings] = None, identity: Optional[IdentityManager] = None,
                 lookup: Optional[AssetLookupService] = None):
        self.settings: EditorSettings = settings or EditorSettings()
        self.identity: IdentityManager = identity or IdentityManager()
        self.lookup: Optional[AssetLookupService] = lookup if lookup is not None else \
            AssetLookupService.from_settings(self.settings)
        self.scene: LayoutScene = LayoutScene()
        self.history: CommandHistory = CommandHistory(self.scene, self.settings.history_depth)

        # --- Source Artifacts (as imported) ---
        self.original_rows: List[Row] = []
        self.floor_plate_rows: Optional[List[Row]] = None
        self.descriptor: Optional[Dict[str, Any]] = None

        self._alive = True

    # --- Lifecycle ---

    @property
    def is_alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        """Retires the session. Lookups that complete afterwards are discarded."""
        self._alive = False
        logger.debug("Editor closed")

    # --- Import ---

    def load(self, location_csv: str, floor_files: Sequence[str] = (),
             architectural_objects: Optional[Sequence[Mapping[str, Any]]] = None,
             floor_plate_csv: Optional[str] = None, descriptor: Optional[Mapping[str, Any]] = None,
             asset_urls: Optional[Mapping[str, str]] = None) -> None:
        """
        Imports a layout, replacing the current session state and clearing history.

        Args:
            location_csv: Text of the location record file.
            floor_files: Floor asset file names; their floor token gives the floor index.
            architectural_objects: Records of the architectural-elements artifact.
            floor_plate_csv: Text of the floor-plate file, if any.
            descriptor: Previously exported scene descriptor (floor names, spawn points, mappings).
            asset_urls: Known visual asset per block name.

        Raises:
            LayoutFormatError: if an architectural record cannot be decoded.
        """
        location_file = read_location_file(location_csv, self.identity, asset_urls,
                                           self.settings.is_migrated_category)
        objects: List[ArchElement] = []
        seen: Set[StableId] = set()
        for record in architectural_objects or ():
            obj = ArchitecturalObject.from_record(record)
            if obj.stable_id in seen:
                fresh = self.identity.assign(seen)
                logger.warning(f"Architectural object id '{obj.stable_id}' is already used; re-keyed as {fresh}")
                obj = replace(obj, stable_id=fresh)
            obj = self.identity.ensure(obj)
            seen.add(obj.stable_id)
            objects.append(obj)

        self.original_rows = ([location_file.header] if location_file.header else []) + location_file.rows
        self.floor_plate_rows = parse_rows(floor_plate_csv) if floor_plate_csv is not None else None
        self.descriptor = dict(descriptor) if descriptor is not None else None

        floors = self._build_floor_layout(floor_files, location_file.items, self.descriptor)
        self.scene = LayoutScene(floors)
        self.scene.apply_patch(Patch(put_items=tuple(location_file.items), put_objects=tuple(objects)))
        self.history = CommandHistory(self.scene, self.settings.history_depth)
        logger.info(f"Loaded layout: {len(location_file.items)} items, {len(objects)} architectural objects, "
                    f"{floors.initial_count} floors")

    @staticmethod
    def _build_floor_layout(floor_files: Sequence[str], items: Iterable[PlacedItem],
                            descriptor: Optional[Mapping[str, Any]]) -> FloorLayout:
        described: Dict[int, Mapping[str, Any]] = {}
        floor_height = None
        if descriptor:
            for entry in descriptor.get("floors", []) or []:
                if isinstance(entry, dict) and isinstance(entry.get("index"), int):
                    described[entry["index"]] = entry
                    if entry.get("floorHeight") is not None:
                        floor_height = float(entry["floorHeight"])

        files: Dict[int, str] = {}
        for name in floor_files:
            index = floor_index_from_name(name)
            if index is None:
                logger.warning(f"Ignoring asset file without a floor number: {name}")
                continue
            files[index] = name
        indices = set(files) | set(described) | {i.floor_index for i in items}
        if not files and not described and indices:
            # Fill in the gaps so floor indices stay contiguous from zero
            indices |= set(range(max(indices) + 1))

        floors = []
        for index in sorted(indices):
            entry = described.get(index, {})
            spawn = entry.get("spawnPoint")
            floors.append(FloorInfo(
                index=index,
                file_name=files.get(index) or entry.get("file") or f"floor-{index}.glb",
                name=entry.get("name"),
                spawn_point=tuple(float(v) for v in spawn) if spawn else None,  # type: ignore[arg-type]
            ))
        return FloorLayout.from_floors(floors, floor_height)

    # --- History ---

    def _run(self, command: Command) -> Command:
        if command.is_noop:
            logger.warning(f"'{command.name}' has nothing to act on; skipped")
            return command
        self.history.execute(command)
        return command

    def undo(self) -> Optional[Command]:
        return self.history.undo()

    def redo(self) -> Optional[Command]:
        return self.history.redo()

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # --- Selection ---

    @property
    def selection(self) -> Tuple[StableId, ...]:
        return self.scene.selection

    def select(self, ids: Iterable[StableId]) -> None:
        """Changes the selection. Selecting is not an edit and is not recorded."""
        self.scene.apply_patch(Patch(selection=tuple(ids)))

    # --- Queries ---

    def get_item(self, stable_id: StableId) -> Optional[PlacedItem]:
        return self.scene.get_item(stable_id)

    def list_items(self, include_tombstoned: bool = True) -> List[PlacedItem]:
        return self.scene.list_items(include_tombstoned)

    def _live_items(self, ids: Iterable[StableId]) -> List[PlacedItem]:
        items = []
        for stable_id in ids:
            item = self.scene.get_item(stable_id)
            if item is None or item.for_delete:
                logger.debug(f"Item {stable_id} not found or retired")
                continue
            items.append(item)
        return items

    def _item_edit(self, name: str, ids: Iterable[StableId], edit) -> Command:
        """Builds a command replacing each live target with edit(target)."""
        before = self._live_items(ids)
        if not before:
            return Command.noop(name)
        after = tuple(edit(item) for item in before)
        selection = self.scene.selection
        return Command(
            name=name,
            forward=Patch(update_items=after, selection=tuple(i.stable_id for i in after)),
            backward=Patch(update_items=tuple(before), selection=selection),
        )

    # --- Placed Item Edits ---

    def move_item(self, stable_id: StableId, position: Vector3) -> Command:
        return self._run(self._item_edit("Move fixture", [stable_id], lambda i: i.moved_to(position)))

    def rotate_item(self, stable_id: StableId, degrees: float) -> Command:
        return self._run(self._item_edit("Rotate fixture", [stable_id], lambda i: i.rotated_by(degrees)))

    def rotate_items(self, ids: Sequence[StableId], degrees: float) -> Command:
        return self._run(self._item_edit(f"Rotate {len(ids)} fixtures", ids, lambda i: i.rotated_by(degrees)))

    def set_brand(self, ids: Sequence[StableId], brand: str) -> Command:
        return self._run(self._item_edit("Change brand", ids, lambda i: i.with_brand(brand)))

    def set_count(self, ids: Sequence[StableId], count: int) -> Command:
        if count < 1:
            raise ValueError(f"Fixture count must be positive, got {count}.")
        return self._run(self._item_edit("Change count", ids, lambda i: i.with_count(count)))

    def set_hierarchy(self, ids: Sequence[StableId], hierarchy: int) -> Command:
        return self._run(self._item_edit("Change hierarchy", ids, lambda i: i.with_hierarchy(hierarchy)))

    def reset_items(self, ids: Sequence[StableId]) -> Command:
        return self._run(self._item_edit("Reset to original", ids, lambda i: i.reset_to_original()))

    def duplicate_item(self, stable_id: StableId) -> Command:
        """Duplicates in place; the duplicate is selected."""
        name = "Duplicate fixture"
        source = self._live_items([stable_id])
        if not source:
            return self._run(Command.noop(name))
        duplicate = source[0].spawn(self.identity.assign(self.scene.all_ids()), ItemOrigin.DUPLICATED)
        command = Command(
            name=name,
            forward=Patch(put_items=(duplicate,), selection=(duplicate.stable_id,)),
            backward=Patch(drop_items=(duplicate.stable_id,), selection=self.scene.selection),
        )
        return self._run(command)

    def delete_items(self, ids: Sequence[StableId]) -> Command:
        """
        Hard-deletes items. Imported items are kept aside so their source rows are dropped at
        export; created items simply disappear. The selection is cleared.
        """
        name = "Delete fixtures" if len(ids) > 1 else "Delete fixture"
        targets = [i for i in (self.scene.get_item(s) for s in ids) if i is not None]
        if not targets:
            return self._run(Command.noop(name))
        dropped = tuple(i.stable_id for i in targets)
        kept_aside = tuple(i for i in targets if not i.is_new)
        command = Command(
            name=name,
            forward=Patch(drop_items=dropped, put_deleted=kept_aside, selection=()),
            backward=Patch(put_items=tuple(targets), item_order=self.scene.item_order(),
                           drop_deleted=tuple(i.stable_id for i in kept_aside),
                           selection=self.scene.selection),
        )
        return self._run(command)

    def split_item(self, stable_id: StableId, left_count: int) -> Command:
        """
        Splits a fixture of count n into two pieces of left_count and n - left_count units laid
        out along its local X axis. The original is tombstoned; both pieces are selected.
        """
        name = "Split fixture"
        source = self._live_items([stable_id])
        if not source:
            return self._run(Command.noop(name))
        item = source[0]
        right_count = item.count - left_count
        if left_count < 1 or right_count < 1:
            raise ValueError(f"Cannot split a fixture of count {item.count} at {left_count}.")
        left_pos, right_pos = split_positions(item.position, item.rotation[2], left_count, right_count,
                                              self.settings.split_unit_width)
        avoid = self.scene.all_ids()
        left = item.spawn(self.identity.assign(avoid), ItemOrigin.SPLIT, position=left_pos, count=left_count)
        right = item.spawn(self.identity.assign(avoid), ItemOrigin.SPLIT, position=right_pos, count=right_count)
        new_ids = (left.stable_id, right.stable_id)
        command = Command(
            name=name,
            forward=Patch(update_items=(item.tombstoned(),), put_items=(left, right),
                          selection=new_ids),
            backward=Patch(drop_items=new_ids, update_items=(item,),
                           selection=self.scene.selection),
        )
        return self._run(command)

    def merge_items(self, ids: Sequence[StableId]) -> Command:
        """
        Merges fixtures of the same block on the same floor into one at their centroid, with the
        summed count. Brand, rotation and hierarchy come from the first fixture. The originals
        are tombstoned; the merged fixture is selected.
        """
        name = "Merge fixtures"
        items = self._live_items(ids)
        if len(items) < 2:
            return self._run(Command.noop(name))
        first = items[0]
        if any(i.block_name != first.block_name or i.floor_index != first.floor_index for i in items):
            raise ValueError("Only fixtures of the same block on the same floor can be merged.")
        merged = first.spawn(
            self.identity.assign(self.scene.all_ids()), ItemOrigin.MERGED,
            position=centroid([i.position for i in items]),
            count=sum(i.count for i in items),
        )
        command = Command(
            name=name,
            forward=Patch(update_items=tuple(i.tombstoned() for i in items), put_items=(merged,),
                          selection=(merged.stable_id,)),
            backward=Patch(drop_items=(merged.stable_id,), update_items=tuple(items),
                           selection=self.scene.selection),
        )
        return self._run(command)

    async def change_type(self, stable_id: StableId, block_name: str) -> Optional[Command]:
        """
        Replaces a fixture by one of another block. The visual asset is looked up first; if the
        lookup fails, or the editor was closed meanwhile, nothing happens and None is returned.
        """
        glb_url = None
        if self.lookup is not None:
            try:
                glb_url = await self.lookup.asset_url_for_block(block_name)
            except LookupFailedError as e:
                logger.warning(f"Type change to '{block_name}' abandoned: {e}")
                return None
        if not self._alive:
            logger.debug(f"Discarding type change of {stable_id}: editor closed")
            return None

        name = "Change fixture type"
        source = self._live_items([stable_id])
        if not source:
            return self._run(Command.noop(name))
        item = source[0]
        replacement = item.spawn(self.identity.assign(self.scene.all_ids()), ItemOrigin.TYPE_CHANGED,
                                 block_name=block_name, glb_url=glb_url)
        command = Command(
            name=name,
            forward=Patch(update_items=(item.tombstoned(),), put_items=(replacement,),
                          selection=(replacement.stable_id,)),
            backward=Patch(drop_items=(replacement.stable_id,), update_items=(item,),
                           selection=self.scene.selection),
        )
        return self._run(command)

    # --- Clipboard ---

    def copy(self, ids: Optional[Iterable[StableId]] = None) -> Optional[ClipboardData]:
        """Copies the given ids (default: the selection). Returns None if nothing is copyable."""
        targets = tuple(ids) if ids is not None else self.scene.selection
        items = self._live_items([i for i in targets if self.scene.get_item(i) is not None])
        objects = [o for o in (self.scene.get_object(i) for i in targets) if o is not None]
        return copy_selection(items, objects)

    def check_paste(self, clipboard: ClipboardData, target_floor_index: int,
                    known_brands: Optional[Iterable[str]] = None,
                    known_fixture_types: Optional[Iterable[str]] = None) -> PasteValidation:
        return validate_paste(
            clipboard, target_floor_index, self.scene.floors.display_order,
            set(known_brands) if known_brands is not None else None,
            set(known_fixture_types) if known_fixture_types is not None else None,
        )

    def paste(self, clipboard: ClipboardData, options: PasteOptions) -> Optional[Command]:
        """
        Pastes clipboard content. Returns None without touching the scene if the target floor
        does not exist.
        """
        validation = self.check_paste(clipboard, options.target_floor_index)
        if not validation.is_valid:
            for error in validation.errors:
                logger.warning(f"Paste rejected: {error.message}")
            return None
        result = transform_for_paste(clipboard, options, self.scene.list_items(), self.identity,
                                     existing_ids=self.scene.all_ids())
        command = Command(
            name=f"Paste {len(result.ids)} items",
            forward=Patch(put_items=result.items, put_objects=result.objects, selection=result.ids),
            backward=Patch(drop_items=tuple(i.stable_id for i in result.items),
                           drop_objects=tuple(o.stable_id for o in result.objects),
                           selection=self.scene.selection),
        )
        return self._run(command)

    # --- Architectural Objects ---

    def _object_edit(self, name: str, stable_id: StableId, edit) -> Command:
        before = self.scene.get_object(stable_id)
        if before is None:
            return Command.noop(name)
        after = edit(before)
        return Command(
            name=name,
            forward=Patch(update_objects=(after,), selection=(stable_id,)),
            backward=Patch(update_objects=(before,), selection=self.scene.selection),
        )

    def add_object(self, obj: ArchElement) -> Command:
        obj = self.identity.ensure(obj)
        if obj.stable_id in self.scene.all_ids():
            raise ValueError(f"Identifier {obj.stable_id} is already in use.")
        command = Command(
            name=f"Add {obj.object_type.value}",
            forward=Patch(put_objects=(obj,), selection=(obj.stable_id,)),
            backward=Patch(drop_objects=(obj.stable_id,), selection=self.scene.selection),
        )
        return self._run(command)

    def move_object(self, stable_id: StableId, position: Vector3, end_point: Optional[Vector3] = None) -> Command:
        """Moves a point element to position, or a span element to (position, end_point)."""
        def edit(obj: ArchElement) -> ArchElement:
            if isinstance(obj, SpanElement):
                if end_point is None:
                    sx, sy, sz = obj.start_point
                    shifted = obj.translated(position[0] - sx, position[1] - sy, position[2] - sz)
                    return obj.moved_to(shifted.start_point, shifted.end_point)
                return obj.moved_to(position, end_point)
            return obj.moved_to(position)
        return self._run(self._object_edit("Move object", stable_id, edit))

    def rotate_object(self, stable_id: StableId, rotation: Vector3) -> Command:
        obj = self.scene.get_object(stable_id)
        if obj is not None and not isinstance(obj, PointElement):
            raise TypeError("Only point elements carry a rotation triple.")
        return self._run(self._object_edit("Rotate object", stable_id, lambda o: o.rotated_to(rotation)))

    def resize_object(self, stable_id: StableId, width: Optional[float] = None, height: Optional[float] = None,
                      depth: Optional[float] = None) -> Command:
        """Point elements take any of width/height/depth; span elements only take height."""
        def edit(obj: ArchElement) -> ArchElement:
            if isinstance(obj, SpanElement):
                return obj.with_height(obj.height if height is None else height)
            return obj.resized(obj.width if width is None else width,
                               obj.height if height is None else height,
                               obj.depth if depth is None else depth)
        return self._run(self._object_edit("Resize object", stable_id, edit))

    def delete_object(self, stable_id: StableId) -> Command:
        obj = self.scene.get_object(stable_id)
        if obj is None:
            return self._run(Command.noop("Delete object"))
        command = Command(
            name=f"Delete {obj.object_type.value}",
            forward=Patch(drop_objects=(stable_id,), selection=()),
            backward=Patch(put_objects=(obj,), object_order=self.scene.object_order(),
                           selection=self.scene.selection),
        )
        return self._run(command)

    # --- Floors ---

    def _floor_edit(self, name: str, floors: FloorLayout, selection: Optional[Tuple[StableId, ...]] = None) -> Command:
        if floors == self.scene.floors:
            return Command.noop(name)
        current = self.scene.selection
        return Command(
            name=name,
            forward=Patch(floors=floors, selection=current if selection is None else selection),
            backward=Patch(floors=self.scene.floors, selection=current),
        )

    def set_plate_brand(self, plate_key: str, brand: str) -> Command:
        previous = self.scene.plate_brands.get(plate_key)
        if previous == brand:
            return self._run(Command.noop("Change floor plate brand"))
        selection = self.scene.selection
        command = Command(
            name="Change floor plate brand",
            forward=Patch(plate_brands=((plate_key, brand),), selection=selection),
            backward=Patch(plate_brands=((plate_key, previous),), selection=selection),
        )
        return self._run(command)

    def rename_floor(self, floor_index: int, name: str) -> Command:
        return self._run(self._floor_edit("Rename floor", self.scene.floors.renamed(floor_index, name)))

    def set_spawn_point(self, floor_index: int, point: Optional[Vector3]) -> Command:
        value = tuple(float(v) for v in point) if point is not None else None
        return self._run(self._floor_edit("Set spawn point",
                                          self.scene.floors.with_spawn_point(floor_index, value)))  # type: ignore[arg-type]

    def reorder_floors(self, display_order: Sequence[int]) -> Command:
        """display_order lists the original indices of the surviving floors in the new order."""
        floors = self.scene.floors
        if sorted(display_order) != sorted(floors.display_order):
            raise ValueError(f"{list(display_order)} is not a permutation of {list(floors.display_order)}.")
        return self._run(self._floor_edit("Reorder floors", floors.reordered(tuple(display_order))))

    def delete_floor(self, floor_index: int) -> Command:
        """
        Removes a floor from the layout. Its items stay in the scene, hidden from floor views,
        until the next export drops them; undo brings the floor back intact.
        """
        floors = self.scene.floors
        if not floors.is_active(floor_index) or len(floors.display_order) < 2:
            return self._run(Command.noop("Delete floor"))
        on_floor = {i.stable_id for i in self.scene.list_items() if i.floor_index == floor_index}
        on_floor |= {o.stable_id for o in self.scene.list_objects() if o.floor_index == floor_index}
        selection = tuple(s for s in self.scene.selection if s not in on_floor)
        return self._run(self._floor_edit("Delete floor", floors.without_floor(floor_index), selection))

    # --- Derived Views ---

    def items_on_floor(self, floor_index: int) -> List[PlacedItem]:
        return self.scene.items_on_floor(floor_index)

    def brands_on_floor(self, floor_index: int) -> List[str]:
        return self.scene.brands_on_floor(floor_index)

    def floor_plates(self, floor_index: int) -> List[FloorPlate]:
        """Floor plates of an active floor, with user brand changes applied."""
        if self.floor_plate_rows is None or not self.scene.floors.is_active(floor_index):
            return []
        overrides = self.scene.plate_brands
        return [replace(p, brand=overrides.get(p.key, p.brand))
                for p in plates_from_rows(self.floor_plate_rows) if p.floor_index == floor_index]

    async def space_tracker_summary(self) -> Dict[Tuple[int, str, str], int]:
        """Fixture counts per (floor, brand, fixture type); unknown types fall back to the block name."""
        mapping: Dict[str, str] = {}
        if self.lookup is not None:
            blocks = {i.block_name for i in self.scene.list_items(include_tombstoned=False)}
            try:
                mapping = await self.lookup.block_type_mapping(blocks)
            except LookupFailedError as e:
                logger.warning(f"Fixture types unavailable, summarising by block name: {e}")
        return self.scene.space_tracker_summary(mapping)

    # --- Export ---

    async def export(self) -> ExportArtifacts:
        """
        Builds the export artifacts from a snapshot of the current state. Live state is left
        untouched; call rebaseline() once the artifacts have been stored.

        Raises:
            ExportPreconditionError: if the layout cannot be exported as is.
        """
        snapshot = self.scene.snapshot()
        return await export_layout(snapshot, self.original_rows, self.floor_plate_rows, self.descriptor,
                                   self.lookup, self.settings)

    @staticmethod
    def _surviving(entries: Sequence[Any], floors: FloorLayout, mapping: Optional[Mapping[int, int]],
                   remap) -> List[Any]:
        if mapping is not None:
            return remap(mapping, entries)
        return [e for e in entries if floors.is_active(e.floor_index)]

    def rebaseline(self, artifacts: ExportArtifacts) -> None:
        """
        Makes an export the new starting point once its artifacts have been stored.

        Everything the export wrote becomes the new baseline: the floor remap is applied, items
        and objects adopt their exported values as originals, the source rows are reloaded from
        the artifacts and history is cleared. Edits made after the export snapshot was taken are
        carried over on top of that baseline, so the next export still writes them.

        Raises:
            LayoutEditorError: if the artifacts carry no snapshot, or the floors were edited after
                the snapshot was taken.
        """
        snapshot = artifacts.snapshot
        if snapshot is None:
            raise LayoutEditorError("Export artifacts carry no scene snapshot; cannot re-baseline.")
        if self.scene.floors != snapshot.floors:
            raise LayoutEditorError("Floors were edited after the export; export again before re-baselining.")
        mapping = artifacts.mapping
        floors = snapshot.floors

        exported_items = {i.stable_id: i.rebaselined() for i in self._surviving(
            [i for i in snapshot.items if not i.for_delete], floors, mapping, apply_to_items)}
        exported_objects = {o.stable_id: o.rebaselined() for o in self._surviving(
            snapshot.objects, floors, mapping, apply_to_objects)}

        items: List[PlacedItem] = []
        for item in self._surviving(self.scene.list_items(), floors, mapping, apply_to_items):
            exported = exported_items.get(item.stable_id)
            if exported is not None:
                items.append(item.rebased_onto(exported.baseline))
            elif not item.for_delete:
                # Not in the exported file (created, or revived by an undo): written as a new row
                items.append(item if item.is_new else replace(item, provenance=ItemOrigin.CREATED, original=None))
        live_ids = {i.stable_id for i in items}
        # Exported rows whose item is gone since the snapshot must be dropped by the next export
        deleted = tuple(i for i in exported_items.values() if i.stable_id not in live_ids)

        objects: List[ArchElement] = []
        for obj in self._surviving(self.scene.list_objects(), floors, mapping, apply_to_objects):
            exported_obj = exported_objects.get(obj.stable_id)
            objects.append(obj if exported_obj is None else obj.rebased_onto(exported_obj.original))

        plate_brands = {k: v for k, v in self.scene.plate_brands.items() if snapshot.plate_brands.get(k) != v}
        reverted = [k for k in snapshot.plate_brands if k not in self.scene.plate_brands]
        if reverted and self.floor_plate_rows is not None:
            source_brands = {p.key: p.brand for p in plates_from_rows(self.floor_plate_rows)}
            plate_brands.update({k: source_brands[k] for k in reverted if k in source_brands})

        new_floors = []
        for entry in artifacts.scene_descriptor.get("floors", []):
            spawn = entry.get("spawnPoint")
            new_floors.append(FloorInfo(
                index=int(entry["index"]), file_name=str(entry["file"]), name=entry.get("name"),
                spawn_point=tuple(float(v) for v in spawn) if spawn else None,  # type: ignore[arg-type]
            ))

        selection = self.scene.selection
        self.scene = LayoutScene(FloorLayout.from_floors(new_floors, floors.floor_height))
        self.scene.apply_patch(Patch(put_items=tuple(items), put_deleted=deleted, put_objects=tuple(objects),
                                     plate_brands=tuple(plate_brands.items()), selection=selection))
        self.history = CommandHistory(self.scene, self.settings.history_depth)
        self.original_rows = parse_rows(artifacts.location_csv)
        if artifacts.floor_plate_csv is not None:
            self.floor_plate_rows = parse_rows(artifacts.floor_plate_csv)
        self.descriptor = dict(artifacts.scene_descriptor)
        carried = sum(1 for i in items if i.is_new or i.has_changes or i.for_delete) + len(deleted)
        logger.info(f"Re-baselined: {len(items)} items, {len(objects)} architectural objects, "
                    f"{carried} changes carried past the export")
