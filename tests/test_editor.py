"""
Tests for the LayoutEditor session: item edits, architectural objects, floors and clipboard.
"""

import pytest

from layout_editor import LayoutEditor, ItemOrigin, PointElement, SpanElement, ArchObjectType
from layout_editor.clipboard import PasteOptions

RTL_NT_URL = "https://assets.test/rtl-nt.glb"


class TestImport:
    """Test loading a layout."""

    def test_items_and_floors(self, editor):
        """Test every row becomes an item and every floor file a floor."""
        assert len(editor.list_items()) == 4
        assert editor.scene.floors.display_order == (0, 1, 2)
        assert editor.scene.floors.floor(2).file_name == "dg2n-3d-floor-2.glb"
        assert not editor.can_undo

    def test_item_values(self, editor):
        """Test imported values and baseline."""
        rack = editor.list_items()[0]
        assert rack.block_name == "RTL-4W"
        assert rack.position == (1.0, 2.0, 0.0)
        assert rack.count == 4
        assert rack.provenance is ItemOrigin.IMPORTED
        assert rack.baseline.position == rack.position

    def test_migrated_rows_are_not_items(self):
        """Test rows of migrated-out categories do not become items."""
        e = LayoutEditor()
        e.load("GLAZING,0,0,0,0,0,0,0,0,0,0,arch,1,0\nRTL-4W,0,0,0,0,1,1,0,0,0,0,b,1,1\n")
        assert [i.block_name for i in e.list_items()] == ["RTL-4W"]
        assert len(e.original_rows) == 2

    def test_floors_from_descriptor(self, sample_csv):
        """Test floor names and spawn points come from a previous descriptor."""
        descriptor = {"floors": [
            {"index": 0, "name": "Ground", "file": "dg2n-3d-floor-0.glb", "spawnPoint": [1, 2, 3]},
            {"index": 1, "name": "First", "file": "dg2n-3d-floor-1.glb"},
            {"index": 2, "file": "dg2n-3d-floor-2.glb", "floorHeight": 4.5},
        ]}
        e = LayoutEditor()
        e.load(sample_csv, descriptor=descriptor)
        floors = e.scene.floors
        assert floors.floor(0).name == "Ground"
        assert floors.floor(0).spawn_point == (1.0, 2.0, 3.0)
        assert floors.floor(1).spawn_point is None
        assert floors.floor_height == 4.5

    def test_clashing_object_ids_are_rekeyed(self, sample_csv):
        """Test two architectural records sharing an id both survive import, the second one re-keyed."""
        records = [
            {"id": "d1", "type": "door", "floorIndex": 0, "posX": 1.0, "posY": 0.0, "posZ": 0.0},
            {"id": "d1", "type": "door", "floorIndex": 0, "posX": 5.0, "posY": 0.0, "posZ": 0.0},
        ]
        e = LayoutEditor()
        e.load(sample_csv, architectural_objects=records)
        objects = e.scene.list_objects()
        assert len(objects) == 2
        assert objects[0].stable_id == "d1"
        assert objects[0].position[0] == 1.0
        assert objects[1].stable_id != "d1"
        assert objects[1].position[0] == 5.0

    def test_asset_urls_attached(self, lookup_editor):
        """Test known asset references are attached at import."""
        assert lookup_editor.list_items()[0].glb_url == "https://assets.test/rtl-4w.glb"


class TestItemEdits:
    """Test single-item edits."""

    def test_move_keeps_baseline(self, editor):
        """Test moving changes position but never the baseline."""
        rack = editor.list_items()[0]
        editor.move_item(rack.stable_id, (5.0, 6.0, 0.0))
        editor.move_item(rack.stable_id, (7.0, 8.0, 0.0))
        moved = editor.get_item(rack.stable_id)
        assert moved.position == (7.0, 8.0, 0.0)
        assert moved.was_moved
        assert moved.baseline == rack.baseline
        assert editor.selection == (rack.stable_id,)

    def test_rotation_wraps(self, editor):
        """Test rotation about Z is normalised into [0, 360)."""
        rack, shelf = editor.list_items()[:2]
        editor.rotate_item(shelf.stable_id, 300)
        editor.rotate_item(rack.stable_id, -45)
        assert editor.get_item(shelf.stable_id).rotation[2] == pytest.approx(30.0)
        assert editor.get_item(rack.stable_id).rotation[2] == pytest.approx(315.0)

    def test_rotate_many(self, editor):
        """Test a group rotation is a single undoable command."""
        rack, shelf = editor.list_items()[:2]
        editor.rotate_items([rack.stable_id, shelf.stable_id], 90)
        assert editor.get_item(rack.stable_id).rotation[2] == pytest.approx(90.0)
        assert editor.get_item(shelf.stable_id).rotation[2] == pytest.approx(180.0)
        editor.undo()
        assert editor.get_item(shelf.stable_id).rotation[2] == pytest.approx(90.0)

    def test_brand_count_hierarchy(self, editor):
        """Test attribute edits set their change flags."""
        rack = editor.list_items()[0]
        editor.set_brand([rack.stable_id], "brandQ")
        editor.set_count([rack.stable_id], 6)
        editor.set_hierarchy([rack.stable_id], 9)
        edited = editor.get_item(rack.stable_id)
        assert (edited.brand, edited.count, edited.hierarchy) == ("brandQ", 6, 9)
        assert edited.was_brand_changed and edited.was_count_changed and edited.was_hierarchy_changed

    def test_invalid_count(self, editor):
        """Test a count below one is rejected."""
        with pytest.raises(ValueError):
            editor.set_count([editor.list_items()[0].stable_id], 0)

    def test_reset_to_original(self, editor):
        """Test reset restores baseline values and clears flags."""
        rack = editor.list_items()[0]
        editor.move_item(rack.stable_id, (5.0, 6.0, 0.0))
        editor.set_brand([rack.stable_id], "brandQ")
        editor.reset_items([rack.stable_id])
        reset = editor.get_item(rack.stable_id)
        assert reset.position == rack.position
        assert reset.brand == rack.brand
        assert not reset.has_changes
        editor.undo()
        assert editor.get_item(rack.stable_id).brand == "brandQ"

    def test_duplicate(self, editor):
        """Test a duplicate is a new selected item with its own baseline."""
        rack = editor.list_items()[0]
        command = editor.duplicate_item(rack.stable_id)
        duplicate = editor.get_item(command.forward.selection[0])
        assert duplicate.stable_id != rack.stable_id
        assert duplicate.provenance is ItemOrigin.DUPLICATED
        assert duplicate.was_duplicated
        assert duplicate.position == rack.position
        assert editor.selection == (duplicate.stable_id,)
        assert editor.list_items()[-1] == duplicate


class TestDelete:
    """Test hard deletion of items."""

    def test_delete_imported_item(self, editor):
        """Test deleting an imported item keeps it aside for export and clears the selection."""
        shelf = editor.list_items()[1]
        editor.select([shelf.stable_id])
        editor.delete_items([shelf.stable_id])
        assert editor.get_item(shelf.stable_id) is None
        assert editor.scene.get_deleted_item(shelf.stable_id) == shelf
        assert editor.selection == ()

    def test_undo_restores_order(self, editor):
        """Test undoing a delete puts the item back at its place in the list."""
        order = [i.stable_id for i in editor.list_items()]
        editor.delete_items([order[1]])
        editor.undo()
        assert [i.stable_id for i in editor.list_items()] == order
        assert editor.scene.list_deleted_items() == []

    def test_delete_new_item(self, editor):
        """Test a created item leaves no trace when deleted."""
        rack = editor.list_items()[0]
        duplicate_id = editor.duplicate_item(rack.stable_id).forward.selection[0]
        editor.delete_items([duplicate_id])
        assert editor.get_item(duplicate_id) is None
        assert editor.scene.list_deleted_items() == []


class TestSplitMerge:
    """Test splitting and merging fixtures."""

    def test_split_layout(self, editor):
        """Test the pieces are laid out along local X and the original is tombstoned."""
        rack = editor.list_items()[0]
        command = editor.split_item(rack.stable_id, 1)
        left_id, right_id = command.forward.selection
        left, right = editor.get_item(left_id), editor.get_item(right_id)
        assert (left.count, right.count) == (1, 3)
        assert left.position == pytest.approx((0.1, 2.0, 0.0))
        assert right.position == pytest.approx((1.3, 2.0, 0.0))
        assert left.was_split and right.was_split
        assert editor.get_item(rack.stable_id).for_delete
        assert rack.stable_id not in [i.stable_id for i in editor.items_on_floor(0)]
        assert editor.selection == (left_id, right_id)

    def test_split_rotated(self, editor):
        """Test a rotated fixture splits along its own axis."""
        shelf = editor.list_items()[1]
        editor.set_count([shelf.stable_id], 2)
        left_id, right_id = editor.split_item(shelf.stable_id, 1).forward.selection
        assert editor.get_item(left_id).position == pytest.approx((4.5, 1.7, 0.0))
        assert editor.get_item(right_id).position == pytest.approx((4.5, 2.3, 0.0))

    def test_split_undo(self, editor):
        """Test undo removes the pieces and revives the original."""
        rack = editor.list_items()[0]
        editor.split_item(rack.stable_id, 2)
        editor.undo()
        assert len(editor.list_items()) == 4
        assert editor.get_item(rack.stable_id) == rack

    def test_split_invalid_count(self, editor):
        """Test splits leaving an empty piece are rejected."""
        rack = editor.list_items()[0]
        with pytest.raises(ValueError):
            editor.split_item(rack.stable_id, 4)
        with pytest.raises(ValueError):
            editor.split_item(rack.stable_id, 0)

    def test_merge(self, editor):
        """Test a merge sits at the centroid with the summed count."""
        rack = editor.list_items()[0]
        duplicate_id = editor.duplicate_item(rack.stable_id).forward.selection[0]
        editor.move_item(duplicate_id, (3.0, 2.0, 0.0))
        command = editor.merge_items([rack.stable_id, duplicate_id])
        merged = editor.get_item(command.forward.selection[0])
        assert merged.position == pytest.approx((2.0, 2.0, 0.0))
        assert merged.count == 8
        assert merged.was_merged
        assert editor.get_item(rack.stable_id).for_delete
        assert editor.get_item(duplicate_id).for_delete

    def test_merge_requires_same_block_and_floor(self, editor):
        """Test mixed merges are rejected."""
        rack, shelf, upper_rack = editor.list_items()[:3]
        with pytest.raises(ValueError):
            editor.merge_items([rack.stable_id, shelf.stable_id])
        with pytest.raises(ValueError):
            editor.merge_items([rack.stable_id, upper_rack.stable_id])

    def test_merge_single_item_is_noop(self, editor):
        """Test merging fewer than two items does nothing."""
        assert editor.merge_items([editor.list_items()[0].stable_id]).is_noop
        assert not editor.can_undo


@pytest.mark.asyncio
class TestChangeType:
    """Test fixture type changes with asynchronous lookups."""

    async def test_change_type(self, lookup_editor):
        """Test the original is tombstoned and a replacement with the new block is selected."""
        shelf = lookup_editor.list_items()[1]
        command = await lookup_editor.change_type(shelf.stable_id, "RTL-NT")
        replacement = lookup_editor.get_item(command.forward.selection[0])
        assert replacement.stable_id != shelf.stable_id
        assert replacement.block_name == "RTL-NT"
        assert replacement.glb_url == RTL_NT_URL
        assert replacement.was_type_changed
        assert replacement.position == shelf.position
        assert lookup_editor.get_item(shelf.stable_id).for_delete

    async def test_lookup_failure_abandons_edit(self, lookup_editor):
        """Test an unknown block leaves the scene and history untouched."""
        shelf = lookup_editor.list_items()[1]
        result = await lookup_editor.change_type(shelf.stable_id, "NO-SUCH-BLOCK")
        assert result is None
        assert not lookup_editor.can_undo
        assert lookup_editor.get_item(shelf.stable_id) == shelf

    async def test_closed_editor_discards_result(self, lookup_editor):
        """Test a lookup completing after close does not touch the scene."""
        shelf = lookup_editor.list_items()[1]
        lookup_editor.close()
        assert await lookup_editor.change_type(shelf.stable_id, "RTL-NT") is None
        assert len(lookup_editor.list_items()) == 4

    async def test_without_lookup_service(self, editor):
        """Test a session without a lookup service changes type with no asset reference."""
        shelf = editor.list_items()[1]
        command = await editor.change_type(shelf.stable_id, "RTL-NT")
        assert editor.get_item(command.forward.selection[0]).glb_url is None

    async def test_space_tracker_summary(self, lookup_editor):
        """Test counts are grouped by floor, brand and fixture type."""
        summary = await lookup_editor.space_tracker_summary()
        assert summary[(0, "brandX", "4-WAY")] == 4
        assert summary[(0, "brandY", "SHELF")] == 1
        assert summary[(2, "brandZ", "SHELF")] == 1


class TestClipboard:
    """Test copy and paste through the editor."""

    def test_paste_onto_other_floor(self, editor):
        """Test pasted items land after the target floor's highest hierarchy."""
        rack = editor.list_items()[0]
        clipboard = editor.copy([rack.stable_id])
        command = editor.paste(clipboard, PasteOptions(target_floor_index=1, offset_x=1.0))
        pasted = editor.get_item(command.forward.selection[0])
        assert pasted.floor_index == 1
        assert pasted.hierarchy == 2
        assert pasted.position == pytest.approx((2.0, 2.0, 0.0))
        assert pasted.provenance is ItemOrigin.PASTED
        assert pasted.stable_id != rack.stable_id

    def test_paste_undo(self, editor):
        """Test undoing a paste removes everything it added."""
        clipboard = editor.copy([i.stable_id for i in editor.items_on_floor(0)])
        editor.paste(clipboard, PasteOptions(target_floor_index=2))
        assert len(editor.items_on_floor(2)) == 3
        editor.undo()
        assert len(editor.items_on_floor(2)) == 1

    def test_copy_defaults_to_selection(self, editor):
        """Test copy without ids copies the selection."""
        rack = editor.list_items()[0]
        editor.select([rack.stable_id])
        clipboard = editor.copy()
        assert [f.block_name for f in clipboard.fixtures] == ["RTL-4W"]
        editor.select([])
        assert editor.copy() is None

    def test_paste_to_missing_floor(self, editor):
        """Test a paste onto a floor that does not exist is refused."""
        clipboard = editor.copy([editor.list_items()[0].stable_id])
        assert editor.paste(clipboard, PasteOptions(target_floor_index=7)) is None
        assert not editor.can_undo


class TestArchitecturalObjects:
    """Test edits of doors, walls and glazing."""

    @pytest.fixture
    def door(self, editor):
        """A door added to floor 0."""
        command = editor.add_object(PointElement(object_type=ArchObjectType.DOOR, floor_index=0,
                                                 position=(1.0, 0.0, 0.0), width=0.9, height=2.1, depth=0.1))
        return command.forward.selection[0]

    def test_add_and_move(self, editor, door):
        """Test an added object can be moved and the move undone."""
        editor.move_object(door, (2.0, 0.5, 0.0))
        assert editor.scene.get_object(door).position == (2.0, 0.5, 0.0)
        assert editor.scene.get_object(door).was_moved
        editor.undo()
        assert editor.scene.get_object(door).position == (1.0, 0.0, 0.0)

    def test_resize_and_rotate(self, editor, door):
        """Test resizing keeps the baseline and sets the flags."""
        editor.resize_object(door, height=2.4)
        editor.rotate_object(door, (0.0, 0.0, 90.0))
        obj = editor.scene.get_object(door)
        assert (obj.width, obj.height, obj.depth) == (0.9, 2.4, 0.1)
        assert obj.was_resized and obj.was_height_changed and obj.was_rotated
        assert obj.original.height == 2.1

    def test_span_move(self, editor):
        """Test a span moved by its start point keeps its length."""
        command = editor.add_object(SpanElement(object_type=ArchObjectType.GLAZING, floor_index=0,
                                                start_point=(0.0, 0.0, 0.0), end_point=(4.0, 0.0, 0.0)))
        glazing = command.forward.selection[0]
        editor.move_object(glazing, (1.0, 1.0, 0.0))
        obj = editor.scene.get_object(glazing)
        assert obj.start_point == (1.0, 1.0, 0.0)
        assert obj.end_point == (5.0, 1.0, 0.0)
        with pytest.raises(TypeError):
            editor.rotate_object(glazing, (0.0, 0.0, 10.0))

    def test_delete_undo(self, editor, door):
        """Test a deleted object comes back on undo."""
        before = editor.scene.get_object(door)
        editor.delete_object(door)
        assert editor.scene.get_object(door) is None
        editor.undo()
        assert editor.scene.get_object(door) == before

    def test_duplicate_identifier_rejected(self, editor, door):
        """Test an object cannot be added under an identifier already in use."""
        with pytest.raises(ValueError):
            editor.add_object(PointElement(stable_id=door, object_type=ArchObjectType.COLUMN))


class TestFloors:
    """Test floor edits."""

    def test_rename_and_undo(self, editor):
        """Test a floor rename is undoable."""
        editor.rename_floor(1, "Mezzanine")
        assert editor.scene.floors.floor(1).name == "Mezzanine"
        editor.undo()
        assert editor.scene.floors.floor(1).name is None

    def test_reorder(self, editor):
        """Test reordering changes the display order only."""
        editor.reorder_floors([2, 0, 1])
        assert editor.scene.floors.display_order == (2, 0, 1)
        with pytest.raises(ValueError):
            editor.reorder_floors([0, 1])

    def test_delete_floor_hides_items(self, editor):
        """Test a deleted floor's items disappear from floor views until undo."""
        upper = editor.items_on_floor(1)[0]
        editor.select([upper.stable_id])
        editor.delete_floor(1)
        assert editor.scene.floors.display_order == (0, 2)
        assert editor.items_on_floor(1) == []
        assert editor.selection == ()
        editor.undo()
        assert editor.items_on_floor(1) == [upper]
        assert editor.selection == (upper.stable_id,)

    def test_last_floor_cannot_be_deleted(self):
        """Test deleting the only floor is a no-op."""
        e = LayoutEditor()
        e.load("RTL-4W,0,0,0,0,1,1,0,0,0,0,b,1,1\n", floor_files=["dg2n-3d-floor-0.glb"])
        assert e.delete_floor(0).is_noop
        assert e.scene.floors.display_order == (0,)

    def test_plate_brand(self, editor):
        """Test plate brand overrides apply to floor views and undo."""
        editor.floor_plate_rows = [
            ["Floor Index", "Surface", "Brand", "", "", "", "", "", "", "", "Mesh", "Area"],
            ["0", "S1", "brandX", "", "", "", "", "", "", "", "plate-mesh-1", "12.5"],
        ]
        editor.set_plate_brand("plate-mesh-1", "brandY")
        assert [p.brand for p in editor.floor_plates(0)] == ["brandY"]
        editor.undo()
        assert [p.brand for p in editor.floor_plates(0)] == ["brandX"]

    def test_brands_on_floor(self, editor):
        """Test brand list excludes tombstoned items."""
        assert editor.brands_on_floor(0) == ["brandX", "brandY"]
        shelf = editor.list_items()[1]
        editor.set_count([shelf.stable_id], 2)
        editor.split_item(shelf.stable_id, 1)
        assert editor.brands_on_floor(0) == ["brandX", "brandY"]
