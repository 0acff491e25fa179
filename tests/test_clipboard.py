"""
Tests for clipboard capture, paste transformation and paste validation.
"""

import json

import pytest

from layout_editor import LayoutFormatError, ItemOrigin
from layout_editor.clipboard import (
    ClipboardData, PasteOptions, copy, transform_for_paste, validate_paste, CLIPBOARD_VERSION,
)
from layout_editor.identity import IdentityManager
from layout_editor.layout_entities import PlacedItem, PointElement, SpanElement, ArchObjectType


def _item(stable_id, floor_index=0, x=0.0, hierarchy=1, brand="brandX", block="RTL-4W", origin=(0.0, 0.0)):
    return PlacedItem(stable_id=stable_id, block_name=block, floor_index=floor_index, position=(x, 1.0, 0.0),
                      origin=origin, brand=brand, hierarchy=hierarchy)


@pytest.fixture
def clipboard():
    """Clipboard holding two fixtures and a door from floor 0."""
    door = PointElement(stable_id="door", object_type=ArchObjectType.DOOR, floor_index=0,
                        position=(5.0, 0.0, 0.0), was_moved=True)
    return copy([_item("a", x=1.0), _item("b", x=2.0, brand="brandY")], [door], source_store_id="store-1")


class TestCopy:
    """Test clipboard capture."""

    def test_empty_selection(self):
        """Test nothing to copy yields None."""
        assert copy([]) is None

    def test_tombstones_skipped(self):
        """Test retired items are not copied."""
        assert copy([_item("a").tombstoned()]) is None

    def test_contents(self, clipboard):
        """Test fixtures and objects are captured without identifiers."""
        assert clipboard.total_items == 3
        assert clipboard.brands == ["brandX", "brandY"]
        assert clipboard.source_floors == [0]
        record = clipboard.architectural_objects[0]
        assert "id" not in record
        assert "wasMoved" not in record
        assert not any(k.startswith("original") for k in record)
        assert record["type"] == "door"

    def test_json_round_trip(self, clipboard):
        """Test the JSON form carries metadata and decodes to the same content."""
        text = clipboard.to_json()
        document = json.loads(text)
        assert document["version"] == CLIPBOARD_VERSION
        assert document["metadata"]["totalItems"] == 3
        assert document["metadata"]["fixtureTypes"] == ["RTL-4W"]
        restored = ClipboardData.from_json(text)
        assert restored.fixtures == clipboard.fixtures
        assert restored.source_store_id == "store-1"

    def test_bad_json(self):
        """Test malformed clipboard text raises LayoutFormatError."""
        with pytest.raises(LayoutFormatError):
            ClipboardData.from_json("not json")
        with pytest.raises(LayoutFormatError):
            ClipboardData.from_json(json.dumps({"fixtures": [{"block_name": "X"}]}))


class TestTransform:
    """Test paste transformation."""

    def test_fresh_identifiers_and_hierarchy(self, clipboard):
        """Test pasted fixtures get new ids and continue the target floor's numbering."""
        existing = [_item("a", floor_index=1, hierarchy=4), _item("z", floor_index=1, hierarchy=7).tombstoned()]
        result = transform_for_paste(clipboard, PasteOptions(target_floor_index=1), existing, IdentityManager(),
                                     existing_ids={"a", "b", "door"})
        assert [i.hierarchy for i in result.items] == [5, 6]
        assert all(i.floor_index == 1 for i in result.items)
        assert not set(result.ids) & {"a", "b", "door", "z"}
        assert len(set(result.ids)) == 3

    def test_pasted_items_are_new(self, clipboard):
        """Test pasted fixtures carry paste provenance and a baseline of their pasted state."""
        result = transform_for_paste(clipboard, PasteOptions(target_floor_index=0, offset_x=1.0, offset_z=0.5),
                                     [], IdentityManager())
        first = result.items[0]
        assert first.provenance is ItemOrigin.PASTED
        assert first.was_duplicated
        assert first.position == (2.0, 1.0, 0.5)
        assert first.baseline.position == first.position

    def test_origin_shift(self, clipboard):
        """Test fixtures are shifted by the difference of floor origins."""
        existing = [_item("t", floor_index=2, origin=(10.0, 20.0))]
        result = transform_for_paste(clipboard, PasteOptions(target_floor_index=2), existing, IdentityManager())
        assert result.items[0].position == (11.0, 21.0, 0.0)
        assert result.items[0].origin == (10.0, 20.0)

    def test_objects_translated(self, clipboard):
        """Test architectural objects are offset and rebased."""
        result = transform_for_paste(clipboard, PasteOptions(target_floor_index=3, offset_y=2.0), [],
                                     IdentityManager())
        door = result.objects[0]
        assert door.position == (5.0, 2.0, 0.0)
        assert door.floor_index == 3
        assert door.original.position == (5.0, 2.0, 0.0)
        assert not door.was_moved

    def test_span_objects(self):
        """Test span elements translate both end points."""
        wall = SpanElement(stable_id="w", object_type=ArchObjectType.PARTITION, start_point=(0.0, 0.0, 0.0),
                           end_point=(1.0, 0.0, 0.0))
        data = copy([], [wall])
        result = transform_for_paste(data, PasteOptions(target_floor_index=0, offset_x=1.0), [], IdentityManager())
        assert result.objects[0].start_point == (1.0, 0.0, 0.0)
        assert result.objects[0].end_point == (2.0, 0.0, 0.0)

    def test_floor_mapping(self):
        """Test per-floor targets override the default floor."""
        data = copy([_item("a", floor_index=0), _item("b", floor_index=1)])
        options = PasteOptions(target_floor_index=2, floor_mapping={1: 0})
        result = transform_for_paste(data, options, [], IdentityManager())
        assert [i.floor_index for i in result.items] == [2, 0]


class TestValidate:
    """Test paste validation."""

    def test_missing_target_floor(self, clipboard):
        """Test a target floor that does not exist is an error."""
        validation = validate_paste(clipboard, 5, [0, 1])
        assert not validation.is_valid
        assert validation.errors[0].kind == "no_target_floor"

    def test_clean_paste(self, clipboard):
        """Test a paste onto a known floor with known brands has no issues."""
        validation = validate_paste(clipboard, 0, [0, 1], known_brands={"brandX", "brandY"},
                                    known_fixture_types={"RTL-4W"})
        assert validation.is_valid
        assert validation.warnings == ()

    def test_warnings(self, clipboard):
        """Test floor, brand and type mismatches are warnings, not errors."""
        validation = validate_paste(clipboard, 1, [1, 2], known_brands={"brandX"}, known_fixture_types=set())
        assert validation.is_valid
        kinds = {w.kind: w.affected_items for w in validation.warnings}
        assert kinds == {"floor_mismatch": 3, "brand_missing": 1, "fixture_type_missing": 2}
