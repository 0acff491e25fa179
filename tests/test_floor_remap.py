"""
Tests for floor index remapping.
"""

import pytest

from layout_editor.floor_remap import (
    compute_mapping, apply_to_items, apply_to_objects, apply_to_floor_map, apply_to_file_names,
    remap_floor_name, floor_index_from_name,
)
from layout_editor.layout_entities import PlacedItem, PointElement


def _items():
    return [PlacedItem(stable_id=f"item-{i}", block_name="RTL-4W", floor_index=i) for i in range(3)]


class TestComputeMapping:
    """Test mapping computation from a display order."""

    def test_identity_order_has_no_mapping(self):
        """Test an untouched order yields None."""
        assert compute_mapping((0, 1, 2), 3) is None
        assert compute_mapping((), 0) is None

    def test_deleted_floor(self):
        """Test deleting floor 1 of three maps 0 to 0 and 2 to 1."""
        assert compute_mapping((0, 2), 3) == {0: 0, 2: 1}

    def test_reorder(self):
        """Test a reorder maps each original index to its display position."""
        assert compute_mapping((2, 0, 1), 3) == {2: 0, 0: 1, 1: 2}

    def test_duplicates_rejected(self):
        """Test an order naming a floor twice is an error."""
        with pytest.raises(ValueError):
            compute_mapping((0, 0, 1), 3)


class TestApplyMapping:
    """Test applying a mapping to floor-keyed collections."""

    def test_items_follow_mapping(self):
        """Test surviving items take their new index and the rest are dropped."""
        items = _items()
        mapping = compute_mapping((0, 2), 3)
        remapped = apply_to_items(mapping, items)
        assert [(i.stable_id, i.floor_index) for i in remapped] == [("item-0", 0), ("item-2", 1)]
        for item in remapped:
            old = next(i for i in items if i.stable_id == item.stable_id)
            assert item.floor_index == mapping[old.floor_index]

    def test_inputs_untouched(self):
        """Test the input collection is not modified."""
        items = _items()
        apply_to_items({0: 1, 1: 0}, items)
        assert [i.floor_index for i in items] == [0, 1, 2]

    def test_objects(self):
        """Test architectural objects are remapped the same way."""
        objects = [PointElement(stable_id="door", floor_index=2), PointElement(stable_id="col", floor_index=1)]
        remapped = apply_to_objects({0: 0, 2: 1}, objects)
        assert [(o.stable_id, o.floor_index) for o in remapped] == [("door", 1)]

    def test_floor_map(self):
        """Test floor-keyed maps are rekeyed."""
        assert apply_to_floor_map({0: 0, 2: 1}, {0: "Ground", 1: "First", 2: "Second"}) == {0: "Ground", 1: "Second"}


class TestFloorNames:
    """Test floor tokens embedded in file names."""

    def test_renumber(self):
        """Test the floor token is renumbered and the rest kept."""
        assert remap_floor_name("dg2n-3d-floor-2.glb", {0: 0, 2: 1}) == "dg2n-3d-floor-1.glb"
        assert remap_floor_name("store_floor_0_walls.glb", {0: 3}) == "store_floor_3_walls.glb"

    def test_deleted_floor_name(self):
        """Test a file of a deleted floor maps to None."""
        assert remap_floor_name("dg2n-3d-floor-1.glb", {0: 0, 2: 1}) is None

    def test_name_without_token(self):
        """Test a name without a floor token is returned unchanged."""
        assert remap_floor_name("store-config.json", {0: 1}) == "store-config.json"

    def test_last_token_wins(self):
        """Test only the last floor token is considered."""
        assert floor_index_from_name("floor-9/plan-floor-2.glb") == 2
        assert floor_index_from_name("plan.glb") is None

    def test_file_names(self):
        """Test a list of names is renumbered, dropping deleted floors."""
        names = ["a-floor-0.glb", "a-floor-1.glb", "a-floor-2.glb"]
        assert apply_to_file_names({0: 0, 2: 1}, names) == ["a-floor-0.glb", "a-floor-1.glb"]
