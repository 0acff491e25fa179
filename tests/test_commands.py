"""
Tests for the command engine: patches, commands and the bounded history.
"""

import logging

import pytest

from layout_editor import EditorSettings, LayoutEditor
from layout_editor.commands import Command, CommandHistory, Patch
from layout_editor.layout_entities import PlacedItem, FloorInfo, FloorLayout
from layout_editor.layout_scene import LayoutScene


def _item(stable_id, x=0.0):
    return PlacedItem(stable_id=stable_id, block_name="RTL-4W", position=(x, 0.0, 0.0), brand="brandX")


@pytest.fixture
def scene():
    """Scene with one floor and two items."""
    s = LayoutScene(FloorLayout.from_floors([FloorInfo(0, "floor-0.glb")]))
    s.apply_patch(Patch(put_items=(_item("a"), _item("b", 1.0))))
    return s


@pytest.fixture
def history(scene):
    """History bound to the scene fixture."""
    return CommandHistory(scene)


def _move(scene, stable_id, x):
    before = scene.get_item(stable_id)
    after = before.moved_to((x, 0.0, 0.0))
    return Command(
        name=f"Move {stable_id}",
        forward=Patch(update_items=(after,), selection=(stable_id,)),
        backward=Patch(update_items=(before,), selection=scene.selection),
    )


def _state(scene):
    return (tuple(scene.list_items()), tuple(scene.list_deleted_items()), tuple(scene.list_objects()),
            scene.floors, scene.plate_brands, scene.selection)


class TestPatch:
    """Test patch values."""

    def test_empty_patch(self):
        """Test a default patch is empty."""
        assert Patch().is_empty
        assert not Patch(selection=()).is_empty

    def test_describe_lists_touched_ids(self):
        """Test describe names the entries a patch touches."""
        description = Patch(put_items=(_item("x"),), drop_items=("y",)).describe()
        assert description["put_items"] == ["x"]
        assert description["drop_items"] == ["y"]
        assert description["selection"] is None

    def test_update_of_vanished_item_is_skipped(self, scene):
        """Test an update aimed at a missing item does not resurrect it."""
        scene.apply_patch(Patch(update_items=(_item("ghost"),)))
        assert scene.get_item("ghost") is None

    def test_selection_drops_unknown_ids(self, scene):
        """Test selection never points at something that is not in the scene."""
        scene.apply_patch(Patch(selection=("a", "missing")))
        assert scene.selection == ("a",)
        scene.apply_patch(Patch(drop_items=("a",)))
        assert scene.selection == ()


class TestInverseLaw:
    """Test undo restores exactly what apply changed."""

    def test_revert_after_apply(self, scene, history):
        """Test undo returns every touched field, selection included, to its prior value."""
        before = _state(scene)
        history.execute(_move(scene, "a", 5.0))
        assert scene.get_item("a").position == (5.0, 0.0, 0.0)
        assert scene.selection == ("a",)
        history.undo()
        assert _state(scene) == before

    def test_redo_after_undo(self, scene, history):
        """Test execute, execute, undo, redo equals execute, execute."""
        history.execute(_move(scene, "a", 5.0))
        history.execute(_move(scene, "b", 7.0))
        expected = _state(scene)
        history.undo()
        history.redo()
        assert _state(scene) == expected

    def test_new_edit_clears_redo(self, scene, history):
        """Test executing after an undo empties the redo stack."""
        history.execute(_move(scene, "a", 5.0))
        history.undo()
        assert history.can_redo
        history.execute(_move(scene, "b", 7.0))
        assert not history.can_redo
        assert history.undone == ()


class TestHistory:
    """Test history bookkeeping."""

    def test_empty_undo_and_redo(self, history):
        """Test undo and redo with nothing recorded return None."""
        assert history.undo() is None
        assert history.redo() is None
        assert not history.can_undo

    def test_depth_is_bounded(self, scene):
        """Test the oldest command is discarded once the bound is exceeded."""
        history = CommandHistory(scene, max_depth=3)
        for x in range(5):
            history.execute(_move(scene, "a", float(x)))
        assert len(history.done) == 3
        assert [c.name for c in history.done] == ["Move a"] * 3
        for _ in range(3):
            history.undo()
        assert history.undo() is None
        # The two oldest moves are beyond reach
        assert scene.get_item("a").position == (1.0, 0.0, 0.0)

    def test_execute_logs_touched_ids(self, scene, history, caplog):
        """Test executing a command logs what its forward patch touches."""
        with caplog.at_level(logging.DEBUG, logger="layout_editor.commands"):
            history.execute(_move(scene, "a", 5.0))
        assert "Move a" in caplog.text
        assert "'update_items': ['a']" in caplog.text

    def test_invalid_depth(self, scene):
        """Test a depth below one is rejected."""
        with pytest.raises(ValueError):
            CommandHistory(scene, max_depth=0)

    def test_clear(self, scene, history):
        """Test clear empties both stacks."""
        history.execute(_move(scene, "a", 1.0))
        history.execute(_move(scene, "a", 2.0))
        history.undo()
        history.clear()
        assert not history.can_undo and not history.can_redo

    def test_noop_command(self, scene):
        """Test a no-op command leaves the scene untouched."""
        before = _state(scene)
        command = Command.noop("Nothing")
        assert command.is_noop
        command.apply(scene)
        command.revert(scene)
        assert _state(scene) == before


class TestEditorHistory:
    """Test history as driven through the editor."""

    def test_duplicate_undo_redo(self, editor):
        """Test undoing a duplicate restores the list and redo brings back the same identifier."""
        editor.load("RACK-A,0,0,0,0,1.000000000000,2.000000000000,0.0,0.0,0.0,0.0,brandX,1,1\n")
        original = editor.list_items()
        assert len(original) == 1

        command = editor.duplicate_item(original[0].stable_id)
        duplicate_id = command.forward.selection[0]
        assert len(editor.list_items()) == 2

        editor.undo()
        assert editor.list_items() == original

        editor.redo()
        items = editor.list_items()
        assert len(items) == 2
        assert items[1].stable_id == duplicate_id

    def test_missing_target_is_not_recorded(self, editor):
        """Test an edit whose target does not exist leaves history untouched."""
        command = editor.move_item("no-such-item", (1.0, 1.0, 0.0))
        assert command.is_noop
        assert not editor.can_undo

    def test_undo_after_target_vanished(self, editor):
        """Test undoing an edit whose target was removed meanwhile does not fail."""
        rack = editor.list_items()[0]
        editor.move_item(rack.stable_id, (9.0, 9.0, 0.0))
        move = editor.history.done[-1]
        editor.delete_items([rack.stable_id])
        move.revert(editor.scene)
        assert editor.get_item(rack.stable_id) is None

    def test_history_depth_from_settings(self, sample_csv):
        """Test the editor history uses the configured depth."""
        e = LayoutEditor(EditorSettings(history_depth=2))
        e.load(sample_csv)
        rack = e.list_items()[0]
        for x in range(4):
            e.move_item(rack.stable_id, (float(x), 0.0, 0.0))
        assert len(e.history.done) == 2
