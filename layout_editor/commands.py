"""
commands.py

The command engine. A command is a plain data record: a display name plus a forward and a
backward Patch of immutable values. Applying a command hands its forward patch to the scene,
reverting hands over the backward patch. Because patches hold frozen entities captured when
the command was built, undo never recomputes anything from live state.

CommandHistory keeps the bounded done/undone stacks.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .identity import StableId
from .layout_entities import PlacedItem, ArchElement, FloorLayout
from .layout_scene import LayoutScene
from .editor_common import DEFAULT_HISTORY_DEPTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Patch:
    """
    A set of value changes to a LayoutScene.

    put_* entries are inserted or replaced, update_* entries only replace an existing entry
    (and are skipped if the target vanished), drop_* entries are removed. *_order, floors and
    selection replace the corresponding scene value when not None.
    """
    put_items: Tuple[PlacedItem, ...] = ()
    update_items: Tuple[PlacedItem, ...] = ()
    drop_items: Tuple[StableId, ...] = ()
    item_order: Optional[Tuple[StableId, ...]] = None
    put_deleted: Tuple[PlacedItem, ...] = ()
    drop_deleted: Tuple[StableId, ...] = ()
    put_objects: Tuple[ArchElement, ...] = ()
    update_objects: Tuple[ArchElement, ...] = ()
    drop_objects: Tuple[StableId, ...] = ()
    object_order: Optional[Tuple[StableId, ...]] = None
    floors: Optional[FloorLayout] = None
    plate_brands: Tuple[Tuple[str, Optional[str]], ...] = ()
    selection: Optional[Tuple[StableId, ...]] = None

    @property
    def is_empty(self) -> bool:
        return self == Patch()

    def describe(self) -> Dict[str, Any]:
        """Summary of what the patch touches, for logging and inspection."""
        return {
            "put_items": [i.stable_id for i in self.put_items],
            "update_items": [i.stable_id for i in self.update_items],
            "drop_items": list(self.drop_items),
            "put_deleted": [i.stable_id for i in self.put_deleted],
            "drop_deleted": list(self.drop_deleted),
            "put_objects": [o.stable_id for o in self.put_objects],
            "update_objects": [o.stable_id for o in self.update_objects],
            "drop_objects": list(self.drop_objects),
            "reorders_items": self.item_order is not None,
            "reorders_objects": self.object_order is not None,
            "floors": self.floors is not None,
            "plate_brands": [k for k, _ in self.plate_brands],
            "selection": None if self.selection is None else list(self.selection),
        }


@dataclass(frozen=True)
class Command:
    """A reversible edit."""
    name: str
    forward: Patch
    backward: Patch

    @staticmethod
    def noop(name: str) -> "Command":
        """A command whose precondition failed at construction time: applies and reverts as nothing."""
        return Command(name=name, forward=Patch(), backward=Patch())

    @property
    def is_noop(self) -> bool:
        return self.forward.is_empty and self.backward.is_empty

    def apply(self, scene: LayoutScene) -> None:
        scene.apply_patch(self.forward)

    def revert(self, scene: LayoutScene) -> None:
        scene.apply_patch(self.backward)


class CommandHistory:
    """
    Executes commands against a scene and keeps do/undo history.

    The done stack is bounded: once it exceeds max_depth the oldest entry is discarded.
    A new execute() clears the undone stack.
    """
    def __init__(self, scene: LayoutScene, max_depth: int = DEFAULT_HISTORY_DEPTH):
        if max_depth < 1:
            raise ValueError("History depth must be at least 1.")
        self._scene = scene
        self.max_depth = max_depth
        self._done: List[Command] = []
        self._undone: List[Command] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._done)

    @property
    def can_redo(self) -> bool:
        return bool(self._undone)

    @property
    def done(self) -> Tuple[Command, ...]:
        return tuple(self._done)

    @property
    def undone(self) -> Tuple[Command, ...]:
        return tuple(self._undone)

    def execute(self, command: Command) -> None:
        logger.debug(f"Execute: {command.name} {command.forward.describe()}")
        command.apply(self._scene)
        self._done.append(command)
        if len(self._done) > self.max_depth:
            dropped = self._done.pop(0)
            logger.debug(f"History full, discarding oldest command '{dropped.name}'")
        self._undone.clear()

    def undo(self) -> Optional[Command]:
        """Reverts the most recent command. Returns it, or None if there was nothing to undo."""
        if not self._done:
            return None
        command = self._done.pop()
        logger.debug(f"Undo: {command.name}")
        command.revert(self._scene)
        self._undone.append(command)
        return command

    def redo(self) -> Optional[Command]:
        """Re-applies the most recently undone command. Returns it, or None."""
        if not self._undone:
            return None
        command = self._undone.pop()
        logger.debug(f"Redo: {command.name}")
        command.apply(self._scene)
        self._done.append(command)
        return command

    def clear(self) -> None:
        self._done.clear()
        self._undone.clear()
