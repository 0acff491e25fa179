"""
reconciliation.py

Re-derives the location file from the rows originally imported and the current item set.

Rows are matched to items by geometric fingerprint: the item's original block name and its
original position, rounded to the precision the file stores. Because the fingerprint is
computed from the frozen baseline, it keeps matching after any number of edits.

For each original row:
  - a matched live item overwrites the row's editable columns with its current values;
  - a matched hard-deleted or tombstoned item drops the row;
  - an unmatched row of a migrated-out category is dropped;
  - any other unmatched row, including malformed ones, is kept verbatim.
Rows are then appended for every newly created, non-tombstoned item.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .editor_common import (
    COL_BLOCK_NAME, COL_FLOOR_INDEX, COL_POS_X, COL_POS_Y, COL_POS_Z, COL_ROT_X, COL_ROT_Y, COL_ROT_Z,
    COL_BRAND, COL_COUNT, COL_HIERARCHY, COL_FIXTURE_ID,
    HORIZONTAL_DECIMALS, VERTICAL_DECIMALS, DEFAULT_MIGRATED_CATEGORIES,
    format_horizontal, format_vertical, format_rotation,
)
from .layout_entities import PlacedItem
from .location_csv import Row, ParsedRow, parse_location_row, row_from_item, pad_row, pad_header, is_location_header

logger = logging.getLogger(__name__)

Fingerprint = Tuple[str, float, float, float]


def fingerprint(block_name: str, x: float, y: float, z: float) -> Fingerprint:
    return (
        block_name.strip(),
        round(x, HORIZONTAL_DECIMALS),
        round(y, HORIZONTAL_DECIMALS),
        round(z, VERTICAL_DECIMALS),
    )


def item_fingerprint(item: PlacedItem) -> Fingerprint:
    """Fingerprint of the item's baseline, never of its current values."""
    b = item.baseline
    return fingerprint(b.block_name, b.position[0], b.position[1], b.position[2])


def row_fingerprint(parsed: ParsedRow) -> Fingerprint:
    return fingerprint(parsed.block_name, *parsed.position)


@dataclass
class ReconciliationReport:
    updated: int = 0
    unchanged: int = 0
    dropped_deleted: int = 0
    dropped_tombstoned: int = 0
    dropped_migrated: int = 0
    dropped_floor: int = 0
    preserved: int = 0
    malformed: int = 0
    appended: int = 0

    def summary(self) -> str:
        return (f"{self.updated} updated, {self.unchanged} unchanged, "
                f"{self.dropped_deleted + self.dropped_tombstoned + self.dropped_migrated + self.dropped_floor} dropped, "
                f"{self.preserved + self.malformed} preserved, {self.appended} appended")


# Candidate states in the fingerprint lookup
_LIVE = "live"
_DELETED = "deleted"
_TOMBSTONED = "tombstoned"


class Reconciler:
    """
    One reconciliation pass. Construct with the current state, then call run() with the
    original rows. Inputs are never modified.
    """
    def __init__(self, current_items: Iterable[PlacedItem], deleted_items: Iterable[PlacedItem] = (),
                 mapping: Optional[Mapping[int, int]] = None,
                 is_migrated: Optional[Callable[[str], bool]] = None):
        self.current_items: Tuple[PlacedItem, ...] = tuple(current_items)
        self.deleted_items: Tuple[PlacedItem, ...] = tuple(deleted_items)
        self.mapping = mapping
        if is_migrated is None:
            is_migrated = lambda name: name.strip().upper() in DEFAULT_MIGRATED_CATEGORIES
        self.is_migrated = is_migrated
        self.report = ReconciliationReport()
        self._lookup = self._build_lookup()

    def _build_lookup(self) -> Dict[Fingerprint, Deque[Tuple[str, PlacedItem]]]:
        """
        Fingerprint -> queue of imported candidates. Each row consumes one candidate, so
        identical duplicate rows pair up with identical duplicate items. Live items are
        queued before deleted and tombstoned ones. Newly created items never enter the lookup.
        """
        lookup: Dict[Fingerprint, Deque[Tuple[str, PlacedItem]]] = {}
        live = [i for i in self.current_items if not i.is_new and not i.for_delete]
        tombstoned = [i for i in self.current_items if not i.is_new and i.for_delete]
        for state, group in ((_LIVE, live), (_DELETED, self.deleted_items), (_TOMBSTONED, tombstoned)):
            for item in group:
                if state == _DELETED and item.is_new:
                    continue
                lookup.setdefault(item_fingerprint(item), deque()).append((state, item))
        return lookup

    def _target_floor(self, floor_index: int) -> Optional[int]:
        if self.mapping is None:
            return floor_index
        return self.mapping.get(floor_index)

    def run(self, original_rows: Sequence[Sequence[str]]) -> List[Row]:
        output: List[Row] = []
        for index, row in enumerate(original_rows):
            if index == 0 and is_location_header(row):
                output.append(pad_header(row))
                continue
            result = self._reconcile_row(list(row))
            if result is not None:
                output.append(result)
        output.extend(self._appended_rows())
        logger.info(f"Reconciled location rows: {self.report.summary()}")
        return output

    def _reconcile_row(self, row: Row) -> Optional[Row]:
        parsed = parse_location_row(row)
        if parsed is None:
            logger.warning(f"Preserving malformed location row verbatim: {row}")
            self.report.malformed += 1
            return row

        target_floor = self._target_floor(parsed.floor_index)
        if target_floor is None:
            logger.debug(f"Dropping row on deleted floor {parsed.floor_index}: {parsed.block_name}")
            self.report.dropped_floor += 1
            return None

        key = row_fingerprint(parsed)
        candidates = self._lookup.get(key)
        if not candidates:
            if self.is_migrated(parsed.block_name):
                logger.debug(f"Dropping migrated-out row: {parsed.block_name}")
                self.report.dropped_migrated += 1
                return None
            self.report.preserved += 1
            if target_floor != parsed.floor_index:
                row = list(row)
                row[COL_FLOOR_INDEX] = str(target_floor)
            return row

        state, item = candidates.popleft()
        if state == _DELETED:
            logger.debug(f"Dropping row of deleted item {item.stable_id}")
            self.report.dropped_deleted += 1
            return None
        if state == _TOMBSTONED:
            logger.debug(f"Dropping row superseded by item {item.stable_id}")
            self.report.dropped_tombstoned += 1
            return None
        return self._updated_row(row, parsed, item)

    def _updated_row(self, row: Row, parsed: ParsedRow, item: PlacedItem) -> Row:
        """Overwrites only the columns whose value differs, so untouched rows stay byte-identical."""
        new_row = pad_row(row)
        item_floor = self._target_floor(item.floor_index)
        if item_floor is None:
            item_floor = parsed.floor_index
        changes = []

        def put(column: int, differs: bool, text: str, label: str) -> None:
            if differs:
                new_row[column] = text
                changes.append(label)

        put(COL_BLOCK_NAME, item.block_name != parsed.block_name, item.block_name, "block")
        put(COL_FLOOR_INDEX, item_floor != parsed.floor_index, str(item_floor), "floor")
        put(COL_POS_X, item.position[0] != parsed.position[0], format_horizontal(item.position[0]), "x")
        put(COL_POS_Y, item.position[1] != parsed.position[1], format_horizontal(item.position[1]), "y")
        put(COL_POS_Z, item.position[2] != parsed.position[2], format_vertical(item.position[2]), "z")
        for column, current, read in zip((COL_ROT_X, COL_ROT_Y, COL_ROT_Z), item.rotation, parsed.rotation):
            put(column, current != read, format_rotation(current), "rotation")
        put(COL_BRAND, item.brand != parsed.brand, item.brand, "brand")
        put(COL_COUNT, item.count != parsed.count, str(item.count), "count")
        put(COL_HIERARCHY, item.hierarchy != parsed.hierarchy, str(item.hierarchy), "hierarchy")
        new_row[COL_FIXTURE_ID] = item.external_id or ""

        if changes:
            logger.debug(f"Updated row of item {item.stable_id}: {', '.join(sorted(set(changes)))}")
            self.report.updated += 1
        else:
            self.report.unchanged += 1
        return new_row

    def _appended_rows(self) -> List[Row]:
        rows = []
        for item in self.current_items:
            if not item.is_new or item.for_delete:
                continue
            target_floor = self._target_floor(item.floor_index)
            if target_floor is None:
                continue
            row = row_from_item(item)
            row[COL_FLOOR_INDEX] = str(target_floor)
            rows.append(row)
            self.report.appended += 1
        return rows


def reconcile(original_rows: Sequence[Sequence[str]], current_items: Iterable[PlacedItem],
              deleted_items: Iterable[PlacedItem] = (), mapping: Optional[Mapping[int, int]] = None,
              is_migrated: Optional[Callable[[str], bool]] = None) -> List[Row]:
    """
    Regenerates location rows from the original rows and the current items.

    Args:
        original_rows: Rows as read from the imported file, optionally starting with the header.
        current_items: Every item in the scene, tombstoned ones included.
        deleted_items: Hard-deleted imported items; their rows are dropped.
        mapping: Floor remap in effect, or None.
        is_migrated: Predicate naming block categories that now live in another artifact.

    Returns:
        The output rows (header first if the input had one).
    """
    return Reconciler(current_items, deleted_items, mapping, is_migrated).run(original_rows)
