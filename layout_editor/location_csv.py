"""
location_csv.py

Reading and writing of the flat location-record file and the floor-plate file.

Rows are handled as lists of strings so that anything the editor does not understand can be
written back exactly as read. Tokenizing is left to the csv module.
"""

import io
import csv
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from .editor_common import (
    COL_BLOCK_NAME, COL_FLOOR_INDEX, COL_ORIGIN_X, COL_ORIGIN_Y, COL_POS_X, COL_POS_Y, COL_POS_Z,
    COL_ROT_X, COL_ROT_Y, COL_ROT_Z, COL_BRAND, COL_COUNT, COL_HIERARCHY, COL_FIXTURE_ID,
    MIN_LOCATION_COLUMNS, LOCATION_COLUMNS, LOCATION_HEADER, FIXTURE_ID_HEADER, MIN_PLATE_COLUMNS,
    PLATE_COL_FLOOR_INDEX, PLATE_COL_BRAND,
    format_horizontal, format_vertical, format_rotation,
)
from .identity import IdentityManager
from .layout_entities import PlacedItem, FloorPlate

logger = logging.getLogger(__name__)

Row = List[str]

DEFAULT_BRAND = "unknown"


# --- Tokenizing ---

def parse_rows(text: str) -> List[Row]:
    """Splits CSV text into rows. Blank lines are dropped."""
    reader = csv.reader(io.StringIO(text))
    return [row for row in reader if row]


def format_rows(rows: Sequence[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def is_location_header(row: Sequence[str]) -> bool:
    return bool(row) and row[0].strip().lower() == LOCATION_HEADER[0].lower()


def pad_header(header: Sequence[str]) -> Row:
    """Returns the header extended so that column 14 is the external identifier column."""
    padded = list(header)
    if len(padded) < COL_FIXTURE_ID:
        padded.extend(LOCATION_HEADER[len(padded):COL_FIXTURE_ID])
    if len(padded) == COL_FIXTURE_ID:
        padded.append(FIXTURE_ID_HEADER)
    return padded


def pad_row(row: Sequence[str]) -> Row:
    padded = list(row)
    while len(padded) < LOCATION_COLUMNS:
        padded.append("")
    return padded


# --- Location Records ---

@dataclass(frozen=True)
class ParsedRow:
    """The fields of a location row that take part in matching and editing."""
    block_name: str
    floor_index: int
    origin: Tuple[float, float]
    position: Tuple[float, float, float]
    rotation: Tuple[float, float, float]
    brand: str
    count: int
    hierarchy: int
    external_id: Optional[str]


def _int_or(value: str, default: int) -> int:
    try:
        return int(float(value))
    except ValueError:
        return default


def parse_location_row(row: Sequence[str]) -> Optional[ParsedRow]:
    """
    Parses one data row.

    Returns:
        ParsedRow, or None if the row has too few columns or an unparsable floor index,
        position or rotation. Brand, count and hierarchy fall back to defaults.
    """
    if len(row) < MIN_LOCATION_COLUMNS:
        return None
    try:
        floor_index = int(float(row[COL_FLOOR_INDEX]))
        origin = (float(row[COL_ORIGIN_X] or 0.0), float(row[COL_ORIGIN_Y] or 0.0))
        position = (float(row[COL_POS_X]), float(row[COL_POS_Y]), float(row[COL_POS_Z]))
        rotation = (float(row[COL_ROT_X]), float(row[COL_ROT_Y]), float(row[COL_ROT_Z]))
    except ValueError:
        return None
    if floor_index < 0:
        return None
    external_id = row[COL_FIXTURE_ID].strip() if len(row) > COL_FIXTURE_ID else ""
    return ParsedRow(
        block_name=row[COL_BLOCK_NAME].strip(),
        floor_index=floor_index,
        origin=origin,
        position=position,
        rotation=rotation,
        brand=row[COL_BRAND].strip() or DEFAULT_BRAND,
        count=_int_or(row[COL_COUNT].strip(), 1) or 1,
        hierarchy=_int_or(row[COL_HIERARCHY].strip(), 0),
        external_id=external_id or None,
    )


def item_from_row(row: Sequence[str], identity: IdentityManager,
                  asset_urls: Optional[Mapping[str, str]] = None) -> Optional[PlacedItem]:
    parsed = parse_location_row(row)
    if parsed is None:
        return None
    item = PlacedItem(
        block_name=parsed.block_name,
        floor_index=parsed.floor_index,
        position=parsed.position,
        rotation=parsed.rotation,
        origin=parsed.origin,
        brand=parsed.brand,
        count=parsed.count,
        hierarchy=parsed.hierarchy,
        glb_url=(asset_urls or {}).get(parsed.block_name),
        external_id=parsed.external_id,
    )
    return identity.ensure(item)


def row_from_item(item: PlacedItem) -> Row:
    """Synthesizes a location row from an item's current values."""
    return [
        item.block_name,
        str(item.floor_index),
        format_horizontal(item.origin[0]),
        format_horizontal(item.origin[1]),
        "0",
        format_horizontal(item.position[0]),
        format_horizontal(item.position[1]),
        format_vertical(item.position[2]),
        format_rotation(item.rotation[0]),
        format_rotation(item.rotation[1]),
        format_rotation(item.rotation[2]),
        item.brand,
        str(item.count),
        str(item.hierarchy),
        item.external_id or "",
    ]


@dataclass
class LocationFile:
    """A parsed location file: the optional header, every data row as read, and the items."""
    header: Optional[Row]
    rows: List[Row] = field(default_factory=list)
    items: List[PlacedItem] = field(default_factory=list)
    skipped: int = 0
    migrated: int = 0


def read_location_file(text: str, identity: IdentityManager,
                       asset_urls: Optional[Mapping[str, str]] = None,
                       is_migrated: Optional[Callable[[str], bool]] = None) -> LocationFile:
    """
    Parses location CSV text into PlacedItems, assigning a stable identifier to each.
    Rows that cannot be parsed, and rows of migrated-out categories, produce no item but are
    kept in rows for reconciliation.
    """
    all_rows = parse_rows(text)
    header = None
    if all_rows and is_location_header(all_rows[0]):
        header = all_rows.pop(0)
    result = LocationFile(header=header, rows=all_rows)
    for line_no, row in enumerate(all_rows, start=2 if header else 1):
        item = item_from_row(row, identity, asset_urls)
        if item is None:
            logger.warning(f"Location row {line_no} is malformed; it will be passed through unchanged: {row}")
            result.skipped += 1
            continue
        if is_migrated is not None and is_migrated(item.block_name):
            result.migrated += 1
            continue
        result.items.append(item)
    logger.info(f"Imported {len(result.items)} placed items ({result.skipped} rows skipped, "
                f"{result.migrated} migrated-out rows ignored)")
    return result


# --- Floor Plates ---

def rewrite_floor_plates(rows: Sequence[Sequence[str]], brand_overrides: Mapping[str, str],
                         mapping: Optional[Mapping[int, int]] = None) -> List[Row]:
    """
    Applies user brand changes and a floor remap to floor-plate rows.

    The header row and malformed rows pass through untouched. Plates whose floor is absent
    from a non-None mapping are dropped.
    """
    result: List[Row] = []
    for index, row in enumerate(rows):
        if index == 0 and row and not row[PLATE_COL_FLOOR_INDEX].strip().lstrip("-").isdigit():
            result.append(list(row))
            continue
        plate = FloorPlate.from_row(list(row)) if len(row) >= MIN_PLATE_COLUMNS else None
        if plate is None:
            result.append(list(row))
            continue
        new_row = list(row)
        if mapping is not None:
            if plate.floor_index not in mapping:
                logger.debug(f"Dropping floor plate {plate.key} on deleted floor {plate.floor_index}")
                continue
            new_row[PLATE_COL_FLOOR_INDEX] = str(mapping[plate.floor_index])
        override = brand_overrides.get(plate.key)
        if override is not None and override != plate.brand:
            new_row[PLATE_COL_BRAND] = override
        result.append(new_row)
    return result


def plates_from_rows(rows: Sequence[Sequence[str]]) -> List[FloorPlate]:
    """Decodes the floor plates of a plate file; the header and malformed rows are skipped."""
    plates = []
    for row in rows:
        if len(row) < MIN_PLATE_COLUMNS:
            continue
        plate = FloorPlate.from_row(list(row))
        if plate is not None:
            plates.append(plate)
    return plates
