"""
editor_common.py

Common utilities and constants for the layout editor.
This module provides the shared exception hierarchy, the location-record column layout,
numeric precisions and the injectable EditorSettings used across the codebase.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# TYPES
Vector3 = Tuple[float, float, float]
Vector2 = Tuple[float, float]

# CONSTANTS

# Location record columns
COL_BLOCK_NAME = 0
COL_FLOOR_INDEX = 1
COL_ORIGIN_X = 2
COL_ORIGIN_Y = 3
COL_ORIGIN_Z = 4
COL_POS_X = 5
COL_POS_Y = 6
COL_POS_Z = 7
COL_ROT_X = 8
COL_ROT_Y = 9
COL_ROT_Z = 10
COL_BRAND = 11
COL_COUNT = 12
COL_HIERARCHY = 13
COL_FIXTURE_ID = 14

MIN_LOCATION_COLUMNS = 14
LOCATION_COLUMNS = 15
FIXTURE_ID_HEADER = "Fixture ID"

LOCATION_HEADER: Tuple[str, ...] = (
    "Block Name", "Floor Index", "Origin X (m)", "Origin Y (m)", "Origin Z (m)",
    "Pos X (m)", "Pos Y (m)", "Pos Z (m)",
    "Rotation X (deg)", "Rotation Y (deg)", "Rotation Z (deg)",
    "Brand", "Count", "Hierarchy", FIXTURE_ID_HEADER,
)

# Floor plate columns
PLATE_COL_FLOOR_INDEX = 0
PLATE_COL_SURFACE_ID = 1
PLATE_COL_BRAND = 2
PLATE_COL_MESH_NAME = 10
MIN_PLATE_COLUMNS = 12

# Horizontal placement is fingerprinted exactly, vertical placement tolerates floor-height rounding
HORIZONTAL_DECIMALS = 12
VERTICAL_DECIMALS = 1
ROTATION_DECIMALS = 1

DEFAULT_HISTORY_DEPTH = 20
DEFAULT_SPLIT_UNIT_WIDTH = 0.6
DEFAULT_MIGRATED_CATEGORIES: FrozenSet[str] = frozenset({"GLAZING", "PARTITION"})
FLOOR_TOKEN_PATTERN = r"([-_]floor[-_]?)(\d+)"


def format_horizontal(value: float) -> str:
    """Formats an X/Y coordinate with enough precision to survive fingerprinting."""
    return f"{value:.{HORIZONTAL_DECIMALS}f}"


def format_vertical(value: float) -> str:
    return f"{value:.{VERTICAL_DECIMALS}f}"


def format_rotation(value: float) -> str:
    return f"{value:.{ROTATION_DECIMALS}f}"


@dataclass(frozen=True)
class EditorSettings:
    """Tunable defaults for an editing session."""
    history_depth: int = DEFAULT_HISTORY_DEPTH
    split_unit_width: float = DEFAULT_SPLIT_UNIT_WIDTH
    migrated_categories: FrozenSet[str] = field(default_factory=lambda: DEFAULT_MIGRATED_CATEGORIES)
    direct_render_types: Tuple[str, ...] = ()
    lookup_base_url: Optional[str] = None
    lookup_timeout: float = 10.0

    @staticmethod
    def from_env(prefix: str = "LAYOUT_EDITOR_") -> "EditorSettings":
        """Builds settings from environment variables, falling back to defaults."""
        def _get(name: str) -> Optional[str]:
            value = os.environ.get(prefix + name)
            return value.strip() if value and value.strip() else None

        kwargs = {}
        depth = _get("HISTORY_DEPTH")
        if depth is not None:
            try:
                kwargs["history_depth"] = max(1, int(depth))
            except ValueError:
                logger.warning(f"Ignoring invalid {prefix}HISTORY_DEPTH value '{depth}'.")
        width = _get("SPLIT_UNIT_WIDTH")
        if width is not None:
            try:
                kwargs["split_unit_width"] = float(width)
            except ValueError:
                logger.warning(f"Ignoring invalid {prefix}SPLIT_UNIT_WIDTH value '{width}'.")
        migrated = _get("MIGRATED_CATEGORIES")
        if migrated is not None:
            kwargs["migrated_categories"] = _split_names(migrated)
        direct = _get("DIRECT_RENDER_TYPES")
        if direct is not None:
            kwargs["direct_render_types"] = tuple(sorted(_split_names(direct)))
        base_url = _get("LOOKUP_BASE_URL")
        if base_url is not None:
            kwargs["lookup_base_url"] = base_url
        timeout = _get("LOOKUP_TIMEOUT")
        if timeout is not None:
            try:
                kwargs["lookup_timeout"] = float(timeout)
            except ValueError:
                logger.warning(f"Ignoring invalid {prefix}LOOKUP_TIMEOUT value '{timeout}'.")
        return EditorSettings(**kwargs)

    def is_migrated_category(self, block_name: str) -> bool:
        return block_name.strip().upper() in {c.upper() for c in self.migrated_categories}


def _split_names(value: str) -> FrozenSet[str]:
    return frozenset(p.strip() for p in value.split(",") if p.strip())


# Custom Exceptions
class LayoutEditorError(Exception):
    """Base exception for layout editor errors."""
    pass

class LayoutFormatError(LayoutEditorError):
    """An artifact record could not be decoded."""
    pass

class LookupFailedError(LayoutEditorError):
    """An external type/asset lookup could not be resolved."""
    pass

class ExportPreconditionError(LayoutEditorError):
    """A precondition for export is not met; the whole export is aborted."""

    def __init__(self, message: str, floor_indices: Sequence[int] = ()):
        super().__init__(message)
        self.floor_indices: Tuple[int, ...] = tuple(floor_indices)
