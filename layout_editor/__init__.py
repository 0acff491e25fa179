"""
Layout Editor

In-memory editing engine for store layouts: placed fixtures and architectural elements imported
from a location record file, edited through reversible commands and exported back as a
reconciled location file plus derived artifacts.

Main entry point:
- LayoutEditor: one editing session (import, edits, undo/redo, copy/paste, export).
"""

# Import the main session class from the layout_editor module
from .layout_editor import LayoutEditor
from .commands import Command, CommandHistory, Patch
from .editor_common import (
    EditorSettings, LayoutEditorError, LayoutFormatError, LookupFailedError, ExportPreconditionError,
)
from .identity import IdentityManager
from .layout_entities import PlacedItem, ItemOrigin, PointElement, SpanElement, ArchObjectType, FloorInfo, FloorLayout
from .reconciliation import reconcile
from .floor_remap import compute_mapping

# Create a shorter alias for the main session class
Editor = LayoutEditor

# Current package version
__version__ = "0.1.0"
