"""
main.py

Demonstrates an editing session with the layout editor: import of a small store layout,
a handful of edits with undo/redo, copy/paste, floor deletion and export.
"""

import os
import json
import asyncio
import logging
import sys # For basic logging setup

from layout_editor import LayoutEditor, EditorSettings, ExportPreconditionError
from layout_editor.clipboard import PasteOptions
from layout_editor.lookup import AssetLookupService, StaticLookupBackend

# --- Basic Logging Setup ---
logging.basicConfig(
    level=logging.DEBUG, # Set to DEBUG to see per-command logs
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout # Log to console
)
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

DEMO_LOCATIONS = """Block Name,Floor Index,Origin X (m),Origin Y (m),Origin Z (m),Pos X (m),Pos Y (m),Pos Z (m),Rotation X (deg),Rotation Y (deg),Rotation Z (deg),Brand,Count,Hierarchy
RTL-4W,0,0,0,0,1.000000000000,2.000000000000,0.0,0.0,0.0,0.0,brandX,4,1
RTL-SR,0,0,0,0,4.500000000000,2.000000000000,0.0,0.0,0.0,90.0,brandY,1,2
GLAZING,0,0,0,0,0.000000000000,0.000000000000,0.0,0.0,0.0,0.0,arch,1,0
RTL-4W,1,0,0,0,3.000000000000,7.250000000000,4.5,0.0,0.0,0.0,brandX,2,1
RTL-SR,2,0,0,0,2.000000000000,1.000000000000,9.0,0.0,0.0,180.0,brandZ,1,1
"""

DEMO_FLOOR_FILES = ["dg2n-3d-floor-0.glb", "dg2n-3d-floor-1.glb", "dg2n-3d-floor-2.glb"]

DEMO_BACKEND = StaticLookupBackend(
    asset_urls={"RTL-4W": "https://assets.example/rtl-4w.glb", "RTL-SR": "https://assets.example/rtl-sr.glb",
                "RTL-NT": "https://assets.example/rtl-nt.glb"},
    block_types={"RTL-4W": "4-WAY", "RTL-SR": "SHELF", "RTL-NT": "NESTING TABLE"},
)


async def run_demo(output_dir: str = "demo_output"):
    logger.info("--- Starting Layout Demo ---")
    editor = LayoutEditor(EditorSettings.from_env(), lookup=AssetLookupService(DEMO_BACKEND))
    editor.load(DEMO_LOCATIONS, floor_files=DEMO_FLOOR_FILES)

    rack = editor.items_on_floor(0)[0]
    shelf = editor.items_on_floor(0)[1]

    # --- Edits ---
    editor.move_item(rack.stable_id, (1.5, 2.25, 0.0))
    editor.rotate_item(shelf.stable_id, -45)
    editor.set_brand([shelf.stable_id], "brandX")

    duplicate = editor.get_item(editor.duplicate_item(rack.stable_id).forward.selection[0])
    logger.info(f"Duplicated {rack.stable_id} as {duplicate.stable_id}")
    editor.undo()
    logger.info(f"After undo: {len(editor.list_items())} items, can redo: {editor.can_redo}")
    editor.redo()

    editor.split_item(rack.stable_id, 1)
    await editor.change_type(shelf.stable_id, "RTL-NT")

    # --- Clipboard ---
    clipboard = editor.copy(editor.selection)
    if clipboard:
        check = editor.check_paste(clipboard, 1, known_brands=["brandX", "brandY"])
        for warning in check.warnings:
            logger.info(f"Paste warning: {warning.message}")
        editor.paste(clipboard, PasteOptions(target_floor_index=1, offset_x=1.0))

    # --- Floors ---
    editor.delete_floor(1)
    editor.rename_floor(2, "Upper Level")

    try:
        await editor.export()
    except ExportPreconditionError as e:
        logger.warning(f"Export refused: {e} (floors {list(e.floor_indices)})")
        for index in e.floor_indices:
            editor.set_spawn_point(index, (0.0, 0.0, 1.6))

    artifacts = await editor.export()
    for line in (await editor.space_tracker_summary()).items():
        logger.info(f"Space tracker: {line}")

    # --- Output ---
    os.makedirs(output_dir, exist_ok=True)
    for name, content in artifacts.files().items():
        path = os.path.join(output_dir, name)
        logger.info(f"Writing {path}")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    logger.info(f"Floor file renames: {json.dumps(artifacts.floor_file_renames)}")

    editor.rebaseline(artifacts)
    logger.info(f"Re-baselined session: {len(editor.list_items())} items, can undo: {editor.can_undo}")
    editor.close()
    logger.info("--- Layout Demo Finished ---")


if __name__ == '__main__':
    asyncio.run(run_demo())
