"""
Shared fixtures for the layout editor tests.

Provides a small three-floor store layout and editors loaded from it.
"""

import pytest

from layout_editor import LayoutEditor
from layout_editor.lookup import AssetLookupService, StaticLookupBackend

SAMPLE_HEADER = ("Block Name,Floor Index,Origin X (m),Origin Y (m),Origin Z (m),Pos X (m),Pos Y (m),Pos Z (m),"
                 "Rotation X (deg),Rotation Y (deg),Rotation Z (deg),Brand,Count,Hierarchy")

SAMPLE_ROWS = [
    "RTL-4W,0,0,0,0,1.000000000000,2.000000000000,0.0,0.0,0.0,0.0,brandX,4,1",
    "RTL-SR,0,0,0,0,4.500000000000,2.000000000000,0.0,0.0,0.0,90.0,brandY,1,2",
    "RTL-4W,1,0,0,0,3.000000000000,7.250000000000,4.5,0.0,0.0,0.0,brandX,2,1",
    "RTL-SR,2,0,0,0,2.000000000000,1.000000000000,9.0,0.0,0.0,180.0,brandZ,1,1",
]

SAMPLE_LOCATIONS = "\n".join([SAMPLE_HEADER] + SAMPLE_ROWS) + "\n"

FLOOR_FILES = ["dg2n-3d-floor-0.glb", "dg2n-3d-floor-1.glb", "dg2n-3d-floor-2.glb"]

ASSET_URLS = {
    "RTL-4W": "https://assets.test/rtl-4w.glb",
    "RTL-SR": "https://assets.test/rtl-sr.glb",
    "RTL-NT": "https://assets.test/rtl-nt.glb",
}

BLOCK_TYPES = {"RTL-4W": "4-WAY", "RTL-SR": "SHELF", "RTL-NT": "NESTING TABLE"}


@pytest.fixture
def sample_csv():
    """Location file text: header plus four fixtures over three floors."""
    return SAMPLE_LOCATIONS


@pytest.fixture
def lookup():
    """Lookup service answering from static tables."""
    return AssetLookupService(StaticLookupBackend(asset_urls=ASSET_URLS, block_types=BLOCK_TYPES))


@pytest.fixture
def editor(sample_csv):
    """Editor loaded with the sample layout and no lookup service."""
    e = LayoutEditor()
    e.load(sample_csv, floor_files=FLOOR_FILES)
    return e


@pytest.fixture
def lookup_editor(sample_csv, lookup):
    """Editor loaded with the sample layout and a static lookup service."""
    e = LayoutEditor(lookup=lookup)
    e.load(sample_csv, floor_files=FLOOR_FILES, asset_urls=ASSET_URLS)
    return e


def _set_spawn_points(e):
    for index in e.scene.floors.display_order:
        e.set_spawn_point(index, (0.0, 0.0, 1.6))
    e.history.clear()
    return e


@pytest.fixture
def ready_editor(editor):
    """Sample editor with a spawn point on every floor, so it can be exported."""
    return _set_spawn_points(editor)


@pytest.fixture
def ready_lookup_editor(lookup_editor):
    """Lookup-backed sample editor with spawn points on every floor."""
    return _set_spawn_points(lookup_editor)
