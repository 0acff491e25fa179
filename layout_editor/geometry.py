"""
geometry.py

Planar transformation helpers using NumPy.
Placed items live in floor-local source coordinates with Z up; every edit that moves
geometry (split, merge, paste) works in the XY plane and carries Z through unchanged.
"""

import math
import logging
from typing import List, Sequence, Tuple

import numpy as np

from .editor_common import Vector3

logger = logging.getLogger(__name__)


def rotation_matrix_deg(angle_deg: float) -> np.ndarray:
    """
    Return a 3x3 rotation matrix for rotating by angle_deg (degrees) about the floor origin.
    Positive angles rotate counterclockwise when seen from above.
    """
    angle_rad = math.radians(angle_deg)
    cos_a = math.cos(angle_rad)
    sin_a = math.sin(angle_rad)
    rot_mat = np.array([
        [cos_a, -sin_a, 0],
        [sin_a,  cos_a, 0],
        [0,      0,     1]
    ], dtype=float)
    return rot_mat

def apply_transform(points: Sequence[Tuple[float, float]], matrix: np.ndarray) -> List[Tuple[float, float]]:
    """Apply a 3x3 affine matrix to a sequence of (x, y) points."""
    if not points:
        return []
    xy = np.asarray(points, dtype=float)[:, :2]
    homogeneous = np.column_stack([xy, np.ones(len(xy))])
    transformed = homogeneous @ matrix.T
    return [(float(row[0]), float(row[1])) for row in transformed]

def normalize_angle(angle_deg: float) -> float:
    """Wraps an angle into [0, 360)."""
    wrapped = angle_deg % 360.0
    # tiny negatives wrap to 360.0
    return 0.0 if math.isclose(wrapped, 360.0) else wrapped

def local_x_axis(rotation_z_deg: float) -> Tuple[float, float]:
    """Unit vector of an item's local X axis in floor coordinates."""
    (x, y), = apply_transform([(1.0, 0.0)], rotation_matrix_deg(rotation_z_deg))
    return x, y

def translate(position: Vector3, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> Vector3:
    moved = np.asarray(position, dtype=float) + np.array([dx, dy, dz], dtype=float)
    return float(moved[0]), float(moved[1]), float(moved[2])

def split_positions(position: Vector3, rotation_z_deg: float, left_count: int, right_count: int,
                    unit_width: float) -> Tuple[Vector3, Vector3]:
    """
    Computes the centres of the two pieces of a split fixture.

    The fixture is treated as (left_count + right_count) units of unit_width laid out along its
    local X axis and centred on position. The left piece keeps the first left_count units.

    Returns:
        (left_centre, right_centre), both with the original Z.
    """
    ax, ay = local_x_axis(rotation_z_deg)
    left_shift = -right_count * unit_width / 2.0
    right_shift = left_count * unit_width / 2.0
    left = translate(position, ax * left_shift, ay * left_shift)
    right = translate(position, ax * right_shift, ay * right_shift)
    return left, right

def centroid(positions: Sequence[Vector3]) -> Vector3:
    """Mean of a non-empty set of positions."""
    if not positions:
        raise ValueError("Cannot compute the centroid of zero positions.")
    mean = np.mean(np.asarray(positions, dtype=float), axis=0)
    return float(mean[0]), float(mean[1]), float(mean[2])
