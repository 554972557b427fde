"""
Geometric queries on line primitives.

Distances, projections and angles used by extent estimation, candidate
generation and matching. Functions accept a LinePrimitive plus plain numpy
data; point collections may be a list of PointSample or an (N, 3) array.
"""

from typing import Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from primreg.models import Z_AXIS


def as_coords(points, indices: Optional[Sequence[int]] = None) -> np.ndarray:
    """Return an (N, 3) float array of the points, optionally restricted to indices."""
    if isinstance(points, np.ndarray):
        coords = np.asarray(points, dtype=float).reshape(-1, 3)
    elif len(points) == 0:
        coords = np.zeros((0, 3))
    else:
        coords = np.array([p.coords for p in points], dtype=float)

    if indices is not None:
        coords = coords[np.asarray(indices, dtype=int)]
    return coords


def point_to_line_distance(primitive, point) -> float:
    """Perpendicular distance from point to the infinite line."""
    diff = primitive.pos - np.asarray(point, dtype=float)
    return float(np.linalg.norm(np.cross(diff, primitive.dir)))


def point_to_line_distances(primitive, coords: np.ndarray) -> np.ndarray:
    """Vectorized point_to_line_distance over an (N, 3) array."""
    diff = primitive.pos[None, :] - coords
    return np.linalg.norm(np.cross(diff, primitive.dir[None, :]), axis=1)


def project_point(primitive, point) -> np.ndarray:
    """Orthogonal projection of point onto the line."""
    return project_points(primitive, np.asarray(point, dtype=float)[None, :])[0]


def project_points(primitive, coords: np.ndarray) -> np.ndarray:
    direction = primitive.dir
    k = (coords - primitive.pos) @ direction / np.dot(direction, direction)
    return primitive.pos[None, :] + k[:, None] * direction[None, :]


def angle_in_rad(a, b) -> float:
    """
    Unsigned angle between two vectors, in [0, pi].

    atan2 of the cross and dot products stays accurate near 0 and pi, where
    arccos of the normalized dot product loses precision.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return float(np.arctan2(np.linalg.norm(np.cross(a, b)), np.dot(a, b)))


def rotate_about_axis(vector, angle: float, axis=Z_AXIS) -> np.ndarray:
    """Rotate vector by angle (radians, right-handed) about axis."""
    axis = np.asarray(axis, dtype=float)
    rotvec = axis / np.linalg.norm(axis) * angle
    return Rotation.from_rotvec(rotvec).apply(np.asarray(vector, dtype=float))


def point_to_segment_distance(end_points, point) -> float:
    """Distance from point to the finite segment between two end points."""
    p0 = np.asarray(end_points[0], dtype=float)
    p1 = np.asarray(end_points[1], dtype=float)
    point = np.asarray(point, dtype=float)

    seg = p1 - p0
    seg_len_sq = float(np.dot(seg, seg))
    if seg_len_sq == 0:
        return float(np.linalg.norm(point - p0))

    t = np.clip(np.dot(point - p0, seg) / seg_len_sq, 0.0, 1.0)
    return float(np.linalg.norm(point - (p0 + t * seg)))


def segment_to_segment_distance(end_points_a, end_points_b) -> float:
    """Symmetric end point distance between two finite segments (max of both directions)."""
    to_a = max(point_to_segment_distance(end_points_a, p) for p in end_points_b)
    to_b = max(point_to_segment_distance(end_points_b, p) for p in end_points_a)
    return max(to_a, to_b)
