"""Pytest fixtures for primreg tests."""

import os
import tempfile

import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from primreg.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def x_line():
    """Line along +X through the origin, gid 0."""
    from primreg.models import LinePrimitive
    return LinePrimitive(position=[0, 0, 0], direction=[1, 0, 0], gid=0, dir_gid=0)


@pytest.fixture
def x_line_points():
    """Points on the X axis from x=-2 to x=5 (first point at x=1), tagged gid 0, plus two far outliers."""
    from primreg.models import PointSample

    xs = [1.0, -2.0, 0.0, 3.0, 5.0, 2.5]
    points = [PointSample(coords=[x, 0.001, 0.0], gid=0) for x in xs]
    points.append(PointSample(coords=[10.0, 4.0, 0.0], gid=1))
    points.append(PointSample(coords=[-10.0, -4.0, 0.0], gid=1))
    return points


@pytest.fixture
def two_square_scene():
    """
    Two primitive sets over the same cloud: A (a fit) and B (its ground truth).

    Lines are the bottom (y=0) and left (x=0) sides of a unit square; B's
    anchors sit slightly away from A's.
    """
    from primreg.models import LinePrimitive, PointSample

    prims_a = {
        0: [LinePrimitive(position=[0.5, 0.0, 0.0], direction=[1, 0, 0], gid=0, dir_gid=0)],
        1: [LinePrimitive(position=[0.0, 0.5, 0.0], direction=[0, 1, 0], gid=1, dir_gid=1)],
    }
    prims_b = {
        5: [LinePrimitive(position=[0.0, 0.45, 0.0], direction=[0, 1, 0], gid=5, dir_gid=5)],
        7: [LinePrimitive(position=[0.55, 0.0, 0.0], direction=[1, 0, 0], gid=7, dir_gid=7)],
    }

    points = []
    for t in np.linspace(0.1, 0.9, 9):
        points.append(PointSample(coords=[t, 0.0, 0.0], alt_gid=0, gid=7))
    for t in np.linspace(0.1, 0.9, 9):
        points.append(PointSample(coords=[0.0, t, 0.0], alt_gid=1, gid=5))

    return prims_a, prims_b, points


@pytest.fixture
def scene_files(temp_dir, two_square_scene):
    """Write two_square_scene to primitive, association and cloud files."""
    from primreg.io.primitives_io import write_primitives

    prims_a, prims_b, points = two_square_scene

    paths = {
        "prims_a": os.path.join(temp_dir, "primitives.csv"),
        "assoc_a": os.path.join(temp_dir, "points_primitives.csv"),
        "prims_b": os.path.join(temp_dir, "gt_primitives.csv"),
        "assoc_b": os.path.join(temp_dir, "gt_points_primitives.csv"),
        "cloud": os.path.join(temp_dir, "cloud.ply"),
    }

    write_primitives(prims_a, paths["prims_a"])
    write_primitives(prims_b, paths["prims_b"])

    with open(paths["assoc_a"], "w", encoding="utf-8") as f:
        f.write("# point_id,primitive_gid\n")
        for pid, p in enumerate(points):
            f.write(f"{pid},{p.alt_gid}\n")

    with open(paths["assoc_b"], "w", encoding="utf-8") as f:
        f.write("# point_id,primitive_gid\n")
        for pid, p in enumerate(points):
            f.write(f"{pid},{p.gid}\n")

    with open(paths["cloud"], "w", encoding="utf-8") as f:
        f.write("ply\nformat ascii 1.0\ncomment test cloud\n")
        f.write(f"element vertex {len(points)}\n")
        f.write("property float x\nproperty float y\nproperty float z\nend_header\n")
        for p in points:
            f.write(f"{p.coords[0]:f} {p.coords[1]:f} {p.coords[2]:f}\n")

    return paths
