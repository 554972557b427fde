"""
Point cloud and point-to-primitive association loading.

Clouds are ASCII PLY files (vertex x, y, z) or comma/whitespace separated
text with the coordinates in the first three columns. Association files map
point ids to primitive gids, one `point_id,gid[,...]` row per point.
"""

import os

import numpy as np

from primreg.models import PointSample
from primreg.tracer import get_tracer, trace

POINT_TAGS = ("gid", "alt_gid")


def _read_ply_header(path):
    """Return (header_line_count, vertex_count, [property names])."""
    vertex_count = None
    properties = []
    in_vertex = False

    with open(path, "r", encoding="utf-8", errors="replace") as f:
        first = f.readline().strip()
        if first != "ply":
            raise ValueError(f"Not a PLY file: {path}")

        line_count = 1
        for line in f:
            line_count += 1
            tokens = line.split()
            if not tokens:
                continue
            if tokens[0] == "format" and tokens[1] != "ascii":
                raise ValueError(f"Only ASCII PLY is supported, got {tokens[1]}: {path}")
            if tokens[0] == "element":
                in_vertex = tokens[1] == "vertex"
                if in_vertex:
                    vertex_count = int(tokens[2])
            elif tokens[0] == "property" and in_vertex:
                properties.append(tokens[-1])
            elif tokens[0] == "end_header":
                break
        else:
            raise ValueError(f"PLY header has no end_header: {path}")

    if vertex_count is None:
        raise ValueError(f"PLY file has no vertex element: {path}")
    return line_count, vertex_count, properties


def _load_coords(path):
    ext = os.path.splitext(path)[1].lower()

    if ext == ".ply":
        header_lines, count, properties = _read_ply_header(path)
        try:
            cols = tuple(properties.index(axis) for axis in ("x", "y", "z"))
        except ValueError as e:
            raise ValueError(f"PLY vertex needs x, y, z properties: {path}") from e
        if count == 0:
            return np.zeros((0, 3))
        return np.loadtxt(path, skiprows=header_lines, max_rows=count, usecols=cols, ndmin=2)

    delimiter = "," if ext == ".csv" else None
    with open(path, "r", encoding="utf-8") as f:
        rows = [line for line in f if line.strip() and not line.lstrip().startswith("#")]
    if not rows:
        return np.zeros((0, 3))
    return np.loadtxt(rows, delimiter=delimiter, usecols=(0, 1, 2), ndmin=2)


@trace(label="read_points")
def read_points(path):
    """
    Load a cloud as untagged PointSample objects.

    Raises FileNotFoundError if the path does not exist, ValueError if the
    file cannot be parsed.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Point cloud not found: {path}")

    coords = _load_coords(path)
    points = [PointSample(coords=c) for c in coords]

    tracer.event(f"Read {len(points)} points from {path}")
    return points


def read_associations(path):
    """Return [(point_id, gid)] from an association file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Association file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        rows = [line for line in f if line.strip() and not line.lstrip().startswith("#")]
    if not rows:
        return []

    data = np.loadtxt(rows, delimiter=",", usecols=(0, 1), ndmin=2)
    return [(int(pid), int(gid)) for pid, gid in data]


def tag_points(points, associations, tag="gid"):
    """
    Copies of points with `tag` set from (point_id, gid) associations.

    Points without an association keep their current tag value.
    """
    if tag not in POINT_TAGS:
        raise ValueError(f"unknown point tag {tag!r}, expected one of {POINT_TAGS}")

    tagged = list(points)
    for pid, gid in associations:
        if not 0 <= pid < len(tagged):
            raise ValueError(f"association refers to point {pid}, cloud has {len(tagged)} points")
        tagged[pid] = tagged[pid].model_copy(update={tag: gid})
    return tagged
