"""
Reading and writing primitive files.

One primitive per row: `x0,x1,x2,n0,n1,n2[,gid,dir_gid,status]`, where
(x0, x1, x2) is the anchor and (n0, n1, n2) the in-plane normal. Lines
starting with '#' are comments; a trailing comma is allowed.
"""

import os

from primreg.models import LinePrimitive, PrimitiveStatus, add_to_collection, collection_size
from primreg.tracer import get_tracer, trace

HEADER = "# x0,x1,x2,n0,n1,n2,gid,dir_gid,status"


def _parse_row(line, line_no, path):
    fields = [f.strip() for f in line.split(",") if f.strip()]
    try:
        return [float(f) for f in fields]
    except ValueError as e:
        raise ValueError(f"{path}:{line_no}: cannot parse primitive row: {e}") from e


@trace(label="read_primitives")
def read_primitives(path):
    """
    Load a gid -> [LinePrimitive] collection, keeping file order within each gid.

    Rows without tags get gid = dir_gid = row index and status UNSET.
    Raises FileNotFoundError or ValueError on a missing or malformed file.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Primitive file not found: {path}")

    collection = {}
    row = 0
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            values = _parse_row(line, line_no, path)
            if len(values) < 6:
                raise ValueError(f"{path}:{line_no}: expected at least 6 values, got {len(values)}")

            gid = int(values[6]) if len(values) > 6 else row
            dir_gid = int(values[7]) if len(values) > 7 else gid
            status = PrimitiveStatus(int(values[8])) if len(values) > 8 else PrimitiveStatus.UNSET

            primitive = LinePrimitive.from_file_entry(values[:6], gid=gid, dir_gid=dir_gid, status=status)
            add_to_collection(collection, gid, primitive)
            row += 1

    tracer.event(f"Read {collection_size(collection)} primitives in {len(collection)} groups from {path}")
    return collection


def write_primitives(collection, path):
    """
    Save a collection; the group key is written as the gid column.

    Groups are written in ascending gid order.
    """
    tracer = get_tracer()

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        f.write(HEADER + "\n")
        for gid in sorted(collection):
            for primitive in collection[gid]:
                coords = ",".join(f"{v:.9f}" for v in primitive.to_file_entry())
                f.write(f"{coords},{gid},{primitive.dir_gid},{int(primitive.status)}\n")

    tracer.event(f"Saved {collection_size(collection)} primitives: {path}")
