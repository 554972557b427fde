"""
Artifact saving utilities for primreg.

Writes the correspondence table, JSON reports and keeps backups of files
that would be overwritten.
"""

import json
import os
import shutil
from datetime import datetime

from primreg.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_json(data, path, indent=2):
    """Save a dictionary or Pydantic model to JSON."""
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump()

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}")


def save_backup(path):
    """
    Copy an existing file to `<path>.<timestamp>.bak`.

    Returns the backup path, or None when there is nothing to back up.
    """
    if not os.path.exists(path):
        return None

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = f"{path}.{stamp}.bak"
    shutil.copy2(path, backup_path)
    get_tracer().event(f"Backed up {path} -> {backup_path}")
    return backup_path


def write_correspondences(result, path, source_a, source_b, backup=True):
    """
    Write accepted matches as `gidA,lidA,gidB,lidB` rows in acceptance order.

    The two header comment lines name the A and B inputs.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))
    if backup:
        save_backup(path)

    with open(path, "w", encoding="utf-8") as f:
        f.write(f"# corresp between\n# {source_a},{source_b}\n")
        for corresp in result.correspondences:
            f.write(f"{corresp.a[0]},{corresp.a[1]},{corresp.b[0]},{corresp.b[1]}\n")

    tracer.event(f"Saved {len(result.correspondences)} correspondences: {path}")


def read_correspondences(path):
    """Parse a correspondence table back into [((gidA, lidA), (gidB, lidB))]."""
    pairs = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            gid_a, lid_a, gid_b, lid_b = (int(v) for v in line.split(",")[:4])
            pairs.append(((gid_a, lid_a), (gid_b, lid_b)))
    return pairs
