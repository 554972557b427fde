"""
Angle-constrained candidate generation.

A candidate sits at one primitive's position but borrows another primitive's
orientation, rotated by one of a small set of canonical angles (parallel,
perpendicular, ...). Candidates are new values with STATUS = UNSET; deciding
which ones survive is up to the optimizer.

Rotations are about a fixed up axis (Z by default): primitives are analyzed
as 2-D lines embedded in 3-D.
"""

import math

import numpy as np

from primreg.geometry.lines import angle_in_rad, rotate_about_axis
from primreg.models import LinePrimitive, PrimitiveStatus, Z_AXIS
from primreg.tracer import get_tracer, trace


def generate_candidate(self_prim, other, closest_angle_id, angles,
                       angle_multiplier=1.0, up_axis=Z_AXIS):
    """
    Create a back-rotated copy of `other` at the position of `self_prim`.

    other's direction is rotated by +angle and -angle about up_axis, where
    angle = angles[closest_angle_id] * angle_multiplier; the branch closer to
    self_prim's direction wins, ties go to +angle.

    The candidate keeps self_prim's gid, takes other's dir_gid and has its
    status reset to UNSET.
    """
    if len(angles) == 0:
        raise ValueError("angle set is empty")
    if not 0 <= closest_angle_id < len(angles):
        raise IndexError(f"closest_angle_id {closest_angle_id} outside angle set of size {len(angles)}")

    angle = angles[closest_angle_id] * angle_multiplier
    d0 = rotate_about_axis(other.dir, angle, up_axis)
    d1 = rotate_about_axis(other.dir, -angle, up_axis)

    revert = angle_in_rad(self_prim.dir, d0) > angle_in_rad(self_prim.dir, d1)

    get_tracer().event(
        "generated candidate", level="DEBUG",
        angle=float(angle), closest_angle_id=closest_angle_id, mult=float(angle_multiplier),
    )

    return LinePrimitive(
        position=self_prim.pos,
        direction=d1 if revert else d0,
        gid=self_prim.gid,
        dir_gid=other.dir_gid,
        status=PrimitiveStatus.UNSET,
    )


def angle_set_from_step(step_deg, include_90=True):
    """
    Canonical angles 0, step, 2*step, ... up to 180 degrees, in radians.

    With include_90, a right angle is added when the step does not hit it.
    """
    if step_deg <= 0:
        raise ValueError("angle step must be positive")

    count = int(math.floor(180.0 / step_deg + 1e-9))
    degrees = [i * step_deg for i in range(count + 1)]
    if include_90 and not any(abs(d - 90.0) < 1e-9 for d in degrees):
        degrees.append(90.0)
        degrees.sort()

    return [math.radians(d) for d in degrees]


def closest_angle_id(dir_a, dir_b, angles):
    """Index of the canonical angle nearest to the angle between two directions."""
    if len(angles) == 0:
        raise ValueError("angle set is empty")
    angle = angle_in_rad(dir_a, dir_b)
    return int(np.argmin([abs(angle - a) for a in angles]))


def _direction_key(direction, digits=6):
    # lines are undirected: d and -d collapse to the same key
    d = np.round(np.asarray(direction, dtype=float), digits) + 0.0
    nonzero = np.flatnonzero(np.abs(d) > 10 ** -digits)
    if nonzero.size and d[nonzero[0]] < 0:
        d = -d + 0.0
    return tuple(d.tolist())


@trace(label="generate_candidates")
def generate_candidates(collection, angles, angle_multiplier=1.0, up_axis=Z_AXIS,
                        max_deviation=None):
    """
    Candidates for every ordered pair of primitives from different direction groups.

    For each pair (a, b), b's direction is snapped to the canonical angle
    closest to the a-b angle and placed at a. Pairs whose angle deviates
    from that canonical angle by more than max_deviation (radians) are
    skipped. Duplicates (same gid, dir_gid and line direction) are dropped.

    Returns a new gid -> [candidate] collection; the input is not modified.
    """
    tracer = get_tracer()

    entries = [(gid, prim) for gid in sorted(collection) for prim in collection[gid]]
    candidates = {}
    seen = set()
    skipped = 0

    for _, prim_a in entries:
        for _, prim_b in entries:
            if prim_a is prim_b or prim_a.dir_gid == prim_b.dir_gid:
                continue

            angle_id = closest_angle_id(prim_a.dir, prim_b.dir, angles)
            if max_deviation is not None:
                deviation = abs(angle_in_rad(prim_a.dir, prim_b.dir) - angles[angle_id])
                if deviation > max_deviation:
                    skipped += 1
                    continue

            cand = generate_candidate(prim_a, prim_b, angle_id, angles, angle_multiplier, up_axis)
            key = (cand.gid, cand.dir_gid, _direction_key(cand.direction))
            if key in seen:
                continue
            seen.add(key)
            candidates.setdefault(cand.gid, []).append(cand)

    total = sum(len(v) for v in candidates.values())
    tracer.event(f"Generated {total} candidates from {len(entries)} primitives ({skipped} pairs over deviation)")

    return candidates
