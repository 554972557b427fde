"""
Pydantic data models for primreg.

Primitives and point samples are immutable values; the only mutable state in
the geometric core (the extent cache) lives outside them, in
primreg.geometry.extent.ExtentCache.
"""

from enum import Enum
from typing import Dict, List, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


Vec3 = Tuple[float, float, float]
GidLid = Tuple[int, int]

UNSET_GID = -1
Z_AXIS = (0.0, 0.0, 1.0)


class PrimitiveStatus(int, Enum):
    """Lifecycle flag of a primitive, numbered as in the primitive files."""
    UNSET = -1
    VAR = 0
    ACTIVE = 1
    SMALL = 2


def _as_vec3(value):
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"expected 3 coordinates, got {arr.shape[0]}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("coordinates must be finite")
    return tuple(float(x) for x in arr)


class LinePrimitive(BaseModel):
    """
    A line through `position` along the unit vector `direction`.

    `position` is any point on the line, not an endpoint. `gid` is the
    spatial slot the line occupies, `dir_gid` the direction group its
    orientation derives from.
    """
    position: Vec3
    direction: Vec3
    gid: int = UNSET_GID
    dir_gid: int = UNSET_GID
    status: PrimitiveStatus = PrimitiveStatus.UNSET

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("position", "direction", mode="before")
    @classmethod
    def _coerce_vec3(cls, value):
        return _as_vec3(value)

    @field_validator("direction")
    @classmethod
    def _normalize_direction(cls, value):
        arr = np.asarray(value, dtype=float)
        norm = np.linalg.norm(arr)
        if norm < 1e-12:
            raise ValueError("direction must be non-zero")
        return tuple(float(x) for x in arr / norm)

    @property
    def pos(self):
        return np.asarray(self.position, dtype=float)

    @property
    def dir(self):
        return np.asarray(self.direction, dtype=float)

    @classmethod
    def from_end_points(cls, p0, p1, **tags):
        """Line through p0 heading towards p1."""
        p0 = np.asarray(p0, dtype=float)
        return cls(position=p0, direction=np.asarray(p1, dtype=float) - p0, **tags)

    @classmethod
    def from_pca(cls, centroid, eigen_values, eigen_vectors, **tags):
        """Line through the centroid along the eigenvector of the largest eigenvalue."""
        max_id = int(np.argmax(np.asarray(eigen_values)))
        return cls(position=centroid, direction=np.asarray(eigen_vectors)[:, max_id], **tags)

    @classmethod
    def from_file_entry(cls, entries, **tags):
        """Build from `x, y, z, nx, ny, nz`; the direction is normal x Z."""
        if len(entries) < 6:
            raise ValueError(f"primitive entry needs 6 values, got {len(entries)}")
        normal = np.asarray(entries[3:6], dtype=float)
        return cls(position=entries[0:3], direction=np.cross(normal, Z_AXIS), **tags)

    def normal(self, plane_normal=Z_AXIS):
        """Normal of the line within the plane given by `plane_normal`."""
        n = np.asarray(plane_normal, dtype=float)
        n = n / np.linalg.norm(n)
        par = self.dir - n * np.dot(self.dir, n)
        par_len = np.linalg.norm(par)
        if par_len < 1e-12:
            raise ValueError("line is parallel to the plane normal")
        nrm = np.cross(par / par_len, n)
        return nrm / np.linalg.norm(nrm)

    def to_file_entry(self):
        """The six numeric fields `x, y, z, nx, ny, nz` of the primitive file format."""
        return list(self.position) + [float(x) for x in self.normal()]

    def with_tags(self, **tags):
        """Copy with some of gid, dir_gid, status replaced."""
        unknown = set(tags) - {"gid", "dir_gid", "status"}
        if unknown:
            raise ValueError(f"unknown tags: {sorted(unknown)}")
        if "status" in tags:
            tags["status"] = PrimitiveStatus(tags["status"])
        return self.model_copy(update=tags)


class PointSample(BaseModel):
    """
    A 3-D sample bound to primitives through group tags.

    `gid` is the primary membership. `alt_gid` is a second, independent
    membership used when the same cloud is segmented twice (e.g. a result
    and its ground truth).
    """
    coords: Vec3
    gid: int = UNSET_GID
    alt_gid: int = UNSET_GID

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("coords", mode="before")
    @classmethod
    def _coerce_vec3(cls, value):
        return _as_vec3(value)

    @property
    def pos(self):
        return np.asarray(self.coords, dtype=float)


PrimitiveCollection = Dict[int, List[LinePrimitive]]


class Correspondence(BaseModel):
    """One accepted pair of the A and B primitive sets."""
    a: GidLid
    b: GidLid
    cost: float
    shared_points: int = 0

    model_config = ConfigDict(extra="forbid", frozen=True)


class MatchResult(BaseModel):
    """Greedy matching output, in acceptance (ascending cost) order."""
    correspondences: List[Correspondence] = Field(default_factory=list)
    unmatched_a: List[GidLid] = Field(default_factory=list)
    unmatched_b: List[GidLid] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def as_mapping(self):
        """A-identity -> B-identity."""
        return {c.a: c.b for c in self.correspondences}

    @property
    def mean_cost(self):
        if not self.correspondences:
            return 0.0
        return sum(c.cost for c in self.correspondences) / len(self.correspondences)


def collection_size(collection):
    """Total number of primitives in a gid -> [primitive] collection."""
    return sum(len(prims) for prims in collection.values())


def add_to_collection(collection, gid, primitive):
    """Append `primitive` to the group `gid`, creating the group if needed."""
    collection.setdefault(gid, []).append(primitive)
    return collection
