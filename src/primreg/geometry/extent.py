"""
Finite extent of line primitives.

A line is infinite; its extent is the segment spanned by the projections of
its inlier points. Extents are computed once per primitive and kept in an
ExtentCache owned by the caller, so the primitives themselves stay immutable.

The cache is not locked. Callers that parallelize must make sure a primitive
has a single writer, otherwise "first write wins" is no longer deterministic.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from primreg.errors import NoInliersError
from primreg.geometry.lines import as_coords, point_to_line_distances, project_points
from primreg.tracer import get_tracer

EndPoints = Tuple[np.ndarray, np.ndarray]


class ExtentCache:
    """Write-once side table of extents keyed by primitive identity."""

    def __init__(self):
        # id(primitive) -> (primitive, end_points); holding the primitive keeps its id from being reused
        self._entries = {}

    def get(self, primitive) -> Optional[EndPoints]:
        entry = self._entries.get(id(primitive))
        return None if entry is None else entry[1]

    def put(self, primitive, end_points) -> EndPoints:
        """Store end_points unless an extent is already cached; returns the cached value."""
        key = id(primitive)
        if key in self._entries:
            return self._entries[key][1]

        frozen = tuple(np.array(p, dtype=float) for p in end_points)
        for p in frozen:
            p.setflags(write=False)
        self._entries[key] = (primitive, frozen)
        return frozen

    def __contains__(self, primitive):
        return id(primitive) in self._entries

    def __len__(self):
        return len(self._entries)

    def clear(self):
        self._entries.clear()


@dataclass
class ExtentFit:
    """Result of the retry/degrade extent policy."""
    end_points: EndPoints
    threshold: float
    attempts: int
    degraded: bool = False

    @property
    def length(self):
        return float(np.linalg.norm(self.end_points[1] - self.end_points[0]))


class ExtentEstimator:
    """Computes and caches the inlier-supported segment of line primitives."""

    def __init__(self, cache=None):
        self.cache = cache if cache is not None else ExtentCache()

    def estimate(self, primitive, points, threshold: float,
                 indices: Optional[Sequence[int]] = None) -> EndPoints:
        """
        Return the two end points of the primitive's extent.

        Inliers are the points (optionally restricted to `indices`) closer
        than `threshold` to the line. They are projected onto the line, and
        the extremes of the signed scan `dot(p_i - p_0, p_0 + direction)`
        relative to the first projection become the end points.

        A cached extent is returned as is, whatever the other arguments.

        Raises NoInliersError if no point is within threshold.
        """
        cached = self.cache.get(primitive)
        if cached is not None:
            return cached

        coords = as_coords(points, indices)
        inliers = coords[point_to_line_distances(primitive, coords) < threshold]
        if len(inliers) == 0:
            raise NoInliersError(primitive, threshold)

        on_line = project_points(primitive, inliers)
        p0 = on_line[0]
        signed = (on_line - p0) @ (p0 + primitive.dir)

        # signed[0] == 0, so a one-sided scan keeps p0 as the other end
        end_points = (on_line[int(np.argmin(signed))], on_line[int(np.argmax(signed))])
        return self.cache.put(primitive, end_points)

    def estimate_with_fallback(self, primitive, points, threshold: float,
                               indices: Optional[Sequence[int]] = None,
                               max_attempts: int = 10) -> ExtentFit:
        """
        Extent that is never empty.

        Doubles the threshold after each failed attempt, up to max_attempts
        attempts. If all fail, degrades to the unit segment starting at the
        primitive's position and traces a warning.
        """
        tracer = get_tracer()

        attempt_threshold = threshold
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                attempt_threshold *= 2.0
            try:
                end_points = self.estimate(primitive, points, attempt_threshold, indices)
                return ExtentFit(end_points, attempt_threshold, attempt)
            except NoInliersError:
                continue

        tracer.event(
            "extent search exceeded max threshold doublings, using unit segment",
            level="WARN", gid=primitive.gid, attempts=max_attempts,
        )
        end_points = (primitive.pos, primitive.pos + primitive.dir)
        return ExtentFit(end_points, attempt_threshold, max_attempts, degraded=True)

    def drawable_segment(self, primitive, points, threshold: float,
                         indices: Optional[Sequence[int]] = None,
                         stretch: float = 1.0, max_attempts: int = 10) -> EndPoints:
        """
        End points for display: the fallback extent, lengthened by `stretch`.

        Half of the extra length is added on each side.
        """
        fit = self.estimate_with_fallback(primitive, points, threshold, indices, max_attempts)
        p0, p1 = fit.end_points
        diff = p1 - p0
        half_stretch = 1.0 + (stretch - 1.0) / 2.0
        return p1 - diff * half_stretch, p0 + diff * half_stretch
