"""
Spatial significance of primitives.

The significance of a primitive is the spread of its supporting points along
their dominant axis: the square root of the largest eigenvalue of the
population covariance. It ranks primitives by how much evidence backs them.
"""

import numpy as np

from primreg.geometry.lines import as_coords
from primreg.models import LinePrimitive
from primreg.tracer import get_tracer, trace

EMPTY_POPULATION = -1.0


def population_of(gid, points, tag="gid"):
    """Indices of the points whose `tag` equals gid."""
    if isinstance(points, np.ndarray):
        raise TypeError("population lookup needs tagged PointSample objects, not a bare array")
    return [i for i, p in enumerate(points) if getattr(p, tag) == gid]


def eigen_decomposition(coords):
    """
    PCA of an (N, 3) point array.

    Returns (centroid, eigen_values, eigen_vectors) with eigenvalues in
    descending order and eigenvectors as matching columns. The covariance is
    normalized by N, so a single point is valid and has zero spread.
    """
    coords = np.asarray(coords, dtype=float)
    centroid = coords.mean(axis=0)
    centered = coords - centroid
    cov = centered.T @ centered / coords.shape[0]

    eigen_values, eigen_vectors = np.linalg.eigh(cov)
    order = np.argsort(eigen_values)[::-1]
    return centroid, eigen_values[order], eigen_vectors[:, order]


def spatial_significance(primitive, points, population=None, return_squared=False):
    """
    Spread of the primitive's support along its dominant axis.

    population: indices into points; defaults to the points tagged with the
    primitive's gid. Returns EMPTY_POPULATION (negative) and traces a warning
    when there is no support. Otherwise the result is >= 0.
    """
    tracer = get_tracer()

    if population is None:
        population = population_of(primitive.gid, points)

    if len(population) == 0:
        tracer.event("no points in primitive", level="WARN", gid=primitive.gid)
        return EMPTY_POPULATION

    _, eigen_values, _ = eigen_decomposition(as_coords(points, population))
    # eigh can return tiny negatives for degenerate populations
    largest = max(float(eigen_values[0]), 0.0)

    return largest if return_squared else float(np.sqrt(largest))


@trace(label="score_collection")
def score_collection(collection, points, return_squared=False):
    """Significance of every primitive in a collection, keyed by (gid, lid)."""
    scores = {}
    for gid in sorted(collection):
        for lid, primitive in enumerate(collection[gid]):
            scores[(gid, lid)] = spatial_significance(primitive, points, return_squared=return_squared)
    return scores


def fit_line(points, population=None, gid=None, **tags):
    """
    Fit a line primitive to a population by PCA.

    With `gid` given and no explicit population, the points tagged with gid
    are used and the line inherits that gid. Raises ValueError when the
    population is empty.
    """
    if population is None and gid is not None:
        population = population_of(gid, points)
    coords = as_coords(points, population)
    if len(coords) == 0:
        raise ValueError("cannot fit a line to an empty population")

    centroid, eigen_values, eigen_vectors = eigen_decomposition(coords)
    if gid is not None:
        tags.setdefault("gid", gid)
        tags.setdefault("dir_gid", gid)
    return LinePrimitive.from_pca(centroid, eigen_values, eigen_vectors, **tags)
