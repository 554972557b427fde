"""
Greedy correspondence matching between two primitive sets.

Typical use is scoring a fit against ground truth: every primitive of set A
is compared with every primitive of set B, pairs are sorted by cost, and a
single scan claims pairs whose two sides are both still free.

The scan is a greedy approximation, not an optimal assignment. It is kept
greedy on purpose: an assignment solver would pick different pairs on ties
and near-ties, and downstream tables are compared against greedy output.
"""

import numpy as np

from primreg.geometry.extent import ExtentEstimator
from primreg.geometry.lines import segment_to_segment_distance
from primreg.geometry.significance import population_of
from primreg.models import Correspondence, MatchResult, add_to_collection
from primreg.tracer import get_tracer, trace


def anchor_distance(prim_a, prim_b):
    """Euclidean distance between the two anchor positions."""
    return float(np.linalg.norm(prim_a.pos - prim_b.pos))


def segment_distance_cost(points, threshold, estimator=None, max_attempts=10,
                          tag_a="alt_gid", tag_b="gid"):
    """
    Cost function comparing supported segments instead of anchors.

    Each primitive's extent is estimated with the retry/degrade policy
    against its own population only: points whose `tag_a` (A side) or
    `tag_b` (B side) equals the primitive's gid. Not the default, as it
    needs tagged points and may fall back to synthetic segments.
    """
    estimator = estimator or ExtentEstimator()

    def segment(primitive, tag):
        population = population_of(primitive.gid, points, tag=tag)
        fit = estimator.estimate_with_fallback(primitive, points, threshold, population, max_attempts)
        return fit.end_points

    def cost(prim_a, prim_b):
        return segment_to_segment_distance(segment(prim_a, tag_a), segment(prim_b, tag_b))

    return cost


def enumerate_identities(collection):
    """Yield ((gid, lid), primitive) in ascending gid, then sequence order."""
    for gid in sorted(collection):
        for lid, primitive in enumerate(collection[gid]):
            yield (gid, lid), primitive


def build_cost_table(collection_a, collection_b, cost_fn=anchor_distance):
    """Cost of every (A, B) pair, keyed by ((gidA, lidA), (gidB, lidB))."""
    tracer = get_tracer()

    costs = {}
    identities_b = list(enumerate_identities(collection_b))
    for key_a, prim_a in enumerate_identities(collection_a):
        for key_b, prim_b in identities_b:
            costs[(key_a, key_b)] = float(cost_fn(prim_a, prim_b))
            tracer.event(f"checking {key_a[0]}.{key_a[1]} vs {key_b[0]}.{key_b[1]}: {costs[(key_a, key_b)]:.6f}", level="DEBUG")

    return costs


def sort_costs(costs):
    """Flatten to (cost, key) entries sorted by cost, then by key."""
    return sorted((cost, key) for key, cost in costs.items())


def greedy_assign(cost_list):
    """
    Claim pairs in list order when neither side is taken yet.

    Returns (accepted, diagnostics): the accepted (cost, key) entries in
    acceptance order and any consistency messages.
    """
    tracer = get_tracer()

    taken_a, taken_b = set(), set()
    assignment = {}
    accepted = []
    diagnostics = []

    for cost, (key_a, key_b) in cost_list:
        if key_a in taken_a or key_b in taken_b:
            continue

        taken_a.add(key_a)
        taken_b.add(key_b)

        # unreachable while taken_a is checked above; kept so a broken used-set
        # shows up as a diagnostic instead of an overwritten assignment
        if key_a in assignment:
            message = f"duplicate choice for {key_a}: {assignment[key_a]} and {key_b}"
            tracer.event(message, level="ERROR")
            diagnostics.append(message)
            continue

        assignment[key_a] = key_b
        accepted.append((cost, (key_a, key_b)))
        tracer.event(f"chose {cost:.6f} for {key_a[0]}.{key_a[1]} - {key_b[0]}.{key_b[1]}", level="DEBUG")

    return accepted, diagnostics


def count_shared_points(points, key_a, key_b):
    """Points tagged with A's gid (alt_gid) and B's gid (gid) at the same time."""
    if points is None or isinstance(points, np.ndarray):
        return 0
    return sum(1 for p in points if p.alt_gid == key_a[0] and p.gid == key_b[0])


@trace(label="match_primitives")
def match_primitives(collection_a, collection_b, points=None, cost_fn=anchor_distance):
    """
    Greedy one-to-one matching of collection_a onto collection_b.

    points: dual-tagged samples (alt_gid for A, gid for B); only used to
    report shared support per accepted pair. An empty collection on either
    side yields an empty result.
    """
    tracer = get_tracer()

    ids_a = [key for key, _ in enumerate_identities(collection_a)]
    ids_b = [key for key, _ in enumerate_identities(collection_b)]

    with tracer.span("build_costs", module="correspondence"):
        costs = build_cost_table(collection_a, collection_b, cost_fn)

    cost_list = sort_costs(costs)
    accepted, diagnostics = greedy_assign(cost_list)

    correspondences = [
        Correspondence(a=key_a, b=key_b, cost=cost, shared_points=count_shared_points(points, key_a, key_b))
        for cost, (key_a, key_b) in accepted
    ]
    matched_a = {c.a for c in correspondences}
    matched_b = {c.b for c in correspondences}

    result = MatchResult(
        correspondences=correspondences,
        unmatched_a=[k for k in ids_a if k not in matched_a],
        unmatched_b=[k for k in ids_b if k not in matched_b],
        diagnostics=diagnostics,
    )

    tracer.event(
        f"Matched {len(correspondences)} pairs from {len(ids_a)} x {len(ids_b)} primitives, "
        f"mean cost {result.mean_cost:.6f}"
    )

    return result


def substitute_matches(result, collection_b):
    """Matched B primitives, re-keyed under the gid of their A partner."""
    subs = {}
    for corresp in result.correspondences:
        gid_b, lid_b = corresp.b
        add_to_collection(subs, corresp.a[0], collection_b[gid_b][lid_b])
    return subs
