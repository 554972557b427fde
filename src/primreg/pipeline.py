"""
File-level workflows for primreg.

run_correspondence reads two primitive sets fitted to the same cloud,
matches them greedily and writes the correspondence table, the substituted
primitives and a report. run_candidates turns a primitive file into
angle-constrained candidates for the optimizer.
"""

import math
import os

from primreg.candidates.generate import angle_set_from_step, generate_candidates
from primreg.config import load_config
from primreg.errors import InputValidationError
from primreg.geometry.significance import population_of, spatial_significance
from primreg.io.points_io import read_associations, read_points, tag_points
from primreg.io.primitives_io import read_primitives, write_primitives
from primreg.io.save_artifacts import ensure_dir, save_json, write_correspondences
from primreg.matching.correspondence import (
    anchor_distance, match_primitives, segment_distance_cost, substitute_matches,
)
from primreg.tracer import get_tracer, trace

COST_FUNCTIONS = ("anchor", "segment")


def validate_inputs(paths):
    """
    Check that every required input exists.

    paths: {role: path}. Returns a list of error messages (empty if all valid).
    """
    errors = []
    for role, path in paths.items():
        if not path:
            errors.append(f"Missing {role} path")
        elif not os.path.exists(path):
            errors.append(f"need {role} {path} to exist")
    return errors


def select_cost_function(config, points):
    """Cost function named by config.matching.cost."""
    if config.matching.cost == "anchor":
        return anchor_distance
    if config.matching.cost == "segment":
        return segment_distance_cost(
            points, config.extent.threshold, max_attempts=config.extent.max_attempts,
        )
    raise ValueError(f"Unknown matching cost {config.matching.cost!r}, expected one of {COST_FUNCTIONS}")


def pair_significances(result, collection_a, collection_b, points, return_squared=False):
    """Significance of both sides of each accepted pair, A from alt_gid support, B from gid support."""
    rows = []
    for corresp in result.correspondences:
        prim_a = collection_a[corresp.a[0]][corresp.a[1]]
        prim_b = collection_b[corresp.b[0]][corresp.b[1]]
        rows.append({
            "a": list(corresp.a),
            "b": list(corresp.b),
            "cost": corresp.cost,
            "shared_points": corresp.shared_points,
            "significance_a": spatial_significance(
                prim_a, points, population_of(corresp.a[0], points, tag="alt_gid"), return_squared,
            ),
            "significance_b": spatial_significance(
                prim_b, points, population_of(corresp.b[0], points, tag="gid"), return_squared,
            ),
        })
    return rows


@trace(label="run_correspondence")
def run_correspondence(prims_a_path, assoc_a_path, prims_b_path, assoc_b_path, cloud_path,
                       out_dir, config=None, config_path=None):
    """
    Match primitive set A against primitive set B.

    Args:
        prims_a_path, prims_b_path: primitive files
        assoc_a_path, assoc_b_path: point -> gid association files for each set
        cloud_path: point cloud shared by both sets
        out_dir: output directory
        config: PipelineConfig object (optional)
        config_path: path to YAML config file (optional)

    Returns:
        MatchResult

    Raises InputValidationError if any input is missing.
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)

    errors = validate_inputs({
        "prims_pathA": prims_a_path,
        "assoc_pathA": assoc_a_path,
        "prims_pathB": prims_b_path,
        "assoc_pathB": assoc_b_path,
        "cloud_path": cloud_path,
    })
    if errors:
        for error in errors:
            tracer.event(error, level="ERROR")
        raise InputValidationError(errors)

    ensure_dir(out_dir)

    with tracer.span("read_inputs", module="pipeline"):
        points = read_points(cloud_path)
        points = tag_points(points, read_associations(assoc_a_path), tag="alt_gid")
        points = tag_points(points, read_associations(assoc_b_path), tag="gid")
        prims_a = read_primitives(prims_a_path)
        prims_b = read_primitives(prims_b_path)

    result = match_primitives(prims_a, prims_b, points, cost_fn=select_cost_function(config, points))

    with tracer.span("write_outputs", module="pipeline"):
        matching = config.matching
        write_correspondences(
            result, os.path.join(out_dir, matching.corresp_filename),
            prims_a_path, prims_b_path, backup=matching.backup,
        )
        write_primitives(substitute_matches(result, prims_b), os.path.join(out_dir, matching.subs_filename))

        report = {
            "inputs": {"prims_a": prims_a_path, "prims_b": prims_b_path, "cloud": cloud_path},
            "cost": matching.cost,
            "num_points": len(points),
            "num_matched": len(result.correspondences),
            "num_unmatched_a": len(result.unmatched_a),
            "num_unmatched_b": len(result.unmatched_b),
            "mean_cost": result.mean_cost,
            "pairs": pair_significances(
                result, prims_a, prims_b, points, config.significance.return_squared,
            ),
            "unmatched_a": [list(k) for k in result.unmatched_a],
            "unmatched_b": [list(k) for k in result.unmatched_b],
            "diagnostics": result.diagnostics,
        }
        save_json(report, os.path.join(out_dir, matching.report_filename))

    return result


@trace(label="run_candidates")
def run_candidates(prims_path, out_path, config=None, config_path=None, max_deviation_deg=None):
    """
    Generate angle-constrained candidates for a primitive file.

    Writes the candidates (status UNSET) to out_path and returns them as a
    gid -> [LinePrimitive] collection.
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)

    errors = validate_inputs({"prims_path": prims_path})
    if errors:
        for error in errors:
            tracer.event(error, level="ERROR")
        raise InputValidationError(errors)

    cand_config = config.candidates
    angles = angle_set_from_step(cand_config.angle_step_deg, include_90=cand_config.include_90)
    tracer.event(f"Angle set (deg): {[round(math.degrees(a), 3) for a in angles]}")

    max_deviation = math.radians(max_deviation_deg) if max_deviation_deg is not None else None
    candidates = generate_candidates(
        read_primitives(prims_path), angles,
        angle_multiplier=cand_config.angle_multiplier,
        up_axis=cand_config.up_axis,
        max_deviation=max_deviation,
    )
    write_primitives(candidates, out_path)

    return candidates
