"""
Command-line interface for primreg.

Provides commands for correspondence matching, candidate generation and
writing a default configuration.
"""

import argparse
import sys

from primreg.config import load_config, save_default_config
from primreg.tracer import configure_tracer, get_tracer


def _add_trace_arguments(parser):
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )


def build_parser():
    parser = argparse.ArgumentParser(
        description="primreg: line primitive extents, candidates and correspondence matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Correspondence command
    corresp_parser = subparsers.add_parser("corresp", help="Match primitives A against primitives B")
    corresp_parser.add_argument("prims_a", help="Primitive file A (e.g. primitives.csv)")
    corresp_parser.add_argument("assoc_a", help="Point associations of A (points_primitives.csv)")
    corresp_parser.add_argument("prims_b", help="Primitive file B (e.g. ground truth)")
    corresp_parser.add_argument("assoc_b", help="Point associations of B")
    corresp_parser.add_argument("cloud", help="Point cloud (.ply or .csv)")
    corresp_parser.add_argument(
        "--out", "-o",
        default=".",
        help="Output directory",
    )
    corresp_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    corresp_parser.add_argument(
        "--cost",
        default=None,
        choices=["anchor", "segment"],
        help="Pair cost (overrides config, default anchor)",
    )
    _add_trace_arguments(corresp_parser)

    # Candidates command
    cand_parser = subparsers.add_parser("candidates", help="Generate angle-constrained candidates")
    cand_parser.add_argument("prims", help="Primitive file")
    cand_parser.add_argument(
        "--out", "-o",
        default="candidates.csv",
        help="Output primitive file",
    )
    cand_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    cand_parser.add_argument(
        "--angle-step",
        type=float,
        default=None,
        help="Canonical angle step in degrees (overrides config)",
    )
    cand_parser.add_argument(
        "--max-deviation",
        type=float,
        default=None,
        help="Skip pairs deviating more than this many degrees from a canonical angle",
    )
    _add_trace_arguments(cand_parser)

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="primreg_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "corresp":
        return handle_corresp(args)
    elif args.command == "candidates":
        return handle_candidates(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def _configure_tracing(args):
    configure_tracer(
        enabled=args.trace,
        level=args.trace_level,
        file_path=args.trace_file,
        json_output=args.trace_json,
    )
    return get_tracer()


def handle_corresp(args):
    """Handle the corresp command."""
    tracer = _configure_tracing(args)

    config = load_config(args.config)
    if args.cost:
        config.matching.cost = args.cost

    try:
        from primreg.pipeline import run_correspondence

        with tracer.span("cli_corresp", module="cli"):
            result = run_correspondence(
                args.prims_a, args.assoc_a, args.prims_b, args.assoc_b, args.cloud,
                out_dir=args.out,
                config=config,
            )

        print(f"\nCorrespondence completed.")
        print(f"  Matched pairs: {len(result.correspondences)}")
        print(f"  Unmatched A: {len(result.unmatched_a)}")
        print(f"  Unmatched B: {len(result.unmatched_b)}")
        print(f"  Mean cost: {result.mean_cost:.6f}")
        print(f"\nOutputs saved to: {args.out}/")
        print(f"  - {config.matching.corresp_filename}")
        print(f"  - {config.matching.subs_filename}")
        print(f"  - {config.matching.report_filename}")

        if result.diagnostics:
            print(f"\n[!] {len(result.diagnostics)} matching diagnostics. Review {config.matching.report_filename}")

        return 0

    except Exception as e:
        tracer.event(f"Correspondence failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_candidates(args):
    """Handle the candidates command."""
    tracer = _configure_tracing(args)

    config = load_config(args.config)
    if args.angle_step is not None:
        config.candidates.angle_step_deg = args.angle_step

    try:
        from primreg.pipeline import run_candidates

        with tracer.span("cli_candidates", module="cli"):
            candidates = run_candidates(
                args.prims, args.out, config=config, max_deviation_deg=args.max_deviation,
            )

        total = sum(len(c) for c in candidates.values())
        print(f"\nGenerated {total} candidates in {len(candidates)} groups.")
        print(f"Saved to: {args.out}")
        return 0

    except Exception as e:
        tracer.event(f"Candidate generation failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
