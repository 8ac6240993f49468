"""
assayview compare - Check that two backends agree on a slice.

The usual check before switching an analysis from an in-memory matrix to a
file- or service-backed one: load both, restrict them to the same features
and samples, and compare values cell by cell.

Usage:
    assayview compare --left remote.yaml --right memory.yaml --rows probes.txt
"""

import argparse
import logging
from pathlib import Path

from assayview.cli._validators import _non_negative_float

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the compare subcommand."""
    parser = subparsers.add_parser(
        "compare",
        help="Check two backends agree on a slice",
        description="Exit status 0 if the slices match within tolerance, 1 otherwise."
    )
    parser.add_argument("--left", type=Path, required=True,
                        help="First backend config")
    parser.add_argument("--right", type=Path, required=True,
                        help="Second backend config")
    parser.add_argument("--rows", type=Path, default=None,
                        help="File of feature identifiers to compare (default: all)")
    parser.add_argument("--cols", type=Path, default=None,
                        help="File of sample identifiers to compare (default: all)")
    parser.add_argument("--rtol", type=_non_negative_float, default=1e-7,
                        help="Relative tolerance (default: 1e-7)")
    parser.add_argument("--atol", type=_non_negative_float, default=0.0,
                        help="Absolute tolerance (default: 0)")
    parser.add_argument("--report", type=Path, default=None,
                        help="Also write the summary to this file")
    parser.set_defaults(func=run_compare)


def run_compare(args: argparse.Namespace) -> int:
    """Execute the compare command."""
    from assayview.cli.config import read_config, open_view, read_identifiers
    from assayview.core.compare import compare_views
    from assayview.core.errors import AssayViewError
    from assayview.utils.fileio import atomic_write_text

    try:
        left = open_view(read_config(args.left))
        right = open_view(read_config(args.right))
        rows = read_identifiers(args.rows) if args.rows else None
        cols = read_identifiers(args.cols) if args.cols else None
        result = compare_views(
            left.subset(rows=rows, cols=cols),
            right.subset(rows=rows, cols=cols),
            rtol=args.rtol,
            atol=args.atol,
        )
    except (AssayViewError, FileNotFoundError, KeyError, ValueError) as e:
        logger.error(f"Compare failed: {e}")
        return 1

    summary = result.summary()
    print(summary)
    if args.report:
        atomic_write_text(args.report, summary + "\n")
        logger.info(f"Wrote comparison report to {args.report}")

    return 0 if result.equal else 1
