"""
assayview export - Subset a backend and write the slice to CSV.

Only the selected slice is materialized, so exporting a few probes from a
remote table costs one small query.

Usage:
    assayview export --backend remote.yaml --rows probes.txt --output results/probes
"""

import argparse
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the export subcommand."""
    parser = subparsers.add_parser(
        "export",
        help="Subset a backend and write the slice to CSV",
        description="Write {output}.data.csv, {output}.rows.csv and {output}.cols.csv."
    )
    parser.add_argument("--backend", "-b", type=Path, required=True,
                        help="Backend config file (.yaml, .yml, .json)")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output path prefix")
    parser.add_argument("--rows", type=Path, default=None,
                        help="File of feature identifiers to keep (one per line)")
    parser.add_argument("--cols", type=Path, default=None,
                        help="File of sample identifiers to keep (one per line)")
    parser.add_argument("--no-annotations", action="store_true",
                        help="Write the matrix only")
    parser.set_defaults(func=run_export)


def run_export(args: argparse.Namespace) -> int:
    """Execute the export command."""
    from assayview.cli.config import read_config, open_view, read_identifiers
    from assayview.core.errors import AssayViewError
    from assayview.io.writers import write_csv_matrix

    try:
        view = open_view(read_config(args.backend))
        rows = read_identifiers(args.rows) if args.rows else None
        cols = read_identifiers(args.cols) if args.cols else None
        selected = view.subset(rows=rows, cols=cols)
        logger.info(f"Exporting {selected.n_rows} x {selected.n_cols} of {view.n_rows} x {view.n_cols}")
        paths = write_csv_matrix(selected, args.output, write_annotations=not args.no_annotations)
    except (AssayViewError, FileNotFoundError, KeyError, ValueError) as e:
        logger.error(f"Export failed: {e}")
        return 1

    for role, path in paths.items():
        print(f"{role}: {path}")
    return 0
