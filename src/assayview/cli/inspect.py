"""
assayview inspect - Summarize a configured backend without reading payload.

Usage:
    assayview inspect --backend remote.yaml
    assayview inspect --backend local.yaml --json
"""

import argparse
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the inspect subcommand."""
    parser = subparsers.add_parser(
        "inspect",
        help="Load a configured backend and summarize it",
        description=(
            "Resolve a backend config into an assay view and print its shape, "
            "identifiers and annotation columns. Only annotations and shape "
            "are fetched; the numeric payload is never read."
        )
    )
    parser.add_argument("--backend", "-b", type=Path, required=True,
                        help="Backend config file (.yaml, .yml, .json)")
    parser.add_argument("--json", action="store_true",
                        help="Print the summary as JSON")
    parser.set_defaults(func=run_inspect)


def summarize(view) -> dict:
    """Plain-dict summary of a view."""
    return {
        **view.backend.describe(),
        "shape": list(view.shape),
        "first_features": [str(i) for i in view.row_ids[:5]],
        "first_samples": [str(i) for i in view.col_ids[:5]],
        "row_annotation_columns": [str(c) for c in view.row_annotation.columns],
        "col_annotation_columns": [str(c) for c in view.col_annotation.columns],
    }


def run_inspect(args: argparse.Namespace) -> int:
    """Execute the inspect command."""
    from assayview.cli.config import read_config, open_view
    from assayview.core.errors import AssayViewError

    try:
        view = open_view(read_config(args.backend))
    except (AssayViewError, FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot load backend from {args.backend}: {e}")
        return 1

    summary = summarize(view)
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(view)
        for key, value in summary.items():
            print(f"  {key}: {value}")
    return 0
