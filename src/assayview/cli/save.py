"""
assayview save - Convert a CSV matrix to the local HDF5 directory format.

Usage:
    assayview save --input methylation.csv --col-annotation clinical.csv --output brca_h5
"""

import argparse
import logging
from pathlib import Path

from assayview.cli._validators import _positive_int

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the save subcommand."""
    parser = subparsers.add_parser(
        "save",
        help="Convert a CSV matrix to the local HDF5 directory format",
        description=(
            "Write shell.json (annotations and shape) and assays.h5 (chunked "
            "payload) into the output directory."
        )
    )
    parser.add_argument("--input", "-i", type=Path, required=True,
                        help="Matrix CSV (features x samples)")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output directory")
    parser.add_argument("--row-annotation", type=Path, default=None,
                        help="Feature annotation CSV (first column = feature id)")
    parser.add_argument("--col-annotation", type=Path, default=None,
                        help="Sample annotation CSV (first column = sample id)")
    parser.add_argument("--chunk-rows", type=_positive_int, default=None,
                        help="Rows per HDF5 chunk (default: automatic)")
    parser.add_argument("--compression", choices=["gzip", "lzf", "none"], default="gzip",
                        help="HDF5 compression filter (default: gzip)")
    parser.add_argument("--overwrite", action="store_true",
                        help="Replace an existing shell/assay file")
    parser.set_defaults(func=run_save)


def run_save(args: argparse.Namespace) -> int:
    """Execute the save command."""
    from assayview.backends.local import save_local
    from assayview.core.errors import AssayViewError
    from assayview.io.loaders import load_csv_matrix

    try:
        view = load_csv_matrix(args.input, row_annotation=args.row_annotation,
                               col_annotation=args.col_annotation)
        chunks = (min(args.chunk_rows, view.n_rows), view.n_cols) if args.chunk_rows else True
        compression = None if args.compression == "none" else args.compression
        backend = save_local(view, args.output, chunks=chunks, compression=compression,
                             overwrite=args.overwrite)
    except (AssayViewError, FileExistsError, ValueError) as e:
        logger.error(f"Save failed: {e}")
        return 1

    print(f"Saved {view.n_rows} x {view.n_cols} assay to {backend.directory}")
    return 0
