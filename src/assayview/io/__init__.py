"""
I/O for assay views.

Key Functions:
    - load: Resolve any backend reference into an AssayView
    - load_csv_matrix: Build an in-memory view from CSV files
    - from_arrays: Build an in-memory view from an array and identifiers
    - write_csv_matrix: Write a view's slice and annotations to CSV
    - SampleIdAligner / align_views: Reconcile sample identifiers across sources

Examples:
    >>> from assayview.io import load, load_csv_matrix, write_csv_matrix
    >>> view = load_csv_matrix(Path("expression.csv"))
    >>> write_csv_matrix(view.subset(cols=lambda c: c['tumor']), Path("results/tumor"))
"""

from assayview.io.loaders import load, load_csv_matrix, from_arrays
from assayview.io.writers import write_csv_matrix
from assayview.io.alignment import (
    SampleIdAligner,
    TCGA_PARTICIPANT_LENGTH,
    align_views,
    shared_samples,
)

__all__ = [
    'load',
    'load_csv_matrix',
    'from_arrays',
    'write_csv_matrix',
    'SampleIdAligner',
    'TCGA_PARTICIPANT_LENGTH',
    'align_views',
    'shared_samples',
]
