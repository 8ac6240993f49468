"""
Loaders that turn a backend reference into an AssayView.

``load`` is the single entry point for every backend: it verifies the
backend is reachable, pulls its annotations, and builds a validated view.
Either a fully aligned view comes back or an exception is raised; there is
no partially constructed result.

CSV helpers build in-memory views from files laid out the usual way:
    - Rows = features (probes, genes), first column holds identifiers
    - Columns = samples, header holds identifiers
    - Optional row/column annotation CSVs keyed by the same identifiers

Examples:
    >>> from pathlib import Path
    >>> from assayview.io.loaders import load, load_csv_matrix
    >>> from assayview.backends.local import LocalFileBackend
    >>>
    >>> view = load(LocalFileBackend(Path("brca_methylation")))
    >>> memory_view = load_csv_matrix(Path("brca_methylation.csv"),
    ...                               col_annotation=Path("clinical.csv"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING
import logging
import warnings
import numpy as np
import pandas as pd

from assayview.backends.base import AssayBackend
from assayview.backends.memory import InMemoryBackend
from assayview.core.errors import BackendUnavailable, ShapeMismatch
from assayview.core.view import AssayView

if TYPE_CHECKING:
    from assayview.io.alignment import SampleIdAligner

__all__ = ['load', 'load_csv_matrix', 'from_arrays']

logger = logging.getLogger(__name__)


def load(backend: AssayBackend, sample_alignment: Optional[SampleIdAligner] = None) -> AssayView:
    """
    Resolve a backend reference into an AssayView.

    Args:
        backend: InMemoryBackend, LocalFileBackend, or RemoteServiceBackend
        sample_alignment: Optional aligner applied to column identifiers
            (e.g. truncating TCGA aliquot barcodes to participant barcodes)

    Returns:
        AssayView covering the full backend

    Raises:
        BackendUnavailable: File or service cannot be reached
        AuthenticationRequired: Remote backend without its billing credential
        ShapeMismatch: Annotations disagree with the matrix dimensions
    """
    if not isinstance(backend, AssayBackend):
        raise TypeError(f"backend must be AssayBackend, got {type(backend)}")

    backend.check()
    row_annotation, col_annotation = backend.annotations()
    view = AssayView(backend, row_annotation, col_annotation)

    if sample_alignment is not None:
        view = sample_alignment.apply(view)

    logger.info(
        f"Loaded {backend.name} assay: {view.n_rows:,} features x {view.n_cols:,} samples"
    )
    return view


def from_arrays(data: Any, row_annotation: Any, col_annotation: Any) -> AssayView:
    """
    Build an in-memory view from an array and annotations (or identifier lists).

    Examples:
        >>> view = from_arrays(np.zeros((2, 3)), ["g1", "g2"], ["s1", "s2", "s3"])
        >>> view.shape
        (2, 3)
    """
    return load(InMemoryBackend(data, row_annotation, col_annotation))


def load_csv_matrix(
    path: Path,
    row_annotation: Path | pd.DataFrame | None = None,
    col_annotation: Path | pd.DataFrame | None = None,
) -> AssayView:
    """
    Load a features x samples CSV into an in-memory AssayView.

    Expected CSV format:
    ```
    "","TCGA-A1-A0SB-01A","TCGA-A1-A0SD-01A"
    "cg00000029",0.412,0.377
    "cg00000108",0.921,0.934
    ```

    Args:
        path: Matrix CSV (first column = feature identifiers)
        row_annotation: Feature annotation CSV/DataFrame (index = feature ids)
        col_annotation: Sample annotation CSV/DataFrame (index = sample ids)

    Returns:
        AssayView over an InMemoryBackend. Annotations are reordered to
        the matrix order.

    Raises:
        BackendUnavailable: If the CSV does not exist
        ValueError: If the CSV is empty or holds non-numeric values
        ShapeMismatch: If an annotation does not cover the matrix identifiers
    """
    path = Path(path)
    if not path.is_file():
        raise BackendUnavailable(f"CSV file not found: {path}")

    try:
        df = pd.read_csv(path, index_col=0)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"CSV file is empty: {path}") from e

    # Identifiers are labels; numeric ones such as Entrez ids stay strings
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    if df.shape[0] == 0:
        raise ValueError(f"CSV contains no features (rows): {path}")
    if df.shape[1] == 0:
        raise ValueError(f"CSV contains no samples (columns): {path}")

    if df.index.duplicated().any():
        n_duplicates = df.index.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate feature IDs. Using first occurrence of each.",
            UserWarning
        )
        df = df[~df.index.duplicated(keep='first')]

    if df.columns.duplicated().any():
        n_duplicates = df.columns.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate sample IDs. Using first occurrence of each.",
            UserWarning
        )
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    try:
        data = df.to_numpy(dtype=float)
    except ValueError as e:
        raise ValueError(
            "CSV contains non-numeric values:\n" +
            "\n".join(f"  - {x}" for x in _non_numeric_examples(df))
        ) from e

    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        logger.info(f"{n_nan:,} missing values ({100 * n_nan / data.size:.2f}%) in {path.name}")

    rows = _aligned_annotation(row_annotation, df.index, "rows")
    cols = _aligned_annotation(col_annotation, df.columns, "columns")

    return load(InMemoryBackend(data, rows, cols))


def _aligned_annotation(source: Path | pd.DataFrame | None, ids: pd.Index, axis: str) -> pd.DataFrame:
    if source is None:
        return pd.DataFrame(index=pd.Index(ids))

    if isinstance(source, pd.DataFrame):
        annotation = source.copy()
    else:
        source = Path(source)
        if not source.is_file():
            raise BackendUnavailable(f"{axis} annotation file not found: {source}")
        annotation = pd.read_csv(source, index_col=0)
    annotation.index = annotation.index.astype(str)

    missing = pd.Index(ids).difference(annotation.index)
    if len(missing):
        raise ShapeMismatch(
            f"{len(missing)} {axis} identifiers have no annotation: {list(missing[:5])}"
        )
    if annotation.index.has_duplicates:
        raise ShapeMismatch(f"{axis} annotation has duplicate identifiers")

    extra = len(annotation) - len(ids)
    if extra:
        logger.info(f"Dropping {extra} {axis} annotation entries with no matrix data")
    return annotation.loc[pd.Index(ids)]


def _non_numeric_examples(df: pd.DataFrame, limit: int = 5) -> list[str]:
    examples = []
    for i, row in enumerate(df.values):
        for j, val in enumerate(row):
            try:
                float(val)
            except (ValueError, TypeError):
                examples.append(f"row {i} ('{df.index[i]}'), col {j} ('{df.columns[j]}'): {val}")
                if len(examples) >= limit:
                    return examples
    return examples
