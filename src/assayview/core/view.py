"""
AssayView: one immutable view over an assay matrix and its annotations.

An AssayView ties together three aligned structures:
    - a backend holding the numeric payload (memory, HDF5 file, BigQuery)
    - a row annotation table (features: coordinates, biotype, symbol, ...)
    - a column annotation table (samples: clinical/phenotype attributes)

The view itself never holds payload. It records which backend rows and
columns it covers, so narrowing a view is bookkeeping only and the same
selection code works for every backend. Payload is read by ``materialize``,
and only for the slice the view covers.

Shape Invariants:
    - len(row_annotation) == len(rows) == matrix rows
    - len(col_annotation) == len(cols) == matrix columns
    - row and column identifiers are unique

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from assayview.backends.memory import InMemoryBackend
    >>> from assayview.io.loaders import load
    >>>
    >>> backend = InMemoryBackend(
    ...     np.arange(15.0).reshape(5, 3),
    ...     pd.DataFrame({'biotype': ['pc', 'pc', 'lnc', 'pc', 'lnc']},
    ...                  index=['g1', 'g2', 'g3', 'g4', 'g5']),
    ...     pd.DataFrame({'tumor': [True, False, True]}, index=['s1', 's2', 's3']),
    ... )
    >>> view = load(backend)
    >>> small = view.subset(rows=['g4', 'g2'])
    >>> small.shape
    (2, 3)
    >>> tumors = view.subset(cols=lambda c: c['tumor'])
    >>> tumors.materialize().shape
    (5, 2)
"""

from __future__ import annotations

from typing import Any
import logging
import numpy as np
import pandas as pd

from assayview.backends.base import AssayBackend
from assayview.core.errors import ShapeMismatch
from assayview.core.selectors import Selector, resolve_selector, compose

__all__ = ['AssayView', 'subset', 'materialize']

logger = logging.getLogger(__name__)


class AssayView:
    """
    Immutable, backend-agnostic view of an assay matrix with annotations.

    Attributes:
        backend: Payload source (shared read-only with derived views)
        row_annotation: Feature annotations, indexed by feature identifier
        col_annotation: Sample annotations, indexed by sample identifier
        rows: Backend row positions covered by this view
        cols: Backend column positions covered by this view

    Design Principles:
        1. Immutability: subset and re-annotation return new instances
        2. Validation: constructor checks alignment and identifier uniqueness
        3. Laziness: only materialize reads payload
    """

    def __init__(
        self,
        backend: AssayBackend,
        row_annotation: pd.DataFrame,
        col_annotation: pd.DataFrame,
        rows: np.ndarray | None = None,
        cols: np.ndarray | None = None,
    ):
        """
        Initialize AssayView with validation.

        Args:
            backend: Payload source
            row_annotation: DataFrame indexed by feature identifiers, in view order
            col_annotation: DataFrame indexed by sample identifiers, in view order
            rows: Backend row positions (default: all rows in backend order)
            cols: Backend column positions (default: all columns in backend order)

        Raises:
            TypeError: If arguments have the wrong types
            ShapeMismatch: If annotations do not align with the selected
                positions, positions fall outside the backend, or identifiers
                are duplicated
        """
        if not isinstance(backend, AssayBackend):
            raise TypeError(f"backend must be AssayBackend, got {type(backend)}")
        if not isinstance(row_annotation, pd.DataFrame):
            raise TypeError(f"row_annotation must be pd.DataFrame, got {type(row_annotation)}")
        if not isinstance(col_annotation, pd.DataFrame):
            raise TypeError(f"col_annotation must be pd.DataFrame, got {type(col_annotation)}")

        n_rows, n_cols = backend.shape
        rows = np.arange(n_rows, dtype=np.int64) if rows is None else np.array(rows, dtype=np.int64)
        cols = np.arange(n_cols, dtype=np.int64) if cols is None else np.array(cols, dtype=np.int64)

        _check_positions(rows, n_rows, "rows")
        _check_positions(cols, n_cols, "columns")

        if len(row_annotation) != len(rows):
            raise ShapeMismatch(
                f"row annotation length ({len(row_annotation)}) must match matrix rows ({len(rows)})"
            )
        if len(col_annotation) != len(cols):
            raise ShapeMismatch(
                f"column annotation length ({len(col_annotation)}) must match "
                f"matrix columns ({len(cols)})"
            )
        if row_annotation.index.has_duplicates:
            raise ShapeMismatch(
                f"row identifiers must be unique, found duplicates: "
                f"{list(row_annotation.index[row_annotation.index.duplicated()][:5])}"
            )
        if col_annotation.index.has_duplicates:
            raise ShapeMismatch(
                f"column identifiers must be unique, found duplicates: "
                f"{list(col_annotation.index[col_annotation.index.duplicated()][:5])}"
            )

        rows.setflags(write=False)
        cols.setflags(write=False)

        self._backend = backend
        # Own copies; the properties hand out copies too, so callers can't
        # break alignment by mutating a table in place
        self._row_annotation = row_annotation.copy()
        self._col_annotation = col_annotation.copy()
        self._rows = rows
        self._cols = cols

    @property
    def backend(self) -> AssayBackend:
        """Payload source."""
        return self._backend

    @property
    def row_annotation(self) -> pd.DataFrame:
        """Feature annotations, aligned with matrix rows (a copy)."""
        return self._row_annotation.copy()

    @property
    def col_annotation(self) -> pd.DataFrame:
        """Sample annotations, aligned with matrix columns (a copy)."""
        return self._col_annotation.copy()

    @property
    def row_ids(self) -> pd.Index:
        """Feature identifiers."""
        return self._row_annotation.index

    @property
    def col_ids(self) -> pd.Index:
        """Sample identifiers."""
        return self._col_annotation.index

    @property
    def rows(self) -> np.ndarray:
        """Backend row positions covered by this view (read-only)."""
        return self._rows

    @property
    def cols(self) -> np.ndarray:
        """Backend column positions covered by this view (read-only)."""
        return self._cols

    @property
    def shape(self) -> tuple[int, int]:
        """View dimensions (n_rows, n_cols)."""
        return len(self._rows), len(self._cols)

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    @property
    def n_cols(self) -> int:
        return len(self._cols)

    def subset(self, rows: Selector = None, cols: Selector = None) -> AssayView:
        """
        Narrow the view to selected features and/or samples.

        Both selectors are resolved before anything is built, so a failure on
        either axis leaves no partial result. No payload is read.

        Args:
            rows: Row selector (see assayview.core.selectors), positions are
                relative to this view
            cols: Column selector, same forms as ``rows``

        Returns:
            New AssayView over the same backend

        Raises:
            EmptySelection: If either selector yields nothing
            KeyError: Unknown identifier
            IndexError: Position out of range

        Examples:
            >>> # Two probes, in the order asked for
            >>> view.subset(rows=['cg0002', 'cg0001'])
            >>>
            >>> # Tumor samples only
            >>> view.subset(cols=lambda c: c['sample_type'] == 'tumor')
        """
        row_pos = resolve_selector(rows, self.row_ids, self._row_annotation, axis="rows")
        col_pos = resolve_selector(cols, self.col_ids, self._col_annotation, axis="columns")

        return AssayView(
            backend=self._backend,
            row_annotation=self._row_annotation.iloc[row_pos],
            col_annotation=self._col_annotation.iloc[col_pos],
            rows=compose(self._rows, row_pos),
            cols=compose(self._cols, col_pos),
        )

    def matrix_slice(self, rows: Selector = None, cols: Selector = None) -> np.ndarray:
        """
        Read a slice of this view without building a new view.

        Equivalent to ``self.subset(rows, cols).materialize()``.
        """
        row_pos = resolve_selector(rows, self.row_ids, self._row_annotation, axis="rows")
        col_pos = resolve_selector(cols, self.col_ids, self._col_annotation, axis="columns")
        return self._read(compose(self._rows, row_pos), compose(self._cols, col_pos))

    def materialize(self) -> np.ndarray:
        """
        Realize the numeric payload for this view's slice.

        Cost depends on the backend: free for memory, disk reads for the
        local HDF5 backend, one query for the remote backend. Never reads
        beyond the rows and columns this view covers.

        Returns:
            float array of shape ``self.shape``
        """
        return self._read(self._rows, self._cols)

    def to_frame(self) -> pd.DataFrame:
        """Materialized slice as a DataFrame labelled by identifiers."""
        return pd.DataFrame(self.materialize(), index=self.row_ids, columns=self.col_ids)

    def with_row_annotation(self, row_annotation: pd.DataFrame) -> AssayView:
        """Return a view with replaced row annotation (same payload slice)."""
        return AssayView(self._backend, row_annotation, self._col_annotation, self._rows, self._cols)

    def with_col_annotation(self, col_annotation: pd.DataFrame) -> AssayView:
        """Return a view with replaced column annotation (same payload slice)."""
        return AssayView(self._backend, self._row_annotation, col_annotation, self._rows, self._cols)

    def _read(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        if self._backend.is_lazy:
            logger.info(
                f"Materializing {len(rows)} x {len(cols)} slice from {self._backend.name} backend"
            )
        data = self._backend.read(rows, cols)
        if data.shape != (len(rows), len(cols)):
            raise ShapeMismatch(
                f"{self._backend.name} backend returned shape {data.shape}, "
                f"expected {(len(rows), len(cols))}"
            )
        return data

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"AssayView({self.n_rows} features × {self.n_cols} samples, "
            f"backend={self._backend.name})\n"
            f"  Features: {_span(self.row_ids)}\n"
            f"  Samples: {_span(self.col_ids)}\n"
            f"  Row annotation columns: {list(self._row_annotation.columns)}\n"
            f"  Column annotation columns: {list(self._col_annotation.columns)}"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return self.__repr__()


def subset(view: AssayView, rows: Selector = None, cols: Selector = None) -> AssayView:
    """Functional form of ``AssayView.subset``."""
    return view.subset(rows=rows, cols=cols)


def materialize(view: AssayView) -> np.ndarray:
    """Functional form of ``AssayView.materialize``."""
    return view.materialize()


def _check_positions(positions: np.ndarray, n: int, axis: str) -> None:
    if positions.ndim != 1:
        raise ShapeMismatch(f"{axis} positions must be 1D, got shape {positions.shape}")
    if len(positions) and (positions.min() < 0 or positions.max() >= n):
        raise ShapeMismatch(f"{axis} positions fall outside backend range [0, {n})")
    if len(np.unique(positions)) != len(positions):
        raise ShapeMismatch(f"{axis} positions must be unique")


def _span(ids: pd.Index) -> Any:
    if len(ids) == 0:
        return "(none)"
    return f"{ids[0]}...{ids[-1]}"
