"""In-memory backend: the payload is a resident NumPy array."""

from __future__ import annotations

from typing import Any
import numpy as np
import pandas as pd

from assayview.backends.base import AssayBackend, as_annotation
from assayview.core.errors import ShapeMismatch

__all__ = ['InMemoryBackend']


class InMemoryBackend(AssayBackend):
    """
    Backend over a 2-D array already held in memory.

    Args:
        data: Numeric matrix (features x samples)
        row_annotation: Feature annotation table, or feature identifiers
        col_annotation: Sample annotation table, or sample identifiers

    Raises:
        TypeError: If data is not array-like numeric
        ShapeMismatch: If data is not 2-D
    """

    name = "memory"
    is_lazy = False

    def __init__(self, data: Any, row_annotation: Any, col_annotation: Any):
        data = np.asarray(data)
        if data.dtype.kind not in 'iufb':
            raise TypeError(f"data must be numeric, got dtype {data.dtype}")
        if data.ndim != 2:
            raise ShapeMismatch(f"data must be 2D, got shape {data.shape}")
        # Private copy so freezing it never touches the caller's array
        self._data = np.array(data, dtype=float)
        self._data.setflags(write=False)
        self._row_annotation = as_annotation(row_annotation, "rows").copy()
        self._col_annotation = as_annotation(col_annotation, "columns").copy()

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    def annotations(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        return self._row_annotation.copy(), self._col_annotation.copy()

    def read(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        return self._data[np.ix_(rows, cols)]
