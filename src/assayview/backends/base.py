"""
Base class for assay matrix backends.

A backend owns the numeric payload of an assay and knows how to read an
arbitrary row/column slice of it. Views never read payload directly; they
hand the backend positional indices and get a dense array back.

Cost of ``read`` is what distinguishes the variants:
    - InMemoryBackend: payload already resident, indexing only
    - LocalFileBackend: proportional to bytes read from the HDF5 file
    - RemoteServiceBackend: one query round trip plus result serialization

Examples:
    >>> class ZeroBackend(AssayBackend):
    ...     name = "zeros"
    ...     def __init__(self, n_rows, n_cols):
    ...         self._shape = (n_rows, n_cols)
    ...     @property
    ...     def shape(self):
    ...         return self._shape
    ...     def annotations(self):
    ...         rows = pd.DataFrame(index=pd.Index([f"f{i}" for i in range(self._shape[0])]))
    ...         cols = pd.DataFrame(index=pd.Index([f"s{j}" for j in range(self._shape[1])]))
    ...         return rows, cols
    ...     def read(self, rows, cols):
    ...         return np.zeros((len(rows), len(cols)))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
import numpy as np
import pandas as pd

__all__ = ['AssayBackend', 'as_annotation']


class AssayBackend(ABC):
    """
    Abstract source of an assay matrix payload.

    Attributes:
        name: Short backend kind used in logs and summaries
        is_lazy: True when ``read`` does I/O (file or network)

    Subclasses must implement ``shape``, ``annotations`` and ``read``.
    Backends are read-only once constructed; views that share a backend
    never mutate it.
    """

    name: str = "backend"
    is_lazy: bool = True

    @property
    @abstractmethod
    def shape(self) -> tuple[int, int]:
        """Full payload dimensions (n_rows, n_cols)."""

    @abstractmethod
    def annotations(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        Row and column annotations stored with (or supplied to) the backend.

        Returns:
            (row_annotation, col_annotation), each indexed by identifiers in
            payload order.

        Raises:
            BackendUnavailable: If the backing store cannot be reached
        """

    @abstractmethod
    def read(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        """
        Read a dense slice of the payload.

        Args:
            rows: Unique payload row positions, in the order wanted
            cols: Unique payload column positions, in the order wanted

        Returns:
            float array of shape (len(rows), len(cols))
        """

    def check(self) -> None:
        """Raise BackendUnavailable if the backend cannot be used."""

    def describe(self) -> dict[str, Any]:
        """Summary used by ``assayview inspect`` and logs."""
        n_rows, n_cols = self.shape
        return {"backend": self.name, "lazy": self.is_lazy, "n_rows": n_rows, "n_cols": n_cols}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


def as_annotation(value: Any, axis: str = "rows") -> pd.DataFrame:
    """
    Coerce identifiers or a table to an annotation DataFrame.

    Args:
        value: DataFrame (returned as-is), pd.Index, or sequence of identifiers
        axis: Axis name used in error messages

    Returns:
        DataFrame indexed by identifiers (possibly with no columns)
    """
    if isinstance(value, pd.DataFrame):
        return value
    if value is None:
        raise TypeError(f"{axis} annotation is required")
    return pd.DataFrame(index=pd.Index(list(value)))
