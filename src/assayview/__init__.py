"""
assayview - Backend-agnostic views over genomic assay matrices

One immutable AssayView ties an assay matrix to its feature and sample
annotations, whether the numbers live in memory, in a local HDF5 file, or in
a BigQuery table. Subsetting works the same everywhere; only materialize
reads payload.
"""

__version__ = "0.1.0"

from assayview.core.view import AssayView, subset, materialize
from assayview.core.errors import (
    AssayViewError,
    AuthenticationRequired,
    BackendUnavailable,
    EmptySelection,
    ShapeMismatch,
)
from assayview.backends import (
    InMemoryBackend,
    LocalFileBackend,
    RemoteServiceBackend,
    save_local,
)
from assayview.io.loaders import load

__all__ = [
    "AssayView",
    "load",
    "subset",
    "materialize",
    "InMemoryBackend",
    "LocalFileBackend",
    "RemoteServiceBackend",
    "save_local",
    "AssayViewError",
    "AuthenticationRequired",
    "BackendUnavailable",
    "EmptySelection",
    "ShapeMismatch",
]
