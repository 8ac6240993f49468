"""
Core types for backend-agnostic assay views.

1. AssayView: matrix payload reference + row annotation + column annotation
2. Selector resolution shared by every backend
3. Error hierarchy (BackendUnavailable, ShapeMismatch, EmptySelection,
   AuthenticationRequired)
4. compare_views: cell-level agreement between two views

Design Philosophy:
    - Immutability: subset returns a new view, the original is untouched
    - Laziness: only materialize reads payload, and only the view's slice
    - Validation: alignment is checked when a view is built, not assumed

Examples:
    >>> from assayview.core import AssayView, EmptySelection
    >>> try:
    ...     view.subset(rows=lambda r: r['biotype'] == 'miRNA')
    ... except EmptySelection:
    ...     print("no miRNA probes on this platform")
"""

from assayview.core.errors import (
    AssayViewError,
    AuthenticationRequired,
    BackendUnavailable,
    EmptySelection,
    ShapeMismatch,
)
from assayview.core.view import AssayView, subset, materialize
from assayview.core.compare import ViewComparison, compare_views

__all__ = [
    'AssayView',
    'subset',
    'materialize',
    'compare_views',
    'ViewComparison',
    'AssayViewError',
    'AuthenticationRequired',
    'BackendUnavailable',
    'EmptySelection',
    'ShapeMismatch',
]
