"""
Compare two assay views cell by cell.

Typical use is checking that a remote- or file-backed view reproduces an
in-memory reference over the same features and samples before switching a
workflow to the lazy backend.

Examples:
    >>> result = compare_views(remote_view.subset(rows=probes), memory_view.subset(rows=probes))
    >>> result.equal
    True
    >>> print(result.summary())
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import numpy as np

from assayview.core.view import AssayView

__all__ = ['ViewComparison', 'compare_views']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewComparison:
    """
    Result of comparing two views.

    Attributes:
        same_rows: Row identifiers match exactly, in order
        same_cols: Column identifiers match exactly, in order
        shape_left: Shape of the left view
        shape_right: Shape of the right view
        n_mismatched: Cells outside tolerance (None if not compared)
        max_abs_diff: Largest absolute difference (None if not compared)
        missing_rows: Row ids in left but not right
        missing_cols: Column ids in left but not right
    """
    same_rows: bool
    same_cols: bool
    shape_left: tuple[int, int]
    shape_right: tuple[int, int]
    n_mismatched: int | None = None
    max_abs_diff: float | None = None
    missing_rows: list = field(default_factory=list)
    missing_cols: list = field(default_factory=list)

    @property
    def equal(self) -> bool:
        """True when identifiers align and every cell is within tolerance."""
        return self.same_rows and self.same_cols and self.n_mismatched == 0

    def summary(self) -> str:
        lines = [
            f"Left shape:  {self.shape_left}",
            f"Right shape: {self.shape_right}",
            f"Row identifiers match:    {self.same_rows}",
            f"Column identifiers match: {self.same_cols}",
        ]
        if self.missing_rows:
            lines.append(f"Rows only in left: {self.missing_rows[:10]}")
        if self.missing_cols:
            lines.append(f"Columns only in left: {self.missing_cols[:10]}")
        if self.n_mismatched is not None:
            lines.append(f"Cells outside tolerance: {self.n_mismatched}")
            lines.append(f"Max absolute difference: {self.max_abs_diff:.6g}")
        lines.append(f"Equal: {self.equal}")
        return "\n".join(lines)


def compare_views(
    left: AssayView,
    right: AssayView,
    rtol: float = 1e-7,
    atol: float = 0.0,
    equal_nan: bool = True,
) -> ViewComparison:
    """
    Compare identifiers and values of two views.

    Values are only materialized when both identifier axes match exactly,
    so a mismatched pair costs no payload reads.

    Args:
        left: First view (typically the lazy backend)
        right: Second view (typically the in-memory reference)
        rtol: Relative tolerance (as in numpy.isclose)
        atol: Absolute tolerance
        equal_nan: Treat NaN in both views as equal

    Returns:
        ViewComparison
    """
    same_rows = left.row_ids.equals(right.row_ids)
    same_cols = left.col_ids.equals(right.col_ids)

    if not (same_rows and same_cols):
        logger.info("Identifiers differ; skipping value comparison")
        return ViewComparison(
            same_rows=same_rows,
            same_cols=same_cols,
            shape_left=left.shape,
            shape_right=right.shape,
            missing_rows=list(left.row_ids.difference(right.row_ids, sort=False)),
            missing_cols=list(left.col_ids.difference(right.col_ids, sort=False)),
        )

    a = left.materialize()
    b = right.materialize()
    close = np.isclose(a, b, rtol=rtol, atol=atol, equal_nan=equal_nan)
    both_finite = np.isfinite(a) & np.isfinite(b)
    max_abs_diff = float(np.max(np.abs(a - b)[both_finite])) if both_finite.any() else 0.0

    result = ViewComparison(
        same_rows=True,
        same_cols=True,
        shape_left=left.shape,
        shape_right=right.shape,
        n_mismatched=int((~close).sum()),
        max_abs_diff=max_abs_diff,
    )
    logger.info(
        f"Compared {a.size:,} cells: {result.n_mismatched} outside tolerance "
        f"(max |diff| = {max_abs_diff:.3g})"
    )
    return result
