"""
CSV writers for assay views.

Writes the materialized slice of a view plus both annotation tables, so the
output can be read back with ``load_csv_matrix`` or opened in R/Excel.

Output Files:
    {path}.data.csv   matrix, first column = feature identifiers
    {path}.rows.csv   row annotation
    {path}.cols.csv   column annotation

Examples:
    >>> from assayview.io.writers import write_csv_matrix
    >>> write_csv_matrix(view.subset(rows=probes), Path("results/brca_subset"))
"""

from __future__ import annotations

from pathlib import Path
import logging
import pandas as pd

from assayview.core.view import AssayView

__all__ = ['write_csv_matrix', 'output_paths']

logger = logging.getLogger(__name__)


def output_paths(path: Path) -> dict[str, Path]:
    """Paths written by ``write_csv_matrix`` for a base path."""
    path = Path(path)
    return {
        "data": path.parent / f"{path.name}.data.csv",
        "rows": path.parent / f"{path.name}.rows.csv",
        "cols": path.parent / f"{path.name}.cols.csv",
    }


def write_csv_matrix(view: AssayView, path: Path, write_annotations: bool = True) -> dict[str, Path]:
    """
    Write a view's slice (and annotations) to CSV.

    Args:
        view: AssayView to write; only its slice is materialized
        path: Base path without extension
        write_annotations: Also write the row and column annotation tables

    Returns:
        Mapping of written file role to path
    """
    paths = output_paths(path)
    paths["data"].parent.mkdir(parents=True, exist_ok=True)

    frame = view.to_frame()
    frame.to_csv(paths["data"])
    logger.info(f"Wrote {frame.shape[0]} x {frame.shape[1]} matrix to {paths['data']}")

    if not write_annotations:
        return {"data": paths["data"]}

    _write_annotation(view.row_annotation, paths["rows"])
    _write_annotation(view.col_annotation, paths["cols"])
    return paths


def _write_annotation(annotation: pd.DataFrame, path: Path) -> None:
    annotation.to_csv(path, index_label=annotation.index.name or "id")
    logger.info(f"Wrote {len(annotation.columns)}-column annotation to {path}")
