"""
Sample identifier alignment across data sources.

Assays from different sources rarely key samples the same way. TCGA is the
usual example:
    - Methylation aliquot barcode:  TCGA-A1-A0SB-01A-11D-A142-05
    - Clinical participant barcode: TCGA-A1-A0SB

Truncating every barcode to its 12-character participant prefix makes the two
sources joinable. SampleIdAligner does that (or a regex extraction) and
re-keys a view's column annotation, keeping the original identifier in a
``source_id`` column.

Examples:
    >>> aligner = SampleIdAligner.tcga()
    >>> aligner.extract('TCGA-A1-A0SB-01A-11D-A142-05')
    'TCGA-A1-A0SB'
    >>> methylation = aligner.apply(methylation)
    >>> expression = aligner.apply(expression)
    >>> methylation, expression = align_views(methylation, expression)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union, List
import logging
import re
import pandas as pd

from assayview.core.errors import EmptySelection, ShapeMismatch
from assayview.core.view import AssayView

__all__ = ['SampleIdAligner', 'TCGA_PARTICIPANT_LENGTH', 'shared_samples', 'align_views']

logger = logging.getLogger(__name__)

TCGA_PARTICIPANT_LENGTH = 12
"""Characters in a TCGA participant barcode (TCGA-XX-XXXX)."""


@dataclass
class SampleIdAligner:
    """
    Map sample identifiers onto a shared key.

    Tries the regex pattern first (first capture group, or the whole match),
    then truncates to ``prefix_length``. Identifiers neither rule changes are
    kept as they are.

    Attributes:
        prefix_length: Keep only this many leading characters
        pattern: Optional regex used to extract the key
        source_column: Column that keeps the original identifier after ``apply``
    """
    prefix_length: Optional[int] = None
    pattern: Optional[str] = None
    source_column: str = "source_id"

    def __post_init__(self):
        if self.prefix_length is not None and self.prefix_length <= 0:
            raise ValueError(f"prefix_length must be positive, got {self.prefix_length}")
        self._compiled_pattern = re.compile(self.pattern) if self.pattern else None

    @classmethod
    def tcga(cls) -> SampleIdAligner:
        """Aligner truncating TCGA barcodes to the participant barcode."""
        return cls(prefix_length=TCGA_PARTICIPANT_LENGTH)

    def extract(self, sample_id) -> str:
        """Aligned key for one identifier."""
        sid = str(sample_id)

        if self._compiled_pattern:
            match = self._compiled_pattern.search(sid)
            if match:
                return match.group(1) if match.groups() else match.group(0)

        if self.prefix_length is not None:
            return sid[:self.prefix_length]
        return sid

    def align(self, sample_ids: Union[pd.Index, List[str]]) -> pd.Index:
        """
        Aligned keys for many identifiers.

        Raises:
            ShapeMismatch: If two identifiers map to the same key
        """
        sample_ids = pd.Index(sample_ids)
        aligned = pd.Index([self.extract(s) for s in sample_ids], name=sample_ids.name)

        if aligned.has_duplicates:
            collided = aligned[aligned.duplicated()].unique()
            examples = [list(sample_ids[aligned == key]) for key in collided[:3]]
            raise ShapeMismatch(
                f"{len(collided)} aligned sample keys collide, e.g. {examples}. "
                "Subset to one sample per key before aligning."
            )
        return aligned

    def apply(self, view: AssayView) -> AssayView:
        """Return a view whose columns are keyed by aligned identifiers."""
        aligned = self.align(view.col_ids)
        annotation = view.col_annotation.copy()
        annotation[self.source_column] = view.col_ids
        annotation.index = aligned

        n_changed = int((aligned != view.col_ids.astype(str)).sum())
        logger.info(f"Aligned {n_changed}/{view.n_cols} sample identifiers")
        return view.with_col_annotation(annotation)


def shared_samples(left: AssayView, right: AssayView) -> pd.Index:
    """Column identifiers present in both views, in ``left`` order."""
    return left.col_ids[left.col_ids.isin(right.col_ids)]


def align_views(
    left: AssayView,
    right: AssayView,
    aligner: Optional[SampleIdAligner] = None,
) -> tuple[AssayView, AssayView]:
    """
    Restrict two views to their shared samples, in the same column order.

    Args:
        left: First view (its sample order is kept)
        right: Second view
        aligner: Applied to both views first, if given

    Returns:
        (left, right) narrowed to shared samples

    Raises:
        EmptySelection: If the views share no samples
    """
    if aligner is not None:
        left = aligner.apply(left)
        right = aligner.apply(right)

    shared = shared_samples(left, right)
    if len(shared) == 0:
        raise EmptySelection("columns", "Views share no sample identifiers")

    logger.info(
        f"{len(shared)} shared samples ({left.n_cols} left, {right.n_cols} right)"
    )
    return left.subset(cols=shared), right.subset(cols=shared)
