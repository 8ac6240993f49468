"""
Genomic intervals and reference-build conversion for row annotations.

Row annotations of probe- or gene-level assays usually carry coordinates
(seqname, start, end, strand) in one reference build. Comparing against data
on another build (e.g. hg19 array annotation vs hg38 gene models) needs the
coordinates converted first. The conversion itself (chain files, liftOver)
is an external collaborator behind CoordinateConverter; this module only
applies it to a view and keeps the view aligned.

Conventions:
    - 1-based, closed intervals (start <= end), as in GFF and Bioconductor
    - strand is '+', '-' or '*'

Examples:
    >>> region = GenomicInterval("chr17", 7661779, 7687538, build="hg38")
    >>> tp53_probes = view.subset(rows=overlapping(region))
    >>>
    >>> lifted = lift_row_annotation(view, converter, target_build="hg38")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
import logging
import numpy as np
import pandas as pd

from assayview.core.errors import EmptySelection
from assayview.core.view import AssayView

__all__ = [
    'GenomicInterval',
    'CoordinateConverter',
    'COORDINATE_COLUMNS',
    'intervals_from_annotation',
    'lift_row_annotation',
    'overlapping',
]

logger = logging.getLogger(__name__)

COORDINATE_COLUMNS = ("seqname", "start", "end", "strand")
"""Default row annotation columns holding coordinates."""

_STRANDS = {"+", "-", "*"}


@dataclass(frozen=True)
class GenomicInterval:
    """
    A range on one sequence of one reference build.

    Attributes:
        seqname: Chromosome/contig name (e.g. "chr17")
        start: 1-based start (inclusive)
        end: 1-based end (inclusive)
        strand: '+', '-' or '*' (unknown/both)
        build: Reference build identifier (e.g. "hg19", "hg38")
    """
    seqname: str
    start: int
    end: int
    strand: str = "*"
    build: Optional[str] = None

    def __post_init__(self):
        if self.start < 1:
            raise ValueError(f"start must be >= 1 (1-based), got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")
        if self.strand not in _STRANDS:
            raise ValueError(f"strand must be one of {sorted(_STRANDS)}, got {self.strand!r}")

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def overlaps(self, other: GenomicInterval) -> bool:
        """True if both intervals share at least one base on the same sequence and build."""
        if self.build and other.build and self.build != other.build:
            return False
        return (
            self.seqname == other.seqname
            and self.start <= other.end
            and other.start <= self.end
        )

    def __str__(self) -> str:
        build = f" [{self.build}]" if self.build else ""
        return f"{self.seqname}:{self.start}-{self.end}:{self.strand}{build}"


class CoordinateConverter(ABC):
    """
    Converts intervals between reference builds.

    Implementations wrap a liftOver chain file, a web service, or a lookup
    table. A single interval may map to zero, one, or several target
    intervals.
    """

    @abstractmethod
    def convert(self, interval: GenomicInterval, target_build: str) -> List[GenomicInterval]:
        """
        Convert one interval.

        Args:
            interval: Source interval (its ``build`` names the source build)
            target_build: Build to convert into

        Returns:
            Zero or more intervals tagged with ``target_build``
        """


def intervals_from_annotation(
    annotation: pd.DataFrame,
    columns: Sequence[str] = COORDINATE_COLUMNS,
    build: Optional[str] = None,
) -> List[Optional[GenomicInterval]]:
    """
    Build intervals from coordinate columns.

    Rows with missing coordinates give None. A ``build`` column, when
    present, overrides the ``build`` argument per row.

    Raises:
        KeyError: If seqname/start/end columns are absent
    """
    seq_col, start_col, end_col = columns[0], columns[1], columns[2]
    strand_col = columns[3] if len(columns) > 3 else None
    missing = [c for c in (seq_col, start_col, end_col) if c not in annotation.columns]
    if missing:
        raise KeyError(f"Row annotation lacks coordinate columns: {missing}")

    has_strand = strand_col is not None and strand_col in annotation.columns
    has_build = "build" in annotation.columns

    intervals: List[Optional[GenomicInterval]] = []
    for _, row in annotation.iterrows():
        if pd.isna(row[seq_col]) or pd.isna(row[start_col]) or pd.isna(row[end_col]):
            intervals.append(None)
            continue
        strand = row[strand_col] if has_strand and not pd.isna(row[strand_col]) else "*"
        row_build = row["build"] if has_build and not pd.isna(row["build"]) else build
        intervals.append(GenomicInterval(
            seqname=str(row[seq_col]),
            start=int(row[start_col]),
            end=int(row[end_col]),
            strand=str(strand),
            build=row_build,
        ))
    return intervals


def lift_row_annotation(
    view: AssayView,
    converter: CoordinateConverter,
    target_build: str,
    source_build: Optional[str] = None,
    columns: Sequence[str] = COORDINATE_COLUMNS,
) -> AssayView:
    """
    Convert a view's row coordinates to another reference build.

    Features that convert to exactly one interval keep their row with
    updated coordinates and ``build = target_build``. Features with missing
    coordinates, no target interval, or several target intervals are
    dropped through ``subset``, so the result stays aligned.

    Args:
        view: View whose row annotation holds coordinates
        converter: Conversion collaborator
        target_build: Build to convert into
        source_build: Build of the current coordinates, if the annotation
            has no ``build`` column
        columns: Names of the seqname/start/end/strand columns

    Returns:
        New AssayView over the same backend

    Raises:
        EmptySelection: If no feature converts unambiguously
    """
    intervals = intervals_from_annotation(view.row_annotation, columns, build=source_build)
    seq_col, start_col, end_col = columns[0], columns[1], columns[2]
    strand_col = columns[3] if len(columns) > 3 else None

    annotation = view.row_annotation.copy()
    keep = np.zeros(view.n_rows, dtype=bool)
    n_unmapped = n_multi = n_missing = 0

    seqnames = annotation[seq_col].astype(object).to_numpy(copy=True)
    starts = annotation[start_col].to_numpy(copy=True)
    ends = annotation[end_col].to_numpy(copy=True)
    strands = annotation[strand_col].astype(object).to_numpy(copy=True) if (
        strand_col and strand_col in annotation.columns) else None

    for i, interval in enumerate(intervals):
        if interval is None:
            n_missing += 1
            continue
        lifted = converter.convert(interval, target_build)
        if len(lifted) == 0:
            n_unmapped += 1
            continue
        if len(lifted) > 1:
            n_multi += 1
            continue
        target = lifted[0]
        seqnames[i], starts[i], ends[i] = target.seqname, target.start, target.end
        if strands is not None:
            strands[i] = target.strand
        keep[i] = True

    logger.info(
        f"Converted {int(keep.sum())}/{view.n_rows} features to {target_build} "
        f"({n_unmapped} unmapped, {n_multi} ambiguous, {n_missing} without coordinates)"
    )
    if not keep.any():
        raise EmptySelection("rows", f"No feature converts unambiguously to {target_build}")

    annotation[seq_col] = seqnames
    annotation[start_col] = starts
    annotation[end_col] = ends
    if strands is not None:
        annotation[strand_col] = strands
    annotation["build"] = target_build

    return view.with_row_annotation(annotation).subset(rows=keep)


def overlapping(
    interval: GenomicInterval,
    columns: Sequence[str] = COORDINATE_COLUMNS,
) -> Callable[[pd.DataFrame], pd.Series]:
    """
    Row predicate selecting features that overlap ``interval``.

    Strand is ignored. When both the interval and the annotation carry a
    build, rows on another build never match.

    Examples:
        >>> view.subset(rows=overlapping(GenomicInterval("chr17", 7661779, 7687538)))
    """
    seq_col, start_col, end_col = columns[0], columns[1], columns[2]

    def predicate(annotation: pd.DataFrame) -> pd.Series:
        mask = (
            (annotation[seq_col] == interval.seqname)
            & (annotation[start_col] <= interval.end)
            & (annotation[end_col] >= interval.start)
        )
        if interval.build and "build" in annotation.columns:
            mask &= annotation["build"] == interval.build
        return mask.fillna(False).astype(bool)

    return predicate

