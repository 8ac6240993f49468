"""
Genomic coordinates for row annotations.

- GenomicInterval / overlapping: range queries over feature coordinates
- CoordinateConverter / lift_row_annotation: reference-build conversion
- GeneAnnotationClient: gene ranges from mygene.info
"""

from assayview.genomics.intervals import (
    COORDINATE_COLUMNS,
    CoordinateConverter,
    GenomicInterval,
    intervals_from_annotation,
    lift_row_annotation,
    overlapping,
)
from assayview.genomics.annotation import GeneAnnotationClient, RANGE_COLUMNS

__all__ = [
    'COORDINATE_COLUMNS',
    'CoordinateConverter',
    'GenomicInterval',
    'intervals_from_annotation',
    'lift_row_annotation',
    'overlapping',
    'GeneAnnotationClient',
    'RANGE_COLUMNS',
]
