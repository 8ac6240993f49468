"""
Selector resolution for assay view subsetting.

A selector narrows one axis of a view. Whatever form it takes, it is resolved
to an array of positions relative to the current view before any data is
touched, so subsetting costs the same for every backend.

Accepted forms:
    None                        every position, in view order
    slice                       positional slice
    boolean array               mask over the axis, view order
    boolean Series              mask aligned on its index labels, view order
    list/tuple/array of int     positions, in the requested order
    list/tuple of str           identifiers, in the requested order
    pd.Index                    identifiers, in the requested order
                                (always labels, even for integer-valued ids)
    set / frozenset             positions or identifiers, view order
    callable                    predicate called with the annotation table,
                                returning a boolean mask; view order
    str                         a single identifier

Examples:
    >>> ids = pd.Index(["TP53", "MYC", "EGFR"])
    >>> resolve_selector(["EGFR", "TP53"], ids, annotation, axis="rows")
    array([2, 0])
    >>> resolve_selector(lambda a: a["biotype"] == "protein_coding", ids, annotation)
    array([0, 2])
"""

from __future__ import annotations

from typing import Any, Callable, Union, Sequence
import numpy as np
import pandas as pd

from assayview.core.errors import EmptySelection, ShapeMismatch

__all__ = ['Selector', 'resolve_selector', 'compose']

Selector = Union[
    None,
    slice,
    str,
    np.ndarray,
    pd.Series,
    pd.Index,
    Sequence[Any],
    set,
    frozenset,
    Callable[[pd.DataFrame], Any],
]

_MAX_REPORTED = 5


def resolve_selector(
    selector: Selector,
    ids: pd.Index,
    annotation: pd.DataFrame | None = None,
    axis: str = "rows",
) -> np.ndarray:
    """
    Resolve a selector to positions within ``ids``.

    Args:
        selector: Any of the forms listed in the module docstring
        ids: Identifiers of the axis being selected (current view order)
        annotation: Annotation table for the axis, indexed by ``ids``.
            Required for callable selectors.
        axis: Axis name used in error messages ("rows" or "columns")

    Returns:
        1-D int64 array of unique positions into ``ids``

    Raises:
        KeyError: Identifier not present on the axis
        IndexError: Position out of range
        ValueError: Duplicate positions/identifiers in a sequence selector
        ShapeMismatch: Boolean mask length differs from the axis length, or a
            boolean Series is labelled with other identifiers
        EmptySelection: Selector yields zero positions
    """
    n = len(ids)

    if selector is None:
        positions = np.arange(n, dtype=np.int64)
    elif callable(selector) and not isinstance(selector, (pd.Index, pd.Series, np.ndarray)):
        if annotation is None:
            raise TypeError(f"Predicate selector on {axis} requires an annotation table")
        positions = _from_mask(_align_series(selector(annotation), ids, axis), n, axis)
    elif isinstance(selector, slice):
        positions = np.arange(n, dtype=np.int64)[selector]
    elif isinstance(selector, str):
        positions = _from_identifiers([selector], ids, axis)
    elif isinstance(selector, (set, frozenset)):
        positions = _from_set(selector, ids, axis)
    elif isinstance(selector, pd.Index):
        positions = _from_identifiers(list(selector), ids, axis)
    else:
        values = np.asarray(_align_series(selector, ids, axis))
        if values.ndim != 1:
            raise ValueError(f"{axis} selector must be one-dimensional, got shape {values.shape}")
        if values.dtype.kind == 'b':
            positions = _from_mask(values, n, axis)
        elif values.dtype.kind in 'iu':
            positions = _from_positions(values, n, axis)
        elif len(values) == 0:
            positions = np.array([], dtype=np.int64)
        else:
            positions = _from_identifiers(list(values), ids, axis)

    if len(positions) == 0:
        raise EmptySelection(axis)

    return positions.astype(np.int64, copy=False)


def compose(base: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Map positions relative to a view back onto its backend positions."""
    return base[positions]


def _from_mask(mask: Any, n: int, axis: str) -> np.ndarray:
    mask = np.asarray(mask)
    if mask.dtype.kind != 'b':
        raise TypeError(
            f"{axis} predicate must return a boolean mask, got dtype {mask.dtype}"
        )
    if mask.shape != (n,):
        raise ShapeMismatch(
            f"{axis} mask length ({mask.shape[0] if mask.ndim else 0}) "
            f"must match number of {axis} ({n})"
        )
    return np.flatnonzero(mask)


def _from_positions(values: np.ndarray, n: int, axis: str) -> np.ndarray:
    out_of_range = values[(values < 0) | (values >= n)]
    if len(out_of_range):
        raise IndexError(
            f"{axis} positions out of range [0, {n}): "
            f"{out_of_range[:_MAX_REPORTED].tolist()}"
        )
    _check_unique(values, axis)
    return values.astype(np.int64)


def _from_identifiers(values: list, ids: pd.Index, axis: str) -> np.ndarray:
    requested = pd.Index(values)
    _check_unique(requested, axis)
    positions = ids.get_indexer(requested)
    missing = requested[positions < 0]
    if len(missing):
        raise KeyError(
            f"{len(missing)} {axis} identifier(s) not found: "
            f"{list(missing[:_MAX_REPORTED])}"
        )
    return positions.astype(np.int64)


def _from_set(values: set | frozenset, ids: pd.Index, axis: str) -> np.ndarray:
    if values and all(isinstance(v, (int, np.integer)) and not isinstance(v, bool) for v in values):
        positions = np.array(sorted(values), dtype=np.int64)
        return _from_positions(positions, len(ids), axis)

    missing = [v for v in values if v not in ids]
    if missing:
        raise KeyError(
            f"{len(missing)} {axis} identifier(s) not found: {missing[:_MAX_REPORTED]}"
        )
    return np.flatnonzero(ids.isin(list(values)))


def _check_unique(values: np.ndarray | pd.Index, axis: str) -> None:
    index = pd.Index(values)
    if index.has_duplicates:
        dupes = index[index.duplicated()].unique()
        raise ValueError(
            f"{axis} selector contains duplicates: {list(dupes[:_MAX_REPORTED])}"
        )


def _align_series(values: Any, ids: pd.Index, axis: str) -> Any:
    """Put a boolean Series into axis order by its labels; other inputs pass through."""
    if not isinstance(values, pd.Series):
        return values
    if values.dtype.kind != 'b' or values.index.equals(ids):
        return values.to_numpy()
    if values.index.has_duplicates or len(values) != len(ids) or not values.index.isin(ids).all():
        raise ShapeMismatch(
            f"{axis} Series index does not match the {axis} identifiers "
            f"(first labels: {list(values.index[:_MAX_REPORTED])})"
        )
    return values.reindex(ids).to_numpy()
