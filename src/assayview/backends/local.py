"""
Local-file backend: a directory holding a JSON shell and an HDF5 array.

Directory layout:
    <directory>/
        shell.json   annotations, shape, and where the payload lives
        assays.h5    chunked float dataset (features x samples)

The shell is small and read eagerly; the HDF5 payload is only opened when a
slice is read, and only the requested rows, over contiguous runs of the
requested columns, are pulled from disk.

Examples:
    >>> from assayview.backends.local import LocalFileBackend, save_local
    >>> backend = save_local(memory_view, Path("brca_methylation"))
    >>> view = load(LocalFileBackend(Path("brca_methylation")))
    >>> view.subset(rows=['cg00000029']).materialize()
"""

from __future__ import annotations

from io import StringIO
from pathlib import Path
from typing import Any
import json
import logging
import h5py
import numpy as np
import pandas as pd

from assayview.backends.base import AssayBackend
from assayview.core.errors import BackendUnavailable, ShapeMismatch
from assayview.utils.fileio import atomic_write_json

__all__ = ['LocalFileBackend', 'save_local', 'SHELL_NAME', 'ASSAY_NAME', 'DATASET_NAME']

logger = logging.getLogger(__name__)

SHELL_NAME = "shell.json"
ASSAY_NAME = "assays.h5"
DATASET_NAME = "assay"
SHELL_FORMAT = "assayview-hdf5"
SHELL_VERSION = 1
SHELL_KEYS = ("shape", "row_annotation", "col_annotation")


class LocalFileBackend(AssayBackend):
    """
    Backend over a shell + HDF5 directory written by ``save_local``.

    Args:
        directory: Directory containing the shell and the assay file
        shell_name: Shell file name inside the directory
        assay_name: HDF5 file name inside the directory (overridden by the
            shell's ``assay_file`` entry when present)
        dataset: HDF5 dataset path (overridden by the shell's ``dataset``)

    Raises:
        BackendUnavailable: On first use, if the directory or a member is
            missing or unreadable
    """

    name = "local"
    is_lazy = True

    def __init__(
        self,
        directory: Path | str,
        shell_name: str = SHELL_NAME,
        assay_name: str = ASSAY_NAME,
        dataset: str = DATASET_NAME,
    ):
        self.directory = Path(directory)
        self.shell_name = shell_name
        self.assay_name = assay_name
        self.dataset = dataset
        self._shell: dict[str, Any] | None = None

    def members(self) -> dict[str, Path]:
        """Expected files of the directory, keyed by role."""
        return {
            "shell": self.directory / self.shell_name,
            "assay": self.directory / self.assay_name,
        }

    def check(self) -> None:
        """
        Verify the directory is complete and consistent.

        Raises:
            BackendUnavailable: Directory or member missing, or unreadable
            ShapeMismatch: HDF5 dataset shape disagrees with the shell
        """
        if not self.directory.is_dir():
            raise BackendUnavailable(f"Assay directory not found: {self.directory}")

        # The shell may name a different assay file, so read it first
        if self.members()["shell"].is_file():
            self._read_shell()

        missing = [f"{role} ({path.name})" for role, path in self.members().items() if not path.is_file()]
        if missing:
            raise BackendUnavailable(
                f"Assay directory {self.directory} is missing: {', '.join(missing)}"
            )

        shell = self._read_shell()
        with self._open() as f:
            if self.dataset not in f:
                raise BackendUnavailable(
                    f"Dataset '{self.dataset}' not found in {self.members()['assay']}"
                )
            stored_shape = tuple(f[self.dataset].shape)

        if stored_shape != tuple(shell["shape"]):
            raise ShapeMismatch(
                f"HDF5 dataset shape {stored_shape} does not match shell shape {tuple(shell['shape'])}"
            )

    @property
    def shape(self) -> tuple[int, int]:
        n_rows, n_cols = self._read_shell()["shape"]
        return int(n_rows), int(n_cols)

    def annotations(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        shell = self._read_shell()
        try:
            return (
                _annotation_from_json(shell["row_annotation"]),
                _annotation_from_json(shell["col_annotation"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise BackendUnavailable(
                f"Malformed annotation in {self.members()['shell']}: {e}"
            ) from e

    def read(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        # h5py fancy indexing takes increasing indices on one axis only:
        # sorted rows as a list, columns as contiguous runs, reorder in memory.
        row_order = np.argsort(rows)
        col_order = np.argsort(cols)
        sorted_rows = rows[row_order].tolist()
        sorted_cols = cols[col_order]
        runs = np.split(sorted_cols, np.flatnonzero(np.diff(sorted_cols) != 1) + 1)

        with self._open() as f:
            dataset = f[self.dataset]
            blocks = [dataset[sorted_rows, int(run[0]):int(run[-1]) + 1] for run in runs]
        block = np.hstack(blocks)

        logger.info(
            f"Read {block.nbytes:,} bytes ({block.shape[0]} x {block.shape[1]}, "
            f"{len(runs)} column runs) from {self.members()['assay']}"
        )
        return np.asarray(block[_inverse(row_order)][:, _inverse(col_order)], dtype=float)

    def describe(self) -> dict[str, Any]:
        info = super().describe()
        info["directory"] = str(self.directory)
        info["members"] = {role: str(path) for role, path in self.members().items()}
        return info

    def _read_shell(self) -> dict[str, Any]:
        if self._shell is not None:
            return self._shell

        path = self.members()["shell"]
        try:
            with open(path, 'r') as f:
                shell = json.load(f)
        except FileNotFoundError as e:
            raise BackendUnavailable(f"Shell file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise BackendUnavailable(f"Cannot read shell file {path}: {e}") from e

        if not isinstance(shell, dict) or shell.get("format") != SHELL_FORMAT:
            found = shell.get("format") if isinstance(shell, dict) else type(shell).__name__
            raise BackendUnavailable(
                f"{path} is not an assayview shell (format={found!r})"
            )

        missing = [key for key in SHELL_KEYS if key not in shell]
        if missing:
            raise BackendUnavailable(f"Shell file {path} lacks required keys: {missing}")

        shape = shell["shape"]
        if not (isinstance(shape, list) and len(shape) == 2
                and all(isinstance(n, int) and n >= 0 for n in shape)):
            raise BackendUnavailable(f"Shell file {path} has invalid shape: {shape!r}")

        self.assay_name = shell.get("assay_file", self.assay_name)
        self.dataset = shell.get("dataset", self.dataset)
        self._shell = shell
        return shell

    def _open(self) -> h5py.File:
        path = self.members()["assay"]
        try:
            return h5py.File(path, 'r')
        except (OSError, ValueError) as e:
            raise BackendUnavailable(f"Cannot open HDF5 file {path}: {e}") from e

    def __repr__(self) -> str:
        return f"LocalFileBackend({self.directory})"


def save_local(
    view: Any,
    directory: Path | str,
    chunks: tuple[int, int] | bool | None = True,
    compression: str | None = "gzip",
    overwrite: bool = False,
) -> LocalFileBackend:
    """
    Write a view to a shell + HDF5 directory.

    Only the view's slice is materialized and written. The HDF5 file is
    written first and the shell last (atomically), so a directory with a
    shell always has a complete payload.

    Args:
        view: AssayView to persist
        directory: Target directory (created if needed)
        chunks: HDF5 chunk shape, True for automatic chunking, None for
            contiguous storage
        compression: HDF5 compression filter ("gzip", "lzf", or None)
        overwrite: Replace existing members instead of failing

    Returns:
        LocalFileBackend over the written directory

    Raises:
        FileExistsError: If members exist and overwrite is False
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    backend = LocalFileBackend(directory)
    members = backend.members()

    existing = [p for p in members.values() if p.exists()]
    if existing and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing files: {[str(p) for p in existing]}")

    data = view.materialize()

    with h5py.File(members["assay"], 'w') as f:
        f.create_dataset(
            DATASET_NAME,
            data=data,
            chunks=chunks,
            compression=compression,
        )
    logger.info(f"Wrote {data.shape[0]} x {data.shape[1]} assay to {members['assay']}")

    shell = {
        "format": SHELL_FORMAT,
        "version": SHELL_VERSION,
        "shape": list(data.shape),
        "assay_file": ASSAY_NAME,
        "dataset": DATASET_NAME,
        "row_annotation": _annotation_to_json(view.row_annotation),
        "col_annotation": _annotation_to_json(view.col_annotation),
    }
    atomic_write_json(members["shell"], shell)
    logger.info(f"Wrote shell to {members['shell']}")

    return backend


def _annotation_to_json(annotation: pd.DataFrame) -> dict[str, Any]:
    # orient='table' keeps dtypes and the index name
    return json.loads(annotation.to_json(orient="table", date_format="iso"))


def _annotation_from_json(payload: dict[str, Any]) -> pd.DataFrame:
    return pd.read_json(StringIO(json.dumps(payload)), orient="table")


def _inverse(order: np.ndarray) -> np.ndarray:
    inverse = np.empty_like(order)
    inverse[order] = np.arange(len(order))
    return inverse
