"""
Atomic file writes.

Shells and summaries are written to a temporary file in the target directory
and moved into place with ``os.replace()``, so a reader sees either the old
file or the complete new one, never a partial write.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, TextIO
import json
import os
import tempfile

import numpy as np

__all__ = ['atomic_write_json', 'atomic_write_text']


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically. NumPy scalars and arrays are converted."""
    _atomic_write(path, lambda f: json.dump(data, f, indent=indent, default=_json_default))


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    """Write *content* as text atomically."""
    _atomic_write(path, lambda f: f.write(content))


def _atomic_write(path: str | os.PathLike, write: Callable[[TextIO], Any]) -> None:
    path = Path(path)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _json_default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
