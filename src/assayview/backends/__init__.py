"""
Payload backends for assay views.

Variants (chosen when the backend is constructed, fixed thereafter):
    - InMemoryBackend: NumPy array already in memory
    - LocalFileBackend: shell.json + chunked HDF5 file in a directory
    - RemoteServiceBackend: long-format Google BigQuery table
"""

from assayview.backends.base import AssayBackend
from assayview.backends.memory import InMemoryBackend
from assayview.backends.local import LocalFileBackend, save_local
from assayview.backends.remote import RemoteServiceBackend

__all__ = [
    'AssayBackend',
    'InMemoryBackend',
    'LocalFileBackend',
    'RemoteServiceBackend',
    'save_local',
]
