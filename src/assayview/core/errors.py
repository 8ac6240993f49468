"""
Exception hierarchy for assay views.

Every failure surfaces synchronously at the operation that caused it. Nothing
here is retried automatically; retry policy belongs to the caller.

Hierarchy:
    AssayViewError
    ├── BackendUnavailable      file/service cannot be reached or read
    ├── AuthenticationRequired  billed remote call attempted without a credential
    ├── ShapeMismatch           annotations disagree with matrix dimensions
    └── EmptySelection          a subset selected zero rows or zero columns

ShapeMismatch and EmptySelection also derive from ValueError so callers that
already catch ValueError around data validation keep working.
"""

from __future__ import annotations

__all__ = [
    'AssayViewError',
    'BackendUnavailable',
    'AuthenticationRequired',
    'ShapeMismatch',
    'EmptySelection',
]


class AssayViewError(Exception):
    """Base class for all assay view errors."""


class BackendUnavailable(AssayViewError):
    """The referenced file, directory, or service cannot be reached."""


class AuthenticationRequired(AssayViewError):
    """A billed remote backend was used without its credential."""

    def __init__(self, env_var: str, message: str | None = None):
        self.env_var = env_var
        super().__init__(
            message or
            f"Environment variable {env_var} is not set. "
            "Set it to the billing project before querying the remote backend."
        )


class ShapeMismatch(AssayViewError, ValueError):
    """Row/column annotations do not align with the matrix."""


class EmptySelection(AssayViewError, ValueError):
    """A selector produced zero rows or zero columns."""

    def __init__(self, axis: str, message: str | None = None):
        self.axis = axis
        super().__init__(message or f"Selection yields zero {axis}")
