"""
@module: fitpipe.errors
@depends:
@exports: FitpipeError, SchemaError, FitError, TransformError
@data_flow: library failure -> typed pipeline error -> caller
"""

from typing import Optional


class FitpipeError(Exception):
    """Base class for all pipeline errors."""


class SchemaError(FitpipeError, ValueError):
    """Malformed or conflicting column declarations, or an unknown handle."""


class FitError(FitpipeError, RuntimeError):
    """
    A step's fitting procedure failed.

    Attributes:
        step: Output column name of the step that failed (None if the failure
            happened before any step ran)
    """

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step


class TransformError(FitpipeError, ValueError):
    """A fitted model was applied to data whose schema disagrees with it."""
