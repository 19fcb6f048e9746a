"""
@module: fitpipe.estimators
@depends: fitpipe.config, fitpipe.schema, fitpipe.errors
@exports: Estimator, FittedStep, Concatenate, Normalize
@data_flow: input handles -> fit on Dataset -> fitted step -> output column
"""

import logging
from typing import Literal, Tuple

import numpy as np
from sklearn.preprocessing import MinMaxScaler, StandardScaler

from fitpipe.config import ColumnType
from fitpipe.errors import SchemaError
from fitpipe.schema import ColumnHandle, Dataset

logger = logging.getLogger(__name__)


def require_handle(value: object, role: str) -> ColumnHandle:
    if not isinstance(value, ColumnHandle):
        raise SchemaError(f"{role} must be a ColumnHandle, got {type(value).__name__}")
    return value


def require_numeric(handle: ColumnHandle, role: str) -> ColumnHandle:
    require_handle(handle, role)
    if not handle.column_type.is_numeric:
        raise SchemaError(
            f"{role} column {handle.name!r} must be numeric, got {handle.column_type.value}"
        )
    return handle


def as_matrix(data: Dataset, handle: ColumnHandle) -> np.ndarray:
    """Column values as a float64 2-D array (n_rows, width)."""
    values = np.asarray(data.values(handle), dtype=np.float64)
    return values.reshape(len(data), handle.width)


class FittedStep:
    """A step whose learned state is fixed; produces one output column."""

    def __init__(self, inputs: Tuple[ColumnHandle, ...], output: ColumnHandle) -> None:
        self.inputs = inputs
        self.output = output

    def compute(self, data: Dataset) -> np.ndarray:
        raise NotImplementedError

    def transform(self, data: Dataset) -> Dataset:
        values = self.compute(data)
        return data.with_column(self.output, values.astype(self.output.column_type.dtype))


class Estimator:
    """
    Description of a transformation, not yet fit to data.

    Subclasses declare their input handles and the type/width of their single
    output column, and implement `fit`, which must not mutate the estimator.
    """

    output_type: ColumnType = ColumnType.FLOAT

    def inputs(self) -> Tuple[ColumnHandle, ...]:
        raise NotImplementedError

    def output_width(self) -> int:
        return 1

    def fit(self, data: Dataset, output: ColumnHandle) -> FittedStep:
        raise NotImplementedError

    def __repr__(self) -> str:
        names = ", ".join(h.name for h in self.inputs())
        return f"{type(self).__name__}({names})"


class _FittedConcatenate(FittedStep):
    def compute(self, data: Dataset) -> np.ndarray:
        return np.hstack([as_matrix(data, h) for h in self.inputs])


class Concatenate(Estimator):
    """Stack numeric scalar and vector columns into one float vector column."""

    def __init__(self, *columns: ColumnHandle) -> None:
        if not columns:
            raise SchemaError("Concatenate needs at least one column")
        self.columns = tuple(require_numeric(c, "Concatenate input") for c in columns)

    def inputs(self) -> Tuple[ColumnHandle, ...]:
        return self.columns

    def output_width(self) -> int:
        return sum(c.width for c in self.columns)

    def fit(self, data: Dataset, output: ColumnHandle) -> FittedStep:
        return _FittedConcatenate(self.columns, output)


class _FittedNormalize(FittedStep):
    def __init__(self, inputs, output, scaler) -> None:
        super().__init__(inputs, output)
        self.scaler = scaler

    def compute(self, data: Dataset) -> np.ndarray:
        return self.scaler.transform(as_matrix(data, self.inputs[0]))


class Normalize(Estimator):
    """Learn per-slot scaling of a numeric column (standard or min-max)."""

    def __init__(
        self,
        column: ColumnHandle,
        method: Literal["standard", "minmax"] = "standard",
    ) -> None:
        if method not in ("standard", "minmax"):
            raise ValueError("method must be 'standard' or 'minmax'")
        self.column = require_numeric(column, "Normalize input")
        self.method = method

    def inputs(self) -> Tuple[ColumnHandle, ...]:
        return (self.column,)

    def output_width(self) -> int:
        return self.column.width

    def fit(self, data: Dataset, output: ColumnHandle) -> FittedStep:
        scaler = StandardScaler() if self.method == "standard" else MinMaxScaler()
        scaler.fit(as_matrix(data, self.column))
        logger.debug(f"Normalize({self.column.name}) fit with {self.method} scaling")
        return _FittedNormalize(self.inputs(), output, scaler)
