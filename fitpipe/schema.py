"""
@module: fitpipe.schema
@depends: fitpipe.config, fitpipe.errors
@exports: ColumnHandle, ColumnSet, declare_columns, build_dataset, Dataset
@data_flow: column specs -> typed handles -> dataset view
"""

import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from fitpipe.config import ColumnSpec, ColumnType
from fitpipe.errors import SchemaError

logger = logging.getLogger(__name__)

_owner_ids = itertools.count(1)


def new_owner(prefix: str) -> str:
    """Return a fresh token identifying the creator of a group of handles."""
    return f"{prefix}-{next(_owner_ids)}"


@dataclass(frozen=True)
class ColumnHandle:
    """
    Typed reference to a column.

    Handles are compared by value including `owner`, so a handle declared by
    one schema is never mistaken for a same-named handle declared elsewhere.

    Attributes:
        name: Symbolic column name
        column_type: Declared value type
        width: 1 for scalar columns, number of slots for vector columns
        owner: Token of the schema or pipeline step that created the handle
    """

    name: str
    column_type: ColumnType
    width: int = 1
    owner: str = ""

    @property
    def is_vector(self) -> bool:
        return self.width > 1

    @property
    def frame_columns(self) -> List[str]:
        """Names of the DataFrame columns backing this handle."""
        if self.width == 1:
            return [self.name]
        return [f"{self.name}.{i}" for i in range(self.width)]

    def same_shape(self, other: "ColumnHandle") -> bool:
        """True if `other` has the same name, type and width (ignores owner)."""
        return (
            self.name == other.name
            and self.column_type == other.column_type
            and self.width == other.width
        )

    def describe(self) -> str:
        kind = f"vector[{self.width}]" if self.is_vector else "scalar"
        return f"{self.name}: {self.column_type.value} {kind}"


class ColumnSet(Mapping):
    """
    Read-only mapping of symbolic names to column handles.

    Supports both `columns["label"]` and `columns.label`.
    """

    def __init__(self, handles: Iterable[ColumnHandle] = ()) -> None:
        self._handles: Dict[str, ColumnHandle] = {}
        for handle in handles:
            if handle.name in RESERVED_NAMES:
                raise SchemaError(
                    f"Column name {handle.name!r} is reserved; it would shadow "
                    f"ColumnSet.{handle.name} on attribute access"
                )
            if handle.name in self._handles:
                raise SchemaError(f"Duplicate column name {handle.name!r}")
            self._handles[handle.name] = handle

    def __getitem__(self, name: str) -> ColumnHandle:
        try:
            return self._handles[name]
        except KeyError:
            raise SchemaError(
                f"Unknown column {name!r}; available: {list(self._handles)}"
            ) from None

    def __getattr__(self, name: str) -> ColumnHandle:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def get(self, name: str, default: Optional[ColumnHandle] = None) -> Optional[ColumnHandle]:
        return self._handles.get(name, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ColumnHandle):
            return self._handles.get(item.name) == item
        return item in self._handles

    def __repr__(self) -> str:
        inner = ", ".join(h.describe() for h in self._handles.values())
        return f"ColumnSet({inner})"

    def extended(self, *handles: ColumnHandle) -> "ColumnSet":
        """Return a new set with `handles` appended."""
        return ColumnSet(list(self._handles.values()) + list(handles))


# Public attributes of ColumnSet cannot double as column names
RESERVED_NAMES = frozenset(n for n in dir(ColumnSet) if not n.startswith("_"))


def _check_overlaps(specs: Sequence[ColumnSpec]) -> None:
    claimed: Dict[int, ColumnSpec] = {}
    for spec in specs:
        for pos in spec.positions:
            other = claimed.get(pos)
            if other is None:
                claimed[pos] = spec
                continue
            identical = (
                other.start == spec.start
                and other.end == spec.end
                and other.column_type == spec.column_type
            )
            if not identical:
                raise SchemaError(
                    f"Columns {other.name!r} and {spec.name!r} overlap inconsistently "
                    f"at source position {pos}"
                )


def declare_columns(specs: Sequence[Any]) -> ColumnSet:
    """
    Turn column declarations into typed handles.

    Args:
        specs: ColumnSpec objects, dicts or (name, type, start[, end]) tuples

    Returns:
        ColumnSet of handles owned by a fresh schema token

    Raises:
        SchemaError: On unsupported types, duplicate names or overlapping
            positions (identical re-reads of the same fields are allowed)
    """
    resolved = [ColumnSpec.coerce(s) for s in specs]
    if not resolved:
        raise SchemaError("At least one column must be declared")
    _check_overlaps(resolved)

    owner = new_owner("schema")
    columns = ColumnSet(
        ColumnHandle(spec.name, spec.column_type, spec.width, owner) for spec in resolved
    )
    logger.debug(f"Declared {len(columns)} columns: {columns}")
    return columns


_TRUE = {"true", "1", "yes", "t"}
_FALSE = {"false", "0", "no", "f"}


def _parse_bool(raw: pd.Series, name: str) -> np.ndarray:
    lowered = raw.astype(str).str.strip().str.lower()
    bad = ~lowered.isin(_TRUE | _FALSE)
    if bad.any():
        raise SchemaError(
            f"Column {name!r}: cannot parse {lowered[bad].iloc[0]!r} as bool"
        )
    return lowered.isin(_TRUE).to_numpy()


def convert_field(raw: pd.Series, column_type: ColumnType, name: str) -> np.ndarray:
    """Convert one raw source field to the numpy dtype of `column_type`."""
    if column_type is ColumnType.TEXT:
        return raw.fillna("").astype(str).to_numpy(dtype=object)
    if column_type is ColumnType.BOOL:
        if raw.dtype == bool:
            return raw.to_numpy()
        return _parse_bool(raw, name)

    numeric = pd.to_numeric(raw, errors="coerce")
    n_bad = int(numeric.isna().sum() - raw.isna().sum())
    if n_bad:
        logger.warning(f"Column {name!r}: {n_bad} malformed values read as missing")
    if column_type is ColumnType.INT:
        if numeric.isna().any():
            raise SchemaError(f"Column {name!r}: missing or malformed integer values")
        if not np.all(np.mod(numeric.to_numpy(dtype=float), 1) == 0):
            raise SchemaError(f"Column {name!r}: non-integer values in int column")
    return numeric.to_numpy(dtype=column_type.dtype)


def build_dataset(raw: pd.DataFrame, specs: Sequence[ColumnSpec], schema: "ColumnSet") -> "Dataset":
    """
    Type the positional fields of `raw` according to `specs`.

    Raises:
        SchemaError: If a spec reads past the last field or a field cannot
            be converted to its declared type
    """
    n_fields = raw.shape[1]
    data: Dict[str, np.ndarray] = {}
    for spec in specs:
        handle = schema[spec.name]
        last = spec.start + spec.width - 1
        if last >= n_fields:
            raise SchemaError(
                f"Column {spec.name!r} reads position {last} but rows have {n_fields} fields"
            )
        for frame_col, pos in zip(handle.frame_columns, spec.positions):
            data[frame_col] = convert_field(raw.iloc[:, pos], spec.column_type, spec.name)
    return Dataset(pd.DataFrame(data, index=pd.RangeIndex(len(raw))), schema)


def _infer_type(values: np.ndarray) -> ColumnType:
    if values.dtype == np.float32:
        return ColumnType.FLOAT
    if np.issubdtype(values.dtype, np.floating):
        return ColumnType.DOUBLE
    if np.issubdtype(values.dtype, np.bool_):
        return ColumnType.BOOL
    if np.issubdtype(values.dtype, np.integer):
        return ColumnType.INT
    return ColumnType.TEXT


class Dataset:
    """
    Immutable tabular data described by a ColumnSet.

    Vector columns occupy `width` DataFrame columns named "<name>.<i>".
    """

    def __init__(self, frame: pd.DataFrame, schema: ColumnSet) -> None:
        missing = [c for h in schema.values() for c in h.frame_columns if c not in frame.columns]
        if missing:
            raise SchemaError(f"Frame is missing columns required by schema: {missing}")
        self._frame = frame
        self._schema = schema

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, specs: Sequence[Any]) -> "Dataset":
        """
        Build a dataset from an in-memory DataFrame whose columns are picked by position.

        Args:
            frame: Raw fields, one DataFrame column per source position
            specs: Column declarations, as accepted by `declare_columns`

        Example:
            >>> frame = pd.DataFrame({"price": [1.0, 2.0], "rooms": [3, 4], "age": [10, 20]})
            >>> data = Dataset.from_frame(frame, [("label", "float", 0), ("features", "float", 1, 2)])
        """
        resolved = [ColumnSpec.coerce(s) for s in specs]
        return build_dataset(frame, resolved, declare_columns(resolved))

    @classmethod
    def from_arrays(cls, arrays: Mapping) -> "Dataset":
        """
        Build a dataset from named 1-D (scalar) or 2-D (vector) arrays.

        Column types are inferred from the array dtypes.
        """
        owner = new_owner("arrays")
        handles: List[ColumnHandle] = []
        data: Dict[str, Any] = {}
        n_rows: Optional[int] = None
        for name, raw in arrays.items():
            values = np.asarray(raw)
            if values.ndim not in (1, 2):
                raise SchemaError(f"Column {name!r} must be 1-D or 2-D")
            if n_rows is not None and len(values) != n_rows:
                raise SchemaError(f"Column {name!r} has {len(values)} rows, expected {n_rows}")
            n_rows = len(values)
            width = 1 if values.ndim == 1 else values.shape[1]
            handle = ColumnHandle(name, _infer_type(values), width, owner)
            handles.append(handle)
            if values.ndim == 1:
                data[name] = values
            else:
                for i, col in enumerate(handle.frame_columns):
                    data[col] = values[:, i]
        return cls(pd.DataFrame(data), ColumnSet(handles))

    @property
    def schema(self) -> ColumnSet:
        return self._schema

    @property
    def column_names(self) -> List[str]:
        return list(self._schema)

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"Dataset(rows={len(self)}, columns={self.column_names})"

    def _resolve(self, column: Union[str, ColumnHandle]) -> ColumnHandle:
        name = column.name if isinstance(column, ColumnHandle) else column
        return self._schema[name]

    def values(self, column: Union[str, ColumnHandle]) -> np.ndarray:
        """Return a column as a 1-D (scalar) or 2-D (vector) numpy array."""
        handle = self._resolve(column)
        if handle.is_vector:
            return self._frame[handle.frame_columns].to_numpy()
        return self._frame[handle.name].to_numpy()

    def take(self, indices: Sequence[int]) -> "Dataset":
        """Return the rows at positional `indices` as a new dataset."""
        frame = self._frame.iloc[np.asarray(indices)].reset_index(drop=True)
        return Dataset(frame, self._schema)

    def with_column(self, handle: ColumnHandle, values: np.ndarray) -> "Dataset":
        """Return a new dataset with an extra column; the receiver is unchanged."""
        if handle.name in self._schema:
            raise SchemaError(f"Column {handle.name!r} already exists")
        values = np.asarray(values)
        if len(values) != len(self):
            raise SchemaError(
                f"Column {handle.name!r} has {len(values)} rows, dataset has {len(self)}"
            )
        frame = self._frame.copy()
        if handle.is_vector:
            values = values.reshape(len(self), handle.width)
            for i, col in enumerate(handle.frame_columns):
                frame[col] = values[:, i]
        else:
            frame[handle.name] = values.reshape(len(self))
        return Dataset(frame, self._schema.extended(handle))

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the backing DataFrame."""
        return self._frame.copy()
