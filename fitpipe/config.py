"""
@module: fitpipe.config
@depends: fitpipe.errors
@exports: ColumnType, ColumnSpec, ReaderConfig, load_reader_config
@data_flow: user config / TOML -> validated column declarations
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

try:
    import tomllib  # Python 3.11+
except ImportError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore

from fitpipe.errors import SchemaError


class ColumnType(Enum):
    """Value types a column can be loaded as."""

    FLOAT = "float"  # 32-bit, the default for features and labels
    DOUBLE = "double"
    INT = "int"
    BOOL = "bool"
    TEXT = "text"

    @classmethod
    def parse(cls, value: Union["ColumnType", str]) -> "ColumnType":
        """Resolve a ColumnType from an enum member or its (case-insensitive) name."""
        if isinstance(value, ColumnType):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key or member.name.lower() == key:
                    return member
        raise SchemaError(
            f"Unsupported column type {value!r}; expected one of "
            f"{[m.value for m in cls]}"
        )

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_DTYPES[self])

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.FLOAT, ColumnType.DOUBLE, ColumnType.INT)


_DTYPES = {
    ColumnType.FLOAT: "float32",
    ColumnType.DOUBLE: "float64",
    ColumnType.INT: "int64",
    ColumnType.BOOL: "bool",
    ColumnType.TEXT: "object",
}


@dataclass(frozen=True)
class ColumnSpec:
    """
    Declaration of one column loaded from source field positions.

    A scalar column reads a single field (`end` is None); a vector column
    reads the inclusive field range `start..end`.

    Attributes:
        name: Column name, used as the handle's symbolic name
        column_type: Value type (ColumnType or its name)
        start: First source field position (0-based)
        end: Last source field position, inclusive (None = scalar)

    Example:
        >>> ColumnSpec("label", "float", 0)
        >>> ColumnSpec("features", ColumnType.FLOAT, 1, 6)
    """

    name: str
    column_type: ColumnType
    start: int
    end: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise SchemaError("Column name must be a non-empty string")
        if "." in self.name:
            raise SchemaError(f"Column name {self.name!r} must not contain '.'")
        object.__setattr__(self, "column_type", ColumnType.parse(self.column_type))
        if self.start < 0:
            raise SchemaError(f"Column {self.name!r}: start position must be >= 0")
        if self.end is not None:
            if self.end < self.start:
                raise SchemaError(
                    f"Column {self.name!r}: end position {self.end} is before start {self.start}"
                )
            if self.column_type is ColumnType.TEXT:
                raise SchemaError(f"Column {self.name!r}: text columns cannot be vectors")

    @property
    def is_vector(self) -> bool:
        return self.end is not None

    @property
    def width(self) -> int:
        return 1 if self.end is None else self.end - self.start + 1

    @property
    def positions(self) -> range:
        return range(self.start, self.start + self.width)

    @classmethod
    def coerce(cls, spec: Any) -> "ColumnSpec":
        """Build a ColumnSpec from a spec, a mapping or a (name, type, start[, end]) tuple."""
        if isinstance(spec, ColumnSpec):
            return spec
        if isinstance(spec, dict):
            unknown = set(spec) - {"name", "type", "column_type", "start", "end"}
            if unknown:
                raise SchemaError(f"Unknown column keys: {sorted(unknown)}")
            try:
                return cls(
                    name=spec["name"],
                    column_type=spec.get("type", spec.get("column_type")),
                    start=spec["start"],
                    end=spec.get("end"),
                )
            except KeyError as exc:
                raise SchemaError(f"Column declaration missing key {exc}") from exc
        if isinstance(spec, (tuple, list)) and len(spec) in (3, 4):
            return cls(*spec)
        raise SchemaError(f"Cannot interpret column declaration {spec!r}")


@dataclass
class ReaderConfig:
    """
    Configuration for a delimited text reader.

    Attributes:
        columns: Column declarations
        separator: Single-character field separator
        has_header: Whether the first line of each file is a header
    """

    columns: List[ColumnSpec] = field(default_factory=list)
    separator: str = "\t"
    has_header: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        self.columns = [ColumnSpec.coerce(c) for c in self.columns]
        if not self.columns:
            raise SchemaError("At least one column must be declared")
        if not isinstance(self.separator, str) or len(self.separator) != 1:
            raise SchemaError("separator must be a single character")
        if not isinstance(self.has_header, bool):
            raise SchemaError(
                f"has_header must be a boolean, got {type(self.has_header).__name__}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReaderConfig":
        reader = data.get("reader", {})
        return cls(
            columns=list(data.get("columns", [])),
            separator=reader.get("separator", "\t"),
            has_header=reader.get("has_header", True),
        )


def load_reader_config(config_path: Path) -> ReaderConfig:
    """Load a reader configuration from TOML.

    Expected layout::

        [reader]
        separator = "\\t"
        has_header = true

        [[columns]]
        name = "label"
        type = "float"
        start = 0

    Args:
        config_path: Path to the TOML file.

    Returns:
        Validated ReaderConfig.
    """
    with Path(config_path).open("rb") as f:
        data = tomllib.load(f)
    return ReaderConfig.from_dict(data)

