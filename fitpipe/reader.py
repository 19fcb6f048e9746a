"""
@module: fitpipe.reader
@depends: fitpipe.config, fitpipe.schema, fitpipe.pipeline, fitpipe.errors
@exports: TextReader
@data_flow: delimited text -> raw fields -> typed Dataset
"""

import logging
from pathlib import Path
from typing import Any, List, Sequence, Union

import pandas as pd

from fitpipe.config import ColumnSpec, ReaderConfig
from fitpipe.errors import SchemaError
from fitpipe.pipeline import Pipeline
from fitpipe.schema import ColumnSet, Dataset, build_dataset, declare_columns

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TextReader:
    """
    Schema-driven reader for delimited text files.

    Example:
        >>> reader = TextReader(
        ...     [ColumnSpec("label", "float", 0), ColumnSpec("features", "float", 1, 6)],
        ...     separator="\\t",
        ...     has_header=True,
        ... )
        >>> data = reader.read("housing.txt")
        >>> pipeline = reader.make_new_estimator()
    """

    def __init__(
        self,
        columns: Sequence[Any],
        separator: str = "\t",
        has_header: bool = True,
    ) -> None:
        self.config = ReaderConfig(columns=list(columns), separator=separator, has_header=has_header)
        self._schema = declare_columns(self.config.columns)

    @classmethod
    def from_config(cls, config: ReaderConfig) -> "TextReader":
        return cls(config.columns, separator=config.separator, has_header=config.has_header)

    @property
    def schema(self) -> ColumnSet:
        return self._schema

    @property
    def specs(self) -> List[ColumnSpec]:
        return list(self.config.columns)

    def make_new_estimator(self) -> Pipeline:
        """Return an empty pipeline whose view is this reader's columns."""
        return Pipeline(self._schema)

    def read(self, source: Union[PathLike, Sequence[PathLike]]) -> Dataset:
        """
        Read one file, or several files concatenated in order.

        Args:
            source: Path or list of paths

        Returns:
            Dataset typed by this reader's schema
        """
        paths = [source] if isinstance(source, (str, Path)) else list(source)
        if not paths:
            raise SchemaError("No input files given")

        frames = []
        for path in paths:
            logger.debug(f"Reading {path}")
            try:
                frame = pd.read_csv(
                    path,
                    sep=self.config.separator,
                    header=None,
                    skiprows=1 if self.config.has_header else 0,
                    dtype=str,
                    keep_default_na=False,
                    na_values=[""],
                )
            except pd.errors.EmptyDataError:
                logger.warning(f"{path} has no data rows")
                continue
            frames.append(frame)

        if not frames:
            raw = self._empty_frame()
        elif len(frames) == 1:
            raw = frames[0]
        else:
            raw = pd.concat(frames, ignore_index=True)
        logger.info(f"Read {len(raw)} rows from {len(paths)} file(s)")
        return self.read_frame(raw)

    def read_frame(self, raw: pd.DataFrame) -> Dataset:
        """Type the positional fields of an already-split DataFrame."""
        return build_dataset(raw, self.config.columns, self._schema)

    def _empty_frame(self) -> pd.DataFrame:
        n_fields = max(spec.start + spec.width for spec in self.config.columns)
        return pd.DataFrame({i: pd.Series([], dtype=object) for i in range(n_fields)})
