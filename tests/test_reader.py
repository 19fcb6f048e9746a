"""
Tests for schema-driven text reading.
"""

import numpy as np
import pandas as pd
import pytest

from fitpipe.errors import SchemaError
from fitpipe.reader import TextReader


def test_read_housing_shaped_file(reader, housing_file, regression_frame):
    data = reader.read(housing_file)

    assert len(data) == len(regression_frame)
    assert data.column_names == ["label", "features"]
    assert data.values("features").dtype == np.float32
    np.testing.assert_allclose(
        data.values("label"), regression_frame["label"].to_numpy(), rtol=1e-6
    )


def test_read_multiple_files_concatenates(reader, housing_file):
    data = reader.read([housing_file, housing_file])
    assert len(data) == 200


def test_read_without_header(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("1,2,3\n4,5,6\n", encoding="utf-8")
    reader = TextReader([("y", "int", 0), ("x", "double", 1, 2)], separator=",", has_header=False)

    data = reader.read(path)
    np.testing.assert_array_equal(data.values("y"), [1, 4])
    np.testing.assert_array_equal(data.values("x"), [[2.0, 3.0], [5.0, 6.0]])


def test_malformed_float_becomes_missing(tmp_path):
    path = tmp_path / "data.tsv"
    path.write_text("y\tx\n1.0\t2.0\nbad\t3.0\n", encoding="utf-8")
    data = TextReader([("y", "float", 0), ("x", "float", 1)]).read(path)
    assert np.isnan(data.values("y")[1])


def test_malformed_int_is_schema_error(tmp_path):
    path = tmp_path / "data.tsv"
    path.write_text("y\n1\n2.5\n", encoding="utf-8")
    with pytest.raises(SchemaError, match="non-integer"):
        TextReader([("y", "int", 0)]).read(path)


def test_position_past_last_field(tmp_path):
    path = tmp_path / "data.tsv"
    path.write_text("y\tx\n1\t2\n", encoding="utf-8")
    with pytest.raises(SchemaError, match="reads position 6"):
        TextReader([("y", "float", 0), ("x", "float", 1, 6)]).read(path)


def test_read_frame_text_and_bool():
    raw = pd.DataFrame([["yes", "red"], ["0", "blue"]])
    data = TextReader([("flag", "bool", 0), ("color", "text", 1)]).read_frame(raw)
    assert data.values("flag").tolist() == [True, False]
    assert data.values("color").tolist() == ["red", "blue"]


def test_make_new_estimator_uses_reader_schema(reader):
    pipeline = reader.make_new_estimator()
    assert pipeline.view is reader.schema
    assert len(pipeline) == 0


def test_header_only_file_reads_as_empty_dataset(tmp_path):
    path = tmp_path / "empty.tsv"
    path.write_text("label\tf\n", encoding="utf-8")
    reader = TextReader([("label", "float", 0), ("f", "float", 1)])

    data = reader.read(path)
    assert len(data) == 0
    assert data.column_names == ["label", "f"]
    assert data.values("label").dtype == np.float32


def test_header_only_file_is_skipped_among_others(tmp_path):
    empty = tmp_path / "empty.tsv"
    empty.write_text("label\tf\n", encoding="utf-8")
    full = tmp_path / "full.tsv"
    full.write_text("label\tf\n1.5\t2.0\n3.0\t4.0\n", encoding="utf-8")
    reader = TextReader([("label", "float", 0), ("f", "float", 1)])

    data = reader.read([empty, full])
    np.testing.assert_allclose(data.values("label"), [1.5, 3.0])
