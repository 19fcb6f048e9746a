# Test configuration
import numpy as np
import pandas as pd
import pytest

from fitpipe.config import ColumnSpec, ColumnType
from fitpipe.reader import TextReader
from fitpipe.schema import Dataset

TRUE_WEIGHTS = np.array([3.0, -2.0, 0.5, 0.0, 1.0, -1.0])
TRUE_BIAS = 1.5


def make_regression_frame(n: int = 100, seed: int = 42, noise: float = 0.05) -> pd.DataFrame:
    """Label at column 0 followed by six features, like housing.txt."""
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, len(TRUE_WEIGHTS)))
    y = X @ TRUE_WEIGHTS + TRUE_BIAS + rng.normal(scale=noise, size=n)
    frame = pd.DataFrame(X, columns=[f"f{i}" for i in range(X.shape[1])])
    frame.insert(0, "label", y)
    return frame


@pytest.fixture
def regression_frame():
    return make_regression_frame()


@pytest.fixture
def sample_data(regression_frame):
    """100-row dataset with a scalar label and a 6-wide feature vector."""
    values = regression_frame.to_numpy(dtype=np.float32)
    return Dataset.from_arrays({"label": values[:, 0], "features": values[:, 1:]})


@pytest.fixture
def housing_reader_specs():
    return [
        ColumnSpec("label", ColumnType.FLOAT, 0),
        ColumnSpec("features", ColumnType.FLOAT, 1, 6),
    ]


@pytest.fixture
def reader(housing_reader_specs):
    return TextReader(housing_reader_specs, separator="\t", has_header=True)


@pytest.fixture
def housing_file(tmp_path, regression_frame):
    """Tab-separated file with a header, shaped like housing.txt."""
    path = tmp_path / "housing.txt"
    regression_frame.to_csv(path, sep="\t", index=False)
    return path
