"""
Tests for pipeline construction, fitting and transformation.
"""

import numpy as np
import pytest

from fitpipe.errors import FitError, SchemaError, TransformError
from fitpipe.estimators import Concatenate, Estimator, Normalize
from fitpipe.pipeline import FitResult, FittedModel, Pipeline, create_regression_pipeline
from fitpipe.schema import Dataset, declare_columns
from fitpipe.trainers import LinearRegressionPredictor, SdcaRegression


class FailingEstimator(Estimator):
    """Estimator whose fitting procedure always fails."""

    def __init__(self, column):
        self.column = column

    def inputs(self):
        return (self.column,)

    def fit(self, data, output):
        raise ValueError("did not converge")


def sdca_stage(calls=None):
    on_fit = calls.append if calls is not None else None
    return lambda r: {
        "label": r.label,
        "score": SdcaRegression(r.label, r.features, max_iterations=200, on_fit=on_fit),
    }


def test_fit_scenario_invokes_callback_once(sample_data):
    """Two declared columns, one trainer producing score, 100 rows."""
    calls = []
    pipeline = Pipeline(sample_data.schema).append(sdca_stage(calls))

    result = pipeline.fit(sample_data)

    assert isinstance(result, FitResult)
    assert isinstance(result.model, FittedModel)
    assert len(calls) == 1
    assert calls[0] is result.predictor()
    assert isinstance(calls[0], LinearRegressionPredictor)

    scored = result.model.transform(sample_data)
    assert {"label", "features", "score"} <= set(scored.column_names)
    assert len(scored) == 100


def test_fit_result_exposes_predictor_without_callback(sample_data):
    result = Pipeline(sample_data.schema).append(sdca_stage()).fit(sample_data)

    weights = result.predictor("score").feature_weights()
    np.testing.assert_allclose(weights[:3], [3.0, -2.0, 0.5], atol=0.1)
    with pytest.raises(KeyError):
        result.predictor("missing")


def test_append_is_persistent(sample_data):
    base = Pipeline(sample_data.schema)
    extended = base.append(sdca_stage())

    assert len(base) == 0
    assert base.view is sample_data.schema
    assert len(extended) == 1
    assert list(extended.view) == ["label", "score"]


def test_append_undeclared_handle_fails_before_fitting(sample_data):
    other = declare_columns([("label", "float", 0), ("features", "float", 1, 6)])
    calls = []

    with pytest.raises(SchemaError, match="not available"):
        Pipeline(sample_data.schema).append(
            lambda r: {"score": SdcaRegression(other.label, r.features, on_fit=calls.append)}
        )
    assert calls == []


def test_append_rejects_handle_hidden_by_earlier_stage(sample_data):
    pipeline = Pipeline(sample_data.schema).append(sdca_stage())
    with pytest.raises(SchemaError, match="'features'"):
        pipeline.append(lambda r: {"norm": Normalize(r.features)})


def test_append_rejects_rename_and_collisions(sample_data):
    pipeline = Pipeline(sample_data.schema)
    with pytest.raises(SchemaError, match="cannot be renamed"):
        pipeline.append(lambda r: {"target": r.label})
    with pytest.raises(SchemaError, match="already exists"):
        pipeline.append(lambda r: {"label": Normalize(r.features)})
    with pytest.raises(SchemaError, match="must return a mapping"):
        pipeline.append(lambda r: (r.label, r.features))
    with pytest.raises(SchemaError, match="ColumnHandle or Estimator"):
        pipeline.append(lambda r: {"label": "label"})


def test_failing_step_skips_later_callbacks(sample_data):
    calls = []
    pipeline = (
        Pipeline(sample_data.schema)
        .append(lambda r: {"label": r.label, "features": r.features, "bad": FailingEstimator(r.features)})
        .append(sdca_stage(calls))
    )

    with pytest.raises(FitError, match="did not converge") as excinfo:
        pipeline.fit(sample_data)

    assert excinfo.value.step == "bad"
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert calls == []


def test_failing_trainer_does_not_call_back():
    data = Dataset.from_arrays(
        {"label": np.full(10, np.nan), "features": np.ones((10, 2))}
    )
    calls = []
    pipeline = Pipeline(data.schema).append(sdca_stage(calls))

    with pytest.raises(FitError, match="no rows left"):
        pipeline.fit(data)
    assert calls == []


def test_fit_rejects_dataset_with_wrong_schema(sample_data):
    pipeline = Pipeline(sample_data.schema).append(sdca_stage())
    narrow = Dataset.from_arrays(
        {"label": np.zeros(5, dtype=np.float32), "features": np.zeros((5, 2), dtype=np.float32)}
    )
    with pytest.raises(SchemaError, match="features"):
        pipeline.fit(narrow)


def test_transform_is_deterministic(sample_data):
    model = Pipeline(sample_data.schema).append(sdca_stage()).fit(sample_data).model
    test = sample_data.take(range(10))

    first = model.transform(test).values("score")
    second = model.transform(test).values("score")
    np.testing.assert_array_equal(first, second)


def test_transform_rejects_mismatched_data(sample_data):
    model = Pipeline(sample_data.schema).append(sdca_stage()).fit(sample_data).model

    missing = Dataset.from_arrays({"label": sample_data.values("label")})
    with pytest.raises(TransformError, match="missing column 'features'"):
        model.transform(missing)

    narrow = Dataset.from_arrays(
        {"label": sample_data.values("label"), "features": sample_data.values("features")[:, :2]}
    )
    with pytest.raises(TransformError, match="expected"):
        model.transform(narrow)

    scored = model.transform(sample_data)
    with pytest.raises(TransformError, match="already has output column 'score'"):
        model.transform(scored)


def test_multi_step_pipeline_threads_outputs(sample_data):
    pipeline = (
        Pipeline(sample_data.schema)
        .append(lambda r: {"label": r.label, "scaled": Normalize(r.features)})
        .append(lambda r: {"label": r.label, "both": Concatenate(r.label, r.scaled)})
    )
    result = pipeline.fit(sample_data)
    out = result.model.transform(sample_data)

    assert out.column_names == ["label", "features", "scaled", "both"]
    assert out.values("both").shape == (100, 7)
    np.testing.assert_allclose(out.values("scaled").mean(axis=0), 0.0, atol=1e-5)
    assert result.predictors == {}


def test_create_regression_pipeline(sample_data):
    pipeline = create_regression_pipeline(
        sample_data.schema,
        lambda y, X: SdcaRegression(y, X, max_iterations=200),
        normalize=True,
    )
    assert len(pipeline) == 2
    assert list(pipeline.view) == ["label", "score"]

    result = pipeline.fit(sample_data)
    scored = result.transform(sample_data)
    assert "features_normalized" in scored.column_names
    assert result.predictor().feature_count == 6


def test_fit_rejects_dataset_already_holding_an_output(sample_data):
    calls = []
    pipeline = Pipeline(sample_data.schema).append(sdca_stage(calls))
    scored = pipeline.fit(sample_data).model.transform(sample_data)
    calls.clear()

    with pytest.raises(SchemaError, match="already has output column 'score'"):
        pipeline.fit(scored)
    assert calls == []
