"""
Tests for splitting and cross-validation.
"""

import numpy as np
import pytest

from fitpipe.context import RegressionContext
from fitpipe.evaluation import average_metrics


def sdca_pipeline(ctx, data):
    from fitpipe.pipeline import Pipeline

    return Pipeline(data.schema).append(
        lambda r: {
            "label": r.label,
            "score": ctx.trainers.sdca(r.label, r.features, max_iterations=200),
        }
    )


def test_train_test_split_sizes_and_determinism(sample_data):
    ctx = RegressionContext(seed=0)
    train, test = ctx.train_test_split(sample_data, test_fraction=0.1)

    assert len(train) == 90
    assert len(test) == 10

    _, again = RegressionContext(seed=0).train_test_split(sample_data, test_fraction=0.1)
    np.testing.assert_array_equal(test.values("label"), again.values("label"))


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.5, 1.5])
def test_train_test_split_rejects_bad_fraction(sample_data, fraction):
    with pytest.raises(ValueError, match="test_fraction"):
        RegressionContext().train_test_split(sample_data, test_fraction=fraction)


def test_cross_validate(sample_data):
    ctx = RegressionContext(seed=1)
    results = ctx.cross_validate(sample_data, sdca_pipeline(ctx, sample_data), "label", num_folds=5)

    assert [r.fold for r in results] == [0, 1, 2, 3, 4]
    assert all(len(r.scored_test_data) == 20 for r in results)
    assert all("score" in r.predictors for r in results)

    averaged = ctx.average(results)
    assert averaged == average_metrics(r.metrics for r in results)
    assert averaged.r_squared > 0.95


def test_cross_validate_invokes_callback_per_fold(sample_data):
    ctx = RegressionContext()
    calls = []
    from fitpipe.pipeline import Pipeline

    pipeline = Pipeline(sample_data.schema).append(
        lambda r: {
            "label": r.label,
            "score": ctx.trainers.sdca(r.label, r.features, on_fit=calls.append),
        }
    )
    ctx.cross_validate(sample_data, pipeline, num_folds=3)
    assert len(calls) == 3


@pytest.mark.parametrize("num_folds", [1, 101])
def test_cross_validate_rejects_bad_fold_count(sample_data, num_folds):
    ctx = RegressionContext()
    with pytest.raises(ValueError, match="num_folds"):
        ctx.cross_validate(sample_data, sdca_pipeline(ctx, sample_data), num_folds=num_folds)
