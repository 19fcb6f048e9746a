"""
@module: fitpipe.samples
@depends: fitpipe.datasets, fitpipe.context, fitpipe.pipeline, fitpipe.trainer_presets
@exports: SampleReport, load_stage, train_stage, evaluate_stage, sdca_regression,
    fast_tree_regression, light_gbm_regression, SAMPLES
@data_flow: download -> read -> split / folds -> fit -> predictor weights + metrics

End-to-end regression samples over the housing dataset.

Each sample runs three separable stages: `load_stage` (download + read),
`train_stage` (build + fit the pipeline) and `evaluate_stage` (score held-out
data and compute metrics). FastTree is evaluated with 5-fold
cross-validation instead of a single hold-out split.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from fitpipe.context import RegressionContext
from fitpipe.datasets import download_housing_dataset, housing_reader
from fitpipe.evaluation import RegressionMetrics
from fitpipe.pipeline import FitResult, FittedModel, Pipeline, create_regression_pipeline
from fitpipe.reader import TextReader
from fitpipe.schema import Dataset
from fitpipe.trainer_presets import resolve_trainer_params
from fitpipe.trainers import RegressionPredictor

logger = logging.getLogger(__name__)

TEST_FRACTION = 0.1
NUM_FOLDS = 5


@dataclass
class SampleReport:
    """Result of running one sample."""

    name: str
    metrics: RegressionMetrics
    predictor: Optional[RegressionPredictor]
    n_rows: int
    fold_metrics: List[RegressionMetrics] = field(default_factory=list)

    @property
    def weights(self) -> np.ndarray:
        if self.predictor is None:
            return np.array([])
        return self.predictor.feature_weights()

    def summary_lines(self) -> List[str]:
        lines = [f"== {self.name} ({self.n_rows} rows)"]
        for i, w in enumerate(self.weights[:2]):
            lines.append(f"weight {i} - {w}")
        lines.extend(str(self.metrics).splitlines())
        return lines


def load_stage(
    data_file: Optional[Path] = None,
    dest_dir: Optional[Path] = None,
) -> Tuple[TextReader, Dataset]:
    """Download (if needed) and read the housing dataset."""
    if data_file is None:
        data_file = download_housing_dataset(dest_dir)
    reader = housing_reader()
    return reader, reader.read(data_file)


def build_pipeline(
    reader: TextReader,
    ctx: RegressionContext,
    trainer: str,
    preset: str = "sample",
    config_path: Optional[Path] = None,
) -> Pipeline:
    """The (label, score) pipeline for trainer kind `trainer` with preset params."""
    params = resolve_trainer_params(trainer, preset, config_path)
    factory = ctx.trainers.by_name(trainer)
    return create_regression_pipeline(
        reader.make_new_estimator(), lambda label, features: factory(label, features, **params)
    )


def train_stage(pipeline: Pipeline, train: Dataset) -> FitResult:
    result = pipeline.fit(train)
    weights = result.predictor().feature_weights()
    logger.info(f"Learned feature weights: {weights[:2].tolist()} ...")
    return result


def evaluate_stage(ctx: RegressionContext, model: FittedModel, test: Dataset) -> RegressionMetrics:
    scored = model.transform(test)
    return ctx.evaluate(scored, "label", "score")


def _holdout_sample(
    name: str,
    trainer: str,
    data_file: Optional[Path],
    seed: int,
    preset: str,
    config_path: Optional[Path],
) -> SampleReport:
    reader, data = load_stage(data_file)
    ctx = RegressionContext(seed=seed)
    train, test = ctx.train_test_split(data, test_fraction=TEST_FRACTION)

    pipeline = build_pipeline(reader, ctx, trainer, preset, config_path)
    result = train_stage(pipeline, train)
    metrics = evaluate_stage(ctx, result.model, test)
    return SampleReport(name=name, metrics=metrics, predictor=result.predictor(), n_rows=len(data))


def sdca_regression(
    data_file: Optional[Path] = None,
    seed: int = 0,
    preset: str = "sample",
    config_path: Optional[Path] = None,
) -> SampleReport:
    """Linear regression trained by coordinate descent, evaluated on a 10% hold-out."""
    return _holdout_sample("SdcaRegression", "sdca", data_file, seed, preset, config_path)


def light_gbm_regression(
    data_file: Optional[Path] = None,
    seed: int = 0,
    preset: str = "sample",
    config_path: Optional[Path] = None,
) -> SampleReport:
    """LightGBM regression evaluated on a 10% hold-out."""
    return _holdout_sample("LightGbmRegression", "light_gbm", data_file, seed, preset, config_path)


def fast_tree_regression(
    data_file: Optional[Path] = None,
    seed: int = 0,
    preset: str = "sample",
    config_path: Optional[Path] = None,
    num_folds: int = NUM_FOLDS,
) -> SampleReport:
    """Boosted trees evaluated by cross-validation, with metrics averaged over folds."""
    reader, data = load_stage(data_file)
    ctx = RegressionContext(seed=seed)
    pipeline = build_pipeline(reader, ctx, "fast_tree", preset, config_path)

    cv_results = ctx.cross_validate(data, pipeline, "label", num_folds=num_folds)
    last = cv_results[-1].predictors.get("score")
    return SampleReport(
        name="FastTreeRegression",
        metrics=ctx.average(cv_results),
        predictor=last,
        n_rows=len(data),
        fold_metrics=[r.metrics for r in cv_results],
    )


SAMPLES: Dict[str, Callable[..., SampleReport]] = {
    "sdca": sdca_regression,
    "fasttree": fast_tree_regression,
    "lightgbm": light_gbm_regression,
}
