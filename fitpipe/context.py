"""
@module: fitpipe.context
@depends: fitpipe.pipeline, fitpipe.trainers, fitpipe.evaluation, fitpipe.schema
@exports: RegressionContext, CrossValidationResult
@data_flow: dataset -> split / folds -> fit pipeline -> scored data -> metrics
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

import numpy as np
from sklearn.model_selection import KFold
from sklearn.model_selection import train_test_split as sk_train_test_split

from fitpipe.evaluation import LossName, RegressionMetrics, average_metrics, evaluate
from fitpipe.meta import component
from fitpipe.pipeline import FittedModel, Pipeline
from fitpipe.schema import ColumnHandle, Dataset
from fitpipe.trainers import RegressionPredictor, RegressionTrainers

logger = logging.getLogger(__name__)


@dataclass
class CrossValidationResult:
    """Outcome of one cross-validation fold."""

    fold: int
    metrics: RegressionMetrics
    model: FittedModel
    scored_test_data: Dataset
    predictors: Dict[str, RegressionPredictor] = field(default_factory=dict)


@component(
    name="RegressionContext",
    responsibility="Seeded trainers, data splitting, evaluation and cross-validation",
    depends_on=["Pipeline", "RegressionTrainers"],
)
class RegressionContext:
    """
    Entry point for regression workflows.

    Example:
        >>> ctx = RegressionContext(seed=0)
        >>> train, test = ctx.train_test_split(data, test_fraction=0.1)
        >>> pipeline = reader.make_new_estimator().append(
        ...     lambda r: {"label": r.label, "score": ctx.trainers.sdca(r.label, r.features)}
        ... )
        >>> model = pipeline.fit(train).model
        >>> metrics = ctx.evaluate(model.transform(test), "label", "score")
    """

    def __init__(self, seed: int = 0) -> None:
        self.seed = seed
        self.trainers = RegressionTrainers(seed=seed)

    def train_test_split(
        self, data: Dataset, test_fraction: float = 0.1
    ) -> Tuple[Dataset, Dataset]:
        """Randomly split rows into (train, test) datasets."""
        if not 0.0 < test_fraction < 1.0:
            raise ValueError("test_fraction must be between 0 and 1 (exclusive)")
        if len(data) < 2:
            raise ValueError("Need at least 2 rows to split")
        train_idx, test_idx = sk_train_test_split(
            np.arange(len(data)), test_size=test_fraction, random_state=self.seed
        )
        logger.info(f"Split {len(data)} rows into {len(train_idx)} train / {len(test_idx)} test")
        return data.take(np.sort(train_idx)), data.take(np.sort(test_idx))

    def evaluate(
        self,
        data: Dataset,
        label: Union[str, ColumnHandle] = "label",
        score: Union[str, ColumnHandle] = "score",
        loss: LossName = "squared",
    ) -> RegressionMetrics:
        return evaluate(data, label, score, loss=loss)

    def cross_validate(
        self,
        data: Dataset,
        pipeline: Pipeline,
        label: Union[str, ColumnHandle] = "label",
        num_folds: int = 5,
        score: Union[str, ColumnHandle] = "score",
        loss: LossName = "squared",
    ) -> List[CrossValidationResult]:
        """
        Fit and evaluate `pipeline` once per fold.

        Each fold trains on the other folds and scores its own rows. The
        pipeline is immutable, so every fold fits it from scratch.

        Returns:
            One CrossValidationResult per fold, in fold order
        """
        if num_folds < 2:
            raise ValueError("num_folds must be at least 2")
        if num_folds > len(data):
            raise ValueError(f"num_folds={num_folds} exceeds the {len(data)} available rows")

        kfold = KFold(n_splits=num_folds, shuffle=True, random_state=self.seed)
        results: List[CrossValidationResult] = []
        for fold, (train_idx, test_idx) in enumerate(kfold.split(np.arange(len(data)))):
            fit = pipeline.fit(data.take(train_idx))
            model = fit.model
            scored = model.transform(data.take(test_idx))
            metrics = evaluate(scored, label, score, loss=loss)
            logger.info(f"Fold {fold + 1}/{num_folds}: rms={metrics.rms:.4f} r2={metrics.r_squared:.4f}")
            results.append(
                CrossValidationResult(
                    fold=fold,
                    metrics=metrics,
                    model=model,
                    scored_test_data=scored,
                    predictors=dict(fit.predictors),
                )
            )
        return results

    @staticmethod
    def average(results: List[CrossValidationResult]) -> RegressionMetrics:
        """Average metrics across cross-validation folds."""
        return average_metrics(r.metrics for r in results)
