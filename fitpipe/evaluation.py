"""
@module: fitpipe.evaluation
@depends: fitpipe.schema
@exports: RegressionMetrics, evaluate, average_metrics
@data_flow: scored dataset -> (label, score) arrays -> regression metrics
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterable, Literal, Union

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from fitpipe.schema import ColumnHandle, Dataset

logger = logging.getLogger(__name__)

LossName = Literal["squared", "absolute", "huber"]

HUBER_DELTA = 1.0


@dataclass(frozen=True)
class RegressionMetrics:
    """
    Regression quality on one evaluation set.

    Attributes:
        l1: Mean absolute error
        l2: Mean squared error
        loss_fn: Mean of the configured loss function
        rms: Root of the mean squared error
        r_squared: Coefficient of determination
    """

    l1: float
    l2: float
    loss_fn: float
    rms: float
    r_squared: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"L1 - {self.l1}\n"
            f"L2 - {self.l2}\n"
            f"LossFunction - {self.loss_fn}\n"
            f"RMS - {self.rms}\n"
            f"RSquared - {self.r_squared}"
        )


def _mean_loss(y_true: np.ndarray, y_pred: np.ndarray, loss: LossName) -> float:
    residual = y_true - y_pred
    if loss == "squared":
        return float(np.mean(residual ** 2))
    if loss == "absolute":
        return float(np.mean(np.abs(residual)))
    if loss == "huber":
        abs_res = np.abs(residual)
        quadratic = 0.5 * residual ** 2
        linear = HUBER_DELTA * (abs_res - 0.5 * HUBER_DELTA)
        return float(np.mean(np.where(abs_res <= HUBER_DELTA, quadratic, linear)))
    raise ValueError(f"Unknown loss {loss!r}; expected 'squared', 'absolute' or 'huber'")


def evaluate(
    data: Dataset,
    label: Union[str, ColumnHandle] = "label",
    score: Union[str, ColumnHandle] = "score",
    loss: LossName = "squared",
) -> RegressionMetrics:
    """
    Compute regression metrics for a scored dataset.

    Rows with a missing label or score are ignored.

    Args:
        data: Dataset holding label and score columns
        label: Label column (name or handle)
        score: Score column (name or handle)
        loss: Loss reported as `loss_fn`

    Returns:
        RegressionMetrics

    Raises:
        ValueError: If no rows remain to evaluate
    """
    y_true = np.asarray(data.values(label), dtype=np.float64)
    y_pred = np.asarray(data.values(score), dtype=np.float64)

    mask = ~(np.isnan(y_true) | np.isnan(y_pred))
    skipped = int((~mask).sum())
    if skipped:
        logger.warning(f"Skipping {skipped} rows with missing label or score")
    if not mask.any():
        raise ValueError("No rows with both label and score to evaluate")
    y_true, y_pred = y_true[mask], y_pred[mask]

    l2 = float(mean_squared_error(y_true, y_pred))
    metrics = RegressionMetrics(
        l1=float(mean_absolute_error(y_true, y_pred)),
        l2=l2,
        loss_fn=_mean_loss(y_true, y_pred, loss),
        rms=float(np.sqrt(l2)),
        r_squared=float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float("nan"),
    )
    logger.debug(f"Evaluated {len(y_true)} rows: {metrics.as_dict()}")
    return metrics


def average_metrics(results: Iterable[RegressionMetrics]) -> RegressionMetrics:
    """Average each metric field across folds."""
    collected = list(results)
    if not collected:
        raise ValueError("Cannot average an empty set of metrics")
    averaged = {
        f.name: float(np.mean([getattr(m, f.name) for m in collected]))
        for f in fields(RegressionMetrics)
    }
    return RegressionMetrics(**averaged)
