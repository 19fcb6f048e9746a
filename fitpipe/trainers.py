"""
@module: fitpipe.trainers
@depends: fitpipe.estimators, fitpipe.schema, fitpipe.errors, fitpipe.meta
@exports: Trainer, RegressionPredictor, LinearRegressionPredictor, FastTreeRegressionPredictor,
    LightGbmRegressionPredictor, SdcaRegression, FastTreeRegression, LightGbmRegression,
    RegressionTrainers
@data_flow: (label, features) handles -> library training -> typed predictor -> score column
"""

import logging
import warnings
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import ElasticNet

from fitpipe.errors import FitError, SchemaError
from fitpipe.estimators import Estimator, FittedStep, as_matrix, require_numeric
from fitpipe.meta import component
from fitpipe.schema import ColumnHandle, Dataset

logger = logging.getLogger(__name__)

DEFAULT_L2_CONST = 1e-4


# =============================================================================
# Predictors
# =============================================================================


class RegressionPredictor:
    """Concrete trained regression model produced by a trainer."""

    def __init__(self, model: Any, feature_count: int) -> None:
        self.model = model
        self.feature_count = feature_count

    def predict(self, X: np.ndarray) -> np.ndarray:
        return np.asarray(self.model.predict(X), dtype=np.float64)

    def feature_weights(self) -> np.ndarray:
        raise NotImplementedError


class LinearRegressionPredictor(RegressionPredictor):
    """Linear model `score = X @ weights + bias`."""

    def __init__(self, model: ElasticNet, feature_count: int) -> None:
        super().__init__(model, feature_count)
        self.weights = np.asarray(model.coef_, dtype=np.float64).reshape(feature_count)
        self.bias = float(model.intercept_)

    def predict(self, X: np.ndarray) -> np.ndarray:
        # Rows with missing features score as NaN instead of failing validation
        return np.asarray(X, dtype=np.float64) @ self.weights + self.bias

    def feature_weights(self) -> np.ndarray:
        return self.weights.copy()


class FastTreeRegressionPredictor(RegressionPredictor):
    """Gradient-boosted tree ensemble (xgboost)."""

    def feature_weights(self) -> np.ndarray:
        return np.asarray(self.model.feature_importances_, dtype=np.float64)

    @property
    def num_trees(self) -> int:
        return int(self.model.get_booster().num_boosted_rounds())


class LightGbmRegressionPredictor(RegressionPredictor):
    """Gradient-boosted tree ensemble (LightGBM)."""

    def feature_weights(self) -> np.ndarray:
        return np.asarray(
            self.model.booster_.feature_importance(importance_type="gain"), dtype=np.float64
        )

    @property
    def num_trees(self) -> int:
        return int(self.model.booster_.num_trees())


# =============================================================================
# Trainers
# =============================================================================


class _FittedTrainer(FittedStep):
    def __init__(self, inputs, output, predictor: RegressionPredictor) -> None:
        super().__init__(inputs, output)
        self.predictor = predictor

    def compute(self, data: Dataset) -> np.ndarray:
        features = self.inputs[1]
        return self.predictor.predict(as_matrix(data, features))


class Trainer(Estimator):
    """
    Estimator that trains a regressor from a label and a feature column.

    Args:
        label: Numeric scalar label column
        features: Numeric scalar or vector feature column
        on_fit: Optional callback invoked once with the trained predictor
    """

    def __init__(
        self,
        label: ColumnHandle,
        features: ColumnHandle,
        on_fit: Optional[Callable[[RegressionPredictor], None]] = None,
    ) -> None:
        self.label = require_numeric(label, "Label")
        if self.label.is_vector:
            raise SchemaError(f"Label column {label.name!r} must be a scalar")
        self.features = require_numeric(features, "Features")
        if on_fit is not None and not callable(on_fit):
            raise TypeError("on_fit must be callable")
        self.on_fit = on_fit

    def inputs(self) -> Tuple[ColumnHandle, ...]:
        return (self.label, self.features)

    def params(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _train(self, X: np.ndarray, y: np.ndarray) -> RegressionPredictor:
        raise NotImplementedError

    def fit(self, data: Dataset, output: ColumnHandle) -> FittedStep:
        X = as_matrix(data, self.features)
        y = np.asarray(data.values(self.label), dtype=np.float64)

        mask = ~(np.isnan(y) | np.isnan(X).any(axis=1))
        dropped = int((~mask).sum())
        if dropped:
            logger.warning(f"{type(self).__name__}: dropping {dropped} rows with missing values")
        if not mask.any():
            raise FitError(f"{type(self).__name__}: no rows left to train on", step=output.name)

        logger.info(
            f"Training {type(self).__name__} on {int(mask.sum())} rows, "
            f"{X.shape[1]} features: {self.params()}"
        )
        predictor = self._train(X[mask], y[mask])
        return _FittedTrainer(self.inputs(), output, predictor)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params().items())
        return f"{type(self).__name__}({self.label.name}, {self.features.name}, {args})"


def _positive(name: str, value: Optional[float]) -> None:
    if value is not None and value <= 0:
        raise ValueError(f"{name} must be positive")


@component(
    name="SdcaRegression",
    responsibility="Linear regression trained by coordinate descent",
    depends_on=["Trainer"],
)
class SdcaRegression(Trainer):
    """
    Linear regression with elastic-net regularization.

    `l2_const` is the L2 penalty and `l1_threshold` scales it into the L1
    penalty, so `l1_threshold=0` trains a pure ridge-style model.
    """

    def __init__(
        self,
        label: ColumnHandle,
        features: ColumnHandle,
        l1_threshold: float = 0.0,
        l2_const: Optional[float] = None,
        max_iterations: int = 100,
        seed: int = 0,
        on_fit: Optional[Callable[[LinearRegressionPredictor], None]] = None,
    ) -> None:
        super().__init__(label, features, on_fit=on_fit)
        if l1_threshold < 0:
            raise ValueError("l1_threshold must be >= 0")
        _positive("l2_const", l2_const)
        _positive("max_iterations", max_iterations)
        self.l1_threshold = l1_threshold
        self.l2_const = l2_const
        self.max_iterations = max_iterations
        self.seed = seed

    def params(self) -> Dict[str, Any]:
        return {
            "l1_threshold": self.l1_threshold,
            "l2_const": self.l2_const,
            "max_iterations": self.max_iterations,
        }

    def _train(self, X: np.ndarray, y: np.ndarray) -> LinearRegressionPredictor:
        l2 = self.l2_const if self.l2_const is not None else DEFAULT_L2_CONST
        l1 = self.l1_threshold * l2
        model = ElasticNet(
            alpha=l1 + l2,
            l1_ratio=l1 / (l1 + l2),
            max_iter=self.max_iterations,
            random_state=self.seed,
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            model.fit(X, y)
        if any(issubclass(w.category, ConvergenceWarning) for w in caught):
            logger.warning(
                f"SdcaRegression did not converge within {self.max_iterations} iterations"
            )
        return LinearRegressionPredictor(model, X.shape[1])


@component(
    name="FastTreeRegression",
    responsibility="Gradient-boosted regression trees grown leaf-wise",
    depends_on=["Trainer"],
)
class FastTreeRegression(Trainer):
    """Boosted regression trees via xgboost with a leaf budget per tree."""

    def __init__(
        self,
        label: ColumnHandle,
        features: ColumnHandle,
        num_trees: int = 100,
        num_leaves: int = 20,
        min_datapoints_in_leafs: int = 10,
        learning_rate: float = 0.2,
        seed: int = 0,
        on_fit: Optional[Callable[[FastTreeRegressionPredictor], None]] = None,
    ) -> None:
        super().__init__(label, features, on_fit=on_fit)
        _positive("num_trees", num_trees)
        if num_leaves < 2:
            raise ValueError("num_leaves must be at least 2")
        _positive("min_datapoints_in_leafs", min_datapoints_in_leafs)
        _positive("learning_rate", learning_rate)
        self.num_trees = num_trees
        self.num_leaves = num_leaves
        self.min_datapoints_in_leafs = min_datapoints_in_leafs
        self.learning_rate = learning_rate
        self.seed = seed

    def params(self) -> Dict[str, Any]:
        return {
            "num_trees": self.num_trees,
            "num_leaves": self.num_leaves,
            "min_datapoints_in_leafs": self.min_datapoints_in_leafs,
            "learning_rate": self.learning_rate,
        }

    def _train(self, X: np.ndarray, y: np.ndarray) -> FastTreeRegressionPredictor:
        from xgboost import XGBRegressor

        # Squared error has unit hessian, so min_child_weight counts rows
        model = XGBRegressor(
            n_estimators=self.num_trees,
            max_leaves=self.num_leaves,
            max_depth=0,
            grow_policy="lossguide",
            tree_method="hist",
            min_child_weight=self.min_datapoints_in_leafs,
            learning_rate=self.learning_rate,
            random_state=self.seed,
            n_jobs=-1,
            verbosity=0,
        )
        model.fit(X, y)
        return FastTreeRegressionPredictor(model, X.shape[1])


@component(
    name="LightGbmRegression",
    responsibility="LightGBM gradient-boosted regression",
    depends_on=["Trainer"],
)
class LightGbmRegression(Trainer):
    """LightGBM regressor; unset hyperparameters keep LightGBM's defaults."""

    def __init__(
        self,
        label: ColumnHandle,
        features: ColumnHandle,
        num_leaves: Optional[int] = None,
        min_data_per_leaf: Optional[int] = None,
        learning_rate: Optional[float] = None,
        num_boost_round: int = 100,
        seed: int = 0,
        on_fit: Optional[Callable[[LightGbmRegressionPredictor], None]] = None,
    ) -> None:
        super().__init__(label, features, on_fit=on_fit)
        if num_leaves is not None and num_leaves < 2:
            raise ValueError("num_leaves must be at least 2")
        _positive("min_data_per_leaf", min_data_per_leaf)
        _positive("learning_rate", learning_rate)
        _positive("num_boost_round", num_boost_round)
        self.num_leaves = num_leaves
        self.min_data_per_leaf = min_data_per_leaf
        self.learning_rate = learning_rate
        self.num_boost_round = num_boost_round
        self.seed = seed

    def params(self) -> Dict[str, Any]:
        return {
            "num_leaves": self.num_leaves,
            "min_data_per_leaf": self.min_data_per_leaf,
            "learning_rate": self.learning_rate,
            "num_boost_round": self.num_boost_round,
        }

    def _train(self, X: np.ndarray, y: np.ndarray) -> LightGbmRegressionPredictor:
        from lightgbm import LGBMRegressor

        params: Dict[str, Any] = {
            "objective": "regression",
            "n_estimators": self.num_boost_round,
            "random_state": self.seed,
            "verbosity": -1,
        }
        if self.num_leaves is not None:
            params["num_leaves"] = self.num_leaves
        if self.min_data_per_leaf is not None:
            params["min_child_samples"] = self.min_data_per_leaf
        if self.learning_rate is not None:
            params["learning_rate"] = self.learning_rate

        model = LGBMRegressor(**params)
        model.fit(X, y)
        return LightGbmRegressionPredictor(model, X.shape[1])


class RegressionTrainers:
    """Trainer catalog that stamps every trainer with a shared seed."""

    def __init__(self, seed: int = 0) -> None:
        self.seed = seed

    def sdca(self, label: ColumnHandle, features: ColumnHandle, **kwargs: Any) -> SdcaRegression:
        kwargs.setdefault("seed", self.seed)
        return SdcaRegression(label, features, **kwargs)

    def fast_tree(
        self, label: ColumnHandle, features: ColumnHandle, **kwargs: Any
    ) -> FastTreeRegression:
        kwargs.setdefault("seed", self.seed)
        return FastTreeRegression(label, features, **kwargs)

    def light_gbm(
        self, label: ColumnHandle, features: ColumnHandle, **kwargs: Any
    ) -> LightGbmRegression:
        kwargs.setdefault("seed", self.seed)
        return LightGbmRegression(label, features, **kwargs)

    def by_name(self, name: str) -> Callable[..., Trainer]:
        """Look up a trainer factory by its preset key ('sdca', 'fast_tree', 'light_gbm')."""
        factories = {"sdca": self.sdca, "fast_tree": self.fast_tree, "light_gbm": self.light_gbm}
        if name not in factories:
            raise ValueError(f"Unknown trainer {name!r}; expected one of {sorted(factories)}")
        return factories[name]
