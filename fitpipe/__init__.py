"""
@module: fitpipe
@depends:
@exports: Pipeline, FitResult, FittedModel, TextReader, declare_columns, RegressionContext, evaluate
@data_flow: public API imports
"""

from fitpipe.config import ColumnSpec, ColumnType, ReaderConfig, load_reader_config
from fitpipe.context import CrossValidationResult, RegressionContext
from fitpipe.errors import FitError, FitpipeError, SchemaError, TransformError
from fitpipe.estimators import Concatenate, Estimator, Normalize
from fitpipe.evaluation import RegressionMetrics, average_metrics, evaluate
from fitpipe.pipeline import FitResult, FittedModel, Pipeline, create_regression_pipeline
from fitpipe.reader import TextReader
from fitpipe.schema import ColumnHandle, ColumnSet, Dataset, declare_columns
from fitpipe.trainer_presets import load_trainer_presets, resolve_trainer_params
from fitpipe.trainers import (
    FastTreeRegression,
    FastTreeRegressionPredictor,
    LightGbmRegression,
    LightGbmRegressionPredictor,
    LinearRegressionPredictor,
    RegressionPredictor,
    RegressionTrainers,
    SdcaRegression,
    Trainer,
)

__version__ = "0.1.0"
__all__ = [
    # Schema
    "ColumnType",
    "ColumnSpec",
    "ReaderConfig",
    "load_reader_config",
    "ColumnHandle",
    "ColumnSet",
    "Dataset",
    "declare_columns",
    "TextReader",
    # Pipeline
    "Pipeline",
    "FitResult",
    "FittedModel",
    "create_regression_pipeline",
    "Estimator",
    "Concatenate",
    "Normalize",
    # Trainers
    "Trainer",
    "SdcaRegression",
    "FastTreeRegression",
    "LightGbmRegression",
    "RegressionTrainers",
    "RegressionPredictor",
    "LinearRegressionPredictor",
    "FastTreeRegressionPredictor",
    "LightGbmRegressionPredictor",
    "load_trainer_presets",
    "resolve_trainer_params",
    # Evaluation
    "RegressionContext",
    "CrossValidationResult",
    "RegressionMetrics",
    "evaluate",
    "average_metrics",
    # Errors
    "FitpipeError",
    "SchemaError",
    "FitError",
    "TransformError",
]
