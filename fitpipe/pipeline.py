"""
@module: fitpipe.pipeline
@depends: fitpipe.schema, fitpipe.estimators, fitpipe.trainers, fitpipe.errors, fitpipe.meta
@exports: Pipeline, FittedModel, FitResult, create_regression_pipeline
@data_flow: source columns -> appended estimator steps -> fit -> fitted model + predictors
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from fitpipe.errors import FitError, FitpipeError, SchemaError, TransformError
from fitpipe.estimators import Estimator, FittedStep, Normalize
from fitpipe.meta import component
from fitpipe.schema import ColumnHandle, ColumnSet, Dataset, new_owner
from fitpipe.trainers import RegressionPredictor, Trainer

logger = logging.getLogger(__name__)

StepFn = Callable[[ColumnSet], Mapping]


def _check_input_schema(expected: ColumnSet, data: Dataset, error: type) -> None:
    for handle in expected.values():
        actual = data.schema.get(handle.name)
        if actual is None:
            raise error(f"Dataset is missing column {handle.name!r}")
        if not actual.same_shape(handle):
            raise error(
                f"Column {handle.name!r} is {actual.describe()!r}, "
                f"expected {handle.describe()!r}"
            )


@component(
    name="FittedModel",
    responsibility="Composed result of fitting every pipeline step",
    depends_on=["Pipeline"],
)
class FittedModel:
    """
    Immutable sequence of fitted steps.

    Attributes:
        input_schema: Source columns the model expects
        output_schema: Columns visible after the last appended stage
        steps: Fitted steps in application order
    """

    def __init__(
        self,
        input_schema: ColumnSet,
        output_schema: ColumnSet,
        steps: Tuple[FittedStep, ...],
    ) -> None:
        self.input_schema = input_schema
        self.output_schema = output_schema
        self.steps = steps

    def transform(self, data: Dataset) -> Dataset:
        """
        Apply every fitted step in order.

        The result keeps all columns of `data` and adds one column per step.

        Raises:
            TransformError: If `data` lacks an expected column, a column's
                type or width differs from what the model was fit on, or a
                step fails
        """
        _check_input_schema(self.input_schema, data, TransformError)
        for step in self.steps:
            if step.output.name in data.schema:
                raise TransformError(f"Dataset already has output column {step.output.name!r}")

        current = data
        for step in self.steps:
            try:
                current = step.transform(current)
            except FitpipeError:
                raise
            except Exception as exc:
                raise TransformError(
                    f"Step producing {step.output.name!r} failed: {exc}"
                ) from exc
        logger.debug(f"Transformed {len(current)} rows through {len(self.steps)} steps")
        return current

    def __repr__(self) -> str:
        outputs = [s.output.name for s in self.steps]
        return f"FittedModel(inputs={list(self.input_schema)}, outputs={outputs})"


@dataclass(frozen=True)
class FitResult:
    """
    Outcome of `Pipeline.fit`: the fitted model plus the concrete predictors.

    Attributes:
        model: Fitted model for transforming new data
        predictors: Output column name -> trained predictor, one per trainer step
    """

    model: FittedModel
    predictors: Dict[str, RegressionPredictor] = field(default_factory=dict)

    def predictor(self, name: Optional[str] = None) -> RegressionPredictor:
        """Return the predictor for output `name`, or the only one if `name` is None."""
        if name is not None:
            if name not in self.predictors:
                raise KeyError(f"No trainer produced column {name!r}")
            return self.predictors[name]
        if len(self.predictors) != 1:
            raise ValueError(
                f"Pipeline has {len(self.predictors)} trainers; pass the output name"
            )
        return next(iter(self.predictors.values()))

    def transform(self, data: Dataset) -> Dataset:
        return self.model.transform(data)


@component(
    name="Pipeline",
    responsibility="Immutable chain of estimator steps over typed column handles",
    depends_on=["ColumnSet", "Estimator", "Trainer"],
)
class Pipeline:
    """
    Persistent description of a straight-line estimator chain.

    `append` never mutates the receiver; every call returns a new pipeline
    sharing the earlier steps.

    Example:
        >>> pipeline = reader.make_new_estimator().append(
        ...     lambda r: {
        ...         "label": r.label,
        ...         "score": SdcaRegression(r.label, r.features, max_iterations=100),
        ...     }
        ... )
        >>> result = pipeline.fit(train_data)
        >>> weights = result.predictor().feature_weights()
        >>> scored = result.model.transform(test_data)
    """

    def __init__(
        self,
        source: ColumnSet,
        steps: Tuple[Tuple[ColumnHandle, Estimator], ...] = (),
        view: Optional[ColumnSet] = None,
        columns: Optional[ColumnSet] = None,
    ) -> None:
        self.source = source
        self.steps = steps
        self.view = source if view is None else view
        # Every column the dataset will hold after the last step
        self.columns = source if columns is None else columns

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        steps = ", ".join(f"{h.name}={est!r}" for h, est in self.steps)
        return f"Pipeline(source={list(self.source)}, steps=[{steps}])"

    def append(self, step_fn: StepFn) -> "Pipeline":
        """
        Extend the pipeline with one stage.

        Args:
            step_fn: Receives the current view and returns a mapping of
                output name -> ColumnHandle (passthrough) or Estimator

        Returns:
            New pipeline; the receiver is unchanged

        Raises:
            SchemaError: If the stage references a handle outside the current
                view, renames a passthrough, or reuses an existing column name
        """
        declared = step_fn(self.view)
        if not isinstance(declared, Mapping):
            raise SchemaError(
                f"Pipeline stage must return a mapping of name -> handle/estimator, "
                f"got {type(declared).__name__}"
            )

        owner = new_owner("step")
        new_view: List[ColumnHandle] = []
        new_steps: List[Tuple[ColumnHandle, Estimator]] = []
        new_columns: List[ColumnHandle] = []

        for name, item in declared.items():
            if isinstance(item, ColumnHandle):
                if item not in self.view:
                    raise SchemaError(f"Column {item.name!r} is not available at this stage")
                if item.name != name:
                    raise SchemaError(
                        f"Passthrough column {item.name!r} cannot be renamed to {name!r}"
                    )
                new_view.append(item)
            elif isinstance(item, Estimator):
                for handle in item.inputs():
                    if handle not in self.view:
                        raise SchemaError(
                            f"{type(item).__name__} for {name!r} references column "
                            f"{handle.name!r}, which is not available at this stage"
                        )
                if name in self.columns or any(h.name == name for h in new_columns):
                    raise SchemaError(f"Output column {name!r} already exists")
                output = ColumnHandle(name, item.output_type, item.output_width(), owner)
                new_steps.append((output, item))
                new_columns.append(output)
                new_view.append(output)
            else:
                raise SchemaError(
                    f"Stage entry {name!r} must be a ColumnHandle or Estimator, "
                    f"got {type(item).__name__}"
                )

        logger.debug(f"Appended stage with outputs {[h.name for h, _ in new_steps]}")
        return Pipeline(
            source=self.source,
            steps=self.steps + tuple(new_steps),
            view=ColumnSet(new_view),
            columns=self.columns.extended(*new_columns),
        )

    def fit(self, data: Dataset) -> FitResult:
        """
        Fit every step in declared order, threading outputs to later inputs.

        A trainer's `on_fit` callback runs right after that trainer fits and
        before the next step. On failure no model is returned; callbacks that
        already ran are not undone.

        Raises:
            SchemaError: If `data` does not carry the pipeline's source columns,
                or already holds a column one of its steps would produce
            FitError: If any step's fitting procedure fails
        """
        _check_input_schema(self.source, data, SchemaError)
        for output, _ in self.steps:
            if output.name in data.schema:
                raise SchemaError(f"Dataset already has output column {output.name!r}")
        logger.info(f"Fitting pipeline with {len(self.steps)} steps on {len(data)} rows")

        current = data
        fitted: List[FittedStep] = []
        predictors: Dict[str, RegressionPredictor] = {}

        for output, estimator in self.steps:
            logger.debug(f"Fitting {estimator!r} -> {output.name!r}")
            try:
                step = estimator.fit(current, output)
                current = step.transform(current)
            except FitError as exc:
                logger.error(f"Fitting step {output.name!r} failed: {exc}")
                if exc.step is None:
                    exc.step = output.name
                raise
            except Exception as exc:
                logger.error(f"Fitting step {output.name!r} failed: {exc}")
                raise FitError(
                    f"Fitting {type(estimator).__name__} for {output.name!r} failed: {exc}",
                    step=output.name,
                ) from exc

            fitted.append(step)
            if isinstance(estimator, Trainer):
                predictors[output.name] = step.predictor
                if estimator.on_fit is not None:
                    estimator.on_fit(step.predictor)

        model = FittedModel(self.source, self.view, tuple(fitted))
        logger.info(f"Pipeline fit complete: {model!r}")
        return FitResult(model=model, predictors=predictors)

    def fit_transform(self, data: Dataset) -> Tuple[FitResult, Dataset]:
        """Fit on `data` and return the result together with the transformed data."""
        result = self.fit(data)
        return result, result.model.transform(data)


def create_regression_pipeline(
    source: Union[ColumnSet, Pipeline],
    trainer: Callable[[ColumnHandle, ColumnHandle], Trainer],
    label: str = "label",
    features: str = "features",
    score: str = "score",
    normalize: bool = False,
) -> Pipeline:
    """
    Build the common label/features -> score regression pipeline.

    Args:
        source: Declared columns, or a pipeline to extend
        trainer: Factory called with (label, features) handles
        label: Label column name
        features: Feature column name
        score: Name of the trainer's output column
        normalize: Whether to standard-scale features before training

    Returns:
        Pipeline whose view is (label, score)

    Example:
        >>> ctx = RegressionContext(seed=0)
        >>> pipeline = create_regression_pipeline(
        ...     reader.schema, lambda y, X: ctx.trainers.sdca(y, X, max_iterations=100)
        ... )
    """
    pipeline = source if isinstance(source, Pipeline) else Pipeline(source)

    if normalize:
        scaled = f"{features}_normalized"
        pipeline = pipeline.append(
            lambda r: {label: r[label], scaled: Normalize(r[features])}
        )
        features = scaled

    return pipeline.append(
        lambda r: {label: r[label], score: trainer(r[label], r[features])}
    )
