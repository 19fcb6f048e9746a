"""Tests for component metadata."""

from fitpipe.context import RegressionContext
from fitpipe.meta import component
from fitpipe.pipeline import FittedModel, Pipeline
from fitpipe.trainers import SdcaRegression


def test_core_components_carry_metadata():
    assert Pipeline.__component_metadata__["name"] == "Pipeline"
    assert Pipeline.__component_metadata__["depends_on"] == ["ColumnSet", "Estimator", "Trainer"]
    assert FittedModel.__component_metadata__["depends_on"] == ["Pipeline"]
    assert RegressionContext.__component_metadata__["name"] == "RegressionContext"
    assert "coordinate descent" in SdcaRegression.__component_metadata__["responsibility"]


def test_component_decorator_defaults():
    @component(name="ExampleComponent", responsibility="Used in tests")
    class Example:
        pass

    assert Example.__component_metadata__ == {
        "name": "ExampleComponent",
        "responsibility": "Used in tests",
        "depends_on": [],
    }
