"""Tests for trainer preset resolution."""

import pytest

from fitpipe.trainer_presets import load_trainer_presets, resolve_trainer_params


def test_resolve_trainer_params_sample():
    params = resolve_trainer_params("fast_tree", "sample")
    assert params == {
        "num_trees": 100,
        "num_leaves": 20,
        "min_datapoints_in_leafs": 10,
        "learning_rate": 0.2,
    }


def test_resolve_unknown_preset_falls_back_to_default():
    assert resolve_trainer_params("sdca", "missing") == resolve_trainer_params("sdca", "default")


def test_resolve_unknown_trainer():
    with pytest.raises(ValueError, match="Unknown trainer"):
        resolve_trainer_params("svm")


def test_toml_overrides_builtin(tmp_path):
    path = tmp_path / "trainers.toml"
    path.write_text(
        "[light_gbm.sample]\nnum_leaves = 8\n\n[light_gbm.tiny]\nnum_boost_round = 5\n"
        "[unrelated]\nkey = 1\n",
        encoding="utf-8",
    )
    presets = load_trainer_presets(path)
    assert presets["light_gbm"]["sample"] == {"num_leaves": 8}
    assert presets["light_gbm"]["tiny"] == {"num_boost_round": 5}
    assert "unrelated" not in presets
    # built-in presets are not mutated by a load
    assert load_trainer_presets(tmp_path / "none.toml")["light_gbm"]["sample"]["num_leaves"] == 4


def test_resolved_params_are_copies():
    params = resolve_trainer_params("sdca", "sample")
    params["max_iterations"] = 1
    assert resolve_trainer_params("sdca", "sample")["max_iterations"] == 100
