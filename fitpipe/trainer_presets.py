"""
@module: fitpipe.trainer_presets
@depends: tomllib
@exports: load_trainer_presets, resolve_trainer_params, TRAINER_KINDS
@data_flow: toml -> preset_map -> resolved trainer params
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

try:
    import tomllib  # Python 3.11+
except ImportError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore

TRAINER_KINDS = ("sdca", "fast_tree", "light_gbm")

# "sample" reproduces the hyperparameters of the housing regression samples
_DEFAULT_PRESETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "sdca": {
        "default": {"l1_threshold": 0.0, "max_iterations": 100},
        "sample": {"l1_threshold": 0.0, "max_iterations": 100},
        "sparse": {"l1_threshold": 0.5, "l2_const": 0.01, "max_iterations": 500},
    },
    "fast_tree": {
        "default": {
            "num_trees": 100,
            "num_leaves": 20,
            "min_datapoints_in_leafs": 10,
            "learning_rate": 0.2,
        },
        "sample": {
            "num_trees": 100,
            "num_leaves": 20,
            "min_datapoints_in_leafs": 10,
            "learning_rate": 0.2,
        },
        "shallow": {
            "num_trees": 200,
            "num_leaves": 4,
            "min_datapoints_in_leafs": 20,
            "learning_rate": 0.05,
        },
    },
    "light_gbm": {
        "default": {"num_boost_round": 100},
        "sample": {"num_leaves": 4, "min_data_per_leaf": 6, "learning_rate": 0.001},
        "boosted": {
            "num_leaves": 31,
            "min_data_per_leaf": 10,
            "learning_rate": 0.03,
            "num_boost_round": 300,
        },
    },
}


def default_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "configs" / "trainers.toml"


def load_trainer_presets(config_path: Path | None = None) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Load trainer preset definitions from TOML.

    The TOML file holds one table per trainer kind and one sub-table per
    preset, e.g. ``[fast_tree.shallow]``. Presets from the file override the
    built-in ones with the same name.

    Args:
        config_path: Optional explicit path to presets TOML.

    Returns:
        Dict mapping trainer kind -> preset name -> params.
    """
    if config_path is None:
        config_path = default_config_path()

    presets = copy.deepcopy(_DEFAULT_PRESETS)
    if not config_path.exists():
        return presets

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    for kind, tables in data.items():
        if kind not in TRAINER_KINDS or not isinstance(tables, dict):
            continue
        presets[kind].update({k: v for k, v in tables.items() if isinstance(v, dict)})
    return presets


def resolve_trainer_params(
    trainer: str,
    preset: str = "default",
    config_path: Path | None = None,
) -> Dict[str, Any]:
    """Resolve hyperparameters for a trainer kind and preset name.

    Args:
        trainer: One of TRAINER_KINDS.
        preset: Preset name; unknown names fall back to "default".
        config_path: Optional path to presets TOML.

    Returns:
        Keyword arguments for the trainer constructor.
    """
    if trainer not in TRAINER_KINDS:
        raise ValueError(f"Unknown trainer {trainer!r}; expected one of {TRAINER_KINDS}")

    presets = load_trainer_presets(config_path)[trainer]
    if preset in presets:
        return dict(presets[preset])

    # Fallback: unknown preset name
    return dict(presets["default"])
