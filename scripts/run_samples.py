"""
@module: scripts.run_samples
@depends: fitpipe
@exports: main
@data_flow: CLI args -> sample workflow -> printed metrics

Runner for the housing regression samples.

Usage:
    python scripts/run_samples.py --sample sdca
    python scripts/run_samples.py --sample all --data-file housing.txt
    python scripts/run_samples.py --sample fasttree --preset shallow --verbose
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from fitpipe.datasets import download_housing_dataset
from fitpipe.samples import SAMPLES

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the housing regression samples")
    parser.add_argument(
        "--sample", "-s", choices=[*SAMPLES, "all"], default="all", help="Sample to run"
    )
    parser.add_argument("--data-file", "-d", type=Path, help="Local housing.txt (skips download)")
    parser.add_argument("--preset", "-p", default="sample", help="Trainer preset name")
    parser.add_argument("--config", type=Path, help="Trainer presets TOML")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--json", action="store_true", help="Print metrics as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    data_file = args.data_file or download_housing_dataset()
    names = list(SAMPLES) if args.sample == "all" else [args.sample]

    reports = {}
    for name in names:
        logger.info(f"Running sample '{name}'")
        report = SAMPLES[name](
            data_file=data_file, seed=args.seed, preset=args.preset, config_path=args.config
        )
        reports[name] = report.metrics.as_dict()
        if not args.json:
            print("\n".join(report.summary_lines()))

    if args.json:
        print(json.dumps(reports, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
