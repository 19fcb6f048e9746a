"""
@module: fitpipe.datasets
@depends: fitpipe.reader, fitpipe.config
@exports: download_housing_dataset, housing_reader, HOUSING_URL
@data_flow: remote URL -> local text file -> TextReader

Download helpers for the sample datasets.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests
from tqdm import tqdm

from fitpipe.config import ColumnSpec, ColumnType
from fitpipe.reader import TextReader

logger = logging.getLogger(__name__)

HOUSING_URL = (
    "https://raw.githubusercontent.com/dotnet/machinelearning/"
    "024bd4452e1d3660214c757237a19d6123f951ca/test/data/housing.txt"
)
HOUSING_FILENAME = "housing.txt"


def download_file(url: str, dest: Path, retries: int = 3, timeout: int = 30) -> None:
    """Download file with progress bar and retry logic."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_suffix(dest.suffix + ".part")

    for attempt in range(1, retries + 1):
        try:
            response = requests.get(url, stream=True, timeout=timeout)
            response.raise_for_status()

            total = int(response.headers.get("content-length", 0))

            with partial.open("wb") as f, tqdm(
                desc=dest.name,
                total=total or None,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                disable=None,
            ) as pbar:
                for chunk in response.iter_content(chunk_size=1024 * 1024):
                    f.write(chunk)
                    pbar.update(len(chunk))
            partial.replace(dest)
            return

        except (requests.RequestException, IOError) as e:
            partial.unlink(missing_ok=True)
            if attempt == retries:
                raise RuntimeError(f"Failed to download {url} after {retries} attempts: {e}") from e
            logger.warning(f"Retry {attempt}/{retries} after error: {e}")


def download_housing_dataset(dest_dir: Path | str | None = None, force: bool = False) -> Path:
    """Download the housing regression dataset unless a copy already exists.

    Args:
        dest_dir: Directory to place housing.txt in (default: current directory)
        force: Re-download even if the file exists

    Returns:
        Path to the local housing.txt
    """
    dest = Path(dest_dir or Path.cwd()) / HOUSING_FILENAME

    if not force and dest.exists() and dest.stat().st_size > 0:
        logger.info(f"'{dest}' already exists (use force=True to re-download)")
        return dest

    logger.info(f"Downloading housing dataset to {dest}")
    download_file(HOUSING_URL, dest)
    return dest


def housing_reader(separator: str = "\t") -> TextReader:
    """Reader for housing.txt: float label at 0, float features at 1..6."""
    return TextReader(
        [
            ColumnSpec("label", ColumnType.FLOAT, 0),
            ColumnSpec("features", ColumnType.FLOAT, 1, 6),
        ],
        separator=separator,
        has_header=True,
    )
