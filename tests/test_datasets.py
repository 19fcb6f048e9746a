"""
Tests for dataset download (network calls are mocked).
"""

import pytest
import requests

from fitpipe import datasets


class FakeResponse:
    def __init__(self, payload: bytes):
        self.payload = payload
        self.headers = {"content-length": str(len(payload))}

    def raise_for_status(self):
        pass

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.payload), chunk_size):
            yield self.payload[i:i + chunk_size]


def test_download_housing_dataset(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, stream, timeout):
        calls.append(url)
        return FakeResponse(b"label\tf1\n1.0\t2.0\n")

    monkeypatch.setattr(datasets.requests, "get", fake_get)

    path = datasets.download_housing_dataset(tmp_path)
    assert path == tmp_path / "housing.txt"
    assert path.read_bytes().startswith(b"label")
    assert calls == [datasets.HOUSING_URL]

    # existing file is reused
    datasets.download_housing_dataset(tmp_path)
    assert len(calls) == 1

    datasets.download_housing_dataset(tmp_path, force=True)
    assert len(calls) == 2


def test_download_retries_then_fails(tmp_path, monkeypatch):
    attempts = []

    def failing_get(url, stream, timeout):
        attempts.append(url)
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(datasets.requests, "get", failing_get)

    with pytest.raises(RuntimeError, match="after 3 attempts"):
        datasets.download_housing_dataset(tmp_path)
    assert len(attempts) == 3
    assert not (tmp_path / "housing.txt").exists()


def test_housing_reader_schema():
    reader = datasets.housing_reader()
    assert list(reader.schema) == ["label", "features"]
    assert reader.schema.features.width == 6
    assert reader.config.has_header
