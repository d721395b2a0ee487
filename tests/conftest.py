"""Shared pytest fixtures for the polyedge test suite."""

from __future__ import annotations

import os

import pytest

from polyedge.config import EdgeConfig
from polyedge.store import JsonStore


@pytest.fixture()
def config(tmp_path, monkeypatch) -> EdgeConfig:
    """Default config isolated from the environment, with no request delay."""
    for key in list(os.environ):
        if key.startswith("POLYEDGE_"):
            monkeypatch.delenv(key)
    return EdgeConfig(_env_file=None, DATA_DIR=str(tmp_path / "data"), REQUEST_DELAY_SECONDS=0.0)


@pytest.fixture()
def store(tmp_path) -> JsonStore:
    return JsonStore(tmp_path / "data")
