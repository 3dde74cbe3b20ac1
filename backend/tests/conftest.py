"""Pytest configuration and fixtures."""

import os

import pytest


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the user's real selection file and TICKERBAR_* settings."""
    for name in list(os.environ):
        if name.startswith("TICKERBAR_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("TICKERBAR_SELECTION_FILE", str(tmp_path / "selection.json"))
