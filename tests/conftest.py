"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the per-user policy location at an empty temp directory."""
    home = tmp_path / "toolgate-home"
    monkeypatch.setenv("TOOLGATE_HOME", str(home))
    return home


@pytest.fixture
def missing_policy(tmp_path: Path) -> Path:
    return tmp_path / "no-such-policy.yaml"
