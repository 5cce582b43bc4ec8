"""Reusable phpvm directory fixtures.

These create an isolated phpvm base directory with the same layout the CLI
creates on first run, so no test touches the real home directory.
"""

import pytest
from pathlib import Path

from phpvm.core.config import Config
from phpvm.core.directory import ensure_base_structure, get_state_path
from phpvm.core.state import StateStore


@pytest.fixture
def phpvm_home(tmp_path) -> Path:
    """
    Create a phpvm base directory.

    Creates current/, logs/ and lock/ under ``tmp_path / "phpvm"``.

    Example:
        def test_layout(phpvm_home):
            assert (phpvm_home / "current").is_dir()
    """
    base = tmp_path / "phpvm"
    ensure_base_structure(base)
    return base


@pytest.fixture
def phpvm_config(phpvm_home) -> Config:
    """Default configuration saved to ``<home>/config.json``."""
    config = Config.default(phpvm_home)
    config.save()
    return config


@pytest.fixture
def state_store(phpvm_home) -> StateStore:
    return StateStore(get_state_path(phpvm_home))


@pytest.fixture
def isolated_home(tmp_path, monkeypatch) -> Path:
    """Create isolated user home directory holding shell rc files."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))

    return fake_home
