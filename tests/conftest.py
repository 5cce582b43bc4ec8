"""
Pytest configuration and shared fixtures for phpvm tests.
"""

import pytest

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.directories import (
    phpvm_home,
    phpvm_config,
    state_store,
    isolated_home,
)
from tests.fixtures.fakes import (
    fake_env_store,
    static_provider,
    posix_ops,
)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line(
        "markers", "posix: marks tests that need symlinks and POSIX permissions"
    )


@pytest.fixture(autouse=True)
def reset_caches(monkeypatch):
    """Reset module-level caches and phpvm environment between tests."""
    from phpvm.core import platform

    platform.detect_platform.cache_clear()
    monkeypatch.delenv("PHPVM_HOME", raising=False)

    yield

    platform.detect_platform.cache_clear()
