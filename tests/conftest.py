"""
Pytest configuration.

This file registers custom pytest markers and command-line options.
"""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live tests against a running billing backend (BILLING_API_BASE_URL)"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring a running billing backend"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified"""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def anyio_backend():
    return "asyncio"
