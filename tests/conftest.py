"""Pytest configuration and fixtures."""

import logging

import pytest


# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)


def pytest_configure(config: pytest.Config) -> None:
    """Keep SQLite driver chatter out of captured logs."""
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"
