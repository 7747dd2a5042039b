"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from codemap.config import Config, reset_config
from codemap.engine import CodeMapEngine
from tests.utils import FakeClock

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_config():
    """Never leak a cached global config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    """Default config with the startup scan off."""
    config = Config()
    config.graph.scan_on_start = False
    return config


@pytest.fixture
def project_root(tmp_path) -> str:
    root = tmp_path / "project"
    root.mkdir()
    return root.as_posix()


@pytest.fixture
def engine(config: Config, project_root: str, clock: FakeClock) -> CodeMapEngine:
    return CodeMapEngine(config, project_root, clock=clock)
