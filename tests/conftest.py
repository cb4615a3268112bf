"""
Shared test fixtures and configuration.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from stackwatch.adapters.mock import MockAdapter
from stackwatch.adapters.registry import AdapterRegistry
from stackwatch.core.config.loader import Settings

StackFactory = Callable[..., Path]


@pytest.fixture
def stacks_root(tmp_path: Path) -> Path:
    """An empty inventory root."""
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def make_stack(stacks_root: Path) -> StackFactory:
    """Create a unit directory under ``stacks_root``.

    ``make_stack("web")`` writes a docker-compose.yml; pass
    ``manifest=None`` for a directory without one and ``ignored=True`` to
    drop an ignore marker beside it.
    """

    def _make(
        name: str,
        manifest: str | None = "docker-compose.yml",
        ignored: bool = False,
        root: Path | None = None,
    ) -> Path:
        unit_dir = (root or stacks_root) / name
        unit_dir.mkdir(parents=True, exist_ok=True)
        if manifest:
            (unit_dir / manifest).write_text("services:\n  app:\n    image: nginx\n")
        if ignored:
            (unit_dir / "ignore").write_text("")
        return unit_dir

    return _make


@pytest.fixture
def mock_adapter() -> MockAdapter:
    return MockAdapter()


@pytest.fixture
def registry(mock_adapter: MockAdapter) -> AdapterRegistry:
    """Registry in which the mock stands in for the compose adapter."""
    reg = AdapterRegistry()
    reg.register(mock_adapter)
    return reg


@pytest.fixture
def settings(tmp_path: Path, stacks_root: Path) -> Settings:
    return Settings(
        repo_url="git@github.com:example/homelab.git",
        repo_path=stacks_root,
        state_file=tmp_path / "state" / "state.json",
    )
