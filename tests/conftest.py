from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.support.http import FakeServer

if TYPE_CHECKING:
    from pathlib import Path

_ENVIRONMENT_OVERRIDES = (
    "DOCKER_CONFIG",
    "REGISTRY_AUTH_FILE",
    "XDG_RUNTIME_DIR",
    "XDG_CONFIG_HOME",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_API_URL",
    "SOURCE_POLICY_CONCURRENCY",
    "SOURCE_POLICY_TIMEOUT",
    "SOURCE_POLICY_GIT",
    "CONTAINERS_REGISTRIES_CONF",
    "REGISTRIES_CONFIG_PATH",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's credentials and overrides out of every test."""

    for name in _ENVIRONMENT_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()
