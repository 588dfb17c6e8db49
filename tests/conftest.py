"""Shared test fixtures for compman tests."""
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from compman.services.compose.runner import PhaseOutcome


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep config lookups, log files and env overrides inside tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("COMPMAN_CONFIG", "COMPMAN_PULL_TIMEOUT", "COMPMAN_UP_TIMEOUT",
                 "COMPMAN_DRY_RUN", "COMPMAN_STRATEGY", "COMPMAN_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("compman.core.logger.LOG_FILE", home / "compman.log")
    yield


class FakeRegistry:
    """Registry double returning a fixed tag list (or raising)."""

    def __init__(self, tags: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.tags = tags if tags is not None else ["latest"]
        self.error = error
        self.calls: List[str] = []

    def get_tags(self, image: str) -> List[str]:
        self.calls.append(image)
        if self.error:
            raise self.error
        # Mirrors the real client: never an empty list
        return list(self.tags) or ["latest"]

    def repository_exists(self, image: str) -> bool:
        return len(self.get_tags(image)) > 0


class FakeRunner:
    """ComposeRunner double recording every phase it is asked to run.

    failures maps an action ('pull'/'up') to the exception it raises;
    outputs maps an action to the stdout lines it reports.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, Exception]] = None,
        outputs: Optional[Dict[str, List[str]]] = None,
    ):
        self.failures = failures or {}
        self.outputs = outputs or {}
        self.calls: List[dict] = []

    def run(self, action, directory, file_name, timeout, on_line=None,
            services=None, cancel_event=None):
        self.calls.append({
            "action": action,
            "directory": directory,
            "file_name": file_name,
            "timeout": timeout,
            "services": list(services) if services else None,
        })
        lines = self.outputs.get(action, [])
        if on_line:
            for line in lines:
                on_line("stdout", line)
        if action in self.failures:
            raise self.failures[action]
        return PhaseOutcome(action=action, command=["compose", action], returncode=0,
                            stdout_lines=list(lines))

    def actions(self) -> List[str]:
        return [call["action"] for call in self.calls]


@pytest.fixture
def fake_registry():
    return FakeRegistry


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def write_compose(tmp_path):
    """Write a compose file under tmp_path/<project>/<name> and return its path."""

    def _write(content: str, project: str = "app", name: str = "docker-compose.yml") -> Path:
        directory = tmp_path / project
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(content)
        return path

    return _write


WEB_AND_DB = """\
services:
  web:
    image: nginx:1.25.0   # front proxy
  db:
    image: postgres:15
  worker:
    build: ./worker
"""


@pytest.fixture
def web_and_db(write_compose):
    return write_compose(WEB_AND_DB)

