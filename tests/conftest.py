# tests/conftest.py

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

import pytest

from tasksync.config import Settings, load_settings
from tasksync.dashboard import DashboardRegenerator
from tasksync.store import TaskStore
from tasksync.synchronizer import StatusSynchronizer
from tasksync.tasksync_logging import ROOT_LOGGER, observability_hooks, performance_monitor
from tasksync.tracker import GitHubIssueTracker

from .fakes import FakeGh, gh_available

TODAY = date(2026, 1, 15)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep TASKSYNC_* variables, metrics, hooks and logger state from leaking between tests."""

    for name in list(os.environ):
        if name.startswith("TASKSYNC_"):
            monkeypatch.delenv(name, raising=False)
    performance_monitor.clear()
    yield
    performance_monitor.clear()
    observability_hooks.hooks.clear()
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """A project root containing an empty ``.claude`` directory."""
    (tmp_path / ".claude").mkdir()
    return tmp_path


@pytest.fixture()
def settings(project: Path) -> Settings:
    return load_settings(project, mode="local")


@pytest.fixture()
def store(settings: Settings) -> TaskStore:
    store = TaskStore(settings.tasks_dir, today=lambda: TODAY)
    store.ensure_layout()
    return store


@pytest.fixture()
def fake_gh() -> FakeGh:
    gh = FakeGh()
    gh.respond_json("issue", "view", "--json", "labels", data={"labels": []})
    return gh


@pytest.fixture()
def tracker(fake_gh: FakeGh) -> GitHubIssueTracker:
    return GitHubIssueTracker(runner=fake_gh, which=gh_available)


@pytest.fixture()
def sleeps() -> list:
    """Recorded sleep durations; pass ``sleeps.append`` wherever a sleep is injected."""
    return []


@pytest.fixture()
def dashboard(settings: Settings, store: TaskStore, sleeps: list) -> DashboardRegenerator:
    return DashboardRegenerator.from_settings(settings, store=store, sleep=sleeps.append)


@pytest.fixture()
def synchronizer(store: TaskStore, dashboard: DashboardRegenerator, tracker: GitHubIssueTracker) -> StatusSynchronizer:
    return StatusSynchronizer(store, dashboard, tracker)
