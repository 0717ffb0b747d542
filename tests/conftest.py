"""
Pytest configuration and shared fixtures.
"""

import logging
import subprocess
from pathlib import Path

import pytest

from apps.schedule.definition import ScheduleDefinition
from utils.config import Settings

REPO_ROOT = Path(__file__).resolve().parents[1]


class FakeCrontab:
    """Stands in for the crontab command: -l reads, a file argument writes."""

    def __init__(self, content: str | None = None) -> None:
        self.content = content
        self.calls: list[list[str]] = []
        self.fail_write = False
        self.read_error: str | None = None

    def run(self, args, **kwargs) -> subprocess.CompletedProcess:
        self.calls.append(list(args))

        if "-l" in args:
            if self.read_error:
                return subprocess.CompletedProcess(args, 1, stdout="", stderr=self.read_error)
            if self.content is None:
                return subprocess.CompletedProcess(
                    args, 1, stdout="", stderr="no crontab for tester\n"
                )
            return subprocess.CompletedProcess(args, 0, stdout=self.content, stderr="")

        if self.fail_write:
            return subprocess.CompletedProcess(args, 1, stdout="", stderr="errors in crontab file\n")

        self.content = Path(args[-1]).read_text(encoding="utf-8")
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")


@pytest.fixture
def fake_crontab(monkeypatch) -> FakeCrontab:
    """Replace subprocess.run in the crontab module with an in-memory crontab."""
    fake = FakeCrontab()
    monkeypatch.setattr("apps.schedule.crontab.subprocess.run", fake.run)
    return fake


@pytest.fixture
def schedule() -> ScheduleDefinition:
    """Empty schedule definition without a job wrapper."""
    return ScheduleDefinition()


@pytest.fixture
def app_settings() -> Settings:
    """Settings independent of the process environment and .env."""
    return Settings(
        _env_file=None,
        SCHEDULE_PATH="/swsd-data-extractor",
        SCHEDULE_OUTPUT=None,
        BUNDLE_COMMAND="bundle exec",
        ENVIRONMENT="production",
        ENVIRONMENT_VARIABLE="RAILS_ENV",
        JOB_TEMPLATE="/bin/bash -l -c ':job'",
    )


@pytest.fixture
def write_schedule(tmp_path):
    """Write a schedule file into a temporary directory and return its path."""

    def _write(text: str, name: str = "schedule.yml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def reset_logging():
    """Drop root handlers installed by setup_logging() during a test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
