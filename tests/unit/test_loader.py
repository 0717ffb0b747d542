"""
Tests for reading schedule files and building definitions from them.
"""

import pytest

from apps.schedule.errors import ScheduleFileError, UnknownTemplateError
from apps.schedule.loader import BUILTIN_TEMPLATES, load_schedule, read_schedule_file
from tests.conftest import REPO_ROOT


def test_project_schedule_materializes_daily_extraction(app_settings):
    schedule = load_schedule(REPO_ROOT / "config" / "schedule.yml", app_settings=app_settings)

    [resolved] = schedule.materialize()

    assert resolved.schedules == ("1 0 * * *",)
    assert resolved.command == (
        "/bin/bash -l -c 'cd /swsd-data-extractor && bundle exec rake extract_data"
        " >> /swsd-data-extractor/exports/log/cron_log.log 2>&1'"
    )


def test_default_output_follows_schedule_path(write_schedule, app_settings):
    app_settings.SCHEDULE_PATH = "/opt/extractor"
    path = write_schedule(
        """
job_template: null
templates:
  rake: "cd :path && rake :task :output"
jobs:
  - every: 1 day
    at: "12:01 am"
    template: rake
    task: extract_data
"""
    )

    [resolved] = load_schedule(path, app_settings=app_settings).materialize()

    assert resolved.command == (
        "cd /opt/extractor && rake extract_data >> /opt/extractor/exports/log/cron_log.log 2>&1"
    )


def test_json_schedule_file(write_schedule, app_settings):
    path = write_schedule(
        """
{
  "job_template": null,
  "set": {"output": null},
  "env": {"MAILTO": "ops@example.com"},
  "jobs": [{"every": "1 hour", "at": ["12:30 am"], "task": "/usr/bin/true"}]
}
""",
        name="schedule.json",
    )

    schedule = load_schedule(path, app_settings=app_settings)
    [resolved] = schedule.materialize()

    assert resolved.template_id == "command"
    assert resolved.entries() == [("30 * * * *", "/usr/bin/true")]
    assert dict(schedule.environment) == {"MAILTO": "ops@example.com"}


def test_builtin_templates_registered_unless_shadowed(write_schedule, app_settings):
    path = write_schedule(
        """
templates:
  rake:
    pattern: "rake :task"
    defaults:
      task: extract_data
jobs:
  - every: 1 day
    template: rake
"""
    )

    schedule = load_schedule(path, app_settings=app_settings)

    assert set(schedule.templates) == set(BUILTIN_TEMPLATES)
    assert schedule.templates["rake"].pattern == "rake :task"
    assert schedule.templates["runner"].pattern == BUILTIN_TEMPLATES["runner"]


def test_builtin_rake_template(write_schedule, app_settings):
    path = write_schedule(
        """
job_template: null
set:
  output: null
jobs:
  - every: weekday
    at: ["5:00 am"]
    template: rake
    task: extract_data
"""
    )

    [resolved] = load_schedule(path, app_settings=app_settings).materialize()

    assert resolved.schedules == ("0 5 * * 1-5",)
    assert resolved.command == (
        "cd /swsd-data-extractor && RAILS_ENV=production bundle exec rake extract_data --silent"
    )


def test_overrides_take_precedence_over_file_settings(write_schedule, app_settings):
    path = write_schedule(
        """
job_template: null
set:
  path: /from/file
  output: null
templates:
  rake: "cd :path && rake :task"
jobs:
  - every: 1 day
    template: rake
    with:
      task: extract_data
"""
    )

    schedule = load_schedule(path, app_settings=app_settings, overrides={"path": "/from/cli"})

    assert schedule.materialize()[0].command == "cd /from/cli && rake extract_data"


def test_unknown_template_in_job(write_schedule, app_settings):
    path = write_schedule(
        """
jobs:
  - every: 1 day
    template: nonexistent
"""
    )

    with pytest.raises(UnknownTemplateError):
        load_schedule(path, app_settings=app_settings)


def test_missing_file(tmp_path):
    with pytest.raises(ScheduleFileError) as excinfo:
        read_schedule_file(tmp_path / "missing.yml")

    assert "missing.yml" in str(excinfo.value)


@pytest.mark.parametrize(
    "text",
    [
        "jobs: [every: 1 day",
        "- just\n- a list\n",
        "jobs:\n  - at: ['12:01 am']\n",
        "jobs:\n  - every: 1 day\n    at: [12:01]\n",
        "jobs:\n  - every: 1 day\n    colour: blue\n",
        "schedule: {}\n",
    ],
)
def test_invalid_schedule_files(write_schedule, text):
    path = write_schedule(text)

    with pytest.raises(ScheduleFileError):
        read_schedule_file(path)


def test_empty_file_is_an_empty_schedule(write_schedule, app_settings):
    schedule = load_schedule(write_schedule(""), app_settings=app_settings)

    assert schedule.materialize() == []
