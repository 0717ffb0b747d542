"""
Tests for the schedule command line.
"""

import orjson
import pytest

from apps.schedule.cli import main
from utils.config import settings

SCHEDULE = """
job_template: null
set:
  path: /data
  output: null
templates:
  rake: "cd :path && rake :task"
jobs:
  - every: 1 day
    at: ["12:01 am"]
    template: rake
    task: extract_data
"""

BLOCK = (
    "# Begin generated schedule for: test-app\n"
    "1 0 * * * cd /data && rake extract_data\n"
    "# End generated schedule for: test-app\n"
)


@pytest.fixture
def schedule_path(write_schedule):
    return str(write_schedule(SCHEDULE))


@pytest.fixture(autouse=True)
def _logging(reset_logging):
    yield


def test_show_prints_block(schedule_path, capsys):
    assert main(["-f", schedule_path, "-i", "test-app", "show"]) == 0

    assert capsys.readouterr().out == BLOCK


def test_default_command_is_show(schedule_path, capsys):
    assert main(["-f", schedule_path, "-i", "test-app"]) == 0

    assert capsys.readouterr().out == BLOCK


def test_show_json(schedule_path, capsys):
    assert main(["-f", schedule_path, "show", "--format", "json"]) == 0

    payload = orjson.loads(capsys.readouterr().out)
    assert payload == [
        {
            "trigger": "rake extract_data (every 1 day)",
            "template": "rake",
            "schedules": ["1 0 * * *"],
            "command": "cd /data && rake extract_data",
        }
    ]


def test_set_overrides_setting(schedule_path, capsys):
    assert main(["-f", schedule_path, "-i", "test-app", "--set", "path=/srv", "show"]) == 0

    assert "cd /srv && rake extract_data" in capsys.readouterr().out


def test_set_requires_name_and_value(schedule_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["-f", schedule_path, "--set", "path", "show"])

    assert excinfo.value.code == 2


def test_update_writes_crontab(schedule_path, fake_crontab, capsys):
    fake_crontab.content = "0 5 * * * /usr/local/bin/backup\n"

    assert main(["-f", schedule_path, "-i", "test-app", "update"]) == 0

    assert fake_crontab.content == "0 5 * * * /usr/local/bin/backup\n\n" + BLOCK
    assert "updated" in capsys.readouterr().out


def test_install_and_clear(schedule_path, fake_crontab):
    assert main(["-f", schedule_path, "-i", "test-app", "install"]) == 0
    assert fake_crontab.content == BLOCK

    assert main(["-f", schedule_path, "-i", "test-app", "clear"]) == 0
    assert fake_crontab.content == ""


def test_clear_without_block_skips_write(schedule_path, fake_crontab, capsys):
    assert main(["-f", schedule_path, "-i", "test-app", "clear"]) == 0

    assert "no crontab block 'test-app'" in capsys.readouterr().out
    assert fake_crontab.content is None
    assert fake_crontab.calls == [["crontab", "-l"]]


def test_next_previews_fire_times(schedule_path, capsys):
    assert main(["-f", schedule_path, "next", "--count", "2"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("rake extract_data (every 1 day) [1 0 * * *]: ")
    assert out.count("T00:01:00") == 2


def test_unbound_placeholder_exits_non_zero(write_schedule, fake_crontab, capsys):
    path = write_schedule(
        """
job_template: null
templates:
  rake: "rake :task"
jobs:
  - every: 1 day
    template: rake
"""
    )
    fake_crontab.content = "0 5 * * * /usr/local/bin/backup\n"

    assert main(["-f", str(path), "update"]) == 1

    assert ":task" in capsys.readouterr().err
    assert fake_crontab.content == "0 5 * * * /usr/local/bin/backup\n"
    assert fake_crontab.calls == []


def test_missing_schedule_file_exits_non_zero(tmp_path, capsys):
    assert main(["-f", str(tmp_path / "missing.yml"), "show"]) == 1

    assert "missing.yml" in capsys.readouterr().err


def test_crontab_failure_exits_non_zero(schedule_path, fake_crontab):
    fake_crontab.fail_write = True

    assert main(["-f", schedule_path, "install"]) == 1


def test_next_with_unknown_timezone_exits_non_zero(schedule_path, monkeypatch, capsys):
    monkeypatch.setattr(settings, "CRON_TIMEZONE", "Mars/Olympus")

    assert main(["-f", schedule_path, "next"]) == 1

    assert "Mars/Olympus" in capsys.readouterr().err


def test_multiline_environment_value_exits_non_zero(write_schedule, fake_crontab):
    path = write_schedule(
        """
job_template: null
env:
  MAILTO: "ops@example.com\\n* * * * * rm -rf /tmp/x"
templates:
  rake: "rake :task"
jobs:
  - every: 1 day
    template: rake
    task: extract_data
"""
    )

    assert main(["-f", str(path), "update"]) == 1

    assert fake_crontab.calls == []
