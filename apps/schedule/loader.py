"""
Schedule Loader - Schedule Files to ScheduleDefinition

Reads a YAML or JSON schedule file, validates it against the pydantic schemas
and builds a ScheduleDefinition seeded with the application settings.

File layout (YAML):
    set:
      output: /swsd-data-extractor/exports/log/cron_log.log
    env:
      PATH: /usr/local/bin:/usr/bin:/bin
    templates:
      rake: "cd :path && :bundle_command rake :task :output"
    jobs:
      - every: 1 day
        at: ["12:01 am"]
        template: rake
        task: extract_data

Usage:
    from apps.schedule.loader import load_schedule

    schedule = load_schedule("config/schedule.yml", overrides={"environment": "staging"})
"""

import logging
from pathlib import Path
from typing import Any, Mapping

import orjson
import yaml
from pydantic import ValidationError

from apps.schedule.definition import ScheduleDefinition
from apps.schedule.errors import ScheduleFileError
from utils.config import Settings, settings as default_settings
from utils.schemas import ScheduleFile

logger = logging.getLogger(__name__)

# Available to every schedule file unless it defines a template of the same id.
BUILTIN_TEMPLATES = {
    "command": ":task :output",
    "rake": "cd :path && :environment_variable=:environment :bundle_command rake :task --silent :output",
    "runner": "cd :path && :bundle_command bin/rails runner -e :environment ':task' :output",
    "script": "cd :path && :environment_variable=:environment :bundle_command script/:task :output",
}


def read_schedule_file(path: str | Path) -> ScheduleFile:
    """
    Read and validate a schedule file.

    JSON is chosen by a .json suffix; anything else is parsed as YAML.

    Raises:
        ScheduleFileError: If the file is missing, unparseable or invalid
    """
    file_path = Path(path)

    if not file_path.is_file():
        raise ScheduleFileError(str(path), "file not found")

    try:
        raw = file_path.read_bytes()
        if file_path.suffix.lower() == ".json":
            data = orjson.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except OSError as e:
        raise ScheduleFileError(str(path), str(e)) from e
    except (orjson.JSONDecodeError, yaml.YAMLError) as e:
        raise ScheduleFileError(str(path), f"parse error: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ScheduleFileError(str(path), "top level must be a mapping")

    try:
        return ScheduleFile.model_validate(data)
    except ValidationError as e:
        raise ScheduleFileError(str(path), str(e)) from e


def build_definition(
    schedule_file: ScheduleFile,
    app_settings: Settings | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ScheduleDefinition:
    """
    Build a ScheduleDefinition from a validated schedule file.

    Definition settings are layered: application settings, then the file's
    'set' section, then explicit overrides (e.g. from the command line).

    Templates defined in the file shadow the built-in ones.

    Raises:
        UnknownTemplateError: If a job references an undefined template
    """
    app_settings = app_settings or default_settings

    if "job_template" in schedule_file.model_fields_set:
        job_template = schedule_file.job_template
    else:
        job_template = app_settings.JOB_TEMPLATE

    definition = ScheduleDefinition(
        settings={
            **app_settings.schedule_settings(),
            **schedule_file.settings,
            **(overrides or {}),
        },
        env=schedule_file.env,
        job_template=job_template or None,
    )

    for template_id, spec in schedule_file.templates.items():
        definition.register_template(template_id, spec.pattern, spec.defaults)

    for template_id, pattern in BUILTIN_TEMPLATES.items():
        if template_id not in schedule_file.templates:
            definition.register_template(template_id, pattern)

    for job in schedule_file.jobs:
        definition.register_trigger(
            job.every,
            job.at,
            job.template,
            job.bindings(),
            name=job.name,
        )

    logger.info(
        "Schedule loaded",
        extra={
            "templates": len(definition.templates),
            "triggers": len(definition.triggers),
        },
    )
    return definition


def load_schedule(
    path: str | Path | None = None,
    app_settings: Settings | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ScheduleDefinition:
    """Read a schedule file and build its ScheduleDefinition.

    Args:
        path: Schedule file, defaults to settings.SCHEDULE_FILE
        app_settings: Settings to seed from, defaults to the global settings
        overrides: Definition settings taking precedence over the file
    """
    app_settings = app_settings or default_settings
    path = path or app_settings.SCHEDULE_FILE

    logger.debug("Loading schedule file", extra={"file_path": str(path)})
    return build_definition(read_schedule_file(path), app_settings, overrides)
