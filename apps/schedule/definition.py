"""
Schedule Definition - Job Templates, Triggers and Materialization

Holds the registered job templates and timed triggers of one schedule and
turns them into concrete, schedulable commands.

Features:
- Named command templates with ":name" placeholders and default bindings
- Triggers binding an interval and times of day to a template invocation
- Definition-wide settings, crontab environment and an optional job wrapper
- Pure, repeatable materialization in registration order

Usage:
    from apps.schedule.definition import ScheduleDefinition

    schedule = ScheduleDefinition()
    schedule.register_template("rake", "cd :path && :bundle_command rake :task")
    schedule.set("path", "/swsd-data-extractor")
    schedule.set("bundle_command", "bundle exec")
    schedule.register_trigger("1 day", ["12:01 am"], "rake", {"task": "extract_data"})

    for resolved in schedule.materialize():
        print(resolved.crontab_lines())
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from apps.schedule.errors import (
    DuplicateTemplateError,
    ScheduleError,
    UnboundPlaceholderError,
    UnknownTemplateError,
)
from apps.schedule.timing import cron_schedules

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r":([A-Za-z_]\w*)")
OUTPUT_KEY = "output"
JOB_KEY = "job"
ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class JobTemplate:
    """A named command pattern with default placeholder bindings."""

    id: str
    pattern: str
    defaults: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))

    @property
    def placeholders(self) -> tuple[str, ...]:
        """Placeholder names in order of first appearance."""
        return tuple(dict.fromkeys(PLACEHOLDER.findall(self.pattern)))


@dataclass(frozen=True)
class Trigger:
    """A schedule (interval + times of day) bound to a template invocation."""

    interval: Any
    times_of_day: tuple[Any, ...]
    template_id: str
    overrides: Mapping[str, Any] = field(default_factory=dict, hash=False)
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "times_of_day", tuple(self.times_of_day))
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        task = self.overrides.get("task")
        suffix = f" {task}" if task is not None else ""
        return f"{self.template_id}{suffix} (every {self.interval})"


@dataclass(frozen=True)
class ResolvedCommand:
    """A fully substituted command and the cron schedules it runs on."""

    schedules: tuple[str, ...]
    command: str
    template_id: str
    trigger: str

    def entries(self) -> list[tuple[str, str]]:
        """Return (schedule, command) pairs, one per cron schedule."""
        return [(schedule, self.command) for schedule in self.schedules]

    def crontab_lines(self) -> list[str]:
        """Render crontab lines; a bare '%' means newline to cron."""
        command = re.sub(r"(?<!\\)%", r"\\%", self.command)
        return [f"{schedule} {command}" for schedule in self.schedules]


def _escape_single_quotes(value: str) -> str:
    return value.replace("'", "'\\''")


def _escape_double_quotes(value: str) -> str:
    return value.replace('"', '\\"')


def render_output(value: Any) -> str:
    """
    Render an output binding as a shell redirection.

    Args:
        value: Log path, {"standard": ..., "error": ...} mapping, or None

    Returns:
        Redirection suffix such as ">> /var/log/cron.log 2>&1"
    """
    if value is None or value == "":
        return ""
    if isinstance(value, Mapping):
        standard = value.get("standard", "")
        error = value.get("error", "")
        parts = []
        if "standard" in value:
            parts.append(f">> {standard}" if standard else "> /dev/null")
        if "error" in value:
            parts.append(f"2>> {error}" if error else "2> /dev/null")
        return " ".join(parts)
    return f">> {value} 2>&1"


def substitute(
    pattern: str,
    bindings: Mapping[str, Any],
    template_id: str | None = None,
) -> str:
    """
    Substitute ":name" placeholders in a pattern.

    Values placed between single (double) quotes have their single (double)
    quotes escaped. Whitespace runs collapse to one space.

    Raises:
        UnboundPlaceholderError: If a placeholder has no binding
    """

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in bindings:
            raise UnboundPlaceholderError(name, template_id)

        value = bindings[name]
        if name == OUTPUT_KEY:
            text = render_output(value)
        else:
            text = "" if value is None else str(value)

        before = pattern[match.start() - 1] if match.start() > 0 else ""
        after = pattern[match.end()] if match.end() < len(pattern) else ""
        if before == after == "'":
            return _escape_single_quotes(text)
        if before == after == '"':
            return _escape_double_quotes(text)
        return text

    return " ".join(PLACEHOLDER.sub(replace, pattern).split())


class ScheduleDefinition:
    """
    Registry of job templates and triggers for one crontab.

    Registration calls and materialize() serialize on a shared lock, so a
    definition may be extended after startup while other callers read it.
    """

    def __init__(
        self,
        settings: Mapping[str, Any] | None = None,
        env: Mapping[str, Any] | None = None,
        job_template: str | None = None,
    ) -> None:
        """
        Initialize an empty schedule.

        Args:
            settings: Definition-wide placeholder bindings
            env: Environment assignments emitted ahead of the jobs
            job_template: Wrapper pattern with a ":job" placeholder
        """
        self._lock = threading.RLock()
        self._templates: dict[str, JobTemplate] = {}
        self._triggers: list[Trigger] = []
        self._settings: dict[str, Any] = dict(settings or {})
        self._env: dict[str, str] = {}
        self._job_template = job_template
        for name, value in (env or {}).items():
            self.env(name, value)

    @property
    def templates(self) -> Mapping[str, JobTemplate]:
        with self._lock:
            return MappingProxyType(dict(self._templates))

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        with self._lock:
            return tuple(self._triggers)

    @property
    def settings(self) -> Mapping[str, Any]:
        with self._lock:
            return MappingProxyType(dict(self._settings))

    @property
    def environment(self) -> Mapping[str, str]:
        with self._lock:
            return MappingProxyType(dict(self._env))

    def set(self, name: str, value: Any) -> None:
        """Bind a definition-wide placeholder value."""
        with self._lock:
            self._settings[name] = value

    @property
    def job_template(self) -> str | None:
        with self._lock:
            return self._job_template

    @job_template.setter
    def job_template(self, pattern: str | None) -> None:
        with self._lock:
            self._job_template = pattern

    def env(self, name: str, value: Any) -> None:
        """
        Add an environment assignment to the generated crontab.

        Raises:
            ScheduleError: If the name is not a variable name or the value spans lines
        """
        text = str(value)
        if not ENV_NAME.match(name):
            raise ScheduleError(f"Invalid environment variable name '{name}'")
        if "\n" in text or "\r" in text:
            raise ScheduleError(f"Environment value for '{name}' must be a single line")

        with self._lock:
            self._env[name] = text

    def register_template(
        self,
        template_id: str,
        pattern: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> JobTemplate:
        """
        Register a named command template.

        Raises:
            DuplicateTemplateError: If template_id is already registered
        """
        template = JobTemplate(template_id, pattern, dict(defaults or {}))
        with self._lock:
            if template_id in self._templates:
                raise DuplicateTemplateError(template_id)
            self._templates[template_id] = template

        logger.debug(
            "Registered template",
            extra={"template_id": template_id, "placeholders": template.placeholders},
        )
        return template

    def register_trigger(
        self,
        interval: Any,
        times_of_day: Iterable[Any] | None,
        template_id: str,
        overrides: Mapping[str, Any] | None = None,
        name: str | None = None,
    ) -> Trigger:
        """
        Register a trigger invoking a template on a schedule.

        Interval and times are validated on materialize().

        Raises:
            UnknownTemplateError: If template_id was never registered
        """
        if isinstance(times_of_day, str):
            times_of_day = [times_of_day]
        trigger = Trigger(
            interval=interval,
            times_of_day=tuple(times_of_day or ()),
            template_id=template_id,
            overrides=dict(overrides or {}),
            name=name,
        )
        with self._lock:
            if template_id not in self._templates:
                raise UnknownTemplateError(template_id)
            self._triggers.append(trigger)

        logger.debug(
            "Registered trigger",
            extra={"trigger": trigger.label, "template_id": template_id},
        )
        return trigger

    def resolve(
        self,
        trigger: Trigger,
        template: JobTemplate,
        settings: Mapping[str, Any],
        job_template: str | None = None,
    ) -> ResolvedCommand:
        """Resolve one trigger against its template, optionally wrapped in job_template."""
        schedules = cron_schedules(trigger.interval, trigger.times_of_day, label=trigger.label)

        bindings = {**settings, **template.defaults, **trigger.overrides}
        command = substitute(template.pattern, bindings, template.id)

        if job_template:
            command = substitute(job_template, {**bindings, JOB_KEY: command}, "job_template")

        return ResolvedCommand(
            schedules=schedules,
            command=command,
            template_id=template.id,
            trigger=trigger.label,
        )

    def materialize(self) -> list[ResolvedCommand]:
        """
        Materialize every trigger into a ResolvedCommand.

        Returns:
            One ResolvedCommand per trigger, in registration order

        Raises:
            UnboundPlaceholderError: If a placeholder has no binding
            AmbiguousScheduleError: If a trigger's schedule is not well-defined
        """
        with self._lock:
            templates = dict(self._templates)
            triggers = list(self._triggers)
            settings = dict(self._settings)
            job_template = self._job_template

        return [
            self.resolve(trigger, templates[trigger.template_id], settings, job_template)
            for trigger in triggers
        ]
