"""
Schedule Errors - Configuration-Time Failures

Every error here describes a static defect in the schedule definition or in
the crontab it is written to. None of them is transient, so callers surface
them to the operator instead of retrying.
"""


class ScheduleError(Exception):
    """Base class for all schedule definition and installation errors."""


class UnboundPlaceholderError(ScheduleError):
    """A placeholder in a command pattern has no binding."""

    def __init__(self, placeholder: str, template_id: str | None = None) -> None:
        self.placeholder = f":{placeholder.lstrip(':')}"
        self.template_id = template_id
        where = f" in template '{template_id}'" if template_id else ""
        super().__init__(f"No binding for placeholder {self.placeholder}{where}")


class AmbiguousScheduleError(ScheduleError):
    """An interval and time-of-day combination has no single cron meaning."""

    def __init__(self, message: str, trigger: str | None = None) -> None:
        self.trigger = trigger
        prefix = f"{trigger}: " if trigger else ""
        super().__init__(f"{prefix}{message}")


class DuplicateTemplateError(ScheduleError):
    """A template id was registered twice."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Template '{template_id}' is already registered")


class UnknownTemplateError(ScheduleError):
    """A trigger references a template id that was never registered."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Template '{template_id}' is not registered")


class ScheduleFileError(ScheduleError):
    """The schedule file is missing, unreadable or fails validation."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Invalid schedule file {path}: {reason}")


class CrontabError(ScheduleError):
    """Reading or writing the crontab failed, or its block markers are corrupt."""
