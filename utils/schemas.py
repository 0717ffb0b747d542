"""
Pydantic Schemas - Schedule File Validation

Defines the schemas a schedule file is validated against before it is turned
into a ScheduleDefinition:
- Job templates (command pattern + default bindings)
- Jobs (interval, times of day, template invocation)
- The schedule file itself (settings, env, job wrapper, templates, jobs)

Usage:
    from utils.schemas import ScheduleFile

    schedule_file = ScheduleFile(**yaml.safe_load(text))
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TemplateSpec(BaseModel):
    """A named command template.

    A bare string in the file is shorthand for a template without defaults.
    """

    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(..., min_length=1, description="Command pattern with :placeholders")
    defaults: dict[str, Any] = Field(default_factory=dict, description="Default bindings")


class JobSpec(BaseModel):
    """One trigger: when to run, and which template to invoke with what."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    every: str | int = Field(..., description="Interval, e.g. '1 day' or 'monday'")
    at: list[str] = Field(default_factory=list, description="Times of day")
    template: str = Field(default="command", min_length=1, description="Template id")
    task: str | None = Field(default=None, description="Binding for :task")
    overrides: dict[str, Any] = Field(default_factory=dict, alias="with")
    name: str | None = Field(default=None, description="Label used in errors and logs")

    @field_validator("at", mode="before")
    @classmethod
    def validate_at(cls, v: Any) -> Any:
        """Accept a single time as well as a list; times must be quoted strings."""
        if v is None:
            return []
        if isinstance(v, (str, int)):
            v = [v]
        for item in v:
            if not isinstance(item, str):
                # YAML reads an unquoted 12:01 as the base-60 integer 721
                raise ValueError(f"time of day {item!r} must be a quoted string")
        return v

    def bindings(self) -> dict[str, Any]:
        """Overrides for the template, with task folded in."""
        bindings = dict(self.overrides)
        if self.task is not None:
            bindings["task"] = self.task
        return bindings


class ScheduleFile(BaseModel):
    """Top-level schedule file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    settings: dict[str, Any] = Field(default_factory=dict, alias="set")
    env: dict[str, str | int | float | bool] = Field(default_factory=dict)
    job_template: str | None = Field(default=None)
    templates: dict[str, TemplateSpec] = Field(default_factory=dict)
    jobs: list[JobSpec] = Field(default_factory=list)

    @field_validator("templates", mode="before")
    @classmethod
    def validate_templates(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                key: {"pattern": value} if isinstance(value, str) else value
                for key, value in v.items()
            }
        return v
