"""
Crontab Writer - Identified Crontab Blocks

Renders a materialized schedule as a crontab block delimited by marker
comments, and installs, updates or clears that block through the system
crontab command. Lines outside the block are never touched by update/clear.

Usage:
    from apps.schedule.crontab import CrontabManager, render_block

    block = render_block(schedule.materialize(), schedule.environment, "swsd-data-extractor")
    CrontabManager(identifier="swsd-data-extractor").update(block)
"""

import logging
import os
import shlex
import subprocess
import tempfile
from typing import Iterable, Mapping

from apps.schedule.definition import ResolvedCommand
from apps.schedule.errors import CrontabError

logger = logging.getLogger(__name__)

BEGIN_MARKER = "# Begin generated schedule for: {identifier}"
END_MARKER = "# End generated schedule for: {identifier}"


def render_block(
    resolved: Iterable[ResolvedCommand],
    environment: Mapping[str, str],
    identifier: str,
) -> str:
    """
    Render environment assignments and crontab lines inside marker comments.

    Args:
        resolved: Materialized commands
        environment: NAME=value assignments placed ahead of the jobs
        identifier: Block identifier used in the markers

    Returns:
        Block text ending with a newline
    """
    lines = [BEGIN_MARKER.format(identifier=identifier)]
    lines.extend(f"{name}={value}" for name, value in environment.items())
    for command in resolved:
        lines.extend(command.crontab_lines())
    lines.append(END_MARKER.format(identifier=identifier))
    return "\n".join(lines) + "\n"


def _find_block(lines: list[str], identifier: str) -> tuple[int, int] | None:
    begin = BEGIN_MARKER.format(identifier=identifier)
    end = END_MARKER.format(identifier=identifier)
    stripped = [line.strip() for line in lines]

    start = stripped.index(begin) if begin in stripped else None
    stop = stripped.index(end) if end in stripped else None

    if start is None and stop is None:
        return None
    if start is None or stop is None or stop < start:
        raise CrontabError(f"Unclosed schedule block '{identifier}' in crontab")
    return start, stop


def _join(lines: list[str]) -> str:
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines) + "\n" if lines else ""


def update_block(existing: str, block: str, identifier: str) -> str:
    """
    Replace the identified block in a crontab, or append it if absent.

    Raises:
        CrontabError: If the crontab holds only one of the block markers
    """
    lines = existing.splitlines()
    block_lines = block.rstrip("\n").splitlines()
    span = _find_block(lines, identifier)

    if span is None:
        if lines and lines[-1].strip():
            lines.append("")
        return _join(lines + block_lines)

    start, stop = span
    return _join(lines[:start] + block_lines + lines[stop + 1:])


def clear_block(existing: str, identifier: str) -> str:
    """
    Remove the identified block from a crontab.

    Raises:
        CrontabError: If the crontab holds only one of the block markers
    """
    lines = existing.splitlines()
    span = _find_block(lines, identifier)
    if span is None:
        return _join(lines)

    start, stop = span
    return _join(lines[:start] + lines[stop + 1:])


class CrontabManager:
    """
    Reads and writes a user's crontab through the crontab command.

    Handles:
    - Reading the current crontab (an absent crontab reads as empty)
    - Replacing the whole crontab (install)
    - Replacing or removing only the identified block (update / clear)
    """

    def __init__(
        self,
        identifier: str,
        command: str = "crontab",
        user: str | None = None,
    ) -> None:
        """
        Initialize crontab manager.

        Args:
            identifier: Block identifier written into the marker comments
            command: crontab executable, optionally with arguments
            user: Edit another user's crontab (crontab -u)
        """
        self.identifier = identifier
        self.command = command
        self.user = user

    def _base_args(self) -> list[str]:
        args = shlex.split(self.command)
        if self.user:
            args += ["-u", self.user]
        return args

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as e:
            raise CrontabError(f"Failed to run '{args[0]}': {e}") from e

    def read(self) -> str:
        """Return the current crontab, or an empty string if there is none."""
        result = self._run(self._base_args() + ["-l"])
        if result.returncode != 0:
            if "no crontab" in result.stderr.lower():
                return ""
            raise CrontabError(
                f"Failed to read crontab: {result.stderr.strip() or result.returncode}"
            )
        return result.stdout

    def write(self, content: str) -> None:
        """Replace the whole crontab with content."""
        with tempfile.NamedTemporaryFile(
            "w", prefix="crontab-", suffix=".txt", delete=False, encoding="utf-8"
        ) as f:
            f.write(content)
            path = f.name

        try:
            result = self._run(self._base_args() + [path])
        finally:
            os.unlink(path)

        if result.returncode != 0:
            raise CrontabError(
                f"Failed to write crontab: {result.stderr.strip() or result.returncode}"
            )

        logger.info(
            "Crontab written",
            extra={"identifier": self.identifier, "user": self.user, "bytes": len(content)},
        )

    def install(self, block: str) -> None:
        """Overwrite the crontab with only this block."""
        self.write(block)

    def update(self, block: str) -> None:
        """Replace (or append) this block, keeping every other line."""
        self.write(update_block(self.read(), block, self.identifier))

    def clear(self) -> bool:
        """
        Remove this block, keeping every other line.

        Returns:
            False without writing if the crontab holds no such block
        """
        existing = self.read()
        if _find_block(existing.splitlines(), self.identifier) is None:
            logger.info("No schedule block to clear", extra={"identifier": self.identifier})
            return False

        self.write(clear_block(existing, self.identifier))
        return True
