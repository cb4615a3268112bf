"""
Compose adapter — bring a stack up or down with Docker Compose.

Uses the ``docker compose`` CLI, never the Docker API directly.

Action params:
    operation (str): 'up' or 'down'.
    timeout (int): Timeout in seconds (default: 600).
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import time
from pathlib import Path

from stackwatch.adapters.base import Adapter, ExecutionContext
from stackwatch.core.models.action import Receipt
from stackwatch.core.services.scanner import find_manifest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600

_PROJECT_NAME_INVALID = re.compile(r"[^a-z0-9_-]+")


def compose_project_name(unit: str) -> str:
    """Project name Compose derives from a directory called ``unit``.

    Compose lowercases the directory name, drops every character that is
    not a lowercase letter, digit, dash or underscore, then strips leading
    dashes and underscores.
    """
    return _PROJECT_NAME_INVALID.sub("", unit.lower()).lstrip("_-")


class ComposeAdapter(Adapter):
    """Docker Compose up/down for a single unit directory."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, docker_bin: str = "docker"):
        self._timeout = timeout
        self._docker = docker_bin

    @property
    def name(self) -> str:
        return "compose"

    def is_available(self) -> bool:
        return shutil.which(self._docker) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in ("up", "down"):
            return False, f"Unknown operation '{operation}'. Valid: down, up"

        if operation == "up" and not context.unit_dir_exists:
            return False, f"Stack directory does not exist: {context.working_dir}"

        if operation == "down" and self._down_by_project(context):
            if not compose_project_name(context.unit):
                return False, f"Cannot derive a compose project name from '{context.unit}'"

        return True, ""

    def command_for(self, context: ExecutionContext) -> tuple[list[str], str]:
        """Build the command line and working directory for an action."""
        operation = context.params["operation"]
        if operation == "up":
            return [self._docker, "compose", "up", "-d", "--remove-orphans"], context.working_dir

        if not self._down_by_project(context):
            return [self._docker, "compose", "down", "--remove-orphans"], context.working_dir

        # No compose file to read: address the project by name instead.
        cwd = context.stacks_root if Path(context.stacks_root).is_dir() else "/"
        project = compose_project_name(context.unit)
        return [self._docker, "compose", "-p", project, "down", "--remove-orphans"], cwd

    @staticmethod
    def _down_by_project(context: ExecutionContext) -> bool:
        """Whether teardown must name the project (directory or manifest gone)."""
        if not context.unit_dir_exists:
            return True
        return find_manifest(Path(context.working_dir)) is None

    def execute(self, context: ExecutionContext) -> Receipt:
        args, cwd = self.command_for(context)
        timeout = context.params.get("timeout", self._timeout)
        command = " ".join(args)

        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        start = time.monotonic()
        try:
            result = subprocess.run(
                args,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Cannot run {self._docker}: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output or stderr,
                duration_ms=elapsed_ms,
                metadata={"command": command, "cwd": cwd, "return_code": 0},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"docker compose exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={"command": command, "cwd": cwd, "return_code": result.returncode},
        )
