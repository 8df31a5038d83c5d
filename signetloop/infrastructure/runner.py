"""External command execution.

Every interaction with docker, lncli, bitcoin-cli and loop goes through
``CommandRunner``. Output is either relayed to the terminal, captured for
parsing, or discarded. A missing executable is reported as a failed result
(exit code 127, like a shell) instead of raising, so best-effort callers can
treat it like any other failing command.
"""

from __future__ import annotations

import json
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any

from signetloop.exceptions import CommandExecutionError
from signetloop.utils.logging import get_logger

logger = get_logger(__name__)

COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Outcome of a single external command.

    Attributes:
        command: The argv that was executed
        exit_code: Process exit code (127 if the executable was not found)
        stdout: Captured standard output ("" when relayed or discarded)
        stderr: Captured standard error ("" when relayed or discarded)
        duration_ms: Wall-clock duration in milliseconds
        error: Error message when the process could not be started
    """

    command: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def json(self) -> Any:
        """Parse captured stdout as JSON.

        Raises:
            ValueError: If stdout is empty or not valid JSON
        """
        return json.loads(self.stdout)

    def check(self, message: str) -> CommandResult:
        """Raise ``CommandExecutionError`` unless the command succeeded."""
        if not self.success:
            raise CommandExecutionError(
                message,
                command=self.command,
                exit_code=self.exit_code,
            )
        return self

    def __str__(self) -> str:
        status = "✓ SUCCESS" if self.success else "✗ FAILED"
        return f"'{self.command[0]}' {status} (exit={self.exit_code}, duration={self.duration_ms:.1f}ms)"


class CommandRunner:
    """Runs external commands with ``subprocess``.

    Args:
        env: Extra environment variables merged over ``os.environ`` for every
             command (e.g. ``LND_DIR`` for docker compose)
    """

    def __init__(self, env: dict[str, str] | None = None):
        self.env = dict(env or {})

    def run(
        self,
        command: list[str],
        *,
        capture: bool = False,
        discard: bool = False,
        suppress_stderr: bool = False,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            command: argv to execute
            capture: Capture stdout/stderr into the result
            discard: Send stdout and stderr to /dev/null
            suppress_stderr: Send only stderr to /dev/null, relay stdout

        Returns:
            CommandResult describing the run
        """
        if capture:
            stdout: Any = subprocess.PIPE
            stderr: Any = subprocess.PIPE
        elif discard:
            stdout = stderr = subprocess.DEVNULL
        else:
            stdout = None
            stderr = subprocess.DEVNULL if suppress_stderr else None

        start_time = time.perf_counter()
        logger.debug("command_started", command=command)

        try:
            completed = subprocess.run(
                command,
                stdout=stdout,
                stderr=stderr,
                env=self._build_env(),
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning("command_not_found", command=command, error=str(e))
            return CommandResult(
                command=command,
                exit_code=COMMAND_NOT_FOUND,
                duration_ms=duration_ms,
                error=f"{command[0]}: command not found",
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        result = CommandResult(
            command=command,
            exit_code=completed.returncode,
            stdout=(completed.stdout or "").strip() if capture else "",
            stderr=(completed.stderr or "").strip() if capture else "",
            duration_ms=duration_ms,
        )

        log_method = logger.debug if result.success else logger.info
        log_method(
            "command_finished",
            command=command,
            exit_code=result.exit_code,
            duration_ms=round(duration_ms, 2),
        )
        return result

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        return env
