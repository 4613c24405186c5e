"""
Shell command adapter — run external probe commands.

Absence of a tool is an expected outcome, not an exceptional one, so
every failure (missing binary, non-zero exit, timeout, OS error) comes
back as a failed Receipt.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from smconnect.adapters.base import Adapter
from smconnect.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute commands (argv form, no shell) and capture output."""

    def __init__(self, timeout: int = 15):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return True

    def which(self, command: str) -> str | None:
        """Resolve a command on PATH."""
        return shutil.which(command)

    def run(self, argv: list[str], timeout: int | None = None) -> Receipt:
        """Run a command and return a receipt.

        Args:
            argv: Command and arguments.
            timeout: Override the adapter's default timeout (seconds).
        """
        timeout = timeout or self._timeout
        command = " ".join(argv)
        logger.debug("Executing: %s", command)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                operation=argv[0],
                error=f"Command not found: {argv[0]}",
                metadata={"command": command, "not_found": True},
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                operation=argv[0],
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                operation=argv[0],
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                operation=argv[0],
                output=output,
                duration_ms=elapsed_ms,
                metadata={
                    "command": command,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )
        return Receipt.failure(
            adapter=self.name,
            operation=argv[0],
            error=stderr or f"Command exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "command": command,
                "return_code": result.returncode,
                "stdout": output,
            },
        )
