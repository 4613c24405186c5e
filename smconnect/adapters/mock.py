"""
Mock adapters — scripted test doubles for every collaborator.

Each double records its calls and answers from a table configured by
the test, so workflows can be driven through exact sequences (e.g. a
server that is alive on the first health check and dead on the second).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Any

from smconnect.adapters.base import Adapter
from smconnect.core.models.receipt import Receipt


class MockShell(Adapter):
    """Shell double: responses keyed by the command's leading argv words.

    The longest configured prefix that matches wins. Unknown commands
    fail like a missing binary.
    """

    def __init__(self, on_path: Iterable[str] = ()):
        self._responses: dict[tuple[str, ...], Receipt] = {}
        self._on_path: dict[str, str] = {c: f"/usr/bin/{c}" for c in on_path}
        self.calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return True

    def which(self, command: str) -> str | None:
        return self._on_path.get(command)

    def add_to_path(self, *commands: str) -> None:
        for command in commands:
            self._on_path[command] = f"/usr/bin/{command}"

    def resolve_as(self, command: str, location: str) -> None:
        """Make ``which(command)`` return ``location``."""
        self._on_path[command] = location

    def set_output(self, argv: list[str], output: str = "") -> None:
        self._responses[tuple(argv)] = Receipt.success(
            adapter="shell", operation=argv[0], output=output
        )

    def set_failure(self, argv: list[str], error: str = "exit 1") -> None:
        self._responses[tuple(argv)] = Receipt.failure(
            adapter="shell", operation=argv[0], error=error
        )

    def run(self, argv: list[str], timeout: int | None = None) -> Receipt:
        self.calls.append(list(argv))
        for size in range(len(argv), 0, -1):
            receipt = self._responses.get(tuple(argv[:size]))
            if receipt is not None:
                return receipt.model_copy()
        return Receipt.failure(
            adapter="shell",
            operation=argv[0],
            error=f"Command not found: {argv[0]}",
            metadata={"not_found": True},
        )


class MockProcessTable(Adapter):
    """Process table double: a set of live pids, or a scripted sequence."""

    def __init__(self, alive: Iterable[int] = ()):
        self.alive = set(alive)
        self._sequence: deque[bool] = deque()
        self.calls: list[int] = []

    @property
    def name(self) -> str:
        return "process"

    def is_available(self) -> bool:
        return True

    def script(self, *answers: bool) -> None:
        """Answer the next calls in order, then fall back to ``alive``."""
        self._sequence.extend(answers)

    def is_running(self, pid: int) -> bool:
        self.calls.append(pid)
        if self._sequence:
            return self._sequence.popleft()
        return pid in self.alive


class MockPortProbe(Adapter):
    """Port probe double: a set of open ports, or a scripted sequence."""

    def __init__(self, open_ports: Iterable[int] = ()):
        self.open_ports = set(open_ports)
        self._sequence: deque[bool] = deque()
        self.calls: list[int] = []

    @property
    def name(self) -> str:
        return "network"

    def is_available(self) -> bool:
        return True

    def script(self, *answers: bool) -> None:
        self._sequence.extend(answers)

    def is_reachable(self, port: int, timeout: float | None = None) -> bool:
        self.calls.append(port)
        if self._sequence:
            return self._sequence.popleft()
        return port in self.open_ports


class MockEditor(Adapter):
    """Command registry + extension catalog double."""

    def __init__(
        self,
        commands: Iterable[str] = (),
        extensions: Iterable[str] = (),
        fail_commands: Iterable[str] = (),
    ):
        self.commands = list(commands)
        self.extensions = list(extensions)
        self.fail_commands = set(fail_commands)
        self.executed: list[tuple[str, tuple[str, ...]]] = []

    @property
    def name(self) -> str:
        return "editor"

    def is_available(self) -> bool:
        return True

    def list_extensions(self) -> list[str]:
        return list(self.extensions)

    def list_commands(self) -> list[str]:
        return list(self.commands)

    def execute(self, command_id: str, *args: str) -> Receipt:
        self.executed.append((command_id, args))
        if command_id in self.fail_commands or command_id not in self.commands:
            return Receipt.failure(
                adapter="editor", operation=command_id, error="command failed"
            )
        return Receipt.success(adapter="editor", operation=command_id)


class MemoryStore:
    """In-memory KeyValueStore."""

    def __init__(self, data: dict[str, Any] | None = None):
        self.data = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value


class RecordingSleeper:
    """Replaces ``time.sleep``; records requested delays."""

    def __init__(self, on_sleep: Any = None):
        self.delays: list[float] = []
        self._on_sleep = on_sleep

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._on_sleep is not None:
            self._on_sleep()
