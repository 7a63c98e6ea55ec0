"""Shared test fixtures for dockins."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from dockins.archive import encode_single_file
from dockins.process import ProcessBridge
from dockins.types import ArchiveEntry, CommandSpec

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures — importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object without reading dockins.toml / env / .env.

    Usage::

        s = make_settings(engine=EngineConfig(uri="tcp://h:2376"))
    """
    from dockins.config import DriverConfig, EngineConfig, LoggingConfig, Settings

    defaults = {
        "engine": EngineConfig(),
        "driver": DriverConfig(),
        "logging": LoggingConfig(),
        "plugins": {},
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def tar_of(name: str, content: bytes) -> bytes:
    return encode_single_file(ArchiveEntry(name=name, size=len(content)), content)


@dataclass
class Call:
    kind: str  # "run" or "start"
    spec: CommandSpec
    stdin: bytes | None = None
    interactive: bool = False

    @property
    def args(self) -> list[str]:
        """Engine arguments, without the binary and any ``-H <uri>``."""
        argv = self.spec.argv[1:]
        if argv[:1] == ["-H"]:
            argv = argv[2:]
        return argv


class FakeBridge(ProcessBridge):
    """Records every invocation and answers from canned responses.

    Rules registered with respond() match on a prefix of the engine
    arguments; the first match wins, unmatched commands exit 0 silently.
    """

    def __init__(self) -> None:
        super().__init__(verbose=False)
        self.calls: list[Call] = []
        self._rules: list[tuple[list[str], int, bytes]] = []
        self.processes: list[MagicMock] = []
        self.start_error: Exception | None = None

    def respond(self, *prefix: str, exit_code: int = 0, stdout: bytes = b"") -> None:
        self._rules.append((list(prefix), exit_code, stdout))

    def run(self, spec, *, stdin=None, stdout=None, log=None):
        call = Call("run", spec, stdin)
        self.calls.append(call)
        exit_code, out = self._answer(call.args)
        if stdout is not None and out:
            stdout.write(out)
        return exit_code

    def start(self, spec, *, interactive=False, stdout=None, log=None):
        self.calls.append(Call("start", spec, None, interactive))
        if self.start_error is not None:
            raise self.start_error
        proc = MagicMock(spec=subprocess.Popen)
        self.processes.append(proc)
        return proc

    def _answer(self, args: list[str]) -> tuple[int, bytes]:
        for prefix, exit_code, out in self._rules:
            if args[: len(prefix)] == prefix:
                return exit_code, out
        return 0, b""

    def commands(self) -> list[list[str]]:
        return [c.args for c in self.calls]


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()
