"""Data models for dockins."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dockins.logger import LogSink

MASK = "******"


def _freeze(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(env or {}))


@dataclass(frozen=True)
class EngineEndpoint:
    """How to reach the container engine: an optional ``-H`` URI plus env overrides."""

    uri: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", _freeze(self.env))


@dataclass(frozen=True)
class ContainerRequest:
    """A container that has not been created yet — only the image is known."""

    image: str

    def bind(self, container_id: str) -> ContainerHandle:
        return ContainerHandle(image=self.image, id=container_id)


@dataclass(frozen=True)
class ContainerHandle:
    """A created container. The id is never empty."""

    image: str
    id: str

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError(f"container for image {self.image!r} has no id")


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    size: int
    uid: int = 0
    gid: int = 0
    mode: int | None = None  # None → 0o644


@dataclass(frozen=True)
class Argument:
    value: str
    secret: bool = False

    def display(self) -> str:
        return MASK if self.secret else self.value


@dataclass(frozen=True)
class CommandSpec:
    """One engine CLI invocation.

    ``argv`` is what the process receives; ``render()`` is what may be
    logged, with secret arguments masked.
    """

    arguments: tuple[Argument, ...]
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", _freeze(self.env))

    @property
    def argv(self) -> list[str]:
        return [a.value for a in self.arguments]

    @property
    def masks(self) -> list[bool]:
        return [a.secret for a in self.arguments]

    def render(self) -> str:
        return " ".join(a.display() for a in self.arguments)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"CommandSpec({self.render()!r})"


@dataclass(frozen=True)
class ExecutionResult:
    """Exit code and collected stdout; ``log`` is the sink stderr was sent to."""

    exit_code: int
    stdout: bytes = b""
    log: LogSink | None = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace").strip()


@dataclass(frozen=True)
class LaunchedContainer:
    """A container started without waiting. The caller must reap ``process``."""

    handle: ContainerHandle
    process: subprocess.Popen[bytes] = field(repr=False)
