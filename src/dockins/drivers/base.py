"""Driver contract implemented by the built-in CLI driver and by plugins."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

from dockins.command import ArgLike
from dockins.logger import LogSink
from dockins.types import ContainerHandle, ContainerRequest, LaunchedContainer

if TYPE_CHECKING:
    from dockins.config import Settings

# Receives the attached `start --interactive` process of the remoting
# container; its stdin/stdout carry the build agent channel.
ChannelConnector = Callable[[subprocess.Popen[bytes]], object]


@runtime_checkable
class DockerDriver(Protocol):
    name: str

    def close(self) -> None: ...

    def create_volume(self, *, log: LogSink | None = None) -> str: ...

    def has_volume(self, name: str, *, log: LogSink | None = None) -> bool: ...

    def has_container(self, container_id: str, *, log: LogSink | None = None) -> bool: ...

    def launch_remoting_container(
        self,
        image: str,
        workdir: str,
        agent_artifact: bytes,
        connector: ChannelConnector,
        *,
        log: LogSink | None = None,
    ) -> ContainerHandle: ...

    def launch_build_container(
        self, image: str, remoting: ContainerHandle, *, log: LogSink | None = None
    ) -> ContainerHandle: ...

    def launch_side_container(
        self,
        request: ContainerRequest,
        remoting: ContainerHandle,
        *,
        log: LogSink | None = None,
    ) -> LaunchedContainer: ...

    def exec_in_container(
        self,
        container_id: str,
        cmd: Iterable[ArgLike],
        *,
        workdir: str | None = None,
        env: Mapping[str, str] | None = None,
        stdout: IO[bytes] | int | None = None,
        log: LogSink | None = None,
    ) -> subprocess.Popen[bytes]: ...

    def remove_container(self, handle: ContainerHandle, *, log: LogSink | None = None) -> int: ...

    def pull_image(self, image: str, *, log: LogSink | None = None) -> None: ...

    def check_image_exists(self, image: str, *, log: LogSink | None = None) -> bool: ...

    def build_dockerfile(
        self, path: str, tag: str, pull: bool, *, log: LogSink | None = None
    ) -> int: ...

    def server_version(self, *, log: LogSink | None = None) -> str: ...


@dataclass(frozen=True)
class DriverFactory:
    """What a driver plugin contributes: a name and a constructor."""

    name: str
    create: Callable[[Settings, bytes], DockerDriver]
