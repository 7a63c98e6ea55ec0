"""Container lifecycle driver for the ``docker`` command line.

A build environment is one *remoting* container, whose attached stdio
carries the build agent channel, plus any number of *build* and *side*
containers that join its network, IPC and volume namespaces.

Every container goes Unprovisioned → Created → Started → Removed. A
:class:`~dockins.types.ContainerHandle` only exists once ``create``
succeeded, so a half-created container never escapes as an id-less handle.
If a later provisioning step fails, the container is force-removed before
the error propagates.
Nothing here retries; retry policy belongs to the caller.
"""

from __future__ import annotations

import subprocess
from collections.abc import Iterable, Mapping
from typing import IO

import structlog

from dockins.command import ArgLike, ArgumentList, CommandBuilder
from dockins.drivers.base import ChannelConnector
from dockins.errors import (
    ContainerCreationError,
    ContainerStartError,
    DockinsError,
    DriverClosedError,
    EngineUnreachableError,
    ImagePullError,
    VolumeCreationError,
)
from dockins.files import FileTransfer
from dockins.logger import LogSink, StructlogSink
from dockins.process import ProcessBridge
from dockins.types import (
    ContainerHandle,
    ContainerRequest,
    EngineEndpoint,
    ExecutionResult,
    LaunchedContainer,
)

logger = structlog.get_logger(__name__)

AGENT_ROOT = "/home/jenkins/"
AGENT_HOME = "/home/jenkins"
AGENT_TMPDIR = AGENT_ROOT + ".tmp"
AGENT_ARTIFACT = "agent.jar"
AGENT_USER = "10000:10000"

TRAMPOLINE = "/trampoline"
TRAMPOLINE_MODE = 0o555

GROUP_ENTRY = b"jenkins:x:10000:\n"
PASSWD_ENTRY = b"jenkins:x:10000:10000::/home/jenkins:/bin/false\n"


class CliDockerDriver:
    """DockerDriver backed by the engine CLI. See module docstring."""

    name = "cli"

    def __init__(
        self,
        endpoint: EngineEndpoint,
        trampoline: bytes,
        *,
        binary: str = "docker",
        verbose: bool = False,
        bridge: ProcessBridge | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._trampoline = trampoline
        self._builder = CommandBuilder(endpoint, binary)
        self._bridge = bridge if bridge is not None else ProcessBridge(verbose=verbose)
        self._files = FileTransfer(self._bridge, self._builder)
        self._closed = False

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> CliDockerDriver:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Volumes and existence checks
    # ------------------------------------------------------------------

    def create_volume(self, *, log: LogSink | None = None) -> str:
        result = self._capture(ArgumentList("volume", "create"), log)
        if not result.ok:
            raise VolumeCreationError(result.exit_code)
        return result.text

    def has_volume(self, name: str, *, log: LogSink | None = None) -> bool:
        if not name:
            return False
        return self._capture(ArgumentList("volume", "inspect", "-f", "{{.Name}}", name), log).ok

    def has_container(self, container_id: str, *, log: LogSink | None = None) -> bool:
        if not container_id:
            return False
        return self._capture(ArgumentList("inspect", "-f", "{{.Id}}", container_id), log).ok

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def launch_remoting_container(
        self,
        image: str,
        workdir: str,
        agent_artifact: bytes,
        connector: ChannelConnector,
        *,
        log: LogSink | None = None,
    ) -> ContainerHandle:
        """Create the remoting container and attach the agent channel to it.

        The container's stdio is the channel transport, so its logging
        driver is disabled. The agent artifact baked into the image (if
        any) is overwritten so the agent matches the caller's version.
        """
        args = (
            ArgumentList("create", "--interactive")
            .add("--log-driver=none")
            .add("--env", f"TMPDIR={AGENT_TMPDIR}")
            .add("--user", AGENT_USER)
            .add("--volume", f"{workdir}:{AGENT_ROOT}")
            .add("--workdir", AGENT_ROOT)
            .add(image)
            .add("java", f"-Djava.io.tmpdir={AGENT_TMPDIR}")
            .add("-jar", AGENT_ROOT + AGENT_ARTIFACT)
        )
        handle = self._create(ContainerRequest(image), args, log)

        spec = self._builder.build(ArgumentList("start", "--interactive", "--attach", handle.id))
        try:
            self._files.put_file_content(
                handle.id, AGENT_ROOT, AGENT_ARTIFACT, agent_artifact, log=log
            )
            process = self._bridge.start(spec, interactive=True, log=log)
        except DockinsError:
            self._discard(handle, log)
            raise
        logger.info("Remoting container started", container=handle.id, image=image)
        connector(process)
        return handle

    def launch_build_container(
        self, image: str, remoting: ContainerHandle, *, log: LogSink | None = None
    ) -> ContainerHandle:
        """Create a build container in the remoting container's namespaces.

        Its entrypoint is ``/trampoline wait``, which keeps it alive without
        a shell. The jenkins group and user, then the trampoline itself,
        are injected before the container starts.
        """
        args = (
            ArgumentList("create")
            .add("--env", f"TMPDIR={AGENT_TMPDIR}")
            .add("--workdir", AGENT_HOME)
            .add(*_join_namespaces(remoting))
            .add("--user", AGENT_USER)
            .add(image)
            .add(TRAMPOLINE, "wait")
        )
        handle = self._create(ContainerRequest(image), args, log)

        try:
            self._inject_unix_group(handle.id, log)
            self._inject_unix_user(handle.id, log)
            self._inject_trampoline(handle.id, log)

            code = self._run(ArgumentList("start", handle.id), log)
            if code != 0:
                raise ContainerStartError(code, handle.id)
        except DockinsError:
            self._discard(handle, log)
            raise
        logger.info("Build container started", container=handle.id, image=image)
        return handle

    def launch_side_container(
        self,
        request: ContainerRequest,
        remoting: ContainerHandle,
        *,
        log: LogSink | None = None,
    ) -> LaunchedContainer:
        """Create and start a side container (database, browser, ...) without waiting."""
        args = ArgumentList("create").add(*_join_namespaces(remoting)).add(request.image)
        handle = self._create(request, args, log)

        spec = self._builder.build(ArgumentList("start", handle.id))
        try:
            process = self._bridge.start(spec, log=log)
        except DockinsError:
            self._discard(handle, log)
            raise
        logger.info("Side container starting", container=handle.id, image=request.image)
        return LaunchedContainer(handle=handle, process=process)

    def remove_container(self, handle: ContainerHandle, *, log: LogSink | None = None) -> int:
        """Force-remove; returns the exit code whether or not the container existed."""
        code = self._run(ArgumentList("rm", "-f", handle.id), log)
        if code != 0:
            logger.debug("Container removal exited non-zero", container=handle.id, exit_code=code)
        return code

    # ------------------------------------------------------------------
    # Exec
    # ------------------------------------------------------------------

    def exec_in_container(
        self,
        container_id: str,
        cmd: Iterable[ArgLike],
        *,
        workdir: str | None = None,
        env: Mapping[str, str] | None = None,
        stdout: IO[bytes] | int | None = None,
        log: LogSink | None = None,
    ) -> subprocess.Popen[bytes]:
        """Start ``cmd`` inside a running container and return immediately.

        ``docker exec`` has no working directory option here, so a workdir
        is honoured through ``/trampoline cdexec <dir>``. Secret arguments
        stay flagged, so they are masked wherever the command is logged.
        """
        self._check_open()
        args = ArgumentList("exec", container_id)
        if workdir is not None:
            args.add(TRAMPOLINE, "cdexec", workdir)
        args.add("env").add_env(env or {})
        args.extend(cmd)

        spec = self._builder.build(args)
        return self._bridge.start(
            spec, stdout=subprocess.PIPE if stdout is None else stdout, log=log
        )

    # ------------------------------------------------------------------
    # Images and engine
    # ------------------------------------------------------------------

    def pull_image(self, image: str, *, log: LogSink | None = None) -> None:
        self._check_open()
        sink = log if log is not None else StructlogSink(image=image)
        spec = self._builder.build(ArgumentList("pull", image))
        code = self._bridge.run(spec, stdout=sink, log=sink)
        if code != 0:
            raise ImagePullError(image, code)
        logger.info("Image pulled", image=image)

    def check_image_exists(self, image: str, *, log: LogSink | None = None) -> bool:
        return self._capture(ArgumentList("inspect", "-f", "{{.Id}}", image), log).ok

    def build_dockerfile(
        self, path: str, tag: str, pull: bool, *, log: LogSink | None = None
    ) -> int:
        self._check_open()
        args = ArgumentList("build", f"--pull={'true' if pull else 'false'}", "-t", tag, path)
        sink = log if log is not None else StructlogSink(tag=tag)
        return self._bridge.run(self._builder.build(args), stdout=sink, log=sink)

    def server_version(self, *, log: LogSink | None = None) -> str:
        result = self._capture(ArgumentList("version", "-f", "{{.Server.Version}}"), log)
        if not result.ok:
            raise EngineUnreachableError(result.exit_code)
        return result.text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise DriverClosedError("driver is closed")

    def _capture(self, args: ArgumentList, log: LogSink | None) -> ExecutionResult:
        self._check_open()
        return self._bridge.capture(self._builder.build(args), log=log)

    def _run(self, args: ArgumentList, log: LogSink | None) -> int:
        self._check_open()
        return self._bridge.run(self._builder.build(args), log=log)

    def _create(
        self, request: ContainerRequest, args: ArgumentList, log: LogSink | None
    ) -> ContainerHandle:
        result = self._capture(args, log)
        if not result.ok or not result.text:
            raise ContainerCreationError(result.exit_code, f"from image {request.image}")
        handle = request.bind(result.text)
        logger.debug("Container created", container=handle.id, image=handle.image)
        return handle

    def _discard(self, handle: ContainerHandle, log: LogSink | None) -> None:
        """Force-remove a container whose provisioning failed, ignoring errors."""
        logger.warning("Removing half-provisioned container", container=handle.id)
        try:
            self._bridge.run(self._builder.build(ArgumentList("rm", "-f", handle.id)), log=log)
        except DockinsError as exc:
            logger.debug("docker rm -f failed", container=handle.id, err=str(exc))

    def _inject_unix_group(self, container_id: str, log: LogSink | None) -> None:
        group = self._files.get_file_content(container_id, "/etc/group", log=log)
        self._files.put_file_content(
            container_id, "/etc", "group", _append_line(group, GROUP_ENTRY), log=log
        )

    def _inject_unix_user(self, container_id: str, log: LogSink | None) -> None:
        passwd = self._files.get_file_content(container_id, "/etc/passwd", log=log)
        self._files.put_file_content(
            container_id, "/etc", "passwd", _append_line(passwd, PASSWD_ENTRY), log=log
        )

    def _inject_trampoline(self, container_id: str, log: LogSink | None) -> None:
        self._files.put_file_content(
            container_id,
            "/",
            TRAMPOLINE.lstrip("/"),
            self._trampoline,
            mode=TRAMPOLINE_MODE,
            log=log,
        )


def _join_namespaces(remoting: ContainerHandle) -> list[str]:
    return [
        "--volumes-from",
        remoting.id,
        f"--net=container:{remoting.id}",
        f"--ipc=container:{remoting.id}",
    ]


def _append_line(content: bytes, line: bytes) -> bytes:
    if content and not content.endswith(b"\n"):
        content += b"\n"
    return content + line
