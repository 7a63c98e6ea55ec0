"""Error taxonomy for the engine driver.

Existence checks (``has_volume``, ``has_container``, ``check_image_exists``)
never raise on a non-zero exit; every other operation raises one of these.
Raw process output goes to the caller's log sink, not into the message.
"""

from __future__ import annotations


class DockinsError(Exception):
    """Base class for everything raised by dockins."""


class LaunchError(DockinsError):
    """The engine binary could not be located or started."""

    def __init__(self, binary: str, reason: str) -> None:
        self.binary = binary
        super().__init__(f"failed to launch {binary}: {reason}")


class DriverClosedError(DockinsError):
    """Raised when a closed driver is asked to do more work."""


class ArchiveError(DockinsError):
    """Base for archive transport failures."""


class EncodingError(ArchiveError):
    """Content could not be written as a single-entry archive."""


class DecodingError(ArchiveError):
    """An archive stream was empty, malformed or truncated."""


class EngineCommandError(DockinsError):
    """The engine CLI started but exited non-zero."""

    operation = "run engine command"

    def __init__(self, exit_code: int, detail: str | None = None) -> None:
        self.exit_code = exit_code
        msg = f"failed to {self.operation}"
        if detail:
            msg += f" {detail}"
        super().__init__(f"{msg} (exit {exit_code})")


class VolumeCreationError(EngineCommandError):
    operation = "create volume"


class ContainerCreationError(EngineCommandError):
    operation = "create container"


class ContainerStartError(EngineCommandError):
    operation = "start container"


class FileRetrievalError(EngineCommandError):
    operation = "get file"


class FileDecodingError(FileRetrievalError, DecodingError):
    """``docker cp`` succeeded but its archive output could not be decoded."""

    def __init__(self, detail: str) -> None:
        self.exit_code = 0
        DecodingError.__init__(self, f"failed to get file {detail}")


class FileInjectionError(EngineCommandError):
    operation = "put file"


class ImagePullError(EngineCommandError):
    operation = "pull image"

    def __init__(self, image: str, exit_code: int) -> None:
        self.image = image
        super().__init__(exit_code, image)


class EngineUnreachableError(EngineCommandError):
    operation = "connect to the container engine"
