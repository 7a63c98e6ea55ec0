"""dockins — provision disposable build containers through the docker CLI."""

from __future__ import annotations

from dockins.drivers import CliDockerDriver, DockerDriver, create_driver
from dockins.errors import DockinsError
from dockins.types import (
    Argument,
    ContainerHandle,
    ContainerRequest,
    EngineEndpoint,
    LaunchedContainer,
)

__all__ = [
    "Argument",
    "CliDockerDriver",
    "ContainerHandle",
    "ContainerRequest",
    "DockerDriver",
    "DockinsError",
    "EngineEndpoint",
    "LaunchedContainer",
    "create_driver",
]
