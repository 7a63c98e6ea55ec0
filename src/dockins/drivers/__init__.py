"""Driver selection.

``create_driver()`` builds the driver named by ``[driver] name`` in
dockins.toml. The CLI driver is built in; others come from plugins
implementing ``dockins_driver_factory``.
"""

from __future__ import annotations

from typing import Any

import structlog

from dockins.config import Settings, get_settings
from dockins.drivers.base import ChannelConnector, DockerDriver, DriverFactory
from dockins.drivers.cli import CliDockerDriver
from dockins.plugin.hookspecs import hookimpl

__all__ = [
    "ChannelConnector",
    "CliDockerDriver",
    "CliDriverPlugin",
    "DockerDriver",
    "DriverFactory",
    "create_driver",
]

logger = structlog.get_logger(__name__)


def _create_cli_driver(settings: Settings, trampoline: bytes) -> CliDockerDriver:
    return CliDockerDriver(
        settings.endpoint(),
        trampoline,
        binary=settings.engine.binary,
        verbose=settings.engine.verbose,
    )


class CliDriverPlugin:
    @hookimpl
    def dockins_driver_factory(self) -> DriverFactory:
        return DriverFactory(name=CliDockerDriver.name, create=_create_cli_driver)


def _is_valid_factory(candidate: Any) -> bool:
    return isinstance(getattr(candidate, "name", None), str) and callable(
        getattr(candidate, "create", None)
    )


def create_driver(settings: Settings | None = None, *, trampoline: bytes) -> DockerDriver:
    """Build the configured driver, falling back to the CLI driver."""
    from dockins.plugin import get_plugin_manager

    s = settings if settings is not None else get_settings()
    wanted = s.driver.name.lower().strip()

    factories: dict[str, DriverFactory] = {}
    for factory in get_plugin_manager(s).hook.dockins_driver_factory():
        if factory is None:
            continue
        if not _is_valid_factory(factory):
            logger.warning("Ignoring invalid driver factory", factory_type=type(factory).__name__)
            continue
        name = factory.name.lower().strip()
        if name in factories:
            logger.warning("Duplicate driver factory ignored", driver=name)
            continue
        factories[name] = factory

    selected = factories.get(wanted)
    if selected is None:
        logger.warning("Unknown driver; falling back to the CLI driver", driver=wanted)
        return _create_cli_driver(s, trampoline)

    driver = selected.create(s, trampoline)
    logger.debug("Driver created", driver=selected.name)
    return driver
