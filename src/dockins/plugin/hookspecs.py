"""Pluggy hook specifications for dockins plugins.

All hooks use the "dockins" namespace and are validated by pluggy at
registration time.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("dockins")
hookimpl = pluggy.HookimplMarker("dockins")


class DockinsSpec:
    """Hook specifications for dockins plugins."""

    @hookspec
    def dockins_driver_factory(self) -> Any | None:
        """Provide a driver implementation.

        Returns:
            A :class:`dockins.drivers.base.DriverFactory` whose ``create``
            accepts ``(settings, trampoline)`` and returns an object
            satisfying :class:`dockins.drivers.base.DockerDriver`, or None
            if this plugin doesn't provide one.
        """
