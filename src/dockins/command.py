"""Engine command lines with per-argument secrecy.

An :class:`ArgumentList` is composed for one invocation, then
:class:`CommandBuilder` turns it into a :class:`~dockins.types.CommandSpec`
by putting the engine binary and global connection flags in front.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from dockins.types import Argument, CommandSpec, EngineEndpoint

logger = structlog.get_logger(__name__)

ArgLike = Argument | tuple[str, bool] | str


def to_argument(item: ArgLike) -> Argument:
    if isinstance(item, Argument):
        return item
    if isinstance(item, tuple):
        value, secret = item
        return Argument(str(value), bool(secret))
    return Argument(str(item))


class ArgumentList:
    """Ordered, maskable arguments for a single engine invocation."""

    def __init__(self, *values: str) -> None:
        self._args: list[Argument] = [Argument(v) for v in values]

    def add(self, *values: str, secret: bool = False) -> ArgumentList:
        self._args.extend(Argument(v, secret) for v in values)
        return self

    def add_masked(self, value: str) -> ArgumentList:
        return self.add(value, secret=True)

    def add_env(self, env: Mapping[str, str]) -> ArgumentList:
        """Append ``KEY=VALUE`` tokens, in mapping order."""
        self._args.extend(Argument(f"{k}={v}") for k, v in env.items())
        return self

    def extend(self, items: Iterable[ArgLike]) -> ArgumentList:
        self._args.extend(to_argument(i) for i in items)
        return self

    def __iter__(self):
        return iter(self._args)

    def __len__(self) -> int:
        return len(self._args)


class CommandBuilder:
    """Prefixes engine arguments with the binary name and ``-H <uri>``."""

    def __init__(self, endpoint: EngineEndpoint, binary: str = "docker") -> None:
        self.endpoint = endpoint
        self.binary = binary

    def build(self, args: ArgumentList | Iterable[ArgLike]) -> CommandSpec:
        prefix = [Argument(self.binary)]
        if self.endpoint.uri:
            prefix += [Argument("-H"), Argument(self.endpoint.uri)]
        else:
            logger.debug("No engine host configured, using CLI default")
        arguments = tuple(prefix) + tuple(to_argument(a) for a in args)
        return CommandSpec(arguments=arguments, env=self.endpoint.env)
