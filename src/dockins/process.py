"""Process bridge — runs engine command lines as subprocesses.

Two shapes:
  - run() / capture() block until the process exits and return its exit
    code; a non-zero exit is a normal result, never an exception.
  - start() returns the live ``Popen`` immediately; the caller owns it and
    must eventually wait on it. Its stderr keeps flowing into the log sink
    while it runs.

Only a failure to launch the binary at all raises (LaunchError).
"""

from __future__ import annotations

import io
import os
import subprocess
import threading
import weakref
from typing import IO, Any

import structlog

from dockins.errors import LaunchError
from dockins.logger import LogSink, StructlogSink
from dockins.types import CommandSpec, ExecutionResult

logger = structlog.get_logger(__name__)

_forwarders: weakref.WeakKeyDictionary[subprocess.Popen[bytes], threading.Thread] = (
    weakref.WeakKeyDictionary()
)


def _has_fileno(stream: Any) -> bool:
    try:
        stream.fileno()
    except (AttributeError, OSError):
        # io.UnsupportedOperation (BytesIO and friends) is an OSError
        return False
    return True


def _flush(stream: Any) -> None:
    flush = getattr(stream, "flush", None)
    if callable(flush):
        flush()


def _forward(stream: IO[bytes], sink: LogSink) -> None:
    with stream:
        for chunk in iter(lambda: stream.read1(8192), b""):
            sink.write(chunk)
    _flush(sink)


def stderr_forwarder(proc: subprocess.Popen[bytes]) -> threading.Thread | None:
    """Return the thread copying ``proc``'s stderr into its log sink, if any.

    Join it after waiting on the process to be sure the sink holds all of
    the output.
    """
    return _forwarders.get(proc)


class ProcessBridge:
    """Launches engine commands and wires their standard streams."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def run(
        self,
        spec: CommandSpec,
        *,
        stdin: bytes | None = None,
        stdout: IO[bytes] | None = None,
        log: LogSink | None = None,
    ) -> int:
        """Run to completion and return the exit code.

        stdout goes to ``stdout`` when given, else to the log sink in verbose
        mode, else nowhere. stderr always goes to the log sink.
        """
        sink = log if log is not None else StructlogSink(command=spec.render())
        self._announce(spec, sink)

        out_dest: Any = stdout
        if out_dest is None and self.verbose:
            out_dest = sink
        if out_dest is None:
            out_target: Any = subprocess.DEVNULL
        elif _has_fileno(out_dest):
            _flush(out_dest)
            out_target = out_dest
        else:
            out_target = subprocess.PIPE
        err_target: Any = sink if _has_fileno(sink) else subprocess.PIPE

        proc = self._popen(
            spec,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=out_target,
            stderr=err_target,
        )
        out, err = proc.communicate(input=stdin)
        if err:
            sink.write(err)
        if out and out_dest is not None:
            out_dest.write(out)
        _flush(sink)

        logger.debug("Engine command finished", command=spec.render(), exit_code=proc.returncode)
        return proc.returncode

    def capture(
        self,
        spec: CommandSpec,
        *,
        stdin: bytes | None = None,
        log: LogSink | None = None,
    ) -> ExecutionResult:
        """Like run(), with stdout collected in memory."""
        sink = log if log is not None else StructlogSink(command=spec.render())
        buf = io.BytesIO()
        code = self.run(spec, stdin=stdin, stdout=buf, log=sink)
        return ExecutionResult(exit_code=code, stdout=buf.getvalue(), log=sink)

    # ------------------------------------------------------------------
    # Non-blocking
    # ------------------------------------------------------------------

    def start(
        self,
        spec: CommandSpec,
        *,
        interactive: bool = False,
        stdout: IO[bytes] | int | None = None,
        log: LogSink | None = None,
    ) -> subprocess.Popen[bytes]:
        """Start without waiting.

        ``interactive`` opens pipes on stdin and stdout so the caller can use
        them as a transport. Otherwise stdin is closed and stdout goes to
        ``stdout`` (a file, ``subprocess.PIPE``) or is discarded. stderr goes
        to the log sink: directly when it is a real file, else through a
        daemon thread that drains a pipe into it (see stderr_forwarder()).
        """
        sink = log if log is not None else StructlogSink(command=spec.render())
        self._announce(spec, sink)

        if interactive:
            stdin_target: Any = subprocess.PIPE
            out_target: Any = subprocess.PIPE
        else:
            stdin_target = subprocess.DEVNULL
            out_target = subprocess.DEVNULL if stdout is None else stdout
        err_target: Any = sink if _has_fileno(sink) else subprocess.PIPE

        proc = self._popen(spec, stdin=stdin_target, stdout=out_target, stderr=err_target)
        if err_target is subprocess.PIPE and proc.stderr is not None:
            # the forwarder owns the pipe; communicate() must not read it too
            stream, proc.stderr = proc.stderr, None
            forwarder = threading.Thread(
                target=_forward, args=(stream, sink), name=f"stderr-{proc.pid}", daemon=True
            )
            forwarder.start()
            _forwarders[proc] = forwarder
        logger.debug("Engine command started", command=spec.render(), pid=proc.pid)
        return proc

    # ------------------------------------------------------------------

    def _announce(self, spec: CommandSpec, sink: LogSink) -> None:
        logger.debug("Running engine command", command=spec.render())
        if self.verbose:
            sink.write(f"$ {spec.render()}\n".encode())
            _flush(sink)

    @staticmethod
    def _popen(spec: CommandSpec, **streams: Any) -> subprocess.Popen[bytes]:
        env = {**os.environ, **spec.env}
        try:
            return subprocess.Popen(spec.argv, env=env, **streams)
        except OSError as exc:
            raise LaunchError(spec.argv[0], exc.strerror or str(exc)) from exc
