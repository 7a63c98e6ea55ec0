"""Tests for the process bridge.

Most tests run real (tiny) Python subprocesses through a CommandBuilder
whose "engine binary" is the current interpreter.
"""

from __future__ import annotations

import io
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from dockins.command import ArgumentList, CommandBuilder
from dockins.errors import LaunchError
from dockins.process import ProcessBridge, stderr_forwarder
from dockins.types import EngineEndpoint


def _python(*code_args, env=None, secret: str | None = None):
    builder = CommandBuilder(EngineEndpoint(env=env or {}), binary=sys.executable)
    args = ArgumentList(*code_args)
    if secret is not None:
        args.add_masked(secret)
    return builder.build(args)


class TestRun:
    def test_returns_nonzero_exit_without_raising(self):
        spec = _python("-c", "import sys; sys.exit(3)")
        assert ProcessBridge().run(spec, log=io.BytesIO()) == 3

    def test_stderr_goes_to_log_sink(self):
        log = io.BytesIO()
        spec = _python("-c", "import sys; sys.stderr.write('no such image')")
        ProcessBridge().run(spec, log=log)
        assert b"no such image" in log.getvalue()

    def test_stdout_discarded_by_default(self):
        log = io.BytesIO()
        spec = _python("-c", "print('chatty')")
        ProcessBridge().run(spec, log=log)
        assert b"chatty" not in log.getvalue()

    def test_stdout_to_log_when_verbose(self):
        log = io.BytesIO()
        spec = _python("-c", "print('chatty')")
        ProcessBridge(verbose=True).run(spec, log=log)
        assert b"chatty" in log.getvalue()

    def test_verbose_echo_masks_secrets(self):
        log = io.BytesIO()
        spec = _python("-c", "pass", secret="s3cr3t")
        ProcessBridge(verbose=True).run(spec, log=log)
        assert log.getvalue().startswith(b"$ ")
        assert b"s3cr3t" not in log.getvalue()

    def test_stdin_is_piped(self):
        out = io.BytesIO()
        spec = _python("-c", "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read()[::-1])")
        ProcessBridge().run(spec, stdin=b"abc", stdout=out, log=io.BytesIO())
        assert out.getvalue() == b"cba"

    def test_endpoint_env_reaches_child(self):
        out = io.BytesIO()
        spec = _python(
            "-c", "import os; print(os.environ['DOCKER_HOST'], end='')",
            env={"DOCKER_HOST": "tcp://h:2375"},
        )
        ProcessBridge().run(spec, stdout=out, log=io.BytesIO())
        assert out.getvalue() == b"tcp://h:2375"

    def test_missing_binary_raises_launch_error(self):
        builder = CommandBuilder(EngineEndpoint(), binary="/nonexistent/dockins-engine")
        with pytest.raises(LaunchError, match="dockins-engine"):
            ProcessBridge().run(builder.build(["version"]), log=io.BytesIO())


class TestCapture:
    def test_collects_stdout(self):
        spec = _python("-c", "print('myvol')")
        result = ProcessBridge().capture(spec, log=io.BytesIO())
        assert result.ok
        assert result.text == "myvol"

    def test_result_references_stderr_sink(self):
        log = io.BytesIO()
        spec = _python("-c", "import sys; sys.stderr.write('warn')")
        result = ProcessBridge().capture(spec, log=log)
        assert result.log is log
        assert log.getvalue() == b"warn"


class TestStart:
    def test_returns_live_process(self):
        spec = _python("-c", "print('hi')")
        proc = ProcessBridge().start(spec, stdout=subprocess.PIPE, log=io.BytesIO())
        out, _ = proc.communicate()
        assert proc.returncode == 0
        assert out.strip() == b"hi"

    def test_interactive_pipes_stdin_and_stdout(self):
        spec = _python("-c", "import sys; sys.stdout.write(sys.stdin.read().upper())")
        proc = ProcessBridge().start(spec, interactive=True, log=io.BytesIO())
        out, _ = proc.communicate(b"ping")
        assert out == b"PING"

    def test_non_interactive_closes_stdin(self):
        with patch("dockins.process.subprocess.Popen") as mock_popen:
            mock_popen.return_value = MagicMock(pid=42, stderr=None)
            ProcessBridge().start(_python("-c", "pass"), log=io.BytesIO())
        kwargs = mock_popen.call_args.kwargs
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["stdout"] == subprocess.DEVNULL

    def test_launch_error_on_permission_denied(self):
        with patch(
            "dockins.process.subprocess.Popen",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            with pytest.raises(LaunchError, match="Permission denied"):
                ProcessBridge().start(_python("-c", "pass"), log=io.BytesIO())

    def test_stderr_reaches_in_memory_sink(self):
        log = io.BytesIO()
        spec = _python("-c", "import sys; sys.stderr.write('agent connected')")
        proc = ProcessBridge().start(spec, log=log)
        assert proc.wait(timeout=10) == 0
        stderr_forwarder(proc).join(timeout=10)
        assert log.getvalue() == b"agent connected"

    def test_large_stderr_does_not_block_child(self):
        log = io.BytesIO()
        spec = _python("-c", "import sys; sys.stderr.write('x' * 256 * 1024)")
        proc = ProcessBridge().start(spec, stdout=subprocess.DEVNULL, log=log)
        assert proc.wait(timeout=10) == 0
        stderr_forwarder(proc).join(timeout=10)
        assert len(log.getvalue()) == 256 * 1024

    def test_communicate_leaves_stderr_to_forwarder(self):
        log = io.BytesIO()
        spec = _python("-c", "import sys; print('out'); sys.stderr.write('err')")
        proc = ProcessBridge().start(spec, stdout=subprocess.PIPE, log=log)
        out, err = proc.communicate(timeout=10)
        stderr_forwarder(proc).join(timeout=10)
        assert out.strip() == b"out"
        assert err is None
        assert log.getvalue() == b"err"

    def test_no_forwarder_for_file_sink(self, tmp_path):
        with open(tmp_path / "log", "wb") as log:
            proc = ProcessBridge().start(_python("-c", "pass"), log=log)
            proc.wait(timeout=10)
        assert stderr_forwarder(proc) is None
