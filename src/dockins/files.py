"""Moving single files in and out of containers through ``docker cp``.

Both directions are synchronous: the archive is fully built (or fully
received) in memory before the other side runs.
"""

from __future__ import annotations

import structlog

from dockins.archive import decode_single_file, encode_single_file
from dockins.command import ArgumentList, CommandBuilder
from dockins.errors import DecodingError, FileDecodingError, FileInjectionError, FileRetrievalError
from dockins.logger import LogSink
from dockins.process import ProcessBridge
from dockins.types import ArchiveEntry

logger = structlog.get_logger(__name__)


class FileTransfer:
    def __init__(self, bridge: ProcessBridge, builder: CommandBuilder) -> None:
        self._bridge = bridge
        self._builder = builder

    def get_file_content(
        self, container_id: str, path: str, *, log: LogSink | None = None
    ) -> bytes:
        """Read ``path`` out of a (possibly stopped) container."""
        spec = self._builder.build(ArgumentList("cp", f"{container_id}:{path}", "-"))
        result = self._bridge.capture(spec, log=log)
        if not result.ok:
            raise FileRetrievalError(result.exit_code, f"{path} from {container_id}")
        try:
            return decode_single_file(result.stdout)
        except DecodingError as exc:
            raise FileDecodingError(f"{path} from {container_id}: {exc}") from exc

    def put_file_content(
        self,
        container_id: str,
        dest_dir: str,
        filename: str,
        content: bytes,
        *,
        mode: int | None = None,
        log: LogSink | None = None,
    ) -> int:
        """Write ``content`` as ``dest_dir/filename``, owned by root."""
        archive = encode_single_file(
            ArchiveEntry(name=filename, size=len(content), mode=mode), content
        )
        spec = self._builder.build(ArgumentList("cp", "-", f"{container_id}:{dest_dir}"))
        code = self._bridge.run(spec, stdin=archive, log=log)
        if code != 0:
            raise FileInjectionError(code, f"{filename} into {container_id}:{dest_dir}")
        logger.debug(
            "Injected file",
            container=container_id,
            dest=dest_dir,
            filename=filename,
            size=len(content),
        )
        return code
