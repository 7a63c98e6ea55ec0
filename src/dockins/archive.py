"""Single-entry tar archives — the transport format of ``docker cp``.

``docker cp - <id>:<dir>`` reads a tar stream from stdin and unpacks it into
``<dir>``; ``docker cp <id>:<path> -`` writes one. Neither needs a shell in
the container, which is the point: images used for builds may have none.
"""

from __future__ import annotations

import io
import tarfile
import time
from typing import BinaryIO

from dockins.errors import DecodingError, EncodingError
from dockins.types import ArchiveEntry

# Largest size the 11-digit octal size field of a tar header can hold.
# Long names still go through pax headers; oversized content does not.
MAX_ENTRY_SIZE = 0o77777777777

DEFAULT_MODE = 0o644


def encode_single_file(entry: ArchiveEntry, content: bytes) -> bytes:
    """Write ``content`` as the only member of a tar archive."""
    if len(content) != entry.size:
        raise EncodingError(
            f"entry {entry.name!r} declares {entry.size} bytes but content has {len(content)}"
        )
    if entry.size > MAX_ENTRY_SIZE:
        raise EncodingError(f"entry {entry.name!r} is too large for a tar header ({entry.size})")

    info = tarfile.TarInfo(entry.name)
    info.type = tarfile.REGTYPE
    info.size = entry.size
    info.uid = entry.uid
    info.gid = entry.gid
    info.mode = DEFAULT_MODE if entry.mode is None else entry.mode
    info.mtime = int(time.time())

    buf = io.BytesIO()
    try:
        with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
            tar.addfile(info, io.BytesIO(content))
    except ValueError as exc:
        # tarfile reports header field overflows as ValueError
        raise EncodingError(f"cannot encode entry {entry.name!r}: {exc}") from exc
    return buf.getvalue()


def decode_single_file(data: bytes) -> bytes:
    """Return the content of the first member of a tar archive.

    Raises DecodingError rather than returning short or empty content.
    """
    if not data:
        raise DecodingError("archive stream is empty")

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
            member = tar.next()
            if member is None:
                raise DecodingError("archive has no entries")
            if not member.isfile():
                raise DecodingError(f"archive entry {member.name!r} is not a regular file")
            extracted = tar.extractfile(member)
            if extracted is None:
                raise DecodingError(f"archive entry {member.name!r} has no readable content")
            content = extracted.read()
    except tarfile.TarError as exc:
        raise DecodingError(f"malformed or truncated archive: {exc}") from exc

    if len(content) != member.size:
        raise DecodingError(
            f"archive entry {member.name!r} truncated: "
            f"expected {member.size} bytes, got {len(content)}"
        )
    return content


def copy_single_file(data: bytes, dest: BinaryIO) -> int:
    """Decode ``data`` and write the entry's content to ``dest``."""
    content = decode_single_file(data)
    dest.write(content)
    return len(content)
