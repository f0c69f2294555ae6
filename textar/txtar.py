"""
txtar archive format.

An archive is a free-text comment followed by zero or more files. Each file
starts with a marker line of the form ``-- name --`` and its data runs up to
the next marker line or the end of the archive::

    comment text
    -- a.txt --
    hello
    -- sub/b.txt --
    bye

Formatting guarantees the comment and every file body end in a newline so
the next marker starts on its own line. Parsing never fails: whatever does
not look like a marker line is data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .constants import MARKER, MARKER_END, NEWLINE_MARKER
from .errors import MarkerLineError


@dataclass
class File:
    name: str
    data: bytes


@dataclass
class Archive:
    comment: bytes = b""
    files: List[File] = field(default_factory=list)


def has_marker_line(text: bytes) -> bool:
    """Return True if any line of text would be read back as a marker line."""
    for line in text.split(b"\n"):
        if _is_marker(line, 0)[0] is not None:
            return True
    return False


def fix_nl(data: bytes) -> bytes:
    if not data or data.endswith(b"\n"):
        return data
    return data + b"\n"


def format(archive: Archive) -> bytes:
    """Serialize archive to txtar bytes.

    Raises:
        MarkerLineError: If the comment contains a marker line, which would
            turn part of the comment into a file on parse.
    """
    if has_marker_line(archive.comment):
        raise MarkerLineError("comment cannot contain a txtar marker line")
    out = bytearray(fix_nl(archive.comment))
    for f in archive.files:
        out += MARKER + f.name.encode("utf-8", errors="surrogateescape") + MARKER_END + b"\n"
        out += fix_nl(f.data)
    return bytes(out)


def parse(data: bytes) -> Archive:
    """Parse txtar bytes into an Archive. Malformed input is read best-effort."""
    archive = Archive()
    archive.comment, name, rest = _find_marker(data)
    while name is not None:
        body, next_name, rest = _find_marker(rest)
        archive.files.append(File(name, body))
        name = next_name
    return archive


def _find_marker(data: bytes) -> Tuple[bytes, Optional[str], bytes]:
    """Split data at the first marker line.

    Returns the bytes before the marker, the marker's name and the bytes
    after the marker line. With no marker, name is None and all of data
    (newline-terminated) is returned as the leading part.
    """
    i = 0
    while True:
        name, after = _is_marker(data, i)
        if name is not None:
            return data[:i], name, after
        j = data.find(NEWLINE_MARKER, i)
        if j < 0:
            return fix_nl(data), None, b""
        i = j + 1


def _is_marker(data: bytes, start: int) -> Tuple[Optional[str], bytes]:
    if not data.startswith(MARKER, start):
        return None, b""
    end = data.find(b"\n", start)
    if end < 0:
        line, after = data[start:], b""
    else:
        line, after = data[start:end], data[end + 1:]
    line = line.rstrip(b"\r")
    if len(line) < len(MARKER) + len(MARKER_END) or not line.endswith(MARKER_END):
        return None, b""
    name = line[len(MARKER):-len(MARKER_END)].strip().decode("utf-8", errors="surrogateescape")
    if not name:
        return None, b""
    return name, after
