from __future__ import annotations

import os
import posixpath


def safen_path(p: str) -> str:
    """Normalize a slash path so it cannot climb out of its root.

    Rules:
    - The path is anchored at '/' so normalization eats any '..' that
      would climb above it (leading or not, e.g. 'a/../../b')
    - '.', '..' and empty segments are resolved
    - Leading slashes are stripped
    - An empty result becomes '.'
    """
    p = posixpath.normpath("/" + p)
    p = p.lstrip("/")
    if not p:
        p = "."
    return p


def to_host_path(p: str, unsafe: bool = False) -> str:
    """Turn the archive path p into a host path, safening it unless unsafe."""
    if not unsafe:
        p = safen_path(p)
    return _from_slash(p)


def to_archive_path(p: str, unsafe: bool = False) -> str:
    """Turn the host path p into an archive path, safening it unless unsafe."""
    p = _to_slash(p)
    if unsafe:
        return p
    return safen_path(p)


def _to_slash(p: str) -> str:
    if os.sep == "/":
        return p
    return p.replace(os.sep, "/")


def _from_slash(p: str) -> str:
    if os.sep == "/":
        return p
    return p.replace("/", os.sep)
