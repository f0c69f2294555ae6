"""
textar — a tar-like tool for txtar text archives.

Features:

- Create, list and extract archives in the txtar format: a free-text comment
  followed by files, each introduced by a ``-- name --`` marker line.
- Path safening on the way in and out, so archive names cannot climb out of
  the extraction directory (disable with -P).
- Exclusion by shell glob and/or regular expression, applied on create,
  list and extract alike.
- Optional gzip compression of the whole archive stream.
- Non-fatal per-file errors are collected in a Report so one unreadable file
  does not sink a whole archive, while still yielding a non-zero exit.
"""

__version__ = "0.1"

__all__ = [
    "archiver",
    "collect",
    "txtar",
    "matcher",
    "pathutil",
]

# Importable programmatic API is available via textar.archiver.Archiver and
# the CLI functions in textar.cli (cmd_create/cmd_list/cmd_extract).
