from __future__ import annotations

import errno
import os
import posixpath
import stat
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional, Set

# Node kinds (0=regular file, 1=directory, 2=anything else)
KIND_FILE = 0
KIND_DIR = 1
KIND_OTHER = 2


class FileTree(ABC):
    """What the collector needs from a file tree: node kinds, listings, file bytes.

    Methods raise OSError when the node cannot be visited or read.
    """

    @abstractmethod
    def lstat_kind(self, path: str) -> int:
        """Return the kind of path without following symlinks."""

    @abstractmethod
    def list_dir(self, path: str) -> List[str]:
        """Return the names in directory path, sorted."""

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Return the full contents of the regular file path."""

    @abstractmethod
    def join(self, parent: str, name: str) -> str:
        """Return the path of name inside directory parent."""


class OSFileTree(FileTree):
    """The host filesystem, with paths relative to the current directory."""

    def lstat_kind(self, path: str) -> int:
        mode = os.lstat(path).st_mode
        if stat.S_ISREG(mode):
            return KIND_FILE
        if stat.S_ISDIR(mode):
            return KIND_DIR
        return KIND_OTHER

    def list_dir(self, path: str) -> List[str]:
        return sorted(os.listdir(path))

    def read_file(self, path: str) -> bytes:
        with open(path, "rb") as fh:
            return fh.read()

    def join(self, parent: str, name: str) -> str:
        if parent == ".":
            return name
        return os.path.join(parent, name)


class MemoryFileTree(FileTree):
    """An in-memory tree of slash paths, for exercising traversal without a disk.

    Args:
        files: Mapping of file path to contents. Parent directories are implied.
        errors: Mapping of path to the OSError raised when that directory is
            listed or that file is read.
        others: Paths of non-regular leaves (symlinks, devices, ...).
    """

    def __init__(
        self,
        files: Mapping[str, bytes],
        *,
        errors: Optional[Mapping[str, OSError]] = None,
        others: Iterable[str] = (),
    ):
        self.files: Dict[str, bytes] = {_clean(p): d for p, d in files.items()}
        self.errors: Dict[str, OSError] = {_clean(p): e for p, e in (errors or {}).items()}
        self.others: Set[str] = {_clean(p) for p in others}
        self.dirs: Set[str] = {"."}
        for p in list(self.files) + list(self.others):
            parts = p.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                self.dirs.add("/".join(parts[:i]))

    def lstat_kind(self, path: str) -> int:
        path = _clean(path)
        if path in self.files:
            return KIND_FILE
        if path in self.dirs:
            return KIND_DIR
        if path in self.others:
            return KIND_OTHER
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)

    def list_dir(self, path: str) -> List[str]:
        path = _clean(path)
        if path in self.errors:
            raise self.errors[path]
        if path not in self.dirs:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        prefix = "" if path == "." else path + "/"
        names = set()
        for p in list(self.files) + list(self.others) + list(self.dirs):
            if p != "." and p.startswith(prefix) and p != path:
                names.add(p[len(prefix):].split("/", 1)[0])
        return sorted(names)

    def read_file(self, path: str) -> bytes:
        path = _clean(path)
        if path in self.errors:
            raise self.errors[path]
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path) from None

    def join(self, parent: str, name: str) -> str:
        if parent == ".":
            return name
        return parent.rstrip("/") + "/" + name


def _clean(p: str) -> str:
    return posixpath.normpath("/" + p).lstrip("/") or "."
