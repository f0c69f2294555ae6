from __future__ import annotations

import os
from typing import Dict, Iterable, List

from .errors import BadPatternError
from .fstree import KIND_DIR, KIND_FILE, FileTree
from .matcher import Matcher
from .pathutil import to_archive_path
from .report import Report
from .txtar import File


class TreeCollector:
    """Walks file trees depth-first and gathers regular files as archive entries.

    Entries are keyed by archive name. Adding a name that is already present
    drops the old entry first, so the last occurrence wins both content and
    position.
    """

    def __init__(
        self,
        tree: FileTree,
        matcher: Matcher,
        report: Report,
        *,
        unsafe: bool = False,
        verbose: bool = False,
    ):
        self.tree = tree
        self.matcher = matcher
        self.report = report
        self.unsafe = unsafe
        self.verbose = verbose
        self._entries: Dict[str, bytes] = {}

    def collect(self, roots: Iterable[str]) -> List[File]:
        for root in roots:
            self.walk(root)
        return self.entries()

    def entries(self) -> List[File]:
        return [File(name, data) for name, data in self._entries.items()]

    def walk(self, root: str) -> None:
        """Add every regular file under root, in lexical depth-first order."""
        # Cleaned so exclusion globs see "sub/x" whether the root was typed "sub" or "./sub"
        stack = [os.path.normpath(root)]
        while stack:
            path = stack.pop()
            if self._excluded(path):
                continue
            try:
                kind = self.tree.lstat_kind(path)
            except OSError as exc:
                self.report.error(f"accessing {path}: {_reason(exc)}")
                continue
            if kind == KIND_DIR:
                try:
                    names = self.tree.list_dir(path)
                except OSError as exc:
                    self.report.error(f"reading directory {path}: {_reason(exc)}")
                    continue
                stack.extend(self.tree.join(path, n) for n in reversed(names))
            elif kind == KIND_FILE:
                self._add(path)

    def _excluded(self, path: str) -> bool:
        # Checked before visiting so an excluded, unreadable node is skipped quietly
        try:
            return self.matcher.is_excluded(path)
        except BadPatternError as exc:
            self.report.error(f"checking if {path} is excluded: {exc}")
            return True

    def _add(self, path: str) -> None:
        try:
            data = self.tree.read_file(path)
        except OSError as exc:
            self.report.error(f"reading {path}: {_reason(exc)}")
            return
        name = to_archive_path(path, self.unsafe)
        if self.verbose and name != to_archive_path(path, unsafe=True):
            self.report.note(f"Note: sanitized {path!r} to {name!r}")
        self._entries.pop(name, None)
        self._entries[name] = data
        if self.verbose:
            self.report.note(name)


def collect(
    roots: Iterable[str],
    tree: FileTree,
    matcher: Matcher,
    report: Report,
    *,
    unsafe: bool = False,
    verbose: bool = False,
) -> List[File]:
    """Collect the regular files under roots. Per-node failures go to report."""
    return TreeCollector(tree, matcher, report, unsafe=unsafe, verbose=verbose).collect(roots)


def _reason(exc: OSError) -> str:
    return exc.strerror or str(exc)
