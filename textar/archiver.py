from __future__ import annotations

import os
import sys
import tempfile
from typing import BinaryIO, Dict, Iterable, List, Optional, Pattern, TextIO, Union

from . import txtar
from .codec import Codec
from .collect import collect
from .constants import ARCHIVE_FILE_MODE, EXTRACT_DIR_MODE, EXTRACT_FILE_MODE, STDIO_NAME
from .errors import BadPatternError, ConfigError, MarkerLineError, SinkError, SourceError, TextarError
from .fstree import FileTree, OSFileTree
from .matcher import Matcher, glob_match
from .pathutil import to_host_path
from .report import Report


class Archiver:
    """Creates, lists and extracts txtar archives.

    One Archiver is configured once and then runs a single operation. Each
    operation returns a Report holding the non-fatal errors it ran into;
    fatal problems (bad comment, unusable archive file, undecodable stream)
    raise a TextarError instead.

    Args:
        comment: Archive comment, used by create.
        filename: Archive path. None or "-" means stdin/stdout.
        gzip: Compress (create) or decompress (list/extract) the archive stream.
        paths: For create, the roots to collect. For list/extract, globs an
            entry's host path must match to be handled (empty means all).
        unsafe_paths: Skip path safening in both directions.
        verbose: Print collected names, extracted names, sizes and the comment.
        exclude_globs: Globs for paths never to add, list or extract.
        exclude_regexes: Regexes (strings or compiled) for the same.
        stop_on_error: Abort on the first reported error.
        tree: File tree walked by create. Defaults to the host filesystem.
        stdin, stdout: Binary streams used when filename is stdio.
        stderr: Text stream for errors and notes.
    """

    def __init__(
        self,
        comment: str = "",
        filename: Optional[str] = None,
        gzip: bool = False,
        paths: Optional[Iterable[str]] = None,
        unsafe_paths: bool = False,
        verbose: bool = False,
        exclude_globs: Optional[Iterable[str]] = None,
        exclude_regexes: Optional[Iterable[Union[str, Pattern[str]]]] = None,
        *,
        stop_on_error: bool = False,
        tree: Optional[FileTree] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self.comment = comment
        self.filename = filename
        self.gzip = gzip
        self.paths: List[str] = list(paths or [])
        self.unsafe_paths = unsafe_paths
        self.verbose = verbose
        self.matcher = Matcher(exclude_globs, exclude_regexes)
        self.stop_on_error = stop_on_error
        self.tree: FileTree = tree if tree is not None else OSFileTree()
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr

    # -------- Configuration --------

    def add_paths_from_file(self, fn: str) -> None:
        """Append the paths listed one per line in fn, skipping blanks and duplicates.

        Raises:
            ConfigError: If the file cannot be read.
        """
        try:
            with open(fn, "r", encoding="utf-8") as fh:
                lines = fh.read().splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"reading path list {fn}: {exc}") from exc
        seen = set(self.paths)
        for line in lines:
            p = line.strip()
            if not p or p in seen:
                continue
            seen.add(p)
            self.paths.append(p)

    def uses_stdio(self) -> bool:
        return self.filename is None or self.filename in ("", STDIO_NAME)

    # -------- Create --------

    def create(self) -> Report:
        """Collect self.paths into an archive and write it out.

        File archives are written to a temporary file next to the destination
        and renamed into place only once fully written.

        Raises:
            MarkerLineError: If the comment contains a marker line.
            SinkError: If the archive cannot be written.
        """
        report = self._new_report()
        comment = self.comment.encode("utf-8")
        if txtar.has_marker_line(comment):
            raise MarkerLineError("comment cannot contain a txtar marker line")
        files = collect(
            self.paths,
            self.tree,
            self.matcher,
            report,
            unsafe=self.unsafe_paths,
            verbose=self.verbose,
        )
        data = txtar.format(txtar.Archive(comment=comment, files=files))
        self._write_archive(data)
        return report

    def _write_archive(self, data: bytes) -> None:
        codec = Codec.for_gzip(self.gzip)
        if self.uses_stdio():
            out = self.stdout or sys.stdout.buffer
            try:
                with codec.writer(out) as w:
                    w.write(data)
                out.flush()
            except OSError as exc:
                raise SinkError(f"writing archive: {exc}") from exc
            return

        dest = os.path.abspath(self.filename)
        try:
            fd, tmp = tempfile.mkstemp(prefix=".textar-", suffix=".tmp", dir=os.path.dirname(dest))
        except OSError as exc:
            raise SinkError(f"creating archive file {self.filename}: {exc}") from exc
        try:
            with os.fdopen(fd, "wb") as fh:
                with codec.writer(fh) as w:
                    w.write(data)
            os.chmod(tmp, ARCHIVE_FILE_MODE)
            os.replace(tmp, dest)
        except (OSError, TextarError) as exc:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            if isinstance(exc, TextarError):
                raise
            raise SinkError(f"writing archive {self.filename}: {exc}") from exc

    # -------- List / Extract --------

    def list(self, out: Optional[TextIO] = None) -> Report:
        """Print the names (verbose: sizes and names) of the selected entries."""
        return self._list_or_extract(out, None)

    def extract(self, dest: str = "", out: Optional[TextIO] = None) -> Report:
        """Write the selected entries under dest (verbose: print their names).

        An empty dest means the current directory. With unsafe_paths an
        absolute entry name is then written at that absolute path.
        """
        return self._list_or_extract(out, dest)

    def _list_or_extract(self, out: Optional[TextIO], dest: Optional[str]) -> Report:
        report = self._new_report()
        out = out or sys.stdout
        data = Codec.for_gzip(self.gzip).decompress(self._read_archive())
        archive = txtar.parse(data)

        if self.verbose:
            if archive.comment:
                out.write(archive.comment.decode("utf-8", errors="replace") + "\n")
            else:
                out.write("-No Comment-\n\n")

        wanted = self._requested_globs(report)
        for f in archive.files:
            self._handle_entry(f, out, dest, wanted, report)

        missing = [p for p, hit in wanted.items() if not hit]
        if missing:
            report.unmatched = missing
            report.error("The following files were not found:\n" + "".join(f"\t{p}\n" for p in missing).rstrip("\n"))
        return report

    def _requested_globs(self, report: Report) -> Dict[str, bool]:
        """Map each usable requested glob to whether it matched an entry yet."""
        wanted: Dict[str, bool] = {}
        for p in self.paths:
            try:
                glob_match(p, "")
            except BadPatternError as exc:
                report.error(str(exc))
                continue
            wanted[p] = False
        return wanted

    def _handle_entry(
        self,
        f: txtar.File,
        out: TextIO,
        dest: Optional[str],
        wanted: Dict[str, bool],
        report: Report,
    ) -> None:
        hn = to_host_path(f.name, self.unsafe_paths)
        if hn != to_host_path(f.name, unsafe=True):
            report.note(f"Note: sanitized {f.name!r} to {hn!r}")

        try:
            if self.matcher.is_excluded(hn):
                return
        except BadPatternError as exc:
            report.error(f"checking if {hn} is excluded: {exc}")
            return

        if self.paths:
            found = False
            for g in wanted:
                if glob_match(g, hn):
                    wanted[g] = True
                    found = True
            if not found:
                return

        if dest is not None and not self._write_entry(f, dest, hn, report):
            return

        if dest is None and self.verbose:
            _write_line(out, f"{len(f.data)}\t{hn}\n")
        elif dest is None or self.verbose:
            _write_line(out, f"{hn}\n")

    def _write_entry(self, f: txtar.File, dest: str, hn: str, report: Report) -> bool:
        # Joined textually: an absolute unsafe name stays under a given dest
        fn = os.path.normpath(dest + os.sep + hn) if dest else os.path.normpath(hn)
        dn = os.path.dirname(fn)
        try:
            os.makedirs(dn or ".", mode=EXTRACT_DIR_MODE, exist_ok=True)
        except OSError as exc:
            report.error(f"creating directory {dn}: {exc}")
            return False
        try:
            fd = os.open(fn, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, EXTRACT_FILE_MODE)
            with os.fdopen(fd, "wb") as fh:
                fh.write(f.data)
        except OSError as exc:
            report.error(f"writing {hn}: {exc}")
            return False
        return True

    def _read_archive(self) -> bytes:
        if self.uses_stdio():
            src = self.stdin or sys.stdin.buffer
            try:
                return src.read()
            except OSError as exc:
                raise SourceError(f"reading archive: {exc}") from exc
        try:
            with open(self.filename, "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise SourceError(f"reading {self.filename}: {exc}") from exc

    def _new_report(self) -> Report:
        return Report(stream=self.stderr, stop_on_error=self.stop_on_error)


def _write_line(out: TextIO, line: str) -> None:
    """Write line to out, passing undecodable name bytes through unchanged.

    Names that were not valid UTF-8 in the archive carry surrogate escapes.
    Text streams backed by a binary buffer get the original bytes back;
    anything else gets them backslash-escaped.
    """
    raw = line.encode("utf-8", errors="surrogateescape")
    buf = getattr(out, "buffer", None)
    if buf is not None:
        out.flush()
        buf.write(raw)
        buf.flush()
    else:
        out.write(raw.decode("utf-8", errors="backslashreplace"))
