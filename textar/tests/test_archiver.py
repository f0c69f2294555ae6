from __future__ import annotations

import gzip
import io
import os
import re
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from textar import txtar
from textar.archiver import Archiver
from textar.errors import CodecError, ConfigError, MarkerLineError, SinkError, SourceError, StopOnError
from textar.fstree import MemoryFileTree
from textar.txtar import Archive, File


_FIXTURE = {
    "a.txt": b"hi\n",
    "sub/b.txt": b"bye\n",
    "sub/skip.log": b"noise\n",
}


def _write_archive(path: Path, files, comment: bytes = b"", gz: bool = False) -> None:
    data = txtar.format(Archive(comment, [File(n, d) for n, d in files]))
    path.write_bytes(gzip.compress(data) if gz else data)


class ArchiverTestCase(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)
        self.stderr = io.StringIO()

    def archiver(self, **kw) -> Archiver:
        kw.setdefault("stderr", self.stderr)
        return Archiver(**kw)


class CreateTests(ArchiverTestCase):
    def test_create_scenario(self):
        out = self.root / "got.txtar"
        a = self.archiver(
            comment="demo",
            filename=str(out),
            paths=["a.txt", "sub/b.txt"],
            tree=MemoryFileTree(_FIXTURE),
        )
        report = a.create()
        self.assertTrue(report.ok)
        self.assertEqual(out.read_bytes(), b"demo\n-- a.txt --\nhi\n-- sub/b.txt --\nbye\n")
        ar = txtar.parse(out.read_bytes())
        self.assertEqual(ar.comment, b"demo\n")
        self.assertEqual(ar.files, [File("a.txt", b"hi\n"), File("sub/b.txt", b"bye\n")])

    def test_create_gzip_matches_plain(self):
        plain = self.root / "plain.txtar"
        zipped = self.root / "zipped.txtar.gz"
        for fn, gz in ((plain, False), (zipped, True)):
            self.archiver(
                comment="demo",
                filename=str(fn),
                gzip=gz,
                paths=["."],
                tree=MemoryFileTree(_FIXTURE),
            ).create()
        self.assertEqual(gzip.decompress(zipped.read_bytes()), plain.read_bytes())

    def test_create_to_stdout(self):
        sink = io.BytesIO()
        a = self.archiver(paths=["a.txt"], tree=MemoryFileTree(_FIXTURE), stdout=sink)
        self.assertTrue(a.create().ok)
        self.assertEqual(sink.getvalue(), b"-- a.txt --\nhi\n")

    def test_duplicate_path_keeps_final_position(self):
        sink = io.BytesIO()
        tree = MemoryFileTree(_FIXTURE)
        self.archiver(paths=["a.txt", "sub", "a.txt"], tree=tree, stdout=sink).create()
        names = [f.name for f in txtar.parse(sink.getvalue()).files]
        self.assertEqual(names, ["sub/b.txt", "sub/skip.log", "a.txt"])

    def test_exclusions_apply_on_create(self):
        sink = io.BytesIO()
        a = self.archiver(
            paths=[".", "sub/skip.log"],
            exclude_globs=["*/*.log"],
            tree=MemoryFileTree(_FIXTURE),
            stdout=sink,
        )
        a.create()
        names = [f.name for f in txtar.parse(sink.getvalue()).files]
        self.assertEqual(names, ["a.txt", "sub/b.txt"])

    def test_comment_with_marker_is_refused_before_writing(self):
        out = self.root / "never.txtar"
        a = self.archiver(comment="x\n-- evil --\n", filename=str(out), paths=["a.txt"], tree=MemoryFileTree(_FIXTURE))
        with self.assertRaises(MarkerLineError):
            a.create()
        self.assertFalse(out.exists())

    def test_missing_files_are_reported_not_fatal(self):
        out = self.root / "partial.txtar"
        a = self.archiver(filename=str(out), paths=["nope", "a.txt"], tree=MemoryFileTree(_FIXTURE))
        report = a.create()
        self.assertFalse(report.ok)
        self.assertEqual(len(report.errors), 1)
        self.assertIn("nope", report.errors[0])
        self.assertEqual(txtar.parse(out.read_bytes()).files, [File("a.txt", b"hi\n")])

    def test_stop_on_error(self):
        out = self.root / "stopped.txtar"
        a = self.archiver(filename=str(out), paths=["nope", "a.txt"], tree=MemoryFileTree(_FIXTURE), stop_on_error=True)
        with self.assertRaises(StopOnError):
            a.create()
        self.assertFalse(out.exists())

    def test_missing_sink_directory(self):
        out = self.root / "missing-dir" / "x.txtar"
        a = self.archiver(filename=str(out), paths=["a.txt"], tree=MemoryFileTree(_FIXTURE))
        with self.assertRaises(SinkError):
            a.create()
        self.assertFalse(out.parent.exists())

    def test_failed_swap_keeps_previous_archive(self):
        existing = self.root / "old.txtar"
        existing.write_bytes(b"-- old --\nold\n")
        a = self.archiver(filename=str(existing), paths=["a.txt"], tree=MemoryFileTree(_FIXTURE))
        with mock.patch("textar.archiver.os.replace", side_effect=OSError(28, "No space left on device")):
            with self.assertRaises(SinkError):
                a.create()
        self.assertEqual(existing.read_bytes(), b"-- old --\nold\n")
        self.assertEqual(sorted(p.name for p in self.root.iterdir()), ["old.txtar"])

    def test_replaces_existing_archive(self):
        existing = self.root / "old.txtar"
        existing.write_bytes(b"-- old --\nold\n")
        self.archiver(filename=str(existing), paths=["a.txt"], tree=MemoryFileTree(_FIXTURE)).create()
        self.assertEqual(existing.read_bytes(), b"-- a.txt --\nhi\n")
        self.assertEqual(existing.stat().st_mode & 0o777, 0o600)
        self.assertEqual(sorted(p.name for p in self.root.iterdir()), ["old.txtar"])


class ListTests(ArchiverTestCase):
    def setUp(self):
        super().setUp()
        self.archive = self.root / "in.txtar"
        _write_archive(
            self.archive,
            [("a.txt", b"hi\n"), ("sub/b.txt", b"bye\n"), ("sub/skip.log", b"noise\n")],
            comment=b"demo",
        )

    def _list(self, **kw):
        out = io.StringIO()
        kw.setdefault("filename", str(self.archive))
        report = self.archiver(**kw).list(out)
        return report, out.getvalue()

    def test_list_names(self):
        report, out = self._list()
        self.assertTrue(report.ok)
        self.assertEqual(out, "a.txt\nsub/b.txt\nsub/skip.log\n")

    def test_list_verbose(self):
        _, out = self._list(verbose=True)
        self.assertEqual(out, "demo\n\n3\ta.txt\n4\tsub/b.txt\n6\tsub/skip.log\n")

    def test_list_verbose_without_comment(self):
        _write_archive(self.archive, [("a.txt", b"hi\n")])
        _, out = self._list(verbose=True)
        self.assertEqual(out, "-No Comment-\n\n3\ta.txt\n")

    def test_list_requested_globs(self):
        report, out = self._list(paths=["sub/*.txt"])
        self.assertTrue(report.ok)
        self.assertEqual(out, "sub/b.txt\n")

    def test_unmatched_paths_are_reported(self):
        report, out = self._list(paths=["a.txt", "absent.txt"])
        self.assertEqual(out, "a.txt\n")
        self.assertEqual(report.unmatched, ["absent.txt"])
        self.assertEqual(len(report.errors), 1)
        self.assertIn("absent.txt", report.errors[0])

    def test_exclusion_beats_request(self):
        report, out = self._list(paths=["sub/skip.log", "a.txt"], exclude_regexes=[re.compile(r"\.log$")])
        self.assertEqual(out, "a.txt\n")
        self.assertEqual(report.unmatched, ["sub/skip.log"])

    def test_bad_requested_glob_is_reported_once(self):
        report, out = self._list(paths=["[bad", "a.txt"])
        self.assertEqual(out, "a.txt\n")
        self.assertEqual(len(report.errors), 1)
        self.assertIn("[bad", report.errors[0])

    def test_list_gzip(self):
        _write_archive(self.archive, [("a.txt", b"hi\n")], gz=True)
        _, out = self._list(gzip=True)
        self.assertEqual(out, "a.txt\n")

    def test_gzip_flag_on_plain_archive_fails(self):
        with self.assertRaises(CodecError):
            self._list(gzip=True)

    def test_list_from_stdin(self):
        a = self.archiver(stdin=io.BytesIO(self.archive.read_bytes()))
        out = io.StringIO()
        a.list(out)
        self.assertEqual(out.getvalue(), "a.txt\nsub/b.txt\nsub/skip.log\n")

    def test_list_non_utf8_names(self):
        raw = b"-- caf\xe9.txt --\nx\n"
        sink = io.BytesIO()
        out = io.TextIOWrapper(sink, encoding="utf-8")
        report = self.archiver(stdin=io.BytesIO(raw)).list(out)
        self.assertTrue(report.ok)
        self.assertEqual(sink.getvalue(), b"caf\xe9.txt\n")

        text = io.StringIO()
        self.archiver(stdin=io.BytesIO(raw), verbose=True).list(text)
        self.assertEqual(text.getvalue(), "-No Comment-\n\n2\tcaf\\xe9.txt\n")

    def test_missing_archive_is_fatal(self):
        with self.assertRaises(SourceError):
            self._list(filename=str(self.root / "nope.txtar"))


class ExtractTests(ArchiverTestCase):
    def setUp(self):
        super().setUp()
        self.archive = self.root / "in.txtar"
        self.dest = self.root / "out"
        self.dest.mkdir()

    def _extract(self, files, **kw):
        _write_archive(self.archive, files)
        out = io.StringIO()
        kw.setdefault("filename", str(self.archive))
        report = self.archiver(**kw).extract(str(self.dest), out)
        return report, out.getvalue()

    def _tree(self):
        return sorted(
            str(p.relative_to(self.dest)).replace(os.sep, "/") for p in self.dest.rglob("*") if p.is_file()
        )

    def test_extract_writes_files(self):
        report, out = self._extract([("a.txt", b"hi\n"), ("sub/b.txt", b"bye\n")])
        self.assertTrue(report.ok)
        self.assertEqual(out, "")
        self.assertEqual(self._tree(), ["a.txt", "sub/b.txt"])
        self.assertEqual((self.dest / "sub" / "b.txt").read_bytes(), b"bye\n")

    def test_extract_verbose_prints_names(self):
        _, out = self._extract([("a.txt", b"hi\n")], verbose=True)
        self.assertEqual(out, "-No Comment-\n\na.txt\n")

    def test_traversal_is_neutralized(self):
        report, _ = self._extract([("../../etc/passwd", b"root:x:0:0\n"), ("/abs/file", b"abs\n")])
        self.assertTrue(report.ok)
        self.assertEqual(self._tree(), ["abs/file", "etc/passwd"])
        self.assertFalse((self.root / "etc").exists())
        self.assertIn("sanitized", self.stderr.getvalue())

    def test_unsafe_keeps_names(self):
        report, _ = self._extract([("../escaped.txt", b"out\n")], unsafe_paths=True)
        self.assertTrue(report.ok)
        self.assertEqual((self.root / "escaped.txt").read_bytes(), b"out\n")

    def test_unsafe_absolute_name_without_dest(self):
        target = self.root / "elsewhere" / "abs.txt"
        _write_archive(self.archive, [(target.as_posix(), b"abs\n")])
        report = self.archiver(filename=str(self.archive), unsafe_paths=True).extract("", io.StringIO())
        self.assertTrue(report.ok)
        self.assertEqual(target.read_bytes(), b"abs\n")
        self.assertEqual(self._tree(), [])

    def test_unsafe_absolute_name_with_dest_stays_inside(self):
        report, _ = self._extract([("/abs/file", b"abs\n")], unsafe_paths=True)
        self.assertTrue(report.ok)
        self.assertEqual(self._tree(), ["abs/file"])

    def test_extract_respects_filters(self):
        report, _ = self._extract(
            [("keep.txt", b"k\n"), ("drop.tmp", b"d\n"), ("dir/keep2.txt", b"k2\n")],
            paths=["*.txt", "dir/*", "gone"],
            exclude_globs=["*.tmp"],
        )
        self.assertEqual(self._tree(), ["dir/keep2.txt", "keep.txt"])
        self.assertEqual(report.unmatched, ["gone"])

    def test_write_failures_are_reported_and_loop_continues(self):
        # A file where a directory is needed blocks the first entry only
        (self.dest / "blocker").write_bytes(b"")
        report, _ = self._extract([("blocker/x", b"x\n"), ("ok.txt", b"ok\n")])
        self.assertFalse(report.ok)
        self.assertEqual(len(report.errors), 1)
        self.assertEqual((self.dest / "ok.txt").read_bytes(), b"ok\n")

    def test_roundtrip_through_disk(self):
        src = self.root / "src"
        (src / "nested").mkdir(parents=True)
        (src / "one.txt").write_bytes(b"1\n")
        (src / "nested" / "two.txt").write_bytes(b"2\n")
        cwd = os.getcwd()
        os.chdir(src)
        try:
            self.archiver(filename=str(self.archive), gzip=True, paths=["."], comment="rt").create()
        finally:
            os.chdir(cwd)
        report = self.archiver(filename=str(self.archive), gzip=True).extract(str(self.dest), io.StringIO())
        self.assertTrue(report.ok)
        self.assertEqual(self._tree(), ["nested/two.txt", "one.txt"])
        self.assertEqual((self.dest / "nested" / "two.txt").read_bytes(), b"2\n")


class PathListTests(ArchiverTestCase):
    def test_add_paths_from_file(self):
        cases = {
            "only_file": ([], "foo\n\tbar\n\n  tridge  \n", ["foo", "bar", "tridge"]),
            "no_file": (["foo", "bar"], "", ["foo", "bar"]),
            "file_and_existing": (["foo", "bar", "baaz"], "foo\nbar\n\ntridge\n", ["foo", "bar", "baaz", "tridge"]),
            "nothing": ([], "", []),
        }
        for name, (have, content, want) in cases.items():
            with self.subTest(name=name):
                fn = self.root / f"{name}.paths"
                fn.write_text(content, encoding="utf-8")
                a = self.archiver(paths=have)
                a.add_paths_from_file(str(fn))
                self.assertEqual(a.paths, want)

    def test_unreadable_path_file(self):
        with self.assertRaises(ConfigError):
            self.archiver().add_paths_from_file(str(self.root / "absent"))


if __name__ == "__main__":
    unittest.main()
