from __future__ import annotations

import argparse
import os
import sys
from typing import List

from textar.archiver import Archiver
from textar.constants import STDIO_NAME
from textar.errors import ConfigError, StopOnError, TextarError
from textar.matcher import compile_regex


def cmd_create(archiver: Archiver) -> bool:
    """Create an archive from archiver.paths.

    Returns:
        True when every file was added, False if any error was reported.
    """
    return archiver.create().ok


def cmd_list(archiver: Archiver) -> bool:
    """List archive entries on stdout."""
    return archiver.list().ok


def cmd_extract(archiver: Archiver, *, outdir: str = "") -> bool:
    """Extract archive entries under outdir ("" for the current directory)."""
    return archiver.extract(outdir).ok


def build_archiver(args: argparse.Namespace) -> Archiver:
    """Turn parsed arguments into a fully configured Archiver.

    Path lists are read and the archive path made absolute before any -C
    directory change, so both stay relative to where we were started.

    Raises:
        ConfigError: On a bad regex, unreadable path list or unusable -C directory.
    """
    regexes = [compile_regex(r) for r in args.exclude_regex]
    archiver = Archiver(
        comment=args.comment,
        filename=None if args.file == STDIO_NAME else args.file,
        gzip=args.gzip,
        paths=args.paths,
        unsafe_paths=args.unsafe,
        verbose=args.verbose,
        exclude_globs=args.exclude_glob,
        exclude_regexes=regexes,
        stop_on_error=args.stop_on_error,
    )
    if args.list_file:
        archiver.add_paths_from_file(args.list_file)

    if args.directory:
        if not archiver.uses_stdio():
            archiver.filename = os.path.abspath(archiver.filename)
        try:
            os.chdir(args.directory)
        except OSError as exc:
            raise ConfigError(f"unable to chdir to {args.directory}: {exc}") from exc
    return archiver


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="textar",
        usage="%(prog)s -c|-x|-t [options] [files...]",
        description=(
            "Tar-like txtar utility. Creates, extracts, and lists the contents "
            "of archives in txtar format."
        ),
        epilog=(
            "Files to be added or extracted can be given as arguments, in a file "
            "given with -I, or both. When listing or extracting they are globs "
            "matched against archive paths."
        ),
    )
    verbs = ap.add_mutually_exclusive_group(required=True)
    verbs.add_argument("-c", dest="create", action="store_true", help="Create an archive")
    verbs.add_argument("-x", dest="extract", action="store_true", help="Extract archive contents")
    verbs.add_argument("-t", dest="list", action="store_true", help="List archive contents")

    ap.add_argument("-f", dest="file", default=STDIO_NAME, metavar="FILE",
                    help=f"Name of archive file or {STDIO_NAME} for stdin/out (default)")
    ap.add_argument("-C", dest="directory", metavar="DIR", help="Change to DIR before adding or extracting files")
    ap.add_argument("--comment", default="", help="Set archive comment, with -c")
    ap.add_argument("-I", dest="list_file", metavar="FILE", help="File containing names of files to add or extract, one per line")
    ap.add_argument("-P", dest="unsafe", action="store_true", help="Do not sanitize filenames")
    ap.add_argument("--exclude-glob", action="append", default=[], metavar="GLOB",
                    help="Do not add, list or extract files matching GLOB (repeatable)")
    ap.add_argument("--exclude-regex", action="append", default=[], metavar="REGEX",
                    help="Do not add, list or extract files matching REGEX (repeatable)")
    ap.add_argument("-v", dest="verbose", action="store_true", help="Enable verbose output")
    ap.add_argument("-z", dest="gzip", action="store_true", help="(De)compress the archive with gzip")
    ap.add_argument("-e", dest="stop_on_error", action="store_true", help="Stop after the first error")
    ap.add_argument("paths", nargs="*", help="Files to add, or globs of files to list or extract")

    args = ap.parse_args(argv)
    if args.comment and not args.create:
        print("Warning: --comment is only used with -c", file=sys.stderr)
    try:
        archiver = build_archiver(args)
        if args.create:
            ok = cmd_create(archiver)
        elif args.extract:
            ok = cmd_extract(archiver)
        else:
            ok = cmd_list(archiver)
    except StopOnError:
        # Already reported
        sys.exit(1)
    except (TextarError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
