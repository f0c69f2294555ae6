from __future__ import annotations

import sys
from typing import List, Optional, TextIO

from .errors import StopOnError


class Report:
    """Per-operation record of non-fatal errors.

    Each top-level Archiver operation returns one. Errors are printed as they
    happen and kept so the caller can decide the exit status afterwards.
    """

    def __init__(self, stream: Optional[TextIO] = None, stop_on_error: bool = False):
        self.stream = stream
        self.stop_on_error = stop_on_error
        self.errors: List[str] = []
        # Requested paths that matched nothing during list/extract
        self.unmatched: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, msg: str) -> None:
        self.errors.append(msg)
        self.note(f"Error: {msg}")
        if self.stop_on_error:
            raise StopOnError(msg)

    def note(self, msg: str) -> None:
        print(msg, file=self.stream or sys.stderr)
