from __future__ import annotations

import contextlib
import gzip
import time
import zlib
from typing import BinaryIO, ContextManager, Optional

from .constants import CODEC_NONE, CODEC_GZIP, DEFAULT_GZIP_LEVEL
from .errors import CodecError


class Codec:
    """Whole-archive stream codec. The encoded archive is one stream, never per-file."""

    def __init__(self, codec_id: int, level: Optional[int] = None, mtime: Optional[int] = None):
        self.codec_id = codec_id
        self.level = level
        self.mtime = mtime

    @classmethod
    def for_gzip(cls, enabled: bool, **kwargs) -> "Codec":
        return cls(CODEC_GZIP if enabled else CODEC_NONE, **kwargs)

    def writer(self, sink: BinaryIO) -> ContextManager[BinaryIO]:
        """Wrap sink so that bytes written through the result are encoded.

        Leaving the context flushes the codec trailer but leaves sink open.
        """
        if self.codec_id == CODEC_NONE:
            return contextlib.nullcontext(sink)
        if self.codec_id == CODEC_GZIP:
            # Empty filename keeps the sink's path out of the gzip header
            return gzip.GzipFile(
                filename="",
                mode="wb",
                fileobj=sink,
                compresslevel=self.level if self.level is not None else DEFAULT_GZIP_LEVEL,
                mtime=self.mtime if self.mtime is not None else int(time.time()),
            )
        raise CodecError(f"unsupported codec id: {self.codec_id}")

    def decompress(self, data: bytes) -> bytes:
        if self.codec_id == CODEC_NONE:
            return data
        if self.codec_id == CODEC_GZIP:
            try:
                return gzip.decompress(data)
            except (OSError, EOFError, zlib.error) as e:
                raise CodecError(f"gunzipping: {e}") from e
        raise CodecError(f"unsupported codec id: {self.codec_id}")
