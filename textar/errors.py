class TextarError(Exception):
    """Base class for textar-specific errors."""


# Configuration
class ConfigError(TextarError):
    pass


class BadPatternError(TextarError):
    """A glob pattern is malformed (unterminated class, trailing escape)."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid glob {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


# Format/stream related
class MarkerLineError(TextarError):
    pass


class CodecError(TextarError):
    pass


class SinkError(TextarError):
    pass


class SourceError(TextarError):
    pass


# Raised by a Report configured to stop on the first error
class StopOnError(TextarError):
    pass
