# Marker line pieces: "-- name --"
MARKER = b"-- "
MARKER_END = b" --"
NEWLINE_MARKER = b"\n" + MARKER

# Archive name meaning stdin/stdout
STDIO_NAME = "-"

# Codec IDs for the whole-archive stream (0=none, 1=gzip)
CODEC_NONE = 0
CODEC_GZIP = 1

DEFAULT_GZIP_LEVEL = 6

# Permissions for archives written by create
ARCHIVE_FILE_MODE = 0o600

# Permissions for extracted files and directories
EXTRACT_FILE_MODE = 0o644
EXTRACT_DIR_MODE = 0o755
