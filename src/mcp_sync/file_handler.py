"""File handler module: path resolution, encoding-aware read, atomic write.

Provides the file I/O infrastructure for configuration documents.  The
sync engine itself never calls into this module; only the document layer
(``mcp_sync.stores``) and the CLI do.
"""

import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# Path Resolution
# =============================================================================


def resolve_path(path_str: str) -> Path:
    """Expand ``~`` and environment variables, then resolve *path_str*.

    Args:
        path_str: Path string, possibly relative or user-relative.

    Returns:
        Absolute resolved Path (the file need not exist).

    Raises:
        ValueError: If *path_str* is empty or points to a directory.
    """
    if not path_str or not path_str.strip():
        raise ValueError("Path cannot be empty")
    path = Path(os.path.expandvars(path_str.strip())).expanduser()
    resolved = path.resolve()
    if resolved.is_dir():
        raise ValueError(f"Path is a directory, not a file: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    # A UTF-8 BOM is common in files saved by Windows editors.
    if raw.startswith(b"\xef\xbb\xbf"):
        return (raw[3:].decode("utf-8", errors="replace"), "utf-8-sig")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Atomically write content to a file, creating parent directories.

    The content is written to a temporary file in the same directory and
    moved into place with ``os.replace()``, so readers never observe a
    partially written document.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


def backup_file(path: Path, suffix: str = ".bak") -> Path | None:
    """Copy *path* next to itself with *suffix* appended.

    Args:
        path: File to back up.
        suffix: Suffix appended to the file name.

    Returns:
        Path of the backup, or ``None`` if *path* does not exist.
    """
    if not path.exists():
        return None
    backup = path.with_name(path.name + suffix)
    shutil.copy2(path, backup)
    return backup
