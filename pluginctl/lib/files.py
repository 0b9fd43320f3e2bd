"""
File helpers shared by the catalog cache.
"""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, mode: int = 0o644) -> None:
    """Atomically replace ``path`` with ``content``.

    Writes to a temp file in the same directory, fsyncs, then renames over the
    target, so a reader sees either the old file or the new one.
    Creates the parent directory if needed. OSError propagates to the caller.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.stem}-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if Path(tmp_path).exists():
            os.unlink(tmp_path)
        raise
    logger.debug(f"Wrote {path}")


def remove_file(path: Path) -> bool:
    """Remove a file. Returns False if it did not exist."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
