"""
File helpers for documents that are read while being regenerated.
"""

import os
import tempfile


def atomic_write(path: str, data: bytes, mode: int = 0o644) -> None:
    """
    Replace `path` with `data` in a single rename.

    The temp file lives in the target directory so the rename never crosses
    filesystems; readers see either the old or the new document, never a
    partial one.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(path)}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
