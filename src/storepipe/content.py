"""Temporary files for uploading in-memory content.

The file name matters: the API derives the display name and MIME type from
it, so each temp file lives alone in its own fresh directory under the
caller's chosen name. The caller is responsible for cleaning up via
:func:`cleanup_temp_file`.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


def write_temp_file(file_name: str, content: str) -> str:
    """Write *content* to a new temp file called *file_name*.

    Args:
        file_name: Bare file name including extension (e.g. ``"epics.md"``).
        content: Text to write (UTF-8).

    Returns:
        Path to the temporary file (caller must clean up).

    Raises:
        ValueError: If *file_name* contains a directory component.
    """
    if not file_name or os.path.basename(file_name) != file_name:
        raise ValueError(f"Invalid file name for temp file: {file_name!r}")

    directory = tempfile.mkdtemp(prefix="storepipe-")
    path = os.path.join(directory, file_name)
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except Exception:
        cleanup_temp_file(path)
        raise

    logger.debug("Wrote temp file %s (%d bytes)", path, len(content.encode("utf-8")))
    return path


def cleanup_temp_file(path: str | None) -> None:
    """Safely remove a temp file created by :func:`write_temp_file`.

    Handles ``None`` paths and missing files gracefully, and removes the
    containing directory once it is empty.
    """
    if path is None:
        return
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to clean up temp file: %s", path, exc_info=True)
        return
    with contextlib.suppress(OSError):
        os.rmdir(os.path.dirname(path))
