"""Local staging and temporary file handling."""

import logging
import os
import secrets
import time
from pathlib import Path, PurePosixPath
from typing import Final

_TOKEN_BYTES: Final = 4
_FALLBACK_NAME: Final = 'file'

logger = logging.getLogger(__name__)


def allocate_temp_path(
    temp_dir: str | os.PathLike[str],
    prefix: str,
    filename: str,
) -> Path:
    """Build a unique temporary path inside ``temp_dir``.

    The name combines prefix, a millisecond timestamp, a random token
    and the base name of ``filename``, e.g.
    ``download_12_1718000000000_9f2c41aa_report.pdf``. The directory is
    created if missing; the file itself is not.

    Args:
        temp_dir: Directory for temporary files.
        prefix: Name prefix, usually identifying the record.
        filename: Filename to keep as suffix for readability.

    Returns:
        Path that no concurrent caller was handed.
    """
    directory = Path(temp_dir)
    directory.mkdir(parents=True, exist_ok=True)

    safe_name = PurePosixPath(filename.replace('\\', '/')).name
    timestamp = time.time_ns() // 1_000_000
    token = secrets.token_hex(_TOKEN_BYTES)
    return directory / f'{prefix}_{timestamp}_{token}_{safe_name or _FALLBACK_NAME}'


def discard_local_file(path: str | os.PathLike[str] | None) -> None:
    """Delete a local staging or temporary file, best effort.

    Failures are logged and never raised, so cleanup cannot mask the
    result of the operation that created the file.

    Args:
        path: File to delete; None or a missing file is a no-op.
    """
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        logger.exception('Failed to delete local file: %s', path)
    else:
        logger.debug('Deleted local file: %s', path)
