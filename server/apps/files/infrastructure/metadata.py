"""Remote path conventions and metadata extraction for files."""

import mimetypes
import os
from pathlib import Path, PurePosixPath
from typing import Final

from django.core.exceptions import ValidationError

_USERS_ROOT: Final = '/users'
_DEFAULT_CONTENT_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_CONTENT_TYPE
    return mime_type


def get_file_size(local_path: str | os.PathLike[str]) -> int:
    """Get size of a local file in bytes."""
    return Path(local_path).stat().st_size


def user_root_path(user_id: int) -> str:
    """Remote root directory of a user, e.g. '/users/7'."""
    return f'{_USERS_ROOT}/{user_id}'


def folder_remote_path(user_id: int, folder_name: str) -> str:
    """Remote directory of a named folder, e.g. '/users/7/invoices'."""
    return f'{user_root_path(user_id)}/{folder_name}'


def folder_local_path(user_id: int, folder_name: str) -> str:
    """Logical local path of a named folder, e.g. './uploads/7/invoices'."""
    return f'./uploads/{user_id}/{folder_name}'


def file_remote_path(directory: str, stored_filename: str) -> str:
    """Remote path of a file placed in ``directory``.

    Args:
        directory: Folder remote path or user root path.
        stored_filename: Name the file is stored under.

    Returns:
        Remote file path, e.g. '/users/7/invoices/a.pdf'.
    """
    return f'{directory}/{stored_filename}'


def validate_path_segment(name: str) -> None:
    """Validate a folder or stored filename is one path segment.

    Args:
        name: Proposed folder name or stored filename.

    Raises:
        ValidationError: If name is empty, a relative marker or nested.
    """
    if not name or not name.strip():
        raise ValidationError('Name cannot be empty')
    if name in {'.', '..'}:
        raise ValidationError(f'Name cannot be {name!r}')
    if '/' in name or '\\' in name:
        raise ValidationError(
            f'Name must be a single path segment: {name!r}',
        )


def validate_remote_path(user_id: int, remote_path: str) -> None:
    """Validate remote path lies inside the user's namespace.

    The path must look like ``/users/{user_id}/...`` with at least one
    component below the user root. This is the check that keeps a
    record from ever pointing outside its owner's directory.

    Args:
        user_id: Owner's user ID.
        remote_path: Proposed remote path.

    Raises:
        ValidationError: If path is outside the user namespace.
    """
    if not remote_path:
        raise ValidationError('Remote path cannot be empty')

    path = PurePosixPath(remote_path)
    if not path.is_absolute():
        raise ValidationError('Remote path must be absolute')
    if '..' in path.parts or '.' in path.parts:
        raise ValidationError('Remote path cannot contain relative markers')

    # ('/', 'users', '<id>', '<name>', ...)
    parts = path.parts
    if len(parts) < 4 or f'/{parts[1]}' != _USERS_ROOT:
        raise ValidationError(
            f'Remote path must be below {_USERS_ROOT}/{{user_id}}/',
        )

    if parts[2] != str(user_id):
        raise ValidationError(
            f'Remote path user ID ({parts[2]}) does not match '
            f'owner ({user_id})',
        )


def is_nested_under(remote_path: str, directory: str) -> bool:
    """Check if remote path is strictly below a remote directory."""
    return PurePosixPath(directory) in PurePosixPath(remote_path).parents
