"""Database models for files app."""

from pathlib import PurePosixPath
from typing import Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_PATH_MAX_LENGTH: Final = 500
_CONTENT_TYPE_MAX_LENGTH: Final = 255


@final
class Folder(models.Model):
    """Named folder inside a user's remote namespace.

    The remote directory lives at ``/users/{user_id}/{name}`` and is
    created before the record is saved. Every file placed in the folder
    has a remote path nested under ``remote_path``.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    local_path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Logical local path: ./uploads/{user_id}/{name}',
    )

    remote_path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Remote directory: /users/{user_id}/{name}',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        constraints = [
            # One remote directory per user and name
            models.UniqueConstraint(
                fields=['user', 'name'],
                name='folders_user_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.remote_path}'


@final
class File(models.Model):
    """File whose bytes live on the remote FTP store.

    ``remote_path`` is the authoritative location of the bytes and
    always starts with ``/users/{user_id}/``. ``local_path`` only
    records where the upload was staged and is never read back.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    stored_filename = models.CharField(max_length=_NAME_MAX_LENGTH)

    original_filename = models.CharField(max_length=_NAME_MAX_LENGTH)

    local_path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        blank=True,
        default='',
    )

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    content_type = models.CharField(
        max_length=_CONTENT_TYPE_MAX_LENGTH,
        default='application/octet-stream',
    )

    remote_path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Path on the remote store: /users/{user_id}/.../name',
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at']

        indexes = [
            # Optimize "my files" listing
            models.Index(
                fields=['user', '-uploaded_at'],
                name='files_user_recent_idx',
            ),
            models.Index(
                fields=['remote_path'],
                name='files_remote_path_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='files_size_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.remote_path}'

    def get_remote_folder(self) -> str:
        """Remote directory holding the file.

        Example: '/users/7/invoices/a.pdf' -> '/users/7/invoices'

        Returns:
            Parent directory of ``remote_path``.
        """
        return str(PurePosixPath(self.remote_path).parent)

    def get_extension(self) -> str:
        """Extract file extension of the original filename.

        Returns:
            Extension without dot (lowercase).
        """
        extension = PurePosixPath(self.original_filename).suffix
        return extension.lstrip('.').lower()
