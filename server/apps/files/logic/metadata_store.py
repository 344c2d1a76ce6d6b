"""Relational metadata collaborator for the storage orchestrators."""

import logging
from typing import Any, Protocol, final

from django.db import transaction

from server.apps.files.models import File, Folder

logger = logging.getLogger(__name__)


class MetadataStore(Protocol):
    """What the orchestrators need from the metadata side."""

    def find_folder(self, folder_id: int, user_id: int) -> Folder | None:
        """Return the user's folder or None."""

    def create_file_record(self, **fields: Any) -> File:
        """Persist a new file record."""

    def find_folder_by_name(self, user_id: int, name: str) -> Folder | None:
        """Return the user's folder with this name or None."""

    def create_folder_record(self, **fields: Any) -> Folder:
        """Persist a new folder record."""

    def find_file_record(self, file_id: int) -> File | None:
        """Return the file record or None."""

    def delete_file_record(self, file_id: int) -> bool:
        """Delete the file record, return whether it existed."""


@final
class DjangoMetadataStore:
    """``MetadataStore`` backed by the Django ORM."""

    def find_folder(self, folder_id: int, user_id: int) -> Folder | None:
        """Get folder by ID, scoped to its owner.

        Args:
            folder_id: Folder ID.
            user_id: Requesting user's ID.

        Returns:
            Folder instance, or None if missing or owned by someone else.
        """
        return Folder.objects.filter(id=folder_id, user_id=user_id).first()

    def create_file_record(self, **fields: Any) -> File:
        """Create file record in a transaction.

        Args:
            fields: ``File`` model field values.

        Returns:
            Created File instance.
        """
        with transaction.atomic():
            file_instance = File.objects.create(**fields)
        logger.info(
            'File record created in database: %s (ID: %d)',
            file_instance.remote_path,
            file_instance.id,
        )
        return file_instance

    def find_folder_by_name(self, user_id: int, name: str) -> Folder | None:
        """Get a user's folder by its name.

        Args:
            user_id: Owner's ID.
            name: Folder name.

        Returns:
            Folder instance or None.
        """
        return Folder.objects.filter(user_id=user_id, name=name).first()

    def create_folder_record(self, **fields: Any) -> Folder:
        """Create folder record in a transaction.

        Args:
            fields: ``Folder`` model field values.

        Returns:
            Created Folder instance.
        """
        with transaction.atomic():
            folder = Folder.objects.create(**fields)
        logger.info(
            'Folder record created in database: %s (ID: %d)',
            folder.remote_path,
            folder.id,
        )
        return folder

    def find_file_record(self, file_id: int) -> File | None:
        """Get file record by ID.

        Args:
            file_id: File ID.

        Returns:
            File instance or None.
        """
        return File.objects.select_related('folder').filter(id=file_id).first()

    def delete_file_record(self, file_id: int) -> bool:
        """Delete file record by ID.

        Args:
            file_id: File ID.

        Returns:
            True if a record was deleted.
        """
        with transaction.atomic():
            deleted, _ = File.objects.filter(id=file_id).delete()
        if deleted:
            logger.info('File record deleted from database: ID=%d', file_id)
        return bool(deleted)
