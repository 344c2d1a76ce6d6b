"""Business logic for uploading staged files to the remote store."""

import logging
import os
from dataclasses import dataclass
from typing import final

from django.core.exceptions import ValidationError

from server.apps.files.exceptions import (
    NotFoundError,
    RemoteConnectionError,
    RemoteOperationError,
    TransferError,
)
from server.apps.files.infrastructure.local_files import discard_local_file
from server.apps.files.infrastructure.metadata import (
    detect_mime_type,
    file_remote_path,
    get_file_size,
    is_nested_under,
    user_root_path,
    validate_path_segment,
    validate_remote_path,
)
from server.apps.files.infrastructure.remote_store import RemoteStoreClient
from server.apps.files.logic.metadata_store import (
    DjangoMetadataStore,
    MetadataStore,
)
from server.apps.files.logic.provisioning import DirectoryProvisioner
from server.apps.files.models import File, Folder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StagedFile:
    """Uploaded file already written to local disk by the web layer.

    ``stored_filename`` is trusted to be collision resistant; the
    orchestrator never renames, so the last write to a path wins.
    ``size_bytes`` is only checked against the file on disk, the
    recorded size is always measured.
    """

    local_path: str | os.PathLike[str]
    stored_filename: str
    original_filename: str
    content_type: str | None = None
    size_bytes: int | None = None


@final
class UploadOrchestrator:
    """Moves staged files to the remote store and records them.

    Order of effects: folder lookup, directory provisioning, byte
    transfer, metadata write. A record is only written after the remote
    store accepted the bytes. The staging file is removed afterwards
    whatever the outcome.
    """

    def __init__(
        self,
        client: RemoteStoreClient,
        metadata: MetadataStore | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            client: Remote store client.
            metadata: Metadata collaborator, Django ORM by default.
        """
        self._client = client
        self._metadata = metadata or DjangoMetadataStore()
        self._provisioner = DirectoryProvisioner(client)

    def upload(
        self,
        user_id: int,
        folder_id: int | None,
        staged_file: StagedFile,
    ) -> File:
        """Upload staged file for a user, optionally into a folder.

        Args:
            user_id: Owner of the file.
            folder_id: Target folder ID, or None for the user root.
            staged_file: Local file to upload.

        Returns:
            Created File record.

        Raises:
            NotFoundError: If the folder is missing or not the user's.
            ValidationError: If the destination leaves the user namespace.
            RemoteConnectionError: If directories cannot be provisioned.
            RemoteOperationError: If directories cannot be provisioned.
            TransferError: If the bytes could not be uploaded.
        """
        try:
            return self._upload(user_id, folder_id, staged_file)
        finally:
            discard_local_file(staged_file.local_path)

    def _upload(
        self,
        user_id: int,
        folder_id: int | None,
        staged_file: StagedFile,
    ) -> File:
        validate_path_segment(staged_file.stored_filename)

        folder = None
        if folder_id is not None:
            folder = self._metadata.find_folder(folder_id, user_id)
            if folder is None:
                logger.warning(
                    'Folder not found for upload: ID=%d, user=%d',
                    folder_id,
                    user_id,
                )
                raise NotFoundError(
                    f'Folder {folder_id} not found or does not belong '
                    f'to user {user_id}',
                )

        directory = self._provision(user_id, folder)
        remote_path = file_remote_path(directory, staged_file.stored_filename)
        validate_remote_path(user_id, remote_path)

        size_bytes = self._transfer(staged_file, remote_path)

        try:
            return self._metadata.create_file_record(
                user_id=user_id,
                folder=folder,
                stored_filename=staged_file.stored_filename,
                original_filename=staged_file.original_filename,
                local_path=str(staged_file.local_path),
                size_bytes=size_bytes,
                content_type=(
                    staged_file.content_type
                    or detect_mime_type(staged_file.original_filename)
                ),
                remote_path=remote_path,
            )
        except Exception:
            # No rollback: the remote object stays until reconciliation
            logger.exception(
                'Database write failed after upload, orphaned remote file: %s',
                remote_path,
            )
            raise

    def _provision(self, user_id: int, folder: Folder | None) -> str:
        user_root = self._provisioner.ensure_user_root(user_id)
        if folder is None:
            return user_root

        if not is_nested_under(folder.remote_path, user_root_path(user_id)):
            raise ValidationError(
                f'Folder remote path {folder.remote_path} is outside '
                f'the namespace of user {user_id}',
            )
        return self._provisioner.ensure_directory(folder.remote_path)

    def _transfer(self, staged_file: StagedFile, remote_path: str) -> int:
        try:
            size_bytes = get_file_size(staged_file.local_path)
            declared = staged_file.size_bytes
            if declared is not None and declared != size_bytes:
                logger.warning(
                    'Staged file size mismatch: %s is %d bytes, declared %d',
                    staged_file.local_path,
                    size_bytes,
                    declared,
                )
                raise TransferError(
                    f'Staged {staged_file.original_filename} has '
                    f'{size_bytes} bytes, declared {declared}',
                )
            self._client.put(staged_file.local_path, remote_path)
        except (RemoteConnectionError, RemoteOperationError, OSError) as error:
            logger.exception(
                'Failed to transfer file to remote store: %s',
                remote_path,
            )
            raise TransferError(
                f'Upload of {staged_file.original_filename} to '
                f'{remote_path} failed: {error}',
            ) from error
        return size_bytes
