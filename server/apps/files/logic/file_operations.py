"""Business logic for file and folder operations.

Module level entry points used by the web layer. Each call builds its
collaborators from Django settings, so there is no process-wide client
object; pass ``client`` explicitly to reuse or replace one.
"""

import logging

from django.conf import settings
from django.db import IntegrityError
from django.db.models import QuerySet

from server.apps.files.exceptions import NotFoundError, RemoteNotFoundError
from server.apps.files.infrastructure.metadata import (
    folder_local_path,
    folder_remote_path,
    validate_path_segment,
)
from server.apps.files.infrastructure.remote_store import (
    RemoteEntry,
    RemoteStoreClient,
    RemoteStoreConfig,
)
from server.apps.files.logic.download import (
    ByteSink,
    Download,
    DownloadOrchestrator,
)
from server.apps.files.logic.metadata_store import (
    DjangoMetadataStore,
    MetadataStore,
)
from server.apps.files.logic.provisioning import DirectoryProvisioner
from server.apps.files.logic.upload import StagedFile, UploadOrchestrator
from server.apps.files.models import File, Folder

logger = logging.getLogger(__name__)


def get_remote_client() -> RemoteStoreClient:
    """Build a remote store client from current settings.

    Returns:
        New client; nothing is cached between calls.
    """
    return RemoteStoreClient(RemoteStoreConfig.from_settings())


def upload_file(
    user_id: int,
    staged_file: StagedFile,
    folder_id: int | None = None,
    client: RemoteStoreClient | None = None,
) -> File:
    """Upload a staged file for a user.

    Args:
        user_id: Owner of the file.
        staged_file: Local staging file written by the web layer.
        folder_id: Target folder, or None for the user root.
        client: Remote store client, built from settings if omitted.

    Returns:
        Created File instance.
    """
    orchestrator = UploadOrchestrator(client or get_remote_client())
    return orchestrator.upload(user_id, folder_id, staged_file)


def download_file(
    file_instance: File,
    client: RemoteStoreClient | None = None,
) -> Download:
    """Prepare a download of an already authorized file record.

    Args:
        file_instance: Record to download.
        client: Remote store client, built from settings if omitted.

    Returns:
        Iterable of byte chunks, suitable for ``StreamingHttpResponse``.
    """
    orchestrator = DownloadOrchestrator(
        client or get_remote_client(),
        settings.FILES_DOWNLOAD_TEMP_DIR,
    )
    return orchestrator.download(file_instance)


def stream_file_to(
    file_instance: File,
    sink: ByteSink,
    client: RemoteStoreClient | None = None,
) -> int:
    """Download an already authorized file record into ``sink``.

    Args:
        file_instance: Record to download.
        sink: Destination with a ``write`` method.
        client: Remote store client, built from settings if omitted.

    Returns:
        Number of bytes written.
    """
    orchestrator = DownloadOrchestrator(
        client or get_remote_client(),
        settings.FILES_DOWNLOAD_TEMP_DIR,
    )
    return orchestrator.stream_to(file_instance, sink)


def can_access_file(
    file_instance: File,
    user_id: int,
    *,
    is_admin: bool = False,
) -> bool:
    """Check whether a user may download a file.

    Owners can access their files, admins can access any file.

    Args:
        file_instance: Requested file.
        user_id: Requesting user's ID.
        is_admin: Whether the requesting user is an admin.

    Returns:
        True if access is allowed.
    """
    return is_admin or file_instance.user_id == user_id


def create_folder(
    user_id: int,
    folder_name: str,
    client: RemoteStoreClient | None = None,
    metadata: MetadataStore | None = None,
) -> Folder:
    """Create a folder on the remote store, then record it.

    Creating a folder that already exists for the user returns the
    existing record after re-provisioning its directory.

    Args:
        user_id: Owner of the folder.
        folder_name: Single path segment naming the folder.
        client: Remote store client, built from settings if omitted.
        metadata: Metadata collaborator, Django ORM by default.

    Returns:
        Folder instance.

    Raises:
        ValidationError: If folder name is not a single path segment.
        RemoteConnectionError: If remote store is unreachable.
        RemoteOperationError: If the directory cannot be created.
    """
    validate_path_segment(folder_name)
    provisioner = DirectoryProvisioner(client or get_remote_client())
    metadata = metadata or DjangoMetadataStore()

    provisioner.ensure_user_root(user_id)
    remote_path = provisioner.ensure_directory(
        folder_remote_path(user_id, folder_name),
    )

    existing = metadata.find_folder_by_name(user_id, folder_name)
    if existing is not None:
        logger.info('Folder already exists: %s', existing.remote_path)
        return existing

    try:
        return metadata.create_folder_record(
            user_id=user_id,
            name=folder_name,
            local_path=folder_local_path(user_id, folder_name),
            remote_path=remote_path,
        )
    except IntegrityError:
        # Lost a race with a concurrent create of the same folder
        logger.info('Folder created concurrently: %s', remote_path)
        existing = metadata.find_folder_by_name(user_id, folder_name)
        if existing is None:
            raise
        return existing


def delete_file(
    file_id: int,
    client: RemoteStoreClient | None = None,
    metadata: MetadataStore | None = None,
) -> None:
    """Delete file from remote store, then from database.

    A remote object that is already gone does not block removing the
    record. Any other remote failure keeps the record in place.

    Args:
        file_id: ID of file to delete.
        client: Remote store client, built from settings if omitted.
        metadata: Metadata collaborator, Django ORM by default.

    Raises:
        NotFoundError: If file record doesn't exist.
        RemoteConnectionError: If remote store is unreachable.
        RemoteOperationError: If the remote delete is rejected.
    """
    client = client or get_remote_client()
    metadata = metadata or DjangoMetadataStore()

    file_instance = metadata.find_file_record(file_id)
    if file_instance is None:
        logger.warning('File not found: ID=%d', file_id)
        raise NotFoundError(f'File {file_id} not found')

    logger.info(
        'Deleting file: ID=%d, path=%s',
        file_id,
        file_instance.remote_path,
    )

    try:
        client.delete(file_instance.remote_path)
    except RemoteNotFoundError:
        logger.warning(
            'File not found in remote store (already deleted?): %s',
            file_instance.remote_path,
        )

    metadata.delete_file_record(file_id)


def list_user_files(
    user_id: int,
    folder_id: int | None = None,
) -> QuerySet[File]:
    """List a user's files, newest first.

    Args:
        user_id: Owner of files.
        folder_id: Restrict to one folder if given.

    Returns:
        QuerySet of File objects.
    """
    files = File.objects.filter(user_id=user_id)
    if folder_id is not None:
        files = files.filter(folder_id=folder_id)
    return files.select_related('folder')


def list_all_files(folder_id: int | None = None) -> QuerySet[File]:
    """List files of all users, newest first.

    Args:
        folder_id: Restrict to one folder if given.

    Returns:
        QuerySet of File objects.
    """
    files = File.objects.all()
    if folder_id is not None:
        files = files.filter(folder_id=folder_id)
    return files.select_related('user', 'folder')


def list_user_folders(user_id: int) -> QuerySet[Folder]:
    """List a user's folders, newest first.

    Args:
        user_id: Owner of folders.

    Returns:
        QuerySet of Folder objects.
    """
    return Folder.objects.filter(user_id=user_id)


def list_all_folders() -> QuerySet[Folder]:
    """List folders of all users with their owners, newest first.

    Returns:
        QuerySet of Folder objects.
    """
    return Folder.objects.select_related('user')


def list_remote_directory(
    remote_path: str = '/',
    client: RemoteStoreClient | None = None,
) -> list[RemoteEntry]:
    """List a directory on the remote store.

    Args:
        remote_path: Absolute directory path.
        client: Remote store client, built from settings if omitted.

    Returns:
        Directory entries.
    """
    return (client or get_remote_client()).listdir(remote_path)
