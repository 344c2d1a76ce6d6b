"""Business logic for remote directory provisioning."""

import logging
from typing import final

from server.apps.files.infrastructure.metadata import user_root_path
from server.apps.files.infrastructure.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


@final
class DirectoryProvisioner:
    """Ensures remote directories exist before anything is put in them.

    No lock is taken: two requests provisioning the same new directory
    may both try to create it, and the client treats the loser's
    "already exists" as success.
    """

    def __init__(self, client: RemoteStoreClient) -> None:
        """Initialize provisioner.

        Args:
            client: Remote store client to create directories with.
        """
        self._client = client

    def ensure_directory(self, remote_path: str) -> str:
        """Create remote directory with all parents if absent.

        Idempotent: calling it for an existing directory is a no-op.

        Args:
            remote_path: Absolute remote directory path.

        Returns:
            The directory path.

        Raises:
            RemoteConnectionError: If remote store is unreachable.
            RemoteOperationError: If a segment cannot be created.
        """
        logger.debug('Ensuring remote directory: %s', remote_path)
        return self._client.mkdir_recursive(remote_path)

    def ensure_user_root(self, user_id: int) -> str:
        """Ensure the ``/users/{user_id}`` directory exists.

        Args:
            user_id: Owner's user ID.

        Returns:
            The user root path.
        """
        return self.ensure_directory(user_root_path(user_id))
