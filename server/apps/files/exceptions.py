"""Exceptions for files app."""


class FileStorageError(Exception):
    """Base class for every error raised by the file storage core."""


class RemoteConnectionError(FileStorageError):
    """Raised when the remote store cannot be reached or refuses login."""

    def __init__(self, host: str, port: int, cause: BaseException) -> None:
        """Initialize RemoteConnectionError.

        Args:
            host: Remote store host name.
            port: Remote store port.
            cause: Underlying socket or protocol error.
        """
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(
            f'Cannot connect to remote store {host}:{port}: {cause}',
        )


class RemoteOperationError(FileStorageError):
    """Raised when the remote store rejects a single operation."""

    def __init__(
        self,
        operation: str,
        path: str,
        cause: BaseException,
    ) -> None:
        """Initialize RemoteOperationError.

        Args:
            operation: Name of the failed primitive (put, get, ...).
            path: Remote path the operation targeted.
            cause: Underlying protocol error.
        """
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f'Remote {operation} failed for {path}: {cause}')


class NotFoundError(FileStorageError):
    """Raised when a metadata record or remote object does not exist."""


class RemoteNotFoundError(NotFoundError, RemoteOperationError):
    """Raised when the remote store reports that a path does not exist."""


class TransferError(FileStorageError):
    """Raised when file bytes did not arrive where they were sent."""


class StreamError(FileStorageError):
    """Raised when relaying staged bytes to the caller fails.

    Part of the payload may already have been delivered,
    so the failure cannot be rolled back and is never retried.
    """

    def __init__(self, message: str, bytes_sent: int = 0) -> None:
        """Initialize StreamError.

        Args:
            message: Human readable description.
            bytes_sent: Bytes relayed before the failure.
        """
        self.bytes_sent = bytes_sent
        super().__init__(message)
