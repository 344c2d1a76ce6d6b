"""Business logic for streaming remote files back to callers."""

import enum
import logging
import os
from collections.abc import Generator, Iterator
from contextlib import closing
from pathlib import Path
from typing import Final, Protocol, final

from server.apps.files.exceptions import (
    RemoteConnectionError,
    RemoteNotFoundError,
    RemoteOperationError,
    StreamError,
    TransferError,
)
from server.apps.files.infrastructure.local_files import (
    allocate_temp_path,
    discard_local_file,
)
from server.apps.files.infrastructure.remote_store import RemoteStoreClient
from server.apps.files.models import File

_DEFAULT_CHUNK_SIZE: Final = 8192

logger = logging.getLogger(__name__)


class ByteSink(Protocol):
    """Anything bytes can be written to (file, socket wrapper, response)."""

    def write(self, data: bytes, /) -> object:
        """Write a chunk."""


class DownloadState(enum.StrEnum):
    """Lifecycle of a single download."""

    PENDING = 'pending'
    FETCHING = 'fetching'
    STAGED = 'staged'
    STREAMING = 'streaming'
    COMPLETED = 'completed'
    FAILED = 'failed'


@final
class Download:
    """One download of a file record, iterable exactly once.

    Iterating fetches the remote object into a unique temporary file,
    checks it against the recorded size and yields its contents. The
    temporary file is deleted when iteration ends, fails or is aborted
    with ``close()``.
    """

    def __init__(
        self,
        file_instance: File,
        client: RemoteStoreClient,
        temp_dir: str | os.PathLike[str],
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize download.

        Args:
            file_instance: Record to download, already authorized.
            client: Remote store client.
            temp_dir: Directory for the staged copy.
            chunk_size: Bytes per yielded chunk.
        """
        self.file = file_instance
        self.state = DownloadState.PENDING
        self.temp_path: Path | None = None
        self.bytes_sent = 0
        self._client = client
        self._temp_dir = temp_dir
        self._chunk_size = chunk_size
        self._chunks: Generator[bytes, None, None] | None = None

    def __iter__(self) -> Iterator[bytes]:
        """Start the download.

        Raises:
            RuntimeError: If the download was already started.
        """
        if self._chunks is not None:
            raise RuntimeError('Download can only be iterated once')
        self._chunks = self._run()
        return self._chunks

    def close(self) -> None:
        """Abort the download and remove its temporary file."""
        if self._chunks is not None:
            self._chunks.close()

    def _run(self) -> Generator[bytes, None, None]:
        try:
            self.temp_path = self._allocate()
            self._fetch()
            yield from self._relay()
        except GeneratorExit:
            self.state = DownloadState.FAILED
            logger.warning(
                'Download aborted: ID=%d after %d bytes',
                self.file.id,
                self.bytes_sent,
            )
            raise
        except Exception:
            self.state = DownloadState.FAILED
            raise
        finally:
            discard_local_file(self.temp_path)

    def _allocate(self) -> Path:
        try:
            return allocate_temp_path(
                self._temp_dir,
                f'download_{self.file.id}',
                self.file.stored_filename,
            )
        except OSError as error:
            logger.exception(
                'Failed to prepare temp directory: %s',
                self._temp_dir,
            )
            raise TransferError(
                f'Cannot stage download of {self.file.remote_path}: {error}',
            ) from error

    def _fetch(self) -> None:
        self.state = DownloadState.FETCHING
        remote_path = self.file.remote_path
        try:
            with (
                self.temp_path.open('xb') as staged,
                closing(self._client.get(remote_path)) as chunks,
            ):
                for chunk in chunks:
                    staged.write(chunk)
        except RemoteNotFoundError:
            logger.warning(
                'Remote file missing for record ID=%d: %s',
                self.file.id,
                remote_path,
            )
            raise
        except (RemoteConnectionError, RemoteOperationError, OSError) as error:
            logger.exception('Failed to stage remote file: %s', remote_path)
            raise TransferError(
                f'Download of {remote_path} failed: {error}',
            ) from error

        self._verify()
        self.state = DownloadState.STAGED

    def _verify(self) -> None:
        if not self.temp_path.exists():
            raise TransferError(
                f'Fetching {self.file.remote_path} produced no local file',
            )
        staged_size = self.temp_path.stat().st_size
        if staged_size != self.file.size_bytes:
            raise TransferError(
                f'Fetched {staged_size} bytes from {self.file.remote_path}, '
                f'expected {self.file.size_bytes}',
            )

    def _relay(self) -> Generator[bytes, None, None]:
        self.state = DownloadState.STREAMING
        chunk_size = self._chunk_size
        try:
            with self.temp_path.open('rb') as staged:
                for chunk in iter(lambda: staged.read(chunk_size), b''):
                    self.bytes_sent += len(chunk)
                    yield chunk
        except OSError as error:
            logger.exception(
                'Failed to read staged file: %s',
                self.temp_path,
            )
            raise StreamError(
                f'Reading staged copy of {self.file.remote_path} failed',
                bytes_sent=self.bytes_sent,
            ) from error

        self.state = DownloadState.COMPLETED
        logger.info(
            'Streamed file: ID=%d, %d bytes',
            self.file.id,
            self.bytes_sent,
        )


@final
class DownloadOrchestrator:
    """Creates downloads and relays them to byte sinks."""

    def __init__(
        self,
        client: RemoteStoreClient,
        temp_dir: str | os.PathLike[str],
    ) -> None:
        """Initialize orchestrator.

        Args:
            client: Remote store client.
            temp_dir: Directory for staged copies.
        """
        self._client = client
        self._temp_dir = temp_dir

    def download(self, file_instance: File) -> Download:
        """Prepare a download of a file record.

        Nothing touches the network or disk until the result is
        iterated. Callers that stop iterating early must call
        ``close()`` (Django's ``StreamingHttpResponse`` does).

        Args:
            file_instance: Record to download, already authorized.

        Returns:
            Iterable of byte chunks.
        """
        return Download(
            file_instance,
            self._client,
            self._temp_dir,
            chunk_size=self._client.config.chunk_size,
        )

    def stream_to(self, file_instance: File, sink: ByteSink) -> int:
        """Download a file record and write its bytes to ``sink``.

        Args:
            file_instance: Record to download, already authorized.
            sink: Destination with a ``write`` method.

        Returns:
            Number of bytes written.

        Raises:
            NotFoundError: If the remote object no longer exists.
            TransferError: If fetching the remote object failed.
            StreamError: If writing to the sink failed; part of the
                payload may already be written.
        """
        download = self.download(file_instance)
        with closing(download):
            for chunk in download:
                try:
                    sink.write(chunk)
                except Exception as error:
                    logger.exception(
                        'Failed to relay file to caller: ID=%d',
                        file_instance.id,
                    )
                    raise StreamError(
                        f'Relaying {file_instance.remote_path} failed',
                        bytes_sent=download.bytes_sent - len(chunk),
                    ) from error
        return download.bytes_sent
