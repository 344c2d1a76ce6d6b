"""Client for the remote FTP store.

Every public operation opens its own FTP session, performs exactly one
remote action and closes the session before returning, whether the
action succeeded or not. Sessions are never pooled or shared, so a
failure in one call cannot leave another call with a broken connection.
"""

import datetime as dt
import ftplib
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final, final

from django.conf import settings

from server.apps.files.exceptions import (
    RemoteConnectionError,
    RemoteNotFoundError,
    RemoteOperationError,
)

# FTP reply code for "file unavailable" (missing path, usually)
_MISSING_REPLY_CODE: Final = '550'
_SKIPPED_ENTRY_TYPES: Final = frozenset(('cdir', 'pdir'))
# MLSD "modify" fact, UTC, optional fractional seconds
_MODIFY_FORMAT: Final = '%Y%m%d%H%M%S'
_MODIFY_LENGTH: Final = 14

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoteStoreConfig:
    """Connection parameters for the remote FTP store."""

    host: str
    port: int = 21
    user: str = 'anonymous'
    password: str = ''
    timeout: float = 30
    passive: bool = True
    chunk_size: int = 8192

    @classmethod
    def from_settings(cls) -> 'RemoteStoreConfig':
        """Build config from Django settings (``FTP_*`` values).

        Returns:
            New config value; settings are read on every call.
        """
        return cls(
            host=settings.FTP_HOST,
            port=settings.FTP_PORT,
            user=settings.FTP_USER,
            password=settings.FTP_PASSWORD,
            timeout=settings.FTP_TIMEOUT,
            passive=settings.FTP_PASSIVE,
            chunk_size=settings.FTP_CHUNK_SIZE,
        )


@dataclass(frozen=True, slots=True)
class RemoteEntry:
    """Single entry of a remote directory listing."""

    name: str
    path: str
    is_dir: bool
    size: int | None = None
    modified: dt.datetime | None = None


def _parse_modify(fact: str | None) -> dt.datetime | None:
    if not fact:
        return None
    try:
        modified = dt.datetime.strptime(fact[:_MODIFY_LENGTH], _MODIFY_FORMAT)
    except ValueError:
        logger.warning('Unparsable MLSD modify fact: %s', fact)
        return None
    return modified.replace(tzinfo=dt.UTC)


def _remote_error(
    operation: str,
    path: str,
    error: BaseException,
) -> RemoteOperationError:
    if isinstance(error, ftplib.error_perm) and str(error).startswith(
        _MISSING_REPLY_CODE,
    ):
        return RemoteNotFoundError(operation, path, error)
    return RemoteOperationError(operation, path, error)


@final
class RemoteStoreClient:
    """FTP client with one session per operation.

    The client itself holds only its configuration, so a single value
    can be shared between threads and requests.
    """

    def __init__(self, config: RemoteStoreConfig) -> None:
        """Initialize client.

        Args:
            config: Connection parameters.
        """
        self._config = config

    @property
    def config(self) -> RemoteStoreConfig:
        """Connection parameters of this client."""
        return self._config

    @contextmanager
    def session(self) -> Iterator[ftplib.FTP]:
        """Open an FTP session that is closed on every exit path.

        Yields:
            Logged-in ``ftplib.FTP`` connection.

        Raises:
            RemoteConnectionError: If the server is unreachable or
                rejects the login.
        """
        ftp = self._connect()
        try:
            yield ftp
        finally:
            self._disconnect(ftp)

    def put(self, local_path: str | os.PathLike[str], remote_path: str) -> str:
        """Upload a local file to the remote store.

        The parent directory must already exist.

        Args:
            local_path: Local file to read.
            remote_path: Absolute destination path.

        Returns:
            The remote path written.

        Raises:
            OSError: If the local file cannot be opened.
            RemoteConnectionError: If no session can be opened.
            RemoteOperationError: If the server rejects the upload.
        """
        logger.info('Uploading file to remote store: %s', remote_path)
        with open(local_path, 'rb') as source, self.session() as ftp:
            try:
                ftp.storbinary(
                    f'STOR {remote_path}',
                    source,
                    blocksize=self._config.chunk_size,
                )
            except ftplib.all_errors as error:
                logger.exception(
                    'Failed to upload file to remote store: %s',
                    remote_path,
                )
                raise _remote_error('put', remote_path, error) from error
        logger.info('Successfully uploaded file: %s', remote_path)
        return remote_path

    def get(self, remote_path: str) -> Iterator[bytes]:
        """Stream a remote file in chunks.

        The session stays open while the iterator is consumed and is
        closed when it is exhausted, fails or is closed early.

        Args:
            remote_path: Absolute path of the remote file.

        Yields:
            Chunks of at most ``chunk_size`` bytes.

        Raises:
            RemoteConnectionError: If no session can be opened.
            RemoteNotFoundError: If the remote file does not exist.
            RemoteOperationError: If the transfer fails.
        """
        logger.info('Fetching file from remote store: %s', remote_path)
        chunk_size = self._config.chunk_size
        with self.session() as ftp:
            try:
                ftp.voidcmd('TYPE I')
                with ftp.transfercmd(f'RETR {remote_path}') as conn:
                    yield from iter(lambda: conn.recv(chunk_size), b'')
                ftp.voidresp()
            except ftplib.all_errors as error:
                logger.exception(
                    'Failed to fetch file from remote store: %s',
                    remote_path,
                )
                raise _remote_error('get', remote_path, error) from error
        logger.info('Successfully fetched file: %s', remote_path)

    def listdir(self, remote_path: str = '/') -> list[RemoteEntry]:
        """List a remote directory.

        Args:
            remote_path: Absolute directory path.

        Returns:
            Entries of the directory, without '.' and '..'.

        Raises:
            RemoteConnectionError: If no session can be opened.
            RemoteNotFoundError: If the directory does not exist.
            RemoteOperationError: If the listing fails.
        """
        logger.debug('Listing remote directory: %s', remote_path)
        with self.session() as ftp:
            try:
                listing = list(ftp.mlsd(remote_path))
            except ftplib.all_errors as error:
                logger.exception(
                    'Failed to list remote directory: %s',
                    remote_path,
                )
                raise _remote_error('list', remote_path, error) from error

        base = PurePosixPath(remote_path)
        entries = []
        for name, facts in listing:
            entry_type = facts.get('type', 'file').lower()
            if entry_type in _SKIPPED_ENTRY_TYPES:
                continue
            size = facts.get('size')
            entries.append(RemoteEntry(
                name=name,
                path=str(base / name),
                is_dir=entry_type == 'dir',
                size=int(size) if size is not None else None,
                modified=_parse_modify(facts.get('modify')),
            ))
        return entries

    def mkdir_recursive(self, remote_path: str) -> str:
        """Create a remote directory and any missing parents.

        Already existing segments are skipped, and a segment created by a
        concurrent session between our check and our ``MKD`` counts as
        success.

        Args:
            remote_path: Absolute directory path.

        Returns:
            The directory path.

        Raises:
            ValueError: If the path is not absolute.
            RemoteConnectionError: If no session can be opened.
            RemoteOperationError: If a segment cannot be created.
        """
        path = PurePosixPath(remote_path)
        if not path.is_absolute():
            raise ValueError(f'Remote directory must be absolute: {remote_path}')

        with self.session() as ftp:
            current = PurePosixPath('/')
            for segment in path.parts[1:]:
                current /= segment
                self._make_directory(ftp, str(current))
        return remote_path

    def delete(self, remote_path: str) -> None:
        """Delete a remote file.

        Args:
            remote_path: Absolute path of the remote file.

        Raises:
            RemoteConnectionError: If no session can be opened.
            RemoteNotFoundError: If the remote file does not exist.
            RemoteOperationError: If the server rejects the delete.
        """
        logger.info('Deleting file from remote store: %s', remote_path)
        with self.session() as ftp:
            try:
                ftp.delete(remote_path)
            except ftplib.all_errors as error:
                logger.exception(
                    'Failed to delete file from remote store: %s',
                    remote_path,
                )
                raise _remote_error('delete', remote_path, error) from error
        logger.info('Successfully deleted remote file: %s', remote_path)

    def _connect(self) -> ftplib.FTP:
        config = self._config
        ftp = ftplib.FTP(timeout=config.timeout)
        try:
            ftp.connect(config.host, config.port)
            ftp.login(config.user, config.password)
            ftp.set_pasv(config.passive)
        except ftplib.all_errors as error:
            logger.exception(
                'FTP connection error: %s:%d',
                config.host,
                config.port,
            )
            ftp.close()
            raise RemoteConnectionError(
                config.host,
                config.port,
                error,
            ) from error
        logger.debug('FTP connected: %s:%d', config.host, config.port)
        return ftp

    def _disconnect(self, ftp: ftplib.FTP) -> None:
        try:
            ftp.quit()
        except ftplib.all_errors:
            # Server already gone or aborted transfer left a reply pending
            logger.warning('Unclean FTP session shutdown', exc_info=True)
            ftp.close()

    def _make_directory(self, ftp: ftplib.FTP, directory: str) -> None:
        if self._directory_exists(ftp, directory):
            return
        try:
            ftp.mkd(directory)
        except ftplib.error_perm as error:
            if self._directory_exists(ftp, directory):
                logger.debug('Directory created concurrently: %s', directory)
                return
            logger.exception('Failed to create directory: %s', directory)
            raise RemoteOperationError('mkdir', directory, error) from error
        except ftplib.all_errors as error:
            logger.exception('Failed to create directory: %s', directory)
            raise RemoteOperationError('mkdir', directory, error) from error
        logger.info('Created remote directory: %s', directory)

    def _directory_exists(self, ftp: ftplib.FTP, directory: str) -> bool:
        try:
            ftp.cwd(directory)
        except ftplib.error_perm:
            return False
        except ftplib.all_errors as error:
            raise RemoteOperationError('mkdir', directory, error) from error
        return True
