"""Shared fixtures for files app tests."""

import datetime as dt
import ftplib
import io
import posixpath
import threading
import uuid

import pytest
from django.contrib.auth import get_user_model

from server.apps.files.infrastructure.remote_store import (
    RemoteStoreClient,
    RemoteStoreConfig,
)
from server.apps.files.logic.upload import StagedFile

User = get_user_model()


class FakeDataConnection:
    """Data channel of a RETR transfer."""

    def __init__(self, payload: bytes) -> None:
        self._buffer = io.BytesIO(payload)

    def recv(self, size: int) -> bytes:
        return self._buffer.read(size)

    def close(self) -> None:
        self._buffer.close()

    def __enter__(self) -> 'FakeDataConnection':
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FakeFTPServer:
    """In-memory FTP server state shared by all sessions of a test."""

    def __init__(self) -> None:
        self.directories = {'/'}
        self.files: dict[str, bytes] = {}
        self.modified: dict[str, dt.datetime] = {}
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.refuse_connections = False
        self.reject_login = False
        self.failing_commands: set[str] = set()
        self.short_reads = False
        self.stale_cwd: set[str] = set()
        self.commands: list[str] = []
        self._lock = threading.Lock()

    def open_session(self, *args: object, **kwargs: object) -> 'FakeFTP':
        return FakeFTP(self)

    @property
    def open_sessions(self) -> int:
        return self.sessions_opened - self.sessions_closed

    def record(self, command: str) -> None:
        with self._lock:
            self.commands.append(command)
        if command in self.failing_commands:
            raise ftplib.error_temp(f'451 {command} aborted by server')

    def session_started(self) -> None:
        with self._lock:
            self.sessions_opened += 1

    def session_ended(self) -> None:
        with self._lock:
            self.sessions_closed += 1

    def make_directory(self, path: str) -> None:
        with self._lock:
            if path in self.directories:
                raise ftplib.error_perm(f'550 {path}: File exists')
            if posixpath.dirname(path) not in self.directories:
                raise ftplib.error_perm(f'550 {path}: No such file or directory')
            self.directories.add(path)

    def children(self, path: str) -> list[tuple[str, dict[str, str]]]:
        listing = [('.', {'type': 'cdir'}), ('..', {'type': 'pdir'})]
        for directory in sorted(self.directories):
            if directory != '/' and posixpath.dirname(directory) == path:
                listing.append((posixpath.basename(directory), {'type': 'dir'}))
        for file_path, payload in sorted(self.files.items()):
            if posixpath.dirname(file_path) == path:
                facts = {'type': 'file', 'size': str(len(payload))}
                if file_path in self.modified:
                    facts['modify'] = self.modified[file_path].strftime(
                        '%Y%m%d%H%M%S.%f',
                    )[:18]
                listing.append((posixpath.basename(file_path), facts))
        return listing


class FakeFTP:
    """Single session against ``FakeFTPServer``, mimicking ``ftplib.FTP``."""

    def __init__(self, server: FakeFTPServer) -> None:
        self._server = server
        self._connected = False
        self._closed = False

    def connect(self, host: str = '', port: int = 0) -> str:
        if self._server.refuse_connections:
            raise ConnectionRefusedError(111, 'Connection refused')
        self._server.session_started()
        self._connected = True
        return '220 Fake FTP ready'

    def login(self, user: str = '', passwd: str = '') -> str:
        if self._server.reject_login:
            raise ftplib.error_perm('530 Login incorrect.')
        return '230 Login successful.'

    def set_pasv(self, val: bool) -> None:
        self._server.record('PASV')

    def quit(self) -> str:
        self.close()
        return '221 Goodbye.'

    def close(self) -> None:
        if self._connected and not self._closed:
            self._closed = True
            self._server.session_ended()

    def cwd(self, path: str) -> str:
        self._server.record('CWD')
        if path in self._server.stale_cwd:
            self._server.stale_cwd.discard(path)
            raise ftplib.error_perm(f'550 {path}: No such file or directory')
        if path not in self._server.directories:
            raise ftplib.error_perm(f'550 {path}: No such file or directory')
        return '250 OK.'

    def mkd(self, path: str) -> str:
        self._server.record('MKD')
        self._server.make_directory(path)
        return path

    def storbinary(self, cmd: str, fp, blocksize: int = 8192) -> str:
        self._server.record('STOR')
        path = cmd.removeprefix('STOR ')
        if posixpath.dirname(path) not in self._server.directories:
            raise ftplib.error_perm(f'553 {path}: Could not create file.')
        payload = b''.join(iter(lambda: fp.read(blocksize), b''))
        self._server.files[path] = payload
        self._server.modified[path] = dt.datetime.now(dt.UTC)
        return '226 Transfer complete.'

    def voidcmd(self, cmd: str) -> str:
        return '200 OK.'

    def transfercmd(self, cmd: str) -> FakeDataConnection:
        self._server.record('RETR')
        path = cmd.removeprefix('RETR ')
        if path not in self._server.files:
            raise ftplib.error_perm(f'550 {path}: No such file or directory')
        payload = self._server.files[path]
        if self._server.short_reads:
            payload = payload[: len(payload) // 2]
        return FakeDataConnection(payload)

    def voidresp(self) -> str:
        return '226 Transfer complete.'

    def mlsd(self, path: str = '', facts=()):
        self._server.record('MLSD')
        directory = path.rstrip('/') or '/'
        if directory not in self._server.directories:
            raise ftplib.error_perm(f'550 {path}: No such file or directory')
        yield from self._server.children(directory)

    def delete(self, path: str) -> str:
        self._server.record('DELE')
        if path not in self._server.files:
            raise ftplib.error_perm(f'550 {path}: No such file or directory')
        del self._server.files[path]
        return '250 Deleted.'


@pytest.fixture
def ftp_server(monkeypatch):
    """In-memory FTP server installed in place of ``ftplib.FTP``.

    Yields:
        FakeFTPServer holding remote directories and files.
    """
    server = FakeFTPServer()
    monkeypatch.setattr(ftplib, 'FTP', server.open_session)
    return server


@pytest.fixture
def remote_config():
    """Remote store config pointing at the fake server.

    Returns:
        RemoteStoreConfig with a small chunk size.
    """
    return RemoteStoreConfig(
        host='ftp.example.test',
        port=2121,
        user='storage',
        password='secret',
        timeout=5,
        chunk_size=64,
    )


@pytest.fixture
def remote_client(ftp_server, remote_config):
    """Remote store client talking to the fake server.

    Returns:
        RemoteStoreClient instance.
    """
    return RemoteStoreClient(remote_config)


@pytest.fixture
def temp_dir(tmp_path):
    """Directory for staged download copies.

    Returns:
        Path that does not exist yet.
    """
    return tmp_path / 'temp'


@pytest.fixture
def ftp_settings(settings, temp_dir):
    """Point FTP settings at the fake server.

    Returns:
        pytest-django settings wrapper.
    """
    settings.FTP_HOST = 'ftp.example.test'
    settings.FTP_PORT = 2121
    settings.FTP_USER = 'storage'
    settings.FTP_PASSWORD = 'secret'
    settings.FTP_TIMEOUT = 5
    settings.FTP_PASSIVE = True
    settings.FTP_CHUNK_SIZE = 64
    settings.FILES_DOWNLOAD_TEMP_DIR = temp_dir
    return settings


@pytest.fixture
def make_staged_file(tmp_path):
    """Factory writing a staging file like the web layer does.

    Returns:
        Callable building StagedFile instances.
    """
    uploads = tmp_path / 'uploads'
    uploads.mkdir()

    def factory(
        original_filename='report.pdf',
        content=b'test file content',
        stored_filename=None,
        **kwargs,
    ):
        stored = stored_filename or f'{uuid.uuid4().hex}-{original_filename}'
        local_path = uploads / stored
        local_path.write_bytes(content)
        return StagedFile(
            local_path=local_path,
            stored_filename=stored,
            original_filename=original_filename,
            **kwargs,
        )

    return factory


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def user_seven(db):
    """Create user with ID 7.

    Returns:
        User instance with a fixed primary key.
    """
    return User.objects.create_user(
        id=7,
        username='seven',
        password='testpass123',
        email='seven@example.com',
    )
