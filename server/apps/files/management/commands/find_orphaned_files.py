"""Management command to find remote files without a database record.

An upload whose metadata write failed leaves its bytes on the remote
store with nothing pointing at them. This command lists such files and
optionally deletes them. Files modified within the last
``--min-age-minutes`` are skipped, since an upload that is still writing
its record looks exactly like an orphan.
"""

import datetime as dt
import logging
from collections.abc import Iterator
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.files.exceptions import FileStorageError, RemoteNotFoundError
from server.apps.files.infrastructure.metadata import user_root_path
from server.apps.files.infrastructure.remote_store import (
    RemoteEntry,
    RemoteStoreClient,
)
from server.apps.files.logic.file_operations import get_remote_client
from server.apps.files.models import File

_USERS_ROOT: Final = '/users'
_DEFAULT_MIN_AGE_MINUTES: Final = 60

logger = logging.getLogger(__name__)


def _walk_files(
    client: RemoteStoreClient,
    directory: str,
) -> Iterator[RemoteEntry]:
    for entry in client.listdir(directory):
        if entry.is_dir:
            yield from _walk_files(client, entry.path)
        else:
            yield entry


class Command(BaseCommand):
    """Report (and optionally delete) orphaned remote files."""

    help = 'Find remote files under /users that have no File record'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--user-id',
            type=int,
            default=None,
            help='Only check this user\'s remote directory',
        )
        parser.add_argument(
            '--delete',
            action='store_true',
            help='Delete orphaned remote files instead of only listing them',
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Ignore files modified more recently than this '
                '(default: %(default)s)'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconciliation command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        user_id = options['user_id']
        delete = options['delete']
        cutoff = timezone.now() - dt.timedelta(
            minutes=options['min_age_minutes'],
        )
        client = get_remote_client()

        root = _USERS_ROOT if user_id is None else user_root_path(user_id)
        self.stdout.write(f'Scanning remote directory {root}')

        try:
            remote_files = list(_walk_files(client, root))
        except RemoteNotFoundError:
            remote_files = []

        recorded = set(
            File.objects.filter(
                remote_path__startswith=f'{root}/',
            ).values_list('remote_path', flat=True),
        )

        orphans = []
        recent = 0
        for entry in sorted(remote_files, key=lambda item: item.path):
            if entry.path in recorded:
                continue
            # Unknown modification time counts as old
            if entry.modified is not None and entry.modified > cutoff:
                logger.info('Skipping recent remote file: %s', entry.path)
                recent += 1
                continue
            orphans.append(entry.path)

        deleted = 0
        failed = 0
        for remote_path in orphans:
            if not delete:
                self.stdout.write(f'Orphaned: {remote_path}')
                continue

            try:
                client.delete(remote_path)
            except FileStorageError as exc:
                self.stderr.write(f'Failed to delete {remote_path}: {exc}')
                failed += 1
            else:
                logger.info('Deleted orphaned remote file: %s', remote_path)
                deleted += 1

        if recent:
            self.stdout.write(f'Skipped {recent} recently modified files')

        if delete:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Deleted {deleted} orphaned files, {failed} failed',
                ),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f'Found {len(orphans)} orphaned files'),
            )
