"""Tests for the Django metadata collaborator."""

import pytest

from server.apps.files.logic.metadata_store import DjangoMetadataStore
from server.apps.files.models import File, Folder


@pytest.fixture
def store():
    """Create metadata store.

    Returns:
        DjangoMetadataStore instance.
    """
    return DjangoMetadataStore()


@pytest.fixture
def folder(user):
    """Create folder for test user.

    Returns:
        Folder instance.
    """
    return Folder.objects.create(
        user=user,
        name='docs',
        local_path=f'./uploads/{user.id}/docs',
        remote_path=f'/users/{user.id}/docs',
    )


@pytest.mark.django_db
def test_find_folder(store, user, folder):
    """Test folder is found for its owner."""
    assert store.find_folder(folder.id, user.id) == folder


@pytest.mark.django_db
def test_find_folder_other_user(store, other_user, folder):
    """Test folder is hidden from other users."""
    assert store.find_folder(folder.id, other_user.id) is None


@pytest.mark.django_db
def test_find_folder_missing(store, user):
    """Test unknown folder ID returns None."""
    assert store.find_folder(99999, user.id) is None


@pytest.mark.django_db
def test_create_and_find_file_record(store, user, folder):
    """Test created record can be looked up by ID."""
    created = store.create_file_record(
        user_id=user.id,
        folder=folder,
        stored_filename='a.txt',
        original_filename='a.txt',
        size_bytes=3,
        content_type='text/plain',
        remote_path=f'/users/{user.id}/docs/a.txt',
    )

    found = store.find_file_record(created.id)

    assert found == created
    assert found.folder == folder


@pytest.mark.django_db
def test_create_folder_record(store, user):
    """Test folder record creation."""
    folder = store.create_folder_record(
        user_id=user.id,
        name='invoices',
        local_path=f'./uploads/{user.id}/invoices',
        remote_path=f'/users/{user.id}/invoices',
    )

    assert Folder.objects.get(id=folder.id).name == 'invoices'


@pytest.mark.django_db
def test_find_file_record_missing(store):
    """Test unknown file ID returns None."""
    assert store.find_file_record(99999) is None


@pytest.mark.django_db
def test_delete_file_record(store, user):
    """Test delete reports whether a record existed."""
    file_instance = File.objects.create(
        user=user,
        stored_filename='a.txt',
        original_filename='a.txt',
        size_bytes=3,
        remote_path=f'/users/{user.id}/a.txt',
    )

    assert store.delete_file_record(file_instance.id) is True
    assert store.delete_file_record(file_instance.id) is False
    assert not File.objects.filter(id=file_instance.id).exists()


@pytest.mark.django_db
def test_find_folder_by_name(store, user, other_user, folder):
    """Test folder lookup by name is scoped to its owner."""
    assert store.find_folder_by_name(user.id, 'docs') == folder
    assert store.find_folder_by_name(other_user.id, 'docs') is None
    assert store.find_folder_by_name(user.id, 'missing') is None
