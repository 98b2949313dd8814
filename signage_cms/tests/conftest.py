"""
Pytest configuration and fixtures for Signage CMS tests.

This module provides shared fixtures for testing:
- Flask application with test configuration
- In-memory SQLite database
- Test client and an authenticated admin
- Sample folders, media files, playlists, players and sessions
"""

import shutil
import tempfile
from datetime import timedelta

import pytest

from signage_cms.app import create_app
from signage_cms.models import (
    db,
    Folder,
    MediaFile,
    Player,
    PlayerSession,
    Playlist,
    PlaylistItem,
    User,
    UserSession,
    utcnow,
)


@pytest.fixture(scope='function')
def app():
    """
    Create a Flask application configured for testing.

    This fixture provides an isolated Flask app with:
    - In-memory SQLite database
    - Testing mode enabled
    - Local storage in a temporary directory

    Yields:
        Flask application instance
    """
    temp_upload_dir = tempfile.mkdtemp()

    application = create_app(config_name='testing')
    application.config['UPLOADS_PATH'] = temp_upload_dir

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()

    shutil.rmtree(temp_upload_dir, ignore_errors=True)


@pytest.fixture(scope='function')
def client(app):
    """
    Create a test client for the Flask application.

    Args:
        app: Flask application fixture

    Returns:
        Flask test client
    """
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """
    Provide a database session for testing.

    Args:
        app: Flask application fixture

    Yields:
        SQLAlchemy session
    """
    with app.app_context():
        yield db.session


@pytest.fixture(scope='function')
def admin_user(db_session):
    """
    Create an admin account for testing.

    Returns:
        User instance with password 'password123'
    """
    user = User(email='admin@example.com', name='Test Admin')
    user.set_password('password123')
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_session(db_session, admin_user):
    session = UserSession.create_session(user_id=admin_user.id, ip_address='127.0.0.1')
    db_session.add(session)
    db_session.commit()
    return session


@pytest.fixture(scope='function')
def auth_headers(admin_session):
    """
    Authorization header for the test admin.

    Returns:
        Dict with a bearer token header
    """
    return {'Authorization': f'Bearer {admin_session.token}'}


def make_file(db_session, folder, name, file_type='image/png', size=1024, duration=0):
    """Create and commit a MediaFile in a folder."""
    media_file = MediaFile(
        folder_id=folder.id,
        name=name,
        file_type=file_type,
        file_key=f'{folder.name}/{name}',
        file_size=size,
        duration=duration,
    )
    db_session.add(media_file)
    db_session.commit()
    return media_file


def make_playlist(db_session, name='Test Playlist', items=()):
    """
    Create a playlist with items.

    Args:
        items: Iterable of MediaFile or Playlist instances, appended in order

    Returns:
        Playlist instance
    """
    playlist = Playlist(name=name)
    db_session.add(playlist)
    db_session.flush()
    for position, target in enumerate(items, start=1):
        if isinstance(target, Playlist):
            item = PlaylistItem(
                playlist_id=playlist.id,
                sub_playlist_id=target.id,
                is_sub_playlist=True,
                duration=60,
                play_order=position,
            )
        else:
            item = PlaylistItem(
                playlist_id=playlist.id,
                file_id=target.id,
                is_sub_playlist=False,
                duration=10,
                play_order=position,
            )
        db_session.add(item)
    db_session.commit()
    return playlist


@pytest.fixture(scope='function')
def sample_folder(db_session):
    folder = Folder(name='Acme Corp')
    db_session.add(folder)
    db_session.commit()
    return folder


@pytest.fixture(scope='function')
def sample_image(db_session, sample_folder):
    return make_file(db_session, sample_folder, 'banner.png', 'image/png', size=2048)


@pytest.fixture(scope='function')
def sample_video(db_session, sample_folder):
    return make_file(db_session, sample_folder, 'spot.mp4', 'video/mp4', size=5 * 1024 * 1024, duration=15)


@pytest.fixture(scope='function')
def sample_playlist(db_session, sample_image, sample_video):
    """Playlist with two file items: the image (order 1) and the video (order 2)."""
    return make_playlist(db_session, 'Lobby Loop', [sample_image, sample_video])


@pytest.fixture(scope='function')
def sample_player(db_session, sample_playlist):
    """Linked player with the sample playlist assigned."""
    player = Player(
        name='Lobby Screen',
        location='Building A',
        device_code='a1b2c3d4e5f60718',
        device_key='lobbykey',
        linked=True,
        playlist_id=sample_playlist.id,
    )
    db_session.add(player)
    db_session.commit()
    return player


@pytest.fixture(scope='function')
def active_session(db_session, sample_player):
    """Open session that heartbeated a minute ago."""
    now = utcnow()
    session = PlayerSession(
        player_id=sample_player.id,
        started_at=now - timedelta(hours=1),
        last_active_at=now - timedelta(minutes=1),
        is_active=True,
    )
    db_session.add(session)
    db_session.commit()
    return session
