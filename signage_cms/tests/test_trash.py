"""
Tests for the trash routes and TrashService.
"""

import os

import pytest

from signage_cms.models import Folder, MediaFile, PlayLog
from signage_cms.services.trash import TrashService, next_name, split_name_ext
from signage_cms.tests.conftest import make_file


def _trash_folder(client, headers, folder_id):
    return client.post('/api/v1/media/delete-folder', headers=headers, json={'folderId': folder_id})


def _trash_file(client, headers, file_id):
    return client.post('/api/v1/media/delete-file', headers=headers, json={'fileId': file_id})


def _store_object(app, key, data=b'object'):
    path = os.path.join(app.config['UPLOADS_PATH'], key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as fh:
        fh.write(data)
    return path


class TestNaming:

    @pytest.mark.parametrize('name,expected', [
        ('clip.mp4', ('clip', '.mp4')),
        ('clip.final.mp4', ('clip.final', '.mp4')),
        ('.hidden', ('.hidden', '')),
        ('noext', ('noext', '')),
        ('trailing.', ('trailing.', '')),
    ])
    def test_split_name_ext(self, name, expected):
        assert split_name_ext(name) == expected

    def test_next_name(self):
        taken = {'clip.mp4', 'clip (1).mp4'}

        assert next_name('fresh.mp4', taken.__contains__) == 'fresh.mp4'
        assert next_name('clip.mp4', taken.__contains__) == 'clip (2).mp4'


class TestListTrash:

    def test_lists_folders_and_files(self, client, auth_headers, sample_image, sample_video, sample_folder):
        _trash_file(client, auth_headers, sample_image.id)
        _trash_folder(client, auth_headers, sample_folder.id)

        response = client.get('/api/v1/trash', headers=auth_headers)

        assert response.status_code == 200
        items = response.get_json()['items']
        kinds = {(i['kind'], i['name']) for i in items}
        assert kinds == {('folder', 'Acme Corp'), ('file', 'banner.png'), ('file', 'spot.mp4')}
        video_card = next(i for i in items if i['name'] == 'spot.mp4')
        assert video_card['type'] == 'video'
        assert video_card['location'] == 'Acme Corp'
        assert video_card['folderDeleted'] is True

    def test_search(self, client, auth_headers, sample_image, sample_video):
        _trash_file(client, auth_headers, sample_image.id)
        _trash_file(client, auth_headers, sample_video.id)

        response = client.get('/api/v1/trash?search=spot', headers=auth_headers)

        assert [i['name'] for i in response.get_json()['items']] == ['spot.mp4']


class TestRestore:

    def test_restore_file(self, client, db_session, auth_headers, sample_image):
        _trash_file(client, auth_headers, sample_image.id)

        response = client.post(f'/api/v1/trash/file/{sample_image.id}/restore', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['message'] == 'File restored'
        db_session.expire_all()
        assert db_session.get(MediaFile, sample_image.id).is_deleted is False

    def test_restore_renames_on_conflict(self, client, db_session, auth_headers, sample_image, sample_folder):
        _trash_file(client, auth_headers, sample_image.id)
        make_file(db_session, sample_folder, 'banner.png')

        response = client.post(f'/api/v1/trash/file/{sample_image.id}/restore', headers=auth_headers)

        assert response.get_json()['item']['name'] == 'banner (1).png'

    def test_restore_file_restores_folder(self, client, db_session, auth_headers, sample_image, sample_folder):
        _trash_folder(client, auth_headers, sample_folder.id)

        client.post(f'/api/v1/trash/file/{sample_image.id}/restore', headers=auth_headers)

        db_session.expire_all()
        assert db_session.get(Folder, sample_folder.id).is_deleted is False

    def test_restore_folder_brings_back_its_files(self, client, db_session, auth_headers,
                                                  sample_image, sample_video, sample_folder):
        _trash_file(client, auth_headers, sample_image.id)
        _trash_folder(client, auth_headers, sample_folder.id)

        response = client.post(f'/api/v1/trash/folder/{sample_folder.id}/restore', headers=auth_headers)

        assert response.get_json()['message'] == 'Folder restored'
        db_session.expire_all()
        assert db_session.get(MediaFile, sample_video.id).is_deleted is False
        assert db_session.get(MediaFile, sample_image.id).is_deleted is True

    def test_restore_folder_renames_on_conflict(self, client, db_session, auth_headers, sample_folder):
        _trash_folder(client, auth_headers, sample_folder.id)
        db_session.add(Folder(name='Acme Corp'))
        db_session.commit()

        response = client.post(f'/api/v1/trash/folder/{sample_folder.id}/restore', headers=auth_headers)

        assert response.get_json()['item']['name'] == 'Acme Corp (1)'

    def test_restore_live_item(self, client, auth_headers, sample_image):
        response = client.post(f'/api/v1/trash/file/{sample_image.id}/restore', headers=auth_headers)

        assert response.status_code == 404

    def test_unknown_kind(self, client, auth_headers):
        response = client.post('/api/v1/trash/widget/1/restore', headers=auth_headers)

        assert response.status_code == 400

    def test_restore_all(self, client, auth_headers, sample_image, sample_video, sample_folder):
        _trash_folder(client, auth_headers, sample_folder.id)

        response = client.post('/api/v1/trash/restore-all', headers=auth_headers)

        assert response.get_json()['restored'] == {'folders': 1, 'files': 2}


class TestPermanentDelete:

    def test_delete_file_removes_object(self, app, client, db_session, auth_headers, sample_player, sample_image):
        path = _store_object(app, sample_image.file_key)
        db_session.add(PlayLog(player_id=sample_player.id, file_id=sample_image.id))
        db_session.commit()
        file_id = sample_image.id
        _trash_file(client, auth_headers, file_id)

        response = client.delete(f'/api/v1/trash/file/{file_id}', headers=auth_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(MediaFile, file_id) is None
        assert PlayLog.query.count() == 0
        assert not os.path.exists(path)

    def test_delete_live_file(self, client, auth_headers, sample_image):
        response = client.delete(f'/api/v1/trash/file/{sample_image.id}', headers=auth_headers)

        assert response.status_code == 404

    def test_delete_folder(self, app, client, db_session, auth_headers, sample_image, sample_video, sample_folder):
        paths = [_store_object(app, f.file_key) for f in (sample_image, sample_video)]
        folder_id = sample_folder.id
        _trash_folder(client, auth_headers, folder_id)

        response = client.delete(f'/api/v1/trash/folder/{folder_id}', headers=auth_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Folder, folder_id) is None
        assert MediaFile.query.count() == 0
        assert not any(os.path.exists(p) for p in paths)

    def test_empty(self, client, db_session, auth_headers, sample_image, sample_video, sample_folder):
        other = Folder(name='Other')
        db_session.add(other)
        db_session.commit()
        make_file(db_session, other, 'keep.png')
        _trash_file(client, auth_headers, sample_image.id)
        _trash_file(client, auth_headers, sample_video.id)

        response = client.post('/api/v1/trash/empty', headers=auth_headers)

        assert response.get_json()['deletedObjects'] == 2
        db_session.expire_all()
        assert [f.name for f in MediaFile.query.all()] == ['keep.png']
        assert Folder.query.count() == 2


class TestTrashService:

    def test_soft_delete_folder_skips_trashed(self, db_session, sample_folder, sample_image):
        assert TrashService.soft_delete_folders([sample_folder]) == 1
        db_session.commit()

        assert TrashService.soft_delete_folders([sample_folder]) == 0
