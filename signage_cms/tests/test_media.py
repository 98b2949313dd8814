"""
Tests for the media routes: folders, uploads and files.
"""

import io
from datetime import timedelta

from signage_cms.models import Folder, MediaFile, PlaylistItem, isoformat, utcnow
from signage_cms.tests.conftest import make_file, make_playlist


def _upload(client, headers, folder_id, data=b'\x89PNG fake', filename='promo.png',
            mimetype='image/png', **fields):
    form = {'file': (io.BytesIO(data), filename, mimetype)}
    form.update(fields)
    return client.post(
        f'/api/v1/media/{folder_id}/upload-media',
        headers=headers,
        data=form,
        content_type='multipart/form-data',
    )


class TestFolders:

    def test_requires_auth(self, client):
        assert client.get('/api/v1/media/folders').status_code == 401

    def test_create_folder(self, client, auth_headers):
        response = client.post('/api/v1/media/folders/create', headers=auth_headers, json={
            'name': 'Globex',
            'start_date': '2024-01-01',
            'end_date': '2024-03-31',
        })

        assert response.status_code == 201
        folder = response.get_json()['folder']
        assert folder['name'] == 'Globex'
        assert folder['validityEnd'].startswith('2024-03-31')

    def test_duplicate_folder_name(self, client, auth_headers, sample_folder):
        response = client.post('/api/v1/media/folders/create', headers=auth_headers, json={'name': 'Acme Corp'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Folder name exists'

    def test_invalid_validity(self, client, auth_headers):
        reversed_dates = client.post('/api/v1/media/folders/create', headers=auth_headers, json={
            'name': 'Initech', 'start_date': '2024-05-01', 'end_date': '2024-04-01',
        })
        garbage = client.post('/api/v1/media/folders/create', headers=auth_headers, json={
            'name': 'Initech', 'start_date': 'soon',
        })

        assert reversed_dates.status_code == 400
        assert garbage.status_code == 400

    def test_list_folder_cards(self, client, auth_headers, sample_player):
        response = client.get('/api/v1/media/folders', headers=auth_headers)

        assert response.status_code == 200
        cards = response.get_json()['media']
        assert len(cards) == 1
        card = cards[0]
        assert card['name'] == 'Acme Corp'
        assert card['fileCount'] == 2
        assert card['folderSize'] == 2048 + 5 * 1024 * 1024
        assert card['folderDuration'] == 15
        assert card['status'] == 'active'
        assert card['validityStatus'] == 'running'
        assert '/api/v1/media/files/' in card['thumbnail']
        assert card['thumbnail'].endswith('banner.png')
        assert not any(key.startswith('_') for key in card)

    def test_unassigned_folder_is_inactive(self, client, auth_headers, sample_image):
        response = client.get('/api/v1/media/folders', headers=auth_headers)

        assert response.get_json()['media'][0]['status'] == 'inactive'

    def test_filters(self, client, db_session, auth_headers, sample_video):
        now = utcnow()
        expiring = Folder(name='Expiring', validity_start=now - timedelta(days=10),
                          validity_end=now + timedelta(days=3))
        done = Folder(name='Done', validity_start=now - timedelta(days=30),
                      validity_end=now - timedelta(days=1))
        db_session.add_all([expiring, done])
        db_session.commit()

        by_status = client.get('/api/v1/media/folders?status=expiring', headers=auth_headers).get_json()['media']
        by_search = client.get('/api/v1/media/folders?search=acme', headers=auth_headers).get_json()['media']
        by_size = client.get('/api/v1/media/folders?sizeBucket=0-10', headers=auth_headers).get_json()['media']

        assert [c['name'] for c in by_status] == ['Expiring']
        assert by_status[0]['validityStatus'] == '3 days left'
        assert [c['name'] for c in by_search] == ['Acme Corp']
        assert {c['name'] for c in by_size} == {'Acme Corp', 'Expiring', 'Done'}

    def test_sort_by_name(self, client, db_session, auth_headers, sample_folder):
        db_session.add_all([Folder(name='beta'), Folder(name='Alpha')])
        db_session.commit()

        response = client.get('/api/v1/media/folders?sortBy=name&sortOrder=asc', headers=auth_headers)

        assert [c['name'] for c in response.get_json()['media']] == ['Acme Corp', 'Alpha', 'beta']

    def test_edit_folder(self, client, db_session, auth_headers, sample_folder):
        db_session.add(Folder(name='Taken'))
        db_session.commit()

        clash = client.post('/api/v1/media/edit-folder', headers=auth_headers, json={
            'folderId': sample_folder.id, 'name': 'Taken',
        })
        renamed = client.post('/api/v1/media/edit-folder', headers=auth_headers, json={
            'folderId': sample_folder.id, 'name': 'Acme Inc',
        })

        assert clash.status_code == 400
        assert renamed.status_code == 200
        assert renamed.get_json()['folder']['name'] == 'Acme Inc'

    def test_delete_folder_removes_files_from_playlists(self, client, db_session, auth_headers,
                                                        sample_playlist, sample_folder):
        other_folder = Folder(name='Other')
        db_session.add(other_folder)
        db_session.commit()
        keep = make_file(db_session, other_folder, 'keep.png')
        mixed = make_playlist(db_session, 'Mixed', [keep])
        playlist_id = sample_playlist.id

        response = client.post('/api/v1/media/delete-folder', headers=auth_headers, json={
            'folderId': sample_folder.id,
        })

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Folder, sample_folder.id).is_deleted is True
        assert MediaFile.query.filter_by(folder_id=sample_folder.id, is_deleted=False).count() == 0
        assert PlaylistItem.query.filter_by(playlist_id=playlist_id).count() == 0
        assert PlaylistItem.query.filter_by(playlist_id=mixed.id).count() == 1

    def test_delete_missing_folder(self, client, auth_headers):
        response = client.post('/api/v1/media/delete-folder', headers=auth_headers, json={'folderId': 999})

        assert response.status_code == 404

    def test_bulk_delete_folders(self, client, db_session, auth_headers, sample_folder):
        other = Folder(name='Other')
        db_session.add(other)
        db_session.commit()

        response = client.post('/api/v1/media/bulk/delete-folder', headers=auth_headers, json={
            'folderIds': [sample_folder.id, other.id, 999],
        })

        assert response.status_code == 200
        assert response.get_json()['deletedCount'] == 2

    def test_bulk_delete_requires_ids(self, client, auth_headers):
        response = client.post('/api/v1/media/bulk/delete-folder', headers=auth_headers, json={'folderIds': []})

        assert response.status_code == 400

    def test_folder_options(self, client, db_session, auth_headers, sample_folder):
        db_session.add(Folder(name='Gone', is_deleted=True, deleted_at=utcnow()))
        db_session.commit()

        response = client.get('/api/v1/media/get-folders', headers=auth_headers)

        assert response.get_json()['folders'] == [{'id': sample_folder.id, 'name': 'Acme Corp'}]


class TestUpload:

    def test_upload_and_download(self, client, auth_headers, sample_folder):
        response = _upload(client, auth_headers, sample_folder.id, duration='0')

        assert response.status_code == 201
        uploaded = response.get_json()['file']
        assert uploaded['name'] == 'promo.png'
        assert uploaded['fileType'] == 'image/png'
        assert uploaded['fileSize'] == len(b'\x89PNG fake')
        assert uploaded['fileKey'].startswith('Acme_Corp/')
        assert uploaded['fileKey'].endswith('-promo.png')
        assert uploaded['signedUrl']

        download = client.get(f"/api/v1/media/files/{uploaded['fileKey']}")
        assert download.status_code == 200
        assert download.data == b'\x89PNG fake'

    def test_duplicate_names_get_suffix(self, client, auth_headers, sample_folder):
        _upload(client, auth_headers, sample_folder.id)
        second = _upload(client, auth_headers, sample_folder.id)

        assert second.status_code == 201
        assert second.get_json()['file']['name'] == 'promo (1).png'

    def test_no_file(self, client, auth_headers, sample_folder):
        response = client.post(
            f'/api/v1/media/{sample_folder.id}/upload-media',
            headers=auth_headers,
            data={'name': 'x'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        assert response.get_json()['error'] == 'No file found'

    def test_more_than_one_file(self, client, auth_headers, sample_folder):
        response = client.post(
            f'/api/v1/media/{sample_folder.id}/upload-media',
            headers=auth_headers,
            data={
                'file': [
                    (io.BytesIO(b'a'), 'a.png', 'image/png'),
                    (io.BytesIO(b'b'), 'b.png', 'image/png'),
                ],
            },
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Only 1 file allowed'

    def test_unsupported_type(self, client, auth_headers, sample_folder):
        response = _upload(client, auth_headers, sample_folder.id, filename='notes.txt', mimetype='text/plain')

        assert response.status_code == 400

    def test_declared_type_must_match(self, client, auth_headers, sample_folder):
        response = _upload(client, auth_headers, sample_folder.id, type='video/mp4')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid type'

    def test_invalid_duration(self, client, auth_headers, sample_folder):
        response = _upload(client, auth_headers, sample_folder.id, duration='-4')

        assert response.status_code == 400

    def test_video_duration_is_recorded(self, client, auth_headers, sample_folder):
        response = _upload(client, auth_headers, sample_folder.id, data=b'mp4', filename='ad.mp4',
                           mimetype='video/mp4', duration='12.6', size='4096')

        uploaded = response.get_json()['file']
        assert uploaded['duration'] == 13
        assert uploaded['fileSize'] == 4096

    def test_missing_folder(self, client, auth_headers):
        assert _upload(client, auth_headers, 999).status_code == 404


class TestFiles:

    def test_list_folder_media(self, client, auth_headers, sample_player, sample_folder, db_session):
        make_file(db_session, sample_folder, 'unused.pdf', 'application/pdf')

        response = client.get(f'/api/v1/media/{sample_folder.id}/media?sortBy=name&sortOrder=asc',
                              headers=auth_headers)

        assert response.status_code == 200
        rows = response.get_json()['media']
        assert [r['name'] for r in rows] == ['banner.png', 'spot.mp4', 'unused.pdf']
        assert [r['status'] for r in rows] == ['active', 'active', 'inactive']
        assert all(r['url'] for r in rows)

    def test_media_filters(self, client, auth_headers, sample_image, sample_video, sample_folder):
        videos = client.get(f'/api/v1/media/{sample_folder.id}/media?fileType=video', headers=auth_headers)
        pngs = client.get(f'/api/v1/media/{sample_folder.id}/media?fileType=image/png', headers=auth_headers)

        assert [r['name'] for r in videos.get_json()['media']] == ['spot.mp4']
        assert [r['name'] for r in pngs.get_json()['media']] == ['banner.png']

    def test_nested_playlist_files_are_active(self, client, db_session, auth_headers, sample_player,
                                              sample_playlist, sample_folder):
        nested_file = make_file(db_session, sample_folder, 'nested.png')
        nested = make_playlist(db_session, 'Nested', [nested_file])
        db_session.add(PlaylistItem(playlist_id=sample_playlist.id, sub_playlist_id=nested.id,
                                    is_sub_playlist=True, duration=10, play_order=3))
        db_session.commit()

        response = client.get(f'/api/v1/media/{sample_folder.id}/media?status=active', headers=auth_headers)

        assert 'nested.png' in [r['name'] for r in response.get_json()['media']]

    def test_rename_file(self, client, auth_headers, sample_image, sample_video):
        clash = client.post('/api/v1/media/edit-file-name', headers=auth_headers, json={
            'fileId': sample_image.id, 'name': 'spot.mp4',
        })
        renamed = client.post('/api/v1/media/edit-file-name', headers=auth_headers, json={
            'fileId': sample_image.id, 'name': 'hero.png',
        })

        assert clash.status_code == 400
        assert renamed.status_code == 200
        assert renamed.get_json()['file']['name'] == 'hero.png'

    def test_delete_file_compacts_playlist(self, client, db_session, auth_headers, sample_playlist,
                                           sample_image, sample_video):
        response = client.post('/api/v1/media/delete-file', headers=auth_headers, json={'fileId': sample_image.id})

        assert response.status_code == 200
        db_session.expire_all()
        items = PlaylistItem.query.filter_by(playlist_id=sample_playlist.id).all()
        assert [(i.file_id, i.play_order) for i in items] == [(sample_video.id, 1)]
        assert db_session.get(MediaFile, sample_image.id).is_deleted is True

    def test_delete_file_twice(self, client, auth_headers, sample_image):
        client.post('/api/v1/media/delete-file', headers=auth_headers, json={'fileId': sample_image.id})
        response = client.post('/api/v1/media/delete-file', headers=auth_headers, json={'fileId': sample_image.id})

        assert response.status_code == 404

    def test_bulk_delete_files(self, client, auth_headers, sample_image, sample_video):
        response = client.post('/api/v1/media/bulk/delete-file', headers=auth_headers, json={
            'fileIds': [sample_image.id, sample_video.id],
        })

        assert response.get_json()['deletedCount'] == 2

    def test_file_options(self, client, auth_headers, sample_image, sample_folder):
        response = client.get(f'/api/v1/media/{sample_folder.id}/get-files', headers=auth_headers)

        files = response.get_json()['files']
        assert files[0]['id'] == sample_image.id
        assert files[0]['type'] == 'image/png'
        assert files[0]['key'] == 'Acme Corp/banner.png'

    def test_last_modified_filter(self, client, auth_headers, sample_image):
        future = isoformat(utcnow() + timedelta(days=1))

        response = client.get(f'/api/v1/media/folders?lastModifiedFrom={future}', headers=auth_headers)

        assert response.get_json()['media'] == []
