"""
Tests for the playlist routes.
"""

from signage_cms.models import Player, Playlist, PlaylistItem, PlayLog
from signage_cms.services.playlist_order import PlaylistOrderService
from signage_cms.tests.conftest import make_file, make_playlist


def _orders(db_session, playlist_id):
    db_session.expire_all()
    return [(item.id, item.play_order) for item in PlaylistOrderService.ordered_items(playlist_id)]


class TestPlaylistCrud:

    def test_create(self, client, auth_headers):
        response = client.post('/api/v1/playlists/create', headers=auth_headers, json={
            'name': 'Morning Loop',
            'duration': 20,
        })

        assert response.status_code == 201
        playlist = response.get_json()['playlist']
        assert playlist['name'] == 'Morning Loop'
        assert playlist['defaultDuration'] == 20

    def test_create_defaults_duration(self, client, auth_headers):
        response = client.post('/api/v1/playlists/create', headers=auth_headers, json={'name': 'Evening'})

        assert response.get_json()['playlist']['defaultDuration'] == 30

    def test_create_validation(self, client, auth_headers):
        short = client.post('/api/v1/playlists/create', headers=auth_headers, json={'name': 'ab'})
        long_duration = client.post('/api/v1/playlists/create', headers=auth_headers, json={
            'name': 'Valid', 'duration': 301,
        })

        assert short.status_code == 400
        assert long_duration.status_code == 400

    def test_edit(self, client, auth_headers, sample_playlist):
        response = client.put(f'/api/v1/playlists/{sample_playlist.id}', headers=auth_headers, json={
            'name': 'Lobby Loop v2',
            'defaultDuration': 12,
        })

        assert response.status_code == 200
        assert response.get_json()['playlist']['name'] == 'Lobby Loop v2'
        assert response.get_json()['playlist']['defaultDuration'] == 12

    def test_list_cards(self, client, auth_headers, sample_playlist):
        response = client.get('/api/v1/playlists', headers=auth_headers)

        assert response.status_code == 200
        card = response.get_json()['playlists'][0]
        assert card['name'] == 'Lobby Loop'
        assert card['totalItems'] == 2
        assert card['durationSec'] == 20
        assert card['playlistSize'] == 2048 + 5 * 1024 * 1024
        assert card['thumbnail'].endswith('banner.png')

    def test_list_counts_nested_size(self, client, db_session, auth_headers, sample_playlist):
        make_playlist(db_session, 'Wrapper', [sample_playlist])

        response = client.get('/api/v1/playlists?search=wrap', headers=auth_headers)

        cards = response.get_json()['playlists']
        assert [c['name'] for c in cards] == ['Wrapper']
        assert cards[0]['playlistSize'] == 2048 + 5 * 1024 * 1024
        assert cards[0]['durationSec'] == 60

    def test_list_duration_filter(self, client, db_session, auth_headers, sample_playlist):
        make_playlist(db_session, 'Empty')

        response = client.get('/api/v1/playlists?durationFrom=1', headers=auth_headers)

        assert [c['name'] for c in response.get_json()['playlists']] == ['Lobby Loop']

    def test_options(self, client, auth_headers, sample_playlist):
        response = client.get('/api/v1/playlists/list', headers=auth_headers)

        assert response.get_json()['playlist'] == [{'id': sample_playlist.id, 'name': 'Lobby Loop'}]


class TestPlaylistDetail:

    def test_items_in_play_order(self, client, auth_headers, sample_playlist, sample_image, sample_video):
        response = client.get(f'/api/v1/playlists/{sample_playlist.id}', headers=auth_headers)

        assert response.status_code == 200
        items = response.get_json()['playlist']['items']
        assert [i['fileId'] for i in items] == [sample_image.id, sample_video.id]
        assert [i['playOrder'] for i in items] == [1, 2]
        assert items[0]['type'] == 'image/png'
        assert items[0]['url']
        assert items[0]['isSubPlaylist'] is False

    def test_logs_count(self, client, db_session, auth_headers, sample_player, sample_playlist, sample_image):
        for _ in range(3):
            db_session.add(PlayLog(player_id=sample_player.id, file_id=sample_image.id,
                                   playlist_id=sample_playlist.id))
        db_session.commit()

        response = client.get(f'/api/v1/playlists/{sample_playlist.id}', headers=auth_headers)

        items = response.get_json()['playlist']['items']
        assert items[0]['logsCount'] == 3
        assert items[1]['logsCount'] == 0

    def test_sub_playlist_row(self, client, db_session, auth_headers, sample_player, sample_playlist, sample_image):
        db_session.add(PlayLog(player_id=sample_player.id, file_id=sample_image.id))
        db_session.commit()
        wrapper = make_playlist(db_session, 'Wrapper', [sample_playlist])

        response = client.get(f'/api/v1/playlists/{wrapper.id}', headers=auth_headers)

        row = response.get_json()['playlist']['items'][0]
        assert row['isSubPlaylist'] is True
        assert row['type'] == 'subPlaylist'
        assert row['subPlaylistId'] == sample_playlist.id
        assert row['name'] == 'Lobby Loop'
        assert row['logsCount'] == 1

    def test_type_filter_and_sort(self, client, auth_headers, sample_playlist):
        videos = client.get(f'/api/v1/playlists/{sample_playlist.id}?type=video', headers=auth_headers)
        by_name = client.get(f'/api/v1/playlists/{sample_playlist.id}?sortBy=name&sortOrder=desc',
                             headers=auth_headers)

        assert [i['name'] for i in videos.get_json()['playlist']['items']] == ['spot.mp4']
        assert [i['name'] for i in by_name.get_json()['playlist']['items']] == ['spot.mp4', 'banner.png']

    def test_not_found(self, client, auth_headers):
        assert client.get('/api/v1/playlists/999', headers=auth_headers).status_code == 404


class TestAddItems:

    def test_add_file(self, client, db_session, auth_headers, sample_playlist, sample_folder):
        extra = make_file(db_session, sample_folder, 'extra.png')

        response = client.post('/api/v1/playlists/add-file', headers=auth_headers, json={
            'playlistId': sample_playlist.id, 'fileId': extra.id, 'duration': 8,
        })

        assert response.status_code == 201
        assert response.get_json()['playlistFile']['playOrder'] == 3

    def test_add_file_invalid_duration(self, client, auth_headers, sample_playlist, sample_image):
        response = client.post('/api/v1/playlists/add-file', headers=auth_headers, json={
            'playlistId': sample_playlist.id, 'fileId': sample_image.id, 'duration': 0,
        })

        assert response.status_code == 400

    def test_add_sub_playlist(self, client, db_session, auth_headers, sample_playlist):
        wrapper = make_playlist(db_session, 'Wrapper')

        response = client.post('/api/v1/playlists/add-sub-playlist', headers=auth_headers, json={
            'playlistId': wrapper.id, 'subPlaylistId': sample_playlist.id,
        })

        assert response.status_code == 201
        item = response.get_json()['playlistFile']
        assert item['isSubPlaylist'] is True
        assert item['duration'] == 20

    def test_add_self(self, client, auth_headers, sample_playlist):
        response = client.post('/api/v1/playlists/add-sub-playlist', headers=auth_headers, json={
            'playlistId': sample_playlist.id, 'subPlaylistId': sample_playlist.id,
        })

        assert response.status_code == 400

    def test_add_cycle(self, client, db_session, auth_headers, sample_playlist):
        wrapper = make_playlist(db_session, 'Wrapper', [sample_playlist])

        response = client.post('/api/v1/playlists/add-sub-playlist', headers=auth_headers, json={
            'playlistId': sample_playlist.id, 'subPlaylistId': wrapper.id,
        })

        assert response.status_code == 400
        assert PlaylistItem.query.filter_by(playlist_id=sample_playlist.id).count() == 2

    def test_bulk_add_files(self, client, db_session, auth_headers, sample_playlist, sample_folder):
        first = make_file(db_session, sample_folder, 'one.png')
        second = make_file(db_session, sample_folder, 'two.png')

        response = client.post(f'/api/v1/playlists/{sample_playlist.id}/bulk-add-files', headers=auth_headers, json={
            'items': [
                {'fileId': first.id, 'duration': 5},
                {'fileId': second.id, 'duration': 5},
                {'fileId': 999, 'duration': 5},
                {'fileId': first.id},
            ],
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data['createdCount'] == 2
        assert data['invalidCount'] == 1
        assert [order for _, order in _orders(db_session, sample_playlist.id)] == [1, 2, 3, 4]

    def test_bulk_add_files_errors(self, client, auth_headers, sample_playlist):
        missing = client.post(f'/api/v1/playlists/{sample_playlist.id}/bulk-add-files', headers=auth_headers,
                              json={})
        malformed = client.post(f'/api/v1/playlists/{sample_playlist.id}/bulk-add-files', headers=auth_headers,
                                json={'items': [{'fileId': 'x'}]})
        unknown = client.post(f'/api/v1/playlists/{sample_playlist.id}/bulk-add-files', headers=auth_headers,
                              json={'items': [{'fileId': 999, 'duration': 5}]})

        assert missing.get_json()['error'] == 'items is required'
        assert malformed.get_json()['error'] == 'No valid items'
        assert unknown.status_code == 404

    def test_bulk_add_sub_playlists(self, client, db_session, auth_headers, sample_playlist, sample_image):
        leaf = make_playlist(db_session, 'Leaf', [sample_image])
        wrapper = make_playlist(db_session, 'Wrapper', [sample_playlist])

        response = client.post(
            f'/api/v1/playlists/{sample_playlist.id}/bulk-add-sub-playlists',
            headers=auth_headers,
            json={'items': [
                {'subPlaylistId': leaf.id, 'duration': 10},
                {'subPlaylistId': wrapper.id, 'duration': 10},
                {'subPlaylistId': sample_playlist.id, 'duration': 10},
            ]},
        )

        assert response.status_code == 200
        assert response.get_json()['createdCount'] == 1
        assert response.get_json()['invalidCount'] == 1


class TestReorderAndDelete:

    def test_move_item(self, client, db_session, auth_headers, sample_playlist):
        items = PlaylistOrderService.ordered_items(sample_playlist.id)
        first_id, second_id = items[0].id, items[1].id

        response = client.post('/api/v1/playlists/move-item', headers=auth_headers, json={
            'playlistFileId': first_id, 'playOrder': 2,
        })

        assert response.status_code == 200
        assert response.get_json()['playOrder'] == 2
        assert _orders(db_session, sample_playlist.id) == [(second_id, 1), (first_id, 2)]

    def test_move_item_invalid_order(self, client, auth_headers, sample_playlist):
        item = PlaylistOrderService.ordered_items(sample_playlist.id)[0]

        response = client.post('/api/v1/playlists/move-item', headers=auth_headers, json={
            'playlistFileId': item.id, 'playOrder': 0,
        })

        assert response.status_code == 400

    def test_delete_item(self, client, db_session, auth_headers, sample_playlist):
        items = PlaylistOrderService.ordered_items(sample_playlist.id)
        first_id, second_id = items[0].id, items[1].id

        response = client.delete(f'/api/v1/playlists/playlistFile/{first_id}', headers=auth_headers)

        assert response.status_code == 200
        assert _orders(db_session, sample_playlist.id) == [(second_id, 1)]

    def test_bulk_delete_items(self, client, db_session, auth_headers, sample_playlist, sample_image):
        other = make_playlist(db_session, 'Other', [sample_image, sample_image])
        ids = [PlaylistOrderService.ordered_items(sample_playlist.id)[0].id,
               PlaylistOrderService.ordered_items(other.id)[0].id]

        response = client.post('/api/v1/playlists/bulk-delete-items', headers=auth_headers, json={
            'playlistFileIds': ids,
        })

        data = response.get_json()
        assert data['deletedCount'] == 2
        assert data['affectedPlaylistIds'] == sorted([sample_playlist.id, other.id])
        assert [order for _, order in _orders(db_session, other.id)] == [1]

    def test_edit_duration(self, client, auth_headers, sample_playlist):
        image_item, video_item = PlaylistOrderService.ordered_items(sample_playlist.id)

        updated = client.put(f'/api/v1/playlists/playlistFile/{image_item.id}/duration', headers=auth_headers,
                             json={'duration': 25})
        skipped = client.put(f'/api/v1/playlists/playlistFile/{video_item.id}/duration', headers=auth_headers,
                             json={'duration': 25})
        invalid = client.put(f'/api/v1/playlists/playlistFile/{image_item.id}/duration', headers=auth_headers,
                             json={'duration': 86401})

        assert updated.get_json()['skipped'] is False
        assert updated.get_json()['playlistFile']['duration'] == 25
        assert skipped.get_json()['skipped'] is True
        assert skipped.get_json()['reason'] == 'video'
        assert invalid.status_code == 400

    def test_bulk_edit_duration(self, client, db_session, auth_headers, sample_playlist, sample_image):
        wrapper = make_playlist(db_session, 'Wrapper', [sample_image, sample_playlist])
        ids = [item.id for item in PlaylistOrderService.ordered_items(wrapper.id)]

        response = client.post('/api/v1/playlists/bulk-edit-duration', headers=auth_headers, json={
            'playlistFileIds': ids, 'duration': 45,
        })

        data = response.get_json()
        assert data['updatedIds'] == [ids[0]]
        assert data['skipped'] == [{'playlistFileId': ids[1], 'reason': 'subPlaylist'}]

    def test_delete_playlist(self, client, db_session, auth_headers, sample_player, sample_playlist, sample_image):
        wrapper = make_playlist(db_session, 'Wrapper', [sample_image, sample_playlist])
        playlist_id = sample_playlist.id

        response = client.delete(f'/api/v1/playlists/{playlist_id}', headers=auth_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Playlist, playlist_id) is None
        assert db_session.get(Player, sample_player.id).playlist_id is None
        assert [order for _, order in _orders(db_session, wrapper.id)] == [1]

    def test_bulk_delete(self, client, db_session, auth_headers, sample_playlist):
        other = make_playlist(db_session, 'Other')

        response = client.post('/api/v1/playlists/bulk-delete', headers=auth_headers, json={
            'playlistIds': [sample_playlist.id, other.id],
        })

        assert response.get_json()['deletedCount'] == 2
        db_session.expire_all()
        assert Playlist.query.count() == 0
