from conftest import open_match


def test_socket_connect_and_watch(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('watch_room', {'room_id': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'watching' and pkt['args'][0]['topic'] == 'room:1' for pkt in received)


def test_watch_requires_id(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('watch_match', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_room_watchers_get_state_updates(client, sio_client):
    room = client.post('/api/rooms', json={'user_id': 'alice'}).get_json()['room']
    sio_client.emit('watch_room', {'room_id': room['id']}, namespace='/ws')
    sio_client.get_received('/ws')  # flush

    client.post('/api/rooms/join', json={'user_id': 'bob', 'room_id': room['id']})
    events = sio_client.get_received('/ws')
    updates = [e['args'][0] for e in events if e['name'] == 'state_update']
    assert updates
    assert updates[-1]['room_id'] == room['id']
    assert updates[-1]['status'] == 'locked'
    assert updates[-1]['event'] == 'player_joined'


def test_match_watchers_see_completion(client, sio_client, problem, fake_judge):
    started = open_match(client)
    match_id, room_id = started['match']['id'], started['room']['id']
    sio_client.emit('watch_room', {'room_id': room_id}, namespace='/ws')
    sio_client.emit('watch_match', {'match_id': match_id}, namespace='/ws')
    sio_client.get_received('/ws')

    for user in ('alice', 'bob'):
        client.post(f"/api/matches/{match_id}/submissions",
                    json={'user_id': user, 'code': 'print(0)', 'language': 'python'})
    events = [e['args'][0] for e in sio_client.get_received('/ws') if e['name'] == 'state_update']
    kinds = [e['event'] for e in events]
    assert kinds.count('submission_received') == 2
    assert kinds.count('submission_evaluated') == 2
    assert kinds.count('match_completed') == 1
