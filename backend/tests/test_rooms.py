import re

import pytest
from sqlalchemy.exc import OperationalError

from codeduel import db
from codeduel.errors import InvalidRoomState, RoomCodeExhausted
from codeduel.models import Room, ROOM_STATUS_ORDER, generate_room_code
from codeduel.services import matchmaker, rooms as room_store


def test_room_code_format():
    for _ in range(200):
        assert re.fullmatch(r'[A-Z0-9]{6}', generate_room_code())


def test_create_custom_room(client):
    res = client.post('/api/rooms', json={'user_id': 'alice', 'mode': 'custom', 'time_limit': 600, 'difficulty': 'medium'})
    assert res.status_code == 201
    room = res.get_json()['room']
    assert room['status'] == 'waiting'
    assert room['player1_id'] == 'alice'
    assert room['created_by'] == 'alice'
    assert room['player2_id'] is None
    assert room['time_limit'] == 600
    assert re.fullmatch(r'[A-Z0-9]{6}', room['room_code'])


def test_create_room_validates_input(client):
    res = client.post('/api/rooms', json={'user_id': 'alice', 'mode': 'ranked'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'InvalidRequest'
    res = client.post('/api/rooms', json={'mode': 'custom'})
    assert res.status_code == 400
    res = client.post('/api/rooms', json={'user_id': 'alice', 'time_limit': 0})
    assert res.status_code == 400


def test_join_room_by_code_locks_it(client):
    room = client.post('/api/rooms', json={'user_id': 'alice'}).get_json()['room']
    res = client.post('/api/rooms/join', json={'user_id': 'bob', 'room_code': room['room_code'].lower()})
    assert res.status_code == 200
    joined = res.get_json()['room']
    assert joined['status'] == 'locked'
    assert joined['player2_id'] == 'bob'
    assert joined['locked_at'] is not None


def test_join_room_rejects_second_joiner_and_creator(client):
    room = client.post('/api/rooms', json={'user_id': 'alice'}).get_json()['room']
    res = client.post('/api/rooms/join', json={'user_id': 'alice', 'room_id': room['id']})
    assert res.status_code == 409
    assert client.post('/api/rooms/join', json={'user_id': 'bob', 'room_id': room['id']}).status_code == 200
    res = client.post('/api/rooms/join', json={'user_id': 'cara', 'room_id': room['id']})
    assert res.status_code == 409
    assert res.get_json()['error'] == 'InvalidRoomState'
    state = client.get(f"/api/rooms/{room['id']}").get_json()
    assert state['player2_id'] == 'bob'


def test_join_unknown_room(client):
    res = client.post('/api/rooms/join', json={'user_id': 'bob', 'room_id': 999})
    assert res.status_code == 404
    assert res.get_json()['error'] == 'NotFound'


def test_quickplay_creates_then_matches(client):
    first = client.post('/api/rooms/quickplay', json={'user_id': 'alice', 'difficulty': 'easy'})
    assert first.status_code == 201
    assert first.get_json()['joined_existing'] is False
    room_id = first.get_json()['room']['id']

    second = client.post('/api/rooms/quickplay', json={'user_id': 'bob', 'difficulty': 'easy'})
    assert second.status_code == 200
    body = second.get_json()
    assert body['joined_existing'] is True
    assert body['room']['id'] == room_id
    assert body['room']['status'] == 'locked'

    # Room is full: a third player gets a fresh room instead of double-booking
    third = client.post('/api/rooms/quickplay', json={'user_id': 'cara', 'difficulty': 'easy'}).get_json()
    assert third['joined_existing'] is False
    assert third['room']['id'] != room_id
    assert Room.query.count() == 2


def test_quickplay_ignores_other_difficulties_own_rooms_and_custom(client):
    client.post('/api/rooms/quickplay', json={'user_id': 'alice', 'difficulty': 'hard'})
    client.post('/api/rooms', json={'user_id': 'dave', 'mode': 'custom', 'difficulty': 'easy'})
    mine = client.post('/api/rooms/quickplay', json={'user_id': 'bob', 'difficulty': 'easy'}).get_json()
    assert mine['joined_existing'] is False
    again = client.post('/api/rooms/quickplay', json={'user_id': 'bob', 'difficulty': 'easy'}).get_json()
    assert again['joined_existing'] is False


def test_quickplay_lost_race_falls_back_to_new_room(flask_app, monkeypatch):
    open_room, _ = matchmaker.join_quickplay('easy', 'alice')
    stale = db.session.get(Room, open_room.id)

    # Another caller takes the seat between our read and our conditional update
    def racing_candidate(difficulty, caller):
        assert room_store.try_lock(stale.id, 'bob')
        db.session.commit()
        return stale

    monkeypatch.setattr(matchmaker, 'find_quickplay_candidate', racing_candidate)
    room, joined = matchmaker.join_quickplay('easy', 'cara')
    assert joined is False
    assert room.id != open_room.id
    assert room.player1_id == 'cara'
    assert room.status == 'waiting'
    contested = room_store.get_room(open_room.id, refresh=True)
    assert contested.player2_id == 'bob'


def test_conditional_lock_only_wins_once(flask_app):
    room = matchmaker.create_room('custom', 900, 'easy', 'alice')
    assert room_store.try_lock(room.id, 'bob') is True
    assert room_store.try_lock(room.id, 'cara') is False
    db.session.commit()
    assert room_store.get_room(room.id, refresh=True).player2_id == 'bob'


def test_status_never_regresses(flask_app):
    room = matchmaker.create_room('custom', 900, 'easy', 'alice')
    assert room_store.try_lock(room.id, 'bob')
    db.session.commit()
    # Completing straight from locked is not allowed, nor is re-locking
    assert room_store.try_complete(room.id, None) is False
    assert room_store.try_lock(room.id, 'cara') is False
    with pytest.raises(ValueError):
        room_store._transition(room.id, 'active', {'status': 'waiting'})
    for current, target in zip(ROOM_STATUS_ORDER, ROOM_STATUS_ORDER[1:]):
        assert room_store.is_forward(current, target)
        assert not room_store.is_forward(target, current)


def test_room_code_collision_regenerates(flask_app, monkeypatch):
    existing = matchmaker.create_room('custom', 900, 'easy', 'alice')
    codes = iter([existing.room_code, existing.room_code, 'ZZZ999'])
    monkeypatch.setattr(room_store, 'generate_room_code', lambda: next(codes))
    room = matchmaker.create_room('custom', 900, 'easy', 'bob')
    assert room.room_code == 'ZZZ999'


def test_room_code_exhausted(flask_app, monkeypatch):
    existing = matchmaker.create_room('custom', 900, 'easy', 'alice')
    monkeypatch.setattr(room_store, 'generate_room_code', lambda: existing.room_code)
    with pytest.raises(RoomCodeExhausted):
        matchmaker.create_room('custom', 900, 'easy', 'bob')


def test_room_code_exhausted_api_error(client, flask_app, monkeypatch):
    existing = client.post('/api/rooms', json={'user_id': 'alice'}).get_json()['room']
    monkeypatch.setattr(room_store, 'generate_room_code', lambda: existing['room_code'])
    res = client.post('/api/rooms', json={'user_id': 'bob'})
    assert res.status_code == 503
    assert res.get_json()['error'] == 'RoomCodeExhausted'


def test_rematch_requires_completed_room(flask_app):
    room = matchmaker.create_room('custom', 900, 'easy', 'alice')
    with pytest.raises(InvalidRoomState):
        matchmaker.rematch(room.id, 'alice')


def test_storage_errors_are_rolled_back_and_not_leaked(client, monkeypatch):
    room = client.post('/api/rooms', json={'user_id': 'alice'}).get_json()['room']

    def failing_lock(room_id, player2_id):
        raise OperationalError('UPDATE room SET player2_id=?', {}, Exception('disk I/O error on /var/lib/db'))

    monkeypatch.setattr(room_store, 'try_lock', failing_lock)
    res = client.post('/api/rooms/join', json={'user_id': 'bob', 'room_id': room['id']})
    assert res.status_code == 500
    assert res.get_json()['error'] == 'InternalError'
    raw = res.get_data(as_text=True)
    assert 'disk I/O' not in raw
    assert 'UPDATE room' not in raw

    monkeypatch.undo()
    state = client.get(f"/api/rooms/{room['id']}").get_json()
    assert state['status'] == 'waiting'
    assert state['player2_id'] is None
