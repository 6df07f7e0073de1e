from flask import Blueprint, jsonify, request

from codeduel.services import matchmaker, matches
from codeduel.services.rooms import get_room


rooms = Blueprint('rooms', __name__)


def _caller(data):
    user_id = data.get('user_id') or request.args.get('user_id')
    return str(user_id) if user_id else None


@rooms.route('', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    room = matchmaker.create_room(
        data.get('mode') or 'custom',
        data.get('time_limit'),
        data.get('difficulty') or 'easy',
        _caller(data),
    )
    return jsonify({'room': room.to_dict(), 'joined_existing': False}), 201


@rooms.route('/quickplay', methods=['POST'])
def join_quickplay():
    data = request.get_json(silent=True) or {}
    room, joined = matchmaker.join_quickplay(
        data.get('difficulty') or 'easy',
        _caller(data),
        time_limit=data.get('time_limit'),
    )
    return jsonify({'room': room.to_dict(), 'joined_existing': joined}), 200 if joined else 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    room = matchmaker.join_room(_caller(data), room_id=data.get('room_id'), room_code=data.get('room_code'))
    return jsonify({'success': True, 'room': room.to_dict()})


@rooms.route('/<int:room_id>', methods=['GET'])
def get_room_state(room_id):
    return jsonify(get_room(room_id).to_dict())


@rooms.route('/<int:room_id>/start', methods=['POST'])
def start_match(room_id):
    data = request.get_json(silent=True) or {}
    return jsonify(matches.start_match(room_id, _caller(data)))


@rooms.route('/<int:room_id>/rematch', methods=['POST'])
def rematch(room_id):
    data = request.get_json(silent=True) or {}
    room, joined = matchmaker.rematch(room_id, _caller(data))
    return jsonify({'room': room.to_dict(), 'joined_existing': joined}), 201
