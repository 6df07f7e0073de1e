from flask import Blueprint, jsonify, request

from codeduel.services import matches as match_service
from codeduel.services import submissions


matches = Blueprint('matches', __name__)


def _caller(data):
    user_id = data.get('user_id') or request.args.get('user_id')
    return str(user_id) if user_id else None


@matches.route('/<int:match_id>', methods=['GET'])
def get_match_state(match_id):
    return jsonify(match_service.get_match_state(match_id))


@matches.route('/<int:match_id>/submissions', methods=['POST'])
def submit_solution(match_id):
    data = request.get_json(silent=True) or {}
    result = submissions.submit(match_id, _caller(data), data.get('code'), data.get('language'))
    return jsonify(result), 202


@matches.route('/<int:match_id>/submissions/<int:submission_id>', methods=['GET'])
def get_submission(match_id, submission_id):
    return jsonify(submissions.get_submission(match_id, submission_id, _caller({})))


@matches.route('/<int:match_id>/results', methods=['GET'])
def get_results(match_id):
    return jsonify(match_service.get_results(match_id))


@matches.route('/<int:match_id>/draft', methods=['GET'])
def get_draft(match_id):
    return jsonify({'draft': submissions.get_draft(match_id, _caller({}))})


@matches.route('/<int:match_id>/draft', methods=['PUT'])
def save_draft(match_id):
    data = request.get_json(silent=True) or {}
    draft = submissions.save_draft(match_id, _caller(data), data.get('code'), data.get('language'))
    return jsonify({'draft': draft})
