from flask import Blueprint, jsonify, request, current_app
from poker.errors import SessionError, SessionNotFound, InvalidRecord
from poker.services.sessions import records
from poker.services.sessions.results import summarize_votes


sessions = Blueprint('sessions', __name__)


@sessions.errorhandler(SessionError)
def handle_session_error(exc):
    return jsonify({'error': str(exc)}), exc.status_code


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRecord('A JSON object body is required')
    return data


@sessions.route('/deck', methods=['GET'])
def get_deck():
    cfg = current_app.config
    return jsonify({
        'card_values': list(cfg.get('CARD_VALUES', [])),
        'avatar_keys': list(cfg.get('AVATAR_KEYS', [])),
        'session_code_length': int(cfg.get('SESSION_CODE_LENGTH', 8)),
    })


@sessions.route('/sessions/<string:session_id>', methods=['GET'])
def get_session(session_id):
    session = records.get_session(session_id)
    if session is None:
        raise SessionNotFound()
    return jsonify(session)


@sessions.route('/sessions/<string:session_id>', methods=['PUT'])
def set_session(session_id):
    session = records.set_session(session_id, _json_body())
    return jsonify(session), 201


@sessions.route('/sessions/<string:session_id>', methods=['PATCH'])
def update_session(session_id):
    return jsonify(records.update_session(session_id, _json_body()))


@sessions.route('/sessions/<string:session_id>', methods=['DELETE'])
def remove_session(session_id):
    records.remove_session(session_id)
    return '', 204


@sessions.route('/sessions/<string:session_id>/participants/<string:participant_id>', methods=['PUT'])
def set_participant(session_id, participant_id):
    participant = records.set_participant(session_id, participant_id, _json_body())
    return jsonify(participant), 201


@sessions.route('/sessions/<string:session_id>/participants/<string:participant_id>', methods=['PATCH'])
def update_participant(session_id, participant_id):
    return jsonify(records.update_participant(session_id, participant_id, _json_body()))


@sessions.route('/sessions/<string:session_id>/participants/<string:participant_id>', methods=['DELETE'])
def remove_participant(session_id, participant_id):
    records.remove_participant(session_id, participant_id)
    return '', 204


@sessions.route('/sessions/<string:session_id>/results', methods=['GET'])
def get_results(session_id):
    session = records.get_session(session_id)
    if session is None:
        raise SessionNotFound()
    return jsonify({'results': summarize_votes(session, current_app.config.get('CARD_VALUES'))})
