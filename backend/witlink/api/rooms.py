from flask import Blueprint, current_app, jsonify, request

from witlink.errors import ExternalServiceError, NotFoundError
from witlink.models import Difficulty
from witlink.topics import TOPICS

rooms = Blueprint('rooms', __name__)


@rooms.route('/')
def index():
    return 'WitLink backend is running!'


@rooms.route('/health')
def health():
    return 'OK', 200


@rooms.route('/topics')
def get_topics():
    return jsonify(TOPICS)


@rooms.route('/api/questions/<string:room_id>')
def get_room_questions(room_id):
    """Questions generated for a room by its last successful start."""
    coordinator = current_app.extensions['witlink']
    try:
        questions = coordinator.questions_for(room_id)
    except NotFoundError:
        return jsonify({'error': 'Room not found'}), 404
    if questions is None:
        return jsonify({'error': 'Questions not found for this room'}), 404
    return jsonify({'questions': [q.to_dict() for q in questions]})


@rooms.route('/api/question')
def generate_questions():
    topic = request.args.get('topic')
    difficulty = request.args.get('difficulty')
    if not topic or not difficulty:
        return jsonify({'error': 'Topic and difficulty are required'}), 400
    try:
        level = Difficulty.parse(difficulty)
    except ValueError:
        return jsonify({'error': 'Difficulty must be EASY, MEDIUM or HARD'}), 400

    coordinator = current_app.extensions['witlink']
    try:
        questions = coordinator.question_provider(topic, level)
    except ExternalServiceError as exc:
        current_app.logger.warning(f"[question] topic={topic!r} difficulty={level.value} error={exc}")
        return jsonify({'error': 'Failed to generate questions'}), 500
    return jsonify({'questions': [q.to_dict() for q in questions]})
