from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


def _registry():
    return current_app.extensions['room_registry']


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the gridduel game server!'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'rooms': len(_registry())})


@main.route('/api/rooms/<string:code>')
def room_state(code):
    """Read-only snapshot of a live room."""
    room = _registry().get(code)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    with room.lock:
        return jsonify(room.to_dict())
