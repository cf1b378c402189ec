from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def _allowed_origins(value):
    if not value or value.strip() == '*':
        return '*'
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app.config.get('CORS_ORIGINS', '*'))
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from gridduel.main import main
    flask_app.register_blueprint(main)

    # One room table per app; handlers bind to the initialized socketio instance
    from gridduel.registry import RoomRegistry
    from gridduel.socketio_events import register_socketio_handlers
    registry = RoomRegistry(
        code_length=int(flask_app.config.get('ROOM_CODE_LENGTH', 6)),
        host_override=bool(flask_app.config.get('HOST_OVERRIDE_ENABLED', True)),
    )
    router = register_socketio_handlers(registry, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))
    flask_app.extensions['room_registry'] = registry
    flask_app.extensions['room_router'] = router

    from gridduel.services.games.reaper import schedule_idle_reaper
    schedule_idle_reaper(flask_app, router)

    return flask_app
