import threading
from contextlib import contextmanager
from typing import Dict, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from gridduel import socketio
from gridduel.errors import InvalidRequest, NotFound, RoomError
from gridduel.models import normalize_code
from gridduel.services.games.board import DEFAULT_BOARD_SIZE

PLAYER_LEFT_MESSAGE = 'The other player has left'
GAME_RESET_MESSAGE = 'The other player left, the game has been reset'
HOST_LEFT_MESSAGE = 'The host has left, the room is closed'
IDLE_MESSAGE = 'The room was closed after a period of inactivity'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest('Payload must be an object')
    return data


def _room_code(data) -> str:
    code = normalize_code(_payload(data).get('roomId'))
    if not code:
        raise InvalidRequest('roomId is required')
    return code


class EventRouter:
    """Translate Socket.IO events into room operations.

    Each inbound event maps to one handler through ``HANDLERS``. Room
    errors go back to the requester only; successful state changes are
    broadcast to every connection in the room's channel. The router also
    remembers which room each connection sits in so a disconnect can be
    routed without a room code.
    """

    HANDLERS = {
        'createRoom': 'create_room',
        'joinRoom': 'join',
        'startGame': 'start_game',
        'move': 'move',
        'forceUpdateBoard': 'force_update_board',
        'restartGame': 'restart_game',
        'leaveRoom': 'leave',
    }

    def __init__(self, registry, namespace='/'):
        self.registry = registry
        self.namespace = namespace
        self._sid_to_room: Dict[str, str] = {}
        self._sid_lock = threading.Lock()

    # ---- wiring ----

    def register(self) -> None:
        socketio.on_event('connect', self.on_connect, namespace=self.namespace)
        socketio.on_event('disconnect', self.on_disconnect, namespace=self.namespace)
        for event in self.HANDLERS:
            socketio.on_event(event, self._bind(event), namespace=self.namespace)

    def _bind(self, event):
        def _handler(data=None):
            self.dispatch(event, _get_sid(), data)
        _handler.__name__ = f'on_{self.HANDLERS[event]}'
        return _handler

    def dispatch(self, event, sid, data=None) -> None:
        try:
            name = self.HANDLERS.get(event)
            if name is None:
                raise InvalidRequest(f'Unknown event {event}')
            getattr(self, name)(sid, data)
        except RoomError as exc:
            current_app.logger.warning(
                f"[room-error] event={event} sid={sid} code={exc.code} message={exc.message}"
            )
            self._send(sid, 'error', exc.to_dict())

    def on_connect(self, auth=None):
        emit('connected', {'playerId': _get_sid()})

    def on_disconnect(self, reason=None):
        sid = _get_sid()
        code = self.room_of(sid)
        if not code:
            return
        current_app.logger.info(f"[disconnect] sid={sid} code={code}")
        self._leave(sid, code)

    # ---- connection tracking ----

    def room_of(self, sid) -> Optional[str]:
        with self._sid_lock:
            return self._sid_to_room.get(sid)

    def _track(self, sid, code) -> None:
        with self._sid_lock:
            self._sid_to_room[sid] = code
        join_room(self._channel(code), sid=sid, namespace=self.namespace)

    def _untrack(self, sid, code) -> None:
        with self._sid_lock:
            if self._sid_to_room.get(sid) == code:
                del self._sid_to_room[sid]

    @contextmanager
    def _room(self, code):
        room = self.registry.require(code)
        with room.lock:
            # closed while waiting for the lock
            if self.registry.get(code) is not room:
                raise NotFound()
            yield room

    def _channel(self, code) -> str:
        return f"room:{code}"

    def _send(self, sid, event, payload) -> None:
        socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def _broadcast(self, code, event, payload) -> None:
        socketio.emit(event, payload, to=self._channel(code), namespace=self.namespace)

    # ---- handlers ----

    def create_room(self, sid, data=None):
        previous = self.room_of(sid)
        room = self.registry.create(sid)
        with room.lock:
            self._track(sid, room.code)
            current_app.logger.info(f"[room-create] code={room.code} host={sid}")
            self._send(sid, 'roomCreated', {'roomId': room.code, 'playerId': sid})
        if previous:
            self._leave(sid, previous)

    def join(self, sid, data):
        code = _room_code(data)
        previous = self.room_of(sid)
        with self._room(code) as room:
            room.join(sid)
            self._track(sid, room.code)
            current_app.logger.info(f"[room-join] code={room.code} sid={sid} players={len(room.players)}")
            self._send(sid, 'roomJoined', {'roomId': room.code, 'playerId': sid})
            self._broadcast(room.code, 'playerJoined', {'players': room.players_payload()})
        if previous and previous != room.code:
            self._leave(sid, previous)

    def start_game(self, sid, data):
        payload = _payload(data)
        with self._room(_room_code(payload)) as room:
            room.start_game(sid, payload.get('boardSize', DEFAULT_BOARD_SIZE))
            current_app.logger.info(f"[game-start] code={room.code} size={room.board_size}")
            self._broadcast(room.code, 'gameStarted', room.start_payload())

    def move(self, sid, data):
        payload = _payload(data)
        with self._room(_room_code(payload)) as room:
            result = room.move(sid, payload.get('index'))
            if result.bypass:
                current_app.logger.info(f"[host-bypass] code={room.code} index={result.index}")
            self._announce_outcome(room, result.winner, result.is_draw, fallback='boardUpdated')

    def force_update_board(self, sid, data):
        payload = _payload(data)
        with self._room(_room_code(payload)) as room:
            result = room.force_update_board(sid, payload.get('board'))
            if result is None:
                return
            current_app.logger.info(f"[board-force] code={room.code} sid={sid}")
            self._broadcast(room.code, 'boardForceUpdated', {'board': list(room.board)})
            self._announce_outcome(room, result.winner, result.is_draw)

    def restart_game(self, sid, data):
        payload = _payload(data)
        with self._room(_room_code(payload)) as room:
            room.restart(sid, payload.get('boardSize'))
            current_app.logger.info(f"[game-restart] code={room.code} size={room.board_size}")
            self._broadcast(room.code, 'gameRestarted', room.start_payload())

    def leave(self, sid, data):
        code = _room_code(data)
        if self.room_of(sid) != code:
            self.registry.require(code)
            return
        self._leave(sid, code)
        self._send(sid, 'roomLeft', {'roomId': code})

    # ---- room lifecycle helpers ----

    def _announce_outcome(self, room, winner, is_draw, fallback=None):
        if winner:
            current_app.logger.info(f"[game-over] code={room.code} winner={winner.id} symbol={winner.symbol}")
            self._broadcast(room.code, 'gameOver', {
                'board': list(room.board),
                'winner': winner.id,
                'winnerSymbol': winner.symbol,
            })
        elif is_draw:
            current_app.logger.info(f"[game-over] code={room.code} draw")
            self._broadcast(room.code, 'gameOver', {'board': list(room.board), 'isDraw': True})
        elif fallback:
            current = room.current_player
            self._broadcast(room.code, fallback, {
                'board': list(room.board),
                'currentPlayer': current.id if current else None,
            })

    def _leave(self, sid, code) -> None:
        self._untrack(sid, code)
        room = self.registry.get(code)
        if room is None:
            return
        with room.lock:
            result = room.leave(sid)
            if result.player is None:
                return
            leave_room(self._channel(code), sid=sid, namespace=self.namespace)
            if result.closed:
                self._close(room, HOST_LEFT_MESSAGE)
                return
            current_app.logger.info(f"[player-left] code={code} sid={sid} reset={result.reset}")
            self._broadcast(code, 'playerLeft', {
                'players': room.players_payload(),
                'message': PLAYER_LEFT_MESSAGE,
            })
            if result.reset:
                self._broadcast(code, 'gameReset', {'message': GAME_RESET_MESSAGE})

    def _close(self, room, message) -> None:
        self.registry.destroy(room.code)
        with self._sid_lock:
            for sid in [s for s, c in self._sid_to_room.items() if c == room.code]:
                del self._sid_to_room[sid]
        current_app.logger.info(f"[room-close] code={room.code} reason={message}")
        self._broadcast(room.code, 'roomClosed', {'message': message})
        socketio.close_room(self._channel(room.code), namespace=self.namespace)

    def close_room(self, code, message=IDLE_MESSAGE, max_idle=None, now=None) -> bool:
        """Close ``code`` and notify its members.

        With ``max_idle`` set the room is closed only if it is still idle
        once its lock is held; activity since it was listed keeps it open.
        """
        room = self.registry.get(code)
        if room is None:
            return False
        with room.lock:
            if self.registry.get(code) is not room:
                return False
            if max_idle is not None and not room.is_idle(max_idle, now=now):
                return False
            self._close(room, message)
        return True


def register_socketio_handlers(registry, namespace='/') -> EventRouter:
    """Build the event router for ``registry`` and bind it on ``namespace``."""
    router = EventRouter(registry, namespace=namespace)
    router.register()
    return router
