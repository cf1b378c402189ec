import random
import string
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from gridduel.errors import (
    AlreadyStarted,
    CellOccupied,
    InvalidBoard,
    InvalidIndex,
    InvalidSize,
    NotEnoughPlayers,
    NotHost,
    NotStarted,
    OutOfTurn,
    RoomFull,
)
from gridduel.services.games.board import (
    DEFAULT_BOARD_SIZE,
    SYMBOLS,
    detect_outcome,
    empty_board,
    is_draw,
    is_valid_board_size,
)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 100
MAX_PLAYERS = 2


def generate_room_code(length=6, taken=()):
    """Generate a short room code that is not already in ``taken``."""
    for _ in range(MAX_CODE_ATTEMPTS):
        code = ''.join(random.choices(CODE_ALPHABET, k=length))
        if code not in taken:
            return code
    raise RuntimeError(f'could not allocate a free room code after {MAX_CODE_ATTEMPTS} attempts')


def normalize_code(code) -> str:
    if not isinstance(code, str):
        return ''
    return code.strip().upper()


class RoomState(str, Enum):
    OPEN = 'open'
    READY = 'ready'
    IN_PROGRESS = 'in_progress'
    FINISHED = 'finished'


@dataclass
class Player:
    id: str
    symbol: str
    is_host: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'symbol': self.symbol,
            'isHost': self.is_host,
        }


@dataclass
class MoveResult:
    player: Player
    index: int
    bypass: bool = False
    winner: Optional[Player] = None
    is_draw: bool = False

    @property
    def over(self) -> bool:
        return self.winner is not None or self.is_draw


@dataclass
class ForceResult:
    winner: Optional[Player] = None
    is_draw: bool = False


@dataclass
class LeaveResult:
    player: Optional[Player] = None
    closed: bool = False
    reset: bool = False


@dataclass
class Room:
    """One two-player game, addressed by ``code``.

    The first player is the host: always ``X``, the only one allowed to
    start or restart, and (with ``host_override`` on) allowed to move out
    of turn or rewrite the board. A host move made out of turn never
    advances the turn pointer.
    """

    code: str
    players: List[Player] = field(default_factory=list)
    board_size: int = DEFAULT_BOARD_SIZE
    board: List[Optional[str]] = field(default_factory=lambda: empty_board(DEFAULT_BOARD_SIZE))
    turn_index: int = 0
    started: bool = False
    over: bool = False
    winner_id: Optional[str] = None
    winner_symbol: Optional[str] = None
    host_override: bool = True
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @classmethod
    def create(cls, code, host_id, host_override=True):
        return cls(code=code, players=[Player(id=host_id, symbol=SYMBOLS[0], is_host=True)],
                   host_override=host_override)

    @property
    def grid_size(self) -> int:
        return self.board_size * self.board_size

    @property
    def win_length(self) -> int:
        return self.board_size

    @property
    def host(self) -> Optional[Player]:
        if self.players and self.players[0].is_host:
            return self.players[0]
        return None

    @property
    def current_player(self) -> Optional[Player]:
        if 0 <= self.turn_index < len(self.players):
            return self.players[self.turn_index]
        return None

    @property
    def state(self) -> RoomState:
        if self.started and self.over:
            return RoomState.FINISHED
        if self.started:
            return RoomState.IN_PROGRESS
        if len(self.players) >= MAX_PLAYERS:
            return RoomState.READY
        return RoomState.OPEN

    def find_player(self, conn_id) -> Optional[Player]:
        for p in self.players:
            if p.id == conn_id:
                return p
        return None

    def touch(self, now=None) -> None:
        self.last_activity = time.time() if now is None else now

    def is_idle(self, max_idle, now=None) -> bool:
        now = time.time() if now is None else now
        return now - self.last_activity > max_idle

    # ---- state transitions ----

    def join(self, conn_id) -> Player:
        existing = self.find_player(conn_id)
        if existing:
            return existing
        if len(self.players) >= MAX_PLAYERS:
            raise RoomFull()
        if self.started:
            raise AlreadyStarted()
        taken = {p.symbol for p in self.players}
        symbol = next(s for s in SYMBOLS if s not in taken)
        player = Player(id=conn_id, symbol=symbol, is_host=False)
        self.players.append(player)
        self.touch()
        return player

    def start_game(self, conn_id, board_size) -> None:
        self._require_host(conn_id, 'Only the host can start the game')
        if len(self.players) < MAX_PLAYERS:
            raise NotEnoughPlayers('Two players are needed to start the game')
        if not is_valid_board_size(board_size):
            raise InvalidSize()
        self._reset_board(board_size)
        self.started = True

    def restart(self, conn_id, board_size=None) -> None:
        self._require_host(conn_id, 'Only the host can restart the game')
        # The turn pointer alternates between two seats; a lone host has no opponent to hand it to
        if len(self.players) < MAX_PLAYERS:
            raise NotEnoughPlayers('Two players are needed to restart the game')
        # An invalid or missing size keeps the current one
        self._reset_board(board_size if is_valid_board_size(board_size) else self.board_size)
        self.started = True

    def move(self, conn_id, index) -> MoveResult:
        if not self.started or self.over:
            raise NotStarted()
        player = self.find_player(conn_id)
        current = self.current_player
        bypass = (
            self.host_override
            and player is not None
            and player.is_host
            and player is not current
        )
        if player is None or (player is not current and not bypass):
            raise OutOfTurn()
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < self.grid_size:
            raise InvalidIndex()
        if self.board[index] is not None:
            raise CellOccupied()

        self.board[index] = player.symbol
        winner, draw = self._evaluate()
        if not self.over and not bypass:
            self.turn_index = 1 - self.turn_index
        self.touch()
        return MoveResult(player=player, index=index, bypass=bypass, winner=winner, is_draw=draw)

    def force_update_board(self, conn_id, new_board) -> Optional[ForceResult]:
        """Replace the board wholesale. Returns None when the caller is not allowed."""
        player = self.find_player(conn_id)
        if not self.host_override or player is None or not player.is_host:
            return None
        if not isinstance(new_board, (list, tuple)) or len(new_board) != self.grid_size:
            raise InvalidBoard()
        if any(cell is not None and cell not in SYMBOLS for cell in new_board):
            raise InvalidBoard('Board cells must be X, O or empty')

        self.board = list(new_board)
        winner, draw = self._evaluate()
        self.touch()
        return ForceResult(winner=winner, is_draw=draw)

    def leave(self, conn_id) -> LeaveResult:
        player = self.find_player(conn_id)
        if player is None:
            return LeaveResult()
        if player.is_host:
            return LeaveResult(player=player, closed=True)

        self.players.remove(player)
        was_started = self.started
        if was_started:
            self.started = False
            self.over = False
            self.turn_index = 0
            self.winner_id = None
            self.winner_symbol = None
            self.board = empty_board(self.board_size)
        self.touch()
        return LeaveResult(player=player, reset=was_started)

    # ---- helpers ----

    def _require_host(self, conn_id, message) -> Player:
        player = self.find_player(conn_id)
        if player is None or not player.is_host:
            raise NotHost(message)
        return player

    def _reset_board(self, board_size) -> None:
        self.board_size = board_size
        self.board = empty_board(board_size)
        self.over = False
        self.winner_id = None
        self.winner_symbol = None
        self.turn_index = 0
        self.touch()

    def _evaluate(self):
        symbol = detect_outcome(self.board, self.board_size, self.win_length)
        if symbol:
            winner = next((p for p in self.players if p.symbol == symbol), None)
            # A line in a symbol nobody holds does not end the game
            if winner:
                self.over = True
                self.winner_id = winner.id
                self.winner_symbol = winner.symbol
            return winner, False
        if is_draw(self.board, self.board_size, self.win_length):
            self.over = True
            self.winner_id = None
            self.winner_symbol = None
            return None, True
        return None, False

    # ---- serialization ----

    def players_payload(self):
        return [p.to_dict() for p in self.players]

    def start_payload(self):
        current = self.current_player
        return {
            'board': list(self.board),
            'boardSize': self.board_size,
            'gridSize': self.grid_size,
            'winLength': self.win_length,
            'currentPlayer': current.id if current else None,
        }

    def to_dict(self):
        payload = self.start_payload()
        payload.update({
            'roomId': self.code,
            'players': self.players_payload(),
            'started': self.started,
            'over': self.over,
            'winner': self.winner_id,
            'winnerSymbol': self.winner_symbol,
            'state': self.state.value,
            'createdAt': self.created_at,
            'lastActivity': self.last_activity,
        })
        return payload
