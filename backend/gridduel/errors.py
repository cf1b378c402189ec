"""Room rule violations.

Raised by the room model and registry, caught at the Socket.IO seam and
sent back to the requesting connection as an ``error`` event.
"""


class RoomError(Exception):
    code = 'room_error'
    message = 'Room operation failed'

    def __init__(self, message=None):
        if message:
            self.message = message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'code': self.code}


class NotFound(RoomError):
    code = 'not_found'
    message = 'Room not found'


class RoomFull(RoomError):
    code = 'room_full'
    message = 'Room is full'


class AlreadyStarted(RoomError):
    code = 'already_started'
    message = 'Game has already started'


class NotHost(RoomError):
    code = 'not_host'
    message = 'Only the host can do that'


class NotEnoughPlayers(RoomError):
    code = 'not_enough_players'
    message = 'Two players are needed to play'


class InvalidSize(RoomError):
    code = 'invalid_size'
    message = 'Board size must be 3x3, 5x5 or 7x7'


class NotStarted(RoomError):
    code = 'not_started'
    message = 'Game has not started or is already over'


class OutOfTurn(RoomError):
    code = 'out_of_turn'
    message = 'Not your turn'


class CellOccupied(RoomError):
    code = 'cell_occupied'
    message = 'That cell is already taken'


class InvalidIndex(RoomError):
    code = 'invalid_index'
    message = 'Cell index is outside the board'


class InvalidBoard(RoomError):
    code = 'invalid_board'
    message = 'Board does not match the current grid'


class InvalidRequest(RoomError):
    code = 'invalid_request'
    message = 'Malformed request'
