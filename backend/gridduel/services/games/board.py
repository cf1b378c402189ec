"""Line detection for N x N boards.

Boards are flat, row-major lists where each cell is a symbol ('X' or 'O')
or None for an empty cell. Everything here is pure: no room state, no I/O.
"""

from typing import List, Optional, Sequence, Tuple

BOARD_SIZES: Tuple[int, ...] = (3, 5, 7)
DEFAULT_BOARD_SIZE = 3
SYMBOLS: Tuple[str, str] = ('X', 'O')

# Classic 3x3 lines: rows, columns, diagonals
CLASSIC_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)

# (row step, col step) for right, down, down-right, down-left
_DIRECTIONS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 0), (1, 1), (1, -1))


def is_valid_board_size(size) -> bool:
    # bool is an int subclass; True must not pass as a size
    return isinstance(size, int) and not isinstance(size, bool) and size in BOARD_SIZES


def empty_board(board_size: int) -> List[Optional[str]]:
    return [None] * (board_size * board_size)


def iter_lines(board_size: int, win_length: int):
    """Yield every run of ``win_length`` indices that stays on the board.

    Start positions are bounded per direction so a run never wraps from
    the end of one row onto the next.
    """
    if board_size == 3 and win_length == 3:
        yield from CLASSIC_LINES
        return
    for d_row, d_col in _DIRECTIONS:
        last = win_length - 1
        rows = range(board_size - last * d_row)
        if d_col > 0:
            cols = range(board_size - last)
        elif d_col < 0:
            cols = range(last, board_size)
        else:
            cols = range(board_size)
        for row in rows:
            for col in cols:
                yield tuple(
                    (row + i * d_row) * board_size + (col + i * d_col)
                    for i in range(win_length)
                )


def winning_line(board: Sequence[Optional[str]], board_size: int, win_length: int) -> Optional[Tuple[int, ...]]:
    """Return the indices of the first completed run, or None."""
    for line in iter_lines(board_size, win_length):
        first = board[line[0]]
        if not first:
            continue
        if all(board[idx] == first for idx in line[1:]):
            return line
    return None


def detect_outcome(board: Sequence[Optional[str]], board_size: int, win_length: int) -> Optional[str]:
    """Return the symbol owning a completed line, or None."""
    line = winning_line(board, board_size, win_length)
    return board[line[0]] if line else None


def is_full(board: Sequence[Optional[str]]) -> bool:
    return all(cell is not None for cell in board)


def is_draw(board: Sequence[Optional[str]], board_size: int, win_length: int) -> bool:
    # A full board holding a completed line is a win, not a draw
    return is_full(board) and detect_outcome(board, board_size, win_length) is None
