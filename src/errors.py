# errors.py
# Exceptions raised by the 2048 rules engine and the Monte Carlo move advisor.


class GameError(Exception):
    """Base class for all game-level failures."""


class InvalidConfiguration(GameError, ValueError):
    """A game, board or search request was built with invalid parameters."""


class IllegalMove(GameError):
    """The requested move does not change the board, or the game is already over."""


class NoLegalMoves(GameError):
    """A move recommendation was requested for a finished game."""


class SearchTimeout(GameError):
    """No candidate move finished its rollouts before the deadline."""
