import logging
import os
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import core
import montecarlo
from errors import IllegalMove, InvalidConfiguration, NoLegalMoves, SearchTimeout
from game_state import Game

logger = logging.getLogger(__name__)

# --- Settings (environment overrides) ---

RATE_LIMIT = os.environ.get("TILES_RATE_LIMIT", "100/minute")
AI_RATE_LIMIT = os.environ.get("TILES_AI_RATE_LIMIT", "20/minute")
MAX_ROLLOUTS = int(os.environ.get("TILES_MAX_ROLLOUTS", "20000"))
AI_WORKERS: Optional[int] = int(os.environ["TILES_AI_WORKERS"]) if os.environ.get("TILES_AI_WORKERS") else None
AI_EXECUTOR = os.environ.get("TILES_AI_EXECUTOR", "process")

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="A stateless API for playing the 2048 game and asking a Monte Carlo AI for moves. "\
                "Manage your game state (board and score) on the client side.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: int = Field(
        default=core.DEFAULT_BOARD_SIZE,
        description=f"Size of the N x N game board; at least {core.MIN_BOARD_SIZE}."
    )

class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    board: List[List[int]] = Field(..., description="The N x N game board, represented as a list of lists.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    progress: core.GameProgressState = Field(
        ...,
        description="Current progress state of the game (IN_PROGRESS, GAME_LOST, GAME_WON)."
    )
    win_tile: int = Field(..., gt=0, description="The tile value required to win on this board size.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")
    legal_moves: List[core.DIRECTION] = Field(
        ...,
        description="Directions that would change the board, in canonical order."
    )

class BoardData(BaseModel):
    """A client-held position."""
    board: List[List[int]] = Field(..., description="Current N x N game board state.")
    score: int = Field(..., ge=0, description="Current score.")

class MoveRequestData(BoardData):
    """Data required to make a move."""
    direction: core.DIRECTION = Field(
        ...,
        description="Direction of the move (UP, DOWN, LEFT, RIGHT)."
    )

class MoveResponseData(GameStateData):
    """Response after a move, including the new game state."""
    score_gained: int = Field(..., ge=0, description="Score gained by merges in this move.")
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g. when the game ended with this move."
    )

class BestMoveRequest(BoardData):
    """Data required to ask the AI for a move."""
    rollouts: int = Field(
        default=montecarlo.DEFAULT_ROLLOUTS,
        gt=0,
        le=MAX_ROLLOUTS,
        description="Total number of random playouts spread over the legal moves."
    )
    seed: Optional[int] = Field(
        default=None,
        description="Root seed for reproducible recommendations; random when omitted."
    )

class MoveEstimateData(BaseModel):
    """Rollout statistics for one candidate move."""
    rollouts: int
    mean_score: float

class BestMoveResponse(BaseModel):
    """The recommended move and the statistics behind it."""
    move: core.DIRECTION
    estimates: Dict[str, MoveEstimateData] = Field(
        default_factory=dict,
        description="Per-direction statistics; empty when only one move was legal."
    )


def _state_data(game: Game) -> Dict:
    return dict(
        board=game.board.rows(),
        score=game.score,
        progress=game.status,
        win_tile=game.win_tile,
        board_size=game.size,
        legal_moves=game.legal_moves(),
    )

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit(RATE_LIMIT)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Initializes a new 2048 game on an N x N board.

    - **size**: Dimension of the N x N board (e.g., 4 for 4x4). Default is 4.

    Returns the initial game state: the board with two random tiles, score (0),
    progress status (IN_PROGRESS), the win tile for this size and the legal moves.
    """
    try:
        game = Game(settings.size)
        return GameStateData(**_state_data(game))
    except InvalidConfiguration as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(RATE_LIMIT)
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    Requires the current `board` state, `score` and the `direction` of the move.

    The API will:
    1. Reject the move if it does not change the board or the game is over.
    2. Slide and merge tiles, then add a new random tile (2 or 4).
    3. Determine the new game status (IN_PROGRESS, GAME_WON, GAME_LOST).

    Returns the updated game state, the score gained and an optional message.
    """
    try:
        game = Game.from_existing(request_data.board, request_data.score)
        score_gained = game.make_move(request_data.direction)
    except (InvalidConfiguration, IllegalMove) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/move: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")

    message_for_client: Optional[str] = None
    if game.status == core.GameProgressState.GAME_WON:
        message_for_client = "Congratulations! You won!"
    elif game.status == core.GameProgressState.GAME_LOST:
        message_for_client = "Game Over. No more valid moves."

    return MoveResponseData(**_state_data(game), score_gained=score_gained, message=message_for_client)


@app.post("/game/best-move", response_model=BestMoveResponse, summary="Ask the AI for the Best Move")
@limiter.limit(AI_RATE_LIMIT)
def best_move(request: Request, request_data: BestMoveRequest):
    """
    Recommends a move by Monte Carlo search: `rollouts` random games are played
    out after each legal move and the move with the best average final score wins.

    Declared synchronous so the search runs in the server's thread pool instead
    of blocking the event loop.
    """
    try:
        game = Game.from_existing(request_data.board, request_data.score)
        moves = game.legal_moves()
        if len(moves) == 1 and not game.is_game_over():
            return BestMoveResponse(move=moves[0])
        estimates = montecarlo.evaluate_moves(
            game, request_data.rollouts, seed=request_data.seed, max_workers=AI_WORKERS,
            executor=AI_EXECUTOR,
        )
    except InvalidConfiguration as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoLegalMoves as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SearchTimeout as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/best-move: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred during the search: {str(e)}")

    best = montecarlo.select_best(estimates)
    return BestMoveResponse(
        move=best.direction,
        estimates={
            direction.name: MoveEstimateData(rollouts=estimate.rollouts, mean_score=estimate.mean)
            for direction, estimate in estimates.items()
        },
    )
