import logging
import random
from typing import List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import trimerge_core as core
from trimerge_grid import GRID_ROWS
from trimerge_input import classify_swipe
from trimerge_storage import StatsData

logger = logging.getLogger(__name__)

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="Triangle Merge API",
    description="A stateless API for playing 2048 on a triangular grid. "\
                "Keep the game state (grid, score, stats) on the client side.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    seed: Optional[int] = Field(
        default=None,
        description="Seed for the opening tiles, for reproducible games. Random if omitted."
    )

class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    grid: List[List[int]] = Field(..., description="Triangular grid: rows of 1, 3, 5 and 7 cells.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    is_game_over: bool = Field(..., description="True when no move can change the grid.")
    stats: StatsData = Field(..., description="Merges, swipes, highest tile and tiles spawned.")
    last_spawned_position: Optional[Tuple[int, int]] = Field(
        default=None,
        description="(row, col) of the tile placed by the last effective move, if any."
    )
    board_rows: int = Field(default=GRID_ROWS, description="Number of rows in the triangle.")

class PlayRequestData(BaseModel):
    """State submitted by the client before a move."""
    grid: List[List[int]] = Field(..., description="Current triangular grid before the move.")
    score: int = Field(..., ge=0, description="Current score before the move.")
    stats: Optional[StatsData] = Field(default=None, description="Stats so far; fresh stats if omitted.")
    spawn_enabled: bool = Field(default=True, description="Place a new tile after an effective move.")

class MoveRequestData(PlayRequestData):
    """Data required to make a move."""
    direction: core.DIRECTION = Field(..., description="One of the six slide directions.")

class SwipeRequestData(PlayRequestData):
    """Data required to make a move from a raw drag gesture."""
    dx: float = Field(..., description="Horizontal drag distance in screen units.")
    dy: float = Field(..., description="Vertical drag distance in screen units (down is positive).")

class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the move resulted in a change to the grid, False otherwise."
    )
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was not effective or the game ended."
    )

# --- Conversion helpers ---

def _state_from_request(request_data: PlayRequestData) -> core.GameState:
    try:
        stats = request_data.stats.to_stats() if request_data.stats else core.Stats()
        state = core.GameState(grid=request_data.grid, score=request_data.score, stats=stats)
    except ValueError as e:
        logger.warning("Rejected game state: %s", e)
        raise HTTPException(status_code=400, detail=f"Invalid game state in request: {str(e)}")
    # The flag is always recomputed so clients cannot submit a stale one.
    return core.GameState(
        grid=state.grid,
        score=state.score,
        is_game_over=core.is_terminal(state.grid),
        stats=state.stats,
    )

def _state_fields(state: core.GameState) -> dict:
    return dict(
        grid=[list(row) for row in state.grid],
        score=state.score,
        is_game_over=state.is_game_over,
        stats=StatsData.from_stats(state.stats),
        last_spawned_position=state.last_spawned_position,
    )

def _play(state: core.GameState, direction: Optional[core.DIRECTION], spawn_enabled: bool) -> MoveResponseData:
    if state.is_game_over:
        return MoveResponseData(
            **_state_fields(state),
            move_was_effective=False,
            message="Game Over. No more valid moves."
        )

    if direction is None:
        return MoveResponseData(
            **_state_fields(state),
            move_was_effective=False,
            message="Gesture was too short or not recognized; no move made."
        )

    new_state = core.apply_direction(state, direction, spawn_enabled)
    move_was_effective = new_state is not state

    message_for_client: Optional[str] = None
    if not move_was_effective:
        message_for_client = "Move was not effective; grid unchanged by slide."
    if new_state.is_game_over:
        message_for_client = "Game Over. No more valid moves."

    return MoveResponseData(
        **_state_fields(new_state),
        move_was_effective=move_was_effective,
        message=message_for_client
    )

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, response_model_by_alias=False, summary="Start a New Game")
@limiter.limit("100/minute")
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Initializes a new game: an empty triangle with two random tiles.

    - **seed**: Optional seed making the opening tiles reproducible.

    Returns the initial game state, including the grid, score (0), stats
    and the position of the last spawned tile.
    """
    try:
        rng = random.Random(settings.seed) if settings.seed is not None else None
        initial_state = core.initial(rng)
        return GameStateData(**_state_fields(initial_state))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")


@app.post("/game/move", response_model=MoveResponseData, response_model_by_alias=False, summary="Make a Move in the Game")
@limiter.limit("100/minute")
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    Requires the current `grid`, `score`, optional `stats` and the `direction`
    of the move (LEFT, RIGHT, TOP_LEFT, TOP_RIGHT, BOTTOM_LEFT, BOTTOM_RIGHT).

    The API will:
    1. Slide and merge the tiles along the chosen direction.
    2. If the move changed the grid and spawning is enabled, add a new tile (2 or 4).
    3. Determine whether the game is over.
    """
    state = _state_from_request(request_data)
    try:
        return _play(state, request_data.direction, request_data.spawn_enabled)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error("Unexpected error in /game/move: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")


@app.post("/game/swipe", response_model=MoveResponseData, response_model_by_alias=False, summary="Make a Move from a Swipe Gesture")
@limiter.limit("100/minute")
async def make_swipe(request: Request, request_data: SwipeRequestData):
    """
    Same as `/game/move`, but the direction is classified from a drag vector
    (`dx`, `dy`). Short or unrecognized drags leave the state unchanged.
    """
    state = _state_from_request(request_data)
    try:
        direction = classify_swipe(request_data.dx, request_data.dy)
        return _play(state, direction, request_data.spawn_enabled)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing swipe: {str(e)}")
    except Exception as e:
        logger.error("Unexpected error in /game/swipe: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the swipe: {str(e)}")
