# trimerge_core.py
# This file is the stateless core logic for the triangular 2048 variant.
# Every function takes immutable values and returns new ones.

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from trimerge_grid import (
    Coord,
    Grid,
    contains,
    empty_grid,
    from_b,
    from_c,
    is_upward_triangle,
    to_b,
    to_c,
    to_grid,
)

logger = logging.getLogger(__name__)

SPAWN_FOUR_PROBABILITY = 0.1


class DIRECTION(Enum):
    """Represents the six possible slide directions."""
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    TOP_LEFT = "TOP_LEFT"
    TOP_RIGHT = "TOP_RIGHT"
    BOTTOM_LEFT = "BOTTOM_LEFT"
    BOTTOM_RIGHT = "BOTTOM_RIGHT"


class Bias(Enum):
    """Which end of a line the tiles slide towards."""
    TOWARD_START = 1
    TOWARD_END = 2


class LineMergeResult(NamedTuple):
    line: Tuple[int, ...]
    score_gained: int
    merge_count: int
    max_value: int


class MoveOutcome(NamedTuple):
    grid: Grid
    score_gained: int
    merge_count: int
    max_value: int
    changed: bool

# --- Statistics ---

@dataclass(frozen=True)
class Stats:
    """Per-session counters. Every field only ever grows."""
    total_merges: int = 0
    total_swipes: int = 0
    highest_tile: int = 0
    tiles_spawned: int = 0

    def __post_init__(self):
        for name in ("total_merges", "total_swipes", "highest_tile", "tiles_spawned"):
            if getattr(self, name) < 0:
                raise ValueError(f"Stats.{name} must be non-negative.")

    def record_swipe(self, merge_count: int, max_value: int) -> "Stats":
        return replace(
            self,
            total_swipes=self.total_swipes + 1,
            total_merges=self.total_merges + merge_count,
            highest_tile=max(self.highest_tile, max_value),
        )

    def record_spawn(self, value: int) -> "Stats":
        return replace(
            self,
            tiles_spawned=self.tiles_spawned + 1,
            highest_tile=max(self.highest_tile, value),
        )

# --- Game State ---

@dataclass(frozen=True)
class GameState:
    """
    Immutable snapshot of a game.

    `grid` is the canonical board. `grid_b` and `grid_c` are derived from it on
    first access and cached, so they always describe the same 16 cells.
    """
    grid: Grid
    score: int = 0
    is_game_over: bool = False
    stats: Stats = field(default_factory=Stats)
    last_spawned_position: Optional[Coord] = None

    def __post_init__(self):
        object.__setattr__(self, "grid", to_grid(self.grid))
        if self.score < 0:
            raise ValueError("Score must be non-negative.")
        if self.last_spawned_position is not None:
            row, col = self.last_spawned_position
            if not contains(row, col):
                raise ValueError(f"Last spawned position {self.last_spawned_position} is off the board.")
            if self.grid[row][col] == 0:
                raise ValueError(f"Last spawned position {self.last_spawned_position} is empty.")
            object.__setattr__(self, "last_spawned_position", (row, col))

    @cached_property
    def grid_b(self) -> Grid:
        return to_b(self.grid)

    @cached_property
    def grid_c(self) -> Grid:
        return to_c(self.grid)

    def is_upward_triangle(self, row: int, col: int) -> bool:
        return is_upward_triangle(row, col)

# --- Board Helper Functions ---

def get_empty_cells(grid: Grid) -> List[Coord]:
    """
    Get coordinates of empty (0-value) cells in the given grid.
    Args:
        grid (Grid): The canonical grid to check.
    Returns:
        List[Coord]: (row, col) tuples for empty cells, in row-major order.
    """
    empty_cells = []
    for row, cells in enumerate(grid):
        for col, value in enumerate(cells):
            if value == 0:
                empty_cells.append((row, col))
    return empty_cells


def max_tile(grid: Grid) -> int:
    """Largest value on the grid (0 for an empty grid)."""
    return max(max(row) for row in grid)

# --- Line Manipulation ---

def _merge_toward_start(line: Sequence[int]) -> LineMergeResult:
    n = len(line)
    compact = [value for value in line if value != 0]
    merged: List[int] = []
    score_gained = 0
    merge_count = 0

    i = 0
    while i < len(compact):
        if i + 1 < len(compact) and compact[i] == compact[i + 1]:
            doubled = compact[i] * 2
            merged.append(doubled)
            score_gained += doubled
            merge_count += 1
            i += 2  # The doubled tile does not merge again this pass
        else:
            merged.append(compact[i])
            i += 1

    merged += [0] * (n - len(merged))
    return LineMergeResult(tuple(merged), score_gained, merge_count, max(merged, default=0))


def merge_line(line: Sequence[int], bias: Bias) -> LineMergeResult:
    """
    Slides and merges a single line of cells.
    Args:
        line (Sequence[int]): Cell values in line order, 0 for empty.
        bias (Bias): The end of the line tiles move towards.
    Returns:
        LineMergeResult: The new line (same length), score gained, number of
                         merges and the largest value left in the line.
    """
    if bias == Bias.TOWARD_START:
        return _merge_toward_start(line)

    # Mirror: scan and pad from the far end.
    result = _merge_toward_start(tuple(reversed(line)))
    return result._replace(line=tuple(reversed(result.line)))

# --- Direction Dispatch ---

def _identity(grid: Grid) -> Grid:
    return grid


# direction -> (project into working view, project back to canonical, bias)
_DIRECTION_PLAN: Dict[DIRECTION, Tuple[Callable[[Grid], Grid], Callable[[Grid], Grid], Bias]] = {
    DIRECTION.LEFT: (_identity, _identity, Bias.TOWARD_START),
    DIRECTION.RIGHT: (_identity, _identity, Bias.TOWARD_END),
    DIRECTION.TOP_RIGHT: (to_b, from_b, Bias.TOWARD_START),
    DIRECTION.BOTTOM_LEFT: (to_b, from_b, Bias.TOWARD_END),
    DIRECTION.TOP_LEFT: (to_c, from_c, Bias.TOWARD_END),
    DIRECTION.BOTTOM_RIGHT: (to_c, from_c, Bias.TOWARD_START),
}


def slide(grid: Grid, direction: DIRECTION) -> MoveOutcome:
    """
    Slides every line of the grid in one direction without touching any state.
    Args:
        grid (Grid): The canonical grid.
        direction (DIRECTION): The direction to slide.
    Returns:
        MoveOutcome: The resulting canonical grid, score gained, merge count,
                     largest value produced and whether anything moved.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    try:
        project, unproject, bias = _DIRECTION_PLAN[direction]
    except KeyError:
        raise ValueError(f"Invalid direction specified for slide: {direction!r}") from None

    working = project(grid)
    results = [merge_line(line, bias) for line in working]
    moved = tuple(r.line for r in results)

    if moved == working:
        return MoveOutcome(grid, 0, 0, 0, False)

    return MoveOutcome(
        unproject(moved),
        sum(r.score_gained for r in results),
        sum(r.merge_count for r in results),
        max(r.max_value for r in results),
        True,
    )

# --- Terminal Detection ---

def is_terminal(grid: Grid) -> bool:
    """
    Check whether the game is over: no empty cell and no direction changes the grid.
    Args:
        grid (Grid): The canonical grid.
    Returns:
        bool: True if no move is possible.
    """
    if get_empty_cells(grid):
        return False
    return not any(slide(grid, direction).changed for direction in DIRECTION)

# --- Spawning ---

def spawn_tile(state: GameState, rng=None) -> GameState:
    """
    Places a new tile (90% chance of 2, 10% chance of 4) on a random empty cell.
    Args:
        state (GameState): The current state.
        rng: Object with `choice` and `random` methods; defaults to the `random` module.
    Returns:
        GameState: A new state with the tile placed, or the same board with
                   `is_game_over` recomputed when no cell is free.
    """
    rng = rng or random
    empty_cells = get_empty_cells(state.grid)
    if not empty_cells:
        return replace(state, is_game_over=is_terminal(state.grid))

    row, col = rng.choice(empty_cells)
    value = 4 if rng.random() < SPAWN_FOUR_PROBABILITY else 2

    rows = [list(cells) for cells in state.grid]
    rows[row][col] = value
    new_grid = to_grid(rows)
    game_over = is_terminal(new_grid)
    logger.debug("Spawned %d at (%d, %d)", value, row, col)
    if game_over:
        logger.debug("Game over after spawn, final score %d", state.score)

    return replace(
        state,
        grid=new_grid,
        stats=state.stats.record_spawn(value),
        last_spawned_position=(row, col),
        is_game_over=game_over,
    )

# --- Core Game Move Processing ---

def apply_direction(
    state: GameState, direction: DIRECTION, spawn_enabled: bool = True, rng=None
) -> GameState:
    """
    Processes a move in the specified direction.
    Args:
        state (GameState): The current state.
        direction (DIRECTION): The direction to slide.
        spawn_enabled (bool): Whether a new tile is placed after an effective move.
        rng: Random source handed to `spawn_tile`.
    Returns:
        GameState: `state` itself if the move changed nothing, otherwise the
                   next state with score, stats and game-over flag updated.
    """
    outcome = slide(state.grid, direction)
    if not outcome.changed:
        logger.debug("Move %s rejected, board unchanged", direction.name)
        return state

    logger.debug(
        "Move %s: +%d points, %d merges", direction.name, outcome.score_gained, outcome.merge_count
    )
    moved = GameState(
        grid=outcome.grid,
        score=state.score + outcome.score_gained,
        is_game_over=state.is_game_over,
        stats=state.stats.record_swipe(outcome.merge_count, outcome.max_value),
        last_spawned_position=None,
    )

    if spawn_enabled:
        return spawn_tile(moved, rng)
    return replace(moved, is_game_over=is_terminal(moved.grid))


def initial(rng=None) -> GameState:
    """
    Creates a new game: an empty board with two tiles spawned one after the other.
    Args:
        rng: Random source handed to `spawn_tile`.
    Returns:
        GameState: The opening state, score 0.
    """
    state = GameState(grid=empty_grid())
    state = spawn_tile(state, rng)
    state = spawn_tile(state, rng)
    return state
