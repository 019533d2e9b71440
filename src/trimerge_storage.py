# trimerge_storage.py
# Saves and restores games as JSON snapshots, and keeps the all-time high score.

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

import trimerge_core as core
from trimerge_grid import is_valid_cell_value, to_grid

logger = logging.getLogger(__name__)

SAVE_FILE_ENV = "TRIMERGE_SAVE_FILE"
DEFAULT_SAVE_FILE = Path.home() / ".trimerge" / "savegame.json"


class CorruptSaveData(ValueError):
    """A stored snapshot cannot be turned back into a valid game."""


# --- Snapshot Models ---

class StatsData(BaseModel):
    """Serialized form of the per-session statistics."""
    model_config = ConfigDict(populate_by_name=True)

    total_merges: int = Field(default=0, ge=0, alias="totalMerges")
    total_swipes: int = Field(default=0, ge=0, alias="totalSwipes")
    highest_tile: int = Field(default=0, ge=0, alias="highestTile")
    tiles_spawned: int = Field(default=0, ge=0, alias="tilesSpawned")

    @classmethod
    def from_stats(cls, stats: core.Stats) -> "StatsData":
        return cls(
            total_merges=stats.total_merges,
            total_swipes=stats.total_swipes,
            highest_tile=stats.highest_tile,
            tiles_spawned=stats.tiles_spawned,
        )

    def to_stats(self) -> core.Stats:
        return core.Stats(
            total_merges=self.total_merges,
            total_swipes=self.total_swipes,
            highest_tile=self.highest_tile,
            tiles_spawned=self.tiles_spawned,
        )


class SavedGameData(BaseModel):
    """Everything needed to resume a game."""
    model_config = ConfigDict(populate_by_name=True)

    grid: List[List[int]] = Field(..., description="Triangular grid, rows of 1, 3, 5 and 7 cells.")
    score: int = Field(..., ge=0)
    high_score: int = Field(default=0, ge=0, alias="highScore")
    is_game_over: bool = Field(default=False, alias="isGameOver")
    stats: Optional[StatsData] = None


class SaveFile(BaseModel):
    """On-disk document: the high score plus an optional game in progress."""
    model_config = ConfigDict(populate_by_name=True)

    high_score: int = Field(default=0, ge=0, alias="highScore")
    saved_game: Optional[SavedGameData] = Field(default=None, alias="savedGame")


# --- Conversion ---

def snapshot_from_state(state: core.GameState, high_score: int = 0) -> SavedGameData:
    """Captures a state as a snapshot. The last spawned position is not kept."""
    return SavedGameData(
        grid=[list(row) for row in state.grid],
        score=state.score,
        high_score=max(high_score, state.score),
        is_game_over=state.is_game_over,
        stats=StatsData.from_stats(state.stats),
    )


def state_from_snapshot(snapshot: SavedGameData) -> core.GameState:
    """
    Rebuilds a game state from a snapshot. The game-over flag is recomputed
    from the grid rather than trusted.
    Args:
        snapshot (SavedGameData): The stored snapshot.
    Returns:
        core.GameState: The restored state, with no last spawned position.
    Raises:
        CorruptSaveData: If the grid or stats do not describe a valid game.
    """
    try:
        grid = to_grid(snapshot.grid)
        if snapshot.stats is not None:
            stats = snapshot.stats.to_stats()
        else:
            # Older saves carry no stats; assume an opening board.
            stats = core.Stats(highest_tile=core.max_tile(grid), tiles_spawned=2)
        if not is_valid_cell_value(stats.highest_tile) or stats.highest_tile < core.max_tile(grid):
            raise ValueError(
                f"highest tile {stats.highest_tile} does not match the grid (largest tile {core.max_tile(grid)})"
            )
        return core.GameState(
            grid=grid,
            score=snapshot.score,
            is_game_over=core.is_terminal(grid),
            stats=stats,
            last_spawned_position=None,
        )
    except ValueError as e:
        raise CorruptSaveData(f"Saved game is invalid: {e}") from e


# --- File Store ---

class GameStore:
    """
    JSON file store for one saved game and the high score.

    Writes go through a temporary file in the same directory followed by
    `os.replace`, so a crash never leaves a half written save behind.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        if path is None:
            path = os.environ.get(SAVE_FILE_ENV) or DEFAULT_SAVE_FILE
        self.path = Path(path)

    def _read(self) -> SaveFile:
        if not self.path.exists():
            return SaveFile()
        try:
            return SaveFile.model_validate_json(self.path.read_bytes())
        except ValidationError as e:
            logger.warning("Save file %s is corrupt: %s", self.path, e)
            raise CorruptSaveData(f"Save file {self.path} is unreadable: {e}") from e

    def _write(self, document: SaveFile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".trimerge-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _read_for_update(self) -> SaveFile:
        # A corrupt file must not block saving a fresh game over it.
        try:
            return self._read()
        except CorruptSaveData:
            return SaveFile()

    def save_game(self, state: core.GameState) -> None:
        document = self._read_for_update()
        high_score = max(document.high_score, state.score)
        snapshot = snapshot_from_state(state, high_score)
        self._write(SaveFile(high_score=high_score, saved_game=snapshot))
        logger.info("Saved game to %s (score %d)", self.path, state.score)

    def load_game(self) -> Optional[core.GameState]:
        """
        Restores the saved game.
        Returns:
            Optional[core.GameState]: The saved state, or None if nothing is saved.
        Raises:
            CorruptSaveData: If the file or the snapshot inside it is invalid.
        """
        document = self._read()
        if document.saved_game is None:
            return None
        return state_from_snapshot(document.saved_game)

    def clear_saved_game(self) -> None:
        document = self._read_for_update()
        self._write(SaveFile(high_score=document.high_score, saved_game=None))
        logger.info("Cleared saved game in %s", self.path)

    def has_saved_game(self) -> bool:
        try:
            return self._read().saved_game is not None
        except CorruptSaveData:
            return False

    def get_high_score(self) -> int:
        try:
            return self._read().high_score
        except CorruptSaveData:
            return 0

    def update_high_score(self, score: int) -> int:
        """Raises the stored high score to `score` if it is higher; returns the stored value."""
        document = self._read_for_update()
        if score > document.high_score:
            document = SaveFile(high_score=score, saved_game=document.saved_game)
            self._write(document)
        return document.high_score
