# trimerge_cli.py
# This file is intended to be run to play or test the triangle game on the CLI

import argparse
import logging
from typing import List, Optional

import trimerge_core as core
from trimerge_grid import GRID_ROWS, row_length
from trimerge_input import KEY_BINDINGS, parse_direction
from trimerge_storage import CorruptSaveData, GameStore

logger = logging.getLogger(__name__)

CELL_WIDTH = 6


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play 2048 on a triangular grid.")
    parser.add_argument("--save-file", default=None,
                        help="Where to keep the saved game (default: $TRIMERGE_SAVE_FILE or ~/.trimerge/savegame.json)")
    parser.add_argument("--no-spawn", action="store_true",
                        help="Do not place new tiles after moves")
    parser.add_argument("--new", action="store_true",
                        help="Ignore any saved game and start fresh")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    return parser


def load_or_start(store: GameStore, force_new: bool = False) -> core.GameState:
    """Resumes the saved game when there is one, otherwise starts a new game."""
    if not force_new:
        try:
            saved = store.load_game()
        except CorruptSaveData as e:
            logger.warning("Discarding corrupt saved game: %s", e)
            store.clear_saved_game()
            saved = None
        if saved is not None and not saved.is_game_over:
            return saved
    return core.initial()


def persist(store: GameStore, state: core.GameState) -> int:
    """Auto-saves a running game, clears a finished one; returns the high score."""
    if state.is_game_over:
        store.clear_saved_game()
    else:
        store.save_game(state)
    return store.update_high_score(state.score)


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    store = GameStore(args.save_file)
    spawn_enabled = not args.no_spawn

    # 1. Initialize or resume game
    current_state = load_or_start(store, args.new)
    high_score = persist(store, current_state)
    display_game_state(current_state, high_score, spawn_enabled)

    # 2. Game Loop
    while True:
        move_input = input("Move (Q/E/A/D/Z/C), S toggle spawn, N new game, X quit: ").strip().upper()

        if move_input == 'X':
            print("Quitting game.")
            break

        if move_input == 'N':
            current_state = core.initial()
        elif move_input == 'S':
            spawn_enabled = not spawn_enabled
            print(f"Spawning {'enabled' if spawn_enabled else 'disabled'}.")
        elif current_state.is_game_over:
            print("The game is over. Press N for a new game or X to quit.")
            continue
        else:
            try:
                chosen_direction = parse_direction(move_input)
            except ValueError:
                print("Invalid input. Use Q, E, A, D, Z or C.")
                continue

            # 3. Process the move
            next_state = core.apply_direction(current_state, chosen_direction, spawn_enabled)
            if next_state is current_state:
                print("Move did not change the board. Try a different direction.")
                continue
            current_state = next_state

        # 4. Save and show the result
        high_score = persist(store, current_state)
        display_game_state(current_state, high_score, spawn_enabled)

        if current_state.is_game_over:
            display_final_stats(current_state, high_score)

    return current_state


# --- Display Functions ---

def render_grid(state: core.GameState) -> List[str]:
    """Renders the triangle row by row; ^ and v mark the triangle orientation."""
    widest = row_length(GRID_ROWS - 1) * CELL_WIDTH
    lines = []
    for row, cells in enumerate(state.grid):
        parts = []
        for col, value in enumerate(cells):
            marker = "^" if state.is_upward_triangle(row, col) else "v"
            label = "." if value == 0 else str(value)
            if state.last_spawned_position == (row, col):
                label += "*"
            parts.append(f"{marker}{label}".center(CELL_WIDTH))
        lines.append("".join(parts).center(widest).rstrip())
    return lines


def display_game_state(state: core.GameState, high_score: int, spawn_enabled: bool = True):
    """Prints the grid, score, and game status to the console."""
    print(f"\nScore: {state.score}    Best: {high_score}")
    print("GAME OVER!" if state.is_game_over else "Status: IN_PROGRESS")
    if not spawn_enabled:
        print("(spawning disabled)")
    for line in render_grid(state):
        print(line)
    print("-" * (row_length(GRID_ROWS - 1) * CELL_WIDTH))
    keys = ", ".join(f"{key}={direction.name}" for key, direction in KEY_BINDINGS.items())
    print(f"Keys: {keys}")


def display_final_stats(state: core.GameState, high_score: int):
    stats = state.stats
    print("\n--- Final Stats ---")
    print(f"Score:         {state.score}")
    print(f"High score:    {high_score}")
    print(f"Swipes:        {stats.total_swipes}")
    print(f"Merges:        {stats.total_merges}")
    print(f"Highest tile:  {stats.highest_tile}")
    print(f"Tiles spawned: {stats.tiles_spawned}")
    print("No more moves possible. Better luck next time!")


if __name__ == "__main__":
    main()
