import dataclasses
import random

import pytest

import trimerge_core as core
from trimerge_core import DIRECTION, Bias, GameState, Stats
from trimerge_grid import empty_grid, from_b, from_c, to_b, to_c, to_grid


class FakeRandom:
    """Always picks the first candidate; `roll` decides between a 2 and a 4."""

    def __init__(self, roll=0.5):
        self.roll = roll

    def choice(self, seq):
        return seq[0]

    def random(self):
        return self.roll


def base_grid():
    return to_grid([
        [0],
        [2, 2, 0],
        [0, 2, 0, 2, 0],
        [0, 2, 0, 2, 0, 2, 0],
    ])


def distinct_full_grid():
    """A full board where no two cells share a value."""
    rows = []
    exponent = 1
    for r in range(4):
        row = []
        for _ in range(2 * r + 1):
            row.append(2 ** exponent)
            exponent += 1
        rows.append(row)
    return rows


def with_cells(**cells):
    rows = [list(row) for row in empty_grid()]
    for key, value in cells.items():
        r, c = int(key[1]), int(key[2])
        rows[r][c] = value
    return to_grid(rows)


def nonzero_count(grid):
    return sum(1 for row in grid for value in row if value)


# --- Line merging ---

@pytest.mark.parametrize("line,bias,expected", [
    ([2, 2, 2], Bias.TOWARD_START, (4, 2, 0)),
    ([2, 2, 2], Bias.TOWARD_END, (0, 2, 4)),
    ([2, 2, 2, 2], Bias.TOWARD_START, (4, 4, 0, 0)),
    ([4, 2, 2], Bias.TOWARD_START, (4, 4, 0)),
    ([2, 2, 4], Bias.TOWARD_START, (4, 4, 0)),
    ([2, 0, 2, 0, 0], Bias.TOWARD_START, (4, 0, 0, 0, 0)),
    ([2, 0, 2, 0, 0], Bias.TOWARD_END, (0, 0, 0, 0, 4)),
    ([0, 4, 0, 2, 0, 2, 8], Bias.TOWARD_END, (0, 0, 0, 0, 4, 4, 8)),
    ([8, 4, 2], Bias.TOWARD_START, (8, 4, 2)),
])
def test_merge_line(line, bias, expected):
    assert core.merge_line(line, bias).line == expected


def test_three_equal_tiles_merge_only_once():
    result = core.merge_line([2, 2, 2], Bias.TOWARD_START)
    assert result.line == (4, 2, 0)
    assert result.score_gained == 4
    assert result.merge_count == 1
    assert result.max_value == 4


def test_single_cell_and_empty_lines_are_unchanged():
    assert core.merge_line([8], Bias.TOWARD_START) == ((8,), 0, 0, 8)
    assert core.merge_line([0, 0, 0], Bias.TOWARD_END) == ((0, 0, 0), 0, 0, 0)


def test_merge_conservation_on_random_lines():
    rng = random.Random(7)
    for _ in range(1000):
        length = rng.choice([1, 3, 5, 7])
        line = [rng.choice([0, 0, 2, 4, 8]) for _ in range(length)]
        bias = rng.choice(list(Bias))
        result = core.merge_line(line, bias)
        assert len(result.line) == length
        assert sum(result.line) == sum(line)
        assert result.merge_count == nonzero_count([line]) - nonzero_count([result.line])
        assert result.score_gained % 4 == 0
        assert result.score_gained >= 4 * result.merge_count


def test_merge_score_is_twice_the_tile_value():
    assert core.merge_line([16, 16], Bias.TOWARD_END).score_gained == 32
    assert core.merge_line([2, 2, 8, 8], Bias.TOWARD_START).score_gained == 4 + 16


# --- Sliding the six directions ---

@pytest.mark.parametrize("direction,expected,score", [
    (DIRECTION.LEFT, [[0], [4, 0, 0], [4, 0, 0, 0, 0], [4, 2, 0, 0, 0, 0, 0]], 12),
    (DIRECTION.RIGHT, [[0], [0, 0, 4], [0, 0, 0, 0, 4], [0, 0, 0, 0, 0, 2, 4]], 12),
    (DIRECTION.TOP_LEFT, [[4], [4, 2, 0], [2, 2, 0, 0, 0], [0, 0, 0, 0, 0, 0, 0]], 8),
    (DIRECTION.TOP_RIGHT, [[4], [0, 4, 4], [0, 0, 0, 0, 2], [0, 0, 0, 0, 0, 0, 0]], 12),
    (DIRECTION.BOTTOM_LEFT, [[0], [0, 0, 0], [0, 0, 0, 0, 0], [4, 4, 4, 0, 2, 0, 0]], 12),
    (DIRECTION.BOTTOM_RIGHT, [[0], [0, 0, 0], [0, 0, 0, 0, 0], [0, 0, 2, 2, 4, 2, 4]], 8),
])
def test_slide_without_spawn(direction, expected, score):
    state = GameState(grid=base_grid())
    result = core.apply_direction(state, direction, spawn_enabled=False)
    assert result.grid == to_grid(expected)
    assert result.score == score
    assert result.stats.total_swipes == 1
    assert result.stats.total_merges == score // 4
    assert result.stats.highest_tile == 4
    assert result.last_spawned_position is None
    assert not result.is_game_over


def test_slide_keeps_tile_sum():
    grid = base_grid()
    for direction in DIRECTION:
        outcome = core.slide(grid, direction)
        assert sum(map(sum, outcome.grid)) == sum(map(sum, grid))


def test_diagonal_merge_then_spawn():
    state = GameState(grid=with_cells(c00=2, c11=2))
    result = core.apply_direction(state, DIRECTION.TOP_LEFT, rng=FakeRandom())
    assert result.score == 4
    assert result.grid[0][0] == 4
    assert result.grid[1][1] == 0
    # FakeRandom fills the first empty cell in row-major order.
    assert result.grid[1][0] == 2
    assert result.last_spawned_position == (1, 0)
    assert nonzero_count(result.grid) == 2


def test_diagonal_merge_with_real_randomness():
    state = GameState(grid=with_cells(c00=2, c11=2))
    result = core.apply_direction(state, DIRECTION.TOP_LEFT, rng=random.Random(3))
    assert result.score == 4
    assert result.grid[0][0] == 4
    spawned = [(r, c) for r, row in enumerate(result.grid) for c, v in enumerate(row) if v and (r, c) != (0, 0)]
    assert len(spawned) == 1
    r, c = spawned[0]
    assert result.grid[r][c] in (2, 4)
    assert result.last_spawned_position == (r, c)


@pytest.mark.parametrize("toward_start,toward_end,project,unproject", [
    (DIRECTION.BOTTOM_RIGHT, DIRECTION.TOP_LEFT, to_c, from_c),
    (DIRECTION.TOP_RIGHT, DIRECTION.BOTTOM_LEFT, to_b, from_b),
])
def test_diagonal_pairs_share_a_view_with_opposite_bias(toward_start, toward_end, project, unproject):
    grid = base_grid()
    view = project(grid)
    start = unproject(tuple(core.merge_line(line, Bias.TOWARD_START).line for line in view))
    end = unproject(tuple(core.merge_line(line, Bias.TOWARD_END).line for line in view))
    assert core.slide(grid, toward_start).grid == start
    assert core.slide(grid, toward_end).grid == end


def test_slide_rejects_unknown_direction():
    with pytest.raises(ValueError):
        core.slide(base_grid(), "UP")


# --- No-op moves ---

def test_no_op_move_returns_the_same_state():
    state = GameState(grid=with_cells(c00=2), score=10, stats=Stats(total_swipes=3, highest_tile=2))
    for direction in (DIRECTION.LEFT, DIRECTION.RIGHT, DIRECTION.TOP_LEFT, DIRECTION.TOP_RIGHT):
        result = core.apply_direction(state, direction, rng=FakeRandom())
        assert result is state
        assert result.score == 10
        assert result.stats == Stats(total_swipes=3, highest_tile=2)
        assert nonzero_count(result.grid) == 1


def test_no_op_move_leaves_game_over_flag_alone():
    state = GameState(grid=with_cells(c00=2), is_game_over=True)
    assert core.apply_direction(state, DIRECTION.LEFT) is state


# --- Spawning ---

def test_spawn_places_a_two_or_four():
    state = GameState(grid=empty_grid())
    two = core.spawn_tile(state, FakeRandom(roll=0.5))
    four = core.spawn_tile(state, FakeRandom(roll=0.05))
    assert two.grid[0][0] == 2
    assert four.grid[0][0] == 4
    assert four.stats.highest_tile == 4
    assert two.stats.tiles_spawned == 1
    assert two.last_spawned_position == (0, 0)


def test_spawn_on_a_full_board_only_recomputes_game_over():
    state = GameState(grid=distinct_full_grid(), stats=Stats(tiles_spawned=16))
    result = core.spawn_tile(state, FakeRandom())
    assert result.grid == state.grid
    assert result.stats == state.stats
    assert result.is_game_over


def test_spawn_frequencies():
    rng = random.Random(11)
    state = GameState(grid=empty_grid())
    fours = sum(core.max_tile(core.spawn_tile(state, rng).grid) == 4 for _ in range(2000))
    assert 120 < fours < 300


def test_initial_spawns_two_tiles_one_after_the_other():
    state = core.initial(FakeRandom())
    assert state.grid[0][0] == 2
    assert state.grid[1][0] == 2
    assert nonzero_count(state.grid) == 2
    assert state.last_spawned_position == (1, 0)
    assert state.score == 0
    assert state.stats == Stats(total_merges=0, total_swipes=0, highest_tile=2, tiles_spawned=2)
    assert not state.is_game_over


def test_initial_with_real_randomness():
    for seed in range(20):
        state = core.initial(random.Random(seed))
        assert nonzero_count(state.grid) == 2
        assert state.stats.tiles_spawned == 2
        assert state.stats.highest_tile in (2, 4)
        assert state.stats.highest_tile == core.max_tile(state.grid)


# --- Game over ---

def test_full_board_without_equal_neighbours_is_terminal():
    assert core.is_terminal(to_grid(distinct_full_grid()))


def test_one_mergeable_pair_keeps_the_game_alive():
    rows = distinct_full_grid()
    rows[1][1] = rows[0][0]  # neighbours along a diagonal strip
    assert not core.is_terminal(to_grid(rows))

    rows = distinct_full_grid()
    rows[2][3] = rows[2][2]  # neighbours within a row
    assert not core.is_terminal(to_grid(rows))


def test_board_with_an_empty_cell_is_not_terminal():
    rows = distinct_full_grid()
    rows[3][6] = 0
    assert not core.is_terminal(to_grid(rows))


def test_move_that_leads_to_a_dead_board_ends_the_game():
    rows = distinct_full_grid()
    rows[3][6] = rows[3][5]
    state = GameState(grid=rows, score=100, stats=Stats(highest_tile=32768, tiles_spawned=16))
    result = core.apply_direction(state, DIRECTION.LEFT, rng=FakeRandom())
    assert result.grid[3][5] == 65536
    assert result.grid[3][6] == 2
    assert result.score == 100 + 65536
    assert result.stats.highest_tile == 65536
    assert result.stats.total_merges == 1
    assert result.stats.tiles_spawned == 17
    assert result.is_game_over


def test_dry_runs_do_not_touch_state():
    state = GameState(grid=distinct_full_grid(), score=5)
    assert core.is_terminal(state.grid)
    assert state.score == 5
    assert state.stats == Stats()


# --- Game state ---

def test_views_are_derived_from_the_canonical_grid():
    state = GameState(grid=base_grid())
    assert state.grid_b == to_b(state.grid)
    assert state.grid_c == to_c(state.grid)
    moved = core.apply_direction(state, DIRECTION.TOP_RIGHT, spawn_enabled=False)
    assert moved.grid_b == to_b(moved.grid)
    assert moved.grid_c == to_c(moved.grid)


def test_state_is_immutable():
    state = GameState(grid=base_grid())
    with pytest.raises(dataclasses.FrozenInstanceError):
        state.score = 5


def test_state_accepts_lists_and_stores_tuples():
    state = GameState(grid=[[0], [2, 0, 0], [0] * 5, [0] * 7])
    assert state.grid[1] == (2, 0, 0)


def test_last_spawned_position_must_hold_a_tile():
    with pytest.raises(ValueError):
        GameState(grid=empty_grid(), last_spawned_position=(0, 0))
    with pytest.raises(ValueError):
        GameState(grid=with_cells(c00=2), last_spawned_position=(0, 1))


def test_negative_values_are_rejected():
    with pytest.raises(ValueError):
        GameState(grid=empty_grid(), score=-1)
    with pytest.raises(ValueError):
        Stats(total_merges=-1)


def test_score_never_decreases_over_a_game():
    rng = random.Random(99)
    state = core.initial(rng)
    previous = state.score
    for _ in range(300):
        if state.is_game_over:
            break
        state = core.apply_direction(state, rng.choice(list(DIRECTION)), rng=rng)
        assert state.score >= previous
        assert state.stats.highest_tile == core.max_tile(state.grid)
        if state.last_spawned_position is not None:
            r, c = state.last_spawned_position
            assert state.grid[r][c] != 0
        previous = state.score


def test_triangle_orientation_query():
    state = GameState(grid=empty_grid())
    assert state.is_upward_triangle(1, 0)
    assert not state.is_upward_triangle(1, 1)
