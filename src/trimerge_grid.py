# trimerge_grid.py
# Fixed topology of the triangular board: the canonical layout plus the two
# auxiliary views (B and C) that turn the diagonal strips into plain rows.

from typing import Dict, List, Sequence, Tuple

GRID_ROWS = 4
CELL_COUNT = 16

Coord = Tuple[int, int]
Grid = Tuple[Tuple[int, ...], ...]

# --- Topology Tables ---
# Each entry lists, row by row, the canonical coordinate that lands in that
# slot of the view. Row k of a view has the same length as canonical row k.

VIEW_B_TABLE: Tuple[Tuple[Coord, ...], ...] = (
    ((3, 6),),
    ((2, 4), (3, 5), (3, 4)),
    ((1, 2), (2, 3), (2, 2), (3, 3), (3, 2)),
    ((0, 0), (1, 1), (1, 0), (2, 1), (2, 0), (3, 1), (3, 0)),
)

VIEW_C_TABLE: Tuple[Tuple[Coord, ...], ...] = (
    ((3, 0),),
    ((3, 2), (3, 1), (2, 0)),
    ((3, 4), (3, 3), (2, 2), (2, 1), (1, 0)),
    ((3, 6), (3, 5), (2, 4), (2, 3), (1, 2), (1, 1), (0, 0)),
)


def row_length(row: int) -> int:
    """Number of cells in a row of the triangle (1, 3, 5, 7)."""
    return 2 * row + 1


def is_upward_triangle(row: int, col: int) -> bool:
    """Even columns point up, odd columns point down."""
    return col % 2 == 0


def all_coordinates() -> List[Coord]:
    """Every canonical (row, col) pair in row-major order."""
    return [(r, c) for r in range(GRID_ROWS) for c in range(row_length(r))]


def invert_table(table: Sequence[Sequence[Coord]]) -> Dict[Coord, Coord]:
    """
    Builds the canonical -> view lookup for a view table and checks that the
    table really is a bijection over the 16 canonical cells.
    Args:
        table: A view table (view slot -> canonical coordinate).
    Returns:
        Dict[Coord, Coord]: canonical coordinate -> (view row, view col).
    Raises:
        ValueError: If the table has the wrong shape, repeats a cell or
                    references a cell outside the board.
    """
    if len(table) != GRID_ROWS:
        raise ValueError(f"View table must have {GRID_ROWS} rows, got {len(table)}.")

    valid = set(all_coordinates())
    inverse: Dict[Coord, Coord] = {}
    for view_row, slots in enumerate(table):
        if len(slots) != row_length(view_row):
            raise ValueError(f"View row {view_row} must have {row_length(view_row)} cells.")
        for view_col, source in enumerate(slots):
            if source not in valid:
                raise ValueError(f"View table references {source}, which is not on the board.")
            if source in inverse:
                raise ValueError(f"View table maps {source} twice.")
            inverse[source] = (view_row, view_col)
    return inverse


# Import-time check; both tables must cover all 16 cells exactly once.
MAIN_TO_B = invert_table(VIEW_B_TABLE)
MAIN_TO_C = invert_table(VIEW_C_TABLE)

# --- Grid Helpers ---

def empty_grid() -> Grid:
    """An all-zero canonical grid."""
    return tuple(tuple(0 for _ in range(row_length(r))) for r in range(GRID_ROWS))


def is_valid_cell_value(value: int) -> bool:
    """0 (empty) or a power of two >= 2."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return value == 0 or (value >= 2 and value & (value - 1) == 0)


def to_grid(rows: Sequence[Sequence[int]]) -> Grid:
    """
    Normalizes a nested sequence into an immutable triangular grid.
    Args:
        rows (Sequence[Sequence[int]]): Four rows of 1, 3, 5 and 7 cells.
    Returns:
        Grid: The same values as a tuple of tuples.
    Raises:
        ValueError: If the shape is not triangular or a cell value is invalid.
    """
    if rows is None or len(rows) != GRID_ROWS:
        raise ValueError(f"Grid must have exactly {GRID_ROWS} rows.")

    grid = []
    for r, row in enumerate(rows):
        if len(row) != row_length(r):
            raise ValueError(f"Row {r} must have {row_length(r)} cells, got {len(row)}.")
        for c, value in enumerate(row):
            if not is_valid_cell_value(value):
                raise ValueError(f"Invalid cell value {value!r} at ({r}, {c}).")
        grid.append(tuple(row))
    return tuple(grid)


def contains(row: int, col: int) -> bool:
    """True if (row, col) addresses a cell of the triangle."""
    return 0 <= row < GRID_ROWS and 0 <= col < row_length(row)

# --- Coordinate Transforms ---

def _project(grid: Grid, table: Sequence[Sequence[Coord]]) -> Grid:
    return tuple(tuple(grid[r][c] for r, c in slots) for slots in table)


def _unproject(view: Grid, table: Sequence[Sequence[Coord]]) -> Grid:
    cells: Dict[Coord, int] = {}
    for view_row, slots in enumerate(table):
        for view_col, source in enumerate(slots):
            cells[source] = view[view_row][view_col]
    return tuple(
        tuple(cells[(r, c)] for c in range(row_length(r))) for r in range(GRID_ROWS)
    )


def to_b(grid: Grid) -> Grid:
    """Canonical grid -> view B (strips parallel to the left edge, top first)."""
    return _project(grid, VIEW_B_TABLE)


def from_b(grid_b: Grid) -> Grid:
    """View B -> canonical grid."""
    return _unproject(grid_b, VIEW_B_TABLE)


def to_c(grid: Grid) -> Grid:
    """Canonical grid -> view C (strips parallel to the right edge, top last)."""
    return _project(grid, VIEW_C_TABLE)


def from_c(grid_c: Grid) -> Grid:
    """View C -> canonical grid."""
    return _unproject(grid_c, VIEW_C_TABLE)
