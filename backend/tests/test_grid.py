import random

import pytest

from squares.services.scoring.errors import ValidationError
from squares.services.scoring.grid import Cell, GridConfig, is_digit_permutation, resolve_cell, resolve_cells


def test_resolve_cell_uses_last_digits():
    grid = GridConfig.sequential()
    assert resolve_cell(17, 23, grid) == Cell(7, 3)
    assert resolve_cell(0, 0, grid) == Cell(0, 0)


def test_resolve_cell_follows_shuffled_axes():
    grid = GridConfig([3, 1, 4, 0, 5, 9, 2, 6, 8, 7], [9, 8, 7, 6, 5, 4, 3, 2, 1, 0])
    # home digit 4 sits at row 2, away digit 7 at column 2
    assert resolve_cell(14, 7, grid) == Cell(2, 2)
    # reverse swaps the digits before the lookup
    assert resolve_cell(14, 7, grid, reverse=True) == Cell(9, 5)


def test_resolve_cells_equal_digits_have_no_reverse():
    grid = GridConfig.sequential()
    forward, reverse = resolve_cells(7, 17, grid)
    assert forward == Cell(7, 7)
    assert reverse is None


def test_resolve_cells_returns_reverse_cell():
    forward, reverse = resolve_cells(7, 3, GridConfig.sequential())
    assert forward == Cell(7, 3)
    assert reverse == Cell(3, 7)


@pytest.mark.parametrize('digits', [
    [0, 1, 2, 3, 4, 5, 6, 7, 8],
    [0, 1, 2, 3, 4, 5, 6, 7, 8, 8],
    [1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
])
def test_grid_rejects_non_permutations(digits):
    assert not is_digit_permutation(digits)
    with pytest.raises(ValidationError):
        GridConfig(digits, list(range(10)))


def test_shuffled_grid_is_a_permutation():
    grid = GridConfig.shuffled(random.Random(7))
    assert sorted(grid.row_digits) == list(range(10))
    assert sorted(grid.col_digits) == list(range(10))
    for home in range(10):
        for away in range(10):
            cell = resolve_cell(home, away, grid)
            assert grid.row_digits[cell.row_index] == home
            assert grid.col_digits[cell.col_index] == away


def test_reverse_cell_matches_forward_only_on_equal_digits():
    grid = GridConfig.shuffled(random.Random(11))
    for home in range(100):
        for away in range(100):
            same = resolve_cell(home, away, grid) == resolve_cell(home, away, grid, reverse=True)
            assert same == (home % 10 == away % 10)
