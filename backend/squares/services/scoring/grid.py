"""Grid position resolver.

Rows are keyed by the home team's last digit, columns by the away team's.
Reverse scoring swaps the two digits.
"""
import random
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .errors import ValidationError

DIGITS = tuple(range(10))


class Cell(NamedTuple):
    row_index: int
    col_index: int

    def to_dict(self):
        return {'row_index': self.row_index, 'col_index': self.col_index}


@dataclass(frozen=True)
class GridConfig:
    row_digits: Tuple[int, ...]
    col_digits: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, 'row_digits', tuple(int(d) for d in self.row_digits))
        object.__setattr__(self, 'col_digits', tuple(int(d) for d in self.col_digits))
        for axis, digits in (('row', self.row_digits), ('col', self.col_digits)):
            if not is_digit_permutation(digits):
                raise ValidationError(f'{axis} digits must be a permutation of 0-9, got {list(digits)}')

    @classmethod
    def sequential(cls) -> 'GridConfig':
        return cls(DIGITS, DIGITS)

    @classmethod
    def shuffled(cls, rng: Optional[random.Random] = None) -> 'GridConfig':
        return cls(shuffled_digits(rng), shuffled_digits(rng))


def is_digit_permutation(digits: Sequence[int]) -> bool:
    return len(digits) == 10 and sorted(digits) == list(DIGITS)


def shuffled_digits(rng: Optional[random.Random] = None) -> List[int]:
    digits = list(DIGITS)
    (rng or random).shuffle(digits)
    return digits


def resolve_cell(home_score: int, away_score: int, grid: GridConfig, reverse: bool = False) -> Cell:
    home_digit = home_score % 10
    away_digit = away_score % 10
    if reverse:
        return Cell(grid.row_digits.index(away_digit), grid.col_digits.index(home_digit))
    return Cell(grid.row_digits.index(home_digit), grid.col_digits.index(away_digit))


def resolve_cells(home_score: int, away_score: int, grid: GridConfig) -> Tuple[Cell, Optional[Cell]]:
    """Forward cell plus the reverse cell, or None when both digits match."""
    forward = resolve_cell(home_score, away_score, grid)
    if home_score % 10 == away_score % 10:
        return forward, None
    return forward, resolve_cell(home_score, away_score, grid, reverse=True)
