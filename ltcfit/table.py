from __future__ import annotations

from typing import (
    Iterator,
    Optional,
)
from typing_extensions import (
    TypeAlias,
)

from .ltc import LTC


CellIndexType: TypeAlias = 'tuple[int, int]'


class LTCTable:
    '''Square grid of fitted lobes indexed by (roughness_index, theta_index)'''

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError(f'table size must be positive, got {size}')
        self.size = size
        self._cells: list[list[Optional[LTC]]] = [
            [None] * size
            for _ in range(size)
        ]

    def __repr__(self) -> str:
        return f'LTCTable(size={self.size}, filled={self.filled_count()})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LTCTable):
            return NotImplemented
        return self.size == other.size and self._cells == other._cells

    def _check_index(self, index: CellIndexType) -> None:
        roughness_index, theta_index = index
        if not (0 <= roughness_index < self.size and 0 <= theta_index < self.size):
            raise IndexError(f'cell {index} is outside of a table of size {self.size}')

    def __getitem__(self, index: CellIndexType) -> Optional[LTC]:
        self._check_index(index)
        roughness_index, theta_index = index
        return self._cells[roughness_index][theta_index]

    def __setitem__(self, index: CellIndexType, ltc: Optional[LTC]) -> None:
        self._check_index(index)
        roughness_index, theta_index = index
        self._cells[roughness_index][theta_index] = ltc

    def cells(self) -> Iterator[tuple[CellIndexType, LTC]]:
        for roughness_index, row in enumerate(self._cells):
            for theta_index, ltc in enumerate(row):
                if ltc is not None:
                    yield (roughness_index, theta_index), ltc

    def filled_count(self) -> int:
        return sum(1 for _ in self.cells())

    def is_complete(self) -> bool:
        return self.filled_count() == self.size * self.size


def traversal_order(size: int, start_row: int = -1) -> Iterator[CellIndexType]:
    '''Cells in fitting order

    Roughness goes from start_row down to 0, and view angles go up within each
    roughness row, so every cell comes after the cell it is warm-started from.
    '''
    if not -size <= start_row < size:
        raise ValueError(f'start row {start_row} is out of range for a table of size {size}')

    for roughness_index in range(start_row % size, -1, -1):
        for theta_index in range(size):
            yield roughness_index, theta_index


def warm_start_source(
    size: int,
    roughness_index: int,
    theta_index: int
) -> Optional[CellIndexType]:
    '''The cell whose fit seeds the fit of (roughness_index, theta_index), if any'''
    if theta_index == 0:
        if roughness_index + 1 < size:
            return roughness_index + 1, 0
        return None
    return roughness_index, theta_index - 1
