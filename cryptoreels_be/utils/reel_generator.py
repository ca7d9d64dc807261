"""
Builds the Megaways grid from the spin's random value.

Bit layout of the random value:
    bits 0..17    six 3-bit reel heights (reel i at offset i*3)
    bits 18..     8 bits per cell, reel by reel, top to bottom
    afterwards    8 bits per refilled cell during cascades
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import GameLogicException, InvalidGridShapeException
from cryptoreels_be.utils.random_decoder import BitReader

logger = logging.getLogger(__name__)

NUM_REELS = 6
MIN_REEL_HEIGHT = 2
MAX_REEL_HEIGHT = 7
HEIGHT_BITS = 3
SYMBOL_BITS = 8
HEIGHT_BITS_TOTAL = NUM_REELS * HEIGHT_BITS
HEIGHT_RANGE = MAX_REEL_HEIGHT - MIN_REEL_HEIGHT + 1


@dataclass(frozen=True)
class Reel:
    index: int
    height: int
    cells: Tuple[Optional[str], ...] = ()

    def with_cells(self, cells):
        return replace(self, cells=tuple(cells))

    @property
    def empty_positions(self):
        return [position for position, cell in enumerate(self.cells) if cell is None]


def generate_heights(random_value):
    """Returns six reels with their heights set and every cell empty."""
    reader = BitReader(random_value)
    reels = []
    for reel_index in range(NUM_REELS):
        raw = reader.peek(reel_index * HEIGHT_BITS, HEIGHT_BITS)
        height = MIN_REEL_HEIGHT + (raw % HEIGHT_RANGE)
        reels.append(Reel(index=reel_index, height=height, cells=(None,) * height))
    return tuple(reels)


def draw_symbol(reader, pool):
    """Consumes one 8-bit draw from `reader` and maps it into the weighted pool."""
    if not pool:
        raise GameLogicException(
            "Cannot draw symbols from an empty weighted pool.",
            status_code=500,
            error_code=ErrorCodes.UNKNOWN_SYMBOL
        )
    return pool[reader.take(SYMBOL_BITS) % len(pool)]


def fill_empty_cells(random_value, grid, start_bit, pool):
    """
    Fills every empty cell, reel by reel and top to bottom, with one draw per
    cell starting at `start_bit`.

    Returns:
        tuple: (new grid, bit offset after the last draw)
    """
    reader = BitReader(random_value, offset=start_bit)
    filled = []
    for reel in grid:
        if not reel.empty_positions:
            filled.append(reel)
            continue
        cells = [cell if cell is not None else draw_symbol(reader, pool) for cell in reel.cells]
        filled.append(reel.with_cells(cells))
    return tuple(filled), reader.offset


def populate(random_value, reels, catalog, start_bit=HEIGHT_BITS_TOTAL):
    """
    Draws a symbol for every cell of `reels` from the catalog's full weighted
    pool (specials included), consuming 8 * sum(heights) bits from `start_bit`.
    """
    blank = tuple(reel.with_cells((None,) * reel.height) for reel in reels)
    grid, _ = fill_empty_cells(random_value, blank, start_bit, catalog.default_pool)
    return grid


def grid_from_columns(columns):
    """Builds a grid from a list of symbol-id columns, as the HTTP layer receives them."""
    return tuple(
        Reel(index=reel_index, height=len(cells), cells=tuple(cells))
        for reel_index, cells in enumerate(columns)
    )


def grid_to_columns(grid):
    return [list(reel.cells) for reel in grid]


def grid_shape_errors(grid, require_cells=True):
    errors = []
    if len(grid) != NUM_REELS:
        errors.append(f"Expected {NUM_REELS} reels, got {len(grid)}")

    for position, reel in enumerate(grid):
        if not isinstance(reel.height, int) or not MIN_REEL_HEIGHT <= reel.height <= MAX_REEL_HEIGHT:
            errors.append(
                f"Reel {position} height {reel.height!r} outside [{MIN_REEL_HEIGHT}, {MAX_REEL_HEIGHT}]"
            )
        if require_cells:
            if len(reel.cells) != reel.height:
                errors.append(f"Reel {position} has {len(reel.cells)} cells for height {reel.height}")
            elif reel.empty_positions:
                errors.append(f"Reel {position} has empty cells at {reel.empty_positions}")
    return errors


def validate_grid(grid, require_cells=True):
    """True when the grid has six reels of height 2-7 (and, if required, fully populated)."""
    return not grid_shape_errors(grid, require_cells)


def ensure_valid_grid(grid, require_cells=True, status_code=500):
    errors = grid_shape_errors(grid, require_cells)
    if errors:
        logger.error(f"Invalid grid shape: {errors}")
        raise InvalidGridShapeException(details={'errors': errors}, status_code=status_code)
    return grid
