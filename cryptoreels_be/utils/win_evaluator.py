"""
Megaways win evaluation.

A symbol wins when it (or a wild that substitutes for it) shows up on every
reel from reel 0 through reel L-1 for L >= 3. Each distinct symbol pays once
per evaluation regardless of how many ways it forms; the ways count is only
reported.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import GameLogicException
from cryptoreels_be.utils.reel_generator import MAX_REEL_HEIGHT, NUM_REELS

logger = logging.getLogger(__name__)

MIN_RUN_LENGTH = 3
MAX_WAYS = MAX_REEL_HEIGHT ** NUM_REELS


@dataclass(frozen=True)
class WinningCombination:
    symbol_id: str
    run_length: int
    positions: Tuple[Tuple[int, int], ...]
    base_payout_multiplier: float
    ways_count: int


@dataclass(frozen=True)
class EvaluationResult:
    combinations: Tuple[WinningCombination, ...]
    total_ways: int

    @property
    def has_wins(self):
        return bool(self.combinations)


def calculate_ways_to_win(grid):
    ways = 1
    for reel in grid:
        ways *= reel.height
    return min(ways, MAX_WAYS)


def _distinct_symbols(grid, skip):
    seen = []
    for reel in grid:
        for cell in reel.cells:
            if cell is not None and cell not in skip and cell not in seen:
                seen.append(cell)
    return seen


def find_symbol_run(grid, target, catalog):
    """
    Walks reels left to right and records the first cell per reel (top to
    bottom) holding `target` or a wild that substitutes for it. Stops at the
    first reel without a match.
    """
    positions = []
    for reel_index, reel in enumerate(grid):
        match = next(
            (
                cell_index for cell_index, cell in enumerate(reel.cells)
                if cell is not None and (cell == target or catalog.can_substitute(cell, target))
            ),
            None
        )
        if match is None:
            break
        positions.append((reel_index, match))
    return tuple(positions)


def count_ways_for_run(grid, target, run_length, wild_ids):
    ways = 1
    for reel in grid[:run_length]:
        ways *= sum(1 for cell in reel.cells if cell == target or cell in wild_ids)
    return ways


def evaluate(grid, catalog):
    """
    Evaluates a populated grid against `catalog`.

    Raises:
        GameLogicException: (500) if the grid holds a symbol id the catalog
            does not define.
    """
    unknown = sorted({cell for reel in grid for cell in reel.cells if cell is not None and cell not in catalog})
    if unknown:
        raise GameLogicException(
            "Grid contains symbols missing from the catalog.",
            details={'unknown_symbols': unknown},
            status_code=500,
            error_code=ErrorCodes.UNKNOWN_SYMBOL
        )

    combinations = []
    for symbol_id in _distinct_symbols(grid, catalog.scatter_ids):
        positions = find_symbol_run(grid, symbol_id, catalog)
        run_length = len(positions)
        if run_length < MIN_RUN_LENGTH:
            continue

        payout = catalog.payout_for(symbol_id, run_length)
        if payout <= 0:
            continue

        combinations.append(WinningCombination(
            symbol_id=symbol_id,
            run_length=run_length,
            positions=positions,
            base_payout_multiplier=payout,
            ways_count=count_ways_for_run(grid, symbol_id, run_length, catalog.wild_ids),
        ))

    return EvaluationResult(combinations=tuple(combinations), total_ways=calculate_ways_to_win(grid))


def calculate_total_payout(combinations, bet_amount):
    return sum(combination.base_payout_multiplier * bet_amount for combination in combinations)


def check_scatter_trigger(grid, catalog):
    """
    Counts scatter symbols anywhere on the grid.

    Returns:
        dict: {'triggered', 'scatter_id', 'scatter_count', 'bonus_type',
               'bonus_spins', 'positions'}
    """
    scatters = catalog.by_category('scatter')
    if not scatters:
        return {'triggered': False, 'scatter_id': None, 'scatter_count': 0,
                'bonus_type': None, 'bonus_spins': 0, 'positions': []}

    scatter = scatters[0]
    rule = scatter.rule
    positions = [
        (reel_index, cell_index)
        for reel_index, reel in enumerate(grid)
        for cell_index, cell in enumerate(reel.cells)
        if cell == scatter.id
    ]
    triggered = len(positions) >= rule.min_count
    if triggered:
        logger.info(f"Scatter bonus triggered with {len(positions)} {scatter.id} symbols")

    return {
        'triggered': triggered,
        'scatter_id': scatter.id,
        'scatter_count': len(positions),
        'bonus_type': rule.bonus_type if triggered else None,
        'bonus_spins': rule.spins_for_count(len(positions)) if triggered else 0,
        'positions': positions,
    }
