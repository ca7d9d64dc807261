"""
Cascade resolution: remove winning cells, let the survivors drop, refill the
gaps from the random value and evaluate again, escalating the multiplier each
time a refill produces new wins.

Level 0 is the initial evaluation. It is recorded when it wins but it is not a
cascade; cascades are levels 1..max_cascades.
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

from cryptoreels_be.exceptions import GameLogicException
from cryptoreels_be.utils.reel_generator import Reel, fill_empty_cells
from cryptoreels_be.utils.win_evaluator import WinningCombination, calculate_total_payout, evaluate

logger = logging.getLogger(__name__)

CASCADE_MULTIPLIERS = (1, 2, 3, 5, 8, 12, 20)
MAX_CASCADES = 6


@dataclass(frozen=True)
class CascadeRound:
    level: int
    grid: Tuple[Reel, ...]
    combinations: Tuple[WinningCombination, ...]
    multiplier: float
    level_payout: float
    cumulative_payout: float


@dataclass(frozen=True)
class CascadeResult:
    rounds: Tuple[CascadeRound, ...]
    final_grid: Tuple[Reel, ...]
    total_cascades: int
    total_winnings: float
    max_multiplier_reached: float
    next_offset: int


def cascade_multiplier(level, multipliers=CASCADE_MULTIPLIERS):
    """Multiplier for a level; levels past the table use its last entry."""
    return multipliers[min(level, len(multipliers) - 1)]


def remove_winning_cells(grid, combinations):
    cleared = {position for combination in combinations for position in combination.positions}
    return tuple(
        reel.with_cells(
            None if (reel_index, cell_index) in cleared else cell
            for cell_index, cell in enumerate(reel.cells)
        )
        for reel_index, reel in enumerate(grid)
    )


def drop_cells(grid):
    """Compacts each reel toward the bottom, keeping survivor order; empties end up on top."""
    dropped = []
    for reel in grid:
        survivors = tuple(cell for cell in reel.cells if cell is not None)
        dropped.append(reel.with_cells((None,) * (reel.height - len(survivors)) + survivors))
    return tuple(dropped)


def process_cascades(initial_grid, random_value, bet_amount, catalog, start_offset,
                     multipliers=CASCADE_MULTIPLIERS, max_cascades=MAX_CASCADES):
    """
    Resolves the full cascade sequence for one spin.

    Args:
        initial_grid (tuple[Reel]): Populated starting grid.
        random_value (str): 0x-prefixed hex random value for the spin.
        bet_amount (float): Bet used to price each level.
        catalog (SymbolCatalog): Snapshot used for evaluation and refills.
        start_offset (int): First bit available for refills.
        multipliers (tuple): Multiplier per level, clamped to the last entry.
        max_cascades (int): Maximum number of cascades after level 0.

    Returns:
        CascadeResult: at most 1 + max_cascades rounds.
    """
    pool = catalog.default_pool
    offset = start_offset
    grid = initial_grid
    rounds = []
    cumulative = 0

    evaluation = evaluate(grid, catalog)
    level = 0
    while evaluation.has_wins:
        multiplier = cascade_multiplier(level, multipliers)
        level_payout = calculate_total_payout(evaluation.combinations, bet_amount) * multiplier
        cumulative += level_payout
        rounds.append(CascadeRound(
            level=level,
            grid=grid,
            combinations=evaluation.combinations,
            multiplier=multiplier,
            level_payout=level_payout,
            cumulative_payout=cumulative,
        ))
        logger.debug(f"Cascade level {level}: {len(evaluation.combinations)} wins, x{multiplier}, payout {level_payout}")

        if level >= max_cascades:
            break
        level += 1
        grid = drop_cells(remove_winning_cells(grid, evaluation.combinations))
        grid, offset = fill_empty_cells(random_value, grid, offset, pool)
        evaluation = evaluate(grid, catalog)

    return CascadeResult(
        rounds=tuple(rounds),
        final_grid=grid,
        total_cascades=len(rounds),
        total_winnings=cumulative,
        max_multiplier_reached=max((r.multiplier for r in rounds), default=1),
        next_offset=offset,
    )


def validate_cascade_result(result):
    """
    Checks that rounds are numbered 0..n-1 and that each cumulative payout is
    the running sum of level payouts, ending at total_winnings.

    Raises:
        GameLogicException: (500) on the first inconsistency found.
    """
    running = 0
    for index, cascade_round in enumerate(result.rounds):
        if cascade_round.level != index:
            raise GameLogicException(
                "Cascade levels are not contiguous.",
                details={'expected_level': index, 'level': cascade_round.level},
                status_code=500
            )
        running += cascade_round.level_payout
        if not math.isclose(cascade_round.cumulative_payout, running):
            raise GameLogicException(
                "Cascade cumulative payout is inconsistent.",
                details={'level': index, 'cumulative_payout': cascade_round.cumulative_payout, 'expected': running},
                status_code=500
            )
    if len(result.rounds) != result.total_cascades or not math.isclose(result.total_winnings, running):
        raise GameLogicException(
            "Cascade totals do not match their rounds.",
            details={'total_cascades': result.total_cascades, 'total_winnings': result.total_winnings},
            status_code=500
        )


def calculate_cascade_statistics(result):
    validate_cascade_result(result)
    multipliers = [r.multiplier for r in result.rounds]
    return {
        'total_cascades': result.total_cascades,
        'total_winnings': result.total_winnings,
        'average_multiplier': sum(multipliers) / len(multipliers) if multipliers else 0,
        'max_multiplier': max(multipliers, default=0),
        'cascade_breakdown': [
            {
                'level': r.level,
                'multiplier': r.multiplier,
                'payout': r.level_payout,
                'win_count': len(r.combinations),
            }
            for r in result.rounds
        ],
    }
