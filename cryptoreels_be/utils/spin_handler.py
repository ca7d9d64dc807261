import logging
import math
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import ValidationException
from cryptoreels_be.utils.cascade_engine import CascadeRound, process_cascades
from cryptoreels_be.utils.random_decoder import parse_random_value
from cryptoreels_be.utils.reel_generator import (
    HEIGHT_BITS_TOTAL, SYMBOL_BITS, Reel, ensure_valid_grid, generate_heights, populate
)
from cryptoreels_be.utils.win_evaluator import calculate_ways_to_win, check_scatter_trigger

logger = logging.getLogger(__name__)

DEFAULT_RANDOM_BITS = 4096


@dataclass(frozen=True)
class SpinResult:
    random_value: str
    bet_amount: float
    initial_grid: Tuple[Reel, ...]
    ways_to_win: int
    rounds: Tuple[CascadeRound, ...]
    final_grid: Tuple[Reel, ...]
    total_cascades: int
    total_winnings: float
    max_multiplier_reached: float
    bits_consumed: int
    bonus_trigger: Dict[str, Any]

    @property
    def has_wins(self):
        return bool(self.rounds)


def _validate_bet(bet_amount):
    if isinstance(bet_amount, bool) or not isinstance(bet_amount, (int, float)) \
            or not math.isfinite(bet_amount) or not bet_amount > 0:
        raise ValidationException(
            "Bet amount must be a positive number.",
            details={'bet_amount': repr(bet_amount)},
            error_code=ErrorCodes.INVALID_BET
        )


def handle_spin(random_value, bet_amount, catalog):
    """
    Orchestrates one spin: heights, population, shape check, cascades and the
    scatter check on the initial grid. The result is fully determined by
    (random_value, bet_amount, catalog).

    Args:
        random_value (str): 0x-prefixed hex value; missing high bits read as zero.
        bet_amount (float): Positive bet.
        catalog (SymbolCatalog): Snapshot taken by the caller for this spin.

    Returns:
        SpinResult: payout before any NFT multiplier.

    Raises:
        ValidationException: invalid bet.
        InvalidRandomInputException: malformed random value.
        InvalidGridShapeException: generated grid failed the shape check.
    """
    _validate_bet(bet_amount)
    parse_random_value(random_value)

    reels = generate_heights(random_value)
    initial_grid = ensure_valid_grid(populate(random_value, reels, catalog), status_code=500)

    start_offset = HEIGHT_BITS_TOTAL + SYMBOL_BITS * sum(reel.height for reel in initial_grid)
    cascade_result = process_cascades(initial_grid, random_value, bet_amount, catalog, start_offset)
    bonus_trigger = check_scatter_trigger(initial_grid, catalog)

    logger.info(
        f"Spin resolved: heights={[reel.height for reel in initial_grid]}, bet={bet_amount}, "
        f"rounds={cascade_result.total_cascades}, winnings={cascade_result.total_winnings}"
    )

    return SpinResult(
        random_value=random_value,
        bet_amount=bet_amount,
        initial_grid=initial_grid,
        ways_to_win=calculate_ways_to_win(initial_grid),
        rounds=cascade_result.rounds,
        final_grid=cascade_result.final_grid,
        total_cascades=cascade_result.total_cascades,
        total_winnings=cascade_result.total_winnings,
        max_multiplier_reached=cascade_result.max_multiplier_reached,
        bits_consumed=cascade_result.next_offset,
        bonus_trigger=bonus_trigger,
    )


def apply_nft_multiplier(aggregate_payout, nft_multiplier=1):
    """
    Applies the externally resolved NFT multiplier to a spin's aggregate payout.

    Returns:
        dict: multiplier, base/bonus/final winnings and whether a bonus applied.
    """
    if isinstance(nft_multiplier, bool) or not isinstance(nft_multiplier, (int, float)) \
            or not math.isfinite(nft_multiplier) or nft_multiplier < 1:
        raise ValidationException(
            "NFT multiplier must be a number greater than or equal to 1.",
            details={'nft_multiplier': repr(nft_multiplier)},
            error_code=ErrorCodes.INVALID_NFT_MULTIPLIER
        )

    return {
        'multiplier': nft_multiplier,
        'base_winnings': aggregate_payout,
        'bonus_winnings': aggregate_payout * (nft_multiplier - 1),
        'final_winnings': aggregate_payout * nft_multiplier,
        'applied': nft_multiplier > 1,
    }


def generate_random_value(num_bits=DEFAULT_RANDOM_BITS):
    """Server-side random value for test mode spins, sized for the deepest cascade chain."""
    return '0x' + secrets.token_hex(num_bits // 8)
