import dataclasses
import json
import random
import unittest
from unittest.mock import patch

import pytest

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import InvalidGridShapeException, InvalidRandomInputException, ValidationException
from cryptoreels_be.tests.grid_fixtures import BTC_SCENARIO_CASCADE_OFFSET, BTC_SCENARIO_COLUMNS, build_random_value
from cryptoreels_be.utils.cascade_engine import CASCADE_MULTIPLIERS
from cryptoreels_be.utils.reel_generator import grid_from_columns, grid_to_columns
from cryptoreels_be.utils.spin_handler import apply_nft_multiplier, generate_random_value, handle_spin
from cryptoreels_be.utils.symbol_catalog import load_catalog


class TestHandleSpin(unittest.TestCase):

    def setUp(self):
        self.catalog = load_catalog()

    def test_single_round_spin(self):
        random_hex = build_random_value(BTC_SCENARIO_COLUMNS, refills=['eth', 'sol', 'defi_token'])
        result = handle_spin(random_hex, 100, self.catalog)

        self.assertEqual(grid_to_columns(result.initial_grid), BTC_SCENARIO_COLUMNS)
        self.assertEqual(result.ways_to_win, 729)
        self.assertEqual(result.total_cascades, 1)
        self.assertEqual(result.total_winnings, 500)
        self.assertEqual(result.bits_consumed, BTC_SCENARIO_CASCADE_OFFSET + 24)
        self.assertFalse(result.bonus_trigger['triggered'])
        self.assertTrue(result.has_wins)

    def test_cascades_start_after_population_bits(self):
        result = handle_spin(build_random_value(BTC_SCENARIO_COLUMNS), 100, self.catalog)
        self.assertEqual(result.total_cascades, 7)
        self.assertEqual(result.total_winnings, 13000)
        self.assertEqual(result.max_multiplier_reached, 20)

    def test_identical_inputs_give_identical_results(self):
        random_hex = hex(random.Random(7).getrandbits(4096))
        first = handle_spin(random_hex, 2.5, self.catalog)
        second = handle_spin(random_hex, 2.5, self.catalog)
        self.assertEqual(first, second)
        self.assertEqual(
            json.dumps(dataclasses.asdict(first), sort_keys=True),
            json.dumps(dataclasses.asdict(second), sort_keys=True)
        )

    def test_invariants_hold_across_seeds(self):
        for seed in range(40):
            result = handle_spin(hex(random.Random(seed).getrandbits(4096)), 1, self.catalog)
            self.assertLessEqual(result.total_cascades, 7)
            self.assertEqual(sum(r.level_payout for r in result.rounds), result.total_winnings)
            self.assertEqual(
                [r.multiplier for r in result.rounds],
                list(CASCADE_MULTIPLIERS[:len(result.rounds)])
            )
            self.assertTrue(all(2 <= reel.height <= 7 for reel in result.initial_grid))
            self.assertEqual([r.height for r in result.final_grid], [r.height for r in result.initial_grid])

    def test_undersized_random_value_zero_extends(self):
        result = handle_spin('0x1', 1, self.catalog)
        self.assertEqual(result.initial_grid[0].height, 3)
        self.assertTrue(all(cell == 'diamond_hands' for reel in result.initial_grid for cell in reel.cells))

    def test_invalid_bets_rejected(self):
        for bad in (0, -5, True, 'ten', None, float('nan'), float('inf')):
            with self.assertRaises(ValidationException) as ctx:
                handle_spin('0xFF', bad, self.catalog)
            self.assertEqual(ctx.exception.error_code, ErrorCodes.INVALID_BET)

    def test_malformed_random_value_rejected(self):
        with self.assertRaises(InvalidRandomInputException):
            handle_spin('deadbeef', 10, self.catalog)

    def test_bad_grid_aborts_spin(self):
        bad_grid = grid_from_columns(BTC_SCENARIO_COLUMNS[:5])
        with patch('cryptoreels_be.utils.spin_handler.populate', return_value=bad_grid), \
             patch('cryptoreels_be.utils.spin_handler.process_cascades') as mock_cascades:
            with self.assertRaises(InvalidGridShapeException) as ctx:
                handle_spin('0xFF', 10, self.catalog)
        self.assertEqual(ctx.exception.status_code, 500)
        mock_cascades.assert_not_called()


def test_nft_multiplier_bonus_and_final():
    outcome = apply_nft_multiplier(1000, 2.5)
    assert outcome['bonus_winnings'] == 1500
    assert outcome['final_winnings'] == 2500
    assert outcome['base_winnings'] == 1000
    assert outcome['applied'] is True


def test_nft_multiplier_of_one_is_a_no_op():
    outcome = apply_nft_multiplier(640)
    assert outcome['final_winnings'] == 640
    assert outcome['bonus_winnings'] == 0
    assert outcome['applied'] is False


@pytest.mark.parametrize('bad_multiplier', [0.5, 0, -2, 'x', None, True, float('nan'), float('inf')])
def test_nft_multiplier_below_one_rejected(bad_multiplier):
    with pytest.raises(ValidationException) as exc_info:
        apply_nft_multiplier(100, bad_multiplier)
    assert exc_info.value.error_code == ErrorCodes.INVALID_NFT_MULTIPLIER


def test_generate_random_value_shape():
    value = generate_random_value()
    assert value.startswith('0x')
    assert len(value) == 2 + 1024
    assert generate_random_value(256) != generate_random_value(256)
