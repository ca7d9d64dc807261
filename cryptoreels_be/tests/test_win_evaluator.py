import unittest

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import GameLogicException
from cryptoreels_be.tests.grid_fixtures import BTC_SCENARIO_COLUMNS
from cryptoreels_be.utils.reel_generator import grid_from_columns
from cryptoreels_be.utils.symbol_catalog import SymbolCatalog, load_catalog
from cryptoreels_be.utils.win_evaluator import (
    MAX_WAYS,
    calculate_total_payout,
    calculate_ways_to_win,
    check_scatter_trigger,
    count_ways_for_run,
    evaluate,
    find_symbol_run,
)

NO_WIN_COLUMNS = [
    ['diamond_hands', 'diamond_hands'],
    ['crypto_wallet', 'crypto_wallet'],
    ['blockchain_block', 'blockchain_block'],
    ['defi_token', 'defi_token'],
    ['sol', 'sol'],
    ['eth', 'eth'],
]

WILD_COLUMNS = [
    ['btc', 'diamond_hands'],
    ['wild', 'crypto_wallet'],
    ['btc', 'btc'],
    ['eth', 'btc'],
    ['sol', 'defi_token'],
    ['sol', 'defi_token'],
]


class TestWaysToWin(unittest.TestCase):

    def test_raw_product_of_heights(self):
        grid = grid_from_columns([['btc'] * h for h in (2, 3, 4, 5, 6, 7)])
        self.assertEqual(calculate_ways_to_win(grid), 5040)

    def test_all_sevens_hits_cap(self):
        grid = grid_from_columns([['btc'] * 7 for _ in range(6)])
        self.assertEqual(calculate_ways_to_win(grid), 117649)
        self.assertEqual(MAX_WAYS, 117649)


class TestEvaluate(unittest.TestCase):

    def setUp(self):
        self.catalog = load_catalog()

    def test_no_wins(self):
        result = evaluate(grid_from_columns(NO_WIN_COLUMNS), self.catalog)
        self.assertFalse(result.has_wins)
        self.assertEqual(result.combinations, ())
        self.assertEqual(result.total_ways, 64)

    def test_plain_btc_run_of_three(self):
        result = evaluate(grid_from_columns(BTC_SCENARIO_COLUMNS), self.catalog)
        self.assertTrue(result.has_wins)
        self.assertEqual(len(result.combinations), 1)
        combination = result.combinations[0]
        self.assertEqual(combination.symbol_id, 'btc')
        self.assertEqual(combination.run_length, 3)
        self.assertEqual(combination.base_payout_multiplier, 5)
        self.assertEqual(combination.ways_count, 1)
        self.assertEqual(combination.positions, ((0, 0), (1, 0), (2, 0)))
        self.assertEqual(result.total_ways, 729)

    def test_wild_extends_run_and_counts_towards_ways(self):
        grid = grid_from_columns(WILD_COLUMNS)
        result = evaluate(grid, self.catalog)
        self.assertEqual([c.symbol_id for c in result.combinations], ['btc'])
        combination = result.combinations[0]
        self.assertEqual(combination.run_length, 4)
        self.assertEqual(combination.base_payout_multiplier, 25)
        self.assertEqual(combination.positions, ((0, 0), (1, 0), (2, 0), (3, 1)))
        self.assertEqual(combination.ways_count, 2)

    def test_first_match_per_reel_is_recorded(self):
        grid = grid_from_columns(WILD_COLUMNS)
        self.assertEqual(find_symbol_run(grid, 'diamond_hands', self.catalog), ((0, 1), (1, 0)))

    def test_wild_never_wins_on_its_own(self):
        columns = [['wild', 'wild']] * 6
        result = evaluate(grid_from_columns(columns), self.catalog)
        self.assertFalse(result.has_wins)

    def test_scatter_is_not_evaluated_as_a_run(self):
        columns = [['scatter', 'eth']] * 3 + [['sol', 'defi_token']] * 3
        result = evaluate(grid_from_columns(columns), self.catalog)
        self.assertEqual([c.symbol_id for c in result.combinations], ['eth'])

    def test_wild_does_not_substitute_scatter(self):
        grid = grid_from_columns([['scatter', 'btc'], ['wild', 'eth']] + [['sol', 'defi_token']] * 4)
        self.assertEqual(find_symbol_run(grid, 'scatter', self.catalog), ((0, 0),))

    def test_count_ways_counts_any_wild_cell(self):
        grid = grid_from_columns([['btc', 'wild', 'btc'], ['wild', 'wild'], ['btc', 'eth']] + [['sol', 'sol']] * 3)
        self.assertEqual(count_ways_for_run(grid, 'btc', 3, self.catalog.wild_ids), 3 * 2 * 1)

    def test_unknown_symbol_fails_loudly(self):
        columns = [list(c) for c in BTC_SCENARIO_COLUMNS]
        columns[4][1] = 'doge'
        with self.assertRaises(GameLogicException) as ctx:
            evaluate(grid_from_columns(columns), self.catalog)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.error_code, ErrorCodes.UNKNOWN_SYMBOL)
        self.assertEqual(ctx.exception.details, {'unknown_symbols': ['doge']})

    def test_total_payout_ignores_ways(self):
        result = evaluate(grid_from_columns(WILD_COLUMNS), self.catalog)
        self.assertEqual(calculate_total_payout(result.combinations, 100), 2500)
        self.assertEqual(calculate_total_payout((), 100), 0)


class TestZeroPayoutRuns(unittest.TestCase):

    def setUp(self):
        self.catalog = SymbolCatalog.from_config({
            'game': {
                'name': 'ZeroAtThree',
                'symbols': [
                    {'id': 'zed', 'name': 'Zed', 'category': 'regular', 'weight': 1,
                     'payouts': {'3': 0, '4': 1, '5': 2, '6': 3}},
                    {'id': 'pad', 'name': 'Pad', 'category': 'regular', 'weight': 1,
                     'payouts': {'3': 1, '4': 2, '5': 3, '6': 4}},
                    {'id': 'other', 'name': 'Other', 'category': 'regular', 'weight': 1,
                     'payouts': {'3': 1, '4': 2, '5': 3, '6': 4}},
                ],
            }
        })

    def test_run_paying_zero_is_omitted(self):
        columns = [['zed', 'pad']] * 3 + [['other', 'other']] * 3
        result = evaluate(grid_from_columns(columns), self.catalog)
        self.assertEqual([c.symbol_id for c in result.combinations], ['pad'])

    def test_longer_run_of_same_symbol_pays(self):
        columns = [['zed', 'other']] * 4 + [['pad', 'pad']] * 2
        result = evaluate(grid_from_columns(columns), self.catalog)
        by_symbol = {c.symbol_id: c for c in result.combinations}
        self.assertEqual(by_symbol['zed'].run_length, 4)
        self.assertEqual(by_symbol['zed'].base_payout_multiplier, 1)


class TestScatterTrigger(unittest.TestCase):

    def setUp(self):
        self.catalog = load_catalog()

    def test_three_scatters_trigger_bonus(self):
        columns = [['scatter', 'btc'], ['eth', 'eth'], ['scatter', 'sol'], ['sol', 'sol'], ['sol', 'scatter'], ['eth', 'eth']]
        trigger = check_scatter_trigger(grid_from_columns(columns), self.catalog)
        self.assertTrue(trigger['triggered'])
        self.assertEqual(trigger['scatter_count'], 3)
        self.assertEqual(trigger['bonus_type'], 'nft_mint_rush')
        self.assertEqual(trigger['bonus_spins'], 10)
        self.assertEqual(trigger['positions'], [(0, 0), (2, 0), (4, 1)])

    def test_two_scatters_do_not_trigger(self):
        columns = [['scatter', 'btc'], ['scatter', 'eth']] + [['sol', 'sol']] * 4
        trigger = check_scatter_trigger(grid_from_columns(columns), self.catalog)
        self.assertFalse(trigger['triggered'])
        self.assertEqual(trigger['scatter_count'], 2)
        self.assertEqual(trigger['bonus_spins'], 0)
