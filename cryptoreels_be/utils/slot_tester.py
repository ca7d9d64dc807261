import argparse
import os
import random

import numpy as np

from cryptoreels_be.utils.spin_handler import DEFAULT_RANDOM_BITS, handle_spin
from cryptoreels_be.utils.symbol_catalog import load_catalog

try:
    import matplotlib
    matplotlib.use('Agg') # Non-interactive backend, graphs are only saved to files
    import matplotlib.pyplot as plt
    MATPLOTLIB_AVAILABLE = True
except ImportError:
    MATPLOTLIB_AVAILABLE = False


class SlotTester:
    """
    Monte Carlo harness: plays `num_spins` spins through handle_spin with
    seeded random values and collects RTP, hit rate, cascade depth and
    scatter statistics.
    """

    def __init__(self, catalog, num_spins, bet_amount, seed=None, random_bits=DEFAULT_RANDOM_BITS, verbose=False):
        self.catalog = catalog
        self.num_spins = num_spins
        self.bet_amount = bet_amount
        self.seed = seed
        self.random_bits = random_bits
        self.verbose = verbose
        self.rng = random.Random(seed)

        # Statistics to be collected
        self.spins_played = 0
        self.total_bet = 0
        self.total_win = 0
        self.hit_count = 0
        self.max_win = 0
        self.wins_per_spin = []
        self.cascade_depths = {}
        self.symbol_wins = {}
        self.scatter_triggers = 0
        self.bonus_spins_awarded = 0
        self.wins_by_multiplier = {}
        self.rtp_over_time = []

        # Derived statistics
        self.overall_rtp = 0
        self.hit_frequency = 0
        self.scatter_frequency = 0
        self.average_cascades = 0
        self.volatility_index = 0

    def _log(self, message):
        if self.verbose:
            print(message)

    def _next_random_value(self):
        return f"0x{self.rng.getrandbits(self.random_bits):0{self.random_bits // 4}x}"

    def run_simulation(self):
        self._log(f"INFO: Starting simulation of {self.num_spins} spins at {self.bet_amount} per spin.")
        for i in range(self.num_spins):
            result = handle_spin(self._next_random_value(), self.bet_amount, self.catalog)
            self._collect_spin_statistics(result)
            if (i + 1) % (self.num_spins // 20 or 1) == 0:
                self._log(f"INFO: Completed {i + 1}/{self.num_spins} spins...")
        self.calculate_derived_statistics()
        self._log("INFO: Simulation finished.")
        return self.summary()

    def _collect_spin_statistics(self, result):
        self.spins_played += 1
        self.total_bet += result.bet_amount
        self.total_win += result.total_winnings
        self.wins_per_spin.append(result.total_winnings)
        self.cascade_depths[result.total_cascades] = self.cascade_depths.get(result.total_cascades, 0) + 1

        if result.total_winnings > 0:
            self.hit_count += 1
            self.max_win = max(self.max_win, result.total_winnings)

        for cascade_round in result.rounds:
            for combination in cascade_round.combinations:
                self.symbol_wins[combination.symbol_id] = self.symbol_wins.get(combination.symbol_id, 0) + 1

        if result.bonus_trigger['triggered']:
            self.scatter_triggers += 1
            self.bonus_spins_awarded += result.bonus_trigger['bonus_spins']

        multiplier_category = round(result.total_winnings / result.bet_amount)
        self.wins_by_multiplier[multiplier_category] = self.wins_by_multiplier.get(multiplier_category, 0) + 1

        interval = self.num_spins // 20 or 1
        if self.spins_played % interval == 0 or self.spins_played == self.num_spins:
            self.rtp_over_time.append({
                'spin_count': self.spins_played,
                'rtp': (self.total_win / self.total_bet) * 100 if self.total_bet > 0 else 0,
            })

    def calculate_derived_statistics(self):
        if self.spins_played == 0:
            return

        self.overall_rtp = (self.total_win / self.total_bet) * 100 if self.total_bet > 0 else 0
        self.hit_frequency = (self.hit_count / self.spins_played) * 100
        self.scatter_frequency = (self.scatter_triggers / self.spins_played) * 100
        self.average_cascades = sum(depth * count for depth, count in self.cascade_depths.items()) / self.spins_played
        self.volatility_index = float(np.std(self.wins_per_spin)) / self.bet_amount

    def summary(self):
        return {
            'spins': self.spins_played,
            'bet_amount': self.bet_amount,
            'total_bet': self.total_bet,
            'total_win': self.total_win,
            'rtp': self.overall_rtp,
            'hit_frequency': self.hit_frequency,
            'max_win': self.max_win,
            'average_cascades': self.average_cascades,
            'cascade_depths': dict(sorted(self.cascade_depths.items())),
            'symbol_wins': dict(sorted(self.symbol_wins.items(), key=lambda item: -item[1])),
            'scatter_triggers': self.scatter_triggers,
            'scatter_frequency': self.scatter_frequency,
            'bonus_spins_awarded': self.bonus_spins_awarded,
            'volatility_index': self.volatility_index,
        }

    def summary_lines(self):
        lines = [
            "--- Simulation Summary ---",
            f"Catalog: {self.catalog.name}",
            f"Total Spins Simulated: {self.spins_played}",
            f"Bet Amount Per Spin: {self.bet_amount}",
            f"Total Wagered: {self.total_bet}",
            f"Total Won: {self.total_win}",
            "",
            "--- Detailed Metrics ---",
            f"Overall RTP: {self.overall_rtp:.2f}%",
            f"Hit Frequency: {self.hit_frequency:.2f}% ({self.hit_count} wins out of {self.spins_played} spins)",
            f"Max Win: {self.max_win} ({self.max_win / self.bet_amount:.1f}x bet)",
            f"Average Cascades Per Spin: {self.average_cascades:.3f}",
            f"Scatter Trigger Frequency: {self.scatter_frequency:.2f}% ({self.scatter_triggers} triggers, "
            f"{self.bonus_spins_awarded} bonus spins awarded)",
            f"Volatility Index (Win StdDev / Bet): {self.volatility_index:.2f}",
            "",
            "Cascade Depth Distribution:",
        ]
        for depth, count in sorted(self.cascade_depths.items()):
            lines.append(f"  {depth} cascades: {count} spins ({(count / self.spins_played) * 100:.2f}%)")

        lines.append("")
        lines.append("Winning Combinations By Symbol:")
        if self.symbol_wins:
            for symbol_id, count in sorted(self.symbol_wins.items(), key=lambda item: -item[1]):
                lines.append(f"  {symbol_id}: {count}")
        else:
            lines.append("  No winning combinations.")
        return lines

    def print_summary_statistics(self):
        print("\n".join(self.summary_lines()))

    def generate_graphs(self, graph_dir="slot_tester_graphs"):
        """Saves win multiplier and RTP convergence charts. Returns the written file paths."""
        if not MATPLOTLIB_AVAILABLE:
            print("INFO: Matplotlib not available, skipping graph generation.")
            return []

        os.makedirs(graph_dir, exist_ok=True)
        written = []

        if self.wins_by_multiplier:
            multipliers = sorted(self.wins_by_multiplier)
            plt.figure(figsize=(12, 7))
            plt.bar([f"{m}x" for m in multipliers], [self.wins_by_multiplier[m] for m in multipliers], color='skyblue')
            plt.title(f"Win Multiplier Distribution for {self.catalog.name}", fontsize=16)
            plt.xlabel("Bet Multiplier")
            plt.ylabel("Frequency")
            plt.grid(axis='y', linestyle='--', alpha=0.7)
            plt.tight_layout()
            path = os.path.join(graph_dir, "win_multipliers.png")
            plt.savefig(path)
            written.append(path)
            plt.clf()

        if self.rtp_over_time:
            plt.figure(figsize=(10, 6))
            plt.plot([d['spin_count'] for d in self.rtp_over_time], [d['rtp'] for d in self.rtp_over_time],
                     label="Simulated RTP", marker='.')
            plt.title(f"RTP Convergence for {self.catalog.name}", fontsize=16)
            plt.xlabel("Number of Spins")
            plt.ylabel("RTP (%)")
            plt.legend()
            plt.grid(True, linestyle='--', alpha=0.7)
            plt.tight_layout()
            path = os.path.join(graph_dir, "rtp_convergence.png")
            plt.savefig(path)
            written.append(path)
            plt.clf()

        plt.close('all')
        return written


def main():
    parser = argparse.ArgumentParser(description="CryptoReels Slot Tester - Simulates spins to analyze RTP and other metrics.")
    parser.add_argument("--num_spins", type=int, default=10000, help="Number of spins to simulate.")
    parser.add_argument("--bet_amount", type=float, default=1.0, help="Bet amount for each spin.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    parser.add_argument("--catalog", type=str, default=None, help="Path to a symbol catalog JSON file.")
    parser.add_argument("--graphs", action="store_true", help="Save distribution graphs (requires matplotlib).")

    args = parser.parse_args()

    tester = SlotTester(
        load_catalog(args.catalog),
        num_spins=args.num_spins,
        bet_amount=args.bet_amount,
        seed=args.seed,
        verbose=True
    )
    tester.run_simulation()
    tester.print_summary_statistics()
    if args.graphs:
        tester.generate_graphs()


if __name__ == "__main__":
    main()
