"""Compare the mean-field rate equations with stochastic runs of one cell."""

import sys
sys.path.insert(0, "src")

import argparse

import matplotlib.pyplot as plt
import numpy as np

from gillespie import CellProteinSynthesisSimulator
from mean_field import simulate


def main():
    parser = argparse.ArgumentParser(description="Mean-field vs Gillespie protein synthesis")
    parser.add_argument("--t-max", type=float, default=10000.0, help="Simulated time in seconds")
    parser.add_argument("--runs", type=int, default=5, help="Number of stochastic runs")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--output", type=str, default="mean_field.png", help="Output image")
    args = parser.parse_args()

    t_eval = np.linspace(0, args.t_max, 500)
    result = simulate(t_span=(0, args.t_max), t_eval=t_eval)

    rng = np.random.default_rng(args.seed)
    fig, axes = plt.subplots(2, 1, figsize=(10, 7), sharex=True)
    for i in range(args.runs):
        simulator = CellProteinSynthesisSimulator(rng=rng)
        trajectory = simulator.simulate(args.t_max, record_interval=args.t_max / 500)
        label = "SSA" if i == 0 else None
        axes[0].plot(trajectory["times"], trajectory["mrna"], color="gray", alpha=0.5, label=label)
        axes[1].plot(trajectory["times"], trajectory["protein"], color="gray", alpha=0.5, label=label)

    axes[0].plot(result.t, result.y[5], "b-", linewidth=2, label="Mean field")
    axes[1].plot(result.t, result.y[8], "purple", linewidth=2, label="Mean field")
    axes[0].set_ylabel("mRNA")
    axes[1].set_ylabel("Protein")
    axes[1].set_xlabel("Time (s)")
    axes[0].set_title("Protein synthesis: stochastic vs mean field")
    for ax in axes:
        ax.legend()
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(args.output, dpi=100)
    print(f"Plot saved to {args.output}")
    print(f"Mean-field solution: {len(result.t)} time points, final protein {result.y[8, -1]:.1f}")


if __name__ == "__main__":
    main()
