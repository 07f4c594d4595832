#!/usr/bin/env python3
"""
Profiling script for the gene expression simulation.

Times the stochastic cell simulator, the cell population and the spatial
biomolecule model, shows how the spatial model scales with the number of
mobile biomolecules, and can run cProfile over a long spatial run.

Usage:
    python scripts/profile_simulation.py                       # Everything
    python scripts/profile_simulation.py --benchmark model     # One benchmark
    python scripts/profile_simulation.py --scaling molecules   # Scaling only
    python scripts/profile_simulation.py --full-profile -o run.prof
"""

import argparse
import cProfile
import json
import pstats
import sys
import time
from pathlib import Path

import numpy as np
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gillespie import CellProteinSynthesisSimulator
from model import GeneExpressionModel, GeneExpressionModelConfig, default_gene_layouts
from multiple_cells import MultipleCellsConfig, MultipleCellsModel


# ============================================================================
# Timing helpers
# ============================================================================


def time_step_calls(step, dt: float, n_calls: int = 10, n_warmup: int = 2) -> dict:
    """
    Call ``step(dt)`` repeatedly and summarise the wall-clock cost per call.

    Args:
        step: Bound step method of a simulator or model
        dt: Simulated seconds passed to every call
        n_calls: Number of timed calls
        n_warmup: Number of untimed calls made first

    Returns:
        Dict with mean_ms, std_ms, p95_ms and steps_per_sec
    """
    for _ in range(n_warmup):
        step(dt)

    durations = np.empty(n_calls)
    for i in range(n_calls):
        tic = time.perf_counter()
        step(dt)
        durations[i] = time.perf_counter() - tic

    durations_ms = durations * 1e3
    mean_ms = float(durations_ms.mean())
    return {
        "mean_ms": mean_ms,
        "std_ms": float(durations_ms.std()),
        "p95_ms": float(np.percentile(durations_ms, 95)),
        "steps_per_sec": 1e3 / mean_ms if mean_ms > 0 else float("inf"),
    }


def render_table(columns: list[str], rows: list[list[str]]) -> str:
    """Left-aligned plain text table."""
    widths = [len(c) for c in columns]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def render_row(cells):
        return "  ".join(cell.ljust(w) for cell, w in zip(cells, widths))

    rule = "  ".join("-" * w for w in widths)
    return "\n".join([render_row(columns), rule] + [render_row(r) for r in rows])


def build_model(n_molecules: int, seed: int = 42) -> GeneExpressionModel:
    """Model with the default genes and n_molecules of each mobile kind."""
    model = GeneExpressionModel(GeneExpressionModelConfig(genes=default_gene_layouts()), seed=seed)
    rng = np.random.default_rng(seed)
    bounds = model.config.motion_bounds
    for _ in range(n_molecules):
        x = rng.uniform(bounds.x_min + 500, bounds.x_max - 500)
        y = rng.uniform(bounds.y_min + 500, bounds.y_max - 500)
        for gene in model.dna.genes:
            config, _site = next(iter(gene.transcription_factor_sites.values()))
            model.add_transcription_factor(config, (x, y))
        model.add_rna_polymerase((x, y))
        model.add_ribosome((x, y))
        model.add_messenger_rna_destroyer((x, y))
    return model


# ============================================================================
# Benchmarks
# ============================================================================


def benchmark_gillespie(n_calls: int = 200, dt: float = 10.0) -> dict:
    """One cell, CellProteinSynthesisSimulator.step()."""
    simulator = CellProteinSynthesisSimulator(rng=np.random.default_rng(42))
    return time_step_calls(simulator.step, dt, n_calls=n_calls, n_warmup=10)


def benchmark_cells(n_cells: int = 90, n_calls: int = 20, dt: float = 10.0) -> dict:
    """
    Full population, MultipleCellsModel.step().

    Args:
        n_cells: Number of visible cells
        n_calls: Number of timed steps
        dt: Simulated seconds per step
    """
    model = MultipleCellsModel(MultipleCellsConfig(initial_visible_cells=n_cells), seed=42)
    return time_step_calls(model.step, dt, n_calls=n_calls)


def benchmark_model(n_molecules: int = 10, n_calls: int = 100, dt: float = 0.05) -> dict:
    """
    Spatial model, GeneExpressionModel.step().

    The biomolecule count is reported after timing because transcription
    and translation add mRNA and proteins while the model runs.
    """
    model = build_model(n_molecules)
    stats = time_step_calls(model.step, dt, n_calls=n_calls, n_warmup=5)
    stats["n_biomolecules_final"] = len(model.mobile_biomolecules)
    return stats


def scaling_by_molecules(molecule_counts: list[int] | None = None, n_calls: int = 50) -> list[dict]:
    """Step cost of the spatial model as the number of biomolecules grows."""
    if molecule_counts is None:
        molecule_counts = [1, 5, 10, 20, 40]

    results = []
    for n in tqdm(molecule_counts, desc="scaling", leave=False):
        model = build_model(n)
        stats = time_step_calls(model.step, 0.05, n_calls=n_calls, n_warmup=5)
        total = len(model.mobile_biomolecules)
        results.append({
            "n_molecules": total,
            "mean_ms": stats["mean_ms"],
            "ms_per_molecule": stats["mean_ms"] / max(total, 1),
        })
    return results


# ============================================================================
# cProfile
# ============================================================================


def profile_full_simulation(n_steps: int = 1000, n_molecules: int = 10, dump_path: str | None = None) -> pstats.Stats:
    """
    Profile ``n_steps`` ticks of the spatial model.

    Args:
        n_steps: Number of ticks of 0.05 s
        n_molecules: Number of each kind of mobile biomolecule
        dump_path: Where to write the raw .prof data, if anywhere
    """
    model = build_model(n_molecules)

    with cProfile.Profile() as profiler:
        model.run(n_steps, 0.05)

    if dump_path:
        profiler.dump_stats(dump_path)
        print(f"Raw profile written to {dump_path}")

    return pstats.Stats(profiler)


def show_hotspots(stats: pstats.Stats, limit: int = 20):
    print("\n=== Hotspots (cumulative) ===\n")
    stats.sort_stats(pstats.SortKey.CUMULATIVE).print_stats(limit)


# ============================================================================
# Reporting
# ============================================================================


def show_benchmarks(results: dict[str, dict]):
    print("\n=== Step benchmarks ===\n")
    rows = [
        [name, f"{s['mean_ms']:.2f}", f"{s['p95_ms']:.2f}", f"{s['steps_per_sec']:.0f}"]
        for name, s in results.items()
    ]
    print(render_table(["Step", "Mean (ms)", "p95 (ms)", "Steps/s"], rows))


def show_scaling(results: list[dict]):
    print("\n=== Scaling with biomolecule count ===\n")
    rows = [[str(r["n_molecules"]), f"{r['mean_ms']:.2f}", f"{r['ms_per_molecule']:.3f}"] for r in results]
    print(render_table(["Biomolecules", "Mean (ms)", "ms/molecule"], rows))


def show_single(name: str, stats: dict):
    print(
        f"{name}: {stats['mean_ms']:.4f} ms +/- {stats['std_ms']:.4f} "
        f"(p95 {stats['p95_ms']:.4f}, {stats['steps_per_sec']:.0f} steps/s)"
    )


# ============================================================================
# Entry point
# ============================================================================


def run_everything() -> dict:
    print(f"Gene expression profiling on Python {sys.version.split()[0]} / NumPy {np.__version__}")

    benchmarks = {
        "CellProteinSynthesisSimulator.step()": benchmark_gillespie(),
        "MultipleCellsModel.step()": benchmark_cells(),
        "GeneExpressionModel.step()": benchmark_model(),
    }
    show_benchmarks(benchmarks)

    scaling = scaling_by_molecules()
    show_scaling(scaling)

    return {"benchmarks": benchmarks, "scaling_molecules": scaling}


def main():
    parser = argparse.ArgumentParser(
        description="Time and profile the gene expression simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/profile_simulation.py --benchmark gillespie  One cell simulator
  python scripts/profile_simulation.py --benchmark model      Spatial model tick
  python scripts/profile_simulation.py -o results.json       Everything, saved as JSON
""",
    )
    parser.add_argument("--benchmark", choices=["gillespie", "cells", "model"], help="Time a single component")
    parser.add_argument("--scaling", choices=["molecules"], help="Only run the scaling analysis")
    parser.add_argument("--full-profile", action="store_true", help="cProfile a long spatial run")
    parser.add_argument("-o", "--output", help="Write .prof data (with --full-profile) or .json results")
    parser.add_argument("--n-molecules", type=int, default=10, help="Biomolecules of each kind (default: 10)")
    parser.add_argument("--n-steps", type=int, default=100, help="Timed steps or profiled ticks (default: 100)")
    args = parser.parse_args()

    if args.benchmark == "gillespie":
        show_single("CellProteinSynthesisSimulator.step()", benchmark_gillespie(n_calls=args.n_steps))
    elif args.benchmark == "cells":
        show_single("MultipleCellsModel.step()", benchmark_cells(n_calls=args.n_steps))
    elif args.benchmark == "model":
        stats = benchmark_model(n_molecules=args.n_molecules, n_calls=args.n_steps)
        show_single(f"GeneExpressionModel.step() [{stats['n_biomolecules_final']} biomolecules]", stats)
    elif args.scaling:
        show_scaling(scaling_by_molecules())
    elif args.full_profile:
        dump_path = args.output if args.output and args.output.endswith(".prof") else None
        show_hotspots(profile_full_simulation(args.n_steps, args.n_molecules, dump_path))
    else:
        results = run_everything()
        if args.output and args.output.endswith(".json"):
            Path(args.output).write_text(json.dumps(results, indent=2))
            print(f"\nSaved {args.output}")


if __name__ == "__main__":
    main()
