"""Visualization script for the gene expression model and the cell population."""

import sys
sys.path.insert(0, "src")

from datetime import datetime
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle
from tqdm import tqdm

from attachment_state_machines import AttachmentState
from biomolecules import (
    MessengerRnaDestroyer,
    Protein,
    Ribosome,
    RnaPolymerase,
    TranscriptionFactor,
)
from geometry import Rect
from messenger_rna import MessengerRna
from model import GeneExpressionModel, GeneExpressionModelConfig, default_gene_layouts
from multiple_cells import MultipleCellsConfig, MultipleCellsModel


COLORS = {
    TranscriptionFactor: "#ff9800",
    RnaPolymerase: "#9c27b0",
    Ribosome: "#795548",
    MessengerRnaDestroyer: "#f44336",
    Protein: "#4caf50",
}


def create_output_dir(base_dir: str = "results") -> Path:
    """Create timestamped output directory and return its path."""
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    output_dir = Path(base_dir) / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def populate(model: GeneExpressionModel, rng: np.random.Generator, n_each: int = 4):
    """Scatter transcription factors, polymerases, ribosomes and destroyers over the bounds."""
    bounds = model.config.motion_bounds

    def random_position():
        return (
            rng.uniform(bounds.x_min + 500, bounds.x_max - 500),
            rng.uniform(bounds.y_min + 500, bounds.y_max - 500),
        )

    for gene in model.dna.genes:
        for config, _site in gene.transcription_factor_sites.values():
            if config.is_positive:
                for _ in range(n_each):
                    model.add_transcription_factor(config, random_position())
    recycle_zones = [
        Rect(bounds.x_min + 200, bounds.y_max - 1500, bounds.x_max - 200, bounds.y_max - 200),
        Rect(bounds.x_min + 200, bounds.y_min + 200, bounds.x_max - 200, bounds.y_min + 1500),
    ]
    for _ in range(n_each):
        model.add_rna_polymerase(random_position(), recycle_mode=True, recycle_return_zones=recycle_zones)
        model.add_ribosome(random_position())
        model.add_messenger_rna_destroyer(random_position())


def create_frame(model: GeneExpressionModel, ax: plt.Axes):
    """Render the current model state on the given axes."""
    ax.clear()
    strand1, strand2 = model.dna.get_strand_points()
    ax.plot(strand1[:, 0], strand1[:, 1], color="#1565c0", linewidth=1)
    ax.plot(strand2[:, 0], strand2[:, 1], color="#64b5f6", linewidth=1)

    for gene in model.dna.genes:
        ax.axvspan(gene.get_start_x(), gene.get_end_x(), color="#e3f2fd", alpha=0.5)

    for biomolecule in model.mobile_biomolecules:
        if isinstance(biomolecule, MessengerRna):
            points = np.array(biomolecule.get_shape_defining_points())
            ax.plot(points[:, 0], points[:, 1], color="#00897b", linewidth=2,
                    alpha=biomolecule.existence_strength)
            continue
        shape = biomolecule.get_shape()
        attached = biomolecule.attachment_state_machine.is_attached()
        ax.add_patch(Rectangle(
            (shape.x_min, shape.y_min), shape.width, shape.height,
            facecolor=COLORS.get(type(biomolecule), "gray"),
            edgecolor="black" if attached else "none",
            alpha=0.8 * biomolecule.existence_strength,
        ))

    state = model.get_state()
    counts = state["counts"]
    ax.set_title(
        f"t = {state['time']:.1f} s | "
        f"mRNA: {counts.get('MessengerRna', 0)} | "
        f"Proteins: {counts.get('Protein', 0)}"
    )
    bounds = model.config.motion_bounds
    ax.set_xlim(bounds.x_min, bounds.x_max)
    ax.set_ylim(bounds.y_min, bounds.y_max)
    ax.set_aspect("equal")


def run_model_visualization(
    n_steps: int = 2000,
    dt: float = 0.05,
    save_interval: int = 200,
    seed: int | None = None,
    output_dir: Path | None = None,
):
    """
    Run the spatial model and save snapshots plus a history plot.

    Args:
        n_steps: Total number of simulation steps
        dt: Time per step in seconds
        save_interval: Save a snapshot every N steps
        seed: Random seed
        output_dir: Output directory (created with timestamp if None)
    """
    if output_dir is None:
        output_dir = create_output_dir()
    print(f"Output directory: {output_dir}")

    config = GeneExpressionModelConfig(genes=default_gene_layouts())
    model = GeneExpressionModel(config, seed=seed)
    populate(model, np.random.default_rng(seed))

    history = {"time": [], "mrna": [], "protein": [], "transcribing": []}
    fig, ax = plt.subplots(figsize=(14, 6))

    for step in tqdm(range(n_steps), desc="Simulating"):
        model.step(dt)
        counts = model.get_state()["counts"]
        history["time"].append(model.time)
        history["mrna"].append(counts.get("MessengerRna", 0))
        history["protein"].append(counts.get("Protein", 0))
        history["transcribing"].append(sum(
            p.attachment_state_machine.state is AttachmentState.ATTACHED_AND_TRANSCRIBING
            for p in model.get_biomolecules_of_type(RnaPolymerase)
        ))

        if step % save_interval == 0 or step == n_steps - 1:
            create_frame(model, ax)
            filepath = output_dir / f"model_step_{step:05d}.png"
            plt.savefig(filepath, dpi=100, bbox_inches="tight")
            tqdm.write(f"  Saved {filepath.name} (proteins: {history['protein'][-1]})")

    plt.close(fig)

    fig, axes = plt.subplots(3, 1, figsize=(10, 8), sharex=True)
    axes[0].plot(history["time"], history["transcribing"], "purple", linewidth=2)
    axes[0].set_ylabel("Transcribing")
    axes[0].set_title("Gene expression dynamics")
    axes[1].plot(history["time"], history["mrna"], "teal", linewidth=2)
    axes[1].set_ylabel("mRNA")
    axes[2].plot(history["time"], history["protein"], "g-", linewidth=2)
    axes[2].set_ylabel("Proteins")
    axes[2].set_xlabel("Time (s)")
    for axis in axes:
        axis.grid(True, alpha=0.3)

    plt.tight_layout()
    history_path = output_dir / "model_history.png"
    plt.savefig(history_path, dpi=100)
    print(f"\nSaved {history_path}")


def run_cells_visualization(
    n_steps: int = 1000,
    dt: float = 10.0,
    n_cells: int = 30,
    seed: int | None = None,
    output_dir: Path | None = None,
):
    """
    Run the cell population and plot per-cell and average protein levels.

    Args:
        n_steps: Number of population steps
        dt: Time per step in seconds
        n_cells: Number of visible cells
        seed: Random seed
        output_dir: Output directory (created with timestamp if None)
    """
    if output_dir is None:
        output_dir = create_output_dir()
    print(f"Output directory: {output_dir}")

    model = MultipleCellsModel(MultipleCellsConfig(initial_visible_cells=n_cells), seed=seed)
    times = []
    proteins = []
    for _ in tqdm(range(n_steps), desc="Simulating cells"):
        model.step(dt)
        times.append(model.time)
        proteins.append(model.get_cell_proteins())
    proteins = np.array(proteins)

    fig, axes = plt.subplots(2, 1, figsize=(10, 7))
    for i in range(proteins.shape[1]):
        axes[0].plot(times, proteins[:, i], alpha=0.4, linewidth=0.8)
    axes[0].plot(times, proteins.mean(axis=1), "k-", linewidth=2, label="Average")
    axes[0].set_ylabel("Protein count")
    axes[0].set_xlabel("Time (s)")
    axes[0].set_title(f"Protein levels of {n_cells} cells")
    axes[0].legend()
    axes[0].grid(True, alpha=0.3)

    axes[1].hist(proteins[-1], bins=20, color="#4caf50", edgecolor="black")
    axes[1].set_xlabel("Final protein count")
    axes[1].set_ylabel("Cells")

    plt.tight_layout()
    path = output_dir / "cells_history.png"
    plt.savefig(path, dpi=100)
    print(f"\nSaved {path}")
    print(f"Final average protein level: {model.get_average_protein_level():.1f}")


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Gene expression visualization")
    parser.add_argument(
        "--mode", choices=["model", "cells"], default="model",
        help="Spatial model or population of stochastic cells"
    )
    parser.add_argument(
        "--steps", type=int, default=None, help="Number of simulation steps"
    )
    parser.add_argument(
        "--dt", type=float, default=None, help="Time per step in seconds"
    )
    parser.add_argument(
        "--cells", type=int, default=30, help="Number of visible cells (cells mode)"
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed for reproducibility"
    )
    args = parser.parse_args()

    if args.mode == "model":
        run_model_visualization(
            n_steps=args.steps or 2000,
            dt=args.dt or 0.05,
            seed=args.seed,
        )
    else:
        run_cells_visualization(
            n_steps=args.steps or 1000,
            dt=args.dt or 10.0,
            n_cells=args.cells,
            seed=args.seed,
        )


if __name__ == "__main__":
    main()
