"""
Population of independently simulated cells.

Every cell runs its own Gillespie protein synthesis simulator. The population
shares one set of tunable parameters: changing a parameter applies it to
every cell, visible or not, so cells that are later made visible are
consistent with the rest.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from gillespie import (
    DEFAULT_MRNA_DEGRADATION_RATE,
    DEFAULT_POLYMERASE_ASSOCIATION_PROBABILITY,
    DEFAULT_PROTEIN_DEGRADATION_RATE,
    DEFAULT_RIBOSOME_COUNT,
    DEFAULT_TF_ASSOCIATION_PROBABILITY,
    DEFAULT_TRANSCRIPTION_FACTOR_COUNT,
    CellProteinSynthesisSimulator,
)

logger = logging.getLogger(__name__)

MAX_CELLS = 90


@dataclass
class MultipleCellsConfig:
    """Configuration parameters for the cell population."""
    max_cells: int = MAX_CELLS
    initial_visible_cells: int = 1
    ribosome_count: int = DEFAULT_RIBOSOME_COUNT

    def __post_init__(self):
        if self.max_cells <= 0:
            raise ValueError("max_cells must be positive")
        if not 1 <= self.initial_visible_cells <= self.max_cells:
            raise ValueError(
                f"initial_visible_cells must be in [1, {self.max_cells}], "
                f"got {self.initial_visible_cells}"
            )
        if self.ribosome_count < 0:
            raise ValueError("ribosome_count must be non-negative")


@dataclass
class Cell:
    """
    A single cell of the population.

    Attributes:
        index: Position of the cell within the population
        simulator: Stochastic simulator for this cell's protein synthesis
    """
    index: int
    simulator: CellProteinSynthesisSimulator

    def get_protein_count(self) -> int:
        return self.simulator.get_protein_count()


@dataclass
class PopulationParameters:
    """Parameter values currently applied to every cell."""
    transcription_factor_count: int = DEFAULT_TRANSCRIPTION_FACTOR_COUNT
    tf_association_rate: float = DEFAULT_TF_ASSOCIATION_PROBABILITY
    polymerase_association_rate: float = DEFAULT_POLYMERASE_ASSOCIATION_PROBABILITY
    protein_degradation_rate: float = DEFAULT_PROTEIN_DEGRADATION_RATE
    mrna_degradation_rate: float = DEFAULT_MRNA_DEGRADATION_RATE


class MultipleCellsModel:
    """
    Collection of cells simulated in parallel.

    Attributes:
        config: Population configuration
        cells: All cells, visible or not
        visible_cell_count: Number of cells stepped and averaged
        rng: Random number generator shared by every cell
    """

    def __init__(
        self,
        config: Optional[MultipleCellsConfig] = None,
        seed: Optional[int] = None,
    ):
        self.config = config or MultipleCellsConfig()
        self.rng = np.random.default_rng(seed)
        self.parameters = PopulationParameters()
        self.cells = [
            Cell(index=i, simulator=CellProteinSynthesisSimulator(self.config.ribosome_count, rng=self.rng))
            for i in range(self.config.max_cells)
        ]
        self.visible_cell_count = self.config.initial_visible_cells
        self.time = 0.0

    @property
    def visible_cells(self) -> list[Cell]:
        return self.cells[:self.visible_cell_count]

    def set_visible_cell_count(self, count: int) -> None:
        if not 1 <= count <= len(self.cells):
            raise ValueError(f"visible cell count must be in [1, {len(self.cells)}], got {count}")
        logger.debug("Visible cells %d -> %d", self.visible_cell_count, count)
        self.visible_cell_count = count

    def _apply_to_all(self, setter_name: str, value) -> None:
        # Validate against the first cell so a bad value leaves every cell untouched
        getattr(self.cells[0].simulator, setter_name)(value)
        for cell in self.cells[1:]:
            getattr(cell.simulator, setter_name)(value)

    def set_transcription_factor_count(self, count: int) -> None:
        self._apply_to_all("set_transcription_factor_count", count)
        self.parameters.transcription_factor_count = count

    def set_gene_transcription_factor_association_rate(self, rate: float) -> None:
        self._apply_to_all("set_gene_transcription_factor_association_rate", rate)
        self.parameters.tf_association_rate = rate

    def set_polymerase_association_rate(self, rate: float) -> None:
        self._apply_to_all("set_polymerase_association_rate", rate)
        self.parameters.polymerase_association_rate = rate

    def set_protein_degradation_rate(self, rate: float) -> None:
        self._apply_to_all("set_protein_degradation_rate", rate)
        self.parameters.protein_degradation_rate = rate

    def set_mrna_degradation_rate(self, rate: float) -> None:
        self._apply_to_all("set_mrna_degradation_rate", rate)
        self.parameters.mrna_degradation_rate = rate

    def step(self, dt: float) -> None:
        """Advance every visible cell by dt."""
        for cell in self.visible_cells:
            cell.simulator.step(dt)
        self.time += dt

    def run(self, n_steps: int, dt: float) -> None:
        for _ in range(n_steps):
            self.step(dt)

    def get_cell_proteins(self) -> np.ndarray:
        """Return array of protein counts of the visible cells."""
        return np.array([c.get_protein_count() for c in self.visible_cells])

    def get_average_protein_level(self) -> float:
        return float(np.mean(self.get_cell_proteins()))

    def get_state(self) -> dict:
        """
        Return a snapshot of the population.

        Returns:
            Dict with time, visible cell count, per-cell proteins and the average.
        """
        proteins = self.get_cell_proteins()
        return {
            "time": self.time,
            "n_visible": self.visible_cell_count,
            "cell_proteins": proteins,
            "average_protein": float(np.mean(proteins)),
        }
