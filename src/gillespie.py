"""
Gillespie stochastic simulation of protein synthesis in a single cell.

Implements the direct method (Gillespie, 1977) for exact stochastic
simulation of the central dogma as a Markov process:

    Transcription      Translation
DNA      ->      mRNA      ->      Protein

The network tracks genes, transcription factors (TF), RNA polymerase,
ribosomes and their complexes:
- Gene + TF association / dissociation
- Gene-TF + polymerase association / dissociation
- Transcription (frees gene, TF and polymerase, produces mRNA)
- mRNA + ribosome association / dissociation
- Translation (frees ribosome, produces protein)
- Protein degradation
- mRNA degradation
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class Species(IntEnum):
    """Indices into the object count vector."""
    GENE = 0
    FREE_TRANSCRIPTION_FACTOR = 1
    FREE_POLYMERASE = 2
    GENE_TF_COMPLEX = 3
    GENE_TF_POLYMERASE_COMPLEX = 4
    MRNA = 5
    FREE_RIBOSOME = 6
    MRNA_RIBOSOME_COMPLEX = 7
    PROTEIN = 8


class Reaction(IntEnum):
    """Indices into the reaction probability vector."""
    GENE_TF_ASSOCIATION = 0
    GENE_TF_DISSOCIATION = 1
    POLYMERASE_ASSOCIATION = 2
    POLYMERASE_DISSOCIATION = 3
    TRANSCRIPTION = 4
    MRNA_RIBOSOME_ASSOCIATION = 5
    MRNA_RIBOSOME_DISSOCIATION = 6
    TRANSLATION = 7
    PROTEIN_DEGRADATION = 8
    MRNA_DEGRADATION = 9


@dataclass(frozen=True)
class ParameterRange:
    """Closed interval of valid values for a tunable parameter."""
    min: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def check(self, name: str, value: float) -> None:
        if not self.contains(value):
            raise ValueError(f"{name} must be in [{self.min}, {self.max}], got {value}")


DEFAULT_GENE_COUNT = 20
DEFAULT_TRANSCRIPTION_FACTOR_COUNT = 2000
DEFAULT_POLYMERASE_COUNT = 5000
DEFAULT_RIBOSOME_COUNT = 2000
DEFAULT_TF_ASSOCIATION_PROBABILITY = 2.5e-6
DEFAULT_POLYMERASE_ASSOCIATION_PROBABILITY = 9.5e-7
DEFAULT_RNA_RIBOSOME_ASSOCIATION_PROBABILITY = 0.001
DEFAULT_PROTEIN_DEGRADATION_RATE = 0.0004
DEFAULT_MRNA_DEGRADATION_RATE = 0.01

TRANSCRIPTION_FACTOR_COUNT_RANGE = ParameterRange(
    DEFAULT_TRANSCRIPTION_FACTOR_COUNT / 10, DEFAULT_TRANSCRIPTION_FACTOR_COUNT * 10
)
POLYMERASE_COUNT_RANGE = ParameterRange(0, DEFAULT_POLYMERASE_COUNT * 10)
TF_ASSOCIATION_PROBABILITY_RANGE = ParameterRange(
    DEFAULT_TF_ASSOCIATION_PROBABILITY / 10, DEFAULT_TF_ASSOCIATION_PROBABILITY * 10
)
POLYMERASE_ASSOCIATION_PROBABILITY_RANGE = ParameterRange(
    0.0, 2 * DEFAULT_POLYMERASE_ASSOCIATION_PROBABILITY
)
RNA_RIBOSOME_ASSOCIATION_PROBABILITY_RANGE = ParameterRange(
    0.0, 2 * DEFAULT_RNA_RIBOSOME_ASSOCIATION_PROBABILITY
)
PROTEIN_DEGRADATION_RANGE = ParameterRange(
    DEFAULT_PROTEIN_DEGRADATION_RATE * 0.7, DEFAULT_PROTEIN_DEGRADATION_RATE * 1.3
)
MRNA_DEGRADATION_RATE_RANGE = ParameterRange(
    DEFAULT_MRNA_DEGRADATION_RATE / 1000, DEFAULT_MRNA_DEGRADATION_RATE * 1000
)

DEFAULT_REACTION_PROBABILITIES = (
    DEFAULT_TF_ASSOCIATION_PROBABILITY,
    0.0009,  # gene-TF dissociation
    DEFAULT_POLYMERASE_ASSOCIATION_PROBABILITY,
    0.00085,  # gene-TF-polymerase dissociation
    0.003,  # transcription
    DEFAULT_RNA_RIBOSOME_ASSOCIATION_PROBABILITY,
    0.0009,  # mRNA-ribosome dissociation
    0.0009,  # translation
    DEFAULT_PROTEIN_DEGRADATION_RATE,
    DEFAULT_MRNA_DEGRADATION_RATE,
)

# Rows are reactions, columns are species
STOICHIOMETRY = np.array([
    #  G  TF  P  GT GTP  M  R  MR  Pr
    [-1, -1, 0, 1, 0, 0, 0, 0, 0],  # gene + TF -> gene-TF
    [1, 1, 0, -1, 0, 0, 0, 0, 0],  # gene-TF -> gene + TF
    [0, 0, -1, -1, 1, 0, 0, 0, 0],  # gene-TF + polymerase -> gene-TF-polymerase
    [0, 0, 1, 1, -1, 0, 0, 0, 0],  # gene-TF-polymerase -> gene-TF + polymerase
    [1, 1, 1, 0, -1, 1, 0, 0, 0],  # transcription
    [0, 0, 0, 0, 0, -1, -1, 1, 0],  # mRNA + ribosome -> mRNA-ribosome
    [0, 0, 0, 0, 0, 1, 1, -1, 0],  # mRNA-ribosome -> mRNA + ribosome
    [0, 0, 0, 0, 0, 0, 1, -1, 1],  # translation
    [0, 0, 0, 0, 0, 0, 0, 0, -1],  # protein degradation
    [0, 0, 0, 0, 0, -1, 0, 0, 0],  # mRNA degradation
], dtype=np.int64)

NUM_SPECIES = len(Species)
NUM_REACTIONS = len(Reaction)


def default_object_counts(ribosome_count: int = DEFAULT_RIBOSOME_COUNT) -> np.ndarray:
    """Initial species counts for a freshly created cell."""
    counts = np.zeros(NUM_SPECIES, dtype=np.int64)
    counts[Species.GENE] = DEFAULT_GENE_COUNT
    counts[Species.FREE_TRANSCRIPTION_FACTOR] = DEFAULT_TRANSCRIPTION_FACTOR_COUNT
    counts[Species.FREE_POLYMERASE] = DEFAULT_POLYMERASE_COUNT
    counts[Species.FREE_RIBOSOME] = ribosome_count
    return counts


def compute_propensities(counts: np.ndarray, rates: np.ndarray) -> np.ndarray:
    """
    Compute reaction propensities for the given counts.

    Each propensity is the product of its reactant counts times the rate
    constant, so a reaction with an exhausted reactant can never fire.
    """
    c = counts.astype(np.float64)
    h = np.array([
        c[Species.GENE] * c[Species.FREE_TRANSCRIPTION_FACTOR],
        c[Species.GENE_TF_COMPLEX],
        c[Species.FREE_POLYMERASE] * c[Species.GENE_TF_COMPLEX],
        c[Species.GENE_TF_POLYMERASE_COMPLEX],
        c[Species.GENE_TF_POLYMERASE_COMPLEX],
        c[Species.MRNA] * c[Species.FREE_RIBOSOME],
        c[Species.MRNA_RIBOSOME_COMPLEX],
        c[Species.MRNA_RIBOSOME_COMPLEX],
        c[Species.PROTEIN],
        c[Species.MRNA],
    ])
    return h * rates


class CellProteinSynthesisSimulator:
    """
    Gillespie direct method simulator for protein synthesis in one cell.

    Attributes:
        rng: Random number generator used for all draws
        time: Total simulated time
    """

    def __init__(
        self,
        ribosome_count: int = DEFAULT_RIBOSOME_COUNT,
        rng: Optional[np.random.Generator] = None,
    ):
        if ribosome_count < 0:
            raise ValueError(f"ribosome_count must be non-negative, got {ribosome_count}")
        self.rng = rng or np.random.default_rng()
        self._counts = default_object_counts(int(ribosome_count))
        self._rates = np.array(DEFAULT_REACTION_PROBABILITIES, dtype=np.float64)
        self.time = 0.0

    @property
    def object_counts(self) -> np.ndarray:
        """Copy of the current species counts."""
        return self._counts.copy()

    @property
    def reaction_probabilities(self) -> np.ndarray:
        """Copy of the current rate constants."""
        return self._rates.copy()

    def set_transcription_factor_count(self, tf_count: int) -> None:
        TRANSCRIPTION_FACTOR_COUNT_RANGE.check("transcription factor count", tf_count)
        self._counts[Species.FREE_TRANSCRIPTION_FACTOR] = tf_count

    def set_polymerase_count(self, polymerase_count: int) -> None:
        POLYMERASE_COUNT_RANGE.check("polymerase count", polymerase_count)
        self._counts[Species.FREE_POLYMERASE] = polymerase_count

    def set_gene_transcription_factor_association_rate(self, new_rate: float) -> None:
        TF_ASSOCIATION_PROBABILITY_RANGE.check("TF association rate", new_rate)
        self._rates[Reaction.GENE_TF_ASSOCIATION] = new_rate

    def set_polymerase_association_rate(self, new_rate: float) -> None:
        POLYMERASE_ASSOCIATION_PROBABILITY_RANGE.check("polymerase association rate", new_rate)
        self._rates[Reaction.POLYMERASE_ASSOCIATION] = new_rate

    def set_rna_ribosome_association_rate(self, new_rate: float) -> None:
        RNA_RIBOSOME_ASSOCIATION_PROBABILITY_RANGE.check("mRNA-ribosome association rate", new_rate)
        self._rates[Reaction.MRNA_RIBOSOME_ASSOCIATION] = new_rate

    def set_protein_degradation_rate(self, new_rate: float) -> None:
        PROTEIN_DEGRADATION_RANGE.check("protein degradation rate", new_rate)
        self._rates[Reaction.PROTEIN_DEGRADATION] = new_rate

    def set_mrna_degradation_rate(self, new_rate: float) -> None:
        MRNA_DEGRADATION_RATE_RANGE.check("mRNA degradation rate", new_rate)
        self._rates[Reaction.MRNA_DEGRADATION] = new_rate

    def get_protein_count(self) -> int:
        return int(self._counts[Species.PROTEIN])

    def get_total_gene_count(self) -> int:
        """Genes in any state: free, bound to TF, or bound to TF and polymerase."""
        return int(
            self._counts[Species.GENE]
            + self._counts[Species.GENE_TF_COMPLEX]
            + self._counts[Species.GENE_TF_POLYMERASE_COMPLEX]
        )

    def compute_propensities(self) -> np.ndarray:
        """Compute reaction propensities for the current counts."""
        return compute_propensities(self._counts, self._rates)

    def conduct_reaction(self, mu: int) -> None:
        """Apply the stoichiometry of reaction mu to the counts (in-place)."""
        if not 0 <= mu < NUM_REACTIONS:
            raise ValueError(f"Unhandled reaction index {mu}")
        updated = self._counts + STOICHIOMETRY[mu]
        if (updated < 0).any():
            raise RuntimeError(
                f"Reaction {Reaction(mu).name} would drive a count negative: {self._counts.tolist()}"
            )
        self._counts = updated

    def simulate_one_reaction(self, max_time: float) -> float:
        """
        Simulate one reaction if it occurs within max_time.

        Args:
            max_time: Maximum time to wait for the next reaction

        Returns:
            Time elapsed before the reaction, or 0.0 if no reaction fires
            within max_time (including when no reaction is possible).
        """
        cumulative = np.cumsum(self.compute_propensities())
        total_propensity = cumulative[-1]
        if total_propensity <= 0:
            return 0.0

        r1 = 1.0 - self.rng.random()  # (0, 1], keeps the log finite
        r2 = self.rng.random()
        tau = np.log(1.0 / r1) / total_propensity
        if tau > max_time:
            return 0.0

        # First reaction whose cumulative propensity exceeds the threshold
        mu = int(np.searchsorted(cumulative, r2 * total_propensity, side="right"))
        self.conduct_reaction(mu)
        return float(tau)

    def step(self, dt: float) -> None:
        """
        Advance the simulation by dt.

        Reactions are drawn one at a time until the next one would fall
        beyond the end of the step.
        """
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        accumulated_time = 0.0
        time_increment = -1.0
        while accumulated_time < dt and time_increment != 0.0:
            time_increment = self.simulate_one_reaction(dt - accumulated_time)
            accumulated_time += time_increment
        self.time += dt

    def simulate(
        self,
        t_max: float,
        record_interval: float = 1.0,
    ) -> dict:
        """
        Run the simulation and record a trajectory.

        Args:
            t_max: Total simulation time to add
            record_interval: Time between recorded samples

        Returns:
            Dict with 'times' plus one count array per species (lowercase name)
        """
        if record_interval <= 0:
            raise ValueError("record_interval must be positive")

        end_time = self.time + t_max
        times = [self.time]
        samples = [self._counts.copy()]
        while self.time < end_time:
            self.step(min(record_interval, end_time - self.time))
            times.append(self.time)
            samples.append(self._counts.copy())

        samples = np.array(samples)
        result = {"times": np.array(times)}
        for species in Species:
            result[species.name.lower()] = samples[:, species]
        return result
