"""
Gene expression model: the container that ties the spatial simulation together.

Holds the DNA molecule, every mobile biomolecule, and the motion bounds
they move within. Each call to step advances the DNA and then every
biomolecule in turn, so attachment sites are always claimed sequentially.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from biomolecules import (
    MessengerRnaDestroyer,
    MobileBiomolecule,
    Protein,
    Ribosome,
    RnaPolymerase,
    TranscriptionFactor,
    TranscriptionFactorConfig,
)
from constants import DISTANCE_BETWEEN_BASE_PAIRS
from dna_molecule import DnaMolecule, Gene, IndexRange
from geometry import MotionBounds, Rect
from messenger_rna import MessengerRna
from observable import Property

logger = logging.getLogger(__name__)


@dataclass
class GeneLayout:
    """Placement of one gene on the DNA."""
    regulatory_region: IndexRange
    transcribed_region: IndexRange
    transcription_factor_placements: list = field(default_factory=list)
    protein_name: str = "protein"


@dataclass
class GeneExpressionModelConfig:
    """Configuration parameters for the gene expression model."""
    motion_bounds: Optional[Rect] = Rect(-6000.0, -4000.0, 16000.0, 4000.0)
    num_base_pairs: int = 300
    dna_left_edge_x: float = 0.0
    pursue_attachments: bool = True
    genes: list[GeneLayout] = field(default_factory=list)
    fade_messenger_rna_when_formed: bool = False

    def __post_init__(self):
        if self.num_base_pairs <= 0:
            raise ValueError("num_base_pairs must be positive")
        for layout in self.genes:
            if layout.transcribed_region.max >= self.num_base_pairs:
                raise ValueError(
                    f"gene {layout.protein_name} extends past the DNA ({self.num_base_pairs} base pairs)"
                )


def default_gene_layouts() -> list[GeneLayout]:
    """Two genes, each regulated by one positive and one negative transcription factor."""
    layouts = []
    for n, start in enumerate((10, 160)):
        layouts.append(GeneLayout(
            regulatory_region=IndexRange(start, start + 19),
            transcribed_region=IndexRange(start + 20, start + 119),
            transcription_factor_placements=[
                (start, TranscriptionFactorConfig(True, f"tf{n}_positive")),
                (start + 12, TranscriptionFactorConfig(False, f"tf{n}_negative")),
            ],
            protein_name=f"protein{n}",
        ))
    return layouts


class GeneExpressionModel:
    """
    Container of the spatial gene expression simulation.

    Attributes:
        config: Model configuration
        rng: Random number generator handed to everything the model spawns
        motion_bounds_property: Bounds shared by every biomolecule
        dna: The DNA molecule and attachment resolver
        mobile_biomolecules: All biomolecules currently in the model
        messenger_rnas: The mRNA subset of mobile_biomolecules
        time: Total simulated time
    """

    def __init__(
        self,
        config: Optional[GeneExpressionModelConfig] = None,
        seed: Optional[int] = None,
    ):
        self.config = config or GeneExpressionModelConfig()
        self.rng = np.random.default_rng(seed)
        self.motion_bounds_property = Property(MotionBounds(self.config.motion_bounds))
        self.dna = DnaMolecule(
            self,
            self.config.num_base_pairs,
            self.config.dna_left_edge_x,
            self.config.pursue_attachments,
        )
        for layout in self.config.genes:
            self.add_gene(layout)
        self.mobile_biomolecules: list[MobileBiomolecule] = []
        self.messenger_rnas: list[MessengerRna] = []
        self.time = 0.0

    # Scene

    def set_motion_bounds(self, bounds: Optional[Rect]) -> None:
        self.motion_bounds_property.set(MotionBounds(bounds))

    def add_gene(self, layout: GeneLayout) -> Gene:
        return self.dna.add_gene(
            layout.regulatory_region,
            layout.transcribed_region,
            transcription_factor_placements=layout.transcription_factor_placements,
            protein_name=layout.protein_name,
        )

    def add_biomolecule(self, biomolecule: MobileBiomolecule) -> MobileBiomolecule:
        self.mobile_biomolecules.append(biomolecule)
        if isinstance(biomolecule, MessengerRna):
            self.messenger_rnas.append(biomolecule)
        logger.debug("Added %r", biomolecule)
        return biomolecule

    def remove_biomolecule(self, biomolecule: MobileBiomolecule) -> None:
        if biomolecule not in self.mobile_biomolecules:
            return
        self.mobile_biomolecules.remove(biomolecule)
        if isinstance(biomolecule, MessengerRna):
            self.messenger_rnas.remove(biomolecule)
        biomolecule.dispose()
        logger.debug("Removed %r", biomolecule)

    def remove_messenger_rna(self, messenger_rna: MessengerRna) -> None:
        self.remove_biomolecule(messenger_rna)

    def contains(self, biomolecule: MobileBiomolecule) -> bool:
        return biomolecule in self.mobile_biomolecules

    # Spawning

    def add_transcription_factor(self, config: TranscriptionFactorConfig, position) -> TranscriptionFactor:
        return self.add_biomolecule(TranscriptionFactor(self, config, position))

    def add_rna_polymerase(
        self,
        position,
        recycle_mode: bool = False,
        recycle_return_zones: Sequence[Rect] = (),
    ) -> RnaPolymerase:
        return self.add_biomolecule(RnaPolymerase(self, position, None, recycle_mode, recycle_return_zones))

    def add_ribosome(self, position) -> Ribosome:
        return self.add_biomolecule(Ribosome(self, position))

    def add_messenger_rna_destroyer(self, position) -> MessengerRnaDestroyer:
        return self.add_biomolecule(MessengerRnaDestroyer(self, position))

    def spawn_messenger_rna(self, gene: Optional[Gene], position) -> MessengerRna:
        """Create an mRNA that is being synthesized by a polymerase."""
        prototype = gene.create_protein if gene is not None else None
        mrna = MessengerRna(
            self, prototype, position, fade_away_when_formed=self.config.fade_messenger_rna_when_formed
        )
        mrna.attach_to_polymerase()
        return self.add_biomolecule(mrna)

    def spawn_protein(self, prototype, position) -> Protein:
        """Create a protein held by the ribosome that is translating it."""
        protein = prototype(self, position) if prototype is not None else Protein(self, position)
        protein.attach_to_ribosome()
        return self.add_biomolecule(protein)

    # Queries

    def get_overlapping_biomolecules(self, shape: Rect) -> list[MobileBiomolecule]:
        return [b for b in self.mobile_biomolecules if b.get_shape().intersects(shape)]

    def get_biomolecules_of_type(self, biomolecule_type) -> list:
        return [b for b in self.mobile_biomolecules if isinstance(b, biomolecule_type)]

    def get_proteins(self, name: Optional[str] = None) -> list[Protein]:
        return [p for p in self.get_biomolecules_of_type(Protein) if name is None or p.name == name]

    def consider_proposal_from_ribosome(self, ribosome: Ribosome):
        return self._nearest_messenger_rna_site(
            ribosome.get_translation_channel_entrance(),
            [mrna.consider_proposal_from_ribosome(ribosome) for mrna in self.messenger_rnas],
        )

    def consider_proposal_from_messenger_rna_destroyer(self, destroyer: MessengerRnaDestroyer):
        return self._nearest_messenger_rna_site(
            destroyer.position,
            [mrna.consider_proposal_from_messenger_rna_destroyer(destroyer) for mrna in self.messenger_rnas],
        )

    @staticmethod
    def _nearest_messenger_rna_site(position, sites):
        sites = [site for site in sites if site is not None]
        if not sites:
            return None
        return min(sites, key=lambda site: site.distance_to(position))

    # Time

    def step(self, dt: float) -> None:
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        self.dna.step(dt)
        for biomolecule in list(self.mobile_biomolecules):
            # Earlier steps may have removed it
            if self.contains(biomolecule):
                biomolecule.step(dt)
        self.time += dt

    def run(self, n_steps: int, dt: float) -> None:
        for _ in range(n_steps):
            self.step(dt)

    def get_state(self) -> dict:
        """
        Return a snapshot of the model.

        Returns:
            Dict with time and the number of biomolecules of each kind
        """
        counts: dict[str, int] = {}
        for biomolecule in self.mobile_biomolecules:
            name = type(biomolecule).__name__
            counts[name] = counts.get(name, 0) + 1
        return {
            "time": self.time,
            "counts": counts,
            "dna_length": self.dna.num_base_pairs * DISTANCE_BETWEEN_BASE_PAIRS,
        }
