"""
DNA strand, genes, and resolution of attachment proposals.

The DNA is a horizontal run of base pairs. Genes are index ranges over the
base pairs with their own transcription factor and polymerase sites; every
other base pair offers a low-affinity default site. Mobile biomolecules
propose to attach, and the DNA picks the best site for them by weighing
affinity against distance.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import numpy as np

from attachment_site import AttachmentSite
from biomolecules import Protein, TranscriptionFactorConfig
from constants import (
    DEFAULT_AFFINITY,
    DISTANCE_BETWEEN_BASE_PAIRS,
    DNA_MOLECULE_DIAMETER,
    DNA_MOLECULE_Y_POS,
    INTER_STRAND_OFFSET,
    LENGTH_PER_TWIST,
    RNA_POLYMERASE_ATTACHMENT_DISTANCE,
    TRANSCRIPTION_FACTOR_ATTACHMENT_DISTANCE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexRange:
    """Inclusive range of base pair indices."""
    min: int
    max: int

    def __post_init__(self):
        if self.max < self.min:
            raise ValueError(f"IndexRange max {self.max} is below min {self.min}")

    def contains(self, index: int) -> bool:
        return self.min <= index <= self.max

    def __len__(self) -> int:
        return self.max - self.min + 1


@dataclass
class DnaSeparation:
    """Local unwinding of the two strands, centered at x."""
    x: float
    amount: float = DNA_MOLECULE_DIAMETER * 1.5


class Gene:
    """
    A gene on the DNA molecule.

    Args:
        dna: The DNA the gene is on
        regulatory_region: Base pairs where transcription factors bind
        transcribed_region: Base pairs copied into mRNA
        transcription_factor_placements: (index, config) pairs giving the
            matching site for each transcription factor
        polymerase_max_affinity: Polymerase site affinity while the bound
            transcription factors support transcription
        transcription_factor_affinity: Affinity of the matching TF sites
        protein_name: Name of the protein the gene encodes
    """

    def __init__(
        self,
        dna: "DnaMolecule",
        regulatory_region: IndexRange,
        transcribed_region: IndexRange,
        transcription_factor_placements: Iterable[tuple[int, TranscriptionFactorConfig]] = (),
        polymerase_max_affinity: float = 1.0,
        transcription_factor_affinity: float = 0.95,
        protein_name: str = "protein",
    ):
        if regulatory_region.max >= transcribed_region.min:
            raise ValueError("regulatory region must precede the transcribed region")
        self.dna = dna
        self.regulatory_region = regulatory_region
        self.transcribed_region = transcribed_region
        self.polymerase_max_affinity = polymerase_max_affinity
        self.protein_name = protein_name

        self.transcription_factor_sites: dict[int, tuple[TranscriptionFactorConfig, AttachmentSite]] = {}
        for index, config in transcription_factor_placements:
            if not regulatory_region.contains(index):
                raise ValueError(f"TF site {index} is outside the regulatory region {regulatory_region}")
            site = AttachmentSite(self, dna.get_base_pair_position(index), transcription_factor_affinity)
            self.transcription_factor_sites[index] = (config, site)

        self.polymerase_site_index = regulatory_region.max
        self.polymerase_site = AttachmentSite(
            self, dna.get_base_pair_position(self.polymerase_site_index), DEFAULT_AFFINITY
        )

    def contains_base_pair(self, index: int) -> bool:
        return self.regulatory_region.min <= index <= self.transcribed_region.max

    def get_start_x(self) -> float:
        return self.dna.get_base_pair_x(self.transcribed_region.min)

    def get_end_x(self) -> float:
        return self.dna.get_base_pair_x(self.transcribed_region.max)

    def get_transcription_factor_site(self, index: int, config: TranscriptionFactorConfig) -> Optional[AttachmentSite]:
        entry = self.transcription_factor_sites.get(index)
        if entry is None or entry[0] != config:
            return None
        return entry[1]

    def get_matching_site(self, config: TranscriptionFactorConfig) -> Optional[AttachmentSite]:
        for site_config, site in self.transcription_factor_sites.values():
            if site_config == config:
                return site
        return None

    def transcription_factors_support_transcription(self) -> bool:
        """True if a positive factor is attached and no negative one is."""
        positive = negative = 0
        for config, site in self.transcription_factor_sites.values():
            if site.is_molecule_attached():
                if config.is_positive:
                    positive += 1
                else:
                    negative += 1
        return positive > 0 and negative == 0

    def update_affinities(self) -> None:
        if self.transcription_factors_support_transcription():
            self.polymerase_site.set_affinity(self.polymerase_max_affinity)
        else:
            self.polymerase_site.set_affinity(DEFAULT_AFFINITY)

    def create_protein(self, model, position) -> Protein:
        return Protein(model, position, name=self.protein_name)

    def get_sites(self) -> list[AttachmentSite]:
        return [site for _, site in self.transcription_factor_sites.values()] + [self.polymerase_site]

    def clear_attachment_sites(self) -> None:
        """Send every molecule holding one of this gene's sites back to searching."""
        for site in self.get_sites():
            if site.occupant is not None:
                site.occupant.attachment_state_machine.force_immediate_unattached_and_available()


class DnaMolecule:
    """
    The DNA strand and the resolver for attachment proposals.

    Args:
        model: Container providing overlap queries
        num_base_pairs: Number of base pairs on the strand
        left_edge_x: x position of the first base pair
        pursue_attachments: When no site is in range, let genes reach out
            for molecules that could bind them, even pre-empting a slower
            molecule that is still on its way
    """

    def __init__(
        self,
        model,
        num_base_pairs: int,
        left_edge_x: float = 0.0,
        pursue_attachments: bool = True,
    ):
        if num_base_pairs <= 0:
            raise ValueError(f"num_base_pairs must be positive, got {num_base_pairs}")
        self.model = model
        self.num_base_pairs = num_base_pairs
        self.left_edge_x = float(left_edge_x)
        self.pursue_attachments = pursue_attachments
        self.distance_exponent = 1.0
        self.genes: list[Gene] = []
        self.separations: list[DnaSeparation] = []
        self._default_transcription_factor_sites: dict[int, AttachmentSite] = {}
        self._default_polymerase_sites: dict[int, AttachmentSite] = {}
        self._strand_points = self.compute_strand_points()
        self.strand_points_changed = False

    # Geometry

    def get_base_pair_x(self, index: int) -> float:
        return self.left_edge_x + index * DISTANCE_BETWEEN_BASE_PAIRS

    def get_base_pair_position(self, index: int) -> np.ndarray:
        return np.array([self.get_base_pair_x(index), DNA_MOLECULE_Y_POS])

    def get_base_pair_positions(self) -> np.ndarray:
        xs = self.left_edge_x + np.arange(self.num_base_pairs) * DISTANCE_BETWEEN_BASE_PAIRS
        return np.column_stack([xs, np.full(self.num_base_pairs, DNA_MOLECULE_Y_POS)])

    def get_base_pair_index_from_x(self, x: float) -> int:
        index = int(round((x - self.left_edge_x) / DISTANCE_BETWEEN_BASE_PAIRS))
        return min(max(index, 0), self.num_base_pairs - 1)

    def get_right_edge_x(self) -> float:
        return self.get_base_pair_x(self.num_base_pairs - 1)

    def compute_strand_points(self) -> tuple[np.ndarray, np.ndarray]:
        """Points of both backbone strands, one per base pair, including separations."""
        xs = self.left_edge_x + np.arange(self.num_base_pairs) * DISTANCE_BETWEEN_BASE_PAIRS
        phase = 2 * np.pi * (xs - self.left_edge_x) / LENGTH_PER_TWIST
        offset_phase = 2 * np.pi * INTER_STRAND_OFFSET / LENGTH_PER_TWIST
        amplitude = DNA_MOLECULE_DIAMETER / 2
        strand1 = DNA_MOLECULE_Y_POS + amplitude * np.sin(phase)
        strand2 = DNA_MOLECULE_Y_POS + amplitude * np.sin(phase + offset_phase)
        for separation in self.separations:
            weight = np.clip(1 - np.abs(xs - separation.x) / LENGTH_PER_TWIST, 0.0, 1.0)
            strand1 = strand1 + weight * separation.amount / 2
            strand2 = strand2 - weight * separation.amount / 2
        return np.column_stack([xs, strand1]), np.column_stack([xs, strand2])

    def get_strand_points(self) -> tuple[np.ndarray, np.ndarray]:
        return self._strand_points

    def create_separation(self, x: float) -> DnaSeparation:
        separation = DnaSeparation(x)
        self.separations.append(separation)
        return separation

    def remove_separation(self, separation: DnaSeparation) -> None:
        for i, existing in enumerate(self.separations):
            if existing is separation:
                del self.separations[i]
                return
        logger.warning("Tried to remove a separation that is not on the DNA")

    # Genes

    def add_gene(self, regulatory_region: IndexRange, transcribed_region: IndexRange, **kwargs) -> Gene:
        if transcribed_region.max >= self.num_base_pairs:
            raise ValueError(f"gene extends past the end of the DNA ({self.num_base_pairs} base pairs)")
        for gene in self.genes:
            if gene.contains_base_pair(regulatory_region.min) or gene.contains_base_pair(transcribed_region.max):
                raise ValueError("genes may not overlap")
        gene = Gene(self, regulatory_region, transcribed_region, **kwargs)
        self.genes.append(gene)
        return gene

    def get_gene_containing_base_pair(self, index: int) -> Optional[Gene]:
        for gene in self.genes:
            if gene.contains_base_pair(index):
                return gene
        return None

    def get_gene_for_polymerase_site(self, site: AttachmentSite) -> Optional[Gene]:
        for gene in self.genes:
            if gene.polymerase_site is site:
                return gene
        return None

    def step(self, dt: float) -> None:
        for gene in self.genes:
            gene.update_affinities()
        new_points = self.compute_strand_points()
        old_points = self._strand_points
        self.strand_points_changed = not (
            np.array_equal(new_points[0], old_points[0]) and np.array_equal(new_points[1], old_points[1])
        )
        self._strand_points = new_points

    # Sites

    def _get_default_site(self, cache: dict, index: int) -> AttachmentSite:
        site = cache.get(index)
        if site is None:
            site = AttachmentSite(self, self.get_base_pair_position(index), DEFAULT_AFFINITY)
            cache[index] = site
        return site

    def get_transcription_factor_site_for_base_pair_index(
        self, index: int, config: TranscriptionFactorConfig
    ) -> AttachmentSite:
        gene = self.get_gene_containing_base_pair(index)
        if gene is not None:
            site = gene.get_transcription_factor_site(index, config)
            if site is not None:
                return site
        return self._get_default_site(self._default_transcription_factor_sites, index)

    def get_rna_polymerase_site_for_base_pair_index(self, index: int) -> AttachmentSite:
        gene = self.get_gene_containing_base_pair(index)
        if gene is not None and gene.polymerase_site_index == index:
            return gene.polymerase_site
        return self._get_default_site(self._default_polymerase_sites, index)

    def _adjacent_indices(self, site: AttachmentSite) -> list[int]:
        index = self.get_base_pair_index_from_x(site.position[0])
        return [i for i in (index - 1, index + 1) if 0 <= i < self.num_base_pairs]

    def get_adjacent_attachment_sites_transcription_factor(self, transcription_factor, site) -> list[AttachmentSite]:
        return [
            self.get_transcription_factor_site_for_base_pair_index(i, transcription_factor.config)
            for i in self._adjacent_indices(site)
        ]

    def get_adjacent_attachment_sites_rna_polymerase(self, polymerase, site) -> list[AttachmentSite]:
        return [self.get_rna_polymerase_site_for_base_pair_index(i) for i in self._adjacent_indices(site)]

    # Proposal resolution

    def consider_proposal_from_transcription_factor(self, transcription_factor) -> Optional[AttachmentSite]:
        config = transcription_factor.config
        return self.consider_proposal_from_biomolecule(
            transcription_factor,
            TRANSCRIPTION_FACTOR_ATTACHMENT_DISTANCE,
            lambda index: self.get_transcription_factor_site_for_base_pair_index(index, config),
            lambda gene: gene.get_matching_site(config) is not None,
            lambda gene: gene.get_matching_site(config),
        )

    def consider_proposal_from_rna_polymerase(self, polymerase) -> Optional[AttachmentSite]:
        return self.consider_proposal_from_biomolecule(
            polymerase,
            RNA_POLYMERASE_ATTACHMENT_DISTANCE,
            self.get_rna_polymerase_site_for_base_pair_index,
            lambda gene: gene.transcription_factors_support_transcription(),
            lambda gene: gene.polymerase_site,
        )

    def consider_proposal_from_biomolecule(
        self,
        biomolecule,
        max_attach_distance: float,
        site_for_base_pair: Callable[[int], AttachmentSite],
        ok_to_attach: Callable[[Gene], bool],
        gene_site: Callable[[Gene], Optional[AttachmentSite]],
    ) -> Optional[AttachmentSite]:
        """
        Pick the best site for a biomolecule, or None.

        Args:
            biomolecule: The proposing biomolecule
            max_attach_distance: Sites farther away than this are ignored
            site_for_base_pair: Site the biomolecule would use at a base pair index
            ok_to_attach: Whether a gene may pursue the biomolecule
            gene_site: The site a gene offers the biomolecule

        Returns:
            The site with the highest affinity per unit distance, or None
        """
        position = biomolecule.position
        candidates = []

        lowest = self.get_base_pair_index_from_x(position[0] - max_attach_distance)
        highest = self.get_base_pair_index_from_x(position[0] + max_attach_distance)
        for index in range(lowest, highest + 1):
            site = site_for_base_pair(index)
            if site.occupant is None and site.distance_to(position) <= max_attach_distance:
                candidates.append(site)

        if not candidates and self.pursue_attachments:
            candidates = self._pursue_gene_sites(biomolecule, ok_to_attach, gene_site)

        offset = biomolecule.attachment_state_machine.destination_offset
        candidates = [
            site for site in candidates
            if biomolecule.is_position_in_motion_bounds(site.position - offset)
            and not self._overlaps_attached_biomolecule(biomolecule, site.position - offset)
        ]
        if not candidates:
            return None

        scores = [self._score(site, position) for site in candidates]
        best = candidates[int(np.argmax(scores))]
        occupant = best.occupant
        if occupant is not None and occupant is not biomolecule:
            # Only pursued sites can still be held by a slower approaching molecule
            logger.debug("%r pre-empts %r for site %d", biomolecule, occupant, best.id)
            occupant.attachment_state_machine.force_abort_pending_attachment()
        return best

    def _pursue_gene_sites(self, biomolecule, ok_to_attach, gene_site) -> list[AttachmentSite]:
        sites = []
        for gene in self.genes:
            if not ok_to_attach(gene):
                continue
            site = gene_site(gene)
            if site is None:
                continue
            occupant = site.occupant
            if occupant is None:
                sites.append(site)
            elif (
                occupant is not biomolecule
                and not site.is_molecule_attached()
                and site.distance_to(occupant.position) > site.distance_to(biomolecule.position)
            ):
                sites.append(site)
        return sites

    def _overlaps_attached_biomolecule(self, biomolecule, position) -> bool:
        shape = biomolecule.get_shape().centered_at(position)
        return any(
            other is not biomolecule and other.attached_to_dna
            for other in self.model.get_overlapping_biomolecules(shape)
        )

    def _score(self, site: AttachmentSite, position) -> float:
        distance = site.distance_to(position)
        if distance == 0:
            return np.inf
        return site.affinity / distance ** self.distance_exponent
