"""Tests for the DNA molecule, genes and proposal resolution."""

from types import SimpleNamespace

import numpy as np
import pytest

from attachment_state_machines import AttachmentState
from biomolecules import TranscriptionFactorConfig
from constants import DEFAULT_AFFINITY, DISTANCE_BETWEEN_BASE_PAIRS
from dna_molecule import DnaMolecule, IndexRange
from geometry import Rect
from model import GeneExpressionModel, GeneExpressionModelConfig

S = AttachmentState


def stand_in(attached: bool):
    return SimpleNamespace(
        attachment_state_machine=SimpleNamespace(is_attached=lambda: attached),
        position=np.zeros(2),
    )


class TestGeometry:

    def test_base_pair_positions(self):
        dna = DnaMolecule(None, 10, left_edge_x=100.0)
        assert dna.get_base_pair_x(0) == 100.0
        assert dna.get_base_pair_x(3) == pytest.approx(100.0 + 3 * DISTANCE_BETWEEN_BASE_PAIRS)
        assert dna.get_base_pair_positions().shape == (10, 2)

    def test_index_from_x_is_clamped(self):
        dna = DnaMolecule(None, 10)
        assert dna.get_base_pair_index_from_x(-1000) == 0
        assert dna.get_base_pair_index_from_x(1e6) == 9
        assert dna.get_base_pair_index_from_x(2 * DISTANCE_BETWEEN_BASE_PAIRS + 1) == 2

    def test_invalid_length_rejected(self):
        with pytest.raises(ValueError):
            DnaMolecule(None, 0)

    def test_separation_changes_strands(self):
        dna = DnaMolecule(None, 50)
        dna.step(0.1)
        assert not dna.strand_points_changed
        separation = dna.create_separation(dna.get_base_pair_x(25))
        dna.step(0.1)
        assert dna.strand_points_changed
        strand1, strand2 = dna.get_strand_points()
        assert strand1[25, 1] > strand2[25, 1]
        dna.remove_separation(separation)
        dna.step(0.1)
        assert dna.strand_points_changed
        assert dna.separations == []


class TestGenes:

    def test_overlapping_genes_rejected(self):
        dna = DnaMolecule(None, 100)
        dna.add_gene(IndexRange(0, 9), IndexRange(10, 40))
        with pytest.raises(ValueError):
            dna.add_gene(IndexRange(30, 39), IndexRange(40, 60))

    def test_gene_past_end_rejected(self):
        dna = DnaMolecule(None, 50)
        with pytest.raises(ValueError):
            dna.add_gene(IndexRange(0, 9), IndexRange(10, 50))

    def test_tf_site_outside_regulatory_region_rejected(self):
        dna = DnaMolecule(None, 100)
        config = TranscriptionFactorConfig(True)
        with pytest.raises(ValueError):
            dna.add_gene(IndexRange(0, 9), IndexRange(10, 40), transcription_factor_placements=[(20, config)])

    def test_support_requires_positive_and_no_negative(self):
        positive = TranscriptionFactorConfig(True, "p")
        negative = TranscriptionFactorConfig(False, "n")
        dna = DnaMolecule(None, 100)
        gene = dna.add_gene(
            IndexRange(0, 9), IndexRange(10, 40),
            transcription_factor_placements=[(0, positive), (4, negative)],
        )
        positive_site = gene.get_matching_site(positive)
        negative_site = gene.get_matching_site(negative)

        assert not gene.transcription_factors_support_transcription()

        positive_site.claim(stand_in(attached=False))
        assert not gene.transcription_factors_support_transcription()

        positive_site.release()
        positive_site.claim(stand_in(attached=True))
        assert gene.transcription_factors_support_transcription()
        gene.update_affinities()
        assert gene.polymerase_site.affinity == 1.0

        negative_site.claim(stand_in(attached=True))
        assert not gene.transcription_factors_support_transcription()
        gene.update_affinities()
        assert gene.polymerase_site.affinity == DEFAULT_AFFINITY

    def test_site_lookup(self):
        positive = TranscriptionFactorConfig(True, "p")
        other = TranscriptionFactorConfig(True, "q")
        dna = DnaMolecule(None, 100)
        gene = dna.add_gene(IndexRange(0, 9), IndexRange(10, 40), transcription_factor_placements=[(2, positive)])

        assert dna.get_transcription_factor_site_for_base_pair_index(2, positive) is gene.get_matching_site(positive)
        default_site = dna.get_transcription_factor_site_for_base_pair_index(2, other)
        assert default_site.affinity == DEFAULT_AFFINITY
        assert dna.get_transcription_factor_site_for_base_pair_index(2, other) is default_site

        assert dna.get_rna_polymerase_site_for_base_pair_index(9) is gene.polymerase_site
        assert dna.get_rna_polymerase_site_for_base_pair_index(8) is not gene.polymerase_site
        assert dna.get_gene_for_polymerase_site(gene.polymerase_site) is gene
        assert dna.get_gene_containing_base_pair(40) is gene
        assert dna.get_gene_containing_base_pair(41) is None

    def test_tf_and_polymerase_default_sites_are_distinct(self):
        dna = DnaMolecule(None, 100)
        config = TranscriptionFactorConfig(True)
        assert (
            dna.get_transcription_factor_site_for_base_pair_index(50, config)
            is not dna.get_rna_polymerase_site_for_base_pair_index(50)
        )

    def test_adjacent_sites(self):
        dna = DnaMolecule(None, 10)
        site = dna.get_rna_polymerase_site_for_base_pair_index(0)
        adjacent = dna.get_adjacent_attachment_sites_rna_polymerase(None, site)
        assert adjacent == [dna.get_rna_polymerase_site_for_base_pair_index(1)]

    def test_clear_attachment_sites(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        tf = gene_model.add_transcription_factor(config, site.position + np.array([0.0, 100.0]))
        gene_model.step(0.01)
        assert site.occupant is tf
        gene.clear_attachment_sites()
        assert site.occupant is None
        assert tf.attachment_state_machine.state is S.UNATTACHED_AND_AVAILABLE


class TestProposals:

    def test_tf_near_gene_site_moves_towards_it(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        tf = gene_model.add_transcription_factor(config, site.position + np.array([0.0, 100.0]))
        gene_model.step(0.01)
        assert tf.attachment_state_machine.state is S.MOVING_TOWARDS_ATTACHMENT
        assert site.occupant is tf
        assert tf.attachment_site is site

    def test_activator_and_repressor_bind_side_by_side(self, gene_model):
        gene = gene_model.dna.genes[0]
        (positive, positive_site), (negative, negative_site) = (
            gene.transcription_factor_sites[index] for index in sorted(gene.transcription_factor_sites)
        )
        activator = gene_model.add_transcription_factor(positive, positive_site.position)
        assert positive_site.claim(activator)
        activator.set_attached_to_dna(True)

        repressor = gene_model.add_transcription_factor(negative, negative_site.position + np.array([0.0, 100.0]))
        assert gene_model.dna.consider_proposal_from_transcription_factor(repressor) is negative_site

    def test_far_molecule_gets_nothing_without_pursuit(self):
        model = GeneExpressionModel(GeneExpressionModelConfig(pursue_attachments=False), seed=1)
        polymerase = model.add_rna_polymerase((500.0, 2000.0))
        assert model.dna.consider_proposal_from_rna_polymerase(polymerase) is None

    def test_gene_pursues_distant_tf(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        tf = gene_model.add_transcription_factor(config, (0.0, 3000.0))
        assert gene_model.dna.consider_proposal_from_transcription_factor(tf) is site

    def test_pursuit_pre_empts_slower_approach(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        far = gene_model.add_transcription_factor(config, site.position + np.array([0.0, 3500.0]))
        gene_model.step(0.01)
        assert site.occupant is far

        near = gene_model.add_transcription_factor(config, site.position + np.array([3000.0, 1000.0]))
        assert gene_model.dna.consider_proposal_from_transcription_factor(near) is site
        assert site.occupant is None
        assert far.attachment_state_machine.state is S.UNATTACHED_AND_AVAILABLE

    def test_attached_molecule_is_not_pre_empted(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        site.claim(stand_in(attached=True))
        tf = gene_model.add_transcription_factor(config, site.position + np.array([0.0, 3000.0]))
        assert gene_model.dna.consider_proposal_from_transcription_factor(tf) is None

    def test_single_base_pair_goes_to_one_polymerase(self):
        model = GeneExpressionModel(GeneExpressionModelConfig(num_base_pairs=1), seed=5)
        site = model.dna.get_rna_polymerase_site_for_base_pair_index(0)
        first = model.add_rna_polymerase((0.0, 150.0))
        second = model.add_rna_polymerase((0.0, -150.0))
        model.step(0.1)
        holders = [p for p in (first, second) if p.attachment_site is site]
        assert len(holders) == 1
        assert site.occupant is holders[0]
        assert holders[0].attachment_state_machine.state is S.MOVING_TOWARDS_ATTACHMENT
        for _ in range(100):
            model.step(0.1)
            assert sum(p.attachment_site is site for p in (first, second)) <= 1

    def test_out_of_bounds_site_not_offered(self):
        model = GeneExpressionModel(GeneExpressionModelConfig(num_base_pairs=1), seed=5)
        polymerase = model.add_rna_polymerase((0.0, 150.0))
        model.set_motion_bounds(None)
        assert model.dna.consider_proposal_from_rna_polymerase(polymerase) is not None
        model.set_motion_bounds(Rect(-1000, 100, 1000, 1000))
        assert model.dna.consider_proposal_from_rna_polymerase(polymerase) is None

    def test_highest_affinity_per_distance_wins(self, empty_model):
        dna = empty_model.dna
        polymerase = empty_model.add_rna_polymerase((dna.get_base_pair_x(50), 300.0))
        near = dna.get_rna_polymerase_site_for_base_pair_index(50)
        chosen = dna.consider_proposal_from_rna_polymerase(polymerase)
        assert chosen is near
        dna.get_rna_polymerase_site_for_base_pair_index(55).set_affinity(1.0)
        assert dna.consider_proposal_from_rna_polymerase(polymerase) is dna.get_rna_polymerase_site_for_base_pair_index(55)
