"""Tests for biomolecules and the gene expression model container."""

import numpy as np
import pytest

from attachment_state_machines import AttachmentState
from biomolecules import Protein, RnaPolymerase, TranscriptionFactor
from dna_molecule import IndexRange
from geometry import Rect
from model import GeneExpressionModel, GeneExpressionModelConfig, GeneLayout, default_gene_layouts

S = AttachmentState


class TestConfig:

    def test_default_layouts_fit_the_dna(self):
        config = GeneExpressionModelConfig(genes=default_gene_layouts())
        model = GeneExpressionModel(config, seed=0)
        assert len(model.dna.genes) == 2
        assert model.dna.genes[0].protein_name == "protein0"

    def test_gene_past_end_rejected(self):
        layout = GeneLayout(IndexRange(0, 9), IndexRange(10, 400))
        with pytest.raises(ValueError):
            GeneExpressionModelConfig(num_base_pairs=300, genes=[layout])

    def test_non_positive_length_rejected(self):
        with pytest.raises(ValueError):
            GeneExpressionModelConfig(num_base_pairs=0)


class TestBiomolecules:

    def test_shape_follows_position(self, empty_model):
        tf = empty_model.add_transcription_factor(default_gene_layouts()[0].transcription_factor_placements[0][1], (0, 1000))
        assert tf.get_shape() == Rect.from_center((0, 1000), TranscriptionFactor.WIDTH, TranscriptionFactor.HEIGHT)
        tf.set_position((100, 1000))
        assert tf.get_shape().center[0] == pytest.approx(100)

    def test_existence_strength_validated(self, empty_model):
        polymerase = empty_model.add_rna_polymerase((0, 1000))
        with pytest.raises(ValueError):
            polymerase.set_existence_strength(1.5)
        polymerase.set_existence_strength(0.25)
        assert polymerase.existence_strength == 0.25

    def test_new_biomolecules_are_available(self, empty_model):
        polymerase = empty_model.add_rna_polymerase((0, 1000))
        assert polymerase.attachment_state_machine.state is S.UNATTACHED_AND_AVAILABLE
        assert polymerase.movable_by_user
        assert not polymerase.attached_to_dna

    def test_protein_grows_with_translation(self, empty_model):
        protein = Protein(empty_model, (0, 0))
        assert protein.get_shape().width == 0.0
        protein.set_full_size_proportion(0.5)
        assert protein.get_shape().width == pytest.approx(Protein.FULL_SIZE / 2)
        protein.set_full_size_proportion(2.0)
        assert protein.full_size_proportion_property.get() == 1.0

    def test_protein_release(self, empty_model):
        protein = empty_model.spawn_protein(None, (0, 0))
        assert protein.attachment_state_machine.state is S.ATTACHED
        assert not protein.movable_by_user
        protein.release()
        assert protein.full_grown
        assert protein.attachment_state_machine.state is S.UNATTACHED_AND_AVAILABLE


class TestModel:

    def test_negative_dt_rejected(self, empty_model):
        with pytest.raises(ValueError):
            empty_model.step(-0.1)

    def test_add_and_remove(self, empty_model):
        polymerase = empty_model.add_rna_polymerase((0, 1000))
        assert empty_model.contains(polymerase)
        assert empty_model.get_biomolecules_of_type(RnaPolymerase) == [polymerase]
        empty_model.remove_biomolecule(polymerase)
        assert not empty_model.contains(polymerase)
        assert polymerase.motion_strategy is None
        # Removing twice is harmless
        empty_model.remove_biomolecule(polymerase)

    def test_removal_releases_site(self, gene_model):
        gene = gene_model.dna.genes[0]
        config, site = gene.transcription_factor_sites[10]
        tf = gene_model.add_transcription_factor(config, site.position + np.array([0.0, 100.0]))
        gene_model.step(0.01)
        assert site.occupant is tf
        gene_model.remove_biomolecule(tf)
        assert site.occupant is None

    def test_spawned_mrna_tracked(self, gene_model):
        mrna = gene_model.spawn_messenger_rna(gene_model.dna.genes[0], (0, 500))
        assert mrna in gene_model.messenger_rnas
        assert mrna.attachment_state_machine.state is S.ATTACHED
        gene_model.remove_messenger_rna(mrna)
        assert gene_model.messenger_rnas == []

    def test_fading_mrna_leaves_model(self):
        config = GeneExpressionModelConfig(fade_messenger_rna_when_formed=True)
        model = GeneExpressionModel(config, seed=0)
        mrna = model.spawn_messenger_rna(None, (0, 2000))
        mrna.add_length(100.0)
        mrna.release_from_polymerase()
        for _ in range(15):
            model.step(0.1)
        assert not model.contains(mrna)

    def test_bounds_change_reaches_strategies(self, empty_model):
        polymerase = empty_model.add_rna_polymerase((0, 1000))
        empty_model.set_motion_bounds(Rect(-2000, -2000, 2000, 2000))
        assert polymerase.motion_strategy.motion_bounds.bounds == Rect(-2000, -2000, 2000, 2000)

    def test_molecules_stay_in_bounds(self, gene_model, rng):
        bounds = gene_model.config.motion_bounds
        for _ in range(5):
            gene_model.add_rna_polymerase((rng.uniform(-4000, 14000), rng.uniform(-3000, 3000)))
            gene_model.add_ribosome((rng.uniform(-4000, 14000), rng.uniform(-3000, 3000)))
        for _ in range(200):
            gene_model.step(0.05)
        for biomolecule in gene_model.mobile_biomolecules:
            assert bounds.contains_rect(biomolecule.get_shape())

    def test_state_snapshot(self, gene_model):
        gene_model.add_rna_polymerase((0, 1000))
        gene_model.add_rna_polymerase((0, -1000))
        gene_model.run(3, 0.1)
        state = gene_model.get_state()
        assert state["time"] == pytest.approx(0.3)
        assert state["counts"] == {"RnaPolymerase": 2}
        assert state["dna_length"] > 0
