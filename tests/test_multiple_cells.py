"""Tests for the cell population."""

import numpy as np
import pytest

from gillespie import DEFAULT_TRANSCRIPTION_FACTOR_COUNT, Reaction, Species
from multiple_cells import MAX_CELLS, MultipleCellsConfig, MultipleCellsModel


class TestConfig:

    def test_defaults(self):
        config = MultipleCellsConfig()
        assert config.max_cells == MAX_CELLS
        assert config.initial_visible_cells == 1

    def test_invalid_visible_count_rejected(self):
        with pytest.raises(ValueError):
            MultipleCellsConfig(initial_visible_cells=0)
        with pytest.raises(ValueError):
            MultipleCellsConfig(max_cells=5, initial_visible_cells=6)


class TestPopulation:

    def test_all_cells_created_up_front(self):
        model = MultipleCellsModel(seed=0)
        assert len(model.cells) == MAX_CELLS
        assert len(model.visible_cells) == 1

    def test_set_visible_cell_count(self):
        model = MultipleCellsModel(seed=0)
        model.set_visible_cell_count(10)
        assert len(model.visible_cells) == 10
        assert len(model.get_cell_proteins()) == 10
        with pytest.raises(ValueError):
            model.set_visible_cell_count(MAX_CELLS + 1)
        with pytest.raises(ValueError):
            model.set_visible_cell_count(0)

    def test_parameters_apply_to_hidden_cells_too(self):
        model = MultipleCellsModel(seed=0)
        model.set_transcription_factor_count(DEFAULT_TRANSCRIPTION_FACTOR_COUNT * 2)
        model.set_mrna_degradation_rate(0.02)
        for cell in model.cells:
            counts = cell.simulator.object_counts
            assert counts[Species.FREE_TRANSCRIPTION_FACTOR] == DEFAULT_TRANSCRIPTION_FACTOR_COUNT * 2
            assert cell.simulator.reaction_probabilities[Reaction.MRNA_DEGRADATION] == pytest.approx(0.02)
        assert model.parameters.mrna_degradation_rate == pytest.approx(0.02)

    def test_invalid_parameter_leaves_cells_untouched(self):
        model = MultipleCellsModel(seed=0)
        before = [cell.simulator.reaction_probabilities for cell in model.cells]
        with pytest.raises(ValueError):
            model.set_protein_degradation_rate(1.0)
        for cell, rates in zip(model.cells, before):
            np.testing.assert_array_equal(cell.simulator.reaction_probabilities, rates)

    def test_only_visible_cells_step(self):
        model = MultipleCellsModel(MultipleCellsConfig(max_cells=4, initial_visible_cells=2), seed=1)
        model.step(500.0)
        assert model.time == 500.0
        assert model.cells[0].simulator.time == 500.0
        assert model.cells[1].simulator.time == 500.0
        assert model.cells[2].simulator.time == 0.0

    def test_state_snapshot(self):
        model = MultipleCellsModel(MultipleCellsConfig(max_cells=3, initial_visible_cells=3), seed=2)
        model.run(20, 100.0)
        state = model.get_state()
        assert state["n_visible"] == 3
        assert state["time"] == pytest.approx(2000.0)
        assert len(state["cell_proteins"]) == 3
        assert state["average_protein"] == pytest.approx(np.mean(state["cell_proteins"]))
        assert model.get_average_protein_level() == pytest.approx(state["average_protein"])
