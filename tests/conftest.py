"""
Pytest configuration for the gene expression tests.
"""
import os
import sys

import numpy as np
import pytest

# Modules live flat under src/
src_path = os.path.abspath(os.path.join(os.path.dirname(__file__), "../src"))
sys.path.insert(0, src_path)

from model import GeneExpressionModel, GeneExpressionModelConfig, default_gene_layouts  # noqa: E402


@pytest.fixture
def rng():
    """Seeded generator so stochastic tests are repeatable."""
    return np.random.default_rng(12345)


@pytest.fixture
def empty_model():
    """Model with a DNA strand but no genes and no biomolecules."""
    return GeneExpressionModel(GeneExpressionModelConfig(), seed=7)


@pytest.fixture
def gene_model():
    """Model with the two default genes."""
    return GeneExpressionModel(GeneExpressionModelConfig(genes=default_gene_layouts()), seed=7)
