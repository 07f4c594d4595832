"""
Mean-field rate equations for the protein synthesis network.

Deterministic counterpart of the Gillespie simulator: the same ten
reactions written as mass-action ODEs over expected species counts.

State variables (same order as gillespie.Species):
    gene, free TF, free polymerase, gene-TF, gene-TF-polymerase,
    mRNA, free ribosome, mRNA-ribosome, protein
"""

import numpy as np
from scipy.integrate import solve_ivp

from gillespie import (
    DEFAULT_REACTION_PROBABILITIES,
    DEFAULT_RIBOSOME_COUNT,
    STOICHIOMETRY,
    Species,
    compute_propensities,
    default_object_counts,
)


def reaction_network_ode(t, y, rates):
    """
    Right-hand side of the mean-field equations.

    Args:
        t: Time (unused, system is autonomous)
        y: Expected counts, one per species
        rates: Rate constant per reaction

    Returns:
        Derivatives of the expected counts
    """
    propensities = compute_propensities(np.asarray(y, dtype=np.float64), rates)
    return STOICHIOMETRY.T @ propensities


def default_initial_conditions(ribosome_count: int = DEFAULT_RIBOSOME_COUNT) -> np.ndarray:
    """Return the same starting counts the stochastic simulator uses."""
    return default_object_counts(ribosome_count).astype(np.float64)


def total_gene_copies(y) -> np.ndarray:
    """Free plus bound genes; conserved by every reaction."""
    y = np.asarray(y)
    return y[Species.GENE] + y[Species.GENE_TF_COMPLEX] + y[Species.GENE_TF_POLYMERASE_COMPLEX]


def simulate(t_span, y0=None, rates=None, t_eval=None, **kwargs):
    """
    Integrate the mean-field equations.

    Args:
        t_span: Tuple (t_start, t_end)
        y0: Initial expected counts. Defaults to the simulator's initial counts.
        rates: Rate constants. Defaults to the simulator's defaults.
        t_eval: Times at which to store solution. If None, solver chooses.
        **kwargs: Additional arguments passed to solve_ivp

    Returns:
        scipy.integrate.OdeResult with attributes:
            t - time points
            y - solution array (9 x len(t))
    """
    if y0 is None:
        y0 = default_initial_conditions()
    if rates is None:
        rates = np.array(DEFAULT_REACTION_PROBABILITIES)
    rates = np.asarray(rates, dtype=np.float64)

    kwargs.setdefault("method", "LSODA")
    return solve_ivp(
        fun=lambda t, y: reaction_network_ode(t, y, rates),
        t_span=t_span,
        y0=y0,
        t_eval=t_eval,
        **kwargs,
    )
