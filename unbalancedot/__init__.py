"""
Entropically regularized unbalanced optimal transport between discrete
measures: Sinkhorn dual potentials, transport cost, Sinkhorn divergence and
optimal coupling, generic over the phi-divergence penalizing mass creation
and destruction.
"""

__version__ = 0.1

from ._errors import InvalidMeasure, DimensionMismatch, \
    MissingDivergenceMethod, ConvergenceWarning
from .measure import DiscreteMeasure
from .cost import cost_matrix
from .utils import fdot
from .sinkhorn_solver import unbalanced_sinkhorn, SolverResult, SolverStatus
from .functionals import OT, sinkhorn_divergence, optimal_coupling
from .divergences import AbstractDivergence, KL, TV, Balanced, RG, \
    RangeConstraint
