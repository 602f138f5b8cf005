"""
Functionals of entropically regularized unbalanced optimal transport
computed from the optimal dual potentials of unbalanced_sinkhorn.
"""

from .cost import as_cost_matrix, cost_matrix
from .sinkhorn_solver import unbalanced_sinkhorn
from .utils import fdot


def ot_from_potentials(divergence, cost, a, b, eps):
    """Evaluates the dual objective (Eq. 15 of [SFVTP19]) at the potentials
    currently stored in a and b.

    Parameters
    ----------
    divergence: AbstractDivergence

    cost: torch.Tensor of size [size_X, size_Y]

    a: DiscreteMeasure of size size_X

    b: DiscreteMeasure of size size_Y

    eps: float
    Strength of entropic regularization.

    Returns
    -------
    ot: torch.Tensor of size 1
    """
    f, g = a.dual_potential, b.dual_potential

    def neg_phi_star(p):
        return -divergence.phi_star(-p)

    logpi = ((f[:, None] + g[None, :] - cost) / eps
             + a.log_density[:, None] + b.log_density[None, :])
    return (fdot(a.density, neg_phi_star, f)
            + fdot(b.density, neg_phi_star, g)
            - eps * (logpi.exp().sum() - a.mass * b.mass))


def OT(divergence, cost, a, b, eps=1e-1, **kwargs):
    """Computes the regularized optimal transport cost between a and b.

    Runs unbalanced_sinkhorn first, see that function for the meaning of the
    parameters and the keyword arguments (tol, max_iters, warn). Implements
    Equation (15) of [SFVTP19]. Sets the optimal dual potentials of a and b.

    Returns
    -------
    ot: float
    """
    cost = as_cost_matrix(cost, a, b)
    if a is b:
        b = a.scratch()
    unbalanced_sinkhorn(divergence, cost, a, b, eps, **kwargs)
    return ot_from_potentials(divergence, cost, a, b, eps).item()


def _cost_triplet(cost, a, b):
    if cost is None or callable(cost):
        return (cost_matrix(cost, a, b), cost_matrix(cost, a, a),
                cost_matrix(cost, b, b))
    if isinstance(cost, tuple) and len(cost) == 3:
        c_ab, c_aa, c_bb = cost
        return (as_cost_matrix(c_ab, a, b), as_cost_matrix(c_aa, a, a),
                as_cost_matrix(c_bb, b, b))
    raise ValueError(
        "The Sinkhorn divergence needs the costs on a x b, a x a and b x b: "
        "pass a cost function or a tuple of three matrices "
        "(C_ab, C_aa, C_bb)."
    )


def sinkhorn_terms(divergence, cost, a, b, eps, **kwargs):
    """Solves the three problems (a, b), (a, a) and (b, b) entering the
    Sinkhorn divergence.

    The cross term writes the dual potentials of a and b. The two symmetric
    terms are solved on scratch measures, so the public potentials of a and
    b still hold the cross-term optimum afterwards.

    Returns
    -------
    terms: list of three (cost, x, y) triples, (cost matrix, first measure,
    second measure), with the optimal potentials stored in x and y.
    """
    costs = _cost_triplet(cost, a, b)
    pairs = [(a, a.scratch() if a is b else b),
             (a.scratch(), a.scratch()),
             (b.scratch(), b.scratch())]
    terms = []
    for c, (x, y) in zip(costs, pairs):
        unbalanced_sinkhorn(divergence, c, x, y, eps, **kwargs)
        terms.append((c, x, y))
    return terms


def sinkhorn_divergence(divergence, cost, a, b, eps=1e-1, **kwargs):
    """Computes the unbalanced Sinkhorn divergence between a and b (Def. 6 of
    [SFVTP19]),

        S = OT(a, b) - OT(a, a) / 2 - OT(b, b) / 2 + eps / 2 (m(a) - m(b))^2,

    where m is the total mass. Sets the optimal dual potentials of a and b
    to those of the cross term OT(a, b).

    Parameters
    ----------
    divergence: AbstractDivergence
    If it provides a specialized sinkhorn_divergence, it is used instead of
    the generic composition.

    cost: callable, None, or tuple of three matrices
    Cost function, or precomputed matrices (C_ab, C_aa, C_bb).

    a: DiscreteMeasure

    b: DiscreteMeasure

    eps: float
    The regularization parameter.

    kwargs: tol, max_iters, warn, passed to unbalanced_sinkhorn.

    Returns
    -------
    div: float
    """
    div = divergence.sinkhorn_divergence(cost, a, b, eps, **kwargs)
    if div is not NotImplemented:
        return div
    ot_ab, ot_aa, ot_bb = [
        ot_from_potentials(divergence, c, x, y, eps)
        for c, x, y in sinkhorn_terms(divergence, cost, a, b, eps, **kwargs)
    ]
    div = ot_ab - 0.5 * ot_aa - 0.5 * ot_bb \
        + 0.5 * eps * (a.mass - b.mass) ** 2
    return div.item()


def optimal_coupling(divergence, cost, a, b, eps=1e-1,
                     dual_potentials_populated=False, **kwargs):
    """Computes the optimal coupling between a and b from the optimal dual
    potentials (Prop. 6 of [SFVTP19]),

        pi(x, y) = a(x) b(y) exp((f(x) + g(y) - C(x, y)) / eps).

    Parameters
    ----------
    divergence: AbstractDivergence

    cost: callable, matrix or None

    a: DiscreteMeasure

    b: DiscreteMeasure

    eps: float
    The regularization parameter.

    dual_potentials_populated: bool
    If False, unbalanced_sinkhorn is called first and populates the dual
    potentials of a and b. If True, a and b are not mutated, and one of
    unbalanced_sinkhorn, OT or sinkhorn_divergence must have been called
    before with the same divergence, cost and eps. This is not checked: other
    parameters silently give a wrong coupling.

    kwargs: tol, max_iters, warn, passed to unbalanced_sinkhorn.

    Returns
    -------
    pi: torch.Tensor of size [size_X, size_Y]
    """
    cost = as_cost_matrix(cost, a, b)
    if not dual_potentials_populated:
        if a is b:
            b = a.scratch()
        unbalanced_sinkhorn(divergence, cost, a, b, eps, **kwargs)
    f, g = a.dual_potential, b.dual_potential
    logpi = ((f[:, None] + g[None, :] - cost) / eps
             + a.log_density[:, None] + b.log_density[None, :])
    return logpi.exp()
