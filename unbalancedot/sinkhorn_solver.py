import enum
import logging
import math
import warnings
from collections import namedtuple

from ._errors import ConvergenceWarning
from .cost import as_cost_matrix

logger = logging.getLogger(__name__)


class SolverStatus(enum.Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"


class SolverResult(namedtuple("SolverResult",
                              ["iterations", "max_residual", "status"])):
    """Diagnostics of a run of unbalanced_sinkhorn.

    iterations: number of full (f then g) sweeps performed.
    max_residual: sup-norm difference between the last two iterates of the
    dual potentials.
    status: SolverStatus.
    """
    __slots__ = ()

    @property
    def converged(self):
        return self.status is SolverStatus.CONVERGED


def aprox_softmin(cost, log_a, log_b, divergence, eps):
    """Prepares functions which perform updates of the Sinkhorn algorithm
    in logarithmic scale.

    Parameters
    ----------
    cost: torch.Tensor of size [size_X, size_Y]
    cost used in Sinkhorn iterations.

    log_a: torch.Tensor of size [size_X]
    Log-density of the first measure.

    log_b: torch.Tensor of size [size_Y]
    Log-density of the second measure.

    divergence: AbstractDivergence
    Penalty on the marginals, through its anisotropic proximity operator.

    eps: float
    Strength of entropic regularization.

    Returns
    ----------
    s_x: callable function
    Map outputing updates of potential from Y to X.

    s_y: callable function
    Map outputing updates of potential from X to Y.
    """
    def s_x(g):
        lse = ((g / eps + log_b)[None, :] - cost / eps).logsumexp(dim=1)
        return -divergence.aprox(eps, eps * lse)

    def s_y(f):
        lse = ((f / eps + log_a)[:, None] - cost / eps).logsumexp(dim=0)
        return -divergence.aprox(eps, eps * lse)

    return s_x, s_y


def sinkhorn_loop(divergence, cost, a, b, eps, tol, max_iters):
    """Runs the Sinkhorn iterations (Algorithm 1 of [SFVTP19]) in log-scale
    and writes the resulting potentials into a.dual_potential and
    b.dual_potential.

    The two measures must own distinct dual_potential buffers. Neither warns
    nor logs: the returned SolverResult carries the diagnostics.

    Parameters
    ----------
    divergence: AbstractDivergence

    cost: torch.Tensor of size [size_X, size_Y]
    Precomputed cost matrix.

    a: DiscreteMeasure of size size_X

    b: DiscreteMeasure of size size_Y

    eps: float
    Strength of entropic regularization.

    tol: float
    Tolerance on the sup-norm between consecutive iterates.

    max_iters: int
    Maximum number of sweeps.

    Returns
    -------
    result: SolverResult
    """
    divergence.initialize_dual_potential(a)
    divergence.initialize_dual_potential(b)
    f, g = a.dual_potential.clone(), b.dual_potential.clone()

    s_x, s_y = aprox_softmin(cost, a.log_density, b.log_density,
                             divergence, eps)
    status = SolverStatus.MAX_ITERATIONS_REACHED
    residual, iters = float("Inf"), 0
    while iters < max_iters:
        f_prev, g_prev = f, g
        f = s_x(g)
        g = s_y(f)
        iters += 1
        residual = max((f - f_prev).abs().max().item(),
                       (g - g_prev).abs().max().item())
        if math.isnan(residual):
            raise RuntimeError(
                f"Solver got NaN potentials with params (eps, divergence) "
                f"= {eps, divergence}. Try increasing argument eps."
            )
        if residual < tol:
            status = SolverStatus.CONVERGED
            break

    a.dual_potential.copy_(f)
    b.dual_potential.copy_(g)
    return SolverResult(iters, residual, status)


def check_parameters(eps, tol, max_iters):
    if not eps > 0:
        raise ValueError(f"eps must be positive, got {eps}.")
    if not tol > 0:
        raise ValueError(f"tol must be positive, got {tol}.")
    if max_iters < 0:
        raise ValueError(f"max_iters must be nonnegative, got {max_iters}.")


def unbalanced_sinkhorn(divergence, cost, a, b, eps=1e-1, tol=1e-5,
                        max_iters=10 ** 5, warn=True):
    """Computes the optimal dual potentials of the entropically regularized
    unbalanced OT problem between a and b with Sinkhorn's algorithm
    (Algorithm 1 of [SFVTP19]).

    The dual_potential fields of a and b are overwritten with the optimal
    dual potentials. density, log_density and set are not modified.

    Parameters
    ----------
    divergence: AbstractDivergence
    Penalty used for measuring the cost of creating or destroying mass.

    cost: callable, matrix or None
    Either a function from a.set x b.set to the reals, which should satisfy
    C(x, y) = C(y, x) and C(x, x) = 0 when applicable, or a precomputed cost
    matrix as generated by cost_matrix. None means C(x, y) = norm(x - y).

    a: DiscreteMeasure

    b: DiscreteMeasure

    eps: float
    The regularization parameter.

    tol: float
    The convergence tolerance.

    max_iters: int
    The maximum number of iterations to perform.

    warn: bool
    Whether to emit a ConvergenceWarning when max_iters is reached.

    Returns
    -------
    result: SolverResult
    Number of iterations performed and maximum residual, the sup-norm
    difference between the last two iterates of the potentials. If max_iters
    is not reached, iterations stop when max_residual falls below tol.
    """
    check_parameters(eps, tol, max_iters)
    cost = as_cost_matrix(cost, a, b)
    if a is b:
        b = a.scratch()
    result = sinkhorn_loop(divergence, cost, a, b, eps, tol, max_iters)
    logger.debug(
        "Sinkhorn with %r and eps=%s on a %dx%d problem: %s after %d "
        "iterations, residual %.3e", divergence, eps, len(a), len(b),
        result.status.value, result.iterations, result.max_residual
    )
    if warn and not result.converged:
        warnings.warn(
            f"Maximum number of iterations ({max_iters}) reached with "
            f"residual {result.max_residual:.3e} > tol={tol}. Increase "
            f"max_iters or pass warn=False to silence this warning.",
            ConvergenceWarning,
            stacklevel=2,
        )
    return result
