"""
Csiszar phi-divergences penalizing the creation and destruction of mass,
following Section 2.4 of [SFVTP19].

To add a divergence, subclass AbstractDivergence and implement aprox and
phi_star. initialize_dual_potential and sinkhorn_divergence can optionally
be overridden for performance.

[SFVTP19] Sejourne, T., Feydy, J., Vialard, F.-X., Trouve, A., Peyre, G.,
2019. Sinkhorn Divergences for Unbalanced Optimal Transport.
arXiv:1910.12958.
"""

import math

import torch

from ._errors import MissingDivergenceMethod
from .functionals import sinkhorn_terms
from .utils import fdot


def _check_rho(rho):
    if not 0 < rho < float("Inf"):
        raise ValueError(
            f"rho must be positive and finite, got {rho}. Use Balanced() "
            f"for an infinite penalty."
        )
    return float(rho)


class AbstractDivergence(object):
    """Csiszar phi-divergence D_phi(u | v) = sum_z phi(u(z) / v(z)) v(z).

    Subclasses should implement phi_star and aprox, and optionally can
    implement initialize_dual_potential and/or sinkhorn_divergence.
    Divergences are stateless values, compared by their parameters.
    """

    def aprox(self, eps, x):
        """The anisotropic proximity operator (Def. 2 of [SFVTP19]),

            aprox(p) = argmin_q eps * exp((p - q) / eps) + phi_star(q),

        applied elementwise to the torch.Tensor x."""
        raise MissingDivergenceMethod(
            f"{type(self).__name__} does not implement aprox."
        )

    def phi_star(self, q):
        """The Legendre conjugate of the function phi associated to the
        divergence, applied elementwise to the torch.Tensor q."""
        raise MissingDivergenceMethod(
            f"{type(self).__name__} does not implement phi_star."
        )

    def initialize_dual_potential(self, measure):
        """Initialization of the dual potential of measure, for use in
        unbalanced_sinkhorn. Falls back to zeroing out the potential.
        Specialized implementations can improve performance, but should not
        affect correctness."""
        measure.dual_potential.zero_()

    def sinkhorn_divergence(self, cost, a, b, eps, **kwargs):
        """Specialized Sinkhorn divergence. Returning NotImplemented falls
        back on the generic composition of three OT terms."""
        return NotImplemented

    def _params(self):
        return ()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._params() == other._params()

    def __hash__(self):
        return hash((type(self).__name__,) + self._params())

    def __repr__(self):
        return f"{type(self).__name__}{self._params()!r}".replace(",)", ")")


class KL(AbstractDivergence):
    """The divergence rho * KL(u | v), where KL is the Kullback-Leibler
    divergence. The parameter rho is simply a scaling."""

    def __init__(self, rho):
        self.rho = _check_rho(rho)

    def _params(self):
        return (self.rho,)

    def aprox(self, eps, x):
        return x / (1.0 + eps / self.rho)

    def phi_star(self, q):
        return self.rho * torch.expm1(q / self.rho)

    def sinkhorn_divergence(self, cost, a, b, eps, **kwargs):
        # At a fixed point the total mass of the plan is <b, exp(-g / rho)>,
        # so no exponential over the full grid is needed.
        def neg_phi(p):
            return -self.rho * torch.expm1(-p / self.rho)

        def plan_mass(p):
            return (-p / self.rho).exp()

        def ot(x, y):
            f, g = x.dual_potential, y.dual_potential
            return (fdot(x.density, neg_phi, f) + fdot(y.density, neg_phi, g)
                    - eps * (fdot(y.density, plan_mass, g)
                             - x.mass * y.mass))

        (_, x, y), (_, a1, a2), (_, b1, b2) = sinkhorn_terms(
            self, cost, a, b, eps, **kwargs
        )
        div = ot(x, y) - 0.5 * ot(a1, a2) - 0.5 * ot(b1, b2) \
            + 0.5 * eps * (a.mass - b.mass) ** 2
        return div.item()


class TV(AbstractDivergence):
    """The divergence rho * TV(u, v) = rho * norm(u - v, 1), where TV is twice
    the total variation distance. The parameter rho is simply a scaling."""

    def __init__(self, rho):
        self.rho = _check_rho(rho)

    def _params(self):
        return (self.rho,)

    def aprox(self, eps, x):
        return x.clamp(min=-self.rho, max=self.rho)

    def phi_star(self, q):
        return torch.where(q > self.rho, torch.full_like(q, float("Inf")),
                           q.clamp(min=-self.rho))


class Balanced(AbstractDivergence):
    """The divergence which is zero if u == v and infinite otherwise.
    Generalized by RG."""

    def aprox(self, eps, x):
        return x

    def phi_star(self, q):
        return q


class RG(AbstractDivergence):
    """Range constraint: the divergence D(p | q) which is zero if
    l * q <= p <= u * q holds pointwise and infinite otherwise. Equivalent to
    Balanced when l == u == 1."""

    def __init__(self, l, u):
        if not 0 <= l <= u < float("Inf") or u == 0:
            raise ValueError(
                f"RG needs 0 <= l <= u with u positive and finite, got "
                f"l={l}, u={u}."
            )
        self.l, self.u = float(l), float(u)

    def _params(self):
        return (self.l, self.u)

    def aprox(self, eps, x):
        lo = eps * math.log(self.l) if self.l > 0 else -float("Inf")
        hi = eps * math.log(self.u)
        return torch.where(x < lo, x - lo,
                           torch.where(x > hi, x - hi, torch.zeros_like(x)))

    def phi_star(self, q):
        return torch.max(self.l * q, self.u * q)


RangeConstraint = RG
