import pytest
import torch

from unbalancedot import DiscreteMeasure, KL, TV, Balanced, RG, OT, \
    sinkhorn_divergence, optimal_coupling, unbalanced_sinkhorn, cost_matrix
from unbalancedot.utils import generate_measure

torch.manual_seed(42)
w, x = generate_measure(n_sample=5, n_dim=2)
v, y = generate_measure(n_sample=6, n_dim=2)

X, a_weights = [1, 2, 3, 4], [0.5, 1.0, 1.0, 0.5]
Y, b_weights = [3, 4, 5], [0.5, 0.75, 0.5]


def abs_cost(s, t):
    return abs(s - t)


def kl(p, q):
    return torch.sum(torch.xlogy(p, p / q) - p + q)


class PlainKL(KL):
    def sinkhorn_divergence(self, cost, a, b, eps, **kwargs):
        return NotImplemented


def test_histograms_divergence_and_coupling():
    a = DiscreteMeasure(a_weights, X)
    b = DiscreteMeasure(b_weights, Y)
    eps, tol = 0.01, 1e-5
    sd = sinkhorn_divergence(KL(1.0), abs_cost, a, b, eps, tol=tol)
    assert sd == sd and abs(sd) < float("Inf")
    assert sd >= -tol

    pi = optimal_coupling(KL(1.0), abs_cost, a, b, eps, tol=tol)
    assert pi.shape == (4, 3)
    assert torch.all(pi >= 0)
    # x = 1, 2, 3 lose mass, while x = 4 gains some since it feeds both
    # y = 4 and y = 5.
    rows = pi.sum(dim=1)
    assert torch.all(rows[:3] <= a.density[:3] + tol)
    assert rows[3] > a.density[3]
    # Largest entries on the zero-cost pairs (x=3, y=3) and (x=4, y=4)
    i, j = divmod(pi.argmax().item(), 3)
    assert (X[i], Y[j]) in [(3, 3), (4, 4)]
    assert pi[2, 0] > pi[2, 1] and pi[3, 1] > pi[3, 2]


def test_histograms_ot_matches_primal_objective():
    a = DiscreteMeasure(a_weights, X)
    b = DiscreteMeasure(b_weights, Y)
    eps, rho = 0.01, 1.0
    c = cost_matrix(abs_cost, a, b)
    ot = OT(KL(rho), c, a, b, eps, tol=1e-11)
    pi = optimal_coupling(KL(rho), c, a, b, eps,
                          dual_potentials_populated=True)
    primal = (torch.sum(pi * c) + rho * kl(pi.sum(dim=1), a.density)
              + rho * kl(pi.sum(dim=0), b.density)
              + eps * kl(pi, a.density[:, None] * b.density[None, :]))
    assert ot == pytest.approx(primal.item(), rel=1e-6, abs=1e-9)


def test_small_rho_destroys_mass_instead_of_moving_it():
    a = DiscreteMeasure(a_weights, X)
    b = DiscreteMeasure(b_weights, Y)
    pi = optimal_coupling(KL(0.01), abs_cost, a, b, 0.01)
    off_diagonal = [pi[i, j].item() for i in range(4) for j in range(3)
                    if X[i] != Y[j]]
    assert max(off_diagonal) < 1e-3
    assert pi[2, 0] > 1e-2 and pi[3, 1] > 1e-2


@pytest.mark.parametrize('div', [KL(1.0), KL(0.1), TV(1.0), Balanced(),
                                 RG(0.5, 2.0)])
def test_self_divergence_is_zero(div):
    a = DiscreteMeasure(w, x)
    assert sinkhorn_divergence(div, None, a, a, 0.1, max_iters=2000,
                               warn=False) == pytest.approx(0.0, abs=1e-8)
    a2 = DiscreteMeasure(w.clone(), x.copy())
    assert sinkhorn_divergence(div, None, a, a2, 0.1, max_iters=2000,
                               warn=False) == pytest.approx(0.0, abs=1e-8)


@pytest.mark.parametrize('rho', [0.1, 1.0, 10.0])
@pytest.mark.parametrize('eps', [0.05, 0.5])
def test_kl_divergence_is_nonnegative(rho, eps):
    for _ in range(3):
        p, s = generate_measure(n_sample=5, n_dim=2)
        q, t = generate_measure(n_sample=7, n_dim=2)
        a, b = DiscreteMeasure(2.0 * p, s), DiscreteMeasure(q, t)
        assert sinkhorn_divergence(KL(rho), None, a, b, eps, tol=1e-9) \
            >= -1e-5


@pytest.mark.parametrize('rho', [0.5, 5.0])
def test_kl_fast_path_matches_generic_composition(rho):
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(1.5 * v, y)
    fast = sinkhorn_divergence(KL(rho), None, a, b, 0.2, tol=1e-10)
    generic = sinkhorn_divergence(PlainKL(rho), None, a, b, 0.2, tol=1e-10)
    assert fast == pytest.approx(generic, rel=1e-8, abs=1e-10)


def test_divergence_accepts_three_cost_matrices():
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    costs = (cost_matrix(None, a, b), cost_matrix(None, a, a),
             cost_matrix(None, b, b))
    from_matrices = sinkhorn_divergence(TV(1.0), costs, a, b, 0.2, tol=1e-9)
    from_function = sinkhorn_divergence(TV(1.0), None, a, b, 0.2, tol=1e-9)
    assert from_matrices == pytest.approx(from_function)
    with pytest.raises(ValueError):
        sinkhorn_divergence(TV(1.0), costs[0], a, b, 0.2)


@pytest.mark.parametrize('div', [KL(1.0), PlainKL(1.0), TV(1.0)])
def test_divergence_leaves_cross_potentials(div):
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    sinkhorn_divergence(div, None, a, b, 0.2, tol=1e-9)
    f, g = a.dual_potential.clone(), b.dual_potential.clone()
    unbalanced_sinkhorn(div, None, a, b, 0.2, tol=1e-9)
    assert torch.equal(a.dual_potential, f)
    assert torch.equal(b.dual_potential, g)


def test_ot_matches_primal_objective():
    # Strong duality: the primal cost of the optimal coupling equals OT.
    eps, rho = 0.5, 1.0
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    c = cost_matrix(None, a, b)
    ot = OT(KL(rho), c, a, b, eps, tol=1e-11)
    pi = optimal_coupling(KL(rho), c, a, b, eps,
                          dual_potentials_populated=True)
    primal = (torch.sum(pi * c) + rho * kl(pi.sum(dim=1), a.density)
              + rho * kl(pi.sum(dim=0), b.density)
              + eps * kl(pi, a.density[:, None] * b.density[None, :]))
    assert ot == pytest.approx(primal.item(), rel=1e-6)


def test_balanced_ot_matches_primal_objective():
    eps = 0.5
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    c = cost_matrix(None, a, b)
    ot = OT(Balanced(), c, a, b, eps, tol=1e-11)
    pi = optimal_coupling(Balanced(), c, a, b, eps,
                          dual_potentials_populated=True)
    primal = torch.sum(pi * c) \
        + eps * kl(pi, a.density[:, None] * b.density[None, :])
    assert ot == pytest.approx(primal.item(), rel=1e-6)


def test_mass_is_conserved_in_the_balanced_limit():
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    errors = []
    for rho in [0.5, 5.0, 50.0]:
        pi = optimal_coupling(KL(rho), None, a, b, 0.1, tol=1e-8)
        errors.append(max((pi.sum(dim=1) - a.density).abs().max().item(),
                          (pi.sum(dim=0) - b.density).abs().max().item()))
    assert all(e_next < e for e, e_next in zip(errors[:-1], errors[1:]))

    pi = optimal_coupling(Balanced(), None, a, b, 0.1, tol=1e-10)
    assert torch.allclose(pi.sum(dim=1), a.density, atol=1e-6)
    assert torch.allclose(pi.sum(dim=0), b.density, atol=1e-6)


def test_populated_coupling_does_not_mutate():
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    pi = optimal_coupling(KL(1.0), None, a, b, 0.2)
    f, g = a.dual_potential.clone(), b.dual_potential.clone()
    pi2 = optimal_coupling(KL(1.0), None, a, b, 0.2,
                           dual_potentials_populated=True)
    assert torch.equal(pi, pi2)
    assert torch.equal(a.dual_potential, f)
    assert torch.equal(b.dual_potential, g)


def test_coupling_after_divergence():
    a, b = DiscreteMeasure(w, x), DiscreteMeasure(v, y)
    sinkhorn_divergence(KL(1.0), None, a, b, 0.2)
    pi = optimal_coupling(KL(1.0), None, a, b, 0.2,
                          dual_potentials_populated=True)
    assert torch.allclose(pi, optimal_coupling(KL(1.0), None, a, b, 0.2))
