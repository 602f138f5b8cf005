"""
==================================
Using a basic example of unbalancedot
==================================

This example moves a histogram on {1, 2, 3, 4} to a histogram on {3, 4, 5}
with different total masses, and shows how the penalty on mass creation and
destruction changes the optimal coupling.

"""

import torch

from unbalancedot import DiscreteMeasure, KL, sinkhorn_divergence, \
    optimal_coupling

torch.set_printoptions(4)

X, a_weights = [1, 2, 3, 4], [0.5, 1.0, 1.0, 0.5]
Y, b_weights = [3, 4, 5], [0.5, 0.75, 0.5]
a = DiscreteMeasure(a_weights, X)
b = DiscreteMeasure(b_weights, Y)


def cost(x, y):
    return abs(x - y)


# Small regularization, KL penalty on mass destruction
eps = 0.01
D = KL(1.0)
print("Sinkhorn divergence: ", sinkhorn_divergence(D, cost, a, b, eps))

# pi[i, j] is the mass moved from X[i] to Y[j]. Rows sum to less than
# a_weights: some mass is destroyed.
pi = optimal_coupling(D, cost, a, b, eps)
print("Optimal coupling with KL(1):\n", pi)

# Almost free creation and destruction: mass only stays where it is
pi = optimal_coupling(KL(0.01), cost, a, b, eps)
print("Optimal coupling with KL(0.01):\n", pi)

# High penalty: close to balanced transport, which needs more iterations
D = KL(1000.0)
print("Sinkhorn divergence with KL(1000): ",
      sinkhorn_divergence(D, cost, a, b, eps, max_iters=10 ** 6))
pi = optimal_coupling(D, cost, a, b, eps, dual_potentials_populated=True)
print("Optimal coupling with KL(1000):\n", pi)
