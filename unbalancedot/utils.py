import numpy as np
import torch


def euclid_dist(x, y):
    """Pairwise Euclidean distances between the rows of x and y.

    Parameters
    ----------
    x: np.ndarray of size [size_X, n_dim]

    y: np.ndarray of size [size_Y, n_dim]

    Returns
    -------
    dist: np.ndarray of size [size_X, size_Y]
    """
    return np.linalg.norm(x[:, None, :] - y[None, :, :], axis=2)


def fdot(u, f, v):
    """Computes the sum of u[i] * f(v[i]), i.e. dot(u, f(v)).

    f is applied elementwise to the tensor v, so the reduction is a single
    fused multiply-add on the torch side. Divergences with a cheaper
    evaluation can call it with a specialised f.
    """
    return torch.sum(u * f(v))


def generate_measure(n_sample, n_dim, equal=False, dtype=torch.float64):
    """
    Generate a random weighted point cloud sampled over the unit cube.
    :param n_sample: Number of sampling points in R^d
    :param n_dim: Dimension of the feature space
    :param equal: Weights equal to 1
    :return: weights as a torch.Tensor of size [n_sample], and points as a
    np.ndarray of size [n_sample, n_dim]
    """
    m = torch.distributions.exponential.Exponential(1.0)
    a = m.sample(torch.Size([n_sample])).to(dtype)
    a = a / a.sum()
    m = torch.distributions.uniform.Uniform(0.0, 1.0)
    x = m.sample(torch.Size([n_sample, n_dim])).numpy().astype(np.float64)
    if equal:
        a = torch.ones_like(a)
    return a, x
