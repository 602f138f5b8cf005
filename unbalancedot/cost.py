import numpy as np
import torch

from ._errors import DimensionMismatch
from .utils import euclid_dist


def euclidean_cost(x, y):
    """Default cost C(x, y) = norm(x - y), for scalars or vectors."""
    return float(np.linalg.norm(np.asarray(x, dtype=float)
                                - np.asarray(y, dtype=float)))


def _as_points(support):
    """Numeric support as a [size, n_dim] array, or None if not numeric."""
    try:
        x = np.asarray(support, dtype=float)
    except (TypeError, ValueError):
        return None
    if x.ndim == 1:
        return x[:, None]
    if x.ndim == 2:
        return x
    return None


def cost_matrix(*args):
    """Precompute the cost matrix between the supports of a and b, called as
    cost_matrix([cost,] a, b).

    Parameters
    ----------
    cost: callable or None, optional
    Function from a.set x b.set to nonnegative reals. If None or omitted,
    defaults to C(x, y) = norm(x - y).

    a: DiscreteMeasure of size size_X

    b: DiscreteMeasure of size size_Y

    Returns
    -------
    cost: torch.Tensor of size [size_X, size_Y]
    Entry [i, j] is cost(a.set[i], b.set[j]). Nothing is cached, pass the
    returned matrix back in to reuse it.
    """
    if len(args) == 2:
        cost, (a, b) = None, args
    elif len(args) == 3:
        cost, a, b = args
    else:
        raise TypeError(
            f"cost_matrix takes [cost,] a, b, got {len(args)} arguments."
        )
    dtype = a.density.dtype
    if cost is None:
        x, y = _as_points(a.set), _as_points(b.set)
        if x is not None and y is not None and x.shape[1] == y.shape[1]:
            return torch.from_numpy(euclid_dist(x, y)).to(dtype)
        cost = euclidean_cost
    return torch.tensor([[float(cost(x, y)) for y in b.set] for x in a.set],
                        dtype=dtype)


def as_cost_matrix(cost, a, b):
    """Normalises a cost input (function, matrix or None) into a read-only
    cost matrix of size [size_X, size_Y]."""
    if cost is None or callable(cost):
        return cost_matrix(cost, a, b)
    cost = torch.as_tensor(cost, dtype=a.density.dtype)
    if tuple(cost.shape) != (len(a), len(b)):
        raise DimensionMismatch(
            f"Cost matrix of shape {tuple(cost.shape)} does not match the "
            f"supports, expected {(len(a), len(b))}."
        )
    return cost
