import torch

from ._errors import InvalidMeasure


class DiscreteMeasure(object):
    """Positive measure on a finite set, for use in unbalanced_sinkhorn and
    the functionals built on it.

    Parameters
    ----------
    density: sequence or torch.Tensor of size [size_X]
    Strictly positive weights. Points with zero weight should be removed
    from the support instead.

    log_density: sequence or torch.Tensor of size [size_X], optional
    Equal to log(density). Computed when omitted.

    set: sequence of length size_X
    Support, so that density[i] is the mass sitting on set[i]. Elements are
    opaque and only ever handed to the cost function.

    dtype: torch.dtype
    Floating point type of the density and of the dual potential.

    Notes
    -----
    Following the argument order (density, [log_density], set), a measure can
    be built with two positional arguments: DiscreteMeasure(density, set).
    The dual_potential is the only mutable field. It holds the potential of
    the last solver call this measure took part in.
    """

    def __init__(self, density, *args, log_density=None, set=None,
                 dtype=torch.float64):
        if len(args) > 2:
            raise TypeError(
                f"DiscreteMeasure takes density, [log_density,] set, got "
                f"{len(args) + 1} positional arguments."
            )
        if args and (log_density is not None or set is not None):
            raise TypeError(
                "Pass log_density and set either positionally or by "
                "keyword, not both."
            )
        if len(args) == 2:
            log_density, set = args
        elif len(args) == 1:
            set = args[0]
        if set is None:
            raise InvalidMeasure("A DiscreteMeasure needs a support set.")
        density = torch.as_tensor(density, dtype=dtype)
        if density.dim() != 1:
            raise InvalidMeasure(
                f"density must be one dimensional, got shape "
                f"{tuple(density.shape)}."
            )
        if density.shape[0] == 0:
            raise InvalidMeasure("A DiscreteMeasure needs at least one point.")
        if len(set) != density.shape[0]:
            raise InvalidMeasure(
                f"density and set have different lengths "
                f"({density.shape[0]} != {len(set)})."
            )
        if not torch.all(density > 0):
            raise InvalidMeasure(
                "density must be strictly positive; remove points with "
                "zero mass from the set."
            )
        if log_density is None:
            log_density = density.log()
        else:
            log_density = torch.as_tensor(log_density, dtype=dtype)
            if log_density.shape != density.shape:
                raise InvalidMeasure(
                    f"log_density and density have different shapes "
                    f"({tuple(log_density.shape)} != {tuple(density.shape)})."
                )
            if not torch.allclose(log_density, density.log()):
                raise InvalidMeasure("log_density must equal log(density).")

        self._density = density
        self._log_density = log_density
        self._set = set
        self.dual_potential = torch.zeros_like(density)

    @property
    def density(self):
        return self._density

    @property
    def log_density(self):
        return self._log_density

    @property
    def set(self):
        return self._set

    @property
    def mass(self):
        return self._density.sum()

    def __len__(self):
        return self._density.shape[0]

    def __repr__(self):
        return (f"DiscreteMeasure(size={len(self)}, "
                f"mass={self.mass.item():.6g})")

    def scratch(self):
        """Returns a measure sharing this one's support and weights, but
        owning a separate dual potential buffer."""
        other = object.__new__(DiscreteMeasure)
        other._density = self._density
        other._log_density = self._log_density
        other._set = self._set
        other.dual_potential = self.dual_potential.clone()
        return other
