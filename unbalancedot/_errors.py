class InvalidMeasure(ValueError):
    """Raised when a DiscreteMeasure is built from inconsistent inputs."""


class DimensionMismatch(ValueError):
    """Raised when a precomputed cost matrix does not match the supports."""


class MissingDivergenceMethod(NotImplementedError):
    """Raised when a divergence lacks ``aprox`` or ``phi_star``."""


class ConvergenceWarning(UserWarning):
    """Sinkhorn iterations stopped at ``max_iters`` above the tolerance."""
