class SimulationError(Exception):
    """Base class for failures raised by the simulation core."""


class InvalidParameterError(SimulationError, ValueError):
    """Raised when process parameters fail construction-time validation.

    Examples are a negative volatility or mean-reversion speed, a correlation
    outside ``[-1, 1]`` or a Hurst exponent outside ``(0, 1)``. The error is
    raised before any simulation work starts.
    """


class InvalidCorrelationError(SimulationError, ValueError):
    """Raised when a correlation matrix is malformed or not positive-definite.

    The Cholesky factorization is never clamped or repaired; a matrix that
    cannot be factorized is fatal to the run.
    """


class NumericalInstabilityError(SimulationError, ArithmeticError):
    """Raised when a single path produces a non-finite intermediate value.

    The Monte Carlo driver never lets this escape: failing paths are dropped
    and counted in :class:`~quantsim.simulation.result.SimulationResult`.
    """

    def __init__(self, message: str, *, step: int | None = None) -> None:
        super().__init__(message)
        self.step = step


class SpectralEmbeddingError(SimulationError):
    """Raised when the circulant embedding has materially negative eigenvalues.

    Notes
    -----
    For fractional Gaussian noise this usually means the grid/Hurst combination
    is unusable. The offending minimum eigenvalue is stored on the exception.
    """

    def __init__(self, message: str, *, min_eigenvalue: float) -> None:
        super().__init__(message)
        self.min_eigenvalue = min_eigenvalue


class AllPathsFailedError(SimulationError):
    """Raised when every sample of a run failed, so no statistics exist."""

    def __init__(self, n_failed: int) -> None:
        super().__init__(
            f"All {n_failed} samples failed with non-finite values; "
            "no statistics can be computed."
        )
        self.n_failed = n_failed
