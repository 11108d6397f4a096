"""Numerical failure modes raised by the filter stages."""


class FilterError(Exception):
    """Base class for recoverable filter failures."""


class NumericalInstabilityError(FilterError):
    """The state covariance could not be factorized for sigma point generation."""


class SingularInnovationError(FilterError):
    """The innovation covariance S is singular or too ill-conditioned to invert."""
