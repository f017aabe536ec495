"""
Exception hierarchy for propagation and orchestration.

Validation failures derive from ValueError, runtime failures from
RuntimeError, so callers can catch either the project base class or the
builtin category.
"""


class PropagationError(Exception):
    """Base class for all astroprop errors."""
    pass


class InvalidArgumentError(PropagationError, ValueError):
    """Raised when an argument is malformed or inconsistent."""
    pass


class UndefinedArgumentError(InvalidArgumentError):
    """Raised when a required argument is missing or undefined."""
    pass


class UndefinedCoordinatesError(InvalidArgumentError):
    """Raised when a coordinates subset is not registered in a broker."""
    pass


class WrongOrderError(InvalidArgumentError):
    """Raised when instants are not in strictly increasing order."""
    pass


class OutOfRangeError(InvalidArgumentError):
    """Raised when a requested instant lies outside a solution's span."""
    pass


class InvalidConfigurationError(PropagationError, ValueError):
    """Raised when a numerical solver configuration is unusable."""
    pass


class PropagationRuntimeError(PropagationError, RuntimeError):
    """Raised when an operation cannot run on the data it was given."""
    pass


class IntegrationError(PropagationRuntimeError):
    """Raised when numerical integration fails."""
    pass
