class AutocallError(Exception):
    """Base class for every error raised by the pricing engine."""


class DomainError(AutocallError, ValueError):
    """A curve or surface was queried outside its defined input domain."""


class GridMismatchError(AutocallError):
    """A date required by the contract is absent from the simulation time grid."""


class ConfigurationError(AutocallError, ValueError):
    """Invalid model kind, contract schedule or simulation size."""


class SimulationCancelled(AutocallError):
    """The Monte Carlo run was stopped through its cancellation flag."""
