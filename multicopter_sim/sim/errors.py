"""Errors raised by the multicopter simulation.

All errors derive from :class:`SimulationError`. Errors caused by an invalid value passed in by the
caller also derive from :class:`ValueError`. :class:`IntegrationError` is raised when a step with
valid arguments diverges numerically. None of them leave the simulator in a partially updated
state, so callers can catch them and continue.
"""


class SimulationError(Exception):
    """Base class for all simulation errors."""


class ConfigError(SimulationError, ValueError):
    """Invalid vehicle, rotor or simulator configuration."""


class CommandLengthMismatch(SimulationError, ValueError):
    """The number of motor commands does not match the number of rotors."""


class InvalidCommand(SimulationError, ValueError):
    """Motor commands contain non-finite values."""


class InvalidTimestep(SimulationError, ValueError):
    """The simulation time step is not a finite, positive number."""


class IntegrationError(SimulationError):
    """The integration produced a non-finite state, e.g. for a diverging scheme or a huge step."""
