"""Flight dynamics simulation of multicopters.

The :mod:`~multicopter_sim.sim` module contains the physics, :mod:`~multicopter_sim.control` example
controllers and :mod:`~multicopter_sim.utils` config loading and logging helpers.
"""

from multicopter_sim.sim import (
    MulticopterSimulator,
    RotorConfig,
    VehicleConfig,
    VehicleState,
)

__all__ = ["MulticopterSimulator", "RotorConfig", "VehicleConfig", "VehicleState"]
