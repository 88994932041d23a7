"""Base class for controller implementations.

Controllers read the vehicle state after each simulation step and return the rotor speed commands
for the next one. They are external to the simulator and interact with it only through
`set_motor_commands` and `state`, so the same controller can drive any implementation of
:class:`~multicopter_sim.sim.simulator.MulticopterBase`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState


class Controller(ABC):
    """Base class for controller implementations."""

    def __init__(self, config: VehicleConfig):
        """Initialization of the controller.

        Args:
            config: The configuration of the controlled vehicle. Use it to precompute constants such
                as the hover thrust or the thrust allocation.
        """
        self.config = config

    @abstractmethod
    def compute_control(self, state: VehicleState) -> NDArray[np.floating]:
        """Compute the rotor speed commands for the next step.

        Args:
            state: The current vehicle state.

        Returns:
            The commanded rotor speeds. Shape: (n_rotors,).
        """

    def reset(self):
        """Reset internal variables if necessary."""
