"""Multicopter simulator.

The simulator owns a vehicle configuration, the current vehicle state and the motor commands. Each
call to :meth:`MulticopterSimulator.step` holds the stored commands and advances the state with the
rigid-body integrator, which evaluates the forces and torques of the airframe at every stage.

The simulator is synchronous and performs no I/O. Hosts that run the controller in another thread
have to make sure that `set_motor_commands` and `step` are never called concurrently. Independent
vehicles are simulated by independent simulator instances, which share no state.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING

import numpy as np
from gymnasium import spaces

from multicopter_sim.sim.airframe import net_force_torque
from multicopter_sim.sim.disturbances import DisturbanceList
from multicopter_sim.sim.errors import (
    CommandLengthMismatch,
    ConfigError,
    InvalidCommand,
    InvalidTimestep,
)
from multicopter_sim.sim.integrator import IntegrationMode, integrate
from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState

if TYPE_CHECKING:
    from ml_collections import ConfigDict
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class MulticopterBase(ABC):
    """Minimal interface of a simulated multicopter.

    Host applications (renderers, game engines, hardware-in-the-loop bridges) should only depend on
    this interface and wrap it in their own adapters.
    """

    @abstractmethod
    def set_motor_commands(self, commands: NDArray[np.floating]):
        """Replace the motor commands used by the next steps."""

    @abstractmethod
    def step(self, dt: float):
        """Advance the simulation by dt seconds."""

    @property
    @abstractmethod
    def state(self) -> VehicleState:
        """The current vehicle state."""


class MulticopterSimulator(MulticopterBase):
    """Rigid-body simulation of a multicopter driven by rotor speed commands."""

    DISTURBANCE_MODES = ("action", "dynamics")

    def __init__(
        self,
        config: VehicleConfig,
        initial_state: VehicleState | None = None,
        integration: IntegrationMode | str = IntegrationMode.DEFAULT,
        disturbances: Mapping | None = None,
    ):
        """Initialize the simulator.

        Args:
            config: The vehicle configuration.
            initial_state: The initial vehicle state. Defaults to a vehicle at rest at the origin.
            integration: The integration scheme. RK4 unless explicitly set otherwise.
            disturbances: Optional disturbance specifications per mode ("action", "dynamics"). Each
                mode maps to a single specification dict or a list of them.

        Raises:
            ConfigError: If any of the arguments is invalid.
        """
        if not isinstance(config, VehicleConfig):
            raise ConfigError(f"Expected a VehicleConfig, got {type(config).__name__}")
        if initial_state is None:
            initial_state = VehicleState()
        if not isinstance(initial_state, VehicleState):
            raise ConfigError(f"Expected a VehicleState, got {type(initial_state).__name__}")
        try:
            self.integration = IntegrationMode(integration)
        except ValueError:
            raise ConfigError(f"Unknown integration mode '{integration}'") from None
        self.config = config
        max_speeds = config.max_speeds
        self.command_space = spaces.Box(
            low=np.zeros_like(max_speeds), high=max_speeds, dtype=np.float64
        )
        self.disturbances = self._setup_disturbances(disturbances)
        self._state = initial_state
        self._commands = np.zeros(config.n_rotors)
        self._commands.setflags(write=False)
        self._time = 0.0
        self._tick = 0
        logger.debug(
            f"Created simulator for {config.n_rotors} rotors, integration: {self.integration.value}"
        )

    def set_motor_commands(self, commands: NDArray[np.floating] | list[float]):
        """Replace the stored motor commands.

        The new commands take effect as a whole for all following steps. Commands outside of the
        rotor speed range are clamped by the rotor model.

        Args:
            commands: The commanded rotor speeds. Shape: (n_rotors,).

        Raises:
            CommandLengthMismatch: If the number of commands does not match the number of rotors.
            InvalidCommand: If any command is not finite.
        """
        commands = np.array(commands, dtype=np.float64)
        if commands.shape != (self.config.n_rotors,):
            raise CommandLengthMismatch(
                f"Expected {self.config.n_rotors} motor commands, got shape {commands.shape}"
            )
        if not np.all(np.isfinite(commands)):
            raise InvalidCommand(f"Motor commands must be finite, got {commands}")
        commands.setflags(write=False)
        self._commands = commands

    def step(self, dt: float):
        """Advance the simulation by one time step using the stored motor commands.

        The state, time and tick are left unchanged if the step raises.

        Args:
            dt: The time step in seconds.

        Raises:
            InvalidTimestep: If dt is not a finite, positive number.
            IntegrationError: If the step diverges to a non-finite state, e.g. for a huge dt.
        """
        if not (np.isfinite(dt) and dt > 0):
            raise InvalidTimestep(f"Time step must be a positive number, got {dt}")
        commands = self._commands
        if "action" in self.disturbances:
            commands = self.disturbances["action"].apply(commands)
        external_force = None
        if "dynamics" in self.disturbances:
            external_force = self.disturbances["dynamics"].apply(np.zeros(3))
        self._state = integrate(
            self._state,
            lambda state: net_force_torque(commands, state, self.config, external_force),
            self.config,
            dt,
            self.integration,
        )
        self._time += dt
        self._tick += 1

    @property
    def state(self) -> VehicleState:
        """The vehicle state after the most recent step. Immutable."""
        return self._state

    @property
    def commands(self) -> NDArray[np.floating]:
        """The stored motor commands. Read-only."""
        return self._commands

    @property
    def time(self) -> float:
        """Simulated time in seconds since construction."""
        return self._time

    @property
    def tick(self) -> int:
        """Number of successful steps since construction."""
        return self._tick

    def seed(self, seed: int | None = None) -> int | None:
        """Seed the command space and all disturbances for reproducible runs."""
        self.command_space.seed(seed)
        for disturbance in self.disturbances.values():
            disturbance.seed(seed)
        return seed

    def _setup_disturbances(self, disturbances: Mapping | None) -> dict[str, DisturbanceList]:
        """Create the disturbances for each mode.

        Args:
            disturbances: Disturbance specifications per mode.

        Returns:
            A dictionary of DisturbanceList for each mode.
        """
        dist = {}
        if disturbances is None:  # Default: no disturbances.
            return dist
        dims = {"action": self.config.n_rotors, "dynamics": 3}
        for mode, specs in disturbances.items():
            if mode not in self.DISTURBANCE_MODES:
                raise ConfigError(f"Unknown disturbance mode '{mode}'")
            if isinstance(specs, Mapping) or hasattr(specs, "keys"):
                specs = [specs]
            dist[mode] = DisturbanceList.from_specs(list(specs), dims[mode])
        return dist

    @staticmethod
    def from_config(config: ConfigDict) -> MulticopterSimulator:
        """Create a simulator from a loaded configuration file.

        Args:
            config: The configuration with a `vehicle` table and an optional `sim` table containing
                `integration`, `init_state` and `disturbances`.
        """
        if "vehicle" not in config:
            raise ConfigError("Configuration has no 'vehicle' table")
        vehicle = VehicleConfig.from_config(config["vehicle"])
        sim_config = config["sim"] if "sim" in config else {}
        initial_state = None
        if "init_state" in sim_config:
            initial_state = VehicleState.from_config(sim_config["init_state"])
        return MulticopterSimulator(
            vehicle,
            initial_state=initial_state,
            integration=sim_config.get("integration", IntegrationMode.DEFAULT),
            disturbances=sim_config.get("disturbances"),
        )
