"""Rigid-body flight dynamics of multicopters.

This module turns rotor speed commands into the motion of a multicopter. It is split into the
following components, from the leaves up:

* :mod:`~multicopter_sim.sim.rotor`: Thrust and reaction torque of a single rotor.
* :mod:`~multicopter_sim.sim.airframe`: Net force and torque of all rotors, drag and gravity.
* :mod:`~multicopter_sim.sim.integrator`: 6-DOF rigid-body equations of motion and their numerical
  integration.
* :mod:`~multicopter_sim.sim.simulator`: The simulator that owns the vehicle state and the motor
  commands and exposes `set_motor_commands`, `step` and `state`.

Vehicles are described by a :class:`~multicopter_sim.sim.vehicle.VehicleConfig` that is validated
once on construction. Orientations are unit quaternions in the scalar-last convention of
:class:`scipy.spatial.transform.Rotation`.

The simulator does not render, load assets or schedule itself. Hosts call `step` from their own
fixed-rate loop and read `state` afterwards.
"""

from multicopter_sim.sim.errors import (
    CommandLengthMismatch,
    ConfigError,
    IntegrationError,
    InvalidCommand,
    InvalidTimestep,
    SimulationError,
)
from multicopter_sim.sim.integrator import IntegrationMode
from multicopter_sim.sim.rotor import RotorConfig, SpinDirection, symmetric_layout
from multicopter_sim.sim.simulator import MulticopterBase, MulticopterSimulator
from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState

__all__ = [
    "CommandLengthMismatch",
    "ConfigError",
    "IntegrationError",
    "IntegrationMode",
    "InvalidCommand",
    "InvalidTimestep",
    "MulticopterBase",
    "MulticopterSimulator",
    "RotorConfig",
    "SimulationError",
    "SpinDirection",
    "VehicleConfig",
    "VehicleState",
    "symmetric_layout",
]
