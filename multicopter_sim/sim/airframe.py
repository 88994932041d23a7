"""Airframe model of the multicopter simulation.

The airframe collects all forces and torques acting on the vehicle and sums them up in the body
frame, which is the frame of the inertia tensor:

* Rotor thrust and reaction torque, plus the moment arm torque of each rotor's thrust.
* Aerodynamic drag on the linear velocity (linear and quadratic per body axis) and an optional
  linear damping of the angular velocity.
* Gravity, rotated from the world frame into the body frame.
* An optional external world frame force, e.g. a wind disturbance.

Misconfigured vehicles are rejected when the :class:`~multicopter_sim.sim.vehicle.VehicleConfig` is
built, so the functions in this module never fail.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from multicopter_sim.sim.rotor import ForceTorque, thrust_and_torque

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState


def rotor_force_torque(commands: NDArray[np.floating], config: VehicleConfig) -> ForceTorque:
    """Sum up the forces and torques of all rotors.

    The torque of each rotor is its reaction torque plus the torque of its thrust acting at the
    rotor position.

    Args:
        commands: The commanded rotor speeds. Shape: (n_rotors,).
        config: The vehicle configuration.

    Returns:
        The total rotor force and torque in the body frame.
    """
    force, torque = np.zeros(3), np.zeros(3)
    for cmd, rotor in zip(commands, config.rotors):
        ft = thrust_and_torque(cmd, rotor)
        force += ft.f
        torque += ft.t + np.cross(rotor.position, ft.f)
    return ForceTorque(force, torque)


def drag(state: VehicleState, config: VehicleConfig) -> ForceTorque:
    """Aerodynamic drag acting against the linear and angular velocity.

    Both drag terms only ever remove energy from the system.

    Args:
        state: The current vehicle state.
        config: The vehicle configuration.

    Returns:
        The drag force and damping torque in the body frame.
    """
    vel_body = state.rotation.apply(np.array(state.vel), inverse=True)
    force = -config.drag_coeff * vel_body - config.quad_drag_coeff * np.abs(vel_body) * vel_body
    torque = -config.ang_drag_coeff * state.ang_vel
    return ForceTorque(force, torque)


def gravity(state: VehicleState, config: VehicleConfig) -> NDArray[np.floating]:
    """Gravitational force in the body frame."""
    return state.rotation.apply(np.array([0.0, 0.0, -config.mass * config.gravity]), inverse=True)


def net_force_torque(
    commands: NDArray[np.floating],
    state: VehicleState,
    config: VehicleConfig,
    external_force: NDArray[np.floating] | None = None,
) -> ForceTorque:
    """Compute the net force and torque acting on the vehicle.

    Args:
        commands: The commanded rotor speeds. Shape: (n_rotors,).
        state: The current vehicle state.
        config: The vehicle configuration.
        external_force: An optional, external force in the world frame. Shape: (3,).

    Returns:
        The net force and torque in the body frame.
    """
    rotor_ft = rotor_force_torque(commands, config)
    drag_ft = drag(state, config)
    force = rotor_ft.f + drag_ft.f + gravity(state, config)
    if external_force is not None:
        force = force + state.rotation.apply(np.array(external_force), inverse=True)
    return ForceTorque(force, rotor_ft.t + drag_ft.t)
