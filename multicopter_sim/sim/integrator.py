"""Rigid-body integrator of the multicopter simulation.

The vehicle is a rigid body with the 13D state x = [pos, quat, vel, ang_vel]. Its equations of
motion are

* pos_dot = vel
* quat_dot = 0.5 * quat * (ang_vel, 0)
* vel_dot = R(quat) @ f / m
* ang_vel_dot = J^-1 @ (t - ang_vel x (J @ ang_vel))

where f and t are the net force and torque in the body frame. The last equation is Euler's equation
for rigid bodies, its cross product term is the gyroscopic coupling between the body axes.

:func:`integrate` evaluates the force and torque from a wrench function at every stage of the
integration scheme, so forces that depend on the state (gravity, drag) follow the vehicle within a
step. :func:`advance` is the special case of a wrench that is constant in the body frame. After each
step the orientation quaternion is renormalized to remove the numerical drift of the integration.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable

import numpy as np
from scipy.spatial.transform import Rotation as R

from multicopter_sim.sim.errors import ConfigError, IntegrationError, InvalidTimestep
from multicopter_sim.sim.rotor import ForceTorque
from multicopter_sim.sim.vehicle import VehicleState
from multicopter_sim.utils.rotations import quat_derivative

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from multicopter_sim.sim.vehicle import VehicleConfig

Wrench = Callable[[VehicleState], ForceTorque]
"""Maps a vehicle state to the net force and torque in the body frame."""


class IntegrationMode(str, Enum):
    """Integration scheme enumeration class."""

    RK4 = "rk4"  # Classic 4th order Runge-Kutta.
    DEFAULT = RK4  # Default integration scheme.
    # Update velocities first, then integrate poses with the new velocities. Cheaper than RK4 but
    # produces different trajectories.
    SEMI_IMPLICIT_EULER = "semi_implicit_euler"


def state_derivative(
    x: NDArray[np.floating],
    force: NDArray[np.floating],
    torque: NDArray[np.floating],
    config: VehicleConfig,
) -> NDArray[np.floating]:
    """Time derivative of the rigid-body state.

    Args:
        x: The 13D state vector [pos, quat, vel, ang_vel].
        force: The net force in the body frame.
        torque: The net torque in the body frame.
        config: The vehicle configuration.

    Returns:
        The state derivative. Shape: (13,).
    """
    quat, vel, ang_vel = x[3:7], x[7:10], x[10:13]
    acc = R.from_quat(quat).apply(force) / config.mass
    ang_acc = config.J_inv @ (torque - np.cross(ang_vel, config.J @ ang_vel))
    return np.concatenate([vel, quat_derivative(quat, ang_vel), acc, ang_acc])


def _to_state(x: NDArray[np.floating]) -> VehicleState:
    if not np.all(np.isfinite(x)):
        raise IntegrationError(f"Integration diverged to a non-finite state {x}")
    try:
        return VehicleState.from_array(x)
    except ConfigError as e:  # Collapsed or overflowing quaternion
        raise IntegrationError(str(e)) from e


def _derivative(x: NDArray[np.floating], wrench: Wrench, config: VehicleConfig) -> NDArray:
    ft = wrench(_to_state(x))
    return state_derivative(x, ft.f, ft.t, config)


def _rk4(
    x: NDArray[np.floating], wrench: Wrench, config: VehicleConfig, dt: float
) -> NDArray[np.floating]:
    k1 = _derivative(x, wrench, config)
    k2 = _derivative(x + 0.5 * dt * k1, wrench, config)
    k3 = _derivative(x + 0.5 * dt * k2, wrench, config)
    k4 = _derivative(x + dt * k3, wrench, config)
    return x + dt / 6.0 * (k1 + 2 * k2 + 2 * k3 + k4)


def _semi_implicit_euler(
    x: NDArray[np.floating], wrench: Wrench, config: VehicleConfig, dt: float
) -> NDArray[np.floating]:
    x_dot = _derivative(x, wrench, config)
    vel = x[7:10] + x_dot[7:10] * dt
    ang_vel = x[10:13] + x_dot[10:13] * dt
    pos = x[0:3] + vel * dt
    quat = x[3:7] + quat_derivative(x[3:7], ang_vel) * dt
    return np.concatenate([pos, quat, vel, ang_vel])


def integrate(
    state: VehicleState,
    wrench: Wrench,
    config: VehicleConfig,
    dt: float,
    mode: IntegrationMode = IntegrationMode.DEFAULT,
) -> VehicleState:
    """Advance the vehicle state by one time step under a state dependent wrench.

    Args:
        state: The current vehicle state.
        wrench: Computes the net body force and torque for a state. Called once per stage of the
            integration scheme.
        config: The vehicle configuration.
        dt: The time step in seconds. Must be positive.
        mode: The integration scheme.

    Returns:
        The new vehicle state.

    Raises:
        InvalidTimestep: If dt is not a finite, positive number.
        IntegrationError: If the integration produces a non-finite state.
    """
    if not (np.isfinite(dt) and dt > 0):
        raise InvalidTimestep(f"Time step must be a positive number, got {dt}")
    x = state.as_array()
    if mode == IntegrationMode.RK4:
        x = _rk4(x, wrench, config, dt)
    elif mode == IntegrationMode.SEMI_IMPLICIT_EULER:
        x = _semi_implicit_euler(x, wrench, config, dt)
    else:
        raise NotImplementedError(f"Integration mode {mode} not implemented.")
    return _to_state(x)  # Normalizes the quaternion


def advance(
    state: VehicleState,
    force: NDArray[np.floating],
    torque: NDArray[np.floating],
    config: VehicleConfig,
    dt: float,
    mode: IntegrationMode = IntegrationMode.DEFAULT,
) -> VehicleState:
    """Advance the vehicle state by one time step under a constant body frame wrench.

    Args:
        state: The current vehicle state.
        force: The net force in the body frame.
        torque: The net torque in the body frame.
        config: The vehicle configuration.
        dt: The time step in seconds. Must be positive.
        mode: The integration scheme.

    Returns:
        The new vehicle state.

    Raises:
        InvalidTimestep: If dt is not a finite, positive number.
        IntegrationError: If the integration produces a non-finite state.
    """
    ft = ForceTorque(np.array(force, dtype=np.float64), np.array(torque, dtype=np.float64))
    return integrate(state, lambda _: ft, config, dt, mode)
