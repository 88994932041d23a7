"""Geometric position controller that holds the vehicle at a target position.

The controller follows the usual cascade for multicopters:

1. A PD law on the position error yields the desired acceleration. Adding gravity gives the desired
   thrust vector in the world frame.
2. The desired body z-axis points along the thrust vector, the desired yaw fixes the remaining
   rotation. The attitude error is computed on SO(3).
3. A PD law on the attitude error with gyroscopic feed-forward yields the desired body torque.
4. Collective thrust and torque are distributed to the rotors with the pseudo-inverse of the
   allocation matrix and converted to rotor speeds.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from multicopter_sim.control.controller import Controller
from multicopter_sim.utils.rotations import map2pi

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState

logger = logging.getLogger(__name__)


def allocation_matrix(config: VehicleConfig) -> NDArray[np.floating]:
    """Map per-rotor thrust to collective thrust and body torque.

    Args:
        config: The vehicle configuration.

    Returns:
        Matrix A with [thrust_z, tau_x, tau_y, tau_z] = A @ rotor_thrusts. Shape: (4, n_rotors).
    """
    A = np.zeros((4, config.n_rotors))
    for i, rotor in enumerate(config.rotors):
        torque = rotor.spin * rotor.km * rotor.direction + np.cross(rotor.position, rotor.direction)
        A[0, i] = rotor.direction[2]
        A[1:, i] = torque
    return A


def _vee(M: NDArray[np.floating]) -> NDArray[np.floating]:
    return np.array([M[2, 1], M[0, 2], M[1, 0]])


class HoverController(Controller):
    """Hold the vehicle at a fixed position and yaw."""

    def __init__(
        self,
        config: VehicleConfig,
        target_pos: NDArray[np.floating] | list[float] = (0.0, 0.0, 1.0),
        target_yaw: float = 0.0,
        kp_pos: NDArray[np.floating] | list[float] = (4.0, 4.0, 4.0),
        kd_pos: NDArray[np.floating] | list[float] = (3.0, 3.0, 3.0),
        kp_att: NDArray[np.floating] | list[float] = (400.0, 400.0, 100.0),
        kd_att: NDArray[np.floating] | list[float] = (40.0, 40.0, 20.0),
    ):
        """Initialize the controller.

        The attitude gains are scaled by the inertia tensor, i.e. they define the desired angular
        acceleration rather than the torque.

        Args:
            config: The vehicle configuration.
            target_pos: The position to hold in the world frame.
            target_yaw: The yaw angle to hold in radians.
            kp_pos: Proportional position gains.
            kd_pos: Derivative position gains.
            kp_att: Proportional attitude gains.
            kd_att: Derivative attitude gains.
        """
        super().__init__(config)
        self.target_pos = np.array(target_pos, dtype=float)
        self.target_yaw = float(map2pi(target_yaw))
        self.kp_pos, self.kd_pos = np.array(kp_pos, float), np.array(kd_pos, float)
        self.kp_att, self.kd_att = np.array(kp_att, float), np.array(kd_att, float)
        A = allocation_matrix(config)
        self._A_pinv = np.linalg.pinv(A)
        self._kf = np.array([r.kf for r in config.rotors])
        self._max_thrust = np.array([r.max_thrust for r in config.rotors])
        if np.linalg.matrix_rank(A) < 4:
            logger.warning("Rotor layout cannot produce arbitrary torques, control may degrade")

    def compute_control(self, state: VehicleState) -> NDArray[np.floating]:
        """Compute the rotor speeds that move the vehicle towards the target.

        Args:
            state: The current vehicle state.

        Returns:
            The commanded rotor speeds. Shape: (n_rotors,).
        """
        cfg = self.config
        # Desired thrust vector in the world frame
        acc_des = self.kp_pos * (self.target_pos - state.pos) - self.kd_pos * state.vel
        thrust_vec = cfg.mass * (acc_des + np.array([0.0, 0.0, cfg.gravity]))
        thrust_norm = np.linalg.norm(thrust_vec)
        if thrust_norm < 1e-9:  # Free fall commanded, keep the current attitude
            return np.zeros(cfg.n_rotors)
        # Desired orientation from thrust direction and yaw
        z_des = thrust_vec / thrust_norm
        x_yaw = np.array([np.cos(self.target_yaw), np.sin(self.target_yaw), 0.0])
        y_des = np.cross(z_des, x_yaw)
        if (y_norm := np.linalg.norm(y_des)) < 1e-6:  # Thrust is horizontal along the yaw axis
            y_des = np.array([-np.sin(self.target_yaw), np.cos(self.target_yaw), 0.0])
        else:
            y_des = y_des / y_norm
        x_des = np.cross(y_des, z_des)
        R_des = np.column_stack([x_des, y_des, z_des])
        # Attitude error on SO(3) and PD torque with gyroscopic feed-forward
        rot = state.rotation.as_matrix()
        e_R = 0.5 * _vee(R_des.T @ rot - rot.T @ R_des)
        ang_vel = state.ang_vel
        ang_acc = -self.kp_att * e_R - self.kd_att * ang_vel
        torque = cfg.J @ ang_acc + np.cross(ang_vel, cfg.J @ ang_vel)
        thrust = np.dot(thrust_vec, rot[:, 2])
        # Allocate the wrench to the rotors
        rotor_thrust = self._A_pinv @ np.concatenate([[thrust], torque])
        rotor_thrust = np.clip(rotor_thrust, 0.0, self._max_thrust)
        return np.sqrt(rotor_thrust / self._kf)
