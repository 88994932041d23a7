"""Rotation conversion utils module.

Quaternions follow the scipy convention and are stored scalar-last as [x, y, z, w].
"""

from __future__ import annotations

from math import asin, atan2
from typing import TypeVar

import numpy as np
import numpy.typing as npt

T = TypeVar("T", float, npt.NDArray[np.floating])


def euler_from_quaternion(x: float, y: float, z: float, w: float) -> tuple[float, float, float]:
    """Convert a quaternion into euler angles (roll, pitch, yaw).

    roll is rotation around x in radians (counterclockwise)
    pitch is rotation around y in radians (counterclockwise)
    yaw is rotation around z in radians (counterclockwise)
    """
    t0 = +2.0 * (w * x + y * z)
    t1 = +1.0 - 2.0 * (x * x + y * y)
    roll_x = atan2(t0, t1)

    t2 = +2.0 * (w * y - z * x)
    t2 = +1.0 if t2 > +1.0 else t2
    t2 = -1.0 if t2 < -1.0 else t2
    pitch_y = asin(t2)

    t3 = +2.0 * (w * z + x * y)
    t4 = +1.0 - 2.0 * (y * y + z * z)
    yaw_z = atan2(t3, t4)

    return roll_x, pitch_y, yaw_z  # in radians


def map2pi(angle: T) -> T:
    """Map an angle or array of angles to the interval of [-pi, pi].

    Args:
        angle: Number or array of numbers.

    Returns:
        The remapped angles.
    """
    return ((angle + np.pi) % (2 * np.pi)) - np.pi


def quat_multiply(q1: npt.NDArray[np.floating], q2: npt.NDArray[np.floating]) -> npt.NDArray:
    """Hamilton product q1 * q2 of two scalar-last quaternions.

    The quaternions do not have to be normalized.
    """
    v1, w1 = q1[:3], q1[3]
    v2, w2 = q2[:3], q2[3]
    v = w1 * v2 + w2 * v1 + np.cross(v1, v2)
    return np.array([v[0], v[1], v[2], w1 * w2 - np.dot(v1, v2)])


def quat_derivative(
    quat: npt.NDArray[np.floating], ang_vel: npt.NDArray[np.floating]
) -> npt.NDArray[np.floating]:
    """Time derivative of an orientation quaternion.

    Computes q_dot = 0.5 * q * (omega, 0) for an angular velocity given in the body frame.

    Args:
        quat: The world <- body orientation quaternion. Shape: (4,).
        ang_vel: The body frame angular velocity. Shape: (3,).

    Returns:
        The quaternion derivative. Shape: (4,).
    """
    return 0.5 * quat_multiply(quat, np.array([ang_vel[0], ang_vel[1], ang_vel[2], 0.0]))


def normalize_quat(quat: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]:
    """Return the quaternion scaled to unit norm.

    Raises:
        ValueError: If the quaternion has zero (or non-finite) norm.
    """
    norm = np.linalg.norm(quat)
    if not np.isfinite(norm) or norm == 0:
        raise ValueError(f"Cannot normalize quaternion {quat}")
    return quat / norm
