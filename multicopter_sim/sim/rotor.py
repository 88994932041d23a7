"""Rotor model of the multicopter simulation.

Each rotor converts a commanded speed into a thrust force along its spin axis and a reaction torque
about the same axis. Both are expressed in the body frame. The torque caused by the rotor's offset
from the center of mass is not part of the rotor model and is added by the airframe, which knows
the vehicle geometry.

The model uses the standard fixed-pitch propeller simplifications:

* Thrust grows quadratically with the rotor speed, T = kf * speed^2.
* The reaction torque is proportional to the thrust, Q = km * T.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from multicopter_sim.sim.errors import ConfigError

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ForceTorque(NamedTuple):
    """Force and torque pair, both in the body frame unless stated otherwise."""

    f: NDArray[np.floating]
    t: NDArray[np.floating]


class SpinDirection(IntEnum):
    """Rotor spin direction.

    The value is the sign of the reaction torque along the rotor axis, not the sense of rotation of
    the blades. A rotor spinning clockwise seen from above pushes the airframe counter-clockwise, so
    its reaction torque points along +z and it is tagged `CCW`. The tag names the direction in which
    the rotor turns the airframe.
    """

    CCW = 1  # Turns the airframe counter-clockwise.
    CW = -1  # Turns the airframe clockwise.

    @staticmethod
    def parse(value: int | str | SpinDirection) -> SpinDirection:
        """Parse a spin direction from its sign or name ("ccw", "cw")."""
        if isinstance(value, str):
            try:
                return SpinDirection[value.upper()]
            except KeyError:
                raise ConfigError(f"Unknown spin direction '{value}'") from None
        try:
            return SpinDirection(int(value))
        except ValueError:
            raise ConfigError(f"Spin direction must be +1 or -1, got {value}") from None


def _vec3(value: NDArray | list[float], name: str) -> NDArray[np.floating]:
    vec = np.array(value, dtype=np.float64)
    if vec.shape != (3,) or not np.all(np.isfinite(vec)):
        raise ConfigError(f"{name} must be a finite 3D vector, got {value}")
    return vec


@dataclass(frozen=True, eq=False)
class RotorConfig:
    """Static configuration of a single rotor.

    Attributes:
        position: Rotor offset from the center of mass in the body frame.
        spin: Spin direction of the rotor.
        kf: Thrust coefficient mapping the squared rotor speed to thrust.
        km: Torque coefficient mapping thrust to reaction torque.
        max_speed: Maximum commandable rotor speed. Commands are clamped to [0, max_speed].
        direction: Spin axis in the body frame. Normalized on construction.
    """

    position: NDArray[np.floating]
    spin: SpinDirection
    kf: float
    km: float
    max_speed: float
    direction: NDArray[np.floating] = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))

    def __post_init__(self):
        """Validate the parameters and freeze the arrays."""
        position = _vec3(self.position, "Rotor position")
        direction = _vec3(self.direction, "Rotor direction")
        norm = np.linalg.norm(direction)
        if norm == 0:
            raise ConfigError("Rotor direction must not be the zero vector")
        direction = direction / norm
        if not (np.isfinite(self.kf) and self.kf > 0):
            raise ConfigError(f"Thrust coefficient must be positive, got {self.kf}")
        if not (np.isfinite(self.km) and self.km >= 0):
            raise ConfigError(f"Torque coefficient must be non-negative, got {self.km}")
        if not (np.isfinite(self.max_speed) and self.max_speed > 0):
            raise ConfigError(f"Maximum rotor speed must be positive, got {self.max_speed}")
        position.setflags(write=False)
        direction.setflags(write=False)
        # Frozen dataclass, values have to be set through object.__setattr__
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "direction", direction)
        object.__setattr__(self, "spin", SpinDirection.parse(self.spin))
        object.__setattr__(self, "kf", float(self.kf))
        object.__setattr__(self, "km", float(self.km))
        object.__setattr__(self, "max_speed", float(self.max_speed))

    @property
    def max_thrust(self) -> float:
        """Thrust at the maximum rotor speed."""
        return self.kf * self.max_speed**2

    @staticmethod
    def from_position(
        position: NDArray[np.floating] | list[float],
        spin: SpinDirection = SpinDirection.CCW,
        kf: float = 1e-5,
        km: float = 0.02,
        max_speed: float = 1000.0,
    ) -> RotorConfig:
        """Create a rotor at the given body position that spins about the body z-axis.

        Args:
            position: Rotor offset from the center of mass in the body frame.
            spin: Spin direction of the rotor.
            kf: Thrust coefficient.
            km: Torque coefficient.
            max_speed: Maximum rotor speed.
        """
        return RotorConfig(position=position, spin=spin, kf=kf, km=km, max_speed=max_speed)

    @staticmethod
    def from_config(config: Mapping) -> RotorConfig:
        """Create a rotor from a configuration table.

        Args:
            config: Table with the keys `position`, `spin`, `kf`, `km`, `max_speed` and the optional
                key `direction`.
        """
        missing = [k for k in ("position", "spin", "kf", "km", "max_speed") if k not in config]
        if missing:
            raise ConfigError(f"Rotor configuration is missing the keys {missing}")
        kwargs = {}
        if "direction" in config:
            kwargs["direction"] = config["direction"]
        return RotorConfig(
            position=config["position"],
            spin=SpinDirection.parse(config["spin"]),
            kf=config["kf"],
            km=config["km"],
            max_speed=config["max_speed"],
            **kwargs,
        )


def thrust_and_torque(speed: float, rotor: RotorConfig) -> ForceTorque:
    """Compute the thrust and reaction torque of a single rotor.

    Commands outside of [0, max_speed] are clamped, modelling actuator saturation.

    Args:
        speed: The commanded rotor speed.
        rotor: The rotor configuration.

    Returns:
        The axial thrust force and the reaction torque in the body frame.
    """
    speed = np.clip(speed, 0.0, rotor.max_speed)
    thrust = rotor.kf * speed**2
    force = thrust * rotor.direction
    torque = rotor.spin * rotor.km * thrust * rotor.direction
    return ForceTorque(force, torque)


def symmetric_layout(
    n_rotors: int,
    arm_len: float,
    kf: float,
    km: float,
    max_speed: float,
    angle_offset: float | None = None,
) -> tuple[RotorConfig, ...]:
    """Create a symmetric rotor layout with alternating spin directions.

    Rotors are evenly spaced on a circle of radius `arm_len` in the body xy-plane and spin about the
    body z-axis. The first rotor is a `CCW` rotor. With an even number of identical rotors,
    equal commands produce no net yaw torque.

    Args:
        n_rotors: Number of rotors. Must be even.
        arm_len: Distance of each rotor from the center of mass.
        kf: Thrust coefficient of each rotor.
        km: Torque coefficient of each rotor.
        max_speed: Maximum rotor speed.
        angle_offset: Angle of the first rotor relative to the body x-axis. Defaults to
            pi / n_rotors, i.e. the "X" configuration.

    Returns:
        The rotor configurations.
    """
    if n_rotors < 2 or n_rotors % 2 != 0:
        raise ConfigError(f"Symmetric layouts need an even number of rotors, got {n_rotors}")
    if not (np.isfinite(arm_len) and arm_len > 0):
        raise ConfigError(f"Arm length must be positive, got {arm_len}")
    if angle_offset is None:
        angle_offset = np.pi / n_rotors
    angles = angle_offset + 2 * np.pi * np.arange(n_rotors) / n_rotors
    rotors = []
    for i, angle in enumerate(angles):
        spin = SpinDirection.CCW if i % 2 == 0 else SpinDirection.CW
        position = [arm_len * np.cos(angle), arm_len * np.sin(angle), 0.0]
        rotors.append(RotorConfig(position=position, spin=spin, kf=kf, km=km, max_speed=max_speed))
    return tuple(rotors)
