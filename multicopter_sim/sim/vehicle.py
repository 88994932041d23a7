"""Vehicle configuration and state of the multicopter simulation.

:class:`VehicleConfig` collects the physical parameters of the vehicle (mass, inertia, drag, rotor
geometry). It is validated once on construction and immutable afterwards.

:class:`VehicleState` is the rigid-body state of the vehicle:

* `pos`: Position of the center of mass in the world frame.
* `quat`: Orientation as a scalar-last unit quaternion that rotates body vectors into the world
  frame.
* `vel`: Linear velocity in the world frame.
* `ang_vel`: Angular velocity in the body frame.

States are immutable as well. The simulator replaces its state after each step instead of modifying
it, so a state handed out to a consumer can never change under its feet.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation as R

from multicopter_sim.sim.errors import ConfigError
from multicopter_sim.sim.rotor import RotorConfig, symmetric_layout
from multicopter_sim.utils.rotations import euler_from_quaternion, normalize_quat

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

GRAVITY: float = 9.81


def _frozen(value: NDArray | list[float], shape: tuple[int, ...], name: str) -> NDArray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != shape:
        raise ConfigError(f"{name} must have shape {shape}, got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ConfigError(f"{name} must be finite, got {value}")
    arr.setflags(write=False)
    return arr


def _non_negative(value: NDArray | list[float], name: str) -> NDArray:
    arr = _frozen(value, (3,), name)
    if np.any(arr < 0):
        raise ConfigError(f"{name} must be non-negative, got {value}")
    return arr


@dataclass(frozen=True, eq=False)
class VehicleConfig:
    """Physical parameters of a multicopter.

    The preferred way to create a `VehicleConfig` is to load it from one of the TOML files in
    `config/` with :meth:`VehicleConfig.from_config`.

    Attributes:
        mass: Vehicle mass in kg.
        J: Inertia tensor in the body frame. Has to be symmetric positive-definite.
        rotors: The rotors of the vehicle.
        gravity: Gravitational acceleration in m/s^2.
        drag_coeff: Linear drag coefficients per body axis.
        quad_drag_coeff: Quadratic drag coefficients per body axis.
        ang_drag_coeff: Linear angular damping coefficients per body axis.
    """

    mass: float
    J: NDArray[np.floating]
    rotors: tuple[RotorConfig, ...]
    gravity: float = GRAVITY
    drag_coeff: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    quad_drag_coeff: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    ang_drag_coeff: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    # Calculated in __post_init__ from J
    J_inv: NDArray[np.floating] = field(init=False, repr=False)

    def __post_init__(self):
        """Validate the configuration and calculate derived parameters."""
        if not (np.isfinite(self.mass) and self.mass > 0):
            raise ConfigError(f"Mass must be positive, got {self.mass}")
        if not (np.isfinite(self.gravity) and self.gravity >= 0):
            raise ConfigError(f"Gravity must be non-negative, got {self.gravity}")
        rotors = tuple(self.rotors)
        if len(rotors) == 0:
            raise ConfigError("A multicopter needs at least one rotor")
        if not all(isinstance(r, RotorConfig) for r in rotors):
            raise ConfigError("All rotors must be RotorConfig instances")
        J = _frozen(self.J, (3, 3), "Inertia tensor")
        if not np.allclose(J, J.T):
            raise ConfigError(f"Inertia tensor must be symmetric, got {J}")
        try:
            np.linalg.cholesky(J)
        except np.linalg.LinAlgError:
            raise ConfigError(f"Inertia tensor must be positive-definite, got {J}") from None
        J_inv = np.linalg.inv(J)
        J_inv.setflags(write=False)
        object.__setattr__(self, "mass", float(self.mass))
        object.__setattr__(self, "gravity", float(self.gravity))
        object.__setattr__(self, "rotors", rotors)
        object.__setattr__(self, "J", J)
        object.__setattr__(self, "J_inv", J_inv)
        object.__setattr__(self, "drag_coeff", _non_negative(self.drag_coeff, "Drag coefficients"))
        object.__setattr__(
            self, "quad_drag_coeff", _non_negative(self.quad_drag_coeff, "Quadratic drag")
        )
        object.__setattr__(
            self, "ang_drag_coeff", _non_negative(self.ang_drag_coeff, "Angular drag")
        )

    @property
    def n_rotors(self) -> int:
        """Number of rotors."""
        return len(self.rotors)

    @property
    def max_speeds(self) -> NDArray[np.floating]:
        """Maximum commandable speed of each rotor."""
        return np.array([r.max_speed for r in self.rotors])

    def hover_commands(self) -> NDArray[np.floating]:
        """Rotor speeds that compensate gravity when the vehicle is level.

        Each rotor carries an equal share of the weight along the body z-axis.

        Returns:
            The rotor speeds. Shape: (n_rotors,).
        """
        share = self.mass * self.gravity / self.n_rotors
        speeds = np.zeros(self.n_rotors)
        for i, rotor in enumerate(self.rotors):
            if rotor.direction[2] <= 0:
                raise ConfigError(f"Rotor {i} produces no upward thrust, cannot hover")
            speeds[i] = np.sqrt(share / (rotor.kf * rotor.direction[2]))
            if speeds[i] > rotor.max_speed:
                raise ConfigError(
                    f"Rotor {i} needs speed {speeds[i]:.1f} to hover, max is {rotor.max_speed}"
                )
        return speeds

    @staticmethod
    def from_config(config: Mapping) -> VehicleConfig:
        """Create a vehicle configuration from the `[vehicle]` table of a config file.

        Rotors are either listed explicitly as `[[vehicle.rotors]]` tables, or generated from a
        `[vehicle.layout]` table with the arguments of
        :func:`~multicopter_sim.sim.rotor.symmetric_layout`.

        Args:
            config: The vehicle configuration table.
        """
        for key in ("mass", "J"):
            if key not in config:
                raise ConfigError(f"Vehicle configuration is missing the key '{key}'")
        if ("rotors" in config) == ("layout" in config):
            raise ConfigError("Vehicle configuration needs exactly one of 'rotors' or 'layout'")
        if "rotors" in config:
            rotors = tuple(RotorConfig.from_config(r) for r in config["rotors"])
        else:
            layout = config["layout"]
            try:
                rotors = symmetric_layout(**dict(layout.items()))
            except TypeError as e:
                raise ConfigError(f"Invalid rotor layout: {e}") from e
        optional = ("gravity", "drag_coeff", "quad_drag_coeff", "ang_drag_coeff")
        kwargs = {k: config[k] for k in optional if k in config}
        vehicle = VehicleConfig(mass=config["mass"], J=config["J"], rotors=rotors, **kwargs)
        logger.debug(f"Loaded vehicle with {vehicle.n_rotors} rotors and mass {vehicle.mass} kg")
        return vehicle


def _default_quat() -> NDArray[np.floating]:
    return np.array([0.0, 0.0, 0.0, 1.0])


@dataclass(frozen=True, eq=False)
class VehicleState:
    """Rigid-body state of the vehicle.

    The arrays are copied on construction and read-only afterwards. The orientation quaternion is
    normalized on construction.
    """

    pos: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Position of the center of mass in the world frame."""
    quat: NDArray[np.floating] = field(default_factory=_default_quat)
    """Scalar-last world <- body orientation quaternion."""
    vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Linear velocity in the world frame."""
    ang_vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Angular velocity in the body frame."""

    def __post_init__(self):
        """Copy, validate and freeze the state arrays."""
        object.__setattr__(self, "pos", _frozen(self.pos, (3,), "Position"))
        object.__setattr__(self, "vel", _frozen(self.vel, (3,), "Velocity"))
        object.__setattr__(self, "ang_vel", _frozen(self.ang_vel, (3,), "Angular velocity"))
        quat = _frozen(self.quat, (4,), "Quaternion")
        try:
            quat = normalize_quat(quat)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        quat.setflags(write=False)
        object.__setattr__(self, "quat", quat)

    @property
    def rotation(self) -> R:
        """Orientation as scipy rotation (world <- body)."""
        return R.from_quat(self.quat)

    @property
    def rpy(self) -> NDArray[np.floating]:
        """Roll, pitch, yaw angles in radians."""
        return np.array(euler_from_quaternion(*self.quat))

    def as_array(self) -> NDArray[np.floating]:
        """Stack the state into a 13D vector [pos, quat, vel, ang_vel]."""
        return np.concatenate([self.pos, self.quat, self.vel, self.ang_vel])

    @staticmethod
    def from_array(x: NDArray[np.floating]) -> VehicleState:
        """Create a state from a 13D vector [pos, quat, vel, ang_vel]."""
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (13,):
            raise ConfigError(f"State vector must have shape (13,), got {x.shape}")
        return VehicleState(pos=x[0:3], quat=x[3:7], vel=x[7:10], ang_vel=x[10:13])

    @staticmethod
    def from_config(config: Mapping) -> VehicleState:
        """Create a state from an initial state table.

        Args:
            config: Table with the optional keys `pos`, `quat` or `rpy`, `vel` and `ang_vel`.
                Missing keys use the defaults of a vehicle at rest at the origin.
        """
        unknown = set(config.keys()) - {"pos", "quat", "rpy", "vel", "ang_vel"}
        if unknown:
            raise ConfigError(f"Unknown keys {sorted(unknown)} in initial state")
        if "quat" in config and "rpy" in config:
            raise ConfigError("Initial state may specify either 'quat' or 'rpy', not both")
        kwargs = {k: config[k] for k in ("pos", "quat", "vel", "ang_vel") if k in config}
        if "rpy" in config:
            kwargs["quat"] = R.from_euler("xyz", _frozen(config["rpy"], (3,), "rpy")).as_quat()
        return VehicleState(**kwargs)
