"""Seeded disturbances for motor commands and external forces.

Disturbances are applied by the simulator in two places:

* `action`: added to the motor commands before they reach the rotor model. The rotor model clamps
  the disturbed commands to the valid speed range.
* `dynamics`: sampled as an external force in the world frame, e.g. wind.

Each disturbance owns its random number generator. Seeding all disturbances of a simulator makes
disturbed runs reproducible.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import numpy as np

from multicopter_sim.sim.errors import ConfigError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def _broadcast(value: float | list[float] | NDArray, dim: int, name: str) -> NDArray[np.floating]:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return np.full(dim, float(arr))
    if arr.shape != (dim,):
        raise ConfigError(f"{name} must be a scalar or have shape ({dim},), got {arr.shape}")
    return arr


class Disturbance:
    """Identity disturbance and base class for all disturbances."""

    def __init__(self, dim: int, mask: NDArray[np.bool_] | list[bool] | None = None):
        """Initialize the disturbance.

        Args:
            dim: Dimension of the disturbed quantity.
            mask: Optional boolean mask that restricts the disturbance to some dimensions.
        """
        if dim < 1:
            raise ConfigError(f"Disturbance dimension must be positive, got {dim}")
        self.dim = dim
        self.mask = np.ones(dim, dtype=bool) if mask is None else np.asarray(mask, dtype=bool)
        if self.mask.shape != (dim,):
            raise ConfigError(f"Mask must have shape ({dim},), got {self.mask.shape}")
        self.np_random = np.random.default_rng()

    def seed(self, seed: int | None = None):
        """Seed the random number generator. A seed of None draws fresh entropy."""
        self.np_random = np.random.default_rng(seed)

    def sample(self) -> NDArray[np.floating]:
        """Draw the unmasked disturbance for the current step."""
        return np.zeros(self.dim)

    def apply(self, target: NDArray[np.floating]) -> NDArray[np.floating]:
        """Return a disturbed copy of the target.

        Args:
            target: The quantity to disturb. Shape: (dim,).
        """
        return target + self.sample() * self.mask


class ConstantDisturbance(Disturbance):
    """Constant offset, e.g. a steady wind or a motor bias."""

    def __init__(
        self,
        dim: int,
        mask: NDArray[np.bool_] | list[bool] | None = None,
        value: float | list[float] = 0.0,
    ):
        """Initialize the constant disturbance.

        Args:
            dim: Dimension of the disturbed quantity.
            mask: Optional boolean mask that restricts the disturbance to some dimensions.
            value: The offset, either per dimension or a scalar for all dimensions.
        """
        super().__init__(dim, mask)
        self.value = _broadcast(value, dim, "value")

    def sample(self) -> NDArray[np.floating]:
        """Return the constant offset."""
        return self.value.copy()


class UniformDisturbance(Disturbance):
    """I.i.d. uniform disturbance ~ U(low, high) per step."""

    def __init__(
        self,
        dim: int,
        mask: NDArray[np.bool_] | list[bool] | None = None,
        low: float | list[float] = 0.0,
        high: float | list[float] = 1.0,
    ):
        """Initialize the uniform disturbance.

        Args:
            dim: Dimension of the disturbed quantity.
            mask: Optional boolean mask that restricts the disturbance to some dimensions.
            low: Lower bound of the distribution.
            high: Upper bound of the distribution.
        """
        super().__init__(dim, mask)
        self.low = _broadcast(low, dim, "low")
        self.high = _broadcast(high, dim, "high")
        if np.any(self.low > self.high):
            raise ConfigError(f"Lower bound {low} exceeds upper bound {high}")

    def sample(self) -> NDArray[np.floating]:
        """Draw a uniform sample."""
        return self.np_random.uniform(self.low, self.high, size=self.dim)


class GaussianDisturbance(Disturbance):
    """I.i.d. zero-mean Gaussian disturbance per step."""

    def __init__(
        self,
        dim: int,
        mask: NDArray[np.bool_] | list[bool] | None = None,
        std: float | list[float] = 1.0,
    ):
        """Initialize the Gaussian disturbance.

        Args:
            dim: Dimension of the disturbed quantity.
            mask: Optional boolean mask that restricts the disturbance to some dimensions.
            std: Standard deviation of the distribution.
        """
        super().__init__(dim, mask)
        self.std = _broadcast(std, dim, "std")
        if np.any(self.std < 0):
            raise ConfigError(f"Standard deviation must be non-negative, got {std}")

    def sample(self) -> NDArray[np.floating]:
        """Draw a Gaussian sample."""
        return self.np_random.normal(0.0, self.std, size=self.dim)


class DisturbanceList(list):
    """Chain of disturbances applied one after the other."""

    def seed(self, seed: int | None = None):
        """Seed all disturbances."""
        for d in self:
            d.seed(seed)

    def apply(self, target: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply all disturbances in order."""
        for d in self:
            target = d.apply(target)
        return target

    @staticmethod
    def from_specs(specs: list[dict], dim: int) -> DisturbanceList:
        """Create a DisturbanceList from a list of disturbance specifications.

        Args:
            specs: Dictionaries with a `type` key naming a disturbance class of this module and the
                keyword arguments of that class.
            dim: Dimension of the disturbed quantity.
        """
        disturbances = DisturbanceList()
        for spec in specs:
            if "type" not in spec:
                raise ConfigError(f"Disturbance specification {spec} has no 'type' key")
            cls = getattr(sys.modules[__name__], spec["type"], None)
            if not (isinstance(cls, type) and issubclass(cls, Disturbance)):
                raise ConfigError(f"Unknown disturbance type '{spec['type']}'")
            kwargs = {k: v for k, v in spec.items() if k not in ("type", "dim")}
            try:
                disturbances.append(cls(dim=dim, **kwargs))
            except TypeError as e:
                raise ConfigError(f"Invalid arguments for {spec['type']}: {e}") from e
        return disturbances
