import numpy as np
import pytest

from multicopter_sim.sim.rotor import RotorConfig, SpinDirection, symmetric_layout
from multicopter_sim.sim.vehicle import VehicleConfig


@pytest.fixture
def quad_config() -> VehicleConfig:
    """A 1 kg quadcopter in "X" configuration without drag."""
    rotors = symmetric_layout(n_rotors=4, arm_len=0.2, kf=1e-5, km=0.02, max_speed=1000.0)
    return VehicleConfig(mass=1.0, J=np.diag([0.01, 0.01, 0.02]), rotors=rotors)


@pytest.fixture
def drag_quad_config() -> VehicleConfig:
    """The quadcopter of `quad_config` with linear and quadratic drag."""
    rotors = symmetric_layout(n_rotors=4, arm_len=0.2, kf=1e-5, km=0.02, max_speed=1000.0)
    return VehicleConfig(
        mass=1.0,
        J=np.diag([0.01, 0.01, 0.02]),
        rotors=rotors,
        drag_coeff=[0.05, 0.05, 0.05],
        quad_drag_coeff=[0.1, 0.1, 0.1],
    )


@pytest.fixture
def single_rotor() -> RotorConfig:
    return RotorConfig.from_position(
        [0.1, 0.0, 0.0], spin=SpinDirection.CCW, kf=2e-5, km=0.05, max_speed=500.0
    )
