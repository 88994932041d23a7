from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation as R

from multicopter_sim.sim.errors import ConfigError
from multicopter_sim.sim.rotor import RotorConfig, symmetric_layout
from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState
from multicopter_sim.utils import load_config


LAYOUT = {"n_rotors": 4, "arm_len": 0.2, "kf": 1e-5, "km": 0.02, "max_speed": 1e3}


def rotors() -> tuple[RotorConfig, ...]:
    return symmetric_layout(4, arm_len=0.2, kf=1e-5, km=0.02, max_speed=1000.0)


@pytest.mark.unit
def test_vehicle_config(quad_config: VehicleConfig):
    assert quad_config.n_rotors == 4
    assert np.array_equal(quad_config.max_speeds, np.full(4, 1000.0))
    assert np.allclose(quad_config.J @ quad_config.J_inv, np.eye(3))
    assert np.array_equal(quad_config.drag_coeff, np.zeros(3))
    assert quad_config.gravity == 9.81
    assert isinstance(quad_config.rotors, tuple)


@pytest.mark.unit
def test_vehicle_config_is_immutable(quad_config: VehicleConfig):
    with pytest.raises(ValueError):
        quad_config.J[0, 0] = 1.0
    with pytest.raises(AttributeError):
        quad_config.mass = 2.0


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"mass": 0.0},
        {"mass": -1.0},
        {"mass": np.nan},
        {"rotors": ()},
        {"rotors": ("not a rotor",)},
        {"J": np.diag([0.01, -0.01, 0.02])},
        {"J": np.zeros((3, 3))},
        {"J": [[0.01, 0.001, 0.0], [0.0, 0.01, 0.0], [0.0, 0.0, 0.02]]},
        {"J": np.eye(2)},
        {"gravity": -9.81},
        {"drag_coeff": [-0.1, 0.0, 0.0]},
        {"quad_drag_coeff": [0.1, 0.1]},
    ],
)
def test_invalid_vehicle_config(kwargs: dict):
    params = {"mass": 1.0, "J": np.diag([0.01, 0.01, 0.02]), "rotors": rotors()}
    params.update(kwargs)
    with pytest.raises(ConfigError):
        VehicleConfig(**params)


@pytest.mark.unit
def test_hover_commands(quad_config: VehicleConfig):
    speeds = quad_config.hover_commands()
    thrust = sum(r.kf * s**2 for r, s in zip(quad_config.rotors, speeds))
    assert speeds.shape == (4,)
    assert np.isclose(thrust, quad_config.mass * quad_config.gravity)
    assert np.allclose(speeds, speeds[0])


@pytest.mark.unit
def test_hover_commands_exceed_max_speed():
    weak = symmetric_layout(4, arm_len=0.2, kf=1e-5, km=0.02, max_speed=100.0)
    config = VehicleConfig(mass=1.0, J=np.diag([0.01, 0.01, 0.02]), rotors=weak)
    with pytest.raises(ConfigError):
        config.hover_commands()


@pytest.mark.unit
def test_vehicle_from_rotor_list():
    config = {
        "mass": 0.5,
        "J": np.diag([0.002, 0.002, 0.004]).tolist(),
        "drag_coeff": [0.01, 0.01, 0.02],
        "rotors": [
            {"position": [0.1, 0.0, 0.0], "spin": "ccw", "kf": 1e-6, "km": 0.01, "max_speed": 2e3},
            {"position": [-0.1, 0.0, 0.0], "spin": "ccw", "kf": 1e-6, "km": 0.01, "max_speed": 2e3},
            {"position": [0.0, 0.1, 0.0], "spin": "cw", "kf": 1e-6, "km": 0.01, "max_speed": 2e3},
            {"position": [0.0, -0.1, 0.0], "spin": "cw", "kf": 1e-6, "km": 0.01, "max_speed": 2e3},
        ],
    }
    vehicle = VehicleConfig.from_config(config)
    assert vehicle.n_rotors == 4
    assert vehicle.mass == 0.5
    assert np.array_equal(vehicle.drag_coeff, [0.01, 0.01, 0.02])
    assert [r.spin for r in vehicle.rotors] == [1, 1, -1, -1]


@pytest.mark.unit
def test_vehicle_from_layout():
    config = {
        "mass": 1.5,
        "J": np.diag([0.03, 0.03, 0.05]).tolist(),
        "layout": {"n_rotors": 6, "arm_len": 0.25, "kf": 1.2e-5, "km": 0.016, "max_speed": 900},
    }
    vehicle = VehicleConfig.from_config(config)
    assert vehicle.n_rotors == 6
    assert all(np.isclose(np.linalg.norm(r.position), 0.25) for r in vehicle.rotors)


@pytest.mark.unit
@pytest.mark.parametrize(
    "config",
    [
        {"J": np.eye(3).tolist(), "layout": {}},
        {"mass": 1.0, "layout": {}},
        {"mass": 1.0, "J": np.eye(3).tolist()},
        {"mass": 1.0, "J": np.eye(3).tolist(), "rotors": [], "layout": {}},
        {"mass": 1.0, "J": np.eye(3).tolist(), "layout": {"n_rotors": 4, "arms": 0.2}},
        {"mass": 1.0, "J": np.eye(3).tolist(), "layout": {**LAYOUT, "n_rotors": 3}},
        {"mass": 1.0, "J": np.eye(3).tolist(), "rotors": []},
    ],
)
def test_invalid_vehicle_from_config(config: dict):
    with pytest.raises(ConfigError):
        VehicleConfig.from_config(config)


@pytest.mark.unit
@pytest.mark.parametrize("config_file", ["quadcopter.toml", "hexacopter.toml"])
def test_vehicle_from_config_file(config_file: str):
    config = load_config(Path(__file__).parents[3] / "config" / config_file)
    vehicle = VehicleConfig.from_config(config.vehicle)
    speeds = vehicle.hover_commands()
    assert np.all(speeds > 0)
    assert np.all(speeds < vehicle.max_speeds)


@pytest.mark.unit
def test_vehicle_state_defaults():
    state = VehicleState()
    assert np.array_equal(state.pos, np.zeros(3))
    assert np.array_equal(state.quat, [0, 0, 0, 1])
    assert np.array_equal(state.vel, np.zeros(3))
    assert np.array_equal(state.ang_vel, np.zeros(3))
    assert np.allclose(state.rotation.as_matrix(), np.eye(3))
    assert np.allclose(state.rpy, np.zeros(3))


@pytest.mark.unit
def test_vehicle_state_normalizes_quat():
    state = VehicleState(quat=[0.0, 0.0, 2.0, 2.0])
    assert np.isclose(np.linalg.norm(state.quat), 1.0)
    assert np.allclose(state.rpy, [0, 0, np.pi / 2])


@pytest.mark.unit
def test_vehicle_state_copies_and_freezes():
    pos = np.array([1.0, 2.0, 3.0])
    state = VehicleState(pos=pos)
    pos[0] = 10.0
    assert state.pos[0] == 1.0
    with pytest.raises(ValueError):
        state.pos[0] = 5.0
    with pytest.raises(ValueError):
        state.quat[3] = 0.5
    with pytest.raises(AttributeError):
        state.pos = np.zeros(3)


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"quat": [0.0, 0.0, 0.0, 0.0]},
        {"quat": [0.0, 0.0, 1.0]},
        {"pos": [np.nan, 0.0, 0.0]},
        {"vel": [0.0, np.inf, 0.0]},
        {"ang_vel": np.zeros(4)},
    ],
)
def test_invalid_vehicle_state(kwargs: dict):
    with pytest.raises(ConfigError):
        VehicleState(**kwargs)


@pytest.mark.unit
def test_vehicle_state_array():
    rng = np.random.default_rng(0)
    state = VehicleState(
        pos=rng.normal(size=3),
        quat=R.from_euler("xyz", rng.uniform(-np.pi, np.pi, size=3)).as_quat(),
        vel=rng.normal(size=3),
        ang_vel=rng.normal(size=3),
    )
    x = state.as_array()
    assert x.shape == (13,)
    restored = VehicleState.from_array(x)
    assert np.allclose(restored.as_array(), x)
    with pytest.raises(ConfigError):
        VehicleState.from_array(np.zeros(12))


@pytest.mark.unit
def test_vehicle_state_from_config():
    state = VehicleState.from_config({"pos": [0, 0, 1], "rpy": [0.1, -0.2, 0.3]})
    assert np.array_equal(state.pos, [0, 0, 1])
    assert np.allclose(state.rpy, [0.1, -0.2, 0.3])
    assert np.allclose(state.rotation.as_euler("xyz"), [0.1, -0.2, 0.3])
    state = VehicleState.from_config({"quat": [0, 0, 0, 1], "ang_vel": [0, 0, 1]})
    assert np.array_equal(state.ang_vel, [0, 0, 1])
    with pytest.raises(ConfigError):
        VehicleState.from_config({"quat": [0, 0, 0, 1], "rpy": [0, 0, 0]})
    with pytest.raises(ConfigError):
        VehicleState.from_config({"position": [0, 0, 1]})
