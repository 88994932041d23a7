import numpy as np
import pytest
from scipy.spatial.transform import Rotation as R

from multicopter_sim.sim.errors import IntegrationError, InvalidTimestep
from multicopter_sim.sim.integrator import IntegrationMode, advance, integrate, state_derivative
from multicopter_sim.sim.rotor import ForceTorque, RotorConfig
from multicopter_sim.sim.vehicle import VehicleConfig, VehicleState


def rigid_body(J: list[float]) -> VehicleConfig:
    return VehicleConfig(mass=2.0, J=np.diag(J), rotors=(RotorConfig.from_position([0, 0, 0]),))


def advance_n(
    state: VehicleState,
    force: np.ndarray,
    torque: np.ndarray,
    config: VehicleConfig,
    dt: float,
    n_steps: int,
    mode: IntegrationMode = IntegrationMode.RK4,
) -> VehicleState:
    for _ in range(n_steps):
        state = advance(state, force, torque, config, dt, mode)
    return state


@pytest.mark.unit
def test_default_mode_is_rk4():
    assert IntegrationMode.DEFAULT == IntegrationMode.RK4
    assert IntegrationMode("semi_implicit_euler") == IntegrationMode.SEMI_IMPLICIT_EULER


@pytest.mark.unit
def test_state_derivative():
    config = rigid_body([1.0, 1.0, 1.0])
    x = VehicleState(vel=[1.0, 2.0, 3.0], ang_vel=[0.0, 0.0, 1.0]).as_array()
    x_dot = state_derivative(x, np.array([0.0, 0.0, 4.0]), np.array([1.0, 0.0, 0.0]), config)
    assert np.allclose(x_dot[0:3], [1, 2, 3])
    assert np.allclose(x_dot[3:7], [0, 0, 0.5, 0])
    assert np.allclose(x_dot[7:10], [0, 0, 2])
    assert np.allclose(x_dot[10:13], [1, 0, 0])


@pytest.mark.unit
def test_gyroscopic_coupling():
    config = rigid_body([1.0, 2.0, 3.0])
    x = VehicleState(ang_vel=[1.0, 1.0, 0.0]).as_array()
    x_dot = state_derivative(x, np.zeros(3), np.zeros(3), config)
    # J^-1 (-w x Jw) with Jw = (1, 2, 0)
    assert np.allclose(x_dot[10:13], [0, 0, -1.0 / 3.0])


@pytest.mark.unit
@pytest.mark.parametrize("mode", IntegrationMode)
def test_constant_acceleration(mode: IntegrationMode):
    config = rigid_body([0.01, 0.01, 0.02])
    state = VehicleState(vel=[1.0, 0.0, 0.0])
    force = np.array([0.0, 0.0, 4.0])  # 2 m/s^2 for a mass of 2 kg
    state = advance_n(state, force, np.zeros(3), config, dt=0.01, n_steps=100, mode=mode)
    assert np.allclose(state.vel, [1.0, 0.0, 2.0])
    assert np.allclose(state.quat, [0, 0, 0, 1])
    # RK4 is exact for quadratic trajectories
    if mode == IntegrationMode.RK4:
        assert np.allclose(state.pos, [1.0, 0.0, 1.0])
    else:
        assert np.allclose(state.pos, [1.0, 0.0, 1.0], atol=0.02)


@pytest.mark.unit
@pytest.mark.parametrize("axis", [0, 1, 2])
def test_principal_axis_spin(axis: int):
    config = rigid_body([1.0, 2.0, 3.0])
    ang_vel = np.zeros(3)
    ang_vel[axis] = 2.0
    state = VehicleState(ang_vel=ang_vel)
    state = advance_n(state, np.zeros(3), np.zeros(3), config, dt=0.01, n_steps=100)
    assert np.allclose(state.ang_vel, ang_vel)
    expected = R.from_rotvec(ang_vel * 1.0)
    assert (expected.inv() * state.rotation).magnitude() < 1e-8


@pytest.mark.unit
def test_torque_free_conservation():
    config = rigid_body([1.0, 2.0, 3.0])
    state = VehicleState(ang_vel=[0.5, 0.3, -0.4])

    def energy(s: VehicleState) -> float:
        return 0.5 * s.ang_vel @ config.J @ s.ang_vel

    def momentum(s: VehicleState) -> np.ndarray:
        return s.rotation.apply(config.J @ s.ang_vel)  # World frame

    e0, h0 = energy(state), momentum(state)
    state = advance_n(state, np.zeros(3), np.zeros(3), config, dt=0.001, n_steps=2000)
    assert np.isclose(energy(state), e0, rtol=1e-6)
    assert np.allclose(momentum(state), h0, atol=1e-6)
    assert not np.allclose(state.ang_vel, [0.5, 0.3, -0.4])  # Axes are coupled


@pytest.mark.unit
def test_quaternion_stays_normalized():
    config = rigid_body([1.0, 2.0, 3.0])
    state = VehicleState(ang_vel=[3.0, -2.0, 5.0])
    for mode in IntegrationMode:
        s = advance_n(state, np.zeros(3), np.array([0.1, 0.0, -0.1]), config, 0.01, 100, mode)
        assert abs(np.linalg.norm(s.quat) - 1.0) < 1e-12


@pytest.mark.unit
def test_integration_modes_differ():
    config = rigid_body([0.01, 0.01, 0.02])
    state = VehicleState(vel=[1.0, 0.0, 0.0], ang_vel=[0.0, 1.0, 0.0])
    force, torque = np.array([0.0, 0.0, 20.0]), np.array([0.0, 0.001, 0.0])
    rk4 = advance_n(state, force, torque, config, 0.01, 50, IntegrationMode.RK4)
    euler = advance_n(state, force, torque, config, 0.01, 50, IntegrationMode.SEMI_IMPLICIT_EULER)
    assert not np.allclose(rk4.as_array(), euler.as_array())
    assert np.allclose(rk4.pos, euler.pos, atol=0.1)


@pytest.mark.unit
@pytest.mark.parametrize("dt", [0.0, -0.01, np.nan, np.inf])
def test_invalid_timestep(dt: float):
    config = rigid_body([1.0, 1.0, 1.0])
    with pytest.raises(InvalidTimestep):
        advance(VehicleState(), np.zeros(3), np.zeros(3), config, dt)


@pytest.mark.unit
def test_unknown_mode():
    config = rigid_body([1.0, 1.0, 1.0])
    with pytest.raises(NotImplementedError):
        advance(VehicleState(), np.zeros(3), np.zeros(3), config, 0.01, mode="euler")


@pytest.mark.unit
@pytest.mark.parametrize("mode", IntegrationMode)
def test_world_fixed_force_on_spinning_body(mode: IntegrationMode):
    """A force fixed in the world frame does not turn with the body within a step."""
    config = rigid_body([0.01, 0.01, 0.02])

    def world_force(s: VehicleState) -> ForceTorque:
        return ForceTorque(s.rotation.apply(np.array([0.0, 4.0, 0.0]), inverse=True), np.zeros(3))

    state = VehicleState(ang_vel=[0.0, 0.0, 30.0])
    for _ in range(50):
        state = integrate(state, world_force, config, 0.02, mode)
    assert np.allclose(state.vel, [0.0, 2.0, 0.0], atol=1e-9)
    assert np.allclose(state.ang_vel, [0.0, 0.0, 30.0])


@pytest.mark.unit
def test_wrench_evaluated_per_stage():
    config = rigid_body([1.0, 1.0, 1.0])
    calls = {IntegrationMode.RK4: 0, IntegrationMode.SEMI_IMPLICIT_EULER: 0}
    for mode in IntegrationMode:

        def wrench(s: VehicleState, mode: IntegrationMode = mode) -> ForceTorque:
            calls[mode] += 1
            return ForceTorque(np.zeros(3), np.zeros(3))

        integrate(VehicleState(), wrench, config, 0.01, mode)
    assert calls == {IntegrationMode.RK4: 4, IntegrationMode.SEMI_IMPLICIT_EULER: 1}


@pytest.mark.unit
def test_diverging_euler_raises():
    config = rigid_body([0.01, 0.02, 0.03])
    state = VehicleState(ang_vel=[30.0, -20.0, 50.0])
    with pytest.raises(IntegrationError):
        advance_n(
            state,
            np.zeros(3),
            np.array([0.1, 0.0, -0.1]),
            config,
            dt=0.01,
            n_steps=100,
            mode=IntegrationMode.SEMI_IMPLICIT_EULER,
        )


@pytest.mark.unit
@pytest.mark.parametrize("mode", IntegrationMode)
def test_overflowing_step_raises(mode: IntegrationMode):
    config = rigid_body([1.0, 1.0, 1.0])
    with pytest.raises(IntegrationError):
        advance(VehicleState(), np.array([0.0, 0.0, 4.0]), np.zeros(3), config, 1e200, mode)
