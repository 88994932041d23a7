"""Fly a simulated multicopter to the hover target of a configuration file.

Run as:

    $ python scripts/sim.py --config quadcopter.toml

The simulator runs at the frequency given in the config file and the hover controller recomputes
the rotor speeds after every step. Use `--log_dir` to store the trajectory as JSONL.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import fire
import numpy as np

from multicopter_sim.control import HoverController
from multicopter_sim.sim import MulticopterSimulator
from multicopter_sim.utils import StateLogger, load_config

if TYPE_CHECKING:
    from ml_collections import ConfigDict


logger = logging.getLogger(__name__)


def simulate(
    config: str = "quadcopter.toml",
    duration: float | None = None,
    integration: str | None = None,
    log_dir: str | None = None,
) -> list[float]:
    """Simulate the vehicle of a configuration file under hover control.

    Args:
        config: The name of the configuration file. Assumes the file is in `config/`.
        duration: The simulated time in seconds. If None, the duration of the config file is used.
        integration: The integration scheme ("rk4" or "semi_implicit_euler"). If None, the scheme
            of the config file is used.
        log_dir: Directory to store the trajectory in. If None, nothing is logged to disk.

    Returns:
        The final position of the vehicle.
    """
    config = load_config(Path(__file__).parents[1] / "config" / config)
    if integration is not None:
        config.sim.integration = integration
    duration = config.sim.duration if duration is None else duration
    sim = MulticopterSimulator.from_config(config)
    sim.seed(config.sim.get("seed", 0))
    controller = HoverController(sim.config, **config.controller.hover.to_dict())

    dt = 1 / config.sim.freq
    n_steps = int(round(duration * config.sim.freq))
    state_logger = StateLogger(log_dir) if log_dir is not None else None
    try:
        for _ in range(n_steps):
            sim.set_motor_commands(controller.compute_control(sim.state))
            sim.step(dt)
            if state_logger is not None:
                state_logger.log_step(sim.time, sim.commands, sim.state)
    finally:
        if state_logger is not None:
            state_logger.close()

    log_run_stats(sim, controller, config)
    return sim.state.pos.tolist()


def log_run_stats(sim: MulticopterSimulator, controller: HoverController, config: ConfigDict):
    """Log the statistics of a single run."""
    pos_err = np.linalg.norm(controller.target_pos - sim.state.pos)
    rpy = np.rad2deg(sim.state.rpy)
    logger.info(
        f"Simulated time (s): {sim.time:.3f}\nSteps: {sim.tick}\n"
        f"Integration: {sim.integration.value}\nFinal position: {sim.state.pos}\n"
        f"Position error (m): {pos_err:.4f}\nFinal roll, pitch, yaw (deg): {rpy}\n"
        f"Rotors: {sim.config.n_rotors}, mass (kg): {config.vehicle.mass}"
    )


if __name__ == "__main__":
    logging.basicConfig()
    logging.getLogger("multicopter_sim").setLevel(logging.INFO)
    logger.setLevel(logging.INFO)
    fire.Fire(simulate, serialize=lambda _: None)
