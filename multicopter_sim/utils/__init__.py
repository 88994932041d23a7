"""Utility module."""

from multicopter_sim.utils.data_logger import StateLogger
from multicopter_sim.utils.rotations import euler_from_quaternion, map2pi
from multicopter_sim.utils.utils import load_config

__all__ = ["StateLogger", "euler_from_quaternion", "load_config", "map2pi"]
