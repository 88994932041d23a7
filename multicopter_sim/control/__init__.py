"""Control module for the multicopter simulation.

This module contains the base controller class that defines the interface for all controllers, and
an example implementation:

* :class:`~.Controller`: The abstract base class defining the interface for all controllers.
* :class:`~.HoverController`: A geometric position controller that holds the vehicle at a target
  position and yaw.
"""

from multicopter_sim.control.controller import Controller
from multicopter_sim.control.hover_controller import HoverController, allocation_matrix

__all__ = ["Controller", "HoverController", "allocation_matrix"]
