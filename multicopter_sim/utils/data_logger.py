"""State logger that stores the simulated trajectory of each run in a JSONL file."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from multicopter_sim.sim.vehicle import VehicleState


class StateLogger:
    """Write the time, motor commands and vehicle state of each step to a JSONL file.

    Each run is stored in a separate file named `run_<index>.jsonl` in the log directory. The
    logger picks the next free index so that existing logs are never overwritten.
    """

    def __init__(self, log_dir: str | os.PathLike = "logs"):
        """Create the log directory if necessary and open the file of the next run.

        Args:
            log_dir: The directory where the log files are stored.
        """
        os.makedirs(log_dir, exist_ok=True)
        self.log_dir = os.fspath(log_dir)
        self.run_index = self._find_next_run_index()
        self.path = os.path.join(self.log_dir, f"run_{self.run_index}.jsonl")
        self._file: TextIO | None = open(self.path, "w")

    def _find_next_run_index(self) -> int:
        indices = []
        for name in os.listdir(self.log_dir):
            if name.startswith("run_") and name.endswith(".jsonl"):
                try:
                    indices.append(int(name[len("run_") : -len(".jsonl")]))
                except ValueError:
                    continue
        return max(indices, default=-1) + 1

    def log_step(self, time: float, commands: NDArray[np.floating], state: VehicleState):
        """Append one step to the log.

        Args:
            time: The simulation time after the step.
            commands: The motor commands applied during the step.
            state: The vehicle state after the step.
        """
        if self._file is None:
            raise RuntimeError(f"Log file {self.path} is already closed")
        step_data = {
            "time": time,
            "commands": commands.tolist(),
            "pos": state.pos.tolist(),
            "quat": state.quat.tolist(),
            "vel": state.vel.tolist(),
            "ang_vel": state.ang_vel.tolist(),
        }
        self._file.write(json.dumps(step_data) + "\n")

    def close(self):
        """Flush and close the log file."""
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None

    def __enter__(self) -> StateLogger:
        return self

    def __exit__(self, *exc_info):
        self.close()
