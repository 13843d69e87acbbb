"""Telemetry sinks for reference, trajectory and command recording.

The orchestrator reports what it is doing through an optional TelemetrySink.
CsvTelemetry records everything to CSV files for post-run analysis:
- Reference poses produced by the motion planner
- Trajectories accepted from the global planner
- Shaped commands together with the robot pose they were computed at
"""

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, TextIO

from .geometry import Pose, Twist


class TelemetrySink(Protocol):
    def publish_reference(self, pose: Pose, stamp: float) -> None:
        ...

    def publish_trajectory(self, waypoints: Sequence[Pose], stamp: float) -> None:
        ...

    def publish_command(self, pose: Pose, command: Twist, stamp: float) -> None:
        ...


class CsvTelemetry:
    """Manages CSV file creation and logging for controller telemetry.

    Attributes:
        run_dir: Directory path for this run's output files.
        reference_output_path: CSV of reference poses.
        trajectory_output_path: CSV of accepted trajectories.
        command_output_path: CSV of shaped commands.
    """

    REFERENCE_HEADER = ["timestamp", "x", "y", "theta"]
    TRAJECTORY_HEADER = ["timestamp", "index", "x", "y", "theta"]
    COMMAND_HEADER = ["timestamp", "x", "y", "theta", "vx", "vy", "omega"]

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the recorder.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates a
                timestamped directory. Can also be set via the RUN_DIR
                environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.reference_csv_file: Optional[TextIO] = None
        self.reference_csv_writer: Any = None
        self.trajectory_csv_file: Optional[TextIO] = None
        self.trajectory_csv_writer: Any = None
        self.command_csv_file: Optional[TextIO] = None
        self.command_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.reference_output_path: Path = self.run_dir / "reference_data.csv"
        self.trajectory_output_path: Path = self.run_dir / "trajectory_data.csv"
        self.command_output_path: Path = self.run_dir / "command_data.csv"

    def setup(self) -> None:
        """Open all CSV files and write their headers.

        Must be called before publishing data.
        """
        self.reference_csv_file = open(self.reference_output_path, "w", newline="")
        self.reference_csv_writer = csv.writer(self.reference_csv_file)
        self.reference_csv_writer.writerow(self.REFERENCE_HEADER)

        self.trajectory_csv_file = open(self.trajectory_output_path, "w", newline="")
        self.trajectory_csv_writer = csv.writer(self.trajectory_csv_file)
        self.trajectory_csv_writer.writerow(self.TRAJECTORY_HEADER)

        self.command_csv_file = open(self.command_output_path, "w", newline="")
        self.command_csv_writer = csv.writer(self.command_csv_file)
        self.command_csv_writer.writerow(self.COMMAND_HEADER)

        self.flush()

    def publish_reference(self, pose: Pose, stamp: float) -> None:
        if self.reference_csv_writer is None:
            raise RuntimeError("CsvTelemetry.setup() must be called before publishing")
        self.reference_csv_writer.writerow(
            [f"{stamp:.6f}", f"{pose.x:.6f}", f"{pose.y:.6f}", f"{pose.theta:.6f}"]
        )

    def publish_trajectory(self, waypoints: Sequence[Pose], stamp: float) -> None:
        if self.trajectory_csv_writer is None:
            raise RuntimeError("CsvTelemetry.setup() must be called before publishing")
        for index, waypoint in enumerate(waypoints):
            self.trajectory_csv_writer.writerow(
                [
                    f"{stamp:.6f}",
                    index,
                    f"{waypoint.x:.6f}",
                    f"{waypoint.y:.6f}",
                    f"{waypoint.theta:.6f}",
                ]
            )
        if self.trajectory_csv_file is not None:
            self.trajectory_csv_file.flush()

    def publish_command(self, pose: Pose, command: Twist, stamp: float) -> None:
        if self.command_csv_writer is None:
            raise RuntimeError("CsvTelemetry.setup() must be called before publishing")
        self.command_csv_writer.writerow(
            [
                f"{stamp:.6f}",
                f"{pose.x:.6f}",
                f"{pose.y:.6f}",
                f"{pose.theta:.6f}",
                f"{command.vx:.6f}",
                f"{command.vy:.6f}",
                f"{command.omega:.6f}",
            ]
        )

    def flush(self) -> None:
        for f in (self.reference_csv_file, self.trajectory_csv_file, self.command_csv_file):
            if f is not None:
                f.flush()

    def cleanup(self) -> None:
        """Flush and close all CSV files."""
        for name in ("reference_csv_file", "trajectory_csv_file", "command_csv_file"):
            f = getattr(self, name)
            if f is not None:
                f.close()
                setattr(self, name, None)
        self.reference_csv_writer = None
        self.trajectory_csv_writer = None
        self.command_csv_writer = None

    def __enter__(self) -> "CsvTelemetry":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
