#!/usr/bin/env python3
"""
Standalone script to visualize controller telemetry from recorded runs.

This script loads the reference, trajectory and command CSV files written by
CsvTelemetry and plots the planned trajectories, the reference and the robot
path in the control frame, plus the shaped commands over time.
"""

import argparse
import csv
import logging
import sys
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.figure import Figure

from .config import (
    PLOT_ACTUAL_COLOR,
    PLOT_GUIDE_COLOR,
    PLOT_REFERENCE_COLOR,
    TERM_BLUE,
    TERM_RESET,
)


def load_csv_columns(path: Path) -> Dict[str, npt.NDArray[np.float64]]:
    """Load a numeric CSV file into one array per column.

    Args:
        path: CSV file with a header row.

    Returns:
        Dictionary mapping column names to float arrays (empty if no rows).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        columns: Dict[str, List[float]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for name in columns:
                columns[name].append(float(row[name]))
    return {name: np.asarray(values, dtype=np.float64) for name, values in columns.items()}


def find_latest_run(results_dir: Path) -> Path:
    """Find the most recent run directory.

    Raises:
        FileNotFoundError: If no run directories are found.
    """
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    run_dirs = sorted(
        [d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_")]
    )
    if not run_dirs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")
    return run_dirs[-1]


def list_available_runs(results_dir: Path) -> None:
    if not results_dir.exists():
        logging.error(f"Results directory not found: {results_dir}")
        return

    run_dirs = sorted(
        [d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_")]
    )
    if not run_dirs:
        logging.info(f"No run directories found in {results_dir}")
        return

    logging.info("Available runs:")
    for i, run_dir in enumerate(run_dirs, 1):
        logging.info(f"  {i}. {run_dir.name}")


def plot_run(run_dir: Path) -> Figure:
    """Plot the telemetry of one run.

    Args:
        run_dir: Directory containing reference_data.csv, trajectory_data.csv
            and command_data.csv.

    Returns:
        Figure with the path plot and the command plot.
    """
    reference = load_csv_columns(run_dir / "reference_data.csv")
    trajectory = load_csv_columns(run_dir / "trajectory_data.csv")
    commands = load_csv_columns(run_dir / "command_data.csv")

    fig, (ax_path, ax_cmd) = plt.subplots(1, 2, figsize=(14, 6))

    # Each accepted plan shares one timestamp
    if trajectory.get("timestamp", np.zeros(0)).size:
        for i, stamp in enumerate(np.unique(trajectory["timestamp"])):
            mask = trajectory["timestamp"] == stamp
            ax_path.plot(
                trajectory["x"][mask],
                trajectory["y"][mask],
                "--",
                color=PLOT_GUIDE_COLOR,
                linewidth=1.0,
                label="Plan" if i == 0 else None,
            )
    if reference.get("x", np.zeros(0)).size:
        ax_path.plot(
            reference["x"], reference["y"], color=PLOT_REFERENCE_COLOR, linewidth=2.0, label="Reference"
        )
    if commands.get("x", np.zeros(0)).size:
        ax_path.plot(
            commands["x"], commands["y"], color=PLOT_ACTUAL_COLOR, linewidth=2.0, label="Robot"
        )
    ax_path.set_xlabel("x (m)")
    ax_path.set_ylabel("y (m)")
    ax_path.set_title("Path in control frame")
    ax_path.set_aspect("equal", adjustable="datalim")
    ax_path.grid(True, color=PLOT_GUIDE_COLOR, alpha=0.3)
    ax_path.legend()

    if commands.get("timestamp", np.zeros(0)).size:
        t = commands["timestamp"] - commands["timestamp"][0]
        ax_cmd.plot(t, commands["vx"], color=PLOT_ACTUAL_COLOR, label="vx (m/s)")
        ax_cmd.plot(t, commands["vy"], color=PLOT_GUIDE_COLOR, label="vy (m/s)")
        ax_cmd.plot(t, commands["omega"], color=PLOT_REFERENCE_COLOR, label="ω (rad/s)")
    ax_cmd.set_xlabel("Time (s)")
    ax_cmd.set_title("Robot-frame commands")
    ax_cmd.grid(True, color=PLOT_GUIDE_COLOR, alpha=0.3)
    ax_cmd.legend()

    fig.suptitle(run_dir.name)
    fig.tight_layout()
    return fig


def main() -> None:
    """Main entry point for the plotting script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(
        description="Visualize controller telemetry from recorded runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Plot the most recent run
  python -m trajectory_control.plot_results

  # Plot a specific run and save the figure
  python -m trajectory_control.plot_results --run run_20260101_120000 --save --no-show
        """,
    )
    parser.add_argument(
        "--run",
        type=str,
        default=None,
        help="Name of the run directory to plot. If not specified, plots the most recent run.",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default="results",
        help="Path to the results directory (default: results)",
    )
    parser.add_argument("--save", action="store_true", help="Save the plot as PNG in the run directory")
    parser.add_argument(
        "--no-show", action="store_true", help="Do not display plots interactively"
    )
    parser.add_argument("--list", action="store_true", help="List all available runs and exit")
    args = parser.parse_args()

    results_dir = Path(args.results_dir)

    if args.list:
        list_available_runs(results_dir)
        return

    if args.run:
        run_dir = results_dir / args.run
        if not run_dir.exists():
            logging.error(f"Error: Run directory not found: {run_dir}")
            list_available_runs(results_dir)
            sys.exit(1)
    else:
        try:
            run_dir = find_latest_run(results_dir)
            logging.info(f"{TERM_BLUE}Plotting most recent run: {run_dir}{TERM_RESET}")
        except FileNotFoundError as e:
            logging.error(f"Error: {e}")
            sys.exit(1)

    try:
        fig = plot_run(run_dir)
    except FileNotFoundError as e:
        logging.error(f"Error: {e}")
        sys.exit(1)

    if args.save:
        output_path = run_dir / "telemetry.png"
        fig.savefig(output_path, dpi=150)
        logging.info(f"{TERM_BLUE}✓ Saved plot to {output_path}{TERM_RESET}")
    if not args.no_show:
        plt.show()


if __name__ == "__main__":
    main()
