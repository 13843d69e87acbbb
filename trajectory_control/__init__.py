"""Trajectory Control - Closed-Loop Local Trajectory Controller

Turns a waypoint sequence from a global planner and live pose feedback into
safety-bounded velocity commands for a mobile base.

## Architecture Overview

Every control tick runs the same pipeline:

### Shared Robot State (state.py)
Pose updates arrive asynchronously from localization, are transformed into the
control frame (bounded wait, see transform.py) and stored under a lock.

### Safety Supervisor (safety.py)
An ensemble of observers (proximity scan, arm skin contact). If any of them
reports unsafe the tick emits the zero twist.

### Reference Motion Planner (motion_planner.py)
Time-indexes the waypoints with nominal velocities and interpolates the
reference pose and twist for the current time.

### Deviation Check and Replanning (local_planner.py, replanning.py)
When the robot is too far from the reference the goal is dropped and a global
replan is marked as owed on the coordinator shared with the global planner.

### Feedback Controller (controller.py)
PID on the pose error with reference twist feedforward.

### Command Shaper (shaper.py)
Rotates the command into the robot frame and clamps linear and angular speed.

## Modules

- `config.py` - Documented defaults and the immutable ControllerConfig
- `geometry.py` - Pose / Twist types and planar geometry
- `transform.py` - Transform provider interface and static transform table
- `state.py` - Lock-guarded robot state
- `safety.py` - Safety observers and supervisor
- `motion_planner.py` - Linear reference motion planner
- `controller.py` - PID feedback controller
- `replanning.py` - Replanning coordinator
- `shaper.py` - Frame conversion and velocity limiting
- `local_planner.py` - Goal tracking state machine and control tick
- `telemetry.py` - Telemetry sink interface and CSV recorder
- `client.py` - WebSocket host
- `plot_results.py` - Post-run telemetry plots

## Quick Start

```python
from trajectory_control import (
    ControllerConfig, LocalPlanner, Pose, ReplanningCoordinator, StaticTransformProvider,
)

transforms = StaticTransformProvider()
transforms.set_transform("map", "odom", Pose())
planner = LocalPlanner(
    transforms,
    ReplanningCoordinator(),
    config=ControllerConfig(safety_observers=()),
    command_sink=print,
)

planner.update_pose(Pose(0.0, 0.0, 0.0), "odom", timestamp=0.0)
planner.set_plan([Pose(0.0, 0.0, 0.0), Pose(1.0, 0.0, 0.0)])
planner.compute_velocity_commands()
```

Or connect to a robot bridge:
```bash
python -m trajectory_control --uri ws://localhost:8765
```
"""

__version__ = "0.1.0"

from .config import ControllerConfig
from .geometry import Pose, Twist
from .local_planner import Goal, GoalStatus, LocalPlanner
from .replanning import ReplanningCoordinator
from .safety import ArmSkinObserver, SafetySupervisor, ScanObserver
from .transform import StaticTransformProvider, TransformUnavailable

__all__ = [
    "ControllerConfig",
    "Pose",
    "Twist",
    "Goal",
    "GoalStatus",
    "LocalPlanner",
    "ReplanningCoordinator",
    "SafetySupervisor",
    "ScanObserver",
    "ArmSkinObserver",
    "StaticTransformProvider",
    "TransformUnavailable",
]
