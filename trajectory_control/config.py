"""Configuration parameters for the local trajectory controller.

This module centralizes all configuration parameters including:
- Goal tolerances and safety thresholds
- Feedback controller gains
- Motion planner nominal velocities
- Safety observer thresholds
- WebSocket connection parameters

All parameters are documented with their purpose and valid ranges. The
runtime-replaceable subset is bundled into the immutable ControllerConfig,
which the orchestrator swaps atomically between control ticks.
"""

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Tuple

# ============================================================================
# Goal Tolerances
# ============================================================================

GOAL_LIN_TOLERANCE = 0.05
"""Linear distance to the goal under which it counts as reached (meters)."""

GOAL_ANG_TOLERANCE = 0.05
"""Heading difference to the goal under which it counts as reached (radians)."""

NEW_GOAL_EPSILON = 1e-8
"""Terminal waypoints closer than this (meters or radians) to the current goal
are treated as the same goal, so the plan only updates the trajectory."""


# ============================================================================
# Safety Limits
# ============================================================================

MAX_SAFE_LIN_VELOCITY = 0.5
"""Maximum commanded linear speed (m/s).

Applied as a uniform rescaling of (vx, vy) so the direction is preserved.
"""

MAX_SAFE_ANG_VELOCITY = 0.7
"""Maximum commanded angular speed (rad/s). Sign is preserved when clamping."""

MAX_SAFE_LIN_DISPLACEMENT = 0.5
"""Maximum distance between robot and reference pose before replanning (meters).

Beyond this the trajectory is no longer trusted: the goal is dropped and a
global replan is requested.
"""

MAX_SAFE_ANG_DISPLACEMENT = 1.0
"""Maximum heading difference between robot and reference pose (radians)."""

SAFETY_OBSERVERS = ("scan_safety_observer", "arm_skin_observer")
"""Safety observer tags enabled at startup.

Every observer reports unsafe until it has received its first sensor update.
"""


# ============================================================================
# Frames and Transforms
# ============================================================================

GLOBAL_FRAME = "map"
"""Control frame in which goals, trajectories and references are expressed."""

TRANSFORM_TIMEOUT = 0.1
"""Bounded wait for a pose transform to become available (seconds).

Pose updates whose transform cannot be resolved within this time are dropped
and the previous robot state is kept.
"""


# ============================================================================
# Motion Planner Parameters (Linear)
# ============================================================================

PLANNER_LINEAR_VELOCITY = 0.3
"""Nominal linear velocity used to time-index waypoints (m/s, > 0).

Tuning rationale:
- Kept below MAX_SAFE_LIN_VELOCITY so feedback has headroom to correct
- Faster references increase deviation-triggered replans on tight plans
"""

PLANNER_ANGULAR_VELOCITY = 0.5
"""Nominal angular velocity used to time-index waypoints (rad/s, > 0).

A segment lasts as long as the slower of its translation and its rotation.
"""


# ============================================================================
# Feedback Controller Parameters (PID)
# ============================================================================

CONTROLLER_KP_LIN = 1.0
"""Proportional gain on position error (1/s, range: [0, 3])."""

CONTROLLER_KP_ANG = 1.2
"""Proportional gain on heading error (1/s, range: [0, 3])."""

CONTROLLER_KI_LIN = 0.05
"""Integral gain on position error (1/s², range: [0, 0.5]).

Small value: the reference twist feedforward does most of the work, the
integral only removes slow steady-state offsets.
"""

CONTROLLER_KI_ANG = 0.05
"""Integral gain on heading error (1/s², range: [0, 0.5])."""

CONTROLLER_KD_LIN = 0.2
"""Derivative gain on linear velocity error (dimensionless, range: [0, 1])."""

CONTROLLER_KD_ANG = 0.1
"""Derivative gain on angular velocity error (dimensionless, range: [0, 1])."""

CONTROLLER_KFF_LIN = 1.0
"""Feedforward gain on the reference linear velocity (range: [0, 1])."""

CONTROLLER_KFF_ANG = 1.0
"""Feedforward gain on the reference angular velocity (range: [0, 1])."""

CONTROLLER_INTEGRAL_LIMIT = 0.5
"""Anti-windup limit for the integral accumulators (meters·s or radians·s)."""


# ============================================================================
# Safety Observer Parameters
# ============================================================================

SCAN_MIN_CLEARANCE = 0.2
"""Closest allowed obstacle range in the proximity scan (meters).

Any valid range at or below this value vetoes motion.
"""

SKIN_CONTACT_THRESHOLD = 0.1
"""Normalized pressure above which an arm skin cell reports contact [0, 1]."""


# ============================================================================
# Host Loop Configuration
# ============================================================================

CONTROL_RATE_HZ = 10.0
"""Control tick frequency of the host loop (Hz)."""

WS_URI = "ws://localhost:8765"
"""WebSocket server URI of the robot bridge / simulator."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

WS_TIMEOUT_SECONDS = 5.0
"""Timeout for WebSocket message reception (seconds)."""


# ============================================================================
# Terminal and Plot Colors
# ============================================================================

PLOT_ACTUAL_COLOR = "#f74823"
"""Color for robot poses and commands in post-run plots."""

PLOT_REFERENCE_COLOR = "#2374f7"
"""Color for reference poses and planned trajectories."""

PLOT_GUIDE_COLOR = "#686a5f"
"""Neutral color for grids and secondary elements."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for status messages."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


@dataclass(frozen=True)
class ControllerConfig:
    """Immutable snapshot of the runtime-replaceable controller parameters.

    A control tick reads exactly one snapshot, so a replacement delivered
    through the configuration channel never splits a tick decision.
    """

    goal_lin_tolerance: float = GOAL_LIN_TOLERANCE
    goal_ang_tolerance: float = GOAL_ANG_TOLERANCE
    max_safe_lin_velocity: float = MAX_SAFE_LIN_VELOCITY
    max_safe_ang_velocity: float = MAX_SAFE_ANG_VELOCITY
    max_safe_lin_displacement: float = MAX_SAFE_LIN_DISPLACEMENT
    max_safe_ang_displacement: float = MAX_SAFE_ANG_DISPLACEMENT
    safety_observers: Tuple[str, ...] = SAFETY_OBSERVERS
    controller: str = "pid"
    motion_planner: str = "linear"
    global_frame: str = GLOBAL_FRAME
    transform_timeout: float = TRANSFORM_TIMEOUT
    verbose: bool = False

    def __post_init__(self) -> None:
        for name in (
            "goal_lin_tolerance",
            "goal_ang_tolerance",
            "max_safe_lin_velocity",
            "max_safe_ang_velocity",
            "max_safe_lin_displacement",
            "max_safe_ang_displacement",
            "transform_timeout",
        ):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"{name} must be finite and non-negative, got {value}")
        if isinstance(self.safety_observers, str):
            raise ValueError("safety_observers must be a sequence of tags, not a string")
        # Lists arriving from JSON are frozen into tuples
        object.__setattr__(self, "safety_observers", tuple(self.safety_observers))

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base: Optional["ControllerConfig"] = None
    ) -> "ControllerConfig":
        """Build a config from a configuration-channel payload.

        Keys missing from ``data`` keep their value from ``base`` (or the
        module defaults when no base is given).

        Args:
            data: Mapping of field names to values.
            base: Config providing values for omitted keys.

        Returns:
            A new validated ControllerConfig.

        Raises:
            ValueError: If ``data`` contains unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return replace(base if base is not None else cls(), **data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
