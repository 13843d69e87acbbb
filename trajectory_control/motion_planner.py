"""Reference motion planner for waypoint tracking.

This module turns a waypoint sequence from the global planner into a
time-parameterized reference:
- Each waypoint gets an implicit time index from nominal velocities
- Position is interpolated linearly between waypoints
- Heading is interpolated along the shortest arc
- The reference twist is the constant velocity of the active segment
"""

from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .config import PLANNER_ANGULAR_VELOCITY, PLANNER_LINEAR_VELOCITY
from .geometry import Pose, Twist, angular_distance, linear_distance, normalize_angle


class MotionPlanner(Protocol):
    @property
    def waypoints(self) -> List[Pose]:
        ...

    def reset(self, waypoints: Sequence[Pose], start_time: float) -> None:
        ...

    def update(self, waypoints: Sequence[Pose], stamp: float) -> None:
        ...

    def compute_reference(self, stamp: float) -> Tuple[Pose, Twist]:
        ...


class LinearMotionPlanner:
    """Piecewise-linear reference trajectory with constant-velocity segments.

    A segment between two waypoints lasts as long as the slower of its
    translation (at ``linear_velocity``) and its rotation (at
    ``angular_velocity``). The reference is deterministic for any stamp:
    stamps before the start clamp to the first waypoint, stamps after the end
    clamp to the last one with zero twist.
    """

    def __init__(
        self,
        linear_velocity: float = PLANNER_LINEAR_VELOCITY,
        angular_velocity: float = PLANNER_ANGULAR_VELOCITY,
    ):
        """Initialize the planner with no trajectory.

        Args:
            linear_velocity: Nominal translation speed (m/s). Must be > 0.
            angular_velocity: Nominal rotation speed (rad/s). Must be > 0.

        Raises:
            ValueError: If a nominal velocity is not positive.
        """
        if linear_velocity <= 0.0 or angular_velocity <= 0.0:
            raise ValueError(
                f"Nominal velocities must be positive, got "
                f"linear={linear_velocity}, angular={angular_velocity}"
            )
        self.linear_velocity = linear_velocity
        self.angular_velocity = angular_velocity
        self._waypoints: List[Pose] = []
        self._offsets: npt.NDArray[np.float64] = np.zeros(0)
        self.start_time: Optional[float] = None

    @property
    def waypoints(self) -> List[Pose]:
        return list(self._waypoints)

    @property
    def duration(self) -> float:
        """Total trajectory duration (seconds); 0 without a trajectory."""
        return float(self._offsets[-1]) if self._offsets.size else 0.0

    def time_index(self, waypoints: Sequence[Pose]) -> npt.NDArray[np.float64]:
        """Compute the time offset of every waypoint from the trajectory start.

        Args:
            waypoints: Non-empty waypoint sequence

        Returns:
            Array of cumulative segment durations, starting at 0.0
        """
        durations = [
            max(
                linear_distance(a, b) / self.linear_velocity,
                angular_distance(a, b) / self.angular_velocity,
            )
            for a, b in zip(waypoints[:-1], waypoints[1:])
        ]
        return np.concatenate(([0.0], np.cumsum(durations)))

    def reset(self, waypoints: Sequence[Pose], start_time: float) -> None:
        """Discard the current trajectory and start a new one at ``start_time``.

        Raises:
            ValueError: If ``waypoints`` is empty.
        """
        if not waypoints:
            raise ValueError("Cannot build a trajectory from an empty waypoint sequence")
        self._waypoints = list(waypoints)
        self._offsets = self.time_index(self._waypoints)
        self.start_time = start_time

    def update(self, waypoints: Sequence[Pose], stamp: float) -> None:
        """Replace the waypoints while keeping trajectory progress.

        The current reference position at ``stamp`` is projected onto the new
        sequence and the time origin is shifted so the reference continues
        from that point instead of restarting.

        Raises:
            ValueError: If ``waypoints`` is empty.
        """
        if not waypoints:
            raise ValueError("Cannot build a trajectory from an empty waypoint sequence")
        if self.start_time is None:
            self.reset(waypoints, stamp)
            return

        current_ref, _ = self.compute_reference(stamp)
        new_waypoints = list(waypoints)
        new_offsets = self.time_index(new_waypoints)
        progress = self._project(current_ref, new_waypoints, new_offsets)

        self._waypoints = new_waypoints
        self._offsets = new_offsets
        self.start_time = stamp - progress

    def _project(
        self, pose: Pose, waypoints: List[Pose], offsets: npt.NDArray[np.float64]
    ) -> float:
        """Time offset of the point of ``waypoints`` closest to ``pose``."""
        if len(waypoints) == 1:
            return 0.0

        xy = np.array([[w.x, w.y] for w in waypoints])
        starts = xy[:-1]
        deltas = xy[1:] - starts
        lengths_sq = np.sum(deltas**2, axis=1)
        point = np.array([pose.x, pose.y])

        # Segment parameter of the closest point, 0 for pure rotations
        with np.errstate(divide="ignore", invalid="ignore"):
            u = np.where(lengths_sq > 0.0, np.sum((point - starts) * deltas, axis=1) / lengths_sq, 0.0)
        u = np.clip(u, 0.0, 1.0)
        closest = starts + u[:, None] * deltas
        distances = np.sqrt(np.sum((closest - point) ** 2, axis=1))

        i = int(np.argmin(distances))
        return float(offsets[i] + u[i] * (offsets[i + 1] - offsets[i]))

    def compute_reference(self, stamp: float) -> Tuple[Pose, Twist]:
        """Compute the reference pose and twist at ``stamp``.

        Args:
            stamp: Time (seconds) on the same clock as ``start_time``

        Returns:
            Tuple of (reference pose, reference twist), both in the control frame

        Raises:
            RuntimeError: If no trajectory has been set.
        """
        if self.start_time is None or not self._waypoints:
            raise RuntimeError("No trajectory: call reset() with waypoints first")

        elapsed = max(0.0, stamp - self.start_time)
        if len(self._waypoints) == 1 or elapsed >= self._offsets[-1]:
            return self._waypoints[-1], Twist.zero()

        # offsets[i] <= elapsed < offsets[i + 1], so the segment has positive duration
        i = int(np.searchsorted(self._offsets, elapsed, side="right")) - 1
        a = self._waypoints[i]
        b = self._waypoints[i + 1]
        segment_time = float(self._offsets[i + 1] - self._offsets[i])
        s = (elapsed - float(self._offsets[i])) / segment_time

        dtheta = normalize_angle(b.theta - a.theta)
        pose = Pose(a.x + s * (b.x - a.x), a.y + s * (b.y - a.y), a.theta + s * dtheta)
        twist = Twist(
            (b.x - a.x) / segment_time,
            (b.y - a.y) / segment_time,
            dtheta / segment_time,
        )
        return pose, twist
