"""Shared robot state written by localization and read by the control tick.

Pose updates arrive asynchronously (any thread, any rate); the control tick
reads a consistent snapshot. Both sides go through one lock, which is only
held for the read or the write itself: transform lookups happen before it is
taken.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .config import TRANSFORM_TIMEOUT
from .geometry import Pose, Twist
from .shaper import twist_to_global_frame
from .transform import TransformProvider, TransformUnavailable


@dataclass(frozen=True)
class RobotState:
    """Pose and twist of the robot in the control frame at ``timestamp``."""

    pose: Pose
    twist: Twist
    timestamp: float


class SharedRobotState:
    """Lock-guarded holder of the latest RobotState.

    Attributes:
        lock: Reentrant lock guarding the state. The orchestrator also takes
            it to read state and goal together.
        transform_timeout: Bounded wait for pose transforms (seconds).
    """

    def __init__(
        self,
        transform_provider: TransformProvider,
        global_frame: Callable[[], str],
        transform_timeout: float = TRANSFORM_TIMEOUT,
    ) -> None:
        """Initialize an empty shared state.

        Args:
            transform_provider: Resolves poses from their source frame.
            global_frame: Returns the name of the control frame.
            transform_timeout: Bounded wait for each transform (seconds).
        """
        self.lock = threading.RLock()
        self.transform_timeout = transform_timeout
        self._transform_provider = transform_provider
        self._global_frame = global_frame
        self._state: Optional[RobotState] = None

    def update_pose(
        self,
        raw_pose: Pose,
        frame_id: str,
        timestamp: float,
        twist: Optional[Twist] = None,
    ) -> bool:
        """Transform a localization pose into the control frame and store it.

        Args:
            raw_pose: Robot pose expressed in ``frame_id``.
            frame_id: Source frame of ``raw_pose``.
            timestamp: Measurement time (seconds).
            twist: Robot-frame twist from odometry. Zero if omitted.

        Returns:
            True if the state was replaced, False if the update was dropped
            because the transform was unavailable.
        """
        target_frame = self._global_frame()
        try:
            pose = self._transform_provider.transform_pose(
                raw_pose, frame_id, target_frame, timestamp, self.transform_timeout
            )
        except TransformUnavailable as e:
            logging.error(f"Dropping pose update: {e}")
            return False

        robot_twist = twist if twist is not None else Twist.zero()
        state = RobotState(pose, twist_to_global_frame(robot_twist, pose.theta), timestamp)
        with self.lock:
            self._state = state
        return True

    def snapshot(self) -> Optional[RobotState]:
        """Return the latest state, or None before the first successful update."""
        with self.lock:
            return self._state
