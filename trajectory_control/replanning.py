"""Replanning coordination between the local controller and the global planner.

One ReplanningCoordinator is created by the host and handed to both sides.
The flag means "a global replan is owed": the controller raises it when the
robot drifts away from its trajectory, the global planner may raise it when
its own plan changes, and it is cleared once a new goal has been accepted or
reached. Both sides write it independently, so writes are idempotent and
consumers react to transitions rather than to who set it.
"""

import logging
import threading


class ReplanningCoordinator:
    """Thread-safe shared "replanning owed" flag."""

    def __init__(self, owed: bool = True) -> None:
        """Initialize the flag.

        Args:
            owed: Initial value. Defaults to True so that the very first plan
                handed to the controller is accepted.
        """
        self._lock = threading.Lock()
        self._owed = owed

    def request_replanning(self) -> None:
        """Mark a global replan as owed. Idempotent."""
        with self._lock:
            if not self._owed:
                logging.debug("Replanning requested")
            self._owed = True

    def clear(self) -> None:
        """Mark the current plan as valid."""
        with self._lock:
            if self._owed:
                logging.debug("Replanning flag cleared")
            self._owed = False

    def is_owed(self) -> bool:
        with self._lock:
            return self._owed
