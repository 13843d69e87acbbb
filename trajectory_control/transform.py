"""Pose transform provider for expressing robot poses in the control frame.

Localization reports poses in its own frame (typically ``odom``) while goals,
trajectories and references live in the occupancy-map frame. The controller
only depends on the TransformProvider protocol; StaticTransformProvider is a
planar transform table that hosts feed with frame-to-frame poses.
"""

import threading
from typing import Dict, Optional, Protocol, Tuple

import numpy as np
import numpy.typing as npt

from .geometry import Pose


class TransformUnavailable(Exception):
    """Raised when a transform cannot be resolved within the allowed wait."""


class TransformProvider(Protocol):
    def transform_pose(
        self, pose: Pose, source_frame: str, target_frame: str, stamp: float, timeout: float
    ) -> Pose:
        """Express ``pose`` (given in ``source_frame``) in ``target_frame``.

        Raises:
            TransformUnavailable: If the transform is not resolved within ``timeout``.
        """
        ...


class StaticTransformProvider:
    """Planar transform table with bounded waits.

    Each entry stores the pose of a child frame's origin expressed in its
    parent frame. Lookups resolve direct and inverse entries as well as chains
    through a shared parent (e.g. ``odom -> map`` via ``map -> odom``).
    Entries are timeless: the latest published transform is used for every
    stamp.
    """

    def __init__(self) -> None:
        self._transforms: Dict[Tuple[str, str], npt.NDArray[np.float64]] = {}
        self._condition = threading.Condition()

    def set_transform(self, parent: str, child: str, pose: Pose) -> None:
        """Publish the pose of ``child``'s origin in ``parent`` and wake waiters."""
        if parent == child:
            raise ValueError(f"Cannot set a transform from frame '{parent}' to itself")
        with self._condition:
            self._transforms[(parent, child)] = pose.to_matrix()
            self._condition.notify_all()

    def can_transform(self, source_frame: str, target_frame: str) -> bool:
        with self._condition:
            return self._lookup(source_frame, target_frame) is not None

    def _edges(self, frame: str) -> Dict[str, npt.NDArray[np.float64]]:
        """Matrices mapping points of ``frame`` into each directly linked frame."""
        edges = {}
        for (parent, child), matrix in self._transforms.items():
            if child == frame:
                edges[parent] = matrix
            elif parent == frame:
                edges[child] = np.linalg.inv(matrix)
        return edges

    def _lookup(self, source_frame: str, target_frame: str) -> Optional[npt.NDArray[np.float64]]:
        """Breadth-first search for the matrix mapping source points to target points."""
        if source_frame == target_frame:
            return np.eye(3)
        visited = {source_frame}
        frontier = [(source_frame, np.eye(3))]
        while frontier:
            next_frontier = []
            for frame, to_source in frontier:
                for neighbour, to_neighbour in self._edges(frame).items():
                    if neighbour in visited:
                        continue
                    # Points of source -> frame -> neighbour
                    chained = to_neighbour @ to_source
                    if neighbour == target_frame:
                        return chained
                    visited.add(neighbour)
                    next_frontier.append((neighbour, chained))
            frontier = next_frontier
        return None

    def transform_pose(
        self, pose: Pose, source_frame: str, target_frame: str, stamp: float, timeout: float
    ) -> Pose:
        with self._condition:
            matrix = self._lookup(source_frame, target_frame)
            if matrix is None and timeout > 0.0:
                self._condition.wait_for(
                    lambda: self._lookup(source_frame, target_frame) is not None,
                    timeout=timeout,
                )
                matrix = self._lookup(source_frame, target_frame)
        if matrix is None:
            raise TransformUnavailable(
                f"No transform from '{source_frame}' to '{target_frame}' "
                f"at t={stamp:.3f} within {timeout:.3f}s"
            )
        return Pose.from_matrix(matrix @ pose.to_matrix())
