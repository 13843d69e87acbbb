"""Planar pose and twist types.

This module provides the value types shared by every layer of the controller
and the small amount of planar geometry they need: heading normalization,
linear/angular distances and homogeneous transform matrices.
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


def normalize_angle(angle: float) -> float:
    """Wrap an angle to the half-open interval (-π, π].

    Args:
        angle: Angle in radians

    Returns:
        Equivalent angle in (-π, π]
    """
    wrapped = math.atan2(math.sin(angle), math.cos(angle))
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    return wrapped


@dataclass(frozen=True)
class Pose:
    """Planar pose: position (m) and heading (rad) in some frame."""

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))
        object.__setattr__(self, "theta", normalize_angle(float(self.theta)))

    def to_matrix(self) -> npt.NDArray[np.float64]:
        """Homogeneous 3×3 matrix mapping points of this pose's frame to the parent."""
        c = math.cos(self.theta)
        s = math.sin(self.theta)
        return np.array([[c, -s, self.x], [s, c, self.y], [0.0, 0.0, 1.0]])

    @classmethod
    def from_matrix(cls, matrix: npt.NDArray[np.float64]) -> "Pose":
        """Inverse of to_matrix()."""
        return cls(
            float(matrix[0, 2]),
            float(matrix[1, 2]),
            math.atan2(float(matrix[1, 0]), float(matrix[0, 0])),
        )


@dataclass(frozen=True)
class Twist:
    """Planar twist: linear velocity (vx, vy) in m/s and angular velocity in rad/s."""

    vx: float = 0.0
    vy: float = 0.0
    omega: float = 0.0

    @classmethod
    def zero(cls) -> "Twist":
        return cls(0.0, 0.0, 0.0)

    @property
    def linear_speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def is_zero(self) -> bool:
        return self.vx == 0.0 and self.vy == 0.0 and self.omega == 0.0


def linear_distance(a: Pose, b: Pose) -> float:
    """Euclidean distance between the positions of two poses (m)."""
    return math.hypot(b.x - a.x, b.y - a.y)


def angular_distance(a: Pose, b: Pose) -> float:
    """Absolute shortest-arc heading difference between two poses (rad)."""
    return abs(normalize_angle(b.theta - a.theta))
