"""Feedback controller for reference pose tracking.

This module provides the controller that sits between the reference motion
planner and the command shaper. It compares the robot's pose and twist with
the reference and produces a command twist in the control frame.
"""

from typing import Dict, Optional, Protocol

from .config import (
    CONTROLLER_INTEGRAL_LIMIT,
    CONTROLLER_KD_ANG,
    CONTROLLER_KD_LIN,
    CONTROLLER_KFF_ANG,
    CONTROLLER_KFF_LIN,
    CONTROLLER_KI_ANG,
    CONTROLLER_KI_LIN,
    CONTROLLER_KP_ANG,
    CONTROLLER_KP_LIN,
)
from .geometry import Pose, Twist, normalize_angle


class Controller(Protocol):
    def reset(self, stamp: float) -> None:
        ...

    def compute_command(
        self, stamp: float, pose: Pose, ref_pose: Pose, twist: Twist, ref_twist: Twist
    ) -> Twist:
        ...


def _clamp(value: float, limit: float) -> float:
    return max(-limit, min(limit, value))


class PIDController:
    """PID feedback controller with reference twist feedforward.

    Control law, per axis (x and y use the linear gains, theta the angular ones):
        cmd = K_ff * ref_twist + K_p * e + K_i * integral(e) + K_d * (ref_twist - twist)

    where e is the pose error (reference minus actual, heading error wrapped
    to (-π, π]). The derivative term uses the twist error, which is the time
    derivative of the pose error. With zero error and a zero reference twist
    the command is exactly zero.

    Attributes:
        kp_lin, kp_ang: Proportional gains
        ki_lin, ki_ang: Integral gains
        kd_lin, kd_ang: Derivative gains
        kff_lin, kff_ang: Feedforward gains
        integral_limit: Anti-windup clamp for each integral accumulator
    """

    def __init__(
        self,
        kp_lin: float = CONTROLLER_KP_LIN,
        kp_ang: float = CONTROLLER_KP_ANG,
        ki_lin: float = CONTROLLER_KI_LIN,
        ki_ang: float = CONTROLLER_KI_ANG,
        kd_lin: float = CONTROLLER_KD_LIN,
        kd_ang: float = CONTROLLER_KD_ANG,
        kff_lin: float = CONTROLLER_KFF_LIN,
        kff_ang: float = CONTROLLER_KFF_ANG,
        integral_limit: float = CONTROLLER_INTEGRAL_LIMIT,
    ):
        # Proportional gains
        self.kp_lin = kp_lin
        self.kp_ang = kp_ang

        # Integral gains
        self.ki_lin = ki_lin
        self.ki_ang = ki_ang

        # Derivative gains
        self.kd_lin = kd_lin
        self.kd_ang = kd_ang

        # Feedforward gains
        self.kff_lin = kff_lin
        self.kff_ang = kff_ang

        self.integral_limit = integral_limit

        # Integral state (accumulated pose error)
        self.integral_x: float = 0.0
        self.integral_y: float = 0.0
        self.integral_theta: float = 0.0

        # Stamp of the previous update, for dt computation
        self.prev_stamp: Optional[float] = None

        # Last errors, for diagnostics
        self.last_error = Pose()

    def reset(self, stamp: float) -> None:
        """Clear the accumulators and restart integration at ``stamp``.

        Call this when a new goal starts so that error accumulated while
        tracking the previous trajectory does not leak into the new one.
        """
        self.integral_x = 0.0
        self.integral_y = 0.0
        self.integral_theta = 0.0
        self.prev_stamp = stamp
        self.last_error = Pose()

    def compute_command(
        self, stamp: float, pose: Pose, ref_pose: Pose, twist: Twist, ref_twist: Twist
    ) -> Twist:
        """Compute a command twist in the control frame.

        Args:
            stamp: Time of the measurement (seconds)
            pose: Actual robot pose (control frame)
            ref_pose: Reference pose (control frame)
            twist: Actual robot twist (control frame)
            ref_twist: Reference twist (control frame)

        Returns:
            Command twist in the control frame
        """
        # Non-positive steps (first call, repeated stamp) contribute no integral
        dt = 0.0 if self.prev_stamp is None else max(0.0, stamp - self.prev_stamp)
        self.prev_stamp = stamp

        # Pose errors
        e_x = ref_pose.x - pose.x
        e_y = ref_pose.y - pose.y
        e_theta = normalize_angle(ref_pose.theta - pose.theta)
        self.last_error = Pose(e_x, e_y, e_theta)

        # Accumulate integral of error with anti-windup
        self.integral_x = _clamp(self.integral_x + e_x * dt, self.integral_limit)
        self.integral_y = _clamp(self.integral_y + e_y * dt, self.integral_limit)
        self.integral_theta = _clamp(self.integral_theta + e_theta * dt, self.integral_limit)

        vx = (
            self.kff_lin * ref_twist.vx
            + self.kp_lin * e_x
            + self.ki_lin * self.integral_x
            + self.kd_lin * (ref_twist.vx - twist.vx)
        )
        vy = (
            self.kff_lin * ref_twist.vy
            + self.kp_lin * e_y
            + self.ki_lin * self.integral_y
            + self.kd_lin * (ref_twist.vy - twist.vy)
        )
        omega = (
            self.kff_ang * ref_twist.omega
            + self.kp_ang * e_theta
            + self.ki_ang * self.integral_theta
            + self.kd_ang * (ref_twist.omega - twist.omega)
        )
        return Twist(vx, vy, omega)

    def get_diagnostics(self) -> Dict[str, float]:
        """Get diagnostic information for logging and debugging."""
        return {
            "error_x": self.last_error.x,
            "error_y": self.last_error.y,
            "error_theta": self.last_error.theta,
            "integral_x": self.integral_x,
            "integral_y": self.integral_y,
            "integral_theta": self.integral_theta,
        }
