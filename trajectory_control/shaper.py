"""Frame conversion and velocity limiting for command twists.

The feedback controller works in the control (map) frame; the base expects
commands relative to the robot. This module rotates twists between the two
frames and clamps them to the configured safety limits before they reach
the actuators.
"""

import math

from .geometry import Twist


def twist_to_robot_frame(twist: Twist, heading: float) -> Twist:
    """Rotate a control-frame twist into the robot frame.

    Pure rotation by -heading; the angular component is unchanged.

    Args:
        twist: Twist expressed in the control frame
        heading: Robot heading in the control frame (rad)

    Returns:
        The same twist expressed in the robot frame
    """
    c = math.cos(-heading)
    s = math.sin(-heading)
    return Twist(c * twist.vx - s * twist.vy, s * twist.vx + c * twist.vy, twist.omega)


def twist_to_global_frame(twist: Twist, heading: float) -> Twist:
    """Rotate a robot-frame twist into the control frame (inverse of the above)."""
    c = math.cos(heading)
    s = math.sin(heading)
    return Twist(c * twist.vx - s * twist.vy, s * twist.vx + c * twist.vy, twist.omega)


def clamp_twist(twist: Twist, max_linear: float, max_angular: float) -> Twist:
    """Clamp a twist to the safety limits.

    The linear part is rescaled uniformly so that its direction is preserved;
    the angular part is clamped in magnitude with its sign preserved. Zero
    input yields zero output.

    Args:
        twist: Command twist
        max_linear: Maximum linear speed (m/s, >= 0)
        max_angular: Maximum angular speed (rad/s, >= 0)

    Returns:
        Twist within the limits
    """
    vx, vy = twist.vx, twist.vy
    linear_magnitude = math.hypot(vx, vy)
    if linear_magnitude > max_linear:
        vx = max_linear * twist.vx / linear_magnitude
        vy = max_linear * twist.vy / linear_magnitude

    omega = twist.omega
    if abs(omega) > max_angular:
        omega = math.copysign(max_angular, omega)

    return Twist(vx, vy, omega)


def shape_command(twist: Twist, heading: float, max_linear: float, max_angular: float) -> Twist:
    """Convert a control-frame command to the robot frame and clamp it."""
    return clamp_twist(twist_to_robot_frame(twist, heading), max_linear, max_angular)
