import math

import pytest

from trajectory_control.controller import PIDController
from trajectory_control.geometry import Pose, Twist


def p_only(**gains):
    params = dict(
        kp_lin=1.0, kp_ang=1.0, ki_lin=0.0, ki_ang=0.0,
        kd_lin=0.0, kd_ang=0.0, kff_lin=0.0, kff_ang=0.0,
    )
    params.update(gains)
    return PIDController(**params)


def test_zero_error_and_zero_reference_twist_gives_zero_command():
    controller = PIDController()
    controller.reset(0.0)
    pose = Pose(1.0, -2.0, 0.3)
    for stamp in (0.1, 0.2, 0.3):
        command = controller.compute_command(stamp, pose, pose, Twist.zero(), Twist.zero())
        assert command == Twist(0.0, 0.0, 0.0)


def test_proportional_term():
    controller = p_only(kp_lin=2.0, kp_ang=0.5)
    command = controller.compute_command(
        0.0, Pose(0.0, 0.0, 0.0), Pose(0.5, -0.25, 0.4), Twist.zero(), Twist.zero()
    )
    assert command.vx == pytest.approx(1.0)
    assert command.vy == pytest.approx(-0.5)
    assert command.omega == pytest.approx(0.2)


def test_feedforward_and_derivative_terms():
    controller = p_only(kp_lin=0.0, kp_ang=0.0, kff_lin=1.0, kff_ang=1.0, kd_lin=0.5, kd_ang=0.5)
    pose = Pose(0.0, 0.0, 0.0)
    command = controller.compute_command(
        0.0, pose, pose, Twist(0.1, 0.0, 0.0), Twist(0.3, 0.0, 0.2)
    )
    assert command.vx == pytest.approx(0.3 + 0.5 * 0.2)
    assert command.omega == pytest.approx(0.2 + 0.5 * 0.2)


def test_heading_error_wraps():
    controller = p_only()
    command = controller.compute_command(
        0.0, Pose(0.0, 0.0, -3.0), Pose(0.0, 0.0, 3.0), Twist.zero(), Twist.zero()
    )
    assert command.omega == pytest.approx(6.0 - 2.0 * math.pi)


def test_integral_accumulates_with_elapsed_time():
    controller = p_only(kp_lin=0.0, ki_lin=1.0)
    controller.reset(0.0)
    pose, ref = Pose(0.0, 0.0, 0.0), Pose(0.2, 0.0, 0.0)
    controller.compute_command(0.5, pose, ref, Twist.zero(), Twist.zero())
    command = controller.compute_command(1.0, pose, ref, Twist.zero(), Twist.zero())
    assert controller.integral_x == pytest.approx(0.2)
    assert command.vx == pytest.approx(0.2)


def test_first_update_without_reset_has_no_integral():
    controller = p_only(kp_lin=0.0, ki_lin=1.0)
    controller.compute_command(5.0, Pose(), Pose(1.0, 0.0, 0.0), Twist.zero(), Twist.zero())
    assert controller.integral_x == 0.0


def test_anti_windup():
    controller = p_only(kp_lin=0.0, ki_lin=1.0, integral_limit=0.5)
    controller.reset(0.0)
    for stamp in range(1, 20):
        command = controller.compute_command(
            float(stamp), Pose(), Pose(10.0, 0.0, 0.0), Twist.zero(), Twist.zero()
        )
    assert controller.integral_x == pytest.approx(0.5)
    assert command.vx == pytest.approx(0.5)


def test_reset_clears_accumulators():
    controller = p_only(ki_lin=1.0)
    controller.reset(0.0)
    controller.compute_command(1.0, Pose(), Pose(0.3, 0.3, 0.3), Twist.zero(), Twist.zero())
    controller.reset(2.0)
    diagnostics = controller.get_diagnostics()
    assert diagnostics["integral_x"] == 0.0
    assert diagnostics["integral_theta"] == 0.0
    assert controller.prev_stamp == 2.0
