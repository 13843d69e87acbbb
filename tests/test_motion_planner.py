import math

import pytest

from trajectory_control.geometry import Pose
from trajectory_control.motion_planner import LinearMotionPlanner


@pytest.fixture
def motion_planner():
    return LinearMotionPlanner(linear_velocity=0.5, angular_velocity=1.0)


def test_nominal_velocities_must_be_positive():
    with pytest.raises(ValueError):
        LinearMotionPlanner(linear_velocity=0.0)
    with pytest.raises(ValueError):
        LinearMotionPlanner(angular_velocity=-1.0)


def test_reference_requires_trajectory(motion_planner):
    with pytest.raises(RuntimeError):
        motion_planner.compute_reference(0.0)


def test_empty_waypoints_are_rejected(motion_planner):
    with pytest.raises(ValueError):
        motion_planner.reset([], 0.0)
    with pytest.raises(ValueError):
        motion_planner.update([], 0.0)


def test_time_index_uses_slower_of_translation_and_rotation(motion_planner):
    waypoints = [Pose(0.0, 0.0, 0.0), Pose(1.0, 0.0, 0.0), Pose(1.0, 0.0, 3.0)]
    assert motion_planner.time_index(waypoints).tolist() == pytest.approx([0.0, 2.0, 5.0])


def test_linear_interpolation(motion_planner):
    motion_planner.reset([Pose(0.0, 0.0, 0.0), Pose(2.0, 0.0, 1.0)], start_time=10.0)
    assert motion_planner.duration == pytest.approx(4.0)

    pose, twist = motion_planner.compute_reference(11.0)
    assert pose.x == pytest.approx(0.5)
    assert pose.theta == pytest.approx(0.25)
    assert twist.vx == pytest.approx(0.5)
    assert twist.vy == 0.0
    assert twist.omega == pytest.approx(0.25)


def test_reference_is_clamped_at_both_ends(motion_planner):
    waypoints = [Pose(0.0, 0.0, 0.0), Pose(1.0, 1.0, 0.0)]
    motion_planner.reset(waypoints, start_time=5.0)

    pose, twist = motion_planner.compute_reference(0.0)
    assert pose == waypoints[0]
    assert twist.linear_speed > 0.0

    pose, twist = motion_planner.compute_reference(100.0)
    assert pose == waypoints[-1]
    assert twist.is_zero()


def test_heading_follows_shortest_arc(motion_planner):
    motion_planner.reset([Pose(0.0, 0.0, 3.0), Pose(0.0, 0.0, -3.0)], start_time=0.0)
    pose, twist = motion_planner.compute_reference(motion_planner.duration / 2.0)
    assert abs(pose.theta) == pytest.approx(math.pi)
    assert twist.omega > 0.0


def test_single_waypoint(motion_planner):
    motion_planner.reset([Pose(1.0, 2.0, 0.5)], start_time=0.0)
    pose, twist = motion_planner.compute_reference(0.0)
    assert pose == Pose(1.0, 2.0, 0.5)
    assert twist.is_zero()


def test_reference_is_deterministic(motion_planner):
    motion_planner.reset([Pose(0.0, 0.0, 0.0), Pose(1.0, 0.0, 0.0), Pose(1.0, 1.0, 0.0)], 0.0)
    assert motion_planner.compute_reference(2.7) == motion_planner.compute_reference(2.7)


def test_update_keeps_progress(motion_planner):
    motion_planner.reset([Pose(0.0, 0.0, 0.0), Pose(2.0, 0.0, 0.0)], start_time=0.0)
    before, _ = motion_planner.compute_reference(2.0)
    assert before.x == pytest.approx(1.0)

    motion_planner.update([Pose(0.5, 0.0, 0.0), Pose(2.0, 0.0, 0.0)], stamp=2.0)
    after, _ = motion_planner.compute_reference(2.0)
    assert after.x == pytest.approx(1.0)
    assert motion_planner.start_time == pytest.approx(1.0)
    assert motion_planner.waypoints[0] == Pose(0.5, 0.0, 0.0)


def test_update_without_trajectory_starts_one(motion_planner):
    motion_planner.update([Pose(0.0, 0.0, 0.0), Pose(1.0, 0.0, 0.0)], stamp=3.0)
    assert motion_planner.start_time == 3.0
