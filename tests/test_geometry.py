import math

import pytest

from trajectory_control.geometry import (
    Pose,
    Twist,
    angular_distance,
    linear_distance,
    normalize_angle,
)


@pytest.mark.parametrize(
    "angle, expected",
    [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (3.0 * math.pi, math.pi),
        (2.0 * math.pi + 0.5, 0.5),
        (-2.0 * math.pi - 0.5, -0.5),
    ],
)
def test_normalize_angle_wraps_to_half_open_interval(angle, expected):
    assert normalize_angle(angle) == pytest.approx(expected)
    assert -math.pi < normalize_angle(angle) <= math.pi


def test_pose_heading_is_normalized_on_construction():
    pose = Pose(1.0, 2.0, 2.0 * math.pi + 0.25)
    assert pose.theta == pytest.approx(0.25)
    assert Pose(0.0, 0.0, -math.pi).theta == pytest.approx(math.pi)


def test_pose_is_immutable():
    pose = Pose(1.0, 2.0, 0.0)
    with pytest.raises(AttributeError):
        pose.x = 3.0


def test_distances():
    a = Pose(0.0, 0.0, 3.0)
    b = Pose(3.0, 4.0, -3.0)
    assert linear_distance(a, b) == pytest.approx(5.0)
    # Shortest arc through ±π
    assert angular_distance(a, b) == pytest.approx(2.0 * math.pi - 6.0)


def test_matrix_composition_matches_planar_transform():
    frame = Pose(1.0, 2.0, math.pi / 2.0)
    local = Pose(1.0, 0.0, 0.0)
    composed = Pose.from_matrix(frame.to_matrix() @ local.to_matrix())
    assert composed.x == pytest.approx(1.0)
    assert composed.y == pytest.approx(3.0)
    assert composed.theta == pytest.approx(math.pi / 2.0)


def test_twist_helpers():
    assert Twist.zero().is_zero()
    assert Twist(3.0, 4.0, 1.0).linear_speed == pytest.approx(5.0)
    assert not Twist(0.0, 0.0, 0.1).is_zero()
