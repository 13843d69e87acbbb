"""Shared fixtures for the trajectory_control test suite."""

import matplotlib

matplotlib.use("Agg")

import pytest

from trajectory_control.config import ControllerConfig
from trajectory_control.geometry import Pose, Twist
from trajectory_control.local_planner import LocalPlanner
from trajectory_control.replanning import ReplanningCoordinator
from trajectory_control.transform import StaticTransformProvider


class CommandRecorder:
    """Command sink that keeps every command it receives."""

    def __init__(self):
        self.commands = []

    def __call__(self, command: Twist) -> None:
        self.commands.append(command)


@pytest.fixture
def transforms():
    provider = StaticTransformProvider()
    provider.set_transform("map", "odom", Pose(0.0, 0.0, 0.0))
    return provider


@pytest.fixture
def replanning():
    return ReplanningCoordinator()


@pytest.fixture
def config():
    return ControllerConfig(safety_observers=(), transform_timeout=0.0)


@pytest.fixture
def sink():
    return CommandRecorder()


@pytest.fixture
def make_planner(transforms, replanning, config, sink):
    """Factory for LocalPlanner instances sharing the test fixtures."""

    def factory(**overrides):
        kwargs = dict(config=config, command_sink=sink, clock=lambda: 0.0)
        kwargs.update(overrides)
        return LocalPlanner(transforms, replanning, **kwargs)

    return factory


@pytest.fixture
def planner(make_planner):
    return make_planner()
