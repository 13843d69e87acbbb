import json
import logging

import pytest

from trajectory_control.client import LocalPlannerClient, parse_pose
from trajectory_control.config import ControllerConfig
from trajectory_control.geometry import Pose
from trajectory_control.local_planner import GoalStatus


@pytest.fixture
def client():
    return LocalPlannerClient(
        "ws://localhost:8765",
        config=ControllerConfig(safety_observers=(), transform_timeout=0.0),
        record=False,
    )


def odometry(x, y=0.0, theta=0.0, timestamp=0.0, frame_id="map"):
    return {
        "message_type": "odometry",
        "frame_id": frame_id,
        "timestamp": timestamp,
        "pose": [x, y, theta],
        "twist": [0.0, 0.0, 0.0],
    }


def plan(*waypoints):
    return {"message_type": "plan", "waypoints": [list(w) for w in waypoints]}


def test_invalid_uri_and_rate():
    with pytest.raises(ValueError):
        LocalPlannerClient("http://localhost:8765", record=False)
    with pytest.raises(ValueError):
        LocalPlannerClient("ws://localhost:8765", record=False, control_rate_hz=0.0)


def test_parse_pose_rejects_non_finite():
    assert parse_pose([1, 2, 0]) == Pose(1.0, 2.0, 0.0)
    with pytest.raises(ValueError):
        parse_pose([1.0, float("nan"), 0.0])
    with pytest.raises(ValueError):
        parse_pose([1.0, 2.0])


def test_parse_message(client):
    assert client.parse_message('{"message_type": "plan"}') == {"message_type": "plan"}
    assert client.parse_message(b'{"a": 1}') == {"a": 1}
    assert client.parse_message("not json") is None
    assert client.parse_message("[1, 2]") is None


def test_tick_queues_velocity_command(client):
    client.route_message(odometry(0.0))
    client.route_message(plan((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)))
    client.control_tick()

    messages = client.drain_outbox()
    assert [m["message_type"] for m in messages] == ["cmd_vel"]
    assert messages[0]["linear"][0] > 0.0
    json.dumps(messages)
    assert client.drain_outbox() == []


def test_replan_request_is_edge_triggered(client):
    client.route_message(odometry(0.0))
    client.route_message(plan((0.6, 0.0, 0.0)))
    client.control_tick()
    assert client.drain_outbox() == [{"message_type": "replan_request"}]

    client.control_tick()
    assert client.drain_outbox() == []
    assert client.failed_ticks == 2


def test_goal_reached_event(client):
    client.route_message(odometry(0.0))
    client.route_message(plan((0.0, 0.0, 0.0), (0.02, 0.0, 0.0)))
    client.control_tick()
    types = [m["message_type"] for m in client.drain_outbox()]
    assert types == ["cmd_vel", "goal_reached"]
    assert client.planner.status is GoalStatus.IDLE


def test_transform_message_feeds_odometry(client):
    client.route_message(
        {"message_type": "transform", "parent": "map", "child": "odom", "pose": [2.0, 0.0, 0.0]}
    )
    client.route_message(odometry(1.0, frame_id="odom"))
    assert client.planner.robot_state().pose.x == pytest.approx(3.0)


def test_config_message(client, caplog):
    client.route_message({"message_type": "config", "config": {"max_safe_lin_velocity": 0.2}})
    assert client.planner.config.max_safe_lin_velocity == 0.2

    with caplog.at_level(logging.ERROR):
        client.route_message({"message_type": "config", "config": {"max_safe_lin_velocity": -1}})
    assert client.planner.config.max_safe_lin_velocity == 0.2
    assert "Rejected configuration update" in caplog.text


def test_safety_messages_drive_observers():
    client = LocalPlannerClient("ws://localhost:8765", record=False)
    supervisor = client.planner.supervisor
    assert not supervisor.all_safe()

    client.route_message({"message_type": "scan", "ranges": [2.0, 3.0]})
    client.route_message({"message_type": "skin", "pressures": [0.0, 0.0]})
    assert supervisor.all_safe()

    client.route_message({"message_type": "skin", "pressures": [0.9]})
    client.control_tick()
    assert client.drain_outbox() == [
        {"message_type": "cmd_vel", "linear": [0.0, 0.0], "angular": 0.0}
    ]


def test_malformed_messages_are_dropped(client, caplog):
    with caplog.at_level(logging.ERROR):
        client.route_message({"message_type": "odometry", "pose": [0.0, 0.0, 0.0]})
        client.route_message({"message_type": "plan", "waypoints": [["a", 0.0, 0.0]]})
        client.route_message({"message_type": "transform", "parent": "map"})
    assert client.planner.robot_state() is None
    assert client.planner.goal is None
    assert caplog.text.count("Error processing") == 3


def test_unknown_message_type_is_ignored(client):
    client.route_message({"message_type": "battery", "level": 0.5})
    assert client.drain_outbox() == []


def test_telemetry_context(tmp_path, monkeypatch):
    monkeypatch.setenv("RUN_DIR", str(tmp_path / "run"))
    with LocalPlannerClient(
        "ws://localhost:8765", config=ControllerConfig(safety_observers=())
    ) as client:
        client.route_message(odometry(0.0))
        client.route_message(plan((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)))
        client.control_tick()
    assert (tmp_path / "run" / "command_data.csv").read_text().count("\n") == 2


def reach_first_goal(client):
    client.route_message(odometry(0.0))
    client.route_message(plan((0.0, 0.0, 0.0), (0.02, 0.0, 0.0)))
    client.control_tick()
    assert client.drain_outbox()[-1] == {"message_type": "goal_reached"}
    assert not client.replanning.is_owed()


def test_plan_after_goal_reached_needs_a_replan(client):
    reach_first_goal(client)
    client.route_message(plan((0.0, 0.0, 0.0), (0.4, 0.0, 0.0)))
    assert client.planner.goal is None

    client.route_message({"message_type": "replan"})
    client.route_message(plan((0.0, 0.0, 0.0), (0.4, 0.0, 0.0)))
    assert client.planner.goal.pose == Pose(0.4, 0.0, 0.0)
    assert not client.replanning.is_owed()


def test_plan_with_replan_field_replaces_goal(client):
    reach_first_goal(client)
    client.route_message({**plan((0.0, 0.0, 0.0), (0.4, 0.0, 0.0)), "replan": True})
    assert client.planner.goal.pose == Pose(0.4, 0.0, 0.0)

    client.route_message({**plan((0.0, 0.0, 0.0), (0.0, 0.3, 0.0)), "replan": True})
    assert client.planner.goal.pose == Pose(0.0, 0.3, 0.0)


def test_remote_replan_is_not_echoed(client):
    client.route_message(odometry(0.0))
    client.route_message(plan((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)))
    client.route_message({"message_type": "replan"})
    client.control_tick()
    assert [m["message_type"] for m in client.drain_outbox()] == ["cmd_vel"]


def test_nan_config_keeps_velocity_limit(client, caplog):
    with caplog.at_level(logging.ERROR):
        client.route_message(
            client.parse_message('{"message_type": "config", "config": {"max_safe_lin_velocity": NaN}}')
        )
    assert client.planner.config.max_safe_lin_velocity == 0.5
    assert "Rejected configuration update" in caplog.text

    client.route_message(odometry(0.0, timestamp=3.0))
    client.route_message(plan((0.0, 0.0, 0.0), (1.2, 0.0, 0.0)))
    # 0.45m behind the reference: tracked, with a raw command above the limit
    client.route_message(odometry(0.15, timestamp=5.0))
    client.control_tick()
    command = client.drain_outbox()[0]
    assert command["message_type"] == "cmd_vel"
    assert command["linear"][0] == pytest.approx(0.5)


def test_goal_reached_logged_once(caplog):
    client = LocalPlannerClient(
        "ws://localhost:8765",
        config=ControllerConfig(safety_observers=(), transform_timeout=0.0, verbose=True),
        record=False,
    )
    with caplog.at_level(logging.INFO):
        reach_first_goal(client)
    assert caplog.text.count("Goal reached") == 1
