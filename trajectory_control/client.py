#!/usr/bin/env python3
"""
WebSocket Host for the Local Trajectory Controller

This module connects the controller to a robot bridge or simulator over a
WebSocket. It ingests odometry, plans, configuration, frame transforms and
safety sensor data, runs the control tick at a fixed rate, and sends back
velocity commands together with goal-reached and replan-request events.

Inbound messages (JSON, keyed by "message_type"):
    odometry   {frame_id, timestamp, pose: [x, y, theta], twist: [vx, vy, omega]}
    plan       {waypoints: [[x, y, theta], ...], replan: bool (optional)}
    replan     {}  (global planner marks a replan as owed)
    config     {config: {field: value, ...}}
    transform  {parent, child, pose: [x, y, theta]}
    scan       {ranges: [...], range_min, range_max}
    skin       {pressures: [...]}

Outbound messages:
    cmd_vel         {linear: [vx, vy], angular}
    replan_request  {}
    goal_reached    {}
"""

import asyncio
import json
import logging
import math
import signal
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Union

import websockets

from .config import (
    CONTROL_RATE_HZ,
    TERM_BLUE,
    TERM_RESET,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_TIMEOUT_SECONDS,
    WS_URI,
    ControllerConfig,
)
from .geometry import Pose, Twist
from .local_planner import LocalPlanner
from .replanning import ReplanningCoordinator
from .safety import ArmSkinObserver, ScanObserver
from .telemetry import CsvTelemetry
from .transform import StaticTransformProvider


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def parse_pose(values: Sequence[float]) -> Pose:
    """Parse an [x, y, theta] triple.

    Raises:
        ValueError: If fewer than three finite numbers are given.
    """
    if len(values) < 3:
        raise ValueError(f"Pose needs [x, y, theta], got {values!r}")
    x, y, theta = (float(v) for v in values[:3])
    if not all(math.isfinite(v) for v in (x, y, theta)):
        raise ValueError(f"Pose must be finite, got {values!r}")
    return Pose(x, y, theta)


def parse_twist(values: Sequence[float]) -> Twist:
    """Parse a [vx, vy, omega] triple.

    Raises:
        ValueError: If fewer than three numbers are given.
    """
    if len(values) < 3:
        raise ValueError(f"Twist needs [vx, vy, omega], got {values!r}")
    vx, vy, omega = (float(v) for v in values[:3])
    return Twist(vx, vy, omega)


class LocalPlannerClient:
    """WebSocket host running the local trajectory controller.

    Attributes:
        uri: WebSocket URI to connect to.
        transforms: Transform table fed by "transform" messages.
        replanning: Replanning coordinator shared with the remote global planner.
        telemetry: CSV recorder, or None when recording is disabled.
        planner: The local trajectory controller.
        should_stop: Flag indicating whether to stop the control loop.
    """

    def __init__(
        self,
        uri: str,
        output_dir: str = ".",
        config: Optional[ControllerConfig] = None,
        record: bool = True,
        control_rate_hz: float = CONTROL_RATE_HZ,
    ) -> None:
        """Initialize the host.

        Args:
            uri: WebSocket URI (must start with ws:// or wss://).
            output_dir: Base directory for telemetry files.
            config: Initial controller configuration.
            record: Record telemetry to CSV files.
            control_rate_hz: Control tick frequency (Hz).

        Raises:
            ValueError: If the URI format or the rate is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")
        if control_rate_hz <= 0.0:
            raise ValueError(f"Control rate must be positive, got {control_rate_hz}")

        self.uri: str = uri
        self.should_stop: bool = False
        self.control_period: float = 1.0 / control_rate_hz

        self.transforms = StaticTransformProvider()
        self.replanning = ReplanningCoordinator()
        self.telemetry: Optional[CsvTelemetry] = CsvTelemetry(output_dir) if record else None
        self.planner = LocalPlanner(
            self.transforms,
            self.replanning,
            config=config,
            command_sink=self._queue_command,
            telemetry=self.telemetry,
        )

        # Messages produced by the tick, sent by the event loop
        self._outbox: Deque[Dict[str, Any]] = deque()

        self.tick_count: int = 0
        self.failed_ticks: int = 0

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def _queue_command(self, command: Twist) -> None:
        self._outbox.append(
            {
                "message_type": "cmd_vel",
                "linear": [command.vx, command.vy],
                "angular": command.omega,
            }
        )

    def drain_outbox(self) -> List[Dict[str, Any]]:
        messages = list(self._outbox)
        self._outbox.clear()
        return messages

    def handle_odometry(self, data: Dict[str, Any]) -> bool:
        """Feed an odometry message to the controller.

        May block up to the configured transform timeout, so the event loop
        runs it on a worker thread.
        """
        pose = parse_pose(data["pose"])
        twist = parse_twist(data["twist"]) if "twist" in data else None
        return self.planner.update_pose(pose, data["frame_id"], float(data["timestamp"]), twist)

    def handle_plan(self, data: Dict[str, Any]) -> bool:
        """Hand a plan to the controller.

        A plan carrying ``"replan": true`` marks a replan as owed first, so it
        replaces a goal the controller is already tracking or has reached.
        """
        waypoints = [parse_pose(w) for w in data.get("waypoints", [])]
        if data.get("replan", False) and waypoints:
            self.replanning.request_replanning()
        return self.planner.set_plan(waypoints)

    def handle_replan(self, data: Dict[str, Any]) -> None:
        self.replanning.request_replanning()

    def handle_config(self, data: Dict[str, Any]) -> None:
        try:
            config = ControllerConfig.from_dict(data.get("config", {}), base=self.planner.config)
        except (TypeError, ValueError) as e:
            logging.error(f"Rejected configuration update: {e}")
            return
        self.planner.apply_config(config)

    def handle_transform(self, data: Dict[str, Any]) -> None:
        self.transforms.set_transform(data["parent"], data["child"], parse_pose(data["pose"]))

    def handle_scan(self, data: Dict[str, Any]) -> None:
        observer = self.planner.supervisor.observer(ScanObserver.tag)
        if not isinstance(observer, ScanObserver):
            logging.debug("Ignoring scan: scan observer not enabled")
            return
        observer.update_scan(
            data["ranges"],
            range_min=float(data.get("range_min", 0.0)),
            range_max=float(data.get("range_max", math.inf)),
        )

    def handle_skin(self, data: Dict[str, Any]) -> None:
        observer = self.planner.supervisor.observer(ArmSkinObserver.tag)
        if not isinstance(observer, ArmSkinObserver):
            logging.debug("Ignoring skin data: arm skin observer not enabled")
            return
        observer.update_pressures(data["pressures"])

    def parse_message(self, message: Union[str, bytes]) -> Optional[Dict[str, Any]]:
        """Decode a raw WebSocket message, or return None if it is not valid JSON."""
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.error(f"Error parsing JSON: {e}")
            return None
        if not isinstance(data, dict):
            logging.warning(f"Ignoring message of type {type(data).__name__}")
            return None
        return data

    def route_message(self, data: Dict[str, Any]) -> None:
        """Dispatch a decoded message to its handler.

        Malformed messages are logged and dropped; they never stop the host.
        """
        handlers = {
            "odometry": self.handle_odometry,
            "plan": self.handle_plan,
            "replan": self.handle_replan,
            "config": self.handle_config,
            "transform": self.handle_transform,
            "scan": self.handle_scan,
            "skin": self.handle_skin,
        }
        message_type = data.get("message_type")
        handler = handlers.get(message_type)
        if handler is None:
            logging.debug(f"Received unknown message: {json.dumps(data)}")
            return
        try:
            handler(data)
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Error processing {message_type} message: {e}")

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def control_tick(self) -> None:
        """Run one controller tick and queue the resulting events."""
        was_owed = self.replanning.is_owed()
        ok, _ = self.planner.compute_velocity_commands()
        self.tick_count += 1
        if not ok:
            self.failed_ticks += 1

        # Only the tick that raised the flag sends a request
        if self.replanning.is_owed() and not was_owed:
            self._outbox.append({"message_type": "replan_request"})

        if self.planner.is_goal_reached():
            self._outbox.append({"message_type": "goal_reached"})

    async def _send_outbox(self, websocket: Any) -> None:
        for message in self.drain_outbox():
            await websocket.send(json.dumps(message))

    async def _tick_loop(self, websocket: Any) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self.should_stop:
            self.control_tick()
            try:
                await self._send_outbox(websocket)
            except websockets.exceptions.ConnectionClosed:
                logging.warning("Connection closed by server")
                return
            next_tick += self.control_period
            delay = next_tick - loop.time()
            if delay < 0.0:
                logging.debug(f"Control tick late by {-delay * 1000.0:.1f}ms")
                next_tick = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)

    async def _receive_loop(self, websocket: Any) -> None:
        loop = asyncio.get_running_loop()
        while not self.should_stop:
            try:
                message = await asyncio.wait_for(websocket.recv(), timeout=WS_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                continue
            except websockets.exceptions.ConnectionClosed:
                logging.warning("Connection closed by server")
                return

            data = self.parse_message(message)
            if data is None:
                continue
            if data.get("message_type") == "odometry":
                # Transform lookups wait outside the event loop
                await loop.run_in_executor(None, self.route_message, data)
            else:
                self.route_message(data)

    async def run_control_loop(self) -> None:
        """Connect to the WebSocket server and run the control loop.

        Maintains a connection with automatic retry and exponential backoff
        until should_stop is set.
        """
        retry_delay = WS_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to server{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS

                    tasks = [
                        asyncio.create_task(self._receive_loop(websocket)),
                        asyncio.create_task(self._tick_loop(websocket)),
                    ]
                    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
                    for task in done:
                        task.result()

            except Exception as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, WS_MAX_RETRY_DELAY_SECONDS)

    def stop(self) -> None:
        """Signal the host to stop."""
        self.should_stop = True

    def __enter__(self) -> "LocalPlannerClient":
        if self.telemetry is not None:
            self.telemetry.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.telemetry is not None:
            self.telemetry.cleanup()
        logging.info(
            f"Ran {self.tick_count} control ticks ({self.failed_ticks} without a command)"
        )


async def main(
    uri: str = WS_URI,
    output_dir: str = ".",
    config: Optional[ControllerConfig] = None,
    record: bool = True,
) -> None:
    """Main entry point for the WebSocket host.

    Creates a LocalPlannerClient, sets up signal handlers for graceful
    shutdown, and starts the control loop.
    """
    with LocalPlannerClient(uri, output_dir=output_dir, config=config, record=record) as client:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            client.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await client.run_control_loop()
