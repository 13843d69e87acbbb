"""Goal tracking and control loop orchestration.

LocalPlanner ties the control pipeline together:
- Pose updates from localization are stored in the shared robot state
- Plans from the global planner become goals and reference trajectories
- Every control tick runs the safety check, the deviation check, the
  feedback controller and the command shaper, in that order
- The host polls is_goal_reached() to learn when the goal has been reached

Goal lifecycle: IDLE (no goal) -> TRACKING (goal set, trajectory active) ->
reached (transient) -> IDLE. Deviation from the reference drops the goal and
marks a global replan as owed.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

from .config import NEW_GOAL_EPSILON, TERM_BLUE, TERM_RESET, ControllerConfig
from .controller import Controller, PIDController
from .geometry import Pose, Twist, angular_distance, linear_distance
from .motion_planner import LinearMotionPlanner, MotionPlanner
from .replanning import ReplanningCoordinator
from .safety import SafetySupervisor
from .shaper import shape_command
from .state import RobotState, SharedRobotState
from .telemetry import TelemetrySink
from .transform import TransformProvider

CONTROLLER_TYPES: Dict[str, Callable[[], Controller]] = {"pid": PIDController}
MOTION_PLANNER_TYPES: Dict[str, Callable[[], MotionPlanner]] = {"linear": LinearMotionPlanner}


def _create(registry: Dict[str, Callable], kind: str, name: str):
    try:
        factory = registry[name]
    except KeyError:
        raise ValueError(
            f"Unknown {kind} '{name}'. Available: {', '.join(sorted(registry))}"
        ) from None
    return factory()


class GoalStatus(Enum):
    IDLE = "idle"
    TRACKING = "tracking"


@dataclass(frozen=True)
class Goal:
    """Target pose with the tolerances it was accepted with."""

    pose: Pose
    lin_tolerance: float
    ang_tolerance: float

    def reached_by(self, pose: Pose) -> bool:
        return (
            linear_distance(pose, self.pose) <= self.lin_tolerance
            and angular_distance(pose, self.pose) <= self.ang_tolerance
        )

    def differs_from(self, pose: Pose) -> bool:
        return (
            linear_distance(self.pose, pose) > NEW_GOAL_EPSILON
            or angular_distance(self.pose, pose) > NEW_GOAL_EPSILON
        )


class LocalPlanner:
    """Closed-loop local trajectory controller.

    Attributes:
        supervisor: Safety supervisor vetoing motion.
        replanning: Replanning coordinator shared with the global planner.
    """

    def __init__(
        self,
        transform_provider: TransformProvider,
        replanning: ReplanningCoordinator,
        config: Optional[ControllerConfig] = None,
        global_frame: Optional[Callable[[], str]] = None,
        command_sink: Optional[Callable[[Twist], None]] = None,
        telemetry: Optional[TelemetrySink] = None,
        supervisor: Optional[SafetySupervisor] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the controller in the IDLE state.

        Args:
            transform_provider: Resolves localization poses into the control frame.
            replanning: Coordinator shared with the global planner.
            config: Initial configuration (module defaults if None).
            global_frame: Returns the control frame name. Defaults to the
                ``global_frame`` of the active config.
            command_sink: Receives the shaped command of every successful tick.
            telemetry: Optional sink for references, trajectories and commands.
            supervisor: Safety supervisor. Built from the config's observer
                tags if None.
            clock: Time source used to stamp plans received before any pose.

        Raises:
            ValueError: If the config names an unknown controller, motion
                planner or safety observer.
        """
        self._config = config if config is not None else ControllerConfig()
        self.replanning = replanning
        self._command_sink = command_sink
        self._telemetry = telemetry
        self._clock = clock

        if global_frame is None:

            def global_frame() -> str:
                return self._config.global_frame

        self._state = SharedRobotState(
            transform_provider, global_frame, transform_timeout=self._config.transform_timeout
        )

        self.supervisor = (
            supervisor
            if supervisor is not None
            else SafetySupervisor.from_tags(self._config.safety_observers)
        )
        self._controller: Controller = _create(
            CONTROLLER_TYPES, "controller", self._config.controller
        )
        self._motion_planner: MotionPlanner = _create(
            MOTION_PLANNER_TYPES, "motion planner", self._config.motion_planner
        )

        self._goal: Optional[Goal] = None

        logging.info(
            f"{TERM_BLUE}Local planner ready: controller={self._config.controller}, "
            f"motion_planner={self._config.motion_planner}, "
            f"safety_observers={self.supervisor.tags}{TERM_RESET}"
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> ControllerConfig:
        return self._config

    @property
    def goal(self) -> Optional[Goal]:
        with self._state.lock:
            return self._goal

    @property
    def status(self) -> GoalStatus:
        return GoalStatus.IDLE if self.goal is None else GoalStatus.TRACKING

    @property
    def controller(self) -> Controller:
        return self._controller

    @property
    def motion_planner(self) -> MotionPlanner:
        return self._motion_planner

    def robot_state(self) -> Optional[RobotState]:
        return self._state.snapshot()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def update_pose(
        self, raw_pose: Pose, frame_id: str, timestamp: float, twist: Optional[Twist] = None
    ) -> bool:
        """Store a localization update. Safe to call from any thread.

        Returns:
            False if the update was dropped because its transform was unavailable.
        """
        return self._state.update_pose(raw_pose, frame_id, timestamp, twist)

    def apply_config(self, config: ControllerConfig) -> None:
        """Replace the active configuration between ticks.

        Safety observers, controller and motion planner are chosen at
        construction; changes to those fields are reported and ignored.
        Goal tolerances apply from the next accepted goal; the goal in flight
        keeps the tolerances it was accepted with.
        """
        if tuple(config.safety_observers) != tuple(self.supervisor.tags):
            logging.warning(
                f"Safety observers {list(config.safety_observers)} requested at runtime; "
                f"keeping {self.supervisor.tags} until restart"
            )
        if (config.controller, config.motion_planner) != (
            self._config.controller,
            self._config.motion_planner,
        ):
            logging.warning("Controller and motion planner variants only change on restart")
        self._state.transform_timeout = config.transform_timeout
        self._config = config
        logging.info("Applied new controller configuration")
        logging.debug(f"Configuration: {config.to_dict()}")

    def set_plan(self, waypoints: Sequence[Pose]) -> bool:
        """Accept a waypoint sequence from the global planner.

        A plan whose terminal waypoint differs from the current goal starts a
        new goal (controller and motion planner reset); otherwise only the
        trajectory is updated. Plans arriving while no replanning is owed are
        ignored.

        Args:
            waypoints: Ordered waypoints in the control frame.

        Returns:
            False if the plan is empty, True otherwise.
        """
        if not waypoints:
            logging.warning("Rejecting empty plan")
            return False
        if not self.replanning.is_owed():
            return True

        config = self._config
        waypoints = list(waypoints)
        terminal = waypoints[-1]
        with self._state.lock:
            state = self._state.snapshot()
            stamp = state.timestamp if state is not None else self._clock()
            new_goal = self._goal is None or self._goal.differs_from(terminal)
            if new_goal:
                self._goal = Goal(terminal, config.goal_lin_tolerance, config.goal_ang_tolerance)
                self._controller.reset(stamp)
                self._motion_planner.reset(waypoints, stamp)
                self.replanning.clear()
            else:
                self._motion_planner.update(waypoints, stamp)

        if new_goal:
            logging.info(
                f"New goal ({terminal.x:.2f}, {terminal.y:.2f}, {terminal.theta:.2f}) "
                f"with {len(waypoints)} waypoints"
            )
        else:
            logging.debug(f"Trajectory updated with {len(waypoints)} waypoints")
        self._publish("publish_trajectory", waypoints, stamp)
        return True

    # ------------------------------------------------------------------
    # Control tick
    # ------------------------------------------------------------------

    def compute_velocity_commands(self) -> Tuple[bool, Twist]:
        """Run one control tick.

        Returns:
            Tuple of (success, command). On success the command has also been
            handed to the command sink. A safety veto is a success with the
            zero twist. Failure means no command was issued: either there is
            nothing to track or the robot deviated from its trajectory and a
            replan is now owed.
        """
        config = self._config

        if not self.supervisor.all_safe():
            logging.debug(f"Safety veto from {self.supervisor.unsafe_tags()}")
            command = Twist.zero()
            self._emit(command)
            return True, command

        with self._state.lock:
            state = self._state.snapshot()
            if state is None or self._goal is None:
                return False, Twist.zero()

            ref_pose, ref_twist = self._motion_planner.compute_reference(state.timestamp)
            lin_deviation = linear_distance(state.pose, ref_pose)
            ang_deviation = angular_distance(state.pose, ref_pose)
            deviated = (
                lin_deviation > config.max_safe_lin_displacement
                or ang_deviation > config.max_safe_ang_displacement
            )
            if deviated:
                self._goal = None
                self.replanning.request_replanning()
            else:
                map_command = self._controller.compute_command(
                    state.timestamp, state.pose, ref_pose, state.twist, ref_twist
                )

        self._publish("publish_reference", ref_pose, state.timestamp)

        if deviated:
            logging.warning(
                f"Robot is too far from the planned trajectory "
                f"({lin_deviation:.2f}m, {ang_deviation:.2f}rad). Replanning requested."
            )
            return False, Twist.zero()

        command = shape_command(
            map_command,
            state.pose.theta,
            config.max_safe_lin_velocity,
            config.max_safe_ang_velocity,
        )
        self._emit(command)
        self._publish("publish_command", state.pose, command, state.timestamp)
        return True, command

    def is_goal_reached(self) -> bool:
        """Check whether the robot is within tolerance of the current goal.

        Returns True exactly once per goal: reaching it clears the goal and
        the replanning flag, returning the controller to IDLE.
        """
        with self._state.lock:
            goal = self._goal
            state = self._state.snapshot()
            if goal is None or state is None or not goal.reached_by(state.pose):
                return False
            self._goal = None

        self.replanning.clear()
        if self._config.verbose:
            logging.info(f"{TERM_BLUE}✓ Goal reached{TERM_RESET}")
        return True

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _emit(self, command: Twist) -> None:
        if self._command_sink is not None:
            self._command_sink(command)

    def _publish(self, method: str, *args) -> None:
        """Forward to the telemetry sink; sink failures never reach the control path."""
        if self._telemetry is None:
            return
        try:
            getattr(self._telemetry, method)(*args)
        except Exception as e:
            logging.warning(f"Telemetry {method} failed: {e}")
