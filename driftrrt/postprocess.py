import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .common import (
    angle_between,
    angles_are_close,
    distance_between,
    heading_diff,
    sanitize_angle,
    travel_heading,
)
from .errors import PathStructureError
from .map_utils import GridMap
from .path import Path
from .robot import VehicleParams
from .tree import PoseNode

logger = logging.getLogger(__name__)

# Shortcuts between nodes closer than this are not worth re-routing.
MIN_SHORTCUT_DISTANCE = 10.0
_LENGTH_EPS = 1e-9


class PathOptimizer:
    """
    Stochastic shortcutting of a planned path with straight and circular-arc segments.

    The goal node is spliced onto the path terminal, then each round picks two path
    nodes and tries to replace the sub-path between them. A replacement is built as
    a detached chain between clones of the two nodes and only spliced in when it is
    collision free, kinematically feasible and not longer than what it replaces;
    otherwise the path is left exactly as it was.
    """

    def __init__(
        self,
        path: Path,
        grid_map: GridMap,
        end_point: PoseNode,
        params: Optional[VehicleParams] = None,
        iterations: int = 30000,
        step_width_straight: float = 15.0,
        step_width_curve: float = 10.0,
        step_width_end: float = 4.0,
        min_separation: int = 10,
        collision_step: Optional[float] = 1.0,
        seed: Optional[int] = None,
        strict: bool = False,
        progress_callback: Optional[Callable[[float], None]] = None,
    ):
        if iterations < 0:
            raise ValueError("iterations must be non-negative")
        for name, value in (
            ("step_width_straight", step_width_straight),
            ("step_width_curve", step_width_curve),
            ("step_width_end", step_width_end),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be positive")
        if min_separation < 0:
            raise ValueError("min_separation must be non-negative")
        if collision_step is not None and collision_step <= 0:
            raise ValueError("collision_step must be positive")
        self.path = path
        self.tree = path.tree
        self.map = grid_map
        self.end_point = end_point
        self.params = params if params is not None else VehicleParams()
        self.iterations = int(iterations)
        self.step_width_straight = float(step_width_straight)
        self.step_width_curve = float(step_width_curve)
        self.step_width_end = float(step_width_end)
        self.min_separation = int(min_separation)
        self.collision_step = collision_step
        self.rng = np.random.default_rng(seed)
        self.strict = strict
        self.progress_callback = progress_callback
        # informational only, updated once per round
        self.progress = 0.0
        self.stats = {"rounds": 0, "accepted_straight": 0, "accepted_curve": 0, "accepted_end": 0}

    # ------------------------------------------------------------------ driver

    def optimize(self, cancel_event=None, end_point_pass: bool = False) -> Path:
        logger.info(
            "Path length before optimization: %.2f Count: %d Cost: %.2f",
            self.path.length,
            self.path.count_nodes,
            self.path.cost(),
        )
        connected = self.optimize_for_end_point() if end_point_pass else False
        if not connected:
            self.attach_end_point()

        for it in range(self.iterations):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Optimization cancelled after %d rounds", it)
                break
            self.stats["rounds"] = it + 1
            pair = self.select_points(self.min_separation)
            if pair is not None:
                self.optimize_curves(*pair)
            self._report_progress(it + 1)

        self.path.calculate_length()
        logger.info(
            "Path length after optimization: %.2f Count: %d Cost: %.2f",
            self.path.length,
            self.path.count_nodes,
            self.path.cost(),
        )
        return self.path

    def attach_end_point(self) -> None:
        """Splice the goal onto the path terminal without any feasibility check."""
        goal = self.end_point
        if goal.attached and goal.index == self.path.start:
            return
        if not goal.attached:
            self.tree.add(goal)
        self.tree.connect(self.path.start, goal.index)
        self.path.set_start(goal.index)

    def _report_progress(self, rounds: int) -> None:
        self.progress = 100.0 * rounds / self.iterations if self.iterations else 100.0
        if self.progress_callback is not None:
            self.progress_callback(self.progress)

    def select_points(self, min_separation: int) -> Optional[Tuple[PoseNode, PoseNode]]:
        """
        Pick (start, end) with start more than `min_separation` indices upstream of end.

        start never is the root and end never is the terminal, so both always have
        the neighbours a splice needs. Returns None when the path is too short.
        """
        handles = self.path.handles()
        gap = max(1, min_separation)
        low = gap + 2
        high = len(handles) - 2
        if high < low:
            return None
        index_start = int(self.rng.integers(low, high + 1))
        index_end = int(self.rng.integers(1, index_start - gap))
        return self.tree[handles[index_start]], self.tree[handles[index_end]]

    # -------------------------------------------------------------- shortcuts

    def optimize_curves(self, start: PoseNode, end: PoseNode) -> bool:
        """Try to replace the path between `start` and downstream `end` by a straight or an arc."""
        distance = distance_between(start, end)
        if distance < MIN_SHORTCUT_DISTANCE:
            logger.debug("Rejected %r -> %r: too short (%.2f)", start, end, distance)
            return False
        # a shortcut must not silently switch between forward and reverse gear
        if start.inverted != end.inverted:
            logger.debug("Rejected %r -> %r: gear mismatch", start, end)
            return False

        start_heading = travel_heading(start)
        delta = heading_diff(travel_heading(end), start_heading)
        angle = angle_between(start, end)
        angle_deg = math.degrees(angle)

        if angles_are_close(delta, 0.0, self.params.allowed_orientation_deviation) and angles_are_close(
            start_heading, angle_deg, self.params.max_drift_angle
        ):
            return self.step_straight(start, end, distance, angle)

        if delta == 0.0:
            # parallel headings with a lateral offset cannot be joined by one arc
            logger.debug("Rejected %r -> %r: lateral offset", start, end)
            return False

        turn = math.copysign(1.0, delta)
        theta = sanitize_angle(angle_deg + turn * (180.0 - abs(delta)) / 2.0)
        radius = abs(distance / (2.0 * math.sin(math.radians(delta) / 2.0)))
        if radius < self.params.min_turn_radius:
            logger.debug("Rejected %r -> %r: radius %.2f below minimum", start, end, radius)
            return False

        theta_rad = math.radians(theta)
        middle = (start.x + math.cos(theta_rad) * radius, start.y + math.sin(theta_rad) * radius)
        # heading offset between the vehicle and the arc tangent at the start
        drift = heading_diff(start_heading, theta - turn * 90.0)
        if abs(drift) / self.params.max_drift_angle + self.params.min_turn_radius / radius >= 1.0:
            logger.debug("Rejected %r -> %r: drift %.2f exceeds budget at radius %.2f", start, end, drift, radius)
            return False

        return self.step_curve(start, end, delta, middle, radius, theta)

    def step_straight(self, node1: PoseNode, node2: PoseNode, distance: float, angle: float) -> bool:
        located = self._locate(node1, node2)
        if located is None:
            return False
        cos_a = math.cos(angle)
        sin_a = math.sin(angle)
        points = []
        i = self.step_width_straight
        while i < distance:
            points.append((node1.x + i * cos_a, node1.y + i * sin_a, node1.orientation))
            i += self.step_width_straight
        if self._try_splice(node1, node2, points, located):
            self.stats["accepted_straight"] += 1
            return True
        return False

    def step_curve(
        self,
        node1: PoseNode,
        node2: PoseNode,
        delta: float,
        middle: Tuple[float, float],
        radius: float,
        theta: float,
    ) -> bool:
        """Walk the arc around `middle` from node1 to node2 in equal angular steps."""
        located = self._locate(node1, node2)
        if located is None:
            return False
        outer_length = abs(math.radians(delta) * radius)
        steps = max(1, int(math.ceil(outer_length / self.step_width_curve)))
        angle_step = delta / steps
        points = []
        for i in range(1, steps):
            phi = math.radians(sanitize_angle(theta + i * angle_step))
            x = middle[0] - math.cos(phi) * radius
            y = middle[1] - math.sin(phi) * radius
            points.append((x, y, sanitize_angle(node1.orientation + i * angle_step)))
        if self._try_splice(node1, node2, points, located):
            self.stats["accepted_curve"] += 1
            return True
        return False

    def optimize_for_end_point(self) -> bool:
        """
        Walk upstream from the terminal and connect the first suitable nodes to the goal
        with a straight segment.

        A node qualifies when its heading matches the goal heading and the bearing to
        the goal is within the drift limit. The search keeps going upstream after a
        success, so a later connection may replace an earlier one.
        """
        goal = self.end_point
        if goal.attached and goal.index != self.path.start:
            return self._structural_reject(f"{goal!r} is attached but is not the path terminal")

        connected = False
        current = self.path.start
        if goal.attached:
            current = goal.predecessor
        logger.info(
            "Path length before optimization for end point: %.2f Count: %d Cost: %.2f",
            self.path.length,
            self.path.count_nodes,
            self.path.cost(),
        )
        while current >= 0:
            node = self.tree[current]
            upstream = node.predecessor
            if self._connect_end_point(node):
                connected = True
            current = upstream
        self.path.calculate_length()
        logger.info(
            "Path length after optimization for end point: %.2f Count: %d Cost: %.2f",
            self.path.length,
            self.path.count_nodes,
            self.path.cost(),
        )
        return connected

    def _connect_end_point(self, node: PoseNode) -> bool:
        goal = self.end_point
        if node.predecessor < 0 or node.inverted != goal.inverted:
            return False
        distance = distance_between(node, goal)
        if distance < 1.0:
            return False
        goal_heading = travel_heading(goal)
        angle = angle_between(node, goal)
        if not angles_are_close(travel_heading(node), goal_heading, self.params.allowed_orientation_deviation):
            return False
        if not angles_are_close(goal_heading, math.degrees(angle), self.params.max_drift_angle):
            return False

        handles = self.path.handles()
        index = self.path.index_of(node)
        if index < 0:
            return self._structural_reject(f"{node!r} is not on the path")
        old_length = self._chain_length(self.tree[h] for h in reversed(handles[: index + 1]))
        if not goal.attached:
            old_length += distance_between(self.path.terminal, goal)

        points = []
        i = self.step_width_end
        while i < distance:
            points.append((node.x + i * math.cos(angle), node.y + i * math.sin(angle), node.orientation))
            i += self.step_width_end
        start = node.clone()
        interior = self._build_chain(start, goal, points)
        if interior is None:
            return False
        new_length = self._chain_length([start] + interior + [goal])
        if new_length > old_length + _LENGTH_EPS:
            return False

        pred = node.predecessor
        chain = [start] + interior
        for n in chain:
            self.tree.add(n)
        for a, b in zip(chain, chain[1:]):
            self.tree.connect(a.index, b.index)
        self.tree.replace_successor(pred, node.index, start.index)
        for k in range(index):
            self.tree.disconnect(handles[k + 1], handles[k])
        if not goal.attached:
            self.tree.add(goal)
        self.tree.connect(chain[-1].index, goal.index)
        self.path.set_start(goal.index)
        self.stats["accepted_end"] += 1
        logger.debug("Connected %r to the goal with %d nodes", node, len(interior))
        return True

    # ---------------------------------------------------------------- helpers

    def _structural_reject(self, message: str) -> bool:
        if self.strict:
            raise PathStructureError(message)
        logger.warning("Rejected splice: %s", message)
        return False

    def _locate(self, node1: PoseNode, node2: PoseNode) -> Optional[Tuple[List[int], int, int]]:
        """Path handles and indices of node1 (upstream) and node2 (downstream), None if unusable."""
        handles = self.path.handles()
        try:
            index1 = handles.index(node1.index)
            index2 = handles.index(node2.index)
        except ValueError:
            self._structural_reject(f"{node1!r} or {node2!r} is not on the path")
            return None
        if index1 <= index2:
            self._structural_reject(f"{node2!r} is not downstream of {node1!r}")
            return None
        if node1.predecessor < 0:
            self._structural_reject(f"{node1!r} has no predecessor")
            return None
        if index2 == 0:
            self._structural_reject(f"{node2!r} has no successor on the path")
            return None
        return handles, index1, index2

    def _segment_blocked(self, a: Tuple[float, float], b: Tuple[float, float]) -> bool:
        if self.collision_step is None:
            return False
        dist = math.hypot(b[0] - a[0], b[1] - a[1])
        steps = max(1, int(math.ceil(dist / self.collision_step)))
        for i in range(1, steps):
            s = i / steps
            x = int(round(a[0] + (b[0] - a[0]) * s))
            y = int(round(a[1] + (b[1] - a[1]) * s))
            if self.map.is_occupied(x, y):
                return True
        return False

    def _build_chain(
        self, start: PoseNode, end: PoseNode, points: Sequence[Tuple[float, float, float]]
    ) -> Optional[List[PoseNode]]:
        """Detached interior nodes for the candidate, or None at the first blocked cell."""
        interior: List[PoseNode] = []
        last = start
        for x, y, orientation in points:
            node = PoseNode(int(round(x)), int(round(y)), orientation, start.inverted)
            if node.position == last.position:
                continue
            if self.map.is_occupied(node.x, node.y):
                return None
            if self._segment_blocked(last.position, node.position):
                return None
            interior.append(node)
            last = node
        if self._segment_blocked(last.position, end.position):
            return None
        return interior

    @staticmethod
    def _chain_length(nodes) -> float:
        total = 0.0
        prev = None
        for node in nodes:
            if prev is not None:
                total += distance_between(prev, node)
            prev = node
        return total

    def _try_splice(
        self,
        node1: PoseNode,
        node2: PoseNode,
        points: Sequence[Tuple[float, float, float]],
        located: Tuple[List[int], int, int],
    ) -> bool:
        handles, index1, index2 = located
        start = node1.clone()
        end = node2.clone()
        interior = self._build_chain(start, end, points)
        if interior is None:
            logger.debug("Rejected %r -> %r: blocked", node1, node2)
            return False

        old_length = self._chain_length(self.tree[h] for h in reversed(handles[index2 : index1 + 1]))
        new_length = self._chain_length([start] + interior + [end])
        if new_length > old_length + _LENGTH_EPS:
            logger.debug("Rejected %r -> %r: %.2f is not shorter than %.2f", node1, node2, new_length, old_length)
            return False
        # equal length counts as progress only when the chain loses nodes
        if new_length >= old_length - _LENGTH_EPS and len(interior) + 2 >= index1 - index2 + 1:
            logger.debug("Rejected %r -> %r: no gain over %.2f", node1, node2, old_length)
            return False

        chain = [start] + interior + [end]
        for n in chain:
            self.tree.add(n)
        for a, b in zip(chain, chain[1:]):
            self.tree.connect(a.index, b.index)

        successor = handles[index2 - 1]
        self.tree.replace_successor(node1.predecessor, node1.index, start.index)
        self.tree.disconnect(node2.index, successor)
        self.tree.connect(end.index, successor)
        # drop the replaced node1..node2 links; side branches stay on the detached nodes
        for k in range(index2, index1):
            self.tree.disconnect(handles[k + 1], handles[k])
        self.path.invalidate()
        logger.debug("Spliced %r -> %r: %.2f -> %.2f", node1, node2, old_length, new_length)
        return True
