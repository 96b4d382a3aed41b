import logging
import time
from typing import Callable, Iterator, Optional, Sequence, Tuple

import numpy as np

from .common import random_drift_target, sanitize_angle, select_random_node
from .map_utils import GridMap
from .tree import PoseNode, PoseTree

logger = logging.getLogger(__name__)


class DriftRRTPlanner:
    """
    Drift-sampled RRT for a vehicle-like robot.

    Every round picks an explored node uniformly, samples a target a fixed distance
    ahead along a randomly drifted heading and steps toward it, committing each free
    cell as a new node until the first blocked cell. There is no goal bias and no
    connect-to-goal step: the run always lasts `iterations` rounds and the goal is
    reached later by path extraction and optimization.
    """

    def __init__(
        self,
        grid_map: GridMap,
        iterations: int = 1002,
        max_drift: float = 20.0,
        step_width: int = 10,
        extension: Optional[float] = None,
        reverse_rate: float = 0.0,
        seed: Optional[int] = None,
        on_finished: Optional[Callable[["DriftRRTPlanner", dict], None]] = None,
    ):
        self.map = grid_map
        self.iterations = self._check_iterations(iterations)
        self.max_drift = self._check_drift(max_drift)
        self.step_width = self._check_step(step_width)
        self.extension = float(extension) if extension is not None else None
        if self.extension is not None and self.extension <= 0:
            raise ValueError("extension must be positive")
        if not 0.0 <= reverse_rate <= 1.0:
            raise ValueError("reverse_rate must be within [0, 1]")
        self.reverse_rate = float(reverse_rate)
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.on_finished = on_finished
        self.tree = PoseTree()
        self.root: Optional[PoseNode] = None
        self.goal: Optional[PoseNode] = None
        self.stats: dict = {}

    @staticmethod
    def _check_iterations(iterations: int) -> int:
        if iterations < 0:
            raise ValueError("iterations must be non-negative")
        return int(iterations)

    @staticmethod
    def _check_drift(max_drift: float) -> float:
        if max_drift <= 0:
            raise ValueError("max_drift must be positive")
        return float(max_drift)

    @staticmethod
    def _check_step(step_width: int) -> int:
        if int(step_width) < 1:
            raise ValueError("step_width must be at least one cell")
        return int(step_width)

    def plan(
        self,
        start_point: Sequence[float],
        start_heading: float,
        end_point: Sequence[float],
        end_heading: float,
        iterations: Optional[int] = None,
        max_drift: Optional[float] = None,
        step_width: Optional[int] = None,
        cancel_event=None,
    ) -> Tuple[PoseNode, PoseNode]:
        """
        Grow a tree from the start pose.

        Returns the root node and a detached goal node (both in grid coordinates);
        the tree itself is `self.tree`. `cancel_event` may be any object with an
        `is_set()` method (e.g. threading.Event) and is polled once per round.
        """
        if iterations is not None:
            self.iterations = self._check_iterations(iterations)
        if max_drift is not None:
            self.max_drift = self._check_drift(max_drift)
        if step_width is not None:
            self.step_width = self._check_step(step_width)

        start_time = time.time()
        sx, sy = self.map.normalize(start_point)
        gx, gy = self.map.normalize(end_point)
        if self.map.is_occupied(sx, sy):
            logger.warning("Start pose (%d, %d) lies in an occupied cell", sx, sy)

        self.tree = PoseTree()
        self.root = PoseNode(sx, sy, sanitize_angle(start_heading))
        self.tree.add(self.root, register=True)
        self.goal = PoseNode(gx, gy, sanitize_angle(end_heading))

        rejected = 0
        iterations_run = 0
        cancelled = False
        for it in range(self.iterations):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            iterations_run = it + 1
            if self._do_step():
                rejected += 1

        self.stats = {
            "nodes": len(self.tree.registry),
            "iterations": iterations_run,
            "rejected_steps": rejected,
            "time": time.time() - start_time,
            "cancelled": cancelled,
        }
        logger.info(
            "RRT finished: %d nodes after %d iterations (%d blocked rays)",
            self.stats["nodes"],
            iterations_run,
            rejected,
        )
        if self.on_finished is not None:
            self.on_finished(self, self.stats)
        return self.root, self.goal

    def _do_step(self) -> bool:
        """Run one growth round; returns True if the ray hit a blocked cell."""
        base_handle = select_random_node(self.tree.registry, self.rng)
        distance = self.extension if self.extension is not None else 3.0 * self.step_width
        target = random_drift_target(
            self.tree[base_handle], self.max_drift, distance, self.rng, self.reverse_rate
        )
        _, blocked = self._step_to_node(base_handle, target)
        return blocked

    def _step_to_node(self, base_handle: int, target: PoseNode) -> Tuple[int, bool]:
        """Commit free cells along the ray base -> target; stop at the first blocked one."""
        last = base_handle
        committed = 0
        for x, y in self._ray_cells(self.tree[base_handle], target):
            if not self.point_valid(x, y):
                return committed, True
            node = PoseNode(x, y, target.orientation, target.inverted)
            handle = self.tree.add(node, register=True)
            self.tree.connect(last, handle)
            last = handle
            committed += 1
        return committed, False

    def _ray_cells(self, base: PoseNode, target: PoseNode) -> Iterator[Tuple[int, int]]:
        """
        Cells along the line through base and target, `step_width` apart on the
        stepping axis and excluding base itself.

        Steps along x with y = m*x + b. Steep and vertical rays (including equal x)
        step along y instead, so there is never a division by zero.
        """
        x0, y0 = base.x, base.y
        dx = target.x - x0
        dy = target.y - y0
        if dx == 0 and dy == 0:
            return
        if abs(dx) >= abs(dy):
            m = dy / dx
            b = y0 - m * x0
            sign = 1 if dx > 0 else -1
            for offset in range(self.step_width, abs(dx) + 1, self.step_width):
                x = x0 + sign * offset
                yield x, int(round(m * x + b))
        else:
            m = dx / dy
            b = x0 - m * y0
            sign = 1 if dy > 0 else -1
            for offset in range(self.step_width, abs(dy) + 1, self.step_width):
                y = y0 + sign * offset
                yield int(round(m * y + b)), y

    def point_valid(self, x: int, y: int) -> bool:
        # is_occupied() is True for blocked cells, so a valid point is a free one
        return not self.map.is_occupied(x, y)
