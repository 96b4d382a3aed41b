import math
from typing import List, Optional, Sequence

from .common import distance_between
from .robot import Pose
from .tree import PoseNode, PoseTree


class Path:
    """
    View of a node chain, anchored at `start` (the terminal, goal-side node) and
    followed through predecessor links back to a root.

    Indices count from the terminal: `select_node(0)` is `start` and the last index
    is the root, so a higher index lies further upstream.
    """

    def __init__(self, tree: PoseTree, start: int, reverse_weight: float = 1.2):
        self.tree = tree
        self.start = start
        self.reverse_weight = reverse_weight
        self._length: Optional[float] = None

    def handles(self) -> List[int]:
        """Handles from terminal to root."""
        return list(self.tree.ancestors(self.start))

    @property
    def count_nodes(self) -> int:
        return sum(1 for _ in self.tree.ancestors(self.start))

    @property
    def terminal(self) -> PoseNode:
        return self.tree[self.start]

    @property
    def root(self) -> PoseNode:
        return self.tree[self.handles()[-1]]

    def select_node(self, index: int) -> PoseNode:
        if index < 0:
            raise IndexError(f"Path index {index} out of range")
        for i, handle in enumerate(self.tree.ancestors(self.start)):
            if i == index:
                return self.tree[handle]
        raise IndexError(f"Path index {index} out of range")

    def index_of(self, node: PoseNode) -> int:
        """Position of `node` on the path, -1 if it is not part of it."""
        for i, handle in enumerate(self.tree.ancestors(self.start)):
            if handle == node.index:
                return i
        return -1

    def set_start(self, handle: int) -> None:
        self.start = handle
        self.invalidate()

    def invalidate(self) -> None:
        self._length = None

    @property
    def length(self) -> float:
        if self._length is None:
            self.calculate_length()
        return self._length

    def calculate_length(self) -> float:
        total = 0.0
        for handle in self.tree.ancestors(self.start):
            pred = self.tree.predecessor(handle)
            if pred is not None:
                total += distance_between(pred, self.tree[handle])
        self._length = total
        return total

    def cost(self) -> float:
        """Length with reverse-gear segments weighted by `reverse_weight`."""
        total = 0.0
        for handle in self.tree.ancestors(self.start):
            node = self.tree[handle]
            pred = self.tree.predecessor(handle)
            if pred is None:
                continue
            weight = self.reverse_weight if node.inverted else 1.0
            total += weight * distance_between(pred, node)
        return total

    def poses(self) -> List[Pose]:
        """Poses from root to terminal, in driving order."""
        return [self.tree[h].pose() for h in reversed(self.handles())]

    def __len__(self) -> int:
        return self.count_nodes


def extract_path(
    tree: PoseTree,
    goal: PoseNode,
    registry: Optional[Sequence[int]] = None,
    reverse_weight: float = 1.2,
) -> Path:
    """Anchor a path on the explored node nearest to `goal`."""
    candidates = tree.registry if registry is None else registry
    if not candidates:
        raise ValueError("Tree has no explored nodes")
    best = candidates[0]
    best_dist = math.inf
    for handle in candidates:
        d = distance_between(tree[handle], goal)
        if d < best_dist:
            best_dist = d
            best = handle
    return Path(tree, best, reverse_weight=reverse_weight)
