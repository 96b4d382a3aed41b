"""
Pose tree storage.

Nodes live in an arena (`PoseTree.nodes`) and refer to each other by integer
handle: `predecessor` is a navigation-only back reference, `successors` is the
authoritative ownership list. Re-parenting is a handle rewrite.
"""

from typing import Iterator, List, Optional

from .robot import Pose


class PoseNode:
    __slots__ = ("x", "y", "orientation", "inverted", "predecessor", "successors", "index")

    def __init__(
        self,
        x: int,
        y: int,
        orientation: float,
        inverted: bool = False,
        predecessor: int = -1,
    ):
        self.x = int(x)
        self.y = int(y)
        self.orientation = float(orientation)
        self.inverted = bool(inverted)
        self.predecessor = predecessor
        self.successors: List[int] = []
        self.index = -1  # -1 while detached from any tree

    @property
    def position(self):
        return self.x, self.y

    @property
    def attached(self) -> bool:
        return self.index >= 0

    def clone(self) -> "PoseNode":
        """Detached copy: same pose and gear, no links."""
        return PoseNode(self.x, self.y, self.orientation, self.inverted)

    def pose(self) -> Pose:
        return Pose(self.x, self.y, self.orientation, self.inverted)

    def __repr__(self) -> str:
        return (
            f"PoseNode(#{self.index}, x={self.x}, y={self.y}, "
            f"orientation={self.orientation:.1f}, inverted={self.inverted})"
        )


class PoseTree:
    def __init__(self):
        self.nodes: List[PoseNode] = []
        # handles committed by the planner, used for uniform sampling
        self.registry: List[int] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, handle: int) -> PoseNode:
        return self.nodes[handle]

    def __iter__(self) -> Iterator[PoseNode]:
        return iter(self.nodes)

    def add(self, node: PoseNode, register: bool = False) -> int:
        if node.attached:
            raise ValueError(f"{node!r} already belongs to a tree")
        node.index = len(self.nodes)
        self.nodes.append(node)
        if register:
            self.registry.append(node.index)
        return node.index

    def connect(self, parent: int, child: int) -> None:
        """Append `child` to `parent`'s successors; child must be a root."""
        c = self.nodes[child]
        if c.predecessor >= 0:
            raise ValueError(f"{c!r} already has a predecessor")
        self.nodes[parent].successors.append(child)
        c.predecessor = parent

    def disconnect(self, parent: int, child: int) -> None:
        self.nodes[parent].successors.remove(child)
        self.nodes[child].predecessor = -1

    def replace_successor(self, parent: int, old: int, new: int) -> None:
        """Swap `old` for `new` in parent's successor list, keeping its position."""
        p = self.nodes[parent]
        pos = p.successors.index(old)
        if self.nodes[new].predecessor >= 0:
            raise ValueError(f"{self.nodes[new]!r} already has a predecessor")
        p.successors[pos] = new
        self.nodes[new].predecessor = parent
        self.nodes[old].predecessor = -1

    def predecessor(self, handle: int) -> Optional[PoseNode]:
        pred = self.nodes[handle].predecessor
        return self.nodes[pred] if pred >= 0 else None

    def ancestors(self, handle: int) -> Iterator[int]:
        """Yield `handle` and every handle on the way to its root."""
        current = handle
        while current >= 0:
            yield current
            current = self.nodes[current].predecessor

    def validate(self) -> List[str]:
        """Return a list of link inconsistencies; empty means the arena is a forest."""
        problems: List[str] = []
        parent_of = {}
        for node in self.nodes:
            for child in node.successors:
                if child in parent_of:
                    problems.append(f"node {child} listed as successor of {parent_of[child]} and {node.index}")
                parent_of[child] = node.index
                if self.nodes[child].predecessor != node.index:
                    problems.append(
                        f"node {child} is a successor of {node.index} but points to {self.nodes[child].predecessor}"
                    )
        for node in self.nodes:
            pred = node.predecessor
            if pred >= 0 and node.index not in self.nodes[pred].successors:
                problems.append(f"node {node.index} points to {pred} which does not list it")
        for node in self.nodes:
            seen = set()
            for h in self.ancestors(node.index):
                if h in seen:
                    problems.append(f"cycle through node {h}")
                    break
                seen.add(h)
        return problems
