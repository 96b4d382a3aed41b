import math
from typing import Sequence

import numpy as np

from .tree import PoseNode


def sanitize_angle(angle: float) -> float:
    """Wrap angle (degrees) to [0, 360)."""
    a = math.fmod(angle, 360.0)
    if a < 0.0:
        a += 360.0
    # fmod of a tiny negative value can round up to exactly 360
    if a >= 360.0:
        a = 0.0
    return a


def heading_diff(a: float, b: float) -> float:
    """Smallest signed difference a-b in degrees, in (-180, 180]."""
    d = sanitize_angle(a - b)
    if d > 180.0:
        d -= 360.0
    return d


def angles_are_close(a: float, b: float, tolerance: float) -> bool:
    return abs(heading_diff(a, b)) < tolerance


def travel_heading(node: PoseNode) -> float:
    """Direction of motion in degrees; a node in reverse gear drives against its orientation."""
    if node.inverted:
        return sanitize_angle(node.orientation + 180.0)
    return sanitize_angle(node.orientation)


def angle_between(a: PoseNode, b: PoseNode) -> float:
    """Bearing of the chord a -> b in radians."""
    return math.atan2(b.y - a.y, b.x - a.x)


def distance_between(a: PoseNode, b: PoseNode) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def select_random_node(registry: Sequence[int], rng: np.random.Generator) -> int:
    """Uniform pick over the registry of explored nodes; returns a node handle."""
    if not registry:
        raise ValueError("Cannot sample from an empty registry")
    return registry[int(rng.integers(0, len(registry)))]


def random_drift_target(
    base: PoseNode,
    max_drift: float,
    distance: float,
    rng: np.random.Generator,
    reverse_rate: float = 0.0,
) -> PoseNode:
    """
    Sample a detached target node `distance` away from `base`.

    The travel heading is perturbed uniformly within +-max_drift degrees of the base
    travel heading, so growth is biased along the existing pose rather than uniform
    over the map. With probability `reverse_rate` the target switches gear.
    """
    inverted = base.inverted
    heading = travel_heading(base)
    if reverse_rate > 0.0 and rng.random() < reverse_rate:
        inverted = not inverted
        heading = sanitize_angle(heading + 180.0)
    heading = sanitize_angle(heading + rng.uniform(-max_drift, max_drift))
    rad = math.radians(heading)
    x = int(round(base.x + distance * math.cos(rad)))
    y = int(round(base.y + distance * math.sin(rad)))
    orientation = sanitize_angle(heading + 180.0) if inverted else heading
    return PoseNode(x, y, orientation, inverted=inverted)
