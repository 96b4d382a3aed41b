from dataclasses import dataclass
from typing import Tuple


@dataclass
class VehicleParams:
    """Kinematic limits shared by the optimizer's feasibility checks."""

    min_turn_radius: float = 20.0
    max_drift_angle: float = 10.0  # degrees between orientation and direction of travel
    allowed_orientation_deviation: float = 1.0  # degrees
    reverse_weight: float = 1.2  # cost multiplier for segments driven in reverse

    def __post_init__(self):
        if self.min_turn_radius <= 0:
            raise ValueError("min_turn_radius must be positive")
        if self.max_drift_angle <= 0:
            raise ValueError("max_drift_angle must be positive")
        if self.allowed_orientation_deviation < 0:
            raise ValueError("allowed_orientation_deviation must be non-negative")


@dataclass(frozen=True)
class Pose:
    x: int
    y: int
    theta: float  # degrees
    inverted: bool = False

    def as_tuple(self) -> Tuple[int, int, float]:
        return self.x, self.y, self.theta
