"""
Plan-then-optimize pipeline for vehicle-like robots on occupancy grids.
Exports:
- DriftRRTPlanner: drift-sampled tree growth from the start pose
- PathOptimizer: straight/arc shortcutting under turning-radius and drift limits
"""

from .errors import PathStructureError
from .map_utils import GridMap
from .path import Path, extract_path
from .postprocess import PathOptimizer
from .robot import Pose, VehicleParams
from .rrt import DriftRRTPlanner
from .tree import PoseNode, PoseTree

__all__ = [
    "DriftRRTPlanner",
    "PathOptimizer",
    "Path",
    "extract_path",
    "PoseNode",
    "PoseTree",
    "Pose",
    "VehicleParams",
    "GridMap",
    "PathStructureError",
]
