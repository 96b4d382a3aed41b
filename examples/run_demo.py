import csv
import logging
import time
from pathlib import Path

import numpy as np

from driftrrt import DriftRRTPlanner, GridMap, PathOptimizer, VehicleParams, extract_path
from driftrrt.common import distance_between


def make_corridor_map(length: int = 400, width: int = 80):
    cells_y = width + 40  # include walls above/below
    grid = np.zeros((cells_y, length), dtype=np.uint8)
    grid[:20, :] = 1
    grid[20 + width :, :] = 1
    # partial block forcing a swerve
    grid[20 : 20 + width // 2, 180:200] = 1
    return GridMap(grid, resolution=1.0, origin=(0.0, 0.0))


def make_open_map(width: int = 300, height: int = 200):
    # empty map for a fast-success baseline scenario
    return GridMap.empty(width, height)


def run_scenario(name: str, grid_map: GridMap, start, goal, results: list):
    print(f"\n=== Scenario: {name} ===")
    t0 = time.time()
    planner = DriftRRTPlanner(grid_map, iterations=3000, max_drift=20.0, step_width=10, seed=0)
    root, goal_node = planner.plan(start[:2], start[2], goal[:2], goal[2])
    path = extract_path(planner.tree, goal_node)
    gap = distance_between(path.terminal, goal_node)
    raw_length = path.length + gap
    raw_count = path.count_nodes + 1

    optimizer = PathOptimizer(path, grid_map, goal_node, params=VehicleParams(), iterations=20000, seed=0)
    optimizer.optimize()
    elapsed = time.time() - t0
    print(
        f"nodes={planner.stats['nodes']}, gap_to_goal={gap:.1f}, "
        f"raw_len={raw_length:.1f} ({raw_count} nodes), "
        f"opt_len={path.length:.1f} ({path.count_nodes} nodes), time={elapsed:.2f}s"
    )
    results.append(
        {
            "scenario": name,
            "tree_nodes": planner.stats["nodes"],
            "gap_to_goal": gap,
            "raw_length": raw_length,
            "optimized_length": path.length,
            "optimized_cost": path.cost(),
            "straight": optimizer.stats["accepted_straight"],
            "curves": optimizer.stats["accepted_curve"],
            "time": elapsed,
        }
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    output_dir = Path(__file__).resolve().parent / "outputs"
    results = []

    run_scenario("Corridor with partial block", make_corridor_map(), (20, 60, 0.0), (380, 60, 0.0), results)
    run_scenario("Open field", make_open_map(), (20, 100, 0.0), (250, 140, 30.0), results)

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / "results.csv"
    with csv_path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(results[0].keys()))
        writer.writeheader()
        writer.writerows(results)
    print(f"\nSaved quantitative results: {csv_path}")


if __name__ == "__main__":
    main()
