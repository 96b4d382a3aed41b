import math

import numpy as np
import pytest

from driftrrt.common import (
    angle_between,
    angles_are_close,
    distance_between,
    heading_diff,
    random_drift_target,
    sanitize_angle,
    select_random_node,
    travel_heading,
)
from driftrrt.tree import PoseNode


def test_sanitize_angle_is_idempotent_and_in_range():
    for a in np.linspace(-1080.0, 1080.0, 721):
        s = sanitize_angle(a)
        assert 0.0 <= s < 360.0
        assert sanitize_angle(s) == s
    assert sanitize_angle(360.0) == 0.0
    assert sanitize_angle(-90.0) == 270.0
    assert sanitize_angle(-1e-18) == 0.0


def test_heading_diff_takes_short_way_around():
    assert heading_diff(10.0, 350.0) == pytest.approx(20.0)
    assert heading_diff(350.0, 10.0) == pytest.approx(-20.0)
    assert heading_diff(180.0, 0.0) == pytest.approx(180.0)
    assert angles_are_close(5.0, 355.0, 11.0)
    assert not angles_are_close(5.0, 355.0, 9.0)


def test_angle_and_distance_between_nodes():
    a = PoseNode(0, 0, 0.0)
    b = PoseNode(3, 4, 0.0)
    assert distance_between(a, b) == pytest.approx(5.0)
    assert angle_between(a, b) == pytest.approx(math.atan2(4, 3))
    assert angle_between(b, a) == pytest.approx(math.atan2(-4, -3))


def test_travel_heading_flips_in_reverse_gear():
    assert travel_heading(PoseNode(0, 0, 30.0)) == pytest.approx(30.0)
    assert travel_heading(PoseNode(0, 0, 30.0, inverted=True)) == pytest.approx(210.0)


def test_select_random_node_covers_registry():
    rng = np.random.default_rng(0)
    registry = [4, 8, 15, 16, 23, 42]
    picks = {select_random_node(registry, rng) for _ in range(500)}
    assert picks == set(registry)
    with pytest.raises(ValueError):
        select_random_node([], rng)


def test_random_drift_target_stays_within_drift_cone():
    rng = np.random.default_rng(1)
    base = PoseNode(100, 100, 45.0)
    for _ in range(200):
        target = random_drift_target(base, 20.0, 30.0, rng)
        assert not target.inverted
        assert abs(heading_diff(target.orientation, 45.0)) <= 20.0 + 1e-9
        assert distance_between(base, target) == pytest.approx(30.0, abs=1.0)
        assert not target.attached


def test_random_drift_target_can_reverse():
    rng = np.random.default_rng(2)
    base = PoseNode(50, 50, 0.0)
    target = random_drift_target(base, 5.0, 20.0, rng, reverse_rate=1.0)
    assert target.inverted
    # drives backwards: lands behind the base while still facing forward
    assert target.x < base.x
    assert abs(heading_diff(target.orientation, 0.0)) <= 5.0 + 1e-9
