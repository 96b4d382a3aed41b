import pytest

from driftrrt import Path, PoseNode, PoseTree, extract_path


def make_chain(points, inverted=()):
    """Root-to-terminal chain; returns the tree and the handles in driving order."""
    tree = PoseTree()
    handles = []
    for i, (x, y, theta) in enumerate(points):
        h = tree.add(PoseNode(x, y, theta, inverted=i in inverted), register=True)
        if handles:
            tree.connect(handles[-1], h)
        handles.append(h)
    return tree, handles


def test_select_node_counts_from_terminal():
    tree, handles = make_chain([(0, 0, 0.0), (10, 0, 0.0), (20, 0, 0.0), (30, 0, 0.0)])
    path = Path(tree, handles[-1])
    assert path.count_nodes == 4
    assert len(path) == 4
    assert path.select_node(0) is tree[handles[-1]]
    assert path.select_node(3) is tree[handles[0]]
    assert path.root is tree[handles[0]]
    assert path.index_of(tree[handles[1]]) == 2
    with pytest.raises(IndexError):
        path.select_node(4)


def test_length_is_cached_until_invalidated():
    tree, handles = make_chain([(0, 0, 0.0), (3, 4, 0.0), (6, 8, 0.0)])
    path = Path(tree, handles[-1])
    assert path.length == pytest.approx(10.0)
    tree[handles[-1]].x = 3
    tree[handles[-1]].y = 14
    assert path.length == pytest.approx(10.0)
    path.invalidate()
    assert path.length == pytest.approx(5.0 + 10.0)


def test_cost_weights_reverse_segments():
    tree, handles = make_chain([(0, 0, 0.0), (10, 0, 0.0), (0, 0, 0.0)], inverted={2})
    path = Path(tree, handles[-1], reverse_weight=1.5)
    assert path.length == pytest.approx(20.0)
    assert path.cost() == pytest.approx(10.0 + 15.0)


def test_poses_are_in_driving_order():
    tree, handles = make_chain([(0, 0, 0.0), (10, 0, 10.0), (20, 2, 20.0)])
    poses = Path(tree, handles[-1]).poses()
    assert [p.as_tuple() for p in poses] == [(0, 0, 0.0), (10, 0, 10.0), (20, 2, 20.0)]


def test_extract_path_anchors_on_nearest_explored_node():
    tree, handles = make_chain([(0, 0, 0.0), (10, 0, 0.0), (20, 0, 0.0)])
    side = tree.add(PoseNode(12, 9, 60.0), register=True)
    tree.connect(handles[1], side)
    path = extract_path(tree, PoseNode(13, 12, 0.0))
    assert path.start == side
    assert path.count_nodes == 3
    assert extract_path(tree, PoseNode(40, 0, 0.0)).start == handles[-1]
