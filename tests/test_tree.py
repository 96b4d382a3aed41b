import pytest

from driftrrt import PoseNode, PoseTree


def build_branching_tree():
    tree = PoseTree()
    root = tree.add(PoseNode(0, 0, 0.0), register=True)
    a = tree.add(PoseNode(10, 0, 0.0), register=True)
    b = tree.add(PoseNode(10, 10, 45.0), register=True)
    c = tree.add(PoseNode(20, 0, 0.0), register=True)
    tree.connect(root, a)
    tree.connect(root, b)
    tree.connect(a, c)
    return tree, root, a, b, c


def test_links_are_mutually_consistent():
    tree, root, a, b, c = build_branching_tree()
    assert tree[root].successors == [a, b]
    assert tree[c].predecessor == a
    assert tree.validate() == []
    assert list(tree.ancestors(c)) == [c, a, root]
    assert tree.registry == [root, a, b, c]


def test_connect_refuses_second_predecessor():
    tree, root, a, b, c = build_branching_tree()
    with pytest.raises(ValueError):
        tree.connect(b, c)
    assert tree.validate() == []


def test_replace_successor_keeps_position():
    tree, root, a, b, c = build_branching_tree()
    new = tree.add(PoseNode(10, 1, 0.0))
    tree.replace_successor(root, a, new)
    assert tree[root].successors == [new, b]
    assert tree[new].predecessor == root
    assert tree[a].predecessor == -1
    # a keeps its own subtree
    assert tree[c].predecessor == a
    assert tree.validate() == []


def test_validate_reports_broken_links():
    tree, root, a, b, c = build_branching_tree()
    tree[c].predecessor = b
    problems = tree.validate()
    assert problems
    assert any("node 3" in p for p in problems)


def test_clone_is_detached():
    tree, root, a, b, c = build_branching_tree()
    node = tree[a]
    node.inverted = True
    copy = node.clone()
    assert copy.position == node.position
    assert copy.orientation == node.orientation
    assert copy.inverted
    assert copy.predecessor == -1
    assert copy.successors == []
    assert not copy.attached
    with pytest.raises(ValueError):
        tree.add(node)
