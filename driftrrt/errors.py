class PathStructureError(RuntimeError):
    """A splice point is missing a link that the path invariant guarantees."""
