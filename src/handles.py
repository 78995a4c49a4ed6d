"""
Connection handle management for equipment nodes.

Handles on one side of a node are always spread evenly: for n handles the
k-th one (1-indexed, in list order) sits at 100*k/(n+1) percent along the
side, so a lone handle sits in the middle.
"""

import numpy as np

from equipment import Equipment, Handle, Side

# handles facing the sources sit on top, handles facing the loads below
SOURCE_FACING_SIDE = Side.TOP
LOAD_FACING_SIDE = Side.BOTTOM
SOURCE_HANDLE_PREFIX = "source"
LOAD_HANDLE_PREFIX = "load"


def even_positions(count: int) -> list[float]:
    """Percent positions for `count` evenly spaced handles on one side."""
    if count <= 0:
        return []
    return list(np.arange(1, count + 1) * 100.0 / (count + 1))


def redistribute_side(node: Equipment, side: Side) -> None:
    """Spread the handles on one side of a node evenly."""
    on_side = handles_by_side(node, side)
    for handle, percent in zip(on_side, even_positions(len(on_side))):
        handle.position_percent = float(percent)


def add_handle(node: Equipment, handle: Handle) -> None:
    """Insert or replace (by id) a handle, then redistribute its side."""
    node.handles = [h for h in node.handles if h.id != handle.id]
    node.handles.append(handle)
    redistribute_side(node, handle.side)


def _next_handle_id(node: Equipment, prefix: str) -> str:
    used = set()
    for handle in node.handles:
        head, _, tail = handle.id.rpartition("-")
        if head == prefix and tail.isdigit():
            used.add(int(tail))
    index = 1
    while index in used:
        index += 1
    return f"{prefix}-{index}"


def create_handle(node: Equipment, other_id: str, faces_sources: bool) -> Handle:
    """
    Allocate a handle on `node` for a new connection to `other_id`.

    Args:
        node: The equipment receiving the handle.
        other_id: Id of the equipment at the other end of the connection.
        faces_sources: True when `node` is the load of the new connection,
            so the handle goes on the upstream (top) side.

    Returns:
        The handle that was added.
    """
    if faces_sources:
        side, prefix = SOURCE_FACING_SIDE, SOURCE_HANDLE_PREFIX
    else:
        side, prefix = LOAD_FACING_SIDE, LOAD_HANDLE_PREFIX
    handle = Handle(
        id=_next_handle_id(node, prefix),
        side=side,
        position_percent=50.0,
        is_source=faces_sources,
        connected_equipment_id=other_id,
    )
    add_handle(node, handle)
    return handle


def remove_handle(node: Equipment, handle_id: str) -> bool:
    """Delete a handle by id and respace the rest of its side."""
    handle = get_handle(node, handle_id)
    if handle is None:
        return False
    node.handles = [h for h in node.handles if h.id != handle_id]
    redistribute_side(node, handle.side)
    return True


def remove_handles_for(
    node: Equipment, other_id: str, side: Side | None = None
) -> int:
    """Delete the handles on `node` that reference `other_id`, optionally on one side only."""
    doomed = [
        h
        for h in handles_for_equipment(node, other_id)
        if side is None or h.side == side
    ]
    if not doomed:
        return 0
    node.handles = [h for h in node.handles if not any(h is d for d in doomed)]
    for side in {h.side for h in doomed}:
        redistribute_side(node, side)
    return len(doomed)


def get_handle(node: Equipment, handle_id: str) -> Handle | None:
    return next((h for h in node.handles if h.id == handle_id), None)


def handles_by_side(node: Equipment, side: Side) -> list[Handle]:
    return [h for h in node.handles if h.side == side]


def handles_for_equipment(node: Equipment, equipment_id: str) -> list[Handle]:
    return [h for h in node.handles if h.connected_equipment_id == equipment_id]


def reposition_handle(node: Equipment, handle_id: str, percent: float) -> bool:
    """Move one handle along its side, e.g. after the user dragged it."""
    handle = get_handle(node, handle_id)
    if handle is None:
        return False
    handle.position_percent = float(min(100.0, max(0.0, percent)))
    return True


def percent_from_point(
    node_position: tuple[float, float],
    node_size: tuple[float, float],
    point: tuple[float, float],
    side: Side,
) -> float:
    """Convert a world point to a percentage along one side of a node."""
    width, height = node_size
    rel_x = point[0] - node_position[0]
    rel_y = point[1] - node_position[1]
    if side in (Side.TOP, Side.BOTTOM):
        span, offset = width or 100, rel_x
    else:
        span, offset = height or 100, rel_y
    return max(0.0, min(100.0, offset / span * 100))


def clear_handles(node: Equipment) -> None:
    node.handles = []
