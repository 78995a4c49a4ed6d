"""
Parent/child relative placement of equipment.

Instead of strict rows, each node is placed next to a neighbour that is
already on the canvas: parents directly above their rightmost placed child,
children directly below their rightmost placed parent. This keeps children
close to a specific parent and copes well with diagrams where the user has
already pinned some nodes. Nodes that cannot be reached from anything placed
end up in a fallback row below everything else.
"""

import logging
from typing import Optional

from layered_layout import LayoutNode, LayoutParams, LayoutResult, generate_edges
from rectangle_spacing import Rect, find_open_space

logger = logging.getLogger(__name__)


def _seed_arranged(nodes: list[LayoutNode], params: LayoutParams) -> dict[str, Rect]:
    """Pinned nodes, or the first node at the margin when nothing is pinned."""
    arranged = {
        node.id: (node.position[0], node.position[1], node.width, node.height)
        for node in nodes
        if node.is_pinned
    }
    if not arranged and nodes:
        first = nodes[0]
        arranged[first.id] = (params.margin, params.margin, first.width, first.height)
    return arranged


def _rightmost(ids: list[str], arranged: dict[str, Rect]) -> str:
    return max(ids, key=lambda i: arranged[i][0] + arranged[i][2])


def _try_place(
    node: LayoutNode, arranged: dict[str, Rect], params: LayoutParams
) -> bool:
    placed_loads = [i for i in node.load_ids if i in arranged]
    if placed_loads:
        child_x, child_y, _, _ = arranged[_rightmost(placed_loads, arranged)]
        y = child_y - params.relative_vertical_gap - node.height
        x, y = find_open_space(
            child_x,
            y,
            (node.width, node.height),
            arranged.values(),
            params.relative_node_spacing,
        )
        arranged[node.id] = (x, y, node.width, node.height)
        logger.debug("Placed %s above %s", node.id, placed_loads)
        return True

    placed_sources = [i for i in node.source_ids if i in arranged]
    if placed_sources:
        parent_x, parent_y, _, parent_h = arranged[_rightmost(placed_sources, arranged)]
        y = parent_y + parent_h + params.relative_vertical_gap
        x, y = find_open_space(
            parent_x,
            y,
            (node.width, node.height),
            arranged.values(),
            params.relative_node_spacing,
        )
        arranged[node.id] = (x, y, node.width, node.height)
        logger.debug("Placed %s below %s", node.id, placed_sources)
        return True

    return False


def _place_fallback_row(
    nodes: list[LayoutNode], arranged: dict[str, Rect], params: LayoutParams
) -> None:
    if not nodes:
        return
    logger.info(
        "Unreachable fallback: %d node(s) placed in a row: %s",
        len(nodes),
        ", ".join(n.id for n in nodes),
    )
    if arranged:
        x = min(r[0] for r in arranged.values())
        y = max(r[1] + r[3] for r in arranged.values()) + params.relative_vertical_gap
    else:
        x = y = params.margin
    for node in nodes:
        arranged[node.id] = (x, y, node.width, node.height)
        x += node.width + params.relative_node_spacing


def relative_layout(
    nodes: list[LayoutNode], params: Optional[LayoutParams] = None
) -> LayoutResult:
    """
    Place nodes relative to already placed neighbours.

    Runs at most twice as many passes as there are nodes, stopping early
    when a pass places nothing.
    """
    params = params or LayoutParams()
    arranged = _seed_arranged(nodes, params)

    max_passes = len(nodes) * 2
    for _ in range(max_passes):
        unplaced = [n for n in nodes if n.id not in arranged]
        if not unplaced:
            break
        placed_this_pass = sum(_try_place(n, arranged, params) for n in unplaced)
        if placed_this_pass == 0:
            break

    _place_fallback_row([n for n in nodes if n.id not in arranged], arranged, params)

    positions = {node.id: (arranged[node.id][0], arranged[node.id][1]) for node in nodes}
    return LayoutResult(positions=positions, edges=generate_edges(nodes))
