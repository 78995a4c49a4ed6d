"""
Snap-to-straight-edge behaviour while dragging equipment nodes.

On every drag tick the tentative position of the dragged node is compared
with each node it is connected to. When the dragged node's handle comes
within the threshold of the partner handle on one axis, the node is shifted
so the two handle centres line up exactly and the edge runs straight.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from shapely.geometry import LineString, Point

from equipment import EquipmentType
from equipment_graph import EquipmentGraph
from layered_layout import LayoutEdge

logger = logging.getLogger(__name__)

SNAP_THRESHOLD = 20  # px
FALLBACK_SIZE = (100.0, 50.0)


@dataclass(frozen=True)
class SnapLine:
    """A guide line: vertical when `x` is set, horizontal when `y` is set."""

    x: Optional[float] = None
    y: Optional[float] = None


@dataclass
class SnapResult:
    position: tuple[float, float]
    snap_lines: list[SnapLine] = field(default_factory=list)


def distance_to_segment(
    point: tuple[float, float],
    start: tuple[float, float],
    end: tuple[float, float],
) -> float:
    if start == end:
        return Point(point).distance(Point(start))
    return LineString([start, end]).distance(Point(point))


class NodeSnapper:
    """
    Computes snapped positions for a node being dragged.

    Positions passed in describe what is currently rendered, which during a
    drag may differ from what is stored in the graph. The graph is only
    written when a drag ends.
    """

    def __init__(self, graph: EquipmentGraph, threshold: float = SNAP_THRESHOLD):
        self.graph = graph
        self.threshold = threshold
        self.snap_lines: list[SnapLine] = []

    def _size(self, node_id: str) -> tuple[float, float]:
        if node_id in self.graph:
            return self.graph.get(node_id).dimensions()
        return FALLBACK_SIZE

    def _bus_handle_count(self, node_id: str, top: bool) -> int:
        connected = self.graph.sources(node_id) if top else self.graph.loads(node_id)
        return len(connected) or 1

    def _is_bus(self, node_id: str) -> bool:
        return (
            node_id in self.graph
            and self.graph.get(node_id).equipment_type is EquipmentType.BUS
        )

    def handle_center(
        self,
        node_id: str,
        handle_id: str,
        position: tuple[float, float],
    ) -> tuple[float, float]:
        """
        World coordinates of a handle's centre for a node at `position`.

        Bus handles `top-k` / `bottom-k` are spread across the bus width, the
        k-th of n at (k+1)/(n+1) of it. Unknown handle ids resolve to the
        node centre.
        """
        x, y = position
        width, height = self._size(node_id)
        center_x, center_y = x + width / 2, y + height / 2

        side, _, index = handle_id.partition("-")
        if side in ("top", "bottom"):
            handle_x = center_x
            if index and self._is_bus(node_id):
                try:
                    k = int(index)
                except ValueError:
                    k = None
                if k is not None:
                    n = self._bus_handle_count(node_id, top=side == "top")
                    handle_x = x + (k + 1) / (n + 1) * width
            return handle_x, (y if side == "top" else y + height)
        if side == "left":
            return x, center_y
        if side == "right":
            return x + width, center_y
        return center_x, center_y

    def snap_to_straight_edge(
        self,
        dragged_id: str,
        tentative: tuple[float, float],
        positions: Mapping[str, tuple[float, float]],
        edges: Iterable[LayoutEdge],
    ) -> SnapResult:
        """
        Adjust `tentative` so the dragged node's edges run straight.

        Each connected edge may propose a snap on each axis; per axis the
        candidate closest to the dragged handle wins (the first one on a tie).
        """
        snapped_x, snapped_y = tentative
        best_x: Optional[tuple[float, float]] = None  # (distance, line x)
        best_y: Optional[tuple[float, float]] = None

        for edge in edges:
            if dragged_id == edge.source:
                other_id = edge.target
                dragged_handle = edge.source_handle or "bottom"
                other_handle = edge.target_handle or "top"
            elif dragged_id == edge.target:
                other_id = edge.source
                dragged_handle = edge.target_handle or "top"
                other_handle = edge.source_handle or "bottom"
            else:
                continue
            if other_id not in positions:
                continue

            other_x, other_y = self.handle_center(
                other_id, other_handle, positions[other_id]
            )
            own_x, own_y = self.handle_center(dragged_id, dragged_handle, tentative)

            x_diff = abs(own_x - other_x)
            if x_diff < self.threshold and (best_x is None or x_diff < best_x[0]):
                best_x = (x_diff, other_x)
                snapped_x = other_x - (own_x - tentative[0])

            y_diff = abs(own_y - other_y)
            if y_diff < self.threshold and (best_y is None or y_diff < best_y[0]):
                best_y = (y_diff, other_y)
                snapped_y = other_y - (own_y - tentative[1])

        snap_lines = []
        if best_x is not None:
            snap_lines.append(SnapLine(x=best_x[1]))
        if best_y is not None:
            snap_lines.append(SnapLine(y=best_y[1]))
        return SnapResult(position=(snapped_x, snapped_y), snap_lines=snap_lines)

    def drag(
        self,
        dragged_id: str,
        tentative: tuple[float, float],
        positions: Mapping[str, tuple[float, float]],
        edges: Iterable[LayoutEdge],
        dragging: bool = True,
    ) -> SnapResult:
        """
        Handle one drag event.

        While `dragging` the snap lines are kept for display. When the drag
        ends the snap is computed once more, the lines are cleared and the
        final position is committed into the graph.
        """
        result = self.snap_to_straight_edge(dragged_id, tentative, positions, edges)
        if dragging:
            self.snap_lines = result.snap_lines
            return result

        self.snap_lines = []
        self.graph.set_position(dragged_id, result.position)
        logger.debug("Committed %s at %s", dragged_id, result.position)
        return result

    def cancel_drag(self) -> None:
        """Abandon the current drag without committing anything."""
        self.snap_lines = []

    # --- Hit testing ---
    def node_at_point(
        self,
        point: tuple[float, float],
        positions: Mapping[str, tuple[float, float]],
        tolerance: float = 10,
    ) -> Optional[str]:
        """Id of the first node whose box (grown by `tolerance`) holds `point`."""
        px, py = point
        for node_id, (x, y) in positions.items():
            width, height = self._size(node_id)
            height = max(height, 30)  # thin buses are hard to hit otherwise
            if (
                x - tolerance <= px <= x + width + tolerance
                and y - tolerance <= py <= y + height + tolerance
            ):
                return node_id
        return None

    def closest_edge(
        self,
        point: tuple[float, float],
        positions: Mapping[str, tuple[float, float]],
        edges: Iterable[LayoutEdge],
        threshold: float = 50,
    ) -> tuple[Optional[LayoutEdge], float]:
        """Closest edge to `point` (bottom of source to top of load) within `threshold`."""
        closest, min_distance = None, float("inf")
        for edge in edges:
            if edge.source not in positions or edge.target not in positions:
                continue
            sx, sy = positions[edge.source]
            sw, sh = self._size(edge.source)
            tx, ty = positions[edge.target]
            tw, _ = self._size(edge.target)
            distance = distance_to_segment(
                point, (sx + sw / 2, sy + sh), (tx + tw / 2, ty)
            )
            if distance < min_distance and distance < threshold:
                closest, min_distance = edge, distance
        return closest, min_distance
