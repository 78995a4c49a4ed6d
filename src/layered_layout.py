"""
Layered placement of equipment for single line diagrams.

Nodes are bucketed into levels with a breadth-first topological sweep
(Kahn's algorithm) over the source -> load direction, then every level is
laid out as a centred row. Sources therefore always sit above their loads,
and a node fed by several sources only drops into a level once all of them
have been placed.

Cycles are not broken: nodes the sweep never reaches are appended as
single-node rows at the bottom, in input order. The layout never raises.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional

import networkx as nx
import numpy as np

from equipment import EquipmentType

logger = logging.getLogger(__name__)

# --- Constants ---
MARGIN = 50
VERTICAL_SPACING = 100  # distance between level rows
NODE_SPACING = 80  # horizontal gap between nodes in a row
CONTAINER_WIDTH = 800
NODE_PADDING = 16
MINIMUM_WIDTH = 40


# --- Enums and Dataclasses ---
class LayoutStrategy(Enum):
    LAYERED = "layered"
    RELATIVE = "relative"


@dataclass
class LayoutParams:
    margin: float = MARGIN
    vertical_spacing: float = VERTICAL_SPACING
    node_spacing: float = NODE_SPACING
    container_width: float = CONTAINER_WIDTH
    node_padding: float = NODE_PADDING
    minimum_width: float = MINIMUM_WIDTH
    # used by the relative (parent/child) strategy
    relative_vertical_gap: float = 120
    relative_node_spacing: float = 10

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LayoutParams":
        """Build params from a mapping, ignoring keys that are not fields."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown layout parameters: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LayoutNode:
    """Snapshot of one equipment as seen by the layout engine."""

    id: str
    equipment_type: EquipmentType
    width: float
    height: float
    source_ids: tuple[str, ...] = ()
    load_ids: tuple[str, ...] = ()
    position: Optional[tuple[float, float]] = None  # None while unset

    @property
    def is_pinned(self) -> bool:
        return self.position is not None


@dataclass(frozen=True)
class LayoutEdge:
    id: str
    source: str
    target: str
    source_handle: str = "bottom"
    target_handle: str = "top"


@dataclass
class LayoutResult:
    positions: dict[str, tuple[float, float]] = field(default_factory=dict)
    edges: list[LayoutEdge] = field(default_factory=list)
    levels: list[list[str]] = field(default_factory=list)


# --- Graph and edge generation ---
def build_dependency_graph(nodes: list[LayoutNode]) -> nx.DiGraph:
    """
    Directed source -> load graph over the snapshot.

    Load ids that are not part of the snapshot are ignored.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(node.id for node in nodes)
    for node in nodes:
        for load_id in node.load_ids:
            if load_id in graph:
                graph.add_edge(node.id, load_id)
    return graph


def topological_levels(graph: nx.DiGraph, order: list[str]) -> list[list[str]]:
    """
    Bucket nodes into levels with Kahn's algorithm.

    Args:
        graph: Source -> load graph.
        order: Node ids in input order, used for stable ordering.

    Returns:
        Levels from top to bottom. Nodes never reached (cycles and anything
        downstream of them) follow as single-node levels.
    """
    if not order:
        return []

    in_degree = dict(graph.in_degree())
    frontier = [n for n in order if in_degree[n] == 0]
    if not frontier:
        # every node has a source, start anywhere so the sweep progresses
        frontier = [order[0]]

    placed: set[str] = set()
    levels = []
    while frontier:
        levels.append(frontier)
        placed.update(frontier)
        next_frontier = []
        for node_id in frontier:
            for load_id in graph.successors(node_id):
                if load_id in placed:
                    continue
                in_degree[load_id] -= 1
                if in_degree[load_id] == 0:
                    next_frontier.append(load_id)
        frontier = next_frontier

    leftovers = [n for n in order if n not in placed]
    if leftovers:
        logger.info(
            "Cycle fallback: %d node(s) placed in single rows: %s",
            len(leftovers),
            ", ".join(leftovers),
        )
        levels.extend([n] for n in leftovers)
    return levels


def generate_edges(nodes: list[LayoutNode]) -> list[LayoutEdge]:
    """
    Edge list with the handle each end attaches to.

    Buses fan their connections out: the k-th source of a bus lands on its
    `top-k` handle and the k-th load leaves from `bottom-k`. Everything else
    uses a single `top` / `bottom` handle.
    """
    by_id = {node.id: node for node in nodes}
    edges = []
    for node in nodes:
        for load_index, load_id in enumerate(node.load_ids):
            target = by_id.get(load_id)
            if target is None:
                continue

            source_handle = "bottom"
            if node.equipment_type is EquipmentType.BUS:
                source_handle = f"bottom-{load_index}"

            target_handle = "top"
            if target.equipment_type is EquipmentType.BUS and node.id in target.source_ids:
                target_handle = f"top-{target.source_ids.index(node.id)}"

            edges.append(
                LayoutEdge(
                    id=f"{node.id}-{load_id}",
                    source=node.id,
                    target=load_id,
                    source_handle=source_handle,
                    target_handle=target_handle,
                )
            )
    return edges


# --- Placement ---
def effective_width(node: LayoutNode, params: LayoutParams) -> float:
    return max(node.width + params.node_padding, params.minimum_width)


def _row_offsets(widths: list[float], params: LayoutParams) -> np.ndarray:
    """Left x of each node in a centred row."""
    widths_arr = np.asarray(widths, dtype=float)
    total = widths_arr.sum() + (len(widths) - 1) * params.node_spacing
    start = params.margin + max(0.0, (params.container_width - total) / 2)
    steps = widths_arr + params.node_spacing
    return start + np.concatenate(([0.0], np.cumsum(steps)[:-1]))


def layered_layout(
    nodes: list[LayoutNode], params: Optional[LayoutParams] = None
) -> LayoutResult:
    """
    Position every node in centred rows, one row per topological level.

    Nodes that already carry a position keep it, but still take up their
    width in the row so the others pack around them.
    """
    params = params or LayoutParams()
    by_id = {node.id: node for node in nodes}
    order = [node.id for node in nodes]

    levels = topological_levels(build_dependency_graph(nodes), order)

    positions: dict[str, tuple[float, float]] = {}
    for level_index, level in enumerate(levels):
        y = params.margin + level_index * params.vertical_spacing
        widths = [effective_width(by_id[n], params) for n in level]
        for node_id, x in zip(level, _row_offsets(widths, params)):
            node = by_id[node_id]
            if node.is_pinned:
                positions[node_id] = node.position
            else:
                positions[node_id] = (float(x), float(y))
            logger.debug("Level %d: %s at %s", level_index, node_id, positions[node_id])

    return LayoutResult(positions=positions, edges=generate_edges(nodes), levels=levels)
