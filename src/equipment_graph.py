"""
The authoritative in-memory graph of equipment and their connections.

Edges point from a source (upstream) to a load (downstream) and live in a
single networkx DiGraph, so "A feeds B" and "B is fed by A" are the same
record. Handles are allocated and released together with the edges.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

import networkx as nx

import handles
from connection_validation import validate_connection
from equipment import Equipment, EquipmentType
from layered_layout import LayoutNode
from sld_errors import (
    ConnectionRejectedError,
    DuplicateEquipmentError,
    EquipmentNotFoundError,
    SelfLoopError,
)

logger = logging.getLogger(__name__)


@dataclass
class NetworkAnalysis:
    total_equipment: int
    roots: list[str] = field(default_factory=list)  # no sources
    sinks: list[str] = field(default_factory=list)  # no loads
    cycles: list[list[str]] = field(default_factory=list)
    max_depth: int = 0


class EquipmentGraph:
    """
    Equipment registry plus source/load edges.

    Each instance is independent, so several diagrams (or tests) can live
    side by side. Every structural mutation bumps `revision`; a layout
    computed for an older revision is stale.
    """

    def __init__(self, equipment: Iterable[Equipment] = ()):
        self._graph = nx.DiGraph()
        self.revision = 0
        for item in equipment:
            self.add(item)

    # --- Registry ---
    def add(self, equipment: Equipment) -> Equipment:
        if equipment.id in self._graph:
            raise DuplicateEquipmentError(equipment.id)
        self._graph.add_node(equipment.id, equipment=equipment)
        self.revision += 1
        logger.debug("Added %s", equipment)
        return equipment

    def get(self, equipment_id: str) -> Equipment:
        try:
            return self._graph.nodes[equipment_id]["equipment"]
        except KeyError:
            raise EquipmentNotFoundError(equipment_id) from None

    def remove(self, equipment_id: str) -> Equipment:
        """Delete equipment, severing all its edges and the handles on its neighbours."""
        equipment = self.get(equipment_id)
        for neighbour_id in set(self._graph.predecessors(equipment_id)) | set(
            self._graph.successors(equipment_id)
        ):
            handles.remove_handles_for(self.get(neighbour_id), equipment_id)
        self._graph.remove_node(equipment_id)
        handles.clear_handles(equipment)
        self.revision += 1
        logger.debug("Removed %s", equipment)
        return equipment

    def __contains__(self, equipment_id: str) -> bool:
        return equipment_id in self._graph

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def all_nodes(self) -> list[Equipment]:
        return [data["equipment"] for _, data in self._graph.nodes(data=True)]

    def nodes_by_type(self, equipment_type: EquipmentType) -> list[Equipment]:
        return [e for e in self.all_nodes() if e.equipment_type is equipment_type]

    # --- Edges ---
    def sources(self, equipment_id: str) -> list[Equipment]:
        """Upstream equipment feeding `equipment_id`, in connection order."""
        self.get(equipment_id)
        return [self.get(n) for n in self._graph.predecessors(equipment_id)]

    def loads(self, equipment_id: str) -> list[Equipment]:
        """Downstream equipment fed by `equipment_id`, in connection order."""
        self.get(equipment_id)
        return [self.get(n) for n in self._graph.successors(equipment_id)]

    def connections(self, equipment_id: str) -> list[Equipment]:
        return self.sources(equipment_id) + self.loads(equipment_id)

    def sources_by_type(
        self, equipment_id: str, equipment_type: EquipmentType
    ) -> list[Equipment]:
        return [
            e for e in self.sources(equipment_id) if e.equipment_type is equipment_type
        ]

    def loads_by_type(
        self, equipment_id: str, equipment_type: EquipmentType
    ) -> list[Equipment]:
        return [
            e for e in self.loads(equipment_id) if e.equipment_type is equipment_type
        ]

    def is_connected(self, a_id: str, b_id: str) -> bool:
        """True when there is an edge between the two in either direction."""
        return self._graph.has_edge(a_id, b_id) or self._graph.has_edge(b_id, a_id)

    def has_edge(self, source_id: str, load_id: str) -> bool:
        return self._graph.has_edge(source_id, load_id)

    def edges(self) -> list[tuple[str, str]]:
        return list(self._graph.edges())

    def check_connection(self, source_id: str, load_id: str) -> list[str]:
        """Validation messages for a prospective edge, without committing it."""
        if source_id == load_id:
            raise SelfLoopError(source_id)
        source = self.get(source_id)
        load = self.get(load_id)
        return validate_connection(source, load, self)

    def connect(self, source_id: str, load_id: str) -> list[str]:
        """
        Connect `source_id` -> `load_id`.

        Raises:
            SelfLoopError: If both ids are the same.
            EquipmentNotFoundError: If either id is unknown.

        Returns:
            Validation messages. The edge is only committed (and handles
            allocated on both ends) when the list is empty; otherwise the
            graph is left untouched.
        """
        errors = self.check_connection(source_id, load_id)
        if errors:
            logger.debug("Connection %s -> %s rejected: %s", source_id, load_id, errors)
            return errors

        self._graph.add_edge(source_id, load_id)
        handles.create_handle(self.get(source_id), load_id, faces_sources=False)
        handles.create_handle(self.get(load_id), source_id, faces_sources=True)
        self.revision += 1
        logger.debug("Connected %s -> %s", source_id, load_id)
        return []

    def connect_or_raise(self, source_id: str, load_id: str) -> None:
        errors = self.connect(source_id, load_id)
        if errors:
            raise ConnectionRejectedError(source_id, load_id, errors)

    def disconnect(self, source_id: str, load_id: str) -> bool:
        """Remove the edge `source_id` -> `load_id` and its handles."""
        source = self.get(source_id)
        load = self.get(load_id)
        if not self._graph.has_edge(source_id, load_id):
            return False
        self._graph.remove_edge(source_id, load_id)
        handles.remove_handles_for(source, load_id, side=handles.LOAD_FACING_SIDE)
        handles.remove_handles_for(load, source_id, side=handles.SOURCE_FACING_SIDE)
        self.revision += 1
        logger.debug("Disconnected %s -> %s", source_id, load_id)
        return True

    # --- Positions and layout ---
    def set_position(self, equipment_id: str, position: tuple[float, float]) -> None:
        self.get(equipment_id).position = (float(position[0]), float(position[1]))

    def snapshot(self) -> list[LayoutNode]:
        """Immutable view of the graph for the layout engine."""
        nodes = []
        for equipment in self.all_nodes():
            width, height = equipment.dimensions()
            nodes.append(
                LayoutNode(
                    id=equipment.id,
                    equipment_type=equipment.equipment_type,
                    width=width,
                    height=height,
                    source_ids=tuple(self._graph.predecessors(equipment.id)),
                    load_ids=tuple(self._graph.successors(equipment.id)),
                    position=equipment.position if equipment.has_position else None,
                )
            )
        return nodes

    def apply_positions(self, positions: Mapping[str, tuple[float, float]]) -> list[str]:
        """
        Write layout results back, only into equipment without a position.

        Returns:
            Ids of the equipment that were updated.
        """
        updated = []
        for equipment_id, position in positions.items():
            if equipment_id not in self:
                continue
            equipment = self.get(equipment_id)
            if equipment.has_position:
                continue
            self.set_position(equipment_id, position)
            updated.append(equipment_id)
        return updated

    # --- Analysis ---
    def analyze(self) -> NetworkAnalysis:
        graph = self._graph
        if graph.number_of_nodes() == 0:
            return NetworkAnalysis(total_equipment=0)
        cycles = [list(c) for c in nx.simple_cycles(graph)]
        # condensation collapses cycles so the longest path is well defined
        max_depth = nx.dag_longest_path_length(nx.condensation(graph))
        return NetworkAnalysis(
            total_equipment=graph.number_of_nodes(),
            roots=[n for n, d in graph.in_degree() if d == 0],
            sinks=[n for n, d in graph.out_degree() if d == 0],
            cycles=cycles,
            max_depth=max_depth,
        )
