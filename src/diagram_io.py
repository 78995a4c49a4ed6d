"""
Loading and saving single line diagrams as YAML.

Loading is done in two passes: every equipment is constructed first, then
the edges are rebuilt from each node's `load_ids`. Edges may reference
equipment that appears later in the file, so a single pass cannot work.
"""

import logging
from typing import Optional

import yaml

from equipment import Handle, equipment_from_dict
from equipment_graph import EquipmentGraph

logger = logging.getLogger(__name__)


def graph_to_dict(graph: EquipmentGraph) -> dict:
    nodes = []
    for equipment in graph.all_nodes():
        data = equipment.to_dict()
        data["source_ids"] = [e.id for e in graph.sources(equipment.id)]
        data["load_ids"] = [e.id for e in graph.loads(equipment.id)]
        nodes.append(data)
    return {"equipment": nodes}


def _edge_order(node_data: list[dict]) -> list[tuple[str, str]]:
    """
    Order the saved edges so connecting them reproduces the saved graph.

    Each source lists its loads and each load lists its sources in the
    order they were connected. An edge is ready once it is the first
    unconnected entry in both of those lists. If hand-edited lists
    contradict each other the remaining edges follow in file order.
    """
    load_lists = {}
    for raw in node_data:
        load_lists[str(raw["id"])] = [str(i) for i in raw.get("load_ids") or []]
    pending = [(s, l) for s, loads in load_lists.items() for l in loads]

    source_lists = {}
    for raw in node_data:
        load_id = str(raw["id"])
        source_lists[load_id] = [
            str(i) for i in raw.get("source_ids") or [] if (str(i), load_id) in pending
        ]

    ordered: list[tuple[str, str]] = []
    while pending:
        ready = None
        for source_id, load_id in pending:
            next_load = next(
                (l for l in load_lists[source_id] if (source_id, l) not in ordered), None
            )
            next_source = next(
                (s for s in source_lists.get(load_id, []) if (s, load_id) not in ordered),
                None,
            )
            if next_load == load_id and next_source in (None, source_id):
                ready = (source_id, load_id)
                break
        if ready is None:
            logger.warning(
                "Saved source order does not match load order, using file order for %s",
                ", ".join(f"{s}->{l}" for s, l in pending),
            )
            ordered.extend(pending)
            break
        ordered.append(ready)
        pending.remove(ready)
    return ordered


def _restore_handle_positions(graph: EquipmentGraph, saved: dict[str, list]) -> None:
    """Reapply saved handle percentages to the rebuilt handle for the same neighbour and side."""
    for equipment_id, handle_list in saved.items():
        equipment = graph.get(equipment_id)
        by_key = {(h.connected_equipment_id, h.side): h for h in equipment.handles}
        for raw in handle_list:
            handle = Handle.from_dict(raw)
            current = by_key.get((handle.connected_equipment_id, handle.side))
            if current is not None:
                current.position_percent = float(handle.position_percent)


def graph_from_dict(data: dict) -> EquipmentGraph:
    """
    Rebuild a graph from its serialized form.

    Raises:
        DuplicateEquipmentError: If two nodes share an id.
        EquipmentNotFoundError: If a load id references no node.
        ConnectionRejectedError: If a saved edge breaks capacity or voltage rules.
    """
    node_data = data.get("equipment") or []
    graph = EquipmentGraph()

    # Pass 1: nodes only
    saved_handles = {}
    for raw in node_data:
        equipment = equipment_from_dict(raw)
        equipment.handles = []
        graph.add(equipment)
        saved_handles[equipment.id] = raw.get("handles") or []

    # Pass 2: edges, which also rebuild the sources and the handles
    for source_id, load_id in _edge_order(node_data):
        graph.connect_or_raise(source_id, load_id)

    _restore_handle_positions(graph, saved_handles)
    return graph


def read_diagram_file(filename: str) -> dict:
    with open(filename, "r") as f:
        data = yaml.safe_load(f) or {}
    logger.info("Loaded %d equipment from %s", len(data.get("equipment") or []), filename)
    return data


def load_diagram(filename: str) -> EquipmentGraph:
    """Load a diagram YAML file into a new graph."""
    return graph_from_dict(read_diagram_file(filename))


def save_diagram(
    graph: EquipmentGraph, filename: str, settings: Optional[dict] = None
) -> None:
    """Write the graph (and optional `layout` settings) to a YAML file."""
    data = graph_to_dict(graph)
    if settings:
        data["layout"] = settings
    with open(filename, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    logger.info("Saved %d equipment to %s", len(graph), filename)
