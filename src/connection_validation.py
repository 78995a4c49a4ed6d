"""
Checks run before a connection between two pieces of equipment is committed.

All functions here are side-effect free and return lists of human readable
messages, so a caller can show every problem at once. An empty list means
the connection is acceptable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, Optional

from equipment import ConnectionSide, Equipment

if TYPE_CHECKING:
    from equipment_graph import EquipmentGraph


def validate_capacity(
    source: Equipment, load: Equipment, graph: EquipmentGraph
) -> list[str]:
    """Reject when either endpoint is already at its connection limit."""
    errors = []
    if len(graph.loads(source.id)) >= source.allowed_loads:
        errors.append(
            f"Source {source.name} already has maximum loads ({source.allowed_loads})"
        )
    if len(graph.sources(load.id)) >= load.allowed_sources:
        errors.append(
            f"Load {load.name} already has maximum sources ({load.allowed_sources})"
        )
    return errors


def validate_voltage(source: Equipment, load: Equipment) -> list[str]:
    """Compare the voltage leaving `source` with the voltage `load` expects."""
    provided = source.voltage(ConnectionSide.LOAD)
    expected = load.voltage(ConnectionSide.SOURCE)
    if provided is None or expected is None or provided == expected:
        return []
    return [
        f"Voltage mismatch: {source.name} provides {provided:g}kV "
        f"but {load.name} expects {expected:g}kV on source side"
    ]


def validate_connection(
    source: Equipment, load: Equipment, graph: EquipmentGraph
) -> list[str]:
    """
    All problems with connecting `source` -> `load` in `graph`.

    Only an existing edge in the same direction counts as a duplicate, a
    load may feed back into its own source.
    """
    if graph.has_edge(source.id, load.id):
        return [f"{source.name} is already connected to {load.name}"]
    return validate_capacity(source, load, graph) + validate_voltage(source, load)


def validate_connection_limits(
    selected_sources: Iterable[str],
    selected_loads: Iterable[str],
    max_sources: int,
    max_loads: int,
    equipment_type: str,
) -> list[str]:
    """Check a whole source/load selection against one equipment's limits."""
    errors = []
    if len(list(selected_sources)) > max_sources:
        errors.append(f"{equipment_type} can have at most {max_sources} sources")
    if len(list(selected_loads)) > max_loads:
        errors.append(f"{equipment_type} can have at most {max_loads} loads")
    return errors


def validate_voltage_compatibility(
    selected_sources: Iterable[Equipment],
    selected_loads: Iterable[Equipment],
    own_voltage: Callable[[ConnectionSide], Optional[float]],
    equipment_name: str,
) -> list[str]:
    """
    Check a candidate equipment (not yet in the graph) against its selection.

    Args:
        selected_sources: Equipment that would feed the candidate.
        selected_loads: Equipment the candidate would feed.
        own_voltage: Voltage of the candidate for a connection side.
        equipment_name: Name of the candidate, used in messages.

    Returns:
        One message per mismatching neighbour.
    """
    errors = []
    ours_in = own_voltage(ConnectionSide.SOURCE)
    for source in selected_sources:
        theirs = source.voltage(ConnectionSide.LOAD)
        if theirs is not None and ours_in is not None and theirs != ours_in:
            errors.append(
                f"Voltage mismatch: {source.name} provides {theirs:g}kV "
                f"but {equipment_name} expects {ours_in:g}kV on source side"
            )
    ours_out = own_voltage(ConnectionSide.LOAD)
    for load in selected_loads:
        theirs = load.voltage(ConnectionSide.SOURCE)
        if theirs is not None and ours_out is not None and theirs != ours_out:
            errors.append(
                f"Voltage mismatch: {equipment_name} provides {ours_out:g}kV "
                f"but {load.name} expects {theirs:g}kV"
            )
    return errors
