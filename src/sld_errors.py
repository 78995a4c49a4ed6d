"""Exceptions raised by the equipment graph and the diagram loader."""


class SLDError(Exception):
    """Base class for single line diagram errors."""


class StructuralError(SLDError):
    """
    Raised when a mutation would break the structure of the graph.

    These indicate a programming or data-integrity problem rather than a
    user mistake, so they are raised instead of being returned as messages.
    """


class DuplicateEquipmentError(StructuralError):
    """Raised when an equipment id is already registered in the graph."""

    def __init__(self, equipment_id: str):
        self.equipment_id = equipment_id
        super().__init__(f'Equipment with ID "{equipment_id}" already exists')


class EquipmentNotFoundError(StructuralError):
    """Raised when a referenced equipment id is not in the graph."""

    def __init__(self, equipment_id: str):
        self.equipment_id = equipment_id
        super().__init__(f'Equipment with ID "{equipment_id}" not found')


class SelfLoopError(StructuralError):
    """Raised when an equipment is asked to be its own source or load."""

    def __init__(self, equipment_id: str):
        self.equipment_id = equipment_id
        super().__init__(
            f'Equipment "{equipment_id}" cannot be connected to itself'
        )


class ConnectionRejectedError(SLDError):
    """Raised by strict connects when validation produced messages."""

    def __init__(self, source_id: str, load_id: str, messages: list[str]):
        self.source_id = source_id
        self.load_id = load_id
        self.messages = list(messages)
        super().__init__(
            f"Connection {source_id} -> {load_id} rejected: " + "; ".join(messages)
        )
