"""
Equipment types for single line diagrams.

Each equipment class carries its own capacity defaults, base icon size,
voltage resolution and dimension calculation, so callers never switch on a
type name. Connections between equipment are held by
:class:`equipment_graph.EquipmentGraph`, not by the equipment objects.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import ClassVar, Optional

# --- Constants ---
UNSET_POSITION: tuple[float, float] = (0.0, 0.0)
CHAR_WIDTH_PX = 10  # rough width of one label character
MINIMUM_NODE_WIDTH = 40
DEFAULT_BUS_WIDTH = 120.0


# --- Enums and Dataclasses ---
class EquipmentType(Enum):
    GENERATOR = "Generator"
    TRANSFORMER = "Transformer"
    BUS = "Bus"
    METER = "Meter"
    OTHER = "Other"


class Side(Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class ConnectionSide(Enum):
    """Which side of an equipment a connection attaches to."""

    SOURCE = "source"  # faces the upstream equipment feeding this one
    LOAD = "load"  # faces the downstream equipment fed by this one


@dataclass
class Handle:
    """A positioned attachment point on one side of an equipment node."""

    id: str
    side: Side
    position_percent: float = 50.0
    is_source: bool = False
    connected_equipment_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "side": self.side.value,
            "position_percent": float(self.position_percent),
            "is_source": self.is_source,
        }
        if self.connected_equipment_id is not None:
            data["connected_equipment_id"] = self.connected_equipment_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Handle":
        return cls(
            id=data["id"],
            side=Side(data["side"]),
            position_percent=data.get("position_percent", 50.0),
            is_source=data.get("is_source", False),
            connected_equipment_id=data.get("connected_equipment_id"),
        )


@dataclass
class TextGroup:
    """Label text placed around an equipment icon, used for sizing."""

    left: list[str] = field(default_factory=list)
    right: list[str] = field(default_factory=list)
    top_left: Optional[str] = None
    top_right: Optional[str] = None
    bottom_left: Optional[str] = None
    bottom_right: Optional[str] = None


def _estimate_text_width(texts: list[Optional[str]]) -> float:
    texts = [t for t in texts if t]
    if not texts:
        return 0
    return max(len(t) for t in texts) * CHAR_WIDTH_PX


def _format_kv(value: float) -> str:
    return f"{value:g}kV"


@dataclass(eq=False)
class Equipment:
    """
    A piece of electrical equipment placed on the diagram.

    Instances compare by identity, the id is the key used by the graph.
    `position` stays at UNSET_POSITION until a layout pass or a user drag
    assigns one.
    """

    id: str
    name: str
    position: tuple[float, float] = UNSET_POSITION
    allowed_sources: Optional[int] = None
    allowed_loads: Optional[int] = None
    handles: list[Handle] = field(default_factory=list)

    equipment_type: ClassVar[EquipmentType] = EquipmentType.OTHER
    default_allowed_sources: ClassVar[int] = 1
    default_allowed_loads: ClassVar[int] = 1
    base_size: ClassVar[tuple[float, float]] = (40, 40)

    def __post_init__(self):
        if self.allowed_sources is None:
            self.allowed_sources = self.default_allowed_sources
        if self.allowed_loads is None:
            self.allowed_loads = self.default_allowed_loads
        self.position = (float(self.position[0]), float(self.position[1]))

    @property
    def has_position(self) -> bool:
        return self.position != UNSET_POSITION

    def voltage(self, side: ConnectionSide) -> Optional[float]:
        """Voltage in kV seen on the given connection side, None if unknown."""
        return None

    def text_groups(self) -> TextGroup:
        return TextGroup(top_left=self.name)

    def dimensions(self) -> tuple[float, float]:
        """Rendered (width, height), widened to fit the label text."""
        icon_width, icon_height = self.base_size
        groups = self.text_groups()
        top_bottom_width = max(
            _estimate_text_width([groups.top_left])
            + _estimate_text_width([groups.top_right]),
            _estimate_text_width([groups.bottom_left])
            + _estimate_text_width([groups.bottom_right]),
        )
        width = max(
            icon_width
            + _estimate_text_width(groups.left)
            + _estimate_text_width(groups.right),
            top_bottom_width,
            MINIMUM_NODE_WIDTH,
        )
        return float(width), float(icon_height)

    def validate_properties(self) -> list[str]:
        """Return messages for type-specific property values that are invalid."""
        errors = []
        if self.allowed_sources < 0:
            errors.append("Allowed sources must be a non-negative number")
        if self.allowed_loads < 0:
            errors.append("Allowed loads must be a non-negative number")
        return errors

    # --- Serialization ---
    def properties_dict(self) -> dict:
        """Type-specific fields, merged into the serialized node."""
        return {}

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.equipment_type.value,
            "position": {"x": self.position[0], "y": self.position[1]},
            "allowed_sources": self.allowed_sources,
            "allowed_loads": self.allowed_loads,
            "handles": [h.to_dict() for h in self.handles],
        }
        data.update(self.properties_dict())
        return data

    @classmethod
    def property_names(cls) -> list[str]:
        base = {f.name for f in fields(Equipment)}
        return [f.name for f in fields(cls) if f.name not in base]

    @classmethod
    def from_dict(cls, data: dict) -> "Equipment":
        pos = data.get("position") or {}
        kwargs = {name: data[name] for name in cls.property_names() if name in data}
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            position=(pos.get("x", 0.0), pos.get("y", 0.0)),
            allowed_sources=data.get("allowed_sources"),
            allowed_loads=data.get("allowed_loads"),
            **kwargs,
        )

    def __str__(self) -> str:
        return f"{self.equipment_type.value}({self.id}: {self.name})"


@dataclass(eq=False)
class Generator(Equipment):
    voltage_kv: float = 13.8
    capacity: float = 10.0  # MW
    fuel_type: str = "natural_gas"
    efficiency: float = 95.0  # percent
    is_online: bool = False

    equipment_type: ClassVar[EquipmentType] = EquipmentType.GENERATOR
    base_size: ClassVar[tuple[float, float]] = (40, 40)

    def voltage(self, side: ConnectionSide) -> Optional[float]:
        return self.voltage_kv

    def text_groups(self) -> TextGroup:
        return TextGroup(
            top_left=self.name,
            right=[f"{self.capacity:g}MW"],
            bottom_right=_format_kv(self.voltage_kv),
        )

    def current_output(self) -> float:
        return self.capacity * (self.efficiency / 100) if self.is_online else 0.0

    def validate_properties(self) -> list[str]:
        errors = super().validate_properties()
        if not self.capacity or self.capacity <= 0:
            errors.append("Capacity must be a positive number")
        if not self.voltage_kv or self.voltage_kv <= 0:
            errors.append("Voltage must be a positive number")
        if not self.fuel_type:
            errors.append("Fuel type is required")
        if not 0 <= self.efficiency <= 100:
            errors.append("Efficiency must be a percentage between 0 and 100")
        return errors

    def properties_dict(self) -> dict:
        return {
            "voltage_kv": self.voltage_kv,
            "capacity": self.capacity,
            "fuel_type": self.fuel_type,
            "efficiency": self.efficiency,
            "is_online": self.is_online,
        }


@dataclass(eq=False)
class Transformer(Equipment):
    primary_voltage: float = 13.8
    secondary_voltage: float = 4.16
    power_rating: float = 25.0  # MVA
    phase_count: int = 3
    connection_type: str = "Wye"
    impedance: float = 5.75  # percent
    is_operational: bool = False

    equipment_type: ClassVar[EquipmentType] = EquipmentType.TRANSFORMER
    base_size: ClassVar[tuple[float, float]] = (60, 40)

    def voltage(self, side: ConnectionSide) -> Optional[float]:
        # primary winding faces the sources, secondary faces the loads
        if side is ConnectionSide.SOURCE:
            return self.primary_voltage
        return self.secondary_voltage

    def text_groups(self) -> TextGroup:
        return TextGroup(
            top_left=self.name,
            left=[f"{self.power_rating:g}MVA"],
            right=[
                _format_kv(self.primary_voltage),
                _format_kv(self.secondary_voltage),
            ],
        )

    def validate_properties(self) -> list[str]:
        errors = super().validate_properties()
        if self.primary_voltage <= 0:
            errors.append("Primary voltage must be a positive number")
        if self.secondary_voltage <= 0:
            errors.append("Secondary voltage must be a positive number")
        if self.power_rating <= 0:
            errors.append("Power rating must be a positive number")
        if self.phase_count not in (1, 3):
            errors.append("Phase count must be 1 or 3")
        if self.connection_type not in ("Delta", "Wye"):
            errors.append("Connection type must be Delta or Wye")
        if self.impedance <= 0:
            errors.append("Impedance must be a positive number")
        return errors

    def properties_dict(self) -> dict:
        return {
            "primary_voltage": self.primary_voltage,
            "secondary_voltage": self.secondary_voltage,
            "power_rating": self.power_rating,
            "phase_count": self.phase_count,
            "connection_type": self.connection_type,
            "impedance": self.impedance,
            "is_operational": self.is_operational,
        }


@dataclass(eq=False)
class Bus(Equipment):
    voltage_kv: float = 12.0
    width: float = DEFAULT_BUS_WIDTH

    equipment_type: ClassVar[EquipmentType] = EquipmentType.BUS
    default_allowed_sources: ClassVar[int] = 16
    default_allowed_loads: ClassVar[int] = 16
    base_size: ClassVar[tuple[float, float]] = (60, 4)

    def voltage(self, side: ConnectionSide) -> Optional[float]:
        return self.voltage_kv

    def text_groups(self) -> TextGroup:
        return TextGroup(top_left=self.name, top_right=_format_kv(self.voltage_kv))

    def dimensions(self) -> tuple[float, float]:
        # buses are resized by the user, so the stored width wins over text
        return float(self.width), float(self.base_size[1])

    def validate_properties(self) -> list[str]:
        errors = super().validate_properties()
        if self.voltage_kv <= 0:
            errors.append("Voltage must be a positive number")
        if self.width <= 0:
            errors.append("Width must be a positive number")
        return errors

    def properties_dict(self) -> dict:
        return {"voltage_kv": self.voltage_kv, "width": self.width}


@dataclass(eq=False)
class Meter(Equipment):
    voltage_rating: float = 12.0
    current_rating: float = 100.0  # A
    accuracy_class: str = "0.5"
    is_operational: bool = False

    equipment_type: ClassVar[EquipmentType] = EquipmentType.METER
    default_allowed_loads: ClassVar[int] = 16
    base_size: ClassVar[tuple[float, float]] = (30, 30)

    ACCURACY_CLASSES: ClassVar[tuple[str, ...]] = ("0.2", "0.5", "1.0", "2.0")

    def text_groups(self) -> TextGroup:
        return TextGroup(
            top_left=self.name,
            right=[f"{self.current_rating:g}A", _format_kv(self.voltage_rating)],
        )

    def validate_properties(self) -> list[str]:
        errors = super().validate_properties()
        if self.voltage_rating <= 0:
            errors.append("Voltage rating must be a positive number")
        if self.current_rating <= 0:
            errors.append("Current rating must be a positive number")
        if self.accuracy_class not in self.ACCURACY_CLASSES:
            errors.append("Invalid accuracy class")
        return errors

    def properties_dict(self) -> dict:
        return {
            "voltage_rating": self.voltage_rating,
            "current_rating": self.current_rating,
            "accuracy_class": self.accuracy_class,
            "is_operational": self.is_operational,
        }


@dataclass(eq=False)
class OtherEquipment(Equipment):
    equipment_type: ClassVar[EquipmentType] = EquipmentType.OTHER


EQUIPMENT_CLASSES: dict[EquipmentType, type[Equipment]] = {
    EquipmentType.GENERATOR: Generator,
    EquipmentType.TRANSFORMER: Transformer,
    EquipmentType.BUS: Bus,
    EquipmentType.METER: Meter,
    EquipmentType.OTHER: OtherEquipment,
}


def equipment_from_dict(data: dict) -> Equipment:
    """Build the right equipment subclass from a serialized node.

    Unknown type names fall back to OtherEquipment.
    """
    try:
        equipment_type = EquipmentType(data.get("type", "Other"))
    except ValueError:
        equipment_type = EquipmentType.OTHER
    return EQUIPMENT_CLASSES[equipment_type].from_dict(data)
