import pytest

from equipment import Bus, Generator, Meter, OtherEquipment, Transformer
from equipment_graph import EquipmentGraph


@pytest.fixture
def graph():
    return EquipmentGraph()


@pytest.fixture
def radial_graph():
    """Two generators on a bus, stepped down through a transformer to a meter."""
    g = EquipmentGraph(
        [
            Generator("G1", "G1"),
            Generator("G2", "G2"),
            Bus("B1", "Main Bus", voltage_kv=13.8),
            Transformer("T1", "T1"),
            Meter("M1", "M1"),
        ]
    )
    for source_id, load_id in [("G1", "B1"), ("G2", "B1"), ("B1", "T1"), ("T1", "M1")]:
        g.connect_or_raise(source_id, load_id)
    return g


@pytest.fixture
def feeder_graph():
    """A generator at (100, 100) feeding a load at (300, 300)."""
    g = EquipmentGraph(
        [
            Generator("G1", "G1", position=(100, 100)),
            OtherEquipment("M1", "M1", position=(300, 300)),
        ]
    )
    g.connect_or_raise("G1", "M1")
    return g
