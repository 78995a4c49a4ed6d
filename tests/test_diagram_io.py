"""Tests for loading and saving diagrams."""

import logging

import pytest
import yaml

import handles
from diagram_io import graph_from_dict, graph_to_dict, load_diagram, save_diagram
from equipment import Bus, Generator, Side
from equipment_graph import EquipmentGraph
from layered_layout import generate_edges
from sld_errors import ConnectionRejectedError, DuplicateEquipmentError, EquipmentNotFoundError


class TestGraphToDict:
    def test_nodes_carry_both_directions(self, radial_graph):
        data = graph_to_dict(radial_graph)
        by_id = {node["id"]: node for node in data["equipment"]}
        assert by_id["B1"]["source_ids"] == ["G1", "G2"]
        assert by_id["B1"]["load_ids"] == ["T1"]
        assert by_id["B1"]["type"] == "Bus"
        assert by_id["M1"]["load_ids"] == []


class TestGraphFromDict:
    def test_forward_references(self):
        data = {
            "equipment": [
                {"id": "G1", "type": "Generator", "load_ids": ["B1"]},
                {"id": "B1", "type": "Bus", "voltage_kv": 13.8},
            ]
        }
        graph = graph_from_dict(data)
        assert [e.id for e in graph.sources("B1")] == ["G1"]
        assert isinstance(graph.get("B1"), Bus)
        assert [h.id for h in graph.get("B1").handles] == ["source-1"]

    def test_source_ids_are_derived(self):
        # a stale source_ids list is ignored, edges come from load_ids only
        data = {
            "equipment": [
                {"id": "A", "type": "Other", "load_ids": ["B"]},
                {"id": "B", "type": "Other", "source_ids": ["C"]},
                {"id": "C", "type": "Other"},
            ]
        }
        graph = graph_from_dict(data)
        assert graph.edges() == [("A", "B")]

    def test_unknown_load_id(self):
        data = {"equipment": [{"id": "A", "type": "Other", "load_ids": ["ghost"]}]}
        with pytest.raises(EquipmentNotFoundError):
            graph_from_dict(data)

    def test_duplicate_id(self):
        data = {"equipment": [{"id": "A"}, {"id": "A"}]}
        with pytest.raises(DuplicateEquipmentError):
            graph_from_dict(data)

    def test_invalid_saved_edge(self):
        data = {
            "equipment": [
                {"id": "G", "type": "Generator", "voltage_kv": 4.16, "load_ids": ["T"]},
                {"id": "T", "type": "Transformer"},
            ]
        }
        with pytest.raises(ConnectionRejectedError):
            graph_from_dict(data)

    def test_empty(self):
        assert len(graph_from_dict({})) == 0


class TestFiles:
    def test_save_and_load(self, radial_graph, tmp_path):
        radial_graph.set_position("G1", (12, 34))
        handles.reposition_handle(radial_graph.get("B1"), "source-1", 10)
        filename = tmp_path / "diagram.yaml"

        save_diagram(radial_graph, str(filename), settings={"strategy": "layered"})
        loaded = load_diagram(str(filename))

        assert [e.id for e in loaded.all_nodes()] == ["G1", "G2", "B1", "T1", "M1"]
        assert loaded.edges() == radial_graph.edges()
        assert loaded.get("G1").position == (12.0, 34.0)
        assert isinstance(loaded.get("G1"), Generator)
        top = handles.handles_by_side(loaded.get("B1"), Side.TOP)
        assert [h.position_percent for h in top] == pytest.approx([10.0, 200 / 3])

    def test_saved_file_layout(self, radial_graph, tmp_path):
        filename = tmp_path / "diagram.yaml"
        save_diagram(radial_graph, str(filename), settings={"strategy": "relative"})
        with open(filename) as f:
            data = yaml.safe_load(f)
        assert list(data) == ["equipment", "layout"]
        assert data["layout"]["strategy"] == "relative"
        assert data["equipment"][0]["position"] == {"x": 0.0, "y": 0.0}


class TestConnectionOrderRoundTrip:
    def _bus_fed_out_of_order(self):
        graph = EquipmentGraph(
            [Generator("G1", "G1"), Generator("G2", "G2"), Bus("B1", "B1", voltage_kv=13.8)]
        )
        graph.connect_or_raise("G2", "B1")
        graph.connect_or_raise("G1", "B1")
        return graph

    def test_source_order_survives(self):
        loaded = graph_from_dict(graph_to_dict(self._bus_fed_out_of_order()))
        assert [e.id for e in loaded.sources("B1")] == ["G2", "G1"]
        bus_handles = [(h.id, h.connected_equipment_id) for h in loaded.get("B1").handles]
        assert bus_handles == [("source-1", "G2"), ("source-2", "G1")]

    def test_bus_handle_fan_out_survives(self):
        graph = self._bus_fed_out_of_order()
        before = {e.id: e.target_handle for e in generate_edges(graph.snapshot())}
        loaded = graph_from_dict(graph_to_dict(graph))
        after = {e.id: e.target_handle for e in generate_edges(loaded.snapshot())}
        assert after == before == {"G1-B1": "top-1", "G2-B1": "top-0"}

    def test_moved_handle_survives(self):
        graph = self._bus_fed_out_of_order()
        [g2_handle] = handles.handles_for_equipment(graph.get("B1"), "G2")
        handles.reposition_handle(graph.get("B1"), g2_handle.id, 10)
        loaded = graph_from_dict(graph_to_dict(graph))
        [restored] = handles.handles_for_equipment(loaded.get("B1"), "G2")
        assert restored.position_percent == 10.0

    def test_handle_position_restored_by_neighbour(self):
        # saved handle ids that no longer match still restore by neighbour and side
        data = graph_to_dict(self._bus_fed_out_of_order())
        bus = next(n for n in data["equipment"] if n["id"] == "B1")
        for raw in bus["handles"]:
            raw["id"] = "renamed-" + raw["id"]
            if raw["connected_equipment_id"] == "G1":
                raw["position_percent"] = 90.0
        loaded = graph_from_dict(data)
        [restored] = handles.handles_for_equipment(loaded.get("B1"), "G1")
        assert restored.position_percent == 90.0

    def test_contradictory_order_falls_back_to_file_order(self, caplog):
        data = {
            "equipment": [
                {"id": "A", "type": "Other", "allowed_loads": 2, "load_ids": ["C", "D"]},
                {"id": "B", "type": "Other", "allowed_loads": 2, "load_ids": ["D", "C"]},
                {"id": "C", "type": "Other", "allowed_sources": 2, "source_ids": ["B", "A"]},
                {"id": "D", "type": "Other", "allowed_sources": 2, "source_ids": ["A", "B"]},
            ]
        }
        with caplog.at_level(logging.WARNING, logger="diagram_io"):
            graph = graph_from_dict(data)
        assert sorted(graph.edges()) == [("A", "C"), ("A", "D"), ("B", "C"), ("B", "D")]
        assert "Saved source order" in caplog.text
