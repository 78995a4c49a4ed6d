"""Tests for the layered (topological rows) layout."""

import logging

import pytest

from equipment import EquipmentType
from layered_layout import (
    LayoutNode,
    LayoutParams,
    build_dependency_graph,
    generate_edges,
    layered_layout,
    topological_levels,
)
from rectangle_spacing import find_overlaps


def _node(node_id, sources=(), loads=(), kind=EquipmentType.OTHER, width=40, height=40, position=None):
    return LayoutNode(
        id=node_id,
        equipment_type=kind,
        width=width,
        height=height,
        source_ids=tuple(sources),
        load_ids=tuple(loads),
        position=position,
    )


def _rects(nodes, positions):
    return {n.id: (*positions[n.id], n.width, n.height) for n in nodes}


class TestLevels:
    def test_radial_levels(self, radial_graph):
        result = layered_layout(radial_graph.snapshot())
        assert result.levels == [["G1", "G2"], ["B1"], ["T1"], ["M1"]]

    def test_sources_above_loads(self, radial_graph):
        result = layered_layout(radial_graph.snapshot())
        for source_id, load_id in radial_graph.edges():
            assert result.positions[source_id][1] < result.positions[load_id][1]

    def test_node_waits_for_all_sources(self):
        # C is fed from A (level 0) and B (level 1), so it lands on level 2
        nodes = [
            _node("A", loads=["B", "C"]),
            _node("B", sources=["A"], loads=["C"]),
            _node("C", sources=["A", "B"]),
        ]
        levels = topological_levels(build_dependency_graph(nodes), ["A", "B", "C"])
        assert levels == [["A"], ["B"], ["C"]]

    def test_cycle_falls_back_to_single_rows(self, caplog):
        nodes = [
            _node("R", loads=["X"]),
            _node("X", sources=["R", "Y"], loads=["Y"]),
            _node("Y", sources=["X"], loads=["X"]),
        ]
        with caplog.at_level(logging.INFO, logger="layered_layout"):
            result = layered_layout(nodes)
        assert result.levels == [["R"], ["X"], ["Y"]]
        assert set(result.positions) == {"R", "X", "Y"}
        assert "Cycle fallback" in caplog.text

    def test_pure_cycle_still_progresses(self):
        nodes = [_node("A", sources=["B"], loads=["B"]), _node("B", sources=["A"], loads=["A"])]
        result = layered_layout(nodes)
        assert result.levels == [["A"], ["B"]]

    def test_unknown_load_ids_ignored(self):
        graph = build_dependency_graph([_node("A", loads=["ghost"])])
        assert list(graph.edges()) == []

    def test_empty(self):
        result = layered_layout([])
        assert result.positions == {}
        assert result.levels == []


class TestPlacement:
    def test_row_y_and_centring(self, radial_graph):
        result = layered_layout(radial_graph.snapshot())
        # two 80px generators padded to 96 with an 80px gap: 272 wide in 800
        assert result.positions["G1"] == pytest.approx((314.0, 50.0))
        assert result.positions["G2"] == pytest.approx((490.0, 50.0))
        assert result.positions["B1"][1] == 150.0
        assert result.positions["M1"][1] == 350.0

    def test_no_overlaps(self, radial_graph):
        nodes = radial_graph.snapshot()
        result = layered_layout(nodes)
        assert find_overlaps(_rects(nodes, result.positions)) == []

    def test_wide_row_does_not_overlap(self):
        nodes = [_node(f"N{i}", width=200) for i in range(6)]
        result = layered_layout(nodes)
        assert result.positions["N0"][0] == 50.0
        assert find_overlaps(_rects(nodes, result.positions)) == []

    def test_pinned_nodes_keep_position(self):
        nodes = [_node("A", loads=["B"], position=(7.0, 9.0)), _node("B", sources=["A"])]
        result = layered_layout(nodes)
        assert result.positions["A"] == (7.0, 9.0)
        assert result.positions["B"][1] == 150.0

    def test_custom_params(self):
        params = LayoutParams(margin=0, vertical_spacing=60, container_width=0)
        result = layered_layout([_node("A", loads=["B"]), _node("B", sources=["A"])], params)
        assert result.positions == {"A": (0.0, 0.0), "B": (0.0, 60.0)}

    def test_params_from_dict_warns_on_unknown(self, caplog):
        with caplog.at_level(logging.WARNING, logger="layered_layout"):
            params = LayoutParams.from_dict({"margin": 10, "zoom": 2})
        assert params.margin == 10
        assert params.vertical_spacing == 100
        assert "zoom" in caplog.text

    def test_params_from_empty(self):
        assert LayoutParams.from_dict(None) == LayoutParams()


class TestEdges:
    def test_bus_fan_out_handles(self, radial_graph):
        edges = {e.id: e for e in generate_edges(radial_graph.snapshot())}
        assert edges["G1-B1"].source_handle == "bottom"
        assert edges["G1-B1"].target_handle == "top-0"
        assert edges["G2-B1"].target_handle == "top-1"
        assert edges["B1-T1"].source_handle == "bottom-0"
        assert edges["B1-T1"].target_handle == "top"
        assert edges["T1-M1"].source_handle == "bottom"

    def test_edges_skip_unknown_targets(self):
        assert generate_edges([_node("A", loads=["ghost"])]) == []
