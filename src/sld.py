"""
Single line diagram controller.

`SingleLineDiagram` owns one equipment graph and keeps its layout current:
every structural edit re-runs the layout engine (which only fills in nodes
that have no position yet), and drag events go through the snapper before
being committed.

Run as a script to lay out a diagram file:

    python sld.py [diagram.yaml] [--relative] [--save] [--debug-image out.png]
"""

# Standard library imports
import logging
import pathlib
import sys
from typing import Optional

# Local application/library specific imports
from diagram_io import graph_from_dict, graph_to_dict, read_diagram_file, save_diagram
from equipment import Equipment
from equipment_graph import EquipmentGraph
from layered_layout import (
    LayoutNode,
    LayoutParams,
    LayoutResult,
    LayoutStrategy,
    layered_layout,
)
from node_snapping import SNAP_THRESHOLD, NodeSnapper, SnapLine, SnapResult
from rectangle_spacing import generate_debug_image
from relative_layout import relative_layout

logger = logging.getLogger(__name__)

# --- Constants ---
SCRIPT_DIR = pathlib.Path(__file__).parent
EXAMPLE_DIAGRAM_FILE = SCRIPT_DIR / "example_diagram.yaml"
USAGE = (
    "Usage: python sld.py [diagram.yaml] [--relative] [--save] "
    "[--debug-image <file.png>]"
)

LAYOUT_FUNCTIONS = {
    LayoutStrategy.LAYERED: layered_layout,
    LayoutStrategy.RELATIVE: relative_layout,
}


def layout_positions(
    nodes: list[LayoutNode],
    params: Optional[LayoutParams] = None,
    strategy: LayoutStrategy = LayoutStrategy.LAYERED,
) -> LayoutResult:
    """Run the chosen placement strategy over a graph snapshot."""
    return LAYOUT_FUNCTIONS[strategy](nodes, params or LayoutParams())


class SingleLineDiagram:
    """The single writer for one diagram's graph, layout and drag state."""

    def __init__(
        self,
        graph: Optional[EquipmentGraph] = None,
        params: Optional[LayoutParams] = None,
        strategy: LayoutStrategy = LayoutStrategy.LAYERED,
        snap_threshold: float = SNAP_THRESHOLD,
    ):
        self.graph = graph if graph is not None else EquipmentGraph()
        self.params = params or LayoutParams()
        self.strategy = strategy
        self.snapper = NodeSnapper(self.graph, snap_threshold)
        self._layout: Optional[LayoutResult] = None
        self._layout_revision = -1

    # --- Structural edits ---
    def add_equipment(self, equipment: Equipment) -> Equipment:
        self.graph.add(equipment)
        self.relayout()
        return equipment

    def remove_equipment(self, equipment_id: str) -> Equipment:
        equipment = self.graph.remove(equipment_id)
        self.relayout()
        return equipment

    def connect(self, source_id: str, load_id: str) -> list[str]:
        """Connect two pieces of equipment, returning any validation messages."""
        errors = self.graph.connect(source_id, load_id)
        if errors:
            for message in errors:
                logger.warning(message)
            return errors
        self.relayout()
        return []

    def disconnect(self, source_id: str, load_id: str) -> bool:
        removed = self.graph.disconnect(source_id, load_id)
        if removed:
            self.relayout()
        return removed

    # --- Layout ---
    def relayout(self) -> LayoutResult:
        """Lay out the graph and store positions for any unset equipment."""
        result = layout_positions(self.graph.snapshot(), self.params, self.strategy)
        updated = self.graph.apply_positions(result.positions)
        if updated:
            logger.debug("Positioned %s", ", ".join(updated))
        self._layout = result
        self._layout_revision = self.graph.revision
        return result

    @property
    def layout(self) -> LayoutResult:
        if self._layout is None or self._layout_revision != self.graph.revision:
            return self.relayout()
        return self._layout

    def positions(self) -> dict[str, tuple[float, float]]:
        return {e.id: e.position for e in self.graph.all_nodes()}

    def sizes(self) -> dict[str, tuple[float, float]]:
        return {e.id: e.dimensions() for e in self.graph.all_nodes()}

    def edges(self):
        return self.layout.edges

    # --- Dragging ---
    def drag(
        self, node_id: str, position: tuple[float, float], dragging: bool = True
    ) -> SnapResult:
        """Feed one pointer event (already in world coordinates) to the snapper."""
        return self.snapper.drag(
            node_id, position, self.positions(), self.edges(), dragging=dragging
        )

    def cancel_drag(self) -> None:
        self.snapper.cancel_drag()

    @property
    def snap_lines(self) -> list[SnapLine]:
        return self.snapper.snap_lines

    # --- Persistence ---
    def settings(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "snap_threshold": self.snapper.threshold,
            "params": dict(vars(self.params)),
        }

    def to_dict(self) -> dict:
        data = graph_to_dict(self.graph)
        data["layout"] = self.settings()
        return data

    def save(self, filename: str) -> None:
        save_diagram(self.graph, filename, settings=self.settings())

    @classmethod
    def from_dict(cls, data: dict) -> "SingleLineDiagram":
        settings = data.get("layout") or {}
        diagram = cls(
            graph=graph_from_dict(data),
            params=LayoutParams.from_dict(settings.get("params")),
            strategy=LayoutStrategy(settings.get("strategy", "layered")),
            snap_threshold=settings.get("snap_threshold", SNAP_THRESHOLD),
        )
        diagram.relayout()
        return diagram

    @classmethod
    def load(cls, filename: str) -> "SingleLineDiagram":
        return cls.from_dict(read_diagram_file(filename))

    def write_debug_image(self, filename: str) -> None:
        sizes = self.sizes()
        rects = {
            node_id: (x, y, sizes[node_id][0], sizes[node_id][1])
            for node_id, (x, y) in self.positions().items()
        }
        generate_debug_image(
            rects, filename, edges=[(e.source, e.target) for e in self.edges()]
        )


# --- Main Execution ---
def main(argv: Optional[list[str]] = None) -> int:
    """Lay out a diagram file and print the resulting positions."""
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if "--help" in args:
        print(USAGE)
        return 0

    if args and not args[0].startswith("--"):
        filename = args.pop(0)
    elif EXAMPLE_DIAGRAM_FILE.exists():
        filename = str(EXAMPLE_DIAGRAM_FILE)
    else:
        # the example only ships with the source tree
        print("No diagram file given and no example diagram found.")
        print(USAGE)
        return 1
    data = read_diagram_file(filename)
    if "--relative" in args:
        data["layout"] = dict(
            data.get("layout") or {}, strategy=LayoutStrategy.RELATIVE.value
        )
    diagram = SingleLineDiagram.from_dict(data)

    for equipment in diagram.graph.all_nodes():
        errors = equipment.validate_properties()
        for message in errors:
            print(f"{equipment.id}: {message}")

    print("\nPositions:")
    for node_id, (x, y) in diagram.positions().items():
        print(f"{node_id}: ({x:.1f}, {y:.1f})")

    print("\nEdges:")
    for edge in diagram.edges():
        print(f"{edge.source}[{edge.source_handle}] -> {edge.target}[{edge.target_handle}]")

    if "--debug-image" in args:
        index = args.index("--debug-image")
        if index + 1 >= len(args):
            print("--debug-image needs a file name")
            return 1
        diagram.write_debug_image(args[index + 1])
        print(f"\nSaved layout image to {args[index + 1]}")

    if "--save" in args:
        diagram.save(filename)
        print(f"\nSaved positions to {filename}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
