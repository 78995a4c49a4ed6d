"""
Collision helpers for placing equipment rectangles without overlap.

Rectangles are (x, y, width, height) with (x, y) the top-left corner in a
Y-down coordinate system. Rectangles that only share an edge do not count
as overlapping.
"""

from typing import Iterable, List, Mapping, Optional, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.patches as patches  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
from shapely.geometry import Polygon, box  # noqa: E402

Rect = Tuple[float, float, float, float]


def rect_polygon(rect: Rect) -> Polygon:
    x, y, width, height = rect
    return box(x, y, x + width, y + height)


def rects_overlap(a: Rect, b: Rect) -> bool:
    """True when the interiors of two rectangles intersect."""
    poly_a, poly_b = rect_polygon(a), rect_polygon(b)
    return poly_a.intersects(poly_b) and not poly_a.touches(poly_b)


def find_open_space(
    x: float,
    y: float,
    size: Tuple[float, float],
    placed: Iterable[Rect],
    spacing: float = 20,
    max_steps: int = 10000,
) -> Tuple[float, float]:
    """
    Slide a candidate rectangle to the right until it overlaps nothing.

    Each time the candidate hits a placed rectangle it jumps to just right
    of that rectangle plus `spacing`, then the check starts over.

    Args:
        x: Candidate left edge.
        y: Candidate top edge, never changed.
        size: (width, height) of the candidate.
        placed: Rectangles already on the canvas.
        spacing: Gap kept to the right of an offending rectangle.
        max_steps: Safety limit on the number of jumps.

    Returns:
        The (x, y) where the candidate fits.
    """
    placed = list(placed)
    width, height = size
    for _ in range(max_steps):
        candidate = (x, y, width, height)
        blocker = next((r for r in placed if rects_overlap(candidate, r)), None)
        if blocker is None:
            break
        x = blocker[0] + blocker[2] + spacing
    return x, y


def find_overlaps(rects: Mapping[str, Rect]) -> List[Tuple[str, str]]:
    """All pairs of keys whose rectangles overlap."""
    keys = list(rects)
    polygons = {k: rect_polygon(rects[k]) for k in keys}
    overlaps = []
    for i, key_i in enumerate(keys):
        for key_j in keys[i + 1 :]:
            poly_i, poly_j = polygons[key_i], polygons[key_j]
            if poly_i.intersects(poly_j) and not poly_i.touches(poly_j):
                overlaps.append((key_i, key_j))
    return overlaps


def generate_debug_image(
    rects: Mapping[str, Rect],
    filename: str,
    edges: Optional[Iterable[Tuple[str, str]]] = None,
    title: str = "Equipment layout",
) -> None:
    """Save a PNG showing every rectangle, labelled with its key."""
    fig, ax = plt.subplots(1, 1, figsize=(10, 10))

    colors = ["red", "blue", "green", "orange", "purple", "brown", "pink", "gray"]

    for i, (key, (x, y, width, height)) in enumerate(rects.items()):
        rect = patches.Rectangle(
            (x, y),
            width,
            height,
            linewidth=2,
            edgecolor=colors[i % len(colors)],
            facecolor=colors[i % len(colors)],
            alpha=0.3,
        )
        ax.add_patch(rect)
        ax.text(
            x + width / 2,
            y + height / 2,
            key,
            ha="center",
            va="center",
            fontsize=10,
            fontweight="bold",
        )

    # straight lines from the bottom centre of a source to the top centre of a load
    for source, target in edges or []:
        if source not in rects or target not in rects:
            continue
        sx, sy, sw, sh = rects[source]
        tx, ty, tw, _ = rects[target]
        ax.plot([sx + sw / 2, tx + tw / 2], [sy + sh, ty], color="black", linewidth=1)

    ax.set_aspect("equal")
    ax.invert_yaxis()
    ax.grid(True, alpha=0.3)
    ax.set_title(title)
    ax.autoscale_view()
    plt.savefig(filename, dpi=150, bbox_inches="tight")
    plt.close(fig)
