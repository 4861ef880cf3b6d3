"""
Axis-aligned rectangle primitives in container percentages.

Every predicate takes the same epsilon for "touching" and "distinct" so that
two tiles can never be classified as both adjacent and overlapping. Rectangles
are any objects exposing ``x``, ``y``, ``width`` and ``height``.
"""

import math
from typing import Iterable, List, Tuple

from shapely.geometry import Polygon, box
from shapely.ops import unary_union

EPSILON = 1e-6
CONTAINER_SIZE = 100.0
CONTAINER_AREA = CONTAINER_SIZE * CONTAINER_SIZE

Interval = Tuple[float, float]


def right(r) -> float:
    return r.x + r.width


def bottom(r) -> float:
    return r.y + r.height


def area(r) -> float:
    return r.width * r.height


def approx_equal(a: float, b: float, eps: float = EPSILON) -> bool:
    return abs(a - b) <= eps


def clamp_pct(value: float) -> float:
    """Clamp a value to the container range [0, 100]."""
    return max(0.0, min(CONTAINER_SIZE, value))


def is_finite_rect(r) -> bool:
    return all(math.isfinite(v) for v in (r.x, r.y, r.width, r.height))


def within_bounds(r, eps: float = EPSILON) -> bool:
    return (
        r.x >= -eps
        and r.y >= -eps
        and r.width >= 0
        and r.height >= 0
        and right(r) <= CONTAINER_SIZE + eps
        and bottom(r) <= CONTAINER_SIZE + eps
    )


def interval_overlap(a0: float, a1: float, b0: float, b1: float) -> float:
    """Length of the overlap between [a0, a1] and [b0, b1] (0 when disjoint)."""
    return max(0.0, min(a1, b1) - max(a0, b0))


def overlap_area(a, b) -> float:
    return interval_overlap(a.x, right(a), b.x, right(b)) * interval_overlap(
        a.y, bottom(a), b.y, bottom(b)
    )


def overlaps(a, b, eps: float = EPSILON) -> bool:
    return overlap_area(a, b) > eps


def adjacent(a, b, eps: float = EPSILON) -> bool:
    """True when ``a`` and ``b`` share an edge with overlapping orthogonal extent."""
    touches_vertically = approx_equal(right(a), b.x, eps) or approx_equal(right(b), a.x, eps)
    if touches_vertically and interval_overlap(a.y, bottom(a), b.y, bottom(b)) > eps:
        return True
    touches_horizontally = approx_equal(bottom(a), b.y, eps) or approx_equal(bottom(b), a.y, eps)
    return touches_horizontally and interval_overlap(a.x, right(a), b.x, right(b)) > eps


def merge_intervals(intervals: Iterable[Interval], eps: float = EPSILON) -> List[Interval]:
    """Union of 1-D intervals; pieces separated by at most ``eps`` are joined."""
    merged: List[List[float]] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1] + eps:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(start, end) for start, end in merged]


# ─── Shapely diagnostics ────────────────────────────────────────────────────


def rect_polygon(r) -> Polygon:
    return box(r.x, r.y, right(r), bottom(r))


def container_polygon() -> Polygon:
    return box(0.0, 0.0, CONTAINER_SIZE, CONTAINER_SIZE)


def uncovered_area(rects: Iterable) -> float:
    """Area of the container not covered by any rectangle."""
    polygons = [rect_polygon(r) for r in rects]
    if not polygons:
        return CONTAINER_AREA
    return container_polygon().difference(unary_union(polygons)).area


def uncovered_bounds(rects: Iterable) -> Tuple[float, float, float, float]:
    """Bounding box of the uncovered region, or all zeros when fully covered."""
    polygons = [rect_polygon(r) for r in rects]
    gap = container_polygon().difference(unary_union(polygons)) if polygons else container_polygon()
    if gap.is_empty:
        return (0.0, 0.0, 0.0, 0.0)
    return tuple(float(v) for v in gap.bounds)
