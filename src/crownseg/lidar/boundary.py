# src/crownseg/lidar/boundary.py

"""
This module turns the per-profile crown edges into a crown boundary polygon and answers
membership queries against it.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple
import logging

import numpy as np
from numba import jit

from .gap import ExtremityPoint
from .params import SegmentationParams

log = logging.getLogger(__name__)

__all__ = [
    "CrownBoundary",
    "filter_extremities",
    "convex_hull",
    "polygon_area",
    "points_in_polygon",
    "build_boundary"
]

@dataclass
class CrownBoundary:
    """
    Convex crown boundary around an apex.

    Attributes:
        x (np.ndarray): Hull vertex X coordinates, counter-clockwise, not closed.
        y (np.ndarray): Hull vertex Y coordinates.
        area (float): Hull area. Zero marks a degenerate boundary that only ever holds its apex.
    """
    x: np.ndarray
    y: np.ndarray
    area: float

    @property
    def is_degenerate(self) -> bool:
        return self.area == 0

    @classmethod
    def degenerate(cls) -> 'CrownBoundary':
        return cls(np.empty(0), np.empty(0), 0.0)

    def contains(self, px: np.ndarray, py: np.ndarray) -> np.ndarray:
        """Boolean mask of the points inside or on the boundary."""
        if self.is_degenerate:
            return np.zeros(len(px), dtype=bool)
        return points_in_polygon(px, py, self.x, self.y)

def filter_extremities(radius: np.ndarray, spacing: float) -> np.ndarray:
    """
    Selects the profile edges kept for the hull.

    Edges closer than 2 * nps to the apex are dropped as near-degenerate. Of the remaining ones,
    only the edges whose radius lies within the [10th, 90th] percentile band are kept, which
    rejects directional outliers.

    Args:
        radius (np.ndarray): Edge distances from the apex.
        spacing (float): Nominal point spacing.

    Returns:
        np.ndarray: Boolean mask over `radius`.
    """
    keep = radius >= 2 * spacing
    if not np.any(keep):
        return keep
    low, high = np.percentile(radius[keep], [10, 90])
    return keep & (radius >= low) & (radius <= high)

@jit(nopython=True, cache=True)
def _cross(ox, oy, ax, ay, bx, by):
    return (ax - ox) * (by - oy) - (ay - oy) * (bx - ox)

@jit(nopython=True, cache=True)
def _monotone_chain(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Andrew's monotone chain. Returns the indices of the hull vertices, counter-clockwise,
    with collinear points removed.
    """
    n = len(x)
    # lexicographic (x, y) order through two stable sorts
    order = np.argsort(y, kind="mergesort")
    order = order[np.argsort(x[order], kind="mergesort")]

    hull = np.empty(2 * n, dtype=np.int64)
    k = 0
    for i in range(n):
        p = order[i]
        while k >= 2 and _cross(x[hull[k - 2]], y[hull[k - 2]], x[hull[k - 1]], y[hull[k - 1]], x[p], y[p]) <= 0:
            k -= 1
        hull[k] = p
        k += 1

    lower = k + 1
    for i in range(n - 2, -1, -1):
        p = order[i]
        while k >= lower and _cross(x[hull[k - 2]], y[hull[k - 2]], x[hull[k - 1]], y[hull[k - 1]], x[p], y[p]) <= 0:
            k -= 1
        hull[k] = p
        k += 1

    # the last vertex repeats the first one
    return hull[:max(k - 1, 1)] if n > 1 else hull[:n]

def convex_hull(x: Sequence[float], y: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convex hull of a planar point set.

    Args:
        x (Sequence[float]): X coordinates.
        y (Sequence[float]): Y coordinates.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Hull vertices, counter-clockwise, not closed. Duplicate and
        collinear points are removed, so collinear input yields at most two vertices.
    """
    x = np.ascontiguousarray(x, dtype=np.float64)
    y = np.ascontiguousarray(y, dtype=np.float64)
    if len(x) == 0:
        return x, y
    idx = _monotone_chain(x, y)
    return x[idx], y[idx]

def polygon_area(x: Sequence[float], y: Sequence[float]) -> float:
    """Area of a simple polygon with the shoelace formula. Vertex order does not matter."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if len(x) < 3:
        return 0.0
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))

@jit(nopython=True, cache=True)
def _points_in_polygon(px, py, vx, vy, tol):
    n = len(vx)
    inside = np.zeros(len(px), dtype=np.bool_)
    for i in range(len(px)):
        x = px[i]
        y = py[i]
        crossing = False
        on_edge = False
        j = n - 1
        for k in range(n):
            xk, yk = vx[k], vy[k]
            xj, yj = vx[j], vy[j]

            # On-edge test: collinear with the edge and inside its bounding box
            cross = (xj - xk) * (y - yk) - (yj - yk) * (x - xk)
            length = np.hypot(xj - xk, yj - yk)
            if abs(cross) <= tol * max(length, 1.0) \
                    and min(xk, xj) - tol <= x <= max(xk, xj) + tol \
                    and min(yk, yj) - tol <= y <= max(yk, yj) + tol:
                on_edge = True
                break

            # Ray casting towards +x
            if (yk > y) != (yj > y):
                x_cross = xk + (y - yk) * (xj - xk) / (yj - yk)
                if x < x_cross:
                    crossing = not crossing
            j = k
        inside[i] = on_edge or crossing
    return inside

def points_in_polygon(
    px: np.ndarray,
    py: np.ndarray,
    vx: np.ndarray,
    vy: np.ndarray,
    tol: float = 1e-9
    ) -> np.ndarray:
    """
    Point-in-polygon test by ray casting. Points on an edge or a vertex count as inside.

    Args:
        px (np.ndarray): X coordinates of the query points.
        py (np.ndarray): Y coordinates of the query points.
        vx (np.ndarray): Polygon vertex X coordinates (open ring, any orientation).
        vy (np.ndarray): Polygon vertex Y coordinates.
        tol (float): Distance tolerance of the on-edge test.

    Returns:
        np.ndarray: Boolean mask over the query points.
    """
    px = np.ascontiguousarray(px, dtype=np.float64)
    py = np.ascontiguousarray(py, dtype=np.float64)
    vx = np.ascontiguousarray(vx, dtype=np.float64)
    vy = np.ascontiguousarray(vy, dtype=np.float64)
    if len(vx) < 3 or len(px) == 0:
        return np.zeros(len(px), dtype=bool)
    return _points_in_polygon(px, py, vx, vy, tol)

def build_boundary(
    extremities: Sequence[ExtremityPoint],
    params: SegmentationParams
    ) -> CrownBoundary:
    """
    Builds the crown boundary from the edge points of all profiles.

    Args:
        extremities (Sequence[ExtremityPoint]): One edge per angular sector.
        params (SegmentationParams): Segmentation parameters.

    Returns:
        CrownBoundary: The convex hull of the retained edges, or the degenerate boundary when fewer
        than 4 edges survive filtering or the hull has no area.
    """
    x = np.array([e.x for e in extremities], dtype=np.float64)
    y = np.array([e.y for e in extremities], dtype=np.float64)
    radius = np.array([e.radius for e in extremities], dtype=np.float64)

    if params.filter_profiles:
        keep = filter_extremities(radius, params.point_spacing)
        x, y = x[keep], y[keep]

    if len(x) < 4:
        log.debug(f"Degenerate boundary: {len(x)} usable profile edges")
        return CrownBoundary.degenerate()

    hx, hy = convex_hull(x, y)
    area = polygon_area(hx, hy)
    if len(hx) < 3 or area <= 0:
        log.debug("Degenerate boundary: collinear profile edges")
        return CrownBoundary.degenerate()
    return CrownBoundary(hx, hy, area)
