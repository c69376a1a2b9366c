# src/crownseg/lidar/preprocess.py

"""
This module prepares the working set of the radial-profile segmentation from a raw point cloud:
surface point thinning, height filtering and Gaussian smoothing of the heights.
"""

import logging

import numpy as np
from numba import jit
from scipy.spatial import cKDTree

from .layer import PointCloud
from .params import SegmentationParams
from .store import PointStore

log = logging.getLogger(__name__)

__all__ = [
    "filter_surface_points",
    "filter_height",
    "smooth_heights",
    "build_working_set"
]

def filter_surface_points(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    spacing: float
    ) -> np.ndarray:
    """
    Keeps the highest point of each `spacing` x `spacing` grid cell.

    Cells are centred on multiples of `spacing` counted from the minimum corner of the cloud,
    so a cloud sampled on a regular grid of the same spacing keeps one point per node.

    Args:
        x (np.ndarray): X coordinates.
        y (np.ndarray): Y coordinates.
        z (np.ndarray): Heights.
        spacing (float): Cell size, the nominal point spacing.

    Returns:
        np.ndarray: Sorted indices of the retained points.
    """
    if len(x) == 0:
        return np.empty(0, dtype=np.int64)

    col = np.floor((x - x.min()) / spacing + 0.5).astype(np.int64)
    row = np.floor((y - y.min()) / spacing + 0.5).astype(np.int64)
    cell = row * (col.max() + 1) + col

    # Sort by cell, then by descending height and ascending index so the first entry of each cell is its highest point
    order = np.lexsort((np.arange(len(z)), -z, cell))
    first = np.ones(len(order), dtype=bool)
    first[1:] = cell[order][1:] != cell[order][:-1]
    return np.sort(order[first])

def filter_height(z: np.ndarray, min_height: float) -> np.ndarray:
    """Boolean mask of the points strictly above `min_height`."""
    return z > min_height

@jit(nopython=True, cache=True)
def _weighted_means(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    neighbours: np.ndarray,
    offsets: np.ndarray,
    sigma: float
    ) -> np.ndarray:
    """
    Gaussian weighted mean of the heights of each point's neighbourhood.

    Args:
        x, y, z: Point coordinates.
        neighbours: Concatenated neighbour indices of every point.
        offsets: Start of each point's neighbours in `neighbours` (length N + 1).
        sigma: Gaussian bandwidth.

    Returns:
        np.ndarray: Smoothed heights.
    """
    out = np.empty(len(z), dtype=np.float64)
    two_sigma_sq = 2.0 * sigma * sigma
    for i in range(len(z)):
        total = 0.0
        weight_sum = 0.0
        for k in range(offsets[i], offsets[i + 1]):
            j = neighbours[k]
            dx = x[j] - x[i]
            dy = y[j] - y[i]
            w = np.exp(-(dx * dx + dy * dy) / two_sigma_sq)
            total += w * z[j]
            weight_sum += w
        out[i] = total / weight_sum
    return out

def smooth_heights(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    window: float,
    sigma: float
    ) -> np.ndarray:
    """
    Smooths heights with a Gaussian weighted local mean over a square neighbourhood.

    Args:
        x (np.ndarray): X coordinates.
        y (np.ndarray): Y coordinates.
        z (np.ndarray): Heights to smooth.
        window (float): Half-width of the square neighbourhood.
        sigma (float): Bandwidth of the Gaussian weights exp(-d^2 / (2 sigma^2)).

    Returns:
        np.ndarray: New array of smoothed heights; coordinates are untouched.
    """
    if len(z) == 0:
        return np.empty(0, dtype=np.float64)

    xy = np.column_stack((x, y))
    tree = cKDTree(xy)
    # The Chebyshev ball (p=inf) of radius `window` is the square window
    groups = tree.query_ball_point(xy, r=window, p=np.inf)

    counts = np.fromiter((len(g) for g in groups), dtype=np.int64, count=len(groups))
    offsets = np.zeros(len(groups) + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])
    neighbours = np.fromiter((j for g in groups for j in g), dtype=np.int64, count=int(offsets[-1]))

    return _weighted_means(
        np.asarray(x, dtype=np.float64),
        np.asarray(y, dtype=np.float64),
        np.asarray(z, dtype=np.float64),
        neighbours,
        offsets,
        float(sigma)
    )

def build_working_set(cloud: PointCloud, params: SegmentationParams) -> PointStore:
    """
    Builds the initial working set from a full point cloud.

    Steps:
        1. Surface point thinning at the nominal point spacing.
        2. Removal of the points at or below `min_height`.
        3. Gaussian smoothing of the remaining heights over a 3 * nps square window, sigma = nps.

    Args:
        cloud (PointCloud): Full, height-normalized point cloud.
        params (SegmentationParams): Segmentation parameters.

    Returns:
        PointStore: Working set whose rows remember their original index in `cloud`.
    """
    kept = filter_surface_points(cloud.x, cloud.y, cloud.z, params.point_spacing)
    log.debug(f"Surface point filter kept {len(kept)} of {len(cloud)} points")

    kept = kept[filter_height(cloud.z[kept], params.min_height)]
    log.debug(f"Height filter (> {params.min_height}) kept {len(kept)} points")

    x, y = cloud.x[kept], cloud.y[kept]
    z = smooth_heights(x, y, cloud.z[kept], params.smoothing_window, params.point_spacing)
    return PointStore(x, y, z, kept)
