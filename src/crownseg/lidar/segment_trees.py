# src/crownseg/lidar/segment_trees.py

"""
This module implements individual tree segmentation at the point cloud level with the radial-profile
method of Hamraz et al. (2016).

The working set is repeatedly searched for its tallest point. Vertical profiles around that apex are
cut at the crown edge, the edges are wrapped in a convex hull, and every working-set point inside the
hull is consumed. Hulls large enough to be a crown become trees, and the points of the full cloud
that fall inside them receive the new tree ID unless a taller tree claimed them first.

Reference:
    Hamraz, H., Contreras, M. A., & Zhang, J. (2016). A robust approach for tree segmentation in
    deciduous forests using small-footprint airborne LiDAR data. International Journal of Applied
    Earth Observation and Geoinformation, 52, 532-541.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union
import logging

import numpy as np
from scipy.spatial import cKDTree

from .boundary import CrownBoundary, build_boundary
from .gap import find_extremity
from .layer import PointCloud
from .params import SegmentationParams, SegmentationError
from .preprocess import build_working_set
from .profile import sample_profiles
from .store import PointStore

log = logging.getLogger(__name__)

__all__ = [
    "TreeRecord",
    "SegmentationResult",
    "segment_working_set",
    "segment_trees"
]

ProgressCallback = Callable[[int, int, int], None]

UNASSIGNED = 0

@dataclass
class TreeRecord:
    """
    An accepted tree crown.

    Attributes:
        tree_id (int): Identifier, starting at 1 in order of acceptance.
        apex_x (float): X coordinate of the apex the crown was grown from.
        apex_y (float): Y coordinate of the apex.
        apex_z (float): Smoothed height of the apex.
        area (float): Area of the crown boundary.
        hull_x (np.ndarray): Boundary vertex X coordinates, counter-clockwise.
        hull_y (np.ndarray): Boundary vertex Y coordinates.
        n_points (int): Number of full-cloud points labelled with this ID.
    """
    tree_id: int
    apex_x: float
    apex_y: float
    apex_z: float
    area: float
    hull_x: np.ndarray
    hull_y: np.ndarray
    n_points: int

@dataclass
class SegmentationResult:
    """
    Outcome of a segmentation run.

    Attributes:
        tree_ids (np.ndarray): One int32 label per input point; 0 means unassigned.
        trees (List[TreeRecord]): Accepted crowns in order of acceptance.
        iterations (int): Number of loop iterations performed.
        working_set_size (int): Number of points in the initial working set.
        completed (bool): False when the run was stopped early by the iteration cap.
    """
    tree_ids: np.ndarray
    trees: List[TreeRecord] = field(default_factory=list)
    iterations: int = 0
    working_set_size: int = 0
    completed: bool = True

    @property
    def n_trees(self) -> int:
        return len(self.trees)

def _claim(
    tree_ids: np.ndarray,
    full_index: cKDTree,
    x: np.ndarray,
    y: np.ndarray,
    boundary: CrownBoundary,
    apex_x: float,
    apex_y: float,
    search_radius: float,
    tree_id: int
    ) -> int:
    """
    Labels the still unassigned full-cloud points inside a crown boundary.

    The boundary is the hull of profile edges that all lie within `search_radius` of the apex,
    so the disc of that radius is a safe prefilter.

    Returns:
        int: Number of points labelled.
    """
    near = np.asarray(full_index.query_ball_point([apex_x, apex_y], r=search_radius), dtype=np.int64)
    inside = near[boundary.contains(x[near], y[near])]
    update = inside[tree_ids[inside] == UNASSIGNED]
    tree_ids[update] = tree_id
    return len(update)

def segment_working_set(
    store: PointStore,
    x: np.ndarray,
    y: np.ndarray,
    params: SegmentationParams,
    progress: Optional[ProgressCallback] = None
    ) -> SegmentationResult:
    """
    Runs the segmentation loop on an already built working set until it is empty.

    Steps (one iteration):
        1. Select the apex GMX, the live point of greatest height (ties: lowest original index).
        2. Sample `angular_bins` profiles within `search_radius` of GMX and find each crown edge.
        3. Build the convex crown boundary from the edges (degenerate boundaries have area 0).
        4. Remove the live points inside the boundary from the working set, or GMX alone when the
           boundary is degenerate or catches no live point.
        5. If the boundary area exceeds pi * (MDCW / 2)^2, accept a new tree and give its ID to every
           point of the full cloud inside the boundary that has no ID yet.

    Args:
        store (PointStore): Working set. It is consumed by the run.
        x (np.ndarray): X coordinates of the full cloud.
        y (np.ndarray): Y coordinates of the full cloud.
        params (SegmentationParams): Validated segmentation parameters.
        progress (Optional[Callable[[int, int, int], None]]): Called once per iteration with
            (iteration, remaining working-set size, initial working-set size).

    Returns:
        SegmentationResult: Labels for the full cloud and the accepted trees.

    Raises:
        SegmentationError: When an iteration fails to shrink the working set, or when
            `params.max_iterations` is reached and `params.early_stop` is False.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    tree_ids = np.full(len(x), UNASSIGNED, dtype=np.int32)
    result = SegmentationResult(tree_ids=tree_ids, working_set_size=store.size)
    if store.is_empty:
        return result

    full_index = cKDTree(np.column_stack((x, y)))
    total = store.size

    while not store.is_empty:
        if params.max_iterations is not None and result.iterations >= params.max_iterations:
            if not params.early_stop:
                raise SegmentationError(
                    f"Iteration cap of {params.max_iterations} reached with {store.size} points left"
                )
            log.warning(f"Stopping early after {result.iterations} iterations, {store.size} points left unprocessed")
            result.completed = False
            break

        result.iterations += 1
        apex = store.apex()
        ax, ay, az = store.x[apex], store.y[apex], store.z[apex]

        profiles = sample_profiles(store, apex, params.search_radius, params.angular_bins)
        extremities = [find_extremity(p, ax, ay, az, params) for p in profiles]
        boundary = build_boundary(extremities, params)

        if boundary.is_degenerate:
            in_working = np.array([apex], dtype=np.int64)
        else:
            candidates = store.within(ax, ay, params.search_radius)
            in_working = candidates[boundary.contains(store.x[candidates], store.y[candidates])]
            if len(in_working) == 0:
                in_working = np.array([apex], dtype=np.int64)

        if store.remove(in_working) == 0:
            raise SegmentationError(f"Iteration {result.iterations} did not shrink the working set")

        if boundary.area > params.min_crown_area:
            tree_id = result.n_trees + 1
            n_points = _claim(tree_ids, full_index, x, y, boundary, ax, ay, params.search_radius, tree_id)
            result.trees.append(TreeRecord(
                tree_id=tree_id,
                apex_x=float(ax),
                apex_y=float(ay),
                apex_z=float(az),
                area=boundary.area,
                hull_x=boundary.x,
                hull_y=boundary.y,
                n_points=n_points
            ))
            log.debug(f"Tree {tree_id}: apex ({ax:.2f}, {ay:.2f}, {az:.2f}), area {boundary.area:.2f}, {n_points} points")

        if progress is not None:
            progress(result.iterations, store.size, total)

    log.info(f"Segmented {result.n_trees} trees in {result.iterations} iterations from {total} working-set points")
    return result

def segment_trees(
    cloud: Union[PointCloud, np.ndarray],
    params: Optional[SegmentationParams] = None,
    progress: Optional[ProgressCallback] = None
    ) -> SegmentationResult:
    """
    Assigns every point of a height-normalized point cloud to a tree, or leaves it unassigned.

    The working set is built by surface point thinning at `point_spacing`, removal of the points at or
    below `min_height` and Gaussian smoothing of the heights; the labels are computed for the full cloud.
    Processing is sequential: each iteration depends on the working set and labels left by the previous
    one. Tiles of a larger dataset can be segmented independently provided each tile is buffered by at
    least `search_radius`; removing the buffer points afterwards is the caller's responsibility.

    Args:
        cloud (Union[PointCloud, np.ndarray]): PointCloud or (N, 3) array of x, y, z.
        params (Optional[SegmentationParams]): Segmentation parameters, validated before any processing.
            Defaults apply when omitted.
        progress (Optional[Callable[[int, int, int], None]]): Per-iteration progress callback.

    Returns:
        SegmentationResult: Labels (0 = unassigned) and accepted trees.

    Raises:
        InvalidParameterError: If a parameter is outside its domain.
    """
    params = SegmentationParams() if params is None else params
    params.validate()
    if not isinstance(cloud, PointCloud):
        cloud = PointCloud.from_xyz(cloud)

    store = build_working_set(cloud, params)
    log.info(f"Working set: {store.size} of {len(cloud)} points above {params.min_height}")

    if store.is_empty:
        log.info("Working set is empty after preprocessing, no trees to segment")
        return SegmentationResult(tree_ids=np.full(len(cloud), UNASSIGNED, dtype=np.int32))

    return segment_working_set(store, cloud.x, cloud.y, params, progress)
