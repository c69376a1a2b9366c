# tests/helpers.py

import numpy as np

def make_cone(cx: float, cy: float, height: float, radius: float = 5.0, spacing: float = 0.25) -> np.ndarray:
    """
    Samples a cone-shaped crown on a regular grid of the given spacing.
    Heights fall linearly from `height` at (cx, cy) to 0 at `radius`.
    """
    n = int(round(radius / spacing))
    offsets = np.arange(-n, n + 1) * spacing
    gx, gy = np.meshgrid(cx + offsets, cy + offsets)
    gx, gy = gx.ravel(), gy.ravel()
    r = np.hypot(gx - cx, gy - cy)
    keep = r <= radius
    z = height * (1.0 - r[keep] / radius)
    return np.column_stack((gx[keep], gy[keep], z))

def apex_index(points: np.ndarray, cx: float, cy: float) -> int:
    """Row of the first point located at (cx, cy)."""
    return int(np.argmin(np.hypot(points[:, 0] - cx, points[:, 1] - cy)))

def assert_labels_consistent(tree_ids: np.ndarray, n_trees: int):
    """Every label is either unassigned (0) or a valid tree ID."""
    assert tree_ids.dtype == np.int32
    assert tree_ids.min() >= 0, "Negative tree ID found"
    assert tree_ids.max() <= n_trees, \
        f"Label {tree_ids.max()} exceeds tree count {n_trees}"
