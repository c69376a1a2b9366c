# src/crownseg/lidar/store.py

"""
This module implements the working set of the segmentation: a fixed arena of preprocessed points
guarded by a liveness mask that only ever shrinks.
"""

import logging

import numpy as np
from scipy.spatial import cKDTree

log = logging.getLogger(__name__)

__all__ = [
    "PointStore"
]

class PointStore:
    """
    Arena of preprocessed points plus a boolean liveness mask.

    Rows are never reordered or reallocated; removing a point only clears its mask entry,
    so row numbers handed out by `apex` and `within` stay valid for the whole run.

    Args:
        x (np.ndarray): X coordinates of the preprocessed points.
        y (np.ndarray): Y coordinates of the preprocessed points.
        z (np.ndarray): Smoothed heights of the preprocessed points.
        index (np.ndarray): Original index of each point in the full cloud.
    """
    def __init__(self, x: np.ndarray, y: np.ndarray, z: np.ndarray, index: np.ndarray):
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64)
        self.z = np.asarray(z, dtype=np.float64)
        self.index = np.asarray(index, dtype=np.int64)
        if not (len(self.x) == len(self.y) == len(self.z) == len(self.index)):
            raise ValueError("PointStore columns must share the same length.")

        self.live = np.ones(len(self.x), dtype=bool)
        self._size = len(self.x)
        # the tree is built once on the full arena; dead rows are masked out at query time
        self._tree = cKDTree(np.column_stack((self.x, self.y))) if self._size else None

    def __len__(self) -> int:
        return self._size

    def __repr__(self):
        return f"<PointStore live={self._size} capacity={len(self.x)}>"

    @property
    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self.x)

    @property
    def is_empty(self) -> bool:
        return self._size == 0

    def apex(self) -> int:
        """
        Returns the row of the live point with the greatest height.

        Height ties are broken by the lowest original index, which makes the order in which
        trees are processed reproducible.
        """
        if self.is_empty:
            raise IndexError("apex() called on an empty PointStore")

        rows = np.flatnonzero(self.live)
        heights = self.z[rows]
        top = rows[heights == heights.max()]
        return int(top[np.argmin(self.index[top])])

    def within(self, cx: float, cy: float, radius: float) -> np.ndarray:
        """Rows of live points within planar distance `radius` of (cx, cy), boundary included."""
        if self.is_empty:
            return np.empty(0, dtype=np.int64)
        rows = np.asarray(self._tree.query_ball_point([cx, cy], r=radius), dtype=np.int64)
        return np.sort(rows[self.live[rows]])

    def remove(self, rows: np.ndarray) -> int:
        """
        Irrevocably drops rows from the working set.

        Args:
            rows (np.ndarray): Row numbers to remove. Rows that are already dead are ignored.

        Returns:
            int: Number of points actually removed.
        """
        rows = np.unique(np.asarray(rows, dtype=np.int64))
        alive = rows[self.live[rows]]
        self.live[alive] = False
        self._size -= len(alive)
        return len(alive)
