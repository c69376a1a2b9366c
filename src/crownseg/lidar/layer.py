# src/crownseg/lidar/layer.py

"""
This module defines the core data structure for lidar point clouds, along with methods for loading and
writing segmentation labels back to disk.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Union
import logging

import laspy
import numpy as np

log = logging.getLogger(__name__)

__all__ = [
    "PointCloud"
]

@dataclass
class PointCloud:
    """
    Core data structure for holding a height-normalized LiDAR point cloud.

    The original index of a point is its row position in the coordinate arrays.
    It stays fixed for the duration of a segmentation run so that labels computed on
    a thinned working set can be projected back onto the full cloud.

    Attributes:
        x (np.ndarray): X coordinates of points.
        y (np.ndarray): Y coordinates of points.
        z (np.ndarray): Z coordinates (height above ground) of points.
    """
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=np.float64)
        self.y = np.asarray(self.y, dtype=np.float64)
        self.z = np.asarray(self.z, dtype=np.float64)
        if not (self.x.ndim == self.y.ndim == self.z.ndim == 1):
            raise ValueError("Point coordinates must be one-dimensional arrays.")
        if not (len(self.x) == len(self.y) == len(self.z)):
            raise ValueError(
                f"Coordinate arrays differ in length: x={len(self.x)}, y={len(self.y)}, z={len(self.z)}"
            )

    def __len__(self) -> int:
        return len(self.x)

    def __repr__(self):
        return f"<PointCloud points={len(self)}>"

    @classmethod
    def from_xyz(cls, points) -> 'PointCloud':
        """
        Builds a PointCloud from any (N, 3) array-like of x, y, z coordinates.

        Args:
            points: Array-like of shape (N, 3).

        Returns:
            PointCloud: New object sharing the row order of the input.
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 3:
            raise ValueError(f"Expected an (N, 3) array of x, y, z, got shape {arr.shape}")
        return cls(x=arr[:, 0], y=arr[:, 1], z=arr[:, 2])

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path]
        ) -> 'PointCloud':
        """
        Loads the entirety of a LiDAR point cloud into memory.

        Args:
            path (Union[str, Path]): Target .las or .laz file.

        Returns:
            PointCloud: Fully populated object.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Lidar file not found: {path}")

        with laspy.open(path) as fh:
            las = fh.read()
        log.info(f"Loaded {len(las.points)} points from {path.name}")
        return cls(x=np.array(las.x), y=np.array(las.y), z=np.array(las.z))

    @staticmethod
    def write_labels(
        source: Union[str, Path],
        destination: Union[str, Path],
        tree_ids: np.ndarray,
        field: str = "treeID"
        ) -> Path:
        """
        Copies a LAS/LAZ file and stores per-point tree identifiers as an extra-bytes dimension.

        Args:
            source (Union[str, Path]): The file the labels were computed from.
            destination (Union[str, Path]): Output file path.
            tree_ids (np.ndarray): One label per point of the source file (0 = unassigned).
            field (str): Name of the new dimension.

        Returns:
            Path: The written file.
        """
        source = Path(source)
        destination = Path(destination)
        if not source.exists():
            raise FileNotFoundError(f"Lidar file not found: {source}")

        las = laspy.read(source)
        if len(las.points) != len(tree_ids):
            raise ValueError(
                f"Label count ({len(tree_ids)}) does not match point count ({len(las.points)})"
            )

        # an existing dimension with the same name is overwritten rather than duplicated
        if field not in las.point_format.dimension_names:
            las.add_extra_dim(laspy.ExtraBytesParams(
                name=field,
                type=np.int32,
                description="A unique ID for each tree"
            ))
        las[field] = np.asarray(tree_ids, dtype=np.int32)

        destination.parent.mkdir(parents=True, exist_ok=True)
        las.write(destination)
        log.info(f"Wrote {len(tree_ids)} labelled points to {destination}")
        return destination
