# tests/conftest.py

import sys
from pathlib import Path

import pytest
import numpy as np
import laspy

from crownseg.lidar import PointCloud, PointStore, SegmentationParams

sys.path.insert(0, str(Path(__file__).parent))
from helpers import make_cone

@pytest.fixture
def params():
    """Default parameters with the crown width and search radius used in the scenarios."""
    return SegmentationParams(min_crown_width=1.5, search_radius=15.24)

@pytest.fixture
def unit_square():
    """Vertices of the unit square, counter-clockwise."""
    return np.array([0.0, 1.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0, 1.0])

@pytest.fixture
def two_cones():
    """
    Two well separated cone-shaped crowns of radius 5 and height 10,
    with apexes at (0, 0) and (50, 50). Returns the points and the cluster of each point.
    """
    a = make_cone(0.0, 0.0, 10.0)
    b = make_cone(50.0, 50.0, 10.0)
    points = np.vstack((a, b))
    cluster = np.concatenate((np.zeros(len(a), dtype=int), np.ones(len(b), dtype=int)))
    return points, cluster

@pytest.fixture
def overlapping_cones():
    """
    A 12 m cone at (0, 0) and a 10 m cone at (3, 0) sampled on the same grid,
    so their crowns overlap. Returns the points and the cluster of each point.
    """
    tall = make_cone(0.0, 0.0, 12.0)
    short = make_cone(3.0, 0.0, 10.0)
    points = np.vstack((tall, short))
    cluster = np.concatenate((np.zeros(len(tall), dtype=int), np.ones(len(short), dtype=int)))
    return points, cluster

@pytest.fixture
def cone_cloud(two_cones):
    points, _ = two_cones
    return PointCloud.from_xyz(points)

@pytest.fixture
def small_store():
    """
    A hand-made working set: an apex at the origin and a few points around it.
    Rows: 0 apex, 1 (1, 0), 2 (2, 0), 3 (0, 1), 4 (-1, -1), 5 (20, 0).
    Original indices are 10 to 15.
    """
    x = np.array([0.0, 1.0, 2.0, 0.0, -1.0, 20.0])
    y = np.array([0.0, 0.0, 0.0, 1.0, -1.0, 0.0])
    z = np.array([10.0, 9.0, 8.0, 9.5, 7.0, 6.0])
    return PointStore(x, y, z, np.arange(10, 16))

@pytest.fixture
def las_factory(tmp_path):
    """Writes an (N, 3) array of points to a LAS file in the temp dir and returns its path."""
    def _make(points: np.ndarray, name: str = "cloud.las"):
        header = laspy.LasHeader(point_format=3, version="1.2")
        header.offsets = np.floor(points.min(axis=0))
        header.scales = np.array([0.001, 0.001, 0.001])
        las = laspy.LasData(header)
        las.x = points[:, 0]
        las.y = points[:, 1]
        las.z = points[:, 2]
        path = tmp_path / name
        las.write(path)
        return path
    return _make
