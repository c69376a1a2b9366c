# tests/test_basics.py
import numpy as np
from crownseg import config, lidar, vector

def test_imports():
    """Simple smoke test to ensure modules import correctly."""
    assert config is not None
    assert lidar is not None
    assert vector is not None

def test_segment_small_cloud():
    """
    Module: lidar
    Function: segment_trees
    Test: a single 10 m cone yields one tree that owns its apex.
    """
    gx, gy = np.meshgrid(np.arange(-12, 13) * 0.25, np.arange(-12, 13) * 0.25)
    z = 10.0 - np.hypot(gx, gy)
    points = np.column_stack((gx.ravel(), gy.ravel(), z.ravel()))

    result = lidar.segment_trees(points)

    assert result.n_trees == 1
    assert result.tree_ids[np.argmax(points[:, 2])] == 1
