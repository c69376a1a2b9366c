# tests/unit/test_profile.py

import pytest
import numpy as np

from crownseg.lidar import sample_profiles
from crownseg.lidar.profile import bearing

def test_bearing_quadrants():
    angles = bearing(np.array([1.0, 0.0, -1.0, 0.0]), np.array([0.0, 1.0, 0.0, -1.0]))
    assert angles == pytest.approx([0.0, 90.0, 180.0, 270.0])

def test_bearing_is_never_negative():
    assert bearing(np.array([1.0]), np.array([-1e-12]))[0] >= 0

def test_one_profile_per_sector(small_store):
    profiles = sample_profiles(small_store, 0, 15.24, angular_bins=64)

    assert len(profiles) == 64
    assert profiles[0].angle == pytest.approx(360.0 / 64 / 2)
    assert profiles[-1].angle == pytest.approx(360.0 - 360.0 / 64 / 2)

def test_profiles_exclude_apex_and_far_points(small_store):
    """Rows 1 to 4 are sampled; the apex and the point 20 m away are not."""
    profiles = sample_profiles(small_store, 0, 15.24)

    assert sum(len(p) for p in profiles) == 4
    radii = np.concatenate([p.radius for p in profiles])
    assert 0.0 not in radii
    assert 20.0 not in radii

def test_profile_sorted_by_radius(small_store):
    east = sample_profiles(small_store, 0, 15.24)[0]

    assert east.radius.tolist() == [1.0, 2.0]
    assert east.height.tolist() == [9.0, 8.0]
    assert east.x.tolist() == [1.0, 2.0]

def test_samples_fall_in_their_sector(small_store):
    bins = 16
    width = 360.0 / bins
    for profile in sample_profiles(small_store, 0, 15.24, angular_bins=bins):
        for angle in bearing(profile.x, profile.y):
            assert profile.angle - width / 2 - 1e-9 <= angle <= profile.angle + width / 2 + 1e-9

def test_empty_sectors(small_store):
    profiles = sample_profiles(small_store, 0, 15.24)
    assert sum(p.is_empty for p in profiles) >= 60

def test_profiles_skip_removed_points(small_store):
    small_store.remove([2])
    east = sample_profiles(small_store, 0, 15.24)[0]
    assert east.radius.tolist() == [1.0]
