# src/crownseg/lidar/profile.py

"""
This module extracts the vertical profiles around a candidate apex: the neighbourhood of the apex is
cut into equal angular sectors and each sector is sorted by distance from the apex.
"""

from dataclasses import dataclass
from typing import List
import logging

import numpy as np

from .store import PointStore

log = logging.getLogger(__name__)

__all__ = [
    "Profile",
    "sample_profiles"
]

@dataclass
class Profile:
    """
    Radius-sorted samples of one angular sector around an apex.

    Attributes:
        angle (float): Central bearing of the sector in degrees, counter-clockwise from +x.
        radius (np.ndarray): Planar distance of each sample from the apex, ascending.
        height (np.ndarray): Smoothed height of each sample.
        x (np.ndarray): X coordinate of each sample.
        y (np.ndarray): Y coordinate of each sample.
    """
    angle: float
    radius: np.ndarray
    height: np.ndarray
    x: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return len(self.radius)

    @property
    def is_empty(self) -> bool:
        return len(self.radius) == 0

def bearing(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
    """Bearing in degrees in [0, 360), counter-clockwise from +x."""
    return np.mod(np.degrees(np.arctan2(dy, dx)), 360.0)

def sample_profiles(
    store: PointStore,
    apex_row: int,
    search_radius: float,
    angular_bins: int = 64
    ) -> List[Profile]:
    """
    Builds one profile per angular sector around the apex.

    Args:
        store (PointStore): Current working set.
        apex_row (int): Row of the apex in the store.
        search_radius (float): Maximum planar distance of profile samples.
        angular_bins (int): Number of equal sectors covering 0-360 degrees.

    Returns:
        List[Profile]: `angular_bins` profiles ordered by sector. Sectors without points give empty profiles.
    """
    cx, cy = store.x[apex_row], store.y[apex_row]
    rows = store.within(cx, cy, search_radius)
    rows = rows[rows != apex_row]

    dx = store.x[rows] - cx
    dy = store.y[rows] - cy
    radius = np.hypot(dx, dy)

    width = 360.0 / angular_bins
    # min() guards against a bearing rounding up to exactly 360
    sector = np.minimum((bearing(dx, dy) // width).astype(np.int64), angular_bins - 1)

    # A single sort by (sector, radius) lets each profile be sliced out contiguously
    order = np.lexsort((radius, sector))
    sector, rows, radius = sector[order], rows[order], radius[order]
    bounds = np.searchsorted(sector, np.arange(angular_bins + 1))

    profiles = []
    for b in range(angular_bins):
        sl = slice(bounds[b], bounds[b + 1])
        r = rows[sl]
        profiles.append(Profile(
            angle=(b + 0.5) * width,
            radius=radius[sl],
            height=store.z[r],
            x=store.x[r],
            y=store.y[r]
        ))
    return profiles
