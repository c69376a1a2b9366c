# src/crownseg/lidar/gap.py

"""
This module locates the crown edge along a single vertical profile.

A profile is scanned outwards from the apex and closed at the first transition from "inside crown"
to "outside crown". Three kinds of transitions are recognised:

    - a gap: a radial step that is an outlier among the profile's square-rooted steps
      (Hamraz et al. 2016, page 535 section 2.2.1), or wider than the minimum detectable crown;
    - a crown-depth excess: the profile has dropped deeper below the apex than the narrow-cone
      or sphere crown models allow (page 535 equations 3 and 4);
    - a trend reversal: the profile rises again and its deviation from vertical, seen from the
      apex, grows by more than `epsilon` degrees (page 535 section 2.2.2).
"""

from dataclasses import dataclass
import logging

import numpy as np
from numba import jit

from .params import SegmentationParams
from .profile import Profile

log = logging.getLogger(__name__)

__all__ = [
    "ExtremityPoint",
    "gap_fence",
    "find_extremity"
]

# Reason codes returned by the compiled scanner
OPEN = 0
GAP = 1
DEPTH = 2
TREND = 3

_REASONS = {OPEN: "open", GAP: "gap", DEPTH: "depth", TREND: "trend"}

@dataclass(frozen=True)
class ExtremityPoint:
    """
    Crown edge found along one profile.

    Attributes:
        x (float): X coordinate of the edge (the apex itself for empty or immediately gapped profiles).
        y (float): Y coordinate of the edge.
        radius (float): Planar distance of the edge from the apex.
        angle (float): Central bearing of the profile's sector in degrees.
        reason (str): Which rule closed the profile ("empty", "open", "gap", "depth" or "trend").
    """
    x: float
    y: float
    radius: float
    angle: float
    reason: str

def gap_fence(steps: np.ndarray, sensitivity: float) -> float:
    """
    Upper fence of the square-rooted radial steps of a profile, Q3 + sensitivity * IQR.

    Args:
        steps (np.ndarray): Radial distances between consecutive samples.
        sensitivity (float): IQR multiplier.

    Returns:
        float: A step whose square root exceeds this value is a gap. Infinite without any step.
    """
    if len(steps) == 0:
        return float(np.inf)
    roots = np.sqrt(steps)
    q1, q3 = np.percentile(roots, [25, 75])
    return float(q3 + sensitivity * (q3 - q1))

@jit(nopython=True, cache=True)
def _floored(candidate: int, radius: np.ndarray, floor: float) -> int:
    # Shape rules may not close a profile inside the MDCW / 2 floor
    if candidate >= 0 and radius[candidate] >= floor:
        return candidate
    for k in range(len(radius)):
        if radius[k] >= floor:
            return k
    return len(radius) - 1

@jit(nopython=True, cache=True)
def _scan_profile(
    radius: np.ndarray,
    height: np.ndarray,
    apex_z: float,
    fence: float,
    max_step: float,
    floor: float,
    depth: float,
    epsilon: float
    ):
    """
    Scans a radius-sorted profile outwards and returns the index of its extremity.

    Args:
        radius: Sample distances from the apex, ascending.
        height: Sample heights.
        apex_z: Height of the apex.
        fence: Gap fence on the square-rooted steps between samples.
        max_step: Any radial step wider than this is a gap (MDCW).
        floor: Radius below which shape rules are not evaluated (MDCW / 2).
        depth: Largest plausible height drop below the apex.
        epsilon: Tolerated growth of the deviation from vertical, in degrees.

    Returns:
        Tuple of (index, reason). Index -1 designates the apex itself.
    """
    n = len(radius)
    phi_min = np.inf
    phi_min_at = 0
    previous = 0.0

    for i in range(n):
        step = radius[i] - previous
        previous = radius[i]
        # The apex-to-first-sample step is only tested against MDCW
        if (i > 0 and np.sqrt(step) > fence) or step > max_step:
            return i - 1, GAP

        drop = apex_z - height[i]
        phi = np.degrees(np.arctan2(radius[i], max(drop, 0.0)))

        if radius[i] >= floor:
            if drop > depth:
                return _floored(i - 1, radius, floor), DEPTH

            if i > 0 and height[i] > height[i - 1] and phi > phi_min + epsilon:
                # The crown edge is the bottom of the valley that precedes the rise
                lowest = phi_min_at
                for k in range(phi_min_at, i):
                    if height[k] < height[lowest]:
                        lowest = k
                return _floored(lowest, radius, floor), TREND

        if phi < phi_min:
            phi_min = phi
            phi_min_at = i

    return n - 1, OPEN

def find_extremity(
    profile: Profile,
    apex_x: float,
    apex_y: float,
    apex_z: float,
    params: SegmentationParams
    ) -> ExtremityPoint:
    """
    Finds the crown edge along one profile.

    Args:
        profile (Profile): Radius-sorted samples of one sector.
        apex_x (float): X coordinate of the apex.
        apex_y (float): Y coordinate of the apex.
        apex_z (float): Height of the apex.
        params (SegmentationParams): Segmentation parameters.

    Returns:
        ExtremityPoint: Exactly one edge point. Empty profiles give the apex at radius 0.
    """
    if profile.is_empty:
        return ExtremityPoint(float(apex_x), float(apex_y), 0.0, profile.angle, "empty")

    steps = np.diff(profile.radius, prepend=0.0)
    index, reason = _scan_profile(
        profile.radius,
        profile.height,
        float(apex_z),
        gap_fence(steps[1:], params.gap_sensitivity),
        float(params.min_crown_width),
        float(params.min_crown_width / 2),
        float(params.crown_depth(apex_z)),
        float(params.epsilon)
    )

    if index < 0:
        return ExtremityPoint(float(apex_x), float(apex_y), 0.0, profile.angle, _REASONS[reason])
    return ExtremityPoint(
        float(profile.x[index]),
        float(profile.y[index]),
        float(profile.radius[index]),
        profile.angle,
        _REASONS[reason]
    )
