# src/crownseg/lidar/params.py

"""
This module defines the parameter set of the radial-profile tree segmentation together with
the exceptions raised when a run cannot proceed.
"""

from dataclasses import dataclass, fields, asdict
from typing import Optional, Dict, Any
import logging
import math

log = logging.getLogger(__name__)

__all__ = [
    "InvalidParameterError",
    "SegmentationError",
    "SegmentationParams"
]

class InvalidParameterError(ValueError):
    """Raised when a segmentation parameter lies outside its domain."""

class SegmentationError(RuntimeError):
    """Raised when the segmentation loop breaks one of its own invariants."""

@dataclass
class SegmentationParams:
    """
    Parameters for the Hamraz et al. (2016) radial-profile segmentation.

    Symbols in brackets are the ones used in the original article.

    Args:
        point_spacing: Nominal point spacing [nps]. Used for surface point thinning, the smoothing
            window (3 * nps) and bandwidth (nps), and the profile filter (2 * nps).
        min_height: Points at or below this height are not considered for segmentation [th].
        min_crown_width: Minimum detectable crown width [MDCW]. Profiles cannot close before
            MDCW / 2 without a gap, and crowns of area below pi * (MDCW / 2)^2 are rejected.
        epsilon: Small deviation from vertical, in degrees, tolerated before a rising profile
            is considered to climb a neighbouring crown.
        cone_crown_ratio: Crown ratio of a narrow cone-shaped crown [CLc].
        cone_overlap: Crown reduction due to overlap in a dense stand of cone-shaped crowns [Oc].
        sphere_crown_ratio: Crown ratio of a sphere-shaped crown [CLs].
        sphere_overlap: Crown reduction due to overlap in a dense stand of sphere-shaped crowns [Os].
        gap_sensitivity: Multiplier of the interquartile range of the square-rooted radial
            steps used to detect gaps along a profile. The article uses 6.
        search_radius: Maximum horizontal extent of the profiles [R]. Any value larger than a crown
            works; it only affects speed.
        filter_profiles: Drop near-zero and outlying profile radii before building the hull.
        angular_bins: Number of equal angular sectors around an apex.
        max_iterations: Optional cap on the number of loop iterations.
        early_stop: When the cap is reached, return the partial result instead of raising.
    """
    point_spacing: float = 0.25
    min_height: float = 5.0
    min_crown_width: float = 1.5
    epsilon: float = 5.0
    cone_crown_ratio: float = 0.8
    cone_overlap: float = 2 / 3
    sphere_crown_ratio: float = 0.7
    sphere_overlap: float = 1 / 3
    gap_sensitivity: int = 6
    search_radius: float = 15.24
    filter_profiles: bool = True
    angular_bins: int = 64
    max_iterations: Optional[int] = None
    early_stop: bool = False

    @property
    def min_crown_area(self) -> float:
        """Smallest accepted crown area, pi * (MDCW / 2)^2."""
        return math.pi * (self.min_crown_width / 2) ** 2

    @property
    def smoothing_window(self) -> float:
        """Half-width of the square smoothing window, 3 * nps."""
        return 3 * self.point_spacing

    def crown_depth(self, apex_height: float) -> float:
        """
        Visible depth of a crown whose apex sits at `apex_height`.

        Both crown models are evaluated and the more permissive one is kept:
        CLc * Oc * H for the narrow cone, CLs * Os * H for the sphere.
        """
        cone = self.cone_crown_ratio * self.cone_overlap * apex_height
        sphere = self.sphere_crown_ratio * self.sphere_overlap * apex_height
        return max(cone, sphere)

    def validate(self) -> 'SegmentationParams':
        """
        Checks every parameter against its domain.

        Returns:
            SegmentationParams: self, to allow chaining.

        Raises:
            InvalidParameterError: On the first parameter found outside its domain.
        """
        for name in ("point_spacing", "min_height", "min_crown_width", "epsilon", "search_radius"):
            _check_positive(name, getattr(self, name))

        # ratios and overlaps are usually in (0, 1] but only need to be positive
        for name in ("cone_crown_ratio", "cone_overlap", "sphere_crown_ratio", "sphere_overlap"):
            _check_positive(name, getattr(self, name))

        _check_count("gap_sensitivity", self.gap_sensitivity, minimum=1)
        _check_count("angular_bins", self.angular_bins, minimum=4)
        if self.max_iterations is not None:
            _check_count("max_iterations", self.max_iterations, minimum=1)

        for name in ("filter_profiles", "early_stop"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidParameterError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        return self

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'SegmentationParams':
        """Builds validated parameters from a mapping of field names to values."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown segmentation parameter(s): {', '.join(unknown)}")
        return cls(**values).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def _check_positive(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameterError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"{name} must be a positive finite number, got {value}")

def _check_count(name: str, value, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidParameterError(f"{name} must be at least {minimum}, got {value}")
