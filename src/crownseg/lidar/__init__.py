# src/crownseg/lidar/__init__.py
#
# Copyright (c) The crownseg project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The lidar subpackage provides the point cloud data structure, the preprocessing of the
segmentation working set, and the radial-profile individual tree segmentation.
"""

# Data structure
from .layer import (
    PointCloud
)

# Parameters and errors
from .params import (
    SegmentationParams,
    InvalidParameterError,
    SegmentationError
)

# Working set
from .store import (
    PointStore
)
from .preprocess import (
    filter_surface_points,
    filter_height,
    smooth_heights,
    build_working_set
)

# Profiles and crown boundaries
from .profile import (
    Profile,
    sample_profiles
)
from .gap import (
    ExtremityPoint,
    find_extremity
)
from .boundary import (
    CrownBoundary,
    convex_hull,
    polygon_area,
    points_in_polygon,
    build_boundary
)

# Tree segmentation
from .segment_trees import (
    TreeRecord,
    SegmentationResult,
    segment_working_set,
    segment_trees
)

__all__ = [
    # Data structure
    "PointCloud",

    # Parameters and errors
    "SegmentationParams",
    "InvalidParameterError",
    "SegmentationError",

    # Working set
    "PointStore",
    "filter_surface_points",
    "filter_height",
    "smooth_heights",
    "build_working_set",

    # Profiles and crown boundaries
    "Profile",
    "sample_profiles",
    "ExtremityPoint",
    "find_extremity",
    "CrownBoundary",
    "convex_hull",
    "polygon_area",
    "points_in_polygon",
    "build_boundary",

    # Tree segmentation
    "TreeRecord",
    "SegmentationResult",
    "segment_working_set",
    "segment_trees",
]
