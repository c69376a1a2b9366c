# src/crownseg/vector/layer.py

"""
This module defines the vector layer of segmented tree crowns, a GeoDataFrame of crown polygons
keyed by tree ID.
"""

from typing import Optional, Union
import logging

import geopandas as gpd
from pyproj import CRS
from shapely.geometry import Polygon

from crownseg.lidar.segment_trees import SegmentationResult

log = logging.getLogger(__name__)

__all__ = [
    "CrownLayer",
    "REQUIRED_COLUMNS"
]

REQUIRED_COLUMNS = ("tree_id", "height", "area", "n_points")

class CrownLayer:
    """
    Tree crown polygons produced by a segmentation run.

    Each row holds one accepted tree: its ID (matching the per-point labels), the smoothed
    height of its apex, the area of its boundary and the number of points labelled with it.

    Args:
        data (gpd.GeoDataFrame): Crown polygons with the columns listed in REQUIRED_COLUMNS.
    """
    def __init__(self, data: gpd.GeoDataFrame):
        self.data = data

    @property
    def data(self) -> gpd.GeoDataFrame:
        return self._data

    @data.setter
    def data(self, value: gpd.GeoDataFrame):
        if not isinstance(value, gpd.GeoDataFrame):
            raise TypeError(f"Expected GeoDataFrame, got {type(value)}")
        missing = [c for c in REQUIRED_COLUMNS if c not in value.columns]
        if missing:
            raise ValueError(f"Crown layer is missing column(s): {', '.join(missing)}")
        self._data = value

    @property
    def crs(self):
        return self._data.crs

    @property
    def tree_ids(self):
        return self._data["tree_id"].tolist()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self):
        return f"<CrownLayer crowns={len(self._data)} crs={self.crs}>"

    @classmethod
    def from_result(
        cls,
        result: SegmentationResult,
        crs: Optional[Union[str, CRS]] = None
        ) -> 'CrownLayer':
        """
        Builds the crown layer of a segmentation result.

        Args:
            result (SegmentationResult): Output of `segment_trees`.
            crs (Optional[Union[str, CRS]]): Coordinate reference system of the point cloud, if known.

        Returns:
            CrownLayer: One polygon per accepted tree, in order of acceptance.
        """
        records = [
            {
                "tree_id": tree.tree_id,
                "height": tree.apex_z,
                "area": tree.area,
                "n_points": tree.n_points,
                "geometry": Polygon(zip(tree.hull_x, tree.hull_y))
            }
            for tree in result.trees
        ]
        if not records:
            gdf = gpd.GeoDataFrame({c: [] for c in REQUIRED_COLUMNS}, geometry=gpd.GeoSeries([], crs=crs))
        else:
            gdf = gpd.GeoDataFrame(records, geometry="geometry", crs=crs)
        log.debug(f"Built crown layer with {len(gdf)} polygons")
        return cls(gdf)
