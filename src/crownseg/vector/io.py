# src/crownseg/vector/io.py

"""
This module reads and writes crown layers using GeoPandas.
"""

from pathlib import Path
from typing import Optional, Union
import logging

import geopandas as gpd

from crownseg.vector.layer import CrownLayer

log = logging.getLogger(__name__)

__all__ = [
    "load_crowns",
    "save_crowns"
]

def load_crowns(path: Union[str, Path], engine: str = "pyogrio", **kwargs) -> CrownLayer:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Vector file not found: {path}")

    gdf = gpd.read_file(path, engine=engine, **kwargs)
    return CrownLayer(gdf)

def save_crowns(layer: CrownLayer, path: Union[str, Path], driver: Optional[str] = None, engine: str = "pyogrio", **kwargs) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    layer.data.to_file(path, driver=driver, engine=engine, **kwargs)
    log.info(f"Saved {len(layer)} crowns to {path}")
    return path
