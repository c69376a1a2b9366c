# src/crownseg/config.py

"""
This module reads and writes segmentation parameters as YAML files.
"""

from pathlib import Path
from typing import Union
import logging

import yaml

from crownseg.lidar.params import SegmentationParams, InvalidParameterError

log = logging.getLogger(__name__)

__all__ = [
    "load_params",
    "save_params"
]

def load_params(path: Union[str, Path]) -> SegmentationParams:
    """
    Loads segmentation parameters from a YAML mapping of field names to values.

    Missing fields keep their defaults. An empty file yields the default parameters.

    Args:
        path (Union[str, Path]): YAML file.

    Returns:
        SegmentationParams: Validated parameters.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidParameterError: If the file is not a mapping, names an unknown field, or holds an invalid value.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as file:
        values = yaml.safe_load(file)

    if values is None:
        values = {}
    if not isinstance(values, dict):
        raise InvalidParameterError(f"Expected a mapping of parameters in {path}, got {type(values).__name__}")

    log.debug(f"Loaded {len(values)} parameter(s) from {path}")
    return SegmentationParams.from_dict(values)

def save_params(params: SegmentationParams, path: Union[str, Path]) -> Path:
    """Writes parameters to a YAML file and returns its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as file:
        yaml.safe_dump(params.to_dict(), file, sort_keys=False)
    return path
