# src/crownseg/vector/__init__.py
#
# Copyright (c) The crownseg project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The vector subpackage exports segmented tree crowns as polygon layers.
"""

from .layer import (
    CrownLayer,
    REQUIRED_COLUMNS
)

from .io import (
    load_crowns,
    save_crowns
)

__all__ = [
    "CrownLayer",
    "REQUIRED_COLUMNS",
    "load_crowns",
    "save_crowns"
]
