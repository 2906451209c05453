#Marks geo as a package.
#Re-exports the distance math and the grid spatial index so other modules
#import from geo without knowing internal file names.
#No business logic.

from .distance import EARTH_RADIUS_KM, haversine_km, is_valid_coordinate
from .spatial_index import CellKey, GridSnapshot, SpatialIndex, cell_key, cells_within, covers_all_longitudes

__all__ = [
    "EARTH_RADIUS_KM",
    "haversine_km",
    "is_valid_coordinate",
    "CellKey",
    "GridSnapshot",
    "SpatialIndex",
    "cell_key",
    "cells_within",
    "covers_all_longitudes",
]
