"""
Coordinate utilities.

Great-circle distances and extents over WGS84 lat/lon arrays (degrees).
"""

import numpy as np
from numpy.typing import NDArray

EARTH_RADIUS_M = 6371000  # Earth's mean radius in meters


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate great-circle distance between two points.

    Works element-wise on numpy arrays as well as on scalars.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(np.subtract(lat2, lat1))
    dlon = np.radians(np.subtract(lon2, lon1))

    a = np.sin(dlat/2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))

    return EARTH_RADIUS_M * c


def path_distance(lat: NDArray[np.float64], lon: NDArray[np.float64]) -> float:
    """
    Total length of a polyline in meters.

    Legs touching a NaN coordinate are skipped.
    """
    if len(lat) < 2:
        return 0.0
    legs = haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])
    return float(np.nansum(legs))


def bounding_box(
    lat: NDArray[np.float64],
    lon: NDArray[np.float64],
) -> tuple[float, float, float, float]:
    """
    Extent of the valid points as (min_lon, min_lat, max_lon, max_lat).

    Returns zeros when no point is valid.
    """
    valid = ~(np.isnan(lat) | np.isnan(lon))
    if not np.any(valid):
        return (0.0, 0.0, 0.0, 0.0)
    return (
        float(np.min(lon[valid])),
        float(np.min(lat[valid])),
        float(np.max(lon[valid])),
        float(np.max(lat[valid])),
    )
