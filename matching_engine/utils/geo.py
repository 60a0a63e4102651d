"""Great-circle distance helpers."""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterable, Protocol

import numpy as np


class DistanceUnit(str, Enum):
    MILES = "miles"
    KM = "km"


EARTH_RADIUS = {
    DistanceUnit.MILES: 3959.0,
    DistanceUnit.KM: 6371.0,
}


class HasCoordinates(Protocol):
    lat: float
    lng: float


def haversine_distance(
    origin: HasCoordinates,
    target: HasCoordinates,
    unit: DistanceUnit = DistanceUnit.MILES,
) -> float:
    """Return the great-circle distance between two points.

    NaN coordinates yield NaN; callers are expected to validate inputs.
    """
    lat1 = math.radians(origin.lat)
    lat2 = math.radians(target.lat)
    d_lat = math.radians(target.lat - origin.lat)
    d_lng = math.radians(target.lng - origin.lng)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    # rounding can push near-antipodal pairs just past 1
    if a > 1.0:
        a = 1.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS[DistanceUnit(unit)] * c


def distances_from(
    origin: HasCoordinates,
    targets: Iterable[HasCoordinates],
    unit: DistanceUnit = DistanceUnit.MILES,
) -> np.ndarray:
    """Vectorised haversine from one origin to many targets."""
    coordinates = np.array(
        [(target.lat, target.lng) for target in targets],
        dtype=float,
    ).reshape(-1, 2)
    if coordinates.shape[0] == 0:
        return np.empty(0, dtype=float)

    lat1 = np.radians(origin.lat)
    lat2 = np.radians(coordinates[:, 0])
    d_lat = lat2 - lat1
    d_lng = np.radians(coordinates[:, 1] - origin.lng)

    a = np.sin(d_lat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(d_lng / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS[DistanceUnit(unit)] * c
