from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

"""
Distance helpers.

Listings are ranked by great-circle distance from the viewer. We keep this as plain
math (no GIS dependency) and expose the display formatting next to it so the API,
the CLI and the listing pipeline render distances identically.

Quirk kept on purpose: a coordinate of exactly 0 is treated as missing, so a listing
at the equator/prime meridian reports an unknown distance.
"""

EARTH_RADIUS_KM = 6371
UNKNOWN_DISTANCE_KM = 9999


def calculate_distance(
    lat1: float | None,
    lng1: float | None,
    lat2: float | None,
    lng2: float | None,
) -> float:
    """Haversine distance in kilometers, or `UNKNOWN_DISTANCE_KM` if any input is falsy."""
    if not lat1 or not lng1 or not lat2 or not lng2:
        return UNKNOWN_DISTANCE_KM

    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)
    h = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def format_distance(distance_km: float) -> str:
    """Render a distance for listing cards ("Distance unknown", "350 m away", "2.4 km away")."""
    if distance_km == UNKNOWN_DISTANCE_KM:
        return "Distance unknown"
    if distance_km < 1:
        return f"{_round_half_up(distance_km * 1000)} m away"
    return f"{distance_km:.1f} km away"


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; cards show 500.5 m as 501 m.
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
