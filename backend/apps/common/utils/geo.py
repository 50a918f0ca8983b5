from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6371000


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """两点间球面距离（米）"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(lat: float, lng: float, target_lat: float, target_lng: float, radius_meters: float) -> bool:
    return haversine_meters(lat, lng, target_lat, target_lng) <= radius_meters
