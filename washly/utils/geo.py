import json
import math
from typing import List, Optional, Tuple

EARTH_RADIUS_KM = 6371  # Earth radius in kilometers

# Kilometers per degree, used for the local planar projection of small polygons
KM_PER_DEGREE_LAT = 110.574
KM_PER_DEGREE_LNG = 111.320


def is_valid_coordinate(lat, lng) -> bool:
    """Check that latitude/longitude are finite numbers inside their ranges"""
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if not math.isfinite(lat) or not math.isfinite(lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometers"""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) *
         math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)

    c = 2 * math.asin(math.sqrt(min(1.0, a)))
    return EARTH_RADIUS_KM * c


def parse_geojson_polygon(polygon_json) -> Optional[List[Tuple[float, float]]]:
    """
    Parse a GeoJSON Polygon into an outer ring of (lat, lng) pairs.

    GeoJSON stores positions as [lng, lat]; the ring is returned swapped.
    Returns None when the value is not a usable polygon.
    """
    if not polygon_json:
        return None

    try:
        polygon = json.loads(polygon_json) if isinstance(polygon_json, str) else polygon_json
    except (TypeError, ValueError):
        return None

    if not isinstance(polygon, dict) or polygon.get('type') != 'Polygon':
        return None

    rings = polygon.get('coordinates')
    if not isinstance(rings, list) or not rings or not isinstance(rings[0], list):
        return None

    ring = []
    for position in rings[0]:
        if not isinstance(position, (list, tuple)) or len(position) < 2:
            return None
        lng, lat = position[0], position[1]
        if not is_valid_coordinate(lat, lng):
            return None
        ring.append((float(lat), float(lng)))

    # Drop the closing position when it repeats the first one
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]

    return ring if len(ring) >= 3 else None


def point_in_polygon(lat: float, lng: float, ring: List[Tuple[float, float]]) -> bool:
    """Ray casting test for a point against a ring of (lat, lng) pairs"""
    inside = False
    j = len(ring) - 1

    for i in range(len(ring)):
        lat_i, lng_i = ring[i]
        lat_j, lng_j = ring[j]

        if ((lng_i > lng) != (lng_j > lng)) and \
                (lat < (lat_j - lat_i) * (lng - lng_i) / (lng_j - lng_i) + lat_i):
            inside = not inside
        j = i

    return inside


def polygon_area_km2(ring: List[Tuple[float, float]]) -> float:
    """
    Approximate surface area of a small polygon in square kilometers.

    Projects onto a plane around the ring's mean latitude and applies the
    shoelace formula. Accurate enough to rank service zones by size.
    """
    if len(ring) < 3:
        return 0.0

    mean_lat = sum(lat for lat, _ in ring) / len(ring)
    lng_scale = KM_PER_DEGREE_LNG * math.cos(math.radians(mean_lat))

    points = [(lng * lng_scale, lat * KM_PER_DEGREE_LAT) for lat, lng in ring]

    twice_area = 0.0
    for i in range(len(points)):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % len(points)]
        twice_area += x1 * y2 - x2 * y1

    return abs(twice_area) / 2


def circle_area_km2(radius_km: float) -> float:
    return math.pi * radius_km ** 2
