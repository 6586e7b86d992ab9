"""Great-circle helpers. Distances are miles throughout the core."""
import math

from ..configurations.config import Config
from ..models.school import Coordinate

CARDINALS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in miles."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return Config.EARTH_RADIUS_MILES * c


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from a to b in degrees, [0, 360)."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlon = math.radians(b.lon - a.lon)
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def cardinal(bearing_degrees: float) -> str:
    # halves round up: 22.5 -> NE
    return CARDINALS[math.floor(bearing_degrees / 45 + 0.5) % 8]


def miles_to_km(miles: float) -> float:
    return miles * Config.KM_PER_MILE
