"""Distance and time formatting helpers."""

import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from .models import Coordinate

EARTH_RADIUS_KM = 6371

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
_ONE_MS = timedelta(milliseconds=1)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in kilometers using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in kilometers"""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def format_relative_time(t: datetime, now: datetime) -> str:
    """Render elapsed time as 'Just now', 'Nm ago', 'Nh ago' or 'Nd ago'.

    Buckets are floor divisions of elapsed milliseconds. A timestamp in the
    future (server clock ahead of ours) reads as 'Just now'.
    """
    elapsed_ms = (now - t) // _ONE_MS

    if elapsed_ms < MINUTE_MS:
        return "Just now"
    if elapsed_ms < HOUR_MS:
        return f"{elapsed_ms // MINUTE_MS}m ago"
    if elapsed_ms < DAY_MS:
        return f"{elapsed_ms // HOUR_MS}h ago"
    return f"{elapsed_ms // DAY_MS}d ago"


def format_distance(km: float) -> str:
    if km < 0.1:
        return "Right here"
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"


def format_distance_from(km: float) -> str:
    """Distance phrase for the detail view, relative to the reader"""
    text = format_distance(km)
    if text == "Right here":
        return text
    return f"{text} from you"


def format_full_date(t: datetime, tz: Optional[tzinfo] = None) -> str:
    """e.g. 'Sunday, October 18, 2026 at 07:05 PM'"""
    local = t.astimezone(tz) if tz else t
    return local.strftime("%A, %B %d, %Y at %I:%M %p")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
