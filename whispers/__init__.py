"""Whispers - anonymous, emotion-tagged notes from the people around you."""

from .config import CONFIG
from .models import Coordinate, Emotion, Whisper, WhisperDraft, WhisperDetail
from .errors import WhisperError, LocationUnavailable, NetworkError, NotFoundError, ValidationError
from .logger import Logger
from .gps import GeoLocator, TermuxLocationSource, FixedLocationSource
from .geo import (
    haversine_distance,
    distance_km,
    format_relative_time,
    format_distance,
    format_distance_from,
    format_full_date,
)
from .api import WhisperRepository
from .filters import FilterState, filter_whispers, emotion_counts
from .feed import FeedController, ViewMode, Loading, Ready, Error
from .map_surface import MapSurface, MarkerIcon, Popup, LeafletMapSurface
from .map_sync import MapSyncEngine, EngineState
from .app import WhispersApp

__all__ = [
    "CONFIG",
    "Coordinate",
    "Emotion",
    "Whisper",
    "WhisperDraft",
    "WhisperDetail",
    "WhisperError",
    "LocationUnavailable",
    "NetworkError",
    "NotFoundError",
    "ValidationError",
    "Logger",
    "GeoLocator",
    "TermuxLocationSource",
    "FixedLocationSource",
    "haversine_distance",
    "distance_km",
    "format_relative_time",
    "format_distance",
    "format_distance_from",
    "format_full_date",
    "WhisperRepository",
    "FilterState",
    "filter_whispers",
    "emotion_counts",
    "FeedController",
    "ViewMode",
    "Loading",
    "Ready",
    "Error",
    "MapSurface",
    "MarkerIcon",
    "Popup",
    "LeafletMapSurface",
    "MapSyncEngine",
    "EngineState",
    "WhispersApp",
]
