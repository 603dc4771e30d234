"""Configuration settings for Whispers."""

import os

CONFIG = {
    "api_base_url": os.environ.get("WHISPERS_API_URL", "http://localhost:8080/api"),
    "request_timeout": 10,  # seconds per HTTP request
    "gps_timeout": 15,  # seconds to wait for a single location fix
    "fallback_location": (40.7128, -74.0060),  # NYC city center, used when no fix is available
    # Result radius requested per presentation mode
    "feed_radius_km": {
        "list": 5,
        "map": 10,
    },
    "max_whisper_length": 300,  # characters
    "popup_excerpt_length": 100,  # characters of whisper text shown in map popups
    "map_zoom": 13,
    "tile_url": "https://{s}.basemaps.cartocdn.com/rastertiles/voyager/{z}/{x}/{y}{r}.png",
    "tile_attribution": '&copy; <a href="https://carto.com/attributions">CARTO</a>',
    "http_port": 8765,  # live map page
    "ws_port": 8766,  # live map marker channel
}
