"""Device location access with a deterministic fallback."""

import asyncio
import json
import subprocess
from typing import Optional

from .config import CONFIG
from .errors import LocationUnavailable
from .logger import Logger, component_logger
from .models import Coordinate


class TermuxLocationSource:
    """Single location fix via the Termux API"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else CONFIG["gps_timeout"]

    def get_location(self) -> Coordinate:
        """Blocking read of one fix; raises LocationUnavailable on any failure"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise LocationUnavailable("location request timed out") from None
        except FileNotFoundError:
            raise LocationUnavailable("no location capability on this device") from None

        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else "unknown error"
            raise LocationUnavailable(f"location denied: {error_msg}")

        if not result.stdout or not result.stdout.strip():
            raise LocationUnavailable("empty location response")

        try:
            data = json.loads(result.stdout)
            return Coordinate(latitude=float(data["latitude"]), longitude=float(data["longitude"]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise LocationUnavailable(f"malformed location response: {e}") from None


class FixedLocationSource:
    """Always reports the same coordinate (for --lat/--lon)"""

    def __init__(self, coordinate: Coordinate):
        self.coordinate = coordinate

    def get_location(self) -> Coordinate:
        return self.coordinate


class GeoLocator:
    """Resolves the current coordinate once per call, never failing.

    Any failure of the underlying source (denial, timeout, missing
    capability) yields the configured fallback coordinate instead.
    """

    def __init__(self, source=None, fallback: Optional[Coordinate] = None,
                 logger: Optional[Logger] = None):
        self.source = source if source is not None else TermuxLocationSource()
        self.fallback = fallback or Coordinate.from_tuple(CONFIG["fallback_location"])
        self.logger = component_logger(logger, "location")
        self.last_location: Optional[Coordinate] = None
        self.used_fallback = False

    async def resolve(self) -> Coordinate:
        try:
            location = await asyncio.to_thread(self.source.get_location)
        except LocationUnavailable as e:
            self.logger.log("Location unavailable, using fallback", {
                "reason": str(e),
                "fallback": self.fallback.to_dict(),
            })
            location = self.fallback
            self.used_fallback = True
        else:
            self.logger.log("Location resolved", location.to_dict())
            self.used_fallback = False
        self.last_location = location
        return location

    @property
    def last_status(self) -> str:
        if self.last_location is None:
            return "Location: not resolved"
        if self.used_fallback:
            return "Location: fallback"
        return "Location OK"
