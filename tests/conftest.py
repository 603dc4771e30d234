"""Shared fakes for the Whispers test suite."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from whispers.errors import NetworkError
from whispers.map_surface import MapSurface
from whispers.models import Coordinate, Emotion, Whisper

NOW = datetime(2026, 10, 18, 19, 0, 0, tzinfo=timezone.utc)
NYC = Coordinate(40.7128, -74.0060)


def make_whisper(whisper_id: int, emotion: Emotion = Emotion.JOY, text: str = "hello",
                 lat: float = 40.7130, lon: float = -74.0050,
                 created_at: datetime = NOW) -> Whisper:
    return Whisper(
        id=whisper_id,
        text=text,
        emotion=emotion,
        position=Coordinate(lat, lon),
        created_at=created_at,
    )


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[dict] = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class FakeLocator:
    def __init__(self, location: Coordinate = NYC):
        self.location = location
        self.fallback = NYC
        self.calls = 0

    async def resolve(self) -> Coordinate:
        self.calls += 1
        return self.location


class FakeRepository:
    """Async repository whose feed responses are released by the test.

    `feeds` maps a center to the whispers returned for it; `gates` maps a
    center to an asyncio.Event the fetch waits on before answering.
    """

    def __init__(self, feeds=None, error=None, create_error=None, detail=None):
        self.feeds = feeds or {}
        self.error = error
        self.create_error = create_error
        self.detail = detail or {}
        self.gates: dict[Coordinate, asyncio.Event] = {}
        self.fetch_calls: list[dict] = []
        self.created: list = []

    async def fetch_nearby(self, center, emotion=None, radius_km=None):
        self.fetch_calls.append({"center": center, "emotion": emotion, "radius_km": radius_km})
        gate = self.gates.get(center)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.feeds.get(center, []))

    async def fetch_by_id(self, whisper_id):
        from whispers.errors import NotFoundError
        if whisper_id not in self.detail:
            raise NotFoundError(f"Whisper not found: {whisper_id}")
        return self.detail[whisper_id]

    async def create(self, draft):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(draft)


class RecordingSurface(MapSurface):
    """Map surface that records every call instead of drawing"""

    def __init__(self, on_activate):
        super().__init__(on_activate)
        self.calls: list[tuple] = []
        self.markers: dict[int, dict] = {}
        self.opened_with = None
        self.closed = False
        self._next = 0

    def open(self, anchor, zoom):
        self.calls.append(("open", anchor, zoom))
        self.opened_with = (anchor, zoom)

    def create_marker(self, position, icon, interactive=True):
        self._next += 1
        self.markers[self._next] = {"position": position, "icon": icon,
                                    "interactive": interactive, "popup": None}
        self.calls.append(("create", self._next))
        return self._next

    def remove_marker(self, handle):
        del self.markers[handle]
        self.calls.append(("remove", handle))

    def set_popup(self, handle, popup):
        self.markers[handle]["popup"] = popup
        self.calls.append(("popup", handle))

    def close(self):
        self.closed = True
        self.calls.append(("close",))

    def click(self, handle):
        """Simulate the user pressing a popup's action button"""
        self.on_activate(self.markers[handle]["popup"].action_value)

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def surfaces():
    """Factory collecting every surface an engine builds"""
    built = []

    def factory(on_activate):
        surface = RecordingSurface(on_activate)
        built.append(surface)
        return surface

    factory.built = built
    return factory


@pytest.fixture
def network_error():
    return NetworkError("Failed to fetch whispers: 503", status=503)
