"""REST client for the whispers data source."""

import asyncio
import json
from typing import Optional

import requests

from .config import CONFIG
from .errors import NetworkError, NotFoundError, ValidationError
from .logger import Logger, component_logger
from .models import Coordinate, Emotion, Whisper, WhisperDraft

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-cache",
}


class WhisperRepository:
    """Fetch and create whispers over HTTP.

    Every call is awaitable; the blocking requests call runs in a worker
    thread so the event loop stays responsive. No retries are made here,
    callers decide what to do with a failure.
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None, logger: Optional[Logger] = None):
        self.base_url = (base_url or CONFIG["api_base_url"]).rstrip("/")
        self.timeout = timeout if timeout is not None else CONFIG["request_timeout"]
        self.logger = component_logger(logger, "api")
        if session is None:
            session = requests.Session()
            session.headers.update(DEFAULT_HEADERS)
        self.session = session

    def feed_url(self) -> str:
        return f"{self.base_url}/whispers/feed"

    def whisper_url(self, whisper_id: Optional[int] = None) -> str:
        if whisper_id is None:
            return f"{self.base_url}/whispers"
        return f"{self.base_url}/whispers/{whisper_id}"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.log("HTTP transport error", {"method": method, "url": url, "error": str(e)})
            raise NetworkError(f"Could not reach the whispers service: {e}") from e

    # Feed

    def _fetch_nearby(self, center: Coordinate, emotion: Optional[Emotion],
                      radius_km: Optional[float]) -> list[Whisper]:
        params = {"lat": center.latitude, "lng": center.longitude}
        if emotion is not None:
            params["emotion"] = emotion.wire
        if radius_km is not None:
            params["radius"] = radius_km

        response = self._send("GET", self.feed_url(), params=params)
        if not response.ok:
            raise NetworkError(f"Failed to fetch whispers: {response.status_code}",
                               status=response.status_code)

        text = response.text
        if not text or not text.strip():
            return []
        try:
            records = json.loads(text)
            whispers = [Whisper.from_dict(r) for r in records]
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed feed response: {e}") from e

        self.logger.log("Fetched feed", {"count": len(whispers), **params})
        return whispers

    async def fetch_nearby(self, center: Coordinate, emotion: Optional[Emotion] = None,
                           radius_km: Optional[float] = None) -> list[Whisper]:
        """Whispers near `center`; an empty body is an empty feed, not an error"""
        return await asyncio.to_thread(self._fetch_nearby, center, emotion, radius_km)

    # Single whisper

    def _fetch_by_id(self, whisper_id: int) -> Whisper:
        if isinstance(whisper_id, bool) or not isinstance(whisper_id, int) or whisper_id <= 0:
            raise NotFoundError(f"Whisper not found: {whisper_id!r}")

        response = self._send("GET", self.whisper_url(whisper_id))
        if response.status_code in (400, 404):
            raise NotFoundError(f"Whisper not found: {whisper_id}")
        if not response.ok:
            raise NetworkError(f"Failed to fetch whisper {whisper_id}: {response.status_code}",
                               status=response.status_code)
        try:
            return Whisper.from_dict(response.json())
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise NotFoundError(f"Whisper not found: {whisper_id}") from e

    async def fetch_by_id(self, whisper_id: int) -> Whisper:
        return await asyncio.to_thread(self._fetch_by_id, whisper_id)

    # Create

    def _create(self, draft: WhisperDraft) -> None:
        payload = draft.to_payload()
        response = self._send("POST", self.whisper_url(), data=json.dumps(payload))
        if response.status_code in (400, 422):
            raise ValidationError(_error_message(response) or "Whisper was rejected")
        if not response.ok:
            raise NetworkError(f"Failed to create whisper: {response.status_code}",
                               status=response.status_code)
        self.logger.log("Created whisper", {"emotion": payload["emotion"]})

    async def create(self, draft: WhisperDraft) -> None:
        """Submit a draft. Nothing is returned; refetch to observe it."""
        await asyncio.to_thread(self._create, draft)

    def close(self):
        self.session.close()


def _error_message(response: requests.Response) -> Optional[str]:
    """Best-effort extraction of a server-provided error message"""
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text or None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key].strip():
                return body[key].strip()
    return None
