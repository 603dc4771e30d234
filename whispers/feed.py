"""Feed controller: location, fetching, filtering and submission."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .api import WhisperRepository
from .config import CONFIG
from .errors import NetworkError, ValidationError, WhisperError
from .filters import FilterState, emotion_counts
from .geo import (
    distance_km,
    format_distance_from,
    format_full_date,
    format_relative_time,
    utc_now,
)
from .gps import GeoLocator
from .logger import Logger, component_logger
from .models import Coordinate, Emotion, Whisper, WhisperDetail, WhisperDraft


class ViewMode(Enum):
    LIST = "list"
    MAP = "map"


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Ready:
    whispers: tuple[Whisper, ...]


@dataclass(frozen=True)
class Error:
    reason: str
    retryable: bool = True


def validate_draft(draft: WhisperDraft, max_length: Optional[int] = None):
    """Local checks run before anything is sent; raises ValidationError"""
    if max_length is None:
        max_length = CONFIG["max_whisper_length"]
    if not draft.text or not draft.text.strip():
        raise ValidationError("Please write something...")
    if draft.position is None:
        raise ValidationError("Location not available. Please allow location access.")
    if len(draft.text) > max_length:
        raise ValidationError(f"Message too long. Maximum {max_length} characters.")


class FeedController:
    """Keeps the current, filtered whisper feed for every presentation.

    State moves between Loading, Ready and Error. Each fetch takes a
    request token; a response whose token is no longer the latest is
    dropped, so a slow superseded fetch never overwrites a newer result.
    The list and the map both read `filtered_whispers`.
    """

    def __init__(self, locator: GeoLocator, repository: WhisperRepository,
                 filter_state: Optional[FilterState] = None,
                 logger: Optional[Logger] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.locator = locator
        self.repository = repository
        self.filter_state = filter_state or FilterState()
        self.logger = component_logger(logger, "feed")
        self.clock = clock or utc_now

        self.state = Loading()
        self.location: Optional[Coordinate] = None
        self.view_mode = ViewMode.LIST
        self._request_token = 0

        # Compose surface
        self.compose_open = False
        self.draft: Optional[WhisperDraft] = None
        self.compose_error: Optional[str] = None
        self.submitting = False

        self._subscribers: list[Callable[["FeedController"], None]] = []
        self.filter_state.subscribe(self._on_filter_changed)

    # Observation

    def subscribe(self, callback: Callable[["FeedController"], None]) -> Callable[[], None]:
        """Call `callback(controller)` after every state or filter change"""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._subscribers):
            callback(self)

    def _set_state(self, state):
        self.state = state
        self._notify()

    def _on_filter_changed(self, emotion: Optional[Emotion]):
        self.logger.log("Filter changed", {"emotion": emotion.name if emotion else None})
        self._notify()

    # Derived values

    @property
    def whispers(self) -> list[Whisper]:
        if isinstance(self.state, Ready):
            return list(self.state.whispers)
        return []

    @property
    def filtered_whispers(self) -> list[Whisper]:
        return self.filter_state.apply(self.whispers)

    @property
    def counts(self) -> dict[Emotion, int]:
        return emotion_counts(self.whispers)

    @property
    def radius_km(self) -> float:
        return CONFIG["feed_radius_km"][self.view_mode.value]

    # Fetching

    async def start(self):
        """Resolve the location, then fetch the feed around it"""
        self._set_state(Loading())
        self.location = await self.locator.resolve()
        await self.refetch()

    async def refetch(self, center: Optional[Coordinate] = None):
        """Fetch the feed again, optionally around a new center"""
        if center is not None:
            self.location = center
        if self.location is None:
            await self.start()
            return

        self._request_token += 1
        token = self._request_token
        center = self.location
        self._set_state(Loading())
        self.logger.log("Fetching feed", {
            "request": token,
            "mode": self.view_mode.value,
            **center.to_dict(),
        })

        try:
            whispers = await self.repository.fetch_nearby(center, radius_km=self.radius_km)
        except WhisperError as e:
            if token != self._request_token:
                self.logger.log("Discarding superseded fetch error", {"request": token})
                return
            self.logger.log("Feed fetch failed", {"request": token, "error": str(e)})
            self._set_state(Error(reason=str(e), retryable=isinstance(e, NetworkError)))
            return

        if token != self._request_token:
            self.logger.log("Discarding superseded fetch", {"request": token, "latest": self._request_token})
            return
        self._set_state(Ready(whispers=tuple(whispers)))

    async def set_view_mode(self, mode: ViewMode):
        """Switch list/map; modes use different radii so the feed is refetched"""
        if mode == self.view_mode:
            return
        self.view_mode = mode
        self.logger.log("View mode changed", {"mode": mode.value})
        await self.refetch()

    def set_filter(self, emotion: Optional[Emotion]):
        self.filter_state.set(emotion)

    def toggle_filter(self, emotion: Emotion):
        self.filter_state.toggle(emotion)

    # Compose and submit

    def open_compose(self):
        self.compose_open = True
        self.compose_error = None
        self._notify()

    def close_compose(self) -> bool:
        """Close and reset the compose surface; refused mid-submission"""
        if self.submitting:
            return False
        self.compose_open = False
        self.draft = None
        self.compose_error = None
        self._notify()
        return True

    async def submit_whisper(self, draft: WhisperDraft) -> bool:
        """Validate and send a draft; True when the server accepted it.

        On failure the draft is kept and `compose_error` holds the message.
        """
        if draft.position is None and self.location is not None:
            draft = replace(draft, position=self.location)
        self.draft = draft

        try:
            validate_draft(draft)
        except ValidationError as e:
            self.compose_error = str(e)
            self._notify()
            return False

        self.submitting = True
        self.compose_error = None
        self._notify()
        try:
            await self.repository.create(draft)
        except WhisperError as e:
            self.logger.log("Submit failed", {"error": str(e)})
            self.submitting = False
            self.compose_error = str(e)
            self._notify()
            return False
        except BaseException:
            self.submitting = False
            raise
        self.submitting = False

        self.logger.log("Whisper submitted", {"emotion": draft.emotion.name})
        self.compose_open = False
        self.draft = None
        self.compose_error = None
        await self.refetch()
        return True

    # Detail

    async def load_detail(self, whisper_id: int) -> WhisperDetail:
        """Fetch one whisper with its derived display values.

        Raises NotFoundError or NetworkError; the caller shows the error state.
        """
        whisper = await self.repository.fetch_by_id(whisper_id)
        if self.location is not None:
            distance_text = format_distance_from(distance_km(self.location, whisper.position))
        else:
            distance_text = "Location unknown"
        return WhisperDetail(
            whisper=whisper,
            time_ago=format_relative_time(whisper.created_at, self.clock()),
            full_date=format_full_date(whisper.created_at),
            distance_text=distance_text,
        )
