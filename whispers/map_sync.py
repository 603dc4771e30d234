"""Keeps a persistent map surface in line with the filtered whisper feed."""

from datetime import datetime
from enum import Enum
from html import escape
from typing import Callable, Iterable, Optional

from .config import CONFIG
from .geo import format_relative_time, utc_now
from .logger import Logger, component_logger
from .map_surface import MapSurface, MarkerIcon, Popup
from .models import Coordinate, Whisper

USER_ICON = MarkerIcon(color="#3b82f6", size=16, kind="user")
POPUP_ACTION_LABEL = "Read Full Whisper"


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    DISPOSED = "disposed"


def whisper_icon(whisper: Whisper) -> MarkerIcon:
    return MarkerIcon(color=whisper.emotion.color, emoji=whisper.emotion.emoji)


def excerpt(text: str, length: Optional[int] = None) -> str:
    if length is None:
        length = CONFIG["popup_excerpt_length"]
    if len(text) > length:
        return text[:length] + "..."
    return text


def popup_html(whisper: Whisper, now: datetime) -> str:
    """Popup body: emotion header, relative time and a quoted excerpt"""
    emotion = whisper.emotion
    return f"""
        <div style="max-width: 250px; padding: 10px; font-family: 'Inter', sans-serif;">
            <div style="display: flex; align-items: center; gap: 8px; margin-bottom: 10px;
                        border-bottom: 1px solid #eee; padding-bottom: 8px;">
                <span style="font-size: 1.2rem;">{emotion.emoji}</span>
                <div>
                    <div style="color: {emotion.color}; font-size: 0.9rem; font-weight: 600;
                                text-transform: lowercase;">{escape(emotion.label)}</div>
                    <div style="font-size: 0.75rem; color: #666666;">{format_relative_time(whisper.created_at, now)}</div>
                </div>
            </div>
            <div style="font-size: 0.9rem; line-height: 1.4; margin-bottom: 10px;
                        font-style: italic; font-family: 'Georgia', serif;">
                "{escape(excerpt(whisper.text))}"
            </div>
        </div>
    """


class MapSyncEngine:
    """Sole mutator of one map surface.

    mount() builds the surface once; reconcile() diffs the given whispers
    against the markers currently bound and only creates or removes what
    changed, never touching stable markers or the tile layer. The user's
    location has its own marker outside the whisper bindings.
    """

    def __init__(self, surface_factory: Callable[[Callable[[int], None]], MapSurface],
                 logger: Optional[Logger] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 zoom: Optional[int] = None):
        self.surface_factory = surface_factory
        self.logger = component_logger(logger, "map")
        self.clock = clock or utc_now
        self.zoom = zoom if zoom is not None else CONFIG["map_zoom"]

        self.state = EngineState.UNINITIALIZED
        self.surface: Optional[MapSurface] = None
        self.anchor: Optional[Coordinate] = None
        self.bindings: dict[int, object] = {}  # whisper id -> marker handle
        self.user_marker = None
        self.user_location: Optional[Coordinate] = None
        self._on_activated: Optional[Callable[[int], None]] = None

    def on_marker_activated(self, callback: Optional[Callable[[int], None]]):
        """Register the single handler for popup actions (replaces any previous one)"""
        self._on_activated = callback

    def _dispatch_activation(self, whisper_id: int):
        if self.state is not EngineState.ACTIVE:
            return
        if whisper_id not in self.bindings:
            self.logger.log("Ignoring activation for unbound whisper", {"whisper_id": whisper_id})
            return
        self.logger.log("Marker activated", {"whisper_id": whisper_id})
        if self._on_activated:
            self._on_activated(whisper_id)

    def mount(self, anchor: Coordinate):
        """Construct the surface on first mount; later mounts never recenter"""
        if self.state is not EngineState.UNINITIALIZED:
            return
        self.surface = self.surface_factory(self._dispatch_activation)
        self.surface.open(anchor, self.zoom)
        self.anchor = anchor
        self.state = EngineState.ACTIVE
        self.logger.log("Map mounted", {**anchor.to_dict(), "zoom": self.zoom})

    def reconcile(self, whispers: Optional[Iterable[Whisper]], user_location: Optional[Coordinate]):
        """Bring whisper markers and the user marker in line with the inputs"""
        if self.state is not EngineState.ACTIVE:
            return

        incoming: dict[int, Whisper] = {}
        for whisper in whispers or ():
            incoming.setdefault(whisper.id, whisper)

        stale = [wid for wid in self.bindings if wid not in incoming]
        for wid in stale:
            self.surface.remove_marker(self.bindings.pop(wid))

        added = 0
        now = self.clock()
        for wid, whisper in incoming.items():
            if wid in self.bindings:
                continue
            handle = self.surface.create_marker(whisper.position, whisper_icon(whisper), interactive=True)
            self.surface.set_popup(handle, Popup(
                html=popup_html(whisper, now),
                action_label=POPUP_ACTION_LABEL,
                action_value=wid,
            ))
            self.bindings[wid] = handle
            added += 1

        self._reconcile_user_marker(user_location)

        if stale or added:
            self.logger.log("Map reconciled", {
                "added": added,
                "removed": len(stale),
                "shown": len(self.bindings),
            })

    def _reconcile_user_marker(self, user_location: Optional[Coordinate]):
        if user_location == self.user_location:
            return
        if self.user_marker is not None:
            self.surface.remove_marker(self.user_marker)
            self.user_marker = None
        if user_location is not None:
            self.user_marker = self.surface.create_marker(user_location, USER_ICON, interactive=False)
        self.user_location = user_location

    def dispose(self):
        """Release every marker and the surface; further calls are no-ops"""
        if self.state is EngineState.DISPOSED:
            return
        if self.state is EngineState.ACTIVE:
            for handle in self.bindings.values():
                self.surface.remove_marker(handle)
            if self.user_marker is not None:
                self.surface.remove_marker(self.user_marker)
            self.surface.close()
            self.logger.log("Map disposed", {"released": len(self.bindings)})
        self.bindings.clear()
        self.user_marker = None
        self.user_location = None
        self.surface = None
        self.state = EngineState.DISPOSED

    @property
    def marker_count(self) -> int:
        """Whisper markers currently shown (the user marker is not counted)"""
        return len(self.bindings)
