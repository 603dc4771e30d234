"""Main Whispers application."""

import asyncio
from typing import Callable, Optional

from .api import WhisperRepository
from .errors import NotFoundError, WhisperError
from .feed import Error, FeedController, Loading, Ready, ViewMode
from .filters import FilterState
from .geo import distance_km, format_distance, format_relative_time
from .gps import FixedLocationSource, GeoLocator, TermuxLocationSource
from .logger import Logger
from .map_surface import LeafletMapSurface, MapSurface
from .map_sync import MapSyncEngine
from .models import Coordinate, Emotion, WhisperDraft


class WhispersApp:
    """Wires location, repository, feed and map together for the CLI"""

    def __init__(self, log_path: Optional[str] = None,
                 api_url: Optional[str] = None,
                 start_location: Optional[tuple[float, float]] = None,
                 html_output: Optional[str] = None,
                 open_browser: bool = True,
                 verbose: bool = False,
                 surface_factory: Optional[Callable[[Callable[[int], None]], MapSurface]] = None):
        self.logger = Logger(log_path, echo=verbose)
        if start_location:
            source = FixedLocationSource(Coordinate.from_tuple(start_location))
        else:
            source = TermuxLocationSource()
        self.locator = GeoLocator(source, logger=self.logger)
        self.repository = WhisperRepository(api_url, logger=self.logger)
        self.filter_state = FilterState()
        self.feed = FeedController(self.locator, self.repository, self.filter_state,
                                   logger=self.logger)
        self.html_output = html_output
        self.open_browser = open_browser
        self.surface_factory = surface_factory
        self.map_engine: Optional[MapSyncEngine] = None
        self._detail_tasks: set[asyncio.Task] = set()

    # Presentation

    def print_feed(self):
        """List view of the filtered feed"""
        feed = self.feed
        if isinstance(feed.state, Error):
            print(f"Could not load whispers: {feed.state.reason}")
            return
        if not isinstance(feed.state, Ready):
            print("Loading whispers...")
            return

        selected = self.filter_state.get()
        shown = feed.filtered_whispers
        header = f"{len(shown)} nearby"
        if selected:
            header += f" ({selected.label})"
        print(header)

        if not feed.whispers:
            print("It's quiet around here... Be the first to share your thoughts with this place.")
            return

        counts = feed.counts
        chips = [f"All ({len(feed.whispers)})"]
        chips += [f"{e.emoji} {e.label} ({counts[e]})" for e in Emotion]
        print("  ".join(chips))
        print()

        if not shown:
            print(f"No {selected.label.lower()} whispers nearby")
            return

        now = feed.clock()
        for whisper in shown:
            parts = [f"#{whisper.id}", f"{whisper.emotion.emoji} {whisper.emotion.label.lower()}",
                     format_relative_time(whisper.created_at, now)]
            if feed.location:
                parts.append(format_distance(distance_km(feed.location, whisper.position)))
            print(" · ".join(parts))
            print(f'  "{whisper.text}"')

    async def show_detail(self, whisper_id: int) -> bool:
        if self.feed.location is None:
            self.feed.location = await self.locator.resolve()
        try:
            detail = await self.feed.load_detail(whisper_id)
        except NotFoundError:
            print("Whisper not found")
            return False
        except WhisperError as e:
            print(f"Could not load whisper: {e}")
            return False

        whisper = detail.whisper
        print(f"{whisper.emotion.emoji} {whisper.emotion.label}  ·  {detail.time_ago}")
        print(f'"{whisper.text}"')
        print(f"Posted {detail.full_date}")
        print(f"{detail.distance_text}")
        return True

    # Map

    def _sync_map(self, feed: FeedController):
        # Loading keeps the markers already shown; Ready and Error both
        # bring the map in line with filtered_whispers.
        if self.map_engine is None or isinstance(feed.state, Loading):
            return
        self.map_engine.reconcile(feed.filtered_whispers, feed.location)

    def _on_marker_activated(self, whisper_id: int):
        task = asyncio.get_running_loop().create_task(self.show_detail(whisper_id))
        self._detail_tasks.add(task)
        task.add_done_callback(self._detail_tasks.discard)

    async def mount_map(self):
        loop = asyncio.get_running_loop()
        anchor = self.feed.location or self.locator.fallback

        surface_factory = self.surface_factory
        if surface_factory is None:
            def surface_factory(on_activate):
                return LeafletMapSurface(on_activate, loop=loop, open_browser=self.open_browser)

        self.map_engine = MapSyncEngine(surface_factory, logger=self.logger, clock=self.feed.clock)
        self.map_engine.on_marker_activated(self._on_marker_activated)
        # Opening a surface may wait for its servers to come up
        await asyncio.to_thread(self.map_engine.mount, anchor)
        self.feed.subscribe(self._sync_map)
        self._sync_map(self.feed)

    # Entry points

    async def run_feed(self, emotion: Optional[Emotion] = None, live_map: bool = False) -> int:
        """Load the feed, print it, and optionally export or serve a map"""
        self.feed.set_filter(emotion)
        if live_map:
            self.feed.view_mode = ViewMode.MAP
        await self.feed.start()
        self.print_feed()

        if isinstance(self.feed.state, Error):
            return 1

        if self.html_output:
            from .export import save_feed_map
            save_feed_map(
                self.html_output,
                self.feed.filtered_whispers,
                self.feed.location,
                selected=self.filter_state.get(),
                now=self.feed.clock(),
                feed=self.feed.whispers,
            )
            print(f"Map saved to: {self.html_output}")

        if live_map:
            await self.mount_map()
            print("Click a marker's popup button to read the full whisper. Ctrl+C to stop.")
            await asyncio.Event().wait()

        return 0

    async def post(self, text: str, emotion: Emotion) -> int:
        self.feed.location = await self.locator.resolve()
        self.feed.open_compose()
        accepted = await self.feed.submit_whisper(WhisperDraft(text=text, emotion=emotion))
        if not accepted:
            print(f"Could not share whisper: {self.feed.compose_error}")
            return 1
        print("Whisper shared.")
        self.print_feed()
        return 0

    def close(self):
        if self.map_engine is not None:
            self.map_engine.dispose()
        self.repository.close()
        self.logger.close()
