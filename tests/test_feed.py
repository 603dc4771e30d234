"""Tests for the feed controller."""

import asyncio
from datetime import timedelta

import pytest

from whispers.config import CONFIG
from whispers.errors import NetworkError, ValidationError
from whispers.feed import Error, FeedController, Loading, Ready, ViewMode, validate_draft
from whispers.filters import FilterState
from whispers.models import Coordinate, Emotion, WhisperDraft

from conftest import NOW, NYC, FakeLocator, FakeRepository, make_whisper

A = Coordinate(10.0, 10.0)
B = Coordinate(20.0, 20.0)

FEED = [
    make_whisper(1, Emotion.JOY),
    make_whisper(2, Emotion.PEACE),
    make_whisper(3, Emotion.JOY),
]


def controller(repository, location=NYC, filter_state=None):
    return FeedController(FakeLocator(location), repository, filter_state, clock=lambda: NOW)


def test_starts_loading_then_ready():
    repository = FakeRepository(feeds={NYC: FEED})
    feed = controller(repository)
    assert isinstance(feed.state, Loading)

    seen = []
    feed.subscribe(lambda c: seen.append(type(c.state)))
    asyncio.run(feed.start())

    assert feed.state == Ready(tuple(FEED))
    assert seen[0] is Loading and seen[-1] is Ready
    assert feed.location == NYC
    assert repository.fetch_calls[0]["center"] == NYC


def test_empty_feed_is_ready_not_error():
    feed = controller(FakeRepository(feeds={NYC: []}))
    asyncio.run(feed.start())
    assert feed.state == Ready(())
    assert feed.filtered_whispers == []


def test_network_failure_becomes_retryable_error(network_error):
    repository = FakeRepository(error=network_error)
    feed = controller(repository)
    asyncio.run(feed.start())
    assert isinstance(feed.state, Error)
    assert feed.state.retryable
    assert "503" in feed.state.reason

    repository.error = None
    repository.feeds = {NYC: FEED}
    asyncio.run(feed.refetch())
    assert isinstance(feed.state, Ready)


def test_filtered_whispers_follow_filter_state():
    filter_state = FilterState()
    feed = controller(FakeRepository(feeds={NYC: FEED}), filter_state=filter_state)
    asyncio.run(feed.start())

    assert feed.filtered_whispers == FEED
    feed.set_filter(Emotion.JOY)
    assert [w.id for w in feed.filtered_whispers] == [1, 3]
    filter_state.set(Emotion.ANXIETY)
    assert feed.filtered_whispers == []
    feed.toggle_filter(Emotion.ANXIETY)
    assert feed.filtered_whispers == FEED


def test_filter_change_notifies_without_refetching():
    repository = FakeRepository(feeds={NYC: FEED})
    feed = controller(repository)
    asyncio.run(feed.start())
    calls_before = len(repository.fetch_calls)

    notified = []
    feed.subscribe(lambda c: notified.append([w.id for w in c.filtered_whispers]))
    feed.set_filter(Emotion.PEACE)

    assert notified == [[2]]
    assert len(repository.fetch_calls) == calls_before


def test_counts_come_from_unfiltered_feed():
    feed = controller(FakeRepository(feeds={NYC: FEED}))
    asyncio.run(feed.start())
    feed.set_filter(Emotion.PEACE)
    assert feed.counts[Emotion.JOY] == 2
    assert feed.counts[Emotion.PEACE] == 1


def test_view_mode_switch_refetches_with_mode_radius():
    repository = FakeRepository(feeds={NYC: FEED})
    feed = controller(repository)

    async def scenario():
        await feed.start()
        await feed.set_view_mode(ViewMode.MAP)
        await feed.set_view_mode(ViewMode.MAP)
        await feed.set_view_mode(ViewMode.LIST)

    asyncio.run(scenario())
    radii = [call["radius_km"] for call in repository.fetch_calls]
    assert radii == [
        CONFIG["feed_radius_km"]["list"],
        CONFIG["feed_radius_km"]["map"],
        CONFIG["feed_radius_km"]["list"],
    ]


def test_superseded_fetch_is_discarded():
    repository = FakeRepository(feeds={A: [make_whisper(1)], B: [make_whisper(2)]})
    feed = controller(repository, location=A)

    async def scenario():
        repository.gates[A] = asyncio.Event()
        repository.gates[B] = asyncio.Event()
        first = asyncio.create_task(feed.refetch(A))
        await asyncio.sleep(0)
        second = asyncio.create_task(feed.refetch(B))
        await asyncio.sleep(0)

        repository.gates[B].set()
        await second
        assert [w.id for w in feed.whispers] == [2]

        # A's response arrives late
        repository.gates[A].set()
        await first

    asyncio.run(scenario())
    assert [w.id for w in feed.whispers] == [2]
    assert feed.location == B


def test_superseded_failure_does_not_clobber_newer_result(network_error):
    class SplitRepository(FakeRepository):
        async def fetch_nearby(self, center, emotion=None, radius_km=None):
            if center == A:
                await self.gates[A].wait()
                raise network_error
            return [make_whisper(5)]

    repository = SplitRepository()
    feed = controller(repository, location=A)

    async def scenario():
        repository.gates[A] = asyncio.Event()
        first = asyncio.create_task(feed.refetch(A))
        await asyncio.sleep(0)
        await feed.refetch(B)
        repository.gates[A].set()
        await first

    asyncio.run(scenario())
    assert isinstance(feed.state, Ready)
    assert [w.id for w in feed.whispers] == [5]


def test_submit_success_closes_compose_and_refetches():
    repository = FakeRepository(feeds={NYC: FEED})
    feed = controller(repository)

    async def scenario():
        await feed.start()
        feed.open_compose()
        return await feed.submit_whisper(WhisperDraft(text="new one", emotion=Emotion.PEACE))

    assert asyncio.run(scenario()) is True
    assert feed.compose_open is False
    assert feed.draft is None
    assert feed.compose_error is None
    assert repository.created[0].position == NYC
    assert len(repository.fetch_calls) == 2


@pytest.mark.parametrize("text, message", [
    ("", "Please write something..."),
    ("   ", "Please write something..."),
    ("x" * 301, "Message too long. Maximum 300 characters."),
])
def test_submit_local_validation(text, message):
    repository = FakeRepository(feeds={NYC: FEED})
    feed = controller(repository)

    async def scenario():
        await feed.start()
        feed.open_compose()
        return await feed.submit_whisper(WhisperDraft(text=text, emotion=Emotion.JOY))

    assert asyncio.run(scenario()) is False
    assert feed.compose_error == message
    assert feed.compose_open is True
    assert feed.draft.text == text
    assert repository.created == []


def test_submit_without_location_is_rejected_locally():
    repository = FakeRepository()
    feed = controller(repository)
    ok = asyncio.run(feed.submit_whisper(WhisperDraft(text="hi", emotion=Emotion.JOY)))
    assert ok is False
    assert feed.compose_error == "Location not available. Please allow location access."
    assert repository.created == []


def test_submit_failure_keeps_draft_and_surfaces_message():
    repository = FakeRepository(feeds={NYC: FEED}, create_error=ValidationError("Text is not allowed"))
    feed = controller(repository)

    async def scenario():
        await feed.start()
        feed.open_compose()
        return await feed.submit_whisper(WhisperDraft(text="keep me", emotion=Emotion.JOY))

    assert asyncio.run(scenario()) is False
    assert feed.compose_error == "Text is not allowed"
    assert feed.draft.text == "keep me"
    assert feed.compose_open is True
    assert feed.submitting is False
    assert len(repository.fetch_calls) == 1


def test_submit_network_failure_surfaces_message():
    repository = FakeRepository(feeds={NYC: FEED}, create_error=NetworkError("Failed to create whisper: 500"))
    feed = controller(repository)

    async def scenario():
        await feed.start()
        return await feed.submit_whisper(WhisperDraft(text="hi", emotion=Emotion.JOY))

    assert asyncio.run(scenario()) is False
    assert feed.compose_error == "Failed to create whisper: 500"


def test_close_compose_refused_while_submitting():
    feed = controller(FakeRepository())
    feed.open_compose()
    feed.submitting = True
    assert feed.close_compose() is False
    assert feed.compose_open is True
    feed.submitting = False
    assert feed.close_compose() is True
    assert feed.compose_open is False


def test_validate_draft_accepts_max_length():
    validate_draft(WhisperDraft(text="x" * 300, emotion=Emotion.JOY, position=NYC))


def test_load_detail_derives_display_values():
    whisper = make_whisper(9, Emotion.MELANCHOLY, lat=NYC.latitude, lon=NYC.longitude + 0.01,
                           created_at=NOW - timedelta(hours=3))
    feed = controller(FakeRepository(feeds={NYC: []}, detail={9: whisper}))

    async def scenario():
        await feed.start()
        return await feed.load_detail(9)

    detail = asyncio.run(scenario())
    assert detail.whisper == whisper
    assert detail.time_ago == "3h ago"
    assert detail.distance_text == "843m from you"
    assert detail.full_date.startswith("Sunday, October 18, 2026")


def test_load_detail_without_location():
    whisper = make_whisper(9)
    feed = controller(FakeRepository(detail={9: whisper}))
    detail = asyncio.run(feed.load_detail(9))
    assert detail.distance_text == "Location unknown"


def test_validate_draft_honours_explicit_zero_limit():
    with pytest.raises(ValidationError) as exc:
        validate_draft(WhisperDraft(text="x", emotion=Emotion.JOY, position=NYC), max_length=0)
    assert str(exc.value) == "Message too long. Maximum 0 characters."


def test_filtered_whispers_go_through_filter_state_apply():
    class CountingFilter(FilterState):
        applied = 0

        def apply(self, whispers):
            self.applied += 1
            return super().apply(whispers)

    filter_state = CountingFilter(Emotion.PEACE)
    feed = controller(FakeRepository(feeds={NYC: FEED}), filter_state=filter_state)
    asyncio.run(feed.start())
    assert [w.id for w in feed.filtered_whispers] == [2]
    assert filter_state.applied == 1
