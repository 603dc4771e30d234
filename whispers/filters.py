"""Shared emotion filter and the predicate every view applies."""

from typing import Callable, Iterable, Optional

from .models import Emotion, Whisper


def filter_whispers(whispers: Iterable[Whisper], emotion: Optional[Emotion]) -> list[Whisper]:
    """Whispers matching `emotion`, or all of them when no emotion is selected"""
    if emotion is None:
        return list(whispers)
    return [w for w in whispers if w.emotion == emotion]


def emotion_counts(whispers: Iterable[Whisper]) -> dict[Emotion, int]:
    """Per-emotion totals for filter chips, every emotion present"""
    counts = {emotion: 0 for emotion in Emotion}
    for w in whispers:
        counts[w.emotion] += 1
    return counts


class FilterState:
    """Observable cell holding the active emotion filter (None = show all).

    Subscribers are called synchronously, in registration order, after the
    new value is stored, so they all see the same value within one pass.
    Setting the current value again does not notify.
    """

    def __init__(self, selected: Optional[Emotion] = None):
        self._selected = selected
        self._subscribers: list[Callable[[Optional[Emotion]], None]] = []

    def get(self) -> Optional[Emotion]:
        return self._selected

    def set(self, emotion: Optional[Emotion]):
        if emotion is not None and not isinstance(emotion, Emotion):
            raise TypeError(f"Expected Emotion or None, got {emotion!r}")
        if emotion == self._selected:
            return
        self._selected = emotion
        for callback in list(self._subscribers):
            callback(emotion)

    def toggle(self, emotion: Emotion):
        """Select `emotion`, or clear the filter if it is already selected"""
        self.set(None if self._selected == emotion else emotion)

    def subscribe(self, callback: Callable[[Optional[Emotion]], None]) -> Callable[[], None]:
        """Register a change callback; returns a function that unregisters it"""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def apply(self, whispers: Iterable[Whisper]) -> list[Whisper]:
        return filter_whispers(whispers, self._selected)
