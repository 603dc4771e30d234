"""Data classes for Whispers."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_tuple(cls, pair: tuple[float, float]) -> "Coordinate":
        return cls(latitude=float(pair[0]), longitude=float(pair[1]))


class Emotion(Enum):
    """The four emotions a whisper can carry, with their display encoding"""
    MELANCHOLY = ("melancholy", "\U0001F614", "#6366F1", "Melancholy")
    JOY = ("joy", "\U0001F60A", "#F59E0B", "Joy")
    ANXIETY = ("anxiety", "\U0001F630", "#EF4444", "Anxiety")
    PEACE = ("peace", "\U0001F60C", "#10B981", "Peace")

    def __init__(self, wire: str, emoji: str, color: str, label: str):
        self.wire = wire  # lowercase form sent to the server
        self.emoji = emoji
        self.color = color
        self.label = label

    @classmethod
    def parse(cls, text: str) -> "Emotion":
        """Accept either the member name or the wire value, any case"""
        key = text.strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown emotion: {text!r}") from None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Whisper:
    """An anonymous, geotagged, emotion-tagged post as returned by the server"""
    id: int
    text: str
    emotion: Emotion
    position: Coordinate
    created_at: datetime

    @classmethod
    def from_dict(cls, d: dict) -> "Whisper":
        """Build from a server record; raises ValueError on missing or mistyped fields"""
        for key in ("text", "emotion", "createdAt"):
            if not isinstance(d.get(key), str):
                raise ValueError(f"Field {key!r} must be a string, got {d.get(key)!r}")
        return cls(
            id=int(d["id"]),
            text=d["text"],
            emotion=Emotion.parse(d["emotion"]),
            position=Coordinate(latitude=float(d["latitude"]), longitude=float(d["longitude"])),
            created_at=parse_timestamp(d["createdAt"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "emotion": self.emotion.name,
            "latitude": self.position.latitude,
            "longitude": self.position.longitude,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class WhisperDraft:
    """What the compose surface submits"""
    text: str
    emotion: Emotion = Emotion.MELANCHOLY
    position: Optional[Coordinate] = None

    def to_payload(self) -> dict:
        if self.position is None:
            raise ValueError("Draft has no position")
        return {
            "text": self.text.strip(),
            "emotion": self.emotion.wire,
            "latitude": self.position.latitude,
            "longitude": self.position.longitude,
        }


@dataclass(frozen=True)
class WhisperDetail:
    """A single whisper plus the derived values the detail view shows"""
    whisper: Whisper
    time_ago: str
    full_date: str
    distance_text: str
