"""Static HTML snapshot of the feed on a folium map."""

from datetime import datetime
from typing import Optional, Sequence

import folium
from folium import plugins

from .config import CONFIG
from .filters import emotion_counts
from .geo import utc_now
from .map_sync import popup_html
from .models import Coordinate, Emotion, Whisper


def _marker_html(emotion: Emotion, size: int = 35) -> str:
    return f"""
        <div style="background: {emotion.color}; width: {size}px; height: {size}px;
                    border-radius: 50%; border: 3px solid #ffffff; display: flex;
                    align-items: center; justify-content: center; font-size: 16px;
                    box-shadow: 0 4px 12px rgba(0,0,0,0.4);">
            {emotion.emoji}
        </div>
    """


def _legend_html(whispers: Sequence[Whisper], feed: Sequence[Whisper],
                 selected: Optional[Emotion]) -> str:
    counts = emotion_counts(feed)
    rows = "".join(
        f"""
        <div style="display: flex; align-items: center; margin: 3px 0;">
            <div style="width: 14px; height: 14px; border-radius: 50%; background: {emotion.color}; margin-right: 6px;"></div>
            {emotion.emoji} {emotion.label} ({counts[emotion]})
        </div>"""
        for emotion in Emotion
    )
    subtitle = f"Showing {selected.label.lower()}" if selected else "Click markers to read whispers"
    return f"""
    <div style="
        position: fixed;
        top: 80px;
        left: 16px;
        z-index: 1000;
        background-color: white;
        padding: 10px;
        border-radius: 5px;
        border: 2px solid grey;
        font-family: Arial;
        font-size: 12px;
    ">
        <b>{len(whispers)} whispers nearby</b><br>
        <span style="color: #888888;">{subtitle}</span>
        <hr style="margin: 5px 0">
        {rows}
    </div>
    """


def create_feed_map(
    whispers: Sequence[Whisper],
    user_location: Optional[Coordinate],
    anchor: Optional[Coordinate] = None,
    selected: Optional[Emotion] = None,
    now: Optional[datetime] = None,
    feed: Optional[Sequence[Whisper]] = None,
) -> folium.Map:
    """Build a folium map of `whispers` (already filtered).

    `feed` is the unfiltered collection the legend counts come from.
    """
    now = now or utc_now()
    center = anchor or user_location or Coordinate.from_tuple(CONFIG["fallback_location"])

    m = folium.Map(
        location=[center.latitude, center.longitude],
        zoom_start=CONFIG["map_zoom"],
        tiles=CONFIG["tile_url"],
        attr=CONFIG["tile_attribution"],
    )

    whispers_layer = folium.FeatureGroup(name="Whispers", show=True)
    for whisper in whispers:
        html = popup_html(whisper, now)
        folium.Marker(
            [whisper.position.latitude, whisper.position.longitude],
            popup=folium.Popup(html, max_width=250),
            icon=folium.DivIcon(
                html=_marker_html(whisper.emotion),
                icon_size=(35, 35),
                icon_anchor=(17, 17),
                class_name="whisper-marker",
            ),
        ).add_to(whispers_layer)
    whispers_layer.add_to(m)

    if user_location:
        folium.Marker(
            [user_location.latitude, user_location.longitude],
            popup="You are here",
            icon=folium.Icon(color="blue", icon="user"),
        ).add_to(m)

    legend = _legend_html(whispers, feed if feed is not None else whispers, selected)
    m.get_root().html.add_child(folium.Element(legend))

    plugins.Fullscreen().add_to(m)

    return m


def save_feed_map(path: str, whispers: Sequence[Whisper], user_location: Optional[Coordinate],
                  **kwargs) -> str:
    """Write the snapshot to `path` and return the path"""
    m = create_feed_map(whispers, user_location, **kwargs)
    m.save(path)
    return path
