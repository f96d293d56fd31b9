"""
Domain dataclasses shared across the guide assembly pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Session:
    """Login result; lives for one pipeline run only."""
    token: str
    region_hint: str | None = None


@dataclass(slots=True, frozen=True)
class TimeWindow:
    """Half-open [start, end) interval in Unix epoch seconds."""
    start: int
    end: int

    @property
    def hours(self) -> int:
        return (self.end - self.start) // 3600


@dataclass(slots=True, frozen=True)
class LineupConfig:
    """Lineup selection sent with every grid request."""
    lineup_id: str
    headend_id: str
    country: str
    zip_code: str
    device: str = "-"
    language: str = "en-us"


@dataclass(slots=True, frozen=True)
class LangText:
    lang: str
    text: str


@dataclass(slots=True)
class Channel:
    """Channel entry of the output guide."""
    id: str
    display_names: list[str]
    icon_url: str | None = None


@dataclass(slots=True)
class Programme:
    """Programme entry of the output guide; start/stop are XMLTV timestamps."""
    start: str
    stop: str
    channel_id: str
    titles: list[LangText]
    description: LangText
    subtitle: LangText | None = None
    categories: list[LangText] = field(default_factory=list)


__all__ = [
    "Session",
    "TimeWindow",
    "LineupConfig",
    "LangText",
    "Channel",
    "Programme",
]
