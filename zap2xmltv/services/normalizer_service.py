"""
Grid payload normalization

Maps loosely-typed grid JSON into Channel and Programme entries. A malformed
record is skipped with a warning; only a page without a channels list is
fatal.
"""
import logging

from zap2xmltv.errors import InvalidPageError, NormalizeWarning
from zap2xmltv.models import Channel, LangText, Programme
from zap2xmltv.utils.json_fields import get_dict, get_list, get_non_empty_str, get_str
from zap2xmltv.utils.timezone import format_xmltv_time


logger = logging.getLogger(__name__)

UNAVAILABLE_DESCRIPTION = "Unavailable"

# Grid "filter-*" tags with a nicer XMLTV category name
CATEGORY_NAMES = {
    "family": "Children's / Youth programs",
    "movie": "Movie / Drama",
    "news": "News / Current affairs",
    "talk": "Talk show",
}


def icon_url_from_thumbnail(thumbnail: str) -> str:
    """'//zap2it.tmsimg.com/x.png?w=55' -> 'http://zap2it.tmsimg.com/x.png'"""
    return "http://" + thumbnail.split("?", 1)[0].lstrip("/")


def category_from_filter(tag: str) -> str:
    name = tag.removeprefix("filter-")
    return CATEGORY_NAMES.get(name, name.capitalize())


def _channel_records(page: dict) -> list:
    records = get_list(page, "channels")
    if records is None:
        raise InvalidPageError("Invalid channels data format")
    return records


class GuideNormalizer:
    """Pure mapping from one raw listings page to guide entries."""

    def __init__(self, language: str = "en-us") -> None:
        self.language = language

    def extract_channels(self, page: dict) -> list[Channel]:
        """
        Build the channel list of one page

        Duplicate channel ids within the page keep their first occurrence.

        Raises:
            InvalidPageError: If the page has no channels list
        """
        channels: list[Channel] = []
        seen: set[str] = set()

        for record in _channel_records(page):
            try:
                channel = self._build_channel(record)
            except NormalizeWarning as exc:
                logger.warning("Skipping channel: %s", exc)
                continue

            if channel.id in seen:
                logger.debug("Discarding duplicate channel %s", channel.id)
                continue
            seen.add(channel.id)
            channels.append(channel)

        return channels

    def _build_channel(self, record) -> Channel:
        channel_id = get_str(record, "channelId")
        number = get_str(record, "channelNo")
        call_sign = get_str(record, "callSign")
        if channel_id is None or number is None or call_sign is None:
            raise NormalizeWarning(
                f"channel record missing channelId/channelNo/callSign "
                f"(channelId={channel_id!r})"
            )

        display_names = [f"{number} {call_sign}", number, call_sign]
        affiliate = get_non_empty_str(record, "affiliateName")
        if affiliate:
            display_names.append(affiliate)

        thumbnail = get_str(record, "thumbnail")
        icon_url = icon_url_from_thumbnail(thumbnail) if thumbnail else None

        return Channel(id=channel_id, display_names=display_names, icon_url=icon_url)

    def extract_programmes(self, page: dict) -> list[Programme]:
        """
        Build the programmes of every channel's events, in page order

        Raises:
            InvalidPageError: If the page has no channels list
        """
        programmes: list[Programme] = []

        for record in _channel_records(page):
            channel_id = get_str(record, "channelId")
            events = get_list(record, "events")
            if channel_id is None or events is None:
                continue

            for event in events:
                try:
                    programmes.append(self._build_programme(event, channel_id))
                except NormalizeWarning as exc:
                    logger.warning("Skipping event on channel %s: %s", channel_id, exc)

        return programmes

    def _build_programme(self, event, channel_id: str) -> Programme:
        start = get_str(event, "startTime")
        if start is None:
            raise NormalizeWarning("invalid start time")
        stop = get_str(event, "endTime")
        if stop is None:
            raise NormalizeWarning("invalid end time")

        program = get_dict(event, "program")
        if program is None:
            raise NormalizeWarning("invalid program data")
        title = get_str(program, "title")
        if title is None:
            raise NormalizeWarning("invalid title")

        lang = self.language
        episode_title = get_non_empty_str(program, "episodeTitle")
        description = get_non_empty_str(program, "shortDesc") or UNAVAILABLE_DESCRIPTION

        categories = [
            LangText(lang, category_from_filter(tag))
            for tag in get_list(event, "filter") or []
            if isinstance(tag, str) and tag.strip()
        ]

        return Programme(
            start=format_xmltv_time(start),
            stop=format_xmltv_time(stop),
            channel_id=channel_id,
            titles=[LangText(lang, title)],
            subtitle=LangText(lang, episode_title) if episode_title else None,
            description=LangText(lang, description),
            categories=categories,
        )
