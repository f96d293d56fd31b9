"""
XMLTV document assembly and serialization.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from lxml import etree  # type: ignore

from zap2xmltv.errors import GuideWriteError
from zap2xmltv.models import Channel, LangText, Programme
from zap2xmltv.utils.xml_text import xml_safe, xml_safe_attrib

logger = logging.getLogger(__name__)

SOURCE_INFO = {
    "source-info-url": "http://tvlistings.zap2it.com/",
    "source-info-name": "zap2it",
    "generator-info-name": "zap2itXMLTV",
    "generator-info-url": "https://github.com/spf13/zap2itxmltv",
}

XMLTV_DOCTYPE = '<!DOCTYPE tv SYSTEM "xmltv.dtd">'


class GuideDocument:
    """Accumulates one run's channels and programmes in insertion order."""

    def __init__(self, source_info: dict[str, str] | None = None) -> None:
        self.source_info = dict(source_info or SOURCE_INFO)
        self.channels: list[Channel] = []
        self.programmes: list[Programme] = []

    def add_channels_once(self, channels: Sequence[Channel]) -> bool:
        """Accept the first non-empty channel list; later calls are no-ops.

        Returns:
            True if the channels were taken
        """
        if self.channels or not channels:
            return False
        self.channels = list(channels)
        logger.debug("Channel list populated with %s channels", len(self.channels))
        return True

    def append_programmes(self, programmes: Sequence[Programme]) -> None:
        self.programmes.extend(programmes)

    def _fallback_channels(self) -> list[Channel]:
        known = {channel.id for channel in self.channels}
        missing: list[str] = []
        for programme in self.programmes:
            if programme.channel_id not in known:
                known.add(programme.channel_id)
                missing.append(programme.channel_id)

        if missing:
            logger.warning(
                "%s channel(s) referenced by programmes are missing from the channel list; "
                "generating fallback entries",
                len(missing),
            )
        return [Channel(id=channel_id, display_names=[channel_id]) for channel_id in missing]

    def to_element(self) -> etree._Element:
        root = etree.Element("tv", attrib=xml_safe_attrib(self.source_info))

        for channel in [*self.channels, *self._fallback_channels()]:
            _channel_element(root, channel)

        for programme in self.programmes:
            _programme_element(root, programme)

        return root

    def serialize(self) -> bytes:
        """
        Render the full document as UTF-8 XMLTV bytes

        Raises:
            GuideWriteError: If lxml rejects the document
        """
        try:
            return etree.tostring(
                self.to_element(),
                pretty_print=True,
                xml_declaration=True,
                encoding="UTF-8",
                doctype=XMLTV_DOCTYPE,
            )
        except (ValueError, etree.LxmlError) as exc:
            raise GuideWriteError(f"Failed to serialize guide: {exc}") from exc


def _text_element(parent: etree._Element, tag: str, value: LangText) -> etree._Element:
    element = etree.SubElement(parent, tag)
    if value.lang:
        element.set("lang", xml_safe(value.lang))
    element.text = xml_safe(value.text)
    return element


def _channel_element(root: etree._Element, channel: Channel) -> None:
    element = etree.SubElement(root, "channel", id=xml_safe(channel.id))
    for name in channel.display_names:
        etree.SubElement(element, "display-name").text = xml_safe(name)
    if channel.icon_url:
        etree.SubElement(element, "icon", src=xml_safe(channel.icon_url))


def _programme_element(root: etree._Element, programme: Programme) -> None:
    element = etree.SubElement(
        root,
        "programme",
        start=xml_safe(programme.start),
        stop=xml_safe(programme.stop),
        channel=xml_safe(programme.channel_id),
    )
    for title in programme.titles:
        _text_element(element, "title", title)
    if programme.subtitle is not None:
        _text_element(element, "sub-title", programme.subtitle)
    _text_element(element, "desc", programme.description)
    for category in programme.categories:
        _text_element(element, "category", category)
