"""
XML text helpers

Listing text is free-form JSON and may carry characters XML 1.0 cannot
represent (C0 controls, NUL, lone surrogates).
"""
import re


REPLACEMENT_CHARACTER = "\ufffd"

_XML_ILLEGAL = re.compile(
    r"[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def xml_safe(value: str) -> str:
    """Replace every character XML 1.0 forbids with U+FFFD."""
    return _XML_ILLEGAL.sub(REPLACEMENT_CHARACTER, value)


def xml_safe_attrib(attrib: dict[str, str]) -> dict[str, str]:
    return {key: xml_safe(value) for key, value in attrib.items()}
