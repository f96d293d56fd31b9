"""Zap2it grid listings to XMLTV guide generator."""

__version__ = "0.1.0"
