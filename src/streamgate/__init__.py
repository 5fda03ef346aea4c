"""Embed-page media resolver and streaming proxy."""

__version__ = "0.1.0"
