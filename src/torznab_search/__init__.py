"""Torznab search aggregation with .torrent to magnet resolution."""

__version__ = "1.0.0"
