"""Jellyfin Migration - watched state reconciliation between Jellyfin servers."""

__version__ = "0.1.0"
