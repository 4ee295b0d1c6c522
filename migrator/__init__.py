"""Migrates cached legacy user profiles and playlists into Core."""

__version__ = "0.1.0"
