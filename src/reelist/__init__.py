"""Reelist: ordered media collections with optimistic reordering."""

__version__ = "0.1.0"
