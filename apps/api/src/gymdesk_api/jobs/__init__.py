"""Recurring job entrypoints for membership automation."""

__all__ = ["expiration_sweep"]
