"""Tunedeck music catalog and playlist backend."""

from .api import app

__all__ = ["app"]
