"""Command-line interface."""

from .tail import app, main

__all__ = ["app", "main"]
