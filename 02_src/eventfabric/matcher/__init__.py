"""Matcher module."""

from .matcher import matches, resolve_field

__all__ = ["matches", "resolve_field"]
