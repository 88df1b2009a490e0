"""Saved views (persisted task filters)."""

from .models import DISPLAY_MODES, SavedView
from .repository import SavedViewRepository

__all__ = ["DISPLAY_MODES", "SavedView", "SavedViewRepository"]
