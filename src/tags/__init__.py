"""Task labels."""

from .models import Tag
from .repository import TagRepository

__all__ = ["Tag", "TagRepository"]
