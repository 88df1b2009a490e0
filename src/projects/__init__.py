"""Projects (task folders)."""

from .models import Project
from .repository import ProjectRepository

__all__ = ["Project", "ProjectRepository"]
