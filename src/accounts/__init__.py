"""User accounts, sessions and preferences."""

from .models import PREFERENCE_DEFAULTS, User, UserPreference, UserSession
from .repository import PreferenceRepository, UserRepository
from .service import AuthService

__all__ = [
    "PREFERENCE_DEFAULTS",
    "User",
    "UserPreference",
    "UserSession",
    "PreferenceRepository",
    "UserRepository",
    "AuthService",
]
