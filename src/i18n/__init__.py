"""Localized API messages (English and Persian)."""

from .translator import DEFAULT_LOCALE, Translator, parse_accept_language

__all__ = ["DEFAULT_LOCALE", "Translator", "parse_accept_language"]
