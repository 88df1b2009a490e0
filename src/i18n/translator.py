"""
API message catalogues

Messages live in ``locales/<locale>.yaml`` as nested mappings and are
looked up with dot-notation keys (``tasks.create.success``). ``:name``
placeholders are filled from keyword arguments.

Related:
  - server.dependencies.AuthContext.t: translation for the current request
  - server.app: Accept-Language detection
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

DEFAULT_LOCALE = "en"
RTL_LOCALES = ("fa",)


class Translator:
    """Looks up localized messages, falling back to the default locale and then the key"""

    def __init__(self, locales_dir: Optional[Path] = None, default_locale: str = DEFAULT_LOCALE):
        self.locales_dir = Path(locales_dir) if locales_dir else Path(__file__).resolve().parent / "locales"
        self.default_locale = default_locale
        self.catalogues: Dict[str, Dict[str, Any]] = {}
        self.logger = logging.getLogger(__name__)
        self.load_catalogues()

    def load_catalogues(self) -> None:
        self.catalogues = {}
        if not self.locales_dir.exists():
            self.logger.warning(f"Locales directory not found: {self.locales_dir}")
            return
        for path in sorted(self.locales_dir.glob("*.yaml")):
            with open(path, "r", encoding="utf-8") as f:
                self.catalogues[path.stem] = yaml.safe_load(f) or {}
        self.logger.info(f"Loaded message catalogues: {', '.join(self.catalogues)}")

    @property
    def supported_locales(self) -> tuple:
        return tuple(self.catalogues)

    def is_supported(self, locale: Optional[str]) -> bool:
        return bool(locale) and locale in self.catalogues

    def get(self, key: str, locale: Optional[str] = None, **params: Any) -> str:
        """
        Translate ``key``

        Args:
            key: dot-notation message key
            locale: target locale (unsupported values use the default locale)
            **params: values for ``:name`` placeholders

        Returns:
            the message, or the key itself when no catalogue defines it
        """
        if not self.is_supported(locale):
            locale = self.default_locale
        message = self._lookup(locale, key)
        if message is None and locale != self.default_locale:
            message = self._lookup(self.default_locale, key)
        if message is None:
            self.logger.warning("Missing message %s", key)
            message = key
        return self._interpolate(message, params)

    def is_rtl(self, locale: str) -> bool:
        return locale in RTL_LOCALES

    def _lookup(self, locale: str, key: str) -> Optional[str]:
        node: Any = self.catalogues.get(locale, {})
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    @staticmethod
    def _interpolate(message: str, params: Dict[str, Any]) -> str:
        # longest names first so ":min" never eats into ":minutes"
        for name in sorted(params, key=len, reverse=True):
            message = message.replace(f":{name}", str(params[name]))
        return message


def parse_accept_language(header: Optional[str], supported: Iterable[str]) -> Optional[str]:
    """
    Best supported language of an Accept-Language header

    Region subtags are ignored (``fa-IR`` counts as ``fa``), ``q=0`` entries
    are skipped and equal weights keep header order.
    """
    if not header:
        return None
    supported = set(supported)
    weighted = []
    for position, item in enumerate(header.split(",")):
        parts = [part.strip() for part in item.split(";")]
        language = parts[0].split("-")[0].lower()
        quality = 1.0
        for param in parts[1:]:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        if language and quality > 0:
            weighted.append((-quality, position, language))
    for _, _, language in sorted(weighted):
        if language in supported:
            return language
    return None
