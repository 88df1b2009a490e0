"""Password hashing, token generation and user-agent parsing."""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from typing import Dict

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password for storage as ``pbkdf2_sha256$iterations$salt$hash``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, stored = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), stored)


def generate_token() -> str:
    return secrets.token_urlsafe(40)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def parse_user_agent(user_agent: str) -> Dict[str, str]:
    """Best-effort device/browser/platform labels for the sessions list."""
    device_type = "Desktop"
    browser = "Unknown"
    platform = "Unknown"

    if re.search(r"mobile", user_agent, re.I):
        device_type = "Mobile"
    elif re.search(r"tablet", user_agent, re.I):
        device_type = "Tablet"
    elif re.search(r"bot", user_agent, re.I):
        device_type = "Bot"

    # Edge and Chrome both advertise "Chrome"; check Edge first.
    if re.search(r"Edg(e|A|iOS)?/", user_agent):
        browser = "Edge"
    elif re.search(r"Chrome", user_agent, re.I):
        browser = "Chrome"
    elif re.search(r"Firefox", user_agent, re.I):
        browser = "Firefox"
    elif re.search(r"Safari", user_agent, re.I):
        browser = "Safari"
    elif re.search(r"MSIE|Trident", user_agent, re.I):
        browser = "Internet Explorer"

    if re.search(r"Windows", user_agent, re.I):
        platform = "Windows"
    elif re.search(r"Android", user_agent, re.I):
        platform = "Android"
    elif re.search(r"iPhone|iPad|iOS", user_agent, re.I):
        platform = "iOS"
    elif re.search(r"Mac", user_agent, re.I):
        platform = "macOS"
    elif re.search(r"Linux", user_agent, re.I):
        platform = "Linux"

    return {"device_type": device_type, "browser": browser, "platform": platform}
