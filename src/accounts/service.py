"""Registration, login, sessions and password management.

Related classes:
  - repository.UserRepository / PreferenceRepository: persistence
  - throttle.AttemptThrottle: login and reset rate limits
  - taskflow.mailer.Mailer: reset and password-changed mails
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import timedelta
from typing import List, Optional, Tuple

from src.storage import utc_now
from src.taskflow.config import AuthConfig
from src.taskflow.exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ThrottledError,
    ValidationError,
)
from src.taskflow.mailer import MailMessage, Mailer

from .models import User, UserSession
from .repository import PreferenceRepository, UserRepository
from .security import generate_token, hash_password, hash_token, parse_user_agent, verify_password
from .throttle import AttemptThrottle

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "The provided credentials are incorrect."
INVALID_RESET_TOKEN = "This password reset token is invalid."


class AuthService:
    """Account lifecycle on top of the user repository."""

    def __init__(
        self,
        users: UserRepository,
        preferences: PreferenceRepository,
        mailer: Mailer,
        config: Optional[AuthConfig] = None,
    ) -> None:
        self.users = users
        self.preferences = preferences
        self.mailer = mailer
        self.config = config or AuthConfig()
        self.login_throttle = AttemptThrottle(
            self.config.max_login_attempts, self.config.login_decay_seconds
        )
        self.reset_throttle = AttemptThrottle(
            self.config.max_reset_requests, self.config.reset_decay_seconds
        )

    # ---------------------------------------------------------------- helpers

    def _validate_new_password(self, password: str, confirmation: Optional[str]) -> None:
        errors: List[str] = []
        if len(password) < self.config.password_min_length:
            errors.append(
                f"The password must be at least {self.config.password_min_length} characters."
            )
        if confirmation is not None and password != confirmation:
            errors.append("The password field confirmation does not match.")
        if errors:
            raise ValidationError({"password": errors})

    def _issue_session(
        self, user: User, ip_address: Optional[str], user_agent: Optional[str]
    ) -> Tuple[str, UserSession]:
        token = generate_token()
        session = self.users.create_session(
            user.id,
            hash_token(token),
            expires_at=utc_now() + timedelta(days=self.config.token_ttl_days),
            ip_address=ip_address,
            user_agent=user_agent,
            device=parse_user_agent(user_agent or ""),
        )
        return token, session

    @staticmethod
    def _throttle_key(email: str, ip_address: Optional[str]) -> str:
        return f"{email.strip().lower()}|{ip_address or '-'}"

    # ----------------------------------------------------------- registration

    def register(
        self,
        name: str,
        email: str,
        password: str,
        password_confirmation: Optional[str] = None,
        timezone: str = "UTC",
        locale: str = "en",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[User, str, UserSession]:
        """Create an account with default preferences and log it in."""
        self._validate_new_password(password, password_confirmation)
        if self.users.get_by_email(email):
            raise ValidationError.single("email", "The email has already been taken.")

        try:
            user = self.users.create(
                name=name.strip(),
                email=email,
                password_hash=hash_password(password),
                timezone=timezone,
                locale=locale,
            )
        except sqlite3.IntegrityError as exc:
            raise ValidationError.single("email", "The email has already been taken.") from exc

        self.preferences.create_defaults(user.id)
        token, session = self._issue_session(user, ip_address, user_agent)
        logger.info("User registered: %s", user.id)
        return user, token, session

    # ------------------------------------------------------------------ login

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[User, str, UserSession]:
        key = self._throttle_key(email, ip_address)
        if self.login_throttle.too_many_attempts(key):
            seconds = self.login_throttle.available_in(key)
            raise ThrottledError(
                "email",
                f"Too many login attempts. Please try again in {seconds} seconds.",
                retry_after=seconds,
                message_key="auth.login.throttled",
            )

        user = self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            self.login_throttle.hit(key)
            logger.info("Failed login for %s", email)
            raise ValidationError.single("email", INVALID_CREDENTIALS)

        if not user.is_active:
            raise ValidationError.single(
                "email", "Your account has been deactivated. Please contact support."
            )

        self.login_throttle.clear(key)
        token, session = self._issue_session(user, ip_address, user_agent)
        logger.info("User %s logged in (session %s)", user.id, session.id)
        return user, token, session

    def authenticate(self, token: str) -> Tuple[User, UserSession]:
        """Resolve a bearer token to its user and session."""
        session = self.users.get_session_by_token_hash(hash_token(token))
        if session is None or not session.is_active or session.is_expired(utc_now()):
            raise AuthenticationError()
        user = self.users.get(session.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError()
        self.users.touch_session(session.id)
        return user, session

    def logout(self, session: UserSession) -> bool:
        return self.users.deactivate_session(session.id)

    def logout_all(self, user: User) -> int:
        return self.users.deactivate_sessions(user.id)

    def refresh(self, session: UserSession) -> str:
        """Rotate the session token and extend its expiry."""
        token = generate_token()
        self.users.rotate_session_token(
            session.id,
            hash_token(token),
            expires_at=utc_now() + timedelta(days=self.config.token_ttl_days),
        )
        return token

    # --------------------------------------------------------------- sessions

    def list_sessions(self, user: User) -> List[UserSession]:
        return self.users.list_sessions(user.id)

    def revoke_session(self, user: User, session_id: int) -> None:
        session = self.users.get_session(session_id)
        if session is None or not session.is_active:
            raise NotFoundError("Session", session_id)
        if session.user_id != user.id:
            raise PermissionDeniedError()
        self.users.deactivate_session(session_id)

    # ---------------------------------------------------------------- profile

    def update_profile(
        self,
        user: User,
        name: Optional[str] = None,
        timezone: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> User:
        updated = self.users.update(user.id, name=name, timezone=timezone, locale=locale)
        if updated is None:
            raise NotFoundError("User", user.id)
        return updated

    def change_password(
        self,
        user: User,
        session: UserSession,
        current_password: str,
        new_password: str,
        confirmation: Optional[str] = None,
    ) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError.single("current_password", "The current password is incorrect.")
        self._validate_new_password(new_password, confirmation)

        self.users.update(user.id, password_hash=hash_password(new_password))
        revoked = self.users.deactivate_sessions(user.id, except_session_id=session.id)
        logger.info("Password changed for user %s, %d other sessions revoked", user.id, revoked)

        self.mailer.send(
            MailMessage(
                to=user.email,
                subject="Your password was changed",
                body=(
                    f"Hello {user.name},\n\n"
                    "The password of your Taskflow account was just changed. "
                    "If this was not you, reset your password immediately.\n"
                ),
            )
        )

    def delete_account(self, user: User, password: str) -> None:
        if not verify_password(password, user.password_hash):
            raise ValidationError.single("password", "The password is incorrect.")
        self.users.delete(user.id)
        logger.info("Account deleted: %s", user.id)

    # --------------------------------------------------------- password reset

    def send_password_reset(self, email: str) -> Optional[str]:
        """Mail a reset token. Unknown emails are silently ignored.

        Returns:
            the plain token (None for unknown emails), so callers such as tests
            or an admin CLI can use it without reading the mail.
        """
        key = f"reset|{email.strip().lower()}"
        if self.reset_throttle.too_many_attempts(key):
            seconds = self.reset_throttle.available_in(key)
            raise ThrottledError(
                "email",
                f"Too many password reset requests. Please try again in {seconds} seconds.",
                retry_after=seconds,
                message_key="auth.forgot_password.throttled",
            )
        self.reset_throttle.hit(key)

        user = self.users.get_by_email(email)
        if user is None:
            return None

        token = generate_token()
        self.users.create_reset_token(
            user.id,
            user.email,
            hash_token(token),
            expires_at=utc_now() + timedelta(minutes=self.config.reset_token_ttl_minutes),
        )
        self.mailer.send(
            MailMessage(
                to=user.email,
                subject="Reset your password",
                body=(
                    f"Hello {user.name},\n\n"
                    f"Use this token to reset your password: {token}\n\n"
                    f"It expires in {self.config.reset_token_ttl_minutes} minutes.\n"
                ),
            )
        )
        return token

    def reset_password(
        self, token: str, email: str, password: str, confirmation: Optional[str] = None
    ) -> User:
        reset = self.users.get_reset_token(hash_token(token))
        if (
            reset is None
            or reset.used_at is not None
            or reset.expires_at <= utc_now()
            or reset.email != email.strip().lower()
        ):
            raise ValidationError.single("token", INVALID_RESET_TOKEN)

        self._validate_new_password(password, confirmation)
        user = self.users.update(reset.user_id, password_hash=hash_password(password))
        if user is None:
            raise ValidationError.single("token", INVALID_RESET_TOKEN)

        self.users.mark_reset_token_used(reset.id)
        self.users.deactivate_sessions(user.id)
        logger.info("Password reset for user %s", user.id)
        return user
