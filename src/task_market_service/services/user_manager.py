"""User registration and lookup."""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING

from task_market_service.core.exceptions import ConflictError, NotFoundError, ValidationError
from task_market_service.logging import get_logger
from task_market_service.models import User, UserRole, now_iso
from task_market_service.services.user_store import DuplicateUserError

if TYPE_CHECKING:
    from task_market_service.services.user_store import UserStore

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MAX_EMAIL_LENGTH = 254


class UserManager:
    """Registers platform users. Credentials are handled upstream."""

    def __init__(self, store: UserStore) -> None:
        self._store = store
        self._logger = get_logger(__name__)

    async def register_user(self, email: str, role: str | None = None) -> User:
        """
        Register a new user with unverified channels and a zero trust score.

        Raises:
            ValidationError: Malformed email or unknown role
            ConflictError: Email already registered
        """
        if not isinstance(email, str) or not _EMAIL_RE.match(email.strip()):
            raise ValidationError("email must be a valid email address", {"field": "email"})
        normalized = email.strip().lower()
        if len(normalized) > _MAX_EMAIL_LENGTH:
            raise ValidationError("email is too long", {"field": "email"})

        try:
            user_role = UserRole.USER if role is None else UserRole(role)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown role '{role}'",
                {"allowed": [str(r) for r in UserRole]},
            ) from exc

        row = {
            "user_id": f"u-{uuid.uuid4()}",
            "email": normalized,
            "phone": None,
            "role": str(user_role),
            "email_verified": 0,
            "phone_verified": 0,
            "trust_score": 0,
            "is_active": 1,
            "created_at": now_iso(),
        }
        try:
            self._store.insert_user(row)
        except DuplicateUserError as exc:
            raise ConflictError("Email is already registered", {"email": normalized}) from exc

        self._logger.info(
            "User registered",
            extra={"user_id": row["user_id"], "role": str(user_role)},
        )
        return User.from_row(row)

    async def get_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: If the user does not exist
        """
        row = self._store.get_user(user_id)
        if row is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        return User.from_row(row)
