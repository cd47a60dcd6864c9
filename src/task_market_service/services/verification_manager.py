"""Verification workflow: email, phone and document verification."""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from task_market_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from task_market_service.logging import get_logger
from task_market_service.models import (
    DocumentStatus,
    DocumentType,
    DocumentVerification,
    User,
    UserRole,
    VerificationChannel,
    VerificationLevel,
    to_iso,
    utc_now,
)
from task_market_service.services.verification_store import DuplicatePendingDocumentError

if TYPE_CHECKING:
    from task_market_service.clients.email_client import EmailClient
    from task_market_service.clients.sms_client import SmsClient
    from task_market_service.services.trust_score import TrustScoreEngine
    from task_market_service.services.user_store import UserStore
    from task_market_service.services.verification_store import VerificationStore

_PHONE_RE = re.compile(r"^\+?\d{10,15}$")
_CODE_RE = re.compile(r"^\d{6}$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)

EMAIL_TEMPLATE = "email_verification"


def verification_level(
    email_verified: bool,
    phone_verified: bool,
    has_verified_document: bool,
) -> VerificationLevel:
    """Derive the verification tier from the verified channels."""
    if email_verified and phone_verified:
        if has_verified_document:
            return VerificationLevel.PREMIUM
        return VerificationLevel.STANDARD
    return VerificationLevel.BASIC


def _generate_phone_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


class VerificationManager:
    """
    Issues and consumes verification tokens and tracks document reviews.

    Verification sends are workflow-critical: if the email or SMS cannot
    be delivered, the token and its issuance record are removed again and
    the failure is surfaced to the caller. Every successful verification
    refreshes the user's trust score.
    """

    def __init__(
        self,
        store: VerificationStore,
        user_store: UserStore,
        trust_engine: TrustScoreEngine,
        email_client: EmailClient,
        sms_client: SmsClient,
        email_token_ttl_hours: int,
        email_rate_limit: int,
        email_rate_window_hours: int,
        phone_code_ttl_minutes: int,
        phone_max_attempts: int,
        phone_rate_limit: int,
        phone_rate_window_hours: int,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._trust_engine = trust_engine
        self._email_client = email_client
        self._sms_client = sms_client
        self._email_token_ttl = timedelta(hours=email_token_ttl_hours)
        self._email_rate_limit = email_rate_limit
        self._email_rate_window = timedelta(hours=email_rate_window_hours)
        self._phone_code_ttl = timedelta(minutes=phone_code_ttl_minutes)
        self._phone_max_attempts = phone_max_attempts
        self._phone_rate_limit = phone_rate_limit
        self._phone_rate_window = timedelta(hours=phone_rate_window_hours)
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _load_user(self, user_id: str) -> User:
        row = self._user_store.get_user(user_id)
        if row is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        return User.from_row(row)

    def _check_rate_limit(
        self,
        user_id: str,
        channel: VerificationChannel,
        limit: int,
        window: timedelta,
    ) -> None:
        since = to_iso(utc_now() - window)
        issued = self._store.count_issuances(user_id, str(channel), since)
        if issued >= limit:
            self._logger.warning(
                "Verification rate limit exceeded",
                extra={"user_id": user_id, "channel": str(channel), "issued": issued},
            )
            raise RateLimitError(
                f"Too many {channel} verification requests, try again later",
                {
                    "channel": str(channel),
                    "limit": limit,
                    "window_hours": window.total_seconds() / 3600,
                },
            )

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    async def send_email_verification(self, user_id: str) -> dict[str, Any]:
        """
        Issue an email verification token and send it to the user.

        Raises:
            NotFoundError: User does not exist
            ConflictError: Email already verified
            RateLimitError: Too many tokens issued in the window
            NotificationError: The email could not be sent (token rolled back)
        """
        user = self._load_user(user_id)
        if user.email_verified:
            raise ConflictError("Email is already verified", {"user_id": user_id})
        self._check_rate_limit(
            user_id, VerificationChannel.EMAIL, self._email_rate_limit, self._email_rate_window
        )

        now = utc_now()
        verification_id = f"ev-{uuid.uuid4()}"
        token = secrets.token_urlsafe(32)
        expires_at = to_iso(now + self._email_token_ttl)
        self._store.insert_email_token(
            {
                "verification_id": verification_id,
                "user_id": user_id,
                "token": token,
                "email": user.email,
                "expires_at": expires_at,
                "created_at": to_iso(now),
            }
        )

        try:
            await self._email_client.send_email(
                user.email,
                EMAIL_TEMPLATE,
                {"token": token, "expires_at": expires_at},
            )
        except BaseException:
            # Gateway errors, timeouts and cancellation all mean the user
            # never got the token.
            self._store.delete_email_token(verification_id)
            self._store.delete_issuance(verification_id)
            self._logger.warning(
                "Email verification send failed, token rolled back",
                extra={"user_id": user_id, "verification_id": verification_id},
            )
            raise

        self._logger.info(
            "Email verification issued",
            extra={"user_id": user_id, "verification_id": verification_id},
        )
        return {"user_id": user_id, "email": user.email, "expires_at": expires_at}

    async def verify_email(self, token: str) -> User:
        """
        Consume an email token and mark the address verified.

        Raises:
            ValidationError: "Invalid or expired verification token"
        """
        record = self._store.find_email_token(token)
        if record is None or record["expires_at"] <= to_iso(utc_now()):
            raise ValidationError("Invalid or expired verification token")

        user_id: str = record["user_id"]
        self._load_user(user_id)
        self._user_store.update_user(user_id, {"email_verified": 1})
        self._store.delete_email_token(record["verification_id"])
        self._logger.info("Email verified", extra={"user_id": user_id})

        self._trust_engine.recompute_safely(user_id)
        return self._load_user(user_id)

    # ------------------------------------------------------------------
    # Phone
    # ------------------------------------------------------------------

    async def send_phone_verification(self, user_id: str, phone: str) -> dict[str, Any]:
        """
        Issue a 6-digit code for ``phone`` and send it by SMS.

        Any earlier code for the user is replaced once the SMS goes out;
        if sending fails the earlier code stays valid.

        Raises:
            ValidationError: Malformed phone number
            NotFoundError: User does not exist
            ConflictError: Phone already verified
            RateLimitError: Too many codes issued in the window
            NotificationError: The SMS could not be sent (code rolled back)
        """
        if not isinstance(phone, str) or not _PHONE_RE.match(phone):
            raise ValidationError("Invalid phone number format", {"field": "phone"})
        user = self._load_user(user_id)
        if user.phone_verified:
            raise ConflictError("Phone is already verified", {"user_id": user_id})
        self._check_rate_limit(
            user_id, VerificationChannel.PHONE, self._phone_rate_limit, self._phone_rate_window
        )

        now = utc_now()
        verification_id = f"pv-{uuid.uuid4()}"
        code = _generate_phone_code()
        expires_at = to_iso(now + self._phone_code_ttl)
        self._store.insert_phone_code(
            {
                "verification_id": verification_id,
                "user_id": user_id,
                "code": code,
                "phone": phone,
                "attempts": 0,
                "max_attempts": self._phone_max_attempts,
                "expires_at": expires_at,
                "created_at": to_iso(now),
            }
        )

        minutes = int(self._phone_code_ttl.total_seconds() // 60)
        try:
            await self._sms_client.send_sms(
                phone,
                f"Your verification code is {code}. It expires in {minutes} minutes.",
            )
        except BaseException:
            self._store.delete_phone_code(verification_id)
            self._store.delete_issuance(verification_id)
            self._logger.warning(
                "Phone verification send failed, code rolled back",
                extra={"user_id": user_id, "verification_id": verification_id},
            )
            raise
        self._store.discard_other_phone_codes(user_id, verification_id)

        self._logger.info(
            "Phone verification issued",
            extra={"user_id": user_id, "verification_id": verification_id},
        )
        return {"user_id": user_id, "phone": phone, "expires_at": expires_at}

    async def verify_phone(self, user_id: str, code: str) -> User:
        """
        Check a phone code.

        A wrong code uses up one attempt; the attempt that reaches the
        maximum deletes the code, so a fresh one must be requested.

        Raises:
            ValidationError: No active code, or the code is wrong
        """
        if not isinstance(code, str) or not _CODE_RE.match(code):
            raise ValidationError("Verification code must be 6 digits", {"field": "code"})

        record = self._store.find_active_phone_code(user_id, to_iso(utc_now()))
        if record is None:
            raise ValidationError(
                "No active verification code, request a new one",
                {"user_id": user_id},
            )

        verification_id: str = record["verification_id"]
        if not secrets.compare_digest(record["code"], code):
            attempts = self._store.increment_phone_attempts(verification_id)
            remaining = max(int(record["max_attempts"]) - attempts, 0)
            if remaining == 0:
                self._store.delete_phone_code(verification_id)
                self._logger.warning(
                    "Phone verification attempts exhausted",
                    extra={"user_id": user_id, "verification_id": verification_id},
                )
                raise ValidationError(
                    "Too many incorrect attempts, request a new code",
                    {"remaining_attempts": 0},
                )
            raise ValidationError(
                "Invalid verification code",
                {"remaining_attempts": remaining},
            )

        self._load_user(user_id)
        self._user_store.update_user(user_id, {"phone_verified": 1, "phone": record["phone"]})
        self._store.delete_phone_code(verification_id)
        self._logger.info("Phone verified", extra={"user_id": user_id})

        self._trust_engine.recompute_safely(user_id)
        return self._load_user(user_id)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def submit_document(
        self,
        user_id: str,
        document_type: str,
        document_url: str,
        notes: str | None,
    ) -> DocumentVerification:
        """
        Submit a document for review.

        Raises:
            NotFoundError: User does not exist
            ValidationError: Unknown document type or non-http(s) URL
            ConflictError: A document of the same type is already PENDING
        """
        self._load_user(user_id)
        try:
            doc_type = DocumentType(document_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown document type '{document_type}'",
                {"allowed": [str(t) for t in DocumentType]},
            ) from exc
        if not isinstance(document_url, str) or not _URL_RE.match(document_url):
            raise ValidationError("document_url must be an http(s) URL", {"field": "document_url"})

        if self._store.find_pending_document(user_id, str(doc_type)) is not None:
            raise ConflictError(
                f"A {doc_type} verification is already pending",
                {"user_id": user_id, "document_type": str(doc_type)},
            )

        record: dict[str, Any] = {
            "verification_id": f"dv-{uuid.uuid4()}",
            "user_id": user_id,
            "document_type": str(doc_type),
            "document_url": document_url,
            "notes": notes,
            "status": str(DocumentStatus.PENDING),
            "submitted_at": to_iso(utc_now()),
            "reviewed_at": None,
            "reviewer_notes": None,
        }
        try:
            self._store.insert_document(record)
        except DuplicatePendingDocumentError as exc:
            raise ConflictError(
                f"A {doc_type} verification is already pending",
                {"user_id": user_id, "document_type": str(doc_type)},
            ) from exc

        self._logger.info(
            "Document submitted",
            extra={
                "user_id": user_id,
                "verification_id": record["verification_id"],
                "document_type": str(doc_type),
            },
        )
        return DocumentVerification.from_row(record)

    async def review_document(
        self,
        verification_id: str,
        decision: str,
        reviewer_id: str,
        notes: str | None,
    ) -> DocumentVerification:
        """
        Record an administrator's decision on a PENDING document.

        Raises:
            NotFoundError: Reviewer or document does not exist
            AuthorizationError: Reviewer is not an ADMIN
            ValidationError: Decision is not VERIFIED/REJECTED, or the
                document was already resolved
        """
        reviewer = self._load_user(reviewer_id)
        if reviewer.role is not UserRole.ADMIN:
            raise AuthorizationError("Only administrators can review documents")

        try:
            status = DocumentStatus(decision)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown review decision '{decision}'",
                {"allowed": [str(DocumentStatus.VERIFIED), str(DocumentStatus.REJECTED)]},
            ) from exc
        if status is DocumentStatus.PENDING:
            raise ValidationError(
                "Review decision must be VERIFIED or REJECTED",
                {"allowed": [str(DocumentStatus.VERIFIED), str(DocumentStatus.REJECTED)]},
            )

        row = self._store.get_document(verification_id)
        if row is None:
            raise NotFoundError("Document verification not found", {"id": verification_id})
        if row["status"] != DocumentStatus.PENDING:
            raise ValidationError(
                f"Document verification is already {row['status']}",
                {"verification_id": verification_id, "status": row["status"]},
            )

        changed = self._store.resolve_document(
            verification_id,
            str(status),
            reviewed_at=to_iso(utc_now()),
            reviewer_notes=notes,
        )
        if changed != 1:
            raise ValidationError(
                "Document verification was resolved concurrently",
                {"verification_id": verification_id},
            )

        self._logger.info(
            "Document reviewed",
            extra={
                "verification_id": verification_id,
                "reviewer_id": reviewer_id,
                "status": str(status),
            },
        )
        self._trust_engine.recompute_safely(row["user_id"])

        resolved = self._store.get_document(verification_id)
        if resolved is None:
            msg = f"Document {verification_id} not found after review"
            raise RuntimeError(msg)
        return DocumentVerification.from_row(resolved)

    # ------------------------------------------------------------------
    # Status and maintenance
    # ------------------------------------------------------------------

    async def get_verification_status(self, user_id: str) -> dict[str, Any]:
        """Summarize the verification state of a user."""
        user = self._load_user(user_id)
        documents = [
            DocumentVerification.from_row(row) for row in self._store.list_documents(user_id)
        ]
        statuses = {document.status for document in documents}
        if DocumentStatus.VERIFIED in statuses:
            document_status = "VERIFIED"
        elif DocumentStatus.PENDING in statuses:
            document_status = "PENDING"
        elif DocumentStatus.REJECTED in statuses:
            document_status = "REJECTED"
        else:
            document_status = "NONE"

        level = verification_level(
            user.email_verified,
            user.phone_verified,
            DocumentStatus.VERIFIED in statuses,
        )
        return {
            "user_id": user_id,
            "email_verified": user.email_verified,
            "phone_verified": user.phone_verified,
            "document_status": document_status,
            "documents": [document.to_dict() for document in documents],
            "trust_score": user.trust_score,
            "verification_level": str(level),
        }

    async def cleanup_expired_tokens(self) -> int:
        """
        Delete every email and phone token past its expiry.

        Issuance rows older than the longest rate-limit window are pruned
        too; they no longer count against any limit.

        Returns:
            Number of tokens removed
        """
        now = utc_now()
        now_str = to_iso(now)
        email_removed = self._store.delete_expired_email_tokens(now_str)
        phone_removed = self._store.delete_expired_phone_codes(now_str)
        oldest_window = max(self._email_rate_window, self._phone_rate_window)
        issuances_pruned = self._store.prune_issuances(to_iso(now - oldest_window))

        self._logger.info(
            "Expired verification tokens cleaned up",
            extra={
                "email_tokens": email_removed,
                "phone_codes": phone_removed,
                "issuances_pruned": issuances_pruned,
            },
        )
        return email_removed + phone_removed
