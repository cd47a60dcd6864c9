"""Trust score computation from verification and activity facts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from task_market_service.core.exceptions import NotFoundError
from task_market_service.logging import get_logger

if TYPE_CHECKING:
    from task_market_service.services.task_store import TaskStore
    from task_market_service.services.user_store import UserStore
    from task_market_service.services.verification_store import VerificationStore

MIN_SCORE = 0
MAX_SCORE = 100

EMAIL_POINTS = 20
PHONE_POINTS = 20
DOCUMENT_POINTS = 20
DOCUMENT_CAP = 40
COMPLETED_TASK_POINTS = 2
COMPLETED_TASK_CAP = 20


@dataclass(frozen=True)
class TrustFacts:
    """Snapshot of everything the score depends on."""

    email_verified: bool
    phone_verified: bool
    verified_documents: int
    completed_tasks: int


def compute_trust_score(facts: TrustFacts) -> int:
    """
    Compute a 0-100 score from ``facts``.

    Each signal contributes a fixed number of points; documents and
    completed tasks are capped so no single signal dominates.
    """
    score = 0
    if facts.email_verified:
        score += EMAIL_POINTS
    if facts.phone_verified:
        score += PHONE_POINTS
    score += min(max(facts.verified_documents, 0) * DOCUMENT_POINTS, DOCUMENT_CAP)
    score += min(max(facts.completed_tasks, 0) * COMPLETED_TASK_POINTS, COMPLETED_TASK_CAP)
    return max(MIN_SCORE, min(score, MAX_SCORE))


class TrustScoreEngine:
    """
    Recomputes and persists user trust scores.

    A recomputation always reads current facts, so calling it repeatedly
    without intervening changes yields the same score.
    """

    def __init__(
        self,
        user_store: UserStore,
        task_store: TaskStore,
        verification_store: VerificationStore,
    ) -> None:
        self._user_store = user_store
        self._task_store = task_store
        self._verification_store = verification_store
        self._logger = get_logger(__name__)

    def gather_facts(self, user_id: str) -> TrustFacts:
        """
        Read the current facts for ``user_id``.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = self._user_store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        return TrustFacts(
            email_verified=bool(user["email_verified"]),
            phone_verified=bool(user["phone_verified"]),
            verified_documents=self._verification_store.count_verified_documents(user_id),
            completed_tasks=self._task_store.count_completed_for_assignee(user_id),
        )

    def recompute(self, user_id: str) -> int:
        """Recompute, persist and return the trust score for ``user_id``."""
        score = compute_trust_score(self.gather_facts(user_id))
        self._user_store.update_user(user_id, {"trust_score": score})
        self._logger.info(
            "Trust score recomputed",
            extra={"user_id": user_id, "trust_score": score},
        )
        return score

    def recompute_safely(self, user_id: str) -> int | None:
        """
        Recompute the score without ever failing the caller.

        The triggering operation has already committed by the time this
        runs; a failure here is logged and ``None`` is returned.
        """
        try:
            return self.recompute(user_id)
        except Exception:
            self._logger.exception(
                "Trust score recomputation failed",
                extra={"user_id": user_id},
            )
            return None
