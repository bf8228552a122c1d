"""
State machine for the submission review lifecycle.

Valid transitions and who may trigger them are defined here. Every
transition is a single compare-and-set UPDATE guarded on the status the
caller observed, so a concurrent review or resubmission cannot interleave.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.kernel.errors import ConflictError, NotFoundError, ValidationError
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.jwt import AccessTokenPayload
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import Submission, SubmissionStatus
from confportal.kernel.permissions.admin_resolver import AdminResolver
from confportal.logging_config import get_logger

logger = get_logger(__name__)

_REVIEW_OUTCOMES = frozenset({
    SubmissionStatus.ACCEPTED,
    SubmissionStatus.ACCEPTED_WITH_REVISION,
    SubmissionStatus.REJECTED,
})

# Admin-invoked transitions. accepted_with_revision leaves only through the
# revision archiver; accepted and rejected are terminal.
_TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    SubmissionStatus.PENDING: _REVIEW_OUTCOMES,
    SubmissionStatus.PENDING_REVIEW: _REVIEW_OUTCOMES,
    SubmissionStatus.ACCEPTED_WITH_REVISION: frozenset(),
    SubmissionStatus.ACCEPTED: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}


def valid_transitions(from_state: SubmissionStatus) -> List[SubmissionStatus]:
    """Return the statuses an admin may move a submission to from ``from_state``."""
    return sorted(_TRANSITIONS.get(from_state, frozenset()), key=lambda s: s.value)


def can_transition(from_state: SubmissionStatus, to_state: SubmissionStatus) -> bool:
    return to_state in _TRANSITIONS.get(from_state, frozenset())


class StateMachine:
    """Service for performing review transitions with audit logging."""

    def __init__(
        self,
        session: AsyncSession,
        admin_resolver: Optional[AdminResolver] = None,
    ):
        self.session = session
        self.event_store = EventStore(session)
        self.admin_resolver = admin_resolver or AdminResolver(session)

    async def transition(
        self,
        submission_id: uuid.UUID,
        to_state: str,
        admin_id: uuid.UUID,
        review_comments: Optional[str] = None,
        claims: Optional[AccessTokenPayload] = None,
        ip_address: Optional[str] = None,
    ) -> Submission:
        """
        Record a review decision on a submission.

        Raises:
            AuthorizationError: caller is not an admin
            ValidationError: unknown status, transition not in the table, or
                accepted_with_revision without comments
            NotFoundError: no such submission
            ConflictError: the status changed since it was read
        """
        await self.admin_resolver.require_admin(admin_id, claims)

        target = SubmissionStatus.parse(to_state)
        comments = review_comments.strip() if review_comments else None
        if target == SubmissionStatus.ACCEPTED_WITH_REVISION and not comments:
            raise ValidationError(
                "Review comments are required when requesting a revision"
            )

        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")

        source = SubmissionStatus.parse(submission.status)
        if not can_transition(source, target):
            raise ValidationError(
                f"Invalid transition: {source.value} -> {target.value}"
            )

        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == submission_id,
                Submission.status == source.value,
            )
            .values(
                status=target.value,
                reviewed_by=admin_id,
                reviewed_at=now,
                review_comments=comments,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Submission status changed concurrently; reload and retry")

        await self.event_store.log(
            event_type=EventType.SUBMISSION_STATUS_CHANGED,
            entity_type="submission",
            entity_id=submission_id,
            user_id=admin_id,
            payload={
                "from_state": source,
                "to_state": target,
                "version": submission.current_version,
                "has_comments": bool(comments),
            },
            ip_address=ip_address,
        )
        logger.info(
            "Submission status changed",
            extra={
                "submission_id": str(submission_id),
                "from_state": source.value,
                "to_state": target.value,
            },
        )

        await self.session.refresh(submission)
        return submission
