"""Orchestration layer - review state machine, revisions, submissions."""

from confportal.orchestration.state_machine import (
    StateMachine,
    can_transition,
    valid_transitions,
)
from confportal.orchestration.revision_archiver import (
    RevisionArchiver,
    RevisionResult,
    VersionEntry,
)
from confportal.orchestration.submission_service import SubmissionService

__all__ = [
    "StateMachine",
    "can_transition",
    "valid_transitions",
    "RevisionArchiver",
    "RevisionResult",
    "VersionEntry",
    "SubmissionService",
]
