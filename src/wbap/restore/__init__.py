"""
Restore flow with retry escalation.
"""

from wbap.restore.orchestrator import (
    HARD_ERROR_MESSAGES,
    INLINE_PASSPHRASE_ERROR,
    InvalidTransitionError,
    Outcome,
    RestoreOrchestrator,
    RestoreState,
    Submission,
    UNEXPECTED_ERROR_MESSAGE,
    next_state,
)

__all__ = [
    "RestoreOrchestrator",
    "RestoreState",
    "Outcome",
    "Submission",
    "InvalidTransitionError",
    "next_state",
    "INLINE_PASSPHRASE_ERROR",
    "HARD_ERROR_MESSAGES",
    "UNEXPECTED_ERROR_MESSAGE",
]
