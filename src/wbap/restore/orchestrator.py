"""
Restore flow state machine.

Drives a restore attempt from file selection to success, forgiving one
mistyped passphrase before escalating:

    IDLE --submit--> SUBMITTED --+--> SUCCESS
                                 +--> SOFT_ERROR   first "decryption failed"
                                 +--> HARD_ERROR   second failure for the
                                                   same file, or any other
                                                   error kind

SOFT_ERROR keeps the form usable so the passphrase can be corrected.
HARD_ERROR only offers try_again() (clear everything and start over) or
return_home() (abandon).

The transition rule itself is the pure next_state() function; the
RestoreOrchestrator class owns the draft (file text, passphrase and
failure count) and ignores results from superseded submissions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from wbap.backup.payload import RestoreResult
from wbap.errors import BackupError, RestoreErrorKind

logger = logging.getLogger(__name__)

INLINE_PASSPHRASE_ERROR = "Passphrase didn't match, try again"

HARD_ERROR_MESSAGES: dict[RestoreErrorKind, str] = {
    RestoreErrorKind.DECRYPTION_FAILED: (
        "We couldn't unlock this backup. Either the passphrase is different "
        "from the one used to create it, or the file has been damaged."
    ),
    RestoreErrorKind.INVALID_FORMAT: (
        "This file isn't a plan backup. Please choose the .wbap file you saved "
        "when you created your backup."
    ),
    RestoreErrorKind.INVALID_STRUCTURE: (
        "This backup file is incomplete or damaged and can't be restored."
    ),
    RestoreErrorKind.UNSUPPORTED_VERSION: (
        "This backup was made with a newer version of the app. Please update "
        "the app, then try restoring again."
    ),
}

UNEXPECTED_ERROR_MESSAGE = (
    "Something went wrong while reading this backup. Please try again."
)


class RestoreState(str, Enum):
    """State of the restore flow."""

    IDLE = "idle"
    SUBMITTED = "submitted"
    SUCCESS = "success"
    SOFT_ERROR = "soft_error"
    HARD_ERROR = "hard_error"


class Outcome(str, Enum):
    """Result of one restore attempt."""

    SUCCESS = "success"
    INVALID_FORMAT = RestoreErrorKind.INVALID_FORMAT.value
    INVALID_STRUCTURE = RestoreErrorKind.INVALID_STRUCTURE.value
    UNSUPPORTED_VERSION = RestoreErrorKind.UNSUPPORTED_VERSION.value
    DECRYPTION_FAILED = RestoreErrorKind.DECRYPTION_FAILED.value

    @classmethod
    def from_error(cls, error: BackupError) -> Outcome:
        """Map a backup error to its outcome."""
        if error.kind is None:
            return cls.INVALID_FORMAT
        return cls(error.kind.value)


class InvalidTransitionError(Exception):
    """Raised when an action is not allowed in the current state."""

    pass


def next_state(state: RestoreState, outcome: Outcome, previous_failures: int) -> RestoreState:
    """
    Compute the state after an attempt completes.

    Args:
        state: Current state; must be SUBMITTED.
        outcome: Outcome of the attempt.
        previous_failures: Consecutive failures already seen for this file.

    Returns:
        SUCCESS, SOFT_ERROR or HARD_ERROR.

    Raises:
        InvalidTransitionError: If no attempt is in flight.
    """
    if state is not RestoreState.SUBMITTED:
        raise InvalidTransitionError(f"No attempt in flight (state: {state.value})")

    if outcome is Outcome.SUCCESS:
        return RestoreState.SUCCESS
    if outcome is Outcome.DECRYPTION_FAILED and previous_failures == 0:
        return RestoreState.SOFT_ERROR
    return RestoreState.HARD_ERROR


@dataclass(frozen=True)
class Submission:
    """Snapshot of the draft taken when an attempt starts."""

    ticket: int
    file_text: str | bytes
    passphrase: str


def _unexpected_error(submission: Submission, error: Exception) -> BackupError:
    """Wrap an error outside the backup taxonomy so the attempt still resolves."""
    logger.exception(f"Restore attempt {submission.ticket} failed unexpectedly")
    wrapped = BackupError(UNEXPECTED_ERROR_MESSAGE)
    wrapped.__cause__ = error
    return wrapped


class RestoreOrchestrator:
    """
    Owns the restore draft and applies next_state() to attempt results.

    Usage:
        flow = RestoreOrchestrator(manager.decrypt_backup)
        flow.select_file(text, "alex-backup-2024-01-15.wbap")
        flow.set_passphrase("correct-horse")
        flow.submit()

        if flow.state is RestoreState.SUCCESS:
            manager.apply_restore(flow.result)

    Attributes:
        state: Current RestoreState.
        failures: Consecutive failed attempts for the selected file.
        result: RestoreResult after SUCCESS.
        last_error: Error from the most recent failed attempt.
        abandoned: True once return_home() was chosen.
    """

    def __init__(self, read_backup: Callable[[str | bytes, str], RestoreResult]) -> None:
        """
        Initialize the orchestrator.

        Args:
            read_backup: Decrypt-and-validate function, usually
                BackupManager.decrypt_backup. Must be side-effect free.
        """
        self._read_backup = read_backup
        self._ticket = 0
        self.state = RestoreState.IDLE
        self.file_text: str | bytes | None = None
        self.filename: str | None = None
        self.passphrase = ""
        self.failures = 0
        self.result: RestoreResult | None = None
        self.last_error: BackupError | None = None
        self.abandoned = False

    @property
    def is_editable(self) -> bool:
        """True while the file and passphrase may be changed."""
        return self.state in (RestoreState.IDLE, RestoreState.SOFT_ERROR)

    @property
    def can_submit(self) -> bool:
        """True when a file and passphrase are present and the form is usable."""
        in_form = self.is_editable or self.state is RestoreState.SUBMITTED
        return in_form and self.file_text is not None and bool(self.passphrase)

    @property
    def message(self) -> str | None:
        """User-facing message for the current error state, if any."""
        if self.state is RestoreState.SOFT_ERROR:
            return INLINE_PASSPHRASE_ERROR
        if self.state is RestoreState.HARD_ERROR and self.last_error is not None:
            if self.last_error.kind is None:
                return UNEXPECTED_ERROR_MESSAGE
            return HARD_ERROR_MESSAGES[self.last_error.kind]
        return None

    def select_file(self, file_text: str | bytes, filename: str | None = None) -> None:
        """
        Select a backup file. A new file starts a fresh failure count.

        Raises:
            InvalidTransitionError: If the form is not editable.
        """
        self._require_editable("select a file")
        self.file_text = file_text
        self.filename = filename
        self.failures = 0
        self.last_error = None
        self.abandoned = False
        self.state = RestoreState.IDLE

    def set_passphrase(self, passphrase: str) -> None:
        """
        Set the passphrase to try. The failure count is kept.

        Raises:
            InvalidTransitionError: If the form is not editable.
        """
        self._require_editable("change the passphrase")
        self.passphrase = passphrase

    def begin_submission(self) -> Submission:
        """
        Start an attempt and return its snapshot.

        Starting a new attempt supersedes any attempt still in flight.

        Raises:
            InvalidTransitionError: If a file and passphrase are not both set.
        """
        if not self.can_submit or self.file_text is None:
            raise InvalidTransitionError(
                f"Cannot submit in state {self.state.value} without a file and passphrase"
            )

        self._ticket += 1
        self.state = RestoreState.SUBMITTED
        return Submission(
            ticket=self._ticket,
            file_text=self.file_text,
            passphrase=self.passphrase,
        )

    def complete(
        self,
        submission: Submission,
        result: RestoreResult | None = None,
        error: BackupError | None = None,
    ) -> bool:
        """
        Record the outcome of an attempt.

        Results from superseded or abandoned attempts are ignored.

        Args:
            submission: Snapshot returned by begin_submission().
            result: RestoreResult on success.
            error: Backup error on failure.

        Returns:
            True if the outcome was applied, False if it was stale.
        """
        if submission.ticket != self._ticket or self.state is not RestoreState.SUBMITTED:
            logger.debug(f"Ignoring stale restore attempt {submission.ticket}")
            return False

        if error is not None:
            outcome = Outcome.from_error(error)
        elif result is not None:
            outcome = Outcome.SUCCESS
        else:
            raise ValueError("complete() needs either a result or an error")

        self.state = next_state(self.state, outcome, self.failures)

        if outcome is Outcome.SUCCESS:
            self.result = result
            self.last_error = None
            self.passphrase = ""
        else:
            self.failures += 1
            self.last_error = error

        logger.info(f"Restore attempt {submission.ticket}: {outcome.value} -> {self.state.value}")
        return True

    def submit(self) -> RestoreState:
        """Run a fresh decrypt-and-validate attempt synchronously."""
        submission = self.begin_submission()
        try:
            result = self._read_backup(submission.file_text, submission.passphrase)
        except BackupError as e:
            self.complete(submission, error=e)
        except Exception as e:
            self.complete(submission, error=_unexpected_error(submission, e))
        else:
            self.complete(submission, result=result)
        return self.state

    async def submit_async(self) -> RestoreState:
        """
        Run an attempt in a worker thread.

        Key derivation dominates the cost, so it is kept off the event loop.
        If another attempt is submitted meanwhile, this one's outcome is
        dropped.
        """
        submission = self.begin_submission()
        try:
            result = await asyncio.to_thread(
                self._read_backup, submission.file_text, submission.passphrase
            )
        except BackupError as e:
            self.complete(submission, error=e)
        except Exception as e:
            self.complete(submission, error=_unexpected_error(submission, e))
        else:
            self.complete(submission, result=result)
        return self.state

    def dismiss_error(self) -> None:
        """Dismiss the inline soft error; the file and failure count are kept."""
        if self.state is not RestoreState.SOFT_ERROR:
            raise InvalidTransitionError(f"No inline error to dismiss (state: {self.state.value})")
        self.state = RestoreState.IDLE

    def try_again(self) -> None:
        """Leave the hard error: clear file, passphrase and failure count."""
        if self.state is not RestoreState.HARD_ERROR:
            raise InvalidTransitionError(f"Nothing to retry (state: {self.state.value})")
        self._clear_draft()

    def return_home(self) -> None:
        """Abandon the restore from any state."""
        self._clear_draft()
        self.abandoned = True

    def _clear_draft(self) -> None:
        # Bumping the ticket drops any attempt still in flight
        self._ticket += 1
        self.state = RestoreState.IDLE
        self.file_text = None
        self.filename = None
        self.passphrase = ""
        self.failures = 0
        self.last_error = None

    def _require_editable(self, action: str) -> None:
        if not self.is_editable:
            raise InvalidTransitionError(f"Cannot {action} in state {self.state.value}")
