"""Failure kinds raised by the level-test engine.

Every failure the engine can report is one of the classes below. ``recoverable``
separates conditions the caller can act on (retry, fix the input, answer the
remaining questions) from defects in the calling code, which should surface
instead of being retried.
"""

from __future__ import annotations


class AssessmentError(Exception):
	recoverable: bool = True

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class CatalogUnavailable(AssessmentError):
	"""The objective catalog could not be retrieved."""


class NoObjectivesSelected(AssessmentError):
	"""An attempt was started with an empty objective selection."""


class InvalidTestParameters(AssessmentError):
	"""Questions per objective or max level is not a positive integer."""


class GenerationFailed(AssessmentError):
	"""The test generator failed or produced an unusable question set."""


class InvalidResponse(AssessmentError):
	"""A response referenced a question or option outside the attempt."""

	recoverable = False


class IndexOutOfRange(AssessmentError):
	"""Navigation target outside the attempt's question list."""

	recoverable = False


class IncompleteAttempt(AssessmentError):
	"""Submission requested before every question was answered."""

	def __init__(self, message: str, missing: list[str] | None = None) -> None:
		super().__init__(message)
		self.missing = list(missing or [])


class GradingFailed(AssessmentError):
	"""The grader failed or returned a result that breaks the result rules."""


class AttemptAlreadySubmitted(AssessmentError):
	"""The attempt has been handed to the grader or already holds a result."""

	recoverable = False


class AttemptAbandoned(AssessmentError):
	"""The attempt was discarded by a restart."""

	recoverable = False


class BackendError(Exception):
	"""Transport, HTTP status or payload failure talking to the tutoring backend."""

	def __init__(self, message: str, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code
