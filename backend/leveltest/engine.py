from __future__ import annotations

import logging
import time
from collections import Counter
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from .collaborators import ObjectiveCatalog, SubmissionGrader, TestGenerator
from .errors import (
    AttemptAbandoned,
    AttemptAlreadySubmitted,
    CatalogUnavailable,
    GenerationFailed,
    GradingFailed,
    IncompleteAttempt,
    IndexOutOfRange,
    InvalidResponse,
    InvalidTestParameters,
    NoObjectivesSelected,
)
from .models import AttemptStatus, GeneratedTest, Result, TestAttempt, TestSpecification
from .scoring import compute_level_from_score
from .settings import settings


logger = logging.getLogger(__name__)


class AttemptEvent(str, Enum):
    STARTED = "started"
    RESPONSE_RECORDED = "response_recorded"
    MOVED = "moved"
    SUBMITTING = "submitting"
    RESULTED = "resulted"
    SUBMISSION_FAILED = "submission_failed"
    ABANDONED = "abandoned"


Observer = Callable[[AttemptEvent, TestAttempt], None]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class LevelAssessmentEngine:
    """Drives one student's placement-test attempts.

    The engine does no I/O of its own: objectives, question sets and grading
    come from the injected collaborators. Each operation either applies its
    whole state change or raises one of the ``leveltest.errors`` kinds and
    leaves the attempt as it was.
    """

    def __init__(
        self,
        student_id: str,
        catalog: ObjectiveCatalog,
        generator: TestGenerator,
        grader: SubmissionGrader,
        *,
        clock: Callable[[], float] = time.monotonic,
        minutes_per_question: Optional[float] = None,
    ) -> None:
        self.student_id = student_id
        self._catalog = catalog
        self._generator = generator
        self._grader = grader
        self._clock = clock
        self._minutes_per_question = (
            minutes_per_question if minutes_per_question is not None else settings.minutes_per_question
        )
        self.attempt: Optional[TestAttempt] = None
        # Last successfully fetched objective list, for callers that fall back on failure
        self.cached_objectives: Optional[List[str]] = None
        self._observers: List[Observer] = []

    def now(self) -> float:
        return self._clock()

    # ---- observers ----

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, event: AttemptEvent, attempt: TestAttempt) -> None:
        for callback in list(self._observers):
            try:
                callback(event, attempt)
            except Exception:
                logger.exception("Observer %r failed on %s", callback, event.value)

    # ---- objectives ----

    async def list_objectives(self) -> List[str]:
        try:
            listing = await self._catalog.list()
        except Exception as exc:
            logger.warning("Objective catalog unavailable: %s", exc)
            raise CatalogUnavailable(f"Could not load the objective catalog: {exc}") from exc
        objectives = list(dict.fromkeys(listing.objectives))
        self.cached_objectives = objectives
        return list(objectives)

    # ---- attempt lifecycle ----

    async def start_attempt(
        self,
        selected_objectives: Iterable[str],
        questions_per_objective: Optional[int] = None,
        max_level: Optional[int] = None,
    ) -> TestAttempt:
        if isinstance(selected_objectives, (str, bytes)):
            raise InvalidTestParameters(
                f"selected_objectives must be a collection of objectives, got the string {selected_objectives!r}"
            )
        objectives: Tuple[str, ...] = tuple(dict.fromkeys(selected_objectives))
        if not objectives:
            raise NoObjectivesSelected("Select at least one objective to start the test")
        if questions_per_objective is None:
            questions_per_objective = settings.questions_per_objective
        if max_level is None:
            max_level = settings.max_level
        if not _is_int(questions_per_objective) or questions_per_objective < 1:
            raise InvalidTestParameters(
                f"questions_per_objective must be a positive integer, got {questions_per_objective!r}"
            )
        if not _is_int(max_level) or max_level < 1:
            raise InvalidTestParameters(f"max_level must be a positive integer, got {max_level!r}")

        try:
            generated = await self._generator.generate(list(objectives), questions_per_objective, max_level)
        except Exception as exc:
            logger.warning("Test generation failed for %s: %s", self.student_id, exc)
            raise GenerationFailed(f"Could not generate the test: {exc}") from exc
        specification = self._build_specification(generated, objectives, questions_per_objective, max_level)

        previous = self.attempt
        if previous is not None:
            self._abandon(previous)
        attempt = TestAttempt(
            student_id=self.student_id,
            objectives=objectives,
            specification=specification,
            started_at=self._clock(),
        )
        self.attempt = attempt
        logger.info(
            "Started attempt %s for %s: %d questions over %d objectives",
            attempt.attempt_id,
            self.student_id,
            specification.total_questions,
            len(objectives),
        )
        self._notify(AttemptEvent.STARTED, attempt)
        return attempt

    def _build_specification(
        self,
        generated: GeneratedTest,
        objectives: Tuple[str, ...],
        questions_per_objective: int,
        max_level: int,
    ) -> TestSpecification:
        questions = list(generated.questions)
        if not questions:
            raise GenerationFailed("The generator returned no questions")
        seen = set()
        for q in questions:
            if q.id in seen:
                raise GenerationFailed(f"Duplicate question id {q.id!r} in generated test")
            seen.add(q.id)
            if q.objective not in objectives:
                raise GenerationFailed(f"Question {q.id!r} targets unselected objective {q.objective!r}")
            if q.level > max_level:
                raise GenerationFailed(f"Question {q.id!r} has level {q.level} above max level {max_level}")
        counts = Counter(q.objective for q in questions)
        uneven = {o: counts[o] for o in objectives if counts[o] != questions_per_objective}
        if uneven:
            raise GenerationFailed(
                f"Expected {questions_per_objective} questions per objective, got "
                + ", ".join(f"{n} for {o!r}" for o, n in uneven.items())
            )
        if generated.total is not None and generated.total != len(questions):
            logger.warning("Generator announced %d questions but sent %d", generated.total, len(questions))
        duration = generated.estimated_duration_minutes
        if duration is None:
            duration = len(questions) * self._minutes_per_question
        return TestSpecification(questions=tuple(questions), estimated_duration_minutes=duration)

    def _ensure_open(self, attempt: TestAttempt) -> None:
        if attempt.status is AttemptStatus.ABANDONED:
            raise AttemptAbandoned(f"Attempt {attempt.attempt_id} was discarded by a restart")
        if attempt.status in (AttemptStatus.SUBMITTING, AttemptStatus.RESULTED):
            raise AttemptAlreadySubmitted(f"Attempt {attempt.attempt_id} has already been submitted")

    def record_response(self, attempt: TestAttempt, question_id: str, selected_answer: int) -> TestAttempt:
        self._ensure_open(attempt)
        question = attempt.question(question_id)
        if question is None:
            raise InvalidResponse(f"Question {question_id!r} is not part of attempt {attempt.attempt_id}")
        if not _is_int(selected_answer) or not 0 <= selected_answer < len(question.options):
            raise InvalidResponse(
                f"Option {selected_answer!r} is not valid for question {question_id!r} "
                f"({len(question.options)} options)"
            )
        attempt.responses[question_id] = selected_answer
        attempt.status = AttemptStatus.ANSWERING
        self._notify(AttemptEvent.RESPONSE_RECORDED, attempt)
        return attempt

    def move_to(self, attempt: TestAttempt, target_index: int) -> TestAttempt:
        self._ensure_open(attempt)
        total = attempt.specification.total_questions
        if not _is_int(target_index) or not 0 <= target_index < total:
            raise IndexOutOfRange(f"Question index {target_index!r} outside 0..{total - 1}")
        attempt.cursor = target_index
        attempt.status = AttemptStatus.ANSWERING
        self._notify(AttemptEvent.MOVED, attempt)
        return attempt

    def next_question(self, attempt: TestAttempt) -> TestAttempt:
        return self.move_to(attempt, attempt.cursor + 1)

    def previous_question(self, attempt: TestAttempt) -> TestAttempt:
        return self.move_to(attempt, attempt.cursor - 1)

    def is_complete(self, attempt: TestAttempt) -> bool:
        return attempt.is_complete()

    async def submit(self, attempt: TestAttempt) -> Result:
        self._ensure_open(attempt)
        missing = attempt.missing_question_ids()
        if missing:
            raise IncompleteAttempt(
                f"{len(missing)} of {attempt.specification.total_questions} questions are unanswered",
                missing=missing,
            )
        responses = attempt.ordered_responses()
        attempt.status = AttemptStatus.SUBMITTING
        self._notify(AttemptEvent.SUBMITTING, attempt)

        try:
            raw = await self._grader.submit(attempt.student_id, responses)
        except Exception as exc:
            if attempt.status is AttemptStatus.ABANDONED:
                raise AttemptAbandoned(f"Attempt {attempt.attempt_id} was discarded during submission") from exc
            self._submission_failed(attempt, exc)
            raise GradingFailed(f"Could not grade the test: {exc}") from exc

        if attempt.status is AttemptStatus.ABANDONED:
            # Restarted while the grader was working; the result belongs to nobody
            raise AttemptAbandoned(f"Attempt {attempt.attempt_id} was discarded during submission")

        try:
            result = self._checked_result(attempt, raw)
        except GradingFailed as exc:
            self._submission_failed(attempt, exc)
            raise

        finished_at = self._clock()
        attempt.finished_at = finished_at
        result = result.model_copy(update={"time_taken_seconds": attempt.elapsed(finished_at)})
        attempt.result = result
        attempt.status = AttemptStatus.RESULTED
        logger.info(
            "Attempt %s graded: %d/%d (%.1f%%), level %d",
            attempt.attempt_id,
            result.correct_answers,
            result.total_questions,
            result.score_percentage,
            result.recommended_level,
        )
        self._notify(AttemptEvent.RESULTED, attempt)
        return result

    def _submission_failed(self, attempt: TestAttempt, exc: Exception) -> None:
        logger.warning("Grading failed for attempt %s: %s", attempt.attempt_id, exc)
        if attempt.status is AttemptStatus.SUBMITTING:
            attempt.status = AttemptStatus.ANSWERING
            self._notify(AttemptEvent.SUBMISSION_FAILED, attempt)

    def _checked_result(self, attempt: TestAttempt, raw: Any) -> Result:
        if isinstance(raw, Result):
            result = raw
        elif isinstance(raw, Mapping):
            try:
                result = Result.model_validate(dict(raw))
            except ValidationError as exc:
                raise GradingFailed(f"Grader returned a malformed result: {exc}") from exc
        else:
            raise GradingFailed(f"Grader returned {type(raw).__name__}, expected a result")

        expected_total = attempt.specification.total_questions
        if result.total_questions != expected_total:
            raise GradingFailed(
                f"Grader scored {result.total_questions} questions, attempt has {expected_total}"
            )
        unknown = [o for o in result.objective_scores if o not in attempt.objectives]
        if unknown:
            raise GradingFailed(f"Grader reported unselected objectives: {', '.join(unknown)}")
        # The reported percentage may be rounded; the level follows the exact ratio
        exact = 100 * result.correct_answers / result.total_questions
        level = compute_level_from_score(exact)
        if result.recommended_level is None:
            return result.model_copy(update={"recommended_level": level})
        if result.recommended_level != level:
            raise GradingFailed(
                f"Grader recommended level {result.recommended_level} for "
                f"{result.correct_answers}/{result.total_questions} correct, expected level {level}"
            )
        return result

    def restart(self, attempt: Optional[TestAttempt] = None) -> None:
        target = attempt if attempt is not None else self.attempt
        if target is not None:
            self._abandon(target)
        if target is None or target is self.attempt:
            self.attempt = None

    def _abandon(self, attempt: TestAttempt) -> None:
        # A graded attempt keeps its result; anything still open is discarded
        if attempt.status in (AttemptStatus.RESULTED, AttemptStatus.ABANDONED):
            return
        attempt.status = AttemptStatus.ABANDONED
        logger.info("Abandoned attempt %s for %s", attempt.attempt_id, self.student_id)
        self._notify(AttemptEvent.ABANDONED, attempt)
