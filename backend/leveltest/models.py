from __future__ import annotations
import math
import uuid
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class Question(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	id: str = Field(min_length=1)
	objective: str = Field(min_length=1)
	level: int = Field(ge=1)
	# Prompt and options may carry inline ($...$) or block ($$...$$) math markup
	question: str
	options: Tuple[str, ...] = Field(min_length=2)
	correct_answer_index: int = Field(validation_alias=AliasChoices("correct_answer_index", "correct_answer"))
	explanation: str = ""

	@model_validator(mode="after")
	def _check_correct_index(self) -> "Question":
		if not 0 <= self.correct_answer_index < len(self.options):
			raise ValueError(
				f"correct_answer_index {self.correct_answer_index} outside 0..{len(self.options) - 1}"
			)
		return self


class ObjectiveList(BaseModel):
	objectives: List[str]
	total: Optional[int] = Field(default=None, validation_alias=AliasChoices("total", "total_objectives"))

	@model_validator(mode="after")
	def _fill_total(self) -> "ObjectiveList":
		if self.total is None:
			self.total = len(self.objectives)
		return self


class GeneratedTest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	questions: List[Question]
	total: Optional[int] = Field(default=None, validation_alias=AliasChoices("total", "total_questions"))
	estimated_duration_minutes: Optional[float] = Field(
		default=None,
		validation_alias=AliasChoices("estimated_duration_minutes", "estimated_duration"),
	)


class TestSpecification(BaseModel):
	model_config = ConfigDict(frozen=True)
	__test__ = False

	questions: Tuple[Question, ...]
	estimated_duration_minutes: float

	@property
	def total_questions(self) -> int:
		return len(self.questions)


class ResponseEntry(BaseModel):
	question_id: str
	selected_answer: int


class ObjectiveScore(BaseModel):
	model_config = ConfigDict(frozen=True)

	correct: int = Field(ge=0)
	total: int = Field(ge=0)

	@model_validator(mode="after")
	def _check_counts(self) -> "ObjectiveScore":
		if self.correct > self.total:
			raise ValueError("objective correct count exceeds its total")
		return self


class Result(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	score_percentage: float = Field(ge=0, le=100, validation_alias=AliasChoices("score_percentage", "score"))
	correct_answers: int = Field(ge=0)
	total_questions: int = Field(ge=1)
	# Filled from the score thresholds when the grader leaves it out
	recommended_level: Optional[int] = Field(default=None, ge=1)
	objective_scores: Dict[str, ObjectiveScore]
	detailed_feedback: Optional[str] = Field(
		default=None,
		validation_alias=AliasChoices("detailed_feedback", "feedback"),
	)
	time_taken_seconds: Optional[float] = Field(
		default=None,
		ge=0,
		validation_alias=AliasChoices("time_taken_seconds", "time_taken"),
	)

	@field_validator("detailed_feedback")
	@classmethod
	def _blank_feedback_is_none(cls, value: Optional[str]) -> Optional[str]:
		if value is not None and not value.strip():
			return None
		return value

	@model_validator(mode="after")
	def _check_totals(self) -> "Result":
		if self.correct_answers > self.total_questions:
			raise ValueError("correct_answers exceeds total_questions")
		breakdown_total = sum(score.total for score in self.objective_scores.values())
		if breakdown_total != self.total_questions:
			raise ValueError(
				f"objective totals sum to {breakdown_total}, expected {self.total_questions}"
			)
		breakdown_correct = sum(score.correct for score in self.objective_scores.values())
		if breakdown_correct != self.correct_answers:
			raise ValueError(
				f"objective correct counts sum to {breakdown_correct}, expected {self.correct_answers}"
			)
		# Backends may round the percentage; anything beyond half a point is a different score
		expected = 100.0 * self.correct_answers / self.total_questions
		if not math.isclose(self.score_percentage, expected, abs_tol=0.5):
			raise ValueError(
				f"score_percentage {self.score_percentage} does not match {self.correct_answers}/{self.total_questions}"
			)
		return self


class AttemptStatus(str, Enum):
	CREATED = "created"
	ANSWERING = "answering"
	SUBMITTING = "submitting"
	RESULTED = "resulted"
	ABANDONED = "abandoned"


def elapsed_seconds(now: float, started_at: float) -> float:
	return max(0.0, now - started_at)


class TestAttempt:
	"""One run of the placement test, from generation to (optionally) a result."""

	__test__ = False

	def __init__(
		self,
		student_id: str,
		objectives: Tuple[str, ...],
		specification: TestSpecification,
		started_at: float,
	) -> None:
		self.attempt_id: str = uuid.uuid4().hex
		self.student_id = student_id
		self.objectives = objectives
		self.specification = specification
		self.started_at = started_at
		self.finished_at: Optional[float] = None
		self.cursor: int = 0
		self.responses: Dict[str, int] = {}
		self.status: AttemptStatus = AttemptStatus.CREATED
		self.result: Optional[Result] = None
		self._questions_by_id: Dict[str, Question] = {q.id: q for q in specification.questions}

	@property
	def questions(self) -> Tuple[Question, ...]:
		return self.specification.questions

	@property
	def current_question(self) -> Question:
		return self.specification.questions[self.cursor]

	def question(self, question_id: str) -> Optional[Question]:
		return self._questions_by_id.get(question_id)

	def missing_question_ids(self) -> List[str]:
		return [q.id for q in self.specification.questions if q.id not in self.responses]

	def is_complete(self) -> bool:
		return not self.missing_question_ids()

	def ordered_responses(self) -> List[ResponseEntry]:
		return [
			ResponseEntry(question_id=q.id, selected_answer=self.responses[q.id])
			for q in self.specification.questions
			if q.id in self.responses
		]

	def elapsed(self, now: float) -> float:
		# Frozen once the attempt has a result
		end = self.finished_at if self.finished_at is not None else now
		return elapsed_seconds(end, self.started_at)
