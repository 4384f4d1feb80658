"""Read-only snapshots of an attempt for the presentation layer.

Correct answers and explanations ship with every generated question but are
only exposed here once the attempt holds its result.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .models import AttemptStatus, Result, TestAttempt
from .scoring import level_name, objective_percentage, recommendation_for


class QuestionView(BaseModel):
    index: int
    id: str
    objective: str
    level: int
    question: str
    options: List[str]
    selected_answer: Optional[int] = None
    status: str
    correct_answer_index: Optional[int] = None
    explanation: Optional[str] = None


class ObjectiveScoreView(BaseModel):
    correct: int
    total: int
    percentage: float


class ResultView(BaseModel):
    score_percentage: float
    correct_answers: int
    total_questions: int
    recommended_level: int
    level_name: str
    objective_scores: Dict[str, ObjectiveScoreView]
    detailed_feedback: Optional[str] = None
    time_taken_seconds: Optional[float] = None
    recommendation: Dict[str, Any]


class AttemptSnapshot(BaseModel):
    attempt_id: str
    student_id: str
    status: AttemptStatus
    objectives: List[str]
    cursor: int
    total_questions: int
    answered_count: int
    progress_percent: float
    estimated_duration_minutes: float
    elapsed_seconds: float
    elapsed_display: str
    is_complete: bool
    can_submit: bool
    current_question: QuestionView
    questions: List[QuestionView]
    result: Optional[ResultView] = None


def format_elapsed(seconds: float) -> str:
    whole = int(max(0.0, seconds))
    minutes, secs = divmod(whole, 60)
    return f"{minutes}:{secs:02d}"


def progress_percent(attempt: TestAttempt) -> float:
    total = attempt.specification.total_questions
    return (attempt.cursor + 1) / total * 100


def question_status(attempt: TestAttempt, index: int) -> str:
    if index == attempt.cursor:
        return "current"
    if attempt.questions[index].id in attempt.responses:
        return "answered"
    return "unanswered"


def result_view(result: Result) -> ResultView:
    level = result.recommended_level or 1
    return ResultView(
        score_percentage=result.score_percentage,
        correct_answers=result.correct_answers,
        total_questions=result.total_questions,
        recommended_level=level,
        level_name=level_name(level),
        objective_scores={
            objective: ObjectiveScoreView(
                correct=score.correct,
                total=score.total,
                percentage=objective_percentage(score),
            )
            for objective, score in result.objective_scores.items()
        },
        detailed_feedback=result.detailed_feedback,
        time_taken_seconds=result.time_taken_seconds,
        recommendation=recommendation_for(level),
    )


def snapshot(attempt: TestAttempt, now: float) -> AttemptSnapshot:
    revealed = attempt.status is AttemptStatus.RESULTED
    questions = []
    for index, q in enumerate(attempt.questions):
        questions.append(
            QuestionView(
                index=index,
                id=q.id,
                objective=q.objective,
                level=q.level,
                question=q.question,
                options=list(q.options),
                selected_answer=attempt.responses.get(q.id),
                status=question_status(attempt, index),
                correct_answer_index=q.correct_answer_index if revealed else None,
                explanation=q.explanation if revealed else None,
            )
        )
    elapsed = attempt.elapsed(now)
    complete = attempt.is_complete()
    return AttemptSnapshot(
        attempt_id=attempt.attempt_id,
        student_id=attempt.student_id,
        status=attempt.status,
        objectives=list(attempt.objectives),
        cursor=attempt.cursor,
        total_questions=attempt.specification.total_questions,
        answered_count=len(attempt.responses),
        progress_percent=progress_percent(attempt),
        estimated_duration_minutes=attempt.specification.estimated_duration_minutes,
        elapsed_seconds=elapsed,
        elapsed_display=format_elapsed(elapsed),
        is_complete=complete,
        can_submit=complete and attempt.status in (AttemptStatus.CREATED, AttemptStatus.ANSWERING),
        current_question=questions[attempt.cursor],
        questions=questions,
        result=result_view(attempt.result) if attempt.result is not None else None,
    )
