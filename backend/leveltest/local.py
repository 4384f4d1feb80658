"""In-process collaborators serving level tests from a bundled question bank.

Used in demo mode and as the reference behaviour for the remote services: the
generator takes the easiest questions first within the allowed level, and the
grader scores against each question's correct option.
"""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence

from .models import GeneratedTest, ObjectiveList, Question, ResponseEntry, Result
from .scoring import grade_responses
from .settings import settings


DEFAULT_BANK: List[Question] = [
    Question(
        id="dd_1_1",
        objective="Domain of definition",
        level=1,
        question="What is the domain of definition of $f(x) = x^2 + 3x - 1$?",
        options=["$\\mathbb{R}$", "$\\mathbb{R}^*$", "$[0, +\\infty[$", "$]-\\infty, 0]$"],
        correct_answer_index=0,
        explanation="A polynomial function is defined on all real numbers.",
    ),
    Question(
        id="dd_2_1",
        objective="Domain of definition",
        level=2,
        question="What is the domain of definition of $f(x) = \\frac{x+1}{x-3}$?",
        options=[
            "$\\mathbb{R}$",
            "$\\mathbb{R} \\setminus \\{3\\}$",
            "$\\mathbb{R} \\setminus \\{-1\\}$",
            "$\\mathbb{R} \\setminus \\{-1, 3\\}$",
        ],
        correct_answer_index=1,
        explanation="The function is undefined where the denominator vanishes, that is for $x = 3$.",
    ),
    Question(
        id="dd_3_1",
        objective="Domain of definition",
        level=3,
        question="What is the domain of definition of $f(x) = \\frac{\\sqrt{x-2}}{x-5}$?",
        options=[
            "$[2, +\\infty[$",
            "$[2, 5[ \\cup ]5, +\\infty[$",
            "$]2, +\\infty[$",
            "$\\mathbb{R} \\setminus \\{5\\}$",
        ],
        correct_answer_index=1,
        explanation="The root needs $x \\geq 2$ and the denominator excludes $x = 5$.",
    ),
    Question(
        id="cl_1_1",
        objective="Limits",
        level=1,
        question="What is $\\lim_{x \\to 2} (3x + 1)$?",
        options=["6", "7", "5", "The limit does not exist"],
        correct_answer_index=1,
        explanation="For a polynomial the limit at a point is its value there: $3(2) + 1 = 7$.",
    ),
    Question(
        id="cl_2_1",
        objective="Limits",
        level=2,
        question="What is $\\lim_{x \\to +\\infty} \\frac{2x^2 + x}{x^2 + 3}$?",
        options=["0", "1", "2", "$+\\infty$"],
        correct_answer_index=2,
        explanation=(
            "Dividing by $x^2$: $\\lim_{x \\to +\\infty} \\frac{2 + \\frac{1}{x}}{1 + \\frac{3}{x^2}} = 2$."
        ),
    ),
    Question(
        id="cl_3_1",
        objective="Limits",
        level=3,
        question="What is $\\lim_{x \\to 0} \\frac{\\sin(3x)}{x}$?",
        options=["0", "1", "3", "The limit does not exist"],
        correct_answer_index=2,
        explanation="$\\frac{\\sin(3x)}{x} = 3 \\cdot \\frac{\\sin(3x)}{3x}$ and the second factor tends to 1.",
    ),
]


def _objectives_of(bank: Sequence[Question]) -> List[str]:
    return list(dict.fromkeys(q.objective for q in bank))


class StaticObjectiveCatalog:
    def __init__(self, bank: Optional[Sequence[Question]] = None) -> None:
        self._bank = list(bank if bank is not None else DEFAULT_BANK)

    async def list(self) -> ObjectiveList:
        objectives = _objectives_of(self._bank)
        return ObjectiveList(objectives=objectives, total=len(objectives))


class BankTestGenerator:
    def __init__(
        self,
        bank: Optional[Sequence[Question]] = None,
        *,
        rng: Optional[random.Random] = None,
        minutes_per_question: Optional[float] = None,
    ) -> None:
        self._bank = list(bank if bank is not None else DEFAULT_BANK)
        self._rng = rng
        self._minutes_per_question = (
            minutes_per_question if minutes_per_question is not None else settings.minutes_per_question
        )

    async def generate(self, objectives: List[str], questions_per_objective: int, max_level: int) -> GeneratedTest:
        known = set(_objectives_of(self._bank))
        questions: List[Question] = []
        for objective in objectives:
            if objective not in known:
                raise ValueError(f"Unknown objective {objective!r}")
            candidates = sorted(
                (q for q in self._bank if q.objective == objective and q.level <= max_level),
                key=lambda q: (q.level, q.id),
            )
            if len(candidates) < questions_per_objective:
                raise ValueError(
                    f"Only {len(candidates)} questions up to level {max_level} for {objective!r}, "
                    f"{questions_per_objective} requested"
                )
            if self._rng is not None:
                picked = self._rng.sample(candidates, questions_per_objective)
                picked.sort(key=lambda q: (q.level, q.id))
            else:
                picked = candidates[:questions_per_objective]
            questions.extend(picked)
        return GeneratedTest(
            questions=questions,
            total=len(questions),
            estimated_duration_minutes=len(questions) * self._minutes_per_question,
        )


class LocalSubmissionGrader:
    def __init__(self, bank: Optional[Sequence[Question]] = None) -> None:
        self._questions: Dict[str, Question] = {q.id: q for q in (bank if bank is not None else DEFAULT_BANK)}
        self._history: Dict[str, List[Result]] = {}

    async def submit(self, student_id: str, responses: Sequence[ResponseEntry]) -> Result:
        unknown = [r.question_id for r in responses if r.question_id not in self._questions]
        if unknown:
            raise ValueError(f"Unknown question ids: {', '.join(unknown)}")
        questions = [self._questions[r.question_id] for r in responses]
        result = grade_responses(questions, {r.question_id: r.selected_answer for r in responses})
        self._history.setdefault(student_id, []).append(result)
        return result

    def history(self, student_id: str) -> List[Result]:
        """Results graded for a student, oldest first."""
        return list(self._history.get(student_id, []))
