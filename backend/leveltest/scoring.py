from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Tuple

from .models import ObjectiveScore, Question, Result


# Inclusive lower bound of each tier, highest first
LEVEL_THRESHOLDS: List[Tuple[float, int]] = [(80.0, 3), (60.0, 2), (0.0, 1)]
LEVEL_NAMES: Dict[int, str] = {1: "beginner", 2: "intermediate", 3: "advanced"}

RECOMMENDATIONS: Dict[int, Dict[str, object]] = {
    3: {
        "headline": "Advanced level - excellent command of the material",
        "advice": (
            "You show a solid understanding of the concepts. "
            "You can move straight on to complex exercises and advanced challenges."
        ),
    },
    2: {
        "headline": "Intermediate level - good potential",
        "advice": (
            "Your foundations are good. A few targeted reviews will let you master "
            "these concepts and move up to the advanced level."
        ),
    },
    1: {
        "headline": "Beginner level - a great starting point",
        "advice": (
            "You are building your mathematical foundations. Starting from the basic "
            "concepts, you will steadily develop a solid understanding."
        ),
    },
}


def compute_level_from_score(score_percentage: float) -> int:
    if not 0 <= score_percentage <= 100:
        raise ValueError(f"score_percentage must be within 0..100, got {score_percentage}")
    for threshold, level in LEVEL_THRESHOLDS:
        if score_percentage >= threshold:
            return level
    return LEVEL_THRESHOLDS[-1][1]


def level_name(level: int) -> str:
    return LEVEL_NAMES.get(level, "unknown")


def format_feedback(score_percentage: float, level: int) -> str:
    return f"Score: {score_percentage:.1f}% - level {level} ({level_name(level)}) recommended"


def recommendation_for(level: int) -> Dict[str, object]:
    """Headline, advice and action plan shown next to a recommended level."""
    tier = RECOMMENDATIONS.get(level, RECOMMENDATIONS[1])
    return {
        "level": level,
        "level_name": level_name(level),
        "headline": tier["headline"],
        "advice": tier["advice"],
        "action_plan": [
            f'Your level has been set to "{level_name(level)}"',
            "Start with exercises suited to your level",
            "Focus on the objectives where you struggled the most",
        ],
    }


def objective_percentage(score: ObjectiveScore) -> float:
    if score.total == 0:
        return 0.0
    return 100.0 * score.correct / score.total


def grade_responses(questions: Sequence[Question], responses: Mapping[str, int]) -> Result:
    """Score a full response set against the questions' correct answers.

    This is the local counterpart of the remote grader: one point per question
    whose selected option is the correct one, the level derived from the score
    thresholds, and the breakdown keyed by the objectives that own questions,
    in the order they first appear.
    """
    if not questions:
        raise ValueError("cannot grade an empty question set")
    breakdown: Dict[str, List[int]] = {}
    correct = 0
    for q in questions:
        counts = breakdown.setdefault(q.objective, [0, 0])
        counts[1] += 1
        if responses.get(q.id) == q.correct_answer_index:
            counts[0] += 1
            correct += 1
    total = len(questions)
    score = 100.0 * correct / total
    level = compute_level_from_score(score)
    return Result(
        score_percentage=score,
        correct_answers=correct,
        total_questions=total,
        recommended_level=level,
        objective_scores={
            objective: ObjectiveScore(correct=c, total=t) for objective, (c, t) in breakdown.items()
        },
        detailed_feedback=format_feedback(score, level),
    )
