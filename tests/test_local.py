import asyncio
import random

import pytest

from leveltest.local import BankTestGenerator, DEFAULT_BANK, LocalSubmissionGrader, StaticObjectiveCatalog
from leveltest.models import ResponseEntry


def test_catalog_lists_bank_objectives_in_order() -> None:
    listing = asyncio.run(StaticObjectiveCatalog().list())
    assert listing.objectives == ["Domain of definition", "Limits"]
    assert listing.total == 2


def test_generator_takes_easiest_questions_per_objective() -> None:
    generated = asyncio.run(BankTestGenerator(minutes_per_question=2).generate(["Limits", "Domain of definition"], 2, 3))
    assert [q.id for q in generated.questions] == ["cl_1_1", "cl_2_1", "dd_1_1", "dd_2_1"]
    assert generated.total == 4
    assert generated.estimated_duration_minutes == 8


def test_generator_respects_max_level() -> None:
    generated = asyncio.run(BankTestGenerator().generate(["Limits"], 1, 1))
    assert [q.level for q in generated.questions] == [1]
    with pytest.raises(ValueError):
        asyncio.run(BankTestGenerator().generate(["Limits"], 2, 1))


def test_generator_rejects_unknown_objective() -> None:
    with pytest.raises(ValueError):
        asyncio.run(BankTestGenerator().generate(["Derivatives"], 1, 3))


def test_seeded_generator_keeps_per_objective_counts() -> None:
    generator = BankTestGenerator(rng=random.Random(7))
    generated = asyncio.run(generator.generate(["Domain of definition", "Limits"], 2, 3))
    objectives = [q.objective for q in generated.questions]
    assert objectives == ["Domain of definition"] * 2 + ["Limits"] * 2
    for objective in ("Domain of definition", "Limits"):
        levels = [q.level for q in generated.questions if q.objective == objective]
        assert levels == sorted(levels)


def test_grader_scores_against_bank_and_keeps_history() -> None:
    grader = LocalSubmissionGrader()
    responses = [
        ResponseEntry(question_id="dd_1_1", selected_answer=0),
        ResponseEntry(question_id="cl_3_1", selected_answer=1),
    ]
    result = asyncio.run(grader.submit("s1", responses))
    assert result.correct_answers == 1
    assert result.score_percentage == 50
    assert result.recommended_level == 1
    assert grader.history("s1") == [result]
    assert grader.history("s2") == []


def test_grader_rejects_unknown_question() -> None:
    with pytest.raises(ValueError):
        asyncio.run(LocalSubmissionGrader().submit("s1", [ResponseEntry(question_id="zz", selected_answer=0)]))


def test_bank_correct_answers_point_at_existing_options() -> None:
    for question in DEFAULT_BANK:
        assert 0 <= question.correct_answer_index < len(question.options)
        assert question.explanation
