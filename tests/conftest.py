from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from leveltest.engine import LevelAssessmentEngine  # noqa: E402
from leveltest.local import BankTestGenerator, LocalSubmissionGrader, StaticObjectiveCatalog  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock: FakeClock) -> Iterator[LevelAssessmentEngine]:
    yield LevelAssessmentEngine(
        "student_123",
        StaticObjectiveCatalog(),
        BankTestGenerator(),
        LocalSubmissionGrader(),
        clock=clock,
        minutes_per_question=2,
    )
