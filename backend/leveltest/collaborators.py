from __future__ import annotations

from typing import List, Protocol, Sequence

from .models import GeneratedTest, ObjectiveList, ResponseEntry, Result


class ObjectiveCatalog(Protocol):
    async def list(self) -> ObjectiveList: ...


class TestGenerator(Protocol):
    async def generate(
        self,
        objectives: List[str],
        questions_per_objective: int,
        max_level: int,
    ) -> GeneratedTest: ...


class SubmissionGrader(Protocol):
    async def submit(self, student_id: str, responses: Sequence[ResponseEntry]) -> Result: ...
