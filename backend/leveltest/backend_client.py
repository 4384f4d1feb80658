from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import BackendError
from .models import GeneratedTest, ObjectiveList, ResponseEntry, Result
from .settings import settings

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)

OBJECTIVES_PATH = "/level-test/objectives"
GENERATE_PATH = "/level-test/generate"
SUBMIT_PATH = "/level-test/submit"


class TutoringBackendClient:
	"""Objective catalog, test generator and grader backed by the tutoring API.

	Every payload is validated into the ``leveltest.models`` schema here, so
	alternative field names used by different backend versions are resolved
	once at this boundary.
	"""

	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		timeout: Optional[float] = None,
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.base_url = (base_url or settings.api_base_url).rstrip("/")
		self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(
			base_url=self.base_url,
			timeout=self.timeout,
			headers={"Content-Type": "application/json"},
		)

	async def list(self) -> ObjectiveList:
		data = await self._request("GET", OBJECTIVES_PATH)
		if isinstance(data, list):
			# Older backends answer with the bare list
			data = {"objectives": data}
		return self._parse(ObjectiveList, data, OBJECTIVES_PATH)

	async def generate(self, objectives: List[str], questions_per_objective: int, max_level: int) -> GeneratedTest:
		payload: Dict[str, Any] = {
			"objectives": list(objectives),
			"questions_per_objective": questions_per_objective,
			"max_level_per_objective": max_level,
		}
		data = await self._request("POST", GENERATE_PATH, json=payload)
		return self._parse(GeneratedTest, data, GENERATE_PATH)

	async def submit(self, student_id: str, responses: Sequence[ResponseEntry]) -> Result:
		payload: Dict[str, Any] = {
			"student_id": student_id,
			"responses": [r.model_dump() for r in responses],
		}
		data = await self._request("POST", SUBMIT_PATH, json=payload)
		return self._parse(Result, data, SUBMIT_PATH)

	async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Any:
		try:
			r = await self._client.request(method, self._url(path), json=json)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			status = http_err.response.status_code
			logger.warning("%s %s failed with HTTP %d", method, path, status)
			raise BackendError(f"{method} {path} returned HTTP {status}", status_code=status) from http_err
		except httpx.RequestError as net_err:
			logger.warning("%s %s failed: %s", method, path, net_err)
			raise BackendError(f"{method} {path} failed: {net_err}") from net_err
		try:
			return r.json()
		except ValueError as err:
			raise BackendError(f"{method} {path} returned invalid JSON: {r.text[:200]}") from err

	def _url(self, path: str) -> str:
		# Injected clients may not carry our base_url
		if self._owns_client:
			return path
		return f"{self.base_url}{path}"

	@staticmethod
	def _parse(model: Type[_M], data: Any, path: str) -> _M:
		try:
			return model.model_validate(data)
		except ValidationError as err:
			raise BackendError(f"Unexpected payload from {path}: {err}") from err

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()
