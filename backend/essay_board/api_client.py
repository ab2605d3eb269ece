"""Async HTTP adapter the session core uses to reach the board service."""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import AuthenticationError, StorageNotConfiguredError, StoreError
from .schemas import (
	AssistantReply,
	Comment,
	CommentCreate,
	Essay,
	EssayCreate,
	EssayUpdate,
	TopicSuggestions,
	WritingSnapshot,
)
from .settings import settings
from .topic_advisor import ASSISTANT_FAILED_MESSAGE, REFINE_FAILED_MESSAGE

logger = logging.getLogger(__name__)


class EssayApiClient:
	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		transport: Optional[httpx.AsyncBaseTransport] = None,
		timeout: float = 30,
	) -> None:
		self.base_url = (base_url or settings.api_base_url).rstrip("/")
		self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)
		self._token: Optional[str] = None

	async def __aenter__(self) -> "EssayApiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def aclose(self) -> None:
		await self._client.aclose()

	def set_token(self, token: Optional[str]) -> None:
		self._token = token

	async def _request(self, method: str, path: str, *, headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> httpx.Response:
		merged = dict(headers or {})
		if self._token:
			merged["Authorization"] = f"Bearer {self._token}"
		try:
			r = await self._client.request(method, path, headers=merged, **kwargs)
		except httpx.RequestError as net_err:
			raise StoreError(f"{method} {path} failed: {net_err}") from net_err
		if r.status_code == 503:
			body = _json_or_empty(r)
			if body.get("setup_required"):
				raise StorageNotConfiguredError(str(body.get("detail") or "storage is not configured"))
		return r

	def _raise_for_status(self, r: httpx.Response) -> None:
		if r.is_success:
			return
		detail = _json_or_empty(r).get("detail") or r.text
		raise StoreError(str(detail), status_code=r.status_code)

	async def list_essays(self) -> List[Essay]:
		r = await self._request("GET", "/essays")
		self._raise_for_status(r)
		return [Essay.model_validate(item) for item in r.json()]

	async def create_essay(self, data: EssayCreate) -> Essay:
		r = await self._request("POST", "/essays", json=data.model_dump(mode="json"))
		self._raise_for_status(r)
		return Essay.model_validate(r.json())

	async def find_essay_by_code(self, code: str) -> Optional[Essay]:
		r = await self._request("GET", f"/essays/by-code/{code}")
		if r.status_code == 404:
			return None
		self._raise_for_status(r)
		return Essay.model_validate(r.json())

	async def update_essay(self, code: str, changes: EssayUpdate) -> Essay:
		r = await self._request(
			"PUT",
			f"/essays/by-code/{code}",
			json=changes.model_dump(mode="json", exclude_none=True),
		)
		self._raise_for_status(r)
		return Essay.model_validate(r.json())

	async def delete_essay(self, essay_id: str, *, edit_code: Optional[str] = None) -> bool:
		headers = {"X-Edit-Code": edit_code} if edit_code else None
		r = await self._request("DELETE", f"/essays/{essay_id}", headers=headers)
		self._raise_for_status(r)
		return bool(_json_or_empty(r).get("success"))

	async def increment_like_counter(self, essay_id: str) -> Essay:
		r = await self._request("POST", f"/essays/{essay_id}/like")
		self._raise_for_status(r)
		return Essay.model_validate(r.json())

	async def list_comments(self, essay_id: str) -> List[Comment]:
		r = await self._request("GET", f"/essays/{essay_id}/comments")
		self._raise_for_status(r)
		return [Comment.model_validate(item) for item in r.json()]

	async def create_comment(self, essay_id: str, comment: CommentCreate) -> Comment:
		r = await self._request("POST", f"/essays/{essay_id}/comments", json=comment.model_dump(mode="json"))
		self._raise_for_status(r)
		return Comment.model_validate(r.json())

	async def login_teacher(self, password: str) -> str:
		r = await self._request("POST", "/auth/teacher", json={"password": password})
		if r.status_code == 401:
			raise AuthenticationError(str(_json_or_empty(r).get("detail") or "invalid password"), status_code=401)
		self._raise_for_status(r)
		return r.json()["access_token"]

	async def refine_topic(self, raw_topic: str) -> TopicSuggestions:
		# Same contract as TopicAdvisor: a failed round trip still yields a usable value
		try:
			r = await self._request("POST", "/ai/topic", json={"topic": raw_topic})
			self._raise_for_status(r)
			return TopicSuggestions.model_validate(r.json())
		except Exception:
			logger.exception("Topic refinement request failed")
			return TopicSuggestions(refined_topic=REFINE_FAILED_MESSAGE, suggestions=[])

	async def ask_assistant(self, snapshot: WritingSnapshot, question: str) -> str:
		try:
			r = await self._request(
				"POST",
				"/ai/assistant",
				json={"snapshot": snapshot.model_dump(mode="json"), "question": question},
			)
			self._raise_for_status(r)
			return AssistantReply.model_validate(r.json()).reply
		except Exception:
			logger.exception("Assistant request failed")
			return ASSISTANT_FAILED_MESSAGE


def _json_or_empty(r: httpx.Response) -> Dict[str, Any]:
	try:
		data = r.json()
	except ValueError:
		return {}
	return data if isinstance(data, dict) else {}
