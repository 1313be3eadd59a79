from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .schemas import (
	AssessmentProgress,
	DeleteResponse,
	DeleteResult,
	ErrorBody,
	LoadResponse,
	LoadResult,
	RecoverResponse,
	RecoverResult,
	SaveResponse,
	SaveResult,
)
from .settings import settings

logger = logging.getLogger(__name__)

PROGRESS_PATH = "/api/assessment-progress"
RECOVER_PATH = "/api/assessment-progress/recover"

UNEXPECTED_RESPONSE = "Unexpected response from progress service"


def _error_message(r: httpx.Response, default: str) -> str:
	try:
		body = ErrorBody.model_validate(r.json())
	except (ValueError, ValidationError):
		return default
	return body.message() or default


def _progress_payload(progress: AssessmentProgress) -> Dict[str, Any]:
	# Timestamps are the server's to assign
	return progress.model_dump(mode="json", exclude_none=True, exclude={"last_saved", "expires_at"})


class RemoteProgressStore:
	"""Client for the progress service.

	Each call is one logical request with its own timeout and a bounded retry
	on transport errors and 5xx responses. Nothing here raises for network or
	server trouble: every operation returns a result object whose ``error``
	says what went wrong.
	"""

	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		timeout: Optional[float] = None,
		max_retries: Optional[int] = None,
		backoff: Optional[float] = None,
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.base_url = (base_url or settings.api_base_url).rstrip("/")
		self.timeout = settings.http_timeout_seconds if timeout is None else timeout
		self.max_retries = settings.http_max_retries if max_retries is None else max(0, max_retries)
		self.backoff = settings.http_backoff_seconds if backoff is None else backoff
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(timeout=self.timeout)

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()

	async def __aenter__(self) -> "RemoteProgressStore":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
		url = f"{self.base_url}{path}"
		attempt = 0
		while True:
			try:
				r = await self._client.request(method, url, timeout=self.timeout, **kwargs)
			except httpx.RequestError as net_err:
				if attempt >= self.max_retries:
					raise
				logger.warning("%s %s failed (%s), retrying", method, path, net_err)
			else:
				if r.status_code < 500 or attempt >= self.max_retries:
					return r
				logger.warning("%s %s returned %s, retrying", method, path, r.status_code)
			await asyncio.sleep(self.backoff * (2 ** attempt))
			attempt += 1

	async def save(self, progress: AssessmentProgress) -> SaveResult:
		try:
			r = await self._request("POST", PROGRESS_PATH, json=_progress_payload(progress))
		except httpx.HTTPError as e:
			logger.error("Error saving progress: %s", e)
			return SaveResult(success=False, error="Network error while saving progress")
		if not r.is_success:
			return SaveResult(success=False, error=_error_message(r, "Failed to save progress"))
		try:
			data = SaveResponse.model_validate(r.json())
		except (ValueError, ValidationError):
			logger.error("Malformed save response: %s", r.text)
			return SaveResult(success=False, error=UNEXPECTED_RESPONSE)
		return SaveResult(success=True, last_saved=data.last_saved, expires_at=data.expires_at)

	async def load(self, session_id: str) -> LoadResult:
		try:
			r = await self._request("GET", PROGRESS_PATH, params={"session_id": session_id})
		except httpx.HTTPError as e:
			logger.error("Error loading progress: %s", e)
			return LoadResult(error="Network error while loading progress")
		if not r.is_success:
			return LoadResult(error=_error_message(r, "Failed to load progress"))
		try:
			data = LoadResponse.model_validate(r.json())
		except (ValueError, ValidationError):
			logger.error("Malformed load response: %s", r.text)
			return LoadResult(error=UNEXPECTED_RESPONSE)
		return LoadResult(progress=data.progress, found=data.found and data.progress is not None)

	async def recover_by_email(self, parent_email: str) -> RecoverResult:
		try:
			r = await self._request("POST", RECOVER_PATH, json={"parent_email": parent_email})
		except httpx.HTTPError as e:
			logger.error("Error recovering progress: %s", e)
			return RecoverResult(error="Network error while recovering progress")
		if not r.is_success:
			return RecoverResult(error=_error_message(r, "Failed to recover progress"))
		try:
			data = RecoverResponse.model_validate(r.json())
		except (ValueError, ValidationError):
			logger.error("Malformed recover response: %s", r.text)
			return RecoverResult(error=UNEXPECTED_RESPONSE)
		return RecoverResult(progress_sessions=data.progress_sessions, found=data.found)

	async def delete(self, session_id: str) -> DeleteResult:
		try:
			r = await self._request("DELETE", PROGRESS_PATH, json={"session_id": session_id})
		except httpx.HTTPError as e:
			logger.error("Error deleting progress: %s", e)
			return DeleteResult(success=False, error="Network error while deleting progress")
		if not r.is_success:
			return DeleteResult(success=False, error=_error_message(r, "Failed to delete progress"))
		try:
			data = DeleteResponse.model_validate(r.json())
		except (ValueError, ValidationError):
			logger.error("Malformed delete response: %s", r.text)
			return DeleteResult(success=False, error=UNEXPECTED_RESPONSE)
		if not data.success:
			return DeleteResult(success=False, error="Failed to delete progress")
		return DeleteResult(success=True)


# One-shot helpers for callers that don't keep a store around

async def save_progress(progress: AssessmentProgress, store: Optional[RemoteProgressStore] = None) -> SaveResult:
	if store is not None:
		return await store.save(progress)
	async with RemoteProgressStore() as own:
		return await own.save(progress)


async def load_progress(session_id: str, store: Optional[RemoteProgressStore] = None) -> LoadResult:
	if store is not None:
		return await store.load(session_id)
	async with RemoteProgressStore() as own:
		return await own.load(session_id)


async def recover_progress_by_email(parent_email: str, store: Optional[RemoteProgressStore] = None) -> RecoverResult:
	if store is not None:
		return await store.recover_by_email(parent_email)
	async with RemoteProgressStore() as own:
		return await own.recover_by_email(parent_email)


async def delete_progress(session_id: str, store: Optional[RemoteProgressStore] = None) -> DeleteResult:
	if store is not None:
		return await store.delete(session_id)
	async with RemoteProgressStore() as own:
		return await own.delete(session_id)
