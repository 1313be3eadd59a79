from __future__ import annotations
import json
from datetime import datetime, timezone

import httpx
import pytest

from learning_profile.progress_client import (
	UNEXPECTED_RESPONSE,
	RemoteProgressStore,
	save_progress,
	recover_progress_by_email,
)

BASE = "http://progress.test"
T = "2026-10-19T12:00:00+00:00"
T_PLUS_7D = "2026-10-26T12:00:00+00:00"


def make_store(handler, **kwargs) -> RemoteProgressStore:
	client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	kwargs.setdefault("max_retries", 0)
	kwargs.setdefault("backoff", 0)
	return RemoteProgressStore(BASE, client=client, **kwargs)


def session_body(session_id: str, percentage: int) -> dict:
	return {
		"session_id": session_id,
		"child_name": "Emma",
		"grade": "3rd Grade",
		"current_question": 10,
		"total_questions": 24,
		"progress_percentage": percentage,
		"responses_count": 9,
		"last_saved": T,
		"expires_at": T_PLUS_7D,
		"assignment_token": None,
	}


@pytest.mark.asyncio
async def test_save_returns_server_timestamps(emma) -> None:
	seen = {}

	def handler(request: httpx.Request) -> httpx.Response:
		seen["method"] = request.method
		seen["path"] = request.url.path
		seen["body"] = json.loads(request.content)
		return httpx.Response(200, json={"success": True, "last_saved": T, "expires_at": T_PLUS_7D})

	result = await save_progress(emma, make_store(handler))

	assert result.success is True
	assert result.model_dump(exclude_none=True).keys() == {"success", "last_saved", "expires_at"}
	assert result.last_saved == datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
	assert result.expires_at == datetime(2026, 10, 26, 12, tzinfo=timezone.utc)
	assert seen["method"] == "POST"
	assert seen["path"] == "/api/assessment-progress"
	assert seen["body"]["child_name"] == "Emma"
	assert seen["body"]["current_question"] == 4
	assert {int(k): v for k, v in seen["body"]["responses"].items()} == {1: 4, 2: 5, 3: 3}
	assert "last_saved" not in seen["body"]


@pytest.mark.asyncio
async def test_save_error_body_is_surfaced(emma) -> None:
	store = make_store(lambda r: httpx.Response(400, json={"error": "Missing required fields"}))
	result = await store.save(emma)
	assert result.success is False
	assert result.error == "Missing required fields"


@pytest.mark.asyncio
async def test_save_non_json_error_uses_default(emma) -> None:
	store = make_store(lambda r: httpx.Response(502, text="<html>bad gateway</html>"))
	result = await store.save(emma)
	assert result == result.__class__(success=False, error="Failed to save progress")


@pytest.mark.asyncio
async def test_save_malformed_success_body(emma) -> None:
	store = make_store(lambda r: httpx.Response(200, json={"success": True}))
	result = await store.save(emma)
	assert result.success is False
	assert result.error == UNEXPECTED_RESPONSE


@pytest.mark.asyncio
async def test_network_failure_is_a_result_not_an_exception(emma) -> None:
	def handler(request):
		raise httpx.ConnectError("connection refused", request=request)

	store = make_store(handler)
	assert (await store.save(emma)).error == "Network error while saving progress"
	loaded = await store.load("x")
	assert (loaded.progress, loaded.found, loaded.error) == (None, False, "Network error while loading progress")
	recovered = await store.recover_by_email("parent@example.com")
	assert recovered.progress_sessions == []
	assert recovered.error == "Network error while recovering progress"
	assert (await store.delete("x")).error == "Network error while deleting progress"


@pytest.mark.asyncio
async def test_retries_transport_errors_then_succeeds(emma) -> None:
	calls = []

	def handler(request):
		calls.append(request)
		if len(calls) < 3:
			raise httpx.ReadTimeout("slow", request=request)
		return httpx.Response(200, json={"last_saved": T, "expires_at": T_PLUS_7D})

	result = await make_store(handler, max_retries=2).save(emma)
	assert result.success is True
	assert len(calls) == 3


@pytest.mark.asyncio
async def test_retries_are_bounded(emma) -> None:
	calls = []

	def handler(request):
		calls.append(request)
		return httpx.Response(503, json={"error": "Internal server error"})

	result = await make_store(handler, max_retries=2).save(emma)
	assert result.success is False
	assert result.error == "Internal server error"
	assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(emma) -> None:
	calls = []

	def handler(request):
		calls.append(request)
		return httpx.Response(400, json={"error": "Missing required fields"})

	await make_store(handler, max_retries=3).save(emma)
	assert len(calls) == 1


@pytest.mark.asyncio
async def test_load_found(emma) -> None:
	def handler(request):
		assert request.url.params["session_id"] == emma.session_id
		body = emma.model_dump(mode="json")
		body.update(last_saved=T, expires_at=T_PLUS_7D)
		return httpx.Response(200, json={"progress": body, "found": True})

	result = await make_store(handler).load(emma.session_id)
	assert result.found is True
	assert result.error is None
	assert result.progress.responses == {1: 4, 2: 5, 3: 3}
	assert result.progress.expires_at == datetime(2026, 10, 26, 12, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_load_not_found_is_not_an_error() -> None:
	result = await make_store(lambda r: httpx.Response(200, json={"progress": None, "found": False})).load("gone")
	assert (result.progress, result.found, result.error) == (None, False, None)


@pytest.mark.asyncio
async def test_load_rejects_malformed_progress() -> None:
	store = make_store(lambda r: httpx.Response(200, json={"progress": {"child_name": "Emma"}, "found": True}))
	result = await store.load("x")
	assert result.found is False
	assert result.error == UNEXPECTED_RESPONSE


@pytest.mark.asyncio
async def test_recover_keeps_server_order() -> None:
	seen = {}

	def handler(request):
		seen["body"] = json.loads(request.content)
		seen["path"] = request.url.path
		return httpx.Response(
			200,
			json={"progress_sessions": [session_body("a", 40), session_body("b", 75)], "found": True},
		)

	result = await recover_progress_by_email("parent@example.com", make_store(handler))
	assert seen == {"body": {"parent_email": "parent@example.com"}, "path": "/api/assessment-progress/recover"}
	assert result.found is True
	assert [s.progress_percentage for s in result.progress_sessions] == [40, 75]
	assert [s.session_id for s in result.progress_sessions] == ["a", "b"]


@pytest.mark.asyncio
async def test_recover_error_from_fastapi_detail() -> None:
	store = make_store(lambda r: httpx.Response(400, json={"detail": "Parent email required"}))
	result = await store.recover_by_email("")
	assert result.error == "Parent email required"
	assert result.found is False


@pytest.mark.asyncio
async def test_delete_sends_session_id_in_body() -> None:
	seen = {}

	def handler(request):
		seen["method"] = request.method
		seen["body"] = json.loads(request.content)
		return httpx.Response(200, json={"success": True})

	result = await make_store(handler).delete("abc")
	assert result.success is True
	assert seen == {"method": "DELETE", "body": {"session_id": "abc"}}


@pytest.mark.asyncio
async def test_shared_client_is_not_closed_by_store() -> None:
	client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"success": True})))
	async with RemoteProgressStore(BASE, client=client, max_retries=0):
		pass
	assert client.is_closed is False
	await client.aclose()
