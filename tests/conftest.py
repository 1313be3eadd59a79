from __future__ import annotations
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from learning_profile.db import Base, get_db
from learning_profile.main import app
from learning_profile.schemas import (
	AssessmentProgress,
	LoadResult,
	ProgressSession,
	RecoverResult,
	SaveResult,
)
from learning_profile.storage import MemoryStorage


@pytest.fixture
def storage() -> MemoryStorage:
	return MemoryStorage()


@pytest.fixture
def emma() -> AssessmentProgress:
	return AssessmentProgress(
		session_id="assessment_1700000000000_abc123",
		child_name="Emma",
		grade="3rd Grade",
		responses={1: 4, 2: 5, 3: 3},
		current_question=4,
		parent_email="parent@example.com",
	)


@pytest.fixture
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	yield factory
	engine.dispose()


@pytest.fixture
def api_app(session_factory):
	def _get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = _get_db
	try:
		yield app
	finally:
		app.dependency_overrides.clear()


@pytest.fixture
def api_client(api_app) -> TestClient:
	return TestClient(api_app)


class FakeRemote:
	"""Stands in for RemoteProgressStore; records every call."""

	def __init__(self) -> None:
		self.saved: List[AssessmentProgress] = []
		self.loaded: List[str] = []
		self.save_result = SaveResult(success=True)
		self.load_result = LoadResult()
		self.recover_result = RecoverResult()
		self.recovered_emails: List[str] = []

	async def save(self, progress: AssessmentProgress) -> SaveResult:
		self.saved.append(progress)
		return self.save_result

	async def load(self, session_id: str) -> LoadResult:
		self.loaded.append(session_id)
		return self.load_result

	async def recover_by_email(self, parent_email: str) -> RecoverResult:
		self.recovered_emails.append(parent_email)
		return self.recover_result


@pytest.fixture
def fake_remote() -> FakeRemote:
	return FakeRemote()


def make_session(session_id: str, percentage: int, current: int = 1) -> ProgressSession:
	return ProgressSession(
		session_id=session_id,
		child_name="Emma",
		grade="3rd Grade",
		current_question=current,
		total_questions=24,
		progress_percentage=percentage,
		responses_count=max(0, current - 1),
		last_saved="2026-10-18T10:00:00+00:00",
		expires_at="2026-10-25T10:00:00+00:00",
	)
