"""Offline fallback for assessment progress.

Best effort only: nothing here raises on storage trouble, callers just get
``None`` back and carry on.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from .schemas import AssessmentProgress
from .settings import settings
from .storage import JsonFileStorage, KeyValueStorage, StorageUnavailableError

logger = logging.getLogger(__name__)

KEY_PREFIX = "assessment_progress_"
LOCAL_TTL = timedelta(days=7)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def progress_key(session_id: str) -> str:
	return f"{KEY_PREFIX}{session_id}"


class LocalProgressStore:
	def __init__(
		self,
		storage: KeyValueStorage,
		*,
		ttl: timedelta = LOCAL_TTL,
		now: Callable[[], datetime] = _utcnow,
	) -> None:
		self.storage = storage
		self.ttl = ttl
		self._now = now

	def _is_expired(self, progress: AssessmentProgress, now: datetime) -> bool:
		if progress.expires_at is None:
			return False
		return _as_utc(progress.expires_at) <= now

	def save(self, progress: AssessmentProgress) -> Optional[AssessmentProgress]:
		now = self._now()
		stamped = progress.model_copy(update={"last_saved": now, "expires_at": now + self.ttl})
		try:
			self.storage.set_item(progress_key(progress.session_id), stamped.model_dump_json())
		except StorageUnavailableError as e:
			logger.error("Error saving progress locally: %s", e)
			return None
		return stamped

	def load(self, session_id: str) -> Optional[AssessmentProgress]:
		key = progress_key(session_id)
		try:
			raw = self.storage.get_item(key)
		except StorageUnavailableError as e:
			logger.error("Error loading progress locally: %s", e)
			return None
		if raw is None:
			return None
		try:
			progress = AssessmentProgress.model_validate_json(raw)
		except ValidationError:
			logger.warning("Discarding corrupted local progress for %s", session_id)
			self.delete(session_id)
			return None
		if self._is_expired(progress, self._now()):
			self.delete(session_id)
			return None
		return progress

	def delete(self, session_id: str) -> None:
		try:
			self.storage.remove_item(progress_key(session_id))
		except StorageUnavailableError as e:
			logger.error("Error deleting progress locally: %s", e)

	def cleanup(self) -> int:
		"""Drop expired and unreadable entries. Returns how many were removed."""
		removed = 0
		now = self._now()
		try:
			keys = [k for k in self.storage.keys() if k.startswith(KEY_PREFIX)]
			for key in keys:
				raw = self.storage.get_item(key)
				if raw is None:
					continue
				try:
					progress = AssessmentProgress.model_validate_json(raw)
				except ValidationError:
					# corrupted
					self.storage.remove_item(key)
					removed += 1
					continue
				if self._is_expired(progress, now):
					self.storage.remove_item(key)
					removed += 1
		except StorageUnavailableError as e:
			logger.error("Error cleaning up local progress: %s", e)
		return removed


def open_local_store(path: Optional[Path] = None) -> LocalProgressStore:
	"""File-backed store at ``LOCAL_PROGRESS_PATH`` unless a path is given."""
	return LocalProgressStore(JsonFileStorage(path or settings.local_progress_path))
