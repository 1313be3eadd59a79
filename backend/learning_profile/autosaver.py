from __future__ import annotations
import asyncio
import logging
import time
from typing import Callable, Optional

from .local_store import LocalProgressStore
from .progress_client import RemoteProgressStore
from .schemas import AssessmentProgress, SaveResult
from .settings import settings

logger = logging.getLogger(__name__)

IDLE = "idle"
PENDING = "pending"
SAVING = "saving"


class ProgressAutoSaver:
	"""Debounced autosave for one assessment attempt.

	Every ``save_with_debounce`` call replaces the pending timer, so a burst of
	answers turns into a single save of the latest payload ``save_delay``
	seconds after the burst ends. A timer that fires less than
	``min_save_interval`` seconds after the last successful save is skipped;
	the payload is kept and written by the next fire or by ``flush()``.

	Create one per attempt and call ``cleanup()`` when the attempt's owner goes
	away so no stray save fires afterwards.
	"""

	def __init__(
		self,
		remote: RemoteProgressStore,
		*,
		local: Optional[LocalProgressStore] = None,
		save_delay: Optional[float] = None,
		min_save_interval: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.remote = remote
		self.local = local
		self.save_delay = settings.autosave_delay_seconds if save_delay is None else save_delay
		self.min_save_interval = (
			settings.autosave_min_interval_seconds if min_save_interval is None else min_save_interval
		)
		self._clock = clock
		self._timer: Optional[asyncio.Task] = None
		self._last_save_time: Optional[float] = None
		self._unsaved: Optional[AssessmentProgress] = None
		self.state = IDLE

	@property
	def has_unsaved(self) -> bool:
		return self._unsaved is not None

	def save_with_debounce(self, progress: AssessmentProgress) -> None:
		"""Arm (or re-arm) the save timer. Must be called from a running loop."""
		self._cancel_timer()
		self._unsaved = progress
		self.state = PENDING
		self._timer = asyncio.get_running_loop().create_task(self._fire(progress))

	async def _fire(self, progress: AssessmentProgress) -> None:
		await asyncio.sleep(self.save_delay)
		# Past this point the save is in flight; re-arming or cleanup won't stop it
		if self._timer is asyncio.current_task():
			self._timer = None
		now = self._clock()
		if self._last_save_time is not None and now - self._last_save_time < self.min_save_interval:
			logger.debug("Skipping autosave for %s, last save %.1fs ago", progress.session_id, now - self._last_save_time)
			self.state = IDLE
			return
		self.state = SAVING
		try:
			await self._persist(progress, now)
		except Exception:
			logger.exception("Autosave for %s failed unexpectedly", progress.session_id)
		finally:
			if self._timer is None:
				self.state = IDLE

	async def _persist(self, progress: AssessmentProgress, started: float) -> SaveResult:
		result = await self.remote.save(progress)
		if result.success:
			self._last_save_time = started
			if self._unsaved is progress:
				self._unsaved = None
			return result
		logger.warning("Autosave for %s failed: %s", progress.session_id, result.error)
		if self.local is not None:
			self.local.save(progress)
		return result

	async def flush(self) -> Optional[SaveResult]:
		"""Write the latest unsaved payload now, ignoring the minimum interval."""
		self._cancel_timer()
		progress = self._unsaved
		if progress is None:
			self.state = IDLE
			return None
		self.state = SAVING
		try:
			return await self._persist(progress, self._clock())
		finally:
			self.state = IDLE

	def _cancel_timer(self) -> None:
		if self._timer is not None:
			self._timer.cancel()
			self._timer = None

	def cleanup(self) -> None:
		self._cancel_timer()
		self.state = IDLE
