from __future__ import annotations
import logging
from typing import Optional

from .local_store import LocalProgressStore
from .progress_client import RemoteProgressStore
from .schemas import AssessmentProgress, ProgressSession, RecoverResult
from .session_identity import adopt_session_id
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class RecoveryFlow:
	"""Cross-device resume: list saved attempts for an email, then pick one."""

	def __init__(
		self,
		remote: RemoteProgressStore,
		*,
		storage: Optional[KeyValueStorage] = None,
		local: Optional[LocalProgressStore] = None,
	) -> None:
		self.remote = remote
		self.storage = storage
		self.local = local

	async def recover_progress_by_email(self, email: str) -> RecoverResult:
		# Address validation belongs to the caller (and the server)
		return await self.remote.recover_by_email(email)

	async def resume(self, session: ProgressSession | str) -> Optional[AssessmentProgress]:
		session_id = session if isinstance(session, str) else session.session_id
		adopt_session_id(session_id, self.storage)
		result = await self.remote.load(session_id)
		if result.found and result.progress is not None:
			return result.progress
		if result.error:
			logger.info("Remote load of %s failed (%s), trying local copy", session_id, result.error)
		if self.local is not None:
			return self.local.load(session_id)
		return None
