from __future__ import annotations
import logging
import random
import string
import time
from typing import Optional

from .storage import KeyValueStorage, StorageUnavailableError

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "assessment_session_id"
SESSION_ID_PREFIX = "assessment_"

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LEN = 13


def _to_base36(value: int) -> str:
	if value == 0:
		return "0"
	out = []
	while value:
		value, rem = divmod(value, 36)
		out.append(_BASE36[rem])
	return "".join(reversed(out))


def generate_session_id() -> str:
	# Unique enough within one client; not meant as a security token
	millis = int(time.time() * 1000)
	suffix = _to_base36(random.randrange(36 ** _SUFFIX_LEN))
	return f"{SESSION_ID_PREFIX}{millis}_{suffix}"


def get_or_create_session_id(storage: Optional[KeyValueStorage] = None) -> str:
	if storage is None:
		return generate_session_id()
	try:
		session_id = storage.get_item(SESSION_ID_KEY)
		if not session_id:
			session_id = generate_session_id()
			storage.set_item(SESSION_ID_KEY, session_id)
		return session_id
	except StorageUnavailableError as e:
		logger.warning("Session storage unavailable, using a throwaway session id: %s", e)
		return generate_session_id()


def adopt_session_id(session_id: str, storage: Optional[KeyValueStorage] = None) -> None:
	"""Make ``session_id`` the active attempt, e.g. after email recovery."""
	if storage is None:
		return
	try:
		storage.set_item(SESSION_ID_KEY, session_id)
	except StorageUnavailableError as e:
		logger.warning("Could not persist recovered session id: %s", e)


def clear_session_id(storage: Optional[KeyValueStorage] = None) -> None:
	if storage is None:
		return
	try:
		storage.remove_item(SESSION_ID_KEY)
	except StorageUnavailableError as e:
		logger.warning("Could not clear session id: %s", e)
