from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Optional, Union

Timestamp = Union[str, datetime]

_HOUR = 60 * 60
_DAY = 24 * _HOUR


def _parse(value: Timestamp) -> datetime:
	if isinstance(value, datetime):
		dt = value
	else:
		# fromisoformat on older interpreters rejects the trailing Z
		text = value.strip()
		if text.endswith("Z"):
			text = text[:-1] + "+00:00"
		dt = datetime.fromisoformat(text)
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt


def _plural(n: int, unit: str) -> str:
	return f"{n} {unit}{'' if n == 1 else 's'}"


def format_time_remaining(expires_at: Timestamp, now: Optional[datetime] = None) -> str:
	current = _parse(now) if now is not None else datetime.now(timezone.utc)
	diff = (_parse(expires_at) - current).total_seconds()
	if diff <= 0:
		return "Expired"
	days = int(diff // _DAY)
	hours = int((diff % _DAY) // _HOUR)
	if days > 0:
		return _plural(days, "day")
	if hours > 0:
		return _plural(hours, "hour")
	return "Less than 1 hour"


def format_last_saved(last_saved: Timestamp, now: Optional[datetime] = None) -> str:
	current = _parse(now) if now is not None else datetime.now(timezone.utc)
	elapsed = (current - _parse(last_saved)).total_seconds()
	if elapsed < 60:
		return "just now"
	if elapsed < _HOUR:
		return f"{_plural(int(elapsed // 60), 'minute')} ago"
	if elapsed < _DAY:
		return f"{_plural(int(elapsed // _HOUR), 'hour')} ago"
	return f"{_plural(int(elapsed // _DAY), 'day')} ago"


def progress_percentage(current_question: int, total_questions: int) -> int:
	if total_questions <= 0:
		return 0
	# half-up, so 12.5 shows as 13
	return math.floor(current_question / total_questions * 100 + 0.5)
