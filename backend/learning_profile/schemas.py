from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AssessmentProgress(BaseModel):
	"""One in-progress assessment attempt, keyed by ``session_id``."""

	model_config = ConfigDict(extra="ignore")

	session_id: str
	child_name: str
	grade: str
	# question index -> answer value
	responses: Dict[int, Union[int, float]] = Field(default_factory=dict)
	current_question: int = Field(default=1, ge=1)
	parent_email: Optional[str] = None
	assignment_token: Optional[str] = None
	last_saved: Optional[datetime] = None
	expires_at: Optional[datetime] = None


class ProgressSession(BaseModel):
	"""Read-only summary of a saved attempt, as listed by email recovery."""

	model_config = ConfigDict(extra="ignore")

	session_id: str
	child_name: str
	grade: str
	current_question: int
	total_questions: int
	progress_percentage: int
	responses_count: int
	last_saved: datetime
	expires_at: datetime
	assignment_token: Optional[str] = None


# ---- Results handed back to callers; failures are values, not exceptions ----

class SaveResult(BaseModel):
	success: bool
	error: Optional[str] = None
	last_saved: Optional[datetime] = None
	expires_at: Optional[datetime] = None


class LoadResult(BaseModel):
	progress: Optional[AssessmentProgress] = None
	found: bool = False
	error: Optional[str] = None


class RecoverResult(BaseModel):
	progress_sessions: List[ProgressSession] = Field(default_factory=list)
	found: bool = False
	error: Optional[str] = None


class DeleteResult(BaseModel):
	success: bool
	error: Optional[str] = None


# ---- Wire shapes returned by the progress service ----

class SaveResponse(BaseModel):
	model_config = ConfigDict(extra="ignore")

	last_saved: datetime
	expires_at: datetime


class LoadResponse(BaseModel):
	model_config = ConfigDict(extra="ignore")

	progress: Optional[AssessmentProgress] = None
	found: bool


class RecoverResponse(BaseModel):
	model_config = ConfigDict(extra="ignore")

	progress_sessions: List[ProgressSession]
	found: bool


class DeleteResponse(BaseModel):
	model_config = ConfigDict(extra="ignore")

	success: bool


class ErrorBody(BaseModel):
	model_config = ConfigDict(extra="ignore")

	error: Optional[str] = None
	# FastAPI's default error shape
	detail: Any = None

	def message(self) -> Optional[str]:
		if self.error:
			return self.error
		if isinstance(self.detail, str) and self.detail:
			return self.detail
		return None
