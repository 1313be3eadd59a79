from __future__ import annotations
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..cleanup import purge_expired_progress
from ..db import get_db
from ..formatting import progress_percentage
from ..models import AssessmentProgressRow
from ..settings import settings

router = APIRouter(prefix="/api/assessment-progress", tags=["assessment_progress"])

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# Fields are optional here so missing ones get our 400 instead of a 422
class SaveProgressRequest(BaseModel):
	session_id: Optional[str] = None
	child_name: Optional[str] = None
	grade: Optional[str] = None
	responses: Optional[Dict[int, float]] = None
	current_question: Optional[int] = None
	parent_email: Optional[str] = None
	assignment_token: Optional[str] = None


class DeleteProgressRequest(BaseModel):
	session_id: Optional[str] = None


class RecoverRequest(BaseModel):
	parent_email: Optional[str] = None


def _normalize_email(value: Optional[str]) -> Optional[str]:
	# Stored and looked up in the same form so recovery finds what was saved
	email = (value or "").strip()
	return email or None


def _utc(value: datetime) -> datetime:
	# Stored naive, always UTC
	return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _load_responses(row: AssessmentProgressRow) -> Dict[str, Any]:
	try:
		data = json.loads(row.responses_json or "{}")
	except ValueError:
		return {}
	return data if isinstance(data, dict) else {}


def _row_to_progress(row: AssessmentProgressRow) -> Dict[str, Any]:
	return {
		"session_id": row.session_id,
		"child_name": row.child_name,
		"grade": row.grade,
		"responses": _load_responses(row),
		"current_question": row.current_question,
		"parent_email": row.parent_email,
		"assignment_token": row.assignment_token,
		"last_saved": _utc(row.updated_at),
		"expires_at": _utc(row.expires_at),
	}


def _row_to_session(row: AssessmentProgressRow) -> Dict[str, Any]:
	total = settings.total_questions
	current = min(row.current_question, total)
	return {
		"session_id": row.session_id,
		"child_name": row.child_name,
		"grade": row.grade,
		"current_question": current,
		"total_questions": total,
		"progress_percentage": progress_percentage(current, total),
		"responses_count": len(_load_responses(row)),
		"last_saved": _utc(row.updated_at),
		"expires_at": _utc(row.expires_at),
		"assignment_token": row.assignment_token,
	}


def _compact_responses(responses: Optional[Dict[int, float]]) -> Dict[str, Any]:
	out: Dict[str, Any] = {}
	for key, value in (responses or {}).items():
		out[str(key)] = int(value) if float(value).is_integer() else value
	return out


@router.post("")
def save_progress(req: SaveProgressRequest, db: Session = Depends(get_db)):
	if not req.session_id or not req.child_name or not req.grade:
		raise HTTPException(status_code=400, detail="Missing required fields")
	now = datetime.utcnow()
	expires_at = now + timedelta(days=settings.progress_ttl_days)
	try:
		row = db.get(AssessmentProgressRow, req.session_id)
		if row is None:
			row = AssessmentProgressRow(session_id=req.session_id, created_at=now)
		row.child_name = req.child_name
		row.grade = req.grade
		row.responses_json = json.dumps(_compact_responses(req.responses))
		row.current_question = req.current_question or 1
		row.parent_email = _normalize_email(req.parent_email)
		row.assignment_token = req.assignment_token or None
		row.expires_at = expires_at
		row.updated_at = now
		db.add(row)
		db.commit()
		db.refresh(row)
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Error saving progress for %s", req.session_id)
		raise HTTPException(status_code=500, detail="Failed to save progress")
	return {
		"success": True,
		"session_id": row.session_id,
		"current_question": row.current_question,
		"last_saved": _utc(row.updated_at),
		"expires_at": _utc(row.expires_at),
	}


@router.get("")
def get_progress(session_id: Optional[str] = None, parent_email: Optional[str] = None, db: Session = Depends(get_db)):
	parent_email = _normalize_email(parent_email)
	if not session_id and not parent_email:
		raise HTTPException(status_code=400, detail="Session ID or parent email required")
	now = datetime.utcnow()
	try:
		purge_expired_progress(db, now)
		query = db.query(AssessmentProgressRow).filter(AssessmentProgressRow.expires_at > now)
		if session_id:
			row = query.filter(AssessmentProgressRow.session_id == session_id).first()
		else:
			row = (
				query.filter(AssessmentProgressRow.parent_email == parent_email)
				.order_by(AssessmentProgressRow.updated_at.desc())
				.first()
			)
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Error fetching progress")
		raise HTTPException(status_code=500, detail="Failed to fetch progress")
	progress = _row_to_progress(row) if row is not None else None
	return {"progress": progress, "found": progress is not None}


@router.delete("")
def delete_progress(req: DeleteProgressRequest, db: Session = Depends(get_db)):
	if not req.session_id:
		raise HTTPException(status_code=400, detail="Session ID required")
	try:
		db.query(AssessmentProgressRow).filter(AssessmentProgressRow.session_id == req.session_id).delete()
		db.commit()
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Error deleting progress for %s", req.session_id)
		raise HTTPException(status_code=500, detail="Failed to delete progress")
	return {"success": True}


@router.post("/recover")
def recover_progress(req: RecoverRequest, db: Session = Depends(get_db)):
	email = _normalize_email(req.parent_email)
	if not email:
		raise HTTPException(status_code=400, detail="Parent email required")
	if not EMAIL_RE.match(email):
		raise HTTPException(status_code=400, detail="Please enter a valid email address")
	now = datetime.utcnow()
	try:
		purge_expired_progress(db, now)
		rows = (
			db.query(AssessmentProgressRow)
			.filter(AssessmentProgressRow.parent_email == email)
			.filter(AssessmentProgressRow.expires_at > now)
			.order_by(AssessmentProgressRow.updated_at.desc())
			.all()
		)
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Error fetching progress by email")
		raise HTTPException(status_code=500, detail="Failed to fetch progress")
	sessions = [_row_to_session(row) for row in rows]
	return {"progress_sessions": sessions, "found": len(sessions) > 0}
