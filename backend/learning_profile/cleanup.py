from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AssessmentProgressRow


def purge_expired_progress(db: Session, now: Optional[datetime] = None) -> int:
	threshold = now or datetime.utcnow()
	# Rows are recoverable until expires_at; anything at or past it is gone
	res = db.execute(delete(AssessmentProgressRow).where(AssessmentProgressRow.expires_at <= threshold))
	db.commit()
	return res.rowcount or 0
