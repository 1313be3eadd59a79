from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from .db import Base


class AssessmentProgressRow(Base):
	__tablename__ = "assessment_progress"
	# One live row per in-progress attempt
	session_id = Column(String(128), primary_key=True, index=True)
	child_name = Column(String(256), nullable=False)
	grade = Column(String(64), nullable=False)
	responses_json = Column(Text, nullable=False, default="{}")  # JSON object keyed by question index
	current_question = Column(Integer, default=1, nullable=False)
	parent_email = Column(String(256), nullable=True, index=True)
	assignment_token = Column(String(128), nullable=True)
	expires_at = Column(DateTime, nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
