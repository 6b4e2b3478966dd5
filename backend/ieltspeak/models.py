from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from .db import Base


def _new_session_id() -> str:
	return str(uuid.uuid4())


class PracticeSession(Base):
	__tablename__ = "practice_sessions"
	id = Column(String(36), primary_key=True, default=_new_session_id)
	user_id = Column(String(128), nullable=True, index=True)
	level = Column(String(16), nullable=True)
	# "exam" or "practice"
	mode = Column(String(16), default="practice", nullable=False)
	# Filled once the conversation has been scored
	ielts_rating = Column(JSON, nullable=True)
	toefl_rating = Column(JSON, nullable=True)
	feedback = Column(JSON, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
