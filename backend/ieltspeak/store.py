from __future__ import annotations
import time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session

from .db import get_db
from .models import PracticeSession
from .schemas import Evaluation


class SessionStore:
	def __init__(self, db: Session) -> None:
		self.db = db

	def create(self, level: str, user_id: Optional[str] = None, mode: str = "practice") -> PracticeSession:
		row = PracticeSession(level=level, user_id=user_id, mode=mode)
		self.db.add(row)
		self.db.commit()
		self.db.refresh(row)
		return row

	def get(self, session_id: str) -> Optional[PracticeSession]:
		return self.db.get(PracticeSession, session_id)

	def save_evaluation(self, session_id: str, level: Optional[str], evaluation: Evaluation) -> PracticeSession:
		# One evaluation per session: overwrite whatever was stored before
		row = self.get(session_id)
		if row is None:
			row = PracticeSession(id=session_id, level=level)
		elif level and not row.level:
			row.level = level
		row.ielts_rating = evaluation.ielts_ratings.model_dump()
		row.toefl_rating = evaluation.toefl_ratings.model_dump()
		row.feedback = evaluation.feedback.model_dump()
		try:
			self.db.add(row)
			self.db.commit()
		except Exception:
			self.db.rollback()
			raise
		return row

	def list_rated_for_user(self, user_id: str) -> List[PracticeSession]:
		rows = (
			self.db.query(PracticeSession)
			.filter(PracticeSession.user_id == user_id)
			.order_by(PracticeSession.created_at.desc())
			.all()
		)
		return [r for r in rows if ((r.ielts_rating or {}).get("overall") or 0) > 0]


def get_store(db: Session = Depends(get_db)) -> SessionStore:
	return SessionStore(db)


class ResultCache:
	"""Read-once handoff of fresh evaluations to the results page."""

	def __init__(self) -> None:
		self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}

	@staticmethod
	def key(session_id: str) -> str:
		return f"evaluation_{session_id}"

	def put(self, session_id: str, payload: Dict[str, Any]) -> None:
		self._entries[self.key(session_id)] = (time.monotonic(), payload)

	def pop(self, session_id: str) -> Optional[Dict[str, Any]]:
		entry = self._entries.pop(self.key(session_id), None)
		return entry[1] if entry else None

	def purge_older_than(self, seconds: float) -> int:
		threshold = time.monotonic() - seconds
		stale = [k for k, (stored_at, _) in self._entries.items() if stored_at < threshold]
		for k in stale:
			del self._entries[k]
		return len(stale)

	def __contains__(self, session_id: str) -> bool:
		return self.key(session_id) in self._entries

	def __len__(self) -> int:
		return len(self._entries)


result_cache = ResultCache()


def get_result_cache() -> ResultCache:
	return result_cache
