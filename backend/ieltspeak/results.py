from __future__ import annotations
from typing import Any, Dict, Optional

from .errors import NotFoundError
from .store import ResultCache, SessionStore


def _view(session_id: str, level: Optional[str], evaluation: Dict[str, Any]) -> Dict[str, Any]:
	return {
		"sessionID": session_id,
		"level": level,
		"evaluation": {
			"ielts_ratings": evaluation.get("ielts_ratings"),
			"toefl_ratings": evaluation.get("toefl_ratings"),
			"feedback": evaluation.get("feedback"),
		},
	}


class ResultsRetrieval:
	"""Cache first (read-once), then the persisted session."""

	def __init__(self, cache: ResultCache, store: SessionStore) -> None:
		self.cache = cache
		self.store = store

	def get_result(self, session_id: str) -> Dict[str, Any]:
		cached = self.cache.pop(session_id)
		if cached is not None and cached.get("evaluation"):
			return _view(session_id, cached.get("level"), cached["evaluation"])

		row = self.store.get(session_id)
		if row is None or row.ielts_rating is None:
			raise NotFoundError("No evaluation data found for this session")
		return _view(
			session_id,
			row.level,
			{"ielts_ratings": row.ielts_rating, "toefl_ratings": row.toefl_rating, "feedback": row.feedback},
		)
