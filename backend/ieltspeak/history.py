from __future__ import annotations
from typing import Any, Dict, Iterable, List

from .models import PracticeSession

_CRITERIA = ("fluency", "grammar", "vocabulary", "pronunciation")


def _average(values: Iterable[float]) -> float:
	scored = [v for v in values if v and v > 0]
	return sum(scored) / len(scored) if scored else 0.0


def summarize_sessions(rows: List[PracticeSession]) -> Dict[str, Any]:
	"""Practice history for the dashboard: per-session scores plus averages over non-zero scores."""
	sessions: List[Dict[str, Any]] = []
	for row in rows:
		ielts = row.ielts_rating or {}
		feedback = row.feedback or {}
		sessions.append(
			{
				"id": row.id,
				"date": row.created_at.date().isoformat() if row.created_at else None,
				"level": row.level or "Unknown Level",
				"mode": row.mode,
				"ieltsScore": ielts.get("overall") or 0,
				"toeflScore": (row.toefl_rating or {}).get("overall") or 0,
				"scores": {name: ielts.get(name) or 0 for name in _CRITERIA},
				"feedback": {
					"positivePoints": feedback.get("positives") or [],
					"negativePoints": feedback.get("negatives") or [],
				},
			}
		)
	return {
		"success": True,
		"sessions": sessions,
		"totalSessions": len(sessions),
		"averageIeltsScore": _average(s["ieltsScore"] for s in sessions),
		"averageFluency": _average(s["scores"]["fluency"] for s in sessions),
		"averageGrammar": _average(s["scores"]["grammar"] for s in sessions),
		"averageVocab": _average(s["scores"]["vocabulary"] for s in sessions),
		"averagePronunciation": _average(s["scores"]["pronunciation"] for s in sessions),
	}
