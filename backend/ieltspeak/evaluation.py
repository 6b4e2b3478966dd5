"""
Conversation Evaluation
=======================

Scores a finished practice conversation with the generative model and stores
the rating on the practice session.

Flow:
1. Validate and format the transcript as ``ROLE: content`` blocks.
2. Ask the model for IELTS and TOEFL ratings plus 4+4 feedback bullets as JSON.
3. Decode in two stages: strip optional code fences, then parse and validate
   against ``Evaluation``. Failure here is not an exception; the caller gets a
   degraded payload that carries the raw model text.
4. Persist the rating (upsert by session id) and hand the payload to the
   results cache.

Backend failures (network, HTTP status, missing key) propagate to the caller.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from .errors import InvalidInput
from .prompts import build_evaluation_prompt
from .schemas import Evaluation, SavedMessage, toefl_overall
from .store import ResultCache, SessionStore

logger = logging.getLogger(__name__)

PARSE_FAILURE = "failed to parse structured response"

_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL | re.IGNORECASE)

__all__ = [
	"Decoded",
	"EvaluationPipeline",
	"PARSE_FAILURE",
	"coerce_messages",
	"decode_evaluation",
	"format_conversation",
	"strip_code_fences",
	"toefl_overall",
]


@dataclass(frozen=True)
class Decoded:
	ok: bool
	value: Optional[Evaluation] = None
	raw: Optional[str] = None
	reason: Optional[str] = None


def format_conversation(messages: Sequence[SavedMessage]) -> str:
	return "\n\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


def strip_code_fences(text: str) -> str:
	cleaned = (text or "").strip()
	match = _FENCE_RE.match(cleaned)
	if match:
		return match.group(1).strip()
	return cleaned


def decode_evaluation(text: str) -> Decoded:
	cleaned = strip_code_fences(text)
	try:
		data = json.loads(cleaned)
	except (json.JSONDecodeError, TypeError) as err:
		return Decoded(ok=False, raw=text, reason=f"invalid JSON: {err}")
	if not isinstance(data, dict):
		return Decoded(ok=False, raw=text, reason="response is not a JSON object")
	try:
		evaluation = Evaluation.model_validate(data)
	except ValidationError as err:
		return Decoded(ok=False, raw=text, reason=f"schema mismatch: {err.error_count()} error(s)")
	return Decoded(ok=True, value=evaluation)


def coerce_messages(messages: Optional[Sequence[Union[SavedMessage, Dict[str, Any]]]]) -> List[SavedMessage]:
	if not messages or not isinstance(messages, (list, tuple)):
		raise InvalidInput("Messages array is required", field="messages")
	try:
		return [m if isinstance(m, SavedMessage) else SavedMessage.model_validate(m) for m in messages]
	except ValidationError as err:
		raise InvalidInput(
			"Each message needs a role of 'user' or 'assistant' and non-empty content",
			field="messages",
			details=err.errors(include_url=False, include_context=False),
		) from err


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


class EvaluationPipeline:
	def __init__(
		self,
		client: Any,
		store: SessionStore,
		cache: Optional[ResultCache] = None,
		*,
		clock: Callable[[], str] = _now_iso,
	) -> None:
		self.client = client
		self.store = store
		self.cache = cache
		self._clock = clock

	async def evaluate(
		self,
		session_id: str,
		messages: Optional[Sequence[Union[SavedMessage, Dict[str, Any]]]],
		level: str,
	) -> Dict[str, Any]:
		transcript = coerce_messages(messages)
		prompt = build_evaluation_prompt(format_conversation(transcript), level)
		raw = await self.client.generate(prompt)

		decoded = decode_evaluation(raw)
		if not decoded.ok:
			logger.warning(
				"Evaluation for %s could not be parsed (%s); raw length %d",
				session_id, decoded.reason, len(raw or ""),
			)
			return {
				"sessionId": session_id,
				"messageCount": len(transcript),
				"level": level,
				"rawResponse": raw,
				"error": PARSE_FAILURE,
				"processedAt": self._clock(),
			}

		self.store.save_evaluation(session_id, level, decoded.value)
		payload = {
			"sessionId": session_id,
			"messageCount": len(transcript),
			"level": level,
			"evaluation": decoded.value.model_dump(),
			"processedAt": self._clock(),
		}
		if self.cache is not None:
			self.cache.put(session_id, payload)
		logger.info("Stored evaluation for session %s (%d messages)", session_id, len(transcript))
		return payload
