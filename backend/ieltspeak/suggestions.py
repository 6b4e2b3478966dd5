"""
Live Suggestions
================

Turns a prompt into one streamed example answer while the call is running.

State is single-slotted: ``status`` and ``streamed_text`` describe the newest
generation only, ``suggestions`` keeps every completed answer, newest first.
Each ``generate`` call takes a generation token; a stream that has been
superseded by a newer prompt stops publishing live text and status, though
its completed answer is still kept in the history. A blank prompt supersedes
the running stream too. ``clear`` starts a new history, and answers from
streams begun before it are dropped. After ``aclose`` nothing is published.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional, Set

from .schemas import SuggestionStatus

logger = logging.getLogger(__name__)

Streamer = Callable[[str], AsyncIterator[str]]


@dataclass
class SuggestionState:
	status: SuggestionStatus = SuggestionStatus.WAITING
	streamed_text: str = ""
	suggestions: List[str] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"status": self.status.value,
			"streamedText": self.streamed_text,
			"suggestions": list(self.suggestions),
		}


class SuggestionEngine:
	def __init__(self, streamer: Streamer, on_update: Optional[Callable[[SuggestionState], None]] = None) -> None:
		self._streamer = streamer
		self._on_update = on_update
		self.state = SuggestionState()
		self.prompt: str = ""
		self._generation = 0
		self._alive = True
		self._tasks: Set[asyncio.Task] = set()

	def _publish(self) -> None:
		if self._on_update is not None and self._alive:
			self._on_update(self.state)

	def _is_current(self, token: int) -> bool:
		return self._alive and token == self._generation

	async def generate(self, prompt: Optional[str]) -> None:
		prompt = prompt or ""
		self.prompt = prompt
		self._generation += 1
		if not prompt.strip():
			self.state.status = SuggestionStatus.WAITING
			self.state.streamed_text = ""
			self._publish()
			return
		token = self._generation
		# History this stream belongs to; clear() swaps in a new one
		state = self.state
		self.state.status = SuggestionStatus.GENERATING
		self.state.streamed_text = ""
		self._publish()

		accumulated = ""
		try:
			async for chunk in self._streamer(prompt):
				if not self._alive:
					return
				accumulated += chunk
				if self._is_current(token):
					self.state.streamed_text = accumulated
					self._publish()
		except Exception as err:
			logger.warning("Suggestion stream failed: %s", err)
			if self._is_current(token):
				self.state.streamed_text = ""
				self.state.status = SuggestionStatus.WAITING
				self._publish()
			return

		if not self._alive:
			return
		text = accumulated.strip()
		if text and state is self.state:
			state.suggestions.insert(0, text)
		if self._is_current(token):
			self.state.streamed_text = ""
			self.state.status = SuggestionStatus.READY
		self._publish()

	def submit(self, prompt: Optional[str]) -> Optional[asyncio.Task]:
		"""Start ``generate`` in the background; blank prompts resolve immediately."""
		if not (prompt or "").strip():
			self._generation += 1
			self.prompt = ""
			self.state.status = SuggestionStatus.WAITING
			self.state.streamed_text = ""
			self._publish()
			return None
		task = asyncio.get_running_loop().create_task(self.generate(prompt))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return task

	def clear(self) -> None:
		self._generation += 1
		self.prompt = ""
		self.state = SuggestionState()
		self._publish()

	async def aclose(self) -> None:
		self._alive = False
		pending = [t for t in self._tasks if not t.done()]
		for task in pending:
			task.cancel()
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		self._tasks.clear()
