"""
Call Orchestration
==================

One ``CallOrchestrator`` drives one voice call for one practice session. It
owns the transcript, the call status and the mute/speaking flags, and turns
transport events into state changes:

- ``call-start``  -> ACTIVE (session timer runs)
- ``message``     -> finalized transcripts are appended; each finalized
  assistant utterance triggers exactly one suggestion prompt
- ``speech-*``    -> ``is_speaking`` flag
- ``error``       -> INACTIVE, caller decides whether to start again
- ``call-end``    -> same path as ``end_call``

Status flow: INACTIVE -> CONNECTING -> ACTIVE -> FINISHED. FINISHED is
terminal for the instance. ``CallRegistry`` keeps at most one orchestrator per
session id.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from .prompts import assistant_overrides, build_suggestion_prompt, configure_assistant
from .schemas import CallStatus, SavedMessage, UserProfile
from .timer import SessionTimer
from .transport import Unsubscribe, VoiceTransport

logger = logging.getLogger(__name__)

MessageCallback = Callable[[SavedMessage], Any]
CallEndCallback = Callable[[List[SavedMessage]], Any]


async def _maybe_await(result: Any) -> None:
	if inspect.isawaitable(result):
		await result


class CallOrchestrator:
	def __init__(
		self,
		transport: VoiceTransport,
		suggest: Callable[[str], Any],
		*,
		timer: Optional[SessionTimer] = None,
		on_state_change: Optional[Callable[[Dict[str, Any]], Any]] = None,
	) -> None:
		self.transport = transport
		self._suggest = suggest
		self.timer = timer or SessionTimer()
		self._on_state_change = on_state_change

		self.status: CallStatus = CallStatus.INACTIVE
		self.is_speaking: bool = False
		self.is_muted: bool = False
		self.level: Optional[str] = None
		self.session_id: Optional[str] = None
		self.profile: Optional[UserProfile] = None
		self._messages: List[SavedMessage] = []

		self._on_message: Optional[MessageCallback] = None
		self._on_call_end: Optional[CallEndCallback] = None
		self._disposers: List[Unsubscribe] = []
		self._end_fired = False
		self._torn_down = False

	# ---- read-only views ----

	@property
	def messages(self) -> List[SavedMessage]:
		return list(self._messages)

	@property
	def session_time(self) -> int:
		return self.timer.elapsed

	def snapshot(self) -> Dict[str, Any]:
		return {
			"sessionId": self.session_id,
			"callStatus": self.status.value,
			"isSpeaking": self.is_speaking,
			"isMuted": self.is_muted,
			"sessionTime": self.session_time,
			"messageCount": len(self._messages),
		}

	def _notify(self) -> None:
		if self._on_state_change is not None:
			self._on_state_change(self.snapshot())

	def _set_status(self, status: CallStatus) -> None:
		if status == self.status:
			return
		logger.info("Call %s: %s -> %s", self.session_id, self.status.value, status.value)
		self.status = status
		self.timer.update(status)
		self._notify()

	# ---- lifecycle ----

	def _subscribe(self) -> None:
		if self._disposers:
			return
		t = self.transport
		self._disposers = [
			t.on("call-start", self._handle_call_start),
			t.on("call-end", self._handle_call_end),
			t.on("message", self.on_transcript_finalized),
			t.on("error", self._handle_error),
			t.on("speech-start", self._handle_speech_start),
			t.on("speech-end", self._handle_speech_end),
		]

	def _unsubscribe(self) -> None:
		disposers, self._disposers = self._disposers, []
		for dispose in disposers:
			dispose()

	async def start(
		self,
		level: str,
		session_id: str,
		on_message: Optional[MessageCallback] = None,
		on_call_end: Optional[CallEndCallback] = None,
		profile: Optional[UserProfile] = None,
	) -> None:
		if self.status in (CallStatus.CONNECTING, CallStatus.ACTIVE):
			logger.debug("Call %s already %s; ignoring start", session_id, self.status.value)
			return
		if self.status == CallStatus.FINISHED or self._torn_down:
			logger.warning("Call %s is finished; start ignored", session_id)
			return

		if self.session_id != session_id:
			self.timer.reset()
		self.level = level
		self.session_id = session_id
		self.profile = profile
		self._on_message = on_message
		self._on_call_end = on_call_end
		self._subscribe()
		self._set_status(CallStatus.CONNECTING)

		try:
			await self.transport.start(configure_assistant(), assistant_overrides(level))
		except Exception as err:
			logger.warning("Call %s failed to start: %s", session_id, err)
			if self.status == CallStatus.CONNECTING:
				self._set_status(CallStatus.INACTIVE)
			return
		if self.status == CallStatus.CONNECTING:
			self._set_status(CallStatus.ACTIVE)

	async def toggle_microphone(self) -> None:
		if self.status not in (CallStatus.CONNECTING, CallStatus.ACTIVE):
			logger.warning("No active call for session %s; cannot toggle microphone", self.session_id)
			return
		muted = self.transport.is_muted()
		try:
			await self.transport.set_muted(not muted)
		except Exception as err:
			logger.warning("Could not toggle microphone for %s: %s", self.session_id, err)
			return
		self.is_muted = not muted
		self._notify()

	async def _teardown(self) -> None:
		if self._torn_down:
			return
		self._torn_down = True
		self._unsubscribe()
		self.timer.stop()
		try:
			await self.transport.stop()
		except Exception as err:
			logger.warning("Error stopping transport for %s: %s", self.session_id, err)

	async def end_call(self) -> None:
		"""Finish the call and hand the transcript to the end-of-call callback once."""
		self._set_status(CallStatus.FINISHED)
		await self._teardown()
		if self._end_fired:
			return
		self._end_fired = True
		if self._on_call_end is not None:
			await _maybe_await(self._on_call_end(self.messages))

	async def dispose(self) -> None:
		"""Release the transport without scoring, e.g. when the client goes away."""
		await self._teardown()

	# ---- transport events ----

	def _handle_call_start(self, _payload: Any = None) -> None:
		if self.status != CallStatus.FINISHED:
			self._set_status(CallStatus.ACTIVE)

	async def _handle_call_end(self, _payload: Any = None) -> None:
		await self.end_call()

	def _handle_error(self, err: Any = None) -> None:
		logger.warning("Transport error on call %s: %s", self.session_id, err)
		self._set_status(CallStatus.INACTIVE)

	def _handle_speech_start(self, _payload: Any = None) -> None:
		self.is_speaking = True
		self._notify()

	def _handle_speech_end(self, _payload: Any = None) -> None:
		self.is_speaking = False
		self._notify()

	async def on_transcript_finalized(self, event: Dict[str, Any]) -> None:
		if not isinstance(event, dict):
			return
		if event.get("type") != "transcript" or event.get("transcriptType") != "final":
			return
		role = event.get("role")
		content = event.get("transcript")
		if role not in ("user", "assistant") or not isinstance(content, str) or not content.strip():
			logger.debug("Skipping transcript event with role=%r", role)
			return
		message = SavedMessage(role=role, content=content)
		self._messages.append(message)
		self._notify()
		if self._on_message is not None:
			await _maybe_await(self._on_message(message))
		if message.role == "assistant":
			prompt = build_suggestion_prompt(self.level or "", message.content, self.profile)
			self._suggest(prompt)


class CallRegistry:
	"""At most one live orchestrator per session id."""

	def __init__(self) -> None:
		self._calls: Dict[str, CallOrchestrator] = {}

	def get(self, session_id: str) -> Optional[CallOrchestrator]:
		return self._calls.get(session_id)

	def acquire(self, session_id: str, factory: Callable[[], CallOrchestrator]) -> tuple[CallOrchestrator, bool]:
		"""Return ``(orchestrator, created)``."""
		existing = self._calls.get(session_id)
		if existing is not None:
			return existing, False
		orchestrator = factory()
		self._calls[session_id] = orchestrator
		return orchestrator, True

	def release(self, session_id: str, orchestrator: Optional[CallOrchestrator] = None) -> None:
		current = self._calls.get(session_id)
		if current is not None and (orchestrator is None or current is orchestrator):
			del self._calls[session_id]

	def __len__(self) -> int:
		return len(self._calls)


registry = CallRegistry()
