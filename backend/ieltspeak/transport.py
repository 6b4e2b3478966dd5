"""
Voice-call transport boundary.

The voice SDK runs in the browser. On the server side it is represented by a
``VoiceTransport``: commands go out (start/stop/mute), events come in
(call-start, call-end, message, error, speech-start, speech-end).
``RelayTransport`` is the implementation used by the live WebSocket, which
forwards commands to the browser as JSON frames and feeds the browser's SDK
events back through ``dispatch``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import TransportError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Unsubscribe = Callable[[], None]

TRANSPORT_EVENTS = ("call-start", "call-end", "message", "error", "speech-start", "speech-end")


class EventSource:
	"""Minimal pub/sub with unsubscribe handles."""

	def __init__(self) -> None:
		self._handlers: Dict[str, List[Handler]] = {}

	def on(self, event: str, handler: Handler) -> Unsubscribe:
		self._handlers.setdefault(event, []).append(handler)

		def unsubscribe() -> None:
			handlers = self._handlers.get(event, [])
			if handler in handlers:
				handlers.remove(handler)

		return unsubscribe

	def listener_count(self, event: Optional[str] = None) -> int:
		if event is not None:
			return len(self._handlers.get(event, []))
		return sum(len(h) for h in self._handlers.values())

	async def emit(self, event: str, payload: Any = None) -> None:
		# Copy so handlers may unsubscribe while being called
		for handler in list(self._handlers.get(event, [])):
			result = handler(payload)
			if inspect.isawaitable(result):
				await result


class VoiceTransport(EventSource, ABC):
	@abstractmethod
	async def start(self, assistant_config: Dict[str, Any], overrides: Dict[str, Any]) -> None:
		...

	@abstractmethod
	async def stop(self) -> None:
		...

	@abstractmethod
	async def set_muted(self, muted: bool) -> None:
		...

	@abstractmethod
	def is_muted(self) -> bool:
		...


class RelayTransport(VoiceTransport):
	def __init__(self, send: Callable[[Dict[str, Any]], Awaitable[None]], *, connect_timeout: float = 30.0) -> None:
		super().__init__()
		self._send = send
		self._muted = False
		self.connect_timeout = connect_timeout
		self._abort_connect: Optional[Callable[[Exception], None]] = None

	async def _command(self, command: str, **fields: Any) -> None:
		try:
			await self._send({"type": "command", "command": command, **fields})
		except Exception as err:
			raise TransportError(f"Could not deliver '{command}' to the voice client") from err

	async def start(self, assistant_config: Dict[str, Any], overrides: Dict[str, Any]) -> None:
		"""Ask the browser to start the call and wait until it reports ``call-start``."""
		self._muted = False
		connected = asyncio.get_running_loop().create_future()

		def settle(error: Optional[Exception] = None) -> None:
			if connected.done():
				return
			if error is None:
				connected.set_result(None)
			else:
				connected.set_exception(error)

		disposers = [
			self.on("call-start", lambda _payload: settle()),
			self.on("error", lambda payload: settle(TransportError("Voice client failed to connect", details=str(payload)))),
			self.on("call-end", lambda _payload: settle(TransportError("Call ended before it connected"))),
		]
		self._abort_connect = settle
		try:
			await self._command("start", assistant=assistant_config, overrides=overrides)
			await asyncio.wait_for(connected, timeout=self.connect_timeout)
		except asyncio.TimeoutError as err:
			raise TransportError("Voice client did not confirm the call start") from err
		finally:
			self._abort_connect = None
			for dispose in disposers:
				dispose()

	async def stop(self) -> None:
		if self._abort_connect is not None:
			self._abort_connect(TransportError("Call stopped before it connected"))
		await self._command("stop")

	async def set_muted(self, muted: bool) -> None:
		await self._command("set-muted", muted=muted)
		self._muted = muted

	def is_muted(self) -> bool:
		return self._muted

	async def dispatch(self, frame: Dict[str, Any]) -> bool:
		"""Feed one client frame into the transport. Returns False if it is not a transport event."""
		event = frame.get("type")
		if event not in TRANSPORT_EVENTS:
			return False
		if event == "message":
			payload: Any = frame.get("message") or {}
		elif event == "error":
			payload = frame.get("error")
		else:
			payload = frame
		logger.debug("Relaying transport event %s", event)
		await self.emit(event, payload)
		return True
