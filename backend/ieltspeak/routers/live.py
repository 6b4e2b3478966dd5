"""
Live Session WebSocket
======================

The browser runs the voice SDK and relays its events here; the server runs
the call orchestration for the session and streams state back.

Client -> server frames:
- ``{"type": "start", "level": "B1", "profile": {...}}``
- voice SDK events: ``call-start``, ``call-end``, ``speech-start``,
  ``speech-end``, ``error`` (``{"error": ...}``) and ``message``
  (``{"message": {"type": "transcript", "transcriptType": "final", ...}}``)
- ``{"type": "toggle-mute"}``, ``{"type": "end"}``, ``{"type": "ping"}``

Server -> client frames:
- ``command`` (start/stop/set-muted for the voice SDK)
- ``state`` (call status, speaking/muted flags, session time)
- ``timer``, ``suggestions``, ``evaluation``, ``pong``, ``error``

The socket closes after the evaluation frame. A disconnect before that tears
the call down without scoring it.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..errors import AppError, InvalidInput
from ..evaluation import EvaluationPipeline
from ..gemini_client import get_client_factory
from ..orchestrator import CallOrchestrator, registry
from ..schemas import CallStatus, SavedMessage, UserProfile
from ..settings import settings
from ..store import ResultCache, SessionStore, get_result_cache, get_store
from ..suggestions import SuggestionEngine
from ..timer import SessionTimer
from ..transport import RelayTransport

router = APIRouter(tags=["live"])

logger = logging.getLogger(__name__)


class _Outbox:
	"""Serializes frames from callbacks and background tasks onto one socket."""

	def __init__(self, websocket: WebSocket) -> None:
		self._ws = websocket
		self._queue: asyncio.Queue = asyncio.Queue()
		self.closed = False
		self._writer = asyncio.get_running_loop().create_task(self._run())

	def post(self, frame: Dict[str, Any]) -> None:
		if not self.closed:
			self._queue.put_nowait(frame)

	async def send(self, frame: Dict[str, Any]) -> None:
		if self.closed:
			raise RuntimeError("socket closed")
		self.post(frame)

	async def _run(self) -> None:
		while True:
			frame = await self._queue.get()
			if frame is None:
				return
			try:
				await self._ws.send_json(frame)
			except Exception as e:
				logger.info("Live socket send failed: %s", e)
				self.closed = True
				return

	async def drain(self, timeout: float = 5.0) -> None:
		self._queue.put_nowait(None)
		try:
			await asyncio.wait_for(self._writer, timeout=timeout)
		except asyncio.TimeoutError:
			self._writer.cancel()
		self.closed = True


async def _receive_frame(websocket: WebSocket) -> Optional[Dict[str, Any]]:
	text = await websocket.receive_text()
	try:
		data = json.loads(text)
	except json.JSONDecodeError:
		return None
	return data if isinstance(data, dict) else None


@router.websocket("/ws/sessions/{session_id}")
async def live_session(
	websocket: WebSocket,
	session_id: str,
	store: SessionStore = Depends(get_store),
	cache: ResultCache = Depends(get_result_cache),
	client_factory=Depends(get_client_factory),
):
	await websocket.accept()
	try:
		suggestion_client = client_factory(model=settings.gemini_model_suggestions)
	except ValueError:
		await websocket.send_json({"type": "error", "code": "CONFIGURATION_ERROR", "error": "Google API key not configured"})
		await websocket.close(code=1011)
		return

	outbox = _Outbox(websocket)
	transport = RelayTransport(outbox.send, connect_timeout=settings.assistant_connect_timeout_seconds)
	engine = SuggestionEngine(
		suggestion_client.stream_generate,
		on_update=lambda state: outbox.post({"type": "suggestions", **state.to_dict()}),
	)
	timer = SessionTimer(on_tick=lambda seconds: outbox.post({"type": "timer", "sessionTime": seconds}))
	orchestrator, created = registry.acquire(
		session_id,
		lambda: CallOrchestrator(
			transport,
			engine.submit,
			timer=timer,
			on_state_change=lambda snapshot: outbox.post({"type": "state", **snapshot}),
		),
	)
	if not created:
		outbox.post({"type": "error", "code": "CALL_IN_PROGRESS", "error": "A call is already running for this session"})
		await outbox.drain()
		await suggestion_client.aclose()
		await websocket.close(code=1008)
		return

	async def on_call_end(messages: List[SavedMessage]) -> None:
		if not messages:
			outbox.post({"type": "evaluation", "status": "too-short", "sessionId": session_id})
			return
		try:
			client = client_factory(model=settings.gemini_model)
		except ValueError:
			outbox.post({"type": "evaluation", "status": "failed", "error": "Google API key not configured"})
			return
		try:
			payload = await EvaluationPipeline(client, store, cache).evaluate(session_id, messages, orchestrator.level or "")
		except Exception:
			logger.exception("Live evaluation failed for session %s", session_id)
			outbox.post({"type": "evaluation", "status": "failed", "error": "failed to process with model"})
			return
		finally:
			await client.aclose()
		status = "ok" if "evaluation" in payload else "degraded"
		outbox.post({"type": "evaluation", "status": status, "result": payload})

	start_tasks: Set[asyncio.Task] = set()

	async def handle(frame: Dict[str, Any]) -> None:
		kind = frame.get("type")
		if kind == "start":
			level = frame.get("level") or ""
			if not isinstance(level, str):
				raise InvalidInput("level must be a string", field="level")
			level = level.strip()
			if not level:
				row = store.get(session_id)
				level = (row.level or "") if row else ""
			if not level:
				raise InvalidInput("Level is required", field="level")
			try:
				profile = UserProfile.model_validate(frame.get("profile") or {})
			except ValidationError as err:
				raise InvalidInput("Invalid profile", field="profile") from err
			# Runs beside the receive loop, which has to deliver the browser's call-start
			task = asyncio.create_task(orchestrator.start(level, session_id, on_call_end=on_call_end, profile=profile))
			start_tasks.add(task)
			task.add_done_callback(start_tasks.discard)
		elif await transport.dispatch(frame):
			pass
		elif kind == "toggle-mute":
			await orchestrator.toggle_microphone()
		elif kind == "end":
			await orchestrator.end_call()
		elif kind == "ping":
			outbox.post({"type": "pong"})
		else:
			raise InvalidInput(f"Unknown frame type: {kind}")

	try:
		while orchestrator.status != CallStatus.FINISHED:
			frame = await _receive_frame(websocket)
			if frame is None:
				outbox.post({"type": "error", "code": "VALIDATION_ERROR", "error": "Frames must be JSON objects"})
				continue
			try:
				await handle(frame)
			except AppError as err:
				outbox.post({"type": "error", **err.to_dict()})
			except Exception:
				logger.exception("Live frame %r failed for session %s", frame.get("type"), session_id)
				outbox.post({"type": "error", "code": "INTERNAL_ERROR", "error": "Could not handle frame"})
	except WebSocketDisconnect:
		logger.info("Live socket for session %s disconnected", session_id)
	finally:
		for task in list(start_tasks):
			task.cancel()
		if start_tasks:
			await asyncio.gather(*start_tasks, return_exceptions=True)
		await engine.aclose()
		await orchestrator.dispose()
		registry.release(session_id, orchestrator)
		await outbox.drain()
		await suggestion_client.aclose()
		try:
			await websocket.close()
		except Exception:
			pass
