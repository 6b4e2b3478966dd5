import asyncio

import pytest

from ieltspeak.errors import TransportError
from ieltspeak.transport import EventSource, RelayTransport


async def test_unsubscribe_removes_only_that_handler():
	source = EventSource()
	seen = []
	off = source.on("ping", lambda p: seen.append(("a", p)))
	source.on("ping", lambda p: seen.append(("b", p)))

	await source.emit("ping", 1)
	off()
	off()
	await source.emit("ping", 2)

	assert seen == [("a", 1), ("b", 1), ("b", 2)]
	assert source.listener_count("ping") == 1


async def test_emit_awaits_async_handlers():
	source = EventSource()
	seen = []

	async def handler(payload):
		seen.append(payload)

	source.on("message", handler)
	await source.emit("message", {"x": 1})

	assert seen == [{"x": 1}]


async def test_relay_sends_commands_as_frames():
	sent = []

	async def send(frame):
		sent.append(frame)

	transport = RelayTransport(send)
	starting = asyncio.create_task(transport.start({"name": "Instructor"}, {"variableValues": {"level": "B1"}}))
	await asyncio.sleep(0)
	assert not starting.done()
	await transport.dispatch({"type": "call-start"})
	await starting
	await transport.set_muted(True)
	await transport.stop()

	assert sent == [
		{
			"type": "command",
			"command": "start",
			"assistant": {"name": "Instructor"},
			"overrides": {"variableValues": {"level": "B1"}},
		},
		{"type": "command", "command": "set-muted", "muted": True},
		{"type": "command", "command": "stop"},
	]
	assert transport.is_muted()


async def test_relay_send_failure_raises_transport_error():
	async def send(frame):
		raise RuntimeError("socket closed")

	transport = RelayTransport(send)
	with pytest.raises(TransportError):
		await transport.set_muted(True)
	assert not transport.is_muted()


async def test_dispatch_unwraps_payloads():
	async def send(frame):
		pass

	transport = RelayTransport(send)
	seen = []
	transport.on("message", lambda p: seen.append(("message", p)))
	transport.on("error", lambda p: seen.append(("error", p)))
	transport.on("call-start", lambda p: seen.append(("call-start", p)))

	assert await transport.dispatch({"type": "message", "message": {"type": "transcript"}})
	assert await transport.dispatch({"type": "error", "error": "boom"})
	assert await transport.dispatch({"type": "call-start"})
	assert not await transport.dispatch({"type": "toggle-mute"})

	assert seen == [
		("message", {"type": "transcript"}),
		("error", "boom"),
		("call-start", {"type": "call-start"}),
	]


async def _sink(frame):
	pass


async def test_start_waits_for_call_start_and_releases_its_listeners():
	transport = RelayTransport(_sink)
	starting = asyncio.create_task(transport.start({}, {}))
	await asyncio.sleep(0)

	assert transport.listener_count("call-start") == 1
	await transport.dispatch({"type": "call-start"})
	await starting

	assert transport.listener_count() == 0


async def test_client_error_while_connecting_fails_start():
	transport = RelayTransport(_sink)
	starting = asyncio.create_task(transport.start({}, {}))
	await asyncio.sleep(0)

	await transport.dispatch({"type": "error", "error": "microphone denied"})

	with pytest.raises(TransportError) as exc:
		await starting
	assert exc.value.details == "microphone denied"


async def test_unconfirmed_start_times_out():
	transport = RelayTransport(_sink, connect_timeout=0.01)

	with pytest.raises(TransportError):
		await transport.start({}, {})
	assert transport.listener_count() == 0


async def test_stop_while_connecting_fails_start():
	transport = RelayTransport(_sink)
	starting = asyncio.create_task(transport.start({}, {}))
	await asyncio.sleep(0)

	await transport.stop()

	with pytest.raises(TransportError):
		await starting
