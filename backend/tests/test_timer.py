import asyncio

from ieltspeak.schemas import CallStatus
from ieltspeak.timer import SessionTimer


async def test_counts_only_while_active():
	ticks = []
	timer = SessionTimer(on_tick=ticks.append, interval=0.01)

	timer.update(CallStatus.CONNECTING)
	assert not timer.running

	timer.update(CallStatus.ACTIVE)
	assert timer.running
	await asyncio.sleep(0.055)
	timer.update(CallStatus.INACTIVE)
	counted = timer.elapsed

	assert counted >= 2
	assert ticks == list(range(1, counted + 1))
	await asyncio.sleep(0.03)
	assert timer.elapsed == counted


async def test_resumes_from_elapsed_after_pause():
	timer = SessionTimer(interval=3600)
	timer.tick()
	timer.tick()
	timer.update(CallStatus.ACTIVE)
	timer.update(CallStatus.ACTIVE)
	timer.update(CallStatus.FINISHED)

	assert timer.elapsed == 2
	assert not timer.running


def test_reset_and_manual_tick():
	timer = SessionTimer()
	timer.tick()
	assert timer.elapsed == 1
	timer.reset()
	assert timer.elapsed == 0
	timer.stop()
