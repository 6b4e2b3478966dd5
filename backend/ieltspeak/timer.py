from __future__ import annotations
import asyncio
from typing import Callable, Optional

from .schemas import CallStatus


class SessionTimer:
	"""Counts whole seconds while the call is ACTIVE; paused otherwise."""

	def __init__(self, on_tick: Optional[Callable[[int], None]] = None, *, interval: float = 1.0) -> None:
		self.elapsed: int = 0
		self.interval = interval
		self._on_tick = on_tick
		self._task: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def update(self, status: CallStatus) -> None:
		if status == CallStatus.ACTIVE:
			if not self.running:
				self._task = asyncio.get_running_loop().create_task(self._run())
		else:
			self.stop()

	def tick(self) -> None:
		self.elapsed += 1
		if self._on_tick is not None:
			self._on_tick(self.elapsed)

	def reset(self) -> None:
		self.elapsed = 0

	def stop(self) -> None:
		if self._task is not None:
			self._task.cancel()
			self._task = None

	async def _run(self) -> None:
		while True:
			await asyncio.sleep(self.interval)
			self.tick()
