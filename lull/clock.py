import asyncio
import dataclasses
import logging
import math
import typing

import lull.constants


logger = logging.getLogger(__name__)


TimeSource = typing.Callable[[], float]


@dataclasses.dataclass (frozen=True)
class TimePosition:

	"""
	A point on the musical grid, derived entirely from the tick counter.
	"""

	tick: int = 0
	beat: int = 0
	bar: int = 0
	phrase: int = 0

	@classmethod
	def from_tick (cls, tick: int) -> "TimePosition":

		"""Derive beat, bar and phrase counters from a tick index."""

		beat = tick // lull.constants.TICKS_PER_BEAT
		bar = beat // lull.constants.BEATS_PER_BAR
		phrase = bar // lull.constants.BARS_PER_PHRASE

		return cls(tick=tick, beat=beat, bar=bar, phrase=phrase)


class ClockListener:

	"""
	Base class for objects that react to clock events.

	Every hook is optional: override only the ones you need.  The clock
	dispatches with ``getattr``, so any object exposing a subset of these
	methods can be subscribed without inheriting from this class.

	All hooks receive the counter value and the scheduled start time of the
	tick that produced the event (on the time source's timeline, usually a
	little in the future).
	"""

	def on_tick (self, tick: int, time: float) -> None:
		pass

	def on_beat (self, beat: int, time: float) -> None:
		pass

	def on_bar (self, bar: int, time: float) -> None:
		pass

	def on_phrase (self, phrase: int, time: float) -> None:
		pass


def clamp_bpm (bpm: float) -> float:

	"""Clamp a tempo into the supported range."""

	return max(lull.constants.MIN_BPM, min(lull.constants.MAX_BPM, bpm))


class Clock:

	"""
	Lookahead tick scheduler - the single source of musical timing.

	The clock polls a monotonic time source and fires every tick whose start
	time falls inside the lookahead window.  Each tick's timestamp is computed
	from a fixed anchor (the start time, or the point of the last tempo change)
	rather than from the previous tick, so polling jitter changes *when* a tick
	is announced but never *what time* is attached to it.
	"""

	def __init__ (
		self,
		bpm: float,
		time_source: TimeSource,
		lookahead: float = lull.constants.DEFAULT_LOOKAHEAD,
		poll_interval: float = lull.constants.DEFAULT_POLL_INTERVAL,
		diagnostics: bool = False
	) -> None:

		"""Configure the clock.

		Parameters:
			bpm: Tempo in beats per minute, clamped to 60-140.
			time_source: Zero-argument callable returning monotonic seconds.
				At runtime this is the signal graph's clock; in tests, a fake.
			lookahead: Seconds of scheduling headroom.
			poll_interval: Seconds between polls when running on an event loop.
			diagnostics: When True, warn (at most once per second) when a tick
				is announced with less than 30ms of headroom.
		"""

		self._time_source = time_source
		self.lookahead = lookahead
		self.poll_interval = poll_interval
		self.diagnostics = diagnostics

		self._bpm = clamp_bpm(bpm)
		self._listeners: typing.List[typing.Any] = []

		self.running = False
		self.task: typing.Optional[asyncio.Task] = None
		self.start_time = 0.0

		self._anchor_time = 0.0
		self._anchor_tick = 0
		self._last_fired_tick = -1
		self._position = TimePosition()
		self._last_warning: typing.Optional[float] = None

	@property
	def bpm (self) -> float:
		return self._bpm

	@property
	def tick_duration (self) -> float:
		return 60.0 / self._bpm / lull.constants.TICKS_PER_BEAT

	@property
	def beat_duration (self) -> float:
		return 60.0 / self._bpm

	@property
	def bar_duration (self) -> float:
		return self.beat_duration * lull.constants.BEATS_PER_BAR

	@property
	def position (self) -> TimePosition:

		"""Position of the most recently fired tick."""

		return self._position

	@property
	def last_fired_tick (self) -> int:
		return self._last_fired_tick

	def subscribe (self, listener: typing.Any) -> None:

		"""Add a listener.  Listeners fire in subscription order."""

		self._listeners.append(listener)

	def unsubscribe (self, listener: typing.Any) -> None:

		"""Remove a listener.  Unknown listeners are ignored."""

		if listener in self._listeners:
			self._listeners.remove(listener)

	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo immediately (clamped to 60-140).

		Ticks that have already fired keep their timestamps.  When the clock
		has fired at least one tick, the grid is re-anchored at the next unfired
		tick so only future tick boundaries use the new duration.
		"""

		bpm = clamp_bpm(bpm)

		if self._last_fired_tick >= 0:
			next_tick = self._last_fired_tick + 1
			self._anchor_time = self.tick_time(next_tick)
			self._anchor_tick = next_tick

		self._bpm = bpm

		logger.info(f"BPM set to {self._bpm}")

	def tick_time (self, tick: int) -> float:

		"""Scheduled start time of a tick on the current grid."""

		return self._anchor_time + (tick - self._anchor_tick) * self.tick_duration

	def start (self) -> None:

		"""
		Reset the counters and begin polling.

		The first poll happens immediately, so tick 0 (and its beat, bar and
		phrase events) fires before this method returns.  When an asyncio event
		loop is running, further polls run in a background task; otherwise the
		owner drives the clock by calling :meth:`poll`.
		"""

		self._cancel_task()

		now = self._time_source()

		self.start_time = now
		self._anchor_time = now
		self._anchor_tick = 0
		self._last_fired_tick = -1
		self._position = TimePosition()
		self._last_warning = None
		self.running = True

		logger.info(f"Clock started at {self._bpm} BPM")

		self.poll()
		self._launch()

	def resume (self) -> None:

		"""
		Restart polling after :meth:`stop` without resetting the counters.

		The next unfired tick is anchored to the current time, so the stopped
		interval is skipped rather than replayed as a burst of late ticks.
		"""

		if self.running:
			return

		self._anchor_tick = self._last_fired_tick + 1
		self._anchor_time = self._time_source()
		self.running = True

		logger.info(f"Clock resumed at tick {self._anchor_tick}")

		self.poll()
		self._launch()

	def stop (self) -> None:

		"""Stop polling.  No further events fire once this returns."""

		if not self.running and self.task is None:
			return

		self.running = False
		self._cancel_task()

		logger.info("Clock stopped")

	def poll (self) -> None:

		"""
		Fire every not-yet-fired tick that starts within the lookahead window.
		"""

		if not self.running:
			return

		now = self._time_source()

		while self.running:

			# Recomputed per tick: a listener may change the tempo mid-pass.
			target_tick = self._anchor_tick + math.floor((now - self._anchor_time + self.lookahead) / self.tick_duration)
			tick = self._last_fired_tick + 1

			if tick > target_tick:
				break

			tick_time = self.tick_time(tick)

			if self.diagnostics:
				self._check_headroom(tick, tick_time, now)

			self._fire(tick, tick_time)

	def _fire (self, tick: int, tick_time: float) -> None:

		"""Deliver one tick (and any beat/bar/phrase boundary) to the listeners."""

		position = TimePosition.from_tick(tick)

		self._last_fired_tick = tick
		self._position = position

		hooks: typing.List[typing.Tuple[str, int]] = [("on_tick", position.tick)]

		if tick % lull.constants.TICKS_PER_BEAT == 0:
			hooks.append(("on_beat", position.beat))

			if position.beat % lull.constants.BEATS_PER_BAR == 0:
				hooks.append(("on_bar", position.bar))

				if position.bar % lull.constants.BARS_PER_PHRASE == 0:
					hooks.append(("on_phrase", position.phrase))

		# Snapshot so listeners subscribed during this pass wait for the next tick.
		for listener in list(self._listeners):

			for hook, value in hooks:

				if not self.running or listener not in self._listeners:
					break

				callback = getattr(listener, hook, None)

				if callback is None:
					continue

				try:
					callback(value, tick_time)
				except Exception:
					logger.exception(f"Clock listener {type(listener).__name__} failed in {hook} at tick {tick}")

	def _check_headroom (self, tick: int, tick_time: float, now: float) -> None:

		"""Warn when a tick is announced too close to its start time."""

		headroom = tick_time - now

		if headroom >= lull.constants.HEADROOM_WARNING_THRESHOLD:
			return

		if self._last_warning is not None and now - self._last_warning <= lull.constants.HEADROOM_WARNING_INTERVAL:
			return

		ms_headroom = max(0, round(headroom * 1000))
		logger.warning(f"Scheduling tight: {ms_headroom}ms headroom at tick {tick} (bpm={self._bpm})")
		self._last_warning = now

	def _launch (self) -> None:

		"""Start the background poll task if an event loop is running."""

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.debug("No running event loop - clock advances on explicit poll() calls")
			return

		self.task = loop.create_task(self._run_loop())

	def _cancel_task (self) -> None:

		if self.task is not None:
			self.task.cancel()
			self.task = None

	async def _run_loop (self) -> None:

		"""Poll on a fixed interval until stopped."""

		while self.running:
			await asyncio.sleep(self.poll_interval)
			self.poll()
