import asyncio
import logging
import typing

import pytest

import lull.clock

import conftest


class RecordingListener (lull.clock.ClockListener):

	"""Records every clock callback as (hook, value, time)."""

	def __init__ (self) -> None:

		self.calls: typing.List[typing.Tuple[str, int, float]] = []

	def on_tick (self, tick: int, time: float) -> None:
		self.calls.append(("tick", tick, time))

	def on_beat (self, beat: int, time: float) -> None:
		self.calls.append(("beat", beat, time))

	def on_bar (self, bar: int, time: float) -> None:
		self.calls.append(("bar", bar, time))

	def on_phrase (self, phrase: int, time: float) -> None:
		self.calls.append(("phrase", phrase, time))

	def of (self, hook: str) -> typing.List[typing.Tuple[str, int, float]]:
		return [c for c in self.calls if c[0] == hook]


def _clock (fake_time: conftest.FakeTime, bpm: float = 120, **kwargs: typing.Any) -> lull.clock.Clock:

	return lull.clock.Clock(bpm=bpm, time_source=fake_time, **kwargs)


@pytest.mark.parametrize("bpm", [60, 75, 89, 120, 140])
def test_durations_follow_tempo (fake_time: conftest.FakeTime, bpm: int) -> None:

	"""Tick, beat and bar durations derive from the tempo alone."""

	clock = _clock(fake_time, bpm)

	assert clock.tick_duration == pytest.approx(60 / bpm / 4)
	assert clock.beat_duration == pytest.approx(60 / bpm)
	assert clock.bar_duration == pytest.approx(4 * 60 / bpm)


def test_durations_at_120_bpm (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time, 120)

	assert clock.tick_duration == pytest.approx(0.125)
	assert clock.beat_duration == pytest.approx(0.5)
	assert clock.bar_duration == pytest.approx(2.0)


def test_set_bpm_clamps (fake_time: conftest.FakeTime) -> None:

	"""Out-of-range tempos are clamped rather than rejected."""

	clock = _clock(fake_time)

	clock.set_bpm(100)
	assert clock.bpm == 100

	clock.set_bpm(30)
	assert clock.bpm == 60

	clock.set_bpm(200)
	assert clock.bpm == 140


def test_constructor_clamps (fake_time: conftest.FakeTime) -> None:

	assert _clock(fake_time, 10).bpm == 60
	assert _clock(fake_time, 500).bpm == 140


def test_time_position_from_tick () -> None:

	position = lull.clock.TimePosition.from_tick(70)

	assert position == lull.clock.TimePosition(tick=70, beat=17, bar=4, phrase=1)


def test_start_fires_tick_zero_with_every_hook (fake_time: conftest.FakeTime) -> None:

	"""Tick 0 is a beat, bar and phrase boundary; all four hooks fire before start() returns."""

	clock = _clock(fake_time)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()

	assert listener.calls[:4] == [
		("tick", 0, 0.0),
		("beat", 0, 0.0),
		("bar", 0, 0.0),
		("phrase", 0, 0.0),
	]

	clock.stop()


def test_end_to_end_with_fake_time (fake_time: conftest.FakeTime) -> None:

	"""Advancing 50ms across a few polls fires ticks, and one of each boundary at time 0."""

	clock = _clock(fake_time, 120)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()

	for _ in range(3):
		fake_time.advance(0.05 / 3)
		clock.poll()

	assert len(listener.of("tick")) >= 1
	assert listener.of("beat") == [("beat", 0, 0.0)]
	assert listener.of("bar") == [("bar", 0, 0.0)]
	assert listener.of("phrase") == [("phrase", 0, 0.0)]

	clock.stop()


def test_lookahead_window (fake_time: conftest.FakeTime) -> None:

	"""Ticks are announced up to the lookahead ahead of their start time."""

	clock = _clock(fake_time, 120, lookahead=0.2)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()

	# 0.2s of lookahead covers ticks 0 and 1 (0.125s each).
	assert [c[1] for c in listener.of("tick")] == [0, 1]

	fake_time.advance(0.1)
	clock.poll()

	assert [c[1] for c in listener.of("tick")] == [0, 1, 2]


def test_tick_times_are_anchored_not_accumulated (fake_time: conftest.FakeTime) -> None:

	"""Irregular polling changes when ticks are announced, never their timestamps."""

	clock = _clock(fake_time, 120)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()

	for step in (0.013, 0.4, 0.002, 0.9, 0.07, 0.5):
		fake_time.advance(step)
		clock.poll()

	for _, tick, time in listener.of("tick"):
		assert time == pytest.approx(tick * 0.125)


def test_ticks_fire_once_and_in_order (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time, 120)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()

	for _ in range(100):
		fake_time.advance(0.03)
		clock.poll()

	ticks = [c[1] for c in listener.of("tick")]

	assert ticks == list(range(len(ticks)))


def test_hook_order_within_a_tick (fake_time: conftest.FakeTime) -> None:

	"""Within one tick, hooks fire tick < beat < bar < phrase."""

	clock = _clock(fake_time, 120)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()
	fake_time.advance(8.0)
	clock.poll()

	at_bar_four = [c[0] for c in listener.calls if c[2] == pytest.approx(8.0)]

	assert at_bar_four == ["tick", "beat", "bar", "phrase"]


def test_listeners_fire_in_subscription_order (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time)
	order: typing.List[str] = []

	class Named (lull.clock.ClockListener):

		def __init__ (self, name: str) -> None:
			self.name = name

		def on_tick (self, tick: int, time: float) -> None:
			order.append(self.name)

	clock.subscribe(Named("a"))
	clock.subscribe(Named("b"))
	clock.subscribe(Named("c"))

	clock.start()
	clock.stop()

	assert order[:3] == ["a", "b", "c"]


def test_no_callbacks_after_stop (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()
	count = len(listener.calls)

	clock.stop()
	fake_time.advance(10.0)
	clock.poll()

	assert len(listener.calls) == count


def test_unsubscribe_prevents_callbacks (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time)
	listener = RecordingListener()

	clock.subscribe(listener)
	clock.unsubscribe(listener)
	clock.start()

	fake_time.advance(1.0)
	clock.poll()

	assert listener.calls == []


def test_listener_subscribed_mid_pass_waits_for_the_next_tick (fake_time: conftest.FakeTime) -> None:

	"""A listener added from a callback misses the tick in progress but hears the next one."""

	clock = _clock(fake_time, 120, lookahead=0.2)
	late = RecordingListener()

	class Recruiter (lull.clock.ClockListener):

		def on_tick (self, tick: int, time: float) -> None:
			if tick == 0:
				clock.subscribe(late)

	clock.subscribe(Recruiter())
	clock.start()

	# Ticks 0 and 1 both fire inside start().
	assert late.calls == [("tick", 1, 0.125)]


def test_unsubscribe_mid_pass (fake_time: conftest.FakeTime) -> None:

	"""Removal takes effect before the listener's next callback, even within one tick."""

	clock = _clock(fake_time, 120, lookahead=1.0)
	removed = RecordingListener()
	quitter = RecordingListener()

	class Remover (lull.clock.ClockListener):

		def on_tick (self, tick: int, time: float) -> None:
			if tick == 2:
				clock.unsubscribe(removed)

	def quit_on_tick (tick: int, time: float) -> None:
		quitter.calls.append(("tick", tick, time))
		if tick == 4:
			clock.unsubscribe(quitter)

	quitter.on_tick = quit_on_tick

	clock.subscribe(Remover())
	clock.subscribe(removed)
	clock.subscribe(quitter)

	# Ticks 0-8 are already inside the lookahead window when start() returns.
	clock.start()
	fake_time.advance(2.0)
	clock.poll()

	assert [c[1] for c in removed.of("tick")] == [0, 1]
	assert [c[1] for c in quitter.of("tick")] == [0, 1, 2, 3, 4]
	assert quitter.of("beat") == [("beat", 0, 0.0)]


def test_stop_inside_a_listener_ends_the_pass (fake_time: conftest.FakeTime) -> None:

	"""Stopping from a callback silences the rest of that tick and every later one."""

	clock = _clock(fake_time, 120, lookahead=1.0)
	first = RecordingListener()
	second = RecordingListener()

	def stop_on_tick (tick: int, time: float) -> None:
		first.calls.append(("tick", tick, time))
		if tick == 4:
			clock.stop()

	first.on_tick = stop_on_tick

	clock.subscribe(first)
	clock.subscribe(second)
	clock.start()

	assert not clock.running
	assert [c[1] for c in first.of("tick")] == [0, 1, 2, 3, 4]
	assert first.of("beat") == [("beat", 0, 0.0)]
	assert [c[1] for c in second.of("tick")] == [0, 1, 2, 3]

	fake_time.advance(2.0)
	clock.poll()

	assert [c[1] for c in second.of("tick")] == [0, 1, 2, 3]


def test_unsubscribe_unknown_listener_is_ignored(fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time)
	clock.unsubscribe(RecordingListener())


def test_partial_listener_without_base_class (fake_time: conftest.FakeTime) -> None:

	"""Any object with a subset of the hooks can subscribe."""

	bars: typing.List[int] = []

	class BarsOnly:

		def on_bar (self, bar: int, time: float) -> None:
			bars.append(bar)

	clock = _clock(fake_time, 120)
	clock.subscribe(BarsOnly())
	clock.start()

	fake_time.advance(4.0)
	clock.poll()

	assert bars == [0, 1, 2]


def test_failing_listener_does_not_stop_others (fake_time: conftest.FakeTime, caplog: pytest.LogCaptureFixture) -> None:

	"""A listener exception is logged and the remaining listeners still fire."""

	class Broken (lull.clock.ClockListener):

		def on_tick (self, tick: int, time: float) -> None:
			raise RuntimeError("boom")

	clock = _clock(fake_time)
	listener = RecordingListener()

	clock.subscribe(Broken())
	clock.subscribe(listener)

	with caplog.at_level(logging.ERROR, logger="lull.clock"):
		clock.start()

	assert listener.of("tick")
	assert "Broken failed in on_tick" in caplog.text


def test_set_bpm_only_moves_future_ticks (fake_time: conftest.FakeTime) -> None:

	"""A tempo change re-anchors at the next unfired tick."""

	clock = _clock(fake_time, 120, lookahead=0.0)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()
	fake_time.advance(0.5)
	clock.poll()

	# Ticks 0-4 fired at 0.125s spacing.
	assert listener.of("tick")[-1] == ("tick", 4, pytest.approx(0.5))

	clock.set_bpm(60)
	fake_time.advance(0.25)
	clock.poll()

	# Tick 5 keeps the boundary of the old grid; tick 6 uses the new spacing.
	assert listener.of("tick")[-1] == ("tick", 5, pytest.approx(0.625))

	fake_time.advance(0.15)
	clock.poll()

	assert listener.of("tick")[-1] == ("tick", 6, pytest.approx(0.875))


def test_resume_skips_stopped_interval (fake_time: conftest.FakeTime) -> None:

	"""Resuming continues the counters without a burst of late ticks."""

	clock = _clock(fake_time, 120, lookahead=0.0)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()
	fake_time.advance(0.25)
	clock.poll()
	clock.stop()

	fake_time.advance(30.0)
	clock.resume()

	ticks = listener.of("tick")

	assert [c[1] for c in ticks] == [0, 1, 2, 3]
	assert ticks[-1][2] == pytest.approx(30.25)


def test_headroom_warning (fake_time: conftest.FakeTime, caplog: pytest.LogCaptureFixture) -> None:

	"""With diagnostics on, a late poll warns about tight scheduling."""

	clock = _clock(fake_time, 120, lookahead=0.0, diagnostics=True)

	with caplog.at_level(logging.WARNING, logger="lull.clock"):
		clock.start()

	assert "Scheduling tight" in caplog.text


def test_position_tracks_last_fired_tick (fake_time: conftest.FakeTime) -> None:

	clock = _clock(fake_time, 120, lookahead=0.0)
	clock.start()

	fake_time.advance(2.0)
	clock.poll()

	assert clock.position == lull.clock.TimePosition(tick=16, beat=4, bar=1, phrase=0)
	assert clock.last_fired_tick == 16


@pytest.mark.asyncio
async def test_background_task_drives_the_clock () -> None:

	"""With an event loop running, the clock polls itself."""

	loop = asyncio.get_running_loop()
	clock = lull.clock.Clock(bpm=140, time_source=loop.time, poll_interval=0.005)
	listener = RecordingListener()
	clock.subscribe(listener)

	clock.start()
	assert clock.task is not None

	await asyncio.sleep(0.3)
	clock.stop()

	assert clock.task is None
	assert len(listener.of("tick")) > 2
