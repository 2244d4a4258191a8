import asyncio
import random
import typing

import pytest

import lull.constants
import lull.engine
import lull.graph
import lull.keystroke
import lull.player

import conftest


class ScriptedKeys:

	"""Stands in for a keystroke listener: one batch of keys per drain."""

	def __init__ (self, *batches: typing.List[str]) -> None:

		self.batches = list(batches)

	def drain (self) -> typing.List[str]:

		return self.batches.pop(0) if self.batches else []


def _player (fake_time: conftest.FakeTime, graphs: typing.Optional[list] = None, **kwargs: typing.Any) -> lull.player.Player:

	def factory () -> lull.graph.RecordingGraph:

		graph = lull.graph.RecordingGraph(time_source=fake_time)

		if graphs is not None:
			graphs.append(graph)

		return graph

	kwargs.setdefault("teardown_delay", 0.0)

	return lull.player.Player(factory, config=lull.engine.EngineConfig(bpm=100, seed=7), rng=random.Random(7), **kwargs)


def _record (player: lull.player.Player) -> typing.List[str]:

	"""Collect lifecycle event names in order."""

	seen: typing.List[str] = []

	for name in ("track_start", "track_end", "pause", "resume"):
		player.events.on(name, lambda *args, name=name: seen.append(name))

	return seen


# ─── Tracks ──────────────────────────────────────────────────────────────────


def test_idle_player_has_no_snapshot (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)

	assert player.status == "idle"
	assert player.snapshot() is None
	assert player.elapsed == 0.0
	assert not player.track_finished


def test_start_track (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	seen = _record(player)
	states: list[lull.engine.MusicState] = []
	player.events.on("track_start", states.append)

	state = player.start_track()

	assert player.track_number == 1
	assert player.status == "playing"
	assert seen == ["track_start"]
	assert states == [state]

	assert [type(layer) for layer in player.layers] == list(lull.player.LAYER_TYPES)
	assert player.engine.layers == player.layers
	assert player.engine.node_counter is player.node_counter

	assert lull.constants.MIN_TRACK_SECONDS <= player.track_length <= lull.constants.MAX_TRACK_SECONDS
	assert state.kit_name != "" and state.synth_name != ""


def test_track_length_is_whole_seconds (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)

	for _ in range(20):
		length = player.random_track_length()
		assert isinstance(length, int)
		assert 480 <= length <= 900


def test_snapshot (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	state = player.start_track()

	fake_time.advance(12.0)
	snapshot = player.snapshot()

	assert snapshot == lull.player.PlayerSnapshot(
		track_number = 1,
		state = state,
		bpm = 100,
		status = "playing",
		elapsed = pytest.approx(12.0),
		length = player.track_length
	)


def test_tracks_differ_but_replay_with_the_same_seed (fake_time: conftest.FakeTime) -> None:

	first = _player(fake_time)
	second = _player(fake_time)

	first_states = [first.start_track() for _ in range(3)]
	second_states = [second.start_track() for _ in range(3)]

	assert first_states == second_states
	assert len({(s.root, s.scale_name, s.kit_name, s.synth_name) for s in first_states}) > 1


def test_start_track_cuts_off_a_running_track (fake_time: conftest.FakeTime) -> None:

	graphs: list[lull.graph.RecordingGraph] = []
	player = _player(fake_time, graphs)
	seen = _record(player)

	player.start_track()
	old_engine = player.engine
	old_layers = player.layers

	player.start_track()

	assert old_engine.closed
	assert graphs[0].closed and not graphs[1].closed
	assert all(layer.disposed for layer in old_layers)
	assert seen == ["track_start", "track_end", "track_start"]
	assert player.track_number == 2


def test_elapsed_excludes_time_spent_paused (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	player.start_track()

	fake_time.advance(5.0)
	player.pause()
	fake_time.advance(60.0)

	assert player.elapsed == pytest.approx(5.0)

	player.resume()
	fake_time.advance(1.0)

	assert player.elapsed == pytest.approx(6.0)


def test_track_finishes_after_its_length (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	player.start_track()

	fake_time.advance(player.track_length - 1)
	assert not player.track_finished

	fake_time.advance(1)
	assert player.track_finished


# ─── Transport ───────────────────────────────────────────────────────────────


def test_pause_and_resume (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	seen = _record(player)

	# Nothing to pause yet.
	player.pause()
	player.toggle_pause()

	player.start_track()

	player.pause()
	player.pause()

	assert player.paused
	assert player.status == "paused"

	player.toggle_pause()

	assert not player.paused
	assert player.status == "playing"
	assert seen == ["track_start", "pause", "resume"]


@pytest.mark.asyncio
async def test_next_track_hands_over (fake_time: conftest.FakeTime) -> None:

	graphs: list[lull.graph.RecordingGraph] = []
	player = _player(fake_time, graphs)
	seen = _record(player)

	player.start_track()
	first = player.engine

	await player.next_track()

	assert first.closed
	assert graphs[0].closed
	assert player.engine is not first
	assert player.track_number == 2
	assert player.status == "playing"
	assert seen == ["track_start", "track_end", "track_start"]

	await player.stop()


@pytest.mark.asyncio
async def test_paused_track_ends_without_waiting_for_a_fade (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time, teardown_delay=30.0)
	player.start_track()
	player.pause()

	await asyncio.wait_for(player.next_track(), timeout=1.0)

	assert player.track_number == 2
	assert not player.paused

	player.pause()
	await asyncio.wait_for(player.stop(), timeout=1.0)


@pytest.mark.asyncio
async def test_stop (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	seen = _record(player)
	player.start_track()

	await player.stop()
	await player.stop()

	assert player.status == "stopped"
	assert player.engine.closed
	assert seen == ["track_start", "track_end"]


@pytest.mark.asyncio
async def test_handle_key (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	player.start_track()

	assert await player.handle_key("p")
	assert player.paused

	assert await player.handle_key("P")
	assert not player.paused

	assert await player.handle_key(" ")
	assert player.track_number == 2

	assert await player.handle_key("x")
	assert not await player.handle_key("q")
	assert not await player.handle_key("\x1b")

	await player.stop()


# ─── Main loop ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_play_until_quit (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	keys = lull.keystroke.KeystrokeListener()
	keys.push("q")

	await asyncio.wait_for(player.play(keystrokes=keys, update_interval=0.01), timeout=2.0)

	assert player.track_number == 1
	assert player.status == "stopped"
	assert player.engine.closed


@pytest.mark.asyncio
async def test_play_advances_finished_tracks (fake_time: conftest.FakeTime, monkeypatch: pytest.MonkeyPatch) -> None:

	player = _player(fake_time)
	monkeypatch.setattr(player, "random_track_length", lambda: 0)

	keys = ScriptedKeys([], [], ["q"])

	await asyncio.wait_for(player.play(keystrokes=keys, update_interval=0.01), timeout=2.0)

	assert player.track_number >= 3
	assert player.status == "stopped"


@pytest.mark.asyncio
async def test_play_updates_the_display (fake_time: conftest.FakeTime) -> None:

	class CountingDisplay:

		def __init__ (self) -> None:
			self.updates = 0

		def update (self) -> None:
			self.updates += 1

	player = _player(fake_time)
	display = CountingDisplay()

	await asyncio.wait_for(player.play(keystrokes=ScriptedKeys([], ["q"]), display=display, update_interval=0.01), timeout=2.0)

	assert display.updates >= 2


@pytest.mark.asyncio
async def test_play_logs_stats_with_diagnostics (fake_time: conftest.FakeTime, caplog: pytest.LogCaptureFixture) -> None:

	player = lull.player.Player(
		lambda: lull.graph.RecordingGraph(time_source=fake_time),
		config = lull.engine.EngineConfig(seed=3, diagnostics=True),
		teardown_delay = 0.0
	)

	with caplog.at_level("INFO", logger="lull.player"):
		await asyncio.wait_for(player.play(keystrokes=ScriptedKeys([], [], ["q"]), update_interval=0.01, stats_interval=0.0), timeout=2.0)

	assert any(record.getMessage().startswith("nodes active=") for record in caplog.records)
