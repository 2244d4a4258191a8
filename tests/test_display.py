import io
import logging
import random

import pytest

import lull.display
import lull.engine
import lull.graph
import lull.player

import conftest


def _player (fake_time: conftest.FakeTime) -> lull.player.Player:

	"""A player on recording graphs, not yet started."""

	return lull.player.Player(
		lambda: lull.graph.RecordingGraph(time_source=fake_time),
		config = lull.engine.EngineConfig(bpm=89, seed=11),
		rng = random.Random(11),
		teardown_delay = 0.0
	)


@pytest.mark.parametrize("seconds, expected", [
	(0, "0:00"),
	(9.9, "0:09"),
	(61, "1:01"),
	(900, "15:00"),
	(-3, "0:00"),
])
def test_format_time (seconds: float, expected: str) -> None:

	assert lull.display.format_time(seconds) == expected


def test_format_status_before_the_first_track (fake_time: conftest.FakeTime) -> None:

	display = lull.display.Display(_player(fake_time), stream=io.StringIO())

	assert display.format_status() == "Starting..."


def test_format_status (fake_time: conftest.FakeTime) -> None:

	"""Status line should show the track, key, tempo, sounds, time and status."""

	player = _player(fake_time)
	state = player.start_track()
	fake_time.advance(151)

	status = lull.display.Display(player, stream=io.StringIO()).format_status()

	assert status.startswith("Track 1  ")
	assert f" {state.scale_name}  89 BPM  Kit: {state.kit_name}  Synth: {state.synth_name}  " in status
	assert f"2:31 / {lull.display.format_time(player.track_length)}  playing" in status


def test_format_status_shows_pause (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	player.start_track()
	player.pause()

	assert lull.display.Display(player).format_status().endswith("paused")


def test_draw_writes_to_the_stream (fake_time: conftest.FakeTime) -> None:

	"""draw() should write the status line with ANSI clear codes."""

	stream = io.StringIO()
	display = lull.display.Display(_player(fake_time), stream=stream)
	display._active = True
	display._last_line = "test status"

	display.draw()

	assert stream.getvalue() == "\r\033[Ktest status"


def test_clear_line_writes_ansi (fake_time: conftest.FakeTime) -> None:

	stream = io.StringIO()
	display = lull.display.Display(_player(fake_time), stream=stream)
	display._active = True

	display.clear_line()

	assert stream.getvalue() == "\r\033[K"


def test_update_inactive_is_noop (fake_time: conftest.FakeTime) -> None:

	stream = io.StringIO()
	display = lull.display.Display(_player(fake_time), stream=stream)

	display.update()

	assert display._last_line == ""
	assert stream.getvalue() == ""


def test_start_installs_handler_and_stop_restores (fake_time: conftest.FakeTime) -> None:

	"""start() should replace root logger handlers with DisplayLogHandler."""

	display = lull.display.Display(_player(fake_time), stream=io.StringIO())

	root_logger = logging.getLogger()
	original_handlers = list(root_logger.handlers)

	display.start()

	try:
		assert display.active
		assert len(root_logger.handlers) == 1
		assert isinstance(root_logger.handlers[0], lull.display.DisplayLogHandler)
	finally:
		display.stop()

	assert not display.active
	assert root_logger.handlers == original_handlers


def test_log_records_scroll_above_the_status_line (fake_time: conftest.FakeTime) -> None:

	player = _player(fake_time)
	player.start_track()

	stream = io.StringIO()
	display = lull.display.Display(player, stream=stream)

	display.start()

	try:
		display.update()
		stream.truncate(0)
		stream.seek(0)

		record = logging.LogRecord("lull.test", logging.WARNING, __file__, 1, "hello", None, None)
		display._handler.emit(record)

	finally:
		display.stop()

	output = stream.getvalue()

	assert output.startswith("\r\033[K")
	assert "hello\n" in output
	assert "Track 1" in output.split("hello\n", 1)[1]
