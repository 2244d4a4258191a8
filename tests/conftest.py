import random
import typing

import mido
import pytest

import lull.engine
import lull.graph


class FakeTime:

	"""A manually advanced monotonic time source."""

	def __init__ (self, start: float = 0.0) -> None:

		self.now = start

	def __call__ (self) -> float:

		return self.now

	def advance (self, seconds: float) -> float:

		"""Move time forward and return the new value."""

		self.now += seconds
		return self.now


class FakeMidiOut:

	"""MIDI output stub that records what it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[mido.Message] = []
		self.closed = False
		self.panics = 0

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.messages.append(message)

	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True

	def panic (self) -> None:

		"""Count panic calls."""

		self.panics += 1

	def reset (self) -> None:

		"""No-op reset for the fake device."""

		return None

	def of_type (self, message_type: str) -> typing.List[mido.Message]:

		"""Recorded messages of one type, in send order."""

		return [m for m in self.messages if m.type == message_type]


# Module-level reference so tests can reach the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


def current_fake_output () -> typing.Optional[FakeMidiOut]:

	return _current_fake_output


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def fake_time () -> FakeTime:

	return FakeTime()


@pytest.fixture
def graph (fake_time: FakeTime) -> lull.graph.RecordingGraph:

	"""A recording graph driven by the fake time source."""

	return lull.graph.RecordingGraph(time_source=fake_time)


@pytest.fixture
def engine (graph: lull.graph.RecordingGraph) -> lull.engine.Engine:

	"""A seeded engine on the recording graph."""

	return lull.engine.Engine(graph, config=lull.engine.EngineConfig(bpm=120, seed=1), rng=random.Random(1))
