"""MIDI backend for the signal graph.

:class:`MidiGraph` keeps the full node and automation bookkeeping of
:class:`lull.graph.Graph` but, instead of rendering audio, translates what
the layers schedule into timed MIDI for an external synthesizer:

- starting an ``oscillator`` or ``noise`` node queues a ``note_on`` at its
  start time, stopping it queues the matching ``note_off``;
- the channel comes from the nearest labelled node downstream (every layer
  labels its output gain with its own name), looked up in ``channel_map``;
- the note comes from the node's ``note`` option, or from its frequency;
- velocity is the peak of the nearest downstream gain envelope from the
  start onwards, relative to ``velocity_ceiling``;
- cutoff automation on ``biquad`` filters becomes CC 74 (brightness).

Messages wait in a time-ordered heap.  A background task flushes them when
an event loop is running; otherwise call :meth:`MidiGraph.flush` yourself.
"""

import asyncio
import dataclasses
import heapq
import itertools
import logging
import typing

import mido

import lull.easing
import lull.graph
import lull.midi_utils
import lull.scales


logger = logging.getLogger(__name__)


DEFAULT_CHANNELS: typing.Dict[str, int] = {
	"pad": 0,
	"texture": 1,
	"arp": 2,
	"motif": 3,
	"beat": 9,
}

SOURCE_KINDS = ("oscillator", "noise")

CC_BRIGHTNESS = 74
CC_ALL_SOUND_OFF = 120
CC_ALL_NOTES_OFF = 123

DEFAULT_VELOCITY_CEILING = 0.3
DEFAULT_DISPATCH_INTERVAL = 0.005

_MIN_CUTOFF = 20.0
_MAX_CUTOFF = 20000.0


@dataclasses.dataclass (order=True)
class ScheduledMessage:

	"""A MIDI message waiting for its time on the graph timeline."""

	time: float
	sequence: int
	message: mido.Message = dataclasses.field(compare=False)


class MidiGraph (lull.graph.Graph):

	"""
	A signal graph that plays through a MIDI output port.
	"""

	def __init__ (
		self,
		port: typing.Optional[typing.Any] = None,
		device_name: typing.Optional[str] = None,
		channel_map: typing.Optional[typing.Dict[str, int]] = None,
		time_source: typing.Optional[lull.graph.TimeSource] = None,
		velocity_ceiling: float = DEFAULT_VELOCITY_CEILING,
		dispatch_interval: float = DEFAULT_DISPATCH_INTERVAL
	) -> None:

		"""
		Open (or adopt) a MIDI output.

		Parameters:
			port: An already-open mido output, left open by :meth:`close` so
				the next track can reuse it.  When omitted, one is selected
				with :func:`lull.midi_utils.select_output_device` and closed
				together with the graph.
			device_name: Output to open when no port is given.
			channel_map: Layer label to MIDI channel (0-15).  Labels missing from
				the map fall back to :data:`DEFAULT_CHANNELS`, then channel 0.
			time_source: Monotonic time source, for tests.
			velocity_ceiling: Gain level that maps to velocity 127.
			dispatch_interval: Seconds between flushes of the message queue.

		Raises:
			lull.graph.GraphError: No output port could be opened.
		"""

		owns_port = port is None

		if port is None:
			device_name, port = lull.midi_utils.select_output_device(device_name)

		if port is None:
			raise lull.graph.GraphError("No MIDI output available")

		super().__init__(time_source)

		self.port = port
		self.owns_port = owns_port
		self.device_name = device_name
		self.channel_map = {**DEFAULT_CHANNELS, **(channel_map or {})}
		self.velocity_ceiling = velocity_ceiling
		self.dispatch_interval = dispatch_interval

		self.queue: typing.List[ScheduledMessage] = []
		self._sequence = itertools.count()
		self._voices: typing.Dict[int, typing.Tuple[int, int]] = {}
		self._sounding: typing.Dict[typing.Tuple[int, int], int] = {}
		self.task: typing.Optional[asyncio.Task] = None

		self._launch()

	# ─── Dispatch ────────────────────────────────────────────────────────────

	def _launch (self) -> None:

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.debug("No running event loop - MIDI messages are sent on explicit flush() calls")
			return

		self.task = loop.create_task(self._run_dispatcher())

	async def _run_dispatcher (self) -> None:

		while not self.closed:
			self.flush()
			await asyncio.sleep(self.dispatch_interval)

	def _push (self, at: float, message: mido.Message) -> None:
		heapq.heappush(self.queue, ScheduledMessage(at, next(self._sequence), message))

	def flush (self, now: typing.Optional[float] = None) -> int:

		"""
		Send every queued message due at or before *now* (default: the graph's
		current time).  Late messages are sent immediately.  Returns the number
		of messages sent.
		"""

		if now is None:
			now = self.current_time()

		sent = 0

		while self.queue and self.queue[0].time <= now:
			scheduled = heapq.heappop(self.queue)

			if self._send(scheduled.message):
				sent += 1

		return sent

	def _send (self, message: mido.Message) -> bool:

		"""Send one message, collapsing overlapping notes on the same key."""

		if message.type in ("note_on", "note_off"):

			key = (message.channel, message.note)
			count = self._sounding.get(key, 0)

			if message.type == "note_on":
				self._sounding[key] = count + 1

				if count > 0:
					return False

			else:
				if count <= 0:
					return False

				if count > 1:
					self._sounding[key] = count - 1
					return False

				del self._sounding[key]

		try:
			self.port.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
			return False

		return True

	def panic (self) -> None:

		"""Silence every channel immediately."""

		logger.info("Panic: sending all notes off.")

		self._sounding.clear()

		try:
			for channel in range(16):
				self.port.send(mido.Message("control_change", channel=channel, control=CC_ALL_NOTES_OFF, value=0))
				self.port.send(mido.Message("control_change", channel=channel, control=CC_ALL_SOUND_OFF, value=0))

			self.port.panic()

		except Exception:
			logger.exception("MIDI panic failed (device may be disconnected)")

	# ─── Routing lookups ─────────────────────────────────────────────────────

	def _downstream (self, node: lull.graph.Node) -> typing.Iterator[lull.graph.Node]:

		"""Breadth-first walk over everything *node* feeds, nearest first."""

		seen = {node.id}
		frontier = list(node.outputs)

		while frontier:
			following: typing.List[lull.graph.Node] = []

			for candidate in frontier:
				if candidate.id in seen:
					continue

				seen.add(candidate.id)
				yield candidate
				following.extend(candidate.outputs)

			frontier = following

	def channel_for (self, node: lull.graph.Node) -> int:

		for candidate in itertools.chain((node,), self._downstream(node)):
			if candidate.label in self.channel_map:
				return self.channel_map[candidate.label]

		return 0

	def note_for (self, node: lull.graph.Node) -> typing.Optional[int]:

		if "note" in node.options:
			return max(0, min(127, int(node.options["note"])))

		frequency = node.params.get("frequency")

		if frequency is None or frequency.value <= 0:
			return None

		return max(0, min(127, round(lull.scales.freq_to_midi(frequency.value))))

	def velocity_for (self, node: lull.graph.Node, at: float) -> int:

		"""Map the peak of the nearest downstream gain envelope onto 1-127."""

		peak: typing.Optional[float] = None

		for candidate in self._downstream(node):

			if candidate.kind != "gain" or "gain" not in candidate.params:
				continue

			gain = candidate.params["gain"]
			levels = [e.value for e in gain.events if e.time >= at]

			if levels:
				peak = max(levels)
				break

		if peak is None:
			return 64

		return max(1, min(127, round(peak / self.velocity_ceiling * 127)))

	# ─── Graph hooks ─────────────────────────────────────────────────────────

	def _node_started (self, node: lull.graph.Node, at: float) -> None:

		if node.kind not in SOURCE_KINDS:
			return

		note = self.note_for(node)

		if note is None:
			return

		channel = self.channel_for(node)
		velocity = self.velocity_for(node, at)

		self._voices[node.id] = (channel, note)
		self._push(at, mido.Message("note_on", channel=channel, note=note, velocity=velocity))

	def _node_stopped (self, node: lull.graph.Node, at: float) -> None:

		voice = self._voices.pop(node.id, None)

		if voice is None:
			return

		channel, note = voice
		self._push(at, mido.Message("note_off", channel=channel, note=note, velocity=0))

	def _param_scheduled (self, param: lull.graph.Param, event: lull.graph.AutomationEvent) -> None:

		if param.node.kind != "biquad" or param.name != "frequency":
			return

		value = round(lull.easing.map_log(event.value, _MIN_CUTOFF, _MAX_CUTOFF, 0, 127))

		self._push(event.time, mido.Message("control_change", channel=self.channel_for(param.node), control=CC_BRIGHTNESS, value=value))

	def _suspended (self) -> None:
		self.panic()

	def _closed (self) -> None:

		if self.task is not None:
			self.task.cancel()
			self.task = None

		self.queue.clear()
		self._voices.clear()
		self.panic()

		if not self.owns_port:
			return

		try:
			self.port.close()
		except Exception:
			logger.exception("Failed to close MIDI output")

		logger.info(f"MIDI output closed: {self.device_name}")
