"""Per-track coordination.

An :class:`Engine` is built once per track.  It chooses the track's key,
owns the clock and the shared modulation bank, builds the mix bus on the
signal graph, and hands all of that to the layers that register with it.
It never plays a note itself.

Signal routing::

	layers (melodic) -> main_bus -> sidechain_gain -> compressor -> master -> out
	                      main_bus -> reverb_send -> taps -> lowpass -> reverb_return -> sidechain_gain
	layers (drums)   ----------------------------------> compressor (the drum bus)

Drums enter after the sidechain gain stage, so a kick ducks the melodic mix
but never itself.
"""

import asyncio
import dataclasses
import logging
import random
import typing

import lull.clock
import lull.constants
import lull.diagnostics
import lull.graph
import lull.modulation
import lull.scales


logger = logging.getLogger(__name__)


NOTE_OCTAVES = 4

REVERB_TAPS: typing.Tuple[float, ...] = (0.03, 0.05, 0.08, 0.13)
REVERB_SEND_LEVEL = 0.3
REVERB_RETURN_LEVEL = 0.5
REVERB_FEEDBACK = 0.4
REVERB_DAMPING = 2000.0

# Automation older than this is folded into a single starting value.
AUTOMATION_HISTORY_SECONDS = 4.0


@dataclasses.dataclass
class EngineConfig:

	"""Settings for one engine (and so one track)."""

	bpm: float = lull.constants.DEFAULT_BPM
	volume: float = lull.constants.DEFAULT_VOLUME
	seed: typing.Optional[int] = None
	lookahead: float = lull.constants.DEFAULT_LOOKAHEAD
	poll_interval: float = lull.constants.DEFAULT_POLL_INTERVAL
	diagnostics: bool = False


@dataclasses.dataclass (frozen=True)
class MusicState:

	"""
	The key of a track and the sounds chosen for it.  Read by every layer.
	"""

	root: int
	scale: typing.Tuple[int, ...]
	scale_name: str
	notes: typing.Tuple[int, ...]
	kit_name: str = ""
	synth_name: str = ""


class Engine:

	"""
	Owns everything a track's layers share.
	"""

	def __init__ (
		self,
		graph: lull.graph.SignalGraph,
		config: typing.Optional[EngineConfig] = None,
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		"""
		Pick the key, set up modulation and build the mix bus.

		Parameters:
			graph: The signal graph to play on.
			config: Tempo, volume, seed and scheduling settings.
			rng: Master random source.  Defaults to one seeded from
				``config.seed`` (unseeded when that is None).
			node_counter: Voice accounting shared with the layers.
		"""

		self.config = config or EngineConfig()
		self.graph = graph
		self.rng = rng or random.Random(self.config.seed)
		self.node_counter = node_counter or lull.diagnostics.NodeCounter()

		self.clock = lull.clock.Clock(
			bpm = self.config.bpm,
			time_source = graph.current_time,
			lookahead = self.config.lookahead,
			poll_interval = self.config.poll_interval,
			diagnostics = self.config.diagnostics
		)

		self.mods = lull.modulation.ModulationBank(rng=self.spawn_rng())
		self.state = self._init_music_state()
		self._setup_modulation()

		self.layers: typing.List[typing.Any] = []
		self.paused = False
		self.stopped = False
		self.closed = False
		self._close_handle: typing.Optional[asyncio.TimerHandle] = None

		self._build_routing()

	# ─── Setup ───────────────────────────────────────────────────────────────

	def spawn_rng (self) -> random.Random:

		"""An independent random source derived from the master generator."""

		return random.Random(self.rng.randint(0, 2 ** 63))

	def _init_music_state (self) -> MusicState:

		scale_name = self.rng.choice(lull.scales.CURATED_SCALES)
		scale = lull.scales.SCALES[scale_name]
		root = self.rng.choice(lull.scales.CURATED_ROOTS)

		notes = lull.scales.get_scale_notes(root, scale, octaves=NOTE_OCTAVES)

		return MusicState(root=root, scale=tuple(scale), scale_name=scale_name, notes=tuple(notes))

	def _setup_modulation (self) -> None:

		self.mods.add("filter_main", lull.modulation.slow(900, 400))
		self.mods.add("intensity", lull.modulation.glacial(0.65, 0.15))
		self.mods.add("velocity", lull.modulation.medium(0.7, 0.12))
		self.mods.add("detune", lull.modulation.fast(0, 6))
		self.mods.add("filter_res", lull.modulation.slow(2, 1.5))

	def _build_routing (self) -> None:

		graph = self.graph

		self.master = graph.create_node("gain", gain=self.config.volume / 100.0, label="master")

		self.compressor = graph.create_node(
			"compressor",
			threshold = -18,
			knee = 12,
			ratio = 4,
			attack = 0.003,
			release = 0.15
		)

		self.sidechain_gain = graph.create_node("gain", gain=1.0, label="sidechain")
		self.main_bus = graph.create_node("gain", gain=1.0, label="main")

		self.reverb_send, self.reverb_return = self._build_reverb()

		graph.connect(self.main_bus, self.sidechain_gain)
		graph.connect(self.main_bus, self.reverb_send)
		graph.connect(self.reverb_return, self.sidechain_gain)
		graph.connect(self.sidechain_gain, self.compressor)
		graph.connect(self.compressor, self.master)
		graph.connect(self.master, graph.destination)

	def _build_reverb (self) -> typing.Tuple[lull.graph.Node, lull.graph.Node]:

		"""A multi-tap delay with a damped feedback loop."""

		graph = self.graph

		send = graph.create_node("gain", gain=REVERB_SEND_LEVEL)
		ret = graph.create_node("gain", gain=REVERB_RETURN_LEVEL)
		feedback = graph.create_node("gain", gain=REVERB_FEEDBACK)
		damping = graph.create_node("biquad", type="lowpass", frequency=REVERB_DAMPING, Q=0.5)

		for i, delay_time in enumerate(REVERB_TAPS):
			delay = graph.create_node("delay", delay_time=delay_time)
			tap = graph.create_node("gain", gain=0.3 / (i + 1))

			graph.connect(send, delay)
			graph.connect(delay, tap)
			graph.connect(tap, damping)

		graph.connect(damping, feedback)
		graph.connect(feedback, send)
		graph.connect(damping, ret)

		return send, ret

	# ─── Accessors ───────────────────────────────────────────────────────────

	@property
	def drum_bus (self) -> lull.graph.Node:

		"""Entry point for drums: the compressor, past the sidechain stage."""

		return self.compressor

	def snapshot (self) -> MusicState:
		return self.state

	def set_kit_name (self, name: str) -> None:
		self.state = dataclasses.replace(self.state, kit_name=name)

	def set_synth_name (self, name: str) -> None:
		self.state = dataclasses.replace(self.state, synth_name=name)

	def note_to_freq (self, midi: float) -> float:
		return lull.scales.midi_to_freq(midi)

	def current_time (self) -> float:
		return self.graph.current_time()

	# ─── Coordination ────────────────────────────────────────────────────────

	def trigger_sidechain_duck (self, time: float) -> None:

		"""
		Duck the melodic bus at *time*.

		Gain drops to the duck depth over a 3ms attack (instant changes click),
		optionally holds, then recovers linearly.  Anything already scheduled
		from *time* on is replaced, so when two ducks overlap the later one
		decides the shape.
		"""

		gain = self.sidechain_gain.param("gain")

		attack_end = time + lull.constants.DUCK_ATTACK
		hold_end = attack_end + lull.constants.DUCK_HOLD

		gain.discard_before(time - AUTOMATION_HISTORY_SECONDS)
		gain.cancel_scheduled_values(time)
		gain.set_value_at_time(1.0, time)
		gain.linear_ramp_to_value_at_time(lull.constants.DUCK_DEPTH, attack_end)

		if lull.constants.DUCK_HOLD > 0:
			gain.linear_ramp_to_value_at_time(lull.constants.DUCK_DEPTH, hold_end)

		gain.linear_ramp_to_value_at_time(1.0, hold_end + lull.constants.DUCK_RELEASE)

	def register_layer (self, layer: typing.Any) -> None:

		"""Subscribe a layer to the clock.  Registration order is firing order."""

		self.layers.append(layer)
		self.clock.subscribe(layer)

	# ─── Transport ───────────────────────────────────────────────────────────

	def start (self) -> None:

		note = lull.scales.midi_to_name(self.state.root)
		logger.info(f"Track in {note} {self.state.scale_name} at {self.clock.bpm} BPM with {len(self.layers)} layers")

		self.clock.start()

	def pause (self) -> None:

		"""Stop the clock and suspend the graph.  A no-op while paused."""

		if self.paused:
			return

		self.paused = True
		self.clock.stop()

		try:
			self.graph.suspend()
		except Exception:
			logger.warning("Graph suspend failed; clock stopped anyway", exc_info=True)

		logger.info("Paused")

	def resume (self) -> None:

		"""Resume the graph, then the clock.  A no-op unless paused."""

		if not self.paused:
			return

		self.paused = False

		try:
			self.graph.resume()
		except Exception:
			logger.warning("Graph resume failed; restarting clock anyway", exc_info=True)

		self.clock.resume()

		logger.info("Resumed")

	def _fade_out (self) -> None:

		"""Stop the clock and fade the master gain to silence."""

		self.stopped = True
		self.clock.stop()

		now = self.graph.current_time()

		try:
			gain = self.master.param("gain")
			level = gain.value_at(now)

			gain.cancel_scheduled_values(now)
			gain.set_value_at_time(level, now)
			gain.linear_ramp_to_value_at_time(0.0, now + lull.constants.MASTER_FADE_SECONDS)

		except lull.graph.GraphError:
			logger.warning("Master fade failed; closing without fade", exc_info=True)

	def stop (self) -> None:

		"""
		Stop the clock and fade out, then close the graph once the fade has
		played.  Closing is deferred on the running event loop; without one
		the graph is closed immediately.
		"""

		if self.stopped:
			return

		self._fade_out()

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			self.close()
			return

		self._close_handle = loop.call_later(lull.constants.TEARDOWN_DELAY, self.close)

	async def shutdown (self, delay: float = lull.constants.TEARDOWN_DELAY) -> None:

		"""Stop, wait for the fade to play out and close."""

		if not self.stopped:
			self._fade_out()

		if self._close_handle is not None:
			self._close_handle.cancel()
			self._close_handle = None

		await asyncio.sleep(delay)

		self.close()

	def close (self) -> None:

		"""Dispose every layer and close the graph.  Idempotent."""

		if self.closed:
			return

		self.closed = True
		self._close_handle = None

		self.clock.stop()

		for layer in self.layers:
			layer.dispose()

		self.graph.close()

		logger.debug(f"Engine closed ({self.node_counter.active} voice nodes still active)")
