import dataclasses
import logging
import random
import typing

import lull.clock
import lull.constants
import lull.diagnostics
import lull.graph
import lull.scales

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


# Grace period between a voice's last stop time and its disposal.
RELEASE_TAIL = 0.1


@dataclasses.dataclass
class Voice:

	"""
	The graph nodes behind one emitted event, and when they may be released.
	"""

	nodes: typing.List[lull.graph.Node]
	release_time: float


class Layer (lull.clock.ClockListener):

	"""
	Base class for generative layers.

	A layer owns an output gain (labelled with the layer's name) that fades in
	on construction, a set of live voices, and a two-state section machine:
	*active* sections play, *resting* sections do not.  Subclasses decide
	when to roll the section and what to play; every audio event goes through
	:meth:`emit` so a failing graph call costs one event, never the clock.

	Subclasses that override :meth:`on_tick` must call the base
	implementation, which records the tick and releases expired voices.
	"""

	name = "layer"
	drum = False
	level = 1.0

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		self.engine = engine
		self.graph = engine.graph
		self.rng = rng or engine.spawn_rng()
		self.node_counter = node_counter or engine.node_counter

		self.voices: typing.List[Voice] = []
		self.active = False
		self.pattern_start_tick = 0
		self.last_tick = 0

		self.stopped = False
		self.disposed = False

		# Nodes made by the event in progress that no voice has claimed yet.
		self._unclaimed: typing.Optional[typing.List[lull.graph.Node]] = None

		self.output = self.graph.create_node("gain", gain=0.0, label=self.name)
		self.graph.connect(self.output, engine.drum_bus if self.drum else engine.main_bus)

		now = self.graph.current_time()
		gain = self.output.param("gain")
		gain.set_value_at_time(0.0, now)
		gain.linear_ramp_to_value_at_time(self.level, now + lull.constants.LAYER_FADE_IN_SECONDS)

	# ─── Clock hooks ─────────────────────────────────────────────────────────

	def on_tick (self, tick: int, time: float) -> None:

		self.last_tick = tick
		self.release_expired(self.graph.current_time())

	# ─── Sections ────────────────────────────────────────────────────────────

	def roll_section (self, probability: float) -> bool:

		"""
		Toggle between resting and active with a weighted coin flip.

		Entering (or re-entering) an active section calls
		:meth:`on_section_start` and restarts the pattern at the current tick.
		"""

		self.active = self.rng.random() < probability

		if self.active:
			self.pattern_start_tick = self.last_tick
			self.on_section_start()

		return self.active

	def on_section_start (self) -> None:
		pass

	def step_index (self, tick: int, length: int, ticks_per_step: int = 1) -> typing.Optional[int]:

		"""
		Pattern step for *tick*, counted from the start of the section.

		Returns None for ticks before the section or between steps.
		"""

		elapsed = tick - self.pattern_start_tick

		if elapsed < 0 or elapsed % ticks_per_step:
			return None

		return (elapsed // ticks_per_step) % length

	# ─── Helpers ─────────────────────────────────────────────────────────────

	def mod (self, name: str, time: float) -> float:
		return self.engine.mods.get_value(name, time)

	def norm (self, name: str, time: float) -> float:
		return self.engine.mods.get_normalized(name, time)

	def degree_to_midi (self, degree: int, octave_offset: int = 0) -> int:

		state = self.engine.state

		return lull.scales.degree_to_midi(state.root, state.scale, degree, octave_offset)

	# ─── Voices ──────────────────────────────────────────────────────────────

	def emit (self, fn: typing.Callable[..., typing.Any], *args: typing.Any, **kwargs: typing.Any) -> typing.Any:

		"""
		Run one audio event, dropping it if the graph fails.

		Nodes the event made with :meth:`node` but never handed to
		:meth:`voice` are disconnected when it fails, which also silences any
		source it had already started.
		"""

		if self.stopped:
			return None

		self._unclaimed = []

		try:
			return fn(*args, **kwargs)

		except Exception:
			logger.debug(f"{self.name}: dropped event from {getattr(fn, '__name__', fn)}", exc_info=True)
			self._abandon(self._unclaimed)
			return None

		finally:
			self._unclaimed = None

	def node (self, kind: str, **options: typing.Any) -> lull.graph.Node:

		"""Create a node for the event in progress."""

		created = self.graph.create_node(kind, **options)

		if self._unclaimed is not None:
			self._unclaimed.append(created)

		return created

	def voice (self, nodes: typing.Sequence[lull.graph.Node], end_time: float) -> Voice:

		"""Track *nodes* until *end_time* (plus a short tail) has passed."""

		handle = Voice(list(nodes), end_time + RELEASE_TAIL)

		self.voices.append(handle)
		self.node_counter.create(len(handle.nodes))

		if self._unclaimed:
			claimed = {node.id for node in handle.nodes}
			self._unclaimed = [node for node in self._unclaimed if node.id not in claimed]

		return handle

	def _abandon (self, nodes: typing.List[lull.graph.Node]) -> None:

		"""Disconnect the nodes of a failed event.  Any that cannot be disconnected stay counted as active."""

		if not nodes:
			return

		self.node_counter.create(len(nodes))

		released = 0

		for node in nodes:
			try:
				self.graph.disconnect(node)
				released += 1
			except lull.graph.GraphError:
				logger.debug(f"{self.name}: could not disconnect {node!r}", exc_info=True)

		self.node_counter.cleanup(released)

		logger.debug(f"{self.name}: discarded {released} of {len(nodes)} nodes from a failed event")

	def release_expired (self, now: float) -> int:

		"""Disconnect every voice whose release time has passed.  Returns the count."""

		expired = [v for v in self.voices if v.release_time <= now]

		if not expired:
			return 0

		self.voices = [v for v in self.voices if v.release_time > now]

		for handle in expired:
			self._release(handle)

		return len(expired)

	def _release (self, handle: Voice) -> None:

		for node in handle.nodes:
			try:
				self.graph.disconnect(node)
			except lull.graph.GraphError:
				logger.debug(f"{self.name}: could not disconnect {node!r}", exc_info=True)

		self.node_counter.cleanup(len(handle.nodes))

	# ─── Lifecycle ───────────────────────────────────────────────────────────

	def stop (self, fade: float = lull.constants.LAYER_FADE_OUT_SECONDS) -> None:

		"""Fade the layer out and stop emitting events."""

		if self.stopped:
			return

		self.stopped = True

		now = self.graph.current_time()

		try:
			gain = self.output.param("gain")
			level = gain.value_at(now)

			gain.cancel_scheduled_values(now)
			gain.set_value_at_time(level, now)
			gain.linear_ramp_to_value_at_time(0.0, now + fade)

		except lull.graph.GraphError:
			logger.debug(f"{self.name}: fade-out failed", exc_info=True)

	def dispose (self) -> None:

		"""Release every voice and disconnect the layer's own nodes."""

		if self.disposed:
			return

		self.stopped = True
		self.disposed = True

		for handle in self.voices:
			self._release(handle)

		self.voices = []

		for node in self.own_nodes():
			try:
				self.graph.disconnect(node)
			except lull.graph.GraphError:
				logger.debug(f"{self.name}: could not disconnect {node!r}", exc_info=True)

		logger.debug(f"{self.name}: disposed")

	def own_nodes (self) -> typing.List[lull.graph.Node]:

		"""Long-lived nodes (not voices) that belong to the layer."""

		return [self.output]
