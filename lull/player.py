"""Track orchestration.

A :class:`Player` plays an endless sequence of tracks.  Each track gets a
fresh signal graph (from the factory passed in), a fresh
:class:`lull.engine.Engine` and one instance of every layer type.  Tracks
run for a random 8 to 15 minutes and then hand over to the next one: the
layers fade out, the engine fades the master and closes its graph, and only
then is the next track built.

Example::

	player = lull.player.Player(lambda: lull.graph.RecordingGraph())
	player.events.on("track_start", lambda state: print(state.scale_name))

	asyncio.run(player.play())
"""

import asyncio
import dataclasses
import logging
import random
import signal
import typing

import lull.constants
import lull.diagnostics
import lull.engine
import lull.event_emitter
import lull.graph
import lull.keystroke
import lull.layers.arp
import lull.layers.base
import lull.layers.beat
import lull.layers.motif
import lull.layers.pad
import lull.layers.texture
import lull.scales

if typing.TYPE_CHECKING:
	import lull.display


logger = logging.getLogger(__name__)


GraphFactory = typing.Callable[[], lull.graph.SignalGraph]

DEFAULT_UPDATE_INTERVAL = 0.25
DEFAULT_STATS_INTERVAL = 30.0

# Registration order is firing order within each tick.
LAYER_TYPES: typing.Tuple[typing.Type[lull.layers.base.Layer], ...] = (
	lull.layers.pad.PadLayer,
	lull.layers.texture.TextureLayer,
	lull.layers.arp.ArpLayer,
	lull.layers.beat.BeatLayer,
	lull.layers.motif.MotifLayer,
)


@dataclasses.dataclass (frozen=True)
class PlayerSnapshot:

	"""What the player is doing right now, for displays and tests."""

	track_number: int
	state: lull.engine.MusicState
	bpm: float
	status: str
	elapsed: float
	length: float


class Player:

	"""
	Starts, pauses, skips and stops tracks.

	Status is one of ``"idle"``, ``"playing"``, ``"paused"``,
	``"switching"``, ``"stopping"`` or ``"stopped"``.
	"""

	def __init__ (
		self,
		graph_factory: GraphFactory,
		config: typing.Optional[lull.engine.EngineConfig] = None,
		rng: typing.Optional[random.Random] = None,
		layer_types: typing.Sequence[typing.Type[lull.layers.base.Layer]] = LAYER_TYPES,
		teardown_delay: float = lull.constants.TEARDOWN_DELAY
	) -> None:

		"""
		Parameters:
			graph_factory: Called once per track for a new signal graph.
			config: Engine settings shared by every track.
			rng: Master random source; each track draws its own seed from it.
				Defaults to one seeded from ``config.seed``.
			layer_types: Layers to build for each track, in firing order.
			teardown_delay: Seconds to let a fade-out play before the graph closes.
		"""

		self.graph_factory = graph_factory
		self.config = config or lull.engine.EngineConfig()
		self.rng = rng or random.Random(self.config.seed)
		self.layer_types = tuple(layer_types)
		self.teardown_delay = teardown_delay

		self.events = lull.event_emitter.EventEmitter()
		self.node_counter = lull.diagnostics.NodeCounter()

		self.engine: typing.Optional[lull.engine.Engine] = None
		self.layers: typing.List[lull.layers.base.Layer] = []
		self.track_number = 0
		self.track_length: float = 0.0
		self.track_started_at: float = 0.0
		self.status = "idle"

	# ─── Track lifecycle ─────────────────────────────────────────────────────

	def random_track_length (self) -> int:

		"""A track length in whole seconds, between 8 and 15 minutes."""

		return self.rng.randint(lull.constants.MIN_TRACK_SECONDS, lull.constants.MAX_TRACK_SECONDS)

	def start_track (self) -> lull.engine.MusicState:

		"""
		Build and start a new track.

		A track that is still running is cut off without a fade; use
		:meth:`next_track` for a smooth hand-over.
		"""

		if self.engine is not None and not self.engine.closed:
			self._retire_layers()
			self.engine.close()

		graph = self.graph_factory()

		engine = lull.engine.Engine(
			graph,
			config = self.config,
			rng = random.Random(self.rng.randint(0, 2 ** 63)),
			node_counter = self.node_counter
		)

		self.layers = []

		for layer_type in self.layer_types:
			layer = layer_type(engine)
			engine.register_layer(layer)
			self.layers.append(layer)

		self.engine = engine
		self.track_number += 1
		self.track_length = self.random_track_length()

		engine.start()

		self.track_started_at = engine.current_time()
		self.status = "playing"

		state = engine.snapshot()
		minutes, seconds = divmod(int(self.track_length), 60)

		logger.info(
			f"Track {self.track_number}: {lull.scales.midi_to_name(state.root)} {state.scale_name}, "
			f"kit {state.kit_name or '-'}, synth {state.synth_name or '-'}, {minutes}:{seconds:02d}"
		)

		self.events.emit("track_start", state)

		return state

	def _retire_layers (self) -> None:

		"""Fade out the current layers and announce the end of the track."""

		for layer in self.layers:
			layer.stop()

		if self.engine is not None:
			self.events.emit("track_end", self.engine.snapshot())

	async def end_track (self) -> None:

		"""Fade out the current track and wait until its graph has closed."""

		engine = self.engine

		if engine is None or engine.closed:
			return

		# A suspended graph's clock is frozen, so a fade would never play.
		delay = 0.0 if engine.paused else self.teardown_delay

		self._retire_layers()

		await engine.shutdown(delay)

	async def next_track (self) -> lull.engine.MusicState:

		"""Fade out the current track, then start a new one."""

		self.status = "switching"

		await self.end_track()

		return self.start_track()

	async def stop (self) -> None:

		"""Fade out and close the current track."""

		if self.status == "stopped":
			return

		self.status = "stopping"

		await self.end_track()

		self.status = "stopped"

	# ─── Transport ───────────────────────────────────────────────────────────

	@property
	def paused (self) -> bool:
		return self.engine is not None and self.engine.paused

	def pause (self) -> None:

		if self.engine is None or self.engine.closed or self.engine.paused:
			return

		self.engine.pause()
		self.status = "paused"
		self.events.emit("pause")

	def resume (self) -> None:

		if self.engine is None or self.engine.closed or not self.engine.paused:
			return

		self.engine.resume()
		self.status = "playing"
		self.events.emit("resume")

	def toggle_pause (self) -> None:

		if self.paused:
			self.resume()
		else:
			self.pause()

	# ─── State ───────────────────────────────────────────────────────────────

	@property
	def elapsed (self) -> float:

		"""Seconds played in the current track.  Time spent paused does not count."""

		if self.engine is None:
			return 0.0

		return max(0.0, self.engine.current_time() - self.track_started_at)

	@property
	def track_finished (self) -> bool:
		return self.engine is not None and self.elapsed >= self.track_length

	def snapshot (self) -> typing.Optional[PlayerSnapshot]:

		if self.engine is None:
			return None

		return PlayerSnapshot(
			track_number = self.track_number,
			state = self.engine.snapshot(),
			bpm = self.engine.clock.bpm,
			status = self.status,
			elapsed = self.elapsed,
			length = self.track_length
		)

	# ─── Main loop ───────────────────────────────────────────────────────────

	async def handle_key (self, key: str) -> bool:

		"""
		Act on one keystroke.  Returns False when the key asks to quit.
		"""

		command = lull.keystroke.command_for(key)

		if command == "pause":
			self.toggle_pause()

		elif command == "next":
			await self.next_track()

		elif command == "quit":
			return False

		return True

	def log_stats (self) -> None:

		logger.info(lull.diagnostics.format_stats(self.node_counter, lull.diagnostics.get_memory_mb()))

	async def play (
		self,
		keystrokes: typing.Optional[lull.keystroke.KeystrokeListener] = None,
		display: typing.Optional["lull.display.Display"] = None,
		update_interval: float = DEFAULT_UPDATE_INTERVAL,
		stats_interval: float = DEFAULT_STATS_INTERVAL
	) -> None:

		"""
		Play tracks until asked to stop.

		Advances to a new track whenever the current one has run its length,
		reacts to keystrokes, and stops cleanly on SIGINT or SIGTERM.  With
		diagnostics enabled, node and memory statistics are logged every
		*stats_interval* seconds.
		"""

		stop_event = asyncio.Event()
		loop = asyncio.get_running_loop()

		def _request_stop () -> None:

			"""
			Signal handler to request a clean shutdown.
			"""

			stop_event.set()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.add_signal_handler(sig, _request_stop)

		next_stats = loop.time() + stats_interval

		try:
			if self.engine is None or self.engine.closed:
				self.start_track()

			while not stop_event.is_set():

				if keystrokes is not None:
					for key in keystrokes.drain():
						if not await self.handle_key(key):
							stop_event.set()
							break

				if stop_event.is_set():
					break

				if not self.paused and self.track_finished:
					await self.next_track()

				if display is not None:
					display.update()

				if self.config.diagnostics and loop.time() >= next_stats:
					self.log_stats()
					next_stats = loop.time() + stats_interval

				try:
					await asyncio.wait_for(stop_event.wait(), timeout=update_interval)
				except asyncio.TimeoutError:
					pass

		finally:
			for sig in (signal.SIGINT, signal.SIGTERM):
				loop.remove_signal_handler(sig)

			if display is not None:
				display.update()

			await self.stop()

			if self.config.diagnostics:
				self.log_stats()
