"""Motif layer: occasional long-form themes for song-like motion.

Bell-like two-oscillator notes play slow eighth-note motifs spanning four
bars.  The layer decides whether to play once every four phrases, and even
while active a slow density modulator thins the motif out.  Unlike the
other layers it keeps its own modulators (velocity, filter and density)
rather than reading the shared bank, so its phrasing drifts independently.
"""

import dataclasses
import logging
import random
import typing

import lull.diagnostics
import lull.graph
import lull.layers.base
import lull.modulation

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class MotifPreset:

	name: str
	waveform_a: str
	waveform_b: str
	detune_cents: float
	octave_offset: int
	filter_base: float
	filter_range: float
	filter_q: float
	master_gain: float
	note_length: float
	attack: float
	release: float
	velocity_range: typing.Tuple[float, float]


MOTIF_PRESETS: typing.Tuple[MotifPreset, ...] = (
	MotifPreset(
		name = "Chimes",
		waveform_a = "sine", waveform_b = "triangle", detune_cents = 6, octave_offset = 2,
		filter_base = 2200, filter_range = 900, filter_q = 0.5,
		master_gain = 0.35, note_length = 1.6, attack = 0.01, release = 0.6,
		velocity_range = (0.08, 0.16),
	),
	MotifPreset(
		name = "Glass Keys",
		waveform_a = "triangle", waveform_b = "sine", detune_cents = 4, octave_offset = 1,
		filter_base = 1800, filter_range = 700, filter_q = 0.6,
		master_gain = 0.28, note_length = 1.3, attack = 0.008, release = 0.5,
		velocity_range = (0.07, 0.14),
	),
	MotifPreset(
		name = "Soft Bell",
		waveform_a = "sine", waveform_b = "sine", detune_cents = 10, octave_offset = 3,
		filter_base = 2600, filter_range = 1100, filter_q = 0.4,
		master_gain = 0.22, note_length = 1.9, attack = 0.015, release = 0.7,
		velocity_range = (0.06, 0.12),
	),
)

_ = None

# 32 eighth notes (four bars) of scale-degree offsets; _ is a rest.
MOTIF_PATTERNS: typing.Tuple[typing.Tuple[typing.Optional[int], ...], ...] = (
	# Long, rising arc
	(0, _, 2, _, 4, _, 5, _, 7, _, 5, _, 4, _, 2, _,
	 0, _, 2, _, 4, _, 7, _, 5, _, 4, _, 2, _, _, _),
	# Call and response
	(0, _, 3, _, 5, _, 3, _, 0, _, _, _, 2, _, 4, _,
	 6, _, 4, _, 2, _, _, _, 0, _, 3, _, 5, _, _, _),
	# Steady phrasing with small leaps
	(0, _, 2, _, 4, _, 2, _, 5, _, 4, _, 2, _, 0, _,
	 2, _, 4, _, 7, _, 5, _, 4, _, 2, _, 0, _, _, _),
	# Sparse
	(0, _, _, _, 4, _, _, _, 2, _, _, _, 5, _, _, _,
	 0, _, _, _, 4, _, _, _, 7, _, _, _, 2, _, _, _),
)

STEP_TICKS = 2
SECTION_LENGTH = 4
ACTIVE_PROBABILITY = 0.6
DENSITY_THRESHOLD = 0.35

FILTER_MIN = 600.0
FILTER_MAX = 5000.0
FILTER_TIME_CONSTANT = 0.08


class MotifLayer (lull.layers.base.Layer):

	name = "motif"

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		# The preset sets the output level, so pick it before the base fades in.
		rng = rng or engine.spawn_rng()
		self.preset = rng.choice(MOTIF_PRESETS)
		self.level = self.preset.master_gain

		super().__init__(engine, rng=rng, node_counter=node_counter)

		low, high = self.preset.velocity_range

		self.velocity_mod = lull.modulation.Modulator(lull.modulation.medium((low + high) / 2, (high - low) / 2), rng=self.rng)
		self.filter_mod = lull.modulation.Modulator(lull.modulation.slow(self.preset.filter_base, self.preset.filter_range), rng=self.rng)
		self.density_mod = lull.modulation.Modulator(lull.modulation.glacial(0.65, 0.25), rng=self.rng)

		self.filter = self.graph.create_node("biquad", type="lowpass", frequency=self.preset.filter_base, Q=self.preset.filter_q)
		self.graph.connect(self.filter, self.output)

		self.pattern = self.rng.choice(MOTIF_PATTERNS)
		self.phrase_count = 0
		self.active = self.rng.random() < ACTIVE_PROBABILITY

	def own_nodes (self) -> typing.List[lull.graph.Node]:
		return [self.filter, self.output]

	def on_section_start (self) -> None:
		self.pattern = self.rng.choice(MOTIF_PATTERNS)

	def on_phrase (self, phrase: int, time: float) -> None:

		self.phrase_count += 1

		if self.phrase_count % SECTION_LENGTH != 0:
			return

		self.roll_section(ACTIVE_PROBABILITY)

	def on_tick (self, tick: int, time: float) -> None:

		super().on_tick(tick, time)

		if not self.active:
			return

		step = self.step_index(tick, len(self.pattern), STEP_TICKS)

		if step is None or self.pattern[step] is None:
			return

		if self.density_mod.get_normalized(time) < DENSITY_THRESHOLD:
			return

		self.emit(self._play_note, self.pattern[step], time)
		self.emit(self._follow_filter, time)

	def note_for (self, degree: int) -> int:
		return self.degree_to_midi(degree, self.preset.octave_offset)

	def velocity (self, time: float) -> float:

		low, high = self.preset.velocity_range

		return max(low, min(high, self.velocity_mod.get_value(time)))

	def _follow_filter (self, time: float) -> None:

		target = max(FILTER_MIN, min(FILTER_MAX, self.filter_mod.get_value(time)))
		frequency = self.filter.param("frequency")

		frequency.discard_before(time - self.engine.clock.bar_duration)
		frequency.set_target_at_time(target, time, FILTER_TIME_CONSTANT)

	def _play_note (self, degree: int, time: float) -> None:

		graph = self.graph
		preset = self.preset

		note_duration = self.engine.clock.tick_duration * STEP_TICKS * preset.note_length
		end = time + note_duration + preset.release
		midi = self.note_for(degree)
		frequency = self.engine.note_to_freq(midi)

		osc_a = self.node("oscillator", type=preset.waveform_a, frequency=frequency, note=midi)
		osc_b = self.node("oscillator", type=preset.waveform_b, frequency=frequency, detune=preset.detune_cents, note=midi)
		envelope = self.node("gain", gain=0.0)

		graph.connect(osc_a, envelope)
		graph.connect(osc_b, envelope)
		graph.connect(envelope, self.filter)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(self.velocity(time), time + preset.attack)
		gain.exponential_ramp_to_value_at_time(0.001, time + note_duration - 0.02)
		gain.linear_ramp_to_value_at_time(0.0, end)

		for osc in (osc_a, osc_b):
			graph.start(osc, time)
			graph.stop(osc, end + 0.05)

		self.voice([osc_a, osc_b, envelope], end + 0.05)
