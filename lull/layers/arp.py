"""Arp layer: sixteenth-note figures voiced by a synth preset.

The preset is drawn once per track.  Some tracks have no arp at all
(:func:`lull.synths.get_random_synth_preset` returns None); the layer then
stays silent and reports its synth as ``"None"``.
"""

import logging
import random
import typing

import lull.diagnostics
import lull.easing
import lull.synths
import lull.layers.base

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


# One bar of sixteenths as scale-degree offsets.  None is a rest.
PATTERNS: typing.Tuple[typing.Tuple[typing.Optional[int], ...], ...] = (
	# Rising
	(0, None, 2, None, 4, None, 7, None, 0, None, 2, None, 4, None, 7, None),
	# Rise and fall
	(0, 2, 4, 2, 0, 2, 4, 7, 4, 2, 0, None, 0, 2, 4, None),
	# Pedal with upper neighbours
	(0, None, 4, 0, None, 5, 0, None, 4, 0, None, 7, 0, None, 4, None),
	# Falling
	(7, None, 4, None, 2, None, 0, None, 7, None, 5, None, 4, None, 2, None),
	# Syncopated
	(0, None, None, 4, None, None, 2, None, 0, None, None, 5, None, None, 4, None),
)

ACTIVE_PROBABILITY = 0.7
OCTAVES = (1, 2)


class ArpLayer (lull.layers.base.Layer):

	name = "arp"
	level = 0.9

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		super().__init__(engine, rng=rng, node_counter=node_counter)

		self.preset = lull.synths.get_random_synth_preset(self.rng)
		self.pattern = self.rng.choice(PATTERNS)
		self.octave = OCTAVES[0]

		engine.set_synth_name(self.preset.name if self.preset else "None")

		self._curve: typing.Optional[typing.List[float]] = None

		if self.preset is not None and self.preset.distortion > 0:
			self._curve = lull.synths.make_distortion_curve(self.preset.distortion)

	def on_section_start (self) -> None:

		self.pattern = self.rng.choice(PATTERNS)
		self.octave = self.rng.choice(OCTAVES)

	def on_phrase (self, phrase: int, time: float) -> None:

		if self.preset is None:
			return

		# The arp sits out the opening phrase.
		self.roll_section(0.0 if phrase == 0 else ACTIVE_PROBABILITY)

	def on_tick (self, tick: int, time: float) -> None:

		super().on_tick(tick, time)

		if not self.active or self.preset is None:
			return

		step = self.step_index(tick, len(self.pattern))

		if step is None or self.pattern[step] is None:
			return

		density = self.preset.density * lull.easing.map_value(self.norm("intensity", time), 0.0, 1.0, 0.6, 1.2)

		if self.rng.random() >= min(1.0, density):
			return

		self.emit(self._play_note, self.pattern[step], time)

	def velocity (self, time: float) -> float:

		"""The preset's velocity range, swept by the shared velocity modulator."""

		low, high = self.preset.velocity_range

		return low + (high - low) * self.norm("velocity", time)

	def _play_note (self, degree: int, time: float) -> None:

		preset = self.preset
		graph = self.graph

		midi = self.degree_to_midi(degree, self.octave)
		duration = self.engine.clock.tick_duration * preset.note_ticks
		end = time + duration + preset.release
		velocity = self.velocity(time)

		filt = self.node("biquad", type=preset.filter_type, frequency=preset.filter_freq_start, Q=preset.filter_q)
		envelope = self.node("gain", gain=0.0)
		nodes = [filt, envelope]

		if self._curve is not None:
			shaper = self.node("waveshaper", curve=self._curve)
			graph.connect(filt, shaper)
			graph.connect(shaper, envelope)
			nodes.append(shaper)
		else:
			graph.connect(filt, envelope)

		graph.connect(envelope, self.output)

		if preset.reverb_send > 0:
			send = self.node("gain", gain=preset.reverb_send)
			graph.connect(envelope, send)
			graph.connect(send, self.engine.reverb_send)
			nodes.append(send)

		decay_end = time + preset.attack + preset.decay
		sustain_level = max(velocity * preset.sustain, 0.0001)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(velocity, time + preset.attack)
		gain.linear_ramp_to_value_at_time(sustain_level, decay_end)
		gain.linear_ramp_to_value_at_time(sustain_level, max(decay_end, time + duration))
		gain.linear_ramp_to_value_at_time(0.0, max(decay_end, time + duration) + preset.release)

		graph.schedule_ramp(filt, "frequency", preset.filter_freq_start, time, curve="set")
		graph.schedule_ramp(filt, "frequency", preset.filter_freq_end, decay_end, curve="exponential")

		detune_drift = self.mod("detune", time)

		for layer in preset.oscillators:

			note = midi + 12 * layer.octave_offset
			osc = self.node(
				"oscillator",
				type = layer.waveform,
				frequency = self.engine.note_to_freq(note),
				detune = self.rng.uniform(-layer.detune_range, layer.detune_range) + detune_drift,
				note = note
			)
			level = self.node("gain", gain=layer.gain_multiplier)

			graph.connect(osc, level)
			graph.connect(level, filt)
			graph.start(osc, time)
			graph.stop(osc, max(decay_end, time + duration) + preset.release + 0.05)

			nodes.extend((osc, level))

		self.voice(nodes, max(decay_end, end) + 0.05)
