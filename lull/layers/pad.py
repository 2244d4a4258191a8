"""Pad layer: slow, detuned chord swells.

A chord is voiced every two bars from the current progression.  Each chord
stacks alternate scale degrees (a triad within the scale), doubles every
tone with a detuned partner, and breathes in and out over its full length.
Cutoff follows ``filter_main``, the detune spread follows ``detune`` and the
level follows ``intensity``.
"""

import logging
import random
import typing

import lull.constants
import lull.diagnostics
import lull.easing
import lull.layers.base

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


# Chord roots as scale-degree offsets, one per two-bar slot.  None is a rest.
PROGRESSIONS: typing.Tuple[typing.Tuple[typing.Optional[int], ...], ...] = (
	(0, 3, 5, 3),
	(0, -2, 3, 0),
	(0, 4, None, 2),
	(0, 5, 3, None),
	(0, None, 0, 4),
	(0, 2, -1, 3),
)

BARS_PER_CHORD = 2
CHORD_SIZE = 3
OCTAVE = 1

ACTIVE_PROBABILITY = 0.85
BASE_DETUNE = 5.0


class PadLayer (lull.layers.base.Layer):

	name = "pad"
	level = 0.8

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		super().__init__(engine, rng=rng, node_counter=node_counter)

		self.progression = self.rng.choice(PROGRESSIONS)
		self.section_start_bar = 0

	def on_section_start (self) -> None:

		self.progression = self.rng.choice(PROGRESSIONS)
		self.section_start_bar = self.last_tick // lull.constants.STEPS_PER_BAR

	def on_bar (self, bar: int, time: float) -> None:

		# on_phrase fires after on_bar, so the section rolls here.
		if bar % lull.constants.BARS_PER_PHRASE == 0:
			self.roll_section(1.0 if bar == 0 else ACTIVE_PROBABILITY)

		if not self.active:
			return

		bars_in = bar - self.section_start_bar

		if bars_in < 0 or bars_in % BARS_PER_CHORD:
			return

		degree = self.progression[(bars_in // BARS_PER_CHORD) % len(self.progression)]

		if degree is None:
			return

		self.emit(self._play_chord, degree, time)

	def chord_notes (self, degree: int) -> typing.List[int]:
		return [self.degree_to_midi(degree + 2 * i, OCTAVE) for i in range(CHORD_SIZE)]

	def _play_chord (self, degree: int, time: float) -> None:

		graph = self.graph
		duration = self.engine.clock.bar_duration * BARS_PER_CHORD
		attack = duration * 0.3
		release = duration * 0.4

		cutoff = self.mod("filter_main", time)
		resonance = max(0.1, self.mod("filter_res", time))
		spread = BASE_DETUNE + abs(self.mod("detune", time))
		peak = lull.easing.map_value(self.mod("intensity", time), 0.5, 0.8, 0.05, 0.12, shape="ease_in")

		filt = self.node("biquad", type="lowpass", frequency=cutoff, Q=resonance)
		envelope = self.node("gain", gain=0.0)

		graph.connect(filt, envelope)
		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(peak, time + attack)
		gain.linear_ramp_to_value_at_time(peak, time + duration - release)
		gain.linear_ramp_to_value_at_time(0.0, time + duration)

		graph.schedule_ramp(filt, "frequency", cutoff, time, curve="set")
		graph.schedule_ramp(filt, "frequency", self.mod("filter_main", time + duration), time + duration)

		nodes = [filt, envelope]

		for note in self.chord_notes(degree):
			for waveform, detune in (("sawtooth", -spread), ("triangle", spread)):

				osc = self.node(
					"oscillator",
					type = waveform,
					frequency = self.engine.note_to_freq(note),
					detune = detune,
					note = note
				)

				graph.connect(osc, filt)
				graph.start(osc, time)
				graph.stop(osc, time + duration + 0.05)

				nodes.append(osc)

		self.voice(nodes, time + duration + 0.05)
