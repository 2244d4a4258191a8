"""Texture layer: a quiet air bed and occasional filtered-noise swells.

The bed is a band of noise that runs for the whole track; its centre drifts
towards a multiple of ``filter_main`` every bar.  Swells are longer noise
gestures, two bars each, whose band-pass centre sweeps up and back down.
A swell may start on a bar of an active section when ``intensity`` is high
enough and a coin flip agrees.
"""

import logging
import math
import random
import typing

import lull.diagnostics
import lull.easing
import lull.graph
import lull.layers.base

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


BED_LEVEL = 0.012
BED_Q = 0.8
BED_FILTER_RATIO = 3.0
BED_TIME_CONSTANT = 2.0

SWELL_BARS = 2
SWELL_THRESHOLD = 0.6
SWELL_CHANCE = 0.5
SWELL_Q = 2.0

ACTIVE_PROBABILITY = 0.6


class TextureLayer (lull.layers.base.Layer):

	name = "texture"
	level = 1.0

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		super().__init__(engine, rng=rng, node_counter=node_counter)

		self.bed_filter: typing.Optional[lull.graph.Node] = None
		self.emit(self._start_bed, self.graph.current_time())

	def _start_bed (self, time: float) -> None:

		graph = self.graph

		noise = self.node("noise")
		bed_filter = self.node(
			"biquad",
			type = "bandpass",
			frequency = self.mod("filter_main", time) * BED_FILTER_RATIO,
			Q = BED_Q
		)
		gain = self.node("gain", gain=BED_LEVEL)

		graph.connect(noise, bed_filter)
		graph.connect(bed_filter, gain)
		graph.connect(gain, self.output)
		graph.start(noise, time)

		# Lives as long as the layer; released by dispose().
		self.voice([noise, bed_filter, gain], math.inf)
		self.bed_filter = bed_filter

	def on_phrase (self, phrase: int, time: float) -> None:
		self.roll_section(ACTIVE_PROBABILITY)

	def on_bar (self, bar: int, time: float) -> None:

		if self.bed_filter is not None:
			self.emit(self._drift_bed, time)

		if not self.active:
			return

		intensity = self.mod("intensity", time)

		if intensity < SWELL_THRESHOLD or self.rng.random() >= SWELL_CHANCE:
			return

		self.emit(self._swell, time, intensity)

	def _drift_bed (self, time: float) -> None:

		target = self.mod("filter_main", time) * BED_FILTER_RATIO
		frequency = self.bed_filter.param("frequency")

		frequency.discard_before(time - self.engine.clock.bar_duration)
		frequency.set_target_at_time(target, time, BED_TIME_CONSTANT)

	def _swell (self, time: float, intensity: float) -> None:

		graph = self.graph
		duration = self.engine.clock.bar_duration * SWELL_BARS
		peak_time = time + duration / 2
		end = time + duration

		low = self.rng.uniform(400, 900)
		high = self.rng.uniform(2000, 4500)
		level = lull.easing.map_value(intensity, SWELL_THRESHOLD, 0.8, 0.01, 0.04, shape="ease_in_out")

		noise = self.node("noise", note=self.engine.state.root + 24)
		filt = self.node("biquad", type="bandpass", frequency=low, Q=SWELL_Q)
		envelope = self.node("gain", gain=0.0)

		graph.connect(noise, filt)
		graph.connect(filt, envelope)
		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(level, peak_time)
		gain.linear_ramp_to_value_at_time(0.0, end)

		graph.schedule_ramp(filt, "frequency", low, time, curve="set")
		graph.schedule_ramp(filt, "frequency", high, peak_time, curve="exponential")
		graph.schedule_ramp(filt, "frequency", low, end, curve="exponential")

		graph.start(noise, time)
		graph.stop(noise, end + 0.05)

		self.voice([noise, filt, envelope], end + 0.05)
