"""Beat layer: kick, hats and claps from a drum kit.

Drums route to the engine's drum bus, after the sidechain stage.  Every kick
asks the engine to duck the melodic bus at the kick's time.

The layer alternates between two sections at phrase boundaries:

- **groove**: the kit's kick pattern, off-beat hats with occasional ghost
  hats, and claps on two and four when the track is intense enough;
- **breakdown**: a single kick on the downbeat and nothing else.

Odd sixteenths are pushed late by the kit's swing.
"""

import logging
import random
import typing

import lull.constants
import lull.diagnostics
import lull.graph
import lull.kits
import lull.layers.base

if typing.TYPE_CHECKING:
	import lull.engine


logger = logging.getLogger(__name__)


# General MIDI percussion notes, used as routing hints.
KICK_NOTE = 36
CLAP_NOTE = 39
HAT_NOTE = 42

KICK_PEAK = 0.28
GHOST_CHANCE = 0.3
CLAP_INTENSITY = 0.4
GROOVE_PROBABILITY = 0.8

# Fraction of a sixteenth that full swing delays an odd step by.
SWING_SPAN = 0.5


class BeatLayer (lull.layers.base.Layer):

	name = "beat"
	drum = True
	level = 1.0

	def __init__ (
		self,
		engine: "lull.engine.Engine",
		rng: typing.Optional[random.Random] = None,
		node_counter: typing.Optional[lull.diagnostics.NodeCounter] = None
	) -> None:

		super().__init__(engine, rng=rng, node_counter=node_counter)

		self.kit = lull.kits.get_random_kit(self.rng)
		self.kick_pattern = lull.kits.get_pattern(self.kit.pattern)
		self.hat_pattern = lull.kits.steps_to_pattern(lull.kits.HAT_STEPS)
		self.clap_pattern = lull.kits.steps_to_pattern(lull.kits.CLAP_STEPS)

		engine.set_kit_name(self.kit.name)

		self._curve: typing.Optional[typing.List[float]] = None

		if self.kit.kick.distortion > 0:
			self._curve = lull.kits.make_distortion_curve(self.kit.kick.distortion)

		# The groove starts straight away.
		self.active = True

	def on_phrase (self, phrase: int, time: float) -> None:

		if phrase == 0:
			return

		self.roll_section(GROOVE_PROBABILITY)

	def swing_offset (self, step: int) -> float:

		if step % 2 == 0:
			return 0.0

		return self.kit.swing * SWING_SPAN * self.engine.clock.tick_duration

	def on_tick (self, tick: int, time: float) -> None:

		super().on_tick(tick, time)

		step = self.step_index(tick, lull.constants.STEPS_PER_BAR)

		if step is None:
			return

		hit_time = time + self.swing_offset(step)

		kick = self.kick_pattern[step] if self.active else step == 0

		if kick:
			self.emit(self._kick, time)
			self.emit(self.engine.trigger_sidechain_duck, time)

		if not self.active:
			return

		intensity = self.norm("intensity", time)

		if self.hat_pattern[step]:
			self.emit(self._hat, hit_time, 1.0)
		elif step % 2 == 1 and self.rng.random() < GHOST_CHANCE * intensity:
			self.emit(self._hat, hit_time, self.kit.ghost_velocity)

		if self.clap_pattern[step] and intensity >= CLAP_INTENSITY:
			self.emit(self._clap, hit_time)

	def _kick (self, time: float) -> None:

		graph = self.graph
		kick = self.kit.kick
		end = time + kick.decay

		osc = self.node("oscillator", type=kick.waveform, frequency=kick.start_freq, note=KICK_NOTE)
		envelope = self.node("gain", gain=0.0)
		nodes = [osc, envelope]

		if self._curve is not None:
			shaper = self.node("waveshaper", curve=self._curve)
			graph.connect(osc, shaper)
			graph.connect(shaper, envelope)
			nodes.append(shaper)
		else:
			graph.connect(osc, envelope)

		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(KICK_PEAK, time + kick.attack)
		gain.exponential_ramp_to_value_at_time(0.001, end)

		graph.schedule_ramp(osc, "frequency", kick.start_freq, time, curve="set")
		graph.schedule_ramp(osc, "frequency", kick.end_freq, time + kick.pitch_decay, curve="exponential")

		graph.start(osc, time)
		graph.stop(osc, end + 0.05)

		if kick.sub_level > 0:
			sub = self.node("oscillator", type="sine", frequency=kick.end_freq, note=KICK_NOTE)
			sub_gain = self.node("gain", gain=0.0)

			graph.connect(sub, sub_gain)
			graph.connect(sub_gain, self.output)

			level = sub_gain.param("gain")
			level.set_value_at_time(0.0, time)
			level.linear_ramp_to_value_at_time(KICK_PEAK * kick.sub_level, time + kick.attack + 0.01)
			level.exponential_ramp_to_value_at_time(0.001, end)

			graph.start(sub, time)
			graph.stop(sub, end + 0.05)
			nodes.extend((sub, sub_gain))

		if kick.click_amount > 0 or kick.noise_amount > 0:
			nodes.extend(self._click(time, kick.click_amount + kick.noise_amount))

		self.voice(nodes, end + 0.05)

	def _click (self, time: float, amount: float) -> typing.List[lull.graph.Node]:

		"""A short high-passed noise transient on top of the kick."""

		graph = self.graph

		noise = self.node("noise")
		filt = self.node("biquad", type="highpass", frequency=3000, Q=0.7)
		envelope = self.node("gain", gain=0.0)

		graph.connect(noise, filt)
		graph.connect(filt, envelope)
		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(KICK_PEAK * min(1.0, amount) * 0.3, time)
		gain.exponential_ramp_to_value_at_time(0.001, time + 0.015)

		graph.start(noise, time)
		graph.stop(noise, time + 0.03)

		return [noise, filt, envelope]

	def _hat (self, time: float, accent: float) -> None:

		graph = self.graph
		hat = self.kit.hat
		end = time + hat.decay

		noise = self.node("noise", note=HAT_NOTE)
		filt = self.node("biquad", type="highpass", frequency=hat.cutoff, Q=1.0)
		envelope = self.node("gain", gain=0.0)

		graph.connect(noise, filt)
		graph.connect(filt, envelope)
		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(hat.level * accent, time)
		gain.exponential_ramp_to_value_at_time(0.001, end)

		graph.start(noise, time)
		graph.stop(noise, end + 0.02)

		self.voice([noise, filt, envelope], end + 0.02)

	def _clap (self, time: float) -> None:

		graph = self.graph
		clap = self.kit.clap
		end = time + clap.decay

		noise = self.node("noise", note=CLAP_NOTE)
		filt = self.node("biquad", type="bandpass", frequency=clap.center, Q=clap.q)
		envelope = self.node("gain", gain=0.0)

		graph.connect(noise, filt)
		graph.connect(filt, envelope)
		graph.connect(envelope, self.output)

		gain = envelope.param("gain")
		gain.set_value_at_time(0.0, time)
		gain.linear_ramp_to_value_at_time(clap.level, time + 0.002)
		gain.exponential_ramp_to_value_at_time(0.001, end)

		graph.start(noise, time)
		graph.stop(noise, end + 0.02)

		self.voice([noise, filt, envelope], end + 0.02)
