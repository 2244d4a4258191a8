"""Arpeggio synth presets.

Each :class:`SynthPreset` describes an oscillator stack, an ADSR envelope,
a filter sweep, and how busy the arp should be (``density``).  A track may
also have no arp at all: :func:`get_random_synth_preset` returns ``None``
with probability :data:`NO_ARP_CHANCE`.
"""

import dataclasses
import math
import random
import typing


NO_ARP_CHANCE = 0.15

DISTORTION_CURVE_SAMPLES = 44100


@dataclasses.dataclass (frozen=True)
class OscillatorLayer:

	"""One oscillator in a preset's stack."""

	waveform: str
	detune_range: float
	gain_multiplier: float
	octave_offset: int


@dataclasses.dataclass (frozen=True)
class SynthPreset:

	"""A complete arp voice."""

	name: str
	description: str
	oscillators: typing.Tuple[OscillatorLayer, ...]
	attack: float
	decay: float
	sustain: float
	release: float
	filter_type: str
	filter_freq_start: float
	filter_freq_end: float
	filter_q: float
	distortion: float
	reverb_send: float
	density: float
	velocity_range: typing.Tuple[float, float]
	note_ticks: int = 1


SYNTH_PRESETS: typing.Tuple[SynthPreset, ...] = (
	SynthPreset(
		name = "Warm Pluck",
		description = "Detuned saw pair through a closing lowpass",
		oscillators = (
			OscillatorLayer(waveform = "sawtooth", detune_range = 8, gain_multiplier = 0.5, octave_offset = 0),
			OscillatorLayer(waveform = "sawtooth", detune_range = 8, gain_multiplier = 0.5, octave_offset = 0),
		),
		attack = 0.005, decay = 0.18, sustain = 0.2, release = 0.25,
		filter_type = "lowpass", filter_freq_start = 2400, filter_freq_end = 500, filter_q = 4,
		distortion = 0.0, reverb_send = 0.35, density = 0.7,
		velocity_range = (0.06, 0.12),
	),
	SynthPreset(
		name = "Glass Arp",
		description = "Sine and triangle an octave apart, bright and clean",
		oscillators = (
			OscillatorLayer(waveform = "sine", detune_range = 3, gain_multiplier = 0.7, octave_offset = 0),
			OscillatorLayer(waveform = "triangle", detune_range = 5, gain_multiplier = 0.3, octave_offset = 1),
		),
		attack = 0.003, decay = 0.25, sustain = 0.1, release = 0.4,
		filter_type = "lowpass", filter_freq_start = 5000, filter_freq_end = 1800, filter_q = 1,
		distortion = 0.0, reverb_send = 0.5, density = 0.55,
		velocity_range = (0.05, 0.1),
		note_ticks = 2,
	),
	SynthPreset(
		name = "Acid Murmur",
		description = "Resonant square with a hint of drive",
		oscillators = (
			OscillatorLayer(waveform = "square", detune_range = 4, gain_multiplier = 0.8, octave_offset = -1),
		),
		attack = 0.002, decay = 0.12, sustain = 0.15, release = 0.12,
		filter_type = "lowpass", filter_freq_start = 1800, filter_freq_end = 300, filter_q = 9,
		distortion = 0.3, reverb_send = 0.2, density = 0.8,
		velocity_range = (0.05, 0.09),
	),
	SynthPreset(
		name = "Hollow Bells",
		description = "Band-passed triangles with a long tail",
		oscillators = (
			OscillatorLayer(waveform = "triangle", detune_range = 6, gain_multiplier = 0.6, octave_offset = 1),
			OscillatorLayer(waveform = "sine", detune_range = 2, gain_multiplier = 0.4, octave_offset = 2),
		),
		attack = 0.01, decay = 0.4, sustain = 0.05, release = 0.8,
		filter_type = "bandpass", filter_freq_start = 3000, filter_freq_end = 1200, filter_q = 2,
		distortion = 0.0, reverb_send = 0.6, density = 0.4,
		velocity_range = (0.06, 0.11),
		note_ticks = 2,
	),
	SynthPreset(
		name = "Dust Sparkle",
		description = "Thin high-passed saws, sparse and airy",
		oscillators = (
			OscillatorLayer(waveform = "sawtooth", detune_range = 12, gain_multiplier = 0.4, octave_offset = 1),
			OscillatorLayer(waveform = "square", detune_range = 10, gain_multiplier = 0.2, octave_offset = 2),
		),
		attack = 0.002, decay = 0.08, sustain = 0.0, release = 0.3,
		filter_type = "highpass", filter_freq_start = 900, filter_freq_end = 2500, filter_q = 0.8,
		distortion = 0.15, reverb_send = 0.45, density = 0.35,
		velocity_range = (0.03, 0.07),
	),
)


def get_random_synth_preset (rng: typing.Optional[random.Random] = None) -> typing.Optional[SynthPreset]:

	"""Pick a preset, or ``None`` (no arp this track) with ``NO_ARP_CHANCE``."""

	rng = rng or random.Random()

	if rng.random() < NO_ARP_CHANCE:
		return None

	return rng.choice(SYNTH_PRESETS)


def make_distortion_curve (amount: float, samples: int = DISTORTION_CURVE_SAMPLES) -> typing.List[float]:

	"""
	Build a normalized soft-clipping curve for synth drive.

	*amount* runs from 0 to 1; output always stays within [-1, 1].
	"""

	drive = 1.0 + amount * 10.0
	norm = math.tanh(drive)

	return [math.tanh(((i * 2) / samples - 1) * drive) / norm for i in range(samples)]
