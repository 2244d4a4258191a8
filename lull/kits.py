"""Drum kit presets and kick pattern tables.

Each :class:`DrumKit` bundles the parameters the beat layer needs to voice a
kick, hats and claps, plus the name of its kick pattern and its feel
(ghost-note velocity and swing).  Everything here is read-only data.

Kick patterns are 16-step boolean tuples (one bar of sixteenth notes)::

	lull.kits.get_pattern("four-on-floor")  # hits on 0, 4, 8, 12
	lull.kits.get_pattern("half-time")      # hits on 0, 8
	lull.kits.get_pattern("sparse")         # a single hit on 0
"""

import dataclasses
import math
import random
import typing

import lull.constants


PatternType = typing.Literal["four-on-floor", "half-time", "broken", "sparse", "driving"]

DEFAULT_PATTERN: PatternType = "four-on-floor"

_KICK_STEPS: typing.Dict[str, typing.Tuple[int, ...]] = {
	"four-on-floor": (0, 4, 8, 12),
	"half-time": (0, 8),
	"broken": (0, 6, 10),
	"sparse": (0,),
	"driving": (0, 4, 8, 10, 12),
}

# Hats on the off-beat eighths; the remaining sixteenths are ghost candidates.
HAT_STEPS: typing.Tuple[int, ...] = (2, 6, 10, 14)
CLAP_STEPS: typing.Tuple[int, ...] = (4, 12)

DISTORTION_CURVE_SAMPLES = 44100


@dataclasses.dataclass (frozen=True)
class KickParams:

	"""Synthesis parameters for a pitched-sweep kick."""

	waveform: str
	start_freq: float
	end_freq: float
	pitch_decay: float
	attack: float
	decay: float
	distortion: float
	noise_amount: float
	click_amount: float
	sub_level: float


@dataclasses.dataclass (frozen=True)
class HatParams:

	"""Filtered-noise hat parameters."""

	cutoff: float
	decay: float
	level: float


@dataclasses.dataclass (frozen=True)
class ClapParams:

	"""Band-passed noise burst parameters."""

	center: float
	q: float
	decay: float
	level: float


@dataclasses.dataclass (frozen=True)
class DrumKit:

	"""A complete drum voice bundle."""

	name: str
	description: str
	pattern: PatternType
	kick: KickParams
	hat: HatParams
	clap: ClapParams
	ghost_velocity: float
	swing: float


DRUM_KITS: typing.Tuple[DrumKit, ...] = (
	DrumKit(
		name = "Deep Pulse",
		description = "Round sine kick with a soft sub and quiet hats",
		pattern = "four-on-floor",
		kick = KickParams(
			waveform = "sine", start_freq = 150, end_freq = 45, pitch_decay = 0.08,
			attack = 0.002, decay = 0.45, distortion = 0.0, noise_amount = 0.05,
			click_amount = 0.2, sub_level = 0.6,
		),
		hat = HatParams(cutoff = 8000, decay = 0.04, level = 0.12),
		clap = ClapParams(center = 1400, q = 1.2, decay = 0.18, level = 0.18),
		ghost_velocity = 0.25,
		swing = 0.1,
	),
	DrumKit(
		name = "Dusty Tape",
		description = "Saturated triangle kick, broken groove, lazy swing",
		pattern = "broken",
		kick = KickParams(
			waveform = "triangle", start_freq = 130, end_freq = 50, pitch_decay = 0.1,
			attack = 0.004, decay = 0.38, distortion = 0.35, noise_amount = 0.15,
			click_amount = 0.1, sub_level = 0.4,
		),
		hat = HatParams(cutoff = 6500, decay = 0.06, level = 0.1),
		clap = ClapParams(center = 1100, q = 0.9, decay = 0.22, level = 0.16),
		ghost_velocity = 0.35,
		swing = 0.3,
	),
	DrumKit(
		name = "Sub Haze",
		description = "Long sub kick on one and three, very little top end",
		pattern = "half-time",
		kick = KickParams(
			waveform = "sine", start_freq = 110, end_freq = 38, pitch_decay = 0.12,
			attack = 0.005, decay = 0.7, distortion = 0.05, noise_amount = 0.0,
			click_amount = 0.05, sub_level = 0.9,
		),
		hat = HatParams(cutoff = 9500, decay = 0.03, level = 0.07),
		clap = ClapParams(center = 900, q = 0.7, decay = 0.3, level = 0.12),
		ghost_velocity = 0.15,
		swing = 0.0,
	),
	DrumKit(
		name = "Night Drive",
		description = "Punchy driven kick with an extra push before the last beat",
		pattern = "driving",
		kick = KickParams(
			waveform = "sine", start_freq = 170, end_freq = 52, pitch_decay = 0.06,
			attack = 0.001, decay = 0.32, distortion = 0.5, noise_amount = 0.1,
			click_amount = 0.35, sub_level = 0.5,
		),
		hat = HatParams(cutoff = 7500, decay = 0.05, level = 0.14),
		clap = ClapParams(center = 1600, q = 1.5, decay = 0.15, level = 0.2),
		ghost_velocity = 0.3,
		swing = 0.05,
	),
	DrumKit(
		name = "Still Water",
		description = "A single soft downbeat per bar",
		pattern = "sparse",
		kick = KickParams(
			waveform = "sine", start_freq = 120, end_freq = 42, pitch_decay = 0.1,
			attack = 0.006, decay = 0.8, distortion = 0.0, noise_amount = 0.0,
			click_amount = 0.0, sub_level = 0.8,
		),
		hat = HatParams(cutoff = 10000, decay = 0.025, level = 0.05),
		clap = ClapParams(center = 1200, q = 0.8, decay = 0.25, level = 0.1),
		ghost_velocity = 0.1,
		swing = 0.15,
	),
)


def get_random_kit (rng: typing.Optional[random.Random] = None) -> DrumKit:

	"""Pick a kit uniformly at random."""

	rng = rng or random.Random()

	return rng.choice(DRUM_KITS)


def get_pattern (pattern_type: str) -> typing.List[bool]:

	"""
	Return a fresh 16-step kick pattern.  Unknown names fall back to
	four-on-the-floor.
	"""

	steps = _KICK_STEPS.get(pattern_type, _KICK_STEPS[DEFAULT_PATTERN])

	return [step in steps for step in range(lull.constants.STEPS_PER_BAR)]


def steps_to_pattern (steps: typing.Iterable[int]) -> typing.Tuple[bool, ...]:

	"""Convert a list of hit indices into a 16-step boolean pattern."""

	hits = set(steps)

	return tuple(step in hits for step in range(lull.constants.STEPS_PER_BAR))


def make_distortion_curve (amount: float, samples: int = DISTORTION_CURVE_SAMPLES) -> typing.List[float]:

	"""
	Build a waveshaper transfer curve for kick saturation.

	*amount* runs from 0 (gentle) to 1 (harsh).  The curve passes through 0
	at its midpoint and stays well inside [-2, 2].
	"""

	k = amount * 100
	deg = math.pi / 180
	curve: typing.List[float] = []

	for i in range(samples):
		x = (i * 2) / samples - 1
		curve.append(((3 + k) * x * 20 * deg) / (math.pi + k * abs(x)))

	return curve
