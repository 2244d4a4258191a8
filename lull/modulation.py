"""Noise-driven parameter modulation.

A :class:`Modulator` replaces a fixed constant (filter cutoff, velocity,
detune...) with a value that drifts smoothly and organically around a base.
It is a pure function of time: ask for the value at any moment and the same
modulator always answers the same thing, so layers can query it at the
scheduled time of an event rather than "now".

A :class:`ModulationBank` is a named registry of modulators shared by all
layers of a track.  Queries for names that were never registered fail soft::

	bank = ModulationBank()
	bank.add("filter", slow(900, 400))
	cutoff = bank.get_value("filter", time)        # 500..1300
	amount = bank.get_normalized("missing", time)  # 0.5

The speed presets (:func:`glacial` ... :func:`shimmer`) express qualitative
rates of drift; they are plain factories returning a :class:`ModulatorConfig`.
"""

import dataclasses
import logging
import math
import random
import typing

import lull.easing


logger = logging.getLogger(__name__)


_TABLE_SIZE = 256
_OCTAVES = ((1.0, 1.0), (2.0, 0.5))
_OCTAVE_WEIGHT = sum(amplitude for _, amplitude in _OCTAVES)

# Offsets are spread far apart so two modulators sample unrelated regions.
_MAX_PHASE_OFFSET = 1000.0


class PerlinNoise:

	"""
	One-dimensional gradient noise with a seeded permutation table.

	``sample(x)`` is continuous in *x* and returns values in [-1, 1].
	"""

	def __init__ (self, seed: typing.Optional[int] = None) -> None:

		rng = random.Random(seed)

		permutation = list(range(_TABLE_SIZE))
		rng.shuffle(permutation)

		self._permutation = permutation
		self._gradients = [rng.uniform(-1.0, 1.0) for _ in range(_TABLE_SIZE)]

	def _gradient (self, lattice: int) -> float:
		return self._gradients[self._permutation[lattice % _TABLE_SIZE]]

	def sample (self, x: float) -> float:

		"""Sample the noise field at *x*."""

		lattice = math.floor(x)
		frac = x - lattice

		left = self._gradient(lattice) * frac
		right = self._gradient(lattice + 1) * (frac - 1.0)

		# A single octave peaks at +/-0.5 (at frac == 0.5), hence the factor 2.
		value = 2.0 * (left + (right - left) * lull.easing.s_curve(frac))

		return max(-1.0, min(1.0, value))

	def fractal (self, x: float) -> float:

		"""Sum two octaves for a less regular drift, still within [-1, 1]."""

		total = 0.0

		for frequency, amplitude in _OCTAVES:
			total += self.sample(x * frequency) * amplitude

		return max(-1.0, min(1.0, total / _OCTAVE_WEIGHT))


@dataclasses.dataclass
class ModulatorConfig:

	"""
	Parameters of a modulator.

	The output spans ``[base - range, base + range]``.  ``speed`` scales time
	before sampling the noise field: 0.01 drifts over minutes, 2.5 shimmers.
	``range`` must not be negative.
	"""

	base: float
	range: float
	speed: float = 1.0
	seed: typing.Optional[int] = None


class Modulator:

	"""
	A smoothly drifting, bounded value sampled from a noise field.
	"""

	def __init__ (self, config: ModulatorConfig, rng: typing.Optional[random.Random] = None) -> None:

		"""
		Create a modulator.

		Parameters:
			config: Base, range, speed and optional seed.
			rng: Random source for the noise table and phase offset when the
				config carries no seed.  With a seed, the modulator is fully
				deterministic regardless of ``rng``.
		"""

		if config.seed is not None:
			source = random.Random(config.seed)
		elif rng is not None:
			source = rng
		else:
			source = random.Random()

		self.base = config.base
		self.range = config.range
		self.speed = config.speed

		self._noise = PerlinNoise(source.getrandbits(32))
		self._offset = source.uniform(0.0, _MAX_PHASE_OFFSET)

	def _unit (self, time: float) -> float:
		return self._noise.fractal(time * self.speed + self._offset)

	def get_value (self, time: float) -> float:

		"""Value at *time*, within ``[base - range, base + range]``."""

		return self.base + self.range * self._unit(time)

	def get_normalized (self, time: float) -> float:

		"""The same sample as :meth:`get_value`, mapped onto [0, 1]."""

		return (self._unit(time) + 1.0) / 2.0

	def set_base (self, base: float) -> None:
		self.base = base

	def set_range (self, value: float) -> None:
		self.range = value

	def set_speed (self, speed: float) -> None:
		self.speed = speed


class ModulationBank:

	"""
	A named registry of modulators shared by every layer of a track.
	"""

	def __init__ (self, rng: typing.Optional[random.Random] = None) -> None:

		self._rng = rng
		self._modulators: typing.Dict[str, Modulator] = {}

	def add (self, name: str, config: ModulatorConfig) -> Modulator:

		"""Create a modulator, store it under *name* and return it."""

		modulator = Modulator(config, rng=self._rng)
		self._modulators[name] = modulator

		logger.debug(f"Modulator {name!r} added (base={config.base}, range={config.range}, speed={config.speed})")

		return modulator

	def get (self, name: str) -> typing.Optional[Modulator]:
		return self._modulators.get(name)

	def get_value (self, name: str, time: float) -> float:

		"""Value of the named modulator, or 0.0 when it does not exist."""

		modulator = self._modulators.get(name)

		if modulator is None:
			return 0.0

		return modulator.get_value(time)

	def get_normalized (self, name: str, time: float) -> float:

		"""Normalized value of the named modulator, or 0.5 when it does not exist."""

		modulator = self._modulators.get(name)

		if modulator is None:
			return 0.5

		return modulator.get_normalized(time)

	def names (self) -> typing.List[str]:
		return sorted(self._modulators)

	def __contains__ (self, name: object) -> bool:
		return name in self._modulators


# ─── Speed presets ───────────────────────────────────────────────────────────

SPEED_PRESETS: typing.Dict[str, float] = {
	"glacial": 0.01,
	"slow": 0.05,
	"medium": 0.2,
	"fast": 0.8,
	"shimmer": 2.5,
}


def preset (name: str, base: float, range: float) -> ModulatorConfig:

	"""Build a config from a named speed preset.

	Raises ``ValueError`` for unknown preset names.
	"""

	if name not in SPEED_PRESETS:
		available = ", ".join(f'"{k}"' for k in SPEED_PRESETS)
		raise ValueError(f"Unknown modulation preset {name!r}. Available presets: {available}")

	return ModulatorConfig(base=base, range=range, speed=SPEED_PRESETS[name])


def glacial (base: float, range: float) -> ModulatorConfig:
	"""Drift over several minutes - overall intensity, long swells."""
	return preset("glacial", base, range)


def slow (base: float, range: float) -> ModulatorConfig:
	"""Drift over tens of seconds - filter cutoffs, resonance."""
	return preset("slow", base, range)


def medium (base: float, range: float) -> ModulatorConfig:
	"""Drift over a few seconds - velocity, density."""
	return preset("medium", base, range)


def fast (base: float, range: float) -> ModulatorConfig:
	"""Movement within a bar - detune, small pitch wobble."""
	return preset("fast", base, range)


def shimmer (base: float, range: float) -> ModulatorConfig:
	"""Sub-second flutter."""
	return preset("shimmer", base, range)
