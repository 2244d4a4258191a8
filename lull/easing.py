"""
Curves for turning a modulator reading into a musical amount.

A curve takes progress ``t`` in [0, 1] and returns a shaped progress in
[0, 1], with ``f(0) == 0`` and ``f(1) == 1``.  Layers rarely call a curve
directly; they go through :func:`map_value`, which rescales one range into
another along a named curve:

	peak = lull.easing.map_value(intensity, 0.5, 0.8, 0.05, 0.12, shape="ease_in")

:func:`s_curve` doubles as the fade between lattice points of the noise field
in :mod:`lull.modulation`.
"""

import math
import typing


Curve = typing.Callable[[float], float]


# ─── Curves ───────────────────────────────────────────────────────────────────


def linear (t: float) -> float:
	return t


def ease_in (t: float) -> float:

	"""Quadratic: lingers near the bottom of the range."""

	return t * t


def ease_out (t: float) -> float:

	"""Quadratic: rushes off the bottom, settles near the top."""

	u = 1.0 - t
	return 1.0 - u * u


def ease_in_out (t: float) -> float:

	"""Smoothstep (cubic Hermite)."""

	return t * t * (3.0 - 2.0 * t)


def s_curve (t: float) -> float:

	"""
	Smootherstep (quintic).  First and second derivatives are zero at both
	ends, so noise built on it has no corners a listener could hear as a
	step in a filter or a level.
	"""

	return t * t * t * (t * (6.0 * t - 15.0) + 10.0)


EASING_FUNCTIONS: typing.Dict[str, Curve] = {
	"linear": linear,
	"ease_in": ease_in,
	"ease_out": ease_out,
	"ease_in_out": ease_in_out,
	"s_curve": s_curve,
}


def get_easing (shape: typing.Union[str, Curve]) -> Curve:

	"""
	Resolve a curve name, or pass a callable straight through.

	Raises:
		ValueError: ``shape`` is not a known curve name.
	"""

	if callable(shape):
		return shape

	try:
		return EASING_FUNCTIONS[shape]
	except KeyError:
		raise ValueError(f"Unknown easing shape {shape!r} (choose from {', '.join(sorted(EASING_FUNCTIONS))})") from None


# ─── Range mapping ────────────────────────────────────────────────────────────


def map_value (
	value: float,
	in_min: float = 0.0,
	in_max: float = 1.0,
	out_min: float = 0.0,
	out_max: float = 1.0,
	shape: typing.Union[str, Curve] = "linear",
	clamp: bool = True
) -> float:

	"""
	Rescale ``value`` from ``[in_min, in_max]`` to ``[out_min, out_max]``
	along ``shape``.  Reversed output ranges are fine.  With ``clamp`` the
	input is limited to its range first.  An empty input range maps
	everything to ``out_min``.
	"""

	if in_max == in_min:
		return out_min

	t = (value - in_min) / (in_max - in_min)

	if clamp:
		t = min(1.0, max(0.0, t))

	return out_min + get_easing(shape)(t) * (out_max - out_min)


def map_log (value: float, in_min: float, in_max: float, out_min: float = 0.0, out_max: float = 1.0) -> float:

	"""
	Rescale a strictly positive ``value`` on a logarithmic axis, so each
	octave of a frequency range gets an equal share of the output.  The input
	is clamped to ``[in_min, in_max]``.
	"""

	value = min(in_max, max(in_min, value))

	return map_value(math.log(value), math.log(in_min), math.log(in_max), out_min, out_max)
