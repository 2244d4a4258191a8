import pytest
import lull.easing


# ─── Core properties of all easing functions ─────────────────────────────────


def test_all_easings_fixed_endpoints ():

	"""Every easing function maps 0 to 0 and 1 to 1."""

	for name, fn in lull.easing.EASING_FUNCTIONS.items():
		assert fn(0.0) == pytest.approx(0.0), f"{name}(0) should be 0.0"
		assert fn(1.0) == pytest.approx(1.0), f"{name}(1) should be 1.0"


def test_all_easings_monotonic ():

	"""Every easing function is non-decreasing over [0, 1]."""

	steps = 100
	for name, fn in lull.easing.EASING_FUNCTIONS.items():
		values = [fn(i / steps) for i in range(steps + 1)]
		for i in range(len(values) - 1):
			assert values[i] <= values[i + 1] + 1e-9, (
				f"{name} is not monotonic at t={i/steps:.2f}"
			)


# ─── Shape-specific characteristics ──────────────────────────────────────────


def test_ease_in_below_and_ease_out_above_diagonal ():

	assert lull.easing.ease_in(0.5) < 0.5
	assert lull.easing.ease_out(0.5) > 0.5


def test_s_curves_symmetric ():

	assert lull.easing.ease_in_out(0.5) == pytest.approx(0.5)
	assert lull.easing.s_curve(0.5) == pytest.approx(0.5)


def test_s_curve_flatter_start_than_ease_in_out ():

	"""s_curve starts more slowly, which keeps the noise field free of corners."""

	assert lull.easing.s_curve(0.1) < lull.easing.ease_in_out(0.1)


# ─── get_easing ───────────────────────────────────────────────────────────────


def test_get_easing_all_names ():

	for name, expected in lull.easing.EASING_FUNCTIONS.items():
		assert lull.easing.get_easing(name) is expected


def test_get_easing_callable_passthrough ():

	custom = lambda t: t ** 0.5
	assert lull.easing.get_easing(custom) is custom


def test_get_easing_unknown_raises ():

	with pytest.raises(ValueError, match="Unknown easing shape"):
		lull.easing.get_easing("bogus_shape")


# ─── map_value ────────────────────────────────────────────────────────────────


def test_map_value_linear ():

	"""Intensity 0.65 of 0..1 maps into a gain range proportionally."""

	assert lull.easing.map_value(0.65, 0.0, 1.0, 0.0, 0.2) == pytest.approx(0.13)


def test_map_value_clamps_by_default ():

	assert lull.easing.map_value(2.0, 0.0, 1.0, 10.0, 20.0) == pytest.approx(20.0)
	assert lull.easing.map_value(-1.0, 0.0, 1.0, 10.0, 20.0) == pytest.approx(10.0)


def test_map_value_without_clamp_extrapolates ():

	assert lull.easing.map_value(2.0, 0.0, 1.0, 10.0, 20.0, clamp=False) == pytest.approx(30.0)


def test_map_value_with_shape ():

	assert lull.easing.map_value(0.5, 0.0, 1.0, 0.0, 1.0, shape="ease_in") == pytest.approx(0.25)


def test_map_value_descending_output ():

	"""Output ranges may run backwards."""

	assert lull.easing.map_value(0.25, 0.0, 1.0, 1.0, 0.0) == pytest.approx(0.75)


def test_map_value_zero_width_input ():

	assert lull.easing.map_value(5.0, 1.0, 1.0, 3.0, 9.0) == 3.0


def test_map_log_gives_each_octave_an_equal_share ():

	low = lull.easing.map_log(200.0, 100.0, 1600.0)
	high = lull.easing.map_log(800.0, 100.0, 1600.0)

	assert low == pytest.approx(0.25)
	assert high == pytest.approx(0.75)


def test_map_log_clamps ():

	assert lull.easing.map_log(1.0, 20.0, 20000.0, 0, 127) == 0
	assert lull.easing.map_log(96000.0, 20.0, 20000.0, 0, 127) == pytest.approx(127)
