import random

import lull.synths


WAVEFORMS = ("sine", "triangle", "square", "sawtooth")


def test_presets_have_valid_parameters () -> None:

	assert len(lull.synths.SYNTH_PRESETS) > 0

	for preset in lull.synths.SYNTH_PRESETS:
		assert preset.name and preset.description
		assert len(preset.oscillators) > 0

		assert preset.attack >= 0
		assert preset.decay > 0
		assert 0 <= preset.sustain <= 1
		assert preset.release >= 0

		assert preset.filter_type in ("lowpass", "bandpass", "highpass")
		assert preset.filter_freq_start > 0
		assert preset.filter_freq_end > 0
		assert preset.filter_q >= 0

		assert 0 <= preset.distortion <= 1
		assert 0 <= preset.reverb_send <= 1
		assert 0 < preset.density <= 1
		assert preset.note_ticks >= 1

		low, high = preset.velocity_range
		assert 0 <= low <= high <= 1


def test_oscillator_layers_are_valid () -> None:

	for preset in lull.synths.SYNTH_PRESETS:
		for osc in preset.oscillators:
			assert osc.waveform in WAVEFORMS
			assert osc.detune_range >= 0
			assert 0 <= osc.gain_multiplier <= 1
			assert -2 <= osc.octave_offset <= 2


def test_preset_names_are_unique () -> None:

	names = [preset.name for preset in lull.synths.SYNTH_PRESETS]

	assert len(set(names)) == len(names)


def test_no_arp_chance_is_a_probability () -> None:

	assert 0 <= lull.synths.NO_ARP_CHANCE <= 1


def test_random_preset_is_from_table_or_none () -> None:

	rng = random.Random(2)

	for _ in range(50):
		preset = lull.synths.get_random_synth_preset(rng)
		assert preset is None or preset in lull.synths.SYNTH_PRESETS


def test_random_preset_is_sometimes_none_but_mostly_not () -> None:

	rng = random.Random(6)
	picks = [lull.synths.get_random_synth_preset(rng) for _ in range(400)]
	missing = sum(1 for preset in picks if preset is None)

	assert missing > 0
	assert missing < 200


def test_distortion_curve_is_normalized () -> None:

	curve = lull.synths.make_distortion_curve(0.5)

	assert len(curve) == 44100
	assert all(-1 <= value <= 1 for value in curve)
	assert curve[0] == -1.0


def test_distortion_curve_varies_with_amount () -> None:

	gentle = lull.synths.make_distortion_curve(0)
	harsh = lull.synths.make_distortion_curve(1)
	quarter = len(gentle) // 4

	# Harder drive pushes the same input closer to the rails.
	assert abs(harsh[quarter]) - abs(gentle[quarter]) > 0.05
