import math
import typing


SCALES: typing.Dict[str, typing.Tuple[int, ...]] = {
	"minor_pentatonic": (0, 3, 5, 7, 10),
	"major_pentatonic": (0, 2, 4, 7, 9),
	"dorian": (0, 2, 3, 5, 7, 9, 10),
	"phrygian": (0, 1, 3, 5, 7, 8, 10),
	"aeolian": (0, 2, 3, 5, 7, 8, 10),
	"lydian": (0, 2, 4, 6, 7, 9, 11),
	"mixolydian": (0, 2, 4, 5, 7, 9, 10),
	"ionian": (0, 2, 4, 5, 7, 9, 11),
}


# Scales that suit deep, dark electronic music; the engine picks from these.
CURATED_SCALES: typing.Tuple[str, ...] = (
	"minor_pentatonic",
	"dorian",
	"phrygian",
	"aeolian",
)


# Deep bass roots, D2 to A2.
CURATED_ROOTS: typing.Tuple[int, ...] = (38, 40, 41, 43, 45)


INTERVALS: typing.Dict[str, int] = {
	"unison": 0,
	"minor_second": 1,
	"major_second": 2,
	"minor_third": 3,
	"major_third": 4,
	"perfect_fourth": 5,
	"tritone": 6,
	"perfect_fifth": 7,
	"minor_sixth": 8,
	"major_sixth": 9,
	"minor_seventh": 10,
	"major_seventh": 11,
	"octave": 12,
}


NOTE_NAMES: typing.Tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")


def midi_to_freq (midi: float) -> float:

	"""Convert a MIDI note number to frequency in Hz (A4 = 69 = 440 Hz)."""

	return 440.0 * 2.0 ** ((midi - 69) / 12.0)


def freq_to_midi (freq: float) -> float:

	"""Convert a frequency in Hz to a (fractional) MIDI note number."""

	if freq <= 0:
		raise ValueError(f"Frequency must be positive, got {freq}")

	return 69 + 12 * math.log2(freq / 440.0)


def midi_to_name (midi: int) -> str:

	"""Convert a MIDI note number to a name such as ``"C4"`` or ``"A#4"``."""

	octave = (midi // 12) - 1
	return f"{NOTE_NAMES[midi % 12]}{octave}"


def get_scale_notes (root: int, scale: typing.Sequence[int], octaves: int = 2) -> typing.List[int]:

	"""
	List MIDI notes of a scale from *root* upwards across *octaves* octaves.
	"""

	return [root + octave * 12 + interval for octave in range(octaves) for interval in scale]


def get_chord_tones (root: int, scale: typing.Sequence[int]) -> typing.List[int]:

	"""
	Stack alternate scale degrees from the root: 1-3-5 on a pentatonic
	scale, 1-3-5-7 on a seven-note scale.
	"""

	return [root + scale[degree] for degree in range(0, len(scale), 2)]


def degree_to_midi (root: int, scale: typing.Sequence[int], degree: int, octave_offset: int = 0) -> int:

	"""
	Resolve a scale-degree offset (which may be negative or exceed the scale
	length) to a MIDI note, wrapping into neighbouring octaves.
	"""

	octave, index = divmod(degree, len(scale))

	return root + (octave + octave_offset) * 12 + scale[index]
