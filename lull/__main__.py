import argparse
import asyncio
import logging
import sys
import typing

import lull.config
import lull.constants
import lull.display
import lull.graph
import lull.keystroke
import lull.midi_graph
import lull.midi_utils
import lull.player


logger = logging.getLogger(__name__)


# Named scheduling lookaheads, in seconds.
LATENCY_PRESETS: typing.Dict[str, float] = {
	"interactive": 0.1,
	"balanced": lull.constants.DEFAULT_LOOKAHEAD,
	"playback": 0.4,
}


def parse_latency (value: str) -> float:

	"""
	A latency preset name, or a positive number of milliseconds, as seconds.
	"""

	name = value.lower()

	if name in LATENCY_PRESETS:
		return LATENCY_PRESETS[name]

	try:
		milliseconds = float(value)
	except ValueError:
		milliseconds = 0.0

	if milliseconds <= 0:
		raise argparse.ArgumentTypeError("Latency must be interactive | balanced | playback or a positive number (ms)")

	return milliseconds / 1000.0


def build_parser () -> argparse.ArgumentParser:

	parser = argparse.ArgumentParser(
		prog = "lull",
		description = "Endless generative ambient music for deep work, played through a MIDI synthesizer.",
		epilog = "Controls while playing: p pause/resume, n or space next track, q or escape quit."
	)

	parser.add_argument("--bpm", type=int, help=f"tempo ({lull.constants.CLI_MIN_BPM}-{lull.constants.CLI_MAX_BPM}, default: {lull.constants.DEFAULT_BPM})")
	parser.add_argument("--volume", type=int, help=f"master volume (0-100, default: {lull.constants.DEFAULT_VOLUME})")
	parser.add_argument("--latency", type=parse_latency, help="scheduling lookahead: interactive | balanced | playback, or milliseconds")
	parser.add_argument("--seed", type=int, help="seed the random source for a repeatable sequence of tracks")
	parser.add_argument("--output", help="MIDI output device name (prompts when several are available)")
	parser.add_argument("--config", default=lull.config.DEFAULT_CONFIG_PATH, help="YAML config file (default: %(default)s)")
	parser.add_argument("--headless", action="store_true", help="run without a MIDI device (nothing is heard)")
	parser.add_argument("--diagnostics", action="store_true", default=None, help="log scheduling headroom and node statistics")
	parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")

	return parser


def validate_args (parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:

	"""Reject out-of-range values with a usage error (exit status 2)."""

	if args.bpm is not None and not lull.constants.CLI_MIN_BPM <= args.bpm <= lull.constants.CLI_MAX_BPM:
		parser.error(f"BPM must be between {lull.constants.CLI_MIN_BPM} and {lull.constants.CLI_MAX_BPM}")

	if args.volume is not None and not 0 <= args.volume <= 100:
		parser.error("Volume must be between 0 and 100")


def make_graph_factory (config: lull.config.Config, headless: bool) -> typing.Tuple[lull.player.GraphFactory, typing.Optional[typing.Any]]:

	"""
	Return a per-track graph factory and the MIDI port it plays through
	(None when headless).  The port is opened once and shared by every track.

	Raises:
		lull.graph.GraphError: No MIDI output could be opened.
	"""

	if headless:
		return lull.graph.Graph, None

	device_name, port = lull.midi_utils.select_output_device(config.device_name)

	if port is None:
		raise lull.graph.GraphError("No MIDI output available (use --headless to run without one)")

	def factory () -> lull.graph.SignalGraph:
		return lull.midi_graph.MidiGraph(port=port, device_name=device_name, channel_map=config.channels)

	return factory, port


async def run (player: lull.player.Player) -> None:

	keystrokes = lull.keystroke.KeystrokeListener()
	display = lull.display.Display(player)

	keystrokes.start()
	display.start()

	try:
		await player.play(keystrokes=keystrokes, display=display)

	finally:
		display.stop()
		keystrokes.stop()


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the lull application.
	"""

	parser = build_parser()
	args = parser.parse_args(argv)

	validate_args(parser, args)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

	try:
		config = lull.config.load_config(args.config)
	except ValueError as e:
		parser.error(str(e))

	config = lull.config.apply_overrides(
		config,
		bpm = args.bpm,
		volume = args.volume,
		lookahead = args.latency,
		seed = args.seed,
		device_name = args.output,
		diagnostics = args.diagnostics
	)

	try:
		factory, port = make_graph_factory(config, args.headless)
	except lull.graph.GraphError as e:
		logger.error(str(e))
		return 1

	player = lull.player.Player(factory, config=config.engine_config())

	logger.info("lull starting...")

	try:
		asyncio.run(run(player))

	except KeyboardInterrupt:
		pass

	finally:
		if port is not None:
			port.close()

	print("\n  Goodbye!\n", file=sys.stderr)

	return 0


if __name__ == "__main__":
	sys.exit(main())
