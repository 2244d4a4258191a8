import logging
import sys
import typing

import mido


logger = logging.getLogger(__name__)


def _prompt_for_device (outputs: typing.List[str], ask: typing.Callable[[str], str]) -> typing.Optional[str]:

	"""
	List the outputs on the console and ask for a number until a valid one is
	entered.  Returns None if the input stream closes first.
	"""

	print("\nAvailable MIDI outputs:\n")

	for number, name in enumerate(outputs, 1):
		print(f"  {number}. {name}")

	print()

	while True:

		try:
			answer = ask(f"Play through which output (1-{len(outputs)})? ")
		except EOFError:
			return None

		if answer.strip().isdigit() and 1 <= int(answer) <= len(outputs):
			return outputs[int(answer) - 1]

		print(f"Enter a number between 1 and {len(outputs)}.")


def select_output_device (
	device_name: typing.Optional[str] = None,
	ask: typing.Optional[typing.Callable[[str], str]] = None
) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Open the MIDI output lull plays through.

	A named device is opened if present.  Without a name, a single available
	output is used directly; with several, the user picks one on the console
	(only when stdin is a terminal, or when ``ask`` is supplied).

	Returns:
		``(device_name, port)``, or ``(None, None)`` when nothing could be
		opened.  The reason is logged.
	"""

	try:
		outputs = mido.get_output_names()
	except Exception as e:
		logger.error(f"Could not list MIDI outputs: {e}")
		return None, None

	logger.debug(f"MIDI outputs: {outputs}")

	if not outputs:
		logger.error("No MIDI output devices found")
		return None, None

	if device_name is not None:

		if device_name not in outputs:
			logger.error(f"MIDI output '{device_name}' not found (available: {', '.join(outputs)})")
			return None, None

		selected = device_name

	elif len(outputs) == 1:
		selected = outputs[0]

	else:

		if ask is None and not sys.stdin.isatty():
			logger.error(f"Several MIDI outputs found, choose one with --output: {', '.join(outputs)}")
			return None, None

		selected = _prompt_for_device(outputs, ask or input)

		if selected is None:
			return None, None

		print(f"\nTip: skip this prompt next time with  lull --output \"{selected}\"\n")

	try:
		port = mido.open_output(selected)
	except Exception as e:
		logger.error(f"Failed to open MIDI output '{selected}': {e}")
		return None, None

	logger.info(f"Playing through MIDI output '{selected}'")

	return selected, port
