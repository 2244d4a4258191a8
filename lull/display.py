"""Terminal status line for playback.

Shows what is playing and for how long, redrawn in place on stderr::

	Track 3  D2 dorian  89 BPM  Kit: Deep Pulse  Synth: Glass Arp  2:31 / 11:04  playing

Log messages scroll above the status line without disrupting it: while the
display is active it replaces the root logger's handlers with a
:class:`DisplayLogHandler` that clears the line, writes the record and
redraws.
"""

import logging
import sys
import typing

import lull.scales

if typing.TYPE_CHECKING:
	import lull.player


def format_time (seconds: float) -> str:

	"""Format seconds as ``M:SS``."""

	seconds = max(0, int(seconds))

	return f"{seconds // 60}:{seconds % 60:02d}"


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the status line around log output."""

	def __init__ (self, display: "Display") -> None:

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		try:
			self._display.clear_line()

			msg = self.format(record)
			self._display.stream.write(msg + "\n")
			self._display.stream.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""A persistent status line that follows a :class:`lull.player.Player`."""

	def __init__ (self, player: "lull.player.Player", stream: typing.Optional[typing.TextIO] = None) -> None:

		self._player = player
		self.stream: typing.TextIO = stream or sys.stderr

		self._active = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line = ""

	@property
	def active (self) -> bool:
		return self._active

	def start (self) -> None:

		"""Install the log handler and begin drawing."""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)
		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

	def stop (self) -> None:

		"""Erase the status line and restore the original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def update (self) -> None:

		if not self._active:
			return

		self._last_line = self.format_status()
		self.draw()

	def draw (self) -> None:

		if not self._active or not self._last_line:
			return

		self.stream.write(f"\r\033[K{self._last_line}")
		self.stream.flush()

	def clear_line (self) -> None:

		if not self._active:
			return

		self.stream.write("\r\033[K")
		self.stream.flush()

	def format_status (self) -> str:

		"""Build the status string from the player's snapshot."""

		snapshot = self._player.snapshot()

		if snapshot is None:
			return "Starting..."

		state = snapshot.state
		parts = [
			f"Track {snapshot.track_number}",
			f"{lull.scales.midi_to_name(state.root)} {state.scale_name}",
			f"{snapshot.bpm:g} BPM",
		]

		if state.kit_name:
			parts.append(f"Kit: {state.kit_name}")

		if state.synth_name:
			parts.append(f"Synth: {state.synth_name}")

		parts.append(f"{format_time(snapshot.elapsed)} / {format_time(snapshot.length)}")
		parts.append(snapshot.status)

		return "  ".join(parts)
