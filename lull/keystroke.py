"""Single-keystroke transport controls.

A background thread reads individual keys from stdin (no Enter needed) and
hands them to the player through a queue.  The status display writes to
**stderr** while this module reads **stdin**, so the two do not collide.

Controls::

	p          pause / resume
	n, space   next track
	q, escape  quit

**Platform support:** Linux and macOS (requires :mod:`tty` and :mod:`termios`
and a real TTY on stdin).  Elsewhere the listener starts in a degraded mode
and logs a warning instead of raising.
"""

import logging
import queue
import select
import sys
import threading
import typing


logger = logging.getLogger(__name__)


KEY_COMMANDS: typing.Dict[str, str] = {
	"p": "pause",
	"n": "next",
	" ": "next",
	"q": "quit",
	"\x1b": "quit",
}

def detect_support (stream: typing.Any = None) -> typing.Tuple[bool, typing.Optional[str]]:

	"""
	Check whether single keystrokes can be read from ``stream`` (stdin by
	default).  Returns ``(supported, reason)``, where ``reason`` explains a
	``False``.
	"""

	stream = sys.stdin if stream is None else stream

	try:
		import termios  # noqa: PLC0415
	except ImportError:
		return False, "Keyboard controls need the POSIX 'termios' module (Linux or macOS)."

	try:
		if not stream.isatty():
			return False, "Keyboard controls need an interactive terminal on stdin."

		fd = stream.fileno()
		termios.tcsetattr(fd, termios.TCSADRAIN, termios.tcgetattr(fd))

	except (OSError, ValueError) as e:
		return False, f"Keyboard controls are unavailable: {e}"

	return True, None


#: Whether stdin supported single-keystroke input at import time, and why not.
HOTKEYS_SUPPORTED, HOTKEYS_UNAVAILABLE_REASON = detect_support()


def command_for (key: str) -> typing.Optional[str]:

	"""Map a keystroke to ``"pause"``, ``"next"`` or ``"quit"`` (case-insensitive)."""

	return KEY_COMMANDS.get(key.lower()) if key else None


class KeystrokeListener:

	"""Background daemon thread that reads single keystrokes from stdin.

	Puts stdin into *cbreak* mode so each keypress arrives immediately;
	Ctrl+C still raises SIGINT.  Terminal settings are restored when the
	thread exits, even after an error.

	Example::

		listener = KeystrokeListener()
		listener.start()

		for key in listener.drain():
			handle(key)

		listener.stop()
	"""

	def __init__ (self) -> None:

		self._queue: queue.Queue[str] = queue.Queue()
		self._thread: typing.Optional[threading.Thread] = None
		self._running: bool = False

		self.active: bool = False

	def start (self) -> None:

		"""Start reading keys.  A no-op when already running or unsupported."""

		if self._running:
			return

		if not HOTKEYS_SUPPORTED:
			logger.warning(f"Keyboard controls are disabled. {HOTKEYS_UNAVAILABLE_REASON}")
			return

		self._running = True
		self.active = True
		self._thread = threading.Thread(
			target = self._listen,
			name   = "lull-keystroke-listener",
			daemon = True,
		)
		self._thread.start()

	def stop (self) -> None:

		"""Ask the thread to exit; it restores the terminal within ~0.1 s."""

		self._running = False
		self.active = False

	def push (self, key: str) -> None:

		"""Queue a key as if it had been typed."""

		self._queue.put(key)

	def drain (self) -> typing.List[str]:

		"""Every key pressed since the last drain, oldest first.  Non-blocking."""

		keys: typing.List[str] = []

		while True:
			try:
				keys.append(self._queue.get_nowait())
			except queue.Empty:
				break

		return keys

	def _listen (self) -> None:

		import termios  # noqa: PLC0415
		import tty      # noqa: PLC0415

		fd = sys.stdin.fileno()
		old_settings = termios.tcgetattr(fd)

		try:
			tty.setcbreak(fd)

			while self._running:
				ready, _, _ = select.select([sys.stdin], [], [], 0.1)
				if ready:
					char = sys.stdin.read(1)
					if char:
						self._queue.put(char)

		except Exception:
			logger.exception("Keystroke listener stopped unexpectedly")

		finally:
			termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
			self.active = False
