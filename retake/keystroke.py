"""Single-keystroke command input from the terminal.

A background thread reads stdin in *cbreak* mode, so each key press is
delivered immediately without Enter, and hands every key to the asyncio event
loop with ``call_soon_threadsafe``.  The thread itself never touches session
state.

**Platform support:** Linux and macOS.  Requires :mod:`tty` and :mod:`termios`
and a real TTY on stdin.  Elsewhere the listener starts in a degraded mode and
logs a warning instead of raising, and the looper keeps running without
keyboard commands (OSC commands still work).
"""

import asyncio
import logging
import select
import sys
import threading
import typing


logger = logging.getLogger(__name__)


def _probe_terminal () -> typing.Optional[str]:

	"""Return ``None`` if stdin can be put into cbreak mode, else the reason it cannot."""

	try:
		import termios  # noqa: PLC0415
		import tty      # noqa: F401, PLC0415

	except ImportError:
		return "Keyboard commands need the POSIX 'tty' and 'termios' modules (Linux or macOS)."

	try:
		if sys.stdin is None or not sys.stdin.isatty():
			return "Keyboard commands need an interactive terminal on stdin, not a pipe or service."

		fd = sys.stdin.fileno()
		termios.tcsetattr(fd, termios.TCSADRAIN, termios.tcgetattr(fd))

	except (OSError, ValueError, termios.error) as e:
		return f"Keyboard commands unavailable: {e}"

	return None


#: Why keyboard commands are unavailable, or ``None`` when they work.
HOTKEYS_UNAVAILABLE_REASON: typing.Optional[str] = _probe_terminal()

#: ``True`` when single-keystroke input is possible on this terminal.
HOTKEYS_SUPPORTED: bool = HOTKEYS_UNAVAILABLE_REASON is None


class KeystrokeListener:

	"""Background daemon thread that forwards keystrokes to the event loop.

	Example::

		listener = KeystrokeListener(on_key=handle_key)
		listener.start(asyncio.get_running_loop())
		...
		listener.stop()

	Terminal settings are always restored when the thread exits, even after
	an exception.
	"""

	def __init__ (self, on_key: typing.Callable[[str], typing.Any]) -> None:

		"""
		Parameters:
			on_key: Called on the event loop with each key (a one-character
				string), in the order pressed.
		"""

		self._on_key = on_key
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None
		self._thread: typing.Optional[threading.Thread] = None
		self._running: bool = False

		#: ``True`` after a successful :meth:`start` on a supported platform.
		self.active: bool = False

	def start (self, loop: typing.Optional[asyncio.AbstractEventLoop] = None) -> None:

		"""Start reading keys.  A second call while running is a no-op.

		If :data:`HOTKEYS_SUPPORTED` is ``False``, logs a warning and returns
		without starting the thread; :attr:`active` stays ``False``.
		"""

		if self._running:
			return

		if not HOTKEYS_SUPPORTED:
			logger.warning(
				f"Keyboard commands are not available on this system and will be disabled. "
				f"{HOTKEYS_UNAVAILABLE_REASON}"
			)
			return

		self._loop = loop or asyncio.get_running_loop()
		self._running = True
		self.active = True
		self._thread = threading.Thread(
			target = self._listen,
			name   = "retake-keystroke-listener",
			daemon = True,
		)
		self._thread.start()

	def stop (self) -> None:

		"""Signal the thread to exit within one poll interval (~0.1 s).

		The thread restores the terminal itself.  Safe to call when the
		listener never started.
		"""

		self._running = False
		self.active = False

	def deliver (self, key: str) -> None:

		"""Hand *key* to the event loop.  Called from the listener thread."""

		if self._loop is None or self._loop.is_closed():
			return

		self._loop.call_soon_threadsafe(self._on_key, key)

	def _listen (self) -> None:

		import termios  # noqa: PLC0415
		import tty      # noqa: PLC0415

		fd = sys.stdin.fileno()
		old_settings = termios.tcgetattr(fd)

		try:
			# cbreak rather than raw: Ctrl+C still raises SIGINT.
			tty.setcbreak(fd)

			while self._running:
				ready, _, _ = select.select([sys.stdin], [], [], 0.1)
				if ready:
					char = sys.stdin.read(1)
					if char:
						self.deliver(char)

		except Exception:
			logger.exception("Keystroke listener stopped unexpectedly")

		finally:
			termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
			self.active = False
