import asyncio
import logging
import signal
import typing

import retake.commands
import retake.config
import retake.events
import retake.export
import retake.keystroke
import retake.midi_utils
import retake.osc
import retake.replay
import retake.session
import retake.sink
import retake.viewer


logger = logging.getLogger(__name__)


class Looper:

	"""
	The running application: MIDI ports, command sources and the session.

	All stimuli - MIDI input, keystrokes, OSC commands and replay timers - are
	dispatched on one asyncio event loop, one at a time.  MIDI input and
	keystrokes arrive on their own threads and are handed to the loop with
	``call_soon_threadsafe`` before anything looks at them.

	Typical use::

		looper = retake.app.Looper(retake.config.load_config())
		looper.run()
	"""

	def __init__ (self, config: typing.Optional[retake.config.Config] = None) -> None:

		self.config = config or retake.config.Config()

		self.sink = retake.sink.MidiSink()
		self.scheduler = retake.replay.ReplayScheduler(self.sink)
		self.exporter = retake.export.Exporter(self.config.export_dir, self.config.export_prefix)
		self.session = retake.session.Session(self.scheduler, self.exporter)
		self.viewer = retake.viewer.SheetViewer(
			sheet_dir = self.config.sheet_dir,
			http_port = self.config.viewer_http_port,
			ws_port = self.config.viewer_ws_port,
			open_browser = self.config.viewer_open_browser
		)

		self.midi_in: typing.Any = None
		self.input_device_name: typing.Optional[str] = None

		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None
		self._stop_event: typing.Optional[asyncio.Event] = None
		self._keystroke_listener: typing.Optional[retake.keystroke.KeystrokeListener] = None
		self._osc_server: typing.Optional[retake.osc.OscServer] = None
		self._viewer_tasks: typing.Set[asyncio.Task] = set()

		self.session.events.on("replay_cancelled", self._on_replay_cancelled)

	# ------------------------------------------------------------------
	# Stimuli
	# ------------------------------------------------------------------

	def _on_midi_input (self, message: typing.Any) -> None:

		"""mido input callback.  Runs on mido's thread - forward only."""

		if self._loop is None or self._loop.is_closed():
			return

		self._loop.call_soon_threadsafe(self.handle_message, message)

	def handle_message (self, message: typing.Any) -> None:

		"""Convert an incoming MIDI message and pass it to the session."""

		event = retake.events.from_message(message)

		if event is None:
			return

		self.session.handle_event(event)

	def handle_key (self, key: str) -> None:

		"""Keystroke listener callback."""

		command = retake.commands.command_for_key(key)

		if command is not None:
			self.dispatch(command)

	def dispatch (self, command: retake.commands.Command) -> None:

		"""Run one user command.  Viewer commands bypass the session."""

		if command is retake.commands.Command.STOP:
			self.session.stop()

		elif command is retake.commands.Command.PLAY:
			self.session.play()

		elif command is retake.commands.Command.EXPORT:
			self.session.export()

		elif command in retake.commands.VIEWER_COMMANDS:
			self._run_viewer_command(command)

		elif command is retake.commands.Command.HELP:
			logger.info(retake.commands.describe_bindings())

		elif command is retake.commands.Command.QUIT:
			self.request_stop()

	def _run_viewer_command (self, command: retake.commands.Command) -> None:

		actions: typing.Dict[retake.commands.Command, typing.Callable[[], typing.Awaitable[None]]] = {
			retake.commands.Command.PREV_PAGE: self.viewer.prev_page,
			retake.commands.Command.NEXT_PAGE: self.viewer.next_page,
			retake.commands.Command.NEXT_DOCUMENT: self.viewer.next_document,
		}

		task = asyncio.get_running_loop().create_task(actions[command]())
		self._viewer_tasks.add(task)
		task.add_done_callback(self._viewer_task_done)

	def _viewer_task_done (self, task: asyncio.Task) -> None:

		self._viewer_tasks.discard(task)

		if task.cancelled():
			return

		error = task.exception()
		if error is not None:
			logger.error(f"Error running sheet viewer command: {error}")

	def _on_replay_cancelled (self, replay: retake.replay.ReplaySession) -> None:

		# Notes the interrupted replay left sounding on the output device.
		self.sink.panic()

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	def open_devices (self) -> None:

		"""Open the MIDI input and output ports.  Missing devices are logged, not fatal."""

		output_name, midi_out = retake.midi_utils.select_output_device(self.config.output_device)
		self.sink.port = midi_out
		self.sink.name = output_name

		self.input_device_name, self.midi_in = retake.midi_utils.select_input_device(self.config.input_device, self._on_midi_input)

		if self.midi_in is None and midi_out is None:
			logger.error("No MIDI input or output devices found")

	def request_stop (self) -> None:

		"""Ask :meth:`run` to shut down."""

		if self._stop_event is not None:
			self._stop_event.set()

	async def start (self) -> None:

		"""Open devices and start every command source."""

		self._loop = asyncio.get_running_loop()
		self._stop_event = asyncio.Event()

		self.open_devices()

		if self.config.hotkeys:
			self._keystroke_listener = retake.keystroke.KeystrokeListener(self.handle_key)
			self._keystroke_listener.start(self._loop)

			if self._keystroke_listener.active:
				logger.info(retake.commands.describe_bindings())

		if self.config.osc:
			self._osc_server = retake.osc.OscServer(
				self.dispatch,
				receive_port = self.config.osc_receive_port,
				send_port = self.config.osc_send_port,
				send_host = self.config.osc_send_host
			)

			try:
				await self._osc_server.start()
				self.session.events.on("state", self._osc_server.send_state)
				self.session.events.on("exported", self._osc_server.send_exported)

			except OSError as e:
				logger.error(f"Failed to start OSC server: {e}")
				self._osc_server = None

		for sig in (signal.SIGINT, signal.SIGTERM):
			try:
				self._loop.add_signal_handler(sig, self.request_stop)
			except (NotImplementedError, RuntimeError):
				pass

		logger.info("Listening for MIDI input... (press 'p' to play, Ctrl+C to exit)")

	async def stop (self) -> None:

		"""Cancel any replay and release every resource."""

		logger.info("Shutting down...")

		if self.session.state is not retake.session.SessionState.IDLE:
			self.session.stop()

		if self._keystroke_listener is not None:
			self._keystroke_listener.stop()
			self._keystroke_listener = None

		if self._osc_server is not None:
			await self._osc_server.stop()
			self._osc_server = None

		for task in list(self._viewer_tasks):
			task.cancel()

		await self.viewer.stop()

		if self.midi_in is not None:
			self.midi_in.close()
			self.midi_in = None

		self.sink.close()

		if self._loop is not None:
			for sig in (signal.SIGINT, signal.SIGTERM):
				try:
					self._loop.remove_signal_handler(sig)
				except (NotImplementedError, RuntimeError):
					pass

	async def _run (self) -> None:

		await self.start()

		assert self._stop_event is not None, "start() creates the stop event"

		try:
			await self._stop_event.wait()
		finally:
			await self.stop()

	def run (self) -> None:

		"""Run until Ctrl+C, SIGTERM or Ctrl+D."""

		asyncio.run(self._run())
