"""OSC remote control and state broadcasting.

Enable with ``osc: {enabled: true}`` in the config file or ``--osc`` on the
command line.  The server listens on a UDP port (default 9000) for commands
and sends state updates to a target host/port (default 127.0.0.1:9001).

Receive Handlers
────────────────
- ``/retake/stop``, ``/retake/play``, ``/retake/export``
- ``/retake/prev_page``, ``/retake/next_page``, ``/retake/next_document``

Send Events
───────────
- ``/retake/state <string>``: On every session state change
- ``/retake/exported <string>``: Path of each exported file
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import retake.commands


logger = logging.getLogger(__name__)

ADDRESS_PREFIX = "/retake"

_OSC_COMMANDS = (
	retake.commands.Command.STOP,
	retake.commands.Command.PLAY,
	retake.commands.Command.EXPORT,
	retake.commands.Command.PREV_PAGE,
	retake.commands.Command.NEXT_PAGE,
	retake.commands.Command.NEXT_DOCUMENT,
)


class OscServer:

	"""Async OSC server/client: a second command source next to the keyboard."""

	def __init__ (
		self,
		on_command: typing.Callable[[retake.commands.Command], typing.Any],
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._on_command = on_command
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		for command in _OSC_COMMANDS:
			self._dispatcher.map(f"{ADDRESS_PREFIX}/{command.value}", self._handle_command, command)


	async def start (self) -> None:

		"""Start the OSC server and client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, args)
			except Exception as e:
				logger.warning(f"OSC send error: {e}")


	def send_state (self, old_state: typing.Any, new_state: typing.Any) -> None:

		"""Session ``"state"`` listener."""

		self.send(f"{ADDRESS_PREFIX}/state", new_state.value)


	def send_exported (self, path: typing.Any) -> None:

		"""Session ``"exported"`` listener."""

		self.send(f"{ADDRESS_PREFIX}/exported", str(path))


	def _handle_command (self, address: str, fixed_args: typing.List[typing.Any], *args: typing.Any) -> None:

		command = fixed_args[0]
		logger.debug(f"OSC command {address} -> {command.value}")
		self._on_command(command)
