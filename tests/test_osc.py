import asyncio
import typing

import pytest
import pythonosc.udp_client

import retake.commands
import retake.osc
import retake.session


@pytest.mark.asyncio
async def test_osc_command_handlers () -> None:

	"""Each /retake/<command> address issues that command."""

	received: typing.List[retake.commands.Command] = []

	server = retake.osc.OscServer(received.append, receive_port=0, send_port=0)
	await server.start()

	port = server._transport.get_extra_info("sockname")[1]

	client = pythonosc.udp_client.SimpleUDPClient("127.0.0.1", port)
	client.send_message("/retake/play", [])
	client.send_message("/retake/next_page", [])
	client.send_message("/retake/stop", [])

	await asyncio.sleep(0.1)

	assert received == [
		retake.commands.Command.PLAY,
		retake.commands.Command.NEXT_PAGE,
		retake.commands.Command.STOP,
	]

	await server.stop()


@pytest.mark.asyncio
async def test_osc_unknown_address_ignored () -> None:

	received: typing.List[retake.commands.Command] = []

	server = retake.osc.OscServer(received.append, receive_port=0, send_port=0)
	await server.start()
	port = server._transport.get_extra_info("sockname")[1]

	pythonosc.udp_client.SimpleUDPClient("127.0.0.1", port).send_message("/retake/quit", [])
	await asyncio.sleep(0.1)

	assert received == []

	await server.stop()


@pytest.mark.asyncio
async def test_osc_state_is_sent () -> None:

	"""State changes go out to the send port as /retake/state."""

	loop = asyncio.get_running_loop()
	arrived: asyncio.Queue = asyncio.Queue()

	class Receiver (asyncio.DatagramProtocol):

		def datagram_received (self, data: bytes, addr: typing.Any) -> None:
			arrived.put_nowait(data)

	transport, _ = await loop.create_datagram_endpoint(Receiver, local_addr=("127.0.0.1", 0))
	send_port = transport.get_extra_info("sockname")[1]

	server = retake.osc.OscServer(lambda command: None, receive_port=0, send_port=send_port)
	await server.start()

	server.send_state(retake.session.SessionState.IDLE, retake.session.SessionState.CAPTURING)

	data = await asyncio.wait_for(arrived.get(), timeout=2.0)

	assert data.startswith(b"/retake/state")
	assert b"capturing" in data

	await server.stop()
	transport.close()
