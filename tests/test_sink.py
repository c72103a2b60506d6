import logging

import mido
import pytest

import conftest
import retake.events
import retake.sink


def test_send_converts_to_mido () -> None:

	port = conftest.FakeMidiOut()
	sink = retake.sink.MidiSink(port, "Dummy MIDI")

	sink.send(retake.events.note_on(60, 90, channel=1, offset_ms=500))

	assert port.sent == [mido.Message('note_on', channel=1, note=60, velocity=90)]


def test_send_without_port_raises () -> None:

	with pytest.raises(RuntimeError):
		retake.sink.MidiSink().send(retake.events.note_on(60))


def test_panic_silences_every_channel () -> None:

	port = conftest.FakeMidiOut()
	retake.sink.MidiSink(port).panic()

	assert len(port.sent) == 32
	assert {msg.channel for msg in port.sent} == set(range(16))
	assert {msg.control for msg in port.sent} == {120, 123}


def test_panic_failure_is_logged (caplog: pytest.LogCaptureFixture) -> None:

	class BrokenPort (conftest.FakeMidiOut):

		def send (self, message: mido.Message) -> None:
			raise OSError("unplugged")

	with caplog.at_level(logging.ERROR, logger="retake.sink"):
		retake.sink.MidiSink(BrokenPort()).panic()

	assert "MIDI panic failed" in caplog.text


def test_close_releases_port () -> None:

	port = conftest.FakeMidiOut()
	sink = retake.sink.MidiSink(port)

	sink.close()
	sink.close()

	assert port.closed
	assert sink.port is None
