import logging
import typing

import mido

import retake.constants
import retake.events


logger = logging.getLogger(__name__)


class MidiSink:

	"""
	Sends replayed events to a mido output port.

	With no port (no output device was found) every :meth:`send` raises
	``RuntimeError``, which the replay scheduler logs per event.
	"""

	def __init__ (self, port: typing.Optional[typing.Any] = None, name: typing.Optional[str] = None) -> None:

		self.port = port
		self.name = name

	def send (self, event: retake.events.DeviceEvent) -> None:

		"""Emit one event."""

		if self.port is None:
			raise RuntimeError("No MIDI output device is connected")

		self.port.send(retake.events.to_message(event))

	def panic (self) -> None:

		"""
		Silence the output device after an interrupted replay.

		Sends All Notes Off (CC 123) and All Sound Off (CC 120) on all 16
		channels.  Failures are logged, never raised.
		"""

		if self.port is None:
			return

		try:
			for channel in range(retake.constants.MIDI_CHANNELS):
				self.port.send(mido.Message('control_change', channel=channel, control=retake.constants.ALL_NOTES_OFF_CC, value=0))
				self.port.send(mido.Message('control_change', channel=channel, control=retake.constants.ALL_SOUND_OFF_CC, value=0))

		except Exception:
			logger.exception("MIDI panic failed (device may be disconnected)")

	def close (self) -> None:

		"""Close the output port, if any."""

		if self.port is not None:
			self.port.close()
			self.port = None
