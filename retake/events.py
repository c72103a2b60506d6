"""Device events - the timestamped messages that make up a take.

A :class:`DeviceEvent` is an immutable record of one message from (or to) a
MIDI device.  Its payload shape depends on its :class:`EventKind`:

- note on / note off carry a :class:`NotePayload`
- control change carries a :class:`ControlPayload`
- every other kind is carried opaquely in an :class:`OpaquePayload`, so it can
  be replayed byte-for-byte without the core needing to understand it

Defaults for missing fields (channel, velocity) are applied once, here, when a
message is ingested with :func:`from_message`.  Nothing downstream has to
guess.
"""

import dataclasses
import enum
import logging
import typing

import mido

import retake.constants


logger = logging.getLogger(__name__)


class EventKind (enum.Enum):

	"""
	The message kinds an event source can deliver, valued by mido message type.
	"""

	NOTE_ON = "note_on"
	NOTE_OFF = "note_off"
	CONTROL_CHANGE = "control_change"
	PROGRAM_CHANGE = "program_change"
	CHANNEL_AFTERTOUCH = "aftertouch"
	POLY_AFTERTOUCH = "polytouch"
	PITCH_BEND = "pitchwheel"
	SONG_POSITION = "songpos"
	MTC = "quarter_frame"
	SONG_SELECT = "song_select"
	CLOCK = "clock"
	START = "start"
	CONTINUE = "continue"
	STOP = "stop"
	ACTIVE_SENSE = "active_sensing"
	RESET = "reset"


_NOTE_KINDS = frozenset({EventKind.NOTE_ON, EventKind.NOTE_OFF})
_KINDS_BY_TYPE: typing.Dict[str, EventKind] = {kind.value: kind for kind in EventKind}


@dataclasses.dataclass(frozen=True)
class NotePayload:

	"""Note on / note off data."""

	channel: int
	note: int
	velocity: int


@dataclasses.dataclass(frozen=True)
class ControlPayload:

	"""Control change data."""

	channel: int
	control: int
	value: int


@dataclasses.dataclass(frozen=True)
class OpaquePayload:

	"""
	Attribute/value pairs of a message the core only passes through.
	"""

	fields: typing.Tuple[typing.Tuple[str, typing.Any], ...] = ()


Payload = typing.Union[NotePayload, ControlPayload, OpaquePayload]


@dataclasses.dataclass(frozen=True)
class DeviceEvent:

	"""
	One captured message and its offset from the start of the take.

	Attributes:
		kind: What sort of message this is.
		payload: Kind-specific data (see module docstring).
		offset_ms: Whole milliseconds since the take started.
	"""

	kind: EventKind
	payload: Payload
	offset_ms: int = 0

	def __post_init__ (self) -> None:

		if self.offset_ms < 0:
			raise ValueError(f"offset_ms must not be negative, got {self.offset_ms}")

		if self.kind in _NOTE_KINDS and not isinstance(self.payload, NotePayload):
			raise ValueError(f"{self.kind.name} requires a NotePayload")

		if self.kind is EventKind.CONTROL_CHANGE and not isinstance(self.payload, ControlPayload):
			raise ValueError("CONTROL_CHANGE requires a ControlPayload")

	@property
	def is_capture_trigger (self) -> bool:

		"""True for a sounding note on, or a sustain pedal message."""

		if self.kind is EventKind.NOTE_ON:
			assert isinstance(self.payload, NotePayload)
			return self.payload.velocity > 0

		if self.kind is EventKind.CONTROL_CHANGE:
			assert isinstance(self.payload, ControlPayload)
			return self.payload.control == retake.constants.SUSTAIN_PEDAL_CC

		return False

	def at (self, offset_ms: int) -> "DeviceEvent":

		"""Return a copy of this event stamped with a different offset."""

		return dataclasses.replace(self, offset_ms=offset_ms)


def note_on (note: int, velocity: int = retake.constants.DEFAULT_VELOCITY, channel: int = retake.constants.DEFAULT_CHANNEL, offset_ms: int = 0) -> DeviceEvent:

	"""Convenience constructor for a note on event."""

	return DeviceEvent(EventKind.NOTE_ON, NotePayload(channel, note, velocity), offset_ms)


def note_off (note: int, velocity: int = 0, channel: int = retake.constants.DEFAULT_CHANNEL, offset_ms: int = 0) -> DeviceEvent:

	"""Convenience constructor for a note off event."""

	return DeviceEvent(EventKind.NOTE_OFF, NotePayload(channel, note, velocity), offset_ms)


def control_change (control: int, value: int, channel: int = retake.constants.DEFAULT_CHANNEL, offset_ms: int = 0) -> DeviceEvent:

	"""Convenience constructor for a control change event."""

	return DeviceEvent(EventKind.CONTROL_CHANGE, ControlPayload(channel, control, value), offset_ms)


def _field (message: typing.Any, name: str, default: int) -> int:

	value = getattr(message, name, None)

	if value is None:
		return default

	return int(value)


def from_message (message: typing.Any) -> typing.Optional[DeviceEvent]:

	"""
	Convert an incoming mido message into a :class:`DeviceEvent` at offset 0.

	Missing channels default to 0 and missing velocities to 100.  Message
	types outside :class:`EventKind` (SysEx, for example) return ``None``.
	The session stamps the real offset when it appends the event.
	"""

	kind = _KINDS_BY_TYPE.get(getattr(message, "type", None))  # type: ignore[arg-type]

	if kind is None:
		logger.debug(f"Ignoring unsupported MIDI message: {message}")
		return None

	if kind in _NOTE_KINDS:
		payload: Payload = NotePayload(
			channel = _field(message, "channel", retake.constants.DEFAULT_CHANNEL),
			note = _field(message, "note", 0),
			velocity = _field(message, "velocity", retake.constants.DEFAULT_VELOCITY)
		)

	elif kind is EventKind.CONTROL_CHANGE:
		payload = ControlPayload(
			channel = _field(message, "channel", retake.constants.DEFAULT_CHANNEL),
			control = _field(message, "control", 0),
			value = _field(message, "value", 0)
		)

	else:
		fields = message.dict() if hasattr(message, "dict") else {}
		fields.pop("type", None)
		fields.pop("time", None)
		payload = OpaquePayload(tuple(sorted(fields.items())))

	return DeviceEvent(kind, payload)


def to_message (event: DeviceEvent) -> mido.Message:

	"""Rebuild the mido message an event was captured from."""

	payload = event.payload

	if isinstance(payload, NotePayload):
		return mido.Message(event.kind.value, channel=payload.channel, note=payload.note, velocity=payload.velocity)

	if isinstance(payload, ControlPayload):
		return mido.Message(event.kind.value, channel=payload.channel, control=payload.control, value=payload.value)

	return mido.Message(event.kind.value, **dict(payload.fields))
