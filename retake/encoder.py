"""Turn a take into a Standard MIDI File.

:func:`encode` walks the event log once, pairing note ons with their note offs
and passing control changes through.  Notes still sounding when the log runs
out are closed at the take's final offset, so the output never contains a
dangling note.  Other message kinds have no place in the exported track and
are dropped.

Times in the resulting :class:`Track` are seconds relative to the first
event.  :func:`to_midi_file` lays the track out as a type 1 file (tempo track
plus one note track) and :func:`to_bytes` serialises it.
"""

import dataclasses
import io
import typing

import mido

import retake.constants
import retake.events
import retake.take


@dataclasses.dataclass(frozen=True)
class NoteRecord:

	"""A finished note.  ``start`` and ``duration`` are in seconds."""

	pitch: int
	start: float
	duration: float
	velocity: int
	channel: int

	@property
	def end (self) -> float:
		return self.start + self.duration


@dataclasses.dataclass(frozen=True)
class ControlRecord:

	"""A control change at ``time`` seconds."""

	control: int
	value: int
	time: float
	channel: int


@dataclasses.dataclass
class Track:

	"""The encoded take: notes and control changes, each in time order."""

	notes: typing.List[NoteRecord] = dataclasses.field(default_factory=list)
	controls: typing.List[ControlRecord] = dataclasses.field(default_factory=list)
	name: str = "retake"

	@property
	def duration (self) -> float:

		"""Seconds from the start of the track to its last note end or control."""

		ends = [note.end for note in self.notes] + [cc.time for cc in self.controls]
		return max(ends, default=0.0)


@dataclasses.dataclass
class _ActiveNote:

	start_ms: int
	velocity: int
	channel: int


def _close (pitch: int, active: _ActiveNote, end_ms: int) -> NoteRecord:

	"""Build the record for an active note released at *end_ms* (both relative to t0)."""

	duration = max(retake.constants.MIN_NOTE_SECONDS, (end_ms - active.start_ms) / 1000)

	return NoteRecord(
		pitch = pitch,
		start = active.start_ms / 1000,
		duration = duration,
		velocity = active.velocity,
		channel = active.channel
	)


def encode (log: typing.Union[retake.take.EventLog, typing.Sequence[retake.events.DeviceEvent]], name: str = "retake") -> Track:

	"""
	Encode an event log into a :class:`Track`.

	The log must hold at least one event; callers reject empty takes before
	getting here.  The first event's offset is time zero in the output.

	Parameters:
		log: The take to encode (an :class:`~retake.take.EventLog` or any
			sequence of events in storage order).
		name: Track name written into the exported file.

	Returns:
		A new :class:`Track`.  The log is not modified.
	"""

	events = list(log)

	if not events:
		raise ValueError("Cannot encode an empty event log")

	t0 = events[0].offset_ms
	track = Track(name=name)
	active: typing.Dict[int, _ActiveNote] = {}

	for event in events:

		at_ms = event.offset_ms - t0
		payload = event.payload

		if event.kind is retake.events.EventKind.NOTE_ON and isinstance(payload, retake.events.NotePayload) and payload.velocity > 0:

			# Re-struck before release: finish the previous note first.
			previous = active.pop(payload.note, None)
			if previous is not None:
				track.notes.append(_close(payload.note, previous, at_ms))

			active[payload.note] = _ActiveNote(at_ms, payload.velocity, payload.channel)

		elif event.kind in (retake.events.EventKind.NOTE_ON, retake.events.EventKind.NOTE_OFF) and isinstance(payload, retake.events.NotePayload):

			previous = active.pop(payload.note, None)
			if previous is not None:
				track.notes.append(_close(payload.note, previous, at_ms))

		elif event.kind is retake.events.EventKind.CONTROL_CHANGE and isinstance(payload, retake.events.ControlPayload):

			track.controls.append(ControlRecord(
				control = payload.control,
				value = payload.value,
				time = at_ms / 1000,
				channel = payload.channel
			))

	end_ms = events[-1].offset_ms - t0

	for pitch, still_active in active.items():
		track.notes.append(_close(pitch, still_active, end_ms))

	# Stable sort keeps closure order for notes that start together.
	track.notes.sort(key=lambda note: note.start)

	return track


def _seconds_to_ticks (seconds: float, ticks_per_beat: int, tempo: int) -> int:

	return int(round(mido.second2tick(seconds, ticks_per_beat, tempo)))


# At equal ticks: releases, then controllers, then new notes.
_ORDER_NOTE_OFF = 0
_ORDER_CONTROL = 1
_ORDER_NOTE_ON = 2


def to_midi_file (
	track: Track,
	ticks_per_beat: int = retake.constants.EXPORT_TICKS_PER_BEAT,
	bpm: float = retake.constants.EXPORT_BPM
) -> mido.MidiFile:

	"""
	Lay a :class:`Track` out as a type 1 :class:`mido.MidiFile`.

	Track 0 carries the tempo and time signature; track 1 carries the notes and
	control changes as delta-timed messages.  A note too short to span a tick
	is stretched to one tick, but never past the next onset of the same pitch
	on the same channel; a note re-struck within its own tick is left out.
	"""

	tempo = mido.bpm2tempo(bpm)

	mid = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)

	meta_track = mido.MidiTrack()
	meta_track.append(mido.MetaMessage('set_tempo', tempo=tempo, time=0))
	meta_track.append(mido.MetaMessage('time_signature', numerator=4, denominator=4, time=0))
	meta_track.append(mido.MetaMessage('end_of_track', time=0))
	mid.tracks.append(meta_track)

	timeline: typing.List[typing.Tuple[int, int, int, mido.Message]] = []
	counter = 0

	# Next onset tick of the same pitch and channel, for each note.
	next_on: typing.Dict[int, int] = {}
	last_by_key: typing.Dict[typing.Tuple[int, int], int] = {}

	for index, note in enumerate(track.notes):

		key = (note.pitch, note.channel)

		if key in last_by_key:
			next_on[last_by_key[key]] = _seconds_to_ticks(note.start, ticks_per_beat, tempo)

		last_by_key[key] = index

	for index, note in enumerate(track.notes):

		on_tick = _seconds_to_ticks(note.start, ticks_per_beat, tempo)
		off_tick = max(on_tick + 1, _seconds_to_ticks(note.end, ticks_per_beat, tempo))

		if index in next_on:

			# Re-struck within the same tick: the earlier note cannot sound.
			if next_on[index] <= on_tick:
				continue

			off_tick = min(off_tick, next_on[index])

		timeline.append((on_tick, _ORDER_NOTE_ON, counter, mido.Message('note_on', channel=note.channel, note=note.pitch, velocity=note.velocity)))
		timeline.append((off_tick, _ORDER_NOTE_OFF, counter, mido.Message('note_off', channel=note.channel, note=note.pitch, velocity=0)))
		counter += 1

	for cc in track.controls:

		tick = _seconds_to_ticks(cc.time, ticks_per_beat, tempo)
		timeline.append((tick, _ORDER_CONTROL, counter, mido.Message('control_change', channel=cc.channel, control=cc.control, value=cc.value)))
		counter += 1

	timeline.sort(key=lambda entry: entry[:3])

	note_track = mido.MidiTrack()
	note_track.append(mido.MetaMessage('track_name', name=track.name, time=0))

	last_tick = 0

	for tick, _, _, message in timeline:
		message.time = tick - last_tick
		note_track.append(message)
		last_tick = tick

	note_track.append(mido.MetaMessage('end_of_track', time=0))
	mid.tracks.append(note_track)

	return mid


def to_bytes (track: Track) -> bytes:

	"""Serialise a track to the complete bytes of a ``.mid`` file."""

	buffer = io.BytesIO()
	to_midi_file(track).save(file=buffer)

	return buffer.getvalue()
