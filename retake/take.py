"""The event log of the current take.

Exactly one :class:`EventLog` is live at a time.  The session creates a fresh
one whenever a capture starts, appends to it while capturing, and closes it
when capture stops.  A closed log is read-only: the replay scheduler and the
encoder only ever read it.
"""

import typing

import retake.events


class EventLog:

	"""
	An append-only, time-ordered list of :class:`~retake.events.DeviceEvent`.

	Offsets are non-decreasing in storage order.  Appending an event that is
	earlier than the last one raises ``ValueError``, and appending after
	:meth:`close` raises ``RuntimeError``.
	"""

	def __init__ (self, captured_at: float = 0.0) -> None:

		"""
		Parameters:
			captured_at: Clock reading (seconds) at which capture began.
		"""

		self.captured_at = captured_at
		self._events: typing.List[retake.events.DeviceEvent] = []
		self._closed: bool = False

	def __len__ (self) -> int:
		return len(self._events)

	def __iter__ (self) -> typing.Iterator[retake.events.DeviceEvent]:
		return iter(self._events)

	def __getitem__ (self, index: int) -> retake.events.DeviceEvent:
		return self._events[index]

	def __repr__ (self) -> str:
		return f"EventLog(events={len(self._events)}, duration_ms={self.duration_ms}, closed={self._closed})"

	@property
	def events (self) -> typing.Tuple[retake.events.DeviceEvent, ...]:

		"""A snapshot of the stored events."""

		return tuple(self._events)

	@property
	def closed (self) -> bool:
		return self._closed

	@property
	def is_empty (self) -> bool:
		return not self._events

	@property
	def duration_ms (self) -> int:

		"""Offset of the last event, or 0 for an empty log."""

		if not self._events:
			return 0

		return self._events[-1].offset_ms

	def append (self, event: retake.events.DeviceEvent) -> None:

		"""Store *event* at the end of the log."""

		if self._closed:
			raise RuntimeError("Cannot append to a closed event log")

		if self._events and event.offset_ms < self._events[-1].offset_ms:
			raise ValueError(
				f"Event offset {event.offset_ms} ms is earlier than the last stored offset "
				f"{self._events[-1].offset_ms} ms"
			)

		self._events.append(event)

	def close (self) -> None:

		"""Make the log read-only.  Safe to call more than once."""

		self._closed = True
