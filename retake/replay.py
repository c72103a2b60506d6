"""Timer-driven replay of a finished take.

:class:`ReplayScheduler` turns an event log into timers on the asyncio event
loop: every event is emitted to the sink at ``start + offset_ms``, and a
completion callback fires once, :data:`~retake.constants.REPLAY_SETTLE_MS`
after the last event.

All timers belong to a :class:`ReplaySession`.  Cancelling the session cancels
every pending timer before :meth:`ReplayScheduler.cancel` returns, and each
timer also checks the session's ``cancelled`` flag before it emits, so nothing
from a cancelled session reaches the sink and its completion never fires.

Timing uses the same hybrid strategy as a hardware-clock sequencer: the loop
sleeps until just before the target time, then busy-waits the final fraction
of a millisecond.  Pass ``spin_wait=False`` to rely on the loop's timers
alone.
"""

import asyncio
import itertools
import logging
import typing

import retake.constants
import retake.events
import retake.take


logger = logging.getLogger(__name__)


class EventSink (typing.Protocol):

	"""Anything that can emit a device event."""

	def send (self, event: retake.events.DeviceEvent) -> None:
		...


CompletionCallback = typing.Callable[["ReplaySession"], typing.Any]


class ReplaySession:

	"""
	The pending work of one replay: emission timers plus one completion timer.
	"""

	def __init__ (self, generation: int, event_count: int) -> None:

		self.generation = generation
		self.event_count = event_count
		self.emitted: int = 0
		self.failed: int = 0
		self.cancelled: bool = False
		self.finished: bool = False
		self._handles: typing.List[asyncio.TimerHandle] = []
		self._fired: int = 0

	def __repr__ (self) -> str:
		return (
			f"ReplaySession(generation={self.generation}, emitted={self.emitted}/{self.event_count}, "
			f"cancelled={self.cancelled}, finished={self.finished})"
		)

	@property
	def active (self) -> bool:

		"""True until the session completes or is cancelled."""

		return not (self.cancelled or self.finished)

	@property
	def pending (self) -> int:

		"""Timers still waiting to fire, the completion timer included."""

		if not self.active:
			return 0

		return len(self._handles) - self._fired


class ReplayScheduler:

	"""
	Schedules the emissions of a take onto the running event loop.

	Parameters:
		sink: Receives each event via ``sink.send(event)``.  A failing send is
			logged and the rest of the replay continues.
		settle_ms: Delay after the last event before completion is reported.
		spin_wait: Busy-wait the last :attr:`spin_threshold` seconds before each
			emission for tighter timing.
		_lateness_log: Optional list that receives the lateness (seconds) of
			every emission.  Used by the replay jitter benchmark.
	"""

	def __init__ (
		self,
		sink: EventSink,
		settle_ms: int = retake.constants.REPLAY_SETTLE_MS,
		spin_wait: bool = True,
		_lateness_log: typing.Optional[typing.List[float]] = None
	) -> None:

		self.sink = sink
		self.settle_ms = settle_ms
		self._spin_wait = spin_wait
		# Sleep to this many seconds before the target, then spin for the rest.
		self.spin_threshold: float = 0.001
		self._lateness_log = _lateness_log
		self._generations = itertools.count(1)

	def start (self, log: typing.Union[retake.take.EventLog, typing.Sequence[retake.events.DeviceEvent]], on_complete: typing.Optional[CompletionCallback] = None) -> ReplaySession:

		"""
		Schedule every event of *log* and return the new session.

		Events sharing an offset are emitted by a single timer in storage
		order, so the replay never reorders simultaneous events.  Must be
		called from within the running event loop.
		"""

		events = list(log)

		if not events:
			raise ValueError("Cannot replay an empty event log")

		loop = asyncio.get_running_loop()
		session = ReplaySession(next(self._generations), len(events))
		base = loop.time()

		for offset_ms, group in itertools.groupby(events, key=lambda event: event.offset_ms):

			target = base + offset_ms / 1000
			when = target - self.spin_threshold if self._spin_wait else target

			session._handles.append(
				loop.call_at(when, self._emit_group, session, target, tuple(group))
			)

		completion_at = base + (events[-1].offset_ms + self.settle_ms) / 1000
		session._handles.append(
			loop.call_at(completion_at, self._complete, session, on_complete)
		)

		logger.debug(f"Scheduled replay generation {session.generation}: {len(events)} events over {events[-1].offset_ms} ms")

		return session

	def cancel (self, session: typing.Optional[ReplaySession]) -> None:

		"""
		Cancel every pending timer of *session*.

		Safe to call with ``None``, or with a session that already finished or
		was already cancelled.
		"""

		if session is None or not session.active:
			return

		session.cancelled = True

		for handle in session._handles:
			handle.cancel()

		session._handles.clear()

		logger.debug(f"Cancelled replay generation {session.generation} after {session.emitted} of {session.event_count} events")

	def _emit_group (self, session: ReplaySession, target: float, group: typing.Tuple[retake.events.DeviceEvent, ...]) -> None:

		if session.cancelled:
			return

		session._fired += 1
		loop = asyncio.get_running_loop()

		if self._spin_wait:
			while loop.time() < target:
				pass

		if self._lateness_log is not None:
			self._lateness_log.append(loop.time() - target)

		for event in group:

			try:
				self.sink.send(event)
				session.emitted += 1

			except Exception:
				session.failed += 1
				logger.exception(f"Error playing {event.kind.value} at {event.offset_ms} ms")

	def _complete (self, session: ReplaySession, on_complete: typing.Optional[CompletionCallback]) -> None:

		if session.cancelled:
			return

		session.finished = True
		session._handles.clear()

		if session.failed:
			logger.warning(f"Replay finished with {session.failed} failed emissions")

		if on_complete is None:
			return

		try:
			on_complete(session)
		except Exception:
			logger.exception("Replay completion callback failed")
