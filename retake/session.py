"""The capture / replay state machine.

A :class:`Session` owns the three pieces of mutable state in the system - the
session state, the current take and the in-flight replay - and is the only
thing that changes them.  Every method runs to completion on the event loop,
so no locking is needed.

States and transitions::

	IDLE       --trigger event-->   CAPTURING   (new take, trigger at 0 ms)
	CAPTURING  --any event-->       CAPTURING   (append)
	CAPTURING  --stop-->            IDLE
	CAPTURING  --play-->            REPLAYING   (take closed, then replayed)
	IDLE       --play-->            REPLAYING   (warning instead if take empty)
	REPLAYING  --stop-->            IDLE        (replay cancelled)
	REPLAYING  --trigger event-->   CAPTURING   (replay cancelled, new take)
	REPLAYING  --replay done-->     IDLE

A trigger event is a sounding note on or a sustain pedal (CC 64) message.
Non-trigger events outside CAPTURING are discarded.

Observers subscribe through :attr:`Session.events`:

- ``"state"`` ``(old, new)`` on every transition
- ``"captured"`` ``(event)`` after each append
- ``"warning"`` ``(text)`` when a command has no effect
- ``"exported"`` ``(path)`` after a successful export
- ``"replay_cancelled"`` ``(replay)`` when a replay is stopped or preempted
"""

import enum
import logging
import pathlib
import time
import typing

import retake.event_emitter
import retake.events
import retake.export
import retake.replay
import retake.take


logger = logging.getLogger(__name__)


class SessionState (enum.Enum):

	IDLE = "idle"
	CAPTURING = "capturing"
	REPLAYING = "replaying"


class Session:

	"""
	Decides, for every incoming event and command, whether to capture,
	replay, export or ignore.

	Parameters:
		scheduler: Replays the take.
		exporter: Writes the take to disk for :meth:`export`.  When ``None``,
			export reports a warning.
		clock: Monotonic clock in seconds used to stamp offsets.
	"""

	def __init__ (
		self,
		scheduler: retake.replay.ReplayScheduler,
		exporter: typing.Optional[retake.export.Exporter] = None,
		clock: typing.Callable[[], float] = time.perf_counter
	) -> None:

		self.scheduler = scheduler
		self.exporter = exporter
		self._clock = clock

		self._state = SessionState.IDLE
		self._take = retake.take.EventLog(captured_at=clock())
		self._take.close()
		self._replay: typing.Optional[retake.replay.ReplaySession] = None

		self.events = retake.event_emitter.EventEmitter()

	@property
	def state (self) -> SessionState:
		return self._state

	@property
	def take (self) -> retake.take.EventLog:

		"""The current take (empty until the first capture)."""

		return self._take

	@property
	def replay (self) -> typing.Optional[retake.replay.ReplaySession]:
		return self._replay

	# ------------------------------------------------------------------
	# Event source
	# ------------------------------------------------------------------

	def handle_event (self, event: retake.events.DeviceEvent) -> bool:

		"""
		Feed one incoming device event through the state machine.

		Returns:
			``True`` if the event was stored in the take, ``False`` if it was
			discarded.
		"""

		if self._state is SessionState.CAPTURING:
			self._append(event)
			return True

		if event.is_capture_trigger:
			self._start_capture(event)
			return True

		return False

	def _start_capture (self, trigger: retake.events.DeviceEvent) -> None:

		"""Replace the take with a new one that starts with *trigger*.

		Cancelling the replay, swapping the take and changing state all happen
		in this one call, so no timer of the old replay can fire into the new
		take.
		"""

		if self._replay is not None:
			self.scheduler.cancel(self._replay)
			self.events.emit("replay_cancelled", self._replay)
			self._replay = None

		self._take = retake.take.EventLog(captured_at=self._clock())
		self._take.append(trigger.at(0))

		logger.info("Recording... (press 's' to stop)")

		self._set_state(SessionState.CAPTURING)
		self.events.emit("captured", self._take[-1])

	def _append (self, event: retake.events.DeviceEvent) -> None:

		offset_ms = round((self._clock() - self._take.captured_at) * 1000)
		# Offsets never go backwards even if the clock reading does.
		offset_ms = max(offset_ms, self._take.duration_ms)

		stamped = event.at(offset_ms)
		self._take.append(stamped)
		self.events.emit("captured", stamped)

	# ------------------------------------------------------------------
	# Commands
	# ------------------------------------------------------------------

	def stop (self) -> None:

		"""Stop capturing or replaying.  A no-op while idle."""

		if self._state is SessionState.CAPTURING:
			self._take.close()
			duration = (self._clock() - self._take.captured_at)
			logger.info(f"Recording stopped ({duration:.2f}s, {len(self._take)} messages)")
			self._set_state(SessionState.IDLE)

		elif self._state is SessionState.REPLAYING:
			self.scheduler.cancel(self._replay)
			self.events.emit("replay_cancelled", self._replay)
			self._replay = None
			logger.info("Playback stopped")
			self._set_state(SessionState.IDLE)

		else:
			logger.debug("Stop ignored: nothing is recording or playing")

	def play (self) -> bool:

		"""
		Replay the current take.

		While capturing, the capture is stopped first and the take just
		recorded is replayed.

		Returns:
			``True`` if a replay started.
		"""

		if self._state is SessionState.REPLAYING:
			self._warn("Already playing back")
			return False

		if self._take.is_empty:
			self._warn("No recorded MIDI to play")
			return False

		if self._state is SessionState.CAPTURING:
			self.stop()

		logger.info(f"Playing back {len(self._take)} messages... (press 's' to stop)")

		self._set_state(SessionState.REPLAYING)
		self._replay = self.scheduler.start(self._take, self._on_replay_complete)

		return True

	def export (self) -> typing.Optional[pathlib.Path]:

		"""
		Write the current take to a MIDI file.  State is left unchanged.

		Returns:
			The path written, or ``None`` if nothing was written.
		"""

		if self._take.is_empty:
			self._warn("No recorded MIDI to export")
			return None

		if self.exporter is None:
			self._warn("Export is not configured")
			return None

		try:
			path = self.exporter.export(self._take)

		except OSError as e:
			logger.error(f"Error exporting MIDI file: {e}")
			return None

		self.events.emit("exported", path)

		return path

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------

	def _on_replay_complete (self, replay: retake.replay.ReplaySession) -> None:

		# A newer capture or an explicit stop has already moved on.
		if replay is not self._replay or self._state is not SessionState.REPLAYING:
			return

		self._replay = None
		logger.info("Playback complete")
		self._set_state(SessionState.IDLE)

	def _set_state (self, new_state: SessionState) -> None:

		old_state = self._state
		self._state = new_state

		if old_state is not new_state:
			logger.debug(f"Session state: {old_state.value} -> {new_state.value}")
			self.events.emit("state", old_state, new_state)

		if new_state is SessionState.IDLE:
			logger.info("Listening for MIDI input... (press 'p' to play)")

	def _warn (self, text: str) -> None:

		logger.warning(text)
		self.events.emit("warning", text)
