import asyncio
import typing

import mido
import pytest

import retake.events


class FakeMidiOut:

	"""MIDI output stub that remembers what was sent."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.sent.append(message)


	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, callback: typing.Optional[typing.Callable] = None) -> None:

		"""Store the callback for injecting test messages."""

		self.callback = callback
		self.closed = False

	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


class RecordingSink:

	"""Event sink that records each event and the loop time it arrived."""

	def __init__ (self, fail_on: typing.Optional[typing.Callable[[retake.events.DeviceEvent], bool]] = None) -> None:

		self.received: typing.List[typing.Tuple[float, retake.events.DeviceEvent]] = []
		self._fail_on = fail_on

	@property
	def events (self) -> typing.List[retake.events.DeviceEvent]:
		return [event for _, event in self.received]

	def send (self, event: retake.events.DeviceEvent) -> None:

		"""Record *event*, or raise if it matches the failure predicate."""

		if self._fail_on is not None and self._fail_on(event):
			raise OSError("device write failed")

		self.received.append((asyncio.get_running_loop().time(), event))


class FakeClock:

	"""Manually advanced clock (seconds) for stamping offsets."""

	def __init__ (self, start: float = 1000.0) -> None:

		self.now = start

	def __call__ (self) -> float:
		return self.now

	def advance_ms (self, ms: float) -> None:
		self.now += ms / 1000


# Module-level references so tests can reach the most recently created fakes.
_current_fake_input: typing.Optional[FakeMidiIn] = None
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


def _fake_get_input_names () -> list[str]:

	"""Return a fixed list of MIDI input names for tests."""

	return ["Dummy MIDI"]


def _fake_open_input (name: str, callback: typing.Optional[typing.Callable] = None) -> FakeMidiIn:

	"""Return a fake MIDI input regardless of the name."""

	global _current_fake_input
	fake = FakeMidiIn(callback=callback)
	_current_fake_input = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use fake MIDI output and input for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)
	monkeypatch.setattr(mido, "get_input_names", _fake_get_input_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


@pytest.fixture
def sink () -> RecordingSink:
	return RecordingSink()


@pytest.fixture
def clock () -> FakeClock:
	return FakeClock()
