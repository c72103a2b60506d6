"""Tests for the keystroke listener.

Covers:
- Platform capability flags
- Degraded start on unsupported platforms
- Delivery of keys onto the event loop
"""

import asyncio
import unittest.mock

import pytest

import retake.keystroke as keystroke_mod
from retake.keystroke import KeystrokeListener


class TestKeystrokeListenerPlatform:

	def test_supported_flag_is_bool (self):
		assert isinstance(keystroke_mod.HOTKEYS_SUPPORTED, bool)

	def test_reason_is_none_when_supported (self):
		if keystroke_mod.HOTKEYS_SUPPORTED:
			assert keystroke_mod.HOTKEYS_UNAVAILABLE_REASON is None

	def test_reason_is_string_when_unsupported (self):
		if not keystroke_mod.HOTKEYS_SUPPORTED:
			assert isinstance(keystroke_mod.HOTKEYS_UNAVAILABLE_REASON, str)
			assert len(keystroke_mod.HOTKEYS_UNAVAILABLE_REASON) > 0

	def test_start_on_unsupported_platform_logs_warning_and_does_not_raise (self, caplog):
		"""Simulate an unsupported platform by patching HOTKEYS_SUPPORTED to False."""
		listener = KeystrokeListener(on_key=lambda key: None)
		with unittest.mock.patch.object(keystroke_mod, "HOTKEYS_SUPPORTED", False):
			with unittest.mock.patch.object(
				keystroke_mod, "HOTKEYS_UNAVAILABLE_REASON", "Test: platform not supported"
			):
				listener.start()

		assert listener.active is False
		assert listener._thread is None
		assert "Test: platform not supported" in caplog.text

	def test_stop_safe_when_never_started (self):
		listener = KeystrokeListener(on_key=lambda key: None)
		listener.stop()

	def test_deliver_without_loop_is_ignored (self):
		received = []
		listener = KeystrokeListener(on_key=received.append)
		listener.deliver("p")
		assert received == []


class TestKeystrokeDelivery:

	@pytest.mark.asyncio
	async def test_deliver_runs_callback_on_loop (self):
		"""Keys handed over from another thread arrive in order on the loop."""

		received = []
		listener = KeystrokeListener(on_key=received.append)
		listener._loop = asyncio.get_running_loop()

		await asyncio.to_thread(lambda: [listener.deliver(key) for key in "sp["])
		await asyncio.sleep(0.01)

		assert received == ["s", "p", "["]
