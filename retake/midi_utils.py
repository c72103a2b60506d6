import logging
import typing

import mido

logger = logging.getLogger(__name__)


def _pick (available: typing.List[str], device_name: typing.Optional[str], direction: str) -> typing.Optional[str]:

	"""
	Choose a device name from *available*.

	An explicit name that exists is used as-is.  Otherwise the first available
	device is used (with a warning if a specific name was asked for), which
	keeps configs portable between machines that name ports differently.
	"""

	if not available:
		return None

	if device_name is None:
		return available[0]

	if device_name in available:
		return device_name

	logger.warning(f"MIDI {direction} device '{device_name}' not found. Available devices: {available}")
	logger.warning(f"Fallback to: {available[0]}")

	return available[0]


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output device.

	Returns:
		A tuple of (device_name, midi_out_object) or (None, None) when no
		device is available or opening it fails.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		target = _pick(outputs, device_name, "output")

		if target is None:
			logger.warning("No MIDI output devices found.")
			return None, None

		midi_out = mido.open_output(target)
		logger.info(f"Connected to MIDI output: {target}")
		return target, midi_out

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None


def select_input_device (device_name: typing.Optional[str] = None, callback: typing.Optional[typing.Callable] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI input device.

	*callback* is invoked from mido's input thread with every incoming message.

	Returns:
		A tuple of (device_name, midi_in_object) or (None, None) when no
		device is available or opening it fails.
	"""

	try:
		inputs = mido.get_input_names()
		logger.info(f"Available MIDI inputs: {inputs}")

		target = _pick(inputs, device_name, "input")

		if target is None:
			logger.warning("No MIDI input devices found.")
			return None, None

		midi_in = mido.open_input(target, callback=callback)
		logger.info(f"Connected to MIDI input: {target}")
		return target, midi_in

	except Exception as e:
		logger.error(f"Failed to open MIDI input: {e}")
		return None, None


def list_devices () -> typing.Dict[str, typing.List[str]]:

	"""Names of all MIDI inputs and outputs, for ``--list-devices``."""

	try:
		return {"inputs": mido.get_input_names(), "outputs": mido.get_output_names()}

	except Exception as e:
		logger.error(f"Failed to list MIDI devices: {e}")
		return {"inputs": [], "outputs": []}
