"""Configuration loaded from a YAML file.

Example ``retake.yaml``::

	midi:
	  input: "Digital Piano:Digital Piano MIDI 1 20:0"
	  output: "Digital Piano:Digital Piano MIDI 1 20:0"
	export:
	  directory: recordings
	  prefix: piano-recording-
	viewer:
	  sheet_dir: sheet
	  http_port: 8080
	  ws_port: 8765
	  open_browser: true
	hotkeys: true
	osc:
	  enabled: false
	  receive_port: 9000
	  send_port: 9001
	  send_host: 127.0.0.1
	log_level: INFO

Every key is optional.  Device names that are missing or not found fall back
to the first available device.
"""

import dataclasses
import logging
import os
import typing

import yaml

import retake.constants


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Config:

	input_device: typing.Optional[str] = None
	output_device: typing.Optional[str] = None
	export_dir: str = "."
	export_prefix: str = retake.constants.EXPORT_PREFIX
	sheet_dir: str = "sheet"
	viewer_http_port: int = 8080
	viewer_ws_port: int = 8765
	viewer_open_browser: bool = True
	hotkeys: bool = True
	osc: bool = False
	osc_receive_port: int = 9000
	osc_send_port: int = 9001
	osc_send_host: str = "127.0.0.1"
	log_level: str = "INFO"


# (section, key) in the YAML file -> Config field.
_FIELD_MAP: typing.Dict[typing.Tuple[typing.Optional[str], str], str] = {
	("midi", "input"): "input_device",
	("midi", "output"): "output_device",
	("export", "directory"): "export_dir",
	("export", "prefix"): "export_prefix",
	("viewer", "sheet_dir"): "sheet_dir",
	("viewer", "http_port"): "viewer_http_port",
	("viewer", "ws_port"): "viewer_ws_port",
	("viewer", "open_browser"): "viewer_open_browser",
	("osc", "enabled"): "osc",
	("osc", "receive_port"): "osc_receive_port",
	("osc", "send_port"): "osc_send_port",
	("osc", "send_host"): "osc_send_host",
	(None, "hotkeys"): "hotkeys",
	(None, "log_level"): "log_level",
}

_SECTIONS = {section for section, _ in _FIELD_MAP if section is not None}


def config_from_dict (data: typing.Optional[typing.Dict[str, typing.Any]]) -> Config:

	"""Build a :class:`Config` from parsed YAML, ignoring (and logging) unknown keys."""

	config = Config()

	if not data:
		return config

	if not isinstance(data, dict):
		raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

	for key, value in data.items():

		if key in _SECTIONS:

			if not isinstance(value, dict):
				raise ValueError(f"Config section '{key}' must be a mapping")

			for sub_key, sub_value in value.items():
				field = _FIELD_MAP.get((key, sub_key))
				if field is None:
					logger.warning(f"Unknown config key '{key}.{sub_key}' ignored")
					continue
				setattr(config, field, sub_value)

		elif (None, key) in _FIELD_MAP:
			setattr(config, _FIELD_MAP[(None, key)], value)

		else:
			logger.warning(f"Unknown config key '{key}' ignored")

	return config


def load_config (config_path: str = "retake.yaml") -> Config:

	"""
	Load configuration from a YAML file.  A missing file yields defaults.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, "r") as f:
		return config_from_dict(yaml.safe_load(f))
