import argparse
import logging
import typing

import retake.app
import retake.config
import retake.midi_utils


logger = logging.getLogger(__name__)


def build_parser () -> argparse.ArgumentParser:

	parser = argparse.ArgumentParser(
		prog = "retake",
		description = "Always-on MIDI take recorder: play to record, 'p' to hear it back, 'e' to save it."
	)
	parser.add_argument("--config",       type=str, default="retake.yaml", help="YAML config file (default: retake.yaml)")
	parser.add_argument("--input",        type=str, default=None,          help="MIDI input device name")
	parser.add_argument("--output",       type=str, default=None,          help="MIDI output device name")
	parser.add_argument("--export-dir",   type=str, default=None,          help="Directory for exported .mid files")
	parser.add_argument("--sheet-dir",    type=str, default=None,          help="Directory of sheet music PDFs")
	parser.add_argument("--osc",          action="store_true",             help="Enable OSC remote control")
	parser.add_argument("--no-hotkeys",   action="store_true",             help="Disable keyboard commands")
	parser.add_argument("--list-devices", action="store_true",             help="List MIDI devices and exit")
	parser.add_argument("--log-level",    type=str, default=None,          help="Logging level (default: INFO)")

	return parser


def apply_arguments (config: retake.config.Config, args: argparse.Namespace) -> retake.config.Config:

	"""Override config file values with any flags given on the command line."""

	if args.input is not None:
		config.input_device = args.input
	if args.output is not None:
		config.output_device = args.output
	if args.export_dir is not None:
		config.export_dir = args.export_dir
	if args.sheet_dir is not None:
		config.sheet_dir = args.sheet_dir
	if args.osc:
		config.osc = True
	if args.no_hotkeys:
		config.hotkeys = False
	if args.log_level is not None:
		config.log_level = args.log_level

	return config


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point for the retake application.
	"""

	args = build_parser().parse_args(argv)

	if args.list_devices:
		devices = retake.midi_utils.list_devices()
		print("MIDI inputs:")
		for name in devices["inputs"]:
			print(f"  {name}")
		print("MIDI outputs:")
		for name in devices["outputs"]:
			print(f"  {name}")
		return

	config = apply_arguments(retake.config.load_config(args.config), args)

	logging.basicConfig(level=config.log_level.upper())

	logger.info("retake starting...")

	retake.app.Looper(config).run()


if __name__ == "__main__":
	main()
