"""User commands and their default key bindings."""

import dataclasses
import enum
import typing


class Command (enum.Enum):

	STOP = "stop"
	PLAY = "play"
	EXPORT = "export"
	PREV_PAGE = "prev_page"
	NEXT_PAGE = "next_page"
	NEXT_DOCUMENT = "next_document"
	QUIT = "quit"
	HELP = "help"


#: Commands handled by the document viewer rather than the session.
VIEWER_COMMANDS = frozenset({Command.PREV_PAGE, Command.NEXT_PAGE, Command.NEXT_DOCUMENT})


@dataclasses.dataclass(frozen=True)
class KeyBinding:

	"""A key, the command it issues, and the label shown by the help key."""

	key: str
	command: Command
	label: str


KEY_BINDINGS: typing.Tuple[KeyBinding, ...] = (
	KeyBinding("s", Command.STOP, "stop recording or stop playback"),
	KeyBinding("p", Command.PLAY, "play back"),
	KeyBinding("e", Command.EXPORT, "export MIDI file"),
	KeyBinding("[", Command.PREV_PAGE, "previous sheet page (wraps within file)"),
	KeyBinding("]", Command.NEXT_PAGE, "next sheet page (wraps within file)"),
	KeyBinding("n", Command.NEXT_DOCUMENT, "next sheet file"),
	KeyBinding("?", Command.HELP, "list hotkeys"),
)

_CTRL_D = "\x04"

_COMMANDS_BY_KEY: typing.Dict[str, Command] = {binding.key: binding.command for binding in KEY_BINDINGS}
_COMMANDS_BY_KEY[_CTRL_D] = Command.QUIT


def command_for_key (key: str) -> typing.Optional[Command]:

	"""Map a single keystroke to a command.  Letters are case-insensitive."""

	return _COMMANDS_BY_KEY.get(key) or _COMMANDS_BY_KEY.get(key.lower())


def describe_bindings () -> str:

	"""Multi-line summary of the key bindings, for the log."""

	lines = ["Keyboard shortcuts:"]

	for binding in KEY_BINDINGS:
		lines.append(f"  {binding.key}  →  {binding.label}")

	lines.append("  Ctrl+C / Ctrl+D  →  exit")

	return "\n".join(lines)
