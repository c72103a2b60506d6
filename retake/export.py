"""Write a take to disk as a timestamped ``.mid`` file."""

import datetime
import logging
import pathlib
import typing

import retake.constants
import retake.encoder
import retake.take


logger = logging.getLogger(__name__)


def export_filename (
	moment: datetime.datetime,
	prefix: str = retake.constants.EXPORT_PREFIX,
	extension: str = retake.constants.EXPORT_EXTENSION
) -> str:

	"""
	Build the export file name for *moment*.

	The timestamp is the UTC ISO form with ``:`` and ``.`` replaced by ``-``
	and the milliseconds and zone suffix trimmed, e.g.
	``piano-recording-2026-10-16T22-14-05.mid``.
	"""

	if moment.tzinfo is not None:
		moment = moment.astimezone(datetime.timezone.utc)

	return f"{prefix}{moment.strftime('%Y-%m-%dT%H-%M-%S')}{extension}"


class Exporter:

	"""Encodes a take and writes it to *directory* in one write."""

	def __init__ (
		self,
		directory: typing.Union[str, pathlib.Path] = ".",
		prefix: str = retake.constants.EXPORT_PREFIX,
		now: typing.Optional[typing.Callable[[], datetime.datetime]] = None
	) -> None:

		self.directory = pathlib.Path(directory)
		self.prefix = prefix
		self._now = now or (lambda: datetime.datetime.now(datetime.timezone.utc))

	def export (self, log: retake.take.EventLog) -> pathlib.Path:

		"""
		Encode *log* and write it to a new file.

		Returns:
			The path written.

		Raises:
			ValueError: If the log is empty.
			OSError: If the file cannot be written.
		"""

		track = retake.encoder.encode(log)
		data = retake.encoder.to_bytes(track)

		path = (self.directory / export_filename(self._now(), self.prefix)).resolve()
		path.write_bytes(data)

		logger.info(f"MIDI file exported: {path.name} ({len(track.notes)} notes, {len(track.controls)} control changes)")
		logger.info(f"Location: {path}")

		return path
