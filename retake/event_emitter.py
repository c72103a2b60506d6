import asyncio
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	A small named-event registry for session notifications.

	Listeners run synchronously inside :meth:`emit`, on the caller's turn of
	the event loop.  A listener that raises is logged and skipped, so an
	observer can never break the component that emits.  Coroutine listeners
	are scheduled as tasks on the running loop.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener for *event_name* with the given arguments.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			try:
				result = callback(*args, **kwargs)

				if asyncio.iscoroutine(result):
					asyncio.get_running_loop().create_task(result)

			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")
