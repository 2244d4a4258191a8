import asyncio
import inspect
import typing


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	A small publish/subscribe hub for player lifecycle events
	(``track_start(state)``, ``track_end(state)``, ``pause()``, ``resume()``).

	Synchronous listeners run inline.  Coroutine listeners are scheduled on
	the running event loop (or awaited by :meth:`emit_async`).
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}
		self._pending: typing.Set[asyncio.Task] = set()

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

	def listeners (self, event_name: str) -> typing.List[CallbackType]:
		return list(self._listeners.get(event_name, []))

	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event without waiting.

		A coroutine listener needs a running event loop; without one it is a
		``RuntimeError``, as it would otherwise never run.
		"""

		for callback in self.listeners(event_name):

			if inspect.iscoroutinefunction(callback):
				loop = asyncio.get_running_loop()
				task = loop.create_task(callback(*args, **kwargs))
				self._pending.add(task)
				task.add_done_callback(self._pending.discard)
				continue

			callback(*args, **kwargs)

	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event and await coroutine listeners.
		"""

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in self.listeners(event_name):

			if inspect.iscoroutinefunction(callback):
				tasks.append(callback(*args, **kwargs))

			else:
				callback(*args, **kwargs)

		if tasks:
			await asyncio.gather(*tasks)
