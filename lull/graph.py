"""Signal-graph abstraction.

The composition core never synthesizes audio.  It creates nodes, wires them
together and schedules parameter automation and source start/stop times on
a *signal graph*, always with an explicit (future) time.  Anything that
implements :class:`SignalGraph` can be driven by the engine.

:class:`Graph` holds the bookkeeping shared by every backend: live nodes,
connections, a suspendable timeline and per-parameter automation.  Two
backends build on it:

- :class:`RecordingGraph` (this module) keeps a full history in memory.  It
  is what the tests and headless runs use, and its time source can be faked.
- :class:`lull.midi_graph.MidiGraph` turns scheduled sources into timed MIDI
  messages for an external synthesizer.

Automation follows the familiar audio-parameter model::

	gain = graph.create_node("gain", gain=0.0, label="pad")
	gain.param("gain").set_value_at_time(0.0, t)
	gain.param("gain").linear_ramp_to_value_at_time(0.2, t + 6.0)
	gain.param("gain").value_at(t + 3.0)  # 0.1
"""

import dataclasses
import itertools
import logging
import math
import time
import typing


logger = logging.getLogger(__name__)


TimeSource = typing.Callable[[], float]

CURVES = ("set", "linear", "exponential")


class GraphError(Exception):
	pass


@dataclasses.dataclass
class AutomationEvent:

	"""One scheduled change on a parameter timeline."""

	kind: str
	time: float
	value: float
	time_constant: float = 0.0


class Param:

	"""
	An automatable numeric parameter of a node.

	Events are kept sorted by time; events scheduled for the same instant
	apply in the order they were added.
	"""

	def __init__ (self, node: "Node", name: str, value: float) -> None:

		self.node = node
		self.name = name
		self.value = value
		self.events: typing.List[AutomationEvent] = []

	def _schedule (self, event: AutomationEvent) -> None:

		graph = self.node.graph
		graph._check_open()

		self.events.append(event)
		self.events.sort(key=lambda e: e.time)

		graph._param_scheduled(self, event)

	def set_value_at_time (self, value: float, start_time: float) -> None:
		self._schedule(AutomationEvent("set", start_time, value))

	def linear_ramp_to_value_at_time (self, value: float, end_time: float) -> None:
		self._schedule(AutomationEvent("linear", end_time, value))

	def exponential_ramp_to_value_at_time (self, value: float, end_time: float) -> None:
		self._schedule(AutomationEvent("exponential", end_time, value))

	def set_target_at_time (self, target: float, start_time: float, time_constant: float) -> None:

		"""Approach *target* exponentially from *start_time* with the given time constant."""

		if time_constant <= 0:
			raise GraphError(f"time_constant must be positive, got {time_constant}")

		self._schedule(AutomationEvent("target", start_time, target, time_constant))

	def cancel_scheduled_values (self, cancel_time: float) -> None:

		"""Drop every event scheduled at or after *cancel_time*."""

		self.node.graph._check_open()
		self.events = [e for e in self.events if e.time < cancel_time]

	def discard_before (self, cutoff: float) -> None:

		"""
		Fold every event before *cutoff* into one ``set`` event at *cutoff*.

		The curve from *cutoff* on is unchanged; long-lived parameters call
		this to keep their timeline short.
		"""

		if not self.events or self.events[0].time >= cutoff:
			return

		value = self.value_at(cutoff)
		later = [e for e in self.events if e.time >= cutoff]

		self.events = [AutomationEvent("set", cutoff, value)] + later

	def value_at (self, at: float) -> float:

		"""
		Evaluate the automation timeline at time *at*.

		Ramps run from the previous event's time and value to their own.  An
		exponential ramp between values of different sign (or touching zero)
		holds the previous value until its end, as audio engines do.
		"""

		value = self.value
		last_time = -math.inf
		target: typing.Optional[typing.Tuple[float, float, float, float]] = None

		def current (t: float) -> float:

			if target is None:
				return value

			target_value, start, tau, start_value = target
			return target_value + (start_value - target_value) * math.exp(-(t - start) / tau)

		for event in self.events:

			if event.time > at:

				if event.kind not in ("linear", "exponential") or last_time == -math.inf:
					break

				start_value = current(last_time)
				progress = (at - last_time) / (event.time - last_time)

				if event.kind == "linear":
					return start_value + (event.value - start_value) * progress

				if start_value * event.value <= 0:
					return start_value

				return start_value * (event.value / start_value) ** progress

			if event.kind == "target":
				value = current(event.time)
				target = (event.value, event.time, event.time_constant, value)
			else:
				value = event.value
				target = None

			last_time = event.time

		return current(at)


class Node:

	"""
	A node in the signal graph.

	Numeric creation options become :class:`Param` objects; everything else
	(waveform, filter type, ``label``, ``note``...) is kept as a static option.
	"""

	def __init__ (self, graph: "Graph", kind: str, node_id: int, options: typing.Dict[str, typing.Any]) -> None:

		self.graph = graph
		self.kind = kind
		self.id = node_id

		self.params: typing.Dict[str, Param] = {}
		self.options: typing.Dict[str, typing.Any] = {}

		for name, value in options.items():

			if isinstance(value, (int, float)) and not isinstance(value, bool) and name != "note":
				self.params[name] = Param(self, name, float(value))
			else:
				self.options[name] = value

		self.outputs: typing.List["Node"] = []
		self.inputs: typing.List["Node"] = []

		self.started_at: typing.Optional[float] = None
		self.stopped_at: typing.Optional[float] = None
		self.disconnected = False

	@property
	def label (self) -> typing.Optional[str]:
		return self.options.get("label")

	def param (self, name: str) -> Param:

		"""Return the named parameter, raising ``GraphError`` if the node has none."""

		if name not in self.params:
			raise GraphError(f"{self.kind} node has no parameter {name!r}")

		return self.params[name]

	def __repr__ (self) -> str:

		label = f" {self.label!r}" if self.label else ""

		return f"<Node {self.id} {self.kind}{label}>"


@typing.runtime_checkable
class SignalGraph (typing.Protocol):

	"""
	The capabilities the engine and layers need from a synthesis backend.
	"""

	destination: Node

	def current_time (self) -> float:
		...

	def create_node (self, kind: str, **options: typing.Any) -> Node:
		...

	def connect (self, source: Node, target: Node) -> None:
		...

	def disconnect (self, node: Node) -> None:
		...

	def schedule_ramp (self, node: Node, param: str, value: float, at: float, curve: str = "linear") -> None:
		...

	def start (self, node: Node, at: float) -> None:
		...

	def stop (self, node: Node, at: float) -> None:
		...

	def suspend (self) -> None:
		...

	def resume (self) -> None:
		...

	def close (self) -> None:
		...


class Graph:

	"""
	Shared in-memory bookkeeping for signal-graph backends.

	Time starts at zero when the graph is created and stands still while
	the graph is suspended, like an audio context's own clock.  Subclasses
	react to activity by overriding the ``_node_started``, ``_node_stopped``,
	``_param_scheduled``, ``_suspended``, ``_resumed`` and ``_closed`` hooks.
	"""

	def __init__ (self, time_source: typing.Optional[TimeSource] = None) -> None:

		self._time_source: TimeSource = time_source or time.monotonic
		self._origin = self._time_source()
		self._paused_total = 0.0
		self._suspended_at: typing.Optional[float] = None

		self._ids = itertools.count()
		self.nodes: typing.Dict[int, Node] = {}

		self.suspended = False
		self.closed = False

		self.destination = self._add_node("destination", {})

	# ─── Timeline ────────────────────────────────────────────────────────────

	def current_time (self) -> float:

		"""Seconds since the graph was created, excluding suspended time."""

		if self._suspended_at is not None:
			return self._suspended_at - self._origin - self._paused_total

		return self._time_source() - self._origin - self._paused_total

	def suspend (self) -> None:

		self._check_open()

		if self.suspended:
			return

		self._suspended_at = self._time_source()
		self.suspended = True
		self._suspended()

	def resume (self) -> None:

		self._check_open()

		if not self.suspended:
			return

		if self._suspended_at is not None:
			self._paused_total += self._time_source() - self._suspended_at

		self._suspended_at = None
		self.suspended = False
		self._resumed()

	def close (self) -> None:

		"""Tear the graph down.  Every later operation raises ``GraphError``."""

		if self.closed:
			return

		self._closed()

		for node in list(self.nodes.values()):
			node.disconnected = True

		self.nodes.clear()
		self.closed = True

		logger.debug("Signal graph closed")

	# ─── Nodes ───────────────────────────────────────────────────────────────

	def create_node (self, kind: str, **options: typing.Any) -> Node:

		self._check_open()

		return self._add_node(kind, options)

	def _add_node (self, kind: str, options: typing.Dict[str, typing.Any]) -> Node:

		node = Node(self, kind, next(self._ids), options)
		self.nodes[node.id] = node

		return node

	def connect (self, source: Node, target: Node) -> None:

		self._check_open()
		self._check_owned(source)
		self._check_owned(target)

		if source.disconnected or target.disconnected:
			raise GraphError(f"Cannot connect {source!r} to {target!r}: node already disconnected")

		source.outputs.append(target)
		target.inputs.append(source)

	def disconnect (self, node: Node) -> None:

		"""
		Detach *node* from everything it feeds and forget it.  Idempotent.

		A source that was started but never stopped is stopped first, no
		earlier than its start time.
		"""

		self._check_open()
		self._check_owned(node)

		if node.disconnected:
			return

		if node.started_at is not None and node.stopped_at is None:
			node.stopped_at = max(node.started_at, self.current_time())
			self._node_stopped(node, node.stopped_at)

		for target in node.outputs:
			if node in target.inputs:
				target.inputs.remove(node)

		node.outputs.clear()
		node.disconnected = True
		self.nodes.pop(node.id, None)

	def schedule_ramp (self, node: Node, param: str, value: float, at: float, curve: str = "linear") -> None:

		"""
		Schedule a parameter change ending at *at*.

		``curve`` is ``"set"`` (jump at *at*), ``"linear"`` or ``"exponential"``
		(ramp from the previous automation event to *value* at *at*).
		"""

		target = node.param(param)

		if curve == "set":
			target.set_value_at_time(value, at)
		elif curve == "linear":
			target.linear_ramp_to_value_at_time(value, at)
		elif curve == "exponential":
			target.exponential_ramp_to_value_at_time(value, at)
		else:
			raise GraphError(f"Unknown curve {curve!r}. Available curves: {', '.join(CURVES)}")

	def start (self, node: Node, at: float) -> None:

		self._check_open()
		self._check_owned(node)

		if node.started_at is not None:
			raise GraphError(f"{node!r} has already been started")

		node.started_at = at
		self._node_started(node, at)

	def stop (self, node: Node, at: float) -> None:

		self._check_open()
		self._check_owned(node)

		if node.started_at is None:
			raise GraphError(f"{node!r} cannot stop before it starts")

		node.stopped_at = at
		self._node_stopped(node, at)

	# ─── Checks and hooks ────────────────────────────────────────────────────

	def _check_open (self) -> None:

		if self.closed:
			raise GraphError("Signal graph is closed")

	def _check_owned (self, node: Node) -> None:

		if node.graph is not self:
			raise GraphError(f"{node!r} belongs to a different graph")

	def _node_started (self, node: Node, at: float) -> None:
		pass

	def _node_stopped (self, node: Node, at: float) -> None:
		pass

	def _param_scheduled (self, param: Param, event: AutomationEvent) -> None:
		pass

	def _suspended (self) -> None:
		pass

	def _resumed (self) -> None:
		pass

	def _closed (self) -> None:
		pass


class RecordingGraph (Graph):

	"""
	A graph that remembers everything it was asked to do.

	``history`` holds every node ever created (disconnected ones included) and
	``log`` every start, stop, suspend, resume and close, in call order.
	"""

	def __init__ (self, time_source: typing.Optional[TimeSource] = None) -> None:

		self.history: typing.List[Node] = []
		self.log: typing.List[typing.Tuple[typing.Any, ...]] = []

		super().__init__(time_source)

	def _add_node (self, kind: str, options: typing.Dict[str, typing.Any]) -> Node:

		node = super()._add_node(kind, options)
		self.history.append(node)

		return node

	def find (self, label: str) -> typing.List[Node]:

		"""Every node ever created with the given label."""

		return [node for node in self.history if node.label == label]

	def of_kind (self, kind: str) -> typing.List[Node]:
		return [node for node in self.history if node.kind == kind]

	def _node_started (self, node: Node, at: float) -> None:
		self.log.append(("start", node, at))

	def _node_stopped (self, node: Node, at: float) -> None:
		self.log.append(("stop", node, at))

	def _suspended (self) -> None:
		self.log.append(("suspend",))

	def _resumed (self) -> None:
		self.log.append(("resume",))

	def _closed (self) -> None:
		self.log.append(("close",))
