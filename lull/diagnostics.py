"""Leak detection for signal-graph resources.

Every voice a layer creates is counted through a :class:`NodeCounter`, and
counted again when it is disposed.  ``active`` should fall back to zero once
a track's layers have been disposed; a count that keeps climbing over a long
session means nodes are not being released.

The counter is purely diagnostic and never influences scheduling.
"""

import dataclasses
import logging
import resource
import sys
import typing


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class NodeStats:

	created: int
	cleaned: int
	active: int


class NodeCounter:

	"""
	Counts created and cleaned-up graph nodes.

	``active`` is ``created - cleaned`` and is allowed to go negative; a
	negative value points at a double disposal somewhere.
	"""

	def __init__ (self) -> None:

		self.created = 0
		self.cleaned = 0

	def create (self, count: int = 1) -> None:
		self.created += count

	def cleanup (self, count: int = 1) -> None:
		self.cleaned += count

	@property
	def active (self) -> int:
		return self.created - self.cleaned

	def stats (self) -> NodeStats:
		return NodeStats(created=self.created, cleaned=self.cleaned, active=self.active)

	def reset (self) -> None:

		self.created = 0
		self.cleaned = 0

		logger.debug("Node counter reset")


def get_memory_mb () -> int:

	"""
	Peak resident memory of this process in whole megabytes (at least 1).
	"""

	usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss

	# Linux reports kilobytes, macOS reports bytes.
	if sys.platform == "darwin":
		megabytes = usage / (1024 * 1024)
	else:
		megabytes = usage / 1024

	return max(1, int(round(megabytes)))


def format_stats (counter: NodeCounter, memory_mb: typing.Optional[int] = None) -> str:

	"""One-line summary for the periodic diagnostics log."""

	stats = counter.stats()

	if memory_mb is None:
		memory_mb = get_memory_mb()

	return f"nodes active={stats.active} created={stats.created} cleaned={stats.cleaned} mem={memory_mb}MB"
