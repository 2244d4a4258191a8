import lull.diagnostics


def test_counter_starts_at_zero () -> None:

	counter = lull.diagnostics.NodeCounter()

	assert counter.active == 0
	assert counter.stats() == lull.diagnostics.NodeStats(created=0, cleaned=0, active=0)


def test_counter_tracks_creation_and_cleanup () -> None:

	counter = lull.diagnostics.NodeCounter()

	counter.create()
	assert counter.active == 1

	counter.create(5)
	counter.cleanup(3)

	assert counter.stats() == lull.diagnostics.NodeStats(created=6, cleaned=3, active=3)


def test_counts_default_to_one () -> None:

	counter = lull.diagnostics.NodeCounter()

	counter.create()
	counter.create()
	counter.cleanup()

	assert counter.active == 1


def test_reset_clears_counts () -> None:

	counter = lull.diagnostics.NodeCounter()

	counter.create(100)
	counter.cleanup(50)
	counter.reset()

	assert counter.stats() == lull.diagnostics.NodeStats(created=0, cleaned=0, active=0)


def test_active_may_go_negative () -> None:

	"""Over-cleaning is reported, not hidden."""

	counter = lull.diagnostics.NodeCounter()

	counter.create(5)
	counter.cleanup(10)

	assert counter.active == -5


def test_counters_are_independent () -> None:

	first = lull.diagnostics.NodeCounter()
	second = lull.diagnostics.NodeCounter()

	first.create(3)

	assert second.active == 0


def test_memory_is_a_plausible_integer () -> None:

	memory = lull.diagnostics.get_memory_mb()

	assert isinstance(memory, int)
	assert 1 <= memory < 10000


def test_format_stats () -> None:

	counter = lull.diagnostics.NodeCounter()
	counter.create(12)
	counter.cleanup(4)

	assert lull.diagnostics.format_stats(counter, memory_mb=42) == "nodes active=8 created=12 cleaned=4 mem=42MB"
