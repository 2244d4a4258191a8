"""Timing, routing and track constants.

The clock runs on a fixed musical grid:

- `TICKS_PER_BEAT = 4`: one tick is a sixteenth note (the atomic grid unit)
- `BEATS_PER_BAR = 4`: 4/4 time throughout
- `BARS_PER_PHRASE = 4`: a phrase is where layers re-roll their sections

Tempo is clamped to `MIN_BPM`..`MAX_BPM` everywhere.  Scheduling runs
`DEFAULT_LOOKAHEAD` seconds ahead of the time source, polled every
`DEFAULT_POLL_INTERVAL` seconds.
"""

# Grid

TICKS_PER_BEAT = 4
BEATS_PER_BAR = 4
BARS_PER_PHRASE = 4
STEPS_PER_BAR = TICKS_PER_BEAT * BEATS_PER_BAR

# Tempo

MIN_BPM = 60
MAX_BPM = 140
DEFAULT_BPM = 89

# Scheduling

DEFAULT_LOOKAHEAD = 0.2
DEFAULT_POLL_INTERVAL = 0.025
HEADROOM_WARNING_THRESHOLD = 0.03
HEADROOM_WARNING_INTERVAL = 1.0

# Sidechain ducking

DUCK_DEPTH = 0.65
DUCK_ATTACK = 0.003
DUCK_HOLD = 0.0
DUCK_RELEASE = 0.12

# Master / teardown

DEFAULT_VOLUME = 75
MASTER_FADE_SECONDS = 2.0
TEARDOWN_DELAY = 2.5
LAYER_FADE_IN_SECONDS = 6.0
LAYER_FADE_OUT_SECONDS = 2.0

# Tracks (8-15 minutes, randomized per track)

MIN_TRACK_SECONDS = 8 * 60
MAX_TRACK_SECONDS = 15 * 60

# Command line tempo bounds (narrower than the clock's clamp range)

CLI_MIN_BPM = 70
CLI_MAX_BPM = 120
