"""
lull - endless generative ambient music for deep work.

lull composes ambient electronic music in real time, with no recorded
material.  Every musical decision comes from a handful of slowly drifting
noise modulators and a single clock; the notes go out as MIDI to whatever
synthesizer you point it at.

How it fits together:

- **Clock.** A lookahead tick scheduler on a sixteenth-note grid.  It
  polls a monotonic time source and fires ``on_tick``, ``on_beat``,
  ``on_bar`` and ``on_phrase`` with the exact future time each tick
  should sound, so scheduling jitter never reaches the music.
- **Modulation.** Named coherent-noise modulators (``filter_main``,
  ``intensity``, ``velocity``, ``detune``, ``filter_res``) that wander
  between bounds at glacial to shimmering speeds.
- **Engine.** One per track: picks the key and scale, owns the clock and
  the modulators, builds the mix bus and ducks the melodic bus on every
  kick.
- **Layers.** Pad chords, a preset-driven arpeggio, drums, noise texture
  and a slow motif, each switching between playing and resting sections
  at phrase boundaries.
- **Signal graph.** Layers schedule nodes and automation on a graph.
  ``MidiGraph`` turns that into MIDI; ``RecordingGraph`` keeps it in
  memory for tests and headless runs.
- **Player.** Tracks of 8 to 15 minutes, one after another, with pause,
  skip and a terminal status line.

Minimal example:

    ```python
    import asyncio
    import lull

    player = lull.Player(lambda: lull.MidiGraph(device_name="IAC Driver Bus 1"))
    asyncio.run(player.play())
    ```

Or from a shell: ``python -m lull --bpm 84``.

Package-level exports: ``Clock``, ``Engine``, ``EngineConfig``,
``MidiGraph``, ``ModulationBank``, ``Player``, ``RecordingGraph``.
"""

import lull.clock
import lull.engine
import lull.graph
import lull.midi_graph
import lull.modulation
import lull.player


Clock = lull.clock.Clock
Engine = lull.engine.Engine
EngineConfig = lull.engine.EngineConfig
MidiGraph = lull.midi_graph.MidiGraph
ModulationBank = lull.modulation.ModulationBank
Player = lull.player.Player
RecordingGraph = lull.graph.RecordingGraph
