"""Generative layers.

Each layer is a clock listener that decides, tick by tick, what to play on
the engine's signal graph.  :class:`lull.layers.base.Layer` holds what they
share; :data:`lull.player.LAYER_TYPES` lists them in the order a track
registers them, which is also the order they hear each tick.
"""
