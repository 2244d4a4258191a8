"""YAML configuration.

An optional file such as::

	bpm: 84
	volume: 60
	seed: 7
	lookahead: 0.2
	poll_interval: 0.025
	diagnostics: false
	midi:
	  device_name: "IAC Driver Bus 1"
	  channels:
	    pad: 0
	    beat: 9

Every key is optional; missing keys take their defaults from
:mod:`lull.constants`.  Command line flags override the file.
"""

import dataclasses
import logging
import os
import typing

import yaml

import lull.clock
import lull.constants
import lull.engine
import lull.midi_graph


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "lull.yaml"

TOP_LEVEL_KEYS = ("bpm", "volume", "seed", "lookahead", "poll_interval", "diagnostics", "midi")
MIDI_KEYS = ("device_name", "channels")


@dataclasses.dataclass
class Config:

	bpm: float = lull.constants.DEFAULT_BPM
	volume: float = lull.constants.DEFAULT_VOLUME
	seed: typing.Optional[int] = None
	lookahead: float = lull.constants.DEFAULT_LOOKAHEAD
	poll_interval: float = lull.constants.DEFAULT_POLL_INTERVAL
	diagnostics: bool = False
	device_name: typing.Optional[str] = None
	channels: typing.Dict[str, int] = dataclasses.field(default_factory=dict)

	def engine_config (self) -> lull.engine.EngineConfig:

		"""The per-track subset of the configuration."""

		return lull.engine.EngineConfig(
			bpm = lull.clock.clamp_bpm(self.bpm),
			volume = self.volume,
			seed = self.seed,
			lookahead = self.lookahead,
			poll_interval = self.poll_interval,
			diagnostics = self.diagnostics
		)


def _number (data: typing.Dict[str, typing.Any], key: str, default: float) -> float:

	value = data.get(key, default)

	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise ValueError(f"Config key '{key}' must be a number, got {value!r}")

	return value


def _channels (raw: typing.Any) -> typing.Dict[str, int]:

	if raw is None:
		return {}

	if not isinstance(raw, dict):
		raise ValueError(f"Config key 'midi.channels' must be a mapping, got {raw!r}")

	channels: typing.Dict[str, int] = {}

	for name, channel in raw.items():

		if name not in lull.midi_graph.DEFAULT_CHANNELS:
			raise ValueError(f"Unknown layer '{name}' in midi.channels (expected one of {list(lull.midi_graph.DEFAULT_CHANNELS)})")

		if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= 15:
			raise ValueError(f"MIDI channel for '{name}' must be an integer 0-15, got {channel!r}")

		channels[name] = channel

	return channels


def from_mapping (data: typing.Optional[typing.Dict[str, typing.Any]]) -> Config:

	"""
	Build a :class:`Config` from parsed YAML.

	Raises:
		ValueError: The data is not a mapping, has unknown keys, or holds a
			value of the wrong type.
	"""

	if data is None:
		return Config()

	if not isinstance(data, dict):
		raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

	unknown = sorted(set(data) - set(TOP_LEVEL_KEYS))

	if unknown:
		raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

	midi = data.get("midi") or {}

	if not isinstance(midi, dict):
		raise ValueError(f"Config key 'midi' must be a mapping, got {midi!r}")

	unknown = sorted(set(midi) - set(MIDI_KEYS))

	if unknown:
		raise ValueError(f"Unknown midi config keys: {', '.join(unknown)}")

	seed = data.get("seed")

	if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
		raise ValueError(f"Config key 'seed' must be an integer, got {seed!r}")

	device_name = midi.get("device_name")

	return Config(
		bpm = _number(data, "bpm", lull.constants.DEFAULT_BPM),
		volume = _number(data, "volume", lull.constants.DEFAULT_VOLUME),
		seed = seed,
		lookahead = _number(data, "lookahead", lull.constants.DEFAULT_LOOKAHEAD),
		poll_interval = _number(data, "poll_interval", lull.constants.DEFAULT_POLL_INTERVAL),
		diagnostics = bool(data.get("diagnostics", False)),
		device_name = str(device_name) if device_name is not None else None,
		channels = _channels(midi.get("channels"))
	)


def load_config (config_path: str = DEFAULT_CONFIG_PATH) -> Config:

	"""
	Load configuration from a YAML file.

	A missing file is not an error: a warning is logged and the defaults are
	returned.

	Raises:
		ValueError: The file cannot be read or parsed, or its contents are invalid.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	try:
		with open(config_path, 'r') as f:
			data = yaml.safe_load(f)

	except (OSError, yaml.YAMLError) as e:
		raise ValueError(f"Could not read config file {config_path}: {e}") from e

	logger.info(f"Loaded config from {config_path}")

	return from_mapping(data)


def apply_overrides (config: Config, **overrides: typing.Any) -> Config:

	"""Return a copy of *config* with every override that is not None applied."""

	changes = {key: value for key, value in overrides.items() if value is not None}

	return dataclasses.replace(config, **changes)
