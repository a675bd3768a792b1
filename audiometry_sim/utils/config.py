"""Engine configuration and YAML loading."""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from .defaults import DEFAULT_INTERAURAL_ATTENUATION, FREQUENCIES
from .levels import transducer_key


@dataclass
class EngineConfig:
    """Runtime settings shared by the case generator, response engine and session."""
    # Default interaural attenuation per transducer (dB)
    interaural_attenuation: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INTERAURAL_ATTENUATION))
    # Per-frequency overrides, e.g. {4000: {'AC': 60}}
    interaural_attenuation_overrides: Dict[int, Dict[str, float]] = field(default_factory=dict)

    # Warning toggles surfaced to the UI
    show_over_masking_warning: bool = True
    show_cross_hearing_warning: bool = True

    # Case generation
    interaural_correlation: float = 0.7
    sample_with_priors: bool = False
    default_seed: Optional[int] = None

    def __post_init__(self):
        for key in self.interaural_attenuation:
            if key not in ('AC', 'BC'):
                raise ValueError(f"Unknown transducer in interaural_attenuation: {key}")
        for freq, values in self.interaural_attenuation_overrides.items():
            if int(freq) not in FREQUENCIES:
                raise ValueError(f"Interaural attenuation override for unknown frequency: {freq}")
            for key in values:
                if key not in ('AC', 'BC'):
                    raise ValueError(f"Unknown transducer in override for {freq} Hz: {key}")
        self.interaural_attenuation_overrides = {
            int(f): dict(v) for f, v in self.interaural_attenuation_overrides.items()
        }
        if not 0 <= self.interaural_correlation <= 1:
            raise ValueError("interaural_correlation must be between 0 and 1")

    def ia(self, transducer, frequency) -> float:
        """Interaural attenuation for a transducer at a frequency."""
        key = transducer_key(transducer)
        override = self.interaural_attenuation_overrides.get(frequency, {})
        if key in override:
            return override[key]
        return self.interaural_attenuation.get(key, DEFAULT_INTERAURAL_ATTENUATION[key])

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EngineConfig":
        """Build a config from a plain mapping, rejecting unknown keys."""
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


# Top-level sections read by other consumers, such as the batch script
NON_ENGINE_SECTIONS = ('batch',)


def read_config_file(config_path: Union[str, Path]) -> dict:
    """Read a YAML configuration file into a plain mapping."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def engine_config_from_mapping(raw: Optional[dict]) -> EngineConfig:
    """Build the engine config from a parsed configuration file.

    The settings may sit at top level or under an ``engine:`` section;
    sections belonging to other consumers are ignored.
    """
    raw = dict(raw or {})
    if 'engine' in raw:
        return EngineConfig.from_dict(raw['engine'])
    return EngineConfig.from_dict({k: v for k, v in raw.items() if k not in NON_ENGINE_SECTIONS})


def load_config(config_path: Union[str, Path]) -> EngineConfig:
    """Load engine configuration from a YAML file."""
    return engine_config_from_mapping(read_config_file(config_path))
