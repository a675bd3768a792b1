"""
Utility module for common functions and constants.

This module contains:
- Default values and presentation limits
- Level arithmetic helpers
- Engine configuration
"""

from .defaults import *
from .levels import (
    clamp,
    round_half_up,
    round_to_step,
    presentation_limit,
    minimum_level,
    octave_index,
    masker_band,
)
from .config import EngineConfig, engine_config_from_mapping, load_config, read_config_file

__all__ = [
    "clamp",
    "round_half_up",
    "round_to_step",
    "presentation_limit",
    "minimum_level",
    "octave_index",
    "masker_band",
    "EngineConfig",
    "load_config",
    "read_config_file",
    "engine_config_from_mapping",
]
