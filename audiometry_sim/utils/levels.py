"""Level arithmetic and frequency helpers shared by the engine."""
import math

from .defaults import (
    AIR_CONDUCTION_MAX_LEVELS,
    AIR_CONDUCTION_MIN_LEVELS,
    BONE_CONDUCTION_MAX_LEVELS,
    BONE_CONDUCTION_MIN_LEVELS,
    BC_DISABLED_FREQUENCIES,
    FREQUENCIES,
    LEVEL_STEP,
    MAX_INPUT_LEVEL,
    MIN_INPUT_LEVEL,
)


def clamp(value, low, high):
    """Clamp value to the closed interval [low, high]."""
    return max(low, min(high, value))


def round_half_up(value):
    """Round to the nearest integer with halves going up (-2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def round_to_step(value, step=LEVEL_STEP):
    """Quantize a level to the audiometer step (5 dB by default)."""
    return round_half_up(value / step) * step


def clamp_input_level(level):
    """Silently bring a stimulus or masker level into [-15, 120] dB HL."""
    return clamp(level, MIN_INPUT_LEVEL, MAX_INPUT_LEVEL)


def is_bc_frequency(frequency):
    return frequency in BONE_CONDUCTION_MAX_LEVELS


def transducer_key(transducer):
    """Return 'AC' or 'BC' for a Transducer member or plain string."""
    return getattr(transducer, 'value', transducer)


def presentation_limit(transducer, frequency):
    """
    Maximum level the audiometer can emit.

    Args:
        transducer (Transducer or str): 'AC' or 'BC'
        frequency (int): Test frequency in Hz

    Returns:
        int or None: Limit in dB HL, None where the transducer cannot be used
    """
    table = (AIR_CONDUCTION_MAX_LEVELS if transducer_key(transducer) == 'AC'
             else BONE_CONDUCTION_MAX_LEVELS)
    return table.get(frequency)


def minimum_level(transducer, frequency):
    """Lowest level a generated case may carry at this frequency."""
    table = (AIR_CONDUCTION_MIN_LEVELS if transducer_key(transducer) == 'AC'
             else BONE_CONDUCTION_MIN_LEVELS)
    return table.get(frequency)


def octave_index(frequency):
    """Octave position of a frequency relative to 125 Hz (125 -> 0, 8000 -> 6)."""
    return math.log2(frequency / FREQUENCIES[0])


def masker_band(frequency):
    """
    Narrow-band masker edges drawn around a test frequency.

    The overlay spans half an octave either side of the centre.

    Returns:
        tuple: (low_hz, high_hz)
    """
    width = math.sqrt(2)
    return frequency / width, frequency * width


def step_frequency(frequency, direction, bone=False):
    """
    Move one step along the audiogram frequency list.

    Args:
        frequency (int): Current frequency in Hz
        direction (int): -1 for lower, +1 for higher
        bone (bool): Skip frequencies where bone conduction is disabled

    Returns:
        int: The new frequency (unchanged at the ends of the list)
    """
    idx = FREQUENCIES.index(frequency) if frequency in FREQUENCIES else 0
    new_idx = clamp(idx + direction, 0, len(FREQUENCIES) - 1)
    if bone:
        while FREQUENCIES[new_idx] in BC_DISABLED_FREQUENCIES:
            stepped = clamp(new_idx + direction, 0, len(FREQUENCIES) - 1)
            if stepped == new_idx:
                # Hit the edge on a disabled entry; stay where we were
                return frequency
            new_idx = stepped
    return FREQUENCIES[new_idx]
