"""Age- and sex-dependent hearing threshold norms (simplified ISO 7029 bands)."""
import logging
from dataclasses import dataclass, replace

import numpy as np

from ..utils.defaults import FREQUENCIES
from ..utils.levels import (
    clamp,
    is_bc_frequency,
    minimum_level,
    presentation_limit,
    round_to_step,
)
from .case import EarRow, Transducer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormBand:
    minus2sd: float
    median: float
    plus2sd: float

    @property
    def sd(self):
        """Approximate standard deviation from the upper half-band."""
        return (self.plus2sd - self.median) / 2


def _bands(rows):
    # rows: {freq: (minus2sd, median, plus2sd)}
    return {freq: NormBand(*values) for freq, values in rows.items()}


# Tabulated groups are 20s, 50s, 60s and 70s; 125 Hz reuses the 250 Hz band.
ISO7029_BANDS = {
    'Male': {
        '20s': _bands({250: (-10, 0, 14), 500: (-10, 0, 12), 1000: (-10, 0, 12),
                       2000: (-10, 0, 13), 4000: (-10, 0, 15), 8000: (-10, 0, 15)}),
        '50s': _bands({250: (-6, 4, 20), 500: (-6, 4, 20), 1000: (-5, 5, 21),
                       2000: (-4, 9, 30), 4000: (-1, 16, 43), 8000: (2, 22, 53)}),
        '60s': _bands({250: (-5, 6, 24), 500: (-5, 6, 24), 1000: (-4, 8, 27),
                       2000: (0, 14, 38), 4000: (7, 26, 57), 8000: (12, 36, 70)}),
        '70s': _bands({250: (-3, 9, 29), 500: (-3, 9, 29), 1000: (-2, 11, 33),
                       2000: (4, 20, 48), 4000: (15, 37, 71), 8000: (24, 50, 88)}),
    },
    'Female': {
        '20s': _bands({250: (-10, 0, 14), 500: (-10, 0, 12), 1000: (-10, 0, 12),
                       2000: (-10, 0, 12), 4000: (-10, 0, 13), 8000: (-10, 0, 15)}),
        '50s': _bands({250: (-6, 4, 20), 500: (-6, 4, 20), 1000: (-5, 5, 21),
                       2000: (-5, 7, 25), 4000: (-4, 10, 31), 8000: (-1, 17, 44)}),
        '60s': _bands({250: (-5, 6, 24), 500: (-5, 6, 24), 1000: (-4, 8, 27),
                       2000: (-3, 11, 32), 4000: (0, 16, 41), 8000: (5, 27, 58)}),
        '70s': _bands({250: (-3, 9, 29), 500: (-3, 9, 29), 1000: (-2, 11, 33),
                       2000: (1, 15, 40), 4000: (4, 22, 52), 8000: (15, 38, 74)}),
    },
}

AGE_GROUP_FALLBACK = {'30s': '20s', '40s': '50s'}


def normalize_age_group(sex, age_group):
    """Map an age group onto one that has a tabulated band."""
    table = ISO7029_BANDS.get(sex, {})
    if age_group in table:
        return age_group
    candidate = AGE_GROUP_FALLBACK.get(age_group, age_group)
    if candidate in table:
        return candidate
    if table:
        return next(iter(table))
    return age_group


def get_band(sex, age_group, frequency):
    """
    Normative threshold band for a listener.

    Args:
        sex (str): 'Male' or 'Female'
        age_group (str): '20s' .. '70s'
        frequency (int): Audiogram frequency in Hz

    Returns:
        NormBand: minus2sd / median / plus2sd in dB HL
    """
    if sex not in ISO7029_BANDS:
        raise ValueError(f"No norms for sex: {sex}")
    group = normalize_age_group(sex, age_group)
    key = 250 if frequency == 125 else frequency
    return ISO7029_BANDS[sex][group][key]


def is_within_normal_range(level, band):
    return band.minus2sd <= level <= band.plus2sd


def sample_ac_level(rng, band, frequency):
    """Draw one air-conduction level from a normative band."""
    noisy = rng.normal(band.median, band.sd * 0.5) * rng.uniform(0.9, 1.1)
    clipped = np.clip(noisy, band.minus2sd, band.plus2sd)
    bounded = clamp(float(clipped), minimum_level(Transducer.AC, frequency),
                    presentation_limit(Transducer.AC, frequency))
    return round_to_step(bounded)


def sample_normal_bc(rng, band, frequency):
    """Bone conduction of a normal cochlea: band median within +/-1.5 dB."""
    raw = band.median + (rng.random() - 0.5) * 3.0
    return round_to_step(clamp(raw, minimum_level(Transducer.BC, frequency),
                               presentation_limit(Transducer.BC, frequency)))


def generate_normal_ear(rng, sex, age_group):
    """
    Generate an age-appropriate normal ear.

    Args:
        rng (np.random.Generator): Generator threaded through case generation
        sex (str): 'Male' or 'Female'
        age_group (str): '20s' .. '70s'

    Returns:
        list: EarRow per audiogram frequency
    """
    rows = []
    for freq in FREQUENCIES:
        band = get_band(sex, age_group, freq)
        ac = sample_ac_level(rng, band, freq)
        bc = sample_normal_bc(rng, band, freq) if is_bc_frequency(freq) else None
        rows.append(EarRow(freq=freq, ac=ac, bc=bc))
    return rows


def correlate_ear(rng, rows, sex, age_group, rho=0.7):
    """
    Derive the second ear of a bilateral case from the first.

    Each level is pulled towards the band median by ``rho`` and receives
    a small Gaussian perturbation. Air conduction is only bounded from
    below here; presentation-limit handling happens when the case is
    finalized.
    """
    derived = []
    for row in rows:
        band = get_band(sex, age_group, row.freq)
        eps = rng.normal(0.0, band.sd * 0.3)
        target = band.median + rho * (row.ac - band.median) + eps
        ac = round_to_step(max(target, minimum_level(Transducer.AC, row.freq)))
        bc = row.bc
        if is_bc_frequency(row.freq) and bc is not None:
            bc_raw = band.median + rho * (bc - band.median) + (rng.random() - 0.5) * 2.0
            bc = round_to_step(clamp(bc_raw, minimum_level(Transducer.BC, row.freq),
                                     presentation_limit(Transducer.BC, row.freq)))
        derived.append(replace(row, ac=ac, bc=bc, so_ac=False, so_bc=False))
    logger.debug("Derived correlated ear (rho=%.2f)", rho)
    return derived
