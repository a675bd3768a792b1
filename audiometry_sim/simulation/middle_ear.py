"""Tympanometry, acoustic reflex and DPOAE derivations for a case."""
import logging
from dataclasses import dataclass, replace
from typing import Dict, Tuple

import numpy as np

from ..utils.defaults import (
    AD_COMPLIANCE_CAP,
    ART_FREQUENCIES,
    ART_NORMAL_THRESHOLDS,
    COMPLIANCE_HIGH,
    COMPLIANCE_LOW,
    DPOAE_FREQUENCIES,
    DPOAE_HEARING_LOSS_LEVEL,
    DPOAE_LEVEL_RANGE,
    DPOAE_NOISE_FLOOR,
    DPOAE_PASS_BANDS,
    DPOAE_PASS_SNR,
    OSSICULAR_CONTRA_ELEVATION,
    PRESSURE_NEGATIVE_LIMIT,
    PRESSURE_POSITIVE_LIMIT,
    REFLEX_ABSENT,
    REFLEX_ABSENT_BC_LEVEL,
    REFLEX_ELEVATION_RATIO,
    REFLEX_NORMAL_BC_LEVEL,
    SCALE_OUT_REFERENCE_LEVEL,
)
from ..utils.levels import round_half_up
from .case import (
    ArtConfig,
    ArtEarConfig,
    DpoaeConfig,
    DpoaeEarConfig,
    Ear,
    Tympanogram,
    TympanogramEar,
)
from .disorders import CATEGORY_CHL, get_profile, has_trauma_history

logger = logging.getLogger(__name__)

# Mean air-bone gap (500/1k/2k Hz) treated as a conductive component
CONDUCTIVE_ABG = 20
OSSICULAR_PROFILE = 'CHL_OssicularDiscontinuity'

STIFF_TYMPANOGRAM = TympanogramEar('As', 0.0, 0.5, 60.0)
FLACCID_TYMPANOGRAM = TympanogramEar('Ad', 0.0, 3.5, 60.0)


# ---------------------------------------------------------------------------
# Tympanogram
# ---------------------------------------------------------------------------

def classify_tympanogram(ear_params, declared_type=None):
    """
    Reflex-relevant class of a tympanogram.

    Declared B stays B; otherwise compliance below 0.8 mL reads as As,
    above 1.7 mL as Ad, and a peak beyond +50/-150 daPa as B.
    """
    if (declared_type or ear_params.type) == 'B':
        return 'B'
    if ear_params.peak_compliance < COMPLIANCE_LOW:
        return 'As'
    if ear_params.peak_compliance > COMPLIANCE_HIGH:
        return 'Ad'
    if (ear_params.peak_pressure > PRESSURE_POSITIVE_LIMIT
            or ear_params.peak_pressure < PRESSURE_NEGATIVE_LIMIT):
        return 'B'
    return 'A'


def is_b_equivalent(ear_params):
    """Whether DPOAE should treat the middle ear as blocking (any conductive sign)."""
    return classify_tympanogram(ear_params) != 'A'


def overall_tympanogram_type(right, left):
    if right.type == left.type:
        return right.type
    if right.type != 'A':
        return right.type
    return left.type


def _recipe_ear(rng, recipe):
    compliance = recipe.peak_compliance
    if recipe.compliance_range is not None:
        compliance = min(AD_COMPLIANCE_CAP, rng.uniform(*recipe.compliance_range))
    return TympanogramEar(recipe.type, recipe.peak_pressure, round(float(compliance), 2),
                          recipe.sigma)


def _jitter_ear(rng, ear_params):
    pressure = ear_params.peak_pressure + round_half_up(rng.uniform(-10, 10))
    compliance = round(float(ear_params.peak_compliance * rng.uniform(0.95, 1.05)), 2)
    if ear_params.type == 'Ad':
        compliance = min(AD_COMPLIANCE_CAP, compliance)
    jittered = replace(ear_params, peak_pressure=float(pressure), peak_compliance=compliance)
    # Jitter must not move the ear into another class
    if classify_tympanogram(jittered) != classify_tympanogram(ear_params):
        return ear_params
    return jittered


def build_tympanogram(rng, right_profile, left_profile):
    """
    Tympanogram parameters for both ears from their profiles.

    Args:
        rng (np.random.Generator): Generator threaded through case generation
        right_profile (Profile): Profile of the right ear
        left_profile (Profile): Profile of the left ear

    Returns:
        Tympanogram
    """
    right = _jitter_ear(rng, _recipe_ear(rng, right_profile.tympanogram))
    left = _jitter_ear(rng, _recipe_ear(rng, left_profile.tympanogram))
    if right == left:
        nudged = replace(left, peak_pressure=left.peak_pressure - 12,
                         peak_compliance=round(left.peak_compliance * 1.05, 2))
        if classify_tympanogram(nudged) == classify_tympanogram(left):
            left = nudged
    return Tympanogram(overall_tympanogram_type(right, left), right, left)


def tympanogram_curve(ear_params, pressures=None):
    """
    Admittance curve of a single-peak tympanogram.

    Args:
        ear_params (TympanogramEar): Peak parameters
        pressures (array-like, optional): Ear-canal pressures in daPa.
            Defaults to -400..200 daPa in 5 daPa steps.

    Returns:
        tuple: (pressures, compliance) as numpy arrays
    """
    if pressures is None:
        pressures = np.arange(-400, 205, 5)
    pressures = np.asarray(pressures, dtype=float)
    z = (pressures - ear_params.peak_pressure) / ear_params.sigma
    compliance = ear_params.peak_compliance * np.exp(-0.5 * z ** 2)
    return pressures, compliance


# ---------------------------------------------------------------------------
# Reconciliation with the audiogram
# ---------------------------------------------------------------------------

def mean_air_bone_gap(rows, frequencies=ART_FREQUENCIES):
    """Mean ABG over measurable frequencies, ignoring scale-out entries."""
    gaps = [row.ac - row.bc for row in rows
            if row.freq in frequencies and row.bc is not None
            and not row.so_ac and not row.so_bc]
    if not gaps:
        return 0.0
    return float(np.mean(gaps))


def reconcile_tympanogram(tympanogram, right_rows, left_rows, history=''):
    """
    Align the tympanogram with a conductive audiogram.

    An ear showing a large air-bone gap under a type A tympanogram is
    re-typed As, or Ad when the history mentions trauma. Ears that are
    already non-A are left alone, so repeated application is a no-op.
    """
    trauma = has_trauma_history(history)
    ears = {}
    for ear, rows in ((Ear.RIGHT, right_rows), (Ear.LEFT, left_rows)):
        params = tympanogram.ear(ear)
        if params.type == 'A' and mean_air_bone_gap(rows) >= CONDUCTIVE_ABG:
            params = FLACCID_TYMPANOGRAM if trauma else STIFF_TYMPANOGRAM
            logger.debug("Re-typed %s tympanogram to %s (air-bone gap)", ear.side, params.type)
        ears[ear] = params
    right, left = ears[Ear.RIGHT], ears[Ear.LEFT]
    return Tympanogram(overall_tympanogram_type(right, left), right, left)


# ---------------------------------------------------------------------------
# Acoustic reflex
# ---------------------------------------------------------------------------

def _reflex_input(row, transducer):
    if transducer == 'AC':
        return SCALE_OUT_REFERENCE_LEVEL if row.so_ac else row.ac
    if row.bc is None:
        return None
    return SCALE_OUT_REFERENCE_LEVEL if row.so_bc else row.bc


def _is_conductive(rows, profile_name):
    profile = get_profile(profile_name)
    if profile is not None:
        return profile.category == CATEGORY_CHL
    return mean_air_bone_gap(rows) >= CONDUCTIVE_ABG


def _art_ear(rows, tymp_ear, profile_name):
    ac = {}
    bc = {}
    for row in rows:
        if row.freq in ART_FREQUENCIES:
            ac[row.freq] = _reflex_input(row, 'AC')
            bc[row.freq] = _reflex_input(row, 'BC')
    reflex_type = classify_tympanogram(tymp_ear)
    if reflex_type == 'As' and _is_conductive(rows, profile_name):
        # Stiff conductive ears show absent reflexes
        reflex_type = 'B'
    return ArtEarConfig(ac_thresholds=ac, bc_thresholds=bc, tympanogram_type=reflex_type,
                        peak_pressure=tymp_ear.peak_pressure)


def build_art_config(right_rows, left_rows, tympanogram, right_profile, left_profile,
                     affected_side=None):
    """
    Acoustic reflex configuration of a case.

    Ossicular discontinuity abolishes both reflexes measured on the affected
    ear and elevates the contralateral reflex measured on the other ear.
    """
    right = _art_ear(right_rows, tympanogram.right, right_profile)
    left = _art_ear(left_rows, tympanogram.left, left_profile)

    ossicular = {Ear.RIGHT: right_profile == OSSICULAR_PROFILE,
                 Ear.LEFT: left_profile == OSSICULAR_PROFILE}
    if any(ossicular.values()):
        if affected_side is None and ossicular[Ear.RIGHT] != ossicular[Ear.LEFT]:
            affected_side = 'R' if ossicular[Ear.RIGHT] else 'L'
        absent = {freq: REFLEX_ABSENT for freq in ART_FREQUENCIES}
        elevated = {freq: ART_NORMAL_THRESHOLDS[freq]['contra'] + OSSICULAR_CONTRA_ELEVATION
                    for freq in ART_FREQUENCIES}
        if affected_side == 'R':
            right = replace(right, ipsilateral_override=dict(absent),
                            contralateral_override=dict(absent))
            left = replace(left, contralateral_override=dict(elevated))
        elif affected_side == 'L':
            left = replace(left, ipsilateral_override=dict(absent),
                           contralateral_override=dict(absent))
            right = replace(right, contralateral_override=dict(elevated))
        else:
            for_both = dict(ipsilateral_override=dict(absent), contralateral_override=dict(absent))
            right = replace(right, **for_both)
            left = replace(left, **for_both)
    return ArtConfig(right=right, left=left)


def reflex_threshold(art_config, measured_ear, frequency, ipsilateral=True):
    """
    Acoustic reflex threshold for one measured/stimulus ear configuration.

    Ipsilateral reflexes are stimulated in the measured ear, contralateral
    ones in the opposite ear.

    Args:
        art_config (ArtConfig): Reflex inputs
        measured_ear (Ear or str): Ear where the reflex is recorded
        frequency (int): 500, 1000 or 2000 Hz
        ipsilateral (bool): Ipsilateral or contralateral stimulation

    Returns:
        float: Threshold in dB HL, 999 when absent
    """
    measured_ear = Ear(measured_ear)
    stimulus_ear = measured_ear if ipsilateral else measured_ear.opposite
    measured = art_config.ear(measured_ear)
    stimulus = art_config.ear(stimulus_ear)
    normal = ART_NORMAL_THRESHOLDS.get(frequency, ART_NORMAL_THRESHOLDS[1000])
    normal_threshold = normal['ipsi' if ipsilateral else 'contra']

    override_key = 'ipsilateral_override' if ipsilateral else 'contralateral_override'
    for config in (measured, stimulus):
        overrides = getattr(config, override_key) or {}
        if frequency in overrides:
            return overrides[frequency]

    if measured.tympanogram_type == 'B' or stimulus.tympanogram_type == 'B':
        return REFLEX_ABSENT

    bc = stimulus.bc_thresholds.get(frequency)
    if bc is None or bc >= REFLEX_ABSENT_BC_LEVEL:
        return REFLEX_ABSENT
    if bc <= REFLEX_NORMAL_BC_LEVEL:
        return normal_threshold
    return normal_threshold + bc * REFLEX_ELEVATION_RATIO


def reflex_table(art_config):
    """
    Reflex thresholds for both measured ears.

    Returns:
        dict: {'R': {'ipsi': {freq: thr}, 'contra': {...}}, 'L': {...}}
    """
    table = {}
    for ear in (Ear.RIGHT, Ear.LEFT):
        table[ear.value] = {
            'ipsi': {f: reflex_threshold(art_config, ear, f, True) for f in ART_FREQUENCIES},
            'contra': {f: reflex_threshold(art_config, ear, f, False) for f in ART_FREQUENCIES},
        }
    return table


def reflexes_present(art_config, ear):
    """True when every reflex measured on this ear is present."""
    entry = reflex_table(art_config)[Ear(ear).value]
    return all(v < REFLEX_ABSENT for side in entry.values() for v in side.values())


# ---------------------------------------------------------------------------
# DPOAE
# ---------------------------------------------------------------------------

def _dpoae_input(rows_by_freq, freq):
    row = rows_by_freq.get(freq)
    if row is None:
        return None
    return SCALE_OUT_REFERENCE_LEVEL if row.so_ac else row.ac


def dpoae_ac_thresholds(rows):
    """Map audiogram AC onto the DPOAE f2 bands (3k and 6k are interpolated)."""
    by_freq = {row.freq: row for row in rows}
    ac = {f: _dpoae_input(by_freq, f) for f in (1000, 2000, 4000, 8000)}
    return {
        1000: ac[1000],
        2000: ac[2000],
        3000: round_half_up((ac[2000] + ac[4000]) / 2),
        4000: ac[4000],
        6000: round_half_up((ac[4000] + ac[8000]) / 2),
        8000: ac[8000],
    }


def build_dpoae_config(right_rows, left_rows, tympanogram):
    def ear_config(rows, tymp_ear):
        tag = 'B' if is_b_equivalent(tymp_ear) else 'A'
        return DpoaeEarConfig(ac_thresholds=dpoae_ac_thresholds(rows), tympanogram_type=tag)

    return DpoaeConfig(right=ear_config(right_rows, tympanogram.right),
                       left=ear_config(left_rows, tympanogram.left))


@dataclass(frozen=True)
class DpoaeResult:
    """DPOAE measurement of one ear."""
    frequencies: Tuple[int, ...]
    noise_floor: Tuple[float, ...]
    level: Tuple[float, ...]
    snr: Tuple[float, ...]

    @property
    def band_pass(self):
        return tuple(s >= DPOAE_PASS_SNR for s in self.snr)

    @property
    def passed(self):
        return sum(self.band_pass) >= DPOAE_PASS_BANDS


def dpoae_ear_result(ear_config, seed, ear):
    """
    Simulated DPOAE result for one ear.

    Values are fixed per (seed, ear) so that re-rendering a case shows the
    same recording.
    """
    ear = Ear(ear)
    rng = np.random.default_rng([int(seed), 0 if ear is Ear.RIGHT else 1])
    low, high = DPOAE_LEVEL_RANGE
    noise_floor, levels, snrs = [], [], []
    for freq in DPOAE_FREQUENCIES:
        nf_min, nf_base, nf_max = DPOAE_NOISE_FLOOR[freq]
        noise = round(float(np.clip(nf_base + rng.uniform(-3.5, 3.5), nf_min, nf_max)), 1)
        ac = ear_config.ac_thresholds.get(freq)
        if ear_config.tympanogram_type == 'B' or (ac is not None and ac >= DPOAE_HEARING_LOSS_LEVEL):
            snr = round(rng.uniform(0.5, 1.5), 1)
        else:
            snr = round(rng.uniform(DPOAE_PASS_SNR, 12.0), 1)
        level = round(float(np.clip(noise + snr, low, high)), 1)
        noise_floor.append(noise)
        levels.append(level)
        snrs.append(round(level - noise, 1))
    return DpoaeResult(tuple(DPOAE_FREQUENCIES), tuple(noise_floor), tuple(levels), tuple(snrs))


def dpoae_results(dpoae_config, seed=0) -> Dict[str, DpoaeResult]:
    """DPOAE results for both ears keyed by 'R' / 'L'."""
    return {ear.value: dpoae_ear_result(dpoae_config.ear(ear), seed, ear)
            for ear in (Ear.RIGHT, Ear.LEFT)}
