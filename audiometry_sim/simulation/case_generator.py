"""Seeded generation of audiometry training cases."""
import logging
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from ..utils.config import EngineConfig
from ..utils.defaults import (
    AGE_GROUPS,
    FREQUENCIES,
    SEVERITY_LEVELS,
    SEXES,
    SNHL_BC_NO_RESPONSE_LEVELS,
)
from ..utils.levels import (
    clamp,
    is_bc_frequency,
    minimum_level,
    presentation_limit,
    round_to_step,
)
from .case import Case, CaseMeta, CaseNarrative, EarRow, Transducer
from .disorders import (
    CATEGORY_CHL,
    CATEGORY_NORMAL,
    DEFAULT_FALLBACK_PROFILE,
    PROFILE_NAMES,
    PROFILES,
    get_profile,
)
from .middle_ear import (
    build_art_config,
    build_dpoae_config,
    build_tympanogram,
    reconcile_tympanogram,
)
from .narrative import build_narrative
from .norms import correlate_ear, generate_normal_ear, get_band

logger = logging.getLogger(__name__)

SIDES = ('R', 'L')
# Age groups where a mild SNHL_Age ear is graded as Normal
PTA_NORMAL_AGE_GROUPS = ('20s', '30s', '40s', '50s')
PTA_NORMAL_LIMIT = 25
MUMPS_PROFOUND_PROBABILITY = 0.5


@dataclass(frozen=True)
class GenerateOptions:
    """
    Options for :func:`generate_case`. Unset fields are sampled.

    An unknown ``profile`` is accepted here; the generator falls back to
    SNHL_Age and records the request in the case metadata.
    """
    seed: Optional[int] = None
    sex: Optional[str] = None
    age_group: Optional[str] = None
    profile: Optional[str] = None
    severity: Optional[int] = None
    affected_side: Optional[str] = None

    def __post_init__(self):
        if self.sex is not None and self.sex not in SEXES:
            raise ValueError(f"sex must be one of {SEXES}, got {self.sex!r}")
        if self.age_group is not None and self.age_group not in AGE_GROUPS:
            raise ValueError(f"age_group must be one of {AGE_GROUPS}, got {self.age_group!r}")
        if self.severity is not None and self.severity not in SEVERITY_LEVELS:
            raise ValueError(f"severity must be one of {SEVERITY_LEVELS}, got {self.severity!r}")
        if self.affected_side is not None and self.affected_side not in SIDES:
            raise ValueError(f"affected_side must be 'R' or 'L', got {self.affected_side!r}")
        if self.seed is not None and self.seed < 0:
            raise ValueError("seed must be non-negative")


# ---------------------------------------------------------------------------
# Ear shaping and reconciliation
# ---------------------------------------------------------------------------

def _bc_bounds(frequency):
    return (minimum_level(Transducer.BC, frequency),
            presentation_limit(Transducer.BC, frequency))


def shape_ear(rng, rows, profile, severity, sex, age_group):
    """
    Apply a disorder profile to a normal ear.

    Air conduction receives the profile offset and is only bounded from
    below. Bone conduction either follows the new AC within +/-3 dB or,
    for conductive profiles, stays near the age-normal median (plus the
    Carhart notch where the profile has one).
    """
    shaped = []
    for row in rows:
        offset = profile.ac_offset(severity, row.freq, rng)
        ac = round_to_step(max(row.ac + offset, minimum_level(Transducer.AC, row.freq)))
        bc = row.bc
        if is_bc_frequency(row.freq):
            low, high = _bc_bounds(row.freq)
            if profile.bc_mode == 'near_normal':
                band = get_band(sex, age_group, row.freq)
                raw = band.median + (rng.random() - 0.5) * 3.0
                raw += profile.carhart_offset(severity, row.freq)
            else:
                raw = ac + (rng.random() - 0.5) * 6.0
            bc = round_to_step(clamp(raw, low, high))
        shaped.append(replace(row, ac=ac, bc=bc))
    return reconcile_ear(shaped, profile, severity)


def _carhart_notch(rows):
    by_freq = {row.freq: row for row in rows}
    notch = by_freq[2000]
    floor = max(by_freq[1000].bc, by_freq[4000].bc) + 5
    if notch.bc >= floor:
        return rows
    low, high = _bc_bounds(2000)
    raised = replace(notch, bc=round_to_step(clamp(floor, low, high)))
    return [raised if row.freq == 2000 else row for row in rows]


def reconcile_ear(rows, profile=None, severity=0):
    """
    Restore the audiometric invariants of one ear.

    1. Carhart notch: BC(2k) at least 5 dB worse than BC(1k) and BC(4k).
    2. Conductive profiles: air-bone gap at least the profile minimum,
       obtained by raising AC.
    3. BC never more than 5 dB worse than AC.
    4. Sensorineural profiles: AC beyond the BC no-response level marks
       BC as no response at that level.

    The pass is idempotent.
    """
    rows = list(rows)
    if profile is not None and profile.carhart_depth(severity) > 0:
        rows = _carhart_notch(rows)

    reconciled = []
    for row in rows:
        if not is_bc_frequency(row.freq) or row.bc is None:
            reconciled.append(row)
            continue
        ac, bc, so_bc = row.ac, row.bc, row.so_bc
        if profile is not None and profile.category == CATEGORY_CHL:
            min_abg = profile.min_abg.get(row.freq, 0)
            if ac - bc < min_abg:
                ac = round_to_step(bc + min_abg)
        low, high = _bc_bounds(row.freq)
        bc = round_to_step(clamp(min(bc, ac + 5), low, high))
        if profile is not None and profile.is_snhl:
            no_response = SNHL_BC_NO_RESPONSE_LEVELS[row.freq]
            if ac > no_response:
                bc, so_bc = no_response, True
        reconciled.append(replace(row, ac=ac, bc=bc, so_bc=so_bc))
    return reconciled


def force_no_response(rows):
    """Profound loss: AC scale-out everywhere, BC at its no-response level."""
    forced = []
    for row in rows:
        ac = presentation_limit(Transducer.AC, row.freq)
        if is_bc_frequency(row.freq):
            forced.append(replace(row, ac=ac, so_ac=True,
                                  bc=SNHL_BC_NO_RESPONSE_LEVELS[row.freq], so_bc=True))
        else:
            forced.append(replace(row, ac=ac, so_ac=True))
    return forced


def finalize_ear(rows, profile_name):
    """
    Apply presentation limits and fill the 125/8000 Hz bone estimate.

    AC above the audiometer maximum becomes a scale-out at the maximum.
    """
    profile = get_profile(profile_name)
    finalized = []
    for row in rows:
        limit = presentation_limit(Transducer.AC, row.freq)
        so_ac = row.so_ac or row.ac > limit
        ac = round_to_step(clamp(row.ac, minimum_level(Transducer.AC, row.freq), limit))
        finalized.append(replace(row, ac=ac, so_ac=so_ac))

    by_freq = {row.freq: row for row in finalized}
    result = []
    for row in finalized:
        if is_bc_frequency(row.freq):
            result.append(row)
            continue
        if profile is not None and profile.category == CATEGORY_CHL:
            source = by_freq[250] if row.freq == 125 else by_freq[4000]
            internal = source.bc
        else:
            internal = row.ac
        result.append(replace(row, bc_internal=internal))
    return tuple(result)


def four_frequency_pta(rows):
    """WHO four-division pure-tone average: (0.5k + 2*1k + 2k) / 4."""
    ac = {row.freq: row.ac for row in rows}
    return (ac[500] + 2 * ac[1000] + ac[2000]) / 4


# ---------------------------------------------------------------------------
# Case assembly
# ---------------------------------------------------------------------------

def _resolve_seed(seed, config):
    if seed is None:
        seed = config.default_seed
    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2 ** 32))
    return int(seed)


def _resolve_profile(requested, rng):
    if requested is None:
        return PROFILE_NAMES[int(rng.integers(len(PROFILE_NAMES)))], False
    if requested not in PROFILES:
        logger.warning("Unknown profile %r, falling back to %s", requested, DEFAULT_FALLBACK_PROFILE)
        return DEFAULT_FALLBACK_PROFILE, True
    return requested, False


def _resolve_demographics(opts, profile, rng, use_priors):
    sex = opts.sex
    if sex is None:
        if use_priors:
            sex = 'Female' if rng.random() < profile.female_ratio else 'Male'
        else:
            sex = SEXES[int(rng.integers(len(SEXES)))]
    age_group = opts.age_group
    if age_group is None:
        groups = (profile.eligible_age_groups() or list(AGE_GROUPS)) if use_priors else AGE_GROUPS
        age_group = groups[int(rng.integers(len(groups)))]
    return sex, age_group


def assemble_case(meta, right, left, history='', narrative=None, case_id=None, rng=None):
    """
    Derive middle-ear findings and build the immutable Case.

    Args:
        meta (CaseMeta): Case metadata (per-ear profiles already decided)
        right (tuple): Finalized EarRows of the right ear
        left (tuple): Finalized EarRows of the left ear
        history (str): Free-text history searched for trauma keywords
        narrative (CaseNarrative, optional): Narrative to attach
        case_id (str, optional): Identifier, defaults to '<profile>-<seed>'
        rng (np.random.Generator, optional): Generator for tympanogram jitter

    Returns:
        Case
    """
    if rng is None:
        rng = np.random.default_rng(meta.seed)
    right_profile = get_profile(meta.right_profile) or PROFILES[CATEGORY_NORMAL]
    left_profile = get_profile(meta.left_profile) or PROFILES[CATEGORY_NORMAL]

    tympanogram = build_tympanogram(rng, right_profile, left_profile)
    tympanogram = reconcile_tympanogram(tympanogram, right, left, history)
    art_config = build_art_config(right, left, tympanogram, meta.right_profile,
                                  meta.left_profile, meta.affected_side)
    dpoae_config = build_dpoae_config(right, left, tympanogram)
    return Case(
        meta=meta,
        right=tuple(right),
        left=tuple(left),
        tympanogram=tympanogram,
        art_config=art_config,
        dpoae_config=dpoae_config,
        narrative=narrative or CaseNarrative(history=history),
        case_id=case_id or f"{meta.profile}-{meta.seed}",
    )


def generate_case(opts=None, config=None, **kwargs):
    """
    Generate a clinically plausible case.

    Args:
        opts (GenerateOptions, optional): Generation options; keyword
            arguments are accepted instead for convenience
        config (EngineConfig, optional): Engine configuration

    Returns:
        Case: Identical for identical seed and options
    """
    if opts is None:
        opts = GenerateOptions(**kwargs)
    elif kwargs:
        opts = replace(opts, **kwargs)
    config = config or EngineConfig()

    seed = _resolve_seed(opts.seed, config)
    rng = np.random.default_rng(seed)

    profile_name, fallback = _resolve_profile(opts.profile, rng)
    profile = PROFILES[profile_name]
    sex, age_group = _resolve_demographics(opts, profile, rng, config.sample_with_priors)
    severity = opts.severity if opts.severity is not None else int(rng.integers(len(SEVERITY_LEVELS)))
    if profile.unilateral and severity == 0:
        severity = 1
    logger.debug("Generating %s (severity %d) for %s %s, seed %d",
                 profile_name, severity, sex, age_group, seed)

    base = generate_normal_ear(rng, sex, age_group)
    shaped = shape_ear(rng, base, profile, severity, sex, age_group)

    affected_side = None
    right_profile = left_profile = profile_name
    if profile.unilateral:
        affected_side = opts.affected_side or ('R' if rng.random() < 0.5 else 'L')
        if affected_side == 'R':
            right, left = shaped, generate_normal_ear(rng, sex, age_group)
            left_profile = CATEGORY_NORMAL
        else:
            right, left = base, shaped
            right_profile = CATEGORY_NORMAL
        if profile_name == 'SNHL_Mumps' and rng.random() < MUMPS_PROFOUND_PROBABILITY:
            logger.debug("Mumps case forced to no response on the %s side", affected_side)
            if affected_side == 'R':
                right = force_no_response(right)
            else:
                left = force_no_response(left)
    else:
        right = shaped
        left = correlate_ear(rng, shaped, sex, age_group, rho=config.interaural_correlation)

    right = finalize_ear(reconcile_ear(right, PROFILES[right_profile], severity), right_profile)
    left = finalize_ear(reconcile_ear(left, PROFILES[left_profile], severity), left_profile)

    if profile_name == 'SNHL_Age' and age_group in PTA_NORMAL_AGE_GROUPS:
        if four_frequency_pta(right) <= PTA_NORMAL_LIMIT:
            right_profile = CATEGORY_NORMAL
        if four_frequency_pta(left) <= PTA_NORMAL_LIMIT:
            left_profile = CATEGORY_NORMAL

    meta = CaseMeta(
        seed=seed,
        sex=sex,
        age_group=age_group,
        profile=profile_name,
        severity=severity,
        affected_side=affected_side,
        right_profile=right_profile,
        left_profile=left_profile,
        requested_profile=opts.profile,
        profile_fallback=fallback,
    )
    narrative = build_narrative(meta, profile)
    return assemble_case(meta, right, left, history=narrative.history,
                         narrative=narrative, rng=rng)


def _ear_rows_from_levels(ac_levels, bc_levels):
    rows = []
    bc_levels = bc_levels or {}
    for freq in FREQUENCIES:
        if freq not in ac_levels:
            raise ValueError(f"Missing AC threshold at {freq} Hz")
        ac_limit = presentation_limit(Transducer.AC, freq)
        ac = ac_levels[freq]
        so_ac = ac is None or ac > ac_limit
        ac = ac_limit if so_ac else _validated_level(ac, freq)
        bc, so_bc = None, False
        if is_bc_frequency(freq):
            bc_limit = presentation_limit(Transducer.BC, freq)
            bc = bc_levels.get(freq, ac_levels[freq] if ac_levels[freq] is not None else None)
            so_bc = bc is None or bc > bc_limit
            bc = bc_limit if so_bc else _validated_level(bc, freq)
        elif freq in bc_levels:
            raise ValueError(f"Bone conduction is not tested at {freq} Hz")
        rows.append(EarRow(freq=freq, ac=ac, bc=bc, so_ac=so_ac, so_bc=so_bc))
    return rows


def _validated_level(level, freq):
    if not -10 <= level <= 120:
        raise ValueError(f"Level {level} dB HL at {freq} Hz is outside -10..120")
    return round_to_step(level)


def case_from_thresholds(right_ac, left_ac, right_bc=None, left_bc=None, sex='Female',
                         age_group='50s', profile=None, right_profile=None,
                         left_profile=None, affected_side=None, history='',
                         chief_complaint='', seed=0, case_id=None):
    """
    Build a case from explicit thresholds (preset or imported cases).

    Args:
        right_ac (dict): {frequency: level} for every audiogram frequency.
            ``None`` or a level above the presentation limit means no response.
        left_ac (dict): Same for the left ear
        right_bc (dict, optional): Bone levels at 250..4000 Hz; defaults to AC
        left_bc (dict, optional): Same for the left ear
        profile (str, optional): Catalog profile name or a free label
        right_profile (str, optional): Per-ear profile, defaults to ``profile``
        left_profile (str, optional): Per-ear profile, defaults to ``profile``
        history (str): Free-text history
        seed (int): Seed for tympanogram jitter and DPOAE recordings

    Returns:
        Case
    """
    if sex not in SEXES:
        raise ValueError(f"sex must be one of {SEXES}, got {sex!r}")
    if age_group not in AGE_GROUPS:
        raise ValueError(f"age_group must be one of {AGE_GROUPS}, got {age_group!r}")
    if affected_side is not None and affected_side not in SIDES:
        raise ValueError(f"affected_side must be 'R' or 'L', got {affected_side!r}")

    label = profile or 'Custom'
    right_profile = right_profile or label
    left_profile = left_profile or label
    right = reconcile_ear(_ear_rows_from_levels(right_ac, right_bc), get_profile(right_profile))
    left = reconcile_ear(_ear_rows_from_levels(left_ac, left_bc), get_profile(left_profile))
    right = finalize_ear(right, right_profile)
    left = finalize_ear(left, left_profile)

    meta = CaseMeta(seed=int(seed), sex=sex, age_group=age_group, profile=label, severity=0,
                    affected_side=affected_side, right_profile=right_profile,
                    left_profile=left_profile, requested_profile=profile)
    narrative = CaseNarrative(chief_complaint=chief_complaint, history=history)
    return assemble_case(meta, right, left, history=history, narrative=narrative,
                         case_id=case_id)
