"""Tests for case generation"""
import pytest

from audiometry_sim.simulation.case import Ear
from audiometry_sim.simulation.case_generator import (
    GenerateOptions,
    case_from_thresholds,
    four_frequency_pta,
    generate_case,
    reconcile_ear,
)
from audiometry_sim.simulation.disorders import PROFILE_NAMES, PROFILES, UNILATERAL_PROFILES
from audiometry_sim.simulation.middle_ear import dpoae_results, reflex_table
from audiometry_sim.simulation.norms import get_band
from audiometry_sim.utils.defaults import (
    AIR_CONDUCTION_MAX_LEVELS,
    AIR_CONDUCTION_MIN_LEVELS,
    BC_FREQUENCIES,
    BONE_CONDUCTION_MAX_LEVELS,
    BONE_CONDUCTION_MIN_LEVELS,
    REFLEX_ABSENT,
    SNHL_BC_NO_RESPONSE_LEVELS,
)

from .conftest import flat

SEEDS = range(12)


def all_cases():
    for profile in PROFILE_NAMES:
        for seed in SEEDS:
            yield generate_case(seed=seed, profile=profile)


CASES = list(all_cases())


@pytest.mark.parametrize("case", CASES, ids=lambda c: c.case_id)
def test_levels_within_limits(case):
    for ear in Ear:
        for row in case.rows(ear):
            assert row.ac % 5 == 0
            assert AIR_CONDUCTION_MIN_LEVELS[row.freq] <= row.ac <= AIR_CONDUCTION_MAX_LEVELS[row.freq]
            if row.freq in BC_FREQUENCIES:
                assert row.bc % 5 == 0
                assert BONE_CONDUCTION_MIN_LEVELS[row.freq] <= row.bc <= BONE_CONDUCTION_MAX_LEVELS[row.freq]
            else:
                assert row.bc is None
                assert row.bc_internal is not None


@pytest.mark.parametrize("case", CASES, ids=lambda c: c.case_id)
def test_bone_never_worse_than_air_plus_5(case):
    for ear in Ear:
        for row in case.rows(ear):
            if row.bc is not None:
                assert row.bc <= row.ac + 5


@pytest.mark.parametrize("case", CASES, ids=lambda c: c.case_id)
def test_conductive_minimum_air_bone_gap(case):
    for ear in Ear:
        profile = PROFILES.get(case.meta.ear_profile(ear))
        if profile is None or not profile.is_chl:
            continue
        for row in case.rows(ear):
            if row.bc is not None:
                assert row.ac - row.bc >= profile.min_abg.get(row.freq, 0)


@pytest.mark.parametrize("case", CASES, ids=lambda c: c.case_id)
def test_sensorineural_bone_no_response(case):
    for ear in Ear:
        ear_profile = case.meta.ear_profile(ear)
        if not (ear_profile.startswith('SNHL_') or case.meta.profile == 'SNHL_Age'):
            continue
        for row in case.rows(ear):
            if row.bc is not None and row.ac > SNHL_BC_NO_RESPONSE_LEVELS[row.freq]:
                assert row.so_bc
                assert row.bc == SNHL_BC_NO_RESPONSE_LEVELS[row.freq]


@pytest.mark.parametrize("age_group", ['20s', '30s', '40s', '50s'])
def test_mild_age_related_ears_graded_normal(age_group):
    for seed in SEEDS:
        case = generate_case(seed=seed, profile='SNHL_Age', age_group=age_group)
        for ear in Ear:
            if four_frequency_pta(case.rows(ear)) <= 25:
                assert case.meta.ear_profile(ear) == 'Normal'
            else:
                assert case.meta.ear_profile(ear) == 'SNHL_Age'


@pytest.mark.parametrize("profile", sorted(UNILATERAL_PROFILES))
def test_unilateral_profiles_affect_one_ear(profile):
    for seed in SEEDS:
        meta = generate_case(seed=seed, profile=profile).meta
        assert meta.severity >= 1
        assert sorted([meta.right_profile, meta.left_profile]) == sorted([profile, 'Normal'])
        diseased = meta.right_profile if meta.affected_side == 'R' else meta.left_profile
        assert diseased == profile


@pytest.mark.parametrize("profile", PROFILE_NAMES)
def test_generation_is_deterministic(profile):
    opts = GenerateOptions(seed=99, profile=profile)
    assert generate_case(opts) == generate_case(opts)


def test_different_seeds_differ():
    assert generate_case(seed=1) != generate_case(seed=2)


def test_normal_young_female():
    case = generate_case(seed=1, sex='Female', age_group='20s', profile='Normal', severity=0)
    for ear in Ear:
        for row in case.rows(ear):
            assert row.ac <= 15
            if row.bc is not None:
                assert row.bc <= row.ac + 5
    assert case.tympanogram.type == 'A'
    table = reflex_table(case.art_config)
    for ear_entry in table.values():
        for side in ear_entry.values():
            assert all(v < REFLEX_ABSENT for v in side.values())
    for result in dpoae_results(case.dpoae_config, case.meta.seed).values():
        assert result.passed
        assert all(snr >= 6 for snr in result.snr)


def test_otosclerosis_carhart_notch():
    for seed in SEEDS:
        case = generate_case(seed=seed, profile='CHL_Otosclerosis', severity=2)
        for ear in Ear:
            bc = {row.freq: row.bc for row in case.rows(ear)}
            assert bc[2000] - bc[1000] >= 5
            assert bc[2000] - bc[4000] >= 3
        assert case.tympanogram.type == 'As'
        table = reflex_table(case.art_config)
        for side in table['R'].values():
            assert all(v == REFLEX_ABSENT for v in side.values())


def test_mumps_unilateral():
    forced = 0
    n_seeds = 40
    for seed in range(n_seeds):
        case = generate_case(seed=seed, profile='SNHL_Mumps', severity=2, affected_side='R')
        assert case.meta.left_profile == 'Normal'
        for row in case.left:
            band = get_band(case.meta.sex, case.meta.age_group, row.freq)
            assert band.minus2sd - 2.5 <= row.ac
            assert row.ac <= max(band.plus2sd + 2.5, AIR_CONDUCTION_MIN_LEVELS[row.freq])
        if all(row.so_ac for row in case.right):
            forced += 1
            assert all(row.ac == AIR_CONDUCTION_MAX_LEVELS[row.freq] for row in case.right)
            for row in case.right:
                if row.freq in BC_FREQUENCIES:
                    assert row.so_bc
                    assert row.bc == SNHL_BC_NO_RESPONSE_LEVELS[row.freq]
    assert 0.2 * n_seeds <= forced <= 0.8 * n_seeds


def test_unknown_profile_falls_back():
    case = generate_case(seed=3, profile='NotAProfile')
    assert case.meta.profile == 'SNHL_Age'
    assert case.meta.profile_fallback is True
    assert case.meta.requested_profile == 'NotAProfile'


@pytest.mark.parametrize(
    "kwargs",
    [{'sex': 'Other'}, {'age_group': '90s'}, {'severity': 4}, {'affected_side': 'X'}, {'seed': -1}],
)
def test_invalid_options_rejected(kwargs):
    with pytest.raises(ValueError):
        GenerateOptions(**kwargs)


def test_missing_seed_is_recorded():
    case = generate_case(profile='Normal')
    assert isinstance(case.meta.seed, int)
    assert generate_case(seed=case.meta.seed, profile='Normal') == case


def test_narrative_is_populated():
    case = generate_case(seed=4, profile='CHL_AOM')
    assert case.narrative.chief_complaint
    assert 'Acute otitis media' in case.narrative.history
    assert 'Tympanometry' in case.narrative.findings


def test_reconcile_is_idempotent():
    for case in CASES[::7]:
        profile = PROFILES.get(case.meta.right_profile)
        once = reconcile_ear(case.right, profile, case.meta.severity)
        assert reconcile_ear(once, profile, case.meta.severity) == once


def test_case_from_thresholds_scale_out():
    case = case_from_thresholds(
        right_ac=flat(20),
        left_ac=flat(100),
        right_bc=flat(15, BC_FREQUENCIES),
        left_bc=flat(None, BC_FREQUENCIES),
    )
    row = case.row(Ear.LEFT, 250)
    assert row.so_ac and row.ac == 90
    assert row.so_bc and row.bc == 55
    assert not case.row(Ear.LEFT, 1000).so_ac
    low = case.row(Ear.LEFT, 125)
    assert low.so_ac
    assert low.bc_internal == low.ac == 70
    assert case.cochlear_threshold(Ear.LEFT, 125) == 70
    assert case.threshold(Ear.LEFT, 'AC', 250) == 140
    assert case.threshold(Ear.LEFT, 'BC', 125) is None


@pytest.mark.parametrize(
    "right_ac, right_bc",
    [
        ({250: 10}, None),
        (flat(10), {125: 10}),
        (flat(-20), None),
    ],
)
def test_case_from_thresholds_rejects_bad_input(right_ac, right_bc):
    with pytest.raises(ValueError):
        case_from_thresholds(right_ac=right_ac, left_ac=flat(10), right_bc=right_bc)
