"""Tests for batch generation and summaries"""
import math

import pytest

from audiometry_sim.analysis.batch import (
    cases_to_dataframe,
    generate_batch,
    interaural_correlation,
    summarize_batch,
)
from audiometry_sim.utils.config import EngineConfig


@pytest.fixture(scope="module")
def batch():
    return generate_batch(30, seed=100)


def test_batch_uses_consecutive_seeds(batch):
    assert [case.meta.seed for case in batch] == list(range(100, 130))
    assert generate_batch(3, seed=100) == batch[:3]


def test_batch_options_are_fixed():
    cases = generate_batch(5, profile='CHL_OME', sex='Male')
    assert {case.meta.profile for case in cases} == {'CHL_OME'}
    assert {case.meta.sex for case in cases} == {'Male'}


def test_negative_batch_rejected():
    with pytest.raises(ValueError):
        generate_batch(-1)


def test_cases_to_dataframe(batch):
    df = cases_to_dataframe(batch)
    assert len(df) == 30 * 2 * 7
    assert {'case_id', 'profile', 'ear', 'freq', 'ac', 'bc', 'so_ac'} <= set(df.columns)
    assert df['bc'].isna().sum() == 30 * 2 * 2


def test_summarize_batch(batch):
    summary = summarize_batch(batch)
    assert summary['n_cases'].sum() == 30
    assert set(summary.index) == {case.meta.profile for case in batch}
    assert summarize_batch([]).empty


def test_interaural_correlation_is_positive():
    cases = generate_batch(40, seed=0, profile='SNHL_NoiseNotch')
    r, p = interaural_correlation(cases)
    assert r > 0.5
    assert p < 0.05


def test_correlation_needs_bilateral_cases():
    cases = generate_batch(3, profile='SNHL_Sudden')
    r, p = interaural_correlation(cases)
    assert math.isnan(r) and math.isnan(p)


def test_batch_with_priors():
    config = EngineConfig(sample_with_priors=True)
    cases = generate_batch(10, seed=7, config=config, profile='CHL_Otosclerosis')
    assert all(case.meta.age_group in ('20s', '30s', '40s') for case in cases)
