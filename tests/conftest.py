"""Fixtures for testing."""
from datetime import datetime, timezone

import pytest

from audiometry_sim.procedures.session import Session
from audiometry_sim.simulation.case_generator import case_from_thresholds
from audiometry_sim.utils.config import EngineConfig
from audiometry_sim.utils.defaults import BC_FREQUENCIES, FREQUENCIES

FIXED_TIME = datetime(2024, 4, 1, 9, 30, tzinfo=timezone.utc)


def flat(level, frequencies=FREQUENCIES, overrides=None):
    """Threshold map with the same level at every frequency."""
    levels = {f: level for f in frequencies}
    levels.update(overrides or {})
    return levels


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def masking_case():
    """Good right ear, poor left ear (left AC 80 / BC 20 dB HL)."""
    return case_from_thresholds(
        right_ac=flat(5),
        left_ac=flat(80),
        right_bc=flat(5, BC_FREQUENCIES),
        left_bc=flat(20, BC_FREQUENCIES),
        case_id='masking',
    )


@pytest.fixture
def scale_out_case():
    """Left ear without response, right ear with a moderate loss."""
    return case_from_thresholds(
        right_ac=flat(60),
        left_ac=flat(None),
        right_bc=flat(55, BC_FREQUENCIES),
        left_bc=flat(None, BC_FREQUENCIES),
        case_id='scale-out',
    )


@pytest.fixture
def examiner_case():
    """Normal right ear, mixed loss on the left (AC 70 / BC 50)."""
    return case_from_thresholds(
        right_ac=flat(10),
        left_ac=flat(70, overrides={125: 65}),
        right_bc=flat(10, BC_FREQUENCIES),
        left_bc=flat(50, BC_FREQUENCIES),
        case_id='examiner',
    )


@pytest.fixture
def make_session():
    """Session factory with a fixed clock.

    >>> def my_test(make_session, masking_case):
    >>>     session = make_session(masking_case)
    """

    def _make_session(case, config=None):
        return Session(case, config=config, clock=lambda: FIXED_TIME)

    return _make_session
