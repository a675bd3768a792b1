"""Tests for the trainee session"""
import pytest

from audiometry_sim.procedures.session import DEFAULT_STIMULUS, commit_point
from audiometry_sim.simulation.case import Ear, Transducer
from audiometry_sim.simulation.response_model import Stimulus

from .conftest import FIXED_TIME


def test_targets_flag_masking(make_session, masking_case):
    session = make_session(masking_case)
    targets = {t.item_id: t for t in session.targets}
    assert len(targets) == 24
    assert targets['L-AC-1000'].masked
    assert not targets['R-AC-1000'].masked
    assert targets['L-BC-1000'].masked
    assert not targets['R-BC-1000'].masked
    assert targets['L-AC-125'].scale_out
    assert targets['L-AC-125'].level == 70


def test_scale_out_commit(make_session, scale_out_case):
    session = make_session(scale_out_case)
    session.set_stimulus(ear=Ear.LEFT, transducer=Transducer.AC, frequency=250, level=100)
    session.commit_point()
    point = session.point('L', 'AC', 250)
    assert point.level == 90
    assert point.scale_out
    assert session.log == []


def test_commit_logs_response(make_session, masking_case):
    session = make_session(masking_case)
    session.set_stimulus(level=5)
    session.commit_point()
    assert len(session.log) == 1
    entry = session.log[0]
    assert entry.index == 1
    assert entry.timestamp == FIXED_TIME
    assert entry.ear is Ear.RIGHT
    assert entry.level == 5
    assert entry.masker_level is None
    assert not entry.scale_out
    assert entry.case_id == 'masking'


def test_commit_without_response_is_not_logged(make_session, masking_case):
    session = make_session(masking_case)
    stimulus = Stimulus('L', 'AC', 1000, 70, masked=True, masker_level=60)
    session.commit_point(stimulus)
    assert session.point('L', 'AC', 1000).level == 70
    assert session.log == []


def test_commit_replaces_opposite_mode(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('L', 'AC', 1000, 55))
    session.commit_point(Stimulus('L', 'AC', 1000, 80, masked=True, masker_level=60))
    assert session.point('L', 'AC', 1000, masked=False) is None
    point = session.point('L', 'AC', 1000)
    assert point.masked and point.level == 80
    assert len(session.points) == 1


def test_commit_quantizes_level(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('R', 'AC', 1000, 12))
    assert session.point('R', 'AC', 1000).level == 10
    session.commit_point(Stimulus('R', 'AC', 1000, -15))
    assert session.point('R', 'AC', 1000).level == -10


def test_bone_commit_at_disabled_frequency_is_ignored(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('R', 'BC', 125, 30))
    session.commit_point(Stimulus('R', 'BC', 8000, 30))
    assert session.points == []
    assert session.log == []


def test_functional_commit_point(make_session, masking_case):
    session = make_session(masking_case)
    commit_point(session, Stimulus('R', 'BC', 500, 5))
    assert session.point('R', 'BC', 500).level == 5


def test_remove_and_clear(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('R', 'AC', 500, 5))
    session.commit_point(Stimulus('R', 'AC', 1000, 5))
    session.remove_point('R', 'AC', 500)
    assert session.point('R', 'AC', 500) is None
    assert session.point('R', 'AC', 1000) is not None
    session.clear_all()
    assert session.points == []


def test_switch_masking(make_session, masking_case):
    session = make_session(masking_case)
    session.switch_masking()
    assert session.stimulus.masked
    assert session.stimulus.masker_level == 0
    session.set_stimulus(masker_level=40)
    session.switch_masking(on=True)
    assert session.stimulus.masker_level == 40
    session.switch_masking()
    assert not session.stimulus.masked
    assert session.stimulus.masker_level == -15


def test_switch_masking_deletes_other_mode_point(make_session, masking_case):
    session = make_session(masking_case)
    session.set_stimulus(ear=Ear.LEFT, frequency=1000, level=55).commit_point()
    session.commit_point(Stimulus('L', 'AC', 2000, 55))
    session.switch_masking(on=True)
    assert session.point('L', 'AC', 1000) is None
    assert session.point('L', 'AC', 2000, masked=False) is not None

    session.set_stimulus(level=80, masker_level=60).commit_point()
    session.switch_masking(on=True)
    assert session.point('L', 'AC', 1000, masked=True).level == 80
    session.switch_masking()
    assert session.point('L', 'AC', 1000) is None


def test_step_level_stops_at_presentation_limit(make_session, scale_out_case):
    session = make_session(scale_out_case)
    session.set_stimulus(ear=Ear.LEFT, frequency=125, level=110)
    session.handle_key('ArrowDown')
    assert session.stimulus.level == 70
    point = session.point('L', 'AC', 125)
    assert (point.level, point.scale_out) == (70, True)
    assert not session.response_lamp()
    assert session.log == []


def test_keyboard_auto_plot(make_session, masking_case):
    session = make_session(masking_case)
    session.handle_key('ArrowDown')
    assert session.stimulus.level == DEFAULT_STIMULUS.level + 5
    assert session.point('R', 'AC', 1000).level == 35
    session.handle_key('up')
    assert session.point('R', 'AC', 1000).level == 30
    session.handle_key('ArrowRight')
    assert session.stimulus.frequency == 2000
    session.handle_key('Escape')
    assert session.stimulus.frequency == 2000


def test_bone_frequency_stepping_skips_disabled(make_session, masking_case):
    session = make_session(masking_case)
    session.set_stimulus(transducer=Transducer.BC, frequency=4000)
    session.step_frequency(1)
    assert session.stimulus.frequency == 4000
    session.step_frequency(-1)
    assert session.stimulus.frequency == 2000


def test_response_lamp_dark_after_frequency_change(make_session, masking_case):
    session = make_session(masking_case)
    assert session.response_lamp()
    session.step_frequency(1)
    assert not session.response_lamp()
    assert session.response_lamp()


def test_snapshot(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('R', 'AC', 1000, 5))
    snap = session.snapshot()
    assert snap.case_id == 'masking'
    assert len(snap.points) == 1
    assert len(snap.log) == 1
    assert len(snap.targets) == 24
    session.clear_all()
    assert len(snap.points) == 1


def test_load_case_resets(make_session, masking_case, scale_out_case):
    session = make_session(masking_case)
    session.set_stimulus(level=5).commit_point()
    session.load_case(scale_out_case)
    assert session.points == []
    assert session.log == []
    assert session.stimulus == DEFAULT_STIMULUS
    assert session.snapshot().case_id == 'scale-out'


def test_commit_without_case_raises(make_session):
    session = make_session(None)
    with pytest.raises(RuntimeError):
        session.commit_point()
