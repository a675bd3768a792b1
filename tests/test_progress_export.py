"""Tests for learning progress and log export"""
import csv
import json
from datetime import datetime, timezone

from audiometry_sim.analysis.export import (
    LOG_COLUMNS,
    MEASUREMENT_COLUMNS,
    export_log,
    log_to_dataframe,
    measurement_records,
    write_log_csv,
)
from audiometry_sim.analysis.progress import LearningProgress
from audiometry_sim.analysis.scoring import ScoreReport, score
from audiometry_sim.simulation.response_model import Stimulus

from .conftest import FIXED_TIME

LATER = datetime(2024, 4, 2, 10, 0, tzinfo=timezone.utc)


def report(correct, total=24, complete=None):
    accuracy = round(correct / total * 100)
    if complete is None:
        complete = accuracy >= 80
    return ScoreReport(total=total, correct=correct, accuracy=accuracy, per_item=(),
                       complete=complete)


def logged_session(make_session, masking_case):
    session = make_session(masking_case)
    session.commit_point(Stimulus('R', 'AC', 1000, 5))
    session.commit_point(Stimulus('L', 'AC', 1000, 80, masked=True, masker_level=60))
    return session


def test_record_result_tracks_history():
    progress = LearningProgress().start_session(FIXED_TIME)
    progress.record_result('case-1', report(12), when=FIXED_TIME, measurements=10)
    assert progress.completed_cases == []
    assert progress.case_accuracy['case-1'].completed_at is None

    progress.record_result('case-1', report(24), when=LATER, measurements=5)
    entry = progress.case_accuracy['case-1']
    assert entry.accuracy == 100
    assert entry.history == [50, 100]
    assert entry.completed_at == LATER.isoformat()
    assert progress.completed_cases == ['case-1']
    assert progress.total_measurements == 15
    assert progress.total_sessions == 1
    assert progress.last_session_date == LATER.isoformat()

    progress.record_result('case-1', report(24), when=LATER)
    assert progress.completed_cases == ['case-1']


def test_random_case_streak():
    progress = LearningProgress()
    progress.record_result('a', report(24), random_case=True)
    progress.record_result('b', report(24), random_case=True)
    progress.record_result('c', report(20), random_case=True)
    assert progress.random_cases == 3
    assert progress.random_correct == 2
    assert progress.streak == 0
    assert progress.max_streak == 2


def test_average_accuracy():
    progress = LearningProgress()
    assert progress.average_accuracy() == 0.0
    progress.record_result('a', report(24))
    progress.record_result('b', report(12))
    assert progress.average_accuracy() == 75.0


def test_progress_json_keys_and_round_trip(tmp_path):
    progress = LearningProgress().start_session(FIXED_TIME)
    progress.record_result('case-1', report(24), when=FIXED_TIME, measurements=3,
                           random_case=True)
    data = json.loads(progress.to_json())
    assert set(data) == {'totalSessions', 'totalMeasurements', 'completedCases',
                         'caseAccuracy', 'lastSessionDate', 'randomCasePerformance'}
    assert data['caseAccuracy']['case-1']['completedAt'] == FIXED_TIME.isoformat()

    path = progress.save(tmp_path / 'progress' / 'student.json')
    assert LearningProgress.load(path) == progress


def test_load_missing_progress(tmp_path):
    assert LearningProgress.load(tmp_path / 'missing.json') == LearningProgress()


def test_progress_from_session_score(make_session, masking_case):
    session = logged_session(make_session, masking_case)
    result = score(session)
    progress = LearningProgress().record_result(masking_case.case_id, result,
                                                measurements=len(session.log))
    assert progress.case_accuracy['masking'].correct == 2
    assert progress.total_measurements == 2


def test_export_log_rows(make_session, masking_case):
    rows = export_log(logged_session(make_session, masking_case))
    assert [row['index'] for row in rows] == [1, 2]
    assert set(rows[0]) == set(LOG_COLUMNS)
    assert rows[0]['maskerLevel_dB'] == '-'
    assert rows[1]['maskerLevel_dB'] == 60
    assert rows[1]['ear'] == 'L'
    assert rows[1]['dB'] == 80
    assert rows[0]['timestamp'] == FIXED_TIME.isoformat()


def test_log_dataframe(make_session, masking_case):
    df = log_to_dataframe(logged_session(make_session, masking_case))
    assert list(df.columns) == LOG_COLUMNS
    assert len(df) == 2
    assert list(df['freq_Hz']) == [1000, 1000]


def test_empty_log_dataframe(make_session, masking_case):
    df = log_to_dataframe(make_session(masking_case))
    assert df.empty
    assert list(df.columns) == LOG_COLUMNS


def test_write_log_csv(tmp_path, make_session, masking_case):
    path = write_log_csv(logged_session(make_session, masking_case), tmp_path / 'out' / 'log.csv')
    with open(path, newline='') as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 2
    assert rows[0]['maskerLevel_dB'] == '-'
    assert rows[1]['masked'] == 'True'


def test_measurement_records(make_session, masking_case):
    session = logged_session(make_session, masking_case)
    records = measurement_records(session, 'student-1', 'session-9', created_at=LATER)
    assert len(records) == 2
    assert set(records[0]) == set(MEASUREMENT_COLUMNS)
    assert records[0]['mask_level'] is None
    assert records[1]['mask_level'] == 60
    assert records[1]['case_id'] == 'masking'
    assert records[1]['created_at'] == LATER.isoformat()
