"""Export of measurement logs for reports and persistence."""
import csv
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

LOG_COLUMNS = ['index', 'timestamp', 'ear', 'transducer', 'freq_Hz', 'dB',
               'masked', 'maskerLevel_dB', 'scaleOut']

MEASUREMENT_COLUMNS = ['user_id', 'ear', 'transducer', 'freq', 'db', 'masked',
                       'mask_level', 'so', 'case_id', 'session_id', 'created_at']


def _log_entries(session_or_log):
    return getattr(session_or_log, 'log', session_or_log)


def export_log(session):
    """
    CSV-compatible rows of the response log.

    Args:
        session (Session or list): Session, or its list of LogEntry

    Returns:
        list: One dict per entry with the LOG_COLUMNS keys; the masker
        column holds '-' when the tone was unmasked
    """
    rows = []
    for entry in _log_entries(session):
        rows.append({
            'index': entry.index,
            'timestamp': entry.timestamp.isoformat(),
            'ear': entry.ear.value,
            'transducer': entry.transducer.value,
            'freq_Hz': entry.frequency,
            'dB': entry.level,
            'masked': entry.masked,
            'maskerLevel_dB': '-' if entry.masker_level is None else entry.masker_level,
            'scaleOut': entry.scale_out,
        })
    return rows


def log_to_dataframe(session):
    """Response log as a pandas DataFrame indexed like the CSV export."""
    return pd.DataFrame(export_log(session), columns=LOG_COLUMNS)


def write_log_csv(session, path):
    """Write the response log to a CSV file and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=LOG_COLUMNS)
        writer.writeheader()
        writer.writerows(export_log(session))
    return path


def measurement_records(session, user_id, session_id, created_at=None):
    """
    Records for a measurements table, one per logged response.

    Args:
        session (Session or list): Session, or its list of LogEntry
        user_id (str): Student identifier
        session_id (str): Training session identifier
        created_at (datetime, optional): Insert time, defaults to now (UTC)

    Returns:
        list: dicts with the MEASUREMENT_COLUMNS keys
    """
    created_at = (created_at or datetime.now(timezone.utc)).isoformat()
    records = []
    for entry in _log_entries(session):
        records.append({
            'user_id': user_id,
            'ear': entry.ear.value,
            'transducer': entry.transducer.value,
            'freq': entry.frequency,
            'db': entry.level,
            'masked': entry.masked,
            'mask_level': entry.masker_level,
            'so': entry.scale_out,
            'case_id': entry.case_id,
            'session_id': session_id,
            'created_at': created_at,
        })
    return records
