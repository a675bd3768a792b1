"""
Analysis module for trainee results and generated cases.

This module contains functions for:
- Scoring trainee audiograms
- Learning progress records
- Log export
- Batch statistics of generated cases
"""

from .scoring import score, ScoreReport
from .progress import LearningProgress
from .export import export_log, log_to_dataframe, write_log_csv, measurement_records

__all__ = [
    "score",
    "ScoreReport",
    "LearningProgress",
    "export_log",
    "log_to_dataframe",
    "write_log_csv",
    "measurement_records",
]
