"""
Procedures module for trainee sessions and reference testing.

This module contains implementations of:
- Trainee session state (points, log, keyboard plotting)
- Modified Hughson-Westlake examiner with plateau masking
"""

from .session import Session, ThresholdPoint, LogEntry, commit_point
from .hughson_westlake import ModifiedHughsonWestlakeExaminer

__all__ = [
    "Session",
    "ThresholdPoint",
    "LogEntry",
    "commit_point",
    "ModifiedHughsonWestlakeExaminer",
]
