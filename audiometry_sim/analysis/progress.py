"""Per-student learning progress, stored as a JSON blob."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CaseAccuracy:
    total: int
    correct: int
    accuracy: int
    completed_at: Optional[str] = None
    # Accuracy of every attempt, oldest first
    history: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            'total': self.total,
            'correct': self.correct,
            'accuracy': self.accuracy,
            'completedAt': self.completed_at,
            'history': list(self.history),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            total=int(data.get('total', 0)),
            correct=int(data.get('correct', 0)),
            accuracy=int(data.get('accuracy', 0)),
            completed_at=data.get('completedAt'),
            history=[int(a) for a in data.get('history', [])],
        )


@dataclass
class LearningProgress:
    """
    Progress of one student across cases.

    Serialized with the camelCase keys used by the persisted blob:
    totalSessions, totalMeasurements, completedCases, caseAccuracy and
    lastSessionDate. Random-case streaks are tracked alongside.
    """
    total_sessions: int = 0
    total_measurements: int = 0
    completed_cases: List[str] = field(default_factory=list)
    case_accuracy: Dict[str, CaseAccuracy] = field(default_factory=dict)
    last_session_date: Optional[str] = None
    random_cases: int = 0
    random_correct: int = 0
    streak: int = 0
    max_streak: int = 0

    def start_session(self, when=None):
        when = when or datetime.now(timezone.utc)
        self.total_sessions += 1
        self.last_session_date = when.isoformat()
        return self

    def record_result(self, case_id, report, when=None, measurements=0, random_case=False):
        """
        Store a scoring result for a case.

        Args:
            case_id (str): Case identifier
            report (ScoreReport): Result of :func:`score`
            when (datetime, optional): Completion time, defaults to now (UTC)
            measurements (int): Number of logged measurements in the session
            random_case (bool): Count the attempt towards random-case streaks

        Returns:
            LearningProgress: self
        """
        when = when or datetime.now(timezone.utc)
        stamp = when.isoformat()
        previous = self.case_accuracy.get(case_id)
        history = list(previous.history) if previous else []
        history.append(report.accuracy)
        self.case_accuracy[case_id] = CaseAccuracy(
            total=report.total,
            correct=report.correct,
            accuracy=report.accuracy,
            completed_at=stamp if report.complete else (previous.completed_at if previous else None),
            history=history,
        )
        if report.complete and case_id not in self.completed_cases:
            self.completed_cases.append(case_id)
        self.total_measurements += measurements
        self.last_session_date = stamp
        if random_case:
            self.random_cases += 1
            if report.complete and report.accuracy == 100:
                self.random_correct += 1
                self.streak += 1
                self.max_streak = max(self.max_streak, self.streak)
            else:
                self.streak = 0
        logger.debug("Recorded %s: %d%% (%d/%d)", case_id, report.accuracy,
                     report.correct, report.total)
        return self

    def average_accuracy(self):
        if not self.case_accuracy:
            return 0.0
        return sum(a.accuracy for a in self.case_accuracy.values()) / len(self.case_accuracy)

    def to_dict(self):
        return {
            'totalSessions': self.total_sessions,
            'totalMeasurements': self.total_measurements,
            'completedCases': list(self.completed_cases),
            'caseAccuracy': {k: v.to_dict() for k, v in self.case_accuracy.items()},
            'lastSessionDate': self.last_session_date,
            'randomCasePerformance': {
                'totalCases': self.random_cases,
                'correctCases': self.random_correct,
                'streak': self.streak,
                'maxStreak': self.max_streak,
            },
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        random_perf = data.get('randomCasePerformance') or {}
        return cls(
            total_sessions=int(data.get('totalSessions', 0)),
            total_measurements=int(data.get('totalMeasurements', 0)),
            completed_cases=list(data.get('completedCases', [])),
            case_accuracy={k: CaseAccuracy.from_dict(v)
                           for k, v in (data.get('caseAccuracy') or {}).items()},
            last_session_date=data.get('lastSessionDate'),
            random_cases=int(random_perf.get('totalCases', 0)),
            random_correct=int(random_perf.get('correctCases', 0)),
            streak=int(random_perf.get('streak', 0)),
            max_streak=int(random_perf.get('maxStreak', 0)),
        )

    def to_json(self):
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, text):
        return cls.from_dict(json.loads(text))

    def save(self, path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding='utf-8')
        return path

    @classmethod
    def load(cls, path):
        """Load progress from a file; a missing file yields empty progress."""
        path = Path(path)
        if not path.exists():
            logger.info("No progress file at %s, starting fresh", path)
            return cls()
        return cls.from_json(path.read_text(encoding='utf-8'))
