"""Scoring of trainee audiograms against case targets."""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..utils.defaults import COMPLETION_ACCURACY
from ..utils.levels import round_half_up, round_to_step


@dataclass(frozen=True)
class ItemScore:
    id: str
    correct: bool
    # Trainee level minus target level, None when nothing was plotted
    delta: Optional[int] = None


@dataclass(frozen=True)
class ScoreReport:
    total: int
    correct: int
    accuracy: int
    per_item: Tuple[ItemScore, ...]
    complete: bool

    def as_dict(self):
        return {
            'total': self.total,
            'correct': self.correct,
            'accuracy': self.accuracy,
            'perItem': [{'id': i.id, 'correct': i.correct, 'delta': i.delta}
                        for i in self.per_item],
        }


def score_item(target, point):
    """
    Score one target.

    Scale-out targets are matched by any scale-out point; other targets
    need a plotted, non-scale-out point at the same 5 dB level.
    """
    if point is None:
        return ItemScore(target.item_id, False, None)
    delta = point.level - target.level
    if target.scale_out:
        return ItemScore(target.item_id, bool(point.scale_out), delta)
    correct = (not point.scale_out) and round_to_step(point.level) == round_to_step(target.level)
    return ItemScore(target.item_id, correct, delta)


def score(session, case=None):
    """
    Compare a session's points with its targets.

    Args:
        session (Session): Trainee session
        case (Case, optional): Case to score against; defaults to the
            session's loaded case

    Returns:
        ScoreReport
    """
    targets = session.targets if case is None or case is session.case else case.targets()
    items = []
    plotted = 0
    for target in targets:
        point = session.point(target.ear, target.transducer, target.frequency)
        if point is not None:
            plotted += 1
        items.append(score_item(target, point))
    total = len(items)
    correct = sum(1 for item in items if item.correct)
    accuracy = round_half_up(correct / total * 100) if total else 0
    complete = total > 0 and (plotted == total or accuracy >= COMPLETION_ACCURACY)
    return ScoreReport(total=total, correct=correct, accuracy=accuracy,
                       per_item=tuple(items), complete=complete)
