"""Trainee session state: stimulus controls, plotted points and response log."""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Tuple

from ..simulation.case import Ear, Target, Transducer
from ..simulation.response_model import ResponseEngine, ResponseResult, Stimulus
from ..utils.config import EngineConfig
from ..utils.defaults import DISPLAY_MAX_LEVEL, DISPLAY_MIN_LEVEL, LEVEL_STEP, NO_MASKING
from ..utils.levels import (
    clamp,
    clamp_input_level,
    presentation_limit,
    round_to_step,
    step_frequency,
)

logger = logging.getLogger(__name__)

DEFAULT_STIMULUS = Stimulus(Ear.RIGHT, Transducer.AC, 1000, 30)

KEY_ACTIONS = {
    'ArrowUp': ('level', -LEVEL_STEP),
    'ArrowDown': ('level', LEVEL_STEP),
    'ArrowLeft': ('frequency', -1),
    'ArrowRight': ('frequency', 1),
}
KEY_ALIASES = {'up': 'ArrowUp', 'down': 'ArrowDown', 'left': 'ArrowLeft', 'right': 'ArrowRight'}


@dataclass(frozen=True)
class ThresholdPoint:
    ear: Ear
    transducer: Transducer
    masked: bool
    frequency: int
    level: int
    scale_out: bool = False

    @property
    def key(self):
        return (self.ear, self.transducer, self.masked, self.frequency)


@dataclass(frozen=True)
class LogEntry:
    index: int
    timestamp: datetime
    ear: Ear
    transducer: Transducer
    frequency: int
    level: int
    masked: bool
    # None when no masker was presented
    masker_level: Optional[float]
    scale_out: bool
    case_id: str


@dataclass(frozen=True)
class SessionSnapshot:
    stimulus: Stimulus
    points: Tuple[ThresholdPoint, ...]
    log: Tuple[LogEntry, ...]
    targets: Tuple[Target, ...]
    lamp: bool
    case_id: Optional[str]


def _point_order(point):
    return (point.ear.value, point.transducer.value, point.frequency, point.masked)


def build_targets(case, engine):
    """
    Reference thresholds for a case.

    A target is flagged ``masked`` when an unmasked tone at the target
    level would be heard by the other ear.
    """
    targets = []
    for target in case.targets():
        tone = Stimulus(target.ear, target.transducer, target.frequency, target.level)
        result = engine.evaluate(tone)
        needs_masking = result.leak >= result.effective_mask
        targets.append(replace(target, masked=needs_masking))
    return targets


class Session:
    """
    Mutable state of one trainee working on one case.

    Every transition returns the session itself so calls can be chained;
    observers read :meth:`snapshot`.
    """

    def __init__(self, case=None, config=None, clock=None):
        self.config = config or EngineConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.case = None
        self.engine = None
        self.stimulus = DEFAULT_STIMULUS
        self._points = {}
        self.log = []
        self.targets = []
        self.lamp = False
        self._lamp_suppressed = False
        if case is not None:
            self.load_case(case)

    # -- case lifecycle ----------------------------------------------------

    def load_case(self, case):
        """Start working on a case, clearing points, log and controls."""
        self.case = case
        self.engine = ResponseEngine(case, self.config)
        self.stimulus = DEFAULT_STIMULUS
        self._points = {}
        self.log = []
        self.targets = build_targets(case, self.engine)
        self.lamp = False
        self._lamp_suppressed = False
        logger.debug("Loaded case %s with %d targets", case.case_id, len(self.targets))
        return self

    @property
    def points(self):
        return sorted(self._points.values(), key=_point_order)

    def point(self, ear, transducer, frequency, masked=None):
        """Plotted point at (ear, transducer, frequency), optionally of one mode."""
        ear, transducer = Ear(ear), Transducer(transducer)
        modes = (False, True) if masked is None else (masked,)
        for mode in modes:
            found = self._points.get((ear, transducer, mode, frequency))
            if found is not None:
                return found
        return None

    # -- stimulus controls -------------------------------------------------

    def set_stimulus(self, **changes):
        """Update stimulus fields (ear, transducer, frequency, level, masked, masker_level)."""
        self.stimulus = replace(self.stimulus, **changes)
        return self

    def switch_masking(self, on=None):
        """
        Toggle masking (or force it with ``on``).

        Switching on lifts a negative masker to 0 dB; switching off parks it
        at the no-masking level. A change of mode deletes the point of the
        previous mode at the current ear, transducer and frequency.
        """
        on = (not self.stimulus.masked) if on is None else bool(on)
        if on != self.stimulus.masked:
            stimulus = self.stimulus
            self._points.pop((stimulus.ear, stimulus.transducer, not on, stimulus.frequency), None)
        masker = self.stimulus.masker_level
        if on:
            masker = max(0, masker)
        else:
            masker = NO_MASKING
        return self.set_stimulus(masked=on, masker_level=masker)

    def present(self, stimulus=None) -> ResponseResult:
        """Present a tone and light the response lamp on a response."""
        stimulus = stimulus or self.stimulus
        result = self.engine.evaluate(stimulus)
        self.lamp = result.respond
        return result

    def response_lamp(self):
        """
        Lamp state for the current stimulus.

        The frame right after a frequency change is dark.
        """
        if self._lamp_suppressed:
            self._lamp_suppressed = False
            self.lamp = False
            return False
        return self.present().respond

    # -- points ------------------------------------------------------------

    def commit_point(self, stimulus=None):
        """
        Plot the current (or given) stimulus as a threshold point.

        The level is quantized to 5 dB and bounded by the presentation limit;
        a tone at or above the limit without response becomes a scale-out
        point. The opposite masking mode at the same place is replaced, and
        the presentation is logged when the patient responds at the plotted
        level.
        """
        if self.case is None:
            raise RuntimeError("No case loaded")
        stimulus = stimulus or self.stimulus
        if self.case.threshold(stimulus.ear, stimulus.transducer, stimulus.frequency) is None:
            logger.warning("Ignoring commit for %s %s at %d Hz: no threshold defined",
                           stimulus.ear.value, stimulus.transducer.value, stimulus.frequency)
            return self

        level, scale_out = self.engine.commit_level(stimulus)
        level = int(clamp(round_to_step(level), DISPLAY_MIN_LEVEL, DISPLAY_MAX_LEVEL))
        point = ThresholdPoint(stimulus.ear, stimulus.transducer, stimulus.masked,
                               stimulus.frequency, level, scale_out)
        opposite = (stimulus.ear, stimulus.transducer, not stimulus.masked, stimulus.frequency)
        self._points.pop(opposite, None)
        self._points[point.key] = point

        result = self.engine.evaluate(replace(stimulus, level=level))
        if result.respond:
            self.log.append(LogEntry(
                index=len(self.log) + 1,
                timestamp=self.clock(),
                ear=stimulus.ear,
                transducer=stimulus.transducer,
                frequency=stimulus.frequency,
                level=level,
                masked=stimulus.masked,
                masker_level=stimulus.masker_level if stimulus.masked else None,
                scale_out=scale_out,
                case_id=self.case.case_id,
            ))
        logger.debug("Committed %s", point)
        return self

    add_or_replace_point = commit_point

    def remove_point(self, ear, transducer, frequency, masked=None):
        """Remove the point(s) at (ear, transducer, frequency)."""
        ear, transducer = Ear(ear), Transducer(transducer)
        modes = (False, True) if masked is None else (masked,)
        for mode in modes:
            self._points.pop((ear, transducer, mode, frequency), None)
        return self

    def clear_all(self):
        self._points = {}
        return self

    # -- keyboard auto-plotting ------------------------------------------

    def step_level(self, delta):
        """Change the level by ``delta`` dB and plot the result."""
        level = clamp_input_level(self.stimulus.level + delta)
        limit = presentation_limit(self.stimulus.transducer, self.stimulus.frequency)
        if limit is not None:
            level = min(level, limit)
        self.set_stimulus(level=level)
        return self.commit_point()

    def step_frequency(self, direction):
        """Move to the neighbouring frequency (skipping BC-disabled ones for BC)."""
        bone = self.stimulus.transducer is Transducer.BC
        frequency = step_frequency(self.stimulus.frequency, direction, bone=bone)
        if frequency != self.stimulus.frequency:
            self._lamp_suppressed = True
            self.lamp = False
        return self.set_stimulus(frequency=frequency)

    def handle_key(self, key):
        """Apply an arrow key: Up/Down change level and plot, Left/Right change frequency."""
        action = KEY_ACTIONS.get(KEY_ALIASES.get(key, key))
        if action is None:
            return self
        kind, amount = action
        if kind == 'level':
            return self.step_level(amount)
        return self.step_frequency(amount)

    # -- observation -------------------------------------------------------

    def snapshot(self):
        return SessionSnapshot(
            stimulus=self.stimulus,
            points=tuple(self.points),
            log=tuple(self.log),
            targets=tuple(self.targets),
            lamp=self.lamp,
            case_id=self.case.case_id if self.case is not None else None,
        )


def commit_point(session, stimulus=None):
    """Functional form of :meth:`Session.commit_point`."""
    return session.commit_point(stimulus)
