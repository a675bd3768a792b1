"""Response model for masked pure-tone audiometry."""
import logging
import math
from dataclasses import dataclass
from enum import Enum

from ..utils.config import EngineConfig
from ..utils.defaults import NO_MASKING, OVER_MASKING_MARGIN
from ..utils.levels import clamp_input_level, presentation_limit
from .case import Ear, Transducer

logger = logging.getLogger(__name__)


class EngineWarning(str, Enum):
    OVER_MASKING = 'over_masking'
    CROSS_HEARING = 'cross_hearing'


@dataclass(frozen=True)
class Stimulus:
    """
    A tone presented by the trainee.

    Levels outside -15..120 dB HL are brought into range on construction.
    """
    ear: Ear
    transducer: Transducer
    frequency: int
    level: float
    masked: bool = False
    masker_level: float = NO_MASKING

    def __post_init__(self):
        object.__setattr__(self, 'ear', Ear(self.ear))
        object.__setattr__(self, 'transducer', Transducer(self.transducer))
        object.__setattr__(self, 'level', clamp_input_level(self.level))
        object.__setattr__(self, 'masker_level', clamp_input_level(self.masker_level))


@dataclass(frozen=True)
class ResponseResult:
    respond: bool
    cross_hearing: bool
    over_masking: bool
    effective_mask: float
    leak: float
    nte_bc: float
    # Test-ear threshold after any over-masking shift (inf when undefined)
    te_threshold: float = math.inf

    @property
    def warnings(self):
        found = []
        if self.over_masking:
            found.append(EngineWarning.OVER_MASKING)
        if self.cross_hearing:
            found.append(EngineWarning.CROSS_HEARING)
        return found


UNKNOWN_TARGET = ResponseResult(respond=False, cross_hearing=False, over_masking=False,
                                effective_mask=math.inf, leak=-math.inf, nte_bc=math.inf)


def _or_inf(value):
    return math.inf if value is None else value


class ResponseEngine:
    """Decides whether the simulated patient responds to a stimulus."""

    def __init__(self, case, config=None):
        self.case = case
        self.config = config or EngineConfig()

    def evaluate(self, stimulus):
        """
        Evaluate one stimulus presentation.

        The tone reaches the non-test cochlea attenuated by the interaural
        attenuation. It is heard there unless the masker (or, without
        masking, the non-test bone threshold) is higher. A masker more than
        50 dB above the test-ear bone threshold crosses back and shifts the
        test-ear threshold by the excess.

        Args:
            stimulus (Stimulus): Tone, ear, transducer and masker settings

        Returns:
            ResponseResult
        """
        te = stimulus.ear
        freq = stimulus.frequency
        te_thr = self.case.threshold(te, stimulus.transducer, freq)
        if te_thr is None:
            logger.debug("No threshold for %s %s %d Hz", te.value, stimulus.transducer.value, freq)
            return UNKNOWN_TARGET

        # The audiometer cannot emit above its presentation limit
        level = min(stimulus.level, presentation_limit(stimulus.transducer, freq))
        masker = stimulus.masker_level
        te_bc = _or_inf(self.case.cochlear_threshold(te, freq))
        nte_bc = _or_inf(self.case.cochlear_threshold(te.opposite, freq))

        leak = level - self.config.ia(stimulus.transducer, freq)
        effective_mask = masker if stimulus.masked and masker > nte_bc else nte_bc

        mask_limit = te_bc + OVER_MASKING_MARGIN
        te_thr_eff = te_thr
        over_masking = stimulus.masked and masker > mask_limit
        if stimulus.masked:
            te_thr_eff = te_thr + max(0, masker - mask_limit)

        cross_hearing = leak >= effective_mask
        respond = level >= te_thr_eff or cross_hearing

        return ResponseResult(
            respond=respond,
            cross_hearing=cross_hearing and self.config.show_cross_hearing_warning,
            over_masking=over_masking and self.config.show_over_masking_warning,
            effective_mask=effective_mask,
            leak=leak,
            nte_bc=nte_bc,
            te_threshold=te_thr_eff,
        )

    def responds(self, stimulus):
        return self.evaluate(stimulus).respond

    def commit_level(self, stimulus):
        """
        Level to record for a stimulus and whether it is a scale-out.

        At or above the presentation limit the patient is re-tested at the
        limit; no response there records a scale-out point at the limit.

        Returns:
            tuple: (level, scale_out) or None when the transducer cannot be
            used at this frequency
        """
        limit = presentation_limit(stimulus.transducer, stimulus.frequency)
        if limit is None:
            return None
        if stimulus.level >= limit:
            at_limit = Stimulus(stimulus.ear, stimulus.transducer, stimulus.frequency, limit,
                                stimulus.masked, stimulus.masker_level)
            if not self.evaluate(at_limit).respond:
                return limit, True
        return min(stimulus.level, limit), False


def evaluate_response(case, stimulus, config=None):
    """Evaluate a stimulus against a case (see :meth:`ResponseEngine.evaluate`)."""
    return ResponseEngine(case, config).evaluate(stimulus)
