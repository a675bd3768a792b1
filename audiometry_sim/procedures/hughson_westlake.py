"""
Reference examiner using the modified Hughson-Westlake procedure with plateau masking.
"""
# Standard library imports
import logging
from typing import Dict, List, Optional, Tuple, Union

# Local imports
from ..simulation.case import Ear, Transducer
from ..simulation.response_model import Stimulus
from ..utils.defaults import (
    BC_FREQUENCIES,
    DISPLAY_MIN_LEVEL,
    FREQUENCIES,
    MASKER_MAX_LEVEL,
    NO_MASKING,
)
from ..utils.levels import clamp, presentation_limit

logger = logging.getLogger(__name__)

DEFAULT_STARTING_LEVEL = 30
MAX_ITERATIONS = 60
# Initial masker sits this far above the non-test ear's air threshold
MASKING_SAFETY_MARGIN = 10
MASKER_STEP = 10
# Air-bone gap above which bone conduction is re-tested with masking
BC_MASKING_GAP = 10

ThresholdType = Union[int, str]  # level or 'Not Reached'
ProgressionType = List[Tuple[int, bool, str, str]]  # (level, response, ratio, phase)


class ModifiedHughsonWestlakeExaminer:
    """
    Deterministic examiner that plots a complete audiogram into a Session.

    Thresholds are searched with the 10-down / 5-up bracketing rule and
    accepted after two ascending responses at the same level. Ears that
    may be cross-heard are re-tested with masking, raising the masker in
    10 dB steps until the threshold stops moving (plateau).
    """

    def __init__(self, session, test_frequencies=None, starting_level=DEFAULT_STARTING_LEVEL,
                 max_iterations=MAX_ITERATIONS):
        """
        Initialize the examiner.

        Args:
            session (Session): Session with a loaded case; points are committed into it
            test_frequencies (list): Frequencies to test, all audiogram frequencies by default
            starting_level (int): Familiarization level in dB HL
            max_iterations (int): Presentation budget per threshold search
        """
        if session.case is None:
            raise ValueError("session has no case loaded")
        self.session = session
        self.test_frequencies = list(test_frequencies or FREQUENCIES)
        unknown = [f for f in self.test_frequencies if f not in FREQUENCIES]
        if unknown:
            raise ValueError(f"Unknown test frequencies: {unknown}")
        self.starting_level = starting_level
        self.max_iterations = max_iterations

        self.unmasked = {}
        self.progression_patterns = {}

    def _respond(self, stimulus):
        return self.session.present(stimulus).respond

    @staticmethod
    def _adjust_level(level, max_level):
        return clamp(level, DISPLAY_MIN_LEVEL, max_level)

    def _starting_level(self, make_stimulus, max_level):
        """Familiarization: ascend from the starting level until a response."""
        test_level = self._adjust_level(self.starting_level, max_level)
        max_level_count = 0
        while not self._respond(make_stimulus(test_level)):
            if test_level == max_level:
                max_level_count += 1
                if max_level_count >= 2:
                    return 'Not Reached'
            if test_level < 80:
                test_level = self._adjust_level(test_level + 10, max_level)
            else:
                test_level = self._adjust_level(test_level + 5, max_level)
        return self._adjust_level(test_level - 10, max_level)

    def find_threshold(self, ear, transducer, frequency, masked=False, masker_level=NO_MASKING):
        """
        Bracket the threshold for one ear, transducer and frequency.

        Returns:
            tuple: (threshold, progression) where threshold is a level in
            dB HL or 'Not Reached'
        """
        ear, transducer = Ear(ear), Transducer(transducer)
        max_level = presentation_limit(transducer, frequency)

        def make_stimulus(level):
            return Stimulus(ear, transducer, frequency, level, masked, masker_level)

        progression = []
        test_level = self._starting_level(make_stimulus, max_level)
        if test_level == 'Not Reached':
            return 'Not Reached', progression

        ascending = {}
        phase = 'descending'
        max_level_count = 0
        for _ in range(self.max_iterations):
            response = self._respond(make_stimulus(test_level))
            if test_level == max_level and not response:
                max_level_count += 1
                if max_level_count >= 2:
                    return 'Not Reached', progression

            if phase == 'ascending':
                hits, tests = ascending.get(test_level, (0, 0))
                ascending[test_level] = (hits + int(response), tests + 1)
            hits, tests = ascending.get(test_level, (0, 0))
            progression.append((test_level, response, f"{hits}/{tests}", phase))

            if phase == 'ascending' and hits >= 2 and hits / tests > 0.5:
                return test_level, progression
            if response and test_level == DISPLAY_MIN_LEVEL:
                # Heard at the bottom of the scale
                return test_level, progression

            if response:
                phase = 'descending'
                test_level = self._adjust_level(test_level - 10, max_level)
            else:
                phase = 'ascending'
                test_level = self._adjust_level(test_level + 5, max_level)

        logger.warning("Maximum iterations reached at %s %s %d Hz",
                       ear.value, transducer.value, frequency)
        return 'Not Reached', progression

    def _commit(self, ear, transducer, frequency, threshold, masked=False,
                masker_level=NO_MASKING):
        max_level = presentation_limit(transducer, frequency)
        level = max_level if threshold == 'Not Reached' else threshold
        self.session.commit_point(Stimulus(ear, transducer, frequency, level, masked, masker_level))

    def _level_or_max(self, threshold, transducer, frequency):
        if threshold == 'Not Reached':
            return presentation_limit(transducer, frequency)
        return threshold

    def _plateau(self, ear, transducer, frequency, start_masker):
        """
        Raise the masker until two consecutive thresholds agree.

        Returns:
            tuple: (threshold, masker_level)
        """
        masker = clamp(start_masker, 0, MASKER_MAX_LEVEL)
        previous, _ = self.find_threshold(ear, transducer, frequency, True, masker)
        while masker + MASKER_STEP <= MASKER_MAX_LEVEL:
            next_masker = masker + MASKER_STEP
            current, _ = self.find_threshold(ear, transducer, frequency, True, next_masker)
            if current == previous:
                return current, masker
            previous, masker = current, next_masker
        return previous, masker

    def _needs_ac_masking(self, ear, frequency, threshold):
        config = self.session.config
        level = self._level_or_max(threshold, Transducer.AC, frequency)
        if frequency in BC_FREQUENCIES:
            bone = [self._level_or_max(self.unmasked[(e, Transducer.BC, frequency)],
                                       Transducer.BC, frequency) for e in Ear]
            reference = min(bone)
        else:
            reference = self._level_or_max(self.unmasked[(ear.opposite, Transducer.AC, frequency)],
                                           Transducer.AC, frequency)
        return level - config.ia(Transducer.AC, frequency) >= reference

    def _needs_bc_masking(self, ear, frequency):
        ac = self._level_or_max(self.unmasked[(ear, Transducer.AC, frequency)],
                                Transducer.AC, frequency)
        bc = self._level_or_max(self.unmasked[(ear, Transducer.BC, frequency)],
                                Transducer.BC, frequency)
        return ac - bc > BC_MASKING_GAP

    def perform_test(self):
        """
        Test both ears by air and bone conduction and plot the results.

        Returns:
            dict: {(ear, transducer, frequency): (threshold, masked, masker_level)}
        """
        bc_frequencies = [f for f in self.test_frequencies if f in BC_FREQUENCIES]
        for ear in Ear:
            for freq in self.test_frequencies:
                threshold, progression = self.find_threshold(ear, Transducer.AC, freq)
                self.unmasked[(ear, Transducer.AC, freq)] = threshold
                self.progression_patterns[(ear, Transducer.AC, freq)] = progression
            for freq in bc_frequencies:
                threshold, progression = self.find_threshold(ear, Transducer.BC, freq)
                self.unmasked[(ear, Transducer.BC, freq)] = threshold
                self.progression_patterns[(ear, Transducer.BC, freq)] = progression

        results = {}
        for ear in Ear:
            for freq in self.test_frequencies:
                results[(ear, Transducer.AC, freq)] = self._final_threshold(ear, Transducer.AC, freq)
            for freq in bc_frequencies:
                results[(ear, Transducer.BC, freq)] = self._final_threshold(ear, Transducer.BC, freq)

        for (ear, transducer, freq), (threshold, masked, masker) in results.items():
            self._commit(ear, transducer, freq, threshold, masked, masker)
        return results

    def _final_threshold(self, ear, transducer, frequency):
        threshold = self.unmasked[(ear, transducer, frequency)]
        if transducer is Transducer.AC:
            needs_masking = self._needs_ac_masking(ear, frequency, threshold)
        else:
            needs_masking = self._needs_bc_masking(ear, frequency)
        if not needs_masking:
            return threshold, False, NO_MASKING

        nte_ac = self._level_or_max(self.unmasked[(ear.opposite, Transducer.AC, frequency)],
                                    Transducer.AC, frequency)
        masked_threshold, masker = self._plateau(ear, transducer, frequency,
                                                 nte_ac + MASKING_SAFETY_MARGIN)
        logger.debug("%s %s %d Hz: unmasked %s, masked %s at masker %s",
                     ear.value, transducer.value, frequency, threshold, masked_threshold, masker)
        return masked_threshold, True, masker


def run_reference_examiner(session, **kwargs) -> Dict[Tuple[Ear, Transducer, int], tuple]:
    """Run the reference examiner on a session and return its results."""
    return ModifiedHughsonWestlakeExaminer(session, **kwargs).perform_test()


def examiner_thresholds(results) -> Dict[Tuple[Ear, Transducer, int], Optional[int]]:
    """Plain threshold levels from examiner results ('Not Reached' -> None)."""
    return {key: (None if value[0] == 'Not Reached' else value[0])
            for key, value in results.items()}
