"""Immutable patient case records produced by the case generator."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from ..utils.defaults import (
    BC_DISABLED_FREQUENCIES,
    FREQUENCIES,
    SCALE_OUT_MARGIN,
)
from ..utils.levels import is_bc_frequency, presentation_limit


class Ear(str, Enum):
    RIGHT = 'R'
    LEFT = 'L'

    @property
    def opposite(self):
        return Ear.LEFT if self is Ear.RIGHT else Ear.RIGHT

    @property
    def side(self):
        """'right' or 'left', as used for per-ear record fields."""
        return 'right' if self is Ear.RIGHT else 'left'


class Transducer(str, Enum):
    AC = 'AC'
    BC = 'BC'


@dataclass(frozen=True)
class EarRow:
    """Thresholds of one ear at one frequency."""
    freq: int
    ac: int
    bc: Optional[int] = None
    so_ac: bool = False
    so_bc: bool = False
    # BC estimate at 125/8000 Hz, consumed by the response engine only
    bc_internal: Optional[int] = None


@dataclass(frozen=True)
class CaseMeta:
    seed: int
    sex: str
    age_group: str
    profile: str
    severity: int
    affected_side: Optional[str]
    right_profile: str
    left_profile: str
    requested_profile: Optional[str] = None
    profile_fallback: bool = False

    def ear_profile(self, ear):
        return self.right_profile if Ear(ear) is Ear.RIGHT else self.left_profile


@dataclass(frozen=True)
class TympanogramEar:
    """Single-peak tympanogram parameters for one ear."""
    type: str
    peak_pressure: float
    peak_compliance: float
    sigma: float


@dataclass(frozen=True)
class Tympanogram:
    type: str
    right: TympanogramEar
    left: TympanogramEar

    def ear(self, ear):
        return self.right if Ear(ear) is Ear.RIGHT else self.left


@dataclass(frozen=True)
class ArtEarConfig:
    """Acoustic reflex inputs for one ear (levels keyed by frequency)."""
    ac_thresholds: Dict[int, int]
    bc_thresholds: Dict[int, int]
    tympanogram_type: str
    peak_pressure: float
    ipsilateral_override: Optional[Dict[int, float]] = None
    contralateral_override: Optional[Dict[int, float]] = None


@dataclass(frozen=True)
class ArtConfig:
    right: ArtEarConfig
    left: ArtEarConfig

    def ear(self, ear):
        return self.right if Ear(ear) is Ear.RIGHT else self.left


@dataclass(frozen=True)
class DpoaeEarConfig:
    # AC threshold mapped to each DPOAE f2 (Hz)
    ac_thresholds: Dict[int, int]
    # 'B' when a conductive component is indicated, 'A' otherwise
    tympanogram_type: str


@dataclass(frozen=True)
class DpoaeConfig:
    right: DpoaeEarConfig
    left: DpoaeEarConfig

    def ear(self, ear):
        return self.right if Ear(ear) is Ear.RIGHT else self.left


@dataclass(frozen=True)
class CaseNarrative:
    chief_complaint: str = ''
    history: str = ''
    findings: str = ''


@dataclass(frozen=True)
class Target:
    """Reference threshold the trainee is expected to find."""
    ear: Ear
    transducer: Transducer
    frequency: int
    level: int
    scale_out: bool = False
    # Unmasked testing at this level would be heard by the other ear
    masked: bool = False

    @property
    def key(self):
        return (self.ear, self.transducer, self.frequency)

    @property
    def item_id(self):
        return f"{self.ear.value}-{self.transducer.value}-{self.frequency}"


@dataclass(frozen=True)
class Case:
    """
    A generated (or hand-entered) patient.

    Attributes:
        meta (CaseMeta): Demographics, profile and generation seed
        right (tuple): EarRow per audiogram frequency for the right ear
        left (tuple): EarRow per audiogram frequency for the left ear
        tympanogram (Tympanogram): Middle-ear pressure/compliance peaks
        art_config (ArtConfig): Acoustic reflex inputs
        dpoae_config (DpoaeConfig): DPOAE inputs
        narrative (CaseNarrative): Chief complaint, history and findings
        case_id (str): Identifier used by logs and progress records
    """
    meta: CaseMeta
    right: Tuple[EarRow, ...]
    left: Tuple[EarRow, ...]
    tympanogram: Tympanogram
    art_config: ArtConfig
    dpoae_config: DpoaeConfig
    narrative: CaseNarrative = field(default_factory=CaseNarrative)
    case_id: str = ''

    def rows(self, ear):
        return self.right if Ear(ear) is Ear.RIGHT else self.left

    def row(self, ear, frequency):
        for row in self.rows(ear):
            if row.freq == frequency:
                return row
        return None

    def threshold(self, ear, transducer, frequency):
        """
        True threshold used by the response engine.

        Scale-out thresholds are placed 50 dB above the presentation limit
        so that no stimulus the audiometer can emit reaches them.

        Returns:
            int or None: Threshold in dB HL, None when undefined
        """
        row = self.row(ear, frequency)
        if row is None:
            return None
        transducer = Transducer(transducer)
        if transducer is Transducer.AC:
            level, scale_out = row.ac, row.so_ac
        else:
            if not is_bc_frequency(frequency) or row.bc is None:
                return None
            level, scale_out = row.bc, row.so_bc
        if scale_out:
            return presentation_limit(transducer, frequency) + SCALE_OUT_MARGIN
        return level

    def cochlear_threshold(self, ear, frequency):
        """Bone (cochlear) threshold, falling back to bc_internal at 125/8000 Hz."""
        if frequency in BC_DISABLED_FREQUENCIES:
            row = self.row(ear, frequency)
            return None if row is None else row.bc_internal
        return self.threshold(ear, Transducer.BC, frequency)

    def targets(self):
        """Unmasked reference thresholds, skipping BC at disabled frequencies."""
        targets = []
        for ear in (Ear.RIGHT, Ear.LEFT):
            for transducer in (Transducer.AC, Transducer.BC):
                for freq in FREQUENCIES:
                    if transducer is Transducer.BC and not is_bc_frequency(freq):
                        continue
                    row = self.row(ear, freq)
                    if row is None:
                        continue
                    if transducer is Transducer.AC:
                        level, scale_out = row.ac, row.so_ac
                    else:
                        level, scale_out = row.bc, row.so_bc
                    if level is None:
                        continue
                    targets.append(Target(ear, transducer, freq, level, scale_out))
        return targets
