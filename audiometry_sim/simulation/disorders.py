"""Catalog of hearing disorder profiles used by the case generator."""
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..utils.defaults import AGE_GROUP_MIDPOINTS

CATEGORY_NORMAL = 'Normal'
CATEGORY_SNHL = 'SNHL'
CATEGORY_CHL = 'CHL'

# History phrases that point to a traumatic ossicular injury
TRAUMA_KEYWORDS = ('trauma', 'blow', 'struck', 'fall', 'injury', 'fracture', 'slap')


@dataclass(frozen=True)
class TympanogramRecipe:
    """Peak parameters of the tympanogram a profile produces."""
    type: str
    peak_pressure: float = 0.0
    peak_compliance: float = 1.1
    sigma: float = 60.0
    # When set, compliance is drawn uniformly from this range
    compliance_range: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class Profile:
    """
    A disorder profile.

    Attributes:
        name (str): Catalog key, e.g. 'CHL_OME'
        category (str): 'Normal', 'SNHL' or 'CHL'
        label (str): Human readable disorder name
        age_range (tuple): Typical onset age in years (min, max)
        female_ratio (float): Probability that a sampled patient is female
        unilateral (bool): Only one ear is affected
        depths (tuple): Shaping depth per severity 0..3 (dB)
        weights (dict): Per-frequency multiplier of the depth
        shape (str): 'weighted', 'age' (octave slope) or 'random' (per-frequency U draw)
        bc_mode (str): 'parallel' (BC follows AC) or 'near_normal'
        carhart_depths (tuple): Bone-conduction notch depth per severity
        carhart_weights (dict): Per-frequency multiplier of the notch depth
        min_abg (dict): Minimum air-bone gap per frequency
        tympanogram (TympanogramRecipe): Middle-ear recipe
    """
    name: str
    category: str
    label: str
    age_range: Tuple[int, int] = (20, 79)
    female_ratio: float = 0.5
    unilateral: bool = False
    depths: Tuple[float, float, float, float] = (0, 0, 0, 0)
    weights: Dict[int, float] = field(default_factory=dict)
    shape: str = 'weighted'
    bc_mode: str = 'parallel'
    carhart_depths: Tuple[float, float, float, float] = (0, 0, 0, 0)
    carhart_weights: Dict[int, float] = field(default_factory=dict)
    min_abg: Dict[int, int] = field(default_factory=dict)
    tympanogram: TympanogramRecipe = TympanogramRecipe('A')
    # Narrative material
    episodes: Tuple[str, ...] = ()
    audiogram_note: str = ''
    tympanometry_note: str = ''
    reflex_note: str = ''
    oae_note: str = ''

    @property
    def is_snhl(self):
        return self.category == CATEGORY_SNHL

    @property
    def is_chl(self):
        return self.category == CATEGORY_CHL

    def depth(self, severity):
        return self.depths[clamp_severity(severity)]

    def carhart_depth(self, severity):
        return self.carhart_depths[clamp_severity(severity)]

    def ac_offset(self, severity, frequency, rng=None):
        """
        Air-conduction shift this profile applies at a frequency.

        Args:
            severity (int): 0..3
            frequency (int): Audiogram frequency in Hz
            rng (np.random.Generator): Needed by profiles with a random shape

        Returns:
            float: Offset in dB to add to the normal-ear level
        """
        severity = clamp_severity(severity)
        if self.shape == 'age':
            alpha = (0, 3, 6, 9)[severity]
            k_lf = 0.25 + 0.1 * severity
            khz = frequency / 1000
            oct_hf = max(0.0, math.log2(khz))
            oct_lf = math.log2(1 / khz) if khz < 1 else 0.0
            offset = alpha * oct_hf + alpha * k_lf * oct_lf
            if frequency == 1000:
                offset *= 0.1
            return offset
        if self.shape == 'random':
            return self.depth(severity) * (0.7 + 0.3 * rng.random())
        return self.weights.get(frequency, 0.0) * self.depth(severity)

    def carhart_offset(self, severity, frequency):
        return self.carhart_weights.get(frequency, 0.0) * self.carhart_depth(severity)

    def eligible_age_groups(self):
        """Age groups whose decade overlaps the profile's typical age range."""
        low, high = self.age_range
        groups = []
        for group, midpoint in AGE_GROUP_MIDPOINTS.items():
            decade_start = midpoint - 5
            if decade_start <= high and decade_start + 9 >= low:
                groups.append(group)
        return groups


def clamp_severity(severity):
    return min(3, max(0, int(round(severity or 0))))


_TYMP_A = TympanogramRecipe('A', peak_pressure=0.0, peak_compliance=1.1, sigma=60.0)

PROFILES = {
    'Normal': Profile(
        name='Normal',
        category=CATEGORY_NORMAL,
        label='Normal hearing',
        episodes=(
            'Referred for a routine hearing check',
            'No subjective hearing difficulty',
        ),
        audiogram_note='Thresholds within the age-appropriate normal range.',
        tympanometry_note='Type A',
        reflex_note='Present',
        oae_note='DPOAE present across frequencies',
    ),
    'SNHL_Age': Profile(
        name='SNHL_Age',
        category=CATEGORY_SNHL,
        label='Age-related hearing loss (presbycusis)',
        age_range=(60, 85),
        shape='age',
        episodes=(
            'Gradually increasing difficulty following conversation',
            'High frequencies affected first, both ears',
            'Otoscopy unremarkable (type A)',
        ),
        audiogram_note='Sloping high-frequency loss, slowly progressive.',
        tympanometry_note='Type A',
        reflex_note='Usually present, may be reduced in older listeners',
        oae_note='Absent from the high frequencies downwards',
    ),
    'SNHL_NoiseNotch': Profile(
        name='SNHL_NoiseNotch',
        category=CATEGORY_SNHL,
        label='Noise-induced hearing loss',
        age_range=(30, 60),
        female_ratio=0.3,
        depths=(0, 14, 24, 32),
        weights={2000: 0.3, 4000: 1.1, 8000: 0.3},
        episodes=(
            'Long-term occupational noise exposure (factory, construction)',
            'Bilateral, symmetrical hearing loss',
            'C5 dip centred on 4 kHz',
            'Otoscopy unremarkable (type A)',
        ),
        audiogram_note='Notch around 4 kHz with recovery at 8 kHz.',
        tympanometry_note='Type A',
        reflex_note='Generally present',
        oae_note='DPOAE reduced early, useful as an early indicator',
    ),
    'SNHL_Meniere': Profile(
        name='SNHL_Meniere',
        category=CATEGORY_SNHL,
        label="Meniere's disease",
        age_range=(30, 50),
        female_ratio=0.7,
        unilateral=True,
        depths=(0, 10, 20, 35),
        weights={125: 1.0, 250: 1.0, 500: 0.8, 1000: 0.4, 2000: 0.2, 4000: 0.1, 8000: 0.05},
        episodes=(
            'Recurrent attacks of rotatory vertigo lasting minutes to hours',
            'Fluctuating low-frequency sensorineural hearing loss',
            'Low-pitched roaring tinnitus',
            'Hearing worsens during attacks and recovers in remission',
        ),
        audiogram_note='Low-frequency or flat loss, fluctuating with attacks.',
        tympanometry_note='Type A',
        reflex_note='Usually present, may vary during attacks',
        oae_note='DPOAE may drop during attacks and recover afterwards',
    ),
    'SNHL_Sudden': Profile(
        name='SNHL_Sudden',
        category=CATEGORY_SNHL,
        label='Sudden sensorineural hearing loss',
        age_range=(40, 60),
        unilateral=True,
        depths=(0, 25, 45, 65),
        shape='random',
        episodes=(
            'Woke up with sudden hearing loss in one ear',
            'Acute onset yesterday or a few days ago',
            'Tinnitus and dizziness may accompany',
            'Otoscopy unremarkable (type A)',
        ),
        audiogram_note='Variable configuration, usually acute and one-sided.',
        tympanometry_note='Type A',
        reflex_note='Often absent (cochlear)',
        oae_note='DPOAE usually absent, a prognostic indicator',
    ),
    'SNHL_Mumps': Profile(
        name='SNHL_Mumps',
        category=CATEGORY_SNHL,
        label='Mumps deafness',
        age_range=(3, 25),
        unilateral=True,
        depths=(0, 40, 65, 85),
        weights={f: 1.0 for f in (125, 250, 500, 1000, 2000, 4000, 8000)},
        episodes=(
            'Severe hearing loss in one ear after mumps',
            'Little recovery over time',
            'Otoscopy unremarkable (type A)',
        ),
        audiogram_note='Severe to profound loss, usually one-sided.',
        tympanometry_note='Type A',
        reflex_note='Absent',
        oae_note='Absent (irreversible outer hair cell damage)',
    ),
    'CHL_OME': Profile(
        name='CHL_OME',
        category=CATEGORY_CHL,
        label='Otitis media with effusion',
        age_range=(2, 12),
        depths=(0, 12, 20, 28),
        weights={125: 0.6, 250: 0.9, 500: 1.0, 1000: 0.9, 2000: 0.5, 4000: 0.3, 8000: 0.2},
        bc_mode='near_normal',
        min_abg={250: 10, 500: 15, 1000: 15, 2000: 8},
        tympanogram=TympanogramRecipe('C', peak_pressure=-150.0, peak_compliance=1.0, sigma=60.0),
        episodes=(
            'Hearing dropped after an upper respiratory infection, no ear pain',
            'Persistent nasal obstruction and aural fullness',
            'Background of allergic rhinitis, gradually worsening',
            'Dull tympanic membrane with a visible fluid line',
        ),
        audiogram_note='Mild to moderate conductive loss, low to mid frequencies.',
        tympanometry_note='Type B (flat) or type C (negative pressure)',
        reflex_note='Absent or reduced (conductive)',
        oae_note='DPOAE refer at all frequencies (conductive)',
    ),
    'CHL_AOM': Profile(
        name='CHL_AOM',
        category=CATEGORY_CHL,
        label='Acute otitis media',
        age_range=(1, 12),
        depths=(0, 15, 25, 35),
        weights={125: 0.7, 250: 1.0, 500: 1.0, 1000: 0.8, 2000: 0.4, 4000: 0.2, 8000: 0.1},
        bc_mode='near_normal',
        min_abg={250: 15, 500: 20, 1000: 15, 2000: 10, 4000: 5},
        tympanogram=TympanogramRecipe('B', peak_pressure=-200.0, peak_compliance=0.3, sigma=80.0),
        episodes=(
            'Severe ear pain, worse at night',
            'Fever above 38 degrees',
            'Ear pain escalated quickly after a common cold',
            'Red, bulging tympanic membrane without light reflex',
        ),
        audiogram_note='Mild to moderate conductive loss, low to mid frequencies.',
        tympanometry_note='Type B (flat) or type C (negative pressure)',
        reflex_note='Absent or reduced (conductive)',
        oae_note='DPOAE refer at all frequencies (conductive)',
    ),
    'CHL_Otosclerosis': Profile(
        name='CHL_Otosclerosis',
        category=CATEGORY_CHL,
        label='Otosclerosis',
        age_range=(20, 40),
        female_ratio=0.7,
        depths=(0, 12, 22, 30),
        weights={125: 0.5, 250: 0.9, 500: 1.0, 1000: 0.8, 2000: 0.4, 4000: 0.2, 8000: 0.1},
        bc_mode='near_normal',
        carhart_depths=(0, 6, 10, 15),
        carhart_weights={1000: 0.3, 2000: 1.0, 4000: 0.2},
        min_abg={250: 10, 500: 15, 1000: 15, 2000: 5},
        tympanogram=TympanogramRecipe('As', peak_pressure=0.0, peak_compliance=0.5, sigma=60.0),
        episodes=(
            'Slowly progressive hearing loss in a young to middle-aged adult',
            'Family history of hearing loss',
            'Otoscopy largely normal, type As, reflexes absent',
        ),
        audiogram_note='Low-frequency conductive loss with a Carhart notch near 2 kHz.',
        tympanometry_note='Type A or As (reduced compliance)',
        reflex_note='Typically absent',
        oae_note='DPOAE likely refer (conductive)',
    ),
    'CHL_OssicularDiscontinuity': Profile(
        name='CHL_OssicularDiscontinuity',
        category=CATEGORY_CHL,
        label='Ossicular discontinuity',
        age_range=(5, 70),
        female_ratio=0.4,
        unilateral=True,
        depths=(0, 30, 30, 30),
        weights={125: 0.8, 250: 1.0, 500: 1.0, 1000: 0.9, 2000: 0.9, 4000: 0.7, 8000: 0.5},
        bc_mode='near_normal',
        min_abg={250: 20, 500: 25, 1000: 25, 2000: 20, 4000: 15},
        tympanogram=TympanogramRecipe('Ad', peak_pressure=0.0, peak_compliance=3.5, sigma=60.0,
                                      compliance_range=(3.0, 4.0)),
        episodes=(
            'Hearing loss after a blow to the ear during sport',
            'Struck on the ear while cleaning it with a cotton bud',
            'Otoscopy mostly normal, type Ad, large air-bone gap',
        ),
        audiogram_note='Conductive loss with a large air-bone gap.',
        tympanometry_note='Type Ad (increased compliance)',
        reflex_note='Usually absent',
        oae_note='Not measurable or abnormal (poor middle-ear transmission)',
    ),
}

PROFILE_NAMES = tuple(PROFILES)
UNILATERAL_PROFILES = frozenset(name for name, p in PROFILES.items() if p.unilateral)
DEFAULT_FALLBACK_PROFILE = 'SNHL_Age'


def get_profile(name):
    """Return the catalog profile for a name, or None if it is unknown."""
    return PROFILES.get(name)


def has_trauma_history(text):
    lowered = (text or '').lower()
    return any(keyword in lowered for keyword in TRAUMA_KEYWORDS)
