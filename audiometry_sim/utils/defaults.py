"""Constants and default values for masked pure-tone audiometry."""

# Audiogram frequencies (Hz)
FREQUENCIES = (125, 250, 500, 1000, 2000, 4000, 8000)
BC_FREQUENCIES = (250, 500, 1000, 2000, 4000)
BC_DISABLED_FREQUENCIES = frozenset({125, 8000})

# Maximum presentation levels for different conduction types
AIR_CONDUCTION_MAX_LEVELS = {
    125: 70, 250: 90, 500: 110,
    1000: 110, 2000: 110, 4000: 110, 8000: 100
}

BONE_CONDUCTION_MAX_LEVELS = {
    250: 55, 500: 65, 1000: 70,
    2000: 70, 4000: 60
}

# Lowest levels a generated case may carry (clinical floor at 125/250 Hz)
AIR_CONDUCTION_MIN_LEVELS = {
    125: 5, 250: 5, 500: 5,
    1000: 0, 2000: 0, 4000: -5, 8000: -5
}

BONE_CONDUCTION_MIN_LEVELS = {
    250: 5, 500: 5, 1000: 0,
    2000: 0, 4000: -5
}

# SNHL bone conduction "no response" ceiling
SNHL_BC_NO_RESPONSE_LEVELS = {
    250: 55, 500: 65, 1000: 70,
    2000: 70, 4000: 60
}

# Interaural attenuation (dB)
DEFAULT_INTERAURAL_ATTENUATION = {'AC': 50, 'BC': 0}

# Level ranges (dB HL)
LEVEL_STEP = 5
NO_MASKING = -15
MIN_INPUT_LEVEL = -15
MAX_INPUT_LEVEL = 120
DISPLAY_MIN_LEVEL = -10
DISPLAY_MAX_LEVEL = 120
MASKER_MAX_LEVEL = 110

# Scale-out thresholds sit this far above the presentation limit
SCALE_OUT_MARGIN = 50
# Maximum valid masker relative to the test-ear bone threshold
OVER_MASKING_MARGIN = 50

# Plot geometry: one octave spans 20 dB on the audiogram grid
OCTAVE_DB_SPAN = 20

# Patient demographics
SEXES = ('Male', 'Female')
AGE_GROUPS = ('20s', '30s', '40s', '50s', '60s', '70s')
AGE_GROUP_MIDPOINTS = {
    '20s': 25, '30s': 35, '40s': 45,
    '50s': 55, '60s': 65, '70s': 75
}

# Severity steps
SEVERITY_LEVELS = (0, 1, 2, 3)

# Acoustic reflex
ART_FREQUENCIES = (500, 1000, 2000)
ART_NORMAL_THRESHOLDS = {
    500: {'ipsi': 80, 'contra': 85},
    1000: {'ipsi': 75, 'contra': 80},
    2000: {'ipsi': 80, 'contra': 85}
}
REFLEX_ABSENT = 999
REFLEX_ABSENT_BC_LEVEL = 70
REFLEX_NORMAL_BC_LEVEL = 10
REFLEX_ELEVATION_RATIO = 0.25
OSSICULAR_CONTRA_ELEVATION = 15
# Level used for scale-out thresholds when deriving ART/DPOAE inputs
SCALE_OUT_REFERENCE_LEVEL = 110

# DPOAE (f2 in Hz)
DPOAE_FREQUENCIES = (1000, 2000, 3000, 4000, 6000, 8000)
DPOAE_NOISE_FLOOR = {
    1000: (12, 17, 22), 2000: (10, 15, 20), 3000: (8, 13, 18),
    4000: (7, 11.5, 16), 6000: (6, 10, 14), 8000: (6, 10, 14)
}
DPOAE_PASS_SNR = 6.0
DPOAE_PASS_BANDS = 4
DPOAE_HEARING_LOSS_LEVEL = 35
DPOAE_LEVEL_RANGE = (0.0, 30.0)

# Tympanometric classification limits
COMPLIANCE_LOW = 0.8
COMPLIANCE_HIGH = 1.7
PRESSURE_POSITIVE_LIMIT = 50
PRESSURE_NEGATIVE_LIMIT = -150
AD_COMPLIANCE_CAP = 4.0

# Scoring
COMPLETION_ACCURACY = 80
