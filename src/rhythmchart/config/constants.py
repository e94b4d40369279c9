"""
Default values and fixed tables used across the package.
"""

# Audio framing
SAMPLE_RATE = 44100
FRAME_SIZE = 1024
HOP_SIZE = 512

SUPPORTED_AUDIO_FORMATS = ['.mp3', '.wav', '.flac', '.ogg', '.m4a', '.aac', '.opus']

# Energy bands used for lane logic (Hz). None means up to Nyquist.
FREQ_BANDS = {
    'bass': (0.0, 250.0),
    'mid': (250.0, 4000.0),
    'treble': (4000.0, None),
}

# Onset detection
ONSET_THRESHOLD_K = 1.5
MIN_ONSET_SPACING_MS = 30.0
MAX_FILTER_FRAMES = 3
AVG_PAST_FRAMES = 15
AVG_FUTURE_FRAMES = 5
LOG_COMPRESSION = 1.0
MIN_NOVELTY = 1e-3

# Tempo estimation
MIN_BPM = 60.0
MAX_BPM = 200.0
DEFAULT_BPM = 120.0
TEMPO_RESOLUTION_MS = 10.0
MIN_TEMPO_CONFIDENCE = 0.1
MIN_TEMPO_ONSETS = 4
SUBDIVISIONS_PER_BEAT = 4

# Pitch tracking
PITCH_SMOOTHING_ALPHA = 0.3

# Chart generation
GENERATOR_VERSION = "1.0.0"
NUM_LANES = 5
MAX_NOTES = 3000
BONUS_INTERVAL_RANGE_SEC = (30.0, 60.0)
BASS_RATIO_THRESHOLD = 0.5

# Gameplay
PERFECT_WINDOW_BASE_MS = 45.0
GOOD_WINDOW_BASE_MS = 110.0
REFERENCE_BPM = 120.0
WINDOW_SCALING_EXPONENT = 1.0
LOOKAHEAD_MS = 2000.0
POINTS_PER_HIT = 50
MAX_MULTIPLIER = 4
COMBO_PER_MULTIPLIER_STEP = 10
LIGHTNING_LANE_DURATION_MS = 5000.0
DOUBLE_POINTS_DURATION_MS = 5000.0
NOTE_MAGNET_DURATION_MS = 3000.0
NOTE_MAGNET_WINDOW_SCALE = 1.5
SHIELD_CHARGES = 2

# Grades by minimum accuracy percentage, best first
GRADE_THRESHOLDS = [
    ('S', 95.0),
    ('A', 90.0),
    ('B', 80.0),
    ('C', 70.0),
    ('D', 60.0),
]

# Processing limits
DURATION_CAP_MS = 30 * 60 * 1000

# Cache
DEFAULT_CACHE_DIR = "~/.cache/rhythmchart/charts"
CACHE_RECORD_VERSION = 1
GENERATION_WORKERS = 2
CANCEL_POLL_INTERVAL_SEC = 0.05
