"""Constants for the response recorder."""

AUDIO_BIT_DEPTH = 16
AUDIO_CHANNELS_MONO = 1
PCM_MAX = (2 ** (AUDIO_BIT_DEPTH - 1)) - 1
WAV_HEADER_BYTES = 44

DEFAULT_SAMPLE_RATE = 48_000
DEFAULT_CHUNK_FRAMES = 2048
PREFERRED_INPUT_CHANNELS = 2

DB_MIN = -120.0
DB_MAX = 0.0
METER_TIME_CONSTANT = 0.4

TRUE_PEAK_OVERSAMPLE = 4
ANALYSIS_FLOOR = 1e-8
LOW_AMPLITUDE_THRESHOLD = 0.001

UNKNOWN_MIC_NAME = "Unknown Microphone"
