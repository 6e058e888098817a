"""MIDI status bytes, SMF layout constants and tempo limits."""

# Ticks per quarter note written to the MThd division field.
TICKS_PER_BEAT = 480

# SMF header: format 1 (meta track + event track)
SMF_FORMAT = 1
SMF_TRACK_COUNT = 2

# Channel message status nibbles
NOTE_OFF = 0x80
NOTE_ON = 0x90
POLY_AFTERTOUCH = 0xA0
CONTROL_CHANGE = 0xB0
CHANNEL_PRESSURE = 0xD0

# Fixed release velocity written for every note-off
NOTE_OFF_VELOCITY = 0x40

# Controllers kept while recording
CC_MODULATION = 1
CC_VOLUME = 7
CC_EXPRESSION = 11
CC_SUSTAIN = 64
RECORDED_CONTROLLERS = frozenset({CC_SUSTAIN, CC_MODULATION, CC_VOLUME, CC_EXPRESSION})

# Meta events
META_TIME_SIGNATURE = 0x58
META_SET_TEMPO = 0x51
META_END_OF_TRACK = 0x2F
CLOCKS_PER_CLICK = 0x18
NOTATED_32NDS_PER_BEAT = 0x08

# Tempo / time signature limits
DEFAULT_BPM = 120
MIN_BPM = 20
MAX_BPM = 300
DEFAULT_BEATS_PER_MEASURE = 4
MIN_BEATS_PER_MEASURE = 1
MAX_BEATS_PER_MEASURE = 32
DEFAULT_BEAT_UNIT = 4
VALID_BEAT_UNITS = (1, 2, 4, 8, 16, 32, 64)
# Beat unit entry range; values inside it that are not in VALID_BEAT_UNITS become 4
MIN_BEAT_UNIT = 1
MAX_BEAT_UNIT = 32

# Tap tempo
TAP_HISTORY = 8
TAP_MIN_INTERVAL_MS = 100.0
TAP_MAX_INTERVAL_MS = 3000.0
TAP_RESET_MS = 3000.0

# Export file naming
RECORDING_FILENAME_PREFIX = "piano-recording-"
