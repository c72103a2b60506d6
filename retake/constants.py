"""Constants for retake.

Values that tie the capture, replay and export stages together.  Kept in one
place so the state machine, scheduler and encoder agree on them.
"""

# Controller number of the sustain (damper) pedal.  A press starts a take
# just like a note does.
SUSTAIN_PEDAL_CC = 64

# Extra time after the last replayed event before the replay session reports
# completion, so the final message can flush through the output transport.
REPLAY_SETTLE_MS = 100

# Substituted when an incoming message omits these fields.
DEFAULT_CHANNEL = 0
DEFAULT_VELOCITY = 100

# Shortest note the encoder will write (seconds).
MIN_NOTE_SECONDS = 0.001

# Standard MIDI File layout used for exports.
EXPORT_TICKS_PER_BEAT = 480
EXPORT_BPM = 120
EXPORT_PREFIX = "piano-recording-"
EXPORT_EXTENSION = ".mid"

# Number of MIDI channels addressed by panic().
MIDI_CHANNELS = 16
ALL_SOUND_OFF_CC = 120
ALL_NOTES_OFF_CC = 123
