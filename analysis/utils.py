from __future__ import annotations


# Minimum number of poses (and of extracted primary-joint samples) before any
# rep detection is attempted. Shorter buffers always yield zero reps.
MIN_HISTORY_FRAMES = 15

# Frame spacing used to approximate rep duration; assumes a 30 fps tracker.
FRAME_DURATION_MS = 33.33

# Smoothing windows (samples)
DEFAULT_SMOOTHING_WINDOW = 3
DETECTION_SMOOTHING_WINDOW = 5

# Peak/valley amplitude thresholds, in the tracked joint's coordinate units.
# The effective threshold is max(MIN_PEAK_HEIGHT, RELATIVE_PEAK_HEIGHT * range).
MIN_PEAK_HEIGHT = 0.01
RELATIVE_PEAK_HEIGHT = 0.10

DEFAULT_MIN_PEAK_DISTANCE = 5

# Arms shorter than this are treated as degenerate by the angle calculator
MIN_VECTOR_NORM = 1e-12
