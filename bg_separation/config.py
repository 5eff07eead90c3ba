"""
Centralized configuration constants for the background separation engine.

Ground rules:
- RGBA uint8 in, RGBA uint8 out
- One pipeline per image, no shared state between images
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Classifier flags. Weights are integer percent so a score equal to the
# threshold compares exactly equal after dividing by 100.
EDGE_MARGIN = 5
WEIGHT_EDGE = 40
WEIGHT_EXTREME_BRIGHTNESS = 30
WEIGHT_LOW_SATURATION = 20
WEIGHT_UNIFORM_NEIGHBORHOOD = 10

BRIGHTNESS_HIGH = 240
BRIGHTNESS_LOW = 15
SATURATION_LOW = 0.1

UNIFORM_RADIUS = 3
# Euclidean RGB distance; compared squared to stay in integers.
UNIFORM_COLOR_DISTANCE = 30

# Mask feathering (5x5 box).
FEATHER_RADIUS = 2
# RGB boost applied to soft-edge pixels: 1 + (1 - mask/255) * FEATHER_CONTRAST_BOOST
FEATHER_CONTRAST_BOOST = 0.2

# autoEnhance: percent of histogram clipped at each end.
AUTOCONTRAST_CUTOFF = 1

# Caller-facing defaults.
DEFAULT_TOLERANCE = 50
DEFAULT_FEATHER_EDGES = True
DEFAULT_OUTPUT_FORMAT = "png"
DEFAULT_QUALITY = 90

# Progress curve for a batch: items share the first 80%, then finalize.
PROGRESS_ITEMS_SPAN = 80.0
PROGRESS_FINALIZE = 90.0
PROGRESS_DONE = 100.0

# Worker pool size; 0 or unset means one worker per CPU core.
MAX_WORKERS = int(os.getenv("BG_SEPARATION_MAX_WORKERS", "0")) or (os.cpu_count() or 1)

LOG_LEVEL = os.getenv("BG_SEPARATION_LOG_LEVEL", "INFO")
