"""
Constants and default values for the profile view counter.

Values are organized by category:
- Server defaults
- Counter store limits
- Badge rendering
- Resource locations
"""
import os

# Server defaults
HOST_LOCAL = "127.0.0.1"
HOST_ALL_INTERFACES = "0.0.0.0"
PORT_DEFAULT = 3030

# Counter store
MAX_COUNT = 2 ** 64 - 1  # counts are unsigned 64-bit
MAX_KEY_LENGTH = 128
STORE_TIMEOUT_DEFAULT = 5.0  # seconds to wait for a per-key lock
COUNTS_SUBDIR = "counts"

# Badge rendering
MAX_VIEWS_DEFAULT = 10_400  # count at which the milestone color tops out
FILL_MODE_MILESTONE = "milestone"
FILL_MODE_RANDOM = "random"
FILL_MODES = (FILL_MODE_MILESTONE, FILL_MODE_RANDOM)
SVG_CONTENT_TYPE = "image/svg+xml; charset=utf-8"
NO_CACHE = "max-age=0, no-cache, no-store, must-revalidate"

# Glyph geometry (pixels) for the digits half of the badge
LABEL_WIDTH = 45
DIGIT_WIDTH = 7
VALUE_PADDING = 10
# Digit colors used when every palette entry matches the badge color
DIGIT_FALLBACK_LIGHT = "#ffffff"
DIGIT_FALLBACK_DARK = "#000000"

# Resource locations
RESOURCES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "resources")
TEMPLATE_FILENAME = "view_count_template.svg"
PALETTE_FILENAME = "colors.txt"
