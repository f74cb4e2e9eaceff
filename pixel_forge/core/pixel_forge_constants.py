#!/usr/bin/env python3
"""
Constants for Pixel Forge
Centralizes all magic numbers and configuration values
"""

# ============================================================================
# CANVAS CONSTANTS
# ============================================================================

# Canvas dimensions
MIN_CANVAS_SIZE = 1
MAX_CANVAS_SIZE = 256
DEFAULT_CANVAS_SIZE = 16  # Fallback when a dimension is not numeric
CANVAS_SIZES = [16, 32, 64]  # Buckets that always exist

# Canonical transparent cell string (also used in JSON manifests)
TRANSPARENT_STRING = "rgba(0, 0, 0, 0)"

# ============================================================================
# TOOL CONSTANTS
# ============================================================================

MIN_BRUSH_SIZE = 1
MAX_BRUSH_SIZE = 5

# Brush size level -> stamp radius in cells
BRUSH_RADIUS_BY_SIZE = {
    1: 0,
    2: 1,
    3: 2,
    4: 2.6,
    5: 3.4,
}

# ============================================================================
# PALETTE CONSTANTS
# ============================================================================

BASE_PALETTE = [
    "#111827",
    "#ef4444",
    "#f97316",
    "#facc15",
    "#22c55e",
    "#06b6d4",
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#f3f4f6",
]

CUSTOM_PALETTE_SLOTS = 6  # Custom colors grow in groups of this size

# ============================================================================
# UNDO CONSTANTS
# ============================================================================

UNDO_STACK_SIZE = 80
UNDO_COMPRESSION_AGE = 20  # Snapshots older than this many steps are compressed

# ============================================================================
# ANIMATION CONSTANTS
# ============================================================================

DEFAULT_FPS = 8
MIN_FPS = 1
MAX_FPS = 60
MIN_PLAYBACK_INTERVAL_MS = 16  # ~60 FPS

# ============================================================================
# EXPORT CONSTANTS
# ============================================================================

GIF_MIN_FRAME_DELAY_MS = 20
GIF_MAX_PALETTE_SIZE = 256
GIF_ALPHA_THRESHOLD = 128  # Alpha below this is treated as fully transparent

# Cursor (.cur) container layout
CUR_HEADER_SIZE = 6
CUR_DIRECTORY_ENTRY_SIZE = 16
CUR_IMAGE_OFFSET = CUR_HEADER_SIZE + CUR_DIRECTORY_ENTRY_SIZE  # 22
CUR_RESOURCE_TYPE = 2  # 1 = icon, 2 = cursor

# Characters that may not appear in exported file names
ILLEGAL_FILENAME_CHARS = '\\/:"*?<>|'

# ============================================================================
# FILE MANAGEMENT CONSTANTS
# ============================================================================

MAX_RECENT_FILES = 10
STORAGE_VERSION = 1

# ============================================================================
# TIMING CONSTANTS
# ============================================================================

STATUS_MESSAGE_TIMEOUT = 3000  # Status message duration in milliseconds
