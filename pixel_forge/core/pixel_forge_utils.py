#!/usr/bin/env python3
"""
Common utilities for Pixel Forge
Extracted to avoid duplication between modules
"""

# Standard library imports
import logging
import math
import re
from pathlib import Path
from typing import Any, Optional

from .pixel_forge_constants import (
    DEFAULT_CANVAS_SIZE,
    DEFAULT_FPS,
    ILLEGAL_FILENAME_CHARS,
    MAX_BRUSH_SIZE,
    MAX_CANVAS_SIZE,
    MAX_FPS,
    MIN_BRUSH_SIZE,
    MIN_CANVAS_SIZE,
    MIN_FPS,
)
from .pixel_forge_logging import get_logger

# ================================================================================
# Debug Logging Utilities
# ================================================================================

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def debug_log(category: str, message: str, level: str = "INFO") -> None:
    """Category-tagged logging

    Args:
        category: Category for the log message (e.g., "TOOL", "EXPORT", "HISTORY")
        message: The log message
        level: Log level ("INFO", "WARNING", "ERROR", "DEBUG")
    """
    logger = get_logger(category.lower())
    logger.log(_LEVELS.get(level.upper(), logging.INFO), f"[{category}] {message}")


def debug_exception(category: str, exception: Exception) -> None:
    """Log exceptions with full traceback

    Args:
        category: Category for the log message
        exception: The exception to log
    """
    get_logger(category.lower()).error(
        f"[{category}] Exception: {type(exception).__name__}: {exception!s}",
        exc_info=exception,
    )


# ================================================================================
# Numeric Helpers
# ================================================================================


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from negative infinity"""
    return int(math.floor(value + 0.5))


def _to_number(value: Any) -> Optional[float]:
    """Coerce to a finite, non-zero number or None"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number == 0:
        return None
    return number


def clamp(value: int, minimum: int, maximum: int) -> int:
    """Clamp an integer into [minimum, maximum]"""
    return max(minimum, min(maximum, value))


def clamp_canvas_size(value: Any) -> int:
    """Clamp a canvas dimension to [1, 256]; unusable input becomes 16"""
    number = _to_number(value)
    if number is None:
        number = DEFAULT_CANVAS_SIZE
    return clamp(round_half_up(number), MIN_CANVAS_SIZE, MAX_CANVAS_SIZE)


def clamp_brush_size(value: Any) -> int:
    """Clamp a brush size level to [1, 5]"""
    number = _to_number(value)
    if number is None:
        return MIN_BRUSH_SIZE
    return clamp(round_half_up(number), MIN_BRUSH_SIZE, MAX_BRUSH_SIZE)


def clamp_fps(value: Any) -> int:
    """Clamp a frame rate to [1, 60]; unusable input becomes the default"""
    number = _to_number(value)
    if number is None:
        return DEFAULT_FPS
    return clamp(round_half_up(number), MIN_FPS, MAX_FPS)


# ================================================================================
# Color Conversion Utilities
# ================================================================================

_HEX3 = re.compile(r"^#[0-9a-f]{3}$")
_HEX6 = re.compile(r"^#[0-9a-f]{6}$")


def normalize_hex_color(value: Any) -> Optional[str]:
    """Normalize '#RGB' / '#RRGGBB' to lowercase '#rrggbb'

    Returns:
        Normalized string, or None if the input is not a hex color
    """
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    if _HEX3.match(candidate):
        return "#" + "".join(ch * 2 for ch in candidate[1:])
    if _HEX6.match(candidate):
        return candidate
    return None


def hex_to_rgb(value: Any) -> Optional[tuple[int, int, int]]:
    """Parse a hex color into an RGB tuple"""
    normalized = normalize_hex_color(value)
    if normalized is None:
        return None
    return (
        int(normalized[1:3], 16),
        int(normalized[3:5], 16),
        int(normalized[5:7], 16),
    )


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Format RGB channels (clamped and rounded) as '#rrggbb'"""

    def channel(v: float) -> str:
        return f"{clamp(round_half_up(v), 0, 255):02x}"

    return f"#{channel(r)}{channel(g)}{channel(b)}"


def rgb_to_hsv(r: int, g: int, b: int) -> tuple[int, int, int]:
    """RGB (0-255) to HSV as (hue 0-360, saturation 0-100, value 0-100)"""
    rn = clamp(r, 0, 255) / 255
    gn = clamp(g, 0, 255) / 255
    bn = clamp(b, 0, 255) / 255
    high = max(rn, gn, bn)
    low = min(rn, gn, bn)
    delta = high - low

    hue = 0.0
    if delta != 0:
        if high == rn:
            hue = ((gn - bn) / delta + (6 if gn < bn else 0)) / 6
        elif high == gn:
            hue = ((bn - rn) / delta + 2) / 6
        else:
            hue = ((rn - gn) / delta + 4) / 6

    saturation = 0 if high == 0 else delta / high
    return (
        round_half_up(hue * 360),
        round_half_up(saturation * 100),
        round_half_up(high * 100),
    )


def hsv_to_rgb(h: float, s: float, v: float) -> tuple[int, int, int]:
    """HSV (hue degrees, saturation/value percent) to RGB (0-255)"""
    hue = ((h % 360) + 360) % 360
    saturation = max(0, min(100, s)) / 100
    value = max(0, min(100, v)) / 100
    c = value * saturation
    x = c * (1 - abs(((hue / 60) % 2) - 1))
    m = value - c

    if hue < 60:
        r, g, b = c, x, 0.0
    elif hue < 120:
        r, g, b = x, c, 0.0
    elif hue < 180:
        r, g, b = 0.0, c, x
    elif hue < 240:
        r, g, b = 0.0, x, c
    elif hue < 300:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x

    return (
        round_half_up((r + m) * 255),
        round_half_up((g + m) * 255),
        round_half_up((b + m) * 255),
    )


def hex_to_hsv(value: Any) -> tuple[int, int, int]:
    """Hex color to HSV; invalid input gives pure red at full value"""
    rgb = hex_to_rgb(value)
    if rgb is None:
        return (0, 100, 100)
    return rgb_to_hsv(*rgb)


def hsv_to_hex(h: float, s: float, v: float) -> str:
    """HSV to '#rrggbb'"""
    return rgb_to_hex(*hsv_to_rgb(h, s, v))


# ================================================================================
# File Name Utilities
# ================================================================================


def sanitize_filename(name: str) -> str:
    """Replace characters that are illegal in file names with '_'"""
    return "".join("_" if ch in ILLEGAL_FILENAME_CHARS else ch for ch in str(name))


# ================================================================================
# JSON Serialization Utilities
# ================================================================================


def sanitize_for_json(obj: Any) -> Any:
    """Convert non-JSON-serializable objects to JSON-safe types.

    Args:
        obj: Object to sanitize

    Returns:
        JSON-safe version of the object
    """
    if isinstance(obj, (str, int, float, bool, type(None))):
        return obj
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="ignore")
    if isinstance(obj, dict):
        return {str(k): sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [sanitize_for_json(item) for item in obj]
    return str(obj)
