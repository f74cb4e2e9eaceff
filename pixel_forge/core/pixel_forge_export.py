#!/usr/bin/env python3
"""
Export encoders for Pixel Forge

Turns a project (or one of its frames) into PNG, sprite-sheet PNG,
animated GIF, cursor (.cur) or JSON manifest bytes. Encoders only read
the project they are given.

Public build_* functions never raise: a missing project or frame, or any
encoding failure, is logged and reported as None.
"""

# Standard library imports
import io
import json
import struct
from enum import Enum
from typing import Any, Optional, Sequence, Union

# Third-party imports
import numpy as np
from PIL import Image

from .pixel_forge_constants import (
    CUR_IMAGE_OFFSET,
    CUR_RESOURCE_TYPE,
    DEFAULT_FPS,
    GIF_MAX_PALETTE_SIZE,
    GIF_MIN_FRAME_DELAY_MS,
    MAX_CANVAS_SIZE,
)
from .pixel_forge_exceptions import ExportError, ImageFormatError
from .pixel_forge_models import Frame, Project, new_project_id
from .pixel_forge_palette import PaletteQuantizer, PilPaletteQuantizer, QuantizedImage
from .pixel_forge_utils import (
    clamp_canvas_size,
    debug_exception,
    debug_log,
    round_half_up,
    sanitize_filename,
)


class ExportFormat(Enum):
    """Export targets; values are the user-facing format names"""

    PNG = "png"
    GIF = "gif"
    SPRITESHEET = "spritesheet"
    CUR = "cur"
    JSON = "json"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def parse(cls, value: Union["ExportFormat", str]) -> Optional["ExportFormat"]:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


_EXTENSIONS = {
    ExportFormat.PNG: "png",
    ExportFormat.GIF: "gif",
    ExportFormat.SPRITESHEET: "spritesheet.png",
    ExportFormat.CUR: "cur",
    ExportFormat.JSON: "json",
}


def export_filename(name: str, fmt: Union[ExportFormat, str]) -> str:
    """Safe file name for an export: illegal characters become '_'"""
    parsed = ExportFormat.parse(fmt)
    if parsed is None:
        raise ValueError(f"Unknown export format: {fmt}")
    return f"{sanitize_filename(name)}.{parsed.extension}"


# ================================================================================
# Raster conversion
# ================================================================================


def frame_to_rgba(frame: Frame, width: int, height: int) -> np.ndarray:
    """(height, width, 4) uint8 array; transparent cells have alpha 0"""
    if len(frame) != width * height:
        raise ExportError(
            f"Frame has {len(frame)} cells, expected {width * height} for {width}x{height}"
        )
    return np.array([cell.rgba for cell in frame], dtype=np.uint8).reshape(height, width, 4)


def _png_bytes(rgba: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgba)).save(buffer, format="PNG")
    return buffer.getvalue()


# ================================================================================
# PNG and sprite sheet
# ================================================================================


def build_png_bytes(project: Optional[Project], frame: Optional[Frame]) -> Optional[bytes]:
    """Encode one frame as a width x height RGBA PNG"""
    if project is None or frame is None:
        return None
    try:
        return _png_bytes(frame_to_rgba(frame, project.width, project.height))
    except Exception as e:
        debug_exception("EXPORT", e)
        return None


def build_sprite_sheet_png_bytes(project: Optional[Project]) -> Optional[bytes]:
    """All frames side by side: frame i occupies x offset i * width"""
    if project is None or not project.frames:
        return None
    try:
        strips = [frame_to_rgba(frame, project.width, project.height) for frame in project.frames]
        return _png_bytes(np.concatenate(strips, axis=1))
    except Exception as e:
        debug_exception("EXPORT", e)
        return None


# ================================================================================
# Animated GIF
# ================================================================================


def gif_frame_delay_ms(fps: Any) -> int:
    """Per-frame delay in milliseconds, never shorter than 20 ms"""
    try:
        rate = float(fps)
    except (TypeError, ValueError):
        rate = DEFAULT_FPS
    if rate != rate:  # NaN
        rate = DEFAULT_FPS
    return max(GIF_MIN_FRAME_DELAY_MS, round_half_up(1000 / max(1.0, rate)))


def quantized_to_image(quantized: QuantizedImage, width: int, height: int) -> Image.Image:
    """
    Palette ("P") image for one quantized frame
    The first fully transparent palette entry becomes the frame's
    transparency index

    Raises:
        ExportError: If the palette or indices do not describe the frame
    """
    palette = quantized.palette
    if not palette or len(palette) > GIF_MAX_PALETTE_SIZE:
        raise ExportError(f"GIF palette must have 1-256 entries, got {len(palette)}")

    pixels = np.asarray(quantized.indices, dtype=np.uint8).reshape(-1)
    if pixels.size != width * height:
        raise ExportError("Frame size does not match GIF dimensions")
    if pixels.size and int(pixels.max()) >= len(palette):
        raise ExportError("Palette index out of range")

    image = Image.frombytes("P", (width, height), pixels.tobytes())
    flat: list[int] = []
    for entry in palette:
        flat.extend((int(entry[0]), int(entry[1]), int(entry[2])))
    image.putpalette(flat)

    transparent_index = quantized.transparent_index
    if transparent_index is not None:
        image.info["transparency"] = transparent_index
    return image


def build_gif_bytes(
    project: Optional[Project],
    fps: Any = DEFAULT_FPS,
    quantizer: Optional[PaletteQuantizer] = None,
) -> Optional[bytes]:
    """
    Animated GIF of every frame, looping forever
    Each frame restores to background before the next one is drawn, so
    transparent cells never show the previous frame
    """
    if project is None or not project.frames:
        return None

    quantizer = quantizer or PilPaletteQuantizer()
    delay = gif_frame_delay_ms(fps)

    try:
        images = []
        for frame in project.frames:
            rgba = frame_to_rgba(frame, project.width, project.height)
            quantized = quantizer.quantize(rgba, GIF_MAX_PALETTE_SIZE, reserve_transparent=True)
            images.append(quantized_to_image(quantized, project.width, project.height))

        buffer = io.BytesIO()
        images[0].save(
            buffer,
            format="GIF",
            save_all=True,
            append_images=images[1:],
            duration=delay,
            loop=0,
            disposal=2,
        )
        data = buffer.getvalue()
        debug_log(
            "EXPORT",
            f"GIF '{project.name}': {project.frame_count} frames, {delay} ms, {len(data)} bytes",
        )
        return data
    except Exception as e:
        debug_exception("EXPORT", e)
        return None


# ================================================================================
# Cursor
# ================================================================================


def build_cur_bytes(project: Optional[Project], frame: Optional[Frame]) -> Optional[bytes]:
    """
    Single-image cursor file wrapping a PNG payload
    Header (reserved, type 2, count 1), one directory entry, then the PNG
    """
    png = build_png_bytes(project, frame)
    if png is None:
        return None

    width = 0 if project.width >= MAX_CANVAS_SIZE else project.width
    height = 0 if project.height >= MAX_CANVAS_SIZE else project.height

    header = struct.pack("<HHH", 0, CUR_RESOURCE_TYPE, 1)
    entry = struct.pack("<BBBBHHII", width, height, 0, 0, 0, 0, len(png), CUR_IMAGE_OFFSET)
    return header + entry + png


# ================================================================================
# JSON manifest
# ================================================================================


def build_json_manifest(project: Optional[Project]) -> Optional[bytes]:
    """Pretty-printed JSON with every frame's cells as color strings"""
    if project is None:
        return None
    payload = {
        "name": project.name,
        "width": project.width,
        "height": project.height,
        "frameCount": project.frame_count,
        "frames": [frame.to_strings() for frame in project.frames],
    }
    try:
        return json.dumps(payload, indent=2).encode("utf-8")
    except (TypeError, ValueError) as e:
        debug_exception("EXPORT", e)
        return None


def load_json_manifest(data: Union[bytes, str]) -> Project:
    """
    Rebuild a project from a JSON manifest
    Accepts the legacy square 'size' key; frames are repaired to the
    declared dimensions

    Raises:
        ImageFormatError: If the data is not a JSON manifest object
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImageFormatError(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ImageFormatError("Manifest must be a JSON object")

    size = payload.get("size")
    width = clamp_canvas_size(payload.get("width", size))
    height = clamp_canvas_size(payload.get("height", size))
    name = payload.get("name") if isinstance(payload.get("name"), str) else ""

    raw_frames = payload.get("frames")
    if not isinstance(raw_frames, list):
        raise ImageFormatError("Manifest has no frame list")

    frames = [
        Frame.from_values(frame, width * height)
        for frame in raw_frames
        if isinstance(frame, list)
    ]
    return Project(new_project_id(), name, width, height, frames)


# ================================================================================
# Dispatcher
# ================================================================================


def export_project(
    project: Optional[Project],
    fmt: Union[ExportFormat, str],
    frame_index: int = 0,
    fps: Any = DEFAULT_FPS,
    quantizer: Optional[PaletteQuantizer] = None,
) -> Optional[bytes]:
    """Encode a project in the requested format"""
    parsed = ExportFormat.parse(fmt)
    if parsed is None:
        debug_log("EXPORT", f"Unknown export format: {fmt}", "WARNING")
        return None
    if project is None:
        return None

    frame = project.frames[frame_index] if 0 <= frame_index < project.frame_count else None

    if parsed is ExportFormat.PNG:
        return build_png_bytes(project, frame)
    if parsed is ExportFormat.SPRITESHEET:
        return build_sprite_sheet_png_bytes(project)
    if parsed is ExportFormat.GIF:
        return build_gif_bytes(project, fps, quantizer)
    if parsed is ExportFormat.CUR:
        return build_cur_bytes(project, frame)
    return build_json_manifest(project)
