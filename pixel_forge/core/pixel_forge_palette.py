"""
Palette handling for Pixel Forge

Custom palette slot normalization and the quantizer collaborator used by
the GIF encoder to reduce an RGBA frame to an indexed palette.
"""

# Standard library imports
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

# Third-party imports
import numpy as np
from PIL import Image

from .pixel_forge_constants import (
    CUSTOM_PALETTE_SLOTS,
    GIF_ALPHA_THRESHOLD,
    GIF_MAX_PALETTE_SIZE,
)
from .pixel_forge_utils import debug_log

RGBA = tuple[int, int, int, int]

TRANSPARENT_ENTRY: RGBA = (0, 0, 0, 0)


def normalize_custom_palette(value: Any = None) -> list[Optional[str]]:
    """
    Normalize custom palette slots
    Slots come in groups of CUSTOM_PALETTE_SLOTS and there is always at least
    one empty slot so the user can add another color
    """
    if isinstance(value, list):
        normalized = [
            entry if isinstance(entry, str) and entry.strip() else None
            for entry in value
        ]
    else:
        normalized = []

    while len(normalized) < CUSTOM_PALETTE_SLOTS:
        normalized.append(None)

    remainder = len(normalized) % CUSTOM_PALETTE_SLOTS
    if remainder:
        normalized.extend([None] * (CUSTOM_PALETTE_SLOTS - remainder))

    if all(entry is not None for entry in normalized):
        normalized.extend([None] * CUSTOM_PALETTE_SLOTS)

    return normalized


@dataclass
class QuantizedImage:
    """An indexed image: palette entries plus one palette index per pixel"""

    palette: list[RGBA] = field(default_factory=list)
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8))

    @property
    def transparent_index(self) -> Optional[int]:
        """Index of the first fully transparent palette entry, if any"""
        for index, entry in enumerate(self.palette):
            if entry[3] == 0:
                return index
        return None


class PaletteQuantizer(ABC):
    """Reduces an RGBA image to at most max_colors palette entries"""

    @abstractmethod
    def quantize(
        self, rgba: np.ndarray, max_colors: int = GIF_MAX_PALETTE_SIZE,
        reserve_transparent: bool = True,
    ) -> QuantizedImage:
        """
        Quantize an (height, width, 4) uint8 array

        Args:
            rgba: Image pixels
            max_colors: Palette size limit, including the transparent entry
            reserve_transparent: Map low-alpha pixels to a dedicated
                transparent palette entry

        Returns:
            QuantizedImage with flat row-major indices
        """


class PilPaletteQuantizer(PaletteQuantizer):
    """
    Pillow-backed quantizer
    Frames with few enough colors keep an exact palette; larger ones go
    through Pillow's median cut
    """

    def __init__(self, alpha_threshold: int = GIF_ALPHA_THRESHOLD) -> None:
        self.alpha_threshold = alpha_threshold

    def quantize(
        self, rgba: np.ndarray, max_colors: int = GIF_MAX_PALETTE_SIZE,
        reserve_transparent: bool = True,
    ) -> QuantizedImage:
        pixels = np.asarray(rgba, dtype=np.uint8).reshape(-1, 4)
        pixel_count = pixels.shape[0]
        max_colors = max(2, min(GIF_MAX_PALETTE_SIZE, int(max_colors)))

        if reserve_transparent:
            transparent_mask = pixels[:, 3] < self.alpha_threshold
        else:
            transparent_mask = np.zeros(pixel_count, dtype=bool)

        has_transparency = bool(transparent_mask.any())
        opaque_slots = max_colors - 1 if has_transparency else max_colors
        opaque_rgb = pixels[~transparent_mask, :3]

        indices = np.zeros(pixel_count, dtype=np.uint8)
        palette: list[RGBA] = []

        if opaque_rgb.shape[0] > 0:
            unique_colors, inverse = np.unique(opaque_rgb, axis=0, return_inverse=True)
            inverse = inverse.reshape(-1)

            if unique_colors.shape[0] <= opaque_slots:
                palette = [(int(r), int(g), int(b), 255) for r, g, b in unique_colors]
                indices[~transparent_mask] = inverse.astype(np.uint8)
            else:
                palette, opaque_indices = self._median_cut(opaque_rgb, opaque_slots)
                indices[~transparent_mask] = opaque_indices
                debug_log(
                    "EXPORT",
                    f"Reduced {unique_colors.shape[0]} colors to {len(palette)}",
                    "DEBUG",
                )

        if has_transparency:
            indices[transparent_mask] = len(palette)
            palette.append(TRANSPARENT_ENTRY)

        return QuantizedImage(palette=palette, indices=indices)

    def _median_cut(
        self, opaque_rgb: np.ndarray, slots: int
    ) -> tuple[list[RGBA], np.ndarray]:
        """Quantize an (n, 3) array of colors with Pillow"""
        strip = Image.fromarray(np.ascontiguousarray(opaque_rgb.reshape(1, -1, 3)))
        indexed = strip.quantize(colors=slots, method=Image.Quantize.MEDIANCUT)

        raw_palette = indexed.getpalette() or []
        indices = np.asarray(indexed, dtype=np.uint8).reshape(-1)
        used = int(indices.max()) + 1 if indices.size else 0
        palette = [
            (raw_palette[i * 3], raw_palette[i * 3 + 1], raw_palette[i * 3 + 2], 255)
            for i in range(used)
        ]
        return palette, indices
