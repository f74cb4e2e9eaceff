#!/usr/bin/env python3
"""
Core data models for Pixel Forge
These models handle the raster data without any UI dependencies
"""

# Standard library imports
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from .pixel_forge_constants import CANVAS_SIZES, MIN_CANVAS_SIZE, TRANSPARENT_STRING
from .pixel_forge_utils import clamp, clamp_canvas_size, hex_to_rgb

# ================================================================================
# Cells
# ================================================================================


class Transparent(Enum):
    """The transparent cell sentinel"""

    TRANSPARENT = TRANSPARENT_STRING

    def __str__(self) -> str:
        return self.value

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return (0, 0, 0, 0)


TRANSPARENT = Transparent.TRANSPARENT


@dataclass(frozen=True)
class RgbColor:
    """An opaque cell color"""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for channel in (self.r, self.g, self.b):
            if not 0 <= channel <= 255:
                raise ValueError(f"Color channel out of range: {channel}")

    @classmethod
    def from_hex(cls, value: Any) -> Optional["RgbColor"]:
        """Parse '#rgb' or '#rrggbb'; None if invalid"""
        rgb = hex_to_rgb(value)
        if rgb is None:
            return None
        return cls(*rgb)

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, 255)

    def __str__(self) -> str:
        return self.hex


Cell = Union[RgbColor, Transparent]


def parse_cell(value: Any) -> Optional[Cell]:
    """
    Convert a stored or user-supplied value to a Cell
    Returns None if the value is not a valid color
    """
    if isinstance(value, (RgbColor, Transparent)):
        return value
    if isinstance(value, str):
        if value.strip() == TRANSPARENT_STRING:
            return TRANSPARENT
        return RgbColor.from_hex(value)
    return None


def cell_to_string(cell: Cell) -> str:
    """Canonical string form: '#rrggbb' or the transparent string"""
    return str(cell)


# ================================================================================
# Frames
# ================================================================================


@dataclass(frozen=True)
class Frame:
    """
    One animation step: a flat row-major sequence of cells
    Frames are immutable; edits produce a new Frame
    """

    cells: tuple[Cell, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.cells, tuple):
            object.__setattr__(self, "cells", tuple(self.cells))

    @classmethod
    def blank(cls, width: int, height: int) -> "Frame":
        """Create an all-transparent frame"""
        return cls((TRANSPARENT,) * (width * height))

    @classmethod
    def from_values(cls, values: Iterable[Any], length: int) -> "Frame":
        """
        Build a frame from raw values, repairing it to the expected length
        Invalid values become transparent, short input is padded
        """
        cells = []
        for value in values:
            if len(cells) >= length:
                break
            cell = parse_cell(value)
            cells.append(TRANSPARENT if cell is None else cell)
        cells.extend([TRANSPARENT] * (length - len(cells)))
        return cls(tuple(cells))

    def __len__(self) -> int:
        return len(self.cells)

    def __getitem__(self, index: int) -> Cell:
        return self.cells[index]

    def __iter__(self) -> Iterator[Cell]:
        return iter(self.cells)

    def with_cells(self, updates: Mapping[int, Cell]) -> "Frame":
        """Return a copy with the given index -> cell updates applied"""
        if not updates:
            return self
        cells = list(self.cells)
        for index, cell in updates.items():
            if 0 <= index < len(cells):
                cells[index] = cell
        return Frame(tuple(cells))

    def painted(self, indices: Iterable[int], cell: Cell) -> "Frame":
        """Return a copy with every index set to one cell"""
        return self.with_cells({index: cell for index in indices})

    def to_strings(self) -> list[str]:
        """Serialize cells to their canonical strings"""
        return [cell_to_string(cell) for cell in self.cells]


def blank_frame(width: int, height: int) -> Frame:
    """Create an all-transparent frame"""
    return Frame.blank(width, height)


# ================================================================================
# Projects
# ================================================================================


def new_project_id() -> str:
    """Generate a fresh unique project id"""
    return uuid.uuid4().hex


@dataclass
class Project:
    """
    A named, dimensioned collection of frames
    Always holds at least one frame of exactly width * height cells
    """

    id: str
    name: str
    width: int
    height: int
    frames: list[Frame] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Repair dimensions and frames so the invariants hold"""
        self.width = clamp_canvas_size(self.width)
        self.height = clamp_canvas_size(self.height)
        expected = self.pixel_count
        repaired = []
        for frame in self.frames:
            if not isinstance(frame, Frame):
                frame = Frame.from_values(frame, expected)
            elif len(frame) != expected:
                frame = Frame.from_values(frame.cells, expected)
            repaired.append(frame)
        if not repaired:
            repaired.append(Frame.blank(self.width, self.height))
        self.frames = repaired

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def bucket_key(self) -> str:
        return bucket_key(self.width, self.height)

    def copy(self) -> "Project":
        """Independent copy; frames are immutable so they are shared"""
        return Project(self.id, self.name, self.width, self.height, list(self.frames))


def create_project(width: Any, height: Any, name: str) -> Project:
    """Create a project with one blank frame and a fresh id"""
    clamped_width = clamp_canvas_size(width)
    clamped_height = clamp_canvas_size(height)
    return Project(
        id=new_project_id(),
        name=name,
        width=clamped_width,
        height=clamped_height,
        frames=[Frame.blank(clamped_width, clamped_height)],
    )


def resolve_active_frame(project: Project, frame_index: int) -> Frame:
    """Get a project's frame with the index clamped into range"""
    return project.frames[clamp_frame_index(project, frame_index)]


def clamp_frame_index(project: Project, frame_index: Any) -> int:
    """Clamp a frame index to [0, frame_count - 1]"""
    try:
        index = int(frame_index)
    except (TypeError, ValueError):
        index = 0
    return clamp(index, 0, max(project.frame_count - 1, 0))


# ================================================================================
# Size Buckets
# ================================================================================

_BUCKET_KEY = re.compile(r"^(\d+)x(\d+)$", re.IGNORECASE)


def bucket_key(width: int, height: int) -> str:
    """Canonical size-bucket key"""
    return f"{width}x{height}"


def parse_bucket_key(raw: Any) -> Optional[tuple[int, int]]:
    """
    Resolve a bucket key to clamped (width, height)
    Accepts 'WxH' and legacy single-number keys for square canvases
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        raw = str(raw)
    if not isinstance(raw, str):
        return None

    match = _BUCKET_KEY.match(raw.strip())
    if match:
        return clamp_canvas_size(int(match.group(1))), clamp_canvas_size(
            int(match.group(2))
        )

    legacy = raw.strip()
    if legacy.isdigit() and int(legacy) >= MIN_CANVAS_SIZE:
        size = clamp_canvas_size(int(legacy))
        return size, size

    return None


def canonical_bucket_key(raw: Any) -> Optional[str]:
    """Map any accepted bucket key form to 'WxH'"""
    dimensions = parse_bucket_key(raw)
    if dimensions is None:
        return None
    return bucket_key(*dimensions)


def sort_bucket_keys(keys: Iterable[str]) -> list[str]:
    """Order canonical keys by (width, height)"""
    return sorted(keys, key=lambda key: parse_bucket_key(key) or (0, 0))


def bucket_keys_for(projects_by_bucket: Any) -> list[str]:
    """Default buckets plus every valid key present in the mapping, canonical and sorted"""
    keys = {bucket_key(size, size) for size in CANVAS_SIZES}
    if isinstance(projects_by_bucket, Mapping):
        for raw_key in projects_by_bucket:
            canonical = canonical_bucket_key(raw_key)
            if canonical is not None:
                keys.add(canonical)
    return sort_bucket_keys(keys)


def projects_in_bucket(source: Any, key: str) -> list[Any]:
    """
    Look up a bucket's project list, falling back to a legacy
    single-number key for square canvases
    """
    if not isinstance(source, Mapping):
        return []
    direct = source.get(key)
    if isinstance(direct, list):
        return direct

    dimensions = parse_bucket_key(key)
    if dimensions is None or dimensions[0] != dimensions[1]:
        return []
    legacy = source.get(str(dimensions[0]), source.get(dimensions[0]))
    return legacy if isinstance(legacy, list) else []


def empty_projects_by_bucket() -> dict[str, list[Project]]:
    """Mapping with the default buckets and no projects"""
    return {bucket_key(size, size): [] for size in CANVAS_SIZES}


# ================================================================================
# Selection and Clipboard
# ================================================================================


@dataclass(frozen=True)
class SelectionBounds:
    """Inclusive bounding rectangle of a selection"""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1


@dataclass(frozen=True)
class Clipboard:
    """Copied block of cells"""

    width: int
    height: int
    cells: tuple[Cell, ...]


@dataclass
class PendingPaste:
    """Floating, uncommitted paste positioned by its top-left anchor"""

    width: int
    height: int
    cells: tuple[Cell, ...]
    anchor_x: int = 0
    anchor_y: int = 0

    def contains(self, x: int, y: int) -> bool:
        """Check whether a grid cell lies inside the paste block"""
        return (
            self.anchor_x <= x < self.anchor_x + self.width
            and self.anchor_y <= y < self.anchor_y + self.height
        )

    def to_clipboard(self) -> Clipboard:
        return Clipboard(self.width, self.height, self.cells)
