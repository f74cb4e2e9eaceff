#!/usr/bin/env python3
"""
Tool geometry for Pixel Forge

Pure functions that turn a gesture into the set of cell indices a tool
touches. Cells are addressed by flat row-major index (index = y * width + x);
helpers convert to and from grid coordinates.
"""

# Standard library imports
import math
from collections import deque
from typing import Iterable, Optional, Sequence

from .pixel_forge_constants import BRUSH_RADIUS_BY_SIZE
from .pixel_forge_models import Cell, Frame, PendingPaste, SelectionBounds
from .pixel_forge_utils import clamp, clamp_brush_size


def to_xy(index: int, width: int) -> tuple[int, int]:
    """Flat index to (x, y)"""
    return index % width, index // width


def to_index(x: int, y: int, width: int) -> int:
    """(x, y) to flat index"""
    return y * width + x


def line_indices(start_index: int, end_index: int, width: int) -> list[int]:
    """Get all cells on a line using Bresenham's algorithm

    Both endpoints are included, in visiting order.
    """
    x0, y0 = to_xy(start_index, width)
    x1, y1 = to_xy(end_index, width)

    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    indices = []
    while True:
        indices.append(to_index(x0, y0, width))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy

    return indices


def _bounding_box(start_index: int, end_index: int, width: int) -> SelectionBounds:
    x0, y0 = to_xy(start_index, width)
    x1, y1 = to_xy(end_index, width)
    return SelectionBounds(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def rect_outline_indices(start_index: int, end_index: int, width: int) -> list[int]:
    """Perimeter cells of the box spanned by two opposite corners"""
    box = _bounding_box(start_index, end_index, width)
    indices: dict[int, None] = {}

    for x in range(box.min_x, box.max_x + 1):
        indices[to_index(x, box.min_y, width)] = None
        indices[to_index(x, box.max_y, width)] = None

    for y in range(box.min_y, box.max_y + 1):
        indices[to_index(box.min_x, y, width)] = None
        indices[to_index(box.max_x, y, width)] = None

    return list(indices)


def rect_fill_indices(start_index: int, end_index: int, width: int) -> list[int]:
    """Every cell of the box spanned by two opposite corners, row-major"""
    box = _bounding_box(start_index, end_index, width)
    return [
        to_index(x, y, width)
        for y in range(box.min_y, box.max_y + 1)
        for x in range(box.min_x, box.max_x + 1)
    ]


def brush_stamp_indices(
    center_index: int, width: int, height: int, size: int
) -> list[int]:
    """Cells covered by a round brush of the given size level around a center"""
    radius = BRUSH_RADIUS_BY_SIZE[clamp_brush_size(size)]
    if radius <= 0:
        return [center_index]

    cx, cy = to_xy(center_index, width)
    search = math.ceil(radius)
    min_x = max(0, cx - search)
    max_x = min(width - 1, cx + search)
    min_y = max(0, cy - search)
    max_y = min(height - 1, cy + search)
    radius_squared = radius * radius

    indices = []
    for y in range(min_y, max_y + 1):
        for x in range(min_x, max_x + 1):
            dx = x - cx
            dy = y - cy
            if dx * dx + dy * dy <= radius_squared:
                indices.append(to_index(x, y, width))
    return indices


def expand_with_thickness(
    indices: Iterable[int], width: int, height: int, thickness: int
) -> list[int]:
    """Union of brush stamps at every index (deduplicated, first-seen order)"""
    base = list(indices)
    expanded = dict.fromkeys(base)
    if thickness <= 1:
        return list(expanded)

    for index in base:
        for stamp_index in brush_stamp_indices(index, width, height, thickness):
            expanded[stamp_index] = None
    return list(expanded)


def flood_fill_indices(
    cells: Sequence[Cell], start_index: int, replacement: Cell, width: int, height: int
) -> list[int]:
    """
    4-connected breadth-first flood fill
    Returns the indices that change, in visiting order (each at most once)
    """
    if not 0 <= start_index < len(cells):
        return []
    target = cells[start_index]
    if target == replacement:
        return []

    changed = []
    queue = deque([start_index])
    seen = {start_index}

    while queue:
        index = queue.popleft()
        if cells[index] != target:
            continue
        changed.append(index)

        x, y = to_xy(index, width)
        neighbors = []
        if x > 0:
            neighbors.append(index - 1)
        if x < width - 1:
            neighbors.append(index + 1)
        if y > 0:
            neighbors.append(index - width)
        if y < height - 1:
            neighbors.append(index + width)

        for neighbor in neighbors:
            if neighbor not in seen and cells[neighbor] == target:
                seen.add(neighbor)
                queue.append(neighbor)

    return changed


def flood_fill(
    frame: Frame, start_index: int, replacement: Cell, width: int, height: int
) -> Frame:
    """Flood fill a frame, returning the new frame"""
    changed = flood_fill_indices(frame.cells, start_index, replacement, width, height)
    return frame.painted(changed, replacement)


def selection_bounds(indices: Sequence[int], width: int) -> Optional[SelectionBounds]:
    """Bounding rectangle of a selection; None for an empty selection"""
    if not indices:
        return None

    points = [to_xy(index, width) for index in indices]
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    return SelectionBounds(min(xs), min(ys), max(xs), max(ys))


def clamp_paste_anchor(
    x: int, y: int, paste_width: int, paste_height: int, frame_width: int, frame_height: int
) -> tuple[int, int]:
    """Clamp an anchor so at least one row and column of the paste overlaps the frame"""
    return (
        clamp(x, -paste_width + 1, frame_width - 1),
        clamp(y, -paste_height + 1, frame_height - 1),
    )


def paste_placements(
    paste: PendingPaste, frame_width: int, frame_height: int
) -> list[tuple[int, int]]:
    """(target index, source index) pairs for the in-bounds part of a paste"""
    placements = []
    for y in range(paste.height):
        for x in range(paste.width):
            target_x = paste.anchor_x + x
            target_y = paste.anchor_y + y
            if not (0 <= target_x < frame_width and 0 <= target_y < frame_height):
                continue
            placements.append(
                (to_index(target_x, target_y, frame_width), y * paste.width + x)
            )
    return placements


def paste_target_indices(
    paste: PendingPaste, frame_width: int, frame_height: int
) -> list[int]:
    """Frame indices covered by the in-bounds part of a paste"""
    return [target for target, _ in paste_placements(paste, frame_width, frame_height)]


def merge_paste(
    frame: Frame, paste: PendingPaste, frame_width: int, frame_height: int
) -> Frame:
    """Merge a paste into a frame; cells outside the frame are skipped"""
    updates = {
        target: paste.cells[source]
        for target, source in paste_placements(paste, frame_width, frame_height)
    }
    return frame.with_cells(updates)
