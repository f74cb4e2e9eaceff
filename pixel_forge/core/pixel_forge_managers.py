#!/usr/bin/env python3
"""
Manager classes for Pixel Forge
Handle coordination between models and provide business logic
"""

# Standard library imports
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from .pixel_forge_constants import BASE_PALETTE
from .pixel_forge_models import (
    TRANSPARENT,
    Cell,
    Clipboard,
    Frame,
    PendingPaste,
    Project,
    RgbColor,
    Transparent,
    bucket_keys_for,
    create_project,
    empty_projects_by_bucket,
)
from .pixel_forge_palette import normalize_custom_palette
from .pixel_forge_tools import (
    brush_stamp_indices,
    clamp_paste_anchor,
    expand_with_thickness,
    flood_fill_indices,
    line_indices,
    merge_paste,
    paste_target_indices,
    rect_fill_indices,
    rect_outline_indices,
    selection_bounds,
    to_index,
    to_xy,
)
from .pixel_forge_utils import (
    clamp_brush_size,
    debug_log,
    hex_to_hsv,
    hsv_to_hex,
    normalize_hex_color,
)

# ================================================================================
# Tools
# ================================================================================


class ToolType(Enum):
    """Available drawing tools (values are the persisted tool names)"""

    SELECT = "select"
    BRUSH = "brush"
    ERASER = "eraser"
    LINE = "line"
    SQUARE = "square"
    BUCKET = "bucket"


@dataclass
class ToolContext:
    """What a tool needs to know about the canvas it operates on"""

    frame: Frame
    width: int
    height: int
    color: Cell
    thickness: int = 1


class Tool(ABC):
    """Abstract base class for drawing tools

    Tools never mutate frames; they return the cell indices the
    controller should paint, select or sample.
    """

    @abstractmethod
    def on_press(self, index: int, context: ToolContext) -> Any:
        """Handle pointer press"""

    @abstractmethod
    def on_move(self, index: int, context: ToolContext) -> Any:
        """Handle pointer entering a new cell while pressed"""

    @abstractmethod
    def on_release(self, index: Optional[int], context: ToolContext) -> Any:
        """Handle pointer release"""

    def reset(self) -> None:
        """Drop any in-progress gesture state"""


class BrushTool(Tool):
    """Round brush with line interpolation between pointer cells"""

    def __init__(self) -> None:
        self.last_index: Optional[int] = None

    def paint_color(self, color: Cell) -> Cell:
        return color

    def on_press(self, index: int, context: ToolContext) -> list[int]:
        """Stamp at the pressed cell and start tracking position"""
        self.last_index = index
        return brush_stamp_indices(index, context.width, context.height, context.thickness)

    def on_move(self, index: int, context: ToolContext) -> list[int]:
        """Stamp along the line from the previous cell so fast drags leave no gaps"""
        if self.last_index is None:
            self.last_index = index
            return brush_stamp_indices(
                index, context.width, context.height, context.thickness
            )

        path = line_indices(self.last_index, index, context.width)
        self.last_index = index
        return expand_with_thickness(path, context.width, context.height, context.thickness)

    def on_release(self, index: Optional[int], context: ToolContext) -> list[int]:
        """Clear tracking state"""
        self.last_index = None
        return []

    def reset(self) -> None:
        self.last_index = None


class EraserTool(BrushTool):
    """Brush that writes transparent cells"""

    def paint_color(self, color: Cell) -> Cell:
        return TRANSPARENT


class ShapeTool(Tool):
    """Base for tools that span a start and a current cell"""

    def __init__(self) -> None:
        self.start_index: Optional[int] = None
        self.current_index: Optional[int] = None

    @abstractmethod
    def shape_indices(self, start: int, end: int, context: ToolContext) -> list[int]:
        """Cells covered by the shape between two cells"""

    def on_press(self, index: int, context: ToolContext) -> list[int]:
        self.start_index = index
        self.current_index = index
        return self.preview_indices(context)

    def on_move(self, index: int, context: ToolContext) -> list[int]:
        if self.start_index is None:
            return []
        self.current_index = index
        return self.preview_indices(context)

    def on_release(self, index: Optional[int], context: ToolContext) -> list[int]:
        """Finish the gesture, returning the final shape"""
        if self.start_index is None:
            return []
        end = index
        if end is None:
            end = self.current_index if self.current_index is not None else self.start_index
        result = self.shape_indices(self.start_index, end, context)
        self.reset()
        return result

    def preview_indices(self, context: ToolContext) -> list[int]:
        """Cells the shape would cover if released now"""
        if self.start_index is None or self.current_index is None:
            return []
        return self.shape_indices(self.start_index, self.current_index, context)

    @property
    def is_active(self) -> bool:
        return self.start_index is not None

    def reset(self) -> None:
        self.start_index = None
        self.current_index = None


class LineTool(ShapeTool):
    """Straight line, thickened with the brush stamp"""

    def shape_indices(self, start: int, end: int, context: ToolContext) -> list[int]:
        return expand_with_thickness(
            line_indices(start, end, context.width),
            context.width,
            context.height,
            context.thickness,
        )


class RectangleTool(ShapeTool):
    """Rectangle outline, thickened with the brush stamp"""

    def shape_indices(self, start: int, end: int, context: ToolContext) -> list[int]:
        return expand_with_thickness(
            rect_outline_indices(start, end, context.width),
            context.width,
            context.height,
            context.thickness,
        )


class SelectTool(ShapeTool):
    """Marquee selection"""

    def shape_indices(self, start: int, end: int, context: ToolContext) -> list[int]:
        return rect_fill_indices(start, end, context.width)


class FillTool(Tool):
    """Flood fill tool"""

    def on_press(self, index: int, context: ToolContext) -> list[int]:
        """Perform flood fill"""
        return flood_fill_indices(
            context.frame.cells, index, context.color, context.width, context.height
        )

    def on_move(self, index: int, context: ToolContext) -> None:
        """No action on move"""

    def on_release(self, index: Optional[int], context: ToolContext) -> None:
        """Nothing to do on release"""


class ColorPickerTool(Tool):
    """Eyedropper"""

    def on_press(self, index: int, context: ToolContext) -> Optional[Cell]:
        """Sample the cell under the pointer"""
        if not 0 <= index < len(context.frame):
            return None
        return context.frame[index]

    def on_move(self, index: int, context: ToolContext) -> None:
        """No action on move"""

    def on_release(self, index: Optional[int], context: ToolContext) -> None:
        """Nothing to do on release"""


class ToolManager:
    """Manages drawing tools and tool state"""

    def __init__(self) -> None:
        self.tools: dict[ToolType, Tool] = {
            ToolType.SELECT: SelectTool(),
            ToolType.BRUSH: BrushTool(),
            ToolType.ERASER: EraserTool(),
            ToolType.LINE: LineTool(),
            ToolType.SQUARE: RectangleTool(),
            ToolType.BUCKET: FillTool(),
        }
        self.picker = ColorPickerTool()
        self.current_tool = ToolType.BRUSH
        self.thickness = 1
        self.eyedropper_armed = False

    @staticmethod
    def parse_tool(tool_type: Union[ToolType, str, None]) -> Optional[ToolType]:
        """Convert a tool name to ToolType; None if unknown"""
        if isinstance(tool_type, ToolType):
            return tool_type
        if isinstance(tool_type, str):
            try:
                return ToolType(tool_type.strip().lower())
            except ValueError:
                return None
        return None

    def set_tool(self, tool_type: Union[ToolType, str]) -> bool:
        """Set the current tool (accepts ToolType enum or string)

        Switching tools disarms the eyedropper and drops any gesture in progress.
        """
        parsed = self.parse_tool(tool_type)
        if parsed is None:
            debug_log("TOOL", f"Unknown tool: {tool_type}", "WARNING")
            return False

        self.eyedropper_armed = False
        self.get_tool().reset()
        self.current_tool = parsed
        debug_log("TOOL", f"Tool changed to {parsed.name}")
        return True

    @property
    def current_tool_name(self) -> str:
        """Get the name of the current tool"""
        return self.current_tool.value

    def get_tool(self, tool_type: Optional[Union[ToolType, str]] = None) -> Tool:
        """Get tool instance (current tool if no type specified)"""
        if tool_type is None:
            return self.tools[self.current_tool]

        parsed = self.parse_tool(tool_type)
        if parsed is None:
            raise ValueError(f"Unknown tool: {tool_type}")
        return self.tools[parsed]

    def set_thickness(self, thickness: Any) -> int:
        """Set brush thickness, clamped to the supported size levels"""
        self.thickness = clamp_brush_size(thickness)
        debug_log("BRUSH", f"Brush size changed to {self.thickness}")
        return self.thickness

    def color_for_tool(self, brush_color: Cell) -> Cell:
        """The cell the current tool paints with"""
        tool = self.get_tool()
        if isinstance(tool, BrushTool):
            return tool.paint_color(brush_color)
        return brush_color

    @property
    def is_stroke_tool(self) -> bool:
        """Brush and eraser paint continuously while dragging"""
        return self.current_tool in (ToolType.BRUSH, ToolType.ERASER)

    @property
    def is_shape_tool(self) -> bool:
        """Line and rectangle paint once on release"""
        return self.current_tool in (ToolType.LINE, ToolType.SQUARE)

    def arm_eyedropper(self, armed: bool = True) -> None:
        self.eyedropper_armed = armed
        debug_log("TOOL", f"Eyedropper {'armed' if armed else 'disarmed'}", "DEBUG")

    def reset_gestures(self) -> None:
        for tool in self.tools.values():
            tool.reset()


# ================================================================================
# Projects
# ================================================================================


class ProjectManager:
    """Owns projects grouped by size bucket and the active project id"""

    def __init__(self) -> None:
        self.projects_by_bucket: dict[str, list[Project]] = empty_projects_by_bucket()
        self.active_project_id: Optional[str] = None

    def bucket_keys(self) -> list[str]:
        """Default and populated bucket keys, sorted by (width, height)"""
        return bucket_keys_for(self.projects_by_bucket)

    def projects_in(self, key: str) -> list[Project]:
        return self.projects_by_bucket.get(key, [])

    def all_projects(self) -> list[Project]:
        """Every project, in bucket order"""
        return [project for key in self.bucket_keys() for project in self.projects_in(key)]

    def find_project(self, project_id: Optional[str]) -> Optional[Project]:
        if project_id is None:
            return None
        for projects in self.projects_by_bucket.values():
            for project in projects:
                if project.id == project_id:
                    return project
        return None

    @property
    def active_project(self) -> Optional[Project]:
        return self.find_project(self.active_project_id)

    def unique_name(self, key: str, base_name: str) -> str:
        """'Name', then 'Name 2', 'Name 3'... within one bucket"""
        names = {project.name for project in self.projects_in(key)}
        candidate = base_name
        suffix = 1
        while candidate in names:
            suffix += 1
            candidate = f"{base_name} {suffix}"
        return candidate

    def create_project(self, width: Any, height: Any, name: str = "") -> Project:
        """Create a project in its size bucket and make it active"""
        project = create_project(width, height, name)
        return self.add_project(project)

    def add_project(self, project: Project) -> Project:
        """
        Add an existing project (new or imported) to its size bucket and
        make it active; its name is made unique within the bucket
        """
        key = project.bucket_key
        base_name = (project.name or "").strip() or (
            f"{project.width} x {project.height} Pixel File"
        )
        project.name = self.unique_name(key, base_name)

        self.projects_by_bucket.setdefault(key, []).append(project)
        self.active_project_id = project.id
        debug_log("PROJECT", f"Added '{project.name}' ({key})")
        return project

    def delete_project(self, project_id: Optional[str]) -> bool:
        """
        Remove a project
        Deleting the active project falls back to the first remaining one
        """
        if self.find_project(project_id) is None:
            return False

        for key, projects in self.projects_by_bucket.items():
            self.projects_by_bucket[key] = [p for p in projects if p.id != project_id]

        if self.active_project_id == project_id:
            remaining = self.all_projects()
            self.active_project_id = remaining[0].id if remaining else None

        debug_log("PROJECT", f"Deleted project {project_id}")
        return True

    def set_active_project(self, project_id: Optional[str]) -> bool:
        if project_id is not None and self.find_project(project_id) is None:
            return False
        self.active_project_id = project_id
        return True

    def replace_frame(self, project_id: str, frame_index: int, frame: Frame) -> bool:
        """Swap one frame of a project for a new one"""
        project = self.find_project(project_id)
        if project is None or not 0 <= frame_index < project.frame_count:
            return False
        if len(frame) != project.pixel_count:
            debug_log(
                "PROJECT",
                f"Rejected frame of {len(frame)} cells for {project.width}x{project.height}",
                "WARNING",
            )
            return False
        project.frames[frame_index] = frame
        return True

    def restore(
        self, projects_by_bucket: dict[str, list[Project]], active_project_id: Optional[str]
    ) -> None:
        """Replace all projects (undo, loading persisted state)"""
        restored = empty_projects_by_bucket()
        restored.update(projects_by_bucket)
        self.projects_by_bucket = restored
        self.active_project_id = (
            active_project_id if self.find_project(active_project_id) else None
        )


# ================================================================================
# Selection, Clipboard and Paste
# ================================================================================


class SelectionManager:
    """Selection, clipboard and the floating pending paste"""

    def __init__(self) -> None:
        self.selected_indices: list[int] = []
        self.clipboard: Optional[Clipboard] = None
        self.pending_paste: Optional[PendingPaste] = None
        self.last_pointer_index: Optional[int] = None
        self._drag_origin: Optional[tuple[int, int, int, int]] = None

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    def set_selection(self, indices: list[int]) -> None:
        self.selected_indices = list(indices)

    def clear(self) -> None:
        """Drop the selection and any pending paste (active project or frame changed)"""
        self.selected_indices = []
        self.pending_paste = None
        self._drag_origin = None

    def copy(self, frame: Frame, width: int) -> bool:
        """
        Copy the pending paste if there is one, otherwise the selection's
        bounding rectangle
        """
        if self.pending_paste is not None:
            self.clipboard = self.pending_paste.to_clipboard()
            return True

        bounds = selection_bounds(self.selected_indices, width)
        if bounds is None:
            return False

        cells = tuple(
            frame[to_index(x, y, width)]
            for y in range(bounds.min_y, bounds.max_y + 1)
            for x in range(bounds.min_x, bounds.max_x + 1)
        )
        self.clipboard = Clipboard(bounds.width, bounds.height, cells)
        debug_log("SELECTION", f"Copied {bounds.width}x{bounds.height} block")
        return True

    def paste(self, width: int, height: int) -> Optional[PendingPaste]:
        """Float the clipboard at the last pointer cell (or the selection start)"""
        if self.clipboard is None:
            return None

        if self.last_pointer_index is not None:
            anchor_index = self.last_pointer_index
        elif self.selected_indices:
            anchor_index = self.selected_indices[0]
        else:
            anchor_index = 0

        x, y = to_xy(anchor_index, width)
        anchor_x, anchor_y = clamp_paste_anchor(
            x, y, self.clipboard.width, self.clipboard.height, width, height
        )
        self.pending_paste = PendingPaste(
            width=self.clipboard.width,
            height=self.clipboard.height,
            cells=self.clipboard.cells,
            anchor_x=anchor_x,
            anchor_y=anchor_y,
        )
        self._drag_origin = None
        return self.pending_paste

    def begin_drag(self, x: int, y: int) -> bool:
        """Start moving the pending paste if the pointer is inside it"""
        if self.pending_paste is None or not self.pending_paste.contains(x, y):
            return False
        self._drag_origin = (x, y, self.pending_paste.anchor_x, self.pending_paste.anchor_y)
        return True

    def drag_to(self, x: int, y: int, width: int, height: int) -> bool:
        """Move the pending paste by the pointer delta since the drag started"""
        if self.pending_paste is None or self._drag_origin is None:
            return False

        start_x, start_y, anchor_x, anchor_y = self._drag_origin
        paste = self.pending_paste
        paste.anchor_x, paste.anchor_y = clamp_paste_anchor(
            anchor_x + x - start_x,
            anchor_y + y - start_y,
            paste.width,
            paste.height,
            width,
            height,
        )
        return True

    def end_drag(self) -> bool:
        was_dragging = self._drag_origin is not None
        self._drag_origin = None
        return was_dragging

    def commit(self, frame: Frame, width: int, height: int) -> Optional[Frame]:
        """
        Merge the pending paste into a frame
        The pasted in-bounds cells become the selection
        """
        if self.pending_paste is None:
            return None

        merged = merge_paste(frame, self.pending_paste, width, height)
        self.selected_indices = paste_target_indices(self.pending_paste, width, height)
        self.pending_paste = None
        self._drag_origin = None
        return merged

    def cancel(self) -> bool:
        """Discard the pending paste"""
        if self.pending_paste is None:
            return False
        self.pending_paste = None
        self._drag_origin = None
        return True


# ================================================================================
# Palette
# ================================================================================


class PaletteManager:
    """Base palette, brush/picker colors and custom palette slots"""

    def __init__(self) -> None:
        self.palette: list[str] = list(BASE_PALETTE)
        self.brush_color: Cell = RgbColor.from_hex(BASE_PALETTE[0]) or TRANSPARENT
        self.picker_color: str = BASE_PALETTE[0]
        self.custom_palette: list[Optional[str]] = normalize_custom_palette()

    def select_color(self, value: Any) -> Optional[str]:
        """
        Normalize a hex color and make it both the picker and brush color
        Returns the normalized color, or None if the input was rejected
        """
        normalized = normalize_hex_color(value)
        if normalized is None:
            return None
        color = RgbColor.from_hex(normalized)
        if color is None:
            return None
        self.picker_color = normalized
        self.brush_color = color
        debug_log("PALETTE", f"Selected color {normalized}", "DEBUG")
        return normalized

    def set_brush_transparent(self) -> None:
        self.brush_color = TRANSPARENT

    def add_picker_color(self) -> None:
        """Add the picker color to the palette (once) and brush with it"""
        if self.picker_color not in self.palette:
            self.palette.append(self.picker_color)
        self.brush_color = RgbColor.from_hex(self.picker_color) or self.brush_color

    def click_custom_slot(self, slot_index: int) -> Optional[str]:
        """
        Select a filled slot's color, or store the picker color in an empty
        slot; filling the last empty slot adds a new group of empty slots
        """
        if not 0 <= slot_index < len(self.custom_palette):
            return None

        slot_color = self.custom_palette[slot_index]
        if slot_color:
            return self.select_color(slot_color)

        updated = list(self.custom_palette)
        updated[slot_index] = self.picker_color
        self.custom_palette = normalize_custom_palette(updated)
        return self.picker_color

    @property
    def picker_hsv(self) -> tuple[int, int, int]:
        return hex_to_hsv(self.picker_color)

    def apply_hsv(self, hue: float, saturation: float, value: float) -> Optional[str]:
        """Select the color given by HSV components"""
        return self.select_color(hsv_to_hex(hue, saturation, value))

    @property
    def brush_color_string(self) -> str:
        return str(self.brush_color)

    def load(
        self,
        palette: Any = None,
        brush_color: Any = None,
        picker_color: Any = None,
        custom_palette: Any = None,
    ) -> None:
        """Restore palette state, falling back to defaults for bad values"""
        self.palette = (
            [entry for entry in palette if isinstance(entry, str)]
            if isinstance(palette, list)
            else list(BASE_PALETTE)
        )

        brush = None
        if isinstance(brush_color, (str, RgbColor, Transparent)):
            if isinstance(brush_color, str):
                brush = (
                    TRANSPARENT
                    if brush_color.strip() == str(TRANSPARENT)
                    else RgbColor.from_hex(brush_color)
                )
            else:
                brush = brush_color
        self.brush_color = brush or RgbColor.from_hex(BASE_PALETTE[0]) or TRANSPARENT

        self.picker_color = normalize_hex_color(picker_color) or BASE_PALETTE[0]
        self.custom_palette = normalize_custom_palette(custom_palette)
