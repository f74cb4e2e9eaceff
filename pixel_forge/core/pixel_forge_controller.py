#!/usr/bin/env python3
"""
Controller for Pixel Forge
Handles all editing logic and coordinates between models, managers and workers
"""

# Standard library imports
from pathlib import Path
from typing import Any, Iterable, Optional, Union

# Third-party imports
from PyQt6.QtCore import QObject, pyqtSignal

from .pixel_forge_animation import AnimationController, plan_frame_deletions
from .pixel_forge_commands import EditorSnapshot, UndoManager
from .pixel_forge_constants import STATUS_MESSAGE_TIMEOUT
from .pixel_forge_exceptions import ExportError, format_error_message
from .pixel_forge_export import ExportFormat, export_filename, export_project
from .pixel_forge_managers import (
    PaletteManager,
    ProjectManager,
    SelectionManager,
    ShapeTool,
    ToolContext,
    ToolManager,
    ToolType,
)
from .pixel_forge_models import (
    TRANSPARENT,
    Frame,
    Project,
    RgbColor,
    resolve_active_frame,
)
from .pixel_forge_palette import PaletteQuantizer, PilPaletteQuantizer
from .pixel_forge_settings import SettingsManager
from .pixel_forge_state import EditorState, normalize_persisted_state, prepare_state_for_storage
from .pixel_forge_tools import merge_paste, paste_target_indices, to_xy
from .pixel_forge_utils import clamp_fps, debug_log
from .pixel_forge_workers import BaseWorker, ExportWorker, ManifestLoadWorker


class PixelForgeController(QObject):
    """Controller coordinating all editing operations"""

    # Signals
    projectsChanged = pyqtSignal()
    frameChanged = pyqtSignal()
    selectionChanged = pyqtSignal()
    toolChanged = pyqtSignal(str)  # tool name
    activeFrameChanged = pyqtSignal(str, int)  # project id, frame index
    playbackChanged = pyqtSignal(bool)
    statusMessage = pyqtSignal(str, int)  # message, timeout
    error = pyqtSignal(str)
    exportFinished = pyqtSignal(str)  # written file path

    def __init__(
        self,
        settings: Optional[SettingsManager] = None,
        quantizer: Optional[PaletteQuantizer] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)

        # Initialize settings
        self.settings = settings if settings is not None else SettingsManager()

        # Initialize managers
        self.project_manager = ProjectManager()
        self.tool_manager = ToolManager()
        self.selection_manager = SelectionManager()
        self.palette_manager = PaletteManager()
        self.undo_manager = UndoManager()
        self.animation = AnimationController(self)
        self.quantizer = quantizer if quantizer is not None else PilPaletteQuantizer()

        self.animation.frameAdvanced.connect(self._on_frame_advanced)
        self.animation.playbackChanged.connect(self.playbackChanged)

        # Seed preferences from settings
        self.fps = clamp_fps(self.settings.get("fps"))
        self.tool_manager.set_thickness(self.settings.get("tool_thickness"))
        self.is_grid_visible = self.settings.get("is_grid_visible") is not False

        # Paint session state
        self.is_painting = False

        # Workers
        self.export_worker: Optional[ExportWorker] = None
        self.manifest_worker: Optional[ManifestLoadWorker] = None
        self._retired_workers: list[BaseWorker] = []

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def active_project(self) -> Optional[Project]:
        return self.project_manager.active_project

    @property
    def active_frame_index(self) -> int:
        return self.animation.active_index(self.active_project)

    @property
    def active_frame(self) -> Optional[Frame]:
        project = self.active_project
        if project is None:
            return None
        return resolve_active_frame(project, self.active_frame_index)

    @property
    def selected_indices(self) -> list[int]:
        return self.selection_manager.selected_indices

    @property
    def current_tool_name(self) -> str:
        return self.tool_manager.current_tool_name

    @property
    def is_playing(self) -> bool:
        return self.animation.is_playing

    def _context(self, project: Project) -> ToolContext:
        return ToolContext(
            frame=resolve_active_frame(project, self.active_frame_index),
            width=project.width,
            height=project.height,
            color=self.tool_manager.color_for_tool(self.palette_manager.brush_color),
            thickness=self.tool_manager.thickness,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _push_snapshot(self) -> None:
        """Capture state before a destructive mutation"""
        self.undo_manager.push_snapshot(
            EditorSnapshot(
                self.project_manager.projects_by_bucket,
                self.project_manager.active_project_id,
                self.animation.active_frame_index_by_project,
                self.selection_manager.selected_indices,
            )
        )

    def undo(self) -> bool:
        """Restore the state captured before the last destructive edit"""
        snapshot = self.undo_manager.undo()
        if snapshot is None:
            self.statusMessage.emit("Nothing to undo", 1000)
            return False

        self.animation.stop_playback()
        previous = (self.project_manager.active_project_id, self.active_frame_index)
        self.project_manager.restore(snapshot.projects_by_bucket, snapshot.active_project_id)
        self.animation.restore(snapshot.active_frame_index_by_project)
        if (self.project_manager.active_project_id, self.active_frame_index) != previous:
            # A pending paste belongs to the frame it was placed on
            self.selection_manager.cancel()
        self.selection_manager.set_selection(snapshot.selected_indices)
        self.tool_manager.reset_gestures()
        self.is_painting = False

        debug_log("CONTROLLER", f"Undo ({len(self.undo_manager)} remaining)")
        self.projectsChanged.emit()
        self.frameChanged.emit()
        self.selectionChanged.emit()
        self.statusMessage.emit("Undo", 1000)
        return True

    # ------------------------------------------------------------------
    # Frame mutation helpers
    # ------------------------------------------------------------------

    def _replace_active_frame(self, project: Project, frame: Frame) -> None:
        if self.project_manager.replace_frame(project.id, self.active_frame_index, frame):
            self.frameChanged.emit()

    def _paint(self, project: Project, indices: Iterable[int], cell: Any) -> None:
        indices = list(indices)
        if not indices:
            return
        frame = resolve_active_frame(project, self.active_frame_index)
        self._replace_active_frame(project, frame.painted(indices, cell))

    def _reset_selection_state(self) -> None:
        """Active project or frame changed: selection and pending paste are dropped"""
        had_selection = bool(
            self.selection_manager.selected_indices or self.selection_manager.pending_paste
        )
        self.selection_manager.clear()
        self.tool_manager.reset_gestures()
        self.is_painting = False
        if had_selection:
            self.selectionChanged.emit()

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def pointer_down(self, index: int) -> None:
        """Start a gesture on a cell"""
        project = self.active_project
        if project is None or not 0 <= index < project.pixel_count:
            return

        if self.is_painting:
            # A new session ends any gesture that never saw its release
            self.tool_manager.reset_gestures()

        context = self._context(project)
        self.selection_manager.last_pointer_index = index

        if self.tool_manager.eyedropper_armed:
            self._sample_color(index, context)
            return

        self.is_painting = True
        tool_type = self.tool_manager.current_tool
        tool = self.tool_manager.get_tool()

        if tool_type is ToolType.SELECT and self.selection_manager.pending_paste is not None:
            x, y = to_xy(index, project.width)
            if self.selection_manager.begin_drag(x, y):
                self.is_painting = False
                return

        if tool_type is ToolType.SELECT:
            tool.on_press(index, context)
            self.selectionChanged.emit()
            return

        if self.tool_manager.is_stroke_tool:
            self._push_snapshot()
            self._paint(project, tool.on_press(index, context), context.color)
            return

        if tool_type is ToolType.BUCKET:
            self._push_snapshot()
            self._paint(project, tool.on_press(index, context), context.color)
            self.is_painting = False
            return

        # Line and rectangle: snapshot now, paint on release
        self._push_snapshot()
        tool.on_press(index, context)
        self.frameChanged.emit()

    def pointer_enter(self, index: int) -> None:
        """Continue a gesture into another cell"""
        project = self.active_project
        if project is None or not 0 <= index < project.pixel_count:
            return

        self.selection_manager.last_pointer_index = index

        if (
            self.selection_manager.is_dragging
            and self.tool_manager.current_tool is ToolType.SELECT
        ):
            x, y = to_xy(index, project.width)
            if self.selection_manager.drag_to(x, y, project.width, project.height):
                self.selectionChanged.emit()
            return

        if not self.is_painting:
            return

        context = self._context(project)
        tool = self.tool_manager.get_tool()

        if self.tool_manager.is_stroke_tool:
            self._paint(project, tool.on_move(index, context), context.color)
        elif self.tool_manager.is_shape_tool:
            tool.on_move(index, context)
            self.frameChanged.emit()
        elif self.tool_manager.current_tool is ToolType.SELECT:
            tool.on_move(index, context)
            self.selectionChanged.emit()

    def pointer_up(self, index: Optional[int] = None) -> None:
        """Finish the current gesture"""
        project = self.active_project
        if index is not None and project is not None and 0 <= index < project.pixel_count:
            self.selection_manager.last_pointer_index = index

        if self.selection_manager.end_drag():
            return

        if project is not None and self.is_painting:
            if index is not None and not 0 <= index < project.pixel_count:
                index = None
            context = self._context(project)
            tool = self.tool_manager.get_tool()

            if self.tool_manager.current_tool is ToolType.SELECT:
                selection = tool.on_release(index, context)
                if selection:
                    self.selection_manager.set_selection(selection)
                self.selectionChanged.emit()
            elif self.tool_manager.is_shape_tool:
                self._paint(project, tool.on_release(index, context), context.color)
            else:
                tool.on_release(index, context)

        self.tool_manager.reset_gestures()
        self.is_painting = False

    def _sample_color(self, index: int, context: ToolContext) -> None:
        """Eyedropper: transparent switches to the eraser, a color to the brush"""
        sampled = self.tool_manager.picker.on_press(index, context)
        if sampled is TRANSPARENT:
            self.palette_manager.set_brush_transparent()
            self.set_tool(ToolType.ERASER)
        elif isinstance(sampled, RgbColor):
            self.palette_manager.select_color(sampled.hex)
            self.set_tool(ToolType.BRUSH)
        self.tool_manager.arm_eyedropper(False)

    # ------------------------------------------------------------------
    # Clipboard and paste
    # ------------------------------------------------------------------

    def copy(self) -> bool:
        """Copy the pending paste or the selection's bounding rectangle"""
        frame = self.active_frame
        project = self.active_project
        if self.selection_manager.pending_paste is None and (project is None or frame is None):
            return False

        width = project.width if project is not None else 0
        if not self.selection_manager.copy(frame, width):
            return False
        self.statusMessage.emit("Copied", STATUS_MESSAGE_TIMEOUT)
        return True

    def paste(self) -> bool:
        """Float the clipboard as a pending paste and switch to the select tool"""
        project = self.active_project
        if project is None or self.selection_manager.clipboard is None:
            return False

        self.selection_manager.paste(project.width, project.height)
        self.set_tool(ToolType.SELECT)
        self.selectionChanged.emit()
        return True

    def commit_pending_paste(self) -> bool:
        """Merge the pending paste into the active frame"""
        project = self.active_project
        if project is None or self.selection_manager.pending_paste is None:
            return False

        self._push_snapshot()
        frame = resolve_active_frame(project, self.active_frame_index)
        merged = self.selection_manager.commit(frame, project.width, project.height)
        if merged is not None:
            self._replace_active_frame(project, merged)
        self.selectionChanged.emit()
        return True

    def cancel_pending_paste(self) -> bool:
        if not self.selection_manager.cancel():
            return False
        self.selectionChanged.emit()
        return True

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self, width: Any = None, height: Any = None, name: str = ""
    ) -> Project:
        """Create a project, make it active and select its first frame"""
        if width is None:
            width = self.settings.get("default_canvas_width")
        if height is None:
            height = self.settings.get("default_canvas_height")

        self._push_snapshot()
        self.animation.stop_playback()
        project = self.project_manager.create_project(width, height, name)
        return self._activate_new_project(project)

    def _activate_new_project(self, project: Project) -> Project:
        self.animation.set_active_index(project, 0)
        self._reset_selection_state()
        self.projectsChanged.emit()
        self.activeFrameChanged.emit(project.id, 0)
        self.frameChanged.emit()
        return project

    def delete_project(self, project_id: str) -> bool:
        """Delete a project; the active one falls back to the first remaining"""
        if self.project_manager.find_project(project_id) is None:
            return False

        self._push_snapshot()
        was_active = self.project_manager.active_project_id == project_id
        self.project_manager.delete_project(project_id)
        self.animation.forget(project_id)

        if was_active:
            self.animation.stop_playback()
            self._reset_selection_state()
            self.selection_manager.last_pointer_index = None

        self.projectsChanged.emit()
        self.frameChanged.emit()
        return True

    def set_active_project(self, project_id: Optional[str]) -> bool:
        if project_id == self.project_manager.active_project_id:
            return True
        if not self.project_manager.set_active_project(project_id):
            return False

        self.animation.stop_playback()
        self._reset_selection_state()
        self.projectsChanged.emit()
        project = self.active_project
        if project is not None:
            self.activeFrameChanged.emit(project.id, self.active_frame_index)
        self.frameChanged.emit()
        return True

    def go_home(self) -> None:
        """Leave the editor: no active project"""
        self.set_active_project(None)

    # ------------------------------------------------------------------
    # Frames and playback
    # ------------------------------------------------------------------

    def set_active_frame(self, index: int) -> None:
        project = self.active_project
        if project is None:
            return

        self.animation.stop_playback()
        previous = self.active_frame_index
        current = self.animation.set_active_index(project, index)
        if current != previous:
            self._reset_selection_state()
        self.activeFrameChanged.emit(project.id, current)
        self.frameChanged.emit()

    def add_frame(self) -> None:
        """Duplicate the active frame after itself"""
        project = self.active_project
        if project is None:
            return

        self._push_snapshot()
        self.animation.stop_playback()
        index = self.animation.add_frame(project)
        self._reset_selection_state()
        self.activeFrameChanged.emit(project.id, index)
        self.frameChanged.emit()

    def delete_frames(self, frame_indices: Iterable[Any]) -> bool:
        """Delete frames; the last remaining frame is never deleted"""
        project = self.active_project
        if project is None:
            return False

        frame_indices = list(frame_indices)
        if not plan_frame_deletions(project, frame_indices):
            return False

        self._push_snapshot()
        self.animation.stop_playback()
        self.animation.delete_frames(project, frame_indices)
        self._reset_selection_state()
        self.activeFrameChanged.emit(project.id, self.active_frame_index)
        self.frameChanged.emit()
        return True

    def delete_frame(self, frame_index: int) -> bool:
        return self.delete_frames([frame_index])

    def clear_canvas(self) -> None:
        """Replace the active frame with a blank one"""
        project = self.active_project
        if project is None:
            return

        self._push_snapshot()
        self._replace_active_frame(project, Frame.blank(project.width, project.height))

    def toggle_playback(self) -> bool:
        """Start or stop looping playback; returns whether it is now playing"""
        if self.animation.is_playing:
            self.animation.stop_playback()
            return False

        if not self.animation.start_playback(self.active_project, self.fps):
            self.statusMessage.emit("Add a second frame to play", STATUS_MESSAGE_TIMEOUT)
            return False
        return True

    def _on_frame_advanced(self, project_id: str, index: int) -> None:
        self._reset_selection_state()
        self.activeFrameChanged.emit(project_id, index)
        self.frameChanged.emit()

    def set_fps(self, fps: Any) -> int:
        self.fps = clamp_fps(fps)
        self.animation.set_fps(self.fps)
        self.settings.set("fps", self.fps)
        return self.fps

    # ------------------------------------------------------------------
    # Tools and palette
    # ------------------------------------------------------------------

    def set_tool(self, tool: Union[ToolType, str]) -> bool:
        """Set the current drawing tool"""
        if not self.tool_manager.set_tool(tool):
            return False
        self.is_painting = False
        debug_log("CONTROLLER", f"Tool changed to: {self.current_tool_name}")
        self.toolChanged.emit(self.current_tool_name)
        return True

    def set_tool_thickness(self, thickness: Any) -> int:
        value = self.tool_manager.set_thickness(thickness)
        self.settings.set("tool_thickness", value)
        return value

    def select_color(self, value: Any) -> Optional[str]:
        """Normalize and select a hex color; invalid input is ignored"""
        selected = self.palette_manager.select_color(value)
        if selected is not None:
            self.tool_manager.arm_eyedropper(False)
        return selected

    def arm_eyedropper(self, armed: bool = True) -> None:
        self.tool_manager.arm_eyedropper(armed)

    def set_grid_visible(self, visible: bool) -> None:
        self.is_grid_visible = bool(visible)
        self.settings.set("is_grid_visible", self.is_grid_visible)

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview_frame(self) -> Optional[Frame]:
        """Active frame with the in-progress line/rectangle and pending paste drawn on top"""
        project = self.active_project
        if project is None:
            return None

        context = self._context(project)
        frame = context.frame
        tool = self.tool_manager.get_tool()
        if self.is_painting and self.tool_manager.is_shape_tool and isinstance(tool, ShapeTool):
            frame = frame.painted(tool.preview_indices(context), context.color)

        pending = self.selection_manager.pending_paste
        if pending is not None:
            frame = merge_paste(frame, pending, project.width, project.height)
        return frame

    def visible_selection(self) -> list[int]:
        """Marquee preview, else pending paste footprint, else the selection"""
        project = self.active_project
        if project is None:
            return []

        tool = self.tool_manager.get_tool()
        if (
            self.is_painting
            and self.tool_manager.current_tool is ToolType.SELECT
            and isinstance(tool, ShapeTool)
            and tool.is_active
        ):
            return tool.preview_indices(self._context(project))

        pending = self.selection_manager.pending_paste
        if pending is not None:
            return paste_target_indices(pending, project.width, project.height)
        return list(self.selection_manager.selected_indices)

    # ------------------------------------------------------------------
    # Export and import
    # ------------------------------------------------------------------

    def export(self, fmt: Union[ExportFormat, str]) -> Optional[bytes]:
        """Encode the active project; None (and an error signal) on failure"""
        project = self.active_project
        if project is None:
            return None

        data = export_project(project, fmt, self.active_frame_index, self.fps, self.quantizer)
        if data is None:
            self.error.emit(format_error_message("export", ExportError(f"could not encode {fmt}")))
        return data

    def export_to_file(
        self,
        fmt: Union[ExportFormat, str],
        directory: Optional[Union[str, Path]] = None,
    ) -> Optional[ExportWorker]:
        """Encode and write the active project on a background worker"""
        project = self.active_project
        parsed = ExportFormat.parse(fmt)
        if project is None or parsed is None:
            return None

        if directory is None:
            directory = self.settings.get("last_export_dir") or Path.cwd()
        file_path = Path(directory) / export_filename(project.name, parsed)

        self._retire_worker(self.export_worker)

        worker = ExportWorker(
            project,
            parsed,
            file_path,
            frame_index=self.active_frame_index,
            fps=self.fps,
            quantizer=self.quantizer,
        )
        worker.progress.connect(
            lambda p, msg: debug_log("CONTROLLER", f"Export progress: {p}% - {msg}", "DEBUG")
        )
        worker.saved.connect(self._handle_export_saved)
        worker.error.connect(self._handle_worker_error)
        self.export_worker = worker
        worker.start()
        return worker

    def _retire_worker(self, worker: Optional[BaseWorker]) -> None:
        """Cancel a replaced worker; it stays referenced until its thread ends"""
        self._retired_workers = [w for w in self._retired_workers if w.isRunning()]
        if worker is not None and worker.isRunning():
            worker.cancel()
            self._retired_workers.append(worker)

    def shutdown(self, timeout_ms: int = 5000) -> None:
        """Stop playback and wait for every background worker to finish"""
        self.animation.stop_playback()
        workers = [self.export_worker, self.manifest_worker, *self._retired_workers]
        for worker in workers:
            if worker is not None and worker.isRunning():
                worker.cancel()
                worker.wait(timeout_ms)
        self._retired_workers = [w for w in self._retired_workers if w.isRunning()]

    def _handle_export_saved(self, file_path: str) -> None:
        self.settings.add_recent_export(file_path)
        self.statusMessage.emit(f"Exported {file_path}", STATUS_MESSAGE_TIMEOUT)
        self.exportFinished.emit(file_path)

    def _handle_worker_error(self, message: str) -> None:
        debug_log("CONTROLLER", message, "ERROR")
        self.error.emit(message)

    def import_manifest(self, file_path: Union[str, Path]) -> ManifestLoadWorker:
        """Load a JSON manifest as a new project on a background worker"""
        self._retire_worker(self.manifest_worker)

        worker = ManifestLoadWorker(file_path)
        worker.progress.connect(
            lambda p, msg: debug_log("CONTROLLER", f"Import progress: {p}% - {msg}", "DEBUG")
        )
        worker.result.connect(self._handle_manifest_loaded)
        worker.error.connect(self._handle_worker_error)
        self.manifest_worker = worker
        worker.start()
        return worker

    def _handle_manifest_loaded(self, project: Project) -> None:
        self._push_snapshot()
        self.animation.stop_playback()
        self.project_manager.add_project(project)
        self._activate_new_project(project)
        self.statusMessage.emit(f"Imported {project.name}", STATUS_MESSAGE_TIMEOUT)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_editor_state(self) -> EditorState:
        palette = self.palette_manager
        return EditorState(
            projects_by_bucket={
                key: [project.copy() for project in projects]
                for key, projects in self.project_manager.projects_by_bucket.items()
            },
            active_project_id=self.project_manager.active_project_id,
            active_frame_index_by_project=dict(self.animation.active_frame_index_by_project),
            palette=list(palette.palette),
            brush_color=palette.brush_color_string,
            picker_color=palette.picker_color,
            custom_palette=list(palette.custom_palette),
            current_tool=self.current_tool_name,
            tool_thickness=self.tool_manager.thickness,
            fps=self.fps,
            is_grid_visible=self.is_grid_visible,
        )

    def to_persisted_state(self, frame_strings: bool = True) -> dict[str, Any]:
        """Serializable snapshot of everything worth keeping between sessions"""
        return prepare_state_for_storage(self.to_editor_state(), frame_strings)

    def load_persisted_state(self, raw: Any) -> EditorState:
        """Replace the editor state with normalized stored data; clears history"""
        state = normalize_persisted_state(raw)

        self.animation.stop_playback()
        self.project_manager.restore(state.projects_by_bucket, state.active_project_id)
        self.animation.restore(state.active_frame_index_by_project)
        self.palette_manager.load(
            state.palette, state.brush_color, state.picker_color, state.custom_palette
        )
        self.tool_manager.set_tool(state.current_tool)
        self.tool_manager.set_thickness(state.tool_thickness)
        self.fps = state.fps
        self.is_grid_visible = state.is_grid_visible

        self.undo_manager.clear()
        self.selection_manager.clear()
        self.selection_manager.clipboard = None
        self.selection_manager.last_pointer_index = None
        self.is_painting = False

        debug_log(
            "CONTROLLER",
            f"Loaded state with {len(self.project_manager.all_projects())} projects",
        )
        self.projectsChanged.emit()
        self.toolChanged.emit(self.current_tool_name)
        self.frameChanged.emit()
        self.selectionChanged.emit()
        return state
