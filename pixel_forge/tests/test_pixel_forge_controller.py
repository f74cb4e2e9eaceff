#!/usr/bin/env python3
"""
Unit tests for PixelForgeController
Drives the gesture contract and editor operations end to end
"""

import io
import json
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from pixel_forge.core.pixel_forge_controller import PixelForgeController
from pixel_forge.core.pixel_forge_export import build_json_manifest
from pixel_forge.core.pixel_forge_managers import ToolType
from pixel_forge.core.pixel_forge_models import TRANSPARENT, Frame, Project, RgbColor
from pixel_forge.core.pixel_forge_palette import PaletteQuantizer

RED = RgbColor(255, 0, 0)


def painted(controller):
    """Indices of non-transparent cells in the active frame"""
    return [i for i, cell in enumerate(controller.active_frame) if cell is not TRANSPARENT]


@pytest.fixture
def editor(controller):
    """Controller with an active blank 4x4 project and a red brush"""
    controller.create_project(4, 4, "Hero")
    controller.select_color("#ff0000")
    controller.error_handler = MagicMock()
    controller.error.connect(controller.error_handler)
    return controller


class TestInitialization:
    def test_initial_state(self, controller):
        assert controller.active_project is None
        assert controller.active_frame is None
        assert controller.current_tool_name == "brush"
        assert controller.fps == 8
        assert controller.is_grid_visible
        assert not controller.undo_manager.can_undo

    def test_settings_seed_preferences(self, qapp, settings):
        settings.set("fps", 30)
        settings.set("tool_thickness", 4)
        settings.set("is_grid_visible", False)

        controller = PixelForgeController(settings=settings)

        assert controller.fps == 30
        assert controller.tool_manager.thickness == 4
        assert not controller.is_grid_visible

    def test_gestures_without_project_are_noops(self, controller):
        controller.pointer_down(0)
        controller.pointer_enter(1)
        controller.pointer_up(1)

        assert not controller.copy()
        assert not controller.paste()
        assert not controller.commit_pending_paste()
        assert controller.export("png") is None
        assert controller.preview_frame() is None
        assert controller.visible_selection() == []
        assert not controller.undo_manager.can_undo


class TestProjects:
    """Test project lifecycle through the controller"""

    def test_create_project(self, controller, qtbot):
        with qtbot.waitSignal(controller.activeFrameChanged) as blocker:
            project = controller.create_project(8, 4)

        assert controller.active_project is project
        assert project.name == "8 x 4 Pixel File"
        assert blocker.args == [project.id, 0]
        assert controller.active_frame_index == 0
        assert controller.undo_manager.can_undo

    def test_create_uses_default_size_setting(self, controller):
        controller.settings.set("default_canvas_width", 32)
        project = controller.create_project()
        assert (project.width, project.height) == (32, 16)

    def test_undo_create(self, controller):
        controller.create_project(4, 4, "a")
        assert controller.undo()
        assert controller.active_project is None
        assert controller.project_manager.all_projects() == []

    def test_delete_active_project_falls_back(self, editor):
        first = editor.active_project
        second = editor.create_project(4, 4, "Other")
        editor.selection_manager.set_selection([1])
        editor.pointer_enter(2)

        assert editor.delete_project(second.id)

        assert editor.active_project is first
        assert editor.selected_indices == []
        assert editor.selection_manager.last_pointer_index is None

    def test_delete_unknown_project(self, editor):
        assert not editor.delete_project("missing")

    def test_switching_project_clears_selection(self, editor):
        first = editor.active_project
        editor.create_project(4, 4, "Other")
        editor.selection_manager.set_selection([0, 1])

        assert editor.set_active_project(first.id)

        assert editor.active_project is first
        assert editor.selected_indices == []
        assert not editor.set_active_project("missing")

    def test_go_home(self, editor):
        editor.selection_manager.set_selection([3])
        editor.go_home()

        assert editor.active_project is None
        assert editor.selected_indices == []
        assert editor.project_manager.all_projects()


class TestPainting:
    """Test brush, eraser, shapes and fill gestures"""

    def test_brush_stroke_interpolates(self, editor):
        editor.pointer_down(0)
        editor.pointer_enter(3)
        editor.pointer_up(3)

        assert painted(editor) == [0, 1, 2, 3]
        assert editor.active_frame[0] == RED
        assert not editor.is_painting

    def test_stroke_is_one_undo_step(self, editor):
        before = len(editor.undo_manager)
        editor.pointer_down(0)
        editor.pointer_enter(1)
        editor.pointer_enter(2)
        editor.pointer_up(2)

        assert len(editor.undo_manager) == before + 1
        editor.undo()
        assert painted(editor) == []

    def test_hover_does_not_paint(self, editor):
        editor.pointer_enter(5)
        assert painted(editor) == []
        assert editor.selection_manager.last_pointer_index == 5

    def test_out_of_range_hover_keeps_pointer(self, editor):
        editor.pointer_enter(5)
        editor.pointer_enter(99)
        editor.pointer_enter(-1)
        editor.pointer_up(42)

        assert editor.selection_manager.last_pointer_index == 5

    def test_out_of_range_press_ignored(self, editor):
        before = len(editor.undo_manager)
        editor.pointer_down(99)
        assert len(editor.undo_manager) == before
        assert not editor.is_painting

    def test_brush_thickness(self, editor):
        editor.set_tool_thickness(2)
        editor.pointer_down(5)
        editor.pointer_up(5)
        assert painted(editor) == [1, 4, 5, 6, 9]

    def test_eraser(self, editor):
        editor.pointer_down(0)
        editor.pointer_enter(3)
        editor.pointer_up()
        editor.set_tool("eraser")

        editor.pointer_down(1)
        editor.pointer_up(1)

        assert painted(editor) == [0, 2, 3]

    def test_line_previews_then_commits(self, editor):
        editor.set_tool("line")
        editor.pointer_down(0)
        editor.pointer_enter(2)

        assert painted(editor) == []
        preview = editor.preview_frame()
        assert [i for i, cell in enumerate(preview) if cell == RED] == [0, 1, 2]

        editor.pointer_up(3)
        assert painted(editor) == [0, 1, 2, 3]

    def test_line_release_outside_grid_uses_last_cell(self, editor):
        editor.set_tool("line")
        editor.pointer_down(0)
        editor.pointer_enter(8)
        editor.pointer_up(None)

        assert painted(editor) == [0, 4, 8]

    def test_rectangle(self, editor):
        editor.set_tool("square")
        editor.pointer_down(0)
        editor.pointer_up(10)
        assert painted(editor) == [0, 1, 2, 4, 6, 8, 9, 10]

    def test_bucket(self, editor):
        editor.set_tool("bucket")
        editor.pointer_down(7)

        assert len(painted(editor)) == 16
        assert not editor.is_painting

    def test_clear_canvas(self, editor):
        editor.set_tool("bucket")
        editor.pointer_down(0)
        editor.clear_canvas()

        assert painted(editor) == []
        editor.undo()
        assert len(painted(editor)) == 16


class TestSelectionAndPaste:
    """Test marquee, copy, paste, drag and commit"""

    def select_cells(self, editor, start, end):
        editor.set_tool("select")
        editor.pointer_down(start)
        editor.pointer_enter(end)
        editor.pointer_up(end)

    def test_marquee(self, editor):
        editor.set_tool("select")
        editor.pointer_down(5)
        editor.pointer_enter(10)
        assert editor.visible_selection() == [5, 6, 9, 10]
        assert editor.selected_indices == []

        editor.pointer_up(10)
        assert editor.selected_indices == [5, 6, 9, 10]

    def test_selection_does_not_snapshot(self, editor):
        before = len(editor.undo_manager)
        self.select_cells(editor, 0, 5)
        assert len(editor.undo_manager) == before

    def test_copy_without_selection(self, editor):
        assert not editor.copy()

    def test_copy_paste_drag_commit(self, editor):
        editor.pointer_down(5)
        editor.pointer_up(5)
        self.select_cells(editor, 5, 6)
        assert editor.copy()

        editor.pointer_enter(12)
        assert editor.paste()
        pending = editor.selection_manager.pending_paste
        assert (pending.anchor_x, pending.anchor_y) == (0, 3)
        assert editor.visible_selection() == [12, 13]

        # Drag the floating block one cell right
        before = len(editor.undo_manager)
        editor.pointer_down(12)
        editor.pointer_enter(13)
        editor.pointer_up(13)
        assert (pending.anchor_x, pending.anchor_y) == (1, 3)
        assert len(editor.undo_manager) == before

        preview = editor.preview_frame()
        assert preview[13] == RED
        assert editor.active_frame[13] is TRANSPARENT

        assert editor.commit_pending_paste()
        assert editor.active_frame[13] == RED
        assert editor.active_frame[5] == RED
        assert editor.selected_indices == [13, 14]
        assert editor.selection_manager.pending_paste is None

        editor.undo()
        assert editor.active_frame[13] is TRANSPARENT
        assert editor.selected_indices == [5, 6]

    def test_paste_switches_to_select(self, editor, qtbot):
        self.select_cells(editor, 0, 0)
        editor.copy()
        editor.set_tool("brush")

        with qtbot.waitSignal(editor.toolChanged) as blocker:
            editor.paste()

        assert blocker.args == ["select"]
        assert editor.tool_manager.current_tool is ToolType.SELECT

    def test_press_outside_paste_starts_marquee(self, editor):
        self.select_cells(editor, 0, 0)
        editor.copy()
        editor.pointer_enter(0)
        editor.paste()

        editor.pointer_down(10)
        editor.pointer_up(15)

        assert editor.selected_indices == [10, 11, 14, 15]
        assert editor.selection_manager.pending_paste is not None

    def test_cancel_paste(self, editor):
        self.select_cells(editor, 0, 0)
        editor.copy()
        editor.paste()

        assert editor.cancel_pending_paste()
        assert editor.selection_manager.pending_paste is None
        assert not editor.cancel_pending_paste()

    def test_copy_from_pending_paste(self, editor):
        editor.pointer_down(0)
        editor.pointer_up(0)
        self.select_cells(editor, 0, 1)
        editor.copy()
        editor.paste()
        editor.selection_manager.set_selection([])

        assert editor.copy()
        assert editor.selection_manager.clipboard.width == 2

    def test_undo_to_other_frame_drops_pending_paste(self, editor):
        self.select_cells(editor, 0, 0)
        editor.copy()
        editor.add_frame()
        editor.pointer_enter(15)
        assert editor.paste()

        editor.undo()

        assert editor.active_frame_index == 0
        assert editor.active_project.frame_count == 1
        assert editor.selection_manager.pending_paste is None
        assert not editor.commit_pending_paste()

    def test_undo_on_same_frame_keeps_pending_paste(self, editor):
        editor.pointer_down(0)
        editor.pointer_up(0)
        self.select_cells(editor, 0, 0)
        editor.copy()
        editor.paste()

        editor.undo()

        assert editor.active_frame[0] is TRANSPARENT
        assert editor.selection_manager.pending_paste is not None


class TestEyedropper:
    def test_sample_color_selects_brush(self, editor):
        editor.pointer_down(6)
        editor.pointer_up(6)
        editor.select_color("#00ff00")
        editor.set_tool("bucket")
        editor.arm_eyedropper()

        editor.pointer_down(6)

        assert editor.palette_manager.brush_color == RED
        assert editor.palette_manager.picker_color == "#ff0000"
        assert editor.tool_manager.current_tool is ToolType.BRUSH
        assert not editor.tool_manager.eyedropper_armed
        assert painted(editor) == [6]

    def test_sample_transparent_selects_eraser(self, editor):
        editor.arm_eyedropper()
        editor.pointer_down(0)

        assert editor.palette_manager.brush_color is TRANSPARENT
        assert editor.tool_manager.current_tool is ToolType.ERASER
        assert not editor.tool_manager.eyedropper_armed
        assert not editor.is_painting

    def test_select_color_disarms(self, editor):
        editor.arm_eyedropper()
        editor.select_color("#0000ff")
        assert not editor.tool_manager.eyedropper_armed

    def test_invalid_color_keeps_eyedropper(self, editor):
        editor.arm_eyedropper()
        assert editor.select_color("blue") is None
        assert editor.tool_manager.eyedropper_armed


class TestFrames:
    """Test frame operations and playback through the controller"""

    def test_add_and_delete_frames(self, editor):
        editor.pointer_down(0)
        editor.pointer_up(0)

        editor.add_frame()
        assert editor.active_project.frame_count == 2
        assert editor.active_frame_index == 1
        assert painted(editor) == [0]

        assert editor.delete_frames([0])
        assert editor.active_project.frame_count == 1
        assert editor.active_frame_index == 0

        assert not editor.delete_frame(0)

    def test_set_active_frame_clears_selection(self, editor, qtbot):
        editor.add_frame()
        editor.selection_manager.set_selection([1, 2])

        with qtbot.waitSignal(editor.selectionChanged):
            editor.set_active_frame(0)

        assert editor.active_frame_index == 0
        assert editor.selected_indices == []

    def test_paint_targets_active_frame(self, editor):
        editor.add_frame()
        editor.pointer_down(3)
        editor.pointer_up(3)

        frames = editor.active_project.frames
        assert frames[1][3] == RED
        assert frames[0][3] is TRANSPARENT

    def test_playback_needs_two_frames(self, editor):
        messages = MagicMock()
        editor.statusMessage.connect(messages)

        assert not editor.toggle_playback()
        messages.assert_called_once()

    def test_playback_toggle_and_undo_stops(self, editor):
        editor.add_frame()
        assert editor.toggle_playback()
        assert editor.is_playing

        editor.undo()
        assert not editor.is_playing

        editor.add_frame()
        editor.toggle_playback()
        assert not editor.toggle_playback()
        assert not editor.is_playing

    def test_add_frame_stops_playback(self, editor):
        editor.add_frame()
        assert editor.toggle_playback()

        editor.add_frame()

        assert editor.active_project.frame_count == 3
        assert not editor.is_playing

    def test_delete_frames_stops_playback(self, editor, qtbot):
        for _ in range(3):
            editor.add_frame()
        assert editor.toggle_playback()

        with qtbot.waitSignal(editor.playbackChanged) as blocker:
            assert editor.delete_frames([0])

        assert blocker.args == [False]
        assert editor.active_project.frame_count == 3
        assert not editor.is_playing

    def test_playback_tick_clears_selection(self, editor):
        editor.add_frame()
        editor.set_active_frame(0)
        editor.toggle_playback()
        editor.selection_manager.set_selection([4])

        editor.animation._advance()

        assert editor.active_frame_index == 1
        assert editor.selected_indices == []

    def test_set_fps_persists(self, editor):
        assert editor.set_fps(500) == 60
        assert editor.settings.get("fps") == 60
        assert editor.set_fps("junk") == 8


class TestPreferences:
    def test_tool_thickness_persists(self, editor):
        assert editor.set_tool_thickness(9) == 5
        assert editor.settings.get("tool_thickness") == 5

    def test_grid_visibility_persists(self, editor):
        editor.set_grid_visible(False)
        assert editor.settings.get("is_grid_visible") is False

    def test_unknown_tool(self, editor):
        assert not editor.set_tool("lasso")
        assert editor.current_tool_name == "brush"

    def test_undo_on_empty_history(self, controller):
        messages = MagicMock()
        controller.statusMessage.connect(messages)

        assert not controller.undo()
        messages.assert_called_once_with("Nothing to undo", 1000)


class TestExport:
    """Test export through the controller"""

    def test_export_png_uses_active_frame(self, editor):
        editor.add_frame()
        editor.pointer_down(0)
        editor.pointer_up(0)

        image = Image.open(io.BytesIO(editor.export("png"))).convert("RGBA")
        assert image.getpixel((0, 0)) == (255, 0, 0, 255)

    def test_export_failure_emits_error(self, editor):
        class BrokenQuantizer(PaletteQuantizer):
            def quantize(self, rgba, max_colors=256, reserve_transparent=True):
                raise RuntimeError("boom")

        editor.quantizer = BrokenQuantizer()

        assert editor.export("gif") is None
        editor.error_handler.assert_called_once()
        assert "Export failed" in editor.error_handler.call_args.args[0]

    def test_export_to_file(self, editor, qtbot, tmp_path):
        with qtbot.waitSignal(editor.exportFinished, timeout=5000) as blocker:
            worker = editor.export_to_file("spritesheet", tmp_path)
        worker.wait()

        path = tmp_path / "Hero.spritesheet.png"
        assert blocker.args == [str(path)]
        assert path.exists()
        assert editor.settings.get_recent_exports() == [str(path)]
        assert editor.settings.get("last_export_dir") == str(tmp_path)

    def test_replacing_running_export(self, editor, qtbot, tmp_path):
        editor.create_project(256, 256, "Big")
        editor.pointer_down(0)
        editor.pointer_up(0)
        for _ in range(6):
            editor.add_frame()

        first = editor.export_to_file("gif", tmp_path)
        with qtbot.waitSignal(
            editor.exportFinished,
            timeout=30000,
            check_params_cb=lambda path: path.endswith(".json"),
        ) as blocker:
            second = editor.export_to_file("json", tmp_path)
        first.wait()
        second.wait()

        assert first.is_cancelled()
        assert first in editor._retired_workers
        assert editor.export_worker is second
        assert blocker.args == [str(tmp_path / "Big.json")]

        third = editor.export_to_file("png", tmp_path)
        third.wait()
        assert editor._retired_workers == []

    def test_export_to_file_unknown_format(self, editor, tmp_path):
        assert editor.export_to_file("bmp", tmp_path) is None

    def test_import_manifest(self, editor, qtbot, tmp_path):
        source = Project("x", "Hero", 4, 4, [Frame.blank(4, 4).painted([5], RED)])
        path = tmp_path / "hero.json"
        path.write_bytes(build_json_manifest(source))

        with qtbot.waitSignal(editor.projectsChanged, timeout=5000):
            worker = editor.import_manifest(path)
        worker.wait()

        imported = editor.active_project
        assert imported.name == "Hero 2"
        assert imported.frames == source.frames
        assert imported.id != "x"
        assert editor.active_frame_index == 0

        editor.undo()
        assert editor.active_project.name == "Hero"

    def test_replacing_running_import(self, editor, qtbot, tmp_path):
        path = tmp_path / "hero.json"
        path.write_bytes(build_json_manifest(Project("x", "Hero", 4, 4, [Frame.blank(4, 4)])))

        first = editor.import_manifest(path)
        with qtbot.waitSignal(editor.projectsChanged, timeout=5000):
            second = editor.import_manifest(path)
        first.wait()
        second.wait()

        assert editor.manifest_worker is second
        assert first.is_cancelled() == (first in editor._retired_workers)

    def test_shutdown_waits_for_workers(self, editor, tmp_path):
        worker = editor.export_to_file("gif", tmp_path)
        editor.shutdown()

        assert not worker.isRunning()
        assert editor._retired_workers == []

    def test_import_invalid_manifest(self, editor, qtbot, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{}")

        with qtbot.waitSignal(editor.error, timeout=5000):
            worker = editor.import_manifest(path)
        worker.wait()

        assert len(editor.project_manager.all_projects()) == 1


class TestPersistence:
    """Test saving and restoring the editor state"""

    def test_round_trip(self, editor, qapp, settings):
        editor.pointer_down(0)
        editor.pointer_enter(3)
        editor.pointer_up(3)
        editor.add_frame()
        editor.set_tool("line")
        editor.set_tool_thickness(3)
        editor.set_fps(12)
        editor.palette_manager.click_custom_slot(0)

        stored = json.loads(json.dumps(editor.to_persisted_state()))
        restored = PixelForgeController(settings=settings)
        restored.load_persisted_state(stored)

        assert restored.active_project.id == editor.active_project.id
        assert restored.active_project.frames == editor.active_project.frames
        assert restored.active_frame_index == 1
        assert restored.current_tool_name == "line"
        assert restored.tool_manager.thickness == 3
        assert restored.fps == 12
        assert restored.palette_manager.custom_palette[0] == "#ff0000"
        assert restored.palette_manager.brush_color == RED
        assert not restored.undo_manager.can_undo

    def test_nested_frame_storage(self, editor):
        stored = editor.to_persisted_state(frame_strings=False)
        record = stored["projectsBySize"]["4x4"][0]
        assert np.array(record["frames"]).shape == (1, 16)

    def test_load_clears_transient_state(self, editor):
        editor.selection_manager.set_selection([1])
        editor.load_persisted_state({"projectsBySize": {}})

        assert editor.active_project is None
        assert editor.selected_indices == []
        assert editor.selection_manager.clipboard is None
        assert not editor.undo_manager.can_undo
