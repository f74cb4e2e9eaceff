#!/usr/bin/env python3
"""
Tests for persisted editor state: storage shape and forgiving normalization
"""

import json

import pytest

from pixel_forge.core.pixel_forge_constants import BASE_PALETTE, CUSTOM_PALETTE_SLOTS
from pixel_forge.core.pixel_forge_models import TRANSPARENT, Frame, Project, RgbColor
from pixel_forge.core.pixel_forge_state import (
    EditorState,
    load_storage_document,
    normalize_persisted_state,
    normalize_projects_by_bucket,
    prepare_state_for_storage,
    to_storage_document,
)

RED = RgbColor(255, 0, 0)


@pytest.fixture
def state():
    project = Project("p1", "Hero", 2, 2, [Frame((RED, TRANSPARENT, TRANSPARENT, RED))])
    return EditorState(
        projects_by_bucket={"16x16": [], "32x32": [], "64x64": [], "2x2": [project]},
        active_project_id="p1",
        active_frame_index_by_project={"p1": 0},
        brush_color="#ff0000",
        current_tool="bucket",
        tool_thickness=3,
        fps=12,
        is_grid_visible=False,
    )


class TestStorage:
    """Test the stored document shape"""

    def test_frame_strings(self, state):
        stored = prepare_state_for_storage(state)

        record = stored["projectsBySize"]["2x2"][0]
        assert "frames" not in record
        assert json.loads(record["frameStrings"][0]) == [
            "#ff0000",
            "rgba(0, 0, 0, 0)",
            "rgba(0, 0, 0, 0)",
            "#ff0000",
        ]
        assert stored["activeProjectId"] == "p1"
        assert stored["currentTool"] == "bucket"
        assert stored["toolThickness"] == 3
        assert stored["isGridVisible"] is False

    def test_nested_frames(self, state):
        stored = prepare_state_for_storage(state, frame_strings=False)
        record = stored["projectsBySize"]["2x2"][0]

        assert "frameStrings" not in record
        assert record["frames"][0][0] == "#ff0000"

    def test_document_is_json_serializable(self, state):
        document = to_storage_document(state)
        assert document["version"] == 1
        json.dumps(document)

    @pytest.mark.parametrize("frame_strings", [True, False])
    def test_round_trip(self, state, frame_strings):
        stored = json.loads(json.dumps(prepare_state_for_storage(state, frame_strings)))
        restored = normalize_persisted_state(stored)

        project = restored.projects_by_bucket["2x2"][0]
        assert project.frames == state.projects_by_bucket["2x2"][0].frames
        assert restored.active_project_id == "p1"
        assert restored.current_tool == "bucket"
        assert restored.tool_thickness == 3
        assert restored.fps == 12
        assert restored.is_grid_visible is False

    def test_storage_document_round_trip(self, state):
        restored = load_storage_document(to_storage_document(state))
        assert restored.active_project_id == "p1"

    def test_unknown_version(self, state):
        document = to_storage_document(state)
        document["version"] = 99
        assert load_storage_document(document) is None
        assert load_storage_document({"version": 1, "state": []}) is None
        assert load_storage_document("junk") is None


class TestNormalization:
    """Test repair of malformed stored state"""

    def test_non_mapping_gives_defaults(self):
        state = normalize_persisted_state(None)

        assert state.palette == BASE_PALETTE
        assert state.fps == 8
        assert state.current_tool == "brush"
        assert list(state.projects_by_bucket) == ["16x16", "32x32", "64x64"]

    def test_legacy_keys_are_canonicalized(self):
        raw = {"16": [{"id": "a", "name": "Old", "frames": [["#fff"]]}]}

        buckets = normalize_projects_by_bucket(raw)

        project = buckets["16x16"][0]
        assert (project.width, project.height) == (16, 16)
        assert len(project.frames[0]) == 256
        assert project.frames[0][0] == RgbColor(255, 255, 255)
        assert "16" not in buckets

    def test_project_dimensions_override_bucket(self):
        raw = {"16x16": [{"id": "a", "name": "Wide", "width": 8, "height": 4, "frames": [[]]}]}

        buckets = normalize_projects_by_bucket(raw)

        assert buckets["16x16"] == []
        assert buckets["8x4"][0].name == "Wide"

    def test_malformed_projects_dropped(self):
        raw = {
            "16x16": [
                {"id": 5, "name": "bad id", "frames": []},
                {"id": "b", "frames": []},
                {"id": "c", "name": "no frames"},
                "not a project",
                {"id": "d", "name": "ok", "frames": []},
            ],
            "bogus": [{"id": "e", "name": "lost", "frames": []}],
        }

        buckets = normalize_projects_by_bucket(raw)

        assert [project.id for project in buckets["16x16"]] == ["d"]
        assert buckets["16x16"][0].frame_count == 1

    def test_duplicate_ids_dropped(self):
        project = {"id": "a", "name": "dup", "frames": [[]]}
        buckets = normalize_projects_by_bucket({"16": [project], "16x16": [project]})
        assert sum(len(projects) for projects in buckets.values()) == 1

    def test_bad_frame_strings(self):
        raw = {
            "4x4": [
                {
                    "id": "a",
                    "name": "strings",
                    "frameStrings": ["{not json", 7, json.dumps({"a": 1}), json.dumps(["#000"])],
                }
            ]
        }

        project = normalize_projects_by_bucket(raw)["4x4"][0]

        assert project.frame_count == 1
        assert project.frames[0][0] == RgbColor(0, 0, 0)

    def test_frame_strings_fall_back_to_frames(self):
        raw = {"2x2": [{"id": "a", "name": "n", "frameStrings": [], "frames": [["#fff"] * 4]}]}
        project = normalize_projects_by_bucket(raw)["2x2"][0]
        assert project.frames[0][3] == RgbColor(255, 255, 255)

    def test_scalar_settings_repaired(self):
        state = normalize_persisted_state(
            {
                "activeProjectId": "missing",
                "activeFrameIndexByProject": {"a": 2, "b": "x", "c": -1},
                "palette": ["#000000", 4],
                "brushColor": 7,
                "pickerColor": "#123456",
                "customPalette": ["#111111"] * CUSTOM_PALETTE_SLOTS,
                "currentTool": "lasso",
                "toolThickness": 99,
                "fps": 0,
                "isGridVisible": "no",
            }
        )

        assert state.active_project_id is None
        assert state.active_frame_index_by_project == {"a": 2, "c": 0}
        assert state.palette == ["#000000"]
        assert state.brush_color == BASE_PALETTE[0]
        assert state.picker_color == "#123456"
        assert len(state.custom_palette) == CUSTOM_PALETTE_SLOTS * 2
        assert state.current_tool == "brush"
        assert state.tool_thickness == 5
        assert state.fps == 8
        assert state.is_grid_visible is True
