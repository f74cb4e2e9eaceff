#!/usr/bin/env python3
"""
Persisted editor state for Pixel Forge

Converts the live editor state to a JSON-ready document and back. Loading
is forgiving: malformed projects are dropped, frames are repaired and
every setting falls back to its default.
"""

# Standard library imports
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .pixel_forge_constants import BASE_PALETTE, DEFAULT_FPS, STORAGE_VERSION
from .pixel_forge_managers import ToolType
from .pixel_forge_models import (
    Frame,
    Project,
    bucket_keys_for,
    empty_projects_by_bucket,
    parse_bucket_key,
    projects_in_bucket,
)
from .pixel_forge_palette import normalize_custom_palette
from .pixel_forge_utils import clamp_brush_size, clamp_canvas_size, clamp_fps, debug_log

__all__ = [
    "EditorState",
    "load_storage_document",
    "normalize_custom_palette",
    "normalize_persisted_state",
    "normalize_projects_by_bucket",
    "prepare_state_for_storage",
    "to_storage_document",
]


@dataclass
class EditorState:
    """Everything that survives between sessions"""

    projects_by_bucket: dict[str, list[Project]] = field(default_factory=empty_projects_by_bucket)
    active_project_id: Optional[str] = None
    active_frame_index_by_project: dict[str, int] = field(default_factory=dict)
    palette: list[str] = field(default_factory=lambda: list(BASE_PALETTE))
    brush_color: str = BASE_PALETTE[0]
    picker_color: str = BASE_PALETTE[0]
    custom_palette: list[Optional[str]] = field(default_factory=normalize_custom_palette)
    current_tool: str = ToolType.BRUSH.value
    tool_thickness: int = 1
    fps: int = DEFAULT_FPS
    is_grid_visible: bool = True


# ================================================================================
# Saving
# ================================================================================


def _project_to_dict(project: Project, frame_strings: bool) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": project.id,
        "name": project.name,
        "width": project.width,
        "height": project.height,
    }
    if frame_strings:
        record["frameStrings"] = [json.dumps(frame.to_strings()) for frame in project.frames]
    else:
        record["frames"] = [frame.to_strings() for frame in project.frames]
    return record


def prepare_state_for_storage(state: EditorState, frame_strings: bool = True) -> dict[str, Any]:
    """
    Convert state to a JSON-ready dict
    With frame_strings each frame is stored as its own JSON string, which
    keeps document stores that reject nested arrays happy
    """
    projects_by_size = {
        key: [_project_to_dict(project, frame_strings) for project in projects]
        for key, projects in state.projects_by_bucket.items()
    }
    return {
        "projectsBySize": projects_by_size,
        "activeProjectId": state.active_project_id,
        "activeFrameIndexByProject": dict(state.active_frame_index_by_project),
        "palette": list(state.palette),
        "brushColor": state.brush_color,
        "pickerColor": state.picker_color,
        "customPalette": list(state.custom_palette),
        "currentTool": state.current_tool,
        "toolThickness": state.tool_thickness,
        "fps": state.fps,
        "isGridVisible": state.is_grid_visible,
    }


def to_storage_document(state: EditorState, frame_strings: bool = True) -> dict[str, Any]:
    """Versioned envelope around the stored state"""
    return {
        "version": STORAGE_VERSION,
        "state": prepare_state_for_storage(state, frame_strings),
    }


# ================================================================================
# Loading
# ================================================================================


def _parse_frame_strings(value: Any) -> list[list[Any]]:
    if not isinstance(value, list):
        return []
    frames = []
    for entry in value:
        if not isinstance(entry, str):
            continue
        try:
            parsed = json.loads(entry)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            frames.append(parsed)
    return frames


def _normalize_project(raw: Any, bucket_width: int, bucket_height: int) -> Optional[Project]:
    """Repair one stored project; None if it is missing its id, name or frames"""
    if not isinstance(raw, Mapping):
        return None
    if not isinstance(raw.get("id"), str) or not isinstance(raw.get("name"), str):
        return None
    if not isinstance(raw.get("frames"), list) and not isinstance(raw.get("frameStrings"), list):
        return None

    raw_width = raw.get("width", raw.get("size"))
    raw_height = raw.get("height", raw.get("size"))
    width = clamp_canvas_size(raw_width or bucket_width)
    height = clamp_canvas_size(raw_height or bucket_height)

    raw_frames = _parse_frame_strings(raw.get("frameStrings"))
    if not raw_frames and isinstance(raw.get("frames"), list):
        raw_frames = [frame for frame in raw["frames"] if isinstance(frame, list)]

    frames = [Frame.from_values(frame, width * height) for frame in raw_frames]
    return Project(raw["id"], raw["name"], width, height, frames)


def normalize_projects_by_bucket(value: Any) -> dict[str, list[Project]]:
    """
    Rebuild the bucket map from stored data
    Keys are canonicalized to 'WxH' and legacy single-number keys are read
    for square buckets
    """
    normalized = empty_projects_by_bucket()
    if not isinstance(value, Mapping):
        return normalized

    seen_ids: set[str] = set()
    for key in bucket_keys_for(value):
        dimensions = parse_bucket_key(key)
        if dimensions is None:
            continue
        for raw in projects_in_bucket(value, key):
            project = _normalize_project(raw, *dimensions)
            if project is None:
                debug_log("STATE", f"Dropped malformed project in bucket {key}", "WARNING")
                continue
            if project.id in seen_ids:
                continue
            seen_ids.add(project.id)
            normalized.setdefault(project.bucket_key, []).append(project)
    return normalized


def _normalize_frame_indices(value: Any) -> dict[str, int]:
    if not isinstance(value, Mapping):
        return {}
    indices = {}
    for project_id, index in value.items():
        if isinstance(index, bool) or not isinstance(index, (int, float)):
            continue
        indices[str(project_id)] = max(0, int(index))
    return indices


def normalize_persisted_state(raw: Any) -> EditorState:
    """Build a valid EditorState from whatever was stored"""
    if not isinstance(raw, Mapping):
        return EditorState()

    projects_by_bucket = normalize_projects_by_bucket(raw.get("projectsBySize"))
    loaded_ids = {
        project.id for projects in projects_by_bucket.values() for project in projects
    }
    active_project_id = raw.get("activeProjectId")
    if not isinstance(active_project_id, str) or active_project_id not in loaded_ids:
        active_project_id = None

    palette = raw.get("palette")
    brush_color = raw.get("brushColor")
    picker_color = raw.get("pickerColor")
    current_tool = raw.get("currentTool")
    valid_tools = {tool.value for tool in ToolType}

    return EditorState(
        projects_by_bucket=projects_by_bucket,
        active_project_id=active_project_id,
        active_frame_index_by_project=_normalize_frame_indices(
            raw.get("activeFrameIndexByProject")
        ),
        palette=(
            [entry for entry in palette if isinstance(entry, str)]
            if isinstance(palette, list)
            else list(BASE_PALETTE)
        ),
        brush_color=brush_color if isinstance(brush_color, str) else BASE_PALETTE[0],
        picker_color=picker_color if isinstance(picker_color, str) else BASE_PALETTE[0],
        custom_palette=normalize_custom_palette(raw.get("customPalette")),
        current_tool=current_tool if current_tool in valid_tools else ToolType.BRUSH.value,
        tool_thickness=clamp_brush_size(raw.get("toolThickness")),
        fps=clamp_fps(raw.get("fps")),
        is_grid_visible=raw.get("isGridVisible") is not False,
    )


def load_storage_document(document: Any) -> Optional[EditorState]:
    """Unwrap a versioned document; None if the version is unknown"""
    if not isinstance(document, Mapping) or document.get("version") != STORAGE_VERSION:
        return None
    state = document.get("state")
    if not isinstance(state, Mapping):
        return None
    return normalize_persisted_state(state)
