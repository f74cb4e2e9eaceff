#!/usr/bin/env python3
"""
Frame bookkeeping and playback for Pixel Forge

Tracks the active frame per project, adds and deletes frames, and drives
looped playback from a QTimer on the host event loop.
"""

# Standard library imports
from typing import Any, Iterable, Mapping, Optional

# Third-party imports
from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .pixel_forge_constants import MIN_PLAYBACK_INTERVAL_MS
from .pixel_forge_models import Project, clamp_frame_index
from .pixel_forge_utils import clamp_fps, debug_log


def playback_interval_ms(fps: Any) -> int:
    """Timer interval for a frame rate, never faster than ~60 FPS"""
    return max(int(1000 / clamp_fps(fps)), MIN_PLAYBACK_INTERVAL_MS)


def plan_frame_deletions(project: Project, frame_indices: Iterable[Any]) -> list[int]:
    """
    Indices that a delete request would actually remove, descending
    Invalid and duplicate indices are dropped and at least one frame survives
    """
    frame_count = project.frame_count
    if frame_count <= 1:
        return []

    requested = {
        index
        for index in frame_indices
        if isinstance(index, int)
        and not isinstance(index, bool)
        and 0 <= index < frame_count
    }
    return sorted(requested, reverse=True)[: frame_count - 1]


class AnimationController(QObject):
    """Active frame map and playback clock"""

    # Signals
    frameAdvanced = pyqtSignal(str, int)  # project id, frame index
    playbackChanged = pyqtSignal(bool)  # is playing

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)

        self.active_frame_index_by_project: dict[str, int] = {}

        self._playing_project: Optional[Project] = None
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._advance)

    # Active frame
    def active_index(self, project: Optional[Project]) -> int:
        """Active frame index of a project, clamped into range"""
        if project is None:
            return 0
        return clamp_frame_index(project, self.active_frame_index_by_project.get(project.id, 0))

    def set_active_index(self, project: Project, index: Any) -> int:
        clamped = clamp_frame_index(project, index)
        self.active_frame_index_by_project[project.id] = clamped
        return clamped

    def forget(self, project_id: str) -> None:
        self.active_frame_index_by_project.pop(project_id, None)

    def restore(self, mapping: Mapping[str, Any]) -> None:
        """Replace the active frame map (undo, loading persisted state)"""
        restored: dict[str, int] = {}
        for project_id, index in mapping.items():
            if isinstance(index, bool):
                continue
            if isinstance(index, (int, float)):
                restored[str(project_id)] = max(0, int(index))
        self.active_frame_index_by_project = restored

    # Frame set
    def add_frame(self, project: Project) -> int:
        """Duplicate the active frame after itself and make the copy active"""
        current = self.active_index(project)
        insert_at = current + 1
        project.frames.insert(insert_at, project.frames[current])
        self.active_frame_index_by_project[project.id] = insert_at
        debug_log("ANIMATION", f"Added frame {insert_at} to '{project.name}'")
        return insert_at

    def delete_frames(self, project: Project, frame_indices: Iterable[Any]) -> bool:
        """
        Delete frames, keeping at least one
        The active index shifts left by the number of frames removed before it
        """
        deletions = plan_frame_deletions(project, frame_indices)
        if not deletions:
            return False

        current = self.active_frame_index_by_project.get(project.id, 0)
        removed_before = sum(1 for index in deletions if index < current)

        for index in deletions:
            del project.frames[index]

        next_index = max(0, min(current - removed_before, project.frame_count - 1))
        self.active_frame_index_by_project[project.id] = next_index
        debug_log(
            "ANIMATION",
            f"Deleted frames {sorted(deletions)} from '{project.name}', active {next_index}",
        )
        return True

    # Playback
    @property
    def is_playing(self) -> bool:
        return self._timer.isActive()

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def start_playback(self, project: Optional[Project], fps: Any) -> bool:
        """Loop through a project's frames; needs at least two frames"""
        if project is None or project.frame_count < 2:
            return False

        self._playing_project = project
        self._timer.start(playback_interval_ms(fps))
        debug_log("ANIMATION", f"Playback started at {clamp_fps(fps)} FPS")
        self.playbackChanged.emit(True)
        return True

    def set_fps(self, fps: Any) -> None:
        """Apply a new frame rate to a running playback"""
        if self.is_playing:
            self._timer.setInterval(playback_interval_ms(fps))

    def stop_playback(self) -> None:
        """Stop playback; safe to call when not playing"""
        was_playing = self._timer.isActive()
        self._timer.stop()
        self._playing_project = None
        if was_playing:
            debug_log("ANIMATION", "Playback stopped")
            self.playbackChanged.emit(False)

    def _advance(self) -> None:
        """Timer tick: step to the next frame, wrapping around"""
        project = self._playing_project
        if project is None or project.frame_count < 2:
            self.stop_playback()
            return

        current = self.active_frame_index_by_project.get(project.id, 0)
        next_index = (current + 1) % project.frame_count
        self.active_frame_index_by_project[project.id] = next_index
        self.frameAdvanced.emit(project.id, next_index)
