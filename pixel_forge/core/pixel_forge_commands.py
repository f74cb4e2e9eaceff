"""
Snapshot-based undo system for Pixel Forge.

Every destructive edit pushes a snapshot of the editor state before it
mutates anything. Frames are immutable, so a snapshot only copies the
containers that hold them. Older snapshots are compressed to keep long
sessions cheap.
"""

# Standard library imports
import pickle
import sys
import zlib
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from .pixel_forge_constants import UNDO_COMPRESSION_AGE, UNDO_STACK_SIZE
from .pixel_forge_models import Project
from .pixel_forge_utils import debug_log


class EditorSnapshot:
    """Independent copy of the editor state captured before a mutation.

    Holds the projects grouped by size bucket, the active project id, the
    active frame index per project and the current selection.
    """

    def __init__(
        self,
        projects_by_bucket: Mapping[str, Sequence[Project]],
        active_project_id: Optional[str],
        active_frame_index_by_project: Mapping[str, int],
        selected_indices: Sequence[int],
    ) -> None:
        self.timestamp: datetime = datetime.now(timezone.utc)
        self.compressed: bool = False
        self._compressed_data: Optional[bytes] = None

        self.projects_by_bucket: dict[str, list[Project]] = {
            key: [project.copy() for project in projects]
            for key, projects in projects_by_bucket.items()
        }
        self.active_project_id = active_project_id
        self.active_frame_index_by_project: dict[str, int] = dict(
            active_frame_index_by_project
        )
        self.selected_indices: list[int] = list(selected_indices)

    def compress(self) -> None:
        """Compress snapshot data for long-term storage.

        Original data is cleared after compression.
        """
        if not self.compressed:
            data = self._get_compress_data()
            self._compressed_data = zlib.compress(pickle.dumps(data))
            self.projects_by_bucket = {}
            self.active_frame_index_by_project = {}
            self.selected_indices = []
            self.compressed = True

    def decompress(self) -> None:
        """Restore snapshot data from compressed bytes."""
        if self.compressed and self._compressed_data:
            data = pickle.loads(zlib.decompress(self._compressed_data))
            (
                self.projects_by_bucket,
                self.active_project_id,
                self.active_frame_index_by_project,
                self.selected_indices,
            ) = data
            self._compressed_data = None
            self.compressed = False

    def _get_compress_data(self) -> tuple[Any, ...]:
        return (
            self.projects_by_bucket,
            self.active_project_id,
            self.active_frame_index_by_project,
            self.selected_indices,
        )

    def get_memory_size(self) -> int:
        """Return approximate memory usage in bytes."""
        if self.compressed and self._compressed_data:
            return len(self._compressed_data) + 64

        # Frame tuples hold one pointer per cell
        pointer_size = 8
        cells = sum(
            len(frame)
            for projects in self.projects_by_bucket.values()
            for project in projects
            for frame in project.frames
        )
        return (
            cells * pointer_size
            + len(self.selected_indices) * pointer_size
            + sys.getsizeof(self.active_frame_index_by_project)
            + 64
        )


class UndoManager:
    """Manages undo with automatic compression.

    Maintains a bounded stack of snapshots; the oldest snapshot is dropped
    once the cap is reached. There is no redo.
    """

    def __init__(
        self,
        max_snapshots: int = UNDO_STACK_SIZE,
        compression_age: int = UNDO_COMPRESSION_AGE,
    ) -> None:
        """Initialize the undo manager.

        Args:
            max_snapshots: Maximum number of snapshots to retain
            compression_age: Snapshots older than this many steps are compressed
        """
        self.snapshot_stack: list[EditorSnapshot] = []
        self.max_snapshots: int = max_snapshots
        self.compression_age: int = compression_age

    def push_snapshot(self, snapshot: EditorSnapshot) -> None:
        """Add a snapshot to history, enforcing the size cap."""
        self.snapshot_stack.append(snapshot)

        if len(self.snapshot_stack) > self.max_snapshots:
            del self.snapshot_stack[: len(self.snapshot_stack) - self.max_snapshots]

        self._compress_old_snapshots()
        debug_log(
            "HISTORY", f"Snapshot pushed ({len(self.snapshot_stack)} in history)", "DEBUG"
        )

    def undo(self) -> Optional[EditorSnapshot]:
        """Pop the most recent snapshot.

        Returns:
            The snapshot to restore, or None if there is nothing to undo
        """
        if not self.snapshot_stack:
            return None

        snapshot = self.snapshot_stack.pop()
        if snapshot.compressed:
            snapshot.decompress()
        debug_log("HISTORY", f"Undo ({len(self.snapshot_stack)} remaining)", "DEBUG")
        return snapshot

    @property
    def can_undo(self) -> bool:
        return bool(self.snapshot_stack)

    def __len__(self) -> int:
        return len(self.snapshot_stack)

    def _compress_old_snapshots(self) -> None:
        """Compress snapshots older than compression_age."""
        compress_before = max(0, len(self.snapshot_stack) - 1 - self.compression_age)

        for i in range(compress_before):
            if not self.snapshot_stack[i].compressed:
                self.snapshot_stack[i].compress()

    def get_memory_usage(self) -> dict[str, Any]:
        """Get current memory usage statistics."""
        total = sum(snapshot.get_memory_size() for snapshot in self.snapshot_stack)
        compressed = sum(1 for snapshot in self.snapshot_stack if snapshot.compressed)

        return {
            "total_bytes": total,
            "total_mb": total / (1024 * 1024),
            "snapshot_count": len(self.snapshot_stack),
            "compressed_count": compressed,
            "can_undo": self.can_undo,
        }

    def clear(self) -> None:
        """Clear all undo history."""
        self.snapshot_stack.clear()
