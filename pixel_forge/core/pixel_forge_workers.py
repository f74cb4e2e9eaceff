"""
Worker threads for async file operations in Pixel Forge.

Export encoding and manifest import can take a moment for large
multi-frame projects, so they run off the owning thread. Workers only
see the copy of the project they were given.
"""

# Standard library imports
import traceback
from pathlib import Path
from typing import Any, Optional, Union

# Third-party imports
from PyQt6.QtCore import QObject, QThread, pyqtSignal

from .pixel_forge_constants import DEFAULT_FPS
from .pixel_forge_exceptions import ExportError, ImageFormatError, format_error_message
from .pixel_forge_export import ExportFormat, export_project, load_json_manifest
from .pixel_forge_models import Project
from .pixel_forge_palette import PaletteQuantizer
from .pixel_forge_utils import debug_exception, debug_log


class BaseWorker(QThread):
    """Base worker class for async operations.

    Signals:
        progress: Emitted with progress percentage (0-100)
        error: Emitted with error message when operation fails
        finished: Emitted when operation completes successfully
    """

    progress = pyqtSignal(int, str)  # Progress percentage 0-100, optional message
    error = pyqtSignal(str)  # Error message
    finished = pyqtSignal()  # Operation completed

    def __init__(
        self,
        file_path: Optional[Union[str, Path]] = None,
        parent: Optional[QObject] = None,
    ):
        """Initialize the base worker.

        Args:
            file_path: Optional file path (string or Path object)
            parent: Parent QObject for proper cleanup
        """
        super().__init__(parent)
        self._is_cancelled = False
        self._file_path: Optional[Path] = Path(file_path) if file_path is not None else None

    def cancel(self) -> None:
        """Cancel the operation; only suppresses further signals."""
        self._is_cancelled = True

    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def file_path(self) -> Optional[Path]:
        """Get the file path as a Path object (read-only)."""
        return self._file_path

    def validate_file_path(self, must_exist: bool = True) -> bool:
        """Validate the file path.

        Args:
            must_exist: If True, check that the file exists

        Returns:
            True if valid, False otherwise
        """
        if self._file_path is None:
            self.emit_error("No file path provided")
            return False

        if must_exist and not self._file_path.exists():
            self.emit_error(f"File not found: {self._file_path}")
            return False

        return True

    def emit_progress(self, value: int, message: str = "") -> None:
        if not self._is_cancelled:
            self.progress.emit(value, message)

    def emit_error(self, message: str) -> None:
        if not self._is_cancelled:
            self.error.emit(message)

    def emit_finished(self) -> None:
        if not self._is_cancelled:
            self.finished.emit()


class ExportWorker(BaseWorker):
    """Worker for encoding a project and writing it to disk.

    Signals:
        saved: Emitted with the written file path
    """

    saved = pyqtSignal(str)  # Saved file path

    def __init__(
        self,
        project: Project,
        fmt: Union[ExportFormat, str],
        file_path: Union[str, Path],
        frame_index: int = 0,
        fps: Any = DEFAULT_FPS,
        quantizer: Optional[PaletteQuantizer] = None,
        parent: Optional[QObject] = None,
    ):
        """Initialize the export worker.

        Args:
            project: Project to export; copied so the editor can keep working
            fmt: Export format
            file_path: Destination file
            frame_index: Frame used by single-frame formats
            fps: Frame rate used by animated formats
            quantizer: Palette quantizer for GIF export
            parent: Parent QObject for proper cleanup
        """
        super().__init__(file_path, parent)
        self.project = project.copy()
        self.fmt = fmt
        self.frame_index = frame_index
        self.fps = fps
        self.quantizer = quantizer

    def run(self) -> None:
        """Encode and save in background thread."""
        try:
            if not self.validate_file_path(must_exist=False):
                return

            fmt = ExportFormat.parse(self.fmt)
            if fmt is None:
                self.emit_error(format_error_message("export", ExportError(f"unknown format {self.fmt}")))
                return

            self.emit_progress(0, f"Encoding {fmt.value}...")
            data = export_project(
                self.project, fmt, self.frame_index, self.fps, self.quantizer
            )
            if data is None:
                self.emit_error(
                    format_error_message("export", ExportError(f"could not encode {fmt.value}"))
                )
                return

            if self.is_cancelled():
                return

            self.emit_progress(60, f"Writing {len(data)} bytes...")
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                self.file_path.write_bytes(data)
            except OSError as e:
                debug_exception("WORKER", e)
                self.emit_error(format_error_message("export", e))
                return

            debug_log("WORKER", f"Exported '{self.project.name}' to {self.file_path}")
            if self.is_cancelled():
                return

            self.emit_progress(100, "Export complete!")
            self.saved.emit(str(self.file_path))
            self.emit_finished()

        except Exception as e:
            debug_exception("WORKER", e)
            self.emit_error(f"Unexpected error exporting: {e!s}\n{traceback.format_exc()}")


class ManifestLoadWorker(BaseWorker):
    """Worker for importing a JSON manifest.

    Signals:
        result: Emitted with the rebuilt Project
    """

    result = pyqtSignal(object)  # Project

    def __init__(self, file_path: Union[str, Path], parent: Optional[QObject] = None):
        super().__init__(file_path, parent)

    def run(self) -> None:
        """Read and parse the manifest in background thread."""
        try:
            if not self.validate_file_path(must_exist=True):
                return

            self.emit_progress(0, "Reading manifest...")
            try:
                data = self.file_path.read_bytes()
            except OSError as e:
                debug_exception("WORKER", e)
                self.emit_error(format_error_message("import manifest", e))
                return

            if self.is_cancelled():
                return

            self.emit_progress(50, "Rebuilding frames...")
            try:
                project = load_json_manifest(data)
            except ImageFormatError as e:
                debug_log("WORKER", f"Invalid manifest {self.file_path}: {e}", "WARNING")
                self.emit_error(format_error_message("import manifest", e))
                return

            if self.is_cancelled():
                return

            self.emit_progress(100, "Import complete!")
            self.result.emit(project)
            self.emit_finished()

        except Exception as e:
            debug_exception("WORKER", e)
            self.emit_error(f"Unexpected error importing: {e!s}\n{traceback.format_exc()}")
