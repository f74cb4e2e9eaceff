"""Core pixel forge modules"""

# Make key classes available at package level
from .pixel_forge_controller import PixelForgeController
from .pixel_forge_export import ExportFormat, export_project
from .pixel_forge_models import TRANSPARENT, Frame, Project, RgbColor, create_project

__all__ = [
    "TRANSPARENT",
    "ExportFormat",
    "Frame",
    "PixelForgeController",
    "Project",
    "RgbColor",
    "create_project",
    "export_project",
]
