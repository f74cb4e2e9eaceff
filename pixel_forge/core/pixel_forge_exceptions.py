#!/usr/bin/env python3
"""
Custom exceptions and error handling utilities for Pixel Forge.

This module defines domain-specific exceptions and provides utilities
for consistent error handling across the engine.
"""


class PixelForgeError(Exception):
    """Base exception for all Pixel Forge errors"""


class FileOperationError(PixelForgeError):
    """Raised when file operations fail"""


class ImageFormatError(FileOperationError):
    """Raised when image or manifest data is invalid or unsupported"""


class ExportError(FileOperationError):
    """Raised when an encoder cannot produce output"""


def format_error_message(operation: str, error: Exception) -> str:
    """
    Format an error message for user display.

    Args:
        operation: Description of the operation that failed
        error: The exception that was raised

    Returns:
        User-friendly error message
    """
    if isinstance(error, FileNotFoundError):
        return f"File not found during {operation}"
    elif isinstance(error, PermissionError):
        return f"Permission denied during {operation}"
    elif isinstance(error, MemoryError):
        return f"Out of memory during {operation}"
    elif isinstance(error, OSError) and error.errno == 28:  # No space left
        return f"Disk full - cannot complete {operation}"
    elif isinstance(error, ImageFormatError):
        return f"Invalid image format: {error}"
    elif isinstance(error, ExportError):
        return f"Export failed: {error}"
    else:
        return f"Failed to {operation}: {error}"
