"""Pixel Forge: pixel-art editing and export engine"""

__version__ = "1.0.0"
