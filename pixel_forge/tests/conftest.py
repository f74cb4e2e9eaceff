"""
Qt configuration and shared fixtures for pixel forge tests.
Forces the offscreen platform in headless environments.
"""

import os
import sys

import pytest

# Detect if we're in a headless environment
IS_HEADLESS = (
    not os.environ.get("DISPLAY")
    or os.environ.get("QT_QPA_PLATFORM") == "offscreen"
    or os.environ.get("CI")
    or (sys.platform == "linux" and "microsoft" in os.uname().release.lower())
)

if IS_HEADLESS:
    os.environ["QT_QPA_PLATFORM"] = "offscreen"
    os.environ.setdefault("QT_LOGGING_RULES", "*.debug=false")

from pixel_forge.core.pixel_forge_controller import PixelForgeController  # noqa: E402
from pixel_forge.core.pixel_forge_models import (  # noqa: E402
    TRANSPARENT,
    Frame,
    Project,
    RgbColor,
    create_project,
)
from pixel_forge.core.pixel_forge_settings import SettingsManager  # noqa: E402


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "gui: mark test as requiring a real display (skip in headless)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip display-only tests when headless"""
    if IS_HEADLESS:
        skip_gui = pytest.mark.skip(reason="GUI tests skipped in headless environment")
        for item in items:
            if "gui" in item.keywords:
                item.add_marker(skip_gui)


@pytest.fixture
def settings(tmp_path):
    """Settings manager writing into a temporary directory"""
    return SettingsManager(settings_dir=tmp_path / "settings")


@pytest.fixture
def controller(qapp, settings):
    """Controller with isolated settings"""
    controller = PixelForgeController(settings=settings)
    yield controller
    controller.shutdown()


@pytest.fixture
def project_4x4():
    """Blank 4x4 project"""
    return create_project(4, 4, "Test")


@pytest.fixture
def checker_project():
    """2x2 project with two frames: red/blue checker, then all transparent"""
    red = RgbColor(255, 0, 0)
    blue = RgbColor(0, 0, 255)
    first = Frame((red, blue, blue, red))
    second = Frame((TRANSPARENT,) * 4)
    return Project("checker", "Checker", 2, 2, [first, second])
