import logging
import sys
from pathlib import Path

import pytest

# Ensure repo root is on sys.path when pytest runs the tests directly
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from aeronav_settings import settings_from_dict
from tool_runner import ToolResult


class Recorder:
    """Stands in for tool_runner.run_command. Records commands instead of running them.

    Commands with any argument containing one of the fail markers return a
    non-zero ToolResult. on_success(command) is called for the others.
    """

    def __init__(self, fail=(), on_success=None):
        self.commands = []
        self.fail = tuple(fail)
        self.on_success = on_success

    def __call__(self, command, failure_level=logging.ERROR):
        command = tuple(str(arg) for arg in command)
        self.commands.append(command)
        if any(marker in arg for arg in command for marker in self.fail):
            return ToolResult(command, 1, '', f'failed: {command[0]}')
        if self.on_success:
            self.on_success(command)
        return ToolResult(command, 0)

    def programs(self):
        return [c[0] for c in self.commands]


SETTINGS = {
    "charts": [
        ["Denver", "vfr"],
        ["Seattle", "vfr"],
        ["DDECUS", "ifr", "Enroute_Low"],
    ],
    "process_indexes": [0],
    "ifr_download_template": "https://example.com/enroute/<chartdate>/<charttype>.zip",
    "vfr_download_template": "https://example.com/visual/<chartdate>/sectional-files/<charttype>.zip",
    "zoom_range": "5-6",
    "tile_drivers": ["png", "webp"],
    "tile_driver_index": 0,
    "tile_image_quality": 100,
    "tile_processes": 2,
    "gdal2tiles_command": ["gdal2tiles.py"],
}


@pytest.fixture
def settings_dict():
    return {k: (list(v) if isinstance(v, list) else v) for k, v in SETTINGS.items()}


@pytest.fixture
def settings(settings_dict):
    return settings_from_dict(settings_dict)
