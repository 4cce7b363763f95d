"""
kioskwatch package - keep a kiosk browser alive

frames.py    - Frames, byte-exact compare, crop/rotate/contrast pipeline
vision.py    - Screen capture (mss) and reference PNGs
ocr.py       - Tesseract text reading
matching.py  - Per-region match rules
keys.py      - SendKeys notation parser
desktop.py   - Cursor, clicks, keys and windows (pyautogui / pygetwindow)
actions.py   - Click / SendKeys dispatch that restores cursor and focus
engine.py    - The poll loop
ui.py        - Rich terminal dashboard
config.py    - Typed configuration dataclasses

desktop.py is not imported here: pyautogui wants a real display the moment
it is imported.
"""

from .config import (
    ClickAction, SendKeysAction, Settings, Site, WatchRegion,
    load_config, parse_settings, validate_bounds,
)
from .engine import Engine, EngineState, EngineStatus
from .frames import Point, RawFrame, Rect, adjust_contrast, crop, frames_equal, rotate
from .matching import MatchResult, RegionEvaluator
from .ui import Dashboard, Stats, make_logger

__all__ = [
    "ClickAction", "SendKeysAction", "Settings", "Site", "WatchRegion",
    "load_config", "parse_settings", "validate_bounds",
    "Engine", "EngineState", "EngineStatus",
    "Point", "RawFrame", "Rect", "adjust_contrast", "crop", "frames_equal", "rotate",
    "MatchResult", "RegionEvaluator",
    "Dashboard", "Stats", "make_logger",
]
