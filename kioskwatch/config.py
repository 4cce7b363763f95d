"""
kioskwatch/config.py - The Knobs and Dials

One YAML file describes the screen to watch, how often to look, and the list
of sites with their watch regions. It is read once at startup and never
touched again while the loop runs.

Unlike the timing knobs, region definitions have no sane defaults. A typo in
a region is a hard error, not something to silently paper over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Union

import yaml

from .errors import ConfigError, OutOfBounds
from .frames import VALID_ROTATIONS, Point, Rect
from .keys import parse_key_sequence


# ═══════════════════════════════════════════════════════════════════════════════
# ACTIONS - What to do when a region matches
# ═══════════════════════════════════════════════════════════════════════════════

class ActionKind(str, Enum):
    CLICK = "click"
    SEND_KEYS = "send_keys"


@dataclass(frozen=True)
class ClickAction:
    # Absolute display coordinates, same as the mouse sees them
    point: Point
    # Some players only show their buttons while hovered.
    # Hover = wiggle the cursor by a pixel and wait hover_ms before clicking.
    hover: bool = False
    hover_ms: int = 0

    kind = ActionKind.CLICK


@dataclass(frozen=True)
class SendKeysAction:
    # SendKeys notation, see keys.py. "{F5}" = reload.
    keys: str

    kind = ActionKind.SEND_KEYS


Action = Union[ClickAction, SendKeysAction]


# ═══════════════════════════════════════════════════════════════════════════════
# WATCH REGIONS - Where to look and what counts as a hit
# ═══════════════════════════════════════════════════════════════════════════════

class TextMatch(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"


@dataclass(frozen=True)
class WatchRegion:
    """
    A rectangle of the captured screen, a rule, and an action.

    expected_text wins over reference_image if both are set. Neither set =
    region never fires (handy for parking a region while tuning it).
    """
    name: str
    bounds: Rect
    action: Action
    expected_text: str = ""
    reference_image: str = ""
    # Only look at this region when the whole screen hasn't changed since
    # the last tick. That's how we spot a stalled video.
    requires_frozen: bool = False
    rotation_degrees: int = 0
    contrast_delta: int = 0
    text_match: TextMatch = TextMatch.EQUALS


@dataclass(frozen=True)
class Site:
    name: str
    url: str = ""
    # Case-insensitive substring of the browser window title
    window_title: str = ""
    description: str = ""
    regions: List[WatchRegion] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# AMBIENT KNOBS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TimingConfig:
    # Browser needs a moment after focus before it takes keystrokes.
    # 300ms has always been enough.
    settle_delay_ms: int = 300

    # How long to wait for a freshly launched browser window to appear
    launch_timeout_seconds: float = 10.0


@dataclass
class OcrConfig:
    # Leave empty if tesseract is on PATH
    tesseract_cmd: str = ""
    language: str = "eng"
    # 7 = "single line of text". Regions are small, this is what you want.
    page_segmentation_mode: int = 7


@dataclass
class UIConfig:
    refresh_rate_ms: int = 250
    stats_file: str = "logs/stats.json"


# ═══════════════════════════════════════════════════════════════════════════════
# MASTER CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Settings:
    """
    Everything bundled together. Use load_config(), don't build by hand
    unless you're a test.
    """
    # 0-based, in the order the OS reports screens (0 = primary)
    screen_index: int = 0
    interval_seconds: int = 5
    active_site: str = ""
    sites: List[Site] = field(default_factory=list)
    timing: TimingConfig = field(default_factory=TimingConfig)
    ocr: OcrConfig = field(default_factory=OcrConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    def site(self) -> Site:
        """The site the engine runs. Named by active_site, else the first one."""
        if not self.sites:
            raise ConfigError("No sites configured")
        if not self.active_site:
            return self.sites[0]
        for site in self.sites:
            if site.name.lower() == self.active_site.lower():
                return site
        raise ConfigError(f"active_site {self.active_site!r} is not in sites")


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIG LOADER
# ═══════════════════════════════════════════════════════════════════════════════

def _get(data: dict, *keys, default=None):
    """Drill into nested dicts without KeyError explosions."""
    for key in keys:
        if not isinstance(data, dict):
            return default
        data = data.get(key)
        if data is None:
            return default
    return data


def _require(data: dict, key: str, where: str):
    value = data.get(key) if isinstance(data, dict) else None
    if value is None:
        raise ConfigError(f"{where}: missing '{key}'")
    return value


def _int(value, where: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{where}: expected an integer, got {value!r}") from None


def _parse_rect(data, where: str) -> Rect:
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: bounds must be a mapping with x, y, width, height")
    return Rect(
        x=_int(_require(data, "x", where), where),
        y=_int(_require(data, "y", where), where),
        width=_int(_require(data, "width", where), where),
        height=_int(_require(data, "height", where), where),
    )


def _parse_action(data, where: str) -> Action:
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: action must be a mapping")
    kind = str(_require(data, "type", where)).lower()

    if kind == ActionKind.CLICK.value:
        return ClickAction(
            point=Point(_int(_require(data, "x", where), where), _int(_require(data, "y", where), where)),
            hover=bool(data.get("hover", False)),
            hover_ms=_int(data.get("hover_ms", 0), where),
        )

    if kind == ActionKind.SEND_KEYS.value:
        keys = str(_require(data, "keys", where))
        parse_key_sequence(keys)  # fail now, not at 3am
        return SendKeysAction(keys=keys)

    raise ConfigError(f"{where}: unknown action type {kind!r}")


def _parse_region(data, index: int, site_name: str) -> WatchRegion:
    name = str(_get(data, "name", default=f"region-{index}"))
    where = f"site {site_name!r} region {name!r}"
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: must be a mapping")

    rotation = _int(data.get("rotation_degrees", 0), where)
    if rotation not in VALID_ROTATIONS:
        raise ConfigError(f"{where}: rotation_degrees must be one of {VALID_ROTATIONS}")

    try:
        text_match = TextMatch(str(data.get("text_match", "equals")).lower())
    except ValueError:
        raise ConfigError(f"{where}: text_match must be 'equals' or 'contains'") from None

    expected_text = str(data.get("expected_text") or "")
    if expected_text and not expected_text.strip():
        raise ConfigError(f"{where}: expected_text is blank")

    return WatchRegion(
        name=name,
        bounds=_parse_rect(_require(data, "bounds", where), where),
        action=_parse_action(_require(data, "action", where), where),
        expected_text=expected_text,
        reference_image=str(data.get("reference_image") or ""),
        requires_frozen=bool(data.get("requires_frozen", False)),
        rotation_degrees=rotation,
        contrast_delta=_int(data.get("contrast_delta", 0), where),
        text_match=text_match,
    )


def _parse_site(data, index: int) -> Site:
    if not isinstance(data, dict):
        raise ConfigError(f"site #{index}: must be a mapping")
    name = str(data.get("name") or f"site-{index}")
    regions = data.get("regions") or []
    if not isinstance(regions, list):
        raise ConfigError(f"site {name!r}: regions must be a list")
    return Site(
        name=name,
        url=str(data.get("url") or ""),
        window_title=str(data.get("window_title") or ""),
        description=str(data.get("description") or ""),
        regions=[_parse_region(r, i, name) for i, r in enumerate(regions)],
    )


def parse_settings(data: dict) -> Settings:
    """Build Settings from an already-parsed YAML document."""
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    sites = data.get("sites") or []
    if not isinstance(sites, list):
        raise ConfigError("'sites' must be a list")

    interval = _int(_get(data, "interval_seconds", default=5), "interval_seconds")
    if interval < 0:
        raise ConfigError("interval_seconds can't be negative")

    timing = TimingConfig(
        settle_delay_ms=_int(_get(data, "timing", "settle_delay_ms", default=300), "timing.settle_delay_ms"),
        launch_timeout_seconds=float(_get(data, "timing", "launch_timeout_seconds", default=10.0)),
    )

    ocr = OcrConfig(
        tesseract_cmd=str(_get(data, "ocr", "tesseract_cmd", default="")),
        language=str(_get(data, "ocr", "language", default="eng")),
        page_segmentation_mode=_int(_get(data, "ocr", "page_segmentation_mode", default=7), "ocr.page_segmentation_mode"),
    )

    ui = UIConfig(
        refresh_rate_ms=_int(_get(data, "ui", "refresh_rate_ms", default=250), "ui.refresh_rate_ms"),
        stats_file=str(_get(data, "ui", "stats_file", default="logs/stats.json")),
    )

    return Settings(
        screen_index=_int(_get(data, "screen_index", default=0), "screen_index"),
        interval_seconds=interval,
        active_site=str(_get(data, "active_site", default="")),
        sites=[_parse_site(s, i) for i, s in enumerate(sites)],
        timing=timing,
        ocr=ocr,
        ui=ui,
    )


def load_config(path: Union[str, Path] = "config.yaml") -> Settings:
    """
    Load config from YAML. Missing keys = defaults. Missing file or broken
    YAML = ConfigError (creating a starter file is main.py's job).
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {config_path}: {e}") from e

    return parse_settings(data)


def validate_bounds(site: Site, width: int, height: int) -> None:
    """Every region must fit on the configured screen. Checked before the loop starts."""
    for region in site.regions:
        if not region.bounds.fits_in(width, height):
            raise OutOfBounds(
                f"Region {region.name!r} {region.bounds} is outside the "
                f"{width}x{height} screen"
            )