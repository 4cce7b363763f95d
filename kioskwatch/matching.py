"""
kioskwatch/matching.py - Decide whether a watch region fires this tick.

One generic interpreter over WatchRegion: frozen gate, crop -> rotate ->
contrast, then either pixel equality against a reference PNG or OCR text
equality. No per-site special cases.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from .config import TextMatch, WatchRegion
from .errors import ReferenceImageLoadFailure
from .frames import RawFrame, adjust_contrast, crop, frames_equal, rotate
from .vision import load_reference_image


LogFn = Callable[[str, str], None]


class Strategy(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    NONE = "none"


class Status(str, Enum):
    SKIPPED = "skipped"
    NO_MATCH = "no_match"
    MATCHED = "matched"


@dataclass
class MatchResult:
    # What happened to one region on one tick
    region: WatchRegion
    strategy: Strategy
    status: Status
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.status is Status.MATCHED


class TextRecognizer(Protocol):
    def recognize(self, frame: RawFrame) -> str: ...


def strategy_for(region: WatchRegion) -> Strategy:
    # Text beats image. Neither = never matches.
    if region.expected_text:
        return Strategy.TEXT
    if region.reference_image:
        return Strategy.IMAGE
    return Strategy.NONE


def prepare_region(frame: RawFrame, region: WatchRegion) -> RawFrame:
    """crop -> rotate -> contrast. Bounds refer to the raw frame, so crop goes first."""
    out = crop(frame, region.bounds)
    if region.rotation_degrees:
        out = rotate(out, region.rotation_degrees)
    if region.contrast_delta:
        out = adjust_contrast(out, region.contrast_delta)
    return out


def normalize_text(text: str) -> str:
    return (text or "").strip().casefold()


def text_matches(recognized: str, expected: str, mode: TextMatch = TextMatch.EQUALS) -> bool:
    got = normalize_text(recognized)
    want = normalize_text(expected)
    if not got or not want:
        return False
    if mode is TextMatch.CONTAINS:
        return want in got
    return got == want


class RegionEvaluator:
    """
    Runs the match rule of a single region against the current frame.

    Reference images are re-read every time they're needed so a swapped PNG
    takes effect on the next tick. A missing file skips that region only.
    """

    def __init__(
        self,
        reader: TextRecognizer,
        image_loader: Callable[[str], RawFrame] = load_reference_image,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._reader = reader
        self._load_image = image_loader
        self._log = log_fn or (lambda m, l: None)

    def evaluate(
        self,
        region: WatchRegion,
        current: RawFrame,
        previous: Optional[RawFrame] = None,
    ) -> MatchResult:
        strategy = strategy_for(region)

        if region.requires_frozen:
            if previous is None:
                return MatchResult(region, strategy, Status.SKIPPED, "no previous frame")
            if not frames_equal(current, previous):
                return MatchResult(region, strategy, Status.SKIPPED, "screen is moving")

        if strategy is Strategy.NONE:
            return MatchResult(region, strategy, Status.NO_MATCH, "no text or image configured")

        patch = prepare_region(current, region)

        if strategy is Strategy.IMAGE:
            return self._match_image(region, patch)
        return self._match_text(region, patch)

    def _match_image(self, region: WatchRegion, patch: RawFrame) -> MatchResult:
        try:
            reference = self._load_image(region.reference_image)
        except ReferenceImageLoadFailure as e:
            self._log(f"{region.name}: {e}", "WARN")
            return MatchResult(region, Strategy.IMAGE, Status.SKIPPED, str(e))

        if frames_equal(patch, reference):
            return MatchResult(region, Strategy.IMAGE, Status.MATCHED, region.reference_image)
        return MatchResult(region, Strategy.IMAGE, Status.NO_MATCH)

    def _match_text(self, region: WatchRegion, patch: RawFrame) -> MatchResult:
        text = self._reader.recognize(patch)
        if text_matches(text, region.expected_text, region.text_match):
            return MatchResult(region, Strategy.TEXT, Status.MATCHED, text)
        return MatchResult(region, Strategy.TEXT, Status.NO_MATCH, text)
