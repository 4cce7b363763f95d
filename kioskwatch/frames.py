"""
kioskwatch/frames.py - Frames and the pixel pipeline.

Everything here is pure numpy/OpenCV: no screen, no mouse. Frames are BGR
uint8 arrays (same layout cv2.imread gives us) so a captured crop and a
reference PNG can be compared byte for byte.

Pipeline order is fixed: crop -> rotate -> contrast. Bounds are always
relative to the raw captured frame.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import OutOfBounds


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def fits_in(self, width: int, height: int) -> bool:
        return (
            self.width > 0 and self.height > 0
            and self.x >= 0 and self.y >= 0
            and self.right <= width and self.bottom <= height
        )


@dataclass(frozen=True, eq=False)
class RawFrame:
    """
    One captured raster. `origin` is where the top-left pixel sits in
    absolute display coordinates, `sequence` is the tick it came from.

    Don't use == on these, use frames_equal().
    """
    pixels: np.ndarray
    origin: Tuple[int, int] = (0, 0)
    sequence: int = 0

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def derive(self, pixels: np.ndarray, origin: Optional[Tuple[int, int]] = None) -> "RawFrame":
        # Same tick, new pixels
        return RawFrame(pixels=pixels, origin=origin or self.origin, sequence=self.sequence)


# Rotation lookup. Clockwise, like the old RotateFlip(Rotate90FlipNone).
_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}

VALID_ROTATIONS = (0, 90, 180, 270)


def frames_equal(a: RawFrame, b: RawFrame) -> bool:
    """Byte-exact comparison. Different sizes are just 'not equal'."""
    if a.pixels.shape != b.pixels.shape:
        return False
    return bool(np.array_equal(a.pixels, b.pixels))


def crop(frame: RawFrame, rect: Rect) -> RawFrame:
    if not rect.fits_in(frame.width, frame.height):
        raise OutOfBounds(
            f"{rect} does not fit in a {frame.width}x{frame.height} frame"
        )
    pixels = frame.pixels[rect.y:rect.bottom, rect.x:rect.right].copy()
    origin = (frame.origin[0] + rect.x, frame.origin[1] + rect.y)
    return frame.derive(pixels, origin)


def rotate(frame: RawFrame, degrees: int) -> RawFrame:
    if degrees not in VALID_ROTATIONS:
        raise ValueError(f"Rotation must be one of {VALID_ROTATIONS}, got {degrees}")
    if degrees == 0:
        return frame.derive(frame.pixels.copy())
    return frame.derive(cv2.rotate(frame.pixels, _ROTATIONS[degrees]))


def contrast_factor(delta: int) -> float:
    # Old GDI+ colour-matrix formula: ((100 + d) / 100)^2
    return ((100.0 + delta) / 100.0) ** 2


def adjust_contrast(frame: RawFrame, delta: int) -> RawFrame:
    """
    Scale every channel by contrast_factor(delta), clamped to 0..255.
    delta=0 hands back an untouched copy. Alpha (if any) is left alone.
    """
    if delta == 0:
        return frame.derive(frame.pixels.copy())

    factor = contrast_factor(delta)
    pixels = frame.pixels.astype(np.float32)
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        pixels[..., :3] *= factor
    else:
        pixels *= factor
    out = np.clip(np.rint(pixels), 0, 255).astype(np.uint8)
    return frame.derive(out)


# ─── Calibration helpers ──────────────────────────────────────────────────────
#
# Not used by the loop. Handy when picking bounds for a new region: text sits
# where the contrast is, so the noisiest patch is a good first guess.

def _grayscale(pixels: np.ndarray) -> np.ndarray:
    if pixels.ndim == 2:
        return pixels.astype(np.float64)
    # Plain channel average, not luma weights
    return pixels[..., :3].astype(np.float64).mean(axis=2)


def region_stddev(frame: RawFrame, rect: Rect) -> float:
    gray = _grayscale(crop(frame, rect).pixels)
    return float(gray.std())


def find_highest_contrast_rect(
    frame: RawFrame,
    size: Tuple[int, int],
    step_x: int = 40,
    step_y: int = 20,
    max_y: Optional[int] = None,
    floor: float = 0.0,
) -> Optional[Rect]:
    """
    Slide a `size` (w, h) window over the frame on a coarse grid and return
    the rect with the highest grayscale standard deviation. Only windows
    beating `floor` count; None if nothing does.
    """
    w, h = size
    gray = _grayscale(frame.pixels)
    last_y = frame.height - h
    if max_y is not None:
        last_y = min(last_y, max_y)

    best: Optional[Rect] = None
    best_std = floor
    for x in range(0, frame.width - w + 1, step_x):
        for y in range(0, last_y + 1, step_y):
            std = float(gray[y:y + h, x:x + w].std())
            if std > best_std:
                best_std = std
                best = Rect(x, y, w, h)
    return best
