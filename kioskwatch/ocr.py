"""Tesseract OCR for watch regions."""
from __future__ import annotations

import cv2
import pytesseract

from .config import OcrConfig
from .frames import RawFrame


class TextReader:
    """
    Reads the text in a (small, already transformed) region.

    Best effort by contract: whatever goes wrong, the answer is "" and the
    region simply doesn't match this tick.
    """

    def __init__(self, config: OcrConfig | None = None) -> None:
        self.config = config or OcrConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        self._options = f"--psm {self.config.page_segmentation_mode}"

    def recognize(self, frame: RawFrame) -> str:
        try:
            # pytesseract wants RGB, frames are BGR
            rgb = cv2.cvtColor(frame.pixels, cv2.COLOR_BGR2RGB)
            text = pytesseract.image_to_string(
                rgb, lang=self.config.language, config=self._options
            )
        except Exception:  # missing binary, bad language pack, weird image...
            return ""
        return (text or "").strip()
