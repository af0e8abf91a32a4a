"""Optical fallback: OCR the region under a label on the rendered page.

Some dashboards paint the headline value in a canvas or split it across
animated spans, so it never appears in ``inner_text``.  The optical
fallback locates the platform's label on screen, screenshots a short strip
below it, runs Tesseract over the strip, and parses the result with the
same token rules and plausibility band as the text strategies.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from PIL import Image

from balancewatch.browser.session import BrowserSession, Region
from balancewatch.exceptions import ExtractionError
from balancewatch.extraction.money import find_currency_tokens
from balancewatch.extraction.strategies import RawMatch, select_candidate
from balancewatch.platforms import PlatformProfile

if TYPE_CHECKING:
    from balancewatch.settings.config import OCRSettings

logger = logging.getLogger(__name__)

# Horizontal margin either side of the label box.
_REGION_X_MARGIN_PX = 50

Recognizer = Callable[[Image.Image], str]


def tesseract_recognizer(tesseract_cmd: str = "") -> Recognizer:
    """Return a recognizer backed by ``pytesseract``.

    Args:
        tesseract_cmd: Explicit path to the ``tesseract`` binary; empty uses ``PATH``.
    """
    import pytesseract

    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def _recognize(image: Image.Image) -> str:
        # psm 6: a single uniform block of text
        return pytesseract.image_to_string(image, lang="eng", config="--psm 6")

    return _recognize


def region_below(label_box: Region, *, offset_px: int = 40, height_px: int = 80, max_width_px: int = 600) -> Region:
    """Return the capture strip under a label's bounding box."""
    return Region(
        x=max(0.0, label_box.x - _REGION_X_MARGIN_PX),
        y=max(0.0, label_box.y + label_box.height + offset_px),
        width=min(label_box.width + 2 * _REGION_X_MARGIN_PX, max_width_px),
        height=height_px,
    )


class OpticalFallback:
    """OCR-based last resort anchored on an on-screen label.

    Args:
        label: Visible text to anchor on, e.g. ``"Net Worth"``.
        recognizer: Callable turning a PIL image into text.
        offset_px: Gap between the label's bottom edge and the capture strip.
        height_px: Height of the capture strip.
        max_width_px: Maximum width of the capture strip.
    """

    name = "optical"

    def __init__(
        self,
        label: str,
        recognizer: Recognizer,
        *,
        offset_px: int = 40,
        height_px: int = 80,
        max_width_px: int = 600,
    ) -> None:
        self.label = label
        self.recognizer = recognizer
        self.offset_px = offset_px
        self.height_px = height_px
        self.max_width_px = max_width_px

    @classmethod
    def from_settings(cls, label: str, ocr: OCRSettings) -> "OpticalFallback":
        return cls(
            label,
            tesseract_recognizer(ocr.tesseract_cmd),
            offset_px=ocr.region_offset_px,
            height_px=ocr.region_height_px,
            max_width_px=ocr.region_max_width_px,
        )

    def recognize_text(self, png_bytes: bytes) -> str:
        """Run OCR over PNG screenshot bytes."""
        with Image.open(io.BytesIO(png_bytes)) as image:
            return self.recognizer(image.convert("L"))

    def extract(self, session: BrowserSession, profile: PlatformProfile) -> RawMatch:
        """Locate the label, OCR the strip below it, and return an in-band value.

        Raises:
            ExtractionError: Label not on screen or no token recognized.
            ValidationError: Tokens recognized but all outside the band.
        """
        box = session.locate_text(self.label)
        if box is None:
            raise ExtractionError(f"Label {self.label!r} not found on screen")

        region = region_below(
            box, offset_px=self.offset_px, height_px=self.height_px, max_width_px=self.max_width_px
        )
        logger.debug("OCR region below %r: %s", self.label, region)
        text = self.recognize_text(session.screenshot(region))
        logger.debug("OCR text: %r", text)

        tokens = find_currency_tokens(text)
        return select_candidate((RawMatch(t.text, t.value, self.name) for t in tokens), profile)
