#!/usr/bin/env python3
"""
Read match information out of EVA frames with OCR.
Score, clock, map and team name regions are cropped from fixed positions
and handed to Tesseract, retrying with different pre-processing when it
comes back empty.
"""

import os
import re
from collections import Counter, namedtuple

import cv2
import pytesseract


ALPHANUMERIC_WHITELIST = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-:% 1234567890"
NUMERIC_WHITELIST = "1234567890"

# Tesseract page segmentation modes used on EVA overlays
PSM_SPARSE_BLOCK = 6
PSM_SINGLE_LINE = 7

# Added to every gray level before OCR
GRAY_BRIGHTNESS = 1

Rect = namedtuple('Rect', ['x1', 'y1', 'x2', 'y2'])

# Score screen (1920x1080)
ORANGE_SCORE_RECT = Rect(530, 89, 620, 127)
BLUE_SCORE_RECT = Rect(1294, 89, 1384, 127)
ELAPSED_RECT = Rect(70, 60, 190, 140)

# Gameplay HUD
MAP_NAME_RECT = Rect(825, 81, 1093, 102)
ORANGE_NAME_RECT = Rect(686, 22, 833, 68)
BLUE_NAME_RECT = Rect(1087, 22, 1226, 68)
CLOCK_RECT = Rect(935, 0, 985, 28)


class RecognizerInitError(RuntimeError):
    pass


class InvalidRegionError(ValueError):
    pass


class TesseractRecognizer:
    """
    A Tesseract engine restricted to a character whitelist.

    Args:
        whitelist: Characters Tesseract is allowed to output
        language: Tesseract language code
        tesseract_cmd: Path to the tesseract executable (optional)
    """

    def __init__(self, whitelist: str, language: str = "eng", tesseract_cmd: str = None):
        if tesseract_cmd and os.path.exists(tesseract_cmd):
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        try:
            pytesseract.get_tesseract_version()
            languages = pytesseract.get_languages(config='')
        except pytesseract.TesseractNotFoundError as e:
            raise RecognizerInitError("Could not initialize Tesseract") from e
        if language not in languages:
            raise RecognizerInitError(f"Tesseract language '{language}' is not installed")

        self.whitelist = whitelist
        self.language = language

    def recognize(self, image, psm: int):
        # Quoted so the space in the whitelist survives pytesseract's shlex split
        config = f'--oem 3 --psm {psm} -c tessedit_char_whitelist="{self.whitelist}"'
        return pytesseract.image_to_string(image, lang=self.language, config=config)


def _raw(region):
    return region


def _gray_bright(region):
    gray = cv2.cvtColor(region, cv2.COLOR_BGR2GRAY)
    return cv2.convertScaleAbs(gray, alpha=1.0, beta=GRAY_BRIGHTNESS)


def _gray_inverted(region):
    return cv2.bitwise_not(_gray_bright(region))


# Tried in order until one gives text: OCR is sensitive to text polarity
PREPROCESSORS = (
    ('raw', _raw),
    ('gray', _gray_bright),
    ('inverted', _gray_inverted),
)


def clean_text(text):
    text = text.replace('\x0c', '').replace('\r', '').replace('\n', '')
    return text.strip()


def extract_text(frame, rect, recognizer, psm: int = PSM_SINGLE_LINE):
    """
    OCR the region `rect` of a BGR frame.

    Args:
        frame: Full BGR frame
        rect: Rect(x1, y1, x2, y2), x2/y2 exclusive
        recognizer: Object with recognize(image, psm) -> str
        psm: Tesseract page segmentation mode

    Returns:
        str: Recognized text without line breaks, possibly empty
    """
    height, width = frame.shape[:2]
    x1, y1, x2, y2 = rect
    if x1 < 0 or y1 < 0 or x2 > width or y2 > height or x2 <= x1 or y2 <= y1:
        raise InvalidRegionError(f"Invalid region {tuple(rect)} for a {width}x{height} frame")

    region = frame[y1:y2, x1:x2]
    text = ""
    for _name, preprocess in PREPROCESSORS:
        text = clean_text(recognizer.recognize(preprocess(region), psm))
        if text:
            break
    return text


# Canonical map name -> words that identify it in the HUD
MAPS = (
    ("Artefact", ("artefact",)),
    ("Atlantis", ("atlantis",)),
    ("Ceres", ("ceres",)),
    ("Engine", ("engine",)),
    ("Helios Station", ("helios", "station")),
    ("Lunar Outpost", ("lunar", "outpost")),
    ("Outlaw", ("outlaw",)),
    ("Polaris", ("polaris",)),
    ("Silva", ("silva",)),
    ("The Cliff", ("cliff",)),
    ("The Rock", ("rock",)),
)


def resolve_map(text):
    """Return the canonical map name mentioned in OCR text, or ""."""
    words = clean_text(text).lower().split()
    for name, keywords in MAPS:
        if any(word in keywords for word in words):
            return name
    return ""


def most_frequent(samples):
    """
    Majority vote over OCR samples.
    Ties go to the value that was sampled first.
    """
    if not samples:
        return ""
    return Counter(samples).most_common(1)[0][0]


def parse_int(text):
    """Digits of an OCR reading as an int, or None if there are none."""
    digits = re.sub(r'[^0-9]', '', text or '')
    if not digits:
        return None
    return int(digits)


def parse_clock(text):
    """
    Parse an in-game clock reading "M:SS" into (minutes, seconds).

    Returns:
        tuple: (minutes, seconds), or None if the text is not a clock
    """
    parts = (text or '').split(':')
    if len(parts) != 2:
        return None
    minutes = parse_int(parts[0])
    seconds = parse_int(parts[1])
    if minutes is None or seconds is None:
        return None
    return minutes, seconds


def parse_elapsed(text):
    """
    Total seconds from the score screen's elapsed time.
    The numeric engine drops the colon, so "0842" reads as 8:42.
    """
    clock = parse_clock(text)
    if clock is not None:
        return clock[0] * 60 + clock[1]

    digits = re.sub(r'[^0-9]', '', text or '')
    if not digits:
        return None
    if len(digits) >= 3:
        return int(digits[:-2]) * 60 + int(digits[-2:])
    return int(digits)
