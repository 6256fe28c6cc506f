import itertools

import numpy as np
import pytest

from analyze_frame import (
    BLUE_NAME_RECT,
    BLUE_SCORE_RECT,
    CLOCK_RECT,
    ELAPSED_RECT,
    MAP_NAME_RECT,
    ORANGE_NAME_RECT,
    ORANGE_SCORE_RECT,
)
from screens import END_SCREEN_PROBES, IN_MATCH_SLOTS, LOADING_SCREEN_PROBES

WIDTH, HEIGHT = 1920, 1080


def blank_frame():
    return np.zeros((HEIGHT, WIDTH, 3), dtype=np.uint8)


def paint(frame, x, y, rgb):
    """Set pixel (x, y) of a BGR frame to an RGB color."""
    frame[y, x] = (rgb[2], rgb[1], rgb[0])


def paint_probes(frame, probes):
    for probe in probes:
        paint(frame, probe.x, probe.y, probe.color)


# Marker colors painted at the top-left pixel of each OCR region
MARKERS = {
    'orange_score': (10, 0, 1),
    'blue_score': (10, 0, 2),
    'elapsed': (10, 0, 3),
    'map': (10, 0, 4),
    'orange_name': (10, 0, 5),
    'blue_name': (10, 0, 6),
    'clock': (10, 0, 7),
}

MARKER_RECTS = {
    'orange_score': ORANGE_SCORE_RECT,
    'blue_score': BLUE_SCORE_RECT,
    'elapsed': ELAPSED_RECT,
    'map': MAP_NAME_RECT,
    'orange_name': ORANGE_NAME_RECT,
    'blue_name': BLUE_NAME_RECT,
    'clock': CLOCK_RECT,
}


def mark_region(frame, name):
    rect = MARKER_RECTS[name]
    paint(frame, rect.x1, rect.y1, MARKERS[name])


class FakeRecognizer:
    """
    Stands in for Tesseract: reads the marker at the top-left of a color
    crop and answers with the text registered for it. Gray images get "".
    """

    def __init__(self, texts):
        self.texts = {}
        for name, value in texts.items():
            values = [value] if isinstance(value, str) else value
            self.texts[MARKERS[name]] = itertools.cycle(values)
        self.calls = []

    def recognize(self, image, psm):
        self.calls.append((image.ndim, psm))
        if image.ndim != 3:
            return ""
        b, g, r = (int(v) for v in image[0, 0])
        texts = self.texts.get((r, g, b))
        return next(texts) + "\n" if texts else ""


class FakeFrameSource:
    """A video made of a frame generator: frame_at(index) -> frame."""

    def __init__(self, total_frames, fps, frame_at):
        self.total_frames = total_frames
        self.fps = fps
        self.frame_at = frame_at
        self.position = 0
        self.seeks = []
        self.closed = False

    def frame_count(self):
        return self.total_frames

    def seek(self, frame_num):
        self.position = frame_num
        self.seeks.append(frame_num)

    def read(self):
        return self.frame_at(self.position)

    def timestamp(self):
        return self.position / self.fps

    def close(self):
        self.closed = True


@pytest.fixture(scope="session")
def end_frame():
    frame = blank_frame()
    paint_probes(frame, END_SCREEN_PROBES)
    for name in ('orange_score', 'blue_score', 'elapsed'):
        mark_region(frame, name)
    return frame


@pytest.fixture(scope="session")
def loading_frame():
    frame = blank_frame()
    paint_probes(frame, LOADING_SCREEN_PROBES)
    return frame


@pytest.fixture(scope="session")
def in_match_frame():
    frame = blank_frame()
    # Orange players alive, blue players all dead (dark bars)
    for slot in IN_MATCH_SLOTS[:4]:
        paint(frame, slot[0].x, slot[0].y, slot[0].color)
    for name in ('map', 'orange_name', 'blue_name', 'clock'):
        mark_region(frame, name)
    return frame


@pytest.fixture
def number_recognizer():
    return FakeRecognizer({
        'orange_score': "3",
        'blue_score': "1",
        'elapsed': "0842",
    })


@pytest.fixture
def text_recognizer():
    return FakeRecognizer({
        'map': "HELIOS STATION",
        'orange_name': ["FOO", "FOO", "F0O"],
        'blue_name': ["BAR", "8AR", "BAR"],
        'clock': "09:50",
    })
