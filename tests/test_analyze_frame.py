import cv2
import numpy as np
import pytest

from analyze_frame import (
    MAPS,
    PSM_SINGLE_LINE,
    InvalidRegionError,
    Rect,
    clean_text,
    extract_text,
    most_frequent,
    parse_clock,
    parse_elapsed,
    parse_int,
    resolve_map,
)
from conftest import blank_frame


class ScriptedRecognizer:
    """Answers with a fixed sequence of texts and keeps the images it saw."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.images = []
        self.psms = []

    def recognize(self, image, psm):
        self.images.append(image.copy())
        self.psms.append(psm)
        return self.answers.pop(0)


@pytest.fixture
def frame():
    frame = blank_frame()
    frame[10:30, 10:50] = (40, 80, 120)
    return frame


class TestExtractText:
    """Tests for region OCR and its pre-processing fallback."""

    def test_first_pass_wins(self, frame):
        recognizer = ScriptedRecognizer(["Polaris\n\x0c"])
        assert extract_text(frame, Rect(10, 10, 50, 30), recognizer) == "Polaris"
        assert len(recognizer.images) == 1
        assert recognizer.images[0].shape == (20, 40, 3)

    def test_falls_back_to_inverted(self, frame):
        recognizer = ScriptedRecognizer(["", "\n", "ORCA\n"])
        text = extract_text(frame, Rect(10, 10, 50, 30), recognizer, PSM_SINGLE_LINE)

        assert text == "ORCA"
        raw, gray, inverted = recognizer.images
        assert raw.ndim == 3
        assert gray.ndim == 2
        expected_gray = cv2.cvtColor(frame[10:30, 10:50], cv2.COLOR_BGR2GRAY).astype(int) + 1
        assert np.array_equal(gray, expected_gray.astype(np.uint8))
        assert np.array_equal(inverted, cv2.bitwise_not(gray))
        assert recognizer.psms == [PSM_SINGLE_LINE] * 3

    def test_gives_up_after_three_passes(self, frame):
        recognizer = ScriptedRecognizer(["", "", ""])
        assert extract_text(frame, Rect(10, 10, 50, 30), recognizer) == ""
        assert len(recognizer.images) == 3

    @pytest.mark.parametrize("rect", [
        Rect(50, 10, 50, 30),
        Rect(50, 10, 10, 30),
        Rect(10, 30, 50, 30),
        Rect(-1, 10, 50, 30),
        Rect(1900, 10, 1921, 30),
        Rect(10, 1070, 50, 1081),
    ])
    def test_invalid_region(self, frame, rect):
        with pytest.raises(InvalidRegionError):
            extract_text(frame, rect, ScriptedRecognizer(["x"]))

    def test_region_touching_frame_edge(self, frame):
        recognizer = ScriptedRecognizer(["12"])
        assert extract_text(frame, Rect(1900, 1060, 1920, 1080), recognizer) == "12"

    def test_clean_text(self):
        assert clean_text("FOO\r\nBAR\n\x0c") == "FOOBAR"
        assert clean_text("  \n") == ""


class TestResolveMap:
    """Tests for map name lookup."""

    @pytest.mark.parametrize("text,expected", [
        ("ATLANTIS", "Atlantis"),
        ("helios station", "Helios Station"),
        ("STATION", "Helios Station"),
        ("LUNAR OUTPOST\n", "Lunar Outpost"),
        ("THE CLIFF", "The Cliff"),
        ("battle arena - the rock", "The Rock"),
    ])
    def test_known_maps(self, text, expected):
        assert resolve_map(text) == expected

    def test_unknown_text(self):
        assert resolve_map("") == ""
        assert resolve_map("P0LARIS") == ""
        assert resolve_map("theatre") == ""

    def test_table_order_wins(self):
        # "engine" comes before "rock" in the table
        assert resolve_map("rock engine") == "Engine"

    def test_idempotent(self):
        for text in ("SILVA", "nothing here"):
            assert resolve_map(text) == resolve_map(text)

    def test_every_map_has_keywords(self):
        assert all(keywords for _name, keywords in MAPS)


class TestMostFrequent:
    """Tests for the majority vote over OCR samples."""

    def test_majority(self):
        assert most_frequent(["FOO", "FOO", "BAR"]) == "FOO"
        assert most_frequent(["BAR", "FOO", "FOO"]) == "FOO"

    def test_tie_goes_to_first_sampled(self):
        assert most_frequent(["BAR", "FOO", "FOO", "BAR"]) == "BAR"

    def test_empty(self):
        assert most_frequent([]) == ""


class TestParsing:
    """Tests for numeric OCR parsing."""

    def test_parse_int(self):
        assert parse_int("3") == 3
        assert parse_int(" 12\n") == 12
        assert parse_int("") is None
        assert parse_int("abc") is None
        assert parse_int(None) is None

    def test_parse_clock(self):
        assert parse_clock("09:50") == (9, 50)
        assert parse_clock("4:05") == (4, 5)
        assert parse_clock("0950") is None
        assert parse_clock("1:2:3") is None
        assert parse_clock("ab:cd") is None

    def test_parse_elapsed(self):
        assert parse_elapsed("08:42") == 522
        assert parse_elapsed("0842") == 522
        assert parse_elapsed("842") == 522
        assert parse_elapsed("42") == 42
        assert parse_elapsed("") is None
