#!/usr/bin/env python3
"""
Detect EVA screen states (score, loading, intro, gameplay) from a few pixels.

Every detector is a table of color probes tuned for a 1920x1080 recording.
A probe samples one pixel and compares it to a reference color within a
tolerance, so a detector costs a handful of array lookups per frame.
"""

from collections import namedtuple


DEFAULT_TOLERANCE = 20

RGB = namedtuple('RGB', ['r', 'g', 'b'])
Probe = namedtuple('Probe', ['label', 'x', 'y', 'color', 'tolerance'])

WHITE = RGB(255, 255, 255)
BLACK = RGB(0, 0, 0)
ORANGE_LOGO = RGB(239, 203, 14)
BLUE_LOGO = RGB(50, 138, 230)
ORANGE_HEALTH = RGB(231, 123, 9)
BLUE_HEALTH = RGB(30, 126, 242)


def sample(frame, x, y):
    """Return the RGB color of pixel (x, y) of a BGR frame."""
    b, g, r = frame[y, x][:3]
    return RGB(int(r), int(g), int(b))


def similar(color1, color2, tolerance=DEFAULT_TOLERANCE):
    """True if every channel differs by at most `tolerance`."""
    return (abs(color1[0] - color2[0]) <= tolerance and
            abs(color1[1] - color2[1]) <= tolerance and
            abs(color1[2] - color2[2]) <= tolerance)


def probe_matches(frame, probe):
    return similar(sample(frame, probe.x, probe.y), probe.color, probe.tolerance)


def all_match(frame, probes):
    return all(probe_matches(frame, p) for p in probes)


# Team logos on the score screen
END_SCREEN_PROBES = (
    Probe('orange_logo', 325, 153, ORANGE_LOGO, DEFAULT_TOLERANCE),
    Probe('blue_logo', 313, 613, BLUE_LOGO, DEFAULT_TOLERANCE),
)

# EVA loader glyph: white strokes around black gaps
LOADING_SCREEN_PROBES = (
    Probe('logo_top', 958, 427, WHITE, DEFAULT_TOLERANCE),
    Probe('logo_left', 857, 653, WHITE, DEFAULT_TOLERANCE),
    Probe('logo_right', 1060, 653, WHITE, DEFAULT_TOLERANCE),
    Probe('logo_middle', 958, 642, WHITE, DEFAULT_TOLERANCE),
    Probe('logo_black_1', 958, 463, BLACK, DEFAULT_TOLERANCE),
    Probe('logo_black_2', 880, 653, BLACK, DEFAULT_TOLERANCE),
    Probe('logo_black_3', 1037, 653, BLACK, DEFAULT_TOLERANCE),
    Probe('logo_black_4', 958, 610, BLACK, DEFAULT_TOLERANCE),
)


def _b_glyph(name, left_x, right_x, inner_x, stroke_ys, gap_ys):
    """
    Probes for the "B" of "BATTLE ARENA" in the map intro.
    Five white points down the letter's strokes, two black points in its holes.
    """
    xs = (left_x, right_x, left_x, right_x, left_x)
    whites = tuple(Probe(f'{name}_white_{i + 1}', x, y, WHITE, 30)
                   for i, (x, y) in enumerate(zip(xs, stroke_ys)))
    blacks = tuple(Probe(f'{name}_black_{i + 1}', inner_x, y, BLACK, 200)
                   for i, y in enumerate(gap_ys))
    return whites + blacks


# The intro letter lands a few pixels apart depending on the recording
INTRO_SCREEN_CLUSTERS = (
    _b_glyph('b1', 1495, 1512, 1503, (942, 950, 962, 972, 982), (951, 972)),
    _b_glyph('b2', 1558, 1572, 1564, (960, 968, 977, 987, 995), (969, 986)),
    _b_glyph('b3', 1556, 1571, 1564, (957, 964, 975, 984, 993), (966, 984)),
    _b_glyph('b4', 1617, 1630, 1623, (979, 985, 995, 1004, 1011), (987, 1004)),
    _b_glyph('b5', 1606, 1619, 1612, (976, 982, 991, 1000, 1008), (983, 1000)),
)


def _health_slots(team, x, color):
    # A dead player's bar goes dark, so black is accepted too
    return tuple(
        (Probe(f'{team}_p{i + 1}', x, y, color, DEFAULT_TOLERANCE),
         Probe(f'{team}_p{i + 1}_dead', x, y, BLACK, 50))
        for i, y in enumerate((742, 825, 907, 991))
    )


# Each slot is satisfied by any one of its alternative probes
IN_MATCH_SLOTS = (_health_slots('orange', 118, ORANGE_HEALTH) +
                  _health_slots('blue', 1801, BLUE_HEALTH))


def _front(games):
    return games[0] if games else None


def detect_end_screen(frame, games):
    """Score screen. Only looked for when no game is waiting for its start."""
    front = _front(games)
    if front is not None and front.is_open:
        return False
    return all_match(frame, END_SCREEN_PROBES)


def detect_loading_screen(frame, games):
    front = _front(games)
    if front is None or front.end_time is None or not front.is_open:
        return False
    return all_match(frame, LOADING_SCREEN_PROBES)


def detect_intro_screen(frame, games):
    front = _front(games)
    if front is None or front.end_time is None or not front.is_open:
        return False
    return any(all_match(frame, cluster) for cluster in INTRO_SCREEN_CLUSTERS)


def detect_in_match(frame, games):
    """Gameplay HUD: all eight health bars show their team color or are dark."""
    front = _front(games)
    if front is None or not front.is_open:
        return False
    return all(any(probe_matches(frame, p) for p in slot) for slot in IN_MATCH_SLOTS)


# Checked in this order, the first detector that fires wins the frame
DETECTORS = (
    ('end', detect_end_screen),
    ('loading', detect_loading_screen),
    ('intro', detect_intro_screen),
    ('in_match', detect_in_match),
)


def classify_frame(frame, games):
    """Return the name of the first detector that fires, or None."""
    for name, detector in DETECTORS:
        if detector(frame, games):
            return name
    return None
